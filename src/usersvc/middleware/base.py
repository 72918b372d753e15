"""
=============================================================================
MIDDLEWARE PIPELINE
=============================================================================

Middleware wraps the request dispatcher like layers of an onion. Each layer
sees the request on the way in and the response on the way out:

    request ──► LoggingMiddleware ──► dispatch (router + handlers)
                      │                              │
    response ◄────────┴──────────────────────────────┘

First added = outermost.

=============================================================================
"""

import functools
import logging
from abc import ABC, abstractmethod
from typing import Callable, Iterator, List

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse


logger = logging.getLogger(__name__)


# The next middleware, or the dispatcher at the end of the chain
NextHandler = Callable[[HTTPRequest], HTTPResponse]


class Middleware(ABC):
    """
    A layer around request dispatch.

        class ServedBy(Middleware):
            def __call__(self, request, next):
                response = next(request)
                response.set_header("X-Served-By", socket.gethostname())
                return response

    A layer may also answer without calling next().
    """

    @abstractmethod
    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        ...

    @property
    def name(self) -> str:
        return type(self).__name__


class MiddlewarePipeline:
    """
    Ordered middleware, folded around a final handler by wrap().

        handler = MiddlewarePipeline().add(LoggingMiddleware()).wrap(dispatch)
    """

    def __init__(self):
        self._layers: List[Middleware] = []

    def add(self, middleware: Middleware) -> "MiddlewarePipeline":
        self._layers.append(middleware)
        logger.debug(f"Middleware registered: {middleware.name} (position {len(self._layers)})")
        return self

    def wrap(self, handler: NextHandler) -> NextHandler:
        """Return layer1(layer2(...(handler))) as a single callable."""
        return functools.reduce(
            lambda inner, layer: functools.partial(layer, next=inner),
            reversed(self._layers),
            handler,
        )

    def __len__(self) -> int:
        return len(self._layers)

    def __iter__(self) -> Iterator[Middleware]:
        return iter(self._layers)
