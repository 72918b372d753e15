"""
=============================================================================
URL ROUTER
=============================================================================

Maps (method, path) to a handler, extracting {placeholder} segments.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        ROUTING TABLE                                │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   GET /users/42                                                      │
    │        │                                                             │
    │        ▼  tried top to bottom, first match wins                      │
    │   ┌────────────────────────────────────────────────────────────┐    │
    │   │ POST   /users        → create_user                         │    │
    │   │ GET    /users        → list_users                          │    │
    │   │ GET    /users/{id}   → get_user       ← MATCH              │    │
    │   │ PUT    /users/{id}   → update_user                         │    │
    │   │ DELETE /users/{id}   → delete_user                         │    │
    │   └────────────────────────────────────────────────────────────┘    │
    │        │                                                             │
    │        ▼                                                             │
    │   request.path_params == {"id": "42"}                                │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
MATCHING RULES
=============================================================================

- The method must be equal, the path must match the whole pattern.
- A {name} placeholder matches exactly one non-empty segment.
- Paths are not normalized: "/users/" does not match "/users".
- The router does not interpret parameter values. "/users/abc" matches
  "/users/{id}"; rejecting "abc" is the handler's job (400, not 404).
- Nothing matches: RouteNotFound.

    Pattern:  /users/{id}
    Regex:    /users/(?P<id>[^/]+)   (fullmatch)

=============================================================================
"""

import re
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from ..errors import RouteNotFound
from .request import HTTPRequest
from .response import HTTPResponse


# Handler: takes the request (path_params filled in), returns a response
Handler = Callable[[HTTPRequest], HTTPResponse]

_PLACEHOLDER = re.compile(r"^\{([A-Za-z_][A-Za-z0-9_]*)\}$")


@dataclass
class Route:
    """
    A registered route.

        Route(method="GET", path="/users/{id}", handler=get_user,
              name="get_user", param_names=["id"])
    """

    method: str
    path: str
    handler: Handler
    name: Optional[str] = None
    param_names: List[str] = field(default_factory=list)

    _pattern: Optional["re.Pattern"] = field(default=None, repr=False)


@dataclass
class RouteMatch:
    """The route that matched plus the extracted path parameters."""

    route: Route
    params: Dict[str, str]


class Router:
    """
    Fixed-order routing table.

        router = Router()

        @router.get("/users/{id}", name="get_user")
        def get_user(request):
            return ok({"id": request.path_params["id"]})

    Registration order is matching order.
    """

    def __init__(self):
        self._routes: List[Route] = []

    # =========================================================================
    # ROUTE REGISTRATION
    # =========================================================================

    def add_route(
        self,
        method: str,
        path: str,
        handler: Handler,
        name: Optional[str] = None
    ) -> Route:
        """Register a route at the end of the table."""
        pattern, param_names = self._compile_pattern(path)
        route = Route(
            method=method.upper(),
            path=path,
            handler=handler,
            name=name or getattr(handler, "__name__", None),
            param_names=param_names,
            _pattern=pattern,
        )
        self._routes.append(route)
        return route

    def _compile_pattern(self, path: str):
        """
        Compile "/users/{id}" to /users/(?P<id>[^/]+), used with fullmatch().

        Static segments are escaped, so "." or "+" in a path match
        literally.
        """
        if not path.startswith("/"):
            raise ValueError(f"Route path must start with '/': {path!r}")

        param_names: List[str] = []
        regex_parts: List[str] = []

        for segment in path.split("/")[1:]:
            regex_parts.append("/")
            placeholder = _PLACEHOLDER.match(segment)
            if placeholder:
                name = placeholder.group(1)
                if name in param_names:
                    raise ValueError(f"Duplicate path parameter {name!r} in {path!r}")
                param_names.append(name)
                regex_parts.append(f"(?P<{name}>[^/]+)")
            else:
                regex_parts.append(re.escape(segment))

        return re.compile("".join(regex_parts)), param_names

    # =========================================================================
    # ROUTE MATCHING
    # =========================================================================

    def match(self, method: str, path: str) -> Optional[RouteMatch]:
        """First route matching method and path, or None."""
        for route in self._routes:
            if route.method != method:
                continue
            # The whole path must match, trailing "\n" included
            found = route._pattern.fullmatch(path)
            if found:
                return RouteMatch(route=route, params=found.groupdict())
        return None

    def resolve(self, method: str, path: str) -> RouteMatch:
        """
        Like match(), but a miss is an error.

        Raises:
            RouteNotFound: No route matches (method, path).
        """
        route_match = self.match(method, path)
        if route_match is None:
            raise RouteNotFound(f"No route for {method} {path}")
        return route_match

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        """
        Route a request and call its handler.

        Path parameters are injected into request.path_params before the
        handler runs.
        """
        route_match = self.resolve(request.method, request.path)
        request.path_params = route_match.params
        return route_match.route.handler(request)

    def routes(self) -> List[Route]:
        """All routes in matching order."""
        return list(self._routes)

    # =========================================================================
    # DECORATOR-STYLE REGISTRATION
    # =========================================================================

    def route(
        self,
        method: str,
        path: str,
        name: Optional[str] = None
    ) -> Callable[[Handler], Handler]:
        def decorator(handler: Handler) -> Handler:
            self.add_route(method, path, handler, name)
            return handler
        return decorator

    def get(self, path: str, name: Optional[str] = None) -> Callable[[Handler], Handler]:
        return self.route("GET", path, name)

    def post(self, path: str, name: Optional[str] = None) -> Callable[[Handler], Handler]:
        return self.route("POST", path, name)

    def put(self, path: str, name: Optional[str] = None) -> Callable[[Handler], Handler]:
        return self.route("PUT", path, name)

    def delete(self, path: str, name: Optional[str] = None) -> Callable[[Handler], Handler]:
        return self.route("DELETE", path, name)
