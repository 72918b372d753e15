"""
Middleware wrapped around request dispatch.

    pipeline = MiddlewarePipeline().add(LoggingMiddleware())
    handler = pipeline.wrap(dispatch)
"""

from .base import Middleware, MiddlewarePipeline, NextHandler
from .logging import LoggingMiddleware, AccessLogEntry

__all__ = [
    # Base classes
    "Middleware",
    "MiddlewarePipeline",
    "NextHandler",

    # Access logging
    "LoggingMiddleware",
    "AccessLogEntry",
]
