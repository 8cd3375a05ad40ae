"""
HTTP middleware (Chain of Responsibility).

    LoggingMiddleware   access log line + X-Request-ID
    ErrorMiddleware     escaped exceptions → JSON error response
"""

from .base import FunctionMiddleware, Middleware, MiddlewarePipeline, NextHandler, function_middleware
from .errors import ErrorMiddleware
from .logging import LoggingMiddleware


__all__ = [
    "Middleware",
    "MiddlewarePipeline",
    "NextHandler",
    "FunctionMiddleware",
    "function_middleware",
    "ErrorMiddleware",
    "LoggingMiddleware",
]
