"""
=============================================================================
MIDDLEWARE BASE
=============================================================================

Middleware wraps the router so cross-cutting work (access logging,
turning stray exceptions into 500s) stays out of the handlers. Each
middleware receives the request plus ``next`` and decides whether and
when to call it (Chain of Responsibility):

    Request
       │
       ▼
    ┌─────────────────────┐
    │  LoggingMiddleware  │  starts timer, assigns X-Request-ID
    │  ┌───────────────┐  │
    │  │ ErrorMiddleware│ │  exception → 500 JSON
    │  │  ┌─────────┐  │  │
    │  │  │ Router  │  │  │  exact / fallback / catch-all
    │  │  └─────────┘  │  │
    │  └───────────────┘  │
    └─────────────────────┘
       │
       ▼
    Response

WebSocket sessions bypass the pipeline: after the 101 handshake the
connection no longer carries HTTP requests.
"""

from abc import ABC, abstractmethod
from typing import Callable, Iterator, List, Optional
import logging

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse


logger = logging.getLogger(__name__)


# The next middleware, or the router at the end of the chain
NextHandler = Callable[[HTTPRequest], HTTPResponse]


class Middleware(ABC):
    """
    Abstract base class for middleware.

        class StampMiddleware(Middleware):
            def __call__(self, request, next):
                # pre-processing, or return early to short-circuit
                response = next(request)
                # post-processing
                response.set_header("X-Stamp", "1")
                return response
    """

    @abstractmethod
    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        """Process the request, normally by calling ``next(request)``."""

    @property
    def name(self) -> str:
        return self.__class__.__name__


class MiddlewarePipeline:
    """
    Chains middleware around a final handler.

    First added is outermost:

        pipeline.use(LoggingMiddleware(), ErrorMiddleware())
        handler = pipeline.wrap(router.handle)
        # LoggingMiddleware → ErrorMiddleware → router.handle
    """

    def __init__(self):
        self._middleware: List[Middleware] = []

    def add(self, middleware: Middleware) -> "MiddlewarePipeline":
        self._middleware.append(middleware)
        logger.debug(f"Added middleware: {middleware.name}")
        return self

    def use(self, *middleware: Middleware) -> "MiddlewarePipeline":
        for mw in middleware:
            self.add(mw)
        return self

    def wrap(self, handler: NextHandler) -> NextHandler:
        """
        Build the chain around ``handler``.

        Wrapping runs in reverse so that [A, B, C] yields A(B(C(handler))).
        """
        current = handler
        for middleware in reversed(self._middleware):
            current = self._create_wrapped_handler(middleware, current)
        return current

    def _create_wrapped_handler(
        self,
        middleware: Middleware,
        next_handler: NextHandler
    ) -> NextHandler:
        def wrapped(request: HTTPRequest) -> HTTPResponse:
            return middleware(request, next_handler)

        return wrapped

    def __len__(self) -> int:
        return len(self._middleware)

    def __iter__(self) -> Iterator[Middleware]:
        return iter(self._middleware)


class FunctionMiddleware(Middleware):
    """
    Wraps a plain ``(request, next) -> response`` function as middleware.

        @function_middleware
        def no_store(request, next):
            response = next(request)
            response.set_header("Cache-Control", "no-store")
            return response

        pipeline.add(no_store)
    """

    def __init__(
        self,
        func: Callable[[HTTPRequest, NextHandler], HTTPResponse],
        name: Optional[str] = None
    ):
        self._func = func
        self._name = name or func.__name__

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        return self._func(request, next)

    @property
    def name(self) -> str:
        return self._name


def function_middleware(
    func: Callable[[HTTPRequest, NextHandler], HTTPResponse]
) -> FunctionMiddleware:
    """Decorator form of FunctionMiddleware."""
    return FunctionMiddleware(func)
