"""
=============================================================================
URL ROUTER
=============================================================================

Resolves (method, path) to exactly one handler. Three kinds of route:

- EXACT:     a method and a literal path          GET  /users
- FALLBACK:  a method without a path              GET  *
- CATCH-ALL: neither method nor path              ANY  *

=============================================================================
RESOLUTION ORDER
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        ROUTING FLOW                                 │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Incoming Request  GET /api/unknown                                 │
    │        │                                                             │
    │        ▼                                                             │
    │   1. exact[("GET", "/api/unknown")]    miss                          │
    │      exact[("ANY", "/api/unknown")]    miss                          │
    │        │                                                             │
    │        ▼                                                             │
    │   2. fallback["GET"]                   HIT → get_fallback(request)   │
    │        │                                                             │
    │        ▼ (if no GET fallback)                                        │
    │   3. catch_all                         HIT → catch_all(request)      │
    │        │                                                             │
    │        ▼ (if no catch-all)                                           │
    │   4. NoRouteFound → 404                                              │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Every step is a dictionary lookup, so registration order never changes
the outcome: an exact route registered after a fallback still wins, and
a fallback always beats the catch-all. Prefix logic such as "/api/..."
belongs inside fallback handlers, not here.

Paths are compared literally after dropping a trailing slash ("/users/"
and "/users" are the same route); method names are case-insensitive.

The table is frozen when the server starts. Registering afterwards, or
registering the same exact key or fallback twice, raises.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Dict, List, Tuple, Union

from ..errors import NoRouteFound
from .request import HTTPRequest
from .response import HTTPResponse, not_found


# Handler: A function that takes a request and returns a response
Handler = Callable[[HTTPRequest], HTTPResponse]


class Method(str, Enum):
    """HTTP methods a route can be registered for. ANY matches every method."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"
    HEAD = "HEAD"
    OPTIONS = "OPTIONS"
    ANY = "ANY"

    @classmethod
    def parse(cls, value: Union[str, "Method", None]) -> "Method":
        """
        Normalize a method name. None means ANY.

        Raises:
            ValueError: For a name that is not an HTTP method we route.
        """
        if value is None:
            return cls.ANY
        if isinstance(value, Method):
            return value
        try:
            return cls(value.strip().upper())
        except ValueError:
            raise ValueError(f"Unsupported HTTP method: {value!r}")


class RouteKind(Enum):
    EXACT = "exact"
    FALLBACK = "fallback"
    CATCH_ALL = "catch_all"


@dataclass
class Route:
    """
    A registered route.

        Route(method=Method.GET, path="/users", handler=list_users)
        Route(method=Method.GET, path=None,     handler=get_fallback)
        Route(method=Method.ANY, path=None,     handler=catch_all)
    """

    method: Method
    path: Optional[str]
    handler: Handler
    name: Optional[str] = None

    @property
    def kind(self) -> RouteKind:
        if self.path is not None:
            return RouteKind.EXACT
        if self.method is Method.ANY:
            return RouteKind.CATCH_ALL
        return RouteKind.FALLBACK

    def describe(self) -> str:
        return f"{self.method.value:8} {self.path if self.path is not None else '*'}"


@dataclass
class RouteMatch:
    """The route chosen for a request, plus the normalized request key."""

    route: Route
    method: str
    path: str

    @property
    def kind(self) -> RouteKind:
        return self.route.kind

    @property
    def handler(self) -> Handler:
        return self.route.handler


def normalize_path(path: str) -> str:
    """
    Canonical form used as the exact-table key.

        ""        → "/"
        "users"   → "/users"
        "/users/" → "/users"
    """
    if not path or path == "/":
        return "/"
    if not path.startswith("/"):
        path = "/" + path
    return path.rstrip("/") or "/"


class Router:
    """
    Route table with exact, fallback and catch-all levels.

    Decorator API:

        router = Router()

        @router.get("/users")
        def list_users(request):
            return ok({"status": "success", "data": "List of users"})

        @router.fallback("GET")
        def get_fallback(request):
            ...

        @router.catch_all()
        def catch_all(request):
            ...
    """

    def __init__(self):
        self._exact: Dict[Tuple[Method, str], Route] = {}
        self._fallbacks: Dict[Method, Route] = {}
        self._catch_all: Optional[Route] = None
        self._frozen = False

    # =========================================================================
    # ROUTE REGISTRATION
    # =========================================================================

    def add_route(
        self,
        path: Optional[str],
        handler: Handler,
        method: Union[str, Method, None] = None,
        name: Optional[str] = None,
    ) -> Route:
        """
        Register a route.

        Args:
            path: Literal path, or None for a fallback / catch-all.
            handler: Callable taking an HTTPRequest, returning an HTTPResponse.
            method: HTTP method. None (or "ANY") matches every method.
            name: Optional label shown in print_routes().

        Raises:
            RuntimeError: The router is frozen.
            ValueError: Unknown method, or the slot is already taken.
        """
        if self._frozen:
            raise RuntimeError("Router is frozen; register routes before the server starts")

        route = Route(
            method=Method.parse(method),
            path=normalize_path(path) if path is not None else None,
            handler=handler,
            name=name or getattr(handler, "__name__", None),
        )

        if route.kind is RouteKind.EXACT:
            key = (route.method, route.path)
            if key in self._exact:
                raise ValueError(f"Duplicate route: {route.describe()}")
            self._exact[key] = route
        elif route.kind is RouteKind.FALLBACK:
            if route.method in self._fallbacks:
                raise ValueError(f"Duplicate fallback for {route.method.value}")
            self._fallbacks[route.method] = route
        else:
            if self._catch_all is not None:
                raise ValueError("A catch-all handler is already registered")
            self._catch_all = route

        return route

    def freeze(self) -> None:
        """Reject any further registration."""
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    # =========================================================================
    # ROUTE RESOLUTION
    # =========================================================================

    def resolve(self, method: str, path: str) -> RouteMatch:
        """
        Pick the handler for (method, path).

        Raises:
            NoRouteFound: Nothing matched at any level.
        """
        method = method.strip().upper()
        path = normalize_path(path)

        try:
            requested = Method(method)
        except ValueError:
            requested = None

        if requested is not None and requested is not Method.ANY:
            route = self._exact.get((requested, path))
            if route is not None:
                return RouteMatch(route, method, path)

        route = self._exact.get((Method.ANY, path))
        if route is not None:
            return RouteMatch(route, method, path)

        if requested is not None:
            route = self._fallbacks.get(requested)
            if route is not None:
                return RouteMatch(route, method, path)

        if self._catch_all is not None:
            return RouteMatch(self._catch_all, method, path)

        raise NoRouteFound(method, path)

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        """
        Resolve and invoke the handler for a request.

        A total miss becomes a 404. Handler exceptions propagate to the
        server, which turns them into a 500.
        """
        try:
            match = self.resolve(request.method, request.path)
        except NoRouteFound as e:
            return not_found(e.message)
        return match.handler(request)

    # =========================================================================
    # DECORATOR-STYLE ROUTE REGISTRATION
    # =========================================================================
    #
    #     @router.get("/users")
    #     def list_users(request):
    #         return ok(...)
    #
    # is equivalent to:
    #
    #     router.add_route("/users", list_users, method="GET")
    #
    # =========================================================================

    def route(
        self,
        path: Optional[str],
        method: Union[str, Method, None] = None,
        name: Optional[str] = None,
    ) -> Callable[[Handler], Handler]:
        def decorator(handler: Handler) -> Handler:
            self.add_route(path, handler, method=method, name=name)
            return handler
        return decorator

    def get(self, path: str, name: Optional[str] = None) -> Callable[[Handler], Handler]:
        return self.route(path, Method.GET, name)

    def post(self, path: str, name: Optional[str] = None) -> Callable[[Handler], Handler]:
        return self.route(path, Method.POST, name)

    def put(self, path: str, name: Optional[str] = None) -> Callable[[Handler], Handler]:
        return self.route(path, Method.PUT, name)

    def patch(self, path: str, name: Optional[str] = None) -> Callable[[Handler], Handler]:
        return self.route(path, Method.PATCH, name)

    def delete(self, path: str, name: Optional[str] = None) -> Callable[[Handler], Handler]:
        return self.route(path, Method.DELETE, name)

    def fallback(self, method: Union[str, Method], name: Optional[str] = None) -> Callable[[Handler], Handler]:
        """Handler for any path under ``method`` with no exact route."""
        if Method.parse(method) is Method.ANY:
            raise ValueError("A fallback needs a concrete method; use catch_all()")
        return self.route(None, method, name)

    def catch_all(self, name: Optional[str] = None) -> Callable[[Handler], Handler]:
        """Handler of last resort for every method and path."""
        return self.route(None, None, name)

    # =========================================================================
    # INTROSPECTION
    # =========================================================================

    def routes(self) -> List[Route]:
        """Exact routes sorted by path, then fallbacks, then the catch-all."""
        exact = sorted(self._exact.values(), key=lambda r: (r.path, r.method.value))
        fallbacks = sorted(self._fallbacks.values(), key=lambda r: r.method.value)
        tail = [self._catch_all] if self._catch_all is not None else []
        return exact + fallbacks + tail

    def print_routes(self) -> None:
        """
        Print the table, e.g.:

            Registered Routes:
            ------------------------------------------------------------
              POST     /add_task
              GET      /users
              GET      *
              ANY      *
            ------------------------------------------------------------
        """
        print("\nRegistered Routes:")
        print("-" * 60)
        for route in self.routes():
            print(f"  {route.describe()}")
        print("-" * 60)
