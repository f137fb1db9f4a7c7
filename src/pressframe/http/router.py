"""
=============================================================================
URL ROUTER
=============================================================================

Registers routes, matches requests against them and runs the matched
route through its middleware to the action.

    router = Router(controllers={"HomeController": HomeController})

    router.get("/", "HomeController@index").name("home")

    router.group({"prefix": "api/v1", "middleware": ["admin"], "name": "api"},
        lambda r: r.group({"prefix": "blogs", "controller": "Api.BlogController", "name": "blogs"},
            lambda r: (
                r.get("/", "index").name("index"),          # api.blogs.index
                r.get("/{id}", "show").name("show"),        # api.blogs.show
            )))

=============================================================================
ROUTE GROUPS
=============================================================================

group() pushes a frame of shared attributes, runs the callback, and pops
the frame again:

    prefix       "/api" + "/v1" + "/blogs/{id}"   → /api/v1/blogs/{id}
    middleware   parent list, then child list     → ["admin", "throttle:60,1"]
    name         "api" + "blogs" + "show"         → api.blogs.show
    controller   innermost wins; "show"           → Api.BlogController@show

=============================================================================
DISPATCH
=============================================================================

    ┌─────────────┐  static map   ┌─────────────┐  regex list  ┌───────────┐
    │ GET /blogs/7│──────────────►│  no match   │─────────────►│  /blogs/  │
    └─────────────┘               └─────────────┘              │  {id} ✓   │
                                                               └───────────┘

Static URIs are looked up in a dict first, then dynamic patterns are tried
in registration order. When the path matches but the method does not,
the answer is 405 with an Allow header; when nothing matches, 404. A
path with a trailing slash that finds nothing gets one retry without it.

The dispatch table is compiled lazily and thrown away whenever a route is
added, so routes registered late (inside a group callback) are picked up.

=============================================================================
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Pattern, Tuple, Type
import logging

from ..middleware.base import MiddlewareRegistry, ResolutionError, wrap_handler
from .request import Request
from .response import Response, coerce_response, method_not_allowed, not_found
from .route import Action, Route, compile_pattern, is_static


logger = logging.getLogger(__name__)

ALL_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE"]


class RouteNotFoundError(Exception):
    """No route carries the requested name."""

    def __init__(self, name: str):
        super().__init__(f"Route named '{name}' not found.")
        self.name = name


class DispatchStatus(Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    METHOD_NOT_ALLOWED = "method_not_allowed"


@dataclass
class RouteMatch:
    """
    Outcome of matching one method + path.

    Example:
        Pattern: /blogs/{id}
        Path:    /blogs/7
        Result:  RouteMatch(FOUND, route=<Route>, params={"id": "7"})
    """
    status: DispatchStatus
    route: Optional[Route] = None
    params: Dict[str, str] = field(default_factory=dict)
    allowed_methods: List[str] = field(default_factory=list)


@dataclass
class _DispatchTable:
    static: Dict[str, Dict[str, Route]]
    dynamic: List[Tuple[str, Pattern, Route]]


class Router:
    """Route registry, dispatcher and route runner."""

    def __init__(
        self,
        controllers: Optional[Dict[str, Type]] = None,
        middleware: Optional[MiddlewareRegistry] = None,
    ):
        # (method, uri, route) in registration order
        self._routes: List[Tuple[str, str, Route]] = []
        self._named: Dict[str, Route] = {}
        self._groups: List[Dict[str, Any]] = []
        self._table: Optional[_DispatchTable] = None
        self.controllers: Dict[str, Type] = dict(controllers or {})
        self.middleware = middleware or MiddlewareRegistry()

    def register_controller(self, name: str, cls: Type) -> "Router":
        self.controllers[name] = cls
        return self

    # =========================================================================
    # REGISTRATION
    # =========================================================================

    def get(self, uri: str, action: Action) -> Route:
        return self.add_route(["GET"], uri, action)

    def post(self, uri: str, action: Action) -> Route:
        return self.add_route(["POST"], uri, action)

    def put(self, uri: str, action: Action) -> Route:
        return self.add_route(["PUT"], uri, action)

    def patch(self, uri: str, action: Action) -> Route:
        return self.add_route(["PATCH"], uri, action)

    def delete(self, uri: str, action: Action) -> Route:
        return self.add_route(["DELETE"], uri, action)

    def match(self, methods: List[str], uri: str, action: Action) -> Route:
        return self.add_route(methods, uri, action)

    def any(self, uri: str, action: Action) -> Route:
        return self.add_route(list(ALL_METHODS), uri, action)

    def group(self, attributes: Dict[str, Any], callback: Callable[["Router"], Any]) -> None:
        """
        Register routes that share a prefix, middleware, name prefix or controller.

        Recognized keys: prefix, middleware (str or list), name, controller.
        """
        self._groups.append(attributes)
        try:
            callback(self)
        finally:
            self._groups.pop()
            self._table = None

    def add_route(self, methods: List[str], uri: str, action: Action) -> Route:
        uri = self._apply_group_prefix(uri)

        if isinstance(action, str) and "@" not in action:
            for group in reversed(self._groups):
                if group.get("controller"):
                    action = f"{group['controller']}@{action}"
                    break

        route = Route(methods, uri, action, router=self)

        for group in self._groups:
            if group.get("middleware"):
                route.middleware(group["middleware"])

        route.name_prefix = ".".join(
            group["name"].strip(".") for group in self._groups if group.get("name")
        )

        if uri.endswith("/*"):
            base = uri[:-2] or "/"
            wildcard = base.rstrip("/") + "/{wildcard:.+}"
            for method in route.methods:
                self._routes.append((method, base, route))
            for method in route.methods:
                self._routes.append((method, wildcard, route))
        else:
            for method in route.methods:
                self._routes.append((method, uri, route))

        self._table = None
        logger.debug(f"Registered route: {'|'.join(route.methods)} {uri}")
        return route

    def register_name(self, name: str, route: Route, previous: Optional[str] = None) -> None:
        # later registrations win; a renamed route gives up its old name
        if previous and previous != name and self._named.get(previous) is route:
            del self._named[previous]
        self._named[name] = route

    def _apply_group_prefix(self, uri: str) -> str:
        prefix = ""
        for group in self._groups:
            if group.get("prefix"):
                prefix += "/" + group["prefix"].strip("/")
        return "/" + (prefix + "/" + uri.strip("/")).strip("/")

    # =========================================================================
    # MATCHING
    # =========================================================================

    def _compile(self) -> _DispatchTable:
        if self._table is None:
            static: Dict[str, Dict[str, Route]] = {}
            dynamic: List[Tuple[str, Pattern, Route]] = []
            for method, uri, route in self._routes:
                if is_static(uri):
                    # first registration of a method + uri wins
                    static.setdefault(uri, {}).setdefault(method, route)
                else:
                    dynamic.append((method, compile_pattern(uri), route))
            self._table = _DispatchTable(static, dynamic)
        return self._table

    def match_route(self, method: str, path: str) -> RouteMatch:
        table = self._compile()
        method = method.upper()

        found = self._find(table, method, path)
        if found is None and method == "HEAD":
            found = self._find(table, "GET", path)
        if found is not None:
            route, params = found
            return RouteMatch(DispatchStatus.FOUND, route, params)

        allowed = self.get_allowed_methods(path)
        if allowed:
            return RouteMatch(DispatchStatus.METHOD_NOT_ALLOWED, allowed_methods=allowed)
        return RouteMatch(DispatchStatus.NOT_FOUND)

    def _find(self, table: _DispatchTable, method: str, path: str) -> Optional[Tuple[Route, Dict[str, str]]]:
        by_method = table.static.get(path)
        if by_method and method in by_method:
            return by_method[method], {}

        for route_method, pattern, route in table.dynamic:
            if route_method != method:
                continue
            matched = pattern.match(path)
            if matched:
                params = {name: value for name, value in matched.groupdict().items() if value is not None}
                return route, params
        return None

    def get_allowed_methods(self, path: str) -> List[str]:
        table = self._compile()
        methods = list(table.static.get(path, {}))
        for method, pattern, _ in table.dynamic:
            if method not in methods and pattern.match(path):
                methods.append(method)
        return methods

    # =========================================================================
    # DISPATCH
    # =========================================================================

    def dispatch(self, request: Request) -> Response:
        """Match the request and run the route, or answer 404 / 405."""
        result = self.match_route(request.method, request.path)

        if result.status is DispatchStatus.NOT_FOUND:
            if request.path != "/" and request.path.endswith("/"):
                retry = self.match_route(request.method, request.path.rstrip("/") or "/")
                if retry.status is DispatchStatus.FOUND:
                    request.set_route_params(retry.params)
                    return self.run_route(retry.route, retry.params, request)
            logger.debug(f"No route for {request.method} {request.path}")
            return not_found(f"No route matches {request.path}")

        if result.status is DispatchStatus.METHOD_NOT_ALLOWED:
            return method_not_allowed(result.allowed_methods)

        request.set_route_params(result.params)
        return self.run_route(result.route, result.params, request)

    def run_route(self, route: Route, params: Dict[str, str], request: Request) -> Response:
        """
        Run the route's middleware around its action.

        The first-listed middleware is the outermost. Middleware are
        resolved before anything runs, so an unknown alias fails before
        any middleware has seen the request.
        """
        resolved = [self.middleware.resolve(spec) for spec in route.get_middleware()]

        def core(req: Request) -> Response:
            return coerce_response(self._call_action(route, params, req))

        return wrap_handler(resolved, core)(request)

    def _call_action(self, route: Route, params: Dict[str, str], request: Request) -> Any:
        action = route.action

        if callable(action):
            return action(request, *params.values())

        if isinstance(action, str) and "@" in action:
            controller_name, method_name = action.split("@", 1)
            cls = self.controllers.get(controller_name)
            if cls is None or not callable(getattr(cls, method_name, None)):
                raise ResolutionError(f"Controller or method not found: {controller_name}@{method_name}")

            params = dict(params)
            if "wildcard" in params:
                request.wildcard_path = params.pop("wildcard")

            instance = cls(request)
            return getattr(instance, method_name)(request, *params.values())

        raise ResolutionError(f"Invalid route action: {action!r}")

    # =========================================================================
    # NAMED ROUTES
    # =========================================================================

    def has_route(self, name: str) -> bool:
        return name in self._named

    def resolve_name(self, name: str, params: Optional[Dict[str, Any]] = None) -> Optional[str]:
        """URI for a named route, or None when no route has that name."""
        route = self._named.get(name)
        if route is None:
            return None
        return route.build_uri(params)

    def generate_url(self, name: str, params: Optional[Dict[str, Any]] = None) -> str:
        """Like resolve_name(), but raises RouteNotFoundError for unknown names."""
        route = self._named.get(name)
        if route is None:
            raise RouteNotFoundError(name)
        return route.build_uri(params)

    # =========================================================================
    # INTROSPECTION
    # =========================================================================

    def routes(self) -> List[Tuple[str, str, Route]]:
        return list(self._routes)

    def print_routes(self) -> None:
        """Log the route table (for debugging)."""
        logger.info("Registered routes:")
        for method, uri, route in self._routes:
            action = route.action if isinstance(route.action, str) else getattr(route.action, "__name__", "<callable>")
            name = f" ({route.route_name})" if route.route_name else ""
            logger.info(f"  {method:7} {uri:40} → {action}{name}")
