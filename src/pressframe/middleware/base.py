"""
=============================================================================
BASE MIDDLEWARE INTERFACE
=============================================================================

The middleware protocol, the global pipeline and the alias registry.

=============================================================================
CHAIN OF RESPONSIBILITY
=============================================================================

Each middleware gets the request and `next`, the rest of the chain:

    ┌───────────────┐   ┌───────────────┐   ┌───────────────┐   ┌────────┐
    │  access_log   │──►│    session    │──►│ admin (route) │──►│ action │
    │               │◄──│               │◄──│               │◄──│        │
    └───────────────┘   └───────────────┘   └───────────────┘   └────────┘

A middleware may:
    - call next(request) and return what comes back (pass through)
    - call next(request) and change the response (post-processing)
    - return its own response without calling next (short-circuit)

The order is always: global middleware (outermost), group middleware,
route middleware, then the action.

=============================================================================
PARAMETERS
=============================================================================

Route middleware are referenced by alias and may carry parameters:

    "throttle:60,1"   →  registry["throttle"]  handle(request, next, "60", "1")

Parameters stay strings; each middleware converts what it needs.

=============================================================================
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Tuple, Union
import logging

if TYPE_CHECKING:
    # pressframe.http imports this module; keep the reverse edge type-only
    from ..http.request import Request
    from ..http.response import Response


logger = logging.getLogger(__name__)


# Continuation: the rest of the chain
NextHandler = Callable[["Request"], "Response"]

MiddlewareFactory = Callable[[], "Middleware"]


class ResolutionError(Exception):
    """A middleware alias, controller or controller method could not be resolved."""


def parse_middleware_spec(spec: str) -> Tuple[str, Tuple[str, ...]]:
    """
    Split "name:a,b" into ("name", ("a", "b")).

        parse_middleware_spec("admin")          → ("admin", ())
        parse_middleware_spec("throttle:5,60")  → ("throttle", ("5", "60"))
    """
    name, _, raw = spec.partition(":")
    params = tuple(part.strip() for part in raw.split(",")) if raw else ()
    return name.strip(), params


class Middleware(ABC):
    """
    Abstract base class for middleware.

    Subclasses implement handle(); instances are also callable so they can
    be used anywhere a plain function middleware can:

        class PoweredBy(Middleware):
            def handle(self, request, next, *params):
                response = next(request)
                response.set_header("X-Powered-By", "pressframe")
                return response
    """

    @abstractmethod
    def handle(self, request: "Request", next: NextHandler, *params: str) -> "Response":
        """
        Process the request.

        Args:
            request: The incoming request
            next: The rest of the chain; call it to continue
            *params: Parameters from the "alias:a,b" form

        Returns:
            The response from next(), changed or not, or a short-circuit response
        """

    def __call__(self, request: "Request", next: NextHandler, *params: str) -> "Response":
        return self.handle(request, next, *params)

    @property
    def name(self) -> str:
        return self.__class__.__name__


class FunctionMiddleware(Middleware):
    """
    A plain function used as middleware.

        @function_middleware
        def add_header(request, next):
            response = next(request)
            response.set_header("X-Custom", "value")
            return response
    """

    def __init__(self, func: Callable[..., "Response"], name: Optional[str] = None):
        self._func = func
        self._name = name or getattr(func, "__name__", "function_middleware")

    def handle(self, request: "Request", next: NextHandler, *params: str) -> "Response":
        return self._func(request, next, *params)

    @property
    def name(self) -> str:
        return self._name


def function_middleware(func: Callable[..., "Response"]) -> FunctionMiddleware:
    return FunctionMiddleware(func)


def as_middleware(candidate: Any) -> Middleware:
    if isinstance(candidate, Middleware):
        return candidate
    if callable(candidate):
        return FunctionMiddleware(candidate)
    raise ResolutionError(f"Not a middleware: {candidate!r}")


class MiddlewareRegistry:
    """
    Alias → factory table for middleware referenced by name.

        registry = MiddlewareRegistry()
        registry.register("throttle", ThrottleMiddleware)
        middleware, params = registry.resolve("throttle:5,60")

    Each factory is called once; the instance is reused so middleware that
    keep state (rate-limit buckets) keep it across requests.
    """

    def __init__(self, factories: Optional[Dict[str, MiddlewareFactory]] = None):
        self._factories: Dict[str, MiddlewareFactory] = {}
        self._instances: Dict[str, Middleware] = {}
        for alias, factory in (factories or {}).items():
            self.register(alias, factory)

    def register(self, alias: str, factory: MiddlewareFactory) -> "MiddlewareRegistry":
        self._factories[alias] = factory
        self._instances.pop(alias, None)
        logger.debug(f"Registered middleware alias: {alias}")
        return self

    def has(self, alias: str) -> bool:
        return alias in self._factories

    def aliases(self) -> List[str]:
        return sorted(self._factories)

    def get(self, alias: str) -> Middleware:
        if alias not in self._factories:
            raise ResolutionError(f"Middleware not found: {alias}")
        if alias not in self._instances:
            self._instances[alias] = as_middleware(self._factories[alias]())
        return self._instances[alias]

    def resolve(self, spec: Union[str, Middleware, Callable]) -> Tuple[Middleware, Tuple[str, ...]]:
        """Resolve an alias spec, a Middleware or a plain callable to (middleware, params)."""
        if isinstance(spec, str):
            alias, params = parse_middleware_spec(spec)
            return self.get(alias), params
        return as_middleware(spec), ()


class MiddlewarePipeline:
    """
    An ordered chain of middleware wrapped around a final handler.

        pipeline = MiddlewarePipeline(registry)
        pipeline.add("access_log").add("session")
        handler = pipeline.wrap(router.dispatch)
        response = handler(request)

    The first-added middleware is the outermost.
    """

    def __init__(self, registry: Optional[MiddlewareRegistry] = None):
        self.registry = registry or MiddlewareRegistry()
        self._middleware: List[Tuple[Middleware, Tuple[str, ...]]] = []

    def add(self, middleware: Union[str, Middleware, Callable]) -> "MiddlewarePipeline":
        resolved, params = self.registry.resolve(middleware)
        self._middleware.append((resolved, params))
        logger.debug(f"Added middleware: {resolved.name}")
        return self

    def use(self, *middleware: Union[str, Middleware, Callable]) -> "MiddlewarePipeline":
        for mw in middleware:
            self.add(mw)
        return self

    def wrap(self, handler: NextHandler) -> NextHandler:
        """
        Wrap `handler` with every middleware in the pipeline.

        Given [MW1, MW2, MW3]: wrapping runs in reverse so the result is
        MW1 → MW2 → MW3 → handler.
        """
        return wrap_handler(self._middleware, handler)

    def __len__(self) -> int:
        return len(self._middleware)

    def __iter__(self):
        return (middleware for middleware, _ in self._middleware)


def wrap_handler(
    middleware: List[Tuple[Middleware, Tuple[str, ...]]],
    handler: NextHandler,
) -> NextHandler:
    """Fold (middleware, params) pairs around `handler`, first pair outermost."""
    current = handler
    for mw, params in reversed(middleware):
        current = _create_wrapped_handler(mw, params, current)
    return current


def _create_wrapped_handler(
    middleware: Middleware,
    params: Tuple[str, ...],
    next_handler: NextHandler,
) -> NextHandler:
    def wrapped(request: "Request") -> "Response":
        return middleware.handle(request, next_handler, *params)
    return wrapped
