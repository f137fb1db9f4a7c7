"""
=============================================================================
APPLICATION
=============================================================================

The App ties configuration, the database, the router and the middleware
together and handles one request end to end. It is a WSGI callable, so any
WSGI server can host it:

    app = App(AppConfig.from_env())
    app.controllers({"HomeController": HomeController})
    app.load_routes(web_routes)
    app.use("access_log", "session")

=============================================================================
REQUEST FLOW
=============================================================================

    WSGI environ
        │
        ▼
    Request.from_environ ──► App.handle
                                │  check out a DB connection → request.db
                                ▼
                        global middleware (first added = outermost)
                                │
                                ▼
                        Router.dispatch ──► route middleware ──► action
                                │
                                ▼
                        Response ──► start_response(status, headers)

Anything an action raises ends up in handle_exception(): it is written to
the "pressframe.errors" log and turned into a 500 (with the traceback only
when debug is on). Those responses get the base security headers, since
they never pass back through route middleware.

=============================================================================
"""

from html import escape
from http import HTTPStatus
from typing import Any, Callable, Dict, Iterable, Optional, Type
import logging
import os
import traceback

from .config import AppConfig
from .db.database import Database
from .db.model import ModelNotFoundError
from .http.controller import ValidationError
from .http.request import HTTPParseError, Request
from .http.response import (
    Response,
    ResponseBuilder,
    coerce_response,
    error_envelope,
    internal_error,
)
from .http.router import Router
from .http.session import MemorySessionBackend
from .middleware.admin import AdminMiddleware
from .middleware.auth import AuthMiddleware
from .middleware.base import MiddlewareFactory, MiddlewarePipeline, MiddlewareRegistry
from .middleware.csrf import CsrfMiddleware
from .middleware.logging import AccessLogMiddleware
from .middleware.security_headers import BASE_SECURITY_HEADERS, SecurityHeadersMiddleware, apply_headers
from .middleware.session import SessionMiddleware
from .middleware.throttle import ThrottleMiddleware


logger = logging.getLogger(__name__)
error_logger = logging.getLogger("pressframe.errors")

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


def setup_logging(config: AppConfig) -> None:
    """Console logging at the configured level plus the error log file."""
    level = getattr(logging, config.log_level.upper(), logging.INFO)
    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt=LOG_DATEFMT)
    logging.getLogger("pressframe").setLevel(level)
    configure_error_log(config.log_file)


def configure_error_log(path: Optional[str]) -> None:
    """Attach an append-mode file handler to "pressframe.errors" (once per path)."""
    if not path:
        return
    target = os.path.abspath(path)
    for handler in error_logger.handlers:
        if isinstance(handler, logging.FileHandler) and handler.baseFilename == target:
            return

    directory = os.path.dirname(target)
    if directory:
        os.makedirs(directory, exist_ok=True)

    handler = logging.FileHandler(target, mode="a", encoding="utf-8")
    handler.setFormatter(logging.Formatter("[%(asctime)s] %(message)s", LOG_DATEFMT))
    error_logger.addHandler(handler)


def describe_exception(exc: BaseException) -> str:
    """"ValueError: bad thing in /path/file.py:12" followed by the traceback."""
    frames = traceback.extract_tb(exc.__traceback__)
    location = f" in {frames[-1].filename}:{frames[-1].lineno}" if frames else ""
    trace = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return f"{type(exc).__name__}: {exc}{location}\n{trace}"


class App:
    """
    The application object.

    Args:
        config: Settings; defaults to AppConfig()
        database: Database to check connections out of; built from
                  config.database_url when omitted
        user_model: Model class the "auth" middleware resolves users with
        session_backend: Where sessions live between requests
    """

    def __init__(
        self,
        config: Optional[AppConfig] = None,
        database: Optional[Database] = None,
        user_model: Optional[Type] = None,
        session_backend: Optional[MemorySessionBackend] = None,
    ):
        self.config = config or AppConfig()
        self.config.validate()
        configure_error_log(self.config.log_file)

        self.database = database or Database(
            self.config.database_url,
            pool_size=self.config.database_pool_size,
            echo=self.config.database_echo,
        )
        self.user_model = user_model
        self.sessions = session_backend or MemorySessionBackend(self.config.session_lifetime)

        self.middleware = MiddlewareRegistry()
        self._register_default_middleware()

        self.router = Router(middleware=self.middleware)
        self.pipeline = MiddlewarePipeline(self.middleware)
        self._config_middleware_added = False
        self._handler: Optional[Callable[[Request], Response]] = None

    def _register_default_middleware(self) -> None:
        config = self.config
        self.middleware.register("access_log", lambda: AccessLogMiddleware(log_format=config.log_format))
        self.middleware.register("session", lambda: SessionMiddleware(self.sessions, config.session_cookie))
        self.middleware.register("security_headers", lambda: SecurityHeadersMiddleware(config.env))
        self.middleware.register("admin", lambda: AdminMiddleware(config.admin_slug))
        self.middleware.register("auth", lambda: AuthMiddleware(self.user_model))
        self.middleware.register("throttle", ThrottleMiddleware)
        self.middleware.register("csrf", CsrfMiddleware)

    # =========================================================================
    # CONFIGURATION
    # =========================================================================

    def register_middleware(self, alias: str, factory: MiddlewareFactory) -> "App":
        self.middleware.register(alias, factory)
        return self

    def use(self, *middleware: Any) -> "App":
        """Add global middleware: aliases, Middleware objects or plain callables."""
        self.pipeline.use(*middleware)
        self._handler = None
        return self

    def controller(self, name: str, cls: Type) -> "App":
        self.router.register_controller(name, cls)
        return self

    def controllers(self, mapping: Dict[str, Type]) -> "App":
        for name, cls in mapping.items():
            self.router.register_controller(name, cls)
        return self

    def load_routes(self, *loaders: Callable[[Router], Any]) -> "App":
        for loader in loaders:
            loader(self.router)
            logger.debug(f"Loaded routes from {getattr(loader, '__name__', loader)}")
        return self

    def url(self, route_name: str, /, **params: Any) -> Optional[str]:
        """URL of a named route; any parameter name is accepted, `name` included."""
        return self.router.resolve_name(route_name, params)

    # =========================================================================
    # REQUEST HANDLING
    # =========================================================================

    @property
    def handler(self) -> Callable[[Request], Response]:
        """Global middleware wrapped around the router, built on first use."""
        if self._handler is None:
            if not self._config_middleware_added:
                self.pipeline.use(*self.config.middleware)
                self._config_middleware_added = True

            def final(request: Request) -> Response:
                return coerce_response(self.router.dispatch(request))

            self._handler = self.pipeline.wrap(final)
        return self._handler

    def handle(self, request: Request) -> Response:
        request.attributes["app"] = self
        try:
            with self.database.connection() as conn:
                request.db = conn
                try:
                    return coerce_response(self.handler(request))
                finally:
                    request.db = None
        except Exception as e:
            # built outside the route chain, so route middleware never saw it
            return apply_headers(self.handle_exception(e, request), BASE_SECURITY_HEADERS)

    def handle_exception(self, exc: Exception, request: Request) -> Response:
        if isinstance(exc, HTTPParseError):
            return error_envelope(str(exc), exc.status_code)
        if isinstance(exc, ValidationError):
            return error_envelope(exc.message, HTTPStatus.BAD_REQUEST)
        if isinstance(exc, ModelNotFoundError):
            return error_envelope(str(exc), HTTPStatus.NOT_FOUND)

        error_logger.error(f"{request.method} {request.path}: {describe_exception(exc)}")

        if self.config.debug:
            trace = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
            return (ResponseBuilder()
                .status(HTTPStatus.INTERNAL_SERVER_ERROR)
                .html(f"<pre>{escape(trace)}</pre>")
                .build())
        return internal_error()

    def __call__(self, environ: Dict[str, Any], start_response: Callable) -> Iterable[bytes]:
        request = Request.from_environ(environ)
        response = self.handle(request)
        status, headers, body = response.to_wsgi()
        start_response(status, headers)
        if request.method == "HEAD":
            return [b""]
        return [body]
