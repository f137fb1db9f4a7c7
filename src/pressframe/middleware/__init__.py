"""
Middleware: the pipeline and registry, plus the built-in middleware the
app registers under these aliases:

    access_log         AccessLogMiddleware
    session            SessionMiddleware
    security_headers   SecurityHeadersMiddleware
    admin              AdminMiddleware
    auth               AuthMiddleware
    throttle           ThrottleMiddleware      ("throttle:max,seconds")
    csrf               CsrfMiddleware
"""

from .base import (
    Middleware,
    MiddlewarePipeline,
    MiddlewareRegistry,
    FunctionMiddleware,
    ResolutionError,
    function_middleware,
    parse_middleware_spec,
)
from .logging import AccessLogMiddleware, RequestLog
from .session import SessionMiddleware
from .security_headers import SecurityHeadersMiddleware, build_content_security_policy
from .admin import AdminMiddleware
from .auth import AuthMiddleware
from .throttle import ThrottleMiddleware, TokenBucket
from .csrf import CsrfMiddleware, csrf_token

__all__ = [
    "Middleware",
    "MiddlewarePipeline",
    "MiddlewareRegistry",
    "FunctionMiddleware",
    "ResolutionError",
    "function_middleware",
    "parse_middleware_spec",
    "AccessLogMiddleware",
    "RequestLog",
    "SessionMiddleware",
    "SecurityHeadersMiddleware",
    "build_content_security_policy",
    "AdminMiddleware",
    "AuthMiddleware",
    "ThrottleMiddleware",
    "TokenBucket",
    "CsrfMiddleware",
    "csrf_token",
]
