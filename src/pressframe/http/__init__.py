"""
HTTP layer: request and response objects, sessions, routing and controllers.
"""

from .request import Request, HTTPParseError, UploadedFile
from .response import (
    Response,
    ResponseBuilder,
    envelope,
    error_envelope,
    ok,
    created,
    no_content,
    redirect,
    bad_request,
    forbidden,
    not_found,
    method_not_allowed,
    too_many_requests,
    internal_error,
    coerce_response,
)
from .session import Session, SessionStore, MemorySessionBackend
from .route import Route
from .router import Router, RouteMatch, RouteNotFoundError, ResolutionError, DispatchStatus
from .controller import Controller, ValidationError

__all__ = [
    "Request",
    "HTTPParseError",
    "UploadedFile",
    "Response",
    "ResponseBuilder",
    "envelope",
    "error_envelope",
    "ok",
    "created",
    "no_content",
    "redirect",
    "bad_request",
    "forbidden",
    "not_found",
    "method_not_allowed",
    "too_many_requests",
    "internal_error",
    "coerce_response",
    "Session",
    "SessionStore",
    "MemorySessionBackend",
    "Route",
    "Router",
    "RouteMatch",
    "RouteNotFoundError",
    "ResolutionError",
    "DispatchStatus",
    "Controller",
    "ValidationError",
]
