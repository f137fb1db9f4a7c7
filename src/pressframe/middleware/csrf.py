"""
CSRF protection for state-changing requests.

Every session carries a `csrf_token`. POST, PUT, PATCH and DELETE requests
must echo it back, either as the `_token` input field or in an
X-CSRF-Token header, or they get 419.
"""

import hmac
import logging
import secrets

from ..http.request import Request
from ..http.response import Response, error_envelope
from .base import Middleware, NextHandler


logger = logging.getLogger(__name__)

SESSION_TOKEN_KEY = "csrf_token"
SAFE_METHODS = ("GET", "HEAD", "OPTIONS")

PAGE_EXPIRED = 419


def csrf_token(session) -> str:
    """The session's CSRF token, created on first use."""
    token = session.get(SESSION_TOKEN_KEY)
    if not token:
        token = secrets.token_hex(32)
        session.put(SESSION_TOKEN_KEY, token)
    return token


def tokens_match(session, supplied) -> bool:
    expected = session.get(SESSION_TOKEN_KEY)
    if not expected or not isinstance(supplied, str) or not supplied:
        return False
    return hmac.compare_digest(expected, supplied)


class CsrfMiddleware(Middleware):
    def handle(self, request: Request, next: NextHandler, *params: str) -> Response:
        if request.method in SAFE_METHODS:
            csrf_token(request.session)
            return next(request)

        supplied = request.input("_token") or request.header("x-csrf-token")
        if not tokens_match(request.session, supplied):
            logger.warning(f"CSRF token mismatch on {request.method} {request.path} from {request.ip()}")
            return error_envelope("CSRF token mismatch.", PAGE_EXPIRED)

        return next(request)
