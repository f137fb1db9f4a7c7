"""
Admin area guard.

A request gets through when its session holds an authenticated admin
whose last activity is under an hour old and whose IP has not changed.
Anything else is sent to the admin login page. Expired or IP-mismatched
sessions lose their admin keys and get a fresh session id first.

Security headers go on every response this middleware returns, its own
login redirects included.
"""

import logging
import time

from ..http.request import Request
from ..http.response import Response, redirect
from .base import Middleware, NextHandler
from .security_headers import BASE_SECURITY_HEADERS, apply_headers


logger = logging.getLogger(__name__)

SESSION_TIMEOUT = 3600

ADMIN_SESSION_KEYS = ("admin_authenticated", "admin_last_activity", "admin_ip", "csrf_token")


class AdminMiddleware(Middleware):
    def __init__(self, admin_slug: str = "admin", session_timeout: int = SESSION_TIMEOUT):
        self.admin_slug = admin_slug
        self.session_timeout = session_timeout

    @property
    def login_url(self) -> str:
        return f"/admin/{self.admin_slug}/login"

    def _reject(self, request: Request, reason: str) -> Response:
        session = request.session
        if reason != "unauthenticated":
            session.forget(*ADMIN_SESSION_KEYS)
            session.regenerate()
        logger.info(f"Admin access denied ({reason}) for {request.ip()} on {request.path}")
        return apply_headers(redirect(self.login_url), BASE_SECURITY_HEADERS)

    def handle(self, request: Request, next: NextHandler, *params: str) -> Response:
        session = request.session

        if session.get("admin_authenticated") is not True:
            return self._reject(request, "unauthenticated")

        last_activity = session.get("admin_last_activity")
        if last_activity is not None and time.time() - last_activity > self.session_timeout:
            return self._reject(request, "expired")

        bound_ip = session.get("admin_ip")
        if bound_ip is not None and bound_ip != request.ip():
            return self._reject(request, "ip changed")

        session.put("admin_last_activity", time.time())

        return apply_headers(next(request), BASE_SECURITY_HEADERS)
