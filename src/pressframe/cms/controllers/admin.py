"""
Admin login, logout and dashboard.

The admin area lives under a secret path, /admin/<slug>/, and is guarded by
a single username/password pair from the environment (ADMIN_USERNAME /
ADMIN_PASSWORD). Login state is kept in the session:

    admin_authenticated    True once logged in
    admin_last_activity    epoch seconds of the last admin request
    admin_ip               client IP the login happened from

Failed logins are counted per client IP in the session. After
MAX_LOGIN_ATTEMPTS failures the form is locked for LOGIN_COOLDOWN seconds.
"""

from http import HTTPStatus
from typing import Optional
import hmac
import logging
import math
import time

from ...http.controller import Controller
from ...http.request import Request
from ...http.response import Response
from ...middleware.admin import ADMIN_SESSION_KEYS, SESSION_TIMEOUT
from ...middleware.csrf import SESSION_TOKEN_KEY, csrf_token, tokens_match
from ...middleware.security_headers import BASE_SECURITY_HEADERS, apply_headers
from ..views import dashboard_page, login_page


logger = logging.getLogger(__name__)

MAX_LOGIN_ATTEMPTS = 5
LOGIN_COOLDOWN = 300

NO_STORE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate, private",
    "Pragma": "no-cache",
    "Expires": "0",
}


def credentials_match(expected_username: str, expected_password: str, username: str, password: str) -> bool:
    """Constant-time check against the configured pair. An unset pair never matches."""
    if not expected_username or not expected_password:
        return False
    username_ok = hmac.compare_digest(expected_username.encode("utf-8"), username.encode("utf-8"))
    password_ok = hmac.compare_digest(expected_password.encode("utf-8"), password.encode("utf-8"))
    return username_ok and password_ok


class AdminController(Controller):
    def boot(self) -> None:
        slug = self.config.admin_slug if self.config is not None else "admin"
        self.base_url = f"/admin/{slug}"

    # =========================================================================
    # ACTIONS
    # =========================================================================

    def index(self, request: Request) -> Response:
        if self.is_authenticated():
            return self.redirect(f"{self.base_url}/dashboard")
        return self.redirect(f"{self.base_url}/login")

    def login(self, request: Request) -> Response:
        if self.is_authenticated():
            return self.redirect(f"{self.base_url}/dashboard")

        ip = request.ip()
        remaining = self.lockout_remaining(ip)
        if remaining:
            minutes = math.ceil(remaining / 60)
            return self.login_form(
                f"Too many failed attempts. Please try again in {minutes} minutes.",
                HTTPStatus.TOO_MANY_REQUESTS,
            )

        if not request.is_method("POST"):
            return self.login_form()

        username = str(self.input("username", "") or "")
        password = str(self.input("password", "") or "")
        token = self.input("csrf_token") or self.input("_token")

        if not tokens_match(self.session, token):
            logger.warning(f"Admin login with a bad CSRF token from {ip}")
            return self.login_form("Invalid security token. Please try again.")

        if not username or not password:
            self.record_failed_attempt(ip)
            return self.login_form("Username and password are required.")

        config = self.config
        if not credentials_match(config.admin_username, config.admin_password, username, password):
            self.record_failed_attempt(ip)
            logger.warning(f"Failed admin login for {username!r} from {ip}")
            return self.login_form("Invalid credentials.")

        self.session.forget(self.attempts_key(ip), SESSION_TOKEN_KEY)
        self.session.regenerate()
        self.session.put("admin_authenticated", True)
        self.session.put("admin_last_activity", time.time())
        self.session.put("admin_ip", ip)
        logger.info(f"Admin logged in from {ip}")
        return self.redirect(f"{self.base_url}/dashboard")

    def logout(self, request: Request) -> Response:
        self.session.forget(*ADMIN_SESSION_KEYS)
        self.session.regenerate()
        logger.info(f"Admin logged out from {request.ip()}")
        return self.redirect(self.base_url)

    def dashboard(self, request: Request) -> Response:
        name = self.config.name if self.config is not None else "pressframe"
        response = self.html(dashboard_page(name, "/api/v1", f"{self.base_url}/logout"))
        return apply_headers(response, NO_STORE_HEADERS)

    # =========================================================================
    # HELPERS
    # =========================================================================

    def login_form(self, error: Optional[str] = None, status: int = HTTPStatus.OK) -> Response:
        page = login_page(f"{self.base_url}/login", csrf_token(self.session), error)
        return apply_headers(self.html(page, status), BASE_SECURITY_HEADERS)

    def is_authenticated(self) -> bool:
        if self.session.get("admin_authenticated") is not True:
            return False

        last_activity = self.session.get("admin_last_activity")
        if last_activity is not None and time.time() - last_activity > SESSION_TIMEOUT:
            self.session.forget(*ADMIN_SESSION_KEYS)
            return False

        self.session.put("admin_last_activity", time.time())
        return True

    @staticmethod
    def attempts_key(ip: str) -> str:
        return f"login_attempts_{ip}"

    def lockout_remaining(self, ip: str) -> int:
        """Seconds left on the lockout for `ip`, 0 when it may try again."""
        attempts = self.session.get(self.attempts_key(ip))
        if not attempts:
            return 0

        elapsed = time.time() - attempts["last_attempt"]
        if elapsed > LOGIN_COOLDOWN:
            self.session.forget(self.attempts_key(ip))
            return 0
        if attempts["count"] < MAX_LOGIN_ATTEMPTS:
            return 0
        return max(1, int(LOGIN_COOLDOWN - elapsed))

    def record_failed_attempt(self, ip: str) -> None:
        attempts = self.session.get(self.attempts_key(ip)) or {"count": 0, "last_attempt": 0}
        self.session.put(self.attempts_key(ip), {
            "count": attempts["count"] + 1,
            "last_attempt": time.time(),
        })
