"""
Session-backed authentication.

    auth = Auth(request, User)
    if auth.attempt({"email": email, "password": password}):
        ...
    auth.user()        # the logged-in User, or None
    auth.logout()

Only the user id lives in the session; the User row is loaded through
`request.db` the first time user() is asked for and cached on the Auth
object for the rest of the request.

Passwords are stored as

    pbkdf2_sha256$<iterations>$<salt>$<hex digest>

and compared in constant time.
"""

from typing import Any, Dict, Optional
import hashlib
import hmac
import logging
import secrets

from .http.request import Request


logger = logging.getLogger(__name__)

SESSION_KEY = "auth_user_id"

HASH_ALGORITHM = "pbkdf2_sha256"
HASH_ITERATIONS = 260000


def hash_password(password: str, salt: Optional[str] = None, iterations: int = HASH_ITERATIONS) -> str:
    salt = salt or secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt.encode("utf-8"), iterations)
    return f"{HASH_ALGORITHM}${iterations}${salt}${digest.hex()}"


def verify_password(password: str, encoded: Optional[str]) -> bool:
    if not encoded:
        return False
    try:
        algorithm, iterations, salt, expected = encoded.split("$", 3)
        rounds = int(iterations)
    except ValueError:
        logger.warning("Stored password hash has an unknown format")
        return False
    if algorithm != HASH_ALGORITHM:
        return False
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt.encode("utf-8"), rounds)
    return hmac.compare_digest(digest.hex(), expected)


class Auth:
    """
    Login state for one request.

    Args:
        request: The request whose session and db are used
        user_model: Model class with find(db, id) and find_by_email(db, email)
    """

    def __init__(self, request: Request, user_model):
        self.request = request
        self.user_model = user_model
        self._user = None
        self._resolved = False

    def check(self) -> bool:
        return self.user() is not None

    def guest(self) -> bool:
        return not self.check()

    def user(self):
        if self._resolved:
            return self._user

        user_id = self.request.session.get(SESSION_KEY)
        if user_id:
            self._user = self.user_model.find(self.request.db, user_id)

        self._resolved = True
        return self._user

    def id(self) -> Any:
        user = self.user()
        return user.id if user is not None else None

    def login(self, user) -> None:
        self.request.session.put(SESSION_KEY, user.id)
        self.request.session.regenerate()
        self._user = user
        self._resolved = True
        logger.info(f"User {user.id} logged in")

    def logout(self) -> None:
        self.request.session.forget(SESSION_KEY)
        self._user = None
        self._resolved = True

    def attempt(self, credentials: Dict[str, Any]) -> bool:
        user = self.validate(credentials)
        if user is None:
            return False
        self.login(user)
        return True

    def validate(self, credentials: Dict[str, Any]):
        """The user matching the credentials, or None."""
        email = credentials.get("email")
        password = credentials.get("password")
        if not email or password is None:
            return None

        user = self.user_model.find_by_email(self.request.db, email)
        if user is None or not user.verify_password(password):
            return None
        return user

