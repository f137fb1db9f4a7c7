"""
Unit tests for password hashing, Auth and the auth middleware.
"""

from pressframe.auth import SESSION_KEY, Auth, hash_password, verify_password
from pressframe.cms.models import User
from pressframe.http.request import Request
from pressframe.http.response import ok
from pressframe.middleware.auth import AuthMiddleware


def create_user(conn, email="ada@example.com", password="secret"):
    return User.create(conn, {"name": "Ada", "email": email, "password_hash": hash_password(password)})


class TestPasswordHashing:
    """Tests for hash_password() and verify_password()."""

    def test_hash_format(self):
        """Test the stored format."""
        encoded = hash_password("pw", salt="abc", iterations=1000)
        algorithm, iterations, salt, digest = encoded.split("$")

        assert algorithm == "pbkdf2_sha256"
        assert iterations == "1000"
        assert salt == "abc"
        assert len(digest) == 64

    def test_verify(self):
        """Test matching and non-matching passwords."""
        encoded = hash_password("correct horse", iterations=1000)

        assert verify_password("correct horse", encoded)
        assert not verify_password("wrong", encoded)

    def test_random_salt(self):
        """Test that two hashes of the same password differ."""
        assert hash_password("pw", iterations=1000) != hash_password("pw", iterations=1000)

    def test_malformed_hashes(self):
        """Test that unusable stored values never verify."""
        assert not verify_password("pw", None)
        assert not verify_password("pw", "plaintext")
        assert not verify_password("pw", "md5$1$salt$abc")


class TestAuth:
    """Tests for Auth against the users table."""

    def test_attempt_logs_in(self, conn):
        """Test a successful login."""
        user = create_user(conn)
        request = Request(method="POST", path="/login", db=conn)
        old_id = request.session.id
        auth = Auth(request, User)

        assert auth.attempt({"email": "ada@example.com", "password": "secret"})
        assert auth.check()
        assert auth.id() == user.id
        assert request.session.get(SESSION_KEY) == user.id
        assert request.session.id != old_id

    def test_attempt_rejects_bad_credentials(self, conn):
        """Test wrong password, unknown email and missing fields."""
        create_user(conn)
        auth = Auth(Request(method="POST", path="/login", db=conn), User)

        assert not auth.attempt({"email": "ada@example.com", "password": "nope"})
        assert not auth.attempt({"email": "bob@example.com", "password": "secret"})
        assert not auth.attempt({"email": "ada@example.com"})
        assert auth.guest()

    def test_user_loaded_from_session(self, conn):
        """Test resolving the user id stored in the session."""
        user = create_user(conn)
        request = Request(method="GET", path="/", db=conn)
        request.session.put(SESSION_KEY, user.id)

        assert Auth(request, User).user().email == "ada@example.com"

    def test_logout(self, conn):
        """Test that logout forgets the user."""
        user = create_user(conn)
        request = Request(method="GET", path="/", db=conn)
        auth = Auth(request, User)
        auth.login(user)

        auth.logout()

        assert auth.user() is None
        assert request.session.get(SESSION_KEY) is None


class TestAuthMiddleware:
    """Tests for AuthMiddleware."""

    def test_guest_gets_403(self, conn):
        """Test the rejection response."""
        request = Request(method="GET", path="/account", db=conn)

        response = AuthMiddleware(User).handle(request, lambda r: ok("secret"))

        assert response.status == 403
        assert response.text == "Unauthorized"
        assert isinstance(request.attributes["auth"], Auth)

    def test_logged_in_user_passes(self, conn):
        """Test that an authenticated request reaches the handler."""
        user = create_user(conn)
        request = Request(method="GET", path="/account", db=conn)
        request.session.put(SESSION_KEY, user.id)

        response = AuthMiddleware(User).handle(request, lambda r: ok(r.attributes["auth"].user().name))

        assert response.status == 200
        assert response.text == "Ada"
