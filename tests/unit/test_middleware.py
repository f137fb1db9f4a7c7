"""
Unit tests for the middleware pipeline and the built-in middleware.
"""

import json
import logging
import time

import pytest

from pressframe.http.request import Request
from pressframe.http.response import ResponseBuilder, ok
from pressframe.http.session import MemorySessionBackend, Session
from pressframe.middleware import (
    AccessLogMiddleware,
    AdminMiddleware,
    CsrfMiddleware,
    FunctionMiddleware,
    Middleware,
    MiddlewarePipeline,
    MiddlewareRegistry,
    ResolutionError,
    SecurityHeadersMiddleware,
    SessionMiddleware,
    ThrottleMiddleware,
    parse_middleware_spec,
)
from pressframe.middleware.csrf import csrf_token
from pressframe.middleware.throttle import TokenBucket


def make_request(method: str = "GET", path: str = "/", **kwargs) -> Request:
    return Request(method=method, path=path, client_address=("10.0.0.1", 1234), **kwargs)


def final_handler(request: Request):
    return ok({"reached": True})


class HeaderStamp(Middleware):
    """Stamps a header on the way out."""

    def __init__(self, value: str):
        self.value = value

    def handle(self, request, next, *params):
        response = next(request)
        response.set_header("X-Stamp", self.value)
        return response


class Deny(Middleware):
    def handle(self, request, next, *params):
        return ResponseBuilder().status(403).text("denied").build()


class TestSpecParsing:
    """Tests for "alias:a,b" parsing."""

    def test_plain_alias(self):
        """Test an alias without parameters."""
        assert parse_middleware_spec("admin") == ("admin", ())

    def test_alias_with_params(self):
        """Test comma-separated parameters."""
        assert parse_middleware_spec("throttle:5, 60") == ("throttle", ("5", "60"))


class TestRegistry:
    """Tests for MiddlewareRegistry."""

    def test_unknown_alias(self):
        """Test ResolutionError for unregistered aliases."""
        with pytest.raises(ResolutionError):
            MiddlewareRegistry().get("nope")

    def test_instances_are_cached(self):
        """Test that a factory runs once per alias."""
        built = []

        def factory():
            built.append(1)
            return HeaderStamp("x")

        registry = MiddlewareRegistry({"stamp": factory})

        assert registry.get("stamp") is registry.get("stamp")
        assert len(built) == 1

    def test_reregister_replaces_instance(self):
        """Test that registering an alias again drops the cached instance."""
        registry = MiddlewareRegistry({"stamp": lambda: HeaderStamp("one")})
        first = registry.get("stamp")

        registry.register("stamp", lambda: HeaderStamp("two"))

        assert registry.get("stamp") is not first
        assert registry.get("stamp").value == "two"

    def test_resolve_passes_params(self):
        """Test that resolve() splits parameters off the alias."""
        registry = MiddlewareRegistry({"throttle": ThrottleMiddleware})

        middleware, params = registry.resolve("throttle:5,60")

        assert isinstance(middleware, ThrottleMiddleware)
        assert params == ("5", "60")

    def test_plain_callable_is_wrapped(self):
        """Test that functions become FunctionMiddleware."""
        middleware, params = MiddlewareRegistry().resolve(lambda request, next: next(request))

        assert isinstance(middleware, FunctionMiddleware)
        assert params == ()


class TestPipeline:
    """Tests for MiddlewarePipeline ordering and short-circuiting."""

    def test_first_added_is_outermost(self):
        """Test execution order."""
        calls = []

        def recorder(label):
            def handle(request, next):
                calls.append(label)
                response = next(request)
                calls.append(f"/{label}")
                return response
            return handle

        pipeline = MiddlewarePipeline().use(recorder("one"), recorder("two"))
        pipeline.wrap(final_handler)(make_request())

        assert calls == ["one", "two", "/two", "/one"]
        assert len(pipeline) == 2

    def test_short_circuit_skips_inner_but_outer_post_processes(self):
        """Test that a short-circuit response still passes back through outer middleware."""
        reached = []

        def inner_handler(request):
            reached.append(True)
            return final_handler(request)

        pipeline = MiddlewarePipeline().use(HeaderStamp("outer"), Deny(), HeaderStamp("inner"))
        response = pipeline.wrap(inner_handler)(make_request())

        assert response.status == 403
        assert response.get_header("X-Stamp") == "outer"
        assert reached == []

    def test_params_reach_handle(self):
        """Test that alias parameters are passed to handle()."""
        seen = []

        def capture(request, next, *params):
            seen.extend(params)
            return next(request)

        registry = MiddlewareRegistry({"capture": lambda: FunctionMiddleware(capture)})
        MiddlewarePipeline(registry).add("capture:a,b").wrap(final_handler)(make_request())

        assert seen == ["a", "b"]


class TestThrottle:
    """Tests for ThrottleMiddleware."""

    def test_rejects_after_limit(self):
        """Test the 429 once the bucket is empty."""
        throttle = ThrottleMiddleware()

        first = throttle.handle(make_request(), final_handler, "2", "60")
        second = throttle.handle(make_request(), final_handler, "2", "60")
        third = throttle.handle(make_request(), final_handler, "2", "60")

        assert first.status == 200
        assert first.get_header("X-RateLimit-Limit") == "2"
        assert first.get_header("X-RateLimit-Remaining") == "1"
        assert second.status == 200
        assert third.status == 429
        assert int(third.get_header("Retry-After")) >= 1
        assert third.get_header("X-RateLimit-Remaining") == "0"
        assert third.json["success"] is False

    def test_clients_have_separate_buckets(self):
        """Test per-IP buckets."""
        throttle = ThrottleMiddleware()
        other = Request(method="GET", path="/", client_address=("10.0.0.2", 1))

        throttle.handle(make_request(), final_handler, "1", "60")

        assert throttle.handle(make_request(), final_handler, "1", "60").status == 429
        assert throttle.handle(other, final_handler, "1", "60").status == 200

    def test_reset(self):
        """Test that reset() refills everything."""
        throttle = ThrottleMiddleware()
        throttle.handle(make_request(), final_handler, "1", "60")

        throttle.reset()

        assert throttle.handle(make_request(), final_handler, "1", "60").status == 200

    def test_invalid_params(self):
        """Test that nonsense limits are refused."""
        with pytest.raises(ValueError):
            ThrottleMiddleware().handle(make_request(), final_handler, "0", "60")

    def test_token_bucket_refills(self):
        """Test continuous refill against an explicit clock."""
        bucket = TokenBucket(capacity=2, rate=0.5, now=100.0)

        assert bucket.take(100.0) == 0.0
        assert bucket.take(100.0) == 0.0
        assert bucket.take(100.0) == pytest.approx(2.0)
        assert bucket.take(102.0) == 0.0
        assert bucket.remaining == 0

    def test_token_bucket_never_exceeds_capacity(self):
        """Test that an idle bucket stops filling at capacity."""
        bucket = TokenBucket(capacity=3, rate=1.0, now=0.0)

        bucket.take(0.0)
        bucket.take(1000.0)

        assert bucket.remaining == 2


class TestSecurityHeaders:
    """Tests for SecurityHeadersMiddleware."""

    def test_production_policy(self):
        """Test the strict CSP and base headers."""
        response = SecurityHeadersMiddleware("production").handle(make_request(), final_handler)

        assert response.get_header("X-Frame-Options") == "DENY"
        assert response.get_header("X-Content-Type-Options") == "nosniff"
        assert "localhost:5173" not in response.get_header("Content-Security-Policy")
        assert response.get_header("Permissions-Policy").startswith("geolocation=()")

    def test_development_policy_allows_vite(self):
        """Test the relaxed CSP in development."""
        response = SecurityHeadersMiddleware("development").handle(make_request(), final_handler)

        assert "http://localhost:5173" in response.get_header("Content-Security-Policy")

    def test_applies_to_short_circuit_responses(self):
        """Test that headers are added to responses from inner middleware too."""
        pipeline = MiddlewarePipeline().use(SecurityHeadersMiddleware(), Deny())

        response = pipeline.wrap(final_handler)(make_request())

        assert response.status == 403
        assert response.has_header("Strict-Transport-Security")


class TestSession:
    """Tests for SessionMiddleware."""

    def test_new_session_sets_cookie(self):
        """Test that a first visit that writes to the session gets a cookie."""
        backend = MemorySessionBackend()
        middleware = SessionMiddleware(backend, "sid")

        def handler(request):
            request.session.put("seen", True)
            return ok("hi")

        response = middleware.handle(make_request(), handler)

        assert len(response.cookies) == 1
        assert response.cookies[0].startswith("sid=")
        assert "HttpOnly" in response.cookies[0]
        assert len(backend) == 1

    def test_existing_session_is_loaded(self):
        """Test that the cookie brings the stored data back."""
        backend = MemorySessionBackend()
        session = Session()
        session.put("user", 7)
        backend.save(session)
        seen = []

        def handler(request):
            seen.append(request.session.get("user"))
            return ok("hi")

        response = SessionMiddleware(backend, "sid").handle(make_request(cookies={"sid": session.id}), handler)

        assert seen == [7]
        assert response.cookies == []

    def test_regenerate_replaces_stored_session(self):
        """Test that a regenerated id is saved and the old one dropped."""
        backend = MemorySessionBackend()
        session = Session()
        session.put("user", 7)
        backend.save(session)
        old_id = session.id

        def handler(request):
            request.session.regenerate()
            return ok("hi")

        response = SessionMiddleware(backend, "sid").handle(make_request(cookies={"sid": old_id}), handler)

        assert old_id not in response.cookies[0]
        assert backend.load(old_id).get("user") is None
        assert len(backend) == 1


class TestCsrf:
    """Tests for CsrfMiddleware."""

    def test_get_creates_token(self):
        """Test that safe methods make sure a token exists."""
        request = make_request()

        CsrfMiddleware().handle(request, final_handler)

        assert request.session.get("csrf_token")

    def test_post_without_token_is_419(self):
        """Test the mismatch response."""
        response = CsrfMiddleware().handle(make_request("POST"), final_handler)

        assert response.status == 419
        assert response.json["error"] == "CSRF token mismatch."

    def test_post_with_header_token_passes(self):
        """Test the X-CSRF-Token header."""
        session = Session()
        token = csrf_token(session)
        request = make_request("POST", headers={"X-CSRF-Token": token}, session=session)

        assert CsrfMiddleware().handle(request, final_handler).status == 200


class TestAdmin:
    """Tests for AdminMiddleware."""

    def test_unauthenticated_redirects_to_login(self):
        """Test the login redirect."""
        response = AdminMiddleware("hidden").handle(make_request(), final_handler)

        assert response.status == 302
        assert response.get_header("Location") == "/admin/hidden/login"
        assert response.get_header("X-Frame-Options") == "DENY"

    def test_authenticated_passes_and_touches_activity(self):
        """Test a valid admin session."""
        session = Session()
        session.put("admin_authenticated", True)
        session.put("admin_last_activity", time.time() - 10)
        before = session.get("admin_last_activity")

        response = AdminMiddleware("hidden").handle(make_request(session=session), final_handler)

        assert response.status == 200
        assert session.get("admin_last_activity") > before
        assert response.get_header("X-Robots-Tag").startswith("noindex")

    def test_expired_session_is_cleared(self):
        """Test the idle timeout."""
        session = Session()
        session.put("admin_authenticated", True)
        session.put("admin_last_activity", time.time() - 7200)
        old_id = session.id

        response = AdminMiddleware("hidden").handle(make_request(session=session), final_handler)

        assert response.status == 302
        assert session.get("admin_authenticated") is None
        assert session.id != old_id

    def test_ip_change_is_rejected(self):
        """Test session binding to the login IP."""
        session = Session()
        session.put("admin_authenticated", True)
        session.put("admin_ip", "192.168.1.1")

        response = AdminMiddleware("hidden").handle(make_request(session=session), final_handler)

        assert response.status == 302
        assert session.get("admin_ip") is None


class TestAccessLog:
    """Tests for AccessLogMiddleware."""

    def test_sets_request_id_and_logs(self, caplog):
        """Test the request id header and the text log line."""
        with caplog.at_level(logging.INFO, logger="pressframe.access"):
            response = AccessLogMiddleware().handle(make_request(path="/blogs"), final_handler)

        assert len(response.get_header("X-Request-ID")) == 8
        assert any('"GET /blogs" 200' in record.getMessage() for record in caplog.records)

    def test_json_format(self, caplog):
        """Test JSON log lines."""
        with caplog.at_level(logging.INFO, logger="pressframe.access"):
            AccessLogMiddleware(log_format="json").handle(
                make_request(path="/x", headers={"X-Request-ID": "abc"}), final_handler
            )

        entry = json.loads(caplog.records[-1].getMessage())
        assert entry["request_id"] == "abc"
        assert entry["status_code"] == 200

    def test_exceptions_are_logged_and_reraised(self, caplog):
        """Test that failures propagate."""
        def boom(request):
            raise RuntimeError("kaput")

        with caplog.at_level(logging.ERROR, logger="pressframe.access"):
            with pytest.raises(RuntimeError):
                AccessLogMiddleware().handle(make_request(), boom)

        assert "kaput" in caplog.text
