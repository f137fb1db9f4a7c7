"""
Unit tests for the App: WSGI entry, exception handling and error logging.
"""

import io
import logging

import pytest

from pressframe import App, AppConfig
from pressframe.__main__ import build_parser, config_from_args, main
from pressframe.app import describe_exception, error_logger
from pressframe.http.controller import ValidationError
from pressframe.middleware import AccessLogMiddleware


def boom(request):
    raise RuntimeError("database exploded")


def invalid(request):
    raise ValidationError("Title is required")


def demo_routes(router):
    router.get("/hello/{name}", lambda request, name: {"hello": name}).name("hello")
    router.post("/echo", lambda request: {"title": request.input("title")})
    router.get("/boom", boom)
    router.get("/invalid", invalid)
    router.get("/guarded/boom", boom).middleware("security_headers")
    router.get("/pages/{self}/{route_name}", lambda request, a, b: {"a": a, "b": b}).name("page")


def make_app(database, **overrides):
    config = AppConfig(env="testing", log_file=None, **overrides)
    return App(config, database=database).load_routes(demo_routes)


def wsgi_call(app, method="GET", path="/", body=b"", content_type=None):
    environ = {
        "REQUEST_METHOD": method,
        "PATH_INFO": path,
        "QUERY_STRING": "",
        "REMOTE_ADDR": "127.0.0.1",
        "wsgi.url_scheme": "http",
        "wsgi.input": io.BytesIO(body),
        "CONTENT_LENGTH": str(len(body)),
    }
    if content_type:
        environ["CONTENT_TYPE"] = content_type

    captured = {}

    def start_response(status, headers):
        captured["status"] = status
        captured["headers"] = headers

    chunks = app(environ, start_response)
    return captured["status"], dict(captured["headers"]), b"".join(chunks)


@pytest.fixture
def detach_error_handlers():
    """Remove file handlers a test attaches to the error logger."""
    before = list(error_logger.handlers)
    yield
    for handler in list(error_logger.handlers):
        if handler not in before:
            error_logger.removeHandler(handler)
            handler.close()


class TestWsgi:
    """Tests for App.__call__."""

    def test_get(self, database):
        """Test a full WSGI round trip."""
        status, headers, body = wsgi_call(make_app(database), path="/hello/ada")

        assert status == "200 OK"
        assert headers["Content-Type"].startswith("application/json")
        assert body == b'{"hello": "ada"}'

    def test_post_json(self, database):
        """Test that the body reaches the action."""
        status, _, body = wsgi_call(
            make_app(database), "POST", "/echo", b'{"title": "Hi"}', "application/json"
        )

        assert status == "200 OK"
        assert body == b'{"title": "Hi"}'

    def test_head_has_no_body(self, database):
        """Test HEAD on a GET route."""
        status, headers, body = wsgi_call(make_app(database), "HEAD", "/hello/ada")

        assert status == "200 OK"
        assert body == b""
        assert int(headers["Content-Length"]) > 0

    def test_not_found(self, database):
        """Test the 404 envelope."""
        status, _, body = wsgi_call(make_app(database), path="/missing")

        assert status == "404 Not Found"
        assert b'"success": false' in body


class TestExceptionHandling:
    """Tests for App.handle_exception()."""

    def test_generic_500_hides_details(self, database, caplog):
        """Test that production responses do not leak the error."""
        with caplog.at_level(logging.ERROR, logger="pressframe.errors"):
            status, _, body = wsgi_call(make_app(database), path="/boom")

        assert status == "500 Internal Server Error"
        assert b"database exploded" not in body
        assert "RuntimeError: database exploded" in caplog.text

    def test_debug_500_shows_escaped_traceback(self, database):
        """Test the debug page."""
        status, headers, body = wsgi_call(make_app(database, debug=True), path="/boom")

        assert status == "500 Internal Server Error"
        assert headers["Content-Type"].startswith("text/html")
        assert body.startswith(b"<pre>")
        assert b"database exploded" in body

    def test_error_inside_guarded_route_keeps_security_headers(self, database):
        """Test that a 500 raised under security_headers still carries the base headers."""
        status, headers, _ = wsgi_call(make_app(database), path="/guarded/boom")

        assert status == "500 Internal Server Error"
        assert headers["X-Frame-Options"] == "DENY"
        assert headers["X-Content-Type-Options"] == "nosniff"

    def test_validation_error_is_400(self, database):
        """Test ValidationError mapping."""
        status, _, body = wsgi_call(make_app(database), path="/invalid")

        assert status == "400 Bad Request"
        assert b"Title is required" in body

    def test_bad_json_is_400(self, database):
        """Test HTTPParseError mapping."""
        status, _, _ = wsgi_call(make_app(database), "POST", "/echo", b"{oops", "application/json")

        assert status == "400 Bad Request"

    def test_error_log_file(self, database, tmp_path, detach_error_handlers):
        """Test that errors are appended to the configured log file."""
        log_file = tmp_path / "logs" / "app.log"
        config = AppConfig(env="testing", log_file=str(log_file))
        app = App(config, database=database).load_routes(demo_routes)

        wsgi_call(app, path="/boom")

        contents = log_file.read_text(encoding="utf-8")
        assert "GET /boom: RuntimeError: database exploded" in contents
        assert "Traceback" in contents

    def test_describe_exception(self):
        """Test the one-line summary with location."""
        try:
            raise KeyError("slug")
        except KeyError as e:
            text = describe_exception(e)

        assert text.startswith("KeyError: 'slug' in ")
        assert "test_app.py" in text.splitlines()[0]


class TestConfiguration:
    """Tests for middleware and URL helpers on the App."""

    def test_url(self, database):
        """Test named route generation."""
        assert make_app(database).url("hello", name="bob") == "/hello/bob"
        assert make_app(database).url("missing") is None

    def test_url_accepts_any_parameter_name(self, database):
        """Test parameters that share names with the method's own arguments."""
        app = make_app(database)

        assert app.url("page", self="me", route_name="home") == "/pages/me/home"

    def test_global_middleware_from_config(self, database):
        """Test that config.middleware is added after explicit use() calls."""
        app = make_app(database, middleware=["security_headers"])
        app.use(AccessLogMiddleware())

        _, headers, _ = wsgi_call(app, path="/hello/x")

        assert headers["X-Frame-Options"] == "DENY"
        assert "X-Request-Id" in headers

    def test_register_middleware(self, database):
        """Test custom aliases."""
        def powered_by(request, next):
            response = next(request)
            response.set_header("X-Powered-By", "pressframe")
            return response

        app = make_app(database).register_middleware("powered_by", lambda: powered_by).use("powered_by")

        _, headers, _ = wsgi_call(app, path="/hello/x")
        assert headers["X-Powered-By"] == "pressframe"

    def test_invalid_config_rejected(self, database):
        """Test that App validates its settings."""
        with pytest.raises(ValueError):
            App(AppConfig(port=0, log_file=None), database=database)


class TestCli:
    """Tests for the command line entry point."""

    def test_args_override_environment(self, monkeypatch):
        """Test CLI flags win over the environment."""
        monkeypatch.setenv("APP_PORT", "9000")
        args = build_parser().parse_args(["--port", "3000", "--debug", "-l", "DEBUG"])

        config = config_from_args(args)

        assert config.port == 3000
        assert config.debug is True
        assert config.log_level == "DEBUG"

    def test_bad_config_exits_2(self, capsys):
        """Test the configuration error exit code."""
        assert main(["--port", "70000"]) == 2
        assert "Configuration error" in capsys.readouterr().err

    def test_routes(self, monkeypatch, caplog, tmp_path):
        """Test --routes logs the table and exits."""
        monkeypatch.setenv("DB_URL", f"sqlite:///{tmp_path / 'cli.db'}")
        monkeypatch.setenv("LOG_FILE", "")
        monkeypatch.setenv("ADMIN_SLUG", "cli-admin")

        with caplog.at_level(logging.INFO, logger="pressframe.http.router"):
            assert main(["--routes"]) == 0
        assert "/api/v1/blogs" in caplog.text
