"""
pytest configuration and fixtures.
"""

from typing import Any, Dict, Generator, Optional, Tuple
from urllib.parse import urlencode, parse_qs
import json
import time

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.pool import StaticPool

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from pressframe import App, AppConfig
from pressframe.cms import create_app, create_schema
from pressframe.db import Database
from pressframe.http import Request, Session


@pytest.fixture
def engine():
    """One in-memory SQLite database shared by every connection of a test."""
    engine = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    yield engine
    engine.dispose()


@pytest.fixture
def database(engine) -> Database:
    """Database with the CMS tables created."""
    database = Database(engine=engine)
    with database.connection() as conn:
        create_schema(conn)
    return database


@pytest.fixture
def conn(database) -> Generator:
    with database.connection() as conn:
        yield conn


class StatementLog:
    """Records every SQL statement the engine sends to the driver."""

    def __init__(self):
        self.statements = []

    def __call__(self, conn, cursor, statement, parameters, context, executemany):
        self.statements.append(statement)

    def clear(self):
        self.statements.clear()

    def matching(self, verb: str):
        return [sql for sql in self.statements if sql.lstrip().upper().startswith(verb)]


@pytest.fixture
def sql_log(engine) -> Generator[StatementLog, None, None]:
    log = StatementLog()
    event.listen(engine, "before_cursor_execute", log)
    yield log
    event.remove(engine, "before_cursor_execute", log)


@pytest.fixture
def config(tmp_path) -> AppConfig:
    """Test settings: no error log file, known admin credentials, uploads under tmp_path."""
    return AppConfig(
        env="testing",
        log_file=None,
        upload_dir=str(tmp_path / "uploads"),
        admin_slug="secret-area",
        admin_username="admin",
        admin_password="s3cret",
    )


@pytest.fixture
def app(config, database) -> App:
    """The CMS application on the test database."""
    return create_app(config, database=database)


BOUNDARY = "pressframe-test-boundary"


def multipart_body(fields: Optional[Dict[str, Any]] = None, files: Optional[Dict[str, Any]] = None) -> Tuple[bytes, str]:
    """
    Encode a multipart/form-data body.

    files maps a field name to (filename, content_type, content), or to a
    list of such tuples for repeated fields.
    """
    chunks = []
    for name, value in (fields or {}).items():
        chunks.append(
            f'--{BOUNDARY}\r\nContent-Disposition: form-data; name="{name}"\r\n\r\n{value}\r\n'.encode("utf-8")
        )
    for name, uploads in (files or {}).items():
        if isinstance(uploads, tuple):
            uploads = [uploads]
        for filename, content_type, content in uploads:
            head = (
                f"--{BOUNDARY}\r\n"
                f'Content-Disposition: form-data; name="{name}"; filename="{filename}"\r\n'
                f"Content-Type: {content_type}\r\n\r\n"
            )
            chunks.append(head.encode("utf-8") + content + b"\r\n")
    chunks.append(f"--{BOUNDARY}--\r\n".encode("utf-8"))
    return b"".join(chunks), f"multipart/form-data; boundary={BOUNDARY}"


def build_request(
    method: str,
    path: str,
    query: Optional[Dict[str, Any]] = None,
    json_body: Any = None,
    form: Optional[Dict[str, Any]] = None,
    files: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
    cookies: Optional[Dict[str, str]] = None,
    ip: str = "127.0.0.1",
) -> Request:
    """Build a Request the way the WSGI layer would."""
    headers = dict(headers or {})
    body = b""
    if json_body is not None:
        body = json.dumps(json_body).encode("utf-8")
        headers["content-type"] = "application/json"
    elif files is not None:
        body, headers["content-type"] = multipart_body(form, files)
    elif form is not None:
        body = urlencode(form, doseq=True).encode("utf-8")
        headers["content-type"] = "application/x-www-form-urlencoded"

    return Request(
        method=method,
        path=path,
        headers=headers,
        query_params=parse_qs(urlencode(query or {}, doseq=True), keep_blank_values=True),
        body=body,
        client_address=(ip, 50000),
        cookies=dict(cookies or {}),
    )


@pytest.fixture
def make_request():
    return build_request


@pytest.fixture
def admin_cookies(app) -> Dict[str, str]:
    """Cookies for a session that is already logged in to the admin area."""
    session = Session()
    session.put("admin_authenticated", True)
    session.put("admin_last_activity", time.time())
    app.sessions.save(session)
    return {app.config.session_cookie: session.id}


@pytest.fixture
def api(app, admin_cookies):
    """Call the app as a logged-in admin: api("GET", "/api/v1/blogs", query={...})."""
    def call(method: str, path: str, **kwargs):
        kwargs.setdefault("cookies", admin_cookies)
        return app.handle(build_request(method, path, **kwargs))
    return call
