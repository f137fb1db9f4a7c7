"""
=============================================================================
HTTP REQUEST
=============================================================================

The incoming request as handlers see it.

=============================================================================
REQUEST LIFECYCLE
=============================================================================

    WSGI environ            Request                  Controller
    from server   ──build──►  dataclass   ──route──►   method
        │                        │                        │
        │                        │                        │
    {"REQUEST_METHOD":     Request(                 def show(self, request, id):
     "GET",                  method="GET",              request.route_param("id")
     "PATH_INFO":            path="/api/v1/blogs/7",    request.query("page")
     "/api/v1/blogs/7",      headers={...},             request.input("title")
     ...}                    ...)

=============================================================================
INPUT SOURCES
=============================================================================

    query_params    ?page=2&status=draft      → query("page")
    body            JSON, form-urlencoded     → input("title")
                    or multipart/form-data    → input("title"), file("file")
    route_params    /blogs/{id}               → route_param("id")
    wildcard_path   /files/*                  → wildcard_path

input() looks in the body first and falls back to the query string.
Form bodies are parsed for every method (PUT/PATCH/DELETE included), and
string values are trimmed once at parse time.

=============================================================================
"""

from dataclasses import dataclass, field
from email import policy as email_policy
from email.parser import BytesParser
from http.cookies import CookieError, SimpleCookie
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import parse_qs
import json
import logging
import os

from .session import Session, SessionStore


logger = logging.getLogger(__name__)


class HTTPParseError(Exception):
    """Request body could not be decoded."""

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


def _sanitize(value: Any) -> Any:
    """Trim strings, recursing into lists and dicts."""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, list):
        return [_sanitize(item) for item in value]
    if isinstance(value, dict):
        return {key: _sanitize(item) for key, item in value.items()}
    return value


def _flatten(params: Dict[str, List[str]]) -> Dict[str, Any]:
    """parse_qs output → single values, keeping lists only for repeated keys."""
    return {key: values[0] if len(values) == 1 else values for key, values in params.items()}


@dataclass
class UploadedFile:
    """One file part of a multipart/form-data body, held in memory."""

    filename: str
    content_type: str
    content: bytes = field(repr=False)

    @property
    def size(self) -> int:
        return len(self.content)

    @property
    def extension(self) -> str:
        """Lowercased extension of the client filename, without the dot."""
        return os.path.splitext(self.filename)[1].lstrip(".").lower()

    def save(self, path) -> Path:
        path = Path(path)
        path.write_bytes(self.content)
        return path


def _parse_multipart(content_type: str, body: bytes) -> tuple[Dict[str, Any], Dict[str, List[UploadedFile]]]:
    """
    Split a multipart/form-data body into plain fields and uploaded files.

    The body is handed to the email parser behind a synthetic Content-Type
    header, which carries the boundary.
    """
    message = BytesParser(policy=email_policy.HTTP).parsebytes(
        b"Content-Type: " + content_type.encode("latin-1") + b"\r\n\r\n" + body
    )
    if not message.is_multipart():
        raise HTTPParseError("Malformed multipart body")

    fields: Dict[str, List[str]] = {}
    files: Dict[str, List[UploadedFile]] = {}
    for part in message.iter_parts():
        disposition = part["content-disposition"]
        name = disposition.params.get("name") if disposition is not None else None
        if not name:
            continue
        payload = part.get_payload(decode=True) or b""
        filename = part.get_filename()
        if filename is None:
            charset = part.get_content_charset() or "utf-8"
            fields.setdefault(name, []).append(payload.decode(charset, errors="replace"))
        elif filename:
            # some clients send a path, keep the last component
            client_name = filename.replace("\\", "/").rsplit("/", 1)[-1]
            files.setdefault(name, []).append(
                UploadedFile(client_name, part.get_content_type(), payload)
            )
    return _flatten(fields), files


@dataclass
class Request:
    """
    A request snapshot plus the per-request state middleware attach to it.

    Headers are stored with lowercase keys. query_params keeps every value
    of a repeated key: "?a=1&a=2" → {"a": ["1", "2"]}.
    """

    method: str
    path: str
    headers: Dict[str, str] = field(default_factory=dict)
    query_params: Dict[str, List[str]] = field(default_factory=dict)
    body: bytes = b""
    client_address: tuple[str, int] = ("", 0)
    scheme: str = "http"
    cookies: Dict[str, str] = field(default_factory=dict)

    # set by the router
    route_params: Dict[str, str] = field(default_factory=dict)
    wildcard_path: Optional[str] = None

    # set by middleware / the app
    session: SessionStore = field(default_factory=Session)
    db: Any = None
    attributes: Dict[str, Any] = field(default_factory=dict)

    _parsed_body: Optional[Dict[str, Any]] = field(default=None, repr=False)
    _json: Any = field(default=None, repr=False)
    _files: Dict[str, List[UploadedFile]] = field(default_factory=dict, repr=False)

    def __post_init__(self):
        self.method = self.method.upper()
        if not self.path.startswith("/"):
            self.path = "/" + self.path
        self.headers = {name.lower(): value for name, value in self.headers.items()}

    @classmethod
    def from_environ(cls, environ: Dict[str, Any]) -> "Request":
        """Build a Request from a WSGI environ."""
        headers: Dict[str, str] = {}
        for key, value in environ.items():
            if key.startswith("HTTP_"):
                headers[key[5:].replace("_", "-").lower()] = value
        if environ.get("CONTENT_TYPE"):
            headers["content-type"] = environ["CONTENT_TYPE"]
        if environ.get("CONTENT_LENGTH"):
            headers["content-length"] = environ["CONTENT_LENGTH"]

        try:
            length = int(environ.get("CONTENT_LENGTH") or 0)
        except ValueError:
            length = 0
        body = environ["wsgi.input"].read(length) if length > 0 and "wsgi.input" in environ else b""

        cookies: Dict[str, str] = {}
        if "cookie" in headers:
            jar = SimpleCookie()
            try:
                jar.load(headers["cookie"])
            except CookieError:
                logger.debug(f"Ignoring malformed Cookie header: {headers['cookie']!r}")
            else:
                cookies = {name: morsel.value for name, morsel in jar.items()}

        path_info = environ.get("PATH_INFO", "/")
        # PEP 3333 hands PATH_INFO over as latin-1 decoded bytes
        try:
            path_info = path_info.encode("latin-1").decode("utf-8")
        except UnicodeError:
            pass

        return cls(
            method=environ.get("REQUEST_METHOD", "GET"),
            path=path_info or "/",
            headers=headers,
            query_params=parse_qs(environ.get("QUERY_STRING", ""), keep_blank_values=True),
            body=body,
            client_address=(environ.get("REMOTE_ADDR", ""), int(environ.get("REMOTE_PORT") or 0)),
            scheme=environ.get("wsgi.url_scheme", "http"),
            cookies=cookies,
        )

    # =========================================================================
    # HEADERS
    # =========================================================================

    @property
    def content_type(self) -> Optional[str]:
        ct = self.headers.get("content-type", "")
        return ct.split(";")[0].strip().lower() or None

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.headers.get(name.lower(), default)

    def bearer_token(self) -> Optional[str]:
        auth = self.header("authorization", "")
        if auth.lower().startswith("bearer "):
            return auth[7:].strip() or None
        return None

    def is_json(self) -> bool:
        return self.content_type == "application/json"

    def is_ajax(self) -> bool:
        return self.header("x-requested-with", "").lower() == "xmlhttprequest"

    def is_secure(self) -> bool:
        return self.scheme == "https" or self.header("x-forwarded-proto", "").lower() == "https"

    def is_method(self, method: str) -> bool:
        return self.method == method.upper()

    def ip(self) -> str:
        """Client IP: Client-IP header, then first X-Forwarded-For hop, then the socket peer."""
        if self.header("client-ip"):
            return self.header("client-ip")
        forwarded = self.header("x-forwarded-for")
        if forwarded:
            return forwarded.split(",")[0].strip()
        return self.client_address[0]

    def cookie(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.cookies.get(name, default)

    # =========================================================================
    # BODY
    # =========================================================================

    @property
    def json(self) -> Any:
        """The decoded JSON body (None when empty)."""
        if self._json is None and self.body:
            try:
                self._json = json.loads(self.body.decode("utf-8"))
            except (json.JSONDecodeError, UnicodeDecodeError) as e:
                raise HTTPParseError(f"Invalid JSON body: {e}")
        return self._json

    def _body_params(self) -> Dict[str, Any]:
        if self._parsed_body is None:
            parsed: Dict[str, Any] = {}
            if self.body:
                if self.is_json():
                    data = self.json
                    parsed = data if isinstance(data, dict) else {}
                elif self.content_type == "multipart/form-data":
                    parsed, self._files = _parse_multipart(self.headers["content-type"], self.body)
                else:
                    text = self.body.decode("utf-8", errors="replace")
                    parsed = _flatten(parse_qs(text, keep_blank_values=True))
            self._parsed_body = _sanitize(parsed)
        return self._parsed_body

    # =========================================================================
    # INPUT ACCESSORS
    # =========================================================================

    def query(self, key: Optional[str] = None, default: Any = None) -> Any:
        """A query-string value, or every query value when `key` is None."""
        if key is None:
            return _sanitize(_flatten(self.query_params))
        values = self.query_params.get(key)
        if not values:
            return default
        return _sanitize(values[0])

    def all(self) -> Dict[str, Any]:
        merged = self.query()
        merged.update(self._body_params())
        return merged

    def input(self, key: Optional[str] = None, default: Any = None) -> Any:
        if key is None:
            return self.all()
        body = self._body_params()
        if key in body:
            return body[key]
        return self.query(key, default)

    def only(self, keys: Iterable[str]) -> Dict[str, Any]:
        data = self.all()
        return {key: data[key] for key in keys if key in data}

    def except_(self, keys: Iterable[str]) -> Dict[str, Any]:
        excluded = set(keys)
        return {key: value for key, value in self.all().items() if key not in excluded}

    def has(self, key: str) -> bool:
        return key in self.all()

    def filled(self, key: str) -> bool:
        value = self.input(key)
        return value is not None and value != "" and value != [] and value != {}

    def file(self, key: str) -> Optional[UploadedFile]:
        """The first file uploaded under `key`, or None."""
        uploads = self.files(key)
        return uploads[0] if uploads else None

    def files(self, key: str) -> List[UploadedFile]:
        self._body_params()
        return list(self._files.get(key, []))

    # =========================================================================
    # ROUTE DATA
    # =========================================================================

    def set_route_params(self, params: Dict[str, str]) -> None:
        self.route_params = dict(params)
        self.wildcard_path = params.get("wildcard")

    def route_param(self, name: str, default: Any = None) -> Any:
        return self.route_params.get(name, default)

    def has_wildcard(self) -> bool:
        return self.wildcard_path is not None
