"""
=============================================================================
HTTP RESPONSE
=============================================================================

Mutable response object, a fluent builder, and one-line helpers for the
common cases.

    return ok({"id": 7})
    return not_found("Blog not found")
    return redirect("/admin/login")

    return (ResponseBuilder()
        .status(HTTPStatus.CREATED)
        .json(success_payload(blog.to_dict()))
        .header("Location", f"/api/v1/blogs/{blog.id}")
        .build())

=============================================================================
HEADER NAMES
=============================================================================

Header names are normalized to Title-Case on the way in, so middleware
can overwrite a header a controller set regardless of how either spelled
it:

    "x-frame-options"  →  "X-Frame-Options"
    "CACHE-CONTROL"    →  "Cache-Control"

=============================================================================
JSON ENVELOPE
=============================================================================

API endpoints answer with one shape, success or failure:

    {"success": true,  "error": null,            "data": {...}}
    {"success": false, "error": "Blog not found", "data": null}

=============================================================================
"""

from dataclasses import dataclass, field
from http import HTTPStatus
from http.cookies import SimpleCookie
from typing import Any, Dict, List, Optional, Tuple, Union
import json


# not in http.HTTPStatus
EXTRA_REASONS = {419: "Page Expired"}


def reason_phrase(status: int) -> str:
    try:
        return HTTPStatus(status).phrase
    except ValueError:
        return EXTRA_REASONS.get(status, "Unknown")


def normalize_header_name(name: str) -> str:
    return "-".join(part.capitalize() for part in name.strip().split("-"))


def to_json(data: Any) -> bytes:
    # default=str covers datetimes and Decimals coming back from the database
    return json.dumps(data, ensure_ascii=False, default=str).encode("utf-8")


@dataclass
class Response:
    """
    An outgoing response.

    Middleware receive it from `next(request)` and may change anything
    before passing it outward.
    """

    status: int = HTTPStatus.OK
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    cookies: List[str] = field(default_factory=list)

    def __post_init__(self):
        self.status = int(self.status)
        self.headers = {normalize_header_name(name): value for name, value in self.headers.items()}

    @property
    def status_code(self) -> int:
        return self.status

    def set_status(self, status: Union[int, HTTPStatus]) -> "Response":
        self.status = int(status)
        return self

    def set_header(self, name: str, value: str) -> "Response":
        self.headers[normalize_header_name(name)] = str(value)
        return self

    def get_header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.headers.get(normalize_header_name(name), default)

    def has_header(self, name: str) -> bool:
        return normalize_header_name(name) in self.headers

    def remove_header(self, name: str) -> "Response":
        self.headers.pop(normalize_header_name(name), None)
        return self

    def set_body(self, body: Union[str, bytes]) -> "Response":
        self.body = body.encode("utf-8") if isinstance(body, str) else body
        return self

    @property
    def text(self) -> str:
        return self.body.decode("utf-8")

    @property
    def json(self) -> Any:
        return json.loads(self.body.decode("utf-8")) if self.body else None

    def set_cookie(
        self,
        name: str,
        value: str,
        max_age: Optional[int] = None,
        path: str = "/",
        http_only: bool = True,
        secure: bool = False,
        same_site: str = "Lax",
    ) -> "Response":
        jar = SimpleCookie()
        jar[name] = value
        morsel = jar[name]
        morsel["path"] = path
        morsel["samesite"] = same_site
        if max_age is not None:
            morsel["max-age"] = max_age
        if http_only:
            morsel["httponly"] = True
        if secure:
            morsel["secure"] = True
        self.cookies.append(morsel.OutputString())
        return self

    def to_wsgi(self) -> Tuple[str, List[Tuple[str, str]], bytes]:
        """Status line, header list and body for WSGI start_response."""
        headers = dict(self.headers)
        headers.setdefault("Content-Length", str(len(self.body)))
        header_list = list(headers.items())
        header_list.extend(("Set-Cookie", cookie) for cookie in self.cookies)
        return f"{self.status} {reason_phrase(self.status)}", header_list, self.body


class ResponseBuilder:
    """Fluent construction of a Response."""

    def __init__(self):
        self._status = int(HTTPStatus.OK)
        self._headers: Dict[str, str] = {}
        self._body: bytes = b""

    def status(self, status: Union[int, HTTPStatus]) -> "ResponseBuilder":
        self._status = int(status)
        return self

    def header(self, name: str, value: str) -> "ResponseBuilder":
        self._headers[normalize_header_name(name)] = str(value)
        return self

    def headers(self, headers: Dict[str, str]) -> "ResponseBuilder":
        for name, value in headers.items():
            self.header(name, value)
        return self

    def content_type(self, content_type: str) -> "ResponseBuilder":
        return self.header("Content-Type", content_type)

    def body(self, body: Union[str, bytes]) -> "ResponseBuilder":
        self._body = body.encode("utf-8") if isinstance(body, str) else body
        return self

    def text(self, text: str, content_type: str = "text/plain; charset=utf-8") -> "ResponseBuilder":
        self._body = text.encode("utf-8")
        return self.content_type(content_type)

    def html(self, html: str) -> "ResponseBuilder":
        return self.text(html, "text/html; charset=utf-8")

    def json(self, data: Any) -> "ResponseBuilder":
        self._body = to_json(data)
        return self.content_type("application/json; charset=utf-8")

    def redirect(self, location: str, status: Union[int, HTTPStatus] = HTTPStatus.FOUND) -> "ResponseBuilder":
        self._status = int(status)
        return self.header("Location", location)

    def no_cache(self) -> "ResponseBuilder":
        return self.headers({
            "Cache-Control": "no-cache, no-store, must-revalidate, private",
            "Pragma": "no-cache",
            "Expires": "0",
        })

    def cache(self, max_age: int = 3600) -> "ResponseBuilder":
        return self.header("Cache-Control", f"public, max-age={max_age}")

    def build(self) -> Response:
        return Response(status=self._status, headers=dict(self._headers), body=self._body)


# =============================================================================
# ENVELOPE HELPERS
# =============================================================================

def success_payload(data: Any = None) -> Dict[str, Any]:
    return {"success": True, "error": None, "data": data}


def error_payload(message: str) -> Dict[str, Any]:
    return {"success": False, "error": message, "data": None}


def envelope(data: Any = None, status: Union[int, HTTPStatus] = HTTPStatus.OK) -> Response:
    return ResponseBuilder().status(status).json(success_payload(data)).build()


def error_envelope(message: str, status: Union[int, HTTPStatus] = HTTPStatus.BAD_REQUEST) -> Response:
    return ResponseBuilder().status(status).json(error_payload(message)).build()


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

def ok(body: Union[str, bytes, dict, list] = "", content_type: Optional[str] = None) -> Response:
    """200 OK; dicts and lists become JSON, strings plain text."""
    builder = ResponseBuilder()
    if isinstance(body, (dict, list)):
        builder.json(body)
    elif isinstance(body, str):
        builder.text(body, content_type or "text/plain; charset=utf-8")
    else:
        builder.body(body)
        if content_type:
            builder.content_type(content_type)
    return builder.build()


def created(body: Union[dict, list, None] = None, location: Optional[str] = None) -> Response:
    builder = ResponseBuilder().status(HTTPStatus.CREATED)
    if body is not None:
        builder.json(body)
    if location:
        builder.header("Location", location)
    return builder.build()


def no_content() -> Response:
    return ResponseBuilder().status(HTTPStatus.NO_CONTENT).build()


def redirect(location: str, status: Union[int, HTTPStatus] = HTTPStatus.FOUND) -> Response:
    return ResponseBuilder().redirect(location, status).build()


def bad_request(message: str = "Bad Request") -> Response:
    return error_envelope(message, HTTPStatus.BAD_REQUEST)


def forbidden(message: str = "Forbidden") -> Response:
    return ResponseBuilder().status(HTTPStatus.FORBIDDEN).text(message).build()


def not_found(message: str = "Not Found") -> Response:
    return error_envelope(message, HTTPStatus.NOT_FOUND)


def method_not_allowed(allowed_methods: List[str]) -> Response:
    """405 with the Allow header listing what the path does accept."""
    return (ResponseBuilder()
        .status(HTTPStatus.METHOD_NOT_ALLOWED)
        .header("Allow", ", ".join(allowed_methods))
        .json(error_payload("Method Not Allowed"))
        .build())


def too_many_requests(retry_after: int, message: Optional[str] = None) -> Response:
    return (ResponseBuilder()
        .status(HTTPStatus.TOO_MANY_REQUESTS)
        .header("Retry-After", str(retry_after))
        .json(error_payload(message or f"Rate limit exceeded. Try again in {retry_after} seconds."))
        .build())


def internal_error(message: str = "Internal Server Error") -> Response:
    return error_envelope(message, HTTPStatus.INTERNAL_SERVER_ERROR)


def coerce_response(value: Any) -> Response:
    """
    Turn whatever an action returned into a Response.

        Response      → unchanged
        str / bytes   → 200 text/html
        dict / list   → 200 JSON
        None          → 204
    """
    if isinstance(value, Response):
        return value
    if value is None:
        return no_content()
    if isinstance(value, (dict, list)):
        return ResponseBuilder().json(value).build()
    if isinstance(value, bytes):
        return ResponseBuilder().body(value).content_type("text/html; charset=utf-8").build()
    return ResponseBuilder().html(str(value)).build()
