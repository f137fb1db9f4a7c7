"""
Controller base class.

The router builds one controller per request, `cls(request)`, and then
calls the action with the request followed by the route parameters:

    class BlogController(Controller):
        def show(self, request, id):
            blog = Blog.find(self.db, id)
            if blog is None:
                return self.error("Blog not found", HTTPStatus.NOT_FOUND)
            return self.success(blog.to_dict())

Subclasses that need per-request setup override boot().
"""

from http import HTTPStatus
from typing import Any, Dict, List, Optional, Union
import logging

from .request import Request
from .response import (
    Response,
    ResponseBuilder,
    envelope,
    error_envelope,
    no_content,
    redirect,
)


logger = logging.getLogger(__name__)


class ValidationError(Exception):
    """Input failed validation; rendered as a 400 envelope."""

    def __init__(self, message: str, errors: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.message = message
        self.errors = errors or {}


class Controller:
    """Per-request controller with response and input helpers."""

    def __init__(self, request: Request):
        self.request = request
        self.app = request.attributes.get("app")
        self.boot()

    def boot(self) -> None:
        pass

    @property
    def db(self):
        return self.request.db

    @property
    def session(self):
        return self.request.session

    @property
    def config(self):
        return self.app.config if self.app is not None else None

    # =========================================================================
    # RESPONSES
    # =========================================================================

    def json(self, data: Any, status: Union[int, HTTPStatus] = HTTPStatus.OK) -> Response:
        return ResponseBuilder().status(status).json(data).build()

    def success(self, data: Any = None, status: Union[int, HTTPStatus] = HTTPStatus.OK) -> Response:
        return envelope(data, status)

    def error(self, message: str, status: Union[int, HTTPStatus] = HTTPStatus.BAD_REQUEST) -> Response:
        return error_envelope(message, status)

    def html(self, content: str, status: Union[int, HTTPStatus] = HTTPStatus.OK) -> Response:
        return ResponseBuilder().status(status).html(content).build()

    def redirect(self, url: str, status: Union[int, HTTPStatus] = HTTPStatus.FOUND) -> Response:
        return redirect(url, status)

    def no_content(self) -> Response:
        return no_content()

    # =========================================================================
    # INPUT
    # =========================================================================

    def input(self, key: str, default: Any = None) -> Any:
        return self.request.input(key, default)

    def query(self, key: str, default: Any = None) -> Any:
        return self.request.query(key, default)

    def all(self) -> Dict[str, Any]:
        return self.request.all()

    def only(self, keys: List[str]) -> Dict[str, Any]:
        return self.request.only(keys)

    def has(self, key: str) -> bool:
        return self.request.has(key)

    def require(self, data: Dict[str, Any], fields: Dict[str, str]) -> None:
        """
        Raise ValidationError for the first missing field.

            self.require(data, {"title": "Title is required"})
        """
        for field, message in fields.items():
            value = data.get(field)
            if value is None or (isinstance(value, str) and not value.strip()):
                raise ValidationError(message, {field: message})

    @staticmethod
    def clamp_int(raw: Any, default: int, low: int, high: int) -> int:
        """Parse `raw` as an int (falling back to `default`) and clamp it into [low, high]."""
        try:
            value = int(raw)
        except (TypeError, ValueError):
            value = default
        return min(high, max(low, value))

    @staticmethod
    def flag(raw: Any) -> bool:
        """Query-string truthiness: "1", "true", "yes", "on"."""
        if isinstance(raw, bool):
            return raw
        return str(raw or "").strip().lower() in ("1", "true", "yes", "on")

    @staticmethod
    def int_list(raw: Union[str, List[Any], None]) -> List[int]:
        """"1,2, 3" or [1, "2"] → [1, 2, 3]; non-numeric entries are dropped."""
        if raw is None:
            return []
        items = raw.split(",") if isinstance(raw, str) else list(raw)
        ids = []
        for item in items:
            try:
                ids.append(int(str(item).strip()))
            except ValueError:
                logger.debug(f"Skipping non-numeric id: {item!r}")
        return ids
