"""
=============================================================================
ACCESS LOG MIDDLEWARE
=============================================================================

One log line per request on the "pressframe.access" logger:

    text:  127.0.0.1 - - [18/Oct/2026:10:01:02 +0000] "GET /api/v1/blogs" 200 812 3.41ms
    json:  {"request_id": "1f3a9c2e", "method": "GET", "path": "/api/v1/blogs", ...}

Register it first so it times and logs everything, including requests
that later middleware reject:

    app.use("access_log", "session")

Every response gets an X-Request-ID header. A request that raises is
logged at ERROR and the exception re-raised for the app to handle.

=============================================================================
"""

from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlencode
import json
import logging
import time
import uuid

from ..http.request import Request
from ..http.response import Response
from .base import Middleware, NextHandler


logger = logging.getLogger("pressframe.access")


@dataclass
class RequestLog:
    request_id: str
    method: str
    path: str
    query: str
    client_ip: str
    user_agent: str
    status_code: int
    content_length: int
    duration_ms: float
    timestamp: str

    def to_dict(self) -> dict:
        return {
            "request_id": self.request_id,
            "method": self.method,
            "path": self.path,
            "query": self.query,
            "client_ip": self.client_ip,
            "user_agent": self.user_agent,
            "status_code": self.status_code,
            "content_length": self.content_length,
            "duration_ms": round(self.duration_ms, 2),
            "timestamp": self.timestamp,
        }

    def to_text(self) -> str:
        """Apache-style line."""
        path = f"{self.path}?{self.query}" if self.query else self.path
        return (
            f'{self.client_ip} - - [{self.timestamp}] '
            f'"{self.method} {path}" {self.status_code} '
            f'{self.content_length} {self.duration_ms:.2f}ms'
        )


class AccessLogMiddleware(Middleware):
    """
    Request timing and access logging.

    Args:
        log_format: "text" or "json"
        log_level: Level for successful requests
        skip_paths: Paths not worth logging (health probes)
    """

    def __init__(
        self,
        log_format: str = "text",
        log_level: int = logging.INFO,
        skip_paths: Optional[list[str]] = None,
    ):
        self.log_format = log_format
        self.log_level = log_level
        self.skip_paths = set(skip_paths or [])

    def handle(self, request: Request, next: NextHandler, *params: str) -> Response:
        request_id = request.header("x-request-id") or str(uuid.uuid4())[:8]
        request.attributes["request_id"] = request_id
        start_time = time.time()

        try:
            response = next(request)
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.error(
                f"Request failed: {request.method} {request.path} "
                f"- {type(e).__name__}: {e} ({duration_ms:.2f}ms)"
            )
            raise

        duration_ms = (time.time() - start_time) * 1000
        response.set_header("X-Request-ID", request_id)

        if request.path in self.skip_paths:
            return response

        entry = RequestLog(
            request_id=request_id,
            method=request.method,
            path=request.path,
            query=urlencode(request.query_params, doseq=True),
            client_ip=request.ip() or "-",
            user_agent=request.header("user-agent", "-"),
            status_code=response.status_code,
            content_length=len(response.body),
            duration_ms=duration_ms,
            timestamp=time.strftime("%d/%b/%Y:%H:%M:%S %z"),
        )

        if self.log_format == "json":
            logger.log(self.log_level, json.dumps(entry.to_dict()))
        else:
            logger.log(self.log_level, entry.to_text())

        return response
