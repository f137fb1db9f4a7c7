"""
Security headers for every response that passes through, redirects and
error responses included.

The Content-Security-Policy depends on the environment: development and
local allow the Vite dev server and the CDNs the admin UI loads from,
everything else gets the strict policy.
"""

from typing import Dict

from ..http.request import Request
from ..http.response import Response
from .base import Middleware, NextHandler


DEVELOPMENT_ENVS = ("development", "local")

VITE_DEV_SERVER = "http://localhost:5173"
VITE_DEV_SOCKET = "ws://localhost:5173"

CDN_DOMAINS = " ".join([
    "https://cdnjs.cloudflare.com",
    "https://cdn.jsdelivr.net",
    "https://unpkg.com",
    "https://via.placeholder.com",
    "https://cdn.tailwindcss.com",
    "https://code.jquery.com",
])

# shared by SecurityHeadersMiddleware and AdminMiddleware
BASE_SECURITY_HEADERS: Dict[str, str] = {
    "X-Robots-Tag": "noindex, nofollow, noarchive, nosnippet, noimageindex",
    "X-Frame-Options": "DENY",
    "X-Content-Type-Options": "nosniff",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "no-referrer",
    "Cache-Control": "no-cache, no-store, must-revalidate, private",
    "Pragma": "no-cache",
    "Expires": "0",
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
}

PERMISSIONS_POLICY = "geolocation=(), microphone=(), camera=(), fullscreen=()"


def build_content_security_policy(env: str) -> str:
    if env in DEVELOPMENT_ENVS:
        return (
            "default-src 'self'; "
            f"script-src 'self' 'unsafe-inline' 'unsafe-eval' {VITE_DEV_SERVER} {VITE_DEV_SOCKET} {CDN_DOMAINS}; "
            f"style-src 'self' 'unsafe-inline' {VITE_DEV_SERVER} {CDN_DOMAINS}; "
            f"connect-src 'self' {VITE_DEV_SERVER} {VITE_DEV_SOCKET}; "
            f"img-src 'self' data: {VITE_DEV_SERVER} https:; "
            f"font-src 'self' {CDN_DOMAINS}; "
            "frame-ancestors 'none';"
        )
    return (
        "default-src 'self'; "
        "script-src 'self' 'unsafe-inline'; "
        "style-src 'self' 'unsafe-inline'; "
        "img-src 'self' data:; "
        "frame-ancestors 'none';"
    )


def apply_headers(response: Response, headers: Dict[str, str]) -> Response:
    for name, value in headers.items():
        response.set_header(name, value)
    return response


class SecurityHeadersMiddleware(Middleware):
    def __init__(self, env: str = "production"):
        self.env = env
        self.headers = dict(BASE_SECURITY_HEADERS)
        self.headers["Content-Security-Policy"] = build_content_security_policy(env)
        self.headers["Permissions-Policy"] = PERMISSIONS_POLICY

    def handle(self, request: Request, next: NextHandler, *params: str) -> Response:
        return apply_headers(next(request), self.headers)
