"""
Session loading and saving.

Global middleware: loads the session named by the session cookie, puts it
on `request.session`, and after the rest of the chain has run saves it and
(re)sets the cookie when the session is new, changed or was regenerated.
"""

import logging

from ..http.request import Request
from ..http.response import Response
from ..http.session import MemorySessionBackend
from .base import Middleware, NextHandler


logger = logging.getLogger(__name__)

DEFAULT_COOKIE = "pressframe_session"


class SessionMiddleware(Middleware):
    def __init__(self, backend: MemorySessionBackend, cookie_name: str = DEFAULT_COOKIE):
        self.backend = backend
        self.cookie_name = cookie_name

    def handle(self, request: Request, next: NextHandler, *params: str) -> Response:
        cookie_id = request.cookie(self.cookie_name)
        session = self.backend.load(cookie_id)
        request.session = session

        response = next(request)

        if session.modified or session.id != cookie_id:
            if session.id != cookie_id:
                logger.debug(f"Issuing session cookie for {request.ip()}")
            self.backend.save(session)
            response.set_cookie(
                self.cookie_name,
                session.id,
                http_only=True,
                secure=request.is_secure(),
                same_site="Lax",
            )
        return response
