"""
Require a logged-in user.

Attaches the request's Auth as `request.attributes["auth"]` and answers
403 when nobody is logged in.
"""

from http import HTTPStatus

from ..auth import Auth
from ..http.request import Request
from ..http.response import Response, ResponseBuilder
from .base import Middleware, NextHandler


class AuthMiddleware(Middleware):
    def __init__(self, user_model):
        self.user_model = user_model

    def handle(self, request: Request, next: NextHandler, *params: str) -> Response:
        auth = Auth(request, self.user_model)
        request.attributes["auth"] = auth

        if not auth.check():
            return ResponseBuilder().status(HTTPStatus.FORBIDDEN).text("Unauthorized").build()

        return next(request)
