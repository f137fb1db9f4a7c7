from ...http.controller import Controller
from ...http.request import Request
from ...http.response import Response
from ..views import home_page


class HomeController(Controller):
    def index(self, request: Request) -> Response:
        name = self.config.name if self.config is not None else "pressframe"
        return self.html(home_page(name))
