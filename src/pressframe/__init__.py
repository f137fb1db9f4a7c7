"""
=============================================================================
PRESSFRAME - A Small MVC Web Framework With a Blog CMS On Top
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        PRESSFRAME LAYERS                            │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   cms/          Blog, Category, Tag, SeoMeta, User models           │
    │                 admin + JSON API + media controllers, route tables  │
    │                                                                      │
    │   app.py        App: WSGI entry, global middleware, error handling  │
    │                                                                      │
    │   http/         Request, Response, Router, Route, Controller        │
    │   middleware/   pipeline + access_log, session, csrf, throttle,     │
    │                 admin, auth, security_headers                       │
    │   db/           Database, QueryBuilder, Model, pagination           │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
QUICK START
=============================================================================

    from pressframe import App, AppConfig
    from pressframe.http.response import ok

    app = App(AppConfig(database_url="sqlite:///blog.db"))

    def hello(request, name):
        return ok({"hello": name})

    app.load_routes(lambda router: router.get("/hello/{name}", hello).name("hello"))
    app.use("access_log")

    # any WSGI server: wsgiref, gunicorn "module:app", ...

Or run the CMS:  python -m pressframe --port 8000

=============================================================================
"""

from .app import App, setup_logging
from .config import AppConfig
from .http import Request, Response, Router, Route, Controller
from .middleware import Middleware, MiddlewareRegistry

__version__ = "1.0.0"
__author__ = "pressframe contributors"

__all__ = [
    "App",
    "AppConfig",
    "setup_logging",
    "Request",
    "Response",
    "Router",
    "Route",
    "Controller",
    "Middleware",
    "MiddlewareRegistry",
    "__version__",
]
