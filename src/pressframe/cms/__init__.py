"""
The blog CMS built on pressframe: models, controllers, route tables and
the application factory.

    from pressframe.cms import create_app

    app = create_app(AppConfig.from_env())     # a WSGI callable
"""

from typing import Optional

from ..app import App
from ..config import AppConfig
from ..db.database import Database
from ..http.session import MemorySessionBackend
from .controllers import CONTROLLERS
from .models import Blog, BlogTag, Category, SeoMeta, Tag, User
from .routes import api_routes, cms_routes, web_routes
from .schema import create_schema


def create_app(
    config: Optional[AppConfig] = None,
    database: Optional[Database] = None,
    session_backend: Optional[MemorySessionBackend] = None,
) -> App:
    """Build the CMS application: controllers, both route tables, global middleware."""
    config = config or AppConfig.from_env()
    app = App(config, database=database, user_model=User, session_backend=session_backend)
    app.controllers(CONTROLLERS)
    app.load_routes(cms_routes(config.admin_slug))
    app.use("access_log", "session")
    return app


__all__ = [
    "create_app",
    "create_schema",
    "web_routes",
    "api_routes",
    "cms_routes",
    "Blog",
    "BlogTag",
    "Category",
    "SeoMeta",
    "Tag",
    "User",
]
