"""
CMS controllers, keyed by the names the route tables use.
"""

from .admin import AdminController
from .blogs import BlogController
from .categories import CategoryController
from .dashboard import DashboardController
from .home import HomeController
from .media import MediaController
from .tags import TagController

CONTROLLERS = {
    "HomeController": HomeController,
    "AdminController": AdminController,
    "BlogController": BlogController,
    "CategoryController": CategoryController,
    "TagController": TagController,
    "DashboardController": DashboardController,
    "MediaController": MediaController,
}

__all__ = [
    "CONTROLLERS",
    "AdminController",
    "BlogController",
    "CategoryController",
    "DashboardController",
    "HomeController",
    "MediaController",
    "TagController",
]
