"""
=============================================================================
CMS ROUTE TABLES
=============================================================================

    web_routes(router, admin_slug)

        GET       /                              home
        GET       /admin/<slug>                  admin.index
        GET|POST  /admin/<slug>/login            admin.login         [throttle:10,60]
        GET       /admin/<slug>/logout           admin.logout
        GET       /admin/<slug>/dashboard        admin.dashboard     [admin]

        whole group: [security_headers]

    api_routes(router)

        /api/v1/dashboard/{stats,analytics,activity}, /api/v1/search
        /api/v1/blogs       index store bulk show update destroy
        /api/v1/categories  index store hierarchy show update destroy
        /api/v1/tags        index store search bulk_delete show update destroy
        /api/v1/media       upload upload_multiple list delete

        whole group: [admin, security_headers]

Static paths (bulk, hierarchy, search) are matched before {id}, and {id}
only matches digits.

=============================================================================
"""

from functools import partial
from typing import Callable

from ..http.router import Router


ID = r"{id:\d+}"
# stored upload names: no path separators, no leading dot
FILENAME = r"{filename:[A-Za-z0-9][A-Za-z0-9._-]*}"


def web_routes(router: Router, admin_slug: str = "admin") -> None:
    router.get("/", "HomeController@index").name("home")

    def admin(router: Router) -> None:
        router.get("/", "AdminController@index").name("index")
        router.match(["GET", "POST"], "/login", "AdminController@login").middleware(
            "throttle:10,60"
        ).name("login")
        router.get("/logout", "AdminController@logout").name("logout")
        router.get("/dashboard", "AdminController@dashboard").middleware(
            ["admin", "security_headers"]
        ).name("dashboard")

    router.group(
        {"prefix": f"admin/{admin_slug}", "middleware": "security_headers", "name": "admin"},
        admin,
    )


def api_routes(router: Router) -> None:
    def api(router: Router) -> None:
        router.get("/dashboard/stats", "DashboardController@stats").name("dashboard.stats")
        router.get("/dashboard/analytics", "DashboardController@analytics").name("dashboard.analytics")
        router.get("/dashboard/activity", "DashboardController@activity").name("dashboard.activity")
        router.get("/search", "DashboardController@search").name("search")

        router.group({"controller": "BlogController", "prefix": "blogs", "name": "blogs"}, blogs)
        router.group({"controller": "CategoryController", "prefix": "categories", "name": "categories"}, categories)
        router.group({"controller": "TagController", "prefix": "tags", "name": "tags"}, tags)
        router.group({"controller": "MediaController", "prefix": "media", "name": "media"}, media)

    def blogs(router: Router) -> None:
        router.get("/", "index").name("index")
        router.post("/", "store").name("store")
        router.post("/bulk", "bulk").name("bulk")
        router.get(ID, "show").name("show")
        router.put(ID, "update").name("update")
        router.delete(ID, "destroy").name("destroy")

    def categories(router: Router) -> None:
        router.get("/", "index").name("index")
        router.post("/", "store").name("store")
        router.get("/hierarchy", "hierarchy").name("hierarchy")
        router.get(ID, "show").name("show")
        router.put(ID, "update").name("update")
        router.delete(ID, "destroy").name("destroy")

    def tags(router: Router) -> None:
        router.get("/", "index").name("index")
        router.post("/", "store").name("store")
        router.get("/search", "search").name("search")
        router.delete("/bulk", "bulk_delete").name("bulk_delete")
        router.get(ID, "show").name("show")
        router.put(ID, "update").name("update")
        router.delete(ID, "destroy").name("destroy")

    def media(router: Router) -> None:
        router.post("/upload", "upload").name("upload")
        router.post("/upload/multiple", "upload_multiple").name("upload_multiple")
        router.get("/list", "list").name("list")
        router.delete(FILENAME, "delete").name("delete")

    router.group({"prefix": "api/v1", "middleware": ["admin", "security_headers"], "name": "api"}, api)


def cms_routes(admin_slug: str = "admin") -> Callable[[Router], None]:
    """A single loader registering both tables, for App.load_routes()."""
    web = partial(web_routes, admin_slug=admin_slug)

    def load(router: Router) -> None:
        web(router)
        api_routes(router)

    return load
