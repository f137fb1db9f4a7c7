"""
Server-rendered pages: the public home page and the admin login and
dashboard shells. Everything interpolated is HTML-escaped.
"""

from html import escape
from typing import Optional


def _layout(title: str, body: str, robots: str = "index, follow") -> str:
    return (
        "<!DOCTYPE html>\n"
        "<html lang=\"en\">\n"
        "<head>\n"
        "    <meta charset=\"utf-8\">\n"
        "    <meta name=\"viewport\" content=\"width=device-width, initial-scale=1\">\n"
        f"    <meta name=\"robots\" content=\"{escape(robots)}\">\n"
        f"    <title>{escape(title)}</title>\n"
        "</head>\n"
        "<body>\n"
        f"{body}\n"
        "</body>\n"
        "</html>\n"
    )


def home_page(app_name: str) -> str:
    return _layout(app_name, f"    <main id=\"app\"><h1>{escape(app_name)}</h1></main>")


def login_page(action: str, csrf_token: str, error: Optional[str] = None) -> str:
    alert = f"        <p class=\"error\" role=\"alert\">{escape(error)}</p>\n" if error else ""
    form = (
        "    <main>\n"
        "        <h1>Admin login</h1>\n"
        f"{alert}"
        f"        <form method=\"post\" action=\"{escape(action)}\">\n"
        f"            <input type=\"hidden\" name=\"csrf_token\" value=\"{escape(csrf_token)}\">\n"
        "            <label>Username <input type=\"text\" name=\"username\" autocomplete=\"username\"></label>\n"
        "            <label>Password <input type=\"password\" name=\"password\" autocomplete=\"current-password\"></label>\n"
        "            <button type=\"submit\">Log in</button>\n"
        "        </form>\n"
        "    </main>"
    )
    return _layout("Admin login", form, robots="noindex, nofollow")


def dashboard_page(app_name: str, api_base: str, logout_url: str) -> str:
    body = (
        f"    <div id=\"admin\" data-api=\"{escape(api_base)}\">\n"
        f"        <h1>{escape(app_name)} dashboard</h1>\n"
        f"        <a href=\"{escape(logout_url)}\">Log out</a>\n"
        "    </div>"
    )
    return _layout(f"{app_name} admin", body, robots="noindex, nofollow")
