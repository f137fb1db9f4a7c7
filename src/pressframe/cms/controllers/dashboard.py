"""
=============================================================================
DASHBOARD API
=============================================================================

Read-only aggregates for the admin dashboard:

    GET /api/v1/dashboard/stats       counts, recent blogs, popular categories,
                                      blogs created per month (last 12 months)
    GET /api/v1/dashboard/analytics   per-day creation and status, category
                                      share, top tags, content length (?days=7..90)
    GET /api/v1/dashboard/activity    latest created/updated blogs (?limit=5..50)
    GET /api/v1/search                ?q=...&type=all|blogs|categories|tags

Date bucketing (per month, per day) happens in Python over the raw
created_at values, so the SQL stays the same on SQLite and MySQL.

=============================================================================
"""

from collections import Counter
from datetime import datetime, timedelta
from typing import Any, Dict, List

from ...db.query import QueryBuilder, TIMESTAMP_FORMAT
from ...http.controller import Controller
from ...http.request import Request
from ...http.response import Response
from ..models import Category, Tag


SEARCH_TYPES = ("blogs", "categories", "tags")


def _since(days: int) -> str:
    return (datetime.now() - timedelta(days=days)).strftime(TIMESTAMP_FORMAT)


def _bucket(value: Any, size: int) -> str:
    """"2024-03-15 10:00:00" → "2024-03" (size 7) or "2024-03-15" (size 10)."""
    return str(value)[:size]


class DashboardController(Controller):
    def stats(self, request: Request) -> Response:
        totals = self.db.fetch_one(
            "SELECT COUNT(*) AS total, "
            "SUM(CASE WHEN status = 'published' THEN 1 ELSE 0 END) AS published, "
            "SUM(CASE WHEN status = 'draft' THEN 1 ELSE 0 END) AS draft, "
            "SUM(CASE WHEN status = 'archived' THEN 1 ELSE 0 END) AS archived "
            "FROM blogs"
        ) or {}
        blogs = {key: int(totals.get(key) or 0) for key in ("total", "published", "draft", "archived")}

        recent_blogs = (QueryBuilder("blogs", self.db)
            .select("id", "title", "status", "created_at")
            .order_by("created_at", "desc")
            .order_by("id", "desc")
            .limit(5)
            .get())

        popular_categories = self.db.fetch_all(
            "SELECT c.id, c.name, COUNT(b.id) AS blog_count "
            "FROM categories c LEFT JOIN blogs b ON c.id = b.category_id "
            "GROUP BY c.id, c.name "
            "ORDER BY blog_count DESC, c.id ASC LIMIT 5"
        )

        created = QueryBuilder("blogs", self.db).select("created_at").where("created_at", ">=", _since(365)).get()
        per_month = Counter(_bucket(row["created_at"], 7) for row in created)

        return self.success({
            "counts": {
                "blogs": blogs,
                "categories": Category.query(self.db).count(),
                "tags": Tag.query(self.db).count(),
            },
            "recent_blogs": recent_blogs,
            "popular_categories": popular_categories,
            "status_distribution": {
                "published": blogs["published"],
                "draft": blogs["draft"],
                "archived": blogs["archived"],
            },
            "monthly_stats": [{"month": month, "count": count} for month, count in sorted(per_month.items())],
        })

    def analytics(self, request: Request) -> Response:
        days = self.clamp_int(self.query("days"), 30, 7, 90)

        rows = (QueryBuilder("blogs", self.db)
            .select("created_at", "status")
            .where("created_at", ">=", _since(days))
            .get())
        per_day = Counter(_bucket(row["created_at"], 10) for row in rows)
        per_day_status = Counter((_bucket(row["created_at"], 10), row["status"]) for row in rows)

        return self.success({
            "content_creation": [
                {"date": date, "blogs_created": count} for date, count in sorted(per_day.items())
            ],
            "status_over_time": [
                {"date": date, "status": status, "count": count}
                for (date, status), count in sorted(per_day_status.items())
            ],
            "category_distribution": self._category_distribution(),
            "top_tags": self.db.fetch_all(
                "SELECT t.name, COUNT(bt.blog_id) AS usage_count "
                "FROM tags t INNER JOIN blog_tags bt ON t.id = bt.tag_id "
                "GROUP BY t.id, t.name "
                "ORDER BY usage_count DESC, t.name ASC LIMIT 10"
            ),
            "content_metrics": self._content_metrics(),
        })

    def activity(self, request: Request) -> Response:
        limit = self.clamp_int(self.query("limit"), 20, 5, 50)
        activities = self.db.fetch_all(
            "SELECT 'blog' AS type, id, title AS name, status, created_at, updated_at, "
            "CASE WHEN created_at = updated_at THEN 'created' ELSE 'updated' END AS action "
            f"FROM blogs ORDER BY updated_at DESC, id DESC LIMIT {limit}"
        )
        return self.success(activities)

    def search(self, request: Request) -> Response:
        term = self.query("q", "")
        kind = self.query("type", "all")
        limit = self.clamp_int(self.query("limit"), 10, 5, 50)

        if not term:
            return self.success({name: [] for name in SEARCH_TYPES})

        like = f"%{term}%"
        results: Dict[str, List[Dict[str, Any]]] = {}

        if kind in ("all", "blogs"):
            results["blogs"] = self.db.fetch_all(
                "SELECT id, title, slug, status, created_at FROM blogs "
                "WHERE title LIKE ? OR content LIKE ? "
                "ORDER BY CASE WHEN title LIKE ? THEN 1 ELSE 2 END, created_at DESC "
                f"LIMIT {limit}",
                [like, like, like],
            )
        if kind in ("all", "categories"):
            results["categories"] = self.db.fetch_all(
                "SELECT id, name, slug, description FROM categories "
                "WHERE name LIKE ? OR description LIKE ? "
                "ORDER BY CASE WHEN name LIKE ? THEN 1 ELSE 2 END, name ASC "
                f"LIMIT {limit}",
                [like, like, like],
            )
        if kind in ("all", "tags"):
            results["tags"] = self.db.fetch_all(
                f"SELECT id, name, slug FROM tags WHERE name LIKE ? ORDER BY name ASC LIMIT {limit}",
                [like],
            )

        return self.success(results)

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _category_distribution(self) -> List[Dict[str, Any]]:
        total = QueryBuilder("blogs", self.db).count()
        rows = self.db.fetch_all(
            "SELECT c.name AS category, COUNT(b.id) AS blog_count "
            "FROM categories c LEFT JOIN blogs b ON c.id = b.category_id "
            "GROUP BY c.id, c.name "
            "HAVING COUNT(b.id) > 0 "
            "ORDER BY blog_count DESC, c.name ASC"
        )
        for row in rows:
            row["percentage"] = round(row["blog_count"] / total * 100, 2) if total else 0.0
        return rows

    def _content_metrics(self) -> Dict[str, int]:
        length = "LENGTH" if self.db.dialect_name == "sqlite" else "CHAR_LENGTH"
        row = self.db.fetch_one(
            f"SELECT AVG({length}(content)) AS avg_length, "
            f"MIN({length}(content)) AS min_length, "
            f"MAX({length}(content)) AS max_length "
            "FROM blogs WHERE status = 'published'"
        ) or {}
        return {
            "avg_length": round(float(row.get("avg_length") or 0)),
            "min_length": int(row.get("min_length") or 0),
            "max_length": int(row.get("max_length") or 0),
        }
