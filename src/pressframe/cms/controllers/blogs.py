"""
Blog management API.

    GET    /api/v1/blogs          list (status, category_id, search, limit, page)
    POST   /api/v1/blogs          create, with optional tags and seo_meta
    POST   /api/v1/blogs/bulk     delete / publish / draft / archive by ids or "all"
    GET    /api/v1/blogs/{id}     one blog with category, tags and seo_meta
    PUT    /api/v1/blogs/{id}     update
    DELETE /api/v1/blogs/{id}     delete, with its tag links and seo_meta

Tags may be given as tag objects ({"id": 3} or {"name": "python"}), ids,
or names; unknown names are created on the fly.
"""

from http import HTTPStatus
from typing import Any, Dict, List
import logging

from ...db.query import now_timestamp
from ...http.controller import ValidationError
from ...http.request import Request
from ...http.response import Response
from ..models import BLOG_STATUSES, Blog, BlogTag, Category, SeoMeta, Tag, slugify
from .base import ContentController


logger = logging.getLogger(__name__)

FIELDS = ["category_id", "title", "slug", "content", "excerpt", "status"]

BULK_ACTIONS = {
    "publish": "published",
    "draft": "draft",
    "archive": "archived",
}


class BlogController(ContentController):
    # =========================================================================
    # ACTIONS
    # =========================================================================

    def index(self, request: Request) -> Response:
        limit = self.clamp_int(self.query("limit"), 10, 1, 50)
        status = self.query("status")
        category_id = self.query("category_id")
        search = self.query("search")

        query = Blog.query(self.db)
        if status in BLOG_STATUSES:
            query.where("status", status)
        if category_id:
            query.where("category_id", category_id)
        if search:
            query.where_any(["title", "content"], "LIKE", f"%{search}%")

        page = query.order_by("created_at", "desc").order_by("id", "desc").paginate(limit, request=request)

        result = page.to_dict()
        result["data"] = [self.enrich(blog) for blog in page.data]
        return self.success(result)

    def show(self, request: Request, id: str) -> Response:
        blog = Blog.find(self.db, id)
        if blog is None:
            return self.error("Blog not found", HTTPStatus.NOT_FOUND)
        return self.success(self.enrich(blog))

    def store(self, request: Request) -> Response:
        try:
            data = self.validate(self.only(FIELDS))
        except ValidationError as e:
            return self.error(e.message)

        data["slug"] = self.unique_slug(Blog, data.get("slug") or data["title"])
        if data.get("status") == "published":
            data["published_at"] = now_timestamp()

        with self.db.transaction():
            blog = Blog.create(self.db, data)
            if self.has("tags"):
                self.attach_tags(blog.id, self.input("tags"))
            if self.has("seo_meta"):
                self.save_seo_meta("blog", blog.id, self.input("seo_meta"))

        logger.info(f"Created blog {blog.id} ({blog.slug})")
        return self.success(self.enrich(blog), HTTPStatus.CREATED)

    def update(self, request: Request, id: str) -> Response:
        blog = Blog.find(self.db, id)
        if blog is None:
            return self.error("Blog not found", HTTPStatus.NOT_FOUND)

        try:
            data = self.validate(self.only(FIELDS), exclude_id=blog.id)
        except ValidationError as e:
            return self.error(e.message)

        if data.get("slug"):
            if data["slug"] != blog.slug:
                data["slug"] = self.unique_slug(Blog, data["slug"], blog.id)
        else:
            data.pop("slug", None)
            if data.get("title") and data["title"] != blog.title:
                data["slug"] = self.unique_slug(Blog, data["title"], blog.id)

        if data.get("status") == "published" and not blog.is_published():
            data["published_at"] = now_timestamp()

        with self.db.transaction():
            blog.update(data)
            if self.has("tags"):
                self.sync_tags(blog.id, self.input("tags"))
            if self.has("seo_meta"):
                self.save_seo_meta("blog", blog.id, self.input("seo_meta"))

        return self.success(self.enrich(blog))

    def destroy(self, request: Request, id: str) -> Response:
        blog = Blog.find(self.db, id)
        if blog is None:
            return self.error("Blog not found", HTTPStatus.NOT_FOUND)

        with self.db.transaction():
            BlogTag.where(self.db, "blog_id", blog.id).delete()
            self.delete_seo_meta("blog", blog.id)
            blog.delete()

        logger.info(f"Deleted blog {blog.id}")
        return self.success()

    def bulk(self, request: Request) -> Response:
        action = self.input("action")
        raw_ids = self.input("ids", "")

        is_all = raw_ids == "all"
        ids = [] if is_all else self.int_list(raw_ids)
        if not is_all and not ids:
            return self.error("No blog IDs provided")

        if action != "delete" and action not in BULK_ACTIONS:
            return self.error("Invalid action")

        with self.db.transaction():
            if action == "delete":
                self._bulk_delete(ids, is_all)
            else:
                self._bulk_status(BULK_ACTIONS[action], ids, is_all)

        logger.info(f"Bulk {action} on {'all blogs' if is_all else f'{len(ids)} blog(s)'}")
        return self.success({
            "action": action,
            "affected_count": "all" if is_all else len(ids),
        })

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _bulk_delete(self, ids: List[int], is_all: bool) -> None:
        if is_all:
            # the query builder refuses unconditional deletes; this one is wanted
            self.db.execute("DELETE FROM blog_tags")
            self.db.execute("DELETE FROM seo_meta WHERE entity_type = ?", ["blog"])
            self.db.execute("DELETE FROM blogs")
            return
        BlogTag.query(self.db).where_in("blog_id", ids).delete()
        SeoMeta.where(self.db, "entity_type", "blog").where_in("entity_id", ids).delete()
        Blog.query(self.db).where_in("id", ids).delete()

    def _bulk_status(self, status: str, ids: List[int], is_all: bool) -> None:
        now = now_timestamp()
        changes: Dict[str, Any] = {"status": status}
        if status == "published":
            changes["published_at"] = now

        if is_all:
            assignments = ", ".join(f"{self.db.quote_identifier(column)} = ?" for column in changes)
            self.db.execute(
                f"UPDATE blogs SET {assignments}, updated_at = ?",
                list(changes.values()) + [now],
            )
            return
        Blog.query(self.db).where_in("id", ids).update(changes)

    def validate(self, data: Dict[str, Any], exclude_id: Any = None) -> Dict[str, Any]:
        self.require(data, {
            "title": "Title is required",
            "content": "Content is required",
        })

        if data.get("status") and data["status"] not in BLOG_STATUSES:
            raise ValidationError("Invalid status. Must be: draft, published, or archived")

        if "category_id" in data and not data["category_id"]:
            data["category_id"] = None
        if data.get("category_id") and Category.find(self.db, data["category_id"]) is None:
            raise ValidationError("Invalid category")

        if data.get("slug") and self.slug_taken(Blog, data["slug"], exclude_id):
            raise ValidationError("Slug already exists")

        return data

    def enrich(self, blog: Blog) -> Dict[str, Any]:
        """The blog as a dict plus its category, tags and seo_meta."""
        result = blog.to_dict()

        category = Category.find(self.db, blog.category_id) if blog.category_id else None
        result["category"] = category.to_dict() if category is not None else None

        result["tags"] = self.db.fetch_all(
            "SELECT t.id, t.name, t.slug FROM tags t "
            "INNER JOIN blog_tags bt ON t.id = bt.tag_id "
            "WHERE bt.blog_id = ? ORDER BY t.name",
            [blog.id],
        )
        result["seo_meta"] = self.seo_meta("blog", blog.id)
        return result

    def _resolve_tag(self, item: Any):
        tag_id = None
        name = None
        if isinstance(item, dict):
            tag_id = item.get("id")
            name = item.get("name")
        elif isinstance(item, int) or (isinstance(item, str) and item.strip().isdigit()):
            tag_id = int(item)
        elif isinstance(item, str):
            name = item.strip()

        tag = Tag.find(self.db, tag_id) if tag_id else None
        if tag is None and name:
            slug = slugify(name)
            tag = Tag.where(self.db, "slug", slug).or_where("name", name).first()
            if tag is None:
                tag = Tag.create(self.db, {"name": name, "slug": slug})
        return tag

    def attach_tags(self, blog_id: Any, tags: Any) -> None:
        if isinstance(tags, str):
            tags = [name for name in tags.split(",") if name.strip()]
        if not isinstance(tags, list):
            return

        for item in tags:
            tag = self._resolve_tag(item)
            if tag is None:
                logger.debug(f"Skipping unresolvable tag {item!r} for blog {blog_id}")
                continue
            if not BlogTag.where(self.db, "blog_id", blog_id).where("tag_id", tag.id).exists():
                BlogTag.create(self.db, {"blog_id": blog_id, "tag_id": tag.id})

    def sync_tags(self, blog_id: Any, tags: Any) -> None:
        BlogTag.where(self.db, "blog_id", blog_id).delete()
        self.attach_tags(blog_id, tags)
