"""Tag management API."""

from http import HTTPStatus
from typing import Any, Dict
import logging

from ...http.controller import ValidationError
from ...http.request import Request
from ...http.response import Response
from ..models import BlogTag, Tag
from .base import ContentController


logger = logging.getLogger(__name__)


class TagController(ContentController):
    def index(self, request: Request) -> Response:
        tags = Tag.all(self.db)
        if self.flag(self.query("with_count")):
            return self.success([self.enrich(tag) for tag in tags])
        return self.success([tag.to_dict() for tag in tags])

    def show(self, request: Request, id: str) -> Response:
        tag = Tag.find(self.db, id)
        if tag is None:
            return self.error("Tag not found", HTTPStatus.NOT_FOUND)
        return self.success(self.enrich(tag))

    def store(self, request: Request) -> Response:
        try:
            data = self.validate(self.only(["name", "slug"]))
        except ValidationError as e:
            return self.error(e.message)

        data["slug"] = self.unique_slug(Tag, data.get("slug") or data["name"])
        tag = Tag.create(self.db, data)
        return self.success(self.enrich(tag), HTTPStatus.CREATED)

    def update(self, request: Request, id: str) -> Response:
        tag = Tag.find(self.db, id)
        if tag is None:
            return self.error("Tag not found", HTTPStatus.NOT_FOUND)

        try:
            data = self.validate(self.only(["name", "slug"]), exclude_id=tag.id)
        except ValidationError as e:
            return self.error(e.message)

        if data.get("slug"):
            if data["slug"] != tag.slug:
                data["slug"] = self.unique_slug(Tag, data["slug"], tag.id)
        else:
            data.pop("slug", None)
            if data.get("name") and data["name"] != tag.name:
                data["slug"] = self.unique_slug(Tag, data["name"], tag.id)

        tag.update(data)
        return self.success(self.enrich(tag))

    def destroy(self, request: Request, id: str) -> Response:
        tag = Tag.find(self.db, id)
        if tag is None:
            return self.error("Tag not found", HTTPStatus.NOT_FOUND)

        with self.db.transaction():
            BlogTag.where(self.db, "tag_id", tag.id).delete()
            tag.delete()
        return self.success()

    def bulk_delete(self, request: Request) -> Response:
        ids = self.int_list(self.input("ids"))
        if not ids:
            return self.error("No tag IDs provided")

        with self.db.transaction():
            BlogTag.query(self.db).where_in("tag_id", ids).delete()
            Tag.query(self.db).where_in("id", ids).delete()

        logger.info(f"Bulk deleted {len(ids)} tag(s)")
        return self.success({"affected_count": len(ids)})

    def search(self, request: Request) -> Response:
        term = self.query("q", "")
        limit = self.clamp_int(self.query("limit"), 10, 1, 50)
        if not term:
            return self.success([])

        tags = Tag.where(self.db, "name", "LIKE", f"%{term}%").order_by("name").limit(limit).get()
        return self.success([tag.to_dict() for tag in tags])

    # =========================================================================
    # HELPERS
    # =========================================================================

    def validate(self, data: Dict[str, Any], exclude_id: Any = None) -> Dict[str, Any]:
        self.require(data, {"name": "Name is required"})

        if data.get("slug") and self.slug_taken(Tag, data["slug"], exclude_id):
            raise ValidationError("Slug already exists")

        query = Tag.where(self.db, "name", data["name"])
        if exclude_id is not None:
            query.where("id", "!=", exclude_id)
        if query.exists():
            raise ValidationError("Tag name already exists")

        return data

    def enrich(self, tag: Tag) -> Dict[str, Any]:
        result = tag.to_dict()
        result["blog_count"] = BlogTag.where(self.db, "tag_id", tag.id).count()
        return result
