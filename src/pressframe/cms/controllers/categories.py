"""
Category management API.

Categories form a tree through parent_id. The hierarchy endpoint (and the
index with ?hierarchical=1) nests each category under its parent:

    [{"id": 1, "name": "Tech", "children": [
        {"id": 2, "name": "Python", "children": []}
    ]}]
"""

from http import HTTPStatus
from typing import Any, Dict, List
import logging

from ...http.controller import ValidationError
from ...http.request import Request
from ...http.response import Response
from ..models import Blog, Category
from .base import ContentController


logger = logging.getLogger(__name__)

FIELDS = ["name", "slug", "description", "parent_id"]


class CategoryController(ContentController):
    def index(self, request: Request) -> Response:
        if self.flag(self.query("hierarchical")):
            return self.success(self.tree())
        return self.success([self.enrich(category) for category in Category.all(self.db)])

    def hierarchy(self, request: Request) -> Response:
        return self.success(self.tree())

    def show(self, request: Request, id: str) -> Response:
        category = Category.find(self.db, id)
        if category is None:
            return self.error("Category not found", HTTPStatus.NOT_FOUND)
        return self.success(self.enrich(category))

    def store(self, request: Request) -> Response:
        try:
            data = self.validate(self.only(FIELDS))
        except ValidationError as e:
            return self.error(e.message)

        data["slug"] = self.unique_slug(Category, data.get("slug") or data["name"])

        with self.db.transaction():
            category = Category.create(self.db, data)
            if self.has("seo_meta"):
                self.save_seo_meta("category", category.id, self.input("seo_meta"))

        return self.success(self.enrich(category), HTTPStatus.CREATED)

    def update(self, request: Request, id: str) -> Response:
        category = Category.find(self.db, id)
        if category is None:
            return self.error("Category not found", HTTPStatus.NOT_FOUND)

        try:
            data = self.validate(self.only(FIELDS), exclude_id=category.id)
        except ValidationError as e:
            return self.error(e.message)

        if data.get("slug"):
            if data["slug"] != category.slug:
                data["slug"] = self.unique_slug(Category, data["slug"], category.id)
        else:
            data.pop("slug", None)
            if data.get("name") and data["name"] != category.name:
                data["slug"] = self.unique_slug(Category, data["name"], category.id)

        with self.db.transaction():
            category.update(data)
            if self.has("seo_meta"):
                self.save_seo_meta("category", category.id, self.input("seo_meta"))

        return self.success(self.enrich(category))

    def destroy(self, request: Request, id: str) -> Response:
        category = Category.find(self.db, id)
        if category is None:
            return self.error("Category not found", HTTPStatus.NOT_FOUND)

        if Blog.where(self.db, "category_id", category.id).exists():
            return self.error(
                "Cannot delete category with existing blogs. "
                "Please reassign or delete the blogs first."
            )
        if Category.children(self.db, category.id).exists():
            return self.error(
                "Cannot delete category with child categories. "
                "Please delete child categories first."
            )

        with self.db.transaction():
            self.delete_seo_meta("category", category.id)
            category.delete()

        logger.info(f"Deleted category {category.id}")
        return self.success()

    # =========================================================================
    # HELPERS
    # =========================================================================

    def validate(self, data: Dict[str, Any], exclude_id: Any = None) -> Dict[str, Any]:
        self.require(data, {"name": "Name is required"})

        if "parent_id" in data and not data["parent_id"]:
            data["parent_id"] = None

        parent_id = data.get("parent_id")
        if parent_id:
            if exclude_id is not None and str(parent_id) == str(exclude_id):
                raise ValidationError("Category cannot be its own parent")
            if Category.find(self.db, parent_id) is None:
                raise ValidationError("Invalid parent category")
            if exclude_id is not None and self.creates_cycle(exclude_id, parent_id):
                raise ValidationError("This would create a circular reference")

        if data.get("slug") and self.slug_taken(Category, data["slug"], exclude_id):
            raise ValidationError("Slug already exists")

        return data

    def creates_cycle(self, category_id: Any, parent_id: Any) -> bool:
        """True when `category_id` is `parent_id` or one of its ancestors."""
        seen = set()
        current = parent_id
        while current and str(current) not in seen:
            if str(current) == str(category_id):
                return True
            seen.add(str(current))
            parent = Category.find(self.db, current)
            current = parent.parent_id if parent is not None else None
        return False

    def tree(self) -> List[Dict[str, Any]]:
        """Every category, nested under its parent. Orphans are left out."""
        by_id: Dict[Any, Dict[str, Any]] = {}
        for category in Category.all(self.db):
            node = self.enrich(category)
            node["children"] = []
            by_id[category.id] = node

        roots = []
        for node in by_id.values():
            parent_id = node.get("parent_id")
            if not parent_id:
                roots.append(node)
            elif parent_id in by_id:
                by_id[parent_id]["children"].append(node)
        return roots

    def enrich(self, category: Category) -> Dict[str, Any]:
        result = category.to_dict()
        result["blog_count"] = Blog.where(self.db, "category_id", category.id).count()

        parent = Category.find(self.db, category.parent_id) if category.parent_id else None
        result["parent"] = parent.to_dict() if parent is not None else None

        result["child_count"] = Category.children(self.db, category.id).count()
        result["seo_meta"] = self.seo_meta("category", category.id)
        return result
