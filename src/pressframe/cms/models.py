"""
CMS models: blogs, categories, tags, their join table, SEO metadata and users.

Every query entry point takes the request's connection explicitly:

    blog = Blog.find(request.db, 7)
    drafts = Blog.drafts(request.db).order_by("created_at", "desc").get()
"""

import re

from ..auth import verify_password as check_password_hash
from ..db.model import Model
from ..db.query import QueryBuilder


BLOG_STATUSES = ("draft", "published", "archived")


def slugify(text: str) -> str:
    """"Hello, World!" → "hello-world"."""
    return re.sub(r"[^A-Za-z0-9-]+", "-", str(text)).strip("- ").lower()


class Blog(Model):
    table = "blogs"
    fillable = ["category_id", "title", "slug", "content", "excerpt", "status", "published_at"]

    def is_published(self) -> bool:
        return self.status == "published"

    def is_draft(self) -> bool:
        return self.status == "draft"

    def generate_slug(self) -> str:
        return slugify(self.title or "")

    @classmethod
    def published(cls, db) -> QueryBuilder:
        return cls.where(db, "status", "published")

    @classmethod
    def drafts(cls, db) -> QueryBuilder:
        return cls.where(db, "status", "draft")


class Category(Model):
    table = "categories"
    fillable = ["name", "slug", "description", "parent_id"]

    def generate_slug(self) -> str:
        return slugify(self.name or "")

    @classmethod
    def parents(cls, db) -> QueryBuilder:
        """Top-level categories."""
        return cls.query(db).where_null("parent_id")

    @classmethod
    def children(cls, db, parent_id) -> QueryBuilder:
        return cls.where(db, "parent_id", parent_id)


class Tag(Model):
    table = "tags"
    timestamps = False
    fillable = ["name", "slug"]


class BlogTag(Model):
    table = "blog_tags"
    timestamps = False
    fillable = ["blog_id", "tag_id"]


class SeoMeta(Model):
    table = "seo_meta"
    timestamps = False
    fillable = [
        "entity_type",
        "entity_id",
        "meta_title",
        "meta_description",
        "meta_keywords",
        "og_title",
        "og_description",
        "og_image",
        "twitter_title",
        "twitter_description",
        "twitter_image",
        "canonical_url",
    ]

    @classmethod
    def for_entity(cls, db, entity_type: str, entity_id) -> QueryBuilder:
        return cls.where(db, "entity_type", entity_type).where("entity_id", entity_id)


class User(Model):
    table = "users"
    fillable = [
        "name",
        "email",
        "password_hash",
        "email_verified",
        "email_verification_token",
        "email_verification_sent_at",
    ]
    hidden = ["password_hash", "email_verification_token"]

    @classmethod
    def find_by_email(cls, db, email: str):
        return cls.where(db, "email", email).first()

    def verify_password(self, plain: str) -> bool:
        return check_password_hash(plain, self.password_hash)

    def is_admin(self) -> bool:
        return self.role == "admin"

    def is_email_verified(self) -> bool:
        return bool(self.email_verified)
