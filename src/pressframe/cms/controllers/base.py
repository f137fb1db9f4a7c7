"""
Shared plumbing for the content API controllers: unique slugs and the
SEO metadata row that hangs off blogs and categories.
"""

from typing import Any, Dict, Optional, Type

from ...db.model import Model
from ...http.controller import Controller
from ..models import SeoMeta, slugify


class ContentController(Controller):
    def unique_slug(self, model: Type[Model], text: str, exclude_id: Any = None) -> str:
        """
        slugify(text), suffixed -1, -2, ... until no other row of `model` has it.

        The row with primary key `exclude_id` does not count as a clash.
        """
        base = slugify(text)
        slug = base
        counter = 1
        while True:
            query = model.where(self.db, "slug", slug)
            if exclude_id is not None:
                query.where(model.primary_key, "!=", exclude_id)
            if not query.exists():
                return slug
            slug = f"{base}-{counter}"
            counter += 1

    def slug_taken(self, model: Type[Model], slug: str, exclude_id: Any = None) -> bool:
        query = model.where(self.db, "slug", slug)
        if exclude_id is not None:
            query.where(model.primary_key, "!=", exclude_id)
        return query.exists()

    def seo_meta(self, entity_type: str, entity_id: Any) -> Optional[Dict[str, Any]]:
        record = SeoMeta.for_entity(self.db, entity_type, entity_id).first()
        return record.to_dict() if record is not None else None

    def save_seo_meta(self, entity_type: str, entity_id: Any, data: Any) -> None:
        """Replace the entity's SEO row. Empty or non-dict data just removes it."""
        SeoMeta.for_entity(self.db, entity_type, entity_id).delete()
        if isinstance(data, dict) and data:
            attributes = dict(data, entity_type=entity_type, entity_id=entity_id)
            SeoMeta.create(self.db, attributes)

    def delete_seo_meta(self, entity_type: str, entity_id: Any) -> None:
        SeoMeta.for_entity(self.db, entity_type, entity_id).delete()
