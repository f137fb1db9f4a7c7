"""
=============================================================================
ACTIVE RECORD MODEL
=============================================================================

A Model instance is an attribute bag mapped onto one table row.

    class Blog(Model):
        table = "blogs"
        fillable = ["title", "slug", "content", "status"]

    blog = Blog.create(conn, {"title": "Hello", "slug": "hello", ...})
    blog.title = "Hello again"
    blog.save()                      # UPDATE blogs SET title = ? ... WHERE id = ?

    same = Blog.find(conn, blog.id)

=============================================================================
DIRTY TRACKING
=============================================================================

Every instance keeps an `original` snapshot next to its attributes. The
snapshot is taken when the model is built, when it is hydrated from a
row, and after a successful INSERT. save() on a persisted model only
writes the keys whose values differ from the snapshot:

    attributes  {"id": 1, "title": "B", "slug": "a"}
    original    {"id": 1, "title": "A", "slug": "a"}
    dirty       {"title": "B"}            → UPDATE ... SET title = ?

An empty diff means no UPDATE at all.

=============================================================================
"""

from typing import Any, ClassVar, Dict, List, Optional
import logging
import re

from .query import QueryBuilder, _MISSING, now_timestamp


logger = logging.getLogger(__name__)


class ModelNotFoundError(Exception):
    """find_or_fail() missed."""

    def __init__(self, model: str, key: Any):
        super().__init__(f"{model} not found.")
        self.model = model
        self.key = key


class MassAssignmentError(Exception):
    """A non-fillable attribute was passed to fill() on a model with strict_fillable."""

    def __init__(self, model: str, key: str):
        super().__init__(f"Add [{key}] to fillable property to allow mass assignment on [{model}].")
        self.model = model
        self.key = key


def diff_attributes(current: Dict[str, Any], original: Dict[str, Any]) -> Dict[str, Any]:
    """Keys of `current` that are new or changed relative to `original`."""
    return {
        key: value
        for key, value in current.items()
        if key not in original or original[key] != value
    }


def _snake_case(name: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


class Model:
    """
    Base class for table-backed models.

    Class attributes:
        table:       Table name (defaults to snake_case class name + "s")
        primary_key: Primary key column
        timestamps:  Maintain created_at / updated_at
        fillable:    Keys fill() accepts; empty means any key
        hidden:      Keys left out of to_dict()
        strict_fillable: Raise MassAssignmentError instead of skipping
                     non-fillable keys
    """

    table: ClassVar[Optional[str]] = None
    primary_key: ClassVar[str] = "id"
    timestamps: ClassVar[bool] = True
    fillable: ClassVar[List[str]] = []
    hidden: ClassVar[List[str]] = []
    strict_fillable: ClassVar[bool] = False

    def __init__(self, attributes: Optional[Dict[str, Any]] = None, db=None):
        object.__setattr__(self, "_attributes", {})
        object.__setattr__(self, "_original", {})
        object.__setattr__(self, "_db", db)
        self.fill(attributes or {})
        object.__setattr__(self, "_original", dict(self._attributes))

    @classmethod
    def get_table(cls) -> str:
        if cls.table:
            return cls.table
        return _snake_case(cls.__name__) + "s"

    # =========================================================================
    # ATTRIBUTES
    # =========================================================================

    def fill(self, attributes: Dict[str, Any]) -> "Model":
        """Merge attributes (last write wins), skipping keys outside `fillable`."""
        for key, value in attributes.items():
            if self.fillable and key not in self.fillable:
                if self.strict_fillable:
                    raise MassAssignmentError(type(self).__name__, key)
                logger.debug(f"{type(self).__name__}: ignoring non-fillable attribute '{key}'")
                continue
            self._attributes[key] = value
        return self

    def __getattr__(self, key: str) -> Any:
        # only reached when normal lookup fails
        if key.startswith("_"):
            raise AttributeError(key)
        return self._attributes.get(key)

    def __setattr__(self, key: str, value: Any) -> None:
        if key.startswith("_"):
            object.__setattr__(self, key, value)
        else:
            self._attributes[key] = value

    def __getitem__(self, key: str) -> Any:
        return self._attributes.get(key)

    def __contains__(self, key: str) -> bool:
        return key in self._attributes

    def get_attribute(self, key: str, default: Any = None) -> Any:
        return self._attributes.get(key, default)

    @property
    def attributes(self) -> Dict[str, Any]:
        return dict(self._attributes)

    @property
    def original(self) -> Dict[str, Any]:
        return dict(self._original)

    def get_key(self) -> Any:
        return self._attributes.get(self.primary_key)

    @property
    def exists(self) -> bool:
        """True once the model has a primary key (inserted or loaded)."""
        return self.get_key() is not None

    def to_dict(self) -> Dict[str, Any]:
        return {key: value for key, value in self._attributes.items() if key not in self.hidden}

    def get_dirty(self) -> Dict[str, Any]:
        return diff_attributes(self._attributes, self._original)

    def is_dirty(self, key: Optional[str] = None) -> bool:
        dirty = self.get_dirty()
        return key in dirty if key is not None else bool(dirty)

    def sync_original(self) -> None:
        object.__setattr__(self, "_original", dict(self._attributes))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Model):
            return NotImplemented
        return type(self) is type(other) and self._attributes == other._attributes

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.primary_key}={self.get_key()!r}>"

    # =========================================================================
    # QUERY ENTRY POINTS
    # =========================================================================

    @classmethod
    def query(cls, db) -> QueryBuilder:
        return QueryBuilder(cls.get_table(), db, cls)

    @classmethod
    def all(cls, db) -> List["Model"]:
        return cls.query(db).get()

    @classmethod
    def find(cls, db, key: Any) -> Optional["Model"]:
        if key is None:
            return None
        return cls.query(db).where(cls.primary_key, key).first()

    @classmethod
    def find_or_fail(cls, db, key: Any) -> "Model":
        record = cls.find(db, key)
        if record is None:
            raise ModelNotFoundError(cls.__name__, key)
        return record

    @classmethod
    def where(cls, db, column: str, operator: Any = _MISSING, value: Any = _MISSING) -> QueryBuilder:
        return cls.query(db).where(column, operator, value)

    @classmethod
    def new_from_builder(cls, row: Dict[str, Any], db=None) -> "Model":
        """Hydrate a row. Bypasses `fillable`: the row is trusted."""
        model = cls(db=db)
        model._attributes.update(row)
        model.sync_original()
        return model

    # =========================================================================
    # PERSISTENCE
    # =========================================================================

    def _connection(self):
        if self._db is None:
            raise RuntimeError(f"{type(self).__name__} is not bound to a database connection")
        return self._db

    def bind(self, db) -> "Model":
        object.__setattr__(self, "_db", db)
        return self

    def save(self) -> bool:
        """
        INSERT when there is no primary key, otherwise UPDATE the dirty keys.

        Returns False only when an INSERT produced no id.
        """
        db = self._connection()
        now = now_timestamp()

        if self.get_key() is None:
            if self.timestamps:
                self._attributes["created_at"] = now
                self._attributes["updated_at"] = now

            new_id = QueryBuilder(self.get_table(), db).insert(self._attributes)
            if not new_id:
                return False

            self._attributes[self.primary_key] = new_id
            self.sync_original()
            return True

        changed = self.get_dirty()
        if not changed:
            return True

        if self.timestamps:
            self._attributes["updated_at"] = now
            changed["updated_at"] = now

        QueryBuilder(self.get_table(), db).where(self.primary_key, self.get_key()).update(changed)
        self.sync_original()
        return True

    @classmethod
    def create(cls, db, attributes: Dict[str, Any]) -> "Model":
        """
        Build and save in one step.

        Returns the instance even if the INSERT failed; check `exists`.
        """
        instance = cls(attributes, db=db)
        if not instance.save():
            logger.warning(f"{cls.__name__}.create() did not persist the record")
        return instance

    def update(self, attributes: Dict[str, Any]) -> bool:
        self.fill(attributes)
        return self.save()

    def delete(self) -> bool:
        if self.get_key() is None:
            return False
        return QueryBuilder(self.get_table(), self._connection()).where(
            self.primary_key, self.get_key()
        ).delete()
