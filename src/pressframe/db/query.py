"""
=============================================================================
QUERY BUILDER
=============================================================================

Fluent construction of parameterized SELECT / INSERT / UPDATE / DELETE
statements.

    posts = (QueryBuilder("blogs", conn)
        .where("status", "published")
        .where("views", ">", 100)
        .or_where("featured", 1)
        .order_by("created_at", "desc")
        .limit(10)
        .get())

    SELECT * FROM "blogs"
        WHERE "status" = ? AND "views" > ? OR "featured" = ?
        ORDER BY "created_at" DESC LIMIT 10

    bindings: ["published", 100, 1]

=============================================================================
BINDING INVARIANT
=============================================================================

Values never appear in the SQL text. Every predicate that carries a value
appends it to `bindings` at the moment the predicate is added, so the Nth
binding always belongs to the Nth `?` in the compiled statement:

    where("a", 1)          →  "a" = ?      bindings [1]
    where_in("b", [2, 3])  →  "b" IN (?, ?) bindings [1, 2, 3]
    where_null("c")        →  "c" IS NULL  bindings [1, 2, 3]

Identifiers are quoted by the connection's dialect and operators are
checked against a whitelist, so neither can smuggle SQL in either.

=============================================================================
MASS MUTATION GUARD
=============================================================================

update() and delete() refuse to run without at least one WHERE predicate.
The check happens before any SQL is built, so nothing reaches the database.

=============================================================================
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple, Type, Union
import logging
import math

from .pagination import LengthAwarePage, SimplePage, build_links


logger = logging.getLogger(__name__)

OPERATORS = frozenset({"=", "!=", "<>", "<", "<=", ">", ">=", "LIKE", "NOT LIKE"})

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

# LIMIT placeholder for OFFSET-only queries (sqlite and mysql need a LIMIT)
_NO_LIMIT = 9223372036854775807

_MISSING = object()


class UnsafeMutationError(Exception):
    """UPDATE or DELETE attempted without a WHERE clause."""


def now_timestamp() -> str:
    return datetime.now().strftime(TIMESTAMP_FORMAT)


@dataclass
class WhereClause:
    column: str
    operator: str
    boolean: str = "AND"
    kind: str = "basic"   # basic | null | not_null | in | any
    size: int = 1         # number of placeholders (for IN / any)
    columns: Tuple[str, ...] = ()


class QueryBuilder:
    """
    Builds and runs one query against one table.

    A builder is single-use: paginate() and first() set limit/offset on it,
    so build a fresh one for each query.
    """

    def __init__(self, table: str, db=None, model: Optional[Type] = None):
        """
        Args:
            table: Table name
            db: Connection to run against (None only for to_sql())
            model: Model class; rows are hydrated into it and its
                   `timestamps` flag drives created_at/updated_at
        """
        self.table = table
        self._db = db
        self._model = model
        self._columns: List[str] = ["*"]
        self._wheres: List[WhereClause] = []
        self._bindings: List[Any] = []
        self._orders: List[Tuple[str, str]] = []
        self._limit: Optional[int] = None
        self._offset: Optional[int] = None

    # =========================================================================
    # CLAUSES
    # =========================================================================

    def select(self, *columns: Union[str, Sequence[str]]) -> "QueryBuilder":
        flat: List[str] = []
        for column in columns:
            if isinstance(column, (list, tuple)):
                flat.extend(column)
            else:
                flat.append(column)
        self._columns = flat or ["*"]
        return self

    def where(self, column: str, operator: Any = _MISSING, value: Any = _MISSING) -> "QueryBuilder":
        """
        Add an AND predicate.

            where("status", "draft")          # status = ?
            where("views", ">=", 10)          # views >= ?
        """
        return self._add_where(column, operator, value, "AND")

    def or_where(self, column: str, operator: Any = _MISSING, value: Any = _MISSING) -> "QueryBuilder":
        return self._add_where(column, operator, value, "OR")

    def _add_where(self, column: str, operator: Any, value: Any, boolean: str) -> "QueryBuilder":
        if operator is _MISSING:
            raise TypeError("where() needs a value")
        if value is _MISSING:
            operator, value = "=", operator

        operator = str(operator).upper()
        if operator not in OPERATORS:
            raise ValueError(f"Unsupported operator: {operator}")

        self._wheres.append(WhereClause(column, operator, boolean))
        self._bindings.append(value)
        return self

    def where_null(self, column: str) -> "QueryBuilder":
        self._wheres.append(WhereClause(column, "IS NULL", kind="null", size=0))
        return self

    def where_not_null(self, column: str) -> "QueryBuilder":
        self._wheres.append(WhereClause(column, "IS NOT NULL", kind="not_null", size=0))
        return self

    def where_any(self, columns: Sequence[str], operator: str, value: Any) -> "QueryBuilder":
        """
        AND a parenthesized OR over several columns, all compared to one value.

            where_any(["title", "content"], "LIKE", "%py%")
            # ("title" LIKE ? OR "content" LIKE ?)   bindings ["%py%", "%py%"]
        """
        operator = str(operator).upper()
        if operator not in OPERATORS:
            raise ValueError(f"Unsupported operator: {operator}")
        columns = tuple(columns)
        if not columns:
            raise ValueError("where_any() needs at least one column")

        self._wheres.append(WhereClause(columns[0], operator, kind="any", size=len(columns), columns=columns))
        self._bindings.extend([value] * len(columns))
        return self

    def where_in(self, column: str, values: Sequence[Any]) -> "QueryBuilder":
        values = list(values)
        self._wheres.append(WhereClause(column, "IN", kind="in", size=len(values)))
        self._bindings.extend(values)
        return self

    def order_by(self, column: str, direction: str = "asc") -> "QueryBuilder":
        direction = direction.upper()
        if direction not in ("ASC", "DESC"):
            raise ValueError(f"Invalid sort direction: {direction}")
        self._orders.append((column, direction))
        return self

    def limit(self, limit: int) -> "QueryBuilder":
        self._limit = int(limit)
        return self

    def offset(self, offset: int) -> "QueryBuilder":
        self._offset = int(offset)
        return self

    @property
    def bindings(self) -> Tuple[Any, ...]:
        return tuple(self._bindings)

    # =========================================================================
    # COMPILATION
    # =========================================================================

    def _quote(self, name: str) -> str:
        if self._db is not None:
            return self._db.quote_identifier(name)
        if name == "*":
            return name
        return ".".join(part if part == "*" else f'"{part}"' for part in name.split("."))

    def _compile_wheres(self) -> str:
        if not self._wheres:
            return ""

        clauses = []
        for index, where in enumerate(self._wheres):
            prefix = "WHERE" if index == 0 else where.boolean
            column = self._quote(where.column)

            if where.kind in ("null", "not_null"):
                clauses.append(f"{prefix} {column} {where.operator}")
            elif where.kind == "in":
                if where.size == 0:
                    clauses.append(f"{prefix} 1 = 0")
                else:
                    placeholders = ", ".join("?" for _ in range(where.size))
                    clauses.append(f"{prefix} {column} IN ({placeholders})")
            elif where.kind == "any":
                alternatives = " OR ".join(f"{self._quote(name)} {where.operator} ?" for name in where.columns)
                clauses.append(f"{prefix} ({alternatives})")
            else:
                clauses.append(f"{prefix} {column} {where.operator} ?")

        return " " + " ".join(clauses)

    def _compile_orders(self) -> str:
        if not self._orders:
            return ""
        parts = [f"{self._quote(column)} {direction}" for column, direction in self._orders]
        return " ORDER BY " + ", ".join(parts)

    def to_sql(self) -> str:
        columns = ", ".join(self._quote(column) for column in self._columns)
        sql = f"SELECT {columns} FROM {self._quote(self.table)}"
        sql += self._compile_wheres()
        sql += self._compile_orders()

        if self._limit is not None:
            sql += f" LIMIT {self._limit}"
        elif self._offset is not None:
            sql += f" LIMIT {_NO_LIMIT}"

        if self._offset is not None:
            sql += f" OFFSET {self._offset}"

        return sql

    def _compile_count(self) -> str:
        return f"SELECT COUNT(*) AS count FROM {self._quote(self.table)}" + self._compile_wheres()

    # =========================================================================
    # READS
    # =========================================================================

    def _require_db(self):
        if self._db is None:
            raise RuntimeError(f"QueryBuilder for '{self.table}' has no database connection")
        return self._db

    def _hydrate(self, rows: List[Dict[str, Any]]) -> List[Any]:
        if self._model is None:
            return rows
        return [self._model.new_from_builder(row, self._db) for row in rows]

    def get(self) -> List[Any]:
        rows = self._require_db().fetch_all(self.to_sql(), self._bindings)
        return self._hydrate(rows)

    def first(self) -> Optional[Any]:
        results = self.limit(1).get()
        return results[0] if results else None

    def count(self) -> int:
        row = self._require_db().fetch_one(self._compile_count(), self._bindings)
        return int(row["count"]) if row else 0

    def exists(self) -> bool:
        return self.count() > 0

    # =========================================================================
    # PAGINATION
    # =========================================================================

    @staticmethod
    def _resolve_page(page: Optional[int], page_name: str, request) -> int:
        if page is None:
            raw = request.query(page_name, 1) if request is not None else 1
            try:
                page = int(raw)
            except (TypeError, ValueError):
                page = 1
        return max(1, int(page))

    def paginate(
        self,
        per_page: int = 15,
        page: Optional[int] = None,
        page_name: str = "page",
        request=None,
    ) -> LengthAwarePage:
        """
        Fetch one page plus the metadata needed to render pagination.

        When `page` is None it is read from `request.query(page_name)`.
        Runs a COUNT with the same WHERE first, then the limited SELECT.

        Example (47 rows, per_page=10, page=5):
            from_=41, to=47, last_page=5, prev_page=4, next_page=None
        """
        page = self._resolve_page(page, page_name, request)
        offset = (page - 1) * per_page

        total = self.count()
        items = self.limit(per_page).offset(offset).get()

        last_page = math.ceil(total / per_page) if per_page else 0
        path = request.path if request is not None else ""
        query = request.query() if request is not None else {}

        return LengthAwarePage(
            data=items,
            current_page=page,
            per_page=per_page,
            total=total,
            last_page=last_page,
            from_=offset + 1 if total > 0 else 0,
            to=min(offset + per_page, total),
            has_more_pages=page < last_page,
            prev_page=page - 1 if page > 1 else None,
            next_page=page + 1 if page < last_page else None,
            path=path,
            links=build_links(page, last_page, path, query, page_name),
        )

    def simple_paginate(
        self,
        per_page: int = 15,
        page: Optional[int] = None,
        page_name: str = "page",
        request=None,
    ) -> SimplePage:
        """Like paginate(), without the COUNT: fetches one extra row to detect a next page."""
        page = self._resolve_page(page, page_name, request)
        offset = (page - 1) * per_page

        items = self.limit(per_page + 1).offset(offset).get()
        has_more = len(items) > per_page
        if has_more:
            items = items[:per_page]

        return SimplePage(
            data=items,
            current_page=page,
            per_page=per_page,
            from_=offset + 1 if items else 0,
            to=offset + len(items),
            has_more_pages=has_more,
            prev_page=page - 1 if page > 1 else None,
            next_page=page + 1 if has_more else None,
            path=request.path if request is not None else "",
        )

    # =========================================================================
    # WRITES
    # =========================================================================

    @property
    def _timestamps(self) -> bool:
        return bool(self._model is not None and getattr(self._model, "timestamps", False))

    def insert(self, data: Dict[str, Any]) -> Optional[int]:
        """Insert one row. Returns the new primary key, or None."""
        data = dict(data)
        if self._timestamps:
            now = now_timestamp()
            data["created_at"] = now
            data["updated_at"] = now
        if not data:
            logger.warning(f"Refusing INSERT into {self.table} with no columns")
            return None

        columns = ", ".join(self._quote(column) for column in data)
        placeholders = ", ".join("?" for _ in data)
        sql = f"INSERT INTO {self._quote(self.table)} ({columns}) VALUES ({placeholders})"

        return self._require_db().insert(sql, list(data.values()))

    def update(self, data: Dict[str, Any]) -> bool:
        """
        Update matching rows. SET bindings come before the WHERE bindings.
        Returns False without touching the database when `data` is empty.

        Raises:
            UnsafeMutationError: If no WHERE predicate was added
        """
        if not self._wheres:
            raise UnsafeMutationError(
                "Update operation requires a WHERE clause to prevent mass updates."
            )

        if not data:
            return False

        data = dict(data)
        if self._timestamps:
            data["updated_at"] = now_timestamp()

        assignments = ", ".join(f"{self._quote(column)} = ?" for column in data)
        sql = f"UPDATE {self._quote(self.table)} SET {assignments}" + self._compile_wheres()

        self._require_db().execute(sql, list(data.values()) + self._bindings)
        return True

    def delete(self) -> bool:
        """
        Delete matching rows.

        Raises:
            UnsafeMutationError: If no WHERE predicate was added
        """
        if not self._wheres:
            raise UnsafeMutationError(
                "Delete operation requires a WHERE clause to prevent mass deletion."
            )

        sql = f"DELETE FROM {self._quote(self.table)}" + self._compile_wheres()
        self._require_db().execute(sql, self._bindings)
        return True
