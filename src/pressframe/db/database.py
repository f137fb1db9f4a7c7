"""
=============================================================================
DATABASE HANDLE
=============================================================================

Owns the SQLAlchemy engine (and with it the connection pool) and hands out
one Connection per request.

=============================================================================
OWNERSHIP
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     CONNECTION LIFECYCLE                            │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   App start        Database(url)  ──►  Engine + QueuePool           │
    │                                                                      │
    │   Request in       database.connection()  ──►  Connection           │
    │                         │                                            │
    │                         ├── request.db = conn                        │
    │                         ├── QueryBuilder / Model use conn            │
    │                         ▼                                            │
    │   Request out      conn.close()  ──►  returned to the pool          │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

There is no module-level singleton. Whoever builds the App builds the
Database and passes it in; everything below the App receives the
Connection explicitly.

SQL handed to a Connection uses `?` placeholders. They are rewritten to
the driver's paramstyle before execution, so the query builder never has
to know which database it is talking to.

=============================================================================
"""

from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Sequence
import logging

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url


logger = logging.getLogger(__name__)


class Connection:
    """
    A checked-out database connection.

    Statements run in program order. Each one commits on its own unless
    it runs inside `transaction()`.
    """

    def __init__(self, conn):
        self._conn = conn
        self._transaction_depth = 0

    @property
    def dialect(self):
        return self._conn.dialect

    @property
    def dialect_name(self) -> str:
        return self._conn.dialect.name

    def quote_identifier(self, name: str) -> str:
        """Quote a column or table name, keeping `table.column` dotted."""
        if name == "*":
            return name
        preparer = self._conn.dialect.identifier_preparer
        return ".".join(
            part if part == "*" else preparer.quote_identifier(part)
            for part in name.split(".")
        )

    def _translate(self, sql: str) -> str:
        # qmark drivers (sqlite) take the SQL as written
        if self._conn.dialect.paramstyle in ("format", "pyformat"):
            return sql.replace("%", "%%").replace("?", "%s")
        return sql

    def _run(self, sql: str, bindings: Sequence[Any]):
        logger.debug(f"SQL: {sql} {list(bindings)}")
        return self._conn.exec_driver_sql(self._translate(sql), tuple(bindings))

    def _autocommit(self) -> None:
        if self._transaction_depth == 0:
            self._conn.commit()

    def execute(self, sql: str, bindings: Sequence[Any] = ()):
        """Run a statement and return the SQLAlchemy cursor result."""
        result = self._run(sql, bindings)
        self._autocommit()
        return result

    def insert(self, sql: str, bindings: Sequence[Any] = ()) -> Optional[int]:
        """Run an INSERT and return the new row id (None if the driver has none)."""
        result = self._run(sql, bindings)
        row_id = result.lastrowid
        self._autocommit()
        return row_id or None

    def fetch_all(self, sql: str, bindings: Sequence[Any] = ()) -> List[Dict[str, Any]]:
        result = self._run(sql, bindings)
        rows = [dict(row) for row in result.mappings().all()]
        self._autocommit()
        return rows

    def fetch_one(self, sql: str, bindings: Sequence[Any] = ()) -> Optional[Dict[str, Any]]:
        result = self._run(sql, bindings)
        row = result.mappings().first()
        self._autocommit()
        return dict(row) if row is not None else None

    @contextmanager
    def transaction(self) -> Iterator["Connection"]:
        """
        Group statements into one transaction.

        Commits when the block exits normally, rolls back and re-raises
        otherwise. Nested blocks join the outermost transaction.

            with conn.transaction():
                conn.execute("DELETE FROM blog_tags WHERE blog_id = ?", [7])
                conn.execute("DELETE FROM blogs WHERE id = ?", [7])
        """
        if self._transaction_depth == 0 and self._conn.in_transaction():
            # autobegun by a previous read; start from a clean slate
            self._conn.commit()

        self._transaction_depth += 1
        try:
            yield self
        except Exception:
            self._transaction_depth -= 1
            if self._transaction_depth == 0:
                self._conn.rollback()
            raise
        self._transaction_depth -= 1
        if self._transaction_depth == 0:
            self._conn.commit()

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> "Connection":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


class Database:
    """
    Engine wrapper. Build one per application.

        database = Database("mysql+pymysql://user:pw@localhost/blog")
        with database.connection() as conn:
            rows = conn.fetch_all("SELECT * FROM blogs")
    """

    def __init__(
        self,
        url: Optional[str] = None,
        pool_size: int = 5,
        echo: bool = False,
        engine: Optional[Engine] = None,
    ):
        if engine is None:
            if not url:
                raise ValueError("Database needs a URL or an engine")
            kwargs: Dict[str, Any] = {"echo": echo, "pool_pre_ping": True}
            if make_url(url).get_backend_name() != "sqlite":
                kwargs["pool_size"] = pool_size
            engine = create_engine(url, **kwargs)
        self.engine = engine
        logger.info(f"Database engine ready: {self.engine.url.render_as_string(hide_password=True)}")

    def connect(self) -> Connection:
        return Connection(self.engine.connect())

    @contextmanager
    def connection(self) -> Iterator[Connection]:
        conn = self.connect()
        try:
            yield conn
        finally:
            conn.close()

    def dispose(self) -> None:
        self.engine.dispose()
