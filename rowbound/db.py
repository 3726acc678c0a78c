"""Execution facade: DB (per-thread connections) and Tx (one pinned connection).

Example::

    db = DB.from_url("sqlite:////tmp/library.sqlite3")
    db.reset_model(Author, Book)
    with db.begin() as tx:
        tx.new_insert().model(Author(name="Frank Herbert")).exec()

Statements are sent through the DB-API cursor of the connection; driver
exceptions propagate unchanged. Transactions are opened with ``BEGIN`` on
the current thread's connection; nested ``begin()`` calls use
``SAVEPOINT savepoint_<level>``.
"""

from __future__ import annotations

import logging
import threading
import urllib.parse
from typing import Any, Callable, Optional

from .dialects import Dialect, get_dialect_for_scheme
from .errors import ConfigurationError, TransactionError
from .query import (
    CreateTableQuery,
    DeleteQuery,
    DropTableQuery,
    InsertQuery,
    SelectQuery,
    UpdateQuery,
)
from .scan import scan_all, scan_row
from .table.schema import SchemaRegistry, default_registry

logger = logging.getLogger("rowbound")


class _Executor:
    """Query constructors and scanning helpers shared by DB and Tx."""

    dialect: Dialect
    registry: SchemaRegistry

    def execute(self, sql: str, params: tuple = ()):
        raise NotImplementedError("Subclasses must implement `execute`")

    def can_run_concurrently(self) -> bool:
        """True when statements may run on other threads and see the same data."""
        return False

    def query(self, sql: str, params: tuple = ()):
        """Run a row-returning statement and return the cursor."""
        return self.execute(sql, params)

    def new_select(self) -> SelectQuery:
        return SelectQuery(db=self)

    def new_insert(self) -> InsertQuery:
        return InsertQuery(db=self)

    def new_update(self) -> UpdateQuery:
        return UpdateQuery(db=self)

    def new_delete(self) -> DeleteQuery:
        return DeleteQuery(db=self)

    def new_create_table(self) -> CreateTableQuery:
        return CreateTableQuery(db=self)

    def new_drop_table(self) -> DropTableQuery:
        return DropTableQuery(db=self)

    def reset_model(self, *models: type) -> None:
        """Drop (if present) and create the tables of ``models``."""
        for model in models:
            self.new_drop_table().model(model).if_exists().cascade().exec()
            self.new_create_table().model(model).exec()

    def scan_row(self, cursor, *dest, element_type=None):
        """Map the first row of an externally obtained cursor into ``dest``."""
        return scan_row(cursor, *dest, element_type=element_type, registry=self.registry)

    def scan_rows(self, cursor, *dest, element_type=None):
        """Map every row of an externally obtained cursor into ``dest``."""
        return scan_all(cursor, *dest, element_type=element_type, registry=self.registry)

    def _run(self, connection, sql: str, params: tuple):
        logger.debug("%s %r", sql, params)
        cursor = connection.cursor()
        cursor.execute(sql, tuple(params))
        return cursor


class DB(_Executor):
    """A database: dialect, connection factory and schema registry.

    Each thread gets its own connection from ``connection_factory`` on first
    use (so an in-memory SQLite database is private to a thread). Queries on
    a DB may run concurrently from several threads; ``connections_share_data``
    is False when each connection sees its own database.
    """

    def __init__(self, dialect: Dialect, connection_factory: Optional[Callable[[], Any]] = None,
                 registry: Optional[SchemaRegistry] = None, connections_share_data: bool = True):
        self.dialect = dialect
        self.connection_factory = connection_factory
        self.registry = registry or default_registry
        self.connections_share_data = connections_share_data
        self._local = threading.local()
        self._lock = threading.Lock()
        self._connections: list = []

    @classmethod
    def from_url(cls, url: str, registry: Optional[SchemaRegistry] = None) -> DB:
        """DB for a URL such as ``sqlite:////tmp/db.sqlite3`` or ``postgresql://user@host/name``."""
        dialect = get_dialect_for_scheme(urllib.parse.urlparse(url).scheme)
        return cls(dialect, lambda: dialect.connect(url), registry,
                   connections_share_data=dialect.connections_share_data(url))

    def __repr__(self) -> str:
        return f"DB(dialect={self.dialect.name!r})"

    # connection (built on first call, per thread)

    def _get_connection(self):
        connection = getattr(self._local, "connection", None)
        if connection is None:
            if self.connection_factory is None:
                raise ConfigurationError("DB has no connection factory")
            connection = self.connection_factory()
            self._local.connection = connection
            with self._lock:
                self._connections.append(connection)
        return connection

    def _get_transaction_level(self) -> int:
        return getattr(self._local, "transaction_level", 0)

    def _set_transaction_level(self, level: int) -> None:
        self._local.transaction_level = level

    def can_run_concurrently(self) -> bool:
        # other threads use their own connections, outside this thread's transaction
        return self.connections_share_data and not self._get_transaction_level()

    # statements

    def execute(self, sql: str, params: tuple = ()):
        """Run a statement on this thread's connection and return the cursor."""
        return self._run(self._get_connection(), sql, params)

    # transactions

    def begin(self) -> Tx:
        """Start a transaction on this thread's connection.

        The returned Tx is a context manager: it commits when the block ends
        normally and rolls back when it raises.
        """
        if self._get_transaction_level():
            raise TransactionError("a transaction is already open on this thread; use tx.begin() to nest")
        return Tx(self, self._get_connection(), level=1)

    def run_in_tx(self, fn: Callable[[Tx], Any]) -> Any:
        """Call ``fn(tx)`` in a transaction; commit on return, roll back on exception."""
        with self.begin() as tx:
            return fn(tx)

    def close(self) -> None:
        """Close every connection opened by this DB."""
        with self._lock:
            connections, self._connections = self._connections, []
        for connection in connections:
            connection.close()
        self._local = threading.local()


class Tx(_Executor):
    """A transaction pinned to one connection.

    Level 1 is the ``BEGIN``/``COMMIT`` transaction; deeper levels are
    savepoints. A finished Tx (committed or rolled back) cannot be used, nor
    can a Tx while one of its nested transactions is open.
    """

    def __init__(self, db: DB, connection, level: int = 1, parent: Optional[Tx] = None):
        self.db = db
        self.dialect = db.dialect
        self.registry = db.registry
        self.connection = connection
        self.level = level
        self.parent = parent
        self.active = True
        self._child: Optional[Tx] = None
        self.savepoint_name = f"savepoint_{level}" if level > 1 else None
        if self.savepoint_name:
            self._control(f"SAVEPOINT {self.savepoint_name}")
        else:
            self._control("BEGIN")
        db._set_transaction_level(level)

    def __repr__(self) -> str:
        return f"Tx(level={self.level}, active={self.active})"

    def _control(self, sql: str) -> None:
        logger.debug(sql)
        cursor = self.connection.cursor()
        cursor.execute(sql)

    def _check(self) -> None:
        if not self.active:
            raise TransactionError("Transaction is no longer active")
        if self._child is not None and self._child.active:
            raise TransactionError(
                f"Cannot use transaction level {self.level} from level {self._child.level}. "
                "Higher-level transactions cannot be accessed from nested transactions."
            )

    def execute(self, sql: str, params: tuple = ()):
        self._check()
        return self._run(self.connection, sql, params)

    def begin(self) -> Tx:
        """Open a nested transaction (a savepoint)."""
        self._check()
        self._child = Tx(self.db, self.connection, level=self.level + 1, parent=self)
        return self._child

    def run_in_tx(self, fn: Callable[[Tx], Any]) -> Any:
        with self.begin() as tx:
            return fn(tx)

    def _finish(self) -> None:
        self.active = False
        self.db._set_transaction_level(self.level - 1)

    def commit(self) -> None:
        self._check()
        if self.savepoint_name:
            self._control(f"RELEASE SAVEPOINT {self.savepoint_name}")
        else:
            self._control("COMMIT")
        self._finish()

    def rollback(self) -> None:
        self._check()
        try:
            if self.savepoint_name:
                self._control(f"ROLLBACK TO SAVEPOINT {self.savepoint_name}")
                self._control(f"RELEASE SAVEPOINT {self.savepoint_name}")
            else:
                self._control("ROLLBACK")
        finally:
            self._finish()

    def __enter__(self) -> Tx:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if not self.active:
            return
        if exc_type is None:
            self.commit()
        else:
            self.rollback()


__all__ = ["DB", "Tx"]
