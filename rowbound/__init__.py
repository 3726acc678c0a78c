"""rowbound: typed SQL query construction and result mapping on Pydantic models."""

from .connection import connect, disconnect, get_db
from .db import DB, Tx
from .dialects import Dialect, MysqlDialect, PostgresDialect, SqliteDialect, get_dialect_for_scheme
from .errors import ConfigurationError, MappingError, NoRowsError, RowboundError, TransactionError
from .expressions import Ident, In, Safe, SafeQuery
from .query import DeleteQuery, InsertQuery, SelectQuery, UpdateQuery
from .table import Table, column, relation

__all__ = [
    "connect",
    "disconnect",
    "get_db",
    "DB",
    "Tx",
    "Dialect",
    "SqliteDialect",
    "MysqlDialect",
    "PostgresDialect",
    "get_dialect_for_scheme",
    "RowboundError",
    "ConfigurationError",
    "NoRowsError",
    "MappingError",
    "TransactionError",
    "Ident",
    "In",
    "Safe",
    "SafeQuery",
    "SelectQuery",
    "InsertQuery",
    "UpdateQuery",
    "DeleteQuery",
    "Table",
    "column",
    "relation",
]
