"""Database dialects: one class per engine (PostgreSQL, MySQL, SQLite).

A URL scheme picks the dialect; a driver suffix (``postgresql+psycopg2``) is
ignored and ``mysql5`` / ``mysql8`` also select the MySQL server version.
"""

from .base import Dialect
from .sqlite import SqliteDialect
from .mysql import MysqlDialect
from .postgres import PostgresDialect

DIALECTS_BY_SCHEME: dict[str, type[Dialect]] = {
    scheme: dialect_cls
    for dialect_cls in (SqliteDialect, MysqlDialect, PostgresDialect)
    for scheme in dialect_cls.SUPPORTED_SCHEMA
}


def get_dialect_for_scheme(scheme: str) -> Dialect:
    """Return a Dialect instance for the given URL scheme (e.g. 'sqlite', 'mysql5')."""
    normalized = (scheme or "").split("+")[0].lower()
    dialect_cls = DIALECTS_BY_SCHEME.get(normalized)
    if dialect_cls is None:
        raise ValueError(f"Unsupported database scheme: {scheme}")
    return dialect_cls.for_scheme(normalized)


__all__ = [
    "Dialect",
    "SqliteDialect",
    "MysqlDialect",
    "PostgresDialect",
    "DIALECTS_BY_SCHEME",
    "get_dialect_for_scheme",
]
