"""SQLite dialect."""

import datetime
import decimal
import logging
import urllib.parse
from typing import Any, ClassVar

from .base import Dialect

logger = logging.getLogger(__name__)


class SqliteDialect(Dialect):
    """Dialect for SQLite (scheme sqlite)."""

    NAME: ClassVar[str] = "sqlite"
    SUPPORTED_SCHEMA: ClassVar[tuple[str, ...]] = ("sqlite",)
    JSON_NUL_SUBSTITUTE: ClassVar[bool] = True

    supports_returning: ClassVar[bool] = True
    supports_on_conflict: ClassVar[bool] = True
    supports_default_keyword: ClassVar[bool] = False
    supports_parenthesized_set_operations: ClassVar[bool] = False
    supports_drop_table_cascade: ClassVar[bool] = False
    lastrowid_is_first_row: ClassVar[bool] = False

    DATA_TYPES: ClassVar[dict[type, str]] = {
        bool: "BOOLEAN",
        int: "INTEGER",
        float: "REAL",
        decimal.Decimal: "NUMERIC",
        str: "TEXT",
        bytes: "BLOB",
        datetime.datetime: "TIMESTAMP",
        datetime.date: "DATE",
        datetime.time: "TIME",
    }
    JSON_TYPE: ClassVar[str] = "JSON"

    @staticmethod
    def database_path(url: str) -> str:
        parsed = urllib.parse.urlparse(url)
        return (parsed.path or "")[1:] or parsed.hostname or ":memory:"

    def connections_share_data(self, url: str) -> bool:
        return self.database_path(url) != ":memory:"

    def connect(self, url: str):
        import sqlite3
        path = self.database_path(url)
        logger.debug("Connecting to SQLite database %s", path)
        # a DB closes every connection it opened, from whichever thread calls close()
        connection = sqlite3.connect(path, isolation_level=None, check_same_thread=False)
        connection.execute("PRAGMA foreign_keys = ON")
        return connection

    def convert_param(self, value: Any) -> Any:
        if isinstance(value, datetime.datetime):
            return value.isoformat(sep=" ")
        if isinstance(value, (datetime.date, datetime.time)):
            return value.isoformat()
        if isinstance(value, decimal.Decimal):
            return str(value)
        return super().convert_param(value)

    def _bool_literal(self, value: bool) -> str:
        return "1" if value else "0"

    def limit_offset(self, limit: int, offset: int) -> str:
        if offset and not limit:
            return f" LIMIT -1 OFFSET {int(offset)}"
        return super().limit_offset(limit, offset)

    def autoincrement_definition(self, column) -> str:
        # INTEGER + PRIMARY KEY constraint makes the column an alias of the rowid
        return f"{self.quote_identifier(column.name)} INTEGER NOT NULL"
