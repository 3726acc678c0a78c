"""PostgreSQL dialect."""

import datetime
import decimal
import urllib.parse
from typing import ClassVar

from .base import Dialect


class PostgresDialect(Dialect):
    """Dialect for PostgreSQL (schemes postgresql, postgres)."""

    NAME: ClassVar[str] = "pg"
    SUPPORTED_SCHEMA: ClassVar[tuple[str, ...]] = ("postgresql", "postgres", "pg")
    PARAMSTYLE: ClassVar[str] = "format"
    JSON_NUL_SUBSTITUTE: ClassVar[bool] = True

    supports_returning: ClassVar[bool] = True
    supports_on_conflict: ClassVar[bool] = True
    supports_distinct_on: ClassVar[bool] = True

    DATA_TYPES: ClassVar[dict[type, str]] = {
        bool: "BOOLEAN",
        int: "BIGINT",
        float: "DOUBLE PRECISION",
        decimal.Decimal: "NUMERIC",
        str: "VARCHAR",
        bytes: "BYTEA",
        datetime.datetime: "TIMESTAMPTZ",
        datetime.date: "DATE",
        datetime.time: "TIME",
    }
    JSON_TYPE: ClassVar[str] = "JSONB"

    def connect(self, url: str):
        import psycopg2  # pylint: disable=import-outside-toplevel,import-error
        parsed = urllib.parse.urlparse(url)
        connection = psycopg2.connect(
            host=parsed.hostname,
            user=parsed.username,
            password=parsed.password,
            database=(parsed.path or "")[1:] or None,
            port=parsed.port,
        )
        connection.autocommit = True
        return connection

    def _non_finite_literal(self, value: float) -> str:
        if value != value:  # NaN
            return "'NaN'"
        return "'Infinity'" if value > 0 else "'-Infinity'"

    def _bytes_literal(self, value: bytes) -> str:
        return "'\\x" + value.hex() + "'"

    def autoincrement_definition(self, column) -> str:
        return f"{self.quote_identifier(column.name)} BIGSERIAL NOT NULL"
