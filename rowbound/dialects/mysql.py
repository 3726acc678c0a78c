"""MySQL dialect (MySQL 5 and MySQL 8)."""

import datetime
import decimal
import urllib.parse
from typing import ClassVar

from .base import Dialect


class MysqlDialect(Dialect):
    """Dialect for MySQL (scheme mysql).

    ``version`` selects between the two server generations: MySQL 5 has no
    common table expressions.
    """

    SUPPORTED_SCHEMA: ClassVar[tuple[str, ...]] = ("mysql", "mysql5", "mysql8")
    QUOTE_CHAR: ClassVar[str] = "`"
    PARAMSTYLE: ClassVar[str] = "format"

    supports_on_duplicate_key: ClassVar[bool] = True
    supports_insert_ignore: ClassVar[bool] = True

    DATA_TYPES: ClassVar[dict[type, str]] = {
        bool: "BOOLEAN",
        int: "BIGINT",
        float: "DOUBLE",
        decimal.Decimal: "DECIMAL(65, 30)",
        str: "VARCHAR(255)",
        bytes: "BLOB",
        datetime.datetime: "DATETIME(6)",
        datetime.date: "DATE",
        datetime.time: "TIME(6)",
    }

    version: int = 8

    @classmethod
    def for_scheme(cls, scheme: str) -> "MysqlDialect":
        version = scheme[len("mysql"):]
        return cls(version=int(version)) if version else cls()

    @property
    def name(self) -> str:
        return f"mysql{self.version}"

    @property
    def supports_cte(self) -> bool:  # type: ignore[override]
        return self.version >= 8

    @property
    def supports_table_alias_in_delete(self) -> bool:  # type: ignore[override]
        return self.version >= 8

    def connect(self, url: str):
        import pymysql  # pylint: disable=import-outside-toplevel,import-error
        parsed = urllib.parse.urlparse(url)
        return pymysql.connect(
            host=parsed.hostname,
            user=parsed.username,
            password=parsed.password,
            database=(parsed.path or "")[1:] or None,
            port=parsed.port or 3306,
            autocommit=True,
        )

    def quote_string(self, value: str) -> str:
        value = value.replace("\\", "\\\\").replace("'", "''").replace("\x00", "\\0")
        return "'" + value + "'"

    def limit_offset(self, limit: int, offset: int) -> str:
        if offset and not limit:
            return f" LIMIT 18446744073709551615 OFFSET {int(offset)}"
        return super().limit_offset(limit, offset)

    def autoincrement_definition(self, column) -> str:
        return f"{self.quote_identifier(column.name)} BIGINT NOT NULL AUTO_INCREMENT"

    def empty_insert_values(self) -> str:
        return " () VALUES ()"
