"""Base Dialect type: quoting, literals, placeholders and capability flags per engine."""

import datetime
import decimal
import enum
import json
import math
import re
from abc import ABC, abstractmethod
from typing import Any, ClassVar

from pydantic import BaseModel

_JSON_NUL = re.compile(r"(\\*)\\u0000")


class Dialect(BaseModel, ABC):
    """Base for database dialects.

    Every engine-specific decision the query builder needs is exposed here, so
    shared rendering code never checks which engine it talks to.
    """

    model_config = {"arbitrary_types_allowed": True}

    NAME: ClassVar[str] = ""
    SUPPORTED_SCHEMA: ClassVar[tuple[str, ...]] = ()
    """URL schemes this dialect handles (e.g. ('postgresql', 'postgres'))."""

    QUOTE_CHAR: ClassVar[str] = '"'
    PARAMSTYLE: ClassVar[str] = "qmark"
    """DB-API paramstyle of the driver: ``qmark`` (``?``) or ``format`` (``%s``)."""

    JSON_NUL_SUBSTITUTE: ClassVar[bool] = False
    """If True, an escaped NUL in JSON text is stored as the literal text ``\\u0000``."""

    supports_returning: ClassVar[bool] = False
    supports_on_conflict: ClassVar[bool] = False
    supports_on_duplicate_key: ClassVar[bool] = False
    supports_insert_ignore: ClassVar[bool] = False
    supports_distinct_on: ClassVar[bool] = False
    supports_cte: ClassVar[bool] = True
    supports_default_keyword: ClassVar[bool] = True
    supports_parenthesized_set_operations: ClassVar[bool] = True
    supports_table_alias_in_delete: ClassVar[bool] = True
    supports_drop_table_cascade: ClassVar[bool] = True
    lastrowid_is_first_row: ClassVar[bool] = True
    """The driver's ``cursor.lastrowid`` after a multi-row INSERT is the first row's key (MySQL)."""

    DATA_TYPES: ClassVar[dict[type, str]] = {
        bool: "BOOLEAN",
        int: "BIGINT",
        float: "DOUBLE PRECISION",
        decimal.Decimal: "NUMERIC",
        str: "VARCHAR",
        bytes: "BLOB",
        datetime.datetime: "TIMESTAMP",
        datetime.date: "DATE",
        datetime.time: "TIME",
    }
    JSON_TYPE: ClassVar[str] = "JSON"

    @property
    def name(self) -> str:
        return self.NAME

    def __str__(self) -> str:
        return self.name

    @classmethod
    def for_scheme(cls, scheme: str) -> "Dialect":
        """Instance for one of the ``SUPPORTED_SCHEMA`` entries."""
        return cls()

    @abstractmethod
    def connect(self, url: str) -> Any:
        """Return a new raw DB-API connection in autocommit mode for the given URL."""
        ...  # pylint: disable=unnecessary-ellipsis

    def connections_share_data(self, url: str) -> bool:
        """False when each connection to ``url`` sees its own database."""
        return True

    # identifiers

    def quote_identifier(self, name: str) -> str:
        """Quote a (possibly dotted) identifier; ``*`` parts are left bare."""
        quote = self.QUOTE_CHAR
        parts = []
        for part in name.split("."):
            if part == "*":
                parts.append(part)
            else:
                parts.append(quote + part.replace(quote, quote * 2) + quote)
        return ".".join(parts)

    # placeholders

    def placeholder(self, index: int) -> str:
        """Parameter marker for the parameter at ``index`` (0-based)."""
        return "%s" if self.PARAMSTYLE == "format" else "?"

    def escape_text(self, text: str) -> str:
        """Escape statement text so the driver does not read it as parameter markers."""
        if self.PARAMSTYLE == "format":
            return text.replace("%", "%%")
        return text

    # values

    def encode_json(self, value: Any) -> str:
        """Serialize a composite value to JSON text."""
        if isinstance(value, BaseModel):
            value = value.model_dump(mode="json")
        text = json.dumps(value, ensure_ascii=False, default=str)
        if self.JSON_NUL_SUBSTITUTE:
            text = _JSON_NUL.sub(_escape_json_nul, text)
        return text

    def convert_param(self, value: Any) -> Any:
        """Adapt a Python value into something the driver accepts as a parameter."""
        if isinstance(value, enum.Enum):
            return value.value
        if isinstance(value, (dict, list, tuple, set, BaseModel)):
            if isinstance(value, set):
                value = sorted(value, key=repr)
            return self.encode_json(value)
        return value

    def quote_literal(self, value: Any) -> str:
        """Render a value as an inline SQL literal."""
        if value is None:
            return "NULL"
        if isinstance(value, enum.Enum):
            return self.quote_literal(value.value)
        if isinstance(value, bool):
            return self._bool_literal(value)
        if isinstance(value, int):
            return str(value)
        if isinstance(value, float):
            if math.isnan(value) or math.isinf(value):
                return self._non_finite_literal(value)
            return repr(value)
        if isinstance(value, decimal.Decimal):
            return str(value)
        if isinstance(value, (bytes, bytearray, memoryview)):
            return self._bytes_literal(bytes(value))
        if isinstance(value, datetime.datetime):
            return self.quote_string(value.isoformat(sep=" "))
        if isinstance(value, (datetime.date, datetime.time)):
            return self.quote_string(value.isoformat())
        if isinstance(value, str):
            return self.quote_string(value)
        if isinstance(value, (dict, list, tuple, set, BaseModel)):
            return self.quote_string(self.convert_param(value))
        raise TypeError(f"{self.name}: cannot render {type(value).__name__} as a SQL literal")

    def quote_string(self, value: str) -> str:
        return "'" + value.replace("'", "''") + "'"

    def _bool_literal(self, value: bool) -> str:
        return "TRUE" if value else "FALSE"

    def _non_finite_literal(self, value: float) -> str:
        return "NULL"

    def _bytes_literal(self, value: bytes) -> str:
        return "X'" + value.hex() + "'"

    # clauses

    def limit_offset(self, limit: int, offset: int) -> str:
        """LIMIT/OFFSET tail (with a leading space), or an empty string."""
        sql = ""
        if limit:
            sql += f" LIMIT {int(limit)}"
        if offset:
            sql += f" OFFSET {int(offset)}"
        return sql

    # DDL

    def sql_type(self, column) -> str:
        """SQL type for a table column (explicit override first)."""
        if column.sql_type:
            return column.sql_type
        if column.is_json:
            return self.JSON_TYPE
        python_type = column.python_type
        if isinstance(python_type, type) and issubclass(python_type, enum.Enum):
            return self.DATA_TYPES[str]
        for candidate, sql_type in self.DATA_TYPES.items():
            if python_type is candidate:
                return sql_type
        for candidate, sql_type in self.DATA_TYPES.items():
            if isinstance(python_type, type) and issubclass(python_type, candidate):
                return sql_type
        raise TypeError(
            f"Type `{python_type}` of column `{column.name}` has no known conversion to SQL type"
        )

    def empty_insert_values(self) -> str:
        """Tail of an INSERT that gives every column its default."""
        return " DEFAULT VALUES"

    def autoincrement_definition(self, column) -> str:
        """Column definition for an autoincrement primary key."""
        return f"{self.quote_identifier(column.name)} BIGINT NOT NULL"


def _escape_json_nul(match: re.Match) -> str:
    backslashes = match.group(1)
    if len(backslashes) % 2:
        return match.group(0)
    return backslashes + "\\\\u0000"
