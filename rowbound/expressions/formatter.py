"""Formatter: renders fragments for one dialect into SQL text and parameters."""

from __future__ import annotations

from typing import Any, Optional

from ..errors import ConfigurationError
from ._bases import Fragment


class Formatter:
    """Accumulates SQL text and bound parameters for one statement.

    ``table`` is the TableSchema of the query being rendered; it fills the
    named placeholders (``?TableName``, ``?TableAlias``, ``?PKs``,
    ``?TableColumns``). With ``interpolate=True`` values are written as
    inline literals instead of parameters (debug output only).
    """

    def __init__(self, dialect, table=None, interpolate: bool = False, alias: Optional[str] = None):
        self.dialect = dialect
        self.table = table
        self._alias = alias
        self.interpolate = interpolate
        self._parts: list[str] = []
        self.params: list[Any] = []

    @property
    def alias(self) -> Optional[str]:
        """Alias qualifying the bound table's columns."""
        if self._alias:
            return self._alias
        return self.table.alias if self.table is not None else None

    def nested(self, table=None, alias: Optional[str] = None) -> Formatter:
        """Formatter writing into the same buffer, with another bound table."""
        child = Formatter(self.dialect, table=table, interpolate=self.interpolate, alias=alias)
        child._parts = self._parts
        child.params = self.params
        return child

    # writing

    def write(self, text: str) -> None:
        if not text:
            return
        self._parts.append(text if self.interpolate else self.dialect.escape_text(text))

    def write_ident(self, name: str) -> None:
        self.write(self.dialect.quote_identifier(name))

    def write_value(self, value: Any) -> None:
        """Write an argument: fragments and queries inline, anything else as a parameter."""
        if isinstance(value, Fragment):
            value.append_sql(self)
        elif hasattr(value, "append_query"):
            self.write("(")
            value.append_query(self.nested(getattr(value, "table_schema", None)))
            self.write(")")
        elif self.interpolate:
            self._parts.append(self.dialect.quote_literal(value))
        else:
            self._parts.append(self.dialect.placeholder(len(self.params)))
            self.params.append(self.dialect.convert_param(value))

    def write_column(self, name: str, alias: Optional[str] = None) -> None:
        """Write a column qualified by alias (the bound table's alias by default)."""
        alias = alias or self.alias
        self.write_ident(f"{alias}.{name}" if alias else name)

    def write_named(self, name: str) -> None:
        table = self.table
        if table is None:
            raise ConfigurationError(f"?{name} requires a query with a model")
        if name == "TableName":
            self.write_ident(table.name)
        elif name == "TableAlias":
            self.write_ident(self.alias)
        elif name == "PKs":
            self.write(", ".join(self.dialect.quote_identifier(f"{self.alias}.{c.name}") for c in table.pks))
        elif name == "TableColumns":
            self.write(", ".join(self.dialect.quote_identifier(f"{self.alias}.{c.name}") for c in table.columns))
        else:
            raise ConfigurationError(f"unknown named placeholder ?{name}")

    def append(self, fragment: Optional[Fragment]) -> Formatter:
        if fragment is not None:
            fragment.append_sql(self)
        return self

    # reading

    @property
    def sql(self) -> str:
        return "".join(self._parts)

    def render(self) -> tuple[str, tuple[Any, ...]]:
        return self.sql, tuple(self.params)
