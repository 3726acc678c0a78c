"""Fragment types: the composable units of SQL the query builder accumulates.

A *safe* fragment is a template with ``?`` slots plus the matching arguments;
arguments are bound as driver parameters, never spliced into the text. An
*unsafe* fragment (``Ident``, ``Safe``) is trusted text chosen by the program,
such as a column or table name.
"""

from __future__ import annotations

import re
from typing import Any, Iterator, Optional, Tuple

from pydantic import BaseModel, Field as PydanticField

from ..errors import ConfigurationError

NAMED_PLACEHOLDERS: tuple[str, ...] = ("TableName", "TableAlias", "PKs", "TableColumns")
"""Placeholders filled from the query's bound model instead of from arguments."""

_TOKEN = re.compile(
    r"\\\?|\?(?P<named>" + "|".join(NAMED_PLACEHOLDERS) + r")(?![A-Za-z0-9_])|\?"
)


def tokenize(template: str) -> Iterator[tuple[str, str]]:
    """Split a template into ``(kind, text)`` tokens.

    ``kind`` is ``"text"``, ``"named"`` (text is the placeholder name) or
    ``"positional"``. ``\\?`` yields a literal question mark.
    """
    position = 0
    for match in _TOKEN.finditer(template):
        if match.start() > position:
            yield "text", template[position:match.start()]
        if match.group(0) == "\\?":
            yield "text", "?"
        elif match.group("named"):
            yield "named", match.group("named")
        else:
            yield "positional", "?"
        position = match.end()
    if position < len(template):
        yield "text", template[position:]


def count_placeholders(template: str) -> int:
    """Number of positional ``?`` slots in a template."""
    return sum(1 for kind, _ in tokenize(template) if kind == "positional")


class Fragment(BaseModel):
    """Base type for all SQL fragments.

    Subclasses implement ``append_sql``, writing their text and parameters
    into a Formatter.
    """

    model_config = {"arbitrary_types_allowed": True, "frozen": True}

    def append_sql(self, fmter) -> None:
        raise NotImplementedError("Subclasses must implement `append_sql`")


class Ident(Fragment):
    """Identifier quoted by the dialect (e.g. ``"book"."title"``)."""

    name: str

    def __init__(self, name: str, **kwargs):
        super().__init__(name=name, **kwargs)

    def append_sql(self, fmter) -> None:
        fmter.write_ident(self.name)


class Safe(Fragment):
    """Raw SQL inserted verbatim; only for text the program controls."""

    sql: str

    def __init__(self, sql: str, **kwargs):
        super().__init__(sql=sql, **kwargs)

    def append_sql(self, fmter) -> None:
        fmter.write(self.sql)


class ColumnRef(Fragment):
    """Column qualified by a table alias (the bound table's alias by default)."""

    name: str
    alias: Optional[str] = None

    def __init__(self, name: str, alias: Optional[str] = None, **kwargs):
        super().__init__(name=name, alias=alias, **kwargs)

    def append_sql(self, fmter) -> None:
        fmter.write_column(self.name, self.alias)


class In(Fragment):
    """Comma-separated list of bound values, for use inside ``IN (?)``."""

    values: Tuple[Any, ...] = PydanticField(default_factory=tuple)

    def __init__(self, values=(), **kwargs):
        super().__init__(values=tuple(values), **kwargs)

    def append_sql(self, fmter) -> None:
        if not self.values:
            fmter.write("NULL")
            return
        for i, value in enumerate(self.values):
            if i:
                fmter.write(", ")
            fmter.write_value(value)


class SafeQuery(Fragment):
    """Template with positional ``?`` slots and the arguments filling them.

    The slot count is checked on construction: a mismatch raises
    ConfigurationError instead of producing broken SQL later.
    """

    template: str
    args: Tuple[Any, ...] = PydanticField(default_factory=tuple)
    sep: str = ""
    """Separator written before this fragment when it follows another one (`` AND ``, ``, ``...)."""

    def __init__(self, template: str, args=(), sep: str = "", **kwargs):
        super().__init__(template=template, args=tuple(args), sep=sep, **kwargs)
        expected = count_placeholders(self.template)
        if expected != len(self.args):
            raise ConfigurationError(
                f"query {self.template!r} has {expected} placeholder(s) "
                f"but {len(self.args)} argument(s) were given"
            )

    def append_sql(self, fmter) -> None:
        args = iter(self.args)
        for kind, text in tokenize(self.template):
            if kind == "text":
                fmter.write(text)
            elif kind == "named":
                fmter.write_named(text)
            else:
                fmter.write_value(next(args))


class WhereGroup(Fragment):
    """Parenthesized group of conditions joined by their own separators."""

    conditions: Tuple[Fragment, ...] = PydanticField(default_factory=tuple)
    sep: str = " AND "

    def append_sql(self, fmter) -> None:
        append_conditions(fmter, self.conditions)


def append_conditions(fmter, conditions) -> None:
    """Write ``(c1) AND (c2) OR (...)``: each condition wrapped, joined by the next one's ``sep``."""
    for i, condition in enumerate(conditions):
        if i:
            fmter.write(condition.sep)
        fmter.write("(")
        condition.append_sql(fmter)
        fmter.write(")")
