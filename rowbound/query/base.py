"""State and clauses shared by the query builders.

Builders are mutable Pydantic models. Chained configuration methods return
the builder itself; a configuration problem found by one of them is stored
in ``err`` and every later chained call is a no-op. Rendering raises the
stored error before producing any SQL.
"""

from __future__ import annotations

import functools
import logging
import typing
from typing import Any, Callable, Optional

from pydantic import BaseModel, Field

from ..errors import ConfigurationError
from ..expressions import (
    ColumnRef,
    Formatter,
    Fragment,
    In,
    SafeQuery,
    WhereGroup,
    append_conditions,
)
from ..table.schema import default_registry
from ..utils.is_table import is_table
from .hooks import call_hook

logger = logging.getLogger("rowbound")

DELETED_ONLY = "deleted"
ALL_WITH_DELETED = "all"


def chained(method):
    """Run a configuration method only while no error is recorded; always return the builder."""
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        if self.err is None:
            method(self, *args, **kwargs)
        return self
    return wrapper


class CTE(BaseModel):
    """``"name" AS (query)`` entry of a WITH clause."""

    model_config = {"arbitrary_types_allowed": True}

    name: str
    query: Any


class BaseQuery(BaseModel):
    """Common state: bound database, model, tables, WHERE conditions, error slot."""

    model_config = {"arbitrary_types_allowed": True}

    db: Any = Field(default=None, exclude=True, repr=False)
    """DB or Tx executing this query."""
    bound_model: Any = None
    """Entity class, instance, list of instances or ``list[Entity]``."""
    table_schema: Any = None
    ctes: list[CTE] = Field(default_factory=list)
    tables: list[Fragment] = Field(default_factory=list)
    custom_table: Optional[Fragment] = None
    """Replaces ``"table" AS "alias"`` for the bound model (``model_table_expr``)."""
    wheres: list[Fragment] = Field(default_factory=list)
    where_pk_flag: bool = False
    deleted_filter: Optional[str] = None
    returning_fragments: list[Fragment] = Field(default_factory=list)
    err: Any = None

    # configuration

    def set_err(self, error: Exception) -> None:
        if self.err is None:
            self.err = error

    @property
    def dialect(self):
        if self.db is None:
            raise ConfigurationError("query is not bound to a database (use db.new_select() or .conn(db))")
        return self.db.dialect

    @property
    def registry(self):
        return getattr(self.db, "registry", None) or default_registry

    @chained
    def conn(self, db):
        """Run this query on another DB or Tx."""
        self.db = db

    @chained
    def model(self, value):
        """Bind an entity class, instance, list of instances or ``list[Entity]``."""
        self.bind_model(value)

    def bind_model(self, value) -> None:
        if value is None:
            self.set_err(ConfigurationError("model is None"))
            return
        self.bound_model = value
        model_type = self.model_type()
        if model_type is None or not is_table(model_type):
            self.table_schema = None
            return
        try:
            self.table_schema = self.registry.describe(model_type)
        except ConfigurationError as error:
            self.set_err(error)

    def model_type(self) -> Optional[type]:
        value = self.bound_model
        if value is None:
            return None
        if typing.get_origin(value) is list:
            arguments = typing.get_args(value)
            return arguments[0] if arguments else None
        if isinstance(value, list):
            return type(value[0]) if value else None
        if isinstance(value, type):
            return value
        return type(value)

    def model_instances(self) -> list:
        """Instances bound with ``model()`` (empty when a class is bound)."""
        value = self.bound_model
        if isinstance(value, list):
            return list(value)
        if value is None or isinstance(value, type) or typing.get_origin(value) is not None:
            return []
        return [value]

    def apply(self, fn: Callable):
        """Call ``fn(query)``; returns what it returns (or the query when it returns None)."""
        if self.err is not None:
            return self
        result = fn(self)
        return self if result is None else result

    @chained
    def with_(self, name: str, query):
        """Add a common table expression ``WITH "name" AS (query)``."""
        self.ctes.append(CTE(name=name, query=query))

    # WHERE

    @chained
    def where(self, template: str, *args):
        self.wheres.append(SafeQuery(template, args, sep=" AND "))

    @chained
    def where_or(self, template: str, *args):
        self.wheres.append(SafeQuery(template, args, sep=" OR "))

    @chained
    def where_group(self, sep: str, fn: Callable):
        """Add the conditions added by ``fn(query)`` as one parenthesized group.

        ``sep`` (`` AND `` / `` OR ``) joins the group to the previous conditions.
        """
        saved, self.wheres = self.wheres, []
        try:
            fn(self)
            conditions = self.wheres
        finally:
            self.wheres = saved
        if conditions:
            self.wheres.append(WhereGroup(conditions=tuple(conditions), sep=sep))

    @chained
    def where_pk(self):
        """Filter by the primary key(s) of the bound instance(s)."""
        self.where_pk_flag = True

    @chained
    def where_deleted(self):
        """Only soft-deleted rows."""
        self.deleted_filter = DELETED_ONLY

    @chained
    def where_all_with_deleted(self):
        """Soft-deleted rows and live rows alike."""
        self.deleted_filter = ALL_WITH_DELETED

    @chained
    def returning(self, template: str, *args):
        self.returning_fragments.append(SafeQuery(template, args, sep=", "))

    # rendering

    def pk_condition(self) -> Fragment:
        schema = self.table_schema
        if schema is None:
            raise ConfigurationError("where_pk requires a model")
        if not schema.pks:
            raise ConfigurationError(f"table {schema.name!r} does not have a primary key")
        instances = self.model_instances()
        if not instances:
            raise ConfigurationError("where_pk requires a model instance (or a list of instances)")
        keys = []
        for instance in instances:
            key = tuple(pk.get_value(instance) for pk in schema.pks)
            if any(value is None for value in key):
                raise ConfigurationError(f"where_pk: {type(instance).__name__} has an empty primary key")
            keys.append(key)
        columns = [ColumnRef(pk.name) for pk in schema.pks]
        if not isinstance(self.bound_model, list):
            return SafeQuery(" AND ".join(["? = ?"] * len(columns)),
                             [x for pair in zip(columns, keys[0]) for x in pair])
        if len(columns) == 1:
            return SafeQuery("? IN (?)", (columns[0], In(key[0] for key in keys)))
        return SafeQuery("(?) IN (?)", (
            In(columns),
            In(SafeQuery("(?)", (In(key),)) for key in keys),
        ))

    def soft_delete_condition(self, alias: Optional[str] = None) -> Optional[Fragment]:
        schema = self.table_schema
        if schema is None or schema.soft_delete_column is None:
            return None
        if self.deleted_filter == ALL_WITH_DELETED:
            return None
        column = ColumnRef(schema.soft_delete_column.name, alias)
        if self.deleted_filter == DELETED_ONLY:
            return SafeQuery("? IS NOT NULL", (column,))
        return SafeQuery("? IS NULL", (column,))

    def append_where(self, fmter: Formatter, required: bool = False) -> None:
        conditions = list(self.wheres)
        if self.where_pk_flag:
            conditions.append(self.pk_condition())
        if required and not conditions:
            raise ConfigurationError(
                f"{type(self).__name__} requires at least one WHERE condition (use where_pk or where(\"TRUE\"))"
            )
        deleted = self.soft_delete_condition()
        if not conditions and deleted is None:
            return
        fmter.write(" WHERE ")
        append_conditions(fmter, conditions)
        if deleted is not None:
            if conditions:
                fmter.write(" AND ")
            deleted.append_sql(fmter)

    def append_with(self, fmter: Formatter) -> None:
        if not self.ctes:
            return
        if not self.dialect.supports_cte:
            raise ConfigurationError(f"{self.dialect.name} does not support WITH")
        fmter.write("WITH ")
        for i, cte in enumerate(self.ctes):
            if i:
                fmter.write(", ")
            fmter.write_ident(cte.name)
            fmter.write(" AS ")
            fmter.write_value(cte.query)
        fmter.write(" ")

    def append_tables(self, fmter: Formatter, with_alias: bool = True) -> bool:
        """Write the bound table and the extra tables; False when there is none."""
        wrote = False
        if self.custom_table is not None:
            self.custom_table.append_sql(fmter)
            wrote = True
        elif self.table_schema is not None:
            fmter.write_ident(self.table_schema.name)
            if with_alias and fmter.alias != self.table_schema.name:
                fmter.write(" AS ")
                fmter.write_ident(fmter.alias)
            wrote = True
        for table in self.tables:
            if wrote:
                fmter.write(", ")
            table.append_sql(fmter)
            wrote = True
        return wrote

    def append_returning(self, fmter: Formatter) -> None:
        if not self.returning_fragments:
            return
        if not self.dialect.supports_returning:
            raise ConfigurationError(f"{self.dialect.name} does not support RETURNING")
        fmter.write(" RETURNING ")
        for i, fragment in enumerate(self.returning_fragments):
            if i:
                fmter.write(", ")
            fragment.append_sql(fmter)

    def append_query(self, fmter: Formatter) -> None:
        raise NotImplementedError("Subclasses must implement `append_query`")

    def new_formatter(self, interpolate: bool = False) -> Formatter:
        return Formatter(self.dialect, table=self.table_schema, interpolate=interpolate)

    def to_sql(self) -> tuple[str, tuple[Any, ...]]:
        """Render to ``(sql, params)``; raises the first recorded configuration error."""
        if self.err is not None:
            raise self.err
        fmter = self.new_formatter()
        self.append_query(fmter)
        return fmter.render()

    def __str__(self) -> str:
        if self.err is not None:
            raise self.err
        fmter = self.new_formatter(interpolate=True)
        self.append_query(fmter)
        return fmter.sql

    # hooks & execution

    def hook_target(self):
        instances = self.model_instances()
        if instances:
            return instances[0]
        model_type = self.model_type()
        if model_type is not None and isinstance(model_type, type) and issubclass(model_type, BaseModel):
            return model_type.model_construct()
        return None

    def call_hook(self, name: str) -> None:
        call_hook(self.hook_target(), name, self)

    def run(self, sql: str, params: tuple = ()):
        """Execute through the bound DB/Tx and return the cursor."""
        if self.db is None:
            raise ConfigurationError("query is not bound to a database")
        return self.db.execute(sql, params)


__all__ = ["BaseQuery", "CTE", "chained", "DELETED_ONLY", "ALL_WITH_DELETED"]
