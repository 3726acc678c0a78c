"""SELECT query builder.

Example::

    books = (
        db.new_select()
        .model(list[Book])
        .relation("author")
        .where("?TableAlias.title LIKE ?", "%python%")
        .order("title")
        .limit(10)
        .scan()
    )

Clauses are rendered in a fixed order: WITH, SELECT [DISTINCT [ON]], the
columns (plus the columns of to-one relations), FROM, relation joins,
explicit joins, WHERE, GROUP BY, HAVING, ORDER BY, LIMIT/OFFSET, FOR and the
set operations (UNION, INTERSECT, EXCEPT).
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Callable, Optional, Sequence

from pydantic import BaseModel, Field

from ..errors import ConfigurationError
from ..expressions import Formatter, Fragment, Ident, Safe, SafeQuery, append_conditions
from ..scan import column_names, map_rows
from ..utils.is_table import is_table
from .base import ALL_WITH_DELETED, BaseQuery, chained
from .join import Join, append_join, iter_to_one, join_columns, load_relations, resolve

logger = logging.getLogger("rowbound")

_SORT_ORDERS = (
    "ASC", "DESC",
    "ASC NULLS FIRST", "DESC NULLS FIRST",
    "ASC NULLS LAST", "DESC NULLS LAST",
)


class JoinClause(BaseModel):
    """Explicit join: `` <join> ON (cond) AND (cond)...``."""

    model_config = {"arbitrary_types_allowed": True}

    join: Fragment
    on: list[Fragment] = Field(default_factory=list)

    def append_sql(self, fmter: Formatter) -> None:
        fmter.write(" ")
        self.join.append_sql(fmter)
        if self.on:
            fmter.write(" ON ")
            append_conditions(fmter, self.on)


class SetOperation(BaseModel):
    model_config = {"arbitrary_types_allowed": True}

    operator: str
    query: Any


class SelectQuery(BaseQuery):
    """Builds and runs a SELECT statement."""

    distinct_flag: bool = False
    distinct_on_fragments: list[Fragment] = Field(default_factory=list)
    columns: Optional[list[Fragment]] = None
    """Explicit select list; None selects every column of the bound model (or ``*``)."""
    joins: list[JoinClause] = Field(default_factory=list)
    relation_joins: list[Join] = Field(default_factory=list)
    groups: list[Fragment] = Field(default_factory=list)
    havings: list[Fragment] = Field(default_factory=list)
    orders: list[Fragment] = Field(default_factory=list)
    limit_value: int = 0
    offset_value: int = 0
    lock: Optional[Fragment] = None
    set_operations: list[SetOperation] = Field(default_factory=list)

    # configuration

    @chained
    def distinct(self):
        self.distinct_flag = True

    @chained
    def distinct_on(self, template: str, *args):
        self.distinct_on_fragments.append(SafeQuery(template, args))

    @chained
    def table(self, *names: str):
        for name in names:
            self.tables.append(Ident(name))

    @chained
    def table_expr(self, template: str, *args):
        self.tables.append(SafeQuery(template, args))

    @chained
    def model_table_expr(self, template: str, *args):
        """Replace ``"table" AS "alias"`` of the bound model in the FROM clause."""
        self.custom_table = SafeQuery(template, args)

    @chained
    def column(self, *names: str):
        """Select columns by name (``"alias"."name"`` for the bound model's columns)."""
        if self.columns is None:
            self.columns = []
        self.columns.extend(Ident(name) for name in names)

    @chained
    def column_expr(self, template: str, *args):
        if self.columns is None:
            self.columns = []
        self.columns.append(SafeQuery(template, args))

    @chained
    def exclude_column(self, *names: str):
        """Select every model column except ``names`` (``"*"`` excludes them all)."""
        if self.table_schema is None:
            self.set_err(ConfigurationError("exclude_column requires a model"))
            return
        if self.columns is None:
            self.columns = [Ident(c.name) for c in self.table_schema.columns]
        if "*" in names:
            self.columns = []
            return
        excluded = {name.lower() for name in names}
        self.columns = [
            c for c in self.columns
            if not (isinstance(c, Ident) and c.name.lower() in excluded)
        ]

    @chained
    def group(self, *names: str):
        self.groups.extend(Ident(name) for name in names)

    @chained
    def group_expr(self, template: str, *args):
        self.groups.append(SafeQuery(template, args))

    @chained
    def having(self, template: str, *args):
        self.havings.append(SafeQuery(template, args, sep=" AND "))

    @chained
    def order(self, *orders: str):
        """Order by column names, optionally followed by a direction (``"title DESC"``)."""
        for order in orders:
            if not order:
                continue
            name, _, direction = order.partition(" ")
            if direction and direction.upper() in _SORT_ORDERS:
                self.orders.append(SafeQuery("? ?", (Ident(name), Safe(direction))))
            else:
                self.orders.append(Ident(order))

    @chained
    def order_expr(self, template: str, *args):
        self.orders.append(SafeQuery(template, args))

    @chained
    def limit(self, n: int):
        self.limit_value = int(n)

    @chained
    def offset(self, n: int):
        self.offset_value = int(n)

    @chained
    def for_(self, template: str, *args):
        """Locking clause, e.g. ``for_("UPDATE")`` or ``for_("SHARE OF ?TableAlias")``."""
        self.lock = SafeQuery(template, args)

    def union(self, other: SelectQuery):
        return self._add_set_operation(" UNION ", other)

    def union_all(self, other: SelectQuery):
        return self._add_set_operation(" UNION ALL ", other)

    def intersect(self, other: SelectQuery):
        return self._add_set_operation(" INTERSECT ", other)

    def intersect_all(self, other: SelectQuery):
        return self._add_set_operation(" INTERSECT ALL ", other)

    def except_(self, other: SelectQuery):
        return self._add_set_operation(" EXCEPT ", other)

    def except_all(self, other: SelectQuery):
        return self._add_set_operation(" EXCEPT ALL ", other)

    @chained
    def _add_set_operation(self, operator: str, other: SelectQuery):
        self.set_operations.append(SetOperation(operator=operator, query=other))

    @chained
    def join(self, template: str, *args):
        """Add a raw join (``"LEFT JOIN authors AS a"``); conditions follow with ``join_on``."""
        self.joins.append(JoinClause(join=SafeQuery(template, args)))

    @chained
    def join_on(self, template: str, *args):
        self._join_on(template, args, " AND ")

    @chained
    def join_on_or(self, template: str, *args):
        self._join_on(template, args, " OR ")

    def _join_on(self, template: str, args, sep: str) -> None:
        if not self.joins:
            self.set_err(ConfigurationError("query has no joins"))
            return
        self.joins[-1].on.append(SafeQuery(template, args, sep=sep))

    @chained
    def relation(self, name: str, apply: Optional[Callable] = None):
        """Eager-load relation ``name`` (``author``, ``author.publisher``, ``books``...).

        ``apply`` receives a select query for the related table: for to-one
        relations its columns restrict the joined columns and its conditions
        are added to the ON clause; for to-many relations it shapes the
        follow-up query.
        """
        if self.table_schema is None:
            self.set_err(ConfigurationError("relation requires a model"))
            return
        try:
            resolve(self.relation_joins, self.table_schema, name, apply)
        except ConfigurationError as error:
            self.set_err(error)

    # rendering

    def append_query(self, fmter: Formatter, count: bool = False) -> None:
        if self.err is not None:
            raise self.err
        dialect = self.dialect
        wrap = count and bool(self.groups or self.distinct_flag
                              or self.distinct_on_fragments or self.set_operations)
        parenthesize = bool(self.set_operations) and dialect.supports_parenthesized_set_operations

        self.append_with(fmter)
        if wrap:
            fmter.write("SELECT count(*) FROM (")
        if parenthesize:
            fmter.write("(")

        fmter.write("SELECT ")
        if self.distinct_on_fragments:
            if not dialect.supports_distinct_on:
                raise ConfigurationError(f"{dialect.name} does not support DISTINCT ON")
            fmter.write("DISTINCT ON (")
            for i, fragment in enumerate(self.distinct_on_fragments):
                if i:
                    fmter.write(", ")
                fragment.append_sql(fmter)
            fmter.write(") ")
        elif self.distinct_flag:
            fmter.write("DISTINCT ")

        if count and not wrap:
            fmter.write("count(*)")
        else:
            self._append_columns(fmter)

        if self.custom_table is not None or self.table_schema is not None or self.tables:
            fmter.write(" FROM ")
            self.append_tables(fmter)

        with_deleted = self.deleted_filter == ALL_WITH_DELETED
        for join in iter_to_one(self.relation_joins):
            append_join(join, fmter, self.db, with_deleted)
        for clause in self.joins:
            clause.append_sql(fmter)

        self.append_where(fmter)

        if self.groups:
            fmter.write(" GROUP BY ")
            for i, fragment in enumerate(self.groups):
                if i:
                    fmter.write(", ")
                fragment.append_sql(fmter)

        if self.havings:
            fmter.write(" HAVING ")
            for i, fragment in enumerate(self.havings):
                if i:
                    fmter.write(" AND ")
                fmter.write("(")
                fragment.append_sql(fmter)
                fmter.write(")")

        if not count:
            if self.orders:
                fmter.write(" ORDER BY ")
                for i, fragment in enumerate(self.orders):
                    if i:
                        fmter.write(", ")
                    fragment.append_sql(fmter)
            fmter.write(dialect.limit_offset(self.limit_value, self.offset_value))
            if self.lock is not None:
                fmter.write(" FOR ")
                self.lock.append_sql(fmter)

        if self.set_operations:
            if parenthesize:
                fmter.write(")")
            for operation in self.set_operations:
                fmter.write(operation.operator)
                if parenthesize:
                    fmter.write("(")
                operation.query.append_query(fmter.nested(operation.query.table_schema))
                if parenthesize:
                    fmter.write(")")

        if wrap:
            fmter.write(") AS ")
            fmter.write_ident("_count_wrapper")

    def _append_columns(self, fmter: Formatter) -> None:
        schema = self.table_schema
        entries: list[Fragment] = []
        if self.columns is not None:
            entries.extend(self.columns)
        elif schema is not None:
            entries.extend(Ident(c.name) for c in schema.columns)
        else:
            entries.append(Safe("*"))
        for join in iter_to_one(self.relation_joins):
            entries.extend(join_columns(join, self.db))
        for i, fragment in enumerate(entries):
            if i:
                fmter.write(", ")
            if isinstance(fragment, Ident) and schema is not None and schema.column(fragment.name):
                fmter.write_column(schema.column(fragment.name).name)
            else:
                fragment.append_sql(fmter)

    def count_sql(self) -> tuple[str, tuple[Any, ...]]:
        if self.err is not None:
            raise self.err
        fmter = self.new_formatter()
        self.append_query(fmter, count=True)
        return fmter.render()

    # execution

    def _cursor(self):
        sql, params = self.to_sql()
        return self.run(sql, params)

    def rows(self):
        """Run the query and return the driver cursor."""
        return self._cursor()

    def exec(self):
        """Run the query and return the cursor without mapping rows."""
        return self._cursor()

    def _default_dest(self):
        if self.bound_model is None:
            raise ConfigurationError("scan requires a destination or a model")
        return self.bound_model

    def _related_parents(self, result) -> list:
        if isinstance(result, list):
            return [r for r in result if is_table(type(r))]
        if is_table(type(result)):
            return [result]
        return []

    def scan(self, *dest):
        """Run the query and map the rows into ``dest`` (the bound model by default).

        Returns the mapped value: a model instance, a list, a dict, a scalar,
        or a tuple when several destinations are given. Relations named with
        ``relation()`` are loaded onto the returned models.
        """
        if not dest:
            dest = (self._default_dest(),)
        if self.table_schema is not None:
            self.call_hook("before_select")
        cursor = self._cursor()
        names = column_names(cursor)
        rows = cursor.fetchall()
        result = map_rows(names, rows, dest, element_type=self.model_type(), registry=self.registry)
        if rows and self.relation_joins:
            load_relations(self.relation_joins, self._related_parents(result), self.db)
        if self.table_schema is not None:
            self.call_hook("after_select")
        return result

    def scan_with_keys(self, key_names: Sequence[str]) -> tuple[list, list[tuple]]:
        """Scan into a list of the bound model, splitting off the ``key_names`` columns."""
        self.call_hook("before_select")
        cursor = self._cursor()
        names = column_names(cursor)
        rows = cursor.fetchall()
        lowered = [name.lower() for name in names]
        key_indexes = [lowered.index(name.lower()) for name in key_names]
        keep = [i for i in range(len(names)) if i not in key_indexes]
        models = map_rows(
            [names[i] for i in keep],
            [[row[i] for i in keep] for row in rows],
            (list[self.model_type()],),
            registry=self.registry,
        )
        keys = [tuple(row[i] for i in key_indexes) for row in rows]
        if models and self.relation_joins:
            load_relations(self.relation_joins, models, self.db)
        self.call_hook("after_select")
        return models, keys

    def count(self) -> int:
        """Number of rows the query matches, ignoring ORDER BY, LIMIT and OFFSET."""
        sql, params = self.count_sql()
        row = self.run(sql, params).fetchone()
        return int(row[0]) if row else 0

    def exists(self) -> bool:
        sql, params = self.to_sql()
        row = self.run(f"SELECT EXISTS ({sql})", params).fetchone()
        return bool(row[0]) if row else False

    def scan_and_count(self, *dest) -> tuple[Any, int]:
        """Return ``(scan(*dest), count())``.

        Both statements run concurrently on a DB. They run one after the other
        on the caller's connection inside a transaction (a Tx, or a DB with a
        transaction open on this thread) and when every connection sees its
        own database (in-memory SQLite). The first error raised by either one
        propagates.
        """
        if self.db is None or not self.db.can_run_concurrently():
            return self.scan(*dest), self.count()
        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="rowbound-scan-count") as pool:
            scanned = pool.submit(self.scan, *dest)
            counted = pool.submit(self.count)
            for future in as_completed((scanned, counted)):
                future.result()
            return scanned.result(), counted.result()


__all__ = ["SelectQuery", "JoinClause", "SetOperation"]
