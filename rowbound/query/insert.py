"""INSERT query builder.

Example::

    book = Book(title="Dune", author_id=1)
    db.new_insert().model(book).exec()
    assert book.id is not None

A list of instances is inserted with one multi-row ``VALUES`` list.
Autoincrement primary keys left as None are generated by the database and
written back onto the instances, through ``RETURNING`` where the dialect
supports it and through the cursor's ``lastrowid`` otherwise.
"""

from __future__ import annotations

import logging
from typing import Optional

from pydantic import Field

from ..errors import ConfigurationError
from ..expressions import Formatter, Fragment, Ident, SafeQuery
from ..scan import ModelPlan, column_names
from .base import BaseQuery, chained

logger = logging.getLogger("rowbound")


class InsertQuery(BaseQuery):
    """Builds and runs an INSERT statement."""

    insert_columns: Optional[list[str]] = None
    """Restricts the inserted model columns."""
    values_by_column: dict[str, Fragment] = Field(default_factory=dict)
    """SQL expressions replacing (or adding) the value of a column in every row."""
    on_fragment: Optional[Fragment] = None
    set_fragments: list[Fragment] = Field(default_factory=list)
    ignore_flag: bool = False

    # configuration

    @chained
    def table(self, *names: str):
        for name in names:
            self.tables.append(Ident(name))

    @chained
    def column(self, *names: str):
        if self.insert_columns is None:
            self.insert_columns = []
        self.insert_columns.extend(names)

    @chained
    def value(self, column: str, template: str, *args):
        """Insert ``column`` from an SQL expression instead of the model field."""
        self.values_by_column[column] = SafeQuery(template, args)

    @chained
    def on(self, template: str, *args):
        """Conflict clause: ``on("CONFLICT (id) DO UPDATE")`` or ``on("DUPLICATE KEY UPDATE")``.

        Without ``set``, an updating clause sets every inserted column from
        the proposed row.
        """
        self.on_fragment = SafeQuery(template, args)

    @chained
    def set(self, template: str, *args):
        self.set_fragments.append(SafeQuery(template, args))

    @chained
    def ignore(self):
        """Skip rows that violate a constraint (INSERT IGNORE / ON CONFLICT DO NOTHING)."""
        self.ignore_flag = True

    # rendering

    def new_formatter(self, interpolate: bool = False) -> Formatter:
        # the inserted table has no alias: ?TableAlias is its name
        alias = self.table_schema.name if self.table_schema is not None else None
        return Formatter(self.dialect, table=self.table_schema, interpolate=interpolate, alias=alias)

    def _columns(self):
        schema = self.table_schema
        if schema is None:
            return []
        if self.insert_columns is None:
            columns = list(schema.columns)
        else:
            columns = []
            for name in self.insert_columns:
                found = schema.column(name)
                if found is None:
                    raise ConfigurationError(f"{schema.type.__name__} does not have column {name!r}")
                columns.append(found)
        instances = self.model_instances()
        # generated keys are left out when no row provides one
        return [
            c for c in columns
            if not (c.autoincrement and c.name not in self.values_by_column
                    and all(c.get_value(i) is None for i in instances))
        ]

    def generated_columns(self):
        """Autoincrement primary keys the database generates for at least one row."""
        schema = self.table_schema
        if schema is None:
            return []
        instances = self.model_instances()
        return [
            c for c in schema.pks
            if c.autoincrement and c.name not in self.values_by_column
            and any(c.get_value(i) is None for i in instances)
        ]

    def _returning(self) -> list[Fragment]:
        if self.returning_fragments:
            if len(self.returning_fragments) == 1 and isinstance(self.returning_fragments[0], SafeQuery) \
                    and self.returning_fragments[0].template.upper() == "NULL":
                return []
            return self.returning_fragments
        if self.dialect.supports_returning:
            return [Ident(c.name) for c in self.generated_columns()]
        return []

    def append_query(self, fmter: Formatter) -> None:
        if self.err is not None:
            raise self.err
        dialect = self.dialect
        schema = self.table_schema
        if schema is None and not self.tables:
            raise ConfigurationError("insert requires a model or a table")
        if self.ignore_flag and not (dialect.supports_insert_ignore or dialect.supports_on_conflict):
            raise ConfigurationError(f"{dialect.name} does not support ignoring conflicts")

        self.append_with(fmter)
        fmter.write("INSERT ")
        if self.ignore_flag and dialect.supports_insert_ignore:
            fmter.write("IGNORE ")
        fmter.write("INTO ")
        self.append_tables(fmter, with_alias=False)

        columns = self._columns()
        names = [c.name for c in columns]
        names += [name for name in self.values_by_column if name not in names]
        instances = self.model_instances() or [None]
        if not names:
            fmter.write(dialect.empty_insert_values())
        else:
            fmter.write(" (")
            fmter.write(", ".join(dialect.quote_identifier(name) for name in names))
            fmter.write(") VALUES ")
            by_name = {c.name: c for c in columns}
            for row, instance in enumerate(instances):
                if row:
                    fmter.write(", ")
                fmter.write("(")
                for i, name in enumerate(names):
                    if i:
                        fmter.write(", ")
                    self._append_value(fmter, by_name.get(name), name, instance)
                fmter.write(")")

        self._append_on(fmter, names)
        returning = self._returning()
        if returning:
            if not dialect.supports_returning:
                raise ConfigurationError(f"{dialect.name} does not support RETURNING")
            fmter.write(" RETURNING ")
            for i, fragment in enumerate(returning):
                if i:
                    fmter.write(", ")
                fragment.append_sql(fmter)

    def _append_value(self, fmter: Formatter, column, name: str, instance) -> None:
        if name in self.values_by_column:
            self.values_by_column[name].append_sql(fmter)
            return
        value = column.get_value(instance) if instance is not None else None
        if value is None and column.autoincrement:
            fmter.write("DEFAULT" if self.dialect.supports_default_keyword else "NULL")
            return
        fmter.write_value(column.to_param(value, self.dialect))

    def _append_on(self, fmter: Formatter, names: list[str]) -> None:
        dialect = self.dialect
        if self.on_fragment is None:
            if self.ignore_flag and not dialect.supports_insert_ignore:
                fmter.write(" ON CONFLICT DO NOTHING")
            return
        clause = self.on_fragment.template.strip().upper()
        if clause.startswith("CONFLICT") and not dialect.supports_on_conflict:
            raise ConfigurationError(f"{dialect.name} does not support ON CONFLICT")
        if clause.startswith("DUPLICATE KEY") and not dialect.supports_on_duplicate_key:
            raise ConfigurationError(f"{dialect.name} does not support ON DUPLICATE KEY UPDATE")
        fmter.write(" ON ")
        self.on_fragment.append_sql(fmter)
        if not clause.endswith("UPDATE"):
            return
        if self.set_fragments:
            fmter.write(" SET " if clause.startswith("CONFLICT") else " ")
            for i, fragment in enumerate(self.set_fragments):
                if i:
                    fmter.write(", ")
                fragment.append_sql(fmter)
            return
        schema = self.table_schema
        pk_names = {c.name for c in schema.pks} if schema is not None else set()
        updated = [name for name in names if name not in pk_names]
        if not updated:
            raise ConfigurationError("nothing to update on conflict (use set)")
        fmter.write(" SET " if clause.startswith("CONFLICT") else " ")
        for i, name in enumerate(updated):
            if i:
                fmter.write(", ")
            quoted = dialect.quote_identifier(name)
            if clause.startswith("CONFLICT"):
                fmter.write(f"{quoted} = EXCLUDED.{quoted}")
            else:
                fmter.write(f"{quoted} = VALUES({quoted})")

    # execution

    def exec(self):
        """Run the statement; generated values are written back onto the bound instances."""
        if self.err is not None:
            raise self.err
        self.call_hook("before_insert")
        sql, params = self.to_sql()
        cursor = self.run(sql, params)
        instances = self.model_instances()
        if instances:
            if self._returning():
                self._write_back(cursor, instances)
            else:
                self._write_lastrowid(cursor, instances)
        self.call_hook("after_insert")
        return cursor

    def _write_back(self, cursor, instances: list) -> None:
        names = column_names(cursor)
        rows = cursor.fetchall()
        if not names:
            return
        if len(rows) != len(instances):
            # rows skipped by IGNORE / DO NOTHING cannot be paired with their instances
            logger.debug("Not writing back %d returned rows onto %d instances", len(rows), len(instances))
            return
        plan = ModelPlan.build(type(instances[0]), names, self.registry, strict=False)
        for instance, row in zip(instances, rows):
            plan.fill(instance, row)

    def _write_lastrowid(self, cursor, instances: list) -> None:
        generated = self.generated_columns()
        last_id = getattr(cursor, "lastrowid", None)
        if len(generated) != 1 or not last_id:
            return
        column = generated[0]
        if getattr(cursor, "rowcount", -1) != len(instances):
            logger.debug("Not writing back lastrowid: %s of %d rows inserted", cursor.rowcount, len(instances))
            return
        if any(column.get_value(instance) is not None for instance in instances):
            return
        first_id = last_id if self.dialect.lastrowid_is_first_row else last_id - len(instances) + 1
        for offset, instance in enumerate(instances):
            setattr(instance, column.attribute, column.parse(first_id + offset))


__all__ = ["InsertQuery"]
