"""UPDATE query builder.

Example::

    book.title = "Dune Messiah"
    db.new_update().model(book).where_pk().exec()

    db.new_update().model(Book).set("price = price * ?", 1.1).where("author_id = ?", 1).exec()

Without ``set``, every non-primary-key column is set from the bound
instance (restricted with ``column``). A WHERE condition is required.
"""

from __future__ import annotations

import logging
from typing import Optional

from pydantic import Field

from ..errors import ConfigurationError
from ..expressions import Formatter, Fragment, Ident, SafeQuery
from ..scan import ModelPlan, column_names
from ..utils.zero_value import zero_value
from .base import BaseQuery, chained

logger = logging.getLogger("rowbound")


class UpdateQuery(BaseQuery):
    """Builds and runs an UPDATE statement."""

    update_columns: Optional[list[str]] = None
    set_fragments: list[Fragment] = Field(default_factory=list)
    values_by_column: dict[str, Fragment] = Field(default_factory=dict)
    omit_zero_flag: bool = False

    # configuration

    @chained
    def model(self, value):
        if isinstance(value, list):
            self.set_err(ConfigurationError("update of a list of models is not supported; update them one by one"))
            return
        self.bind_model(value)

    @chained
    def table(self, *names: str):
        """Extra tables for the ``FROM`` clause of the update."""
        for name in names:
            self.tables.append(Ident(name))

    @chained
    def table_expr(self, template: str, *args):
        self.tables.append(SafeQuery(template, args))

    @chained
    def column(self, *names: str):
        """Only set these model columns."""
        if self.update_columns is None:
            self.update_columns = []
        self.update_columns.extend(names)

    @chained
    def set(self, template: str, *args):
        """Add an assignment, e.g. ``set("title = ?", "Dune")``."""
        self.set_fragments.append(SafeQuery(template, args))

    @chained
    def value(self, column: str, template: str, *args):
        """Set ``column`` from an SQL expression instead of the model field."""
        self.values_by_column[column] = SafeQuery(template, args)

    @chained
    def omit_zero(self):
        """Leave out model columns whose value is None or the type's zero value."""
        self.omit_zero_flag = True

    # rendering

    def _assignments(self) -> list[tuple[str, Optional[Fragment], object]]:
        """``(column name, expression or None, column)`` for the SET clause."""
        schema = self.table_schema
        instances = self.model_instances()
        if schema is None or not instances:
            if self.values_by_column:
                return [(name, fragment, None) for name, fragment in self.values_by_column.items()]
            raise ConfigurationError("update requires set() or a model instance")
        instance = instances[0]
        if self.update_columns is None:
            columns = list(schema.data_columns)
        else:
            columns = []
            for name in self.update_columns:
                found = schema.column(name)
                if found is None:
                    raise ConfigurationError(f"{schema.type.__name__} does not have column {name!r}")
                columns.append(found)
        result = []
        for column in columns:
            if column.name in self.values_by_column:
                result.append((column.name, self.values_by_column[column.name], column))
                continue
            if self.omit_zero_flag:
                value = column.get_value(instance)
                if value is None or value == zero_value(column.python_type):
                    continue
            result.append((column.name, None, column))
        known = {name for name, _, _ in result}
        result += [(name, fragment, None) for name, fragment in self.values_by_column.items()
                   if name not in known and schema.column(name) is None]
        return result

    def append_query(self, fmter: Formatter) -> None:
        if self.err is not None:
            raise self.err
        schema = self.table_schema
        if schema is None and not self.tables:
            raise ConfigurationError("update requires a model or a table")

        self.append_with(fmter)
        fmter.write("UPDATE ")
        tables = list(self.tables)
        if schema is not None:
            fmter.write_ident(schema.name)
            if fmter.alias != schema.name:
                fmter.write(" AS ")
                fmter.write_ident(fmter.alias)
        else:
            tables.pop(0).append_sql(fmter)

        fmter.write(" SET ")
        if self.set_fragments:
            for i, fragment in enumerate(self.set_fragments):
                if i:
                    fmter.write(", ")
                fragment.append_sql(fmter)
        else:
            assignments = self._assignments()
            if not assignments:
                raise ConfigurationError("update has nothing to set")
            instance = next(iter(self.model_instances()), None)
            for i, (name, fragment, column) in enumerate(assignments):
                if i:
                    fmter.write(", ")
                fmter.write_ident(name)
                fmter.write(" = ")
                if fragment is not None:
                    fragment.append_sql(fmter)
                else:
                    fmter.write_value(column.to_param(column.get_value(instance), self.dialect))

        if tables:
            fmter.write(" FROM ")
            for i, table in enumerate(tables):
                if i:
                    fmter.write(", ")
                table.append_sql(fmter)

        self.append_where(fmter, required=True)
        self.append_returning(fmter)

    # execution

    def exec(self):
        """Run the statement; ``RETURNING`` values are written back onto the bound instance."""
        if self.err is not None:
            raise self.err
        self.call_hook("before_update")
        sql, params = self.to_sql()
        cursor = self.run(sql, params)
        instances = self.model_instances()
        if self.returning_fragments and instances:
            names = column_names(cursor)
            row = cursor.fetchone()
            if names and row is not None:
                ModelPlan.build(type(instances[0]), names, self.registry, strict=False).fill(instances[0], row)
        self.call_hook("after_update")
        return cursor


__all__ = ["UpdateQuery"]
