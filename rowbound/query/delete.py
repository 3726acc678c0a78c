"""DELETE query builder.

On tables with a soft-delete column, ``exec`` marks the rows deleted
(``UPDATE ... SET "deleted_at" = ?``) and writes the timestamp onto the bound
instances; ``force_delete()`` removes the rows for good. A WHERE condition is
required.
"""

from __future__ import annotations

import datetime
import logging
from typing import Optional

from ..errors import ConfigurationError
from ..expressions import Formatter, Ident, SafeQuery
from .base import BaseQuery, chained

logger = logging.getLogger("rowbound")


class DeleteQuery(BaseQuery):
    """Builds and runs a DELETE (or soft-delete UPDATE) statement."""

    force: bool = False
    deleted_at: Optional[datetime.datetime] = None
    """Timestamp of the current soft delete, set when the statement is rendered."""

    @chained
    def table(self, *names: str):
        for name in names:
            self.tables.append(Ident(name))

    @chained
    def table_expr(self, template: str, *args):
        self.tables.append(SafeQuery(template, args))

    @chained
    def force_delete(self):
        """Delete the rows even when the table has a soft-delete column."""
        self.force = True

    @property
    def is_soft_delete(self) -> bool:
        schema = self.table_schema
        return schema is not None and schema.soft_delete_column is not None and not self.force

    def soft_delete_condition(self, alias=None):
        if self.force:
            return None
        return super().soft_delete_condition(alias)

    def new_formatter(self, interpolate: bool = False) -> Formatter:
        alias = None
        if self.table_schema is not None and not self.is_soft_delete \
                and not self.dialect.supports_table_alias_in_delete:
            alias = self.table_schema.name
        return Formatter(self.dialect, table=self.table_schema, interpolate=interpolate, alias=alias)

    def append_query(self, fmter: Formatter) -> None:
        if self.err is not None:
            raise self.err
        schema = self.table_schema
        if schema is None and not self.tables:
            raise ConfigurationError("delete requires a model or a table")

        self.append_with(fmter)
        if self.is_soft_delete:
            column = schema.soft_delete_column
            if self.deleted_at is None:
                self.deleted_at = datetime.datetime.now(datetime.timezone.utc)
            fmter.write("UPDATE ")
            self.append_tables(fmter)
            fmter.write(" SET ")
            fmter.write_ident(column.name)
            fmter.write(" = ")
            fmter.write_value(column.to_param(self.deleted_at, self.dialect))
        else:
            fmter.write("DELETE FROM ")
            self.append_tables(fmter)
        self.append_where(fmter, required=True)
        self.append_returning(fmter)

    def exec(self):
        """Run the statement and return the cursor."""
        if self.err is not None:
            raise self.err
        self.call_hook("before_delete")
        self.deleted_at = None
        sql, params = self.to_sql()
        cursor = self.run(sql, params)
        if self.is_soft_delete:
            column = self.table_schema.soft_delete_column
            for instance in self.model_instances():
                setattr(instance, column.attribute, self.deleted_at)
        self.call_hook("after_delete")
        return cursor


__all__ = ["DeleteQuery"]
