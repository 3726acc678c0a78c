"""CREATE TABLE / DROP TABLE builders, derived from table metadata."""

from __future__ import annotations

import logging

from pydantic import Field

from ..errors import ConfigurationError
from ..expressions import Formatter, Fragment, Ident, In, SafeQuery
from ..table.relation import BELONGS_TO
from .base import BaseQuery, chained

logger = logging.getLogger("rowbound")


class CreateTableQuery(BaseQuery):
    """``CREATE TABLE [IF NOT EXISTS]`` for a Table subclass.

    Column types come from the dialect's type mapping (or ``column(type=...)``);
    non-nullable fields are ``NOT NULL``, and the primary key is declared as a
    table constraint.
    """

    if_not_exists_flag: bool = False
    foreign_keys: list[Fragment] = Field(default_factory=list)
    with_foreign_keys_flag: bool = False

    @chained
    def if_not_exists(self):
        self.if_not_exists_flag = True

    @chained
    def with_foreign_keys(self):
        """Add a FOREIGN KEY constraint for every belongs-to relation."""
        self.with_foreign_keys_flag = True

    @chained
    def foreign_key(self, template: str, *args):
        """Add a constraint, e.g. ``foreign_key('("author_id") REFERENCES "authors" ("id") ON DELETE CASCADE')``."""
        self.foreign_keys.append(SafeQuery(template, args))

    def _relation_foreign_keys(self) -> list[Fragment]:
        result = []
        for relation in self.table_schema.relations:
            if relation.kind != BELONGS_TO:
                continue
            pairs = relation.join_pairs
            result.append(SafeQuery("(?) REFERENCES ? (?)", (
                In([Ident(base.name) for base, _ in pairs]),
                Ident(relation.join_schema.name),
                In([Ident(join.name) for _, join in pairs]),
            )))
        return result

    def append_query(self, fmter: Formatter) -> None:
        if self.err is not None:
            raise self.err
        schema = self.table_schema
        if schema is None:
            raise ConfigurationError("create table requires a model")
        dialect = self.dialect

        fmter.write("CREATE TABLE ")
        if self.if_not_exists_flag:
            fmter.write("IF NOT EXISTS ")
        fmter.write_ident(schema.name)
        fmter.write(" (")
        for i, column in enumerate(schema.columns):
            if i:
                fmter.write(", ")
            if column.autoincrement:
                fmter.write(dialect.autoincrement_definition(column))
            else:
                fmter.write_ident(column.name)
                fmter.write(" ")
                fmter.write(dialect.sql_type(column))
                if column.pk or not column.nullable:
                    fmter.write(" NOT NULL")
            if column.unique:
                fmter.write(" UNIQUE")
        if schema.pks:
            fmter.write(", PRIMARY KEY (")
            fmter.write(", ".join(dialect.quote_identifier(pk.name) for pk in schema.pks))
            fmter.write(")")
        foreign_keys = list(self.foreign_keys)
        if self.with_foreign_keys_flag:
            foreign_keys += self._relation_foreign_keys()
        for fragment in foreign_keys:
            fmter.write(", FOREIGN KEY ")
            fragment.append_sql(fmter)
        fmter.write(")")

    def exec(self):
        sql, params = self.to_sql()
        logger.debug("Creating table %s", self.table_schema.name)
        return self.run(sql, params)


class DropTableQuery(BaseQuery):
    """``DROP TABLE [IF EXISTS] ... [CASCADE]`` for models or table names."""

    if_exists_flag: bool = False
    cascade_flag: bool = False

    @chained
    def table(self, *names: str):
        for name in names:
            self.tables.append(Ident(name))

    @chained
    def if_exists(self):
        self.if_exists_flag = True

    @chained
    def cascade(self):
        """Also drop dependent objects (where the dialect supports it)."""
        self.cascade_flag = True

    def append_query(self, fmter: Formatter) -> None:
        if self.err is not None:
            raise self.err
        if self.table_schema is None and not self.tables:
            raise ConfigurationError("drop table requires a model or a table")
        fmter.write("DROP TABLE ")
        if self.if_exists_flag:
            fmter.write("IF EXISTS ")
        self.append_tables(fmter, with_alias=False)
        if self.cascade_flag:
            if self.dialect.supports_drop_table_cascade:
                fmter.write(" CASCADE")
            else:
                logger.debug("%s does not support DROP TABLE ... CASCADE; omitted", self.dialect.name)

    def exec(self):
        sql, params = self.to_sql()
        return self.run(sql, params)


__all__ = ["CreateTableQuery", "DropTableQuery"]
