"""Tests for rowbound.dialects.mysql: versions and type mapping."""

from typing import Annotated

from rowbound.dialects import MysqlDialect
from rowbound.table import Table, column


class Gadget(Table):
    id: int | None = None
    name: str = ""
    code: Annotated[str, column(type="CHAR(3)")] = ""
    specs: dict = {}


def test_mysql_name_follows_version():
    assert MysqlDialect().name == "mysql8"
    assert MysqlDialect(version=5).name == "mysql5"


def test_mysql5_has_no_cte():
    assert MysqlDialect().supports_cte
    assert not MysqlDialect(version=5).supports_cte
    assert not MysqlDialect(version=5).supports_table_alias_in_delete


def test_mysql_types(registry):
    schema = Gadget.table_schema()
    d = MysqlDialect()
    assert d.sql_type(schema.column("name")) == "VARCHAR(255)"
    assert d.sql_type(schema.column("code")) == "CHAR(3)"
    assert d.sql_type(schema.column("specs")) == "JSON"
    assert d.autoincrement_definition(schema.column("id")) == "`id` BIGINT NOT NULL AUTO_INCREMENT"
