"""Tests for rowbound.dialects.postgres: type mapping."""

import datetime
from typing import Optional

from rowbound.dialects import PostgresDialect
from rowbound.table import Table


class Event(Table):
    id: Optional[int] = None
    title: str = ""
    starts_at: Optional[datetime.datetime] = None
    payload: dict = {}
    raw: bytes = b""


def test_postgres_types(registry):
    schema = Event.table_schema()
    d = PostgresDialect()
    assert d.sql_type(schema.column("title")) == "VARCHAR"
    assert d.sql_type(schema.column("starts_at")) == "TIMESTAMPTZ"
    assert d.sql_type(schema.column("payload")) == "JSONB"
    assert d.sql_type(schema.column("raw")) == "BYTEA"
    assert d.autoincrement_definition(schema.column("id")) == '"id" BIGSERIAL NOT NULL'


def test_postgres_name():
    assert PostgresDialect().name == "pg"
    assert str(PostgresDialect()) == "pg"
