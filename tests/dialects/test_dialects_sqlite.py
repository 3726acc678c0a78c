"""Tests for rowbound.dialects.sqlite: connect, parameters, types."""

import datetime
import decimal

from rowbound.dialects import SqliteDialect


def test_sqlite_connect_creates_connection(tmp_path):
    d = SqliteDialect()
    url = f"sqlite:///{tmp_path / 'test.db'}"
    conn = d.connect(url)
    assert conn.execute("SELECT 1").fetchone() == (1,)
    assert conn.execute("PRAGMA foreign_keys").fetchone() == (1,)
    conn.close()


def test_sqlite_converts_dates_and_decimals():
    d = SqliteDialect()
    assert d.convert_param(datetime.datetime(2024, 1, 2, 3, 4, 5)) == "2024-01-02 03:04:05"
    assert d.convert_param(datetime.date(2024, 1, 2)) == "2024-01-02"
    assert d.convert_param(decimal.Decimal("1.5")) == "1.5"
    assert d.convert_param({"a": 1}) == '{"a": 1}'


def test_sqlite_in_memory_connections_do_not_share_data(tmp_path):
    d = SqliteDialect()
    assert not d.connections_share_data("sqlite://")
    assert not d.connections_share_data("sqlite:///:memory:")
    assert d.connections_share_data(f"sqlite:///{tmp_path / 'test.db'}")
