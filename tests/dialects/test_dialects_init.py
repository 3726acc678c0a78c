"""Tests for rowbound.dialects: get_dialect_for_scheme and supported schemes."""

import pytest

from rowbound.dialects import (
    get_dialect_for_scheme,
    SqliteDialect,
    MysqlDialect,
    PostgresDialect,
)


def test_get_dialect_for_scheme_sqlite():
    d = get_dialect_for_scheme("sqlite")
    assert isinstance(d, SqliteDialect)


def test_get_dialect_for_scheme_normalizes_and_lowercases():
    d = get_dialect_for_scheme("SQLITE")
    assert isinstance(d, SqliteDialect)
    d = get_dialect_for_scheme("postgresql+psycopg2")
    assert isinstance(d, PostgresDialect)


def test_get_dialect_for_scheme_mysql():
    d = get_dialect_for_scheme("mysql+pymysql")
    assert isinstance(d, MysqlDialect)
    assert d.version == 8


def test_get_dialect_for_scheme_postgres_aliases():
    for scheme in ("postgresql", "postgres", "pg"):
        assert isinstance(get_dialect_for_scheme(scheme), PostgresDialect)


def test_get_dialect_for_scheme_unsupported_raises():
    with pytest.raises(ValueError, match="Unsupported database scheme"):
        get_dialect_for_scheme("nosuch")
    with pytest.raises(ValueError, match="Unsupported database scheme"):
        get_dialect_for_scheme("mssql")


def test_get_dialect_for_scheme_empty_raises():
    with pytest.raises(ValueError, match="Unsupported database scheme"):
        get_dialect_for_scheme("")


def test_get_dialect_for_scheme_none_raises():
    with pytest.raises(ValueError, match="Unsupported database scheme"):
        get_dialect_for_scheme(None)


def test_get_dialect_for_scheme_mysql_versions():
    assert get_dialect_for_scheme("mysql5").version == 5
    assert get_dialect_for_scheme("MYSQL8+pymysql").name == "mysql8"
    assert not get_dialect_for_scheme("mysql5").supports_cte
