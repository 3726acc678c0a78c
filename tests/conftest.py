import pytest

from rowbound.db import DB
from rowbound.dialects import MysqlDialect, PostgresDialect, SqliteDialect
from rowbound.table import default_registry

from tests.models import LIBRARY_MODELS


@pytest.fixture(scope="function")
def registry():
    """The default schema registry, emptied before and after the test."""
    default_registry.clear()
    yield default_registry
    default_registry.clear()


@pytest.fixture(scope="function")
def db(tmp_path, registry):
    """A temporary file SQLite database for each test."""
    database = DB.from_url(f"sqlite:///{tmp_path / 'test.sqlite3'}")
    yield database
    database.close()


@pytest.fixture(scope="function")
def library(db):
    """The library tables, created empty."""
    db.reset_model(*LIBRARY_MODELS)
    return db


@pytest.fixture(scope="function")
def pg(registry):
    """PostgreSQL database that renders SQL without connecting."""
    return DB(PostgresDialect())


@pytest.fixture(scope="function")
def mysql(registry):
    return DB(MysqlDialect())


@pytest.fixture(scope="function")
def sqlite(registry):
    return DB(SqliteDialect())
