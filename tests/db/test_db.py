"""Tests for rowbound.db: statement execution and transactions on SQLite."""

from concurrent.futures import ThreadPoolExecutor

import pytest

from rowbound.db import DB, Tx
from rowbound.dialects import SqliteDialect
from rowbound.errors import ConfigurationError, TransactionError

from tests.models import Tag


def tag_names(db):
    return db.new_select().model(Tag).column("name").order("id").scan(list[str])


class TestExecution:

    def test_raw_statements(self, library):
        library.execute("INSERT INTO tags (name) VALUES (?)", ("sf",))
        cursor = library.query("SELECT id, name FROM tags")
        tags = library.scan_rows(cursor, list[Tag])
        assert [(t.id, t.name) for t in tags] == [(1, "sf")]

    def test_scan_row(self, library):
        library.execute("INSERT INTO tags (name) VALUES (?)", ("sf",))
        tag = library.scan_row(library.query("SELECT * FROM tags"), Tag)
        assert tag.name == "sf"

    def test_connection_factory_is_required(self, registry):
        db = DB(SqliteDialect())
        with pytest.raises(ConfigurationError, match="no connection factory"):
            db.execute("SELECT 1")

    def test_unknown_scheme(self):
        with pytest.raises(ValueError, match="Unsupported database scheme"):
            DB.from_url("oracle://localhost/db")

    def test_each_thread_has_its_own_connection(self, library):
        library.new_insert().model(Tag(name="sf")).exec()
        with ThreadPoolExecutor(max_workers=2) as pool:
            results = list(pool.map(lambda _: tag_names(library), range(4)))
        assert results == [["sf"]] * 4
        assert len(library._connections) >= 2

    def test_close(self, library):
        tag_names(library)
        library.close()
        assert library._connections == []
        # a closed DB reconnects on next use
        assert tag_names(library) == []


class TestTransactions:

    def test_commit(self, library):
        with library.begin() as tx:
            assert isinstance(tx, Tx)
            tx.new_insert().model(Tag(name="sf")).exec()
        assert tag_names(library) == ["sf"]
        assert not tx.active

    def test_rollback_on_exception(self, library):
        with pytest.raises(RuntimeError):
            with library.begin() as tx:
                tx.new_insert().model(Tag(name="sf")).exec()
                raise RuntimeError("boom")
        assert tag_names(library) == []

    def test_explicit_rollback(self, library):
        tx = library.begin()
        tx.new_insert().model(Tag(name="sf")).exec()
        tx.rollback()
        assert tag_names(library) == []

    def test_run_in_tx(self, library):
        def insert(tx):
            tx.new_insert().model(Tag(name="sf")).exec()
            return "done"

        assert library.run_in_tx(insert) == "done"
        assert tag_names(library) == ["sf"]

    def test_savepoint_rollback_keeps_outer_work(self, library):
        with library.begin() as tx:
            tx.new_insert().model(Tag(name="outer")).exec()
            with pytest.raises(RuntimeError):
                with tx.begin() as inner:
                    assert inner.level == 2
                    assert inner.savepoint_name == "savepoint_2"
                    inner.new_insert().model(Tag(name="inner")).exec()
                    raise RuntimeError("boom")
            tx.new_insert().model(Tag(name="after")).exec()
        assert tag_names(library) == ["outer", "after"]

    def test_savepoint_commit(self, library):
        with library.begin() as tx:
            tx.run_in_tx(lambda inner: inner.new_insert().model(Tag(name="inner")).exec())
        assert tag_names(library) == ["inner"]

    def test_outer_rollback_discards_released_savepoints(self, library):
        with pytest.raises(RuntimeError):
            with library.begin() as tx:
                with tx.begin() as inner:
                    inner.new_insert().model(Tag(name="inner")).exec()
                raise RuntimeError("boom")
        assert tag_names(library) == []

    def test_finished_transaction_cannot_be_used(self, library):
        tx = library.begin()
        tx.commit()
        with pytest.raises(TransactionError, match="no longer active"):
            tx.execute("SELECT 1")
        with pytest.raises(TransactionError, match="no longer active"):
            tx.commit()

    def test_parent_is_locked_while_nested_is_open(self, library):
        with library.begin() as tx:
            inner = tx.begin()
            with pytest.raises(TransactionError, match="Cannot use transaction level 1 from level 2"):
                tx.execute("SELECT 1")
            inner.commit()
            tx.execute("SELECT 1")

    def test_one_transaction_per_thread(self, library):
        with library.begin():
            with pytest.raises(TransactionError, match="already open"):
                library.begin()
        with library.begin() as tx:
            assert tx.level == 1

    def test_queries_on_db_join_the_open_transaction(self, library):
        with pytest.raises(RuntimeError):
            with library.begin():
                library.new_insert().model(Tag(name="sf")).exec()
                assert tag_names(library) == ["sf"]
                raise RuntimeError("boom")
        assert tag_names(library) == []

    def test_scan_and_count_in_transaction(self, library):
        with library.begin() as tx:
            tx.new_insert().model([Tag(name="a"), Tag(name="b")]).exec()
            tags, total = tx.new_select().model(list[Tag]).limit(1).scan_and_count()
        assert len(tags) == 1
        assert total == 2

    def test_scan_and_count_on_db_sees_the_open_transaction(self, library):
        with library.begin():
            library.new_insert().model([Tag(name="a"), Tag(name="b")]).exec()
            tags, total = library.new_select().model(list[Tag]).order("id").scan_and_count()
            assert [t.name for t in tags] == ["a", "b"]
            assert total == 2


def test_scan_and_count_on_in_memory_database(registry):
    db = DB.from_url("sqlite://")
    try:
        assert not db.connections_share_data
        db.reset_model(Tag)
        db.new_insert().model([Tag(name="a"), Tag(name="b"), Tag(name="c")]).exec()
        tags, total = db.new_select().model(list[Tag]).order("id").limit(2).scan_and_count()
        assert [t.name for t in tags] == ["a", "b"]
        assert total == 3
    finally:
        db.close()


def test_file_database_runs_scan_and_count_concurrently(library):
    assert library.connections_share_data
    assert library.can_run_concurrently()
    with library.begin() as tx:
        assert not library.can_run_concurrently()
        assert not tx.can_run_concurrently()
