"""Tests for rowbound.query.create_table: DDL derived from table metadata."""

import pytest

from rowbound.errors import ConfigurationError

from tests.models import Book, BookTag, Customer, Tag


def test_create_table(sqlite):
    sql, _ = sqlite.new_create_table().model(Book).to_sql()
    assert sql == (
        'CREATE TABLE "books" ("id" INTEGER NOT NULL, "title" TEXT NOT NULL, '
        '"author_id" INTEGER, "details" JSON NOT NULL, PRIMARY KEY ("id"))'
    )


def test_if_not_exists(pg):
    sql, _ = pg.new_create_table().model(Tag).if_not_exists().to_sql()
    assert sql == 'CREATE TABLE IF NOT EXISTS "tags" ("id" BIGSERIAL NOT NULL, "name" VARCHAR NOT NULL, PRIMARY KEY ("id"))'


def test_composite_primary_key(pg):
    sql, _ = pg.new_create_table().model(BookTag).to_sql()
    assert sql == (
        'CREATE TABLE "book_tags" ("book_id" BIGINT NOT NULL, "tag_id" BIGINT NOT NULL, '
        'PRIMARY KEY ("book_id", "tag_id"))'
    )


def test_embedded_structure_columns(pg):
    sql, _ = pg.new_create_table().model(Customer).to_sql()
    assert sql == (
        'CREATE TABLE "customers" ("id" BIGSERIAL NOT NULL, "name" VARCHAR NOT NULL, '
        '"address__street" VARCHAR, "address__city" VARCHAR, "active" BOOLEAN NOT NULL, '
        'PRIMARY KEY ("id"))'
    )


def test_foreign_keys(sqlite):
    sql, _ = sqlite.new_create_table().model(Book).with_foreign_keys().to_sql()
    assert sql.endswith(', PRIMARY KEY ("id"), FOREIGN KEY ("author_id") REFERENCES "authors" ("id"))')


def test_explicit_foreign_key(sqlite):
    query = sqlite.new_create_table().model(BookTag).foreign_key('("book_id") REFERENCES "books" ("id") ON DELETE CASCADE')
    sql, _ = query.to_sql()
    assert sql.endswith('FOREIGN KEY ("book_id") REFERENCES "books" ("id") ON DELETE CASCADE)')


def test_create_requires_model(sqlite):
    with pytest.raises(ConfigurationError, match="requires a model"):
        sqlite.new_create_table().to_sql()


def test_drop_table(pg, sqlite):
    assert pg.new_drop_table().model(Book).if_exists().cascade().to_sql() == ('DROP TABLE IF EXISTS "books" CASCADE', ())
    assert sqlite.new_drop_table().model(Book).if_exists().cascade().to_sql() == ('DROP TABLE IF EXISTS "books"', ())
    assert pg.new_drop_table().table("a", "b").to_sql() == ('DROP TABLE "a", "b"', ())
