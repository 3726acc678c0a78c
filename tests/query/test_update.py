"""Tests for rowbound.query.update: rendering of UPDATE statements."""

import pytest

from rowbound.errors import ConfigurationError

from tests.models import Book, Customer, Note


def test_update_from_instance(pg):
    query = pg.new_update().model(Book(id=1, title="Dune", author_id=2)).where_pk()
    sql, params = query.to_sql()
    assert sql == (
        'UPDATE "books" AS "book" SET "title" = %s, "author_id" = %s, "details" = %s '
        'WHERE ("book"."id" = %s)'
    )
    assert params == ("Dune", 2, "{}", 1)


def test_selected_columns(pg):
    sql, params = pg.new_update().model(Book(id=1, title="Dune")).column("title").where_pk().to_sql()
    assert sql == 'UPDATE "books" AS "book" SET "title" = %s WHERE ("book"."id" = %s)'
    assert params == ("Dune", 1)


def test_omit_zero(pg):
    sql, params = pg.new_update().model(Book(id=1, title="x")).omit_zero().where_pk().to_sql()
    assert sql == 'UPDATE "books" AS "book" SET "title" = %s WHERE ("book"."id" = %s)'
    assert params == ("x", 1)


def test_embedded_columns(sqlite):
    sql, _ = sqlite.new_update().model(Customer(id=1, name="Ann")).column("address__city").where_pk().to_sql()
    assert sql == 'UPDATE "customers" AS "customer" SET "address__city" = ? WHERE ("customer"."id" = ?)'


def test_set_expression(pg):
    sql, params = pg.new_update().model(Book).set("title = ?", "x").where("id = ?", 1).to_sql()
    assert sql == 'UPDATE "books" AS "book" SET title = %s WHERE (id = %s)'
    assert params == ("x", 1)


def test_value_expression(pg):
    query = pg.new_update().model(Book(id=1, title="x")).column("title").value("title", "upper(?)", "y").where_pk()
    sql, params = query.to_sql()
    assert sql == 'UPDATE "books" AS "book" SET "title" = upper(%s) WHERE ("book"."id" = %s)'
    assert params == ("y", 1)


def test_from_tables(pg):
    query = (
        pg.new_update()
        .model(Book)
        .set("title = a.name")
        .table_expr("authors AS a")
        .where("a.id = ?TableAlias.author_id")
    )
    sql, _ = query.to_sql()
    assert sql == 'UPDATE "books" AS "book" SET title = a.name FROM authors AS a WHERE (a.id = "book".author_id)'


def test_returning(pg):
    sql, _ = pg.new_update().model(Book(id=1, title="x")).column("title").where_pk().returning("title").to_sql()
    assert sql == 'UPDATE "books" AS "book" SET "title" = %s WHERE ("book"."id" = %s) RETURNING title'


def test_soft_deleted_rows_are_left_alone(sqlite):
    sql, _ = sqlite.new_update().model(Note).set("body = ?", "x").where("id = ?", 1).to_sql()
    assert sql == 'UPDATE "notes" AS "note" SET body = ? WHERE (id = ?) AND "note"."deleted_at" IS NULL'


def test_where_is_required(pg):
    with pytest.raises(ConfigurationError, match="requires at least one WHERE"):
        pg.new_update().model(Book(id=1, title="x")).to_sql()


def test_list_of_models_is_rejected(pg):
    query = pg.new_update().model([Book(id=1), Book(id=2)]).where_pk()
    with pytest.raises(ConfigurationError, match="update them one by one"):
        query.to_sql()


def test_class_without_set(pg):
    with pytest.raises(ConfigurationError, match="requires set"):
        pg.new_update().model(Book).where("id = 1").to_sql()
