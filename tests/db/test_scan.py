"""Tests for rowbound.scan: mapping cursor rows into destinations."""

import datetime
from typing import Optional

import pytest
from pydantic import BaseModel

from rowbound.errors import MappingError, NoRowsError
from rowbound.scan import LIST_TYPE, MODEL_INSTANCE, SCALAR, classify, map_rows, scan_all, scan_row

from tests.models import Address, Book, Customer


class FakeCursor:
    """Minimal DB-API cursor over fixed rows."""

    def __init__(self, names, rows):
        self.description = [(name, None, None, None, None, None, None) for name in names]
        self._rows = list(rows)

    def fetchone(self):
        return self._rows.pop(0) if self._rows else None

    def fetchall(self):
        rows, self._rows = self._rows, []
        return rows


class Point(BaseModel):
    x: int = 0
    y: int = 0
    label: Optional[str] = None


def test_classify():
    assert classify(list[Book]) == (LIST_TYPE, Book)
    assert classify(Book()) == (MODEL_INSTANCE, Book)
    assert classify(int) == (SCALAR, int)
    with pytest.raises(MappingError, match="cannot infer"):
        classify([])
    with pytest.raises(MappingError, match="unsupported scan destination"):
        classify(object())


def test_model_columns_match_case_insensitively(registry):
    book = map_rows(["ID", "Title"], [(1, "Dune")], (Book,))
    assert (book.id, book.title) == (1, "Dune")


def test_related_columns_are_routed(registry):
    book = map_rows(
        ["id", "title", "author__id", "author__name"],
        [(1, "Dune", 7, "Frank Herbert")],
        (Book,),
    )
    assert book.author.id == 7
    assert book.author.name == "Frank Herbert"


def test_all_null_related_columns_give_none(registry):
    book = map_rows(["id", "author__id", "author__name"], [(1, None, None)], (Book,))
    assert book.author is None


def test_embedded_columns(registry):
    customer = map_rows(["id", "address__street", "address__city"], [(1, "Main St", "Paris")], (Customer,))
    assert isinstance(customer.address, Address)
    assert customer.address.city == "Paris"
    empty = map_rows(["id", "address__street", "address__city"], [(2, None, None)], (Customer,))
    assert empty.address is None


def test_plain_pydantic_models():
    points = map_rows(["x", "y", "label"], [(1, 2, None), (3, 4, "b")], (list[Point],))
    assert [(p.x, p.y, p.label) for p in points] == [(1, 2, None), (3, 4, "b")]


def test_values_are_converted_to_field_types():
    class Event(BaseModel):
        at: datetime.datetime
        done: bool = False

    event = map_rows(["at", "done"], [("2024-05-06 07:08:09", 1)], (Event,))
    assert event.at == datetime.datetime(2024, 5, 6, 7, 8, 9)
    assert event.done is True


def test_list_instance_is_extended(registry):
    books = [Book(id=1, title="first")]
    result = map_rows(["id", "title"], [(2, "second")], (books,))
    assert result is books
    assert [b.title for b in books] == ["first", "second"]


def test_dict_instance_is_updated():
    row = {"keep": True}
    assert map_rows(["a"], [(1,)], (row,)) == {"keep": True, "a": 1}


def test_several_destinations():
    assert map_rows(["a", "b"], [(1, "x"), (2, "y")], (int, str)) == (1, "x")
    assert map_rows(["a", "b"], [(1, "x"), (2, "y")], (list[int], list[str])) == ([1, 2], ["x", "y"])
    with pytest.raises(MappingError, match="2 destinations for 1 columns"):
        map_rows(["a"], [(1,)], (int, int))
    with pytest.raises(MappingError, match="several destinations"):
        map_rows(["a", "b"], [(1, 2)], (int, list[int]))


def test_no_rows():
    with pytest.raises(NoRowsError):
        map_rows(["a"], [], (int,))
    with pytest.raises(NoRowsError):
        map_rows(["a"], [], (dict,))
    assert map_rows(["a"], [], (list[int],)) == []


def test_scan_row_reads_only_the_first_row():
    cursor = FakeCursor(["a"], [(1,), (2,)])
    assert scan_row(cursor, list[int]) == [1]
    assert cursor.fetchall() == [(2,)]


def test_scan_all(registry):
    cursor = FakeCursor(["id", "title"], [(1, "a"), (2, "b")])
    assert [b.title for b in scan_all(cursor, list[Book])] == ["a", "b"]
