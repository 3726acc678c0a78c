"""Tests for rowbound.table.relation: relation kinds, join columns, junction tables."""

from typing import Annotated, Optional

import pytest

from rowbound.errors import ConfigurationError
from rowbound.table import BELONGS_TO, HAS_MANY, HAS_ONE, MANY_TO_MANY, Table, relation
from tests.models import Author, Book, Profile, Tag


def pair_names(pairs):
    return [(base.name, join.name) for base, join in pairs]


class TestKinds:

    def test_belongs_to(self, registry):
        author = Book.table_schema().relation("author")
        assert author.kind == BELONGS_TO
        assert author.is_to_one
        assert author.target_type is Author
        assert pair_names(author.join_pairs) == [("author_id", "id")]

    def test_has_one(self, registry):
        profile = Author.table_schema().relation("profile")
        assert profile.kind == HAS_ONE
        assert profile.target_type is Profile
        assert pair_names(profile.join_pairs) == [("id", "author_id")]

    def test_has_many(self, registry):
        books = Author.table_schema().relation("books")
        assert books.kind == HAS_MANY
        assert books.to_many and not books.is_to_one
        assert books.order == "title"
        assert pair_names(books.join_pairs) == [("id", "author_id")]

    def test_many_to_many(self, registry):
        tags = Book.table_schema().relation("tags")
        assert tags.kind == MANY_TO_MANY
        assert tags.target_type is Tag
        assert tags.m2m_schema.name == "book_tags"
        base_pairs, join_pairs = tags.m2m_pairs
        assert pair_names(base_pairs) == [("id", "book_id")]
        assert pair_names(join_pairs) == [("id", "tag_id")]

    def test_m2m_has_no_join_pairs(self, registry):
        with pytest.raises(ConfigurationError, match="use m2m_pairs"):
            _ = Book.table_schema().relation("tags").join_pairs


class TestOptions:

    def test_explicit_join(self, registry):
        class Office(Table):
            id: Optional[int] = None
            code: str = ""

        class Employee(Table):
            id: Optional[int] = None
            office_code: str = ""
            office: Annotated[Optional[Office], relation(join="office_code=code")] = None

        office = Employee.table_schema().relation("office")
        assert office.kind == BELONGS_TO
        assert pair_names(office.join_pairs) == [("office_code", "code")]

    def test_join_pairs_as_sequence(self):
        tag = relation(join=[("a", "b"), "c=d"])
        assert tag.join == (("a", "b"), ("c", "d"))

    def test_invalid_join_pair(self):
        with pytest.raises(ConfigurationError, match="local=foreign"):
            relation(join="a")

    def test_invalid_kind(self):
        with pytest.raises(ConfigurationError, match="unknown relation kind"):
            relation("one-to-many")

    def test_unknown_options_are_ignored(self):
        assert relation(on_delete="CASCADE").kind is None

    def test_missing_join_column_raises(self, registry):
        class Room(Table):
            id: Optional[int] = None

        class Lamp(Table):
            id: Optional[int] = None
            room: Annotated[Optional[Room], relation(BELONGS_TO)] = None

        with pytest.raises(ConfigurationError, match="does not have column 'room_id'"):
            _ = Lamp.table_schema().relation("room").join_pairs

    def test_missing_primary_key_raises(self, registry):
        class LogLine(Table):
            text: str = ""

        class Host(Table):
            id: Optional[int] = None
            lines: list[LogLine] = []

        relation_ = Host.table_schema().relation("lines")
        assert relation_.kind == HAS_MANY
        with pytest.raises(ConfigurationError, match="does not have column 'host_id'"):
            _ = relation_.join_pairs

        class Shelf(Table):
            label: str = ""
            logs: list[LogLine] = []

        with pytest.raises(ConfigurationError, match="does not have a primary key"):
            _ = Shelf.table_schema().relation("logs").join_pairs

    def test_unknown_junction_table(self, registry):
        class Label(Table):
            id: Optional[int] = None

        class Parcel(Table):
            id: Optional[int] = None
            labels: Annotated[list[Label], relation(m2m="parcel_labels")] = []

        with pytest.raises(ConfigurationError, match="unknown junction table 'parcel_labels'"):
            _ = Parcel.table_schema().relation("labels").m2m_schema
