"""Tests for rowbound.table.column: parsing driver values and binding parameters."""

import datetime
from typing import Any, Optional

import pytest

from rowbound.dialects import MysqlDialect, PostgresDialect
from rowbound.errors import MappingError
from rowbound.table import Column
from rowbound.utils.get_base_type import get_base_type


def make_column(annotation, **kwargs) -> Column:
    base_type, _, nullable = get_base_type(annotation)
    kwargs.setdefault("nullable", nullable)
    return Column(name="value", path=("value",), annotation=annotation, python_type=base_type, **kwargs)


class TestParse:

    def test_null_in_nullable_column(self):
        assert make_column(Optional[int]).parse(None) is None

    def test_null_gives_zero_value(self):
        assert make_column(int).parse(None) == 0
        assert make_column(str).parse(None) == ""
        assert make_column(dict, is_json=True).parse(None) == {}

    def test_scalars_are_converted(self):
        assert make_column(bool).parse(1) is True
        assert make_column(str).parse(12) == "12"
        assert make_column(str).parse(b"abc") == "abc"
        assert make_column(datetime.datetime).parse("2024-01-02 03:04:05") == datetime.datetime(2024, 1, 2, 3, 4, 5)

    def test_json_text_and_bytes(self):
        column = make_column(dict, is_json=True)
        assert column.parse('{"a": [1, 2]}') == {"a": [1, 2]}
        assert column.parse(b'{"a": 1}') == {"a": 1}
        assert column.parse({"already": "decoded"}) == {"already": "decoded"}

    def test_any_passes_through(self):
        marker = object()
        assert make_column(Any).parse(marker) is marker

    def test_unconvertible_value_raises(self):
        with pytest.raises(MappingError, match="column 'value'"):
            make_column(int).parse("not a number")


class TestToParam:

    def test_json_is_encoded_by_the_dialect(self):
        column = make_column(dict, is_json=True)
        assert column.to_param({"s": "a\x00"}, MysqlDialect()) == '{"s": "a\\u0000"}'
        assert column.to_param({"s": "a\x00"}, PostgresDialect()) == '{"s": "a\\\\u0000"}'

    def test_nullzero(self):
        column = make_column(int, nullzero=True)
        assert column.to_param(0, PostgresDialect()) is None
        assert column.to_param(3, PostgresDialect()) == 3

    def test_none_stays_none(self):
        assert make_column(dict, is_json=True).to_param(None, PostgresDialect()) is None
