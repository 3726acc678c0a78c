"""Column metadata for table schemas.

Each stored field of an entity is described by one frozen Column: its SQL
name, the Python type it maps to and the options set through ``column(...)``.
Column also knows how to convert a value returned by the driver back into the
field's Python type.
"""

from __future__ import annotations

import inspect
import json
import logging
from dataclasses import dataclass, field
from functools import cache
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, TypeAdapter, ValidationError

from ..errors import MappingError
from ..utils.zero_value import zero_value

logger = logging.getLogger("rowbound")


@dataclass(frozen=True)
class ColumnTag:
    """Options attached to a field with ``Annotated[..., column(...)]``."""

    name: Optional[str] = None
    pk: bool = False
    autoincrement: bool = False
    soft_delete: bool = False
    json: bool = False
    embed: bool = False
    unique: bool = False
    nullzero: bool = False
    type: Optional[str] = None
    extra: tuple[tuple[str, Any], ...] = field(default=())


def column(name: Optional[str] = None, *,
           pk: bool = False,
           autoincrement: bool = False,
           soft_delete: bool = False,
           json: bool = False,  # pylint: disable=redefined-outer-name
           embed: bool = False,
           unique: bool = False,
           nullzero: bool = False,
           type: Optional[str] = None,  # pylint: disable=redefined-builtin
           **options: Any) -> ColumnTag:
    """Declare column options for a field.

    Example::

        class User(Table):
            id: Annotated[int | None, column(pk=True, autoincrement=True)] = None
            attrs: Annotated[dict, column(json=True)] = {}

    Unknown options are kept on the tag but otherwise ignored.
    """
    if options:
        logger.debug("Ignoring unknown column options: %s", ", ".join(sorted(options)))
    return ColumnTag(name=name, pk=pk, autoincrement=autoincrement, soft_delete=soft_delete,
                     json=json, embed=embed, unique=unique, nullzero=nullzero, type=type,
                     extra=tuple(sorted(options.items(), key=lambda item: item[0])))


@cache
def _cached_adapter(annotation) -> TypeAdapter:
    return TypeAdapter(annotation)


def type_adapter(annotation) -> TypeAdapter:
    """TypeAdapter for an annotation, cached when the annotation is hashable."""
    try:
        return _cached_adapter(annotation)
    except TypeError:
        return TypeAdapter(annotation)


class Column(BaseModel):
    """Metadata for a single stored column."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str
    """SQL column name (e.g. ``author_id``, ``address__city`` for embedded fields)."""
    path: tuple[str, ...]
    """Attribute names from the entity to the value (one element unless embedded)."""
    annotation: Any
    """Field annotation without ``Annotated`` metadata."""
    python_type: Any
    """Base type (``int`` for ``Optional[int]``, ``dict`` for ``dict[str, int]``)."""
    nullable: bool = False
    default: Any = None
    pk: bool = False
    autoincrement: bool = False
    soft_delete: bool = False
    is_json: bool = False
    unique: bool = False
    nullzero: bool = False
    sql_type: Optional[str] = None

    @property
    def attribute(self) -> str:
        """Logical (dotted) name of the field, e.g. ``address.city``."""
        return ".".join(self.path)

    def get_value(self, instance: Any) -> Any:
        value = instance
        for part in self.path:
            if value is None:
                return None
            value = getattr(value, part, None)
        return value

    def to_param(self, value: Any, dialect) -> Any:
        """Value to bind for this column (JSON columns are encoded by the dialect)."""
        if value is None:
            return None
        if self.nullzero and value == zero_value(self.python_type):
            return None
        if self.is_json:
            return dialect.encode_json(value)
        return value

    def parse(self, value: Any) -> Any:
        """Convert a driver value back to the column's Python type.

        NULL gives None for nullable columns and the type's zero value
        otherwise; JSON columns decode text or bytes payloads first.
        """
        if value is None:
            return None if self.nullable else zero_value(self.python_type)
        if self.is_json:
            if isinstance(value, (bytes, bytearray, memoryview)):
                value = bytes(value).decode()
            if isinstance(value, str):
                try:
                    value = json.loads(value)
                except json.JSONDecodeError:
                    pass
        if self.python_type is Any:
            return value
        if self.python_type is str and isinstance(value, (int, float)) and not isinstance(value, bool):
            value = str(value)
        elif self.python_type is str and isinstance(value, (bytes, bytearray)):
            value = bytes(value).decode()
        try:
            return type_adapter(self.annotation).validate_python(value)
        except ValidationError as error:
            raise MappingError(
                f"cannot convert column {self.name!r} value {value!r} to {self.annotation!r}"
            ) from error

    def __str__(self) -> str:
        return self.name


def is_json_type(base_type) -> bool:
    """Types stored as JSON text unless flattened: containers and value structures."""
    if base_type in (dict, list, tuple, set):
        return True
    return inspect.isclass(base_type) and issubclass(base_type, BaseModel)


__all__ = ["Column", "ColumnTag", "column", "type_adapter", "is_json_type"]
