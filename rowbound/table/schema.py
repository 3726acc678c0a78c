"""Table schemas: the metadata derived once per Table subclass.

``SchemaRegistry.describe(cls)`` inspects the Pydantic fields of a Table
subclass and returns an immutable TableSchema (name, alias, columns,
relations). Results are memoized; concurrent callers share one description.
"""

from __future__ import annotations

import logging
import threading
from functools import cache, cached_property
from typing import Any, ForwardRef, Optional

from pydantic import BaseModel, ConfigDict, PydanticUndefinedAnnotation
from pydantic_core import PydanticUndefined

from ..errors import ConfigurationError
from ..utils.find_subclass import iter_subclasses
from ..utils.get_base_type import get_base_type, strip_annotated
from ..utils.is_table import is_structure, is_table
from ..utils.naming import pluralize, snake_case
from .column import Column, ColumnTag, is_json_type
from .relation import Relation, RelationTag

logger = logging.getLogger("rowbound")


class TableSchema(BaseModel):
    """Metadata of one entity type."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    type: Any
    name: str
    alias: str
    columns: tuple[Column, ...]
    relations: tuple[Relation, ...] = ()

    @cached_property
    def columns_by_name(self) -> dict[str, Column]:
        return {c.name.lower(): c for c in self.columns}

    @cached_property
    def relations_by_name(self) -> dict[str, Relation]:
        return {r.name.lower(): r for r in self.relations}

    def column(self, name: str) -> Optional[Column]:
        """Column by SQL name, case-insensitive."""
        return self.columns_by_name.get(name.lower())

    def relation(self, name: str) -> Optional[Relation]:
        return self.relations_by_name.get(name.lower())

    @cached_property
    def pks(self) -> tuple[Column, ...]:
        return tuple(c for c in self.columns if c.pk)

    @cached_property
    def data_columns(self) -> tuple[Column, ...]:
        """Columns that are not part of the primary key."""
        return tuple(c for c in self.columns if not c.pk)

    @cached_property
    def soft_delete_column(self) -> Optional[Column]:
        return next((c for c in self.columns if c.soft_delete), None)

    @cached_property
    def nested(self) -> tuple[Column, ...]:
        """JSON columns holding a value structure (scannable through ``column__field``)."""
        return tuple(c for c in self.columns if c.is_json and is_structure(c.python_type))

    def __str__(self) -> str:
        return self.name


def _field_default(info) -> Any:
    if info.default is not PydanticUndefined:
        return info.default
    return None


def _columns_for_field(name: str, path: tuple[str, ...], annotation, metadata, default: Any,
                       prefix: str = "", parent_nullable: bool = False) -> list[Column]:
    """Column(s) for one stored field; embedded structures expand to several."""
    annotation, inner_metadata = strip_annotated(annotation)
    metadata = tuple(metadata) + inner_metadata
    tag = next((m for m in metadata if isinstance(m, ColumnTag)), None) or ColumnTag()
    base_type, _, nullable = get_base_type(annotation)
    nullable = nullable or parent_nullable
    column_name = prefix + (tag.name or name)

    if tag.embed:
        if not is_structure(base_type):
            raise ConfigurationError(f"column {column_name!r}: only Pydantic models can be embedded")
        columns = []
        for sub_name, sub_info in base_type.model_fields.items():
            columns += _columns_for_field(
                snake_case(sub_name),
                path + (sub_name,),
                sub_info.annotation,
                sub_info.metadata,
                _field_default(sub_info),
                prefix=f"{column_name}__",
                parent_nullable=nullable,
            )
        return columns

    return [Column(
        name=column_name,
        path=path,
        annotation=annotation,
        python_type=base_type,
        nullable=nullable,
        default=default,
        pk=tag.pk,
        autoincrement=tag.autoincrement,
        soft_delete=tag.soft_delete,
        is_json=tag.json or is_json_type(base_type),
        unique=tag.unique,
        nullzero=tag.nullzero,
        sql_type=tag.type,
    )]


def _relation_target(annotation) -> Optional[tuple[Any, bool, bool]]:
    """``(target, to_many, nullable)`` if the annotation declares a relation, else None."""
    base_type, arguments, nullable = get_base_type(annotation)
    if base_type in (list, tuple, set) and len(arguments) == 1:
        target, _ = strip_annotated(arguments[0])
        if isinstance(target, (str, ForwardRef)) or is_table(target):
            return target, True, nullable
        return None
    if is_table(base_type):
        return base_type, False, nullable
    return None


def _set_primary_key(columns: list[Column]) -> list[Column]:
    """With no explicit ``pk``, a column named ``id`` is the primary key."""
    if any(c.pk for c in columns):
        return columns
    for i, c in enumerate(columns):
        if c.name == "id" and len(c.path) == 1:
            columns[i] = c.model_copy(update={
                "pk": True,
                "autoincrement": c.autoincrement or c.python_type is int,
            })
    return columns


def table_name(cls: type) -> str:
    """SQL table name of a Table subclass: ``table_name=`` keyword or the plural snake_case class name."""
    return cls.__dict__.get("_TABLE_NAME") or pluralize(snake_case(cls.__name__))


def build_schema(cls: type, registry: "SchemaRegistry") -> TableSchema:
    """Derive the TableSchema of a Table subclass."""
    if not cls.__pydantic_complete__:
        from .base import Table
        try:
            cls.model_rebuild(_types_namespace={c.__name__: c for c in iter_subclasses(Table)})
        except PydanticUndefinedAnnotation as error:
            raise ConfigurationError(f"{cls.__name__}: cannot resolve {error.name!r}") from error

    columns: list[Column] = []
    relations: list[Relation] = []
    for attribute, info in cls.model_fields.items():
        metadata = tuple(info.metadata)
        for item in metadata:
            if not isinstance(item, (ColumnTag, RelationTag)):
                logger.debug("Ignoring annotation %r on %s.%s", item, cls.__name__, attribute)
        relation_tag = next((m for m in metadata if isinstance(m, RelationTag)), None)
        target = _relation_target(info.annotation)
        if target is not None or relation_tag is not None:
            if target is None:
                raise ConfigurationError(
                    f"{cls.__name__}.{attribute}: relation fields must be typed with a Table "
                    f"subclass or a list of them"
                )
            target_type, to_many, nullable = target
            relation_tag = relation_tag or RelationTag()
            relations.append(Relation(
                name=attribute,
                base_type=cls,
                target=target_type,
                to_many=to_many,
                nullable=nullable,
                declared_kind=relation_tag.kind,
                join=relation_tag.join,
                m2m=relation_tag.m2m,
                order=relation_tag.order,
                where=relation_tag.where,
                registry=registry,
            ))
            continue
        columns += _columns_for_field(snake_case(attribute), (attribute,), info.annotation,
                                      metadata, _field_default(info))

    seen: set[str] = set()
    for c in columns:
        if c.name.lower() in seen:
            raise ConfigurationError(f"{cls.__name__}: duplicate column name {c.name!r}")
        seen.add(c.name.lower())

    alias = cls.__dict__.get("_TABLE_ALIAS") or snake_case(cls.__name__)
    return TableSchema(
        type=cls,
        name=table_name(cls),
        alias=alias,
        columns=tuple(_set_primary_key(columns)),
        relations=tuple(relations),
    )


class SchemaRegistry:
    """Memoized TableSchema per Table subclass.

    ``describe`` builds a schema at most once per type; callers racing on
    the same type wait for the first one and share its result.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._schemas: dict[type, TableSchema] = {}

    def describe(self, cls: type) -> TableSchema:
        schema = self._schemas.get(cls)
        if schema is not None:
            return schema
        with self._lock:
            schema = self._schemas.get(cls)
            if schema is None:
                if not is_table(cls):
                    raise ConfigurationError(f"{cls!r} is not a Table subclass")
                logger.debug("Describing table %s", cls.__name__)
                schema = build_schema(cls, self)
                self._schemas[cls] = schema
            return schema

    def clear(self) -> None:
        with self._lock:
            self._schemas.clear()


default_registry = SchemaRegistry()


@cache
def structure_columns(model_type: type) -> tuple[Column, ...]:
    """Columns a plain Pydantic model (not a Table) can be scanned from."""
    columns: list[Column] = []
    for attribute, info in model_type.model_fields.items():
        columns += _columns_for_field(snake_case(attribute), (attribute,), info.annotation,
                                      info.metadata, _field_default(info))
    return tuple(columns)
