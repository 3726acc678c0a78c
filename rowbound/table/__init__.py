"""Table metadata: entity base class, column and relation descriptors, schema registry."""

from .base import Table, TableMeta
from .column import Column, ColumnTag, column
from .relation import (
    Relation,
    RelationTag,
    relation,
    BELONGS_TO,
    HAS_ONE,
    HAS_MANY,
    MANY_TO_MANY,
)
from .schema import TableSchema, SchemaRegistry, build_schema, default_registry, structure_columns

__all__ = [
    "Table",
    "TableMeta",
    "Column",
    "ColumnTag",
    "column",
    "Relation",
    "RelationTag",
    "relation",
    "BELONGS_TO",
    "HAS_ONE",
    "HAS_MANY",
    "MANY_TO_MANY",
    "TableSchema",
    "SchemaRegistry",
    "build_schema",
    "default_registry",
    "structure_columns",
]
