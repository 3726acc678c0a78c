"""Helpers for reading entity annotations, naming tables and looking up entity classes."""

from .find_subclass import find_subclass, iter_subclasses
from .get_base_type import get_base_type, strip_annotated
from .is_table import is_structure, is_table
from .naming import pluralize, snake_case
from .resolve_type import resolve_type
from .zero_value import zero_value

__all__ = [
    "find_subclass",
    "iter_subclasses",
    "get_base_type",
    "strip_annotated",
    "is_structure",
    "is_table",
    "pluralize",
    "snake_case",
    "resolve_type",
    "zero_value",
]
