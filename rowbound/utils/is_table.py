"""Check whether a type is a Table entity or a plain value structure."""

import inspect

from pydantic import BaseModel


def is_table(t) -> bool:
    """Return True if t is a Table subclass (can be the target of a relation)."""
    from ..table.base import Table
    return inspect.isclass(t) and issubclass(t, Table) and t is not Table


def is_structure(t) -> bool:
    """Return True if t is a Pydantic model that is not a Table (a value structure)."""
    return inspect.isclass(t) and issubclass(t, BaseModel) and not is_table(t)
