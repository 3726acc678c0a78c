"""Resolve forward references to Table classes by name."""

from typing import ForwardRef


def resolve_type(reference_type):
    """Resolve a ForwardRef (or a plain string) to a concrete Table subclass.

    Returns the input unchanged when it is already a type. Raises ValueError
    when no Table subclass has that name.
    """
    from ..table.base import Table
    from .find_subclass import find_subclass

    if isinstance(reference_type, ForwardRef):
        name = reference_type.__forward_arg__
    elif isinstance(reference_type, str):
        name = reference_type
    else:
        return reference_type
    cls = find_subclass(Table, name)
    if cls:
        return cls
    raise ValueError(f"Could not resolve {reference_type!r}")
