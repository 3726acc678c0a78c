"""Unwrap field annotations into a base type, its arguments and nullability."""

import types
import typing
from typing import Annotated, Any


def strip_annotated(annotation) -> tuple[Any, tuple[Any, ...]]:
    """Return ``(annotation_without_Annotated, metadata)``."""
    metadata: tuple[Any, ...] = ()
    while typing.get_origin(annotation) is Annotated:
        metadata += tuple(annotation.__metadata__)
        annotation = annotation.__origin__
    return annotation, metadata


def get_base_type(annotation) -> tuple[Any, tuple[Any, ...], bool]:
    """Return ``(base_type, type_arguments, nullable)`` for an annotation.

    ``Optional[list[int]]`` gives ``(list, (int,), True)``; ``int`` gives
    ``(int, (), False)``. Unions of several non-None types collapse to ``Any``.
    """
    annotation, _ = strip_annotated(annotation)
    nullable = False
    origin = typing.get_origin(annotation)
    if origin is typing.Union or origin is types.UnionType:
        arguments = [a for a in typing.get_args(annotation) if a is not type(None)]
        nullable = len(arguments) < len(typing.get_args(annotation))
        if len(arguments) != 1:
            return Any, tuple(arguments), nullable
        annotation, _ = strip_annotated(arguments[0])
        origin = typing.get_origin(annotation)
    if annotation is Any or annotation is None:
        return Any, (), True
    if origin is not None:
        return origin, typing.get_args(annotation), nullable
    return annotation, (), nullable
