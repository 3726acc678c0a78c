"""Row mapper: copy cursor rows into Python destinations.

A destination is a scalar type (``int``, ``datetime``...), ``dict`` or a dict
instance, a Pydantic model class or instance, or a list (``list[Book]``,
``list[int]`` or a list instance to extend). Lists receive every row; the
other destinations receive the first row and raise NoRowsError when there is
none.

Model columns are matched case-insensitively. Names such as
``author__name`` are routed to the ``author`` relation (or nested
structure) of the model. A column no model field accepts raises
MappingError; dict destinations accept any column.
"""

from __future__ import annotations

import inspect
import logging
import typing
from typing import Any, Iterable, Optional, Sequence

from pydantic import BaseModel

from .errors import MappingError, NoRowsError
from .table.column import Column
from .table.schema import default_registry, structure_columns
from .utils.get_base_type import get_base_type
from .utils.is_table import is_structure, is_table

logger = logging.getLogger("rowbound")

SCALAR = "scalar"
DICT_TYPE = "dict_type"
DICT_INSTANCE = "dict_instance"
MODEL_TYPE = "model_type"
MODEL_INSTANCE = "model_instance"
LIST_TYPE = "list_type"
LIST_INSTANCE = "list_instance"


def column_names(cursor) -> list[str]:
    return [d[0] for d in cursor.description or ()]


def _is_model_type(t) -> bool:
    return inspect.isclass(t) and issubclass(t, BaseModel)


def classify(dest, element_type=None) -> tuple[str, Any]:
    """Return ``(kind, type)`` for a destination; type is the element type for lists."""
    origin = typing.get_origin(dest)
    if origin is list:
        arguments = typing.get_args(dest)
        return LIST_TYPE, arguments[0] if arguments else (element_type or dict)
    if isinstance(dest, list):
        if element_type is None and dest:
            element_type = type(dest[0])
        if element_type is None:
            raise MappingError("cannot infer the element type of an empty list destination; "
                               "pass list[Model] or bind a model to the query")
        return LIST_INSTANCE, element_type
    if dest is dict or origin is dict:
        return DICT_TYPE, dict
    if isinstance(dest, dict):
        return DICT_INSTANCE, dict
    if _is_model_type(dest):
        return MODEL_TYPE, dest
    if isinstance(dest, BaseModel):
        return MODEL_INSTANCE, type(dest)
    if isinstance(dest, type) or origin is not None or dest is Any:
        return SCALAR, dest
    raise MappingError(f"unsupported scan destination {dest!r}")


def _scalar_column(name: str, annotation) -> Column:
    base_type, _, _ = get_base_type(annotation)
    return Column(name=name, path=(name,), annotation=annotation, python_type=base_type, nullable=True)


class _Tree(dict):
    """Values of an embedded structure, keyed by attribute."""


class ModelPlan:
    """How the columns of a result set populate one model type.

    ``assignments`` are ``(index, Column)`` pairs for the model's own fields;
    ``children`` map an attribute to the plan of a related entity or nested
    structure fed by ``attribute__column`` names.
    """

    def __init__(self, model_type: type, registry=None):
        self.model_type = model_type
        self.registry = registry or default_registry
        self.assignments: list[tuple[int, Column]] = []
        self.children: dict[str, tuple[ModelPlan, bool]] = {}
        self._columns, self._nested = self._describe()

    def _describe(self) -> tuple[dict[str, Column], dict[str, tuple[str, type, bool]]]:
        if is_table(self.model_type):
            schema = self.registry.describe(self.model_type)
            columns = schema.columns
            nested = {r.name.lower(): (r.name, r.target_type, r.nullable)
                      for r in schema.relations if not r.to_many}
        else:
            columns = structure_columns(self.model_type)
            nested = {}
        for c in columns:
            if len(c.path) == 1 and is_structure(c.python_type):
                nested.setdefault(c.name.lower(), (c.path[0], c.python_type, c.nullable))
        return {c.name.lower(): c for c in columns}, nested

    def add(self, index: int, name: str, full_name: Optional[str] = None) -> bool:
        """Route column ``name`` at ``index``; False if no field accepts it."""
        key = name.lower()
        found = self._columns.get(key)
        if found is not None:
            self.assignments.append((index, found))
            return True
        prefix, sep, rest = key.partition("__")
        if sep and prefix in self._nested:
            attribute, child_type, nullable = self._nested[prefix]
            if attribute not in self.children:
                self.children[attribute] = (ModelPlan(child_type, self.registry), nullable)
            return self.children[attribute][0].add(index, rest, full_name or name)
        return False

    @classmethod
    def build(cls, model_type: type, names: Sequence[str], registry=None, strict: bool = True) -> ModelPlan:
        plan = cls(model_type, registry)
        for index, name in enumerate(names):
            if not plan.add(index, name) and strict:
                raise MappingError(f"{model_type.__name__} does not have column {name!r}")
        return plan

    def _indexes(self) -> Iterable[int]:
        for index, _ in self.assignments:
            yield index
        for child, _ in self.children.values():
            yield from child._indexes()

    def _field_nullable(self, model_type: type, attribute: str) -> bool:
        info = model_type.model_fields.get(attribute)
        return info is not None and get_base_type(info.annotation)[2]

    def _construct(self, model_type: type, tree: _Tree):
        values = {}
        for attribute, value in tree.items():
            if isinstance(value, _Tree):
                if self._field_nullable(model_type, attribute) and _all_none(value):
                    value = None
                else:
                    info = model_type.model_fields[attribute]
                    value = self._construct(get_base_type(info.annotation)[0], value)
            values[attribute] = value
        return model_type.model_construct(**values)

    def values(self, row: Sequence[Any]) -> dict[str, Any]:
        """Attribute values of the model for one row."""
        values: dict[str, Any] = {}
        for index, column in self.assignments:
            value = column.parse(row[index])
            if len(column.path) == 1:
                values[column.path[0]] = value
                continue
            node = values
            for part in column.path[:-1]:
                node = node.setdefault(part, _Tree())
            node[column.path[-1]] = value
        for attribute, value in list(values.items()):
            if isinstance(value, _Tree):
                if self._field_nullable(self.model_type, attribute) and _all_none(value):
                    values[attribute] = None
                else:
                    info = self.model_type.model_fields[attribute]
                    values[attribute] = self._construct(get_base_type(info.annotation)[0], value)
        for attribute, (child, nullable) in self.children.items():
            if nullable and all(row[i] is None for i in child._indexes()):
                values[attribute] = None
            else:
                values[attribute] = child.create(row)
        return values

    def create(self, row: Sequence[Any]):
        return self.model_type.model_construct(**self.values(row))

    def fill(self, instance, row: Sequence[Any]):
        for attribute, value in self.values(row).items():
            setattr(instance, attribute, value)
        return instance


def _all_none(tree: _Tree) -> bool:
    return all(_all_none(v) if isinstance(v, _Tree) else v is None for v in tree.values())


def _map_one(kind: str, target, dest, names: Sequence[str], rows: Sequence[Sequence[Any]], registry):
    """Map rows into one destination."""
    if kind in (LIST_TYPE, LIST_INSTANCE):
        result = dest if kind == LIST_INSTANCE else []
        element_kind, _ = classify(target)
        if element_kind == MODEL_TYPE:
            plan = ModelPlan.build(target, names, registry)
            result.extend(plan.create(row) for row in rows)
        elif element_kind == DICT_TYPE:
            result.extend(dict(zip(names, row)) for row in rows)
        elif element_kind == SCALAR:
            column = _scalar_column(names[0], target)
            result.extend(column.parse(row[0]) for row in rows)
        else:
            raise MappingError(f"unsupported list element type {target!r}")
        return result
    if not rows:
        raise NoRowsError()
    row = rows[0]
    if kind == SCALAR:
        return _scalar_column(names[0], target).parse(row[0])
    if kind == DICT_TYPE:
        return dict(zip(names, row))
    if kind == DICT_INSTANCE:
        dest.update(zip(names, row))
        return dest
    plan = ModelPlan.build(target, names, registry)
    if kind == MODEL_INSTANCE:
        return plan.fill(dest, row)
    return plan.create(row)


def map_rows(names: Sequence[str], rows: Sequence[Sequence[Any]], dest: Sequence[Any],
             element_type=None, registry=None):
    """Map ``rows`` (with column ``names``) into the destination(s).

    One destination returns its value. Several destinations take one column
    each: scalar types read the first row into a tuple, ``list[scalar]``
    types collect one list per column.
    """
    if not dest:
        raise MappingError("scan requires a destination")
    if len(dest) == 1:
        kind, target = classify(dest[0], element_type)
        return _map_one(kind, target, dest[0], names, rows, registry)
    if len(dest) != len(names):
        raise MappingError(f"{len(dest)} destinations for {len(names)} columns")
    kinds = [classify(d) for d in dest]
    if all(kind == SCALAR for kind, _ in kinds):
        if not rows:
            raise NoRowsError()
        return tuple(_scalar_column(name, target).parse(value)
                     for name, (_, target), value in zip(names, kinds, rows[0]))
    if all(kind == LIST_TYPE and classify(target)[0] == SCALAR for kind, target in kinds):
        return tuple([_scalar_column(name, target).parse(row[i]) for row in rows]
                     for i, (name, (_, target)) in enumerate(zip(names, kinds)))
    raise MappingError("several destinations must all be scalar types or all list[scalar] types")


def scan_row(cursor, *dest, element_type=None, registry=None):
    """Map the first row of ``cursor`` into ``dest`` (lists still receive that single row)."""
    names = column_names(cursor)
    row = cursor.fetchone()
    return map_rows(names, [] if row is None else [row], dest, element_type, registry)


def scan_all(cursor, *dest, element_type=None, registry=None):
    """Map every row of ``cursor`` into ``dest``."""
    names = column_names(cursor)
    return map_rows(names, cursor.fetchall(), dest, element_type, registry)


__all__ = ["ModelPlan", "classify", "column_names", "map_rows", "scan_row", "scan_all"]
