"""Table: base class for entities mapped to database tables."""

import logging
from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic._internal._model_construction import ModelMetaclass

from ..utils.find_subclass import iter_subclasses

logger = logging.getLogger("rowbound")


class TableMeta(ModelMetaclass):
    """Metaclass for Table: consumes the ``table_name`` and ``alias`` class keywords.

    Entities referencing classes defined later (``author: Optional["Author"]``)
    are rebuilt as soon as the referenced class exists.
    """

    def __new__(mcs, name, bases, namespace,
                table_name: Optional[str] = None,
                alias: Optional[str] = None,
                **kwargs):
        result = super().__new__(mcs, name, bases, namespace, **kwargs)
        result._TABLE_NAME = table_name
        result._TABLE_ALIAS = alias
        table = globals().get("Table")
        if table is not None:
            _rebuild_pending(table)
        return result


def _rebuild_pending(table) -> None:
    pending = [c for c in iter_subclasses(table) if not c.__pydantic_complete__]
    if not pending:
        return
    namespace = {c.__name__: c for c in iter_subclasses(table)}
    for cls in pending:
        cls.model_rebuild(raise_errors=False, _types_namespace=namespace)


class Table(BaseModel, metaclass=TableMeta):
    """Base class for entities.

    Fields typed with another Table subclass (or a list of them) are
    relations; every other field is a column. Options are given with
    ``Annotated[..., column(...)]`` / ``Annotated[..., relation(...)]`` and the
    ``table_name`` / ``alias`` class keywords::

        class Book(Table, table_name="library_books"):
            id: Optional[int] = None
            title: str = ""
            author_id: Optional[int] = None
            author: Optional["Author"] = None
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    @classmethod
    def table_schema(cls, registry=None):
        """Return the TableSchema of this entity (from the default registry unless given)."""
        from .schema import default_registry
        return (registry or default_registry).describe(cls)
