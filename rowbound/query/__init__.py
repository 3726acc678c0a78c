"""Query builders: SELECT, INSERT, UPDATE, DELETE, CREATE TABLE and DROP TABLE."""

from .base import BaseQuery, CTE, chained
from .create_table import CreateTableQuery, DropTableQuery
from .delete import DeleteQuery
from .hooks import (
    AfterDeleteHook,
    AfterInsertHook,
    AfterSelectHook,
    AfterUpdateHook,
    BeforeDeleteHook,
    BeforeInsertHook,
    BeforeSelectHook,
    BeforeUpdateHook,
)
from .insert import InsertQuery
from .join import Join
from .select import SelectQuery
from .update import UpdateQuery

__all__ = [
    "BaseQuery",
    "CTE",
    "chained",
    "SelectQuery",
    "InsertQuery",
    "UpdateQuery",
    "DeleteQuery",
    "CreateTableQuery",
    "DropTableQuery",
    "Join",
    "BeforeSelectHook",
    "AfterSelectHook",
    "BeforeInsertHook",
    "AfterInsertHook",
    "BeforeUpdateHook",
    "AfterUpdateHook",
    "BeforeDeleteHook",
    "AfterDeleteHook",
]
