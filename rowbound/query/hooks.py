"""Query hooks: optional methods on entities called around each operation.

An entity opts in by defining the method, e.g.::

    class User(Table):
        def before_insert(self, query):
            self.created_at = datetime.datetime.now()

Hooks are looked up on the bound model (an instance, or a zero instance
when a class is bound) once per top-level operation. An exception raised by
a hook aborts the operation and propagates unchanged.
"""

from typing import Protocol, runtime_checkable


@runtime_checkable
class BeforeSelectHook(Protocol):
    def before_select(self, query) -> None: ...


@runtime_checkable
class AfterSelectHook(Protocol):
    def after_select(self, query) -> None: ...


@runtime_checkable
class BeforeInsertHook(Protocol):
    def before_insert(self, query) -> None: ...


@runtime_checkable
class AfterInsertHook(Protocol):
    def after_insert(self, query) -> None: ...


@runtime_checkable
class BeforeUpdateHook(Protocol):
    def before_update(self, query) -> None: ...


@runtime_checkable
class AfterUpdateHook(Protocol):
    def after_update(self, query) -> None: ...


@runtime_checkable
class BeforeDeleteHook(Protocol):
    def before_delete(self, query) -> None: ...


@runtime_checkable
class AfterDeleteHook(Protocol):
    def after_delete(self, query) -> None: ...


HOOKS = {
    "before_select": BeforeSelectHook,
    "after_select": AfterSelectHook,
    "before_insert": BeforeInsertHook,
    "after_insert": AfterInsertHook,
    "before_update": BeforeUpdateHook,
    "after_update": AfterUpdateHook,
    "before_delete": BeforeDeleteHook,
    "after_delete": AfterDeleteHook,
}


def call_hook(target, name: str, query) -> None:
    """Call hook ``name`` on target if it implements the matching protocol."""
    if target is not None and isinstance(target, HOOKS[name]):
        getattr(target, name)(query)


__all__ = [
    "BeforeSelectHook",
    "AfterSelectHook",
    "BeforeInsertHook",
    "AfterInsertHook",
    "BeforeUpdateHook",
    "AfterUpdateHook",
    "BeforeDeleteHook",
    "AfterDeleteHook",
    "call_hook",
]
