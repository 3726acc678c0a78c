"""Relation metadata: how one Table links to another.

Relations are declared by typing a field with a Table subclass (to-one) or a
list of Table subclasses (to-many). Target types and join columns are
resolved lazily, so entities may reference each other in any order.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from functools import cached_property
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..errors import ConfigurationError
from ..utils.find_subclass import iter_subclasses
from ..utils.resolve_type import resolve_type

logger = logging.getLogger("rowbound")

BELONGS_TO = "belongs-to"
HAS_ONE = "has-one"
HAS_MANY = "has-many"
MANY_TO_MANY = "m2m"
KINDS = (BELONGS_TO, HAS_ONE, HAS_MANY, MANY_TO_MANY)


@dataclass(frozen=True)
class RelationTag:
    """Options attached to a relation field with ``Annotated[..., relation(...)]``."""

    kind: Optional[str] = None
    join: tuple[tuple[str, str], ...] = ()
    m2m: Optional[str] = None
    order: Optional[str] = None
    where: Optional[str] = None
    extra: tuple[tuple[str, Any], ...] = field(default=())


def _parse_join(join) -> tuple[tuple[str, str], ...]:
    if not join:
        return ()
    if isinstance(join, str):
        join = join.split(",")
    pairs = []
    for pair in join:
        if isinstance(pair, str):
            local, sep, foreign = pair.partition("=")
            if not sep:
                raise ConfigurationError(f"invalid join pair {pair!r} (expected `local=foreign`)")
            pair = (local, foreign)
        local, foreign = pair
        pairs.append((local.strip(), foreign.strip()))
    return tuple(pairs)


def relation(kind: Optional[str] = None, *,
             join=None,
             m2m: Optional[str] = None,
             order: Optional[str] = None,
             where: Optional[str] = None,
             **options: Any) -> RelationTag:
    """Declare relation options for a field.

    ``join`` lists ``local_column=foreign_column`` pairs (a comma separated
    string or a sequence); ``m2m`` names the junction table (class name or
    table name); ``order`` and ``where`` are SQL applied when the related
    rows are loaded by a separate query.
    """
    if kind is not None and kind not in KINDS:
        raise ConfigurationError(f"unknown relation kind {kind!r} (expected one of {', '.join(KINDS)})")
    if options:
        logger.debug("Ignoring unknown relation options: %s", ", ".join(sorted(options)))
    return RelationTag(kind=kind, join=_parse_join(join), m2m=m2m, order=order, where=where,
                       extra=tuple(sorted(options.items(), key=lambda item: item[0])))


class Relation(BaseModel):
    """A link from the table owning the field to a target table."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str
    """Attribute holding the related entity (or list of entities)."""
    base_type: Any
    target: Any
    """Target Table class, or its name while it is not resolved yet."""
    to_many: bool = False
    nullable: bool = True
    declared_kind: Optional[str] = None
    join: tuple[tuple[str, str], ...] = ()
    m2m: Optional[str] = None
    order: Optional[str] = None
    where: Optional[str] = None
    registry: Any = Field(default=None, exclude=True, repr=False)

    @cached_property
    def target_type(self) -> type:
        try:
            return resolve_type(self.target)
        except ValueError as error:
            raise ConfigurationError(
                f"relation {self.base_type.__name__}.{self.name}: unknown target {self.target!r}"
            ) from error

    @cached_property
    def base_schema(self):
        return self.registry.describe(self.base_type)

    @cached_property
    def join_schema(self):
        return self.registry.describe(self.target_type)

    @cached_property
    def kind(self) -> str:
        if self.declared_kind:
            return self.declared_kind
        if self.to_many:
            return MANY_TO_MANY if self.m2m else HAS_MANY
        if self.join:
            return BELONGS_TO
        pks = self.join_schema.pks
        if pks and all(self.base_schema.column(f"{self.name}_{pk.name}") for pk in pks):
            return BELONGS_TO
        return HAS_ONE

    @property
    def is_to_one(self) -> bool:
        return self.kind in (BELONGS_TO, HAS_ONE)

    @cached_property
    def join_pairs(self) -> tuple:
        """``(base column, join column)`` pairs used in the ON clause or IN filter.

        Not defined for m2m relations, see ``m2m_pairs``.
        """
        base, target = self.base_schema, self.join_schema
        if self.join:
            return tuple(
                (self._require(base, local), self._require(target, foreign))
                for local, foreign in self.join
            )
        if self.kind == MANY_TO_MANY:
            raise ConfigurationError(f"relation {base.type.__name__}.{self.name} is m2m, use m2m_pairs")
        if self.kind == BELONGS_TO:
            pks = self._require_pks(target)
            return tuple((self._require(base, f"{self.name}_{pk.name}"), pk) for pk in pks)
        pks = self._require_pks(base)
        return tuple((pk, self._require(target, f"{base.alias}_{pk.name}")) for pk in pks)

    @cached_property
    def m2m_schema(self):
        """Schema of the junction table of a m2m relation."""
        if not self.m2m:
            raise ConfigurationError(f"relation {self.base_type.__name__}.{self.name} has no junction table")
        from .base import Table
        from .schema import table_name
        candidates = [cls for cls in iter_subclasses(Table) if cls.__name__ == self.m2m]
        if not candidates:
            candidates = [cls for cls in iter_subclasses(Table) if table_name(cls) == self.m2m]
        if not candidates:
            raise ConfigurationError(
                f"relation {self.base_type.__name__}.{self.name}: unknown junction table {self.m2m!r}"
            )
        return self.registry.describe(candidates[-1])

    @cached_property
    def m2m_pairs(self) -> tuple[tuple, tuple]:
        """``((base pk, junction column), ...), ((join pk, junction column), ...)``."""
        base, target, junction = self.base_schema, self.join_schema, self.m2m_schema
        base_pairs = tuple(
            (pk, self._require(junction, f"{base.alias}_{pk.name}"))
            for pk in self._require_pks(base)
        )
        join_pairs = tuple(
            (pk, self._require(junction, f"{target.alias}_{pk.name}"))
            for pk in self._require_pks(target)
        )
        return base_pairs, join_pairs

    def _require(self, schema, name: str):
        found = schema.column(name)
        if found is None:
            raise ConfigurationError(
                f"relation {self.base_type.__name__}.{self.name}: "
                f"table {schema.name!r} does not have column {name!r}"
            )
        return found

    def _require_pks(self, schema) -> tuple:
        if not schema.pks:
            raise ConfigurationError(
                f"relation {self.base_type.__name__}.{self.name}: "
                f"table {schema.name!r} does not have a primary key"
            )
        return schema.pks

    def __str__(self) -> str:
        return f"{self.base_type.__name__}.{self.name}"


__all__ = ["Relation", "RelationTag", "relation", "KINDS",
           "BELONGS_TO", "HAS_ONE", "HAS_MANY", "MANY_TO_MANY"]
