"""Relation resolver: eager loading of the relations named with ``relation()``.

To-one relations (belongs-to, has-one) become ``LEFT JOIN``s of the primary
query; their columns are selected as ``"alias"."col" AS "alias__col"`` so the
row mapper can route them to the related instance. To-many relations
(has-many, m2m) are loaded after the primary query by one follow-up query per
relation, filtered by the keys of the parents that came back.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Callable, Optional

from pydantic import BaseModel, Field

from ..errors import ConfigurationError
from ..expressions import ColumnRef, Formatter, Fragment, Ident, In, SafeQuery, append_conditions
from ..table.relation import MANY_TO_MANY, Relation

logger = logging.getLogger("rowbound")

M2M_KEY_PREFIX = "__m2m_"


class Join(BaseModel):
    """One requested relation in the join tree of a select query."""

    model_config = {"arbitrary_types_allowed": True}

    relation: Relation
    alias: str
    """SQL alias of the joined table, ``parent__relation`` for nested joins."""
    parent: Optional["Join"] = Field(default=None, exclude=True, repr=False)
    apply: Optional[Callable] = None
    columns: Optional[list[str]] = None
    """Restricts the selected columns of a to-one join (``[]`` selects none)."""
    children: list["Join"] = Field(default_factory=list)

    @property
    def is_to_one(self) -> bool:
        return self.relation.is_to_one

    @property
    def base_alias(self) -> str:
        if self.parent is not None:
            return self.parent.alias
        return self.relation.base_schema.alias

    def applied(self, db):
        """Select query shaped by the ``apply`` function, or None without one."""
        if self.apply is None:
            return None
        query = db.new_select().model(self.relation.target_type)
        result = self.apply(query)
        return query if result is None else result


class ScopedFragment(Fragment):
    """Fragment rendered with another bound table and alias (a joined table's)."""

    fragment: Fragment
    table: Any
    alias: str

    def append_sql(self, fmter) -> None:
        self.fragment.append_sql(fmter.nested(self.table, self.alias))


def resolve(joins: list[Join], schema, name: str, apply: Optional[Callable] = None) -> Join:
    """Find or add the join for ``name`` (``author``, ``author.publisher``...).

    A last segment that is not a relation restricts the columns selected for
    the previous one (``author.name``); ``_`` selects none (``author._``).
    """
    join: Optional[Join] = None
    parts = name.split(".")
    for i, part in enumerate(parts):
        found = schema.relation(part)
        if found is None:
            if join is not None and i == len(parts) - 1:
                join.columns = join.columns or []
                if part != "_":
                    join.columns.append(part)
                return join
            raise ConfigurationError(f"{schema.type.__name__} does not have relation {part!r}")
        existing = next((j for j in joins if j.relation.name == found.name), None)
        if existing is None:
            alias = found.name if join is None else f"{join.alias}__{found.name}"
            existing = Join(relation=found, alias=alias, parent=join)
            joins.append(existing)
        join = existing
        joins = join.children
        schema = found.join_schema
    if apply is not None:
        join.apply = apply
    return join


def iter_to_one(joins: list[Join]):
    """To-one joins in declaration order, depth first."""
    for join in joins:
        if join.is_to_one:
            yield join
            yield from iter_to_one(join.children)


def join_columns(join: Join, db) -> list[Fragment]:
    """Select-list entries of a to-one join: ``"alias"."col" AS "alias__col"``."""
    target = join.relation.join_schema

    def aliased(column_name: str) -> Fragment:
        return SafeQuery("? AS ?", (ColumnRef(column_name, join.alias), Ident(f"{join.alias}__{column_name}")))

    applied = join.applied(db)
    if applied is not None and applied.columns is not None:
        result = []
        for fragment in applied.columns:
            if isinstance(fragment, Ident) and target.column(fragment.name) is not None:
                result.append(aliased(target.column(fragment.name).name))
            else:
                result.append(ScopedFragment(fragment=fragment, table=target, alias=join.alias))
        return result
    if join.columns is not None:
        return [aliased(name) for name in join.columns]
    return [aliased(c.name) for c in target.columns]


def append_join(join: Join, fmter: Formatter, db, with_deleted: bool = False) -> None:
    """Write `` LEFT JOIN "table" AS "alias" ON (...)`` for a to-one join."""
    target = join.relation.join_schema
    fmter.write(" LEFT JOIN ")
    fmter.write_ident(target.name)
    fmter.write(" AS ")
    fmter.write_ident(join.alias)
    fmter.write(" ON (")
    for i, (base_column, join_column) in enumerate(join.relation.join_pairs):
        if i:
            fmter.write(" AND ")
        fmter.write_column(join_column.name, join.alias)
        fmter.write(" = ")
        fmter.write_column(base_column.name, join.base_alias)
    fmter.write(")")
    applied = join.applied(db)
    if applied is not None and applied.wheres:
        fmter.write(" AND (")
        append_conditions(fmter.nested(target, join.alias), applied.wheres)
        fmter.write(")")
    if target.soft_delete_column is not None and not with_deleted:
        fmter.write(" AND ")
        fmter.write_column(target.soft_delete_column.name, join.alias)
        fmter.write(" IS NULL")


# follow-up queries


def _copy_join(query, join: Join, path: str) -> None:
    query.relation(path, join.apply)
    if join.columns is not None:
        for name in join.columns or ["_"]:
            query.relation(f"{path}.{name}")
    for child in join.children:
        _copy_join(query, child, f"{path}.{child.relation.name}")


def _follow_up(join: Join, db):
    relation = join.relation
    query = db.new_select().model(list[relation.target_type])
    for child in join.children:
        _copy_join(query, child, child.relation.name)
    if relation.where:
        query.where(relation.where)
    if relation.order:
        query.order_expr(relation.order)
    if join.apply is not None:
        result = join.apply(query)
        query = query if result is None else result
    return query


def _key_filter(columns: list[Fragment], keys) -> tuple[str, tuple]:
    if len(columns) == 1:
        return "? IN (?)", (columns[0], In(key[0] for key in keys))
    return "(?) IN (?)", (In(columns), In(SafeQuery("(?)", (In(key),)) for key in keys))


def _group_parents(relation: Relation, parents: list, key_columns) -> dict:
    """Reset the relation attribute to ``[]`` and group parents by key."""
    keyed = defaultdict(list)
    for parent in parents:
        setattr(parent, relation.name, [])
        key = tuple(column.get_value(parent) for column in key_columns)
        if not any(value is None for value in key):
            keyed[key].append(parent)
    return keyed


def _load_has_many(join: Join, parents: list, db) -> None:
    relation = join.relation
    pairs = relation.join_pairs
    keyed = _group_parents(relation, parents, [base for base, _ in pairs])
    if not keyed:
        return
    query = _follow_up(join, db)
    template, args = _key_filter([ColumnRef(j.name) for _, j in pairs], keyed)
    query.where(template, *args)
    children, _ = query.scan_with_keys(())
    for child in children:
        key = tuple(j.get_value(child) for _, j in pairs)
        for parent in keyed.get(key, ()):
            getattr(parent, relation.name).append(child)


def _load_m2m(join: Join, parents: list, db) -> None:
    relation = join.relation
    base_pairs, join_pairs = relation.m2m_pairs
    junction = relation.m2m_schema
    keyed = _group_parents(relation, parents, [pk for pk, _ in base_pairs])
    if not keyed:
        return
    query = _follow_up(join, db)
    if query.columns is None:
        query.column_expr("?TableColumns")
    key_names = []
    for _, junction_column in base_pairs:
        key_names.append(f"{M2M_KEY_PREFIX}{junction_column.name}")
        query.column_expr("? AS ?", ColumnRef(junction_column.name, junction.alias), Ident(key_names[-1]))
    query.join("JOIN ? AS ?", Ident(junction.name), Ident(junction.alias))
    for pk, junction_column in join_pairs:
        query.join_on("? = ?", ColumnRef(junction_column.name, junction.alias), ColumnRef(pk.name))
    template, args = _key_filter([ColumnRef(c.name, junction.alias) for _, c in base_pairs], keyed)
    query.where(template, *args)
    children, keys = query.scan_with_keys(key_names)
    for child, raw_key in zip(children, keys):
        key = tuple(pk.parse(value) for (pk, _), value in zip(base_pairs, raw_key))
        for parent in keyed.get(key, ()):
            getattr(parent, relation.name).append(child)


def load_relations(joins: list[Join], parents: list, db) -> None:
    """Run the follow-up queries of the to-many joins below ``joins`` for ``parents``."""
    if not parents:
        return
    for join in joins:
        if join.is_to_one:
            related = [getattr(p, join.relation.name, None) for p in parents]
            load_relations(join.children, [r for r in related if r is not None], db)
        elif join.relation.kind == MANY_TO_MANY:
            _load_m2m(join, parents, db)
        else:
            _load_has_many(join, parents, db)


__all__ = ["Join", "resolve", "iter_to_one", "join_columns", "append_join", "load_relations"]
