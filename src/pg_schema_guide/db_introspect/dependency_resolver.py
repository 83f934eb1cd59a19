"""Insertion order from foreign-key dependencies.

The dependency graph is implicit: nodes are table names and each entry of
``Table.depends_on`` is an edge to a table that must be populated first.
The order is a depth-first post-order, walked with an explicit stack so deep
chains do not hit the recursion limit. Roots are taken in input order and
dependencies in ``depends_on`` order, which makes the result reproducible
for a given catalog response.
"""
from __future__ import annotations
import logging
from enum import Enum
from typing import Iterator, Literal

from pg_schema_guide.db_introspect.models import CircularDependencyError, Table

logger = logging.getLogger(__name__)

SelfReferencePolicy = Literal["allow", "error"]


class VisitState(str, Enum):
    UNVISITED = "UNVISITED"
    IN_PROGRESS = "IN_PROGRESS"
    DONE = "DONE"


def resolve_insertion_order(
    tables: list[Table],
    self_reference: SelfReferencePolicy = "allow"
) -> list[str]:
    """Order tables so every table comes after the tables it depends on.

    Dependencies on tables outside ``tables`` are treated as satisfied.
    Repeated dependencies (several foreign keys to the same table) are
    harmless.

    Args:
        tables: Tables of one analysis run
        self_reference: "allow" ignores a foreign key from a table to
            itself; "error" reports it as a cycle

    Returns:
        Every table name exactly once, dependencies first

    Raises:
        CircularDependencyError: If the dependencies contain a cycle
    """
    index = {table.name: table for table in tables}
    state: dict[str, VisitState] = {}
    order: list[str] = []

    def edges(name: str) -> Iterator[str]:
        for dep in index[name].depends_on:
            if dep not in index:
                logger.debug(f"Skipping dependency {name} -> {dep}: not in analyzed schema")
                continue
            if dep == name and self_reference == "allow":
                continue
            yield dep

    for root in tables:
        if state.get(root.name) == VisitState.DONE:
            continue

        state[root.name] = VisitState.IN_PROGRESS
        stack = [(root.name, edges(root.name))]

        while stack:
            name, pending = stack[-1]

            for dep in pending:
                dep_state = state.get(dep, VisitState.UNVISITED)
                if dep_state == VisitState.DONE:
                    continue
                if dep_state == VisitState.IN_PROGRESS:
                    raise CircularDependencyError(dep)

                state[dep] = VisitState.IN_PROGRESS
                stack.append((dep, edges(dep)))
                break
            else:
                stack.pop()
                state[name] = VisitState.DONE
                order.append(name)

    return order


def find_unresolved_dependencies(tables: list[Table]) -> dict[str, list[str]]:
    """Map each table to the referenced tables outside the analyzed set."""
    known = {table.name for table in tables}
    unresolved = {}

    for table in tables:
        missing = [dep for dep in dict.fromkeys(table.depends_on) if dep not in known]
        if missing:
            unresolved[table.name] = missing

    return unresolved


def reference_counts(tables: list[Table]) -> dict[str, int]:
    """Count how many other tables reference each table by foreign key.

    A table referencing itself is not counted. Several foreign keys from the
    same table count once.
    """
    referrers: dict[str, set[str]] = {table.name: set() for table in tables}

    for table in tables:
        for fk in table.foreign_keys:
            if fk.referenced_table != table.name and fk.referenced_table in referrers:
                referrers[fk.referenced_table].add(table.name)

    return {name: len(names) for name, names in referrers.items()}
