"""Build Table entities from raw catalog rows.

For each base table the five structural fetches (columns, primary key,
foreign keys, unique and check constraints) are issued concurrently and
joined before the Table is built. Tables themselves are fetched
concurrently, bounded by a semaphore, and returned in the catalog's
enumeration order.
"""
from __future__ import annotations
import asyncio
import logging
from typing import Any, Protocol

from pg_schema_guide.db_introspect.models import (
    CheckConstraint,
    EnhancedInfo,
    Table,
    UniqueConstraint,
    column_from_row,
    enhanced_info_from_row,
    foreign_key_from_row,
)

logger = logging.getLogger(__name__)


class CatalogReader(Protocol):
    """The catalog questions the builder asks. CatalogSource implements it."""

    async def list_tables(self, schema: str) -> list[str]: ...
    async def get_columns(self, schema: str, table: str) -> list[dict[str, Any]]: ...
    async def get_primary_key(self, schema: str, table: str) -> list[str]: ...
    async def get_foreign_keys(self, schema: str, table: str) -> list[dict[str, Any]]: ...
    async def get_unique_constraints(self, schema: str, table: str) -> list[dict[str, Any]]: ...
    async def get_check_constraints(self, schema: str, table: str) -> list[dict[str, Any]]: ...
    async def get_enhanced_info(self, schema: str, table: str) -> dict[str, Any]: ...
    async def get_referencing_tables(self, schema: str, table: str) -> list[str]: ...


async def gather_all(*aws):
    """Like asyncio.gather, but cancel the siblings when one of them fails.

    The cancelled siblings are awaited before the error propagates.
    """
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    try:
        return await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


def build_table(
    name: str,
    schema: str,
    columns: list[dict[str, Any]],
    primary_key: list[str],
    foreign_keys: list[dict[str, Any]],
    unique_constraints: list[dict[str, Any]],
    check_constraints: list[dict[str, Any]]
) -> Table:
    """Combine the raw rows of one table into a Table.

    ``depends_on`` keeps one entry per foreign key, in foreign-key order.
    """
    fks = [foreign_key_from_row(row) for row in foreign_keys]

    return Table(
        name=name,
        schema=schema,
        columns=[column_from_row(row) for row in columns],
        primary_key=list(primary_key),
        foreign_keys=fks,
        unique_constraints=[
            UniqueConstraint(name=row["name"], columns=list(row["columns"]))
            for row in unique_constraints
        ],
        check_constraints=[
            CheckConstraint(name=row["name"], definition=row["definition"])
            for row in check_constraints
        ],
        depends_on=[fk.referenced_table for fk in fks],
    )


async def fetch_table(catalog: CatalogReader, schema: str, name: str) -> Table:
    """Fetch and build a single table."""
    logger.debug(f"Processing table: {schema}.{name}")
    columns, pk, fks, uniques, checks = await gather_all(
        catalog.get_columns(schema, name),
        catalog.get_primary_key(schema, name),
        catalog.get_foreign_keys(schema, name),
        catalog.get_unique_constraints(schema, name),
        catalog.get_check_constraints(schema, name),
    )
    return build_table(name, schema, columns, pk, fks, uniques, checks)


async def build_tables(
    catalog: CatalogReader,
    schema: str,
    max_concurrency: int = 4
) -> list[Table]:
    """Build every base table of a schema.

    Args:
        catalog: Catalog to read from
        schema: Schema name
        max_concurrency: Maximum number of tables fetched at the same time

    Returns:
        Tables in the order the catalog enumerated them

    Raises:
        CatalogUnavailable: If any fetch fails; no partial list is returned
    """
    names = await catalog.list_tables(schema)
    logger.info(f"Found {len(names)} tables in schema {schema}")

    semaphore = asyncio.Semaphore(max_concurrency)

    async def bounded(name: str) -> Table:
        async with semaphore:
            return await fetch_table(catalog, schema, name)

    tables = await gather_all(*(bounded(name) for name in names))
    logger.info(f"Processed {len(tables)} tables")
    return list(tables)


async def fetch_enhanced_info(
    catalog: CatalogReader,
    tables: list[Table],
    max_concurrency: int = 4
) -> dict[str, EnhancedInfo]:
    """Fetch comments, triggers and enum labels for each table, keyed by name."""
    semaphore = asyncio.Semaphore(max_concurrency)

    async def bounded(table: Table) -> EnhancedInfo:
        async with semaphore:
            row = await catalog.get_enhanced_info(table.schema, table.name)
        return enhanced_info_from_row(row)

    infos = await gather_all(*(bounded(t) for t in tables))
    return {table.name: info for table, info in zip(tables, infos)}


async def fetch_reference_counts(
    catalog: CatalogReader,
    tables: list[Table],
    max_concurrency: int = 4
) -> dict[str, int]:
    """Ask the catalog how many other tables reference each table.

    Unlike ``dependency_resolver.reference_counts`` this also sees
    referencing tables outside the analyzed schema.
    """
    semaphore = asyncio.Semaphore(max_concurrency)

    async def bounded(table: Table) -> int:
        async with semaphore:
            names = await catalog.get_referencing_tables(table.schema, table.name)
        return len(set(names) - {table.name})

    counts = await gather_all(*(bounded(t) for t in tables))
    return {table.name: count for table, count in zip(tables, counts)}
