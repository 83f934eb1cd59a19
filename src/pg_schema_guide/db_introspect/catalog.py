"""Read-only access to the Postgres catalog.

CatalogSource answers the raw catalog questions the schema builder needs
and returns plain dict rows. It performs no interpretation. Every query
acquires its own pooled connection for the duration of the query only, so
concurrent fetches never share a connection and connections are returned to
the pool on every exit path.
"""
from __future__ import annotations
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import asyncpg

from pg_schema_guide.config.settings import ConnectionDescriptor
from pg_schema_guide.db_introspect import queries
from pg_schema_guide.db_introspect.models import CatalogUnavailable
from pg_schema_guide.db_introspect.schema_builder import gather_all

logger = logging.getLogger(__name__)

DRIVER_ERRORS = (
    asyncpg.PostgresError,
    asyncpg.InterfaceError,
    OSError,
    asyncio.TimeoutError,
)


class CatalogSource:
    """Catalog queries over an asyncpg connection pool."""

    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool

    @classmethod
    @asynccontextmanager
    async def connect(
        cls,
        descriptor: ConnectionDescriptor,
        max_size: int = 4
    ) -> AsyncIterator[CatalogSource]:
        """Open a pool for the duration of an analysis.

        Args:
            descriptor: Resolved connection parameters
            max_size: Upper bound on connections held open at once

        Yields:
            CatalogSource bound to the pool

        Raises:
            CatalogUnavailable: If the pool cannot be created
        """
        logger.info(f"Connecting to database with config: {descriptor.redacted()}")
        try:
            pool = await asyncpg.create_pool(
                host=descriptor.host,
                port=descriptor.port,
                database=descriptor.database,
                user=descriptor.user or None,
                password=descriptor.password or None,
                ssl="require" if descriptor.ssl else None,
                min_size=1,
                max_size=max_size,
            )
        except DRIVER_ERRORS as e:
            raise CatalogUnavailable(f"Could not connect to {descriptor.host}:{descriptor.port}/{descriptor.database}: {e}") from e

        try:
            yield cls(pool)
        finally:
            await pool.close()

    async def _fetch(self, query: str, *args: Any, table: str | None = None) -> list[dict[str, Any]]:
        """Run a query on a freshly acquired connection."""
        try:
            async with self.pool.acquire() as conn:
                rows = await conn.fetch(query, *args)
        except DRIVER_ERRORS as e:
            where = f" for table {table}" if table else ""
            raise CatalogUnavailable(f"Catalog query failed{where}: {e}", table=table) from e

        return [dict(r) for r in rows]

    async def ping(self) -> None:
        """Test the connection with ``SELECT 1``."""
        await self._fetch("SELECT 1")
        logger.info("Database connection test successful")

    async def database_name(self) -> str:
        rows = await self._fetch("SELECT current_database() AS name")
        return rows[0]["name"]

    async def list_tables(self, schema: str) -> list[str]:
        logger.debug(f"Querying tables in schema: {schema}")
        rows = await self._fetch(queries.LIST_TABLES, schema)
        return [r["table_name"] for r in rows]

    async def get_columns(self, schema: str, table: str) -> list[dict[str, Any]]:
        return await self._fetch(queries.GET_COLUMNS, schema, table, table=table)

    async def get_primary_key(self, schema: str, table: str) -> list[str]:
        rows = await self._fetch(queries.GET_PRIMARY_KEY, schema, table, table=table)
        return [r["column_name"] for r in rows]

    async def get_foreign_keys(self, schema: str, table: str) -> list[dict[str, Any]]:
        return await self._fetch(queries.GET_FOREIGN_KEYS, schema, table, table=table)

    async def get_unique_constraints(self, schema: str, table: str) -> list[dict[str, Any]]:
        rows = await self._fetch(queries.GET_UNIQUE_CONSTRAINTS, schema, table, table=table)
        return [{"name": r["name"], "columns": list(r["columns"] or [])} for r in rows]

    async def get_check_constraints(self, schema: str, table: str) -> list[dict[str, Any]]:
        return await self._fetch(queries.GET_CHECK_CONSTRAINTS, schema, table, table=table)

    async def get_enhanced_info(self, schema: str, table: str) -> dict[str, Any]:
        """Fetch table comment, column comments with enum labels, and triggers."""
        comment_rows, column_rows, trigger_rows = await gather_all(
            self._fetch(queries.GET_TABLE_COMMENT, schema, table, table=table),
            self._fetch(queries.GET_COLUMN_COMMENTS, schema, table, table=table),
            self._fetch(queries.GET_TRIGGERS, schema, table, table=table),
        )

        return {
            "table_comment": comment_rows[0]["table_comment"] if comment_rows else None,
            "columns": column_rows,
            "triggers": trigger_rows,
        }

    async def get_referencing_tables(self, schema: str, table: str) -> list[str]:
        """Names of tables holding a foreign key to ``schema.table``."""
        rows = await self._fetch(queries.GET_REFERENCING_TABLES, schema, table, table=table)
        return [r["table_name"] for r in rows]
