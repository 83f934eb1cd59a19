"""Shared pytest fixtures for all tests."""
import asyncio
import os

import pytest

from pg_schema_guide.db_introspect.models import CatalogUnavailable


class FakeCatalog:
    """In-memory catalog returning raw rows shaped like CatalogSource's.

    ``tables`` maps table name to a dict with optional keys ``columns``,
    ``pk``, ``fks``, ``uniques``, ``checks`` and ``enhanced``. Names are
    enumerated in insertion order of the dict.
    """

    def __init__(self, tables, fail_on=None):
        self.tables = tables
        self.fail_on = fail_on
        self.calls = []
        self.in_flight = set()
        self.max_in_flight = 0

    async def _read(self, kind, table, value):
        self.calls.append((kind, table))
        self.in_flight.add(table)
        self.max_in_flight = max(self.max_in_flight, len(self.in_flight))
        try:
            await asyncio.sleep(0)
            if self.fail_on == (kind, table):
                raise CatalogUnavailable(f"Catalog query failed for table {table}: connection lost", table=table)
            return value
        finally:
            self.in_flight.discard(table)

    async def list_tables(self, schema):
        return list(self.tables)

    async def get_columns(self, schema, table):
        return await self._read("columns", table, self.tables[table].get("columns", []))

    async def get_primary_key(self, schema, table):
        return await self._read("pk", table, self.tables[table].get("pk", []))

    async def get_foreign_keys(self, schema, table):
        return await self._read("fks", table, self.tables[table].get("fks", []))

    async def get_unique_constraints(self, schema, table):
        return await self._read("uniques", table, self.tables[table].get("uniques", []))

    async def get_check_constraints(self, schema, table):
        return await self._read("checks", table, self.tables[table].get("checks", []))

    async def get_enhanced_info(self, schema, table):
        return await self._read(
            "enhanced", table,
            self.tables[table].get("enhanced", {"table_comment": None, "columns": [], "triggers": []})
        )

    async def get_referencing_tables(self, schema, table):
        names = [
            name for name, rows in self.tables.items()
            if any(row["referenced_table"] == table for row in rows.get("fks", []))
        ]
        return await self._read("referencing", table, sorted(names))


class FakeSource(FakeCatalog):
    """FakeCatalog with the connection-level calls of CatalogSource."""

    async def ping(self):
        return None

    async def database_name(self):
        return "shop"


def col(name, data_type="integer", nullable=False, default=None, **extra):
    """Raw column row."""
    return {"name": name, "data_type": data_type, "nullable": nullable, "default": default, **extra}


def fk(column, referenced_table, referenced_column="id", delete_rule="NO ACTION"):
    """Raw foreign key row."""
    return {
        "column": column,
        "referenced_table": referenced_table,
        "referenced_column": referenced_column,
        "update_rule": "NO ACTION",
        "delete_rule": delete_rule,
    }


@pytest.fixture
def shop_catalog():
    """orders -> customers, order_items -> orders/products, customers has a trigger."""
    return FakeCatalog({
        "orders": {
            "columns": [
                col("id", default="nextval('orders_id_seq'::regclass)"),
                col("customer_id"),
                col("status", "USER-DEFINED"),
                col("total", "numeric", num_precision=10, num_scale=2, default="0"),
                col("note", "text", nullable=True),
            ],
            "pk": ["id"],
            "fks": [fk("customer_id", "customers", delete_rule="CASCADE")],
            "checks": [{"name": "orders_total_check", "definition": "(total >= (0)::numeric)"}],
            "enhanced": {
                "table_comment": "Customer orders",
                "columns": [
                    {"name": "status", "comment": "Lifecycle state", "enum_values": "{pending,shipped,\"delivered\"}"},
                ],
                "triggers": [],
            },
        },
        "customers": {
            "columns": [
                col("id"),
                col("email", "character varying", char_len=255),
            ],
            "pk": ["id"],
            "uniques": [{"name": "customers_email_key", "columns": ["email"]}],
            "enhanced": {
                "table_comment": None,
                "columns": [{"name": "email", "comment": "Login address", "enum_values": None}],
                "triggers": [{"name": "trg_customers_touch", "definition": "CREATE TRIGGER trg_customers_touch BEFORE UPDATE ON customers"}],
            },
        },
        "products": {
            "columns": [col("id"), col("sku", "text")],
            "pk": ["id"],
        },
        "order_items": {
            "columns": [col("order_id"), col("product_id"), col("quantity", default="1")],
            "pk": ["order_id", "product_id"],
            "fks": [fk("order_id", "orders"), fk("product_id", "products")],
        },
    })


@pytest.fixture(scope="session")
def database_url():
    """Get the live test database URL from environment, if any."""
    return os.getenv("TEST_DB_URL")
