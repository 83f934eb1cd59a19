"""Tests for insertion guide, schema digest and analysis report rendering."""
from datetime import datetime, timezone

import pytest

from pg_schema_guide.db_introspect.models import (
    CheckConstraint,
    Column,
    ColumnComment,
    EnhancedInfo,
    ForeignKey,
    Table,
    Trigger,
    UniqueConstraint,
)
from pg_schema_guide.db_introspect.report_generator import (
    rank_core_tables,
    render_analysis_report,
    render_insertion_guide,
    render_schema_digest,
)


@pytest.fixture
def customers():
    return Table(
        name="customers",
        schema="public",
        columns=[
            Column("id", "INTEGER", nullable=False),
            Column("email", "CHARACTER VARYING(255)", nullable=False),
            Column("status", "USER-DEFINED", nullable=False, default_value="'active'::customer_status"),
        ],
        primary_key=["id"],
        unique_constraints=[UniqueConstraint("customers_email_key", ["email"])],
    )


@pytest.fixture
def orders():
    return Table(
        name="orders",
        schema="public",
        columns=[
            Column("id", "INTEGER", nullable=False, default_value="nextval('orders_id_seq'::regclass)"),
            Column("customer_id", "INTEGER", nullable=False),
            Column("total", "NUMERIC(10,2)", nullable=False, default_value="0"),
            Column("note", "TEXT", nullable=True),
        ],
        primary_key=["id"],
        foreign_keys=[ForeignKey("customer_id", "customers", "id", "NO ACTION", "CASCADE")],
        check_constraints=[CheckConstraint("orders_total_check", "(total >= (0)::numeric)")],
        depends_on=["customers"],
    )


def referencing(name, target):
    return Table(
        name=name,
        schema="public",
        foreign_keys=[ForeignKey(f"{target}_id", target, "id")],
        depends_on=[target],
    )


class TestInsertionGuide:

    def test_order_and_sections(self, customers, orders):
        guide = render_insertion_guide([orders, customers], ["customers", "orders"], "shop")

        assert guide.startswith("# Database Insertion Guide for shop\n")
        assert "1. customers\n2. orders\n" in guide
        assert guide.index("### customers") < guide.index("### orders")
        assert "- Requires customers to be populated first" in guide
        assert "- (total >= (0)::numeric)" in guide

    def test_required_columns(self, customers, orders):
        guide = render_insertion_guide([orders, customers], ["customers", "orders"])
        orders_section = guide[guide.index("### orders"):]

        assert "- customer_id (INTEGER)" in orders_section
        assert "- total (" not in orders_section
        assert "- note (" not in orders_section
        assert "- id (" not in orders_section

    def test_unique_constraint_groups(self, customers):
        guide = render_insertion_guide([customers], ["customers"])
        assert "Unique constraints:\n- email" in guide

    def test_unknown_table_in_order(self, customers):
        with pytest.raises(ValueError, match="orders"):
            render_insertion_guide([customers], ["customers", "orders"])


class TestSchemaDigest:

    def test_summary_line(self, customers, orders):
        digest = render_schema_digest([orders, customers], "shop")

        assert digest.startswith("# shop Database Schema\n")
        assert "> This database contains 2 tables with 1 relationships." in digest

    def test_core_table_ranking(self, customers, orders):
        tables = [
            orders,
            customers,
            referencing("invoices", "customers"),
            referencing("tickets", "customers"),
        ]

        ranked = rank_core_tables(tables)
        digest = render_schema_digest(tables, "shop")

        assert ranked[0] == (customers, 3)
        assert digest.index("- customers: PK(id), Referenced by 3 tables") < digest.index("- orders: PK(id)")

    def test_isolated_table_not_core(self, customers):
        lonely = Table(name="settings", schema="public")
        names = [t.name for t, _ in rank_core_tables([customers, lonely])]
        assert names == []

    def test_explicit_reference_counts(self, customers, orders):
        ranked = rank_core_tables([orders, customers], reference_counts={"orders": 5, "customers": 1})
        assert [t.name for t, _ in ranked] == ["orders", "customers"]

    def test_relationships(self, customers, orders):
        digest = render_schema_digest([orders, customers], "shop")
        assert "- orders depends on: customers (customer_id -> id) [CASCADE]" in digest

    def test_details_with_enhanced_info(self, customers, orders):
        enhanced = {
            "customers": EnhancedInfo(
                table_comment="People who buy things",
                columns=[
                    ColumnComment("email", comment="Login address"),
                    ColumnComment("status", enum_values=["active", "banned"]),
                ],
                triggers=[Trigger("trg_touch", "CREATE TRIGGER trg_touch BEFORE UPDATE ON customers")],
            ),
        }

        digest = render_schema_digest([orders, customers], "shop", enhanced=enhanced)

        assert "Description: People who buy things" in digest
        assert "- email (CHARACTER VARYING(255)) NOT NULL // Login address" in digest
        assert "  Allowed values: active, banned" in digest
        assert "Triggers:\n- trg_touch: CREATE TRIGGER trg_touch BEFORE UPDATE ON customers" in digest
        assert "- Unique: email" in digest
        assert "- Checks: (total >= (0)::numeric)" in digest
        assert "- total (NUMERIC(10,2)) NOT NULL DEFAULT 0" in digest
        assert "- note (TEXT)\n" in digest

    def test_enum_forms_render_identically(self, customers):
        from pg_schema_guide.db_introspect.models import enhanced_info_from_row

        as_list = enhanced_info_from_row({"columns": [{"name": "status", "enum_values": ["active", "banned"]}]})
        as_text = enhanced_info_from_row({"columns": [{"name": "status", "enum_values": "{active,banned}"}]})

        assert (
            render_schema_digest([customers], "shop", enhanced={"customers": as_list})
            == render_schema_digest([customers], "shop", enhanced={"customers": as_text})
        )

    def test_missing_primary_key(self):
        digest = render_schema_digest([Table(name="events", schema="public")], "shop")
        assert "Primary key: None" in digest

    def test_empty_string_default_shown(self):
        table = Table(
            name="labels",
            schema="public",
            columns=[Column("title", "TEXT", nullable=False, default_value="")],
        )

        digest = render_schema_digest([table], "shop")
        guide = render_insertion_guide([table], ["labels"])

        assert "- title (TEXT) NOT NULL DEFAULT " in digest
        assert "Required columns:\n- None" in guide

    def test_deterministic(self, customers, orders):
        assert render_schema_digest([orders, customers], "shop") == render_schema_digest([orders, customers], "shop")


def test_analysis_report(customers, orders):
    generated_at = datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)

    report = render_analysis_report([orders, customers], ["customers", "orders"], "shop", generated_at)

    assert report.startswith("Database Analysis for shop\nGenerated at: 2026-01-02T03:04:05+00:00\n")
    assert "Total tables: 2" in report
    assert "  - customer_id -> customers.id" in report
    assert "orders depends on: customers" in report
    assert "Primary Key: id" in report
