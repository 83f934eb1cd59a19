"""
Schema Report Generator

Renders the analyzed tables as text: an insertion guide for people writing
data-loading scripts, a dense schema digest meant to be pasted into an LLM
context, and the full analysis report. All renderers are pure functions of
their inputs and never touch the catalog.
"""
from __future__ import annotations
from datetime import datetime

from pg_schema_guide.db_introspect.dependency_resolver import reference_counts as count_references
from pg_schema_guide.db_introspect.models import Column, ColumnComment, EnhancedInfo, Table


def _index(tables: list[Table]) -> dict[str, Table]:
    return {table.name: table for table in tables}


def _ordered_tables(tables: list[Table], insertion_order: list[str]) -> list[Table]:
    """Tables in insertion order; every name must be a known table."""
    index = _index(tables)
    missing = [name for name in insertion_order if name not in index]
    if missing:
        raise ValueError(f"Insertion order names unknown tables: {', '.join(missing)}")
    return [index[name] for name in insertion_order]


def _column_line(col: Column, info: ColumnComment | None = None) -> str:
    """Format ``name (TYPE) NOT NULL DEFAULT x // comment``."""
    line = f"{col.name} ({col.type})"
    if not col.nullable:
        line += " NOT NULL"
    if col.default_value is not None:
        line += f" DEFAULT {col.default_value}"
    if info and info.comment:
        line += f" // {info.comment}"
    return line


def render_insertion_guide(
    tables: list[Table],
    insertion_order: list[str],
    db_name: str | None = None
) -> str:
    """
    Render the insertion guide.

    Lists tables in insertion order, then for each table its dependencies,
    the columns an INSERT must supply (NOT NULL without default), unique
    column groups and check constraint definitions.

    Args:
        tables: Analyzed tables
        insertion_order: Table names, dependencies first
        db_name: Database name for the title

    Returns:
        Markdown text

    Raises:
        ValueError: If the order names a table not in ``tables``
    """
    ordered = _ordered_tables(tables, insertion_order)

    title = "# Database Insertion Guide"
    if db_name:
        title += f" for {db_name}"

    lines = [title, ""]
    lines.append("## Insertion Order")
    lines.append("Tables must be populated in the following order to satisfy dependencies:")
    lines.append("")
    for position, name in enumerate(insertion_order, start=1):
        lines.append(f"{position}. {name}")
    lines.append("")

    lines.append("## Table Details")
    for table in ordered:
        lines.append("")
        lines.append(f"### {table.name}")

        if table.depends_on:
            lines.append("")
            lines.append("Dependencies:")
            for dep in dict.fromkeys(table.depends_on):
                lines.append(f"- Requires {dep} to be populated first")

        lines.append("")
        lines.append("Required columns:")
        required = table.required_columns()
        if not required:
            lines.append("- None")
        for col in required:
            lines.append(f"- {col.name} ({col.type})")

        if table.unique_constraints:
            lines.append("")
            lines.append("Unique constraints:")
            for uc in table.unique_constraints:
                lines.append(f"- {', '.join(uc.columns)}")

        if table.check_constraints:
            lines.append("")
            lines.append("Check constraints:")
            for cc in table.check_constraints:
                lines.append(f"- {cc.definition}")

    return '\n'.join(lines) + '\n'


def rank_core_tables(
    tables: list[Table],
    reference_counts: dict[str, int] | None = None
) -> list[tuple[Table, int]]:
    """Tables taking part in at least one foreign key, most referenced first.

    Ties keep catalog order.
    """
    counts = reference_counts if reference_counts is not None else count_references(tables)

    core = [
        (table, counts.get(table.name, 0))
        for table in tables
        if table.foreign_keys or counts.get(table.name, 0) > 0
    ]
    return sorted(core, key=lambda item: item[1], reverse=True)


def _table_summary(table: Table, referenced_by: int) -> str:
    parts = []
    if table.primary_key:
        parts.append(f"PK({', '.join(table.primary_key)})")
    if referenced_by > 0:
        parts.append(f"Referenced by {referenced_by} tables")
    return ', '.join(parts)


def render_schema_digest(
    tables: list[Table],
    db_name: str,
    enhanced: dict[str, EnhancedInfo] | None = None,
    reference_counts: dict[str, int] | None = None
) -> str:
    """
    Render the schema digest.

    Args:
        tables: Analyzed tables
        db_name: Database name for the title
        enhanced: Optional comments, triggers and enum labels keyed by table
        reference_counts: Incoming reference count per table; derived from
            ``tables`` when omitted

    Returns:
        Markdown text
    """
    enhanced = enhanced or {}
    relationship_count = sum(len(table.foreign_keys) for table in tables)

    lines = [f"# {db_name} Database Schema", ""]
    lines.append(f"> This database contains {len(tables)} tables with {relationship_count} relationships.")
    lines.append("")

    # Core tables
    lines.append("## Core Tables")
    lines.append("")
    for table, referenced_by in rank_core_tables(tables, reference_counts):
        summary = _table_summary(table, referenced_by)
        lines.append(f"- {table.name}: {summary}" if summary else f"- {table.name}")

    # Relationships
    lines.append("")
    lines.append("## Table Relationships")
    lines.append("")
    for table in tables:
        if table.foreign_keys:
            refs = ', '.join(
                f"{fk.referenced_table} ({fk.column} -> {fk.referenced_column}) [{fk.delete_rule}]"
                for fk in table.foreign_keys
            )
            lines.append(f"- {table.name} depends on: {refs}")

    # Details
    lines.append("")
    lines.append("## Table Details")
    lines.append("")
    for table in tables:
        info = enhanced.get(table.name, EnhancedInfo())

        lines.append(f"### {table.name}")
        if info.table_comment:
            lines.append(f"Description: {info.table_comment}")
            lines.append("")
        lines.append(f"Primary key: {', '.join(table.primary_key) or 'None'}")
        lines.append("")

        lines.append("Columns:")
        for col in table.columns:
            col_info = info.column(col.name)
            lines.append(f"- {_column_line(col, col_info)}")
            if col_info and col_info.enum_values:
                lines.append(f"  Allowed values: {', '.join(col_info.enum_values)}")

        if table.unique_constraints or table.check_constraints:
            lines.append("")
            lines.append("Constraints:")
            if table.unique_constraints:
                groups = '; '.join(', '.join(uc.columns) for uc in table.unique_constraints)
                lines.append(f"- Unique: {groups}")
            if table.check_constraints:
                checks = '; '.join(cc.definition for cc in table.check_constraints)
                lines.append(f"- Checks: {checks}")

        if info.triggers:
            lines.append("")
            lines.append("Triggers:")
            for trigger in info.triggers:
                lines.append(f"- {trigger.name}: {trigger.definition}")

        lines.append("")

    return '\n'.join(lines)


def render_analysis_report(
    tables: list[Table],
    insertion_order: list[str],
    db_name: str,
    generated_at: datetime
) -> str:
    """Render the full analysis: summary, order, per-table details, dependencies."""
    lines = [f"Database Analysis for {db_name}"]
    lines.append(f"Generated at: {generated_at.isoformat()}")
    lines.append("")

    lines.append("=== Tables Summary ===")
    lines.append(f"Total tables: {len(tables)}")
    lines.append("")

    lines.append("=== Insertion Order ===")
    for position, name in enumerate(insertion_order, start=1):
        lines.append(f"{position}. {name}")
    lines.append("")

    lines.append("=== Table Details ===")
    lines.append("")
    for table in tables:
        lines.append(f"Table: {table.name}")
        lines.append(f"Schema: {table.schema}")
        if table.primary_key:
            lines.append(f"Primary Key: {', '.join(table.primary_key)}")

        lines.append("Columns:")
        for col in table.columns:
            lines.append(f"  - {_column_line(col)}")

        if table.foreign_keys:
            lines.append("Foreign Keys:")
            for fk in table.foreign_keys:
                lines.append(f"  - {fk.column} -> {fk.referenced_table}.{fk.referenced_column}")

        if table.unique_constraints:
            lines.append("Unique Constraints:")
            for uc in table.unique_constraints:
                lines.append(f"  - {', '.join(uc.columns)}")

        if table.check_constraints:
            lines.append("Check Constraints:")
            for cc in table.check_constraints:
                lines.append(f"  - {cc.definition}")

        lines.append("")

    lines.append("=== Dependencies ===")
    for table in tables:
        if table.depends_on:
            lines.append(f"{table.name} depends on: {', '.join(table.depends_on)}")

    return '\n'.join(lines) + '\n'
