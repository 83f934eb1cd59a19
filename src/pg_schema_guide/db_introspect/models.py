"""Schema entities built from raw catalog rows.

Tables, columns, keys and constraints as they are reported by the catalog,
plus the optional "enhanced" metadata (comments, triggers, enum labels) and
the error types raised by the analysis pipeline.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any


class SchemaAnalyzerError(Exception):
    """Base class for analysis failures."""


class CatalogUnavailable(SchemaAnalyzerError):
    """The catalog could not be reached or a catalog query failed."""

    def __init__(self, message: str, table: str | None = None):
        super().__init__(message)
        self.table = table


class CircularDependencyError(SchemaAnalyzerError):
    """Foreign keys form a cycle, so no insertion order exists."""

    def __init__(self, table: str):
        super().__init__(f"Circular dependency detected involving table: {table}")
        self.table = table


@dataclass
class Column:
    """A table column with its display type."""
    name: str
    type: str
    nullable: bool
    default_value: str | None = None
    constraints: list[str] = field(default_factory=list)

    @property
    def is_required(self) -> bool:
        """True when an INSERT must supply a value for this column."""
        return not self.nullable and self.default_value is None


@dataclass
class ForeignKey:
    column: str
    referenced_table: str
    referenced_column: str
    update_rule: str = "NO ACTION"
    delete_rule: str = "NO ACTION"


@dataclass
class UniqueConstraint:
    name: str
    columns: list[str] = field(default_factory=list)


@dataclass
class CheckConstraint:
    name: str
    definition: str


@dataclass
class Table:
    """A base table and everything needed to populate it."""
    name: str
    schema: str
    columns: list[Column] = field(default_factory=list)
    primary_key: list[str] = field(default_factory=list)
    foreign_keys: list[ForeignKey] = field(default_factory=list)
    unique_constraints: list[UniqueConstraint] = field(default_factory=list)
    check_constraints: list[CheckConstraint] = field(default_factory=list)
    # One entry per foreign key, duplicates kept
    depends_on: list[str] = field(default_factory=list)

    def required_columns(self) -> list[Column]:
        """Columns that are NOT NULL and have no default."""
        return [col for col in self.columns if col.is_required]


@dataclass
class ColumnComment:
    name: str
    comment: str | None = None
    enum_values: list[str] | None = None


@dataclass
class Trigger:
    name: str
    definition: str


@dataclass
class EnhancedInfo:
    """Optional per-table metadata beyond keys and columns."""
    table_comment: str | None = None
    columns: list[ColumnComment] = field(default_factory=list)
    triggers: list[Trigger] = field(default_factory=list)

    def column(self, name: str) -> ColumnComment | None:
        return next((c for c in self.columns if c.name == name), None)


def format_column_type(
    data_type: str,
    char_len: int | None = None,
    num_precision: int | None = None,
    num_scale: int | None = None
) -> str:
    """Build the display type of a column.

    Character length wins over numeric precision; a type never carries both.

    Examples:
        >>> format_column_type("character varying", char_len=255)
        'CHARACTER VARYING(255)'
        >>> format_column_type("numeric", num_precision=10, num_scale=2)
        'NUMERIC(10,2)'
    """
    type_name = data_type.upper()

    if char_len:
        return f"{type_name}({char_len})"
    if num_precision:
        return f"{type_name}({num_precision},{num_scale or 0})"
    return type_name


def parse_enum_values(value: Any) -> list[str] | None:
    """Normalize enum labels from a native list or a Postgres array literal.

    Both ``["a", "b"]`` and ``'{a,"b"}'`` yield ``["a", "b"]``. Quoted
    elements may contain commas and backslash-escaped characters.
    """
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value]

    text = str(value).strip()
    if text.startswith("{") and text.endswith("}"):
        text = text[1:-1]
    if not text.strip():
        return []

    labels = []
    current: list[str] = []
    quoted = False
    in_quotes = False
    escaped = False

    for ch in text:
        if escaped:
            current.append(ch)
            escaped = False
        elif ch == "\\":
            escaped = True
        elif ch == '"':
            if not quoted:
                # Whitespace before the opening quote is not part of the label
                current = []
                quoted = True
            in_quotes = not in_quotes
        elif ch == "," and not in_quotes:
            label = "".join(current)
            labels.append(label if quoted else label.strip())
            current = []
            quoted = False
        elif quoted and not in_quotes and ch.isspace():
            continue
        else:
            current.append(ch)

    label = "".join(current)
    labels.append(label if quoted else label.strip())
    return labels


def column_from_row(row: dict[str, Any]) -> Column:
    """Convert one catalog column row into a Column."""
    nullable = row.get("nullable")
    if isinstance(nullable, str):
        nullable = nullable.upper() == "YES"

    return Column(
        name=row["name"],
        type=format_column_type(
            row["data_type"],
            row.get("char_len"),
            row.get("num_precision"),
            row.get("num_scale"),
        ),
        nullable=bool(nullable),
        default_value=row.get("default"),
    )


def foreign_key_from_row(row: dict[str, Any]) -> ForeignKey:
    return ForeignKey(
        column=row["column"],
        referenced_table=row["referenced_table"],
        referenced_column=row["referenced_column"],
        update_rule=row.get("update_rule") or "NO ACTION",
        delete_rule=row.get("delete_rule") or "NO ACTION",
    )


def enhanced_info_from_row(row: dict[str, Any]) -> EnhancedInfo:
    """Convert an enhanced-info payload into EnhancedInfo."""
    return EnhancedInfo(
        table_comment=row.get("table_comment"),
        columns=[
            ColumnComment(
                name=c["name"],
                comment=c.get("comment"),
                enum_values=parse_enum_values(c.get("enum_values")),
            )
            for c in row.get("columns", [])
        ],
        triggers=[
            Trigger(name=t["name"], definition=t["definition"])
            for t in row.get("triggers", [])
        ],
    )
