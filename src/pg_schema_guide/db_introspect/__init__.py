"""
Database introspection and analysis module.

Provides tools for reading a Postgres schema from the catalog, ordering its
tables by foreign-key dependencies, and rendering insertion guides and
schema digests.
"""

from pg_schema_guide.db_introspect.models import (
    CatalogUnavailable,
    CheckConstraint,
    CircularDependencyError,
    Column,
    EnhancedInfo,
    ForeignKey,
    SchemaAnalyzerError,
    Table,
    UniqueConstraint,
    format_column_type,
)
from pg_schema_guide.db_introspect.catalog import CatalogSource
from pg_schema_guide.db_introspect.schema_builder import build_tables, fetch_enhanced_info, fetch_reference_counts
from pg_schema_guide.db_introspect.dependency_resolver import resolve_insertion_order, reference_counts
from pg_schema_guide.db_introspect.report_generator import (
    render_analysis_report,
    render_insertion_guide,
    render_schema_digest,
)
from pg_schema_guide.db_introspect.analyzer import AnalysisResult, analyze

__all__ = [
    "CatalogUnavailable",
    "CheckConstraint",
    "CircularDependencyError",
    "Column",
    "EnhancedInfo",
    "ForeignKey",
    "SchemaAnalyzerError",
    "Table",
    "UniqueConstraint",
    "format_column_type",
    "CatalogSource",
    "build_tables",
    "fetch_enhanced_info",
    "fetch_reference_counts",
    "resolve_insertion_order",
    "reference_counts",
    "render_analysis_report",
    "render_insertion_guide",
    "render_schema_digest",
    "AnalysisResult",
    "analyze",
]
