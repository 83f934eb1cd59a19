"""Analysis entry points.

``analyze`` runs the pipeline against a catalog: build tables, optionally
resolve the insertion order and fetch enhanced metadata. The ``run_*``
coroutines wrap it with connection handling, rendering and the artifact
file write. A file is only written once its content is fully rendered, so a
failed run leaves nothing behind.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

from pg_schema_guide.config.settings import AnalyzerConfig
from pg_schema_guide.db_introspect.catalog import CatalogSource
from pg_schema_guide.db_introspect.dependency_resolver import (
    SelfReferencePolicy,
    find_unresolved_dependencies,
    resolve_insertion_order,
)
from pg_schema_guide.db_introspect.models import CircularDependencyError, EnhancedInfo, Table
from pg_schema_guide.db_introspect.report_generator import (
    render_analysis_report,
    render_insertion_guide,
    render_schema_digest,
)
from pg_schema_guide.db_introspect.schema_builder import (
    CatalogReader,
    build_tables,
    fetch_enhanced_info,
    fetch_reference_counts,
)

logger = logging.getLogger(__name__)

INSERTION_GUIDE_PREFIX = "db-analysis"
DIGEST_PREFIX = "llmstxt"


@dataclass
class AnalysisResult:
    """Outcome of one analysis run."""
    db_name: str
    schema: str
    tables: list[Table]
    insertion_order: list[str] | None = None
    enhanced: dict[str, EnhancedInfo] = field(default_factory=dict)
    reference_counts: dict[str, int] | None = None
    # Set when the order could not be computed and the caller tolerated it
    order_error: CircularDependencyError | None = None


async def analyze(
    catalog: CatalogReader,
    schema: str = "public",
    *,
    db_name: str = "",
    ordered: bool = True,
    with_enhanced: bool = False,
    catalog_references: bool = False,
    self_reference: SelfReferencePolicy = "allow",
    tolerate_cycles: bool = False,
    max_concurrency: int = 4
) -> AnalysisResult:
    """Analyze one schema.

    Args:
        catalog: Catalog to read from
        schema: Schema name
        db_name: Database name carried into the result
        ordered: Compute the insertion order
        with_enhanced: Fetch comments, triggers and enum labels
        catalog_references: Count referencing tables with catalog queries
        self_reference: Policy for self-referencing foreign keys
        tolerate_cycles: Record a cycle on the result instead of raising
        max_concurrency: Tables fetched in parallel

    Returns:
        AnalysisResult; ``insertion_order`` is None when not requested or
        when a tolerated cycle prevented it

    Raises:
        CatalogUnavailable: If the catalog fails
        CircularDependencyError: On a cycle, unless ``tolerate_cycles``
    """
    tables = await build_tables(catalog, schema, max_concurrency=max_concurrency)
    result = AnalysisResult(db_name=db_name, schema=schema, tables=tables)

    for table_name, missing in find_unresolved_dependencies(tables).items():
        logger.info(f"{table_name} references tables outside schema {schema}: {', '.join(missing)}")

    if ordered:
        try:
            result.insertion_order = resolve_insertion_order(tables, self_reference=self_reference)
        except CircularDependencyError as e:
            if not tolerate_cycles:
                raise
            logger.warning(f"No insertion order for schema {schema}: {e}")
            result.order_error = e

    if with_enhanced:
        result.enhanced = await fetch_enhanced_info(catalog, tables, max_concurrency=max_concurrency)

    if catalog_references:
        result.reference_counts = await fetch_reference_counts(catalog, tables, max_concurrency=max_concurrency)

    return result


def artifact_timestamp(now: datetime | None = None) -> str:
    """UTC ISO-8601 timestamp with ':' and '.' replaced by '-'."""
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is not None:
        now = now.astimezone(timezone.utc).replace(tzinfo=None)
    stamp = now.isoformat(timespec="milliseconds") + "Z"
    return stamp.replace(":", "-").replace(".", "-")


def artifact_filename(prefix: str, db_name: str, now: datetime | None = None) -> str:
    """Build ``<prefix>-<db_name>-<timestamp>.txt``."""
    return f"{prefix}-{db_name}-{artifact_timestamp(now)}.txt"


def write_artifact(output_dir: str | Path, filename: str, content: str) -> Path:
    """Write a rendered artifact, creating the directory if needed."""
    directory = Path(output_dir)
    directory.mkdir(parents=True, exist_ok=True)

    path = directory / filename
    path.write_text(content, encoding="utf-8")
    logger.info(f"Analysis saved to {path}")
    return path


async def _analyze_with_config(config: AnalyzerConfig, **kwargs) -> AnalysisResult:
    descriptor = config.descriptor()
    async with CatalogSource.connect(descriptor, max_size=config.max_concurrency) as catalog:
        await catalog.ping()
        db_name = await catalog.database_name()
        logger.info(f"Connected to database {db_name}")
        return await analyze(
            catalog,
            config.schema_name,
            db_name=db_name,
            self_reference=config.self_reference,
            max_concurrency=config.max_concurrency,
            **kwargs,
        )


async def run_insertion_guide(config: AnalyzerConfig) -> tuple[Path, str]:
    """Analyze, render the insertion guide and write it.

    Returns:
        Path of the written file and the guide text
    """
    result = await _analyze_with_config(config, ordered=True)
    guide = render_insertion_guide(result.tables, result.insertion_order, result.db_name)
    path = write_artifact(
        config.output_dir,
        artifact_filename(INSERTION_GUIDE_PREFIX, result.db_name),
        guide,
    )
    return path, guide


async def run_schema_digest(config: AnalyzerConfig) -> Path:
    """Analyze without ordering, render the digest and write it."""
    result = await _analyze_with_config(
        config, ordered=False, with_enhanced=True, catalog_references=config.catalog_references
    )
    digest = render_schema_digest(
        result.tables, result.db_name, enhanced=result.enhanced, reference_counts=result.reference_counts
    )
    return write_artifact(
        config.output_dir,
        artifact_filename(DIGEST_PREFIX, result.db_name),
        digest,
    )


async def run_analysis_report(config: AnalyzerConfig) -> Path:
    """Analyze and write the full analysis report."""
    result = await _analyze_with_config(config, ordered=True)
    now = datetime.now(timezone.utc)
    report = render_analysis_report(result.tables, result.insertion_order, result.db_name, now)
    return write_artifact(
        config.output_dir,
        artifact_filename(INSERTION_GUIDE_PREFIX, result.db_name, now),
        report,
    )
