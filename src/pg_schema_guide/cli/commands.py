from __future__ import annotations
import argparse
import asyncio
import logging
import sys

from pg_schema_guide.config.settings import AnalyzerConfig, load_analyzer_config
from pg_schema_guide.db_introspect.analyzer import (
    run_analysis_report,
    run_insertion_guide,
    run_schema_digest,
)
from pg_schema_guide.db_introspect.catalog import CatalogSource
from pg_schema_guide.db_introspect.models import SchemaAnalyzerError

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pg-schema-guide",
        description="Analyze a PostgreSQL schema and write insertion guides or schema digests"
    )
    parser.add_argument("--config", help="Path to YAML configuration file (or set PGSS_CONFIG)")
    parser.add_argument("-u", "--uri", help="Database connection URI (default: DATABASE_URL)")
    parser.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                        help="Override the configured log level")
    sub = parser.add_subparsers(dest="cmd", required=True)

    analyze = sub.add_parser("analyze", help="Analyze a database schema")
    analyze.add_argument("-s", "--schema", help="Database schema to analyze (default: public)")
    analyze.add_argument("-o", "--output-path", help="Directory for generated files (default: .)")
    mode = analyze.add_mutually_exclusive_group()
    mode.add_argument("--llmtxt", action="store_true",
                      help="Generate LLMs-friendly schema digest instead of the insertion guide")
    mode.add_argument("--report", action="store_true",
                      help="Write the full analysis report instead of the insertion guide")
    analyze.add_argument("--self-reference", choices=["allow", "error"],
                         help="Treat self-referencing foreign keys as allowed or as cycles")
    analyze.add_argument("--max-concurrency", type=int,
                         help="Tables fetched in parallel (default: 4)")
    analyze.add_argument("--catalog-references", action="store_true",
                         help="Count references from other schemas in the --llmtxt digest")

    sub.add_parser("ping", help="Test database connection")

    return parser


def apply_overrides(config: AnalyzerConfig, args: argparse.Namespace) -> AnalyzerConfig:
    """Merge command line options over the loaded configuration."""
    updates = {}
    if getattr(args, "schema", None):
        updates["schema_name"] = args.schema
    if getattr(args, "output_path", None):
        updates["output_dir"] = args.output_path
    if getattr(args, "self_reference", None):
        updates["self_reference"] = args.self_reference
    if getattr(args, "max_concurrency", None):
        updates["max_concurrency"] = args.max_concurrency
    if getattr(args, "catalog_references", False):
        updates["catalog_references"] = True
    if args.log_level:
        updates["log_level"] = args.log_level

    if not updates:
        return config
    return AnalyzerConfig.model_validate({**config.model_dump(), **updates})


def run(argv: list[str] | None = None) -> None:
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)

    try:
        config = apply_overrides(load_analyzer_config(args.config, uri=args.uri), args)
    except (ValueError, FileNotFoundError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)

    logging.basicConfig(
        level=getattr(logging, config.log_level),
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stderr)]
    )
    logger.debug(f"Configuration: {config.log_redacted()}")

    try:
        if args.cmd == "ping":
            asyncio.run(db_ping(config))
        elif args.cmd == "analyze":
            asyncio.run(analyze_schema(config, llmtxt=args.llmtxt, report=args.report))
    except KeyboardInterrupt:
        print("\nInterrupted by user", file=sys.stderr)
        sys.exit(130)
    except (SchemaAnalyzerError, ValueError, OSError) as e:
        logger.error(f"Error during schema analysis: {e}")
        sys.exit(1)


async def db_ping(config: AnalyzerConfig) -> None:
    """Test database connection.

    Raises:
        CatalogUnavailable: If connection or query fails
    """
    async with CatalogSource.connect(config.descriptor(), max_size=1) as catalog:
        await catalog.ping()
        db_name = await catalog.database_name()

    print("✓ Database connection successful")
    print(f"  Database: {db_name}")


async def analyze_schema(config: AnalyzerConfig, llmtxt: bool = False, report: bool = False) -> None:
    """Run one analysis and print where the result went."""
    logger.info(f"Analyzing schema: {config.schema_name}")

    if llmtxt:
        path = await run_schema_digest(config)
        print(f"\nLLMs analysis saved to: {path}")
    elif report:
        path = await run_analysis_report(config)
        print(f"\nAnalysis report saved to: {path}")
    else:
        path, guide = await run_insertion_guide(config)
        print("\n=== Schema Analysis Report ===\n")
        print(guide)
        print(f"Insertion guide saved to: {path}")


if __name__ == "__main__":
    run()
