"""Configuration management for pg-schema-guide."""
from .settings import (
    AnalyzerConfig,
    ByFields,
    ByUri,
    Connection,
    ConnectionDescriptor,
    load_analyzer_config,
    parse_connection_uri,
    resolve_connection,
)

__all__ = [
    "AnalyzerConfig",
    "ByFields",
    "ByUri",
    "Connection",
    "ConnectionDescriptor",
    "load_analyzer_config",
    "parse_connection_uri",
    "resolve_connection",
]
