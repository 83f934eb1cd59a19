"""Configuration loading and validation.

Settings come from environment variables (a local .env file is honoured via
python-dotenv) or from a YAML file validated with pydantic. A connection can
be given either as a URI or as discrete fields; both resolve to a single
ConnectionDescriptor before any catalog query runs.
"""
from __future__ import annotations
import os
from pathlib import Path
from typing import Annotated, Literal, Union
from urllib.parse import unquote

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

load_dotenv()


class ConnectionDescriptor(BaseModel):
    """Resolved connection parameters handed to the driver."""
    host: str
    port: int = 5432
    database: str
    user: str = ""
    password: str = ""
    ssl: bool = False

    def redacted(self) -> dict:
        data = self.model_dump()
        if data["password"]:
            data["password"] = "***"
        return data


class ByUri(BaseModel):
    """Connection given as a postgres:// or postgresql:// URI."""
    kind: Literal["uri"] = "uri"
    uri: str
    ssl: bool = False

    @field_validator("uri")
    @classmethod
    def validate_uri(cls, v: str) -> str:
        if not (v.startswith("postgresql://") or v.startswith("postgres://")):
            raise ValueError("uri must start with 'postgresql://' or 'postgres://'")
        return v


class ByFields(BaseModel):
    """Connection given as discrete host/port/database/user/password fields."""
    kind: Literal["fields"] = "fields"
    host: str = "localhost"
    port: int = Field(5432, ge=1, le=65535)
    database: str
    user: str = ""
    password: str = ""
    ssl: bool = False


Connection = Annotated[Union[ByUri, ByFields], Field(discriminator="kind")]


def parse_connection_uri(uri: str, ssl: bool = False) -> ConnectionDescriptor:
    """Parse a Postgres URI into a ConnectionDescriptor.

    The password is everything after the first ':' of the credentials, so
    passwords containing ':' survive. Query parameters are ignored. A URI
    without a database path resolves to ``unknown_db``.

    Raises:
        ValueError: If the URI has no host
    """
    rest = uri
    for prefix in ("postgresql://", "postgres://"):
        if rest.startswith(prefix):
            rest = rest[len(prefix):]
            break

    rest = rest.split("?", 1)[0]
    auth_host, _, path = rest.partition("/")

    auth = ""
    host_port = auth_host
    if "@" in auth_host:
        auth, _, host_port = auth_host.rpartition("@")

    hostname, _, port = host_port.partition(":")
    if not hostname:
        raise ValueError(f"Invalid connection URI: missing host in {_redact_uri(uri)}")

    user, _, password = auth.partition(":")

    try:
        port_number = int(port) if port else 5432
    except ValueError as e:
        raise ValueError(f"Invalid connection URI: bad port {port!r}") from e

    return ConnectionDescriptor(
        host=hostname,
        port=port_number,
        database=unquote(path.split("/")[0]) or "unknown_db",
        user=unquote(user),
        password=unquote(password),
        ssl=ssl,
    )


def resolve_connection(conn: ByUri | ByFields) -> ConnectionDescriptor:
    """Resolve either connection form into one descriptor."""
    if isinstance(conn, ByUri):
        return parse_connection_uri(conn.uri, ssl=conn.ssl)

    return ConnectionDescriptor(
        host=conn.host,
        port=conn.port,
        database=conn.database,
        user=conn.user,
        password=conn.password,
        ssl=conn.ssl,
    )


def _redact_uri(uri: str) -> str:
    """Mask the password part of a URI for log output."""
    scheme, sep, rest = uri.partition("://")
    if "@" not in rest:
        return uri
    auth, _, host = rest.rpartition("@")
    if ":" in auth:
        auth = f"{auth.split(':', 1)[0]}:***"
    return f"{scheme}{sep}{auth}@{host}"


class AnalyzerConfig(BaseModel):
    """Complete analyzer configuration."""
    connection: Connection
    schema_name: str = Field("public", description="Schema to analyze")
    output_dir: str = Field(".", description="Directory for generated files")
    max_concurrency: int = Field(4, ge=1, le=32, description="Tables fetched in parallel")
    self_reference: Literal["allow", "error"] = Field(
        "allow", description="How self-referencing foreign keys are ordered"
    )
    catalog_references: bool = Field(
        False, description="Count referencing tables with catalog queries, including other schemas"
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field("INFO", description="Log level")

    @classmethod
    def from_yaml(cls, path: str | Path) -> AnalyzerConfig:
        """Load configuration from YAML file.

        Args:
            path: Path to YAML configuration file

        Returns:
            Validated AnalyzerConfig instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If configuration is invalid
        """
        config_path = Path(path)

        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(config_path, 'r') as f:
            data = yaml.safe_load(f)

        if not data:
            raise ValueError(f"Empty configuration file: {config_path}")

        try:
            return cls.model_validate(data)
        except Exception as e:
            raise ValueError(f"Invalid configuration in {config_path}: {e}") from e

    @classmethod
    def from_env(cls, uri: str | None = None) -> AnalyzerConfig:
        """Build configuration from environment variables.

        Args:
            uri: Connection URI overriding DATABASE_URL

        Raises:
            ValueError: If no connection URI is available
        """
        uri = uri or os.getenv("DATABASE_URL")
        if not uri:
            raise ValueError("No connection given: pass --uri or set DATABASE_URL")

        return cls.model_validate({
            "connection": {"kind": "uri", "uri": uri},
            "schema_name": os.getenv("PGSS_SCHEMA", "public"),
            "output_dir": os.getenv("PGSS_OUTPUT_DIR", "."),
            "max_concurrency": int(os.getenv("PGSS_MAX_CONCURRENCY", "4")),
            "log_level": os.getenv("PGSS_LOG_LEVEL", "INFO").upper(),
        })

    def descriptor(self) -> ConnectionDescriptor:
        return resolve_connection(self.connection)

    def log_redacted(self) -> dict:
        """Get configuration dict with secrets redacted for logging."""
        config_dict = self.model_dump()
        connection = config_dict["connection"]
        if connection.get("kind") == "uri":
            connection["uri"] = _redact_uri(connection["uri"])
        elif connection.get("password"):
            connection["password"] = "***"
        return config_dict


def load_analyzer_config(
    config_path: str | Path | None = None,
    uri: str | None = None
) -> AnalyzerConfig:
    """Load analyzer configuration from file or environment.

    Order: explicit path, then the PGSS_CONFIG environment variable, then
    DATABASE_URL (or ``uri``).

    Raises:
        ValueError: If configuration is invalid or not found
    """
    config_path = config_path or os.getenv("PGSS_CONFIG")
    if config_path:
        config = AnalyzerConfig.from_yaml(config_path)
        if uri:
            config = config.model_copy(update={"connection": ByUri(uri=uri)})
        return config

    return AnalyzerConfig.from_env(uri)
