"""pg-schema-guide: Postgres schema insertion guides and digests."""

__version__ = "0.1.0"
