"""
Database access for the SQL message repository.

Usage:
    from eventmq.database import get_database, ensure_schema

    db = await get_database()
    await ensure_schema(db)
"""

from .adapter import (
    DatabaseAdapter,
    DatabaseBackend,
    DatabaseConfig,
    get_database,
    close_database,
)
from .schema import ensure_schema, schema_statements

__all__ = [
    "DatabaseAdapter",
    "DatabaseBackend",
    "DatabaseConfig",
    "get_database",
    "close_database",
    "ensure_schema",
    "schema_statements",
]
