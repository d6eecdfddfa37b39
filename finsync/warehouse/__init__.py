"""
PostgreSQL storage backend.
"""

from .connection import DatabaseConnectionPool
from .schema import TABLES, ensure_schema
from .upsert import PostgresWarehouse

__all__ = [
    "DatabaseConnectionPool",
    "PostgresWarehouse",
    "ensure_schema",
    "TABLES",
]
