"""
Idempotent upsert operations for synced rows.

Implements INSERT ... ON CONFLICT DO UPDATE for reliable, idempotent writes:
replaying the same rows leaves the store unchanged apart from `synced_at`.
"""

from collections.abc import Sequence
from typing import Any

import psycopg
from psycopg import sql
from psycopg.types.json import Jsonb
from psycopg_pool import PoolTimeout

from finsync.sync.errors import StorageError, TransientStorageError
from finsync.utils.validation import sanitize_sql_identifier

from .connection import DatabaseConnectionPool


def _adapt(value: Any) -> Any:
    if isinstance(value, (dict, list)):
        return Jsonb(value)
    return value


def _columns(rows: Sequence[dict[str, Any]]) -> list[str]:
    """Union of row keys in first-seen order."""
    columns: dict[str, None] = {}
    for row in rows:
        for key in row:
            columns.setdefault(key, None)
    return list(columns)


class PostgresWarehouse:
    """
    Storage backend for the batch upserter.

    One call writes one sub-batch in one transaction, so a sub-batch is
    either fully committed or not at all. psycopg errors are mapped to the
    pipeline's storage errors: connection-level problems (OperationalError,
    which includes serialization failures and deadlocks) and pool timeouts
    are transient, everything else is not.
    """

    def __init__(self, pool: DatabaseConnectionPool):
        """
        Args:
            pool: Open database connection pool
        """
        self.pool = pool

    def build_upsert(self, table: str, columns: Sequence[str], conflict_key: Sequence[str]) -> sql.Composed:
        """
        Build the upsert statement for the given columns.

        Raises:
            ValidationError: If an identifier is unsafe
            ValueError: If a conflict column is not among the columns
        """
        table = sanitize_sql_identifier(table, "table")
        columns = [sanitize_sql_identifier(c, "column") for c in columns]
        conflict_key = [sanitize_sql_identifier(c, "conflict column") for c in conflict_key]

        missing = [c for c in conflict_key if c not in columns]
        if missing:
            raise ValueError(f"Conflict columns {missing} not present in rows for table {table}")

        assignments = [
            sql.SQL("{col} = EXCLUDED.{col}").format(col=sql.Identifier(c))
            for c in columns
            if c not in conflict_key
        ]
        assignments.append(sql.SQL("synced_at = now()"))

        return sql.SQL(
            "INSERT INTO {table} ({columns}) VALUES ({values}) "
            "ON CONFLICT ({key}) DO UPDATE SET {assignments}"
        ).format(
            table=sql.Identifier(table),
            columns=sql.SQL(", ").join(sql.Identifier(c) for c in columns),
            values=sql.SQL(", ").join(sql.Placeholder() for _ in columns),
            key=sql.SQL(", ").join(sql.Identifier(c) for c in conflict_key),
            assignments=sql.SQL(", ").join(assignments),
        )

    async def upsert_rows(
        self,
        table: str,
        rows: Sequence[dict[str, Any]],
        conflict_key: Sequence[str],
    ) -> int:
        """
        Upsert a sub-batch of rows.

        Args:
            table: Target table
            rows: Column -> value mappings
            conflict_key: Columns of the table's unique constraint

        Returns:
            Number of rows written

        Raises:
            TransientStorageError: Connection lost, pool exhausted, serialization failure
            StorageError: Constraint violations and other permanent failures
        """
        if not rows:
            return 0

        columns = _columns(rows)
        query = self.build_upsert(table, columns, conflict_key)
        params = [tuple(_adapt(row.get(c)) for c in columns) for row in rows]

        try:
            async with self.pool.get_connection() as conn:
                async with conn.cursor() as cur:
                    await cur.executemany(query, params)
                await conn.commit()
        except (psycopg.OperationalError, PoolTimeout) as e:
            raise TransientStorageError(f"Storage unavailable writing {table}: {e}") from e
        except psycopg.Error as e:
            raise StorageError(f"Failed to write {len(rows)} rows to {table}: {e}") from e

        return len(rows)

    async def count_rows(self, table: str, tenant_id: str | None = None) -> int:
        """Row count of a table, optionally for one tenant."""
        table = sanitize_sql_identifier(table, "table")
        query = sql.SQL("SELECT COUNT(*) AS count FROM {table}").format(table=sql.Identifier(table))
        params: tuple = ()
        if tenant_id is not None:
            query = query + sql.SQL(" WHERE tenant_id = %s")
            params = (tenant_id,)
        result = await self.pool.execute_query(query, params)
        return result[0]["count"] if result else 0

    async def fetch_rows(self, table: str, tenant_id: str) -> list[dict[str, Any]]:
        """All rows of a tenant in a table."""
        table = sanitize_sql_identifier(table, "table")
        query = sql.SQL("SELECT * FROM {table} WHERE tenant_id = %s").format(table=sql.Identifier(table))
        return await self.pool.execute_query(query, (tenant_id,))
