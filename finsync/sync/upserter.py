"""
Batch upserter: writes rows in fixed-size sub-batches with retry.

A sub-batch that keeps failing is counted as failed and skipped; the rest of
the rows are still written. Storage errors never escape `upsert`.
"""

import asyncio
import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol

from pydantic import BaseModel

from finsync.observability.logger import get_logger
from finsync.observability.metrics import (
    increment_counter,
    observe_histogram,
    upsert_batches_total,
    upsert_duration_seconds,
)

from .errors import StorageError, TransientStorageError
from .retry import RetryPolicy, Sleep, retry_async

logger = get_logger(__name__)

DEFAULT_SUB_BATCH_SIZE = 25
MAX_SUB_BATCH_SIZE = 50


class RowStore(Protocol):
    """Storage contract: upsert rows on a conflict key, all or nothing per call."""

    async def upsert_rows(
        self,
        table: str,
        rows: Sequence[dict[str, Any]],
        conflict_key: Sequence[str],
    ) -> int:
        ...


@dataclass(frozen=True)
class UpsertResult:
    """
    Outcome of one upsert call.

    Attributes:
        succeeded: Rows persisted
        failed: Rows in failed sub-batches
        failed_keys: Conflict-key values of the failed rows
    """

    succeeded: int = 0
    failed: int = 0
    failed_keys: frozenset[tuple] = field(default=frozenset(), compare=False)

    def __add__(self, other: "UpsertResult") -> "UpsertResult":
        return UpsertResult(
            self.succeeded + other.succeeded,
            self.failed + other.failed,
            self.failed_keys | other.failed_keys,
        )

    @property
    def total(self) -> int:
        return self.succeeded + self.failed


def _as_row(row: BaseModel | dict[str, Any]) -> dict[str, Any]:
    if isinstance(row, BaseModel):
        return row.to_row() if hasattr(row, "to_row") else row.model_dump()
    return dict(row)


def _is_transient(exc: Exception) -> bool:
    return isinstance(exc, TransientStorageError)


class BatchUpserter:
    """
    Writes rows to a RowStore in sub-batches.

    Attributes:
        store: Storage backend
        sub_batch_size: Rows per storage call (1..50)
        policy: Retry policy for transient storage failures
        inter_batch_delay_s: Pause between sub-batches
    """

    def __init__(
        self,
        store: RowStore,
        sub_batch_size: int = DEFAULT_SUB_BATCH_SIZE,
        policy: RetryPolicy | None = None,
        inter_batch_delay_s: float = 0.1,
        sleep: Sleep = asyncio.sleep,
    ):
        if not 1 <= sub_batch_size <= MAX_SUB_BATCH_SIZE:
            raise ValueError(
                f"sub_batch_size must be between 1 and {MAX_SUB_BATCH_SIZE}, got {sub_batch_size}"
            )
        self.store = store
        self.sub_batch_size = sub_batch_size
        self.policy = policy or RetryPolicy()
        self.inter_batch_delay_s = inter_batch_delay_s
        self.sleep = sleep

    async def upsert(
        self,
        table: str,
        rows: Sequence[BaseModel | dict[str, Any]],
        conflict_key: Sequence[str],
    ) -> UpsertResult:
        """
        Upsert rows in sub-batches.

        Transient failures are retried per the policy. Non-transient failures
        and exhausted retries fail the whole sub-batch.

        Args:
            table: Target table
            rows: Models (with to_row) or dicts
            conflict_key: Columns forming the unique key

        Returns:
            Rows persisted and rows failed; their sum equals len(rows)
        """
        if not rows:
            return UpsertResult()

        payload = [_as_row(row) for row in rows]
        batches = [
            payload[i:i + self.sub_batch_size]
            for i in range(0, len(payload), self.sub_batch_size)
        ]

        result = UpsertResult()
        for index, batch in enumerate(batches, start=1):
            result += await self._write_batch(table, batch, conflict_key, index, len(batches))
            if index < len(batches) and self.inter_batch_delay_s > 0:
                await self.sleep(self.inter_batch_delay_s)

        logger.info(
            "Upsert completed",
            extra={
                "table": table,
                "rows": len(payload),
                "succeeded": result.succeeded,
                "failed": result.failed,
                "sub_batches": len(batches),
            },
        )
        return result

    async def _write_batch(
        self,
        table: str,
        batch: list[dict[str, Any]],
        conflict_key: Sequence[str],
        index: int,
        total: int,
    ) -> UpsertResult:
        start = time.monotonic()
        try:
            await retry_async(
                lambda: self.store.upsert_rows(table, batch, conflict_key),
                policy=self.policy,
                retry_on=_is_transient,
                sleep=self.sleep,
                operation=f"upsert {table}",
            )
        except StorageError as e:
            increment_counter(upsert_batches_total, table=table, status="failure")
            logger.error(
                "Sub-batch failed",
                extra={
                    "table": table,
                    "sub_batch": index,
                    "sub_batches": total,
                    "rows": len(batch),
                    "error_type": type(e).__name__,
                    "error_message": str(e),
                },
            )
            return UpsertResult(
                failed=len(batch),
                failed_keys=frozenset(tuple(row.get(column) for column in conflict_key) for row in batch),
            )
        finally:
            observe_histogram(upsert_duration_seconds, time.monotonic() - start, table=table)

        increment_counter(upsert_batches_total, table=table, status="success")
        logger.debug(
            "Sub-batch written",
            extra={"table": table, "sub_batch": index, "sub_batches": total, "rows": len(batch)},
        )
        return UpsertResult(succeeded=len(batch))
