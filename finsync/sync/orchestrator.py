"""
Sync orchestrator: pages through an upstream system and persists every page.

One run walks the states Init -> Fetching -> Processing -> Persisting, loops
until the upstream is exhausted or the limit is reached, then writes the
audit snapshots. A fetch failure or the wall-clock timeout aborts the run;
sub-batches already committed stay committed.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel

from finsync.audit.backup_writer import BackupWriter
from finsync.core.currency import CurrencyNormalizer
from finsync.core.models import CanonicalRow
from finsync.core.transform import dedupe_rows
from finsync.observability.logger import get_logger, log_operation
from finsync.observability.metrics import increment_counter, pages_fetched_total
from finsync.upstream.base import UpstreamClient, clamp_page_size

from .errors import FetchAbortedError, SyncTimeoutError, UpstreamError
from .retry import Sleep
from .strategy import EntityStrategy
from .upserter import BatchUpserter

logger = get_logger(__name__)

DEFAULT_PAGE_SIZE = 50
DEFAULT_TIMEOUT_S = 30 * 60


@dataclass
class RunProgress:
    """
    Mutable counters and buffers of one run.

    Created before the run starts so that counters survive an abort.
    """

    total_processed: int = 0
    succeeded: int = 0
    failed: int = 0
    relationships_persisted: int = 0
    relationships_failed: int = 0
    pages: int = 0
    raw_records: list[dict[str, Any]] = field(default_factory=list)
    transformed: list[CanonicalRow] = field(default_factory=list)
    related: list[BaseModel] = field(default_factory=list)
    backup_locations: dict[str, str] = field(default_factory=dict)
    backup_errors: list[str] = field(default_factory=list)


class SyncOrchestrator:
    """
    Drives one entity's sync end to end.

    Attributes:
        strategy: Entity-specific table, key, transformer and extractor
        client: Upstream adapter of the strategy's system
        upserter: Sub-batching, retrying writer
        backup_writer: Snapshot writer; None disables snapshots
        page_size: Records requested per page (1..100)
        page_delay_s: Pause between pages
        timeout_s: Wall-clock budget of the fetch/persist loop
    """

    def __init__(
        self,
        strategy: EntityStrategy,
        client: UpstreamClient,
        upserter: BatchUpserter,
        backup_writer: BackupWriter | None = None,
        normalizer: CurrencyNormalizer | None = None,
        page_size: int = DEFAULT_PAGE_SIZE,
        page_delay_s: float = 0.1,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        sleep: Sleep = asyncio.sleep,
    ):
        self.strategy = strategy
        self.client = client
        self.upserter = upserter
        self.backup_writer = backup_writer
        self.normalizer = normalizer or CurrencyNormalizer()
        self.page_size = clamp_page_size(page_size)
        self.page_delay_s = page_delay_s
        self.timeout_s = timeout_s
        self.sleep = sleep

    async def run(
        self,
        tenant_id: str,
        date_from: str,
        date_to: str,
        limit: int | None = None,
        progress: RunProgress | None = None,
    ) -> RunProgress:
        """
        Sync all records of the entity in [date_from, date_to].

        Snapshots are written on success and on abort alike.

        Args:
            tenant_id: Validated tenant
            date_from: Inclusive start date (YYYY-MM-DD)
            date_to: Inclusive end date (YYYY-MM-DD)
            limit: Maximum number of records to process
            progress: Counter object to update in place

        Returns:
            The progress object

        Raises:
            FetchAbortedError: If a page could not be fetched
            SyncTimeoutError: If the run exceeded timeout_s
        """
        progress = progress if progress is not None else RunProgress()
        entity = self.strategy.entity

        with log_operation(f"Sync {entity}", logger=logger, entity=entity, tenant_id=tenant_id):
            try:
                await asyncio.wait_for(
                    self._fetch_and_persist(tenant_id, date_from, date_to, limit, progress),
                    timeout=self.timeout_s,
                )
            except asyncio.TimeoutError:
                await self._write_snapshots(progress, date_from, date_to)
                raise SyncTimeoutError(
                    f"Sync of {entity} exceeded {self.timeout_s:g}s after "
                    f"{progress.total_processed} records"
                ) from None
            except FetchAbortedError:
                await self._write_snapshots(progress, date_from, date_to)
                raise

            await self._write_snapshots(progress, date_from, date_to)
        return progress

    async def _fetch_and_persist(
        self,
        tenant_id: str,
        date_from: str,
        date_to: str,
        limit: int | None,
        progress: RunProgress,
    ) -> None:
        entity = self.strategy.entity
        offset = 0

        while limit is None or progress.total_processed < limit:
            requested = self.page_size if limit is None else min(self.page_size, limit - progress.total_processed)

            try:
                page = await self.client.fetch_page(entity, date_from, date_to, requested, offset)
            except UpstreamError as e:
                raise FetchAbortedError(
                    f"Failed to fetch {entity} at offset {offset}: {e.message}"
                ) from e

            progress.pages += 1
            increment_counter(pages_fetched_total, system=self.strategy.system, entity=entity)

            items = page.items[:requested]
            logger.info(
                "Page fetched",
                extra={
                    "entity": entity,
                    "page": progress.pages,
                    "offset": offset,
                    "requested": requested,
                    "received": len(items),
                    "total_estimate": page.total_estimate,
                },
            )
            if not items:
                break

            await self._process_page(items, tenant_id, progress)

            offset += self.page_size
            if len(items) < requested:
                break
            if self.page_delay_s > 0 and (limit is None or progress.total_processed < limit):
                await self.sleep(self.page_delay_s)

    async def _process_page(
        self,
        items: list[dict[str, Any]],
        tenant_id: str,
        progress: RunProgress,
    ) -> None:
        strategy = self.strategy
        rows = [strategy.transform(raw, tenant_id, self.normalizer) for raw in items]

        related: list[BaseModel] = []
        if strategy.has_related:
            for raw in items:
                related.extend(strategy.extract_related(raw, tenant_id))
            related = dedupe_rows(related, strategy.related_conflict_key)

        progress.total_processed += len(items)
        progress.raw_records.extend(items)
        progress.transformed.extend(rows)
        progress.related.extend(related)

        keyed = [row for row in rows if row.is_keyed]
        unkeyed = len(rows) - len(keyed)
        if unkeyed:
            logger.warning(
                "Records without upstream id skipped",
                extra={"entity": strategy.entity, "count": unkeyed},
            )

        # Parents first: related rows may reference them
        result = await self.upserter.upsert(strategy.table, keyed, strategy.conflict_key)
        progress.succeeded += result.succeeded
        progress.failed += result.failed + unkeyed

        if related and result.failed_keys:
            related, orphaned = self._split_orphans(related, result.failed_keys)
            if orphaned:
                progress.relationships_failed += orphaned
                logger.warning(
                    "Related rows of failed parents skipped",
                    extra={"entity": strategy.entity, "table": strategy.related_table, "count": orphaned},
                )

        if related:
            related_result = await self.upserter.upsert(
                strategy.related_table, related, strategy.related_conflict_key
            )
            progress.relationships_persisted += related_result.succeeded
            progress.relationships_failed += related_result.failed

    def _split_orphans(self, related: list[BaseModel], failed_keys: frozenset[tuple]) -> tuple[list[BaseModel], int]:
        """Drop related rows whose parent row was not written."""
        parent_key = self.strategy.related_parent_key
        kept = [
            row for row in related
            if tuple(getattr(row, column) for column in parent_key) not in failed_keys
        ]
        return kept, len(related) - len(kept)

    async def _write_snapshots(self, progress: RunProgress, date_from: str, date_to: str) -> None:
        """Write the raw, transformed and related datasets off the event loop; failures are collected."""
        if self.backup_writer is None:
            return

        entity = self.strategy.entity
        window = f"{date_from}_to_{date_to}"
        datasets = [
            ("raw", f"{entity}_raw_{window}", progress.raw_records),
            ("transformed", f"{entity}_transformed_{window}", progress.transformed),
        ]
        if self.strategy.has_related:
            label = self.strategy.related_label
            datasets.append((label, f"{label}_{window}", progress.related))

        for key, label, rows in datasets:
            try:
                location = await asyncio.to_thread(self.backup_writer.snapshot, rows, label)
            except OSError as e:
                progress.backup_errors.append(f"{key}: {e}")
                continue
            if location is not None:
                progress.backup_locations[key] = location
