"""
Sync service: the invocation surface of the pipeline.

`run_sync` validates the tenant, resolves the date window, runs the
orchestrator and freezes the outcome into a RunResult. Aborted runs are
reported through the result rather than raised.
"""

import asyncio
from collections.abc import AsyncIterator, Callable, Iterable, Mapping
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import date, datetime, timezone

from finsync.audit.backup_writer import BackupWriter
from finsync.config.settings import CrmSettings, ErpSettings, SyncSettings
from finsync.core.currency import CurrencyConfigLoader, CurrencyNormalizer, CurrencyTable
from finsync.core.models import RunError, RunResult, SyncRequest
from finsync.observability.logger import current_run_id, get_logger, run_context
from finsync.observability.metrics import record_run_completed
from finsync.upstream import CrmClient, ErpClient, HttpUpstreamClient, UpstreamClient
from finsync.utils.validation import ValidationError, validate_tenant_id
from finsync.warehouse import DatabaseConnectionPool, PostgresWarehouse

from .errors import AuthorizationError, ConfigurationError, FetchAbortedError, SyncTimeoutError
from .orchestrator import RunProgress, SyncOrchestrator
from .retry import RetryPolicy, Sleep
from .strategy import STRATEGIES, get_strategy
from .upserter import BatchUpserter, RowStore

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class SyncDependencies:
    """
    Collaborators of a sync run.

    Attributes:
        clients: Upstream adapters keyed by system ("erp", "crm")
        store: Storage backend
        settings: Tunables
        normalizer: Shared currency normalizer
        backup_writer: Snapshot writer; None disables snapshots
        sleep: Coroutine used for every delay
        clock: Source of run timestamps
        today: Reference date for relative windows
    """

    clients: Mapping[str, UpstreamClient]
    store: RowStore
    settings: SyncSettings = field(default_factory=SyncSettings)
    normalizer: CurrencyNormalizer = field(default_factory=CurrencyNormalizer)
    backup_writer: BackupWriter | None = None
    sleep: Sleep = asyncio.sleep
    clock: Callable[[], datetime] = _utcnow
    today: Callable[[], date] = date.today


def build_orchestrator(entity: str, deps: SyncDependencies) -> SyncOrchestrator:
    """
    Raises:
        ValueError: If the entity is unknown
        ConfigurationError: If no client is configured for the entity's system
    """
    strategy = get_strategy(entity)
    client = deps.clients.get(strategy.system)
    if client is None:
        raise ConfigurationError(f"No {strategy.system} client configured for {entity}")

    settings = deps.settings
    upserter = BatchUpserter(
        deps.store,
        sub_batch_size=settings.sub_batch_size,
        policy=RetryPolicy(
            max_attempts=settings.retry_attempts,
            base_delay_s=settings.retry_base_delay_s,
            backoff="linear",
        ),
        inter_batch_delay_s=settings.inter_batch_delay_s,
        sleep=deps.sleep,
    )
    return SyncOrchestrator(
        strategy=strategy,
        client=client,
        upserter=upserter,
        backup_writer=deps.backup_writer,
        normalizer=deps.normalizer,
        page_size=settings.page_size,
        page_delay_s=settings.page_delay_s,
        timeout_s=settings.run_timeout_s,
        sleep=deps.sleep,
    )


async def run_sync(
    entity: str,
    tenant_id: str | None,
    request: SyncRequest,
    deps: SyncDependencies,
) -> RunResult:
    """
    Run one sync and summarize it.

    Args:
        entity: A key of STRATEGIES
        tenant_id: Tenant resolved by the caller's auth layer
        request: Date window and limit
        deps: Collaborators

    Returns:
        Frozen RunResult; status "aborted" carries the reason in `error`

    Raises:
        AuthorizationError: If the tenant is missing or invalid (nothing is fetched)
        ValueError: If the entity is unknown
        ConfigurationError: If the entity's upstream client is missing
    """
    try:
        tenant = validate_tenant_id(tenant_id)
    except ValidationError as e:
        raise AuthorizationError(f"Unauthorized: {e}") from e

    orchestrator = build_orchestrator(entity, deps)
    date_from, date_to = request.effective_range(deps.today())

    with run_context():
        return await _execute(orchestrator, entity, tenant, date_from, date_to, request, deps)


async def _execute(
    orchestrator: SyncOrchestrator,
    entity: str,
    tenant: str,
    date_from: str,
    date_to: str,
    request: SyncRequest,
    deps: SyncDependencies,
) -> RunResult:
    progress = RunProgress()
    started_at = deps.clock()
    error: RunError | None = None

    logger.info(
        "Sync run started",
        extra={
            "entity": entity,
            "tenant_id": tenant,
            "date_from": date_from,
            "date_to": date_to,
            "limit": request.limit,
        },
    )

    try:
        await orchestrator.run(tenant, date_from, date_to, request.limit, progress)
    except (FetchAbortedError, SyncTimeoutError) as e:
        error = RunError(code=e.code, message=e.message, timestamp=e.timestamp)
        logger.error(
            "Sync run aborted",
            extra={"entity": entity, "tenant_id": tenant, "error_code": e.code, "error_message": e.message},
        )

    finished_at = deps.clock()
    failures = progress.failed + progress.relationships_failed
    result = RunResult(
        run_id=current_run_id(),
        entity=entity,
        tenant_id=tenant,
        date_from=date_from,
        date_to=date_to,
        status=RunResult.status_for(failures, aborted=error is not None),
        total_processed=progress.total_processed,
        succeeded=progress.succeeded,
        failed=progress.failed,
        relationships_persisted=progress.relationships_persisted,
        relationships_failed=progress.relationships_failed,
        backup_locations=dict(progress.backup_locations),
        backup_errors=list(progress.backup_errors),
        error=error,
        started_at=started_at,
        finished_at=finished_at,
    )

    record_run_completed(
        entity=entity,
        status=result.status,
        succeeded=result.succeeded + result.relationships_persisted,
        failed=failures,
        duration_seconds=result.duration_seconds,
    )
    logger.info(
        "Sync run finished",
        extra={
            "entity": entity,
            "tenant_id": tenant,
            "status": result.status,
            "total_processed": result.total_processed,
            "succeeded": result.succeeded,
            "failed": result.failed,
            "relationships_persisted": result.relationships_persisted,
            "relationships_failed": result.relationships_failed,
            "duration_seconds": round(result.duration_seconds, 3),
        },
    )
    return result


def load_normalizer(settings: SyncSettings) -> CurrencyNormalizer:
    """Currency normalizer over the default table, extended from YAML if configured."""
    if settings.currency_config:
        table = CurrencyConfigLoader(settings.currency_config).load_table()
    else:
        table = CurrencyTable.default()
    return CurrencyNormalizer(table)


def systems_for(entities: Iterable[str]) -> set[str]:
    return {get_strategy(entity).system for entity in entities}


@asynccontextmanager
async def open_dependencies(
    settings: SyncSettings,
    systems: Iterable[str] = ("erp", "crm"),
    pool: DatabaseConnectionPool | None = None,
) -> AsyncIterator[SyncDependencies]:
    """
    Build production dependencies from the environment.

    Only clients for the requested systems are created, so credentials of
    the other system are not required.

    Raises:
        ConfigurationError: If credentials or the database password are missing
    """
    systems = set(systems)
    unknown = systems - {s.system for s in STRATEGIES.values()}
    if unknown:
        raise ConfigurationError(f"Unknown upstream systems: {', '.join(sorted(unknown))}")

    # Resolve every setting before any connection is made
    erp_settings = ErpSettings.from_env() if "erp" in systems else None
    crm_settings = CrmSettings.from_env() if "crm" in systems else None
    normalizer = load_normalizer(settings)
    pool = pool or DatabaseConnectionPool()

    clients: dict[str, HttpUpstreamClient] = {}
    if erp_settings is not None:
        clients["erp"] = ErpClient(erp_settings, detail_delay_s=settings.detail_delay_s)
    if crm_settings is not None:
        clients["crm"] = CrmClient(crm_settings)

    try:
        await pool.open()
        yield SyncDependencies(
            clients=clients,
            store=PostgresWarehouse(pool),
            settings=settings,
            normalizer=normalizer,
            backup_writer=BackupWriter(settings.backup_dir),
        )
    finally:
        for client in clients.values():
            await client.aclose()
        await pool.close()
