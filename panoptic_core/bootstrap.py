"""Runtime bootstrap wiring for startup validation and dependency assembly."""

from __future__ import annotations

from dataclasses import dataclass

from panoptic_core.adapters import JsonRpcLedgerClient
from panoptic_core.config import SdkSettings, config_load_settings
from panoptic_core.db import (
    SQLAlchemyStateStore,
    SyncScope,
    SyncStateRepository,
    db_create_engine,
    db_create_state_store_schema,
)
from panoptic_core.sync import (
    ChunkTrackingService,
    PendingPositionService,
    PositionSyncOrchestrator,
    SyncOrchestratorConfig,
)


@dataclass(frozen=True)
class SyncRuntime:
    """Fully wired sync services sharing one ledger client and one state store.

    Attributes:
        settings: Validated runtime settings.
        ledger_client: JSON-RPC ledger client; close it with `bootstrap_close_runtime`.
        repository: Sync state repository.
        pending_service: Pending-record service.
        chunk_service: Chunk tracking service.
        orchestrator: Sync orchestrator.
    """

    settings: SdkSettings
    ledger_client: JsonRpcLedgerClient
    repository: SyncStateRepository
    pending_service: PendingPositionService
    chunk_service: ChunkTrackingService
    orchestrator: PositionSyncOrchestrator


def bootstrap_create_runtime(settings: SdkSettings | None = None) -> SyncRuntime:
    """Assemble sync services after validating startup configuration.

    Args:
        settings: Optional pre-loaded settings; loaded from the environment when omitted.

    Returns:
        SyncRuntime: Wired runtime services.

    Raises:
        SettingsLoadError: Raised when startup configuration validation fails.
        StateStoreError: Raised when the state-store schema cannot be created.
    """

    runtime_settings = settings or config_load_settings()
    engine = db_create_engine(database_url=runtime_settings.database_url)
    db_create_state_store_schema(engine)
    repository = SyncStateRepository(store=SQLAlchemyStateStore(engine=engine))
    ledger_client = JsonRpcLedgerClient(
        rpc_url=runtime_settings.rpc_url,
        request_timeout_seconds=runtime_settings.rpc_request_timeout_seconds,
    )
    pending_service = PendingPositionService(
        repository=repository,
        stale_after_seconds=runtime_settings.pending_stale_after_seconds,
    )
    chunk_service = ChunkTrackingService(repository=repository)
    orchestrator = PositionSyncOrchestrator(
        ledger_client=ledger_client,
        repository=repository,
        config=SyncOrchestratorConfig(
            deployment_block=runtime_settings.pool_deployment_block,
            max_blocks_per_query=runtime_settings.sync_max_blocks_per_query,
            reorg_depth=runtime_settings.sync_reorg_depth,
            chunk_tracking_enabled=runtime_settings.chunk_tracking_enabled,
        ),
        pending_service=pending_service,
        chunk_service=chunk_service,
    )
    return SyncRuntime(
        settings=runtime_settings,
        ledger_client=ledger_client,
        repository=repository,
        pending_service=pending_service,
        chunk_service=chunk_service,
        orchestrator=orchestrator,
    )


def bootstrap_create_scope(settings: SdkSettings, account: str) -> SyncScope:
    """Build the sync scope of one account on the configured chain and pool.

    Raises:
        ValueError: Raised when account is blank.
    """

    return SyncScope(chain_id=settings.chain_id, pool_address=settings.pool_address, account=account)


async def bootstrap_close_runtime(runtime: SyncRuntime) -> None:
    """Release network resources held by a runtime."""

    await runtime.ledger_client.adapter_close()
