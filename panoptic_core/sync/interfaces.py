"""Typed interfaces for position synchronization and reorg recovery."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Protocol

from panoptic_core.db import ChunkKey, SyncScope


class SyncError(RuntimeError):
    """Base exception for sync-layer failures.

    Attributes:
        error_code: Stable machine-readable failure code.
    """

    default_error_code = "sync_error"

    def __init__(self, message: str, error_code: str | None = None):
        super().__init__(message)
        self.error_code = error_code or self.default_error_code


class UnrecoverableReorgError(SyncError):
    """No common ancestor exists within the reorg safety depth."""

    default_error_code = "unrecoverable_reorg"


class ChunkLimitError(SyncError):
    """Tracking more chunks would exceed the per-pool cap."""

    default_error_code = "chunk_limit_exceeded"

    def __init__(self, message: str, current_count: int, requested_count: int, limit: int):
        super().__init__(message)
        self.current_count = current_count
        self.requested_count = requested_count
        self.limit = limit


class InconsistentLedgerViewError(SyncError):
    """Logs of one window kept disagreeing with the block headers after a rescan."""

    default_error_code = "inconsistent_ledger_view"


class SyncAlreadyActiveError(SyncError):
    """Another sync of the same scope is in progress."""

    default_error_code = "sync_already_active"


class SyncState(str, Enum):
    """Per-scope sync state machine states."""

    UNINITIALIZED = "uninitialized"
    SCANNING = "scanning"
    SYNCED = "synced"
    REORG_DETECTED = "reorg_detected"
    RECOVERING = "recovering"


@dataclass(frozen=True)
class SyncOrchestratorConfig:
    """Configuration values for sync orchestration.

    Attributes:
        deployment_block: First block that can hold pool events.
        max_blocks_per_query: Largest block window fetched per log query.
        reorg_depth: Safety depth for recovery rollback and journal finality.
        chunk_tracking_enabled: Whether observed positions register their chunks.
    """

    deployment_block: int = 0
    max_blocks_per_query: int = 10_000
    reorg_depth: int = 128
    chunk_tracking_enabled: bool = False


@dataclass(frozen=True)
class SyncProgressEvent:
    """Observational progress record for one applied window.

    Attributes:
        scanned_from_block: First block of the window.
        scanned_to_block: Last block of the window.
        positions_added: Positions opened by the window.
        positions_removed: Positions closed by the window.
        reorg_depth: Blocks rolled back right before this window, if a reorg was recovered.
    """

    scanned_from_block: int
    scanned_to_block: int
    positions_added: int
    positions_removed: int
    reorg_depth: int | None = None


@dataclass(frozen=True)
class SyncSummary:
    """Final result of one sync call.

    Attributes:
        scope: Synchronized scope.
        from_block: First block the call started scanning at.
        to_block: Last block committed, or `None` when nothing was committed.
        blocks_scanned: Blocks covered by applied windows.
        positions_added: Positions opened across windows.
        positions_removed: Positions closed across windows.
        reorg_detected: Whether a reorg was detected and recovered.
        reorg_depth: Largest rollback depth, when a reorg was recovered.
        cancelled: Whether the call stopped on its cancel signal.
        windows: Progress records in apply order.
        stage_timeline: Structured stage events.
    """

    scope: SyncScope
    from_block: int
    to_block: int | None
    blocks_scanned: int
    positions_added: int
    positions_removed: int
    reorg_detected: bool
    reorg_depth: int | None
    cancelled: bool
    windows: tuple[SyncProgressEvent, ...]
    stage_timeline: list[dict[str, Any]] = field(default_factory=list)


@dataclass(frozen=True)
class SyncStatusResult:
    """Point-in-time sync status for one scope.

    Attributes:
        last_synced_block: Checkpoint block, or `None` without a checkpoint.
        head_block: Current ledger head.
        is_synced: Whether the checkpoint has reached the head.
        blocks_behind: Head minus checkpoint, floored at zero.
        position_count: Tracked open positions.
        has_checkpoint: Whether a checkpoint exists.
    """

    last_synced_block: int | None
    head_block: int
    is_synced: bool
    blocks_behind: int
    position_count: int
    has_checkpoint: bool


@dataclass(frozen=True)
class ChunkTouch:
    """One liquidity observation for a chunk.

    Attributes:
        key: Chunk identity.
        net_liquidity_delta: Change in net liquidity.
        removed_liquidity_delta: Change in removed liquidity.
    """

    key: ChunkKey
    net_liquidity_delta: int = 0
    removed_liquidity_delta: int = 0


@dataclass(frozen=True)
class ChunkSpread:
    """Spread statistics for one chunk.

    Attributes:
        key: Chunk identity.
        net_liquidity: Net liquidity.
        removed_liquidity: Removed liquidity.
        spread_wad: Spread multiplier in WAD (1e18) units.
    """

    key: ChunkKey
    net_liquidity: int
    removed_liquidity: int
    spread_wad: int


class SyncEnginePort(Protocol):
    """Port definition for single-shot position synchronization."""

    async def sync_run(
        self,
        scope: SyncScope,
        to_block: int | None = None,
        on_progress: Callable[[SyncProgressEvent], Any] | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> SyncSummary:
        """Scan the ledger for one scope up to the head or `to_block`.

        Args:
            scope: Scope to synchronize.
            to_block: Optional last block to scan.
            on_progress: Optional callback invoked once per applied window.
            cancel_event: Optional signal checked between windows.

        Returns:
            SyncSummary: Final sync summary.

        Raises:
            UnrecoverableReorgError: Raised when no common ancestor is found.
            ConnectionError: Raised when the ledger cannot be reached.
        """
