"""Windowed position sync with checkpoint verification and reorg recovery."""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from typing import Awaitable, Callable, Optional

from panoptic_core.adapters import LedgerBlockNotFoundError, LedgerClientPort
from panoptic_core.db import (
    BlockReference,
    ClosedPositionEntry,
    ClosureReason,
    SyncCheckpoint,
    SyncScope,
    SyncStateRepository,
)
from panoptic_core.domain import domain_build_stage_event
from panoptic_core.mapping import (
    POSITION_EVENT_TOPICS,
    PositionEvent,
    mapping_account_topic,
    mapping_decode_position_logs,
)

from .chunk_tracking import ChunkTrackingService
from .event_reducer import (
    reducer_apply_events,
    reducer_closed_positions,
    reducer_empty_state,
    reducer_finalize_through,
    reducer_open_position_ids,
    reducer_open_positions,
    reducer_rollback,
)
from .interfaces import (
    InconsistentLedgerViewError,
    SyncAlreadyActiveError,
    SyncEnginePort,
    SyncOrchestratorConfig,
    SyncProgressEvent,
    SyncState,
    SyncStatusResult,
    SyncSummary,
    UnrecoverableReorgError,
)
from .pending_positions import PendingPositionService, pending_apply_to_tracked_ids
from .reorg_recovery import (
    reorg_extend_ancestry,
    reorg_finality_horizon,
    reorg_find_common_ancestor,
    reorg_rollback_block,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[SyncProgressEvent], Optional[Awaitable[None]]]

MAX_WINDOW_RESCANS = 1
DEFAULT_TRADE_HISTORY_LIMIT = 100


class PositionSyncOrchestrator(SyncEnginePort):
    """Single-shot sync engine for tracked positions of one account in one pool.

    Each call scans from the committed checkpoint to the ledger head in bounded
    windows. One window commits exactly one checkpoint key; the positions view
    is derived from it and written right after.
    """

    def __init__(
        self,
        ledger_client: LedgerClientPort,
        repository: SyncStateRepository,
        config: SyncOrchestratorConfig,
        pending_service: PendingPositionService | None = None,
        chunk_service: ChunkTrackingService | None = None,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize sync orchestrator dependencies.

        Args:
            ledger_client: Ledger read adapter.
            repository: Sync state repository.
            config: Sync configuration.
            pending_service: Optional pending-record service confirmed by observed events.
            chunk_service: Optional chunk tracker, used when chunk tracking is enabled.
            clock: Unix-seconds clock for checkpoint timestamps.

        Returns:
            None: Initializer does not return a value.

        Raises:
            ValueError: Raised when dependencies or config values are invalid.
        """

        if ledger_client is None:
            raise ValueError("ledger_client must not be None")
        if repository is None:
            raise ValueError("repository must not be None")
        if config.deployment_block < 0:
            raise ValueError("config.deployment_block must be >= 0")
        if config.max_blocks_per_query < 1:
            raise ValueError("config.max_blocks_per_query must be >= 1")
        if config.reorg_depth < 1:
            raise ValueError("config.reorg_depth must be >= 1")
        if config.chunk_tracking_enabled and chunk_service is None:
            raise ValueError("chunk_service must not be None when chunk tracking is enabled")

        self._ledger_client = ledger_client
        self._repository = repository
        self._config = config
        self._pending_service = pending_service
        self._chunk_service = chunk_service
        self._clock = clock
        self._states: dict[str, SyncState] = {}
        self._active_scopes: set[str] = set()

    def sync_state(self, scope: SyncScope) -> SyncState:
        """Return the current state of a scope in this process."""

        return self._states.get(scope.label, SyncState.UNINITIALIZED)

    async def sync_run(
        self,
        scope: SyncScope,
        to_block: int | None = None,
        on_progress: ProgressCallback | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> SyncSummary:
        """Scan the ledger for one scope up to the head or `to_block`.

        Args:
            scope: Scope to synchronize.
            to_block: Optional last block to scan; capped at the ledger head.
            on_progress: Optional callback invoked once per applied window.
            cancel_event: Optional signal checked between windows.

        Returns:
            SyncSummary: Final sync summary.

        Raises:
            ValueError: Raised when to_block is negative.
            SyncAlreadyActiveError: Raised when the scope is already syncing.
            UnrecoverableReorgError: Raised when no common ancestor is found.
            ChunkLimitError: Raised when chunk tracking would exceed the cap.
            InconsistentLedgerViewError: Raised when a window still disagrees with block headers after a rescan.
            ConnectionError: Raised when the ledger cannot be reached.
            TimeoutError: Raised when the ledger times out.
        """

        if to_block is not None and to_block < 0:
            raise ValueError("to_block must be >= 0")
        if scope.label in self._active_scopes:
            raise SyncAlreadyActiveError(f"sync already active for scope {scope.label}")

        self._active_scopes.add(scope.label)
        try:
            return await self._sync_run_scope(scope, to_block, on_progress, cancel_event)
        finally:
            self._active_scopes.discard(scope.label)

    async def sync_get_status(self, scope: SyncScope) -> SyncStatusResult:
        """Return checkpoint position relative to the ledger head.

        Raises:
            ConnectionError: Raised when the ledger cannot be reached.
        """

        checkpoint = await self._repository.db_checkpoint_load(scope)
        head_block = await self._ledger_client.ledger_get_block_number()
        positions = await self._repository.db_tracked_positions_load(scope)

        last_synced_block = None if checkpoint is None else checkpoint.block_number
        synced_through = self._config.deployment_block - 1 if last_synced_block is None else last_synced_block
        blocks_behind = max(0, head_block - synced_through)
        return SyncStatusResult(
            last_synced_block=last_synced_block,
            head_block=head_block,
            is_synced=checkpoint is not None and blocks_behind == 0,
            blocks_behind=blocks_behind,
            position_count=len(positions),
            has_checkpoint=checkpoint is not None,
        )

    async def sync_get_tracked_position_ids(self, scope: SyncScope, include_pending: bool = True) -> tuple[int, ...]:
        """Return tracked position ids, optionally overlaid with pending records.

        Args:
            scope: Scope to read.
            include_pending: Whether pending opens are added and pending closes removed.

        Returns:
            tuple[int, ...]: Sorted position ids.
        """

        open_ids = {entry.position_id for entry in await self._repository.db_tracked_positions_load(scope)}
        if include_pending and self._pending_service is not None:
            pending_records = await self._pending_service.pending_list(scope)
            return tuple(sorted(pending_apply_to_tracked_ids(open_ids, pending_records)))
        return tuple(sorted(open_ids))

    async def sync_is_position_tracked(self, scope: SyncScope, position_id: int, include_pending: bool = True) -> bool:
        """Return whether a position id is in the tracked view."""

        return position_id in await self.sync_get_tracked_position_ids(scope, include_pending=include_pending)

    async def sync_get_trade_history(
        self,
        scope: SyncScope,
        limit: int = DEFAULT_TRADE_HISTORY_LIMIT,
        offset: int = 0,
        closure_reason: ClosureReason | None = None,
        from_block: int | None = None,
        to_block: int | None = None,
    ) -> tuple[ClosedPositionEntry, ...]:
        """Return one page of closed positions, most recent close first.

        Reads the stored history only; no ledger calls are made.

        Args:
            scope: Scope to read.
            limit: Largest number of entries returned.
            offset: Entries skipped after filtering.
            closure_reason: Optional closure reason filter.
            from_block: Optional lowest close block, inclusive.
            to_block: Optional highest close block, inclusive.

        Returns:
            tuple[ClosedPositionEntry, ...]: Matching closed positions.

        Raises:
            ValueError: Raised when limit or offset is negative.
        """

        if limit < 0:
            raise ValueError("limit must be >= 0")
        if offset < 0:
            raise ValueError("offset must be >= 0")

        history = [
            entry
            for entry in await self._repository.db_closed_positions_load(scope)
            if (closure_reason is None or entry.closure_reason == closure_reason)
            and (from_block is None or entry.close_block >= from_block)
            and (to_block is None or entry.close_block <= to_block)
        ]
        return tuple(history[offset : offset + limit])

    async def sync_clear_tracked_positions(self, scope: SyncScope) -> None:
        """Drop the tracked view, history, and checkpoint so the next sync rescans from deployment.

        Raises:
            SyncAlreadyActiveError: Raised when the scope is syncing.
        """

        if scope.label in self._active_scopes:
            raise SyncAlreadyActiveError(f"cannot clear scope {scope.label} while it is syncing")
        await self._repository.db_checkpoint_delete(scope)
        await self._repository.db_tracked_positions_delete(scope)
        await self._repository.db_closed_positions_delete(scope)
        self._states.pop(scope.label, None)
        logger.info("cleared tracked positions scope=%s", scope.label)

    async def _sync_run_scope(
        self,
        scope: SyncScope,
        to_block: int | None,
        on_progress: ProgressCallback | None,
        cancel_event: asyncio.Event | None,
    ) -> SyncSummary:
        timeline: list[dict[str, object]] = [
            domain_build_stage_event(stage="sync", status="started", details={"scope": scope.label})
        ]
        self._sync_set_state(scope, SyncState.SCANNING)

        try:
            checkpoint = await self._repository.db_checkpoint_load(scope)
            head_block = await self._ledger_client.ledger_get_block_number()
            target_block = head_block if to_block is None else min(to_block, head_block)
            next_block = self._sync_resume_block(checkpoint)
            start_block = next_block

            windows: list[SyncProgressEvent] = []
            positions_added = 0
            positions_removed = 0
            reorg_detected = False
            max_reorg_depth: int | None = None
            window_reorg_depth: int | None = None
            window_rescans = 0
            cancelled = False

            while True:
                if cancel_event is not None and cancel_event.is_set():
                    cancelled = True
                    timeline.append(
                        domain_build_stage_event(stage="sync", status="cancelled", details={"next_block": next_block})
                    )
                    logger.info("sync cancelled scope=%s next_block=%s", scope.label, next_block)
                    break

                has_window = next_block <= target_block
                if checkpoint is not None and (has_window or checkpoint.block_number > head_block):
                    is_canonical = await self._sync_checkpoint_is_canonical(
                        checkpoint,
                        next_block if has_window else None,
                    )
                    if not is_canonical:
                        reorg_detected = True
                        self._sync_set_state(scope, SyncState.REORG_DETECTED)
                        timeline.append(
                            domain_build_stage_event(
                                stage="reorg",
                                status="detected",
                                details={
                                    "checkpoint_block": checkpoint.block_number,
                                    "checkpoint_hash": checkpoint.block_hash,
                                },
                            )
                        )
                        self._sync_set_state(scope, SyncState.RECOVERING)
                        checkpoint, next_block, reorg_depth = await self._sync_recover(scope, checkpoint)
                        window_reorg_depth = reorg_depth
                        max_reorg_depth = reorg_depth if max_reorg_depth is None else max(max_reorg_depth, reorg_depth)
                        timeline.append(
                            domain_build_stage_event(
                                stage="reorg",
                                status="recovered",
                                details={"resume_block": next_block, "reorg_depth": reorg_depth},
                            )
                        )
                        self._sync_set_state(scope, SyncState.SCANNING)
                        continue

                if not has_window:
                    break

                window_to = min(next_block + self._config.max_blocks_per_query - 1, target_block)
                applied = await self._sync_apply_window(scope, checkpoint, next_block, window_to)
                if applied is None:
                    window_rescans += 1
                    if window_rescans > MAX_WINDOW_RESCANS:
                        raise InconsistentLedgerViewError(
                            f"logs for blocks {next_block}-{window_to} still disagree with block headers "
                            f"after {MAX_WINDOW_RESCANS} rescan(s) for scope {scope.label}"
                        )
                    timeline.append(
                        domain_build_stage_event(
                            stage="window",
                            status="rescanned",
                            details={"from_block": next_block, "to_block": window_to},
                        )
                    )
                    continue
                window_rescans = 0
                checkpoint, added_count, removed_count = applied

                progress = SyncProgressEvent(
                    scanned_from_block=next_block,
                    scanned_to_block=window_to,
                    positions_added=added_count,
                    positions_removed=removed_count,
                    reorg_depth=window_reorg_depth,
                )
                window_reorg_depth = None
                windows.append(progress)
                positions_added += added_count
                positions_removed += removed_count
                next_block = window_to + 1
                if on_progress is not None:
                    callback_result = on_progress(progress)
                    if inspect.isawaitable(callback_result):
                        await callback_result

            if cancelled and checkpoint is None:
                self._sync_set_state(scope, SyncState.UNINITIALIZED)
            else:
                self._sync_set_state(scope, SyncState.SYNCED)
        except (ConnectionError, TimeoutError, RuntimeError, ValueError) as error:
            self._sync_set_state(scope, SyncState.UNINITIALIZED)
            timeline.append(
                domain_build_stage_event(
                    stage="sync",
                    status="failed",
                    details={"error_type": type(error).__name__, "error_message": str(error)},
                )
            )
            logger.error("sync failed scope=%s error=%s: %s", scope.label, type(error).__name__, error)
            raise

        committed_block = None if checkpoint is None else checkpoint.block_number
        blocks_scanned = sum(window.scanned_to_block - window.scanned_from_block + 1 for window in windows)
        if not cancelled:
            timeline.append(
                domain_build_stage_event(
                    stage="sync",
                    status="completed",
                    details={
                        "to_block": committed_block,
                        "blocks_scanned": blocks_scanned,
                        "positions_added": positions_added,
                        "positions_removed": positions_removed,
                    },
                )
            )
        logger.info(
            "sync finished scope=%s to_block=%s windows=%s added=%s removed=%s reorg=%s",
            scope.label,
            committed_block,
            len(windows),
            positions_added,
            positions_removed,
            reorg_detected,
        )
        return SyncSummary(
            scope=scope,
            from_block=start_block,
            to_block=committed_block,
            blocks_scanned=blocks_scanned,
            positions_added=positions_added,
            positions_removed=positions_removed,
            reorg_detected=reorg_detected,
            reorg_depth=max_reorg_depth,
            cancelled=cancelled,
            windows=tuple(windows),
            stage_timeline=timeline,
        )

    async def _sync_apply_window(
        self,
        scope: SyncScope,
        checkpoint: SyncCheckpoint | None,
        from_block: int,
        to_block: int,
    ) -> tuple[SyncCheckpoint, int, int] | None:
        end_block_before = await self._ledger_client.ledger_get_block(to_block)
        logs = await self._ledger_client.ledger_get_logs(
            address=scope.pool_address,
            topics=[list(POSITION_EVENT_TOPICS), mapping_account_topic(scope.account)],
            from_block=from_block,
            to_block=to_block,
        )
        events = [event for event in mapping_decode_position_logs(logs) if event.account == scope.account]
        end_block = await self._ledger_client.ledger_get_block(to_block)
        window_changed = end_block.hash != end_block_before.hash
        if window_changed or not await self._sync_events_are_canonical(events, end_block.hash, to_block):
            logger.warning(
                "blocks %s-%s changed while scanning scope=%s; rescanning",
                from_block,
                to_block,
                scope.label,
            )
            return None

        state = reducer_empty_state() if checkpoint is None else checkpoint.reducer_state
        open_ids_before = reducer_open_position_ids(state)
        state = reducer_apply_events(state, events)
        open_ids_after = reducer_open_position_ids(state)

        if self._config.chunk_tracking_enabled and self._chunk_service is not None:
            await self._chunk_service.chunk_track_positions(scope, sorted(open_ids_after - open_ids_before))

        ancestry = reorg_extend_ancestry(
            () if checkpoint is None else checkpoint.ancestry,
            BlockReference(number=to_block, hash=end_block.hash),
            self._config.reorg_depth,
        )
        state = reducer_finalize_through(state, reorg_finality_horizon(ancestry, self._config.reorg_depth))
        new_checkpoint = SyncCheckpoint(
            block_number=to_block,
            block_hash=end_block.hash,
            ancestry=ancestry,
            reducer_state=state,
            updated_at=self._clock(),
        )
        await self._sync_commit(scope, new_checkpoint, events)
        logger.debug(
            "applied window scope=%s from=%s to=%s events=%s",
            scope.label,
            from_block,
            to_block,
            len(events),
        )
        return (
            new_checkpoint,
            len(open_ids_after - open_ids_before),
            len(open_ids_before - open_ids_after),
        )

    async def _sync_commit(
        self,
        scope: SyncScope,
        checkpoint: SyncCheckpoint,
        events: list[PositionEvent],
    ) -> None:
        await self._repository.db_checkpoint_save(scope, checkpoint)
        await self._sync_write_views(scope, checkpoint)
        if self._pending_service is not None:
            await self._pending_service.pending_confirm_events(scope, events)

    async def _sync_write_views(self, scope: SyncScope, checkpoint: SyncCheckpoint) -> None:
        await self._repository.db_tracked_positions_save(
            scope,
            reducer_open_positions(checkpoint.reducer_state),
            checkpoint.block_number,
        )
        await self._repository.db_closed_positions_save(
            scope,
            reducer_closed_positions(checkpoint.reducer_state),
            checkpoint.block_number,
        )

    async def _sync_events_are_canonical(self, events: list[PositionEvent], end_block_hash: str, to_block: int) -> bool:
        canonical_hashes = {to_block: end_block_hash}
        for block_number in sorted({event.block_number for event in events} - {to_block}):
            try:
                canonical_hashes[block_number] = (await self._ledger_client.ledger_get_block(block_number)).hash
            except LedgerBlockNotFoundError:
                return False
        return all(event.block_hash == canonical_hashes[event.block_number] for event in events)

    async def _sync_checkpoint_is_canonical(self, checkpoint: SyncCheckpoint, next_block: int | None) -> bool:
        try:
            if next_block == checkpoint.block_number + 1:
                following_block = await self._ledger_client.ledger_get_block(next_block)
                return following_block.parent_hash == checkpoint.block_hash
            checkpoint_block = await self._ledger_client.ledger_get_block(checkpoint.block_number)
            return checkpoint_block.hash == checkpoint.block_hash
        except LedgerBlockNotFoundError:
            return False

    async def _sync_recover(
        self,
        scope: SyncScope,
        checkpoint: SyncCheckpoint,
    ) -> tuple[SyncCheckpoint | None, int, int]:
        deployment_block = self._config.deployment_block
        reorg_depth = self._config.reorg_depth
        ancestor = await reorg_find_common_ancestor(self._ledger_client, checkpoint.ancestry)

        if ancestor is None:
            if checkpoint.block_number - deployment_block > reorg_depth:
                logger.error(
                    "no common ancestor within %s blocks scope=%s checkpoint=%s",
                    reorg_depth,
                    scope.label,
                    checkpoint.block_number,
                )
                raise UnrecoverableReorgError(
                    f"no recorded block is canonical for scope {scope.label}; "
                    f"checkpoint {checkpoint.block_number} is more than {reorg_depth} blocks past deployment"
                )
            return await self._sync_reset(scope, checkpoint)

        rollback_block = reorg_rollback_block(ancestor.number, reorg_depth, deployment_block)
        rolled_state = reducer_rollback(checkpoint.reducer_state, rollback_block)
        if rolled_state is None or rollback_block <= deployment_block:
            return await self._sync_reset(scope, checkpoint)

        anchor_block = await self._ledger_client.ledger_get_block(rollback_block - 1)
        anchor = BlockReference(number=anchor_block.number, hash=anchor_block.hash)
        recovered = SyncCheckpoint(
            block_number=anchor.number,
            block_hash=anchor.hash,
            ancestry=reorg_extend_ancestry(checkpoint.ancestry, anchor, reorg_depth),
            reducer_state=rolled_state,
            updated_at=self._clock(),
        )
        await self._repository.db_checkpoint_save(scope, recovered)
        await self._sync_write_views(scope, recovered)
        reorg_depth_blocks = checkpoint.block_number + 1 - rollback_block
        logger.warning(
            "recovered from reorg scope=%s ancestor=%s rollback_block=%s depth=%s",
            scope.label,
            ancestor.number,
            rollback_block,
            reorg_depth_blocks,
        )
        return recovered, rollback_block, reorg_depth_blocks

    async def _sync_reset(self, scope: SyncScope, checkpoint: SyncCheckpoint) -> tuple[None, int, int]:
        deployment_block = self._config.deployment_block
        await self._repository.db_checkpoint_delete(scope)
        await self._repository.db_tracked_positions_save(scope, (), None)
        await self._repository.db_closed_positions_save(scope, (), None)
        reorg_depth_blocks = checkpoint.block_number + 1 - deployment_block
        logger.warning(
            "reorg reaches deployment scope=%s; rescanning from block %s",
            scope.label,
            deployment_block,
        )
        return None, deployment_block, reorg_depth_blocks

    def _sync_resume_block(self, checkpoint: SyncCheckpoint | None) -> int:
        if checkpoint is None:
            return self._config.deployment_block
        return max(checkpoint.block_number + 1, self._config.deployment_block)

    def _sync_set_state(self, scope: SyncScope, state: SyncState) -> None:
        previous = self._states.get(scope.label, SyncState.UNINITIALIZED)
        self._states[scope.label] = state
        if previous != state:
            logger.info("sync state scope=%s %s -> %s", scope.label, previous.value, state.value)
