"""Sync layer package for event-sourced position tracking and reorg recovery."""

from .chunk_tracking import (
	MAX_TRACKED_CHUNKS,
	WAD,
	ChunkTrackingService,
	chunk_calculate_spread_wad,
	chunk_compute_spreads,
	chunk_keys_for_position,
)
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
	ChunkLimitError,
	ChunkSpread,
	ChunkTouch,
	InconsistentLedgerViewError,
	SyncAlreadyActiveError,
	SyncEnginePort,
	SyncError,
	SyncOrchestratorConfig,
	SyncProgressEvent,
	SyncState,
	SyncStatusResult,
	SyncSummary,
	UnrecoverableReorgError,
)
from .pending_positions import (
	DEFAULT_PENDING_STALE_AFTER_SECONDS,
	PendingPositionService,
	pending_apply_to_tracked_ids,
	pending_fail,
	pending_match_confirmations,
	pending_register,
	pending_sweep_stale,
)
from .reorg_recovery import (
	reorg_extend_ancestry,
	reorg_finality_horizon,
	reorg_find_common_ancestor,
	reorg_rollback_block,
)
from .sync_orchestrator import MAX_WINDOW_RESCANS, PositionSyncOrchestrator

__all__ = [
	"ChunkLimitError",
	"ChunkSpread",
	"ChunkTouch",
	"ChunkTrackingService",
	"DEFAULT_PENDING_STALE_AFTER_SECONDS",
	"InconsistentLedgerViewError",
	"MAX_TRACKED_CHUNKS",
	"MAX_WINDOW_RESCANS",
	"PendingPositionService",
	"PositionSyncOrchestrator",
	"SyncAlreadyActiveError",
	"SyncEnginePort",
	"SyncError",
	"SyncOrchestratorConfig",
	"SyncProgressEvent",
	"SyncState",
	"SyncStatusResult",
	"SyncSummary",
	"UnrecoverableReorgError",
	"WAD",
	"chunk_calculate_spread_wad",
	"chunk_compute_spreads",
	"chunk_keys_for_position",
	"pending_apply_to_tracked_ids",
	"pending_fail",
	"pending_match_confirmations",
	"pending_register",
	"pending_sweep_stale",
	"reducer_apply_events",
	"reducer_closed_positions",
	"reducer_empty_state",
	"reducer_finalize_through",
	"reducer_open_position_ids",
	"reducer_open_positions",
	"reducer_rollback",
	"reorg_extend_ancestry",
	"reorg_finality_horizon",
	"reorg_find_common_ancestor",
	"reorg_rollback_block",
]
