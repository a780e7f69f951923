"""Repository mapping sync records to namespaced state-store entries."""

from __future__ import annotations

from typing import Any, Callable, TypeVar

from panoptic_core.codec import PositionBalance
from panoptic_core.mapping import PositionEvent, PositionEventKind

from .interfaces import (
    BlockReference,
    ChunkKey,
    ChunkRecord,
    ClosedPositionEntry,
    ClosureReason,
    PendingPosition,
    PendingPositionAction,
    PendingPositionStatus,
    ReducerState,
    StateEntityKind,
    StateStorePort,
    StorePayloadCorruptedError,
    SyncCheckpoint,
    SyncScope,
    TrackedPositionEntry,
)
from .keys import POOL_SCOPE_ID, db_build_state_key
from .payload_codec import db_decode_payload, db_encode_payload

_ParsedT = TypeVar("_ParsedT")


class SyncStateRepository:
    """Typed load/save operations for checkpoint, positions, history, pending, and chunk entries.

    Every save writes exactly one key.
    """

    def __init__(self, store: StateStorePort):
        """Initialize repository.

        Args:
            store: Byte key-value store.

        Returns:
            None: This initializer does not return a value.

        Raises:
            ValueError: Raised when store is None.
        """

        if store is None:
            raise ValueError("store must not be None")
        self._store = store

    async def db_checkpoint_load(self, scope: SyncScope) -> SyncCheckpoint | None:
        """Load the committed checkpoint for a scope, or `None`."""

        payload = await self._db_load_payload(scope, StateEntityKind.CHECKPOINT, scope.account)
        if payload is None:
            return None
        return _db_parse(payload, _db_checkpoint_from_dict, StateEntityKind.CHECKPOINT)

    async def db_checkpoint_save(self, scope: SyncScope, checkpoint: SyncCheckpoint) -> None:
        """Commit one checkpoint."""

        await self._db_save_payload(scope, StateEntityKind.CHECKPOINT, scope.account, _db_checkpoint_to_dict(checkpoint))

    async def db_checkpoint_delete(self, scope: SyncScope) -> None:
        """Delete the checkpoint for a scope."""

        await self._store.store_delete(self._db_key(scope, StateEntityKind.CHECKPOINT, scope.account))

    async def db_tracked_positions_load(self, scope: SyncScope) -> tuple[TrackedPositionEntry, ...]:
        """Load the tracked-position view for a scope; empty when absent."""

        payload = await self._db_load_payload(scope, StateEntityKind.POSITIONS, scope.account)
        if payload is None:
            return ()
        return _db_parse(
            payload,
            lambda value: tuple(_db_entry_from_dict(entry) for entry in value["positions"]),
            StateEntityKind.POSITIONS,
        )

    async def db_tracked_positions_save(
        self,
        scope: SyncScope,
        entries: tuple[TrackedPositionEntry, ...],
        block_number: int | None,
    ) -> None:
        """Replace the tracked-position view for a scope."""

        await self._db_save_payload(
            scope,
            StateEntityKind.POSITIONS,
            scope.account,
            {
                "block_number": block_number,
                "positions": [_db_entry_to_dict(entry) for entry in sorted(entries, key=lambda item: item.position_id)],
            },
        )

    async def db_tracked_positions_delete(self, scope: SyncScope) -> None:
        """Delete the tracked-position view for a scope."""

        await self._store.store_delete(self._db_key(scope, StateEntityKind.POSITIONS, scope.account))

    async def db_closed_positions_load(self, scope: SyncScope) -> tuple[ClosedPositionEntry, ...]:
        """Load the closed-position history for a scope, most recent first; empty when absent."""

        payload = await self._db_load_payload(scope, StateEntityKind.CLOSED_POSITIONS, scope.account)
        if payload is None:
            return ()
        return _db_parse(
            payload,
            lambda value: tuple(_db_closed_from_dict(entry) for entry in value["closed_positions"]),
            StateEntityKind.CLOSED_POSITIONS,
        )

    async def db_closed_positions_save(
        self,
        scope: SyncScope,
        entries: tuple[ClosedPositionEntry, ...],
        block_number: int | None,
    ) -> None:
        """Replace the closed-position history for a scope; entries keep their given order."""

        await self._db_save_payload(
            scope,
            StateEntityKind.CLOSED_POSITIONS,
            scope.account,
            {
                "block_number": block_number,
                "closed_positions": [_db_closed_to_dict(entry) for entry in entries],
            },
        )

    async def db_closed_positions_delete(self, scope: SyncScope) -> None:
        """Delete the closed-position history for a scope."""

        await self._store.store_delete(self._db_key(scope, StateEntityKind.CLOSED_POSITIONS, scope.account))

    async def db_pending_load(self, scope: SyncScope) -> tuple[PendingPosition, ...]:
        """Load pending records for a scope; empty when absent."""

        payload = await self._db_load_payload(scope, StateEntityKind.PENDING, scope.account)
        if payload is None:
            return ()
        return _db_parse(
            payload,
            lambda value: tuple(_db_pending_from_dict(record) for record in value["records"]),
            StateEntityKind.PENDING,
        )

    async def db_pending_save(self, scope: SyncScope, records: tuple[PendingPosition, ...]) -> None:
        """Replace pending records for a scope."""

        await self._db_save_payload(
            scope,
            StateEntityKind.PENDING,
            scope.account,
            {"records": [_db_pending_to_dict(record) for record in records]},
        )

    async def db_chunks_load(self, scope: SyncScope) -> tuple[ChunkRecord, ...]:
        """Load tracked chunks for the scope's pool; empty when absent."""

        payload = await self._db_load_payload(scope, StateEntityKind.CHUNKS, POOL_SCOPE_ID)
        if payload is None:
            return ()
        return _db_parse(
            payload,
            lambda value: tuple(_db_chunk_from_dict(record) for record in value["chunks"]),
            StateEntityKind.CHUNKS,
        )

    async def db_chunks_save(self, scope: SyncScope, records: tuple[ChunkRecord, ...]) -> None:
        """Replace tracked chunks for the scope's pool."""

        await self._db_save_payload(
            scope,
            StateEntityKind.CHUNKS,
            POOL_SCOPE_ID,
            {"chunks": [_db_chunk_to_dict(record) for record in sorted(records, key=lambda item: item.key)]},
        )

    async def db_chunks_delete(self, scope: SyncScope) -> None:
        """Delete tracked chunks for the scope's pool."""

        await self._store.store_delete(self._db_key(scope, StateEntityKind.CHUNKS, POOL_SCOPE_ID))

    async def _db_load_payload(
        self,
        scope: SyncScope,
        entity_kind: StateEntityKind,
        scope_id: str,
    ) -> dict[str, Any] | None:
        raw_value = await self._store.store_get(self._db_key(scope, entity_kind, scope_id))
        if raw_value is None:
            return None
        return db_decode_payload(raw_value, entity_kind)

    async def _db_save_payload(
        self,
        scope: SyncScope,
        entity_kind: StateEntityKind,
        scope_id: str,
        payload: dict[str, Any],
    ) -> None:
        await self._store.store_set(self._db_key(scope, entity_kind, scope_id), db_encode_payload(entity_kind, payload))

    @staticmethod
    def _db_key(scope: SyncScope, entity_kind: StateEntityKind, scope_id: str) -> str:
        return db_build_state_key(
            chain_id=scope.chain_id,
            pool_address=scope.pool_address,
            entity_kind=entity_kind,
            scope_id=scope_id,
        )


def _db_parse(payload: dict[str, Any], parser: Callable[[dict[str, Any]], _ParsedT], entity_kind: StateEntityKind) -> _ParsedT:
    try:
        return parser(payload)
    except (KeyError, TypeError, ValueError) as error:
        raise StorePayloadCorruptedError(f"stored {entity_kind.value} payload has an invalid shape") from error


def _db_optional_int(value: Any) -> int | None:
    return None if value is None else int(value)


def _db_checkpoint_to_dict(checkpoint: SyncCheckpoint) -> dict[str, Any]:
    reducer_state = checkpoint.reducer_state
    return {
        "block_number": checkpoint.block_number,
        "block_hash": checkpoint.block_hash,
        "ancestry": [{"number": reference.number, "hash": reference.hash} for reference in checkpoint.ancestry],
        "updated_at": checkpoint.updated_at,
        "reducer_state": {
            "finalized_through_block": reducer_state.finalized_through_block,
            "base_entries": [_db_entry_to_dict(entry) for entry in reducer_state.base_entries],
            "journal": [_db_event_to_dict(event) for event in reducer_state.journal],
            "base_closed": [_db_closed_to_dict(entry) for entry in reducer_state.base_closed],
        },
    }


def _db_checkpoint_from_dict(payload: dict[str, Any]) -> SyncCheckpoint:
    reducer_payload = payload["reducer_state"]
    return SyncCheckpoint(
        block_number=int(payload["block_number"]),
        block_hash=str(payload["block_hash"]),
        ancestry=tuple(
            BlockReference(number=int(reference["number"]), hash=str(reference["hash"]))
            for reference in payload["ancestry"]
        ),
        reducer_state=ReducerState(
            base_entries=tuple(_db_entry_from_dict(entry) for entry in reducer_payload["base_entries"]),
            finalized_through_block=int(reducer_payload["finalized_through_block"]),
            journal=tuple(_db_event_from_dict(event) for event in reducer_payload["journal"]),
            base_closed=tuple(_db_closed_from_dict(entry) for entry in reducer_payload["base_closed"]),
        ),
        updated_at=float(payload["updated_at"]),
    )


def _db_entry_to_dict(entry: TrackedPositionEntry) -> dict[str, Any]:
    return {
        "position_id": str(entry.position_id),
        "position_size": str(entry.position_size),
        "tick_at_mint": entry.tick_at_mint,
        "timestamp_at_mint": entry.timestamp_at_mint,
        "block_at_mint": entry.block_at_mint,
        "last_event_block": entry.last_event_block,
    }


def _db_entry_from_dict(payload: dict[str, Any]) -> TrackedPositionEntry:
    return TrackedPositionEntry(
        position_id=int(payload["position_id"]),
        position_size=int(payload["position_size"]),
        tick_at_mint=_db_optional_int(payload.get("tick_at_mint")),
        timestamp_at_mint=_db_optional_int(payload.get("timestamp_at_mint")),
        block_at_mint=_db_optional_int(payload.get("block_at_mint")),
        last_event_block=int(payload["last_event_block"]),
    )


def _db_closed_to_dict(entry: ClosedPositionEntry) -> dict[str, Any]:
    return {
        "position_id": str(entry.position_id),
        "position_size": str(entry.position_size),
        "open_block": entry.open_block,
        "close_block": entry.close_block,
        "tick_at_open": entry.tick_at_open,
        "timestamp_at_open": entry.timestamp_at_open,
        "premia_by_leg": [str(premium) for premium in entry.premia_by_leg],
        "transaction_hash": entry.transaction_hash,
        "log_index": entry.log_index,
        "closure_reason": entry.closure_reason.value,
    }


def _db_closed_from_dict(payload: dict[str, Any]) -> ClosedPositionEntry:
    return ClosedPositionEntry(
        position_id=int(payload["position_id"]),
        position_size=int(payload["position_size"]),
        open_block=_db_optional_int(payload.get("open_block")),
        close_block=int(payload["close_block"]),
        tick_at_open=_db_optional_int(payload.get("tick_at_open")),
        timestamp_at_open=_db_optional_int(payload.get("timestamp_at_open")),
        premia_by_leg=tuple(int(premium) for premium in payload["premia_by_leg"]),
        transaction_hash=str(payload["transaction_hash"]),
        log_index=int(payload["log_index"]),
        closure_reason=ClosureReason(payload["closure_reason"]),
    )


def _db_event_to_dict(event: PositionEvent) -> dict[str, Any]:
    balance = event.balance
    return {
        "kind": event.kind.value,
        "position_id": str(event.position_id),
        "account": event.account,
        "position_size": str(event.position_size),
        "block_number": event.block_number,
        "block_hash": event.block_hash,
        "transaction_hash": event.transaction_hash,
        "transaction_index": event.transaction_index,
        "log_index": event.log_index,
        "balance": None
        if balance is None
        else {
            "position_size": str(balance.position_size),
            "pool_utilization0": balance.pool_utilization0,
            "pool_utilization1": balance.pool_utilization1,
            "tick_at_mint": balance.tick_at_mint,
            "timestamp_at_mint": balance.timestamp_at_mint,
            "block_at_mint": balance.block_at_mint,
            "swap_at_mint": balance.swap_at_mint,
        },
        "premia_by_leg": [str(premium) for premium in event.premia_by_leg],
        "settled_leg_index": event.settled_leg_index,
        "settled_amount": None if event.settled_amount is None else str(event.settled_amount),
    }


def _db_event_from_dict(payload: dict[str, Any]) -> PositionEvent:
    balance_payload = payload.get("balance")
    balance = None
    if balance_payload is not None:
        balance = PositionBalance(
            position_size=int(balance_payload["position_size"]),
            pool_utilization0=int(balance_payload["pool_utilization0"]),
            pool_utilization1=int(balance_payload["pool_utilization1"]),
            tick_at_mint=int(balance_payload["tick_at_mint"]),
            timestamp_at_mint=int(balance_payload["timestamp_at_mint"]),
            block_at_mint=int(balance_payload["block_at_mint"]),
            swap_at_mint=bool(balance_payload["swap_at_mint"]),
        )
    return PositionEvent(
        kind=PositionEventKind(payload["kind"]),
        position_id=int(payload["position_id"]),
        account=str(payload["account"]),
        position_size=int(payload["position_size"]),
        block_number=int(payload["block_number"]),
        block_hash=str(payload["block_hash"]),
        transaction_hash=str(payload["transaction_hash"]),
        transaction_index=int(payload["transaction_index"]),
        log_index=int(payload["log_index"]),
        balance=balance,
        premia_by_leg=tuple(int(premium) for premium in payload.get("premia_by_leg", [])),
        settled_leg_index=_db_optional_int(payload.get("settled_leg_index")),
        settled_amount=_db_optional_int(payload.get("settled_amount")),
    )


def _db_pending_to_dict(record: PendingPosition) -> dict[str, Any]:
    return {
        "tx_ref": record.tx_ref,
        "position_id": str(record.position_id),
        "action": record.action.value,
        "status": record.status.value,
        "created_at": record.created_at,
        "position_size": None if record.position_size is None else str(record.position_size),
    }


def _db_pending_from_dict(payload: dict[str, Any]) -> PendingPosition:
    return PendingPosition(
        tx_ref=str(payload["tx_ref"]),
        position_id=int(payload["position_id"]),
        action=PendingPositionAction(payload["action"]),
        status=PendingPositionStatus(payload["status"]),
        created_at=float(payload["created_at"]),
        position_size=_db_optional_int(payload.get("position_size")),
    )


def _db_chunk_to_dict(record: ChunkRecord) -> dict[str, Any]:
    return {
        "key": str(record.key),
        "touch_count": record.touch_count,
        "net_liquidity": str(record.net_liquidity),
        "removed_liquidity": str(record.removed_liquidity),
    }


def _db_chunk_from_dict(payload: dict[str, Any]) -> ChunkRecord:
    return ChunkRecord(
        key=ChunkKey.parse(str(payload["key"])),
        touch_count=int(payload["touch_count"]),
        net_liquidity=int(payload["net_liquidity"]),
        removed_liquidity=int(payload["removed_liquidity"]),
    )
