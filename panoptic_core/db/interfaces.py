"""Typed interfaces for state-store services and persisted sync records.

All SQL access must remain in the db package and its submodules.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from panoptic_core.mapping import PositionEvent


class StateStoreError(RuntimeError):
    """Raised when the state store cannot complete a read or write."""


class SchemaVersionMismatchError(StateStoreError):
    """Raised when a stored payload was written under another schema version."""


class StorePayloadCorruptedError(StateStoreError):
    """Raised when stored bytes cannot be parsed into the expected payload shape."""


class StateStorePort(Protocol):
    """Port definition for an opaque byte key-value store with per-key atomic writes."""

    async def store_get(self, key: str) -> bytes | None:
        """Read one value.

        Args:
            key: Namespaced state key.

        Returns:
            bytes | None: Stored bytes, or `None` when absent.

        Raises:
            StateStoreError: Raised when the read fails.
        """

    async def store_set(self, key: str, value: bytes) -> None:
        """Write one value atomically, replacing any previous value.

        Args:
            key: Namespaced state key.
            value: Bytes to store.

        Returns:
            None: This method does not return a value.

        Raises:
            StateStoreError: Raised when the write fails.
        """

    async def store_delete(self, key: str) -> None:
        """Delete one value; deleting an absent key is a no-op.

        Args:
            key: Namespaced state key.

        Returns:
            None: This method does not return a value.

        Raises:
            StateStoreError: Raised when the delete fails.
        """


class StateEntityKind(str, Enum):
    """Entity kinds used in the state key namespace."""

    CHECKPOINT = "checkpoint"
    POSITIONS = "positions"
    PENDING = "pending"
    CHUNKS = "chunks"
    CLOSED_POSITIONS = "closed_positions"


@dataclass(frozen=True)
class SyncScope:
    """Identity of one synchronized account view.

    Attributes:
        chain_id: Ledger chain identifier.
        pool_address: Pool contract address, lowercase hex.
        account: Account address, lowercase hex.
    """

    chain_id: int
    pool_address: str
    account: str

    def __post_init__(self) -> None:
        if self.chain_id < 1:
            raise ValueError("chain_id must be >= 1")
        if not self.pool_address.strip():
            raise ValueError("pool_address must not be blank")
        if not self.account.strip():
            raise ValueError("account must not be blank")
        object.__setattr__(self, "pool_address", self.pool_address.strip().lower())
        object.__setattr__(self, "account", self.account.strip().lower())

    @property
    def label(self) -> str:
        """Return a stable `chain:pool:account` label for locks and diagnostics."""

        return f"{self.chain_id}:{self.pool_address}:{self.account}"


@dataclass(frozen=True)
class BlockReference:
    """Block number and hash pair.

    Attributes:
        number: Block number.
        hash: Block hash.
    """

    number: int
    hash: str


@dataclass(frozen=True)
class TrackedPositionEntry:
    """One open position derived from the event log.

    Attributes:
        position_id: Position identifier.
        position_size: Net open size.
        tick_at_mint: Pool tick recorded at the latest mint.
        timestamp_at_mint: Block timestamp recorded at the latest mint.
        block_at_mint: Block number recorded at the latest mint.
        last_event_block: Block of the latest event that touched the entry.
    """

    position_id: int
    position_size: int
    tick_at_mint: int | None
    timestamp_at_mint: int | None
    block_at_mint: int | None
    last_event_block: int


class ClosureReason(str, Enum):
    """Why a tracked position left the open set.

    Only `CLOSED` is produced from burn events; the other values keep the
    history filter vocabulary stable for liquidation and force-exercise events.
    """

    CLOSED = "closed"
    LIQUIDATED = "liquidated"
    FORCE_EXERCISED = "force_exercised"


@dataclass(frozen=True)
class ClosedPositionEntry:
    """One position fully closed by an observed event.

    Attributes:
        position_id: Position identifier.
        position_size: Size open right before the closing event.
        open_block: Block recorded at the latest mint.
        close_block: Block of the closing event.
        tick_at_open: Pool tick recorded at the latest mint.
        timestamp_at_open: Block timestamp recorded at the latest mint.
        premia_by_leg: Signed premia per leg reported by the closing burn.
        transaction_hash: Transaction of the closing event.
        log_index: Log position of the closing event.
        closure_reason: Why the position closed.
    """

    position_id: int
    position_size: int
    open_block: int | None
    close_block: int
    tick_at_open: int | None
    timestamp_at_open: int | None
    premia_by_leg: tuple[int, ...]
    transaction_hash: str
    log_index: int
    closure_reason: ClosureReason = ClosureReason.CLOSED


@dataclass(frozen=True)
class ReducerState:
    """Event-folding state: finalized base entries plus the reversible journal.

    Attributes:
        base_entries: Open entries folded from events at or below the horizon.
        finalized_through_block: Finality horizon; `-1` when nothing is finalized.
        journal: Applied events above the horizon in apply order.
        base_closed: Closed entries folded from events at or below the horizon, oldest first.
    """

    base_entries: tuple[TrackedPositionEntry, ...] = ()
    finalized_through_block: int = -1
    journal: tuple[PositionEvent, ...] = ()
    base_closed: tuple[ClosedPositionEntry, ...] = ()


@dataclass(frozen=True)
class SyncCheckpoint:
    """Committed sync progress for one scope.

    Attributes:
        block_number: Last applied block.
        block_hash: Hash of the last applied block.
        ancestry: Recently committed window ends, oldest first, used for reorg recovery.
        reducer_state: Event-folding state as of `block_number`.
        updated_at: Unix seconds when the checkpoint was committed.
    """

    block_number: int
    block_hash: str
    ancestry: tuple[BlockReference, ...]
    reducer_state: ReducerState
    updated_at: float


class PendingPositionAction(str, Enum):
    """Optimistic change a pending record announces."""

    OPEN = "open"
    CLOSE = "close"


class PendingPositionStatus(str, Enum):
    """Lifecycle status of a pending record."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"


@dataclass(frozen=True)
class PendingPosition:
    """Submitted but unconfirmed position change.

    Attributes:
        tx_ref: Submitted transaction reference, lowercase hex.
        position_id: Position identifier.
        action: Open or close.
        status: Lifecycle status.
        created_at: Unix seconds when the record was registered.
        position_size: Optional expected size.
    """

    tx_ref: str
    position_id: int
    action: PendingPositionAction
    status: PendingPositionStatus
    created_at: float
    position_size: int | None = None


@dataclass(frozen=True, order=True)
class ChunkKey:
    """Price-range bucket identity.

    Attributes:
        token_type: Token moved by legs in the bucket.
        tick_lower: Lower range tick.
        tick_upper: Upper range tick.
    """

    token_type: int
    tick_lower: int
    tick_upper: int

    def __str__(self) -> str:
        return f"{self.token_type}:{self.tick_lower}:{self.tick_upper}"

    @classmethod
    def parse(cls, text: str) -> ChunkKey:
        """Parse the `token_type:tick_lower:tick_upper` form.

        Args:
            text: Serialized key.

        Returns:
            ChunkKey: Parsed key.

        Raises:
            ValueError: Raised when the text is malformed.
        """

        parts = text.split(":")
        if len(parts) != 3:
            raise ValueError(f"chunk key must have three parts: {text}")
        token_type, tick_lower, tick_upper = (int(part) for part in parts)
        return cls(token_type=token_type, tick_lower=tick_lower, tick_upper=tick_upper)


@dataclass(frozen=True)
class ChunkRecord:
    """Aggregated touches and liquidity for one tracked chunk.

    Attributes:
        key: Chunk identity.
        touch_count: Number of leg touches recorded.
        net_liquidity: Net liquidity in the chunk.
        removed_liquidity: Liquidity removed by long legs.
    """

    key: ChunkKey
    touch_count: int = 0
    net_liquidity: int = 0
    removed_liquidity: int = 0
