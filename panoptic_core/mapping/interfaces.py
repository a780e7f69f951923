"""Typed interfaces for mapping raw ledger logs into canonical position events."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from panoptic_core.codec import PositionBalance


class MappingContractViolationError(ValueError):
    """Raised when a raw log cannot satisfy the position event contract."""


class PositionEventKind(str, Enum):
    """Canonical position event kinds."""

    MINT = "mint"
    BURN = "burn"
    SETTLEMENT = "settlement"


@dataclass(frozen=True)
class PositionEvent:
    """Canonical position event decoded from one ledger log.

    Attributes:
        kind: Event kind.
        position_id: Position identifier.
        account: Account address, lowercase hex.
        position_size: Size minted or burnt; zero for settlements.
        block_number: Block holding the event.
        block_hash: Hash of that block.
        transaction_hash: Transaction reference.
        transaction_index: Transaction position in the block.
        log_index: Log position in the block.
        balance: Decoded balance word for mints.
        premia_by_leg: Signed premia per leg for burns.
        settled_leg_index: Settled leg index for settlements.
        settled_amount: Packed signed settled amounts for settlements.
    """

    kind: PositionEventKind
    position_id: int
    account: str
    position_size: int
    block_number: int
    block_hash: str
    transaction_hash: str
    transaction_index: int
    log_index: int
    balance: PositionBalance | None = None
    premia_by_leg: tuple[int, ...] = ()
    settled_leg_index: int | None = None
    settled_amount: int | None = None

    @property
    def event_key(self) -> tuple[str, int]:
        """Return the delivery identity `(transaction_hash, log_index)`."""

        return (self.transaction_hash, self.log_index)

    @property
    def ordering_key(self) -> tuple[int, int, int]:
        """Return the apply order `(block_number, transaction_index, log_index)`."""

        return (self.block_number, self.transaction_index, self.log_index)
