"""Typed interfaces for ledger client adapter responsibilities."""

from dataclasses import dataclass
from typing import Protocol, Sequence


@dataclass(frozen=True)
class LedgerLog:
    """One raw event log returned by the ledger.

    Attributes:
        address: Emitting contract address, lowercase hex.
        topics: Indexed topics as 0x-prefixed 32-byte hex strings.
        data: Non-indexed payload as 0x-prefixed hex.
        block_number: Block that holds the log.
        block_hash: Hash of that block.
        transaction_hash: Transaction reference.
        transaction_index: Position of the transaction in the block.
        log_index: Position of the log in the block.
        removed: Whether the node flagged the log as removed by a reorg.
    """

    address: str
    topics: tuple[str, ...]
    data: str
    block_number: int
    block_hash: str
    transaction_hash: str
    transaction_index: int
    log_index: int
    removed: bool = False


@dataclass(frozen=True)
class LedgerBlock:
    """Block header subset used for checkpoints and fork detection.

    Attributes:
        number: Block number.
        hash: Block hash.
        parent_hash: Parent block hash.
        timestamp: Block timestamp in unix seconds.
    """

    number: int
    hash: str
    parent_hash: str
    timestamp: int


class LedgerClientPort(Protocol):
    """Port definition for the three ledger reads the sync engine depends on."""

    async def ledger_get_logs(
        self,
        address: str,
        topics: Sequence[str | Sequence[str] | None],
        from_block: int,
        to_block: int,
    ) -> list[LedgerLog]:
        """Fetch event logs for one contract and inclusive block range.

        Args:
            address: Contract address.
            topics: Topic filter; nested sequences are OR-sets, `None` is a wildcard.
            from_block: First block, inclusive.
            to_block: Last block, inclusive.

        Returns:
            list[LedgerLog]: Logs in node order.

        Raises:
            ConnectionError: Raised when the ledger cannot be reached.
            TimeoutError: Raised when the request exceeds its timeout.
        """

    async def ledger_get_block(self, number: int) -> LedgerBlock:
        """Fetch one block header.

        Args:
            number: Block number.

        Returns:
            LedgerBlock: Header subset.

        Raises:
            LookupError: Raised when the block does not exist.
            ConnectionError: Raised when the ledger cannot be reached.
        """

    async def ledger_get_block_number(self) -> int:
        """Return the current head block number.

        Returns:
            int: Head block number.

        Raises:
            ConnectionError: Raised when the ledger cannot be reached.
        """
