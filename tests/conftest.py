"""Shared fixtures: an in-memory ledger with reorg support and sync wiring helpers."""

from __future__ import annotations

from typing import Sequence

import pytest

from panoptic_core.adapters import LedgerBlock, LedgerBlockNotFoundError, LedgerClientPort, LedgerLog
from panoptic_core.codec import PositionBalance, PositionIdBuilder, codec_encode_position_balance
from panoptic_core.db import InMemoryStateStore, SyncScope, SyncStateRepository
from panoptic_core.mapping import (
    OPTION_BURNT_TOPIC,
    OPTION_MINTED_TOPIC,
    PREMIUM_SETTLED_TOPIC,
    mapping_account_topic,
)

POOL_ADDRESS = "0x000000000000000000000000000000000000beef"
ACCOUNT_ADDRESS = "0x00000000000000000000000000000000000000aa"
OTHER_ACCOUNT_ADDRESS = "0x00000000000000000000000000000000000000bb"
CHAIN_ID = 1
POOL_TICK_SPACING = 10


def build_short_call_position_id(strike: int = 0, width: int = 10) -> int:
    """Build a single short call identifier on the shared test pool."""

    return PositionIdBuilder.for_pool_address(POOL_ADDRESS, tick_spacing=POOL_TICK_SPACING).add_call(
        strike=strike,
        width=width,
        is_long=False,
    ).build()


def _fake_word(value: int) -> str:
    return format(value % (1 << 256), "064x")


class FakeLedgerClient(LedgerClientPort):
    """Deterministic ledger holding one canonical branch of blocks and logs."""

    def __init__(self, head: int = 0, pool_address: str = POOL_ADDRESS):
        self.pool_address = pool_address
        self.blocks: dict[int, LedgerBlock] = {}
        self.logs: list[LedgerLog] = []
        self.get_logs_ranges: list[tuple[int, int]] = []
        self._branch = 0
        self._transaction_counter = 0
        self.fake_extend_to(head)

    @property
    def head(self) -> int:
        return max(self.blocks)

    def fake_block_hash(self, number: int) -> str:
        return self.blocks[number].hash

    def fake_extend_to(self, head: int) -> None:
        start = 0 if not self.blocks else self.head + 1
        for number in range(start, head + 1):
            self._fake_put_block(number)

    def fake_reorg_from(self, first_block: int, new_head: int | None = None) -> None:
        """Replace every block from `first_block` with a new branch and drop its logs."""

        self._branch += 1
        target_head = self.head if new_head is None else new_head
        for number in [number for number in self.blocks if number >= first_block]:
            del self.blocks[number]
        for number in range(first_block, target_head + 1):
            self._fake_put_block(number)
        self.logs = [log for log in self.logs if log.block_number < first_block]

    def fake_add_mint(
        self,
        position_id: int,
        block_number: int,
        position_size: int,
        account: str = ACCOUNT_ADDRESS,
        log_index: int = 0,
        transaction_hash: str | None = None,
    ) -> LedgerLog:
        balance = PositionBalance(
            position_size=position_size,
            pool_utilization0=0,
            pool_utilization1=0,
            tick_at_mint=0,
            timestamp_at_mint=1_700_000_000 + block_number,
            block_at_mint=block_number,
            swap_at_mint=False,
        )
        return self._fake_add_log(
            topic0=OPTION_MINTED_TOPIC,
            account=account,
            position_id=position_id,
            data_words=[codec_encode_position_balance(balance)],
            block_number=block_number,
            log_index=log_index,
            transaction_hash=transaction_hash,
        )

    def fake_add_burn(
        self,
        position_id: int,
        block_number: int,
        position_size: int,
        account: str = ACCOUNT_ADDRESS,
        log_index: int = 0,
        transaction_hash: str | None = None,
    ) -> LedgerLog:
        return self._fake_add_log(
            topic0=OPTION_BURNT_TOPIC,
            account=account,
            position_id=position_id,
            data_words=[position_size, 5, -5, 0, 0],
            block_number=block_number,
            log_index=log_index,
            transaction_hash=transaction_hash,
        )

    def fake_add_settlement(self, position_id: int, block_number: int, log_index: int = 0) -> LedgerLog:
        return self._fake_add_log(
            topic0=PREMIUM_SETTLED_TOPIC,
            account=ACCOUNT_ADDRESS,
            position_id=position_id,
            data_words=[0, 42],
            block_number=block_number,
            log_index=log_index,
            transaction_hash=None,
        )

    async def ledger_get_logs(
        self,
        address: str,
        topics: Sequence[str | Sequence[str] | None],
        from_block: int,
        to_block: int,
    ) -> list[LedgerLog]:
        self.get_logs_ranges.append((from_block, to_block))
        topic0_filter = topics[0] if len(topics) > 0 else None
        account_filter = topics[1] if len(topics) > 1 else None
        matches = []
        for log in self.logs:
            if log.address != address.lower() or not from_block <= log.block_number <= to_block:
                continue
            if topic0_filter is not None and log.topics[0] not in topic0_filter:
                continue
            if account_filter is not None and log.topics[1] != account_filter:
                continue
            matches.append(log)
        return matches

    async def ledger_get_block(self, number: int) -> LedgerBlock:
        block = self.blocks.get(number)
        if block is None:
            raise LedgerBlockNotFoundError(f"block {number} not found")
        return block

    async def ledger_get_block_number(self) -> int:
        return self.head

    def _fake_put_block(self, number: int) -> None:
        parent_hash = "0x" + "00" * 32 if number == 0 else self.blocks[number - 1].hash
        self.blocks[number] = LedgerBlock(
            number=number,
            hash="0x" + format(self._branch, "08x") + format(number, "056x"),
            parent_hash=parent_hash,
            timestamp=1_700_000_000 + number,
        )

    def _fake_add_log(
        self,
        topic0: str,
        account: str,
        position_id: int,
        data_words: list[int],
        block_number: int,
        log_index: int,
        transaction_hash: str | None,
    ) -> LedgerLog:
        self._transaction_counter += 1
        log = LedgerLog(
            address=self.pool_address,
            topics=(topic0, mapping_account_topic(account), "0x" + _fake_word(position_id)),
            data="0x" + "".join(_fake_word(word) for word in data_words),
            block_number=block_number,
            block_hash=self.blocks[block_number].hash,
            transaction_hash=transaction_hash or "0x" + format(self._transaction_counter, "064x"),
            transaction_index=0,
            log_index=log_index,
        )
        self.logs.append(log)
        return log


@pytest.fixture
def sync_scope() -> SyncScope:
    """Scope of the shared test account on the shared test pool."""

    return SyncScope(chain_id=CHAIN_ID, pool_address=POOL_ADDRESS, account=ACCOUNT_ADDRESS)


@pytest.fixture
def memory_store() -> InMemoryStateStore:
    """Fresh in-memory state store."""

    return InMemoryStateStore()


@pytest.fixture
def sync_repository(memory_store: InMemoryStateStore) -> SyncStateRepository:
    """Sync state repository over the in-memory store."""

    return SyncStateRepository(store=memory_store)


@pytest.fixture
def fake_ledger() -> FakeLedgerClient:
    """Fake ledger with blocks 0..99 and no logs."""

    return FakeLedgerClient(head=99)
