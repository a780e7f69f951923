"""Regression tests for position log topics and decoding."""

from __future__ import annotations

from dataclasses import replace

import pytest

from conftest import ACCOUNT_ADDRESS, FakeLedgerClient, build_short_call_position_id
from panoptic_core.mapping import (
    OPTION_BURNT_TOPIC,
    OPTION_MINTED_TOPIC,
    POSITION_EVENT_TOPICS,
    PREMIUM_SETTLED_TOPIC,
    MappingContractViolationError,
    PositionEventKind,
    mapping_account_topic,
    mapping_decode_position_log,
    mapping_decode_position_logs,
    mapping_event_topic,
)


def test_mapping_event_topic_hashes_signature_with_keccak() -> None:
    """Hash a well-known signature to its published topic.

    Returns:
        None: Assertions validate topic hashing.

    Raises:
        AssertionError: Raised when hashing is not keccak-256.
    """

    assert (
        mapping_event_topic("Transfer(address,address,uint256)")
        == "0xddf252ad1be2c89b69c2b068fc378daa952ba7f163c4a11628f55a4df523b3ef"
    )
    assert len(set(POSITION_EVENT_TOPICS)) == 3
    assert all(len(topic) == 66 for topic in POSITION_EVENT_TOPICS)
    with pytest.raises(ValueError, match="blank"):
        mapping_event_topic(" ")


def test_mapping_account_topic_left_pads_lowercase_address() -> None:
    """Pad an address to a 32-byte topic and reject malformed addresses.

    Returns:
        None: Assertions validate account topic formatting.

    Raises:
        AssertionError: Raised when the topic is malformed.
    """

    topic = mapping_account_topic("0x00000000000000000000000000000000000000AA")

    assert topic == "0x" + "0" * 62 + "aa"
    with pytest.raises(ValueError, match="20-byte"):
        mapping_account_topic("0xabc")


def test_mapping_decodes_mint_burn_and_settlement_logs() -> None:
    """Decode each supported log kind into its canonical fields.

    Returns:
        None: Assertions validate decoded events.

    Raises:
        AssertionError: Raised when a field is misdecoded.
    """

    ledger = FakeLedgerClient(head=10)
    position_id = build_short_call_position_id()

    mint = mapping_decode_position_log(ledger.fake_add_mint(position_id, block_number=3, position_size=7))
    burn = mapping_decode_position_log(ledger.fake_add_burn(position_id, block_number=4, position_size=7))
    settlement = mapping_decode_position_log(ledger.fake_add_settlement(position_id, block_number=5))

    assert mint.kind == PositionEventKind.MINT
    assert (mint.position_id, mint.account, mint.position_size) == (position_id, ACCOUNT_ADDRESS, 7)
    assert mint.balance is not None and mint.balance.block_at_mint == 3
    assert burn.kind == PositionEventKind.BURN
    assert burn.premia_by_leg == (5, -5, 0, 0)
    assert settlement.kind == PositionEventKind.SETTLEMENT
    assert (settlement.settled_leg_index, settlement.settled_amount) == (0, 42)
    assert mint.event_key != burn.event_key


def test_mapping_decode_logs_skips_removed_and_orders_events() -> None:
    """Drop reorg-removed logs and sort the rest by block and log index.

    Returns:
        None: Assertions validate filtering and ordering.

    Raises:
        AssertionError: Raised when order or filtering is wrong.
    """

    ledger = FakeLedgerClient(head=10)
    position_id = build_short_call_position_id()
    later = ledger.fake_add_mint(position_id, block_number=6, position_size=1, log_index=0)
    same_block_second = ledger.fake_add_mint(position_id, block_number=2, position_size=2, log_index=4)
    same_block_first = ledger.fake_add_mint(position_id, block_number=2, position_size=3, log_index=1)
    removed = replace(ledger.fake_add_mint(position_id, block_number=1, position_size=4), removed=True)

    events = mapping_decode_position_logs([later, same_block_second, removed, same_block_first])

    assert [event.position_size for event in events] == [3, 2, 1]


def test_mapping_rejects_unknown_topics_and_malformed_payloads() -> None:
    """Raise contract violations for logs that do not match the event ABI.

    Returns:
        None: Assertions validate contract violation errors.

    Raises:
        AssertionError: Raised when malformed logs are accepted.
    """

    ledger = FakeLedgerClient(head=10)
    position_id = build_short_call_position_id()
    burn = ledger.fake_add_burn(position_id, block_number=1, position_size=1)

    with pytest.raises(MappingContractViolationError, match="unsupported event topic"):
        mapping_decode_position_log(replace(burn, topics=("0x" + "11" * 32,) + burn.topics[1:]))
    with pytest.raises(MappingContractViolationError, match="at least 5 words"):
        mapping_decode_position_log(replace(burn, data="0x" + "00" * 32))
    with pytest.raises(MappingContractViolationError, match="multiple of 32 bytes"):
        mapping_decode_position_log(replace(burn, data="0x00"))
    with pytest.raises(MappingContractViolationError, match="must carry"):
        mapping_decode_position_log(replace(burn, topics=burn.topics[:2]))
    with pytest.raises(MappingContractViolationError, match="high bytes"):
        mapping_decode_position_log(replace(burn, topics=(OPTION_BURNT_TOPIC, "0x" + "ff" * 32, burn.topics[2])))
    assert {OPTION_MINTED_TOPIC, PREMIUM_SETTLED_TOPIC} <= set(POSITION_EVENT_TOPICS)
