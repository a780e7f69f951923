"""Decode raw position logs into canonical, ordered position events."""

from __future__ import annotations

from typing import Iterable

from panoptic_core.adapters import LedgerLog
from panoptic_core.codec import BalanceDataDecodeError, codec_decode_position_balance

from .event_topics import OPTION_BURNT_TOPIC, OPTION_MINTED_TOPIC, PREMIUM_SETTLED_TOPIC
from .interfaces import MappingContractViolationError, PositionEvent, PositionEventKind

_WORD_HEX_LENGTH = 64
_INT256_SIGN_BIT = 1 << 255
_UINT256_MODULUS = 1 << 256


def mapping_decode_position_log(log: LedgerLog) -> PositionEvent:
    """Decode one mint, burn, or settlement log.

    Args:
        log: Raw ledger log.

    Returns:
        PositionEvent: Canonical event.

    Raises:
        MappingContractViolationError: Raised for unknown topics or malformed payloads.
    """

    if len(log.topics) < 3:
        raise MappingContractViolationError(
            f"log {log.transaction_hash}:{log.log_index} must carry topic0, account, and position id"
        )

    topic0 = log.topics[0].lower()
    account = _mapping_topic_to_address(log.topics[1])
    position_id = _mapping_hex_to_uint(log.topics[2], context="position id topic")
    words = _mapping_split_words(log.data)

    common_fields = {
        "position_id": position_id,
        "account": account,
        "block_number": log.block_number,
        "block_hash": log.block_hash,
        "transaction_hash": log.transaction_hash,
        "transaction_index": log.transaction_index,
        "log_index": log.log_index,
    }

    if topic0 == OPTION_MINTED_TOPIC:
        _mapping_require_words(words, minimum=1, context="OptionMinted")
        try:
            balance = codec_decode_position_balance(_mapping_hex_to_uint(words[0], context="balance data"))
        except BalanceDataDecodeError as error:
            raise MappingContractViolationError("OptionMinted balance data is not decodable") from error
        return PositionEvent(
            kind=PositionEventKind.MINT,
            position_size=balance.position_size,
            balance=balance,
            **common_fields,
        )

    if topic0 == OPTION_BURNT_TOPIC:
        _mapping_require_words(words, minimum=5, context="OptionBurnt")
        return PositionEvent(
            kind=PositionEventKind.BURN,
            position_size=_mapping_hex_to_uint(words[0], context="burnt position size"),
            premia_by_leg=tuple(_mapping_word_to_int256(word) for word in words[1:5]),
            **common_fields,
        )

    if topic0 == PREMIUM_SETTLED_TOPIC:
        _mapping_require_words(words, minimum=2, context="PremiumSettled")
        return PositionEvent(
            kind=PositionEventKind.SETTLEMENT,
            position_size=0,
            settled_leg_index=_mapping_hex_to_uint(words[0], context="settled leg index"),
            settled_amount=_mapping_word_to_int256(words[1]),
            **common_fields,
        )

    raise MappingContractViolationError(f"unsupported event topic {topic0}")


def mapping_decode_position_logs(logs: Iterable[LedgerLog]) -> list[PositionEvent]:
    """Decode logs, drop reorg-removed ones, and return events in apply order.

    Args:
        logs: Raw ledger logs.

    Returns:
        list[PositionEvent]: Events ordered by block, transaction, and log index.

    Raises:
        MappingContractViolationError: Raised when any log is malformed.
    """

    return mapping_sort_events(mapping_decode_position_log(log) for log in logs if not log.removed)


def mapping_sort_events(events: Iterable[PositionEvent]) -> list[PositionEvent]:
    """Order events by `(block_number, transaction_index, log_index)`."""

    return sorted(events, key=lambda event: event.ordering_key)


def _mapping_split_words(data: str) -> list[str]:
    normalized = (data or "0x").lower()
    if not normalized.startswith("0x"):
        raise MappingContractViolationError("log data must be 0x-prefixed hex")
    payload = normalized[2:]
    if len(payload) % _WORD_HEX_LENGTH != 0:
        raise MappingContractViolationError("log data length must be a multiple of 32 bytes")
    return [payload[offset : offset + _WORD_HEX_LENGTH] for offset in range(0, len(payload), _WORD_HEX_LENGTH)]


def _mapping_require_words(words: list[str], minimum: int, context: str) -> None:
    if len(words) < minimum:
        raise MappingContractViolationError(f"{context} data must hold at least {minimum} words, got {len(words)}")


def _mapping_hex_to_uint(value: str, context: str) -> int:
    normalized = value.lower()
    if normalized.startswith("0x"):
        normalized = normalized[2:]
    try:
        return int(normalized, 16)
    except ValueError as error:
        raise MappingContractViolationError(f"{context} is not hex") from error


def _mapping_word_to_int256(word: str) -> int:
    unsigned = _mapping_hex_to_uint(word, context="int256 word")
    return unsigned - _UINT256_MODULUS if unsigned & _INT256_SIGN_BIT else unsigned


def _mapping_topic_to_address(topic: str) -> str:
    value = _mapping_hex_to_uint(topic, context="account topic")
    if value >> 160:
        raise MappingContractViolationError("account topic has non-zero high bytes")
    return "0x" + format(value, "040x")
