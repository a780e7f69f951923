"""Decode the packed balance word carried by position mint events."""

from __future__ import annotations

from .constants import (
    BALANCE_BLOCK_AT_MINT_MASK,
    BALANCE_BLOCK_AT_MINT_SHIFT,
    BALANCE_POSITION_SIZE_MASK,
    BALANCE_SWAP_AT_MINT_SHIFT,
    BALANCE_TICK_AT_MINT_MASK,
    BALANCE_TICK_AT_MINT_SHIFT,
    BALANCE_TIMESTAMP_AT_MINT_MASK,
    BALANCE_TIMESTAMP_AT_MINT_SHIFT,
    BALANCE_UTILIZATION0_SHIFT,
    BALANCE_UTILIZATION1_SHIFT,
    BALANCE_UTILIZATION_MASK,
    MAX_STRIKE,
)
from .errors import BalanceDataDecodeError
from .interfaces import PositionBalance

_MAX_UINT256 = (1 << 256) - 1


def codec_decode_position_balance(balance_data: int) -> PositionBalance:
    """Unpack a 256-bit position balance word.

    Args:
        balance_data: Unsigned packed balance value.

    Returns:
        PositionBalance: Size, utilizations, and mint-time context.

    Raises:
        BalanceDataDecodeError: Raised when the value is outside 0..2^256-1.
    """

    if balance_data < 0 or balance_data > _MAX_UINT256:
        raise BalanceDataDecodeError("balance_data must be an unsigned 256-bit value")

    raw_tick = (balance_data >> BALANCE_TICK_AT_MINT_SHIFT) & BALANCE_TICK_AT_MINT_MASK
    return PositionBalance(
        position_size=balance_data & BALANCE_POSITION_SIZE_MASK,
        pool_utilization0=(balance_data >> BALANCE_UTILIZATION0_SHIFT) & BALANCE_UTILIZATION_MASK,
        pool_utilization1=(balance_data >> BALANCE_UTILIZATION1_SHIFT) & BALANCE_UTILIZATION_MASK,
        tick_at_mint=raw_tick - (1 << 24) if raw_tick > MAX_STRIKE else raw_tick,
        timestamp_at_mint=(balance_data >> BALANCE_TIMESTAMP_AT_MINT_SHIFT) & BALANCE_TIMESTAMP_AT_MINT_MASK,
        block_at_mint=(balance_data >> BALANCE_BLOCK_AT_MINT_SHIFT) & BALANCE_BLOCK_AT_MINT_MASK,
        swap_at_mint=bool((balance_data >> BALANCE_SWAP_AT_MINT_SHIFT) & 1),
    )


def codec_encode_position_balance(balance: PositionBalance) -> int:
    """Pack a position balance into its 256-bit word.

    Args:
        balance: Balance fields.

    Returns:
        int: Packed balance word.

    Raises:
        BalanceDataDecodeError: Raised when a field does not fit its bit width.
    """

    if balance.position_size < 0 or balance.position_size > BALANCE_POSITION_SIZE_MASK:
        raise BalanceDataDecodeError("position_size must fit in 128 bits")
    if not -(1 << 23) <= balance.tick_at_mint <= MAX_STRIKE:
        raise BalanceDataDecodeError("tick_at_mint must fit in int24")
    for field_name, value, mask in (
        ("pool_utilization0", balance.pool_utilization0, BALANCE_UTILIZATION_MASK),
        ("pool_utilization1", balance.pool_utilization1, BALANCE_UTILIZATION_MASK),
        ("timestamp_at_mint", balance.timestamp_at_mint, BALANCE_TIMESTAMP_AT_MINT_MASK),
        ("block_at_mint", balance.block_at_mint, BALANCE_BLOCK_AT_MINT_MASK),
    ):
        if value < 0 or value > mask:
            raise BalanceDataDecodeError(f"{field_name} does not fit its bit width")

    return (
        balance.position_size
        | (balance.pool_utilization0 << BALANCE_UTILIZATION0_SHIFT)
        | (balance.pool_utilization1 << BALANCE_UTILIZATION1_SHIFT)
        | ((balance.tick_at_mint & BALANCE_TICK_AT_MINT_MASK) << BALANCE_TICK_AT_MINT_SHIFT)
        | (balance.timestamp_at_mint << BALANCE_TIMESTAMP_AT_MINT_SHIFT)
        | (balance.block_at_mint << BALANCE_BLOCK_AT_MINT_SHIFT)
        | (int(balance.swap_at_mint) << BALANCE_SWAP_AT_MINT_SHIFT)
    )
