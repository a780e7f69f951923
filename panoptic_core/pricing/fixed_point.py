"""Fixed-point primitives: truncating division and tick to sqrt-price conversion."""

from __future__ import annotations

Q96 = 1 << 96
Q192 = 1 << 192

MIN_TICK = -887272
MAX_TICK = 887272
MIN_SQRT_RATIO = 4295128739
MAX_SQRT_RATIO = 1461446703485210103287273052203988822378723970342

_MAX_UINT256 = (1 << 256) - 1
_SQRT_RATIO_REMAINDER_MASK = (1 << 32) - 1

# (tick bit, Q128 multiplier) pairs; sqrt(1.0001)^-bit in Q128.
_TICK_BIT_MULTIPLIERS: tuple[tuple[int, int], ...] = (
    (0x2, 0xFFF97272373D413259A46990580E213A),
    (0x4, 0xFFF2E50F5F656932EF12357CF3C7FDCC),
    (0x8, 0xFFE5CACA7E10E4E61C3624EAA0941CD0),
    (0x10, 0xFFCB9843D60F6159C9DB58835C926644),
    (0x20, 0xFF973B41FA98C081472E6896DFB254C0),
    (0x40, 0xFF2EA16466C96A3843EC78B326B52861),
    (0x80, 0xFE5DEE046A99A2A811C461F1969C3053),
    (0x100, 0xFCBE86C7900A88AEDCFFC83B479AA3A4),
    (0x200, 0xF987A7253AC413176F2B074CF7815E54),
    (0x400, 0xF3392B0822B70005940C7A398E4B70F3),
    (0x800, 0xE7159475A2C29B7443B29C7FA6E889D9),
    (0x1000, 0xD097F3BDFD2022B8845AD8F792AA5825),
    (0x2000, 0xA9F746462D870FDF8A65DC1F90E061E5),
    (0x4000, 0x70D869A156D2A1B890BB3DF62BAF32F7),
    (0x8000, 0x31BE135F97D08FD981231505542FCFA6),
    (0x10000, 0x9AA508B5B7A84E1C677DE54F3E99BC9),
    (0x20000, 0x5D6AF8DEDB81196699C329225EE604),
    (0x40000, 0x2216E584F5FA1EA926041BEDFE98),
    (0x80000, 0x48A170391F7DC42444E8FA2),
)


def fixed_point_div_trunc(numerator: int, denominator: int) -> int:
    """Divide two integers and round the quotient toward zero.

    Python floor division rounds toward negative infinity, which differs from
    the ledger's signed division whenever the operands have opposite signs and
    the division is inexact.

    Args:
        numerator: Dividend.
        denominator: Divisor.

    Returns:
        int: Quotient truncated toward zero.

    Raises:
        ZeroDivisionError: Raised when the denominator is zero.
    """

    quotient = abs(numerator) // abs(denominator)
    if (numerator < 0) != (denominator < 0):
        return -quotient
    return quotient


def fixed_point_tick_to_sqrt_price_x96(tick: int) -> int:
    """Convert a tick into its Q64.96 square-root price, bit-exact with TickMath.

    Args:
        tick: Tick index in `[MIN_TICK, MAX_TICK]`.

    Returns:
        int: `sqrt(1.0001^tick) * 2^96`, rounded up from Q128.128.

    Raises:
        ValueError: Raised when the tick is out of bounds.
    """

    if tick < MIN_TICK or tick > MAX_TICK:
        raise ValueError(f"tick {tick} is outside [{MIN_TICK}, {MAX_TICK}]")

    abs_tick = -tick if tick < 0 else tick
    ratio = 0xFFFCB933BD6FAD37AA2D162D1A594001 if abs_tick & 0x1 else 1 << 128
    for tick_bit, multiplier in _TICK_BIT_MULTIPLIERS:
        if abs_tick & tick_bit:
            ratio = (ratio * multiplier) >> 128

    if tick > 0:
        ratio = _MAX_UINT256 // ratio

    return (ratio >> 32) + (0 if ratio & _SQRT_RATIO_REMAINDER_MASK == 0 else 1)


def fixed_point_tick_to_price_x192(tick: int) -> int:
    """Return `1.0001^tick * 2^192` as the square of the Q96 sqrt price."""

    sqrt_price_x96 = fixed_point_tick_to_sqrt_price_x96(tick)
    return sqrt_price_x96 * sqrt_price_x96
