"""Encode and decode position identifiers using the fixed 64 + 4x48 bit layout."""

from __future__ import annotations

import re
from typing import Sequence

from .constants import (
    DEFAULT_VEGOID,
    LEG_ASSET_MASK,
    LEG_ASSET_SHIFT,
    LEG_IS_LONG_MASK,
    LEG_IS_LONG_SHIFT,
    LEG_MASK,
    LEG_RATIO_MASK,
    LEG_RATIO_SHIFT,
    LEG_RISK_PARTNER_MASK,
    LEG_RISK_PARTNER_SHIFT,
    LEG_STRIKE_MASK,
    LEG_STRIKE_SHIFT,
    LEG_TOKEN_TYPE_MASK,
    LEG_TOKEN_TYPE_SHIFT,
    LEG_WIDTH_MASK,
    LEG_WIDTH_SHIFT,
    MAX_LEGS,
    MAX_OPTION_RATIO,
    MAX_POSITION_ID,
    MAX_STRIKE,
    MAX_WIDTH,
    MIN_STRIKE,
    POOL_ADDRESS_FRAGMENT_MASK,
    POOL_ID_MASK,
    TICK_SPACING_MASK,
    TICK_SPACING_SHIFT,
    VEGOID_MASK,
    VEGOID_SHIFT,
    leg_slot_shift,
)
from .errors import (
    InvalidLegCountError,
    InvalidLegParameterError,
    InvalidStrikeError,
    InvalidWidthError,
    PositionIdDecodeError,
)
from .interfaces import DecodedPositionId, LegSpec, PoolContext, PositionLeg

_ADDRESS_PATTERN = re.compile(r"^0x[0-9a-fA-F]{40}$")
_POOL_KEY_ID_PATTERN = re.compile(r"^0x[0-9a-fA-F]{64}$")


def codec_encode_pool_id(pool_address: str, tick_spacing: int, vegoid: int = DEFAULT_VEGOID) -> int:
    """Pack a pool address fragment, vegoid, and tick spacing into a 64-bit pool id.

    The fragment is the first five address bytes read as one big-endian integer,
    which is the little-endian placement the ledger contract uses.

    Args:
        pool_address: Hex pool address with `0x` prefix.
        tick_spacing: Pool tick spacing (1..65535).
        vegoid: Spread-model parameter (0..255).

    Returns:
        int: Packed pool identifier.

    Raises:
        ValueError: Raised when inputs are outside their field widths.
    """

    if not _ADDRESS_PATTERN.match(pool_address or ""):
        raise ValueError("pool_address must be a 0x-prefixed 20-byte hex address")
    fragment = int.from_bytes(bytes.fromhex(pool_address[2:12]), "big")
    return _codec_pack_pool_id(fragment=fragment, tick_spacing=tick_spacing, vegoid=vegoid)


def codec_encode_v4_pool_id(pool_key_id: str, tick_spacing: int, vegoid: int = DEFAULT_VEGOID) -> int:
    """Pack a 32-byte pool key id into a 64-bit pool id using its last five bytes.

    Args:
        pool_key_id: Hex 32-byte pool key identifier with `0x` prefix.
        tick_spacing: Pool tick spacing (1..65535).
        vegoid: Spread-model parameter (0..255).

    Returns:
        int: Packed pool identifier.

    Raises:
        ValueError: Raised when inputs are outside their field widths.
    """

    if not _POOL_KEY_ID_PATTERN.match(pool_key_id or ""):
        raise ValueError("pool_key_id must be a 0x-prefixed 32-byte hex value")
    fragment = int.from_bytes(bytes.fromhex(pool_key_id[-10:]), "big")
    return _codec_pack_pool_id(fragment=fragment, tick_spacing=tick_spacing, vegoid=vegoid)


def codec_decode_pool_id(pool_id: int) -> PoolContext:
    """Unpack a 64-bit pool id.

    Args:
        pool_id: Packed pool identifier, or a full position identifier.

    Returns:
        PoolContext: Address fragment, vegoid, and tick spacing.

    Raises:
        PositionIdDecodeError: Raised when the value is negative.
    """

    if pool_id < 0:
        raise PositionIdDecodeError("pool_id must not be negative")
    masked_pool_id = pool_id & POOL_ID_MASK
    return PoolContext(
        pool_id=masked_pool_id,
        address_fragment=masked_pool_id & POOL_ADDRESS_FRAGMENT_MASK,
        vegoid=(masked_pool_id >> VEGOID_SHIFT) & VEGOID_MASK,
        tick_spacing=(masked_pool_id >> TICK_SPACING_SHIFT) & TICK_SPACING_MASK,
    )


def codec_encode_position_id(pool_id: int, legs: Sequence[LegSpec]) -> int:
    """Encode pool context and one to four legs into a position identifier.

    Args:
        pool_id: Packed 64-bit pool identifier.
        legs: Ordered legs; list order becomes slot order.

    Returns:
        int: Position identifier.

    Raises:
        InvalidLegCountError: Raised when there are zero or more than four legs.
        InvalidStrikeError: Raised when a strike is outside int24 or misaligned.
        InvalidWidthError: Raised when a width is out of range or odd on a spread leg.
        InvalidLegParameterError: Raised for other non-encodable leg fields.
        ValueError: Raised when the pool id is outside 64 bits or has zero tick spacing.
    """

    if pool_id < 0 or pool_id > POOL_ID_MASK:
        raise ValueError("pool_id must fit in 64 bits")
    tick_spacing = codec_decode_pool_id(pool_id).tick_spacing
    if tick_spacing == 0:
        raise ValueError("pool_id tick spacing must be greater than zero")

    if len(legs) == 0:
        raise InvalidLegCountError("position must contain at least one leg")
    if len(legs) > MAX_LEGS:
        raise InvalidLegCountError(f"position supports at most {MAX_LEGS} legs, got {len(legs)}")

    partners = [leg_index if leg.risk_partner is None else leg.risk_partner for leg_index, leg in enumerate(legs)]
    position_id = pool_id
    for leg_index, leg in enumerate(legs):
        _codec_validate_leg(leg=leg, leg_index=leg_index, partners=partners, tick_spacing=tick_spacing)
        position_id |= _codec_pack_leg(leg=leg, risk_partner=partners[leg_index]) << leg_slot_shift(leg_index)
    return position_id


def codec_decode_position_id(position_id: int) -> DecodedPositionId:
    """Decode a position identifier into pool context and ordered legs.

    A slot with zero option ratio terminates leg enumeration. The terminating
    slot and every slot after it must be entirely zero.

    Args:
        position_id: Position identifier value.

    Returns:
        DecodedPositionId: Decoded pool context and legs.

    Raises:
        PositionIdDecodeError: Raised for out-of-range or inconsistent bit patterns.
    """

    if position_id < 0:
        raise PositionIdDecodeError("position_id must not be negative")
    if position_id > MAX_POSITION_ID:
        raise PositionIdDecodeError("position_id exceeds 256 bits")

    pool_context = codec_decode_pool_id(position_id)
    legs: list[PositionLeg] = []
    terminated_at: int | None = None
    for slot_index in range(MAX_LEGS):
        slot_bits = (position_id >> leg_slot_shift(slot_index)) & LEG_MASK
        if terminated_at is not None:
            if slot_bits != 0:
                raise PositionIdDecodeError(
                    f"leg slot {slot_index} is populated after terminating slot {terminated_at}"
                )
            continue

        option_ratio = (slot_bits >> LEG_RATIO_SHIFT) & LEG_RATIO_MASK
        if option_ratio == 0:
            if slot_bits != 0:
                raise PositionIdDecodeError(f"terminating leg slot {slot_index} carries non-zero fields")
            terminated_at = slot_index
            continue
        legs.append(_codec_unpack_leg(slot_bits=slot_bits, slot_index=slot_index, tick_spacing=pool_context.tick_spacing))

    if not legs:
        raise PositionIdDecodeError("position_id contains no legs")

    for leg in legs:
        if leg.risk_partner >= len(legs):
            raise PositionIdDecodeError(f"leg {leg.index} references missing risk partner {leg.risk_partner}")

    return DecodedPositionId(
        position_id=position_id,
        pool_id=pool_context.pool_id,
        tick_spacing=pool_context.tick_spacing,
        vegoid=pool_context.vegoid,
        legs=tuple(legs),
    )


def codec_count_legs(position_id: int) -> int:
    """Return the number of populated legs in a position identifier."""

    return codec_decode_position_id(position_id).leg_count


def codec_is_loan_leg(leg: PositionLeg | LegSpec) -> bool:
    """Return whether a leg is a loan (zero width, short)."""

    return leg.width == 0 and not leg.is_long


def codec_is_credit_leg(leg: PositionLeg | LegSpec) -> bool:
    """Return whether a leg is a credit (zero width, long)."""

    return leg.width == 0 and leg.is_long


def codec_is_spread_leg(leg: PositionLeg) -> bool:
    """Return whether a leg is partnered with another leg."""

    return leg.risk_partner != leg.index


def codec_has_long_leg(decoded: DecodedPositionId) -> bool:
    """Return whether any leg of a decoded position is long."""

    return any(leg.is_long for leg in decoded.legs)


def codec_is_short_only(decoded: DecodedPositionId) -> bool:
    """Return whether every leg of a decoded position is short."""

    return not codec_has_long_leg(decoded)


def codec_format_position_id(position_id: int, as_hex: bool = False) -> str:
    """Render a position identifier in its printable decimal or hex form.

    Args:
        position_id: Position identifier value.
        as_hex: Whether to render `0x`-prefixed hexadecimal.

    Returns:
        str: Printable identifier.

    Raises:
        PositionIdDecodeError: Raised when the value is outside 0..2^256-1.
    """

    if position_id < 0 or position_id > MAX_POSITION_ID:
        raise PositionIdDecodeError("position_id must be an unsigned 256-bit value")
    if as_hex:
        return hex(position_id)
    return str(position_id)


def codec_parse_position_id(text: str) -> int:
    """Parse a printable decimal or `0x` hexadecimal position identifier.

    Args:
        text: Printable identifier.

    Returns:
        int: Identifier value.

    Raises:
        PositionIdDecodeError: Raised when the text is blank, malformed, or out of range.
    """

    normalized_text = (text or "").strip()
    if not normalized_text:
        raise PositionIdDecodeError("position_id text must not be blank")
    is_hex = normalized_text.lower().startswith("0x")
    if not is_hex and not normalized_text.isdigit():
        raise PositionIdDecodeError(f"position_id text is not decimal or hex: {normalized_text}")
    try:
        value = int(normalized_text[2:], 16) if is_hex else int(normalized_text, 10)
    except ValueError as error:
        raise PositionIdDecodeError(f"position_id text is not decimal or hex: {normalized_text}") from error
    if value > MAX_POSITION_ID:
        raise PositionIdDecodeError("position_id exceeds 256 bits")
    return value


def _codec_pack_pool_id(fragment: int, tick_spacing: int, vegoid: int) -> int:
    if tick_spacing < 1 or tick_spacing > TICK_SPACING_MASK:
        raise ValueError("tick_spacing must be between 1 and 65535")
    if vegoid < 0 or vegoid > VEGOID_MASK:
        raise ValueError("vegoid must be between 0 and 255")
    return (
        (fragment & POOL_ADDRESS_FRAGMENT_MASK)
        | (vegoid << VEGOID_SHIFT)
        | (tick_spacing << TICK_SPACING_SHIFT)
    )


def _codec_validate_leg(leg: LegSpec, leg_index: int, partners: list[int], tick_spacing: int) -> None:
    if leg.asset not in (0, 1):
        raise InvalidLegParameterError(f"leg {leg_index} asset must be 0 or 1")
    if leg.token_type not in (0, 1):
        raise InvalidLegParameterError(f"leg {leg_index} token_type must be 0 or 1")
    if leg.option_ratio < 1 or leg.option_ratio > MAX_OPTION_RATIO:
        raise InvalidLegParameterError(f"leg {leg_index} option_ratio must be between 1 and {MAX_OPTION_RATIO}")

    risk_partner = partners[leg_index]
    if risk_partner < 0 or risk_partner >= len(partners):
        raise InvalidLegParameterError(f"leg {leg_index} risk_partner {risk_partner} is not a leg of this position")
    if partners[risk_partner] != leg_index:
        raise InvalidLegParameterError(f"leg {leg_index} risk_partner {risk_partner} is not mutual")

    if leg.strike < MIN_STRIKE or leg.strike > MAX_STRIKE:
        raise InvalidStrikeError(f"leg {leg_index} strike {leg.strike} is outside int24")
    if leg.strike % tick_spacing != 0:
        raise InvalidStrikeError(f"leg {leg_index} strike {leg.strike} is not aligned to tick spacing {tick_spacing}")

    if leg.width < 0 or leg.width > MAX_WIDTH:
        raise InvalidWidthError(f"leg {leg_index} width must be between 0 and {MAX_WIDTH}")
    if risk_partner != leg_index and leg.width % 2 != 0:
        raise InvalidWidthError(f"leg {leg_index} width {leg.width} must be even for a spread leg")


def _codec_pack_leg(leg: LegSpec, risk_partner: int) -> int:
    return (
        (leg.asset << LEG_ASSET_SHIFT)
        | (leg.option_ratio << LEG_RATIO_SHIFT)
        | (int(leg.is_long) << LEG_IS_LONG_SHIFT)
        | (leg.token_type << LEG_TOKEN_TYPE_SHIFT)
        | (risk_partner << LEG_RISK_PARTNER_SHIFT)
        | ((leg.strike & LEG_STRIKE_MASK) << LEG_STRIKE_SHIFT)
        | (leg.width << LEG_WIDTH_SHIFT)
    )


def _codec_unpack_leg(slot_bits: int, slot_index: int, tick_spacing: int) -> PositionLeg:
    raw_strike = (slot_bits >> LEG_STRIKE_SHIFT) & LEG_STRIKE_MASK
    strike = raw_strike - (1 << 24) if raw_strike > MAX_STRIKE else raw_strike
    width = (slot_bits >> LEG_WIDTH_SHIFT) & LEG_WIDTH_MASK
    if width == 0:
        tick_lower = strike
        tick_upper = strike
    else:
        half_range = (width * tick_spacing) // 2
        tick_lower = strike - half_range
        tick_upper = strike + half_range

    return PositionLeg(
        index=slot_index,
        asset=(slot_bits >> LEG_ASSET_SHIFT) & LEG_ASSET_MASK,
        option_ratio=(slot_bits >> LEG_RATIO_SHIFT) & LEG_RATIO_MASK,
        is_long=bool((slot_bits >> LEG_IS_LONG_SHIFT) & LEG_IS_LONG_MASK),
        token_type=(slot_bits >> LEG_TOKEN_TYPE_SHIFT) & LEG_TOKEN_TYPE_MASK,
        risk_partner=(slot_bits >> LEG_RISK_PARTNER_SHIFT) & LEG_RISK_PARTNER_MASK,
        strike=strike,
        width=width,
        tick_lower=tick_lower,
        tick_upper=tick_upper,
    )
