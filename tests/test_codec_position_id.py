"""Regression tests for the position identifier bit layout and builder."""

from __future__ import annotations

import pytest

from panoptic_core.codec import (
    InvalidLegCountError,
    InvalidLegParameterError,
    InvalidStrikeError,
    InvalidWidthError,
    LegSpec,
    PositionBalance,
    PositionIdBuilder,
    PositionIdDecodeError,
    BalanceDataDecodeError,
    codec_count_legs,
    codec_decode_pool_id,
    codec_decode_position_balance,
    codec_decode_position_id,
    codec_encode_pool_id,
    codec_encode_position_balance,
    codec_encode_position_id,
    codec_format_position_id,
    codec_is_credit_leg,
    codec_is_loan_leg,
    codec_is_short_only,
    codec_is_spread_leg,
    codec_parse_position_id,
)

POOL_ADDRESS = "0x1234567890abcdef1234567890abcdef12345678"


def test_codec_single_short_call_round_trips_with_expected_fields() -> None:
    """Decode a single short call into the fields it was encoded with.

    Returns:
        None: Assertions validate decoded leg fields.

    Raises:
        AssertionError: Raised when decoded fields differ from the input.
    """

    pool_id = codec_encode_pool_id(POOL_ADDRESS, tick_spacing=10)
    position_id = codec_encode_position_id(
        pool_id,
        [LegSpec(asset=0, option_ratio=1, is_long=False, token_type=0, strike=0, width=10)],
    )

    decoded = codec_decode_position_id(position_id)

    assert decoded.leg_count == 1
    assert decoded.tick_spacing == 10
    assert decoded.pool_id == pool_id
    leg = decoded.legs[0]
    assert leg.width == 10
    assert leg.is_long is False
    assert leg.risk_partner == 0
    assert (leg.tick_lower, leg.tick_upper) == (-50, 50)
    assert codec_is_short_only(decoded)


def test_codec_pool_id_packs_address_fragment_vegoid_and_tick_spacing() -> None:
    """Pack the first five address bytes with vegoid and tick spacing.

    Returns:
        None: Assertions validate pool id fields.

    Raises:
        AssertionError: Raised when pool id packing is incorrect.
    """

    pool_id = codec_encode_pool_id(POOL_ADDRESS, tick_spacing=60, vegoid=4)
    pool_context = codec_decode_pool_id(pool_id)

    assert pool_context.address_fragment == 0x1234567890
    assert pool_context.vegoid == 4
    assert pool_context.tick_spacing == 60
    assert pool_id == 0x1234567890 | (4 << 40) | (60 << 48)


def test_codec_negative_strike_and_multi_leg_order_survive_round_trip() -> None:
    """Keep signed strikes and slot order through encode and decode.

    Returns:
        None: Assertions validate leg order and strike sign.

    Raises:
        AssertionError: Raised when leg order or strikes change.
    """

    position_id = (
        PositionIdBuilder.for_pool_address(POOL_ADDRESS, tick_spacing=10)
        .add_put(strike=-200, width=4, is_long=True, asset=1, risk_partner=1)
        .add_put(strike=-100, width=4, is_long=False, asset=1, risk_partner=0)
        .add_credit(asset=0, token_type=1, strike=-8_388_600)
        .build()
    )

    decoded = codec_decode_position_id(position_id)

    assert codec_count_legs(position_id) == 3
    assert [leg.strike for leg in decoded.legs] == [-200, -100, -8_388_600]
    assert [leg.risk_partner for leg in decoded.legs] == [1, 0, 2]
    assert codec_is_spread_leg(decoded.legs[0])
    assert codec_is_credit_leg(decoded.legs[2])
    assert not codec_is_loan_leg(decoded.legs[2])
    assert decoded.legs[2].tick_lower == decoded.legs[2].tick_upper == -8_388_600
    assert codec_encode_position_id(decoded.pool_id, [leg.leg_spec() for leg in decoded.legs]) == position_id


def test_codec_encode_rejects_five_legs_and_zero_legs() -> None:
    """Reject leg counts outside one to four.

    Returns:
        None: Assertions validate leg count errors.

    Raises:
        AssertionError: Raised when invalid leg counts are accepted.
    """

    pool_id = codec_encode_pool_id(POOL_ADDRESS, tick_spacing=10)
    leg = LegSpec(asset=0, option_ratio=1, is_long=False, token_type=0, strike=0, width=2)

    with pytest.raises(InvalidLegCountError, match="at most 4"):
        codec_encode_position_id(pool_id, [leg] * 5)
    with pytest.raises(InvalidLegCountError, match="at least one"):
        codec_encode_position_id(pool_id, [])


def test_codec_encode_rejects_misaligned_strike_and_odd_spread_width() -> None:
    """Reject strikes off the tick grid and odd widths on spread legs.

    Returns:
        None: Assertions validate strike and width errors.

    Raises:
        AssertionError: Raised when invalid legs are accepted.
    """

    pool_id = codec_encode_pool_id(POOL_ADDRESS, tick_spacing=10)

    with pytest.raises(InvalidStrikeError, match="not aligned"):
        codec_encode_position_id(
            pool_id,
            [LegSpec(asset=0, option_ratio=1, is_long=False, token_type=0, strike=15, width=2)],
        )
    with pytest.raises(InvalidWidthError, match="even"):
        codec_encode_position_id(
            pool_id,
            [
                LegSpec(asset=0, option_ratio=1, is_long=False, token_type=0, strike=0, width=3, risk_partner=1),
                LegSpec(asset=0, option_ratio=1, is_long=True, token_type=0, strike=100, width=3, risk_partner=0),
            ],
        )
    with pytest.raises(InvalidLegParameterError, match="not mutual"):
        codec_encode_position_id(
            pool_id,
            [
                LegSpec(asset=0, option_ratio=1, is_long=False, token_type=0, strike=0, width=2, risk_partner=1),
                LegSpec(asset=0, option_ratio=1, is_long=True, token_type=0, strike=100, width=2),
            ],
        )


def test_codec_builder_rejects_fifth_leg_immediately_and_empty_build() -> None:
    """Fail on the fifth addition and when building without legs.

    Returns:
        None: Assertions validate builder guards.

    Raises:
        AssertionError: Raised when builder guards are missing.
    """

    builder = PositionIdBuilder.for_pool_address(POOL_ADDRESS, tick_spacing=1)
    for strike in (10, 20, 30, 40):
        builder.add_call(strike=strike, width=2, is_long=False)

    with pytest.raises(InvalidLegCountError):
        builder.add_call(strike=50, width=2, is_long=False)
    assert builder.leg_count() == 4

    with pytest.raises(InvalidLegCountError, match="without legs"):
        builder.reset().build()


def test_codec_decode_stops_at_first_zero_ratio_slot_and_rejects_trailing_bits() -> None:
    """Treat the first zero-ratio slot as the end and reject data behind it.

    Returns:
        None: Assertions validate terminator handling.

    Raises:
        AssertionError: Raised when trailing slots are misread.
    """

    position_id = PositionIdBuilder.for_pool_address(POOL_ADDRESS, tick_spacing=10).add_call(
        strike=0,
        width=10,
        is_long=False,
    ).build()

    assert codec_decode_position_id(position_id).leg_count == 1

    populated_third_slot = position_id | (1 << (64 + 48 * 2 + 1))
    with pytest.raises(PositionIdDecodeError, match="after terminating"):
        codec_decode_position_id(populated_third_slot)

    pool_only = codec_encode_pool_id(POOL_ADDRESS, tick_spacing=10)
    with pytest.raises(PositionIdDecodeError, match="no legs"):
        codec_decode_position_id(pool_only)
    with pytest.raises(PositionIdDecodeError, match="256 bits"):
        codec_decode_position_id(1 << 256)


def test_codec_format_and_parse_accept_decimal_and_hex() -> None:
    """Render and parse printable identifiers in both bases.

    Returns:
        None: Assertions validate printable forms.

    Raises:
        AssertionError: Raised when printable forms disagree.
    """

    position_id = PositionIdBuilder.for_pool_address(POOL_ADDRESS, tick_spacing=10).add_loan(
        asset=0,
        token_type=0,
        strike=1000,
    ).build()

    assert codec_parse_position_id(codec_format_position_id(position_id)) == position_id
    assert codec_parse_position_id(codec_format_position_id(position_id, as_hex=True)) == position_id
    with pytest.raises(PositionIdDecodeError, match="not decimal or hex"):
        codec_parse_position_id("12ab")
    with pytest.raises(PositionIdDecodeError, match="blank"):
        codec_parse_position_id("  ")


def test_codec_balance_word_decodes_signed_tick_and_mint_context() -> None:
    """Decode mint context fields, including a negative tick, from a balance word.

    Returns:
        None: Assertions validate balance fields.

    Raises:
        AssertionError: Raised when balance fields are misread.
    """

    balance = PositionBalance(
        position_size=10**18,
        pool_utilization0=5_000,
        pool_utilization1=1,
        tick_at_mint=-887_000,
        timestamp_at_mint=1_700_000_123,
        block_at_mint=19_000_000,
        swap_at_mint=True,
    )

    assert codec_decode_position_balance(codec_encode_position_balance(balance)) == balance
    with pytest.raises(BalanceDataDecodeError):
        codec_decode_position_balance(-1)


def _spec(
    asset: int,
    token_type: int,
    strike: int,
    width: int,
    is_long: bool = False,
    option_ratio: int = 1,
    risk_partner: int | None = None,
) -> LegSpec:
    return LegSpec(
        asset=asset,
        option_ratio=option_ratio,
        is_long=is_long,
        token_type=token_type,
        strike=strike,
        width=width,
        risk_partner=risk_partner,
    )


@pytest.mark.parametrize(
    ("tick_spacing", "legs"),
    [
        (10, [_spec(0, 0, 0, 1)]),
        (10, [_spec(1, 1, -8_388_600, 4095, is_long=True, option_ratio=127)]),
        (60, [_spec(0, 1, -120, 0), _spec(1, 0, 180, 3, is_long=True)]),
        (10, [_spec(0, 0, -500, 6, risk_partner=1), _spec(0, 0, -400, 6, is_long=True, risk_partner=0)]),
        (
            1,
            [
                _spec(1, 0, -7, 2, risk_partner=2),
                _spec(0, 1, 8_388_607, 0, option_ratio=3),
                _spec(1, 0, 5, 2, is_long=True, risk_partner=0),
            ],
        ),
        (
            10,
            [
                _spec(0, 1, -1000, 10, risk_partner=3),
                _spec(1, 1, 2000, 11, is_long=True),
                _spec(1, 0, -30, 0, risk_partner=2),
                _spec(0, 1, -900, 10, is_long=True, risk_partner=0),
            ],
        ),
        (
            200,
            [
                _spec(0, 0, -200, 4, risk_partner=1),
                _spec(1, 1, 400, 8, is_long=True, risk_partner=0),
                _spec(1, 0, -600, 2, risk_partner=3),
                _spec(0, 1, 800, 2, is_long=True, risk_partner=2),
            ],
        ),
    ],
)
def test_codec_leg_shapes_survive_encode_and_decode(tick_spacing: int, legs: list[LegSpec]) -> None:
    """Preserve every leg field for one to four legs of mixed assets, tokens, and widths.

    Args:
        tick_spacing: Pool tick spacing used for strike alignment.
        legs: Legs to encode, in slot order.

    Returns:
        None: Assertions validate decoded fields and re-encoding.

    Raises:
        AssertionError: Raised when a leg field changes through the codec.
    """

    pool_id = codec_encode_pool_id(POOL_ADDRESS, tick_spacing=tick_spacing)
    position_id = codec_encode_position_id(pool_id, legs)

    decoded = codec_decode_position_id(position_id)
    expected = [
        LegSpec(
            asset=leg.asset,
            option_ratio=leg.option_ratio,
            is_long=leg.is_long,
            token_type=leg.token_type,
            strike=leg.strike,
            width=leg.width,
            risk_partner=leg_index if leg.risk_partner is None else leg.risk_partner,
        )
        for leg_index, leg in enumerate(legs)
    ]

    assert codec_count_legs(position_id) == len(legs)
    assert [leg.leg_spec() for leg in decoded.legs] == expected
    assert [leg.index for leg in decoded.legs] == list(range(len(legs)))
    assert [leg.tick_upper - leg.tick_lower for leg in decoded.legs] == [
        (leg.width * tick_spacing) // 2 * 2 for leg in legs
    ]
    assert decoded.pool_id == pool_id
    assert codec_encode_position_id(decoded.pool_id, [leg.leg_spec() for leg in decoded.legs]) == position_id
    assert codec_parse_position_id(codec_format_position_id(position_id)) == position_id
