"""Regression tests for fixed-point leg and position value, delta, and gamma."""

from __future__ import annotations

import pytest

from conftest import build_short_call_position_id
from panoptic_core.codec import LegSpec, codec_decode_position_id
from panoptic_core.pricing import (
    LegPriceRegime,
    PositionGreeksRequest,
    greeks_base_value_above_range,
    greeks_base_value_below_range,
    greeks_base_value_in_range,
    greeks_compute_leg_delta,
    greeks_compute_leg_gamma,
    greeks_compute_leg_value,
    greeks_compute_position,
    greeks_compute_position_delta,
    greeks_compute_position_gamma,
    greeks_compute_position_value,
    greeks_is_call,
    greeks_is_defined_risk,
    greeks_leg_price_regime,
)

POSITION_SIZE = 1_000_000
TICK_SPACING = 10


def _leg(**overrides) -> LegSpec:
    fields = {
        "asset": 0,
        "option_ratio": 1,
        "is_long": False,
        "token_type": 0,
        "strike": 0,
        "width": 10,
    }
    fields.update(overrides)
    return LegSpec(**fields)


def test_greeks_short_call_at_mint_values_to_one_truncation_unit_below_zero() -> None:
    """Value an unmoved short call at minus one because every division truncates.

    Returns:
        None: Assertions validate the at-mint value.

    Raises:
        AssertionError: Raised when truncation differs from the ledger's rule.
    """

    decoded = codec_decode_position_id(build_short_call_position_id(strike=0, width=10))

    value = greeks_compute_leg_value(
        decoded.legs[0],
        current_tick=0,
        mint_tick=0,
        position_size=POSITION_SIZE,
        pool_tick_spacing=TICK_SPACING,
        defined_risk=False,
    )

    assert value == -1
    moved_value = greeks_compute_leg_value(
        decoded.legs[0],
        current_tick=500,
        mint_tick=0,
        position_size=POSITION_SIZE,
        pool_tick_spacing=TICK_SPACING,
        defined_risk=False,
    )
    assert moved_value != value


def test_greeks_is_call_depends_on_asset_side() -> None:
    """Classify calls and puts from token type and asset side.

    Returns:
        None: Assertions validate call classification.

    Raises:
        AssertionError: Raised when calls and puts are swapped.
    """

    assert greeks_is_call(0, asset_is_token0=True)
    assert not greeks_is_call(1, asset_is_token0=True)
    assert greeks_is_call(1, asset_is_token0=False)
    assert not greeks_is_call(0, asset_is_token0=False)


def test_greeks_defined_risk_requires_mixed_direction_on_one_token_type() -> None:
    """Treat a leg set as defined-risk only when one token type mixes long and short.

    Returns:
        None: Assertions validate defined-risk detection.

    Raises:
        AssertionError: Raised when defined-risk detection is wrong.
    """

    assert not greeks_is_defined_risk([_leg()])
    assert not greeks_is_defined_risk([_leg(is_long=True), _leg(token_type=1)])
    assert not greeks_is_defined_risk([_leg(is_long=True), _leg(is_long=True)])
    assert greeks_is_defined_risk([_leg(is_long=True), _leg(is_long=False)])
    assert greeks_is_defined_risk(
        [
            _leg(token_type=1, is_long=True, strike=100),
            _leg(token_type=1, is_long=False, strike=200),
            _leg(),
        ]
    )


def test_greeks_price_regime_includes_both_range_edges() -> None:
    """Classify ticks on the range edges as in range and zero width by strike side.

    Returns:
        None: Assertions validate regime boundaries.

    Raises:
        AssertionError: Raised when a boundary tick is misclassified.
    """

    assert greeks_leg_price_regime(-51, 0, 50) == LegPriceRegime.BELOW_RANGE
    assert greeks_leg_price_regime(-50, 0, 50) == LegPriceRegime.IN_RANGE
    assert greeks_leg_price_regime(50, 0, 50) == LegPriceRegime.IN_RANGE
    assert greeks_leg_price_regime(51, 0, 50) == LegPriceRegime.ABOVE_RANGE
    assert greeks_leg_price_regime(0, 0, 0) == LegPriceRegime.BELOW_RANGE
    assert greeks_leg_price_regime(1, 0, 0) == LegPriceRegime.ABOVE_RANGE


@pytest.mark.parametrize(
    ("strike_tick", "half_width_tick"),
    [(0, 50), (0, 5), (120, 250), (-4000, 50), (4000, 5), (-50, 1000)],
)
@pytest.mark.parametrize("multiplier", [POSITION_SIZE, -POSITION_SIZE, 7])
def test_greeks_base_value_is_continuous_at_range_edges(strike_tick: int, half_width_tick: int, multiplier: int) -> None:
    """Match the in-range formula to the outer formulas at both edges within one unit.

    Args:
        strike_tick: Quote-normalized strike tick.
        half_width_tick: Half of the range width in ticks.
        multiplier: Signed size multiplier.

    Returns:
        None: Assertions validate boundary continuity.

    Raises:
        AssertionError: Raised when the formulas disagree beyond truncation.
    """

    lower_tick = strike_tick - half_width_tick
    upper_tick = strike_tick + half_width_tick

    lower_inside = greeks_base_value_in_range(multiplier, lower_tick, strike_tick, half_width_tick)
    lower_outside = greeks_base_value_below_range(multiplier, lower_tick)
    upper_inside = greeks_base_value_in_range(multiplier, upper_tick, strike_tick, half_width_tick)
    upper_outside = greeks_base_value_above_range(multiplier, strike_tick)

    assert abs(lower_inside - lower_outside) <= 1
    assert abs(upper_inside - upper_outside) <= 1


def test_greeks_base_value_in_range_rejects_zero_width() -> None:
    """Refuse the in-range formula for a zero half width."""

    with pytest.raises(ValueError, match="half_width_tick"):
        greeks_base_value_in_range(POSITION_SIZE, 0, 0, 0)


def test_greeks_long_and_short_delta_and_gamma_are_exact_negatives() -> None:
    """Negate delta and gamma exactly when only the direction flips.

    Returns:
        None: Assertions validate direction symmetry.

    Raises:
        AssertionError: Raised when truncation breaks sign symmetry.
    """

    short_leg = _leg(width=100)
    long_leg = _leg(width=100, is_long=True)

    short_delta = greeks_compute_leg_delta(short_leg, 70, POSITION_SIZE, TICK_SPACING, 0, False)
    long_delta = greeks_compute_leg_delta(long_leg, 70, POSITION_SIZE, TICK_SPACING, 0, False)
    short_gamma = greeks_compute_leg_gamma(short_leg, 0, POSITION_SIZE, TICK_SPACING)
    long_gamma = greeks_compute_leg_gamma(long_leg, 0, POSITION_SIZE, TICK_SPACING)

    assert short_delta != 0
    assert long_delta == -short_delta
    assert short_gamma < 0 < long_gamma
    assert long_gamma == -short_gamma


def test_greeks_gamma_is_zero_outside_range_and_for_zero_width() -> None:
    """Return exact zero gamma outside the range and for zero-width legs.

    Returns:
        None: Assertions validate gamma support.

    Raises:
        AssertionError: Raised when gamma leaks outside its support.
    """

    assert greeks_compute_leg_gamma(_leg(width=10), 100_000, POSITION_SIZE, TICK_SPACING) == 0
    assert greeks_compute_leg_gamma(_leg(width=10), 51, POSITION_SIZE, TICK_SPACING) == 0
    assert greeks_compute_leg_gamma(_leg(width=10), 50, POSITION_SIZE, TICK_SPACING) != 0
    assert greeks_compute_leg_gamma(_leg(width=0), 0, POSITION_SIZE, TICK_SPACING) == 0


def test_greeks_zero_width_put_delta_steps_at_strike() -> None:
    """Give a zero-width short put full delta below the strike and none above.

    Returns:
        None: Assertions validate the zero-width delta step.

    Raises:
        AssertionError: Raised when zero-width delta is wrong.
    """

    below_put = _leg(width=0, strike=1000, token_type=0, asset=1)
    above_put = _leg(width=0, strike=-1000, token_type=0, asset=1)

    assert greeks_compute_leg_delta(below_put, -500, POSITION_SIZE, TICK_SPACING, 0, False) == POSITION_SIZE
    assert greeks_compute_leg_delta(above_put, 500, POSITION_SIZE, TICK_SPACING, 0, False) == 0

    below_value = greeks_compute_leg_value(_leg(width=0), -500, 0, POSITION_SIZE, TICK_SPACING, False)
    above_value = greeks_compute_leg_value(_leg(width=0), 500, 0, POSITION_SIZE, TICK_SPACING, False)
    assert below_value != above_value


def test_greeks_asset_index_override_changes_the_quote_orientation() -> None:
    """Use the override asset side instead of the leg's own asset flag.

    Returns:
        None: Assertions validate the asset override.

    Raises:
        AssertionError: Raised when the override is ignored.
    """

    leg = _leg()

    default_value = greeks_compute_leg_value(leg, 50, 0, POSITION_SIZE, TICK_SPACING, False)
    explicit_value = greeks_compute_leg_value(leg, 50, 0, POSITION_SIZE, TICK_SPACING, False, asset_index=0)
    flipped_value = greeks_compute_leg_value(leg, 50, 0, POSITION_SIZE, TICK_SPACING, False, asset_index=1)

    assert explicit_value == default_value
    assert flipped_value != default_value


def test_greeks_position_sums_leg_results_and_matches_single_accessors() -> None:
    """Sum per-leg greeks and agree with the single-value accessors.

    Returns:
        None: Assertions validate position aggregation.

    Raises:
        AssertionError: Raised when sums or accessors disagree.
    """

    request = PositionGreeksRequest(
        legs=[_leg(is_long=True, strike=-100), _leg(strike=100)],
        current_tick=20,
        mint_tick=0,
        position_size=POSITION_SIZE,
        pool_tick_spacing=TICK_SPACING,
    )

    result = greeks_compute_position(request)

    assert result.defined_risk is True
    assert [leg.leg_index for leg in result.legs] == [0, 1]
    assert result.value == sum(leg.value for leg in result.legs)
    assert result.delta == sum(leg.delta for leg in result.legs)
    assert result.gamma == sum(leg.gamma for leg in result.legs)
    assert greeks_compute_position_value(request) == result.value
    assert greeks_compute_position_delta(request) == result.delta
    assert greeks_compute_position_gamma(request) == result.gamma


def test_greeks_reject_invalid_numeric_inputs() -> None:
    """Reject negative sizes, non-positive tick spacing, and empty leg sets.

    Returns:
        None: Assertions validate input guards.

    Raises:
        AssertionError: Raised when invalid inputs are accepted.
    """

    with pytest.raises(ValueError, match="position_size"):
        greeks_compute_leg_value(_leg(), 0, 0, -1, TICK_SPACING, False)
    with pytest.raises(ValueError, match="pool_tick_spacing"):
        greeks_compute_leg_gamma(_leg(), 0, POSITION_SIZE, 0)
    with pytest.raises(ValueError, match="legs"):
        greeks_compute_position(
            PositionGreeksRequest(
                legs=[],
                current_tick=0,
                mint_tick=0,
                position_size=POSITION_SIZE,
                pool_tick_spacing=TICK_SPACING,
            )
        )
