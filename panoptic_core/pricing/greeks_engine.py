"""Fixed-point value, delta, and gamma for option legs and multi-leg positions.

All amounts are integers in numeraire units. Prices are carried as Q96 square
roots (`sqrt(1.0001^tick) * 2^96`) and squared into Q192 where needed; every
signed division goes through `fixed_point_div_trunc` so results match the
ledger's own arithmetic.

Ticks are normalized to quote terms (negated when the leg's asset is token0),
which lets one set of formulas serve both token orderings.
"""

from __future__ import annotations

from typing import Sequence

from panoptic_core.codec import LegSpec, PositionLeg

from .fixed_point import Q96, Q192, fixed_point_div_trunc, fixed_point_tick_to_price_x192, fixed_point_tick_to_sqrt_price_x96
from .interfaces import LegGreeksResult, LegPriceRegime, PositionGreeksRequest, PositionGreeksResult

LegInput = PositionLeg | LegSpec


def greeks_is_call(token_type: int, asset_is_token0: bool) -> bool:
    """Return whether a leg is a call given its token type and asset side.

    Args:
        token_type: Token moved by the leg.
        asset_is_token0: Whether the position's asset is token0.

    Returns:
        bool: `True` for a call, `False` for a put.
    """

    return token_type == 0 if asset_is_token0 else token_type == 1


def greeks_is_defined_risk(legs: Sequence[LegInput]) -> bool:
    """Return whether a leg set holds both long and short exposure on one token type.

    Args:
        legs: Legs of one position.

    Returns:
        bool: `True` when two or more legs share a token type and mix long and short.
    """

    if len(legs) < 2:
        return False
    for token_type in (0, 1):
        group = [leg for leg in legs if leg.token_type == token_type]
        if len(group) >= 2 and any(leg.is_long for leg in group) and any(not leg.is_long for leg in group):
            return True
    return False


def greeks_leg_price_regime(q_current_tick: int, q_strike_tick: int, half_width_tick: int) -> LegPriceRegime:
    """Classify a quote tick against a leg's `[strike - hw, strike + hw]` range.

    Zero-width legs have no in-range regime: at or below the strike is
    below-range, anything above is above-range.

    Args:
        q_current_tick: Quote-normalized current tick.
        q_strike_tick: Quote-normalized strike tick.
        half_width_tick: Half of the range width in ticks.

    Returns:
        LegPriceRegime: Price regime for the tick.
    """

    if half_width_tick == 0:
        if q_current_tick <= q_strike_tick:
            return LegPriceRegime.BELOW_RANGE
        return LegPriceRegime.ABOVE_RANGE
    if q_current_tick < q_strike_tick - half_width_tick:
        return LegPriceRegime.BELOW_RANGE
    if q_current_tick > q_strike_tick + half_width_tick:
        return LegPriceRegime.ABOVE_RANGE
    return LegPriceRegime.IN_RANGE


def greeks_base_value_below_range(multiplier: int, q_current_tick: int) -> int:
    """Return the below-range base value `m * P`."""

    return fixed_point_div_trunc(multiplier * fixed_point_tick_to_price_x192(q_current_tick), Q192)


def greeks_base_value_above_range(multiplier: int, q_strike_tick: int) -> int:
    """Return the above-range base value `m * K`."""

    return fixed_point_div_trunc(multiplier * fixed_point_tick_to_price_x192(q_strike_tick), Q192)


def greeks_base_value_in_range(multiplier: int, q_current_tick: int, q_strike_tick: int, half_width_tick: int) -> int:
    """Return the in-range base value `m * (2*sqrt(P*K*r) - P - K) / (r - 1)`.

    Args:
        multiplier: Signed size multiplier (`+size*ratio` short, `-size*ratio` long).
        q_current_tick: Quote-normalized current tick.
        q_strike_tick: Quote-normalized strike tick.
        half_width_tick: Half of the range width in ticks; must be positive.

    Returns:
        int: Base value in numeraire units.

    Raises:
        ValueError: Raised when the half width is not positive.
    """

    if half_width_tick <= 0:
        raise ValueError("half_width_tick must be greater than zero for the in-range formula")

    price_x192 = fixed_point_tick_to_price_x192(q_current_tick)
    strike_x192 = fixed_point_tick_to_price_x192(q_strike_tick)
    sqrt_pkr_x96 = fixed_point_tick_to_sqrt_price_x96(q_current_tick + q_strike_tick + half_width_tick)
    r_x192 = fixed_point_tick_to_price_x192(half_width_tick)

    numerator = multiplier * (2 * sqrt_pkr_x96 * Q96 - price_x192 - strike_x192)
    return fixed_point_div_trunc(numerator, r_x192 - Q192)


def greeks_compute_leg_value(
    leg: LegInput,
    current_tick: int,
    mint_tick: int,
    position_size: int,
    pool_tick_spacing: int,
    defined_risk: bool,
    asset_index: int | None = None,
) -> int:
    """Compute the mark value of one leg.

    Args:
        leg: Decoded or specified leg.
        current_tick: Current pool tick.
        mint_tick: Pool tick at mint.
        position_size: Position size in contract units.
        pool_tick_spacing: Pool tick spacing.
        defined_risk: Whether the owning position is defined-risk.
        asset_index: Optional asset side override.

    Returns:
        int: Leg value in numeraire units.

    Raises:
        ValueError: Raised for negative size, non-positive tick spacing, or out-of-range ticks.
    """

    _greeks_validate_inputs(position_size=position_size, pool_tick_spacing=pool_tick_spacing)
    asset_is_token0 = _greeks_asset_is_token0(leg, asset_index)
    q_current_tick = _greeks_quote_tick(current_tick, asset_is_token0)
    q_mint_tick = _greeks_quote_tick(mint_tick, asset_is_token0)
    q_strike_tick = _greeks_quote_tick(leg.strike, asset_is_token0)
    half_width_tick = _greeks_half_width_tick(leg, pool_tick_spacing)
    multiplier = _greeks_value_multiplier(leg, position_size)
    is_put = not greeks_is_call(leg.token_type, asset_is_token0)

    regime = greeks_leg_price_regime(q_current_tick, q_strike_tick, half_width_tick)
    if regime == LegPriceRegime.BELOW_RANGE:
        base_value = greeks_base_value_below_range(multiplier, q_current_tick)
    elif regime == LegPriceRegime.ABOVE_RANGE:
        base_value = greeks_base_value_above_range(multiplier, q_strike_tick)
    else:
        base_value = greeks_base_value_in_range(multiplier, q_current_tick, q_strike_tick, half_width_tick)

    mint_regime = greeks_leg_price_regime(q_mint_tick, q_strike_tick, half_width_tick)
    if is_put:
        itm_value = _greeks_put_itm_value(multiplier, mint_regime, q_mint_tick, q_strike_tick, half_width_tick)
        debt_value = fixed_point_div_trunc(-multiplier * fixed_point_tick_to_price_x192(q_strike_tick), Q192)
        return debt_value + base_value + itm_value

    itm_amount = _greeks_call_itm_amount(multiplier, mint_regime, q_mint_tick, q_strike_tick, half_width_tick)
    price_x192 = fixed_point_tick_to_price_x192(q_current_tick)
    debt_value = fixed_point_div_trunc(-multiplier * price_x192, Q192)
    anchor_price_x192 = fixed_point_tick_to_price_x192(q_mint_tick) if defined_risk else price_x192
    return debt_value + base_value + fixed_point_div_trunc(itm_amount * anchor_price_x192, Q192)


def greeks_compute_leg_delta(
    leg: LegInput,
    current_tick: int,
    position_size: int,
    pool_tick_spacing: int,
    mint_tick: int | None,
    defined_risk: bool,
    asset_index: int | None = None,
) -> int:
    """Compute the first price derivative of one leg.

    Args:
        leg: Decoded or specified leg.
        current_tick: Current pool tick.
        position_size: Position size in contract units.
        pool_tick_spacing: Pool tick spacing.
        mint_tick: Pool tick at mint; `None` omits the call in-the-money term.
        defined_risk: Whether the owning position is defined-risk.
        asset_index: Optional asset side override.

    Returns:
        int: Leg delta in asset units.

    Raises:
        ValueError: Raised for negative size, non-positive tick spacing, or out-of-range ticks.
    """

    _greeks_validate_inputs(position_size=position_size, pool_tick_spacing=pool_tick_spacing)
    asset_is_token0 = _greeks_asset_is_token0(leg, asset_index)
    q_current_tick = _greeks_quote_tick(current_tick, asset_is_token0)
    q_strike_tick = _greeks_quote_tick(leg.strike, asset_is_token0)
    half_width_tick = _greeks_half_width_tick(leg, pool_tick_spacing)
    multiplier = _greeks_value_multiplier(leg, position_size)

    regime = greeks_leg_price_regime(q_current_tick, q_strike_tick, half_width_tick)
    if regime == LegPriceRegime.BELOW_RANGE:
        value_delta = multiplier
    elif regime == LegPriceRegime.ABOVE_RANGE:
        value_delta = 0
    else:
        sqrt_price_x96 = fixed_point_tick_to_sqrt_price_x96(q_current_tick)
        sqrt_kr_x96 = fixed_point_tick_to_sqrt_price_x96(q_strike_tick + half_width_tick)
        r_x192 = fixed_point_tick_to_price_x192(half_width_tick)
        value_delta = fixed_point_div_trunc(
            multiplier * (sqrt_kr_x96 - sqrt_price_x96) * Q192,
            sqrt_price_x96 * (r_x192 - Q192),
        )

    if not greeks_is_call(leg.token_type, asset_is_token0):
        return value_delta

    debt_delta = -multiplier
    if defined_risk or mint_tick is None:
        return debt_delta + value_delta

    q_mint_tick = _greeks_quote_tick(mint_tick, asset_is_token0)
    mint_regime = greeks_leg_price_regime(q_mint_tick, q_strike_tick, half_width_tick)
    itm_delta = _greeks_call_itm_amount(multiplier, mint_regime, q_mint_tick, q_strike_tick, half_width_tick)
    return debt_delta + value_delta + itm_delta


def greeks_compute_leg_gamma(
    leg: LegInput,
    current_tick: int,
    position_size: int,
    pool_tick_spacing: int,
    asset_index: int | None = None,
) -> int:
    """Compute the dollar gamma of one leg.

    Gamma is zero for zero-width legs and outside `[strike - hw, strike + hw]`;
    long legs carry positive gamma.

    Args:
        leg: Decoded or specified leg.
        current_tick: Current pool tick.
        position_size: Position size in contract units.
        pool_tick_spacing: Pool tick spacing.
        asset_index: Optional asset side override.

    Returns:
        int: Leg gamma in numeraire units.

    Raises:
        ValueError: Raised for negative size, non-positive tick spacing, or out-of-range ticks.
    """

    _greeks_validate_inputs(position_size=position_size, pool_tick_spacing=pool_tick_spacing)
    half_width_tick = _greeks_half_width_tick(leg, pool_tick_spacing)
    if half_width_tick == 0:
        return 0

    asset_is_token0 = _greeks_asset_is_token0(leg, asset_index)
    q_current_tick = _greeks_quote_tick(current_tick, asset_is_token0)
    q_strike_tick = _greeks_quote_tick(leg.strike, asset_is_token0)
    if greeks_leg_price_regime(q_current_tick, q_strike_tick, half_width_tick) != LegPriceRegime.IN_RANGE:
        return 0

    gamma_multiplier = -_greeks_value_multiplier(leg, position_size)
    sqrt_kpr_x96 = fixed_point_tick_to_sqrt_price_x96(q_strike_tick + q_current_tick + half_width_tick)
    r_x192 = fixed_point_tick_to_price_x192(half_width_tick)
    return fixed_point_div_trunc(gamma_multiplier * sqrt_kpr_x96 * Q96, 2 * (r_x192 - Q192))


def greeks_compute_position(request: PositionGreeksRequest) -> PositionGreeksResult:
    """Compute value, delta, and gamma for every leg and sum them per position.

    Args:
        request: Position greeks request.

    Returns:
        PositionGreeksResult: Summed and per-leg results.

    Raises:
        ValueError: Raised when the request has no legs or invalid numeric inputs.
    """

    if not request.legs:
        raise ValueError("legs must not be empty")

    defined_risk = greeks_is_defined_risk(request.legs)
    leg_results: list[LegGreeksResult] = []
    for slot_index, leg in enumerate(request.legs):
        leg_results.append(
            LegGreeksResult(
                leg_index=getattr(leg, "index", slot_index),
                value=greeks_compute_leg_value(
                    leg,
                    current_tick=request.current_tick,
                    mint_tick=request.mint_tick,
                    position_size=request.position_size,
                    pool_tick_spacing=request.pool_tick_spacing,
                    defined_risk=defined_risk,
                    asset_index=request.asset_index,
                ),
                delta=greeks_compute_leg_delta(
                    leg,
                    current_tick=request.current_tick,
                    position_size=request.position_size,
                    pool_tick_spacing=request.pool_tick_spacing,
                    mint_tick=request.mint_tick,
                    defined_risk=defined_risk,
                    asset_index=request.asset_index,
                ),
                gamma=greeks_compute_leg_gamma(
                    leg,
                    current_tick=request.current_tick,
                    position_size=request.position_size,
                    pool_tick_spacing=request.pool_tick_spacing,
                    asset_index=request.asset_index,
                ),
            )
        )

    return PositionGreeksResult(
        value=sum(result.value for result in leg_results),
        delta=sum(result.delta for result in leg_results),
        gamma=sum(result.gamma for result in leg_results),
        defined_risk=defined_risk,
        legs=tuple(leg_results),
    )


def greeks_compute_position_value(request: PositionGreeksRequest) -> int:
    """Return the summed position value."""

    return greeks_compute_position(request).value


def greeks_compute_position_delta(request: PositionGreeksRequest) -> int:
    """Return the summed position delta."""

    return greeks_compute_position(request).delta


def greeks_compute_position_gamma(request: PositionGreeksRequest) -> int:
    """Return the summed position gamma."""

    return greeks_compute_position(request).gamma


def _greeks_validate_inputs(position_size: int, pool_tick_spacing: int) -> None:
    if position_size < 0:
        raise ValueError("position_size must not be negative")
    if pool_tick_spacing <= 0:
        raise ValueError("pool_tick_spacing must be greater than zero")


def _greeks_asset_is_token0(leg: LegInput, asset_index: int | None) -> bool:
    if asset_index is not None:
        return asset_index == 0
    return leg.asset == 0


def _greeks_quote_tick(tick: int, asset_is_token0: bool) -> int:
    return -tick if asset_is_token0 else tick


def _greeks_half_width_tick(leg: LegInput, pool_tick_spacing: int) -> int:
    return (leg.width * pool_tick_spacing) // 2


def _greeks_value_multiplier(leg: LegInput, position_size: int) -> int:
    contracts = position_size * leg.option_ratio
    return -contracts if leg.is_long else contracts


def _greeks_put_itm_value(
    multiplier: int,
    mint_regime: LegPriceRegime,
    q_mint_tick: int,
    q_strike_tick: int,
    half_width_tick: int,
) -> int:
    if mint_regime == LegPriceRegime.ABOVE_RANGE:
        return 0
    if mint_regime == LegPriceRegime.BELOW_RANGE:
        strike_x192 = fixed_point_tick_to_price_x192(q_strike_tick)
        mint_price_x192 = fixed_point_tick_to_price_x192(q_mint_tick)
        return fixed_point_div_trunc(multiplier * (strike_x192 - mint_price_x192), Q192)

    sqrt_kr_x96 = fixed_point_tick_to_sqrt_price_x96(q_strike_tick + half_width_tick)
    sqrt_mint_x96 = fixed_point_tick_to_sqrt_price_x96(q_mint_tick)
    r_x192 = fixed_point_tick_to_price_x192(half_width_tick)
    difference_x96 = sqrt_kr_x96 - sqrt_mint_x96
    return fixed_point_div_trunc(multiplier * difference_x96 * difference_x96, r_x192 - Q192)


def _greeks_call_itm_amount(
    multiplier: int,
    mint_regime: LegPriceRegime,
    q_mint_tick: int,
    q_strike_tick: int,
    half_width_tick: int,
) -> int:
    # Asset-denominated in-the-money amount; shared by value and delta.
    if mint_regime == LegPriceRegime.BELOW_RANGE:
        return 0
    if mint_regime == LegPriceRegime.ABOVE_RANGE:
        strike_x192 = fixed_point_tick_to_price_x192(q_strike_tick)
        mint_price_x192 = fixed_point_tick_to_price_x192(q_mint_tick)
        return fixed_point_div_trunc(multiplier * (mint_price_x192 - strike_x192), mint_price_x192)

    sqrt_r_x96 = fixed_point_tick_to_sqrt_price_x96(half_width_tick)
    sqrt_strike_x96 = fixed_point_tick_to_sqrt_price_x96(q_strike_tick)
    sqrt_mint_x96 = fixed_point_tick_to_sqrt_price_x96(q_mint_tick)
    r_x192 = sqrt_r_x96 * sqrt_r_x96
    sqrt_k_over_pm_x96 = (sqrt_strike_x96 * Q96) // sqrt_mint_x96
    difference_x96 = sqrt_r_x96 - sqrt_k_over_pm_x96
    return fixed_point_div_trunc(multiplier * difference_x96 * difference_x96, r_x192 - Q192)
