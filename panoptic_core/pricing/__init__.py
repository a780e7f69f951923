"""Pricing package for fixed-point primitives and position greeks."""

from .fixed_point import (
	MAX_SQRT_RATIO,
	MAX_TICK,
	MIN_SQRT_RATIO,
	MIN_TICK,
	Q96,
	Q192,
	fixed_point_div_trunc,
	fixed_point_tick_to_price_x192,
	fixed_point_tick_to_sqrt_price_x96,
)
from .greeks_engine import (
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
from .interfaces import LegGreeksResult, LegPriceRegime, PositionGreeksRequest, PositionGreeksResult

__all__ = [
	"LegGreeksResult",
	"LegPriceRegime",
	"MAX_SQRT_RATIO",
	"MAX_TICK",
	"MIN_SQRT_RATIO",
	"MIN_TICK",
	"PositionGreeksRequest",
	"PositionGreeksResult",
	"Q192",
	"Q96",
	"fixed_point_div_trunc",
	"fixed_point_tick_to_price_x192",
	"fixed_point_tick_to_sqrt_price_x96",
	"greeks_base_value_above_range",
	"greeks_base_value_below_range",
	"greeks_base_value_in_range",
	"greeks_compute_leg_delta",
	"greeks_compute_leg_gamma",
	"greeks_compute_leg_value",
	"greeks_compute_position",
	"greeks_compute_position_delta",
	"greeks_compute_position_gamma",
	"greeks_compute_position_value",
	"greeks_is_call",
	"greeks_is_defined_risk",
	"greeks_leg_price_regime",
]
