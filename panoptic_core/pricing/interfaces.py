"""Typed contracts for fixed-point position value, delta, and gamma computation."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Sequence

from panoptic_core.codec import PositionLeg


class LegPriceRegime(str, Enum):
    """Position of the current quote tick relative to a leg's range."""

    BELOW_RANGE = "below_range"
    IN_RANGE = "in_range"
    ABOVE_RANGE = "above_range"


@dataclass(frozen=True)
class PositionGreeksRequest:
    """Input contract for one position-level greeks computation.

    Attributes:
        legs: Decoded legs of the position.
        current_tick: Current pool tick.
        mint_tick: Pool tick when the position was minted.
        position_size: Position size in contract units.
        pool_tick_spacing: Pool tick spacing.
        asset_index: Optional override of every leg's asset side.
    """

    legs: Sequence[PositionLeg]
    current_tick: int
    mint_tick: int
    position_size: int
    pool_tick_spacing: int
    asset_index: int | None = None


@dataclass(frozen=True)
class LegGreeksResult:
    """Per-leg value, delta, and gamma in numeraire units.

    Attributes:
        leg_index: Slot index of the leg.
        value: Mark value.
        delta: First price derivative.
        gamma: Dollar gamma.
    """

    leg_index: int
    value: int
    delta: int
    gamma: int


@dataclass(frozen=True)
class PositionGreeksResult:
    """Position-level sums of per-leg greeks.

    Attributes:
        value: Summed mark value.
        delta: Summed delta.
        gamma: Summed gamma.
        defined_risk: Whether the position was treated as defined-risk.
        legs: Per-leg results in slot order.
    """

    value: int
    delta: int
    gamma: int
    defined_risk: bool
    legs: tuple[LegGreeksResult, ...]
