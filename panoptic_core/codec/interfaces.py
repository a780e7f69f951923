"""Typed contracts for position identifier codec inputs and outputs."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class LegSpec:
    """Encodable description of one option leg.

    Attributes:
        asset: Asset side flag (`0` token0, `1` token1).
        option_ratio: Number of contracts per position unit (1..127).
        is_long: Whether the leg buys the option.
        token_type: Token moved by the leg (`0` token0, `1` token1).
        strike: Strike tick, signed and aligned to the pool tick spacing.
        width: Range width in tick-spacing units; `0` marks a loan or credit.
        risk_partner: Partner leg index; `None` partners the leg with itself.
    """

    asset: int
    option_ratio: int
    is_long: bool
    token_type: int
    strike: int
    width: int
    risk_partner: int | None = None


@dataclass(frozen=True)
class PositionLeg:
    """One decoded leg with its slot index and derived tick range.

    Attributes:
        index: Slot index inside the identifier (0..3).
        asset: Asset side flag.
        option_ratio: Contracts per position unit.
        is_long: Whether the leg is long.
        token_type: Token moved by the leg.
        risk_partner: Partner leg index.
        strike: Strike tick.
        width: Range width in tick-spacing units.
        tick_lower: Lower range tick; equals the strike when width is zero.
        tick_upper: Upper range tick; equals the strike when width is zero.
    """

    index: int
    asset: int
    option_ratio: int
    is_long: bool
    token_type: int
    risk_partner: int
    strike: int
    width: int
    tick_lower: int
    tick_upper: int

    def leg_spec(self) -> LegSpec:
        """Return the encodable description of this leg.

        Returns:
            LegSpec: Leg fields without slot-derived values.
        """

        return LegSpec(
            asset=self.asset,
            option_ratio=self.option_ratio,
            is_long=self.is_long,
            token_type=self.token_type,
            strike=self.strike,
            width=self.width,
            risk_partner=self.risk_partner,
        )


@dataclass(frozen=True)
class PoolContext:
    """Decoded 64-bit pool context.

    Attributes:
        pool_id: Packed pool identifier.
        address_fragment: 40-bit pool address fragment.
        vegoid: Spread-model parameter stored with the pool.
        tick_spacing: Pool tick spacing.
    """

    pool_id: int
    address_fragment: int
    vegoid: int
    tick_spacing: int


@dataclass(frozen=True)
class DecodedPositionId:
    """Decoded position identifier.

    Attributes:
        position_id: Source identifier value.
        pool_id: Packed pool identifier held in the low 64 bits.
        tick_spacing: Pool tick spacing.
        vegoid: Pool vegoid.
        legs: Ordered populated legs.
    """

    position_id: int
    pool_id: int
    tick_spacing: int
    vegoid: int
    legs: tuple[PositionLeg, ...]

    @property
    def leg_count(self) -> int:
        """Return the number of populated legs."""

        return len(self.legs)


@dataclass(frozen=True)
class PositionBalance:
    """Decoded packed balance word emitted with a mint event.

    Attributes:
        position_size: Position size in contract units.
        pool_utilization0: Token0 pool utilization at mint (basis points scale).
        pool_utilization1: Token1 pool utilization at mint.
        tick_at_mint: Pool tick when the position was minted.
        timestamp_at_mint: Block timestamp at mint.
        block_at_mint: Block number at mint.
        swap_at_mint: Whether the mint swapped in-the-money amounts.
    """

    position_size: int
    pool_utilization0: int
    pool_utilization1: int
    tick_at_mint: int
    timestamp_at_mint: int
    block_at_mint: int
    swap_at_mint: bool
