"""Incremental builder that accumulates legs into one position identifier."""

from __future__ import annotations

from .constants import DEFAULT_VEGOID, MAX_LEGS, MAX_OPTION_RATIO, MAX_STRIKE, MAX_WIDTH, MIN_STRIKE
from .errors import InvalidLegCountError, InvalidLegParameterError, InvalidStrikeError, InvalidWidthError
from .interfaces import LegSpec
from .position_id import (
    codec_decode_pool_id,
    codec_encode_pool_id,
    codec_encode_position_id,
    codec_encode_v4_pool_id,
)


class PositionIdBuilder:
    """Fluent builder for multi-leg position identifiers.

    Leg order follows addition order into the identifier slots. Single-leg
    field checks run on each addition; cross-leg checks such as risk partner
    mutuality run in `build`.
    """

    def __init__(self, pool_id: int):
        """Initialize an empty builder for one pool.

        Args:
            pool_id: Packed 64-bit pool identifier.

        Returns:
            None: Initializer does not return a value.

        Raises:
            ValueError: Raised when the pool id carries zero tick spacing.
        """

        pool_context = codec_decode_pool_id(pool_id)
        if pool_context.tick_spacing == 0:
            raise ValueError("pool_id tick spacing must be greater than zero")
        self._pool_id = pool_context.pool_id
        self._tick_spacing = pool_context.tick_spacing
        self._legs: list[LegSpec] = []

    @classmethod
    def for_pool_address(cls, pool_address: str, tick_spacing: int, vegoid: int = DEFAULT_VEGOID) -> PositionIdBuilder:
        """Create a builder from a pool address."""

        return cls(codec_encode_pool_id(pool_address, tick_spacing=tick_spacing, vegoid=vegoid))

    @classmethod
    def for_pool_key_id(cls, pool_key_id: str, tick_spacing: int, vegoid: int = DEFAULT_VEGOID) -> PositionIdBuilder:
        """Create a builder from a 32-byte pool key id."""

        return cls(codec_encode_v4_pool_id(pool_key_id, tick_spacing=tick_spacing, vegoid=vegoid))

    def add_leg(
        self,
        asset: int,
        option_ratio: int,
        is_long: bool,
        token_type: int,
        strike: int,
        width: int,
        risk_partner: int | None = None,
    ) -> PositionIdBuilder:
        """Append one leg.

        Args:
            asset: Asset side flag.
            option_ratio: Contracts per position unit.
            is_long: Whether the leg is long.
            token_type: Token moved by the leg.
            strike: Strike tick.
            width: Range width; `0` adds a loan or credit.
            risk_partner: Partner leg index; defaults to this leg's own index.

        Returns:
            PositionIdBuilder: This builder.

        Raises:
            InvalidLegCountError: Raised when all four slots are already used.
            InvalidLegParameterError: Raised for a non-encodable asset, token type, ratio, or partner.
            InvalidStrikeError: Raised for a strike outside int24 or off the tick spacing grid.
            InvalidWidthError: Raised for a width outside 0..4095.
        """

        leg_index = len(self._legs)
        if leg_index >= MAX_LEGS:
            raise InvalidLegCountError(f"position supports at most {MAX_LEGS} legs")
        if option_ratio < 1 or option_ratio > MAX_OPTION_RATIO:
            raise InvalidLegParameterError(f"option_ratio must be between 1 and {MAX_OPTION_RATIO}")
        if width < 0 or width > MAX_WIDTH:
            raise InvalidWidthError(f"width must be between 0 and {MAX_WIDTH}")
        if strike < MIN_STRIKE or strike > MAX_STRIKE:
            raise InvalidStrikeError(f"strike {strike} is outside int24")
        if strike % self._tick_spacing != 0:
            raise InvalidStrikeError(f"strike {strike} is not aligned to tick spacing {self._tick_spacing}")
        if asset not in (0, 1):
            raise InvalidLegParameterError("asset must be 0 or 1")
        if token_type not in (0, 1):
            raise InvalidLegParameterError("token_type must be 0 or 1")
        resolved_partner = leg_index if risk_partner is None else risk_partner
        if resolved_partner < 0 or resolved_partner >= MAX_LEGS:
            raise InvalidLegParameterError(f"risk_partner must be between 0 and {MAX_LEGS - 1}")

        self._legs.append(
            LegSpec(
                asset=asset,
                option_ratio=option_ratio,
                is_long=is_long,
                token_type=token_type,
                strike=strike,
                width=width,
                risk_partner=resolved_partner,
            )
        )
        return self

    def add_call(
        self,
        strike: int,
        width: int,
        is_long: bool,
        option_ratio: int = 1,
        asset: int = 0,
        risk_partner: int | None = None,
    ) -> PositionIdBuilder:
        """Append a call leg, whose token type equals its asset."""

        return self.add_leg(
            asset=asset,
            option_ratio=option_ratio,
            is_long=is_long,
            token_type=asset,
            strike=strike,
            width=width,
            risk_partner=risk_partner,
        )

    def add_put(
        self,
        strike: int,
        width: int,
        is_long: bool,
        option_ratio: int = 1,
        asset: int = 0,
        risk_partner: int | None = None,
    ) -> PositionIdBuilder:
        """Append a put leg, whose token type is the opposite of its asset."""

        return self.add_leg(
            asset=asset,
            option_ratio=option_ratio,
            is_long=is_long,
            token_type=1 - asset,
            strike=strike,
            width=width,
            risk_partner=risk_partner,
        )

    def add_loan(
        self,
        asset: int,
        token_type: int,
        strike: int,
        option_ratio: int = 1,
        risk_partner: int | None = None,
    ) -> PositionIdBuilder:
        """Append a loan: a short zero-width leg."""

        return self.add_leg(
            asset=asset,
            option_ratio=option_ratio,
            is_long=False,
            token_type=token_type,
            strike=strike,
            width=0,
            risk_partner=risk_partner,
        )

    def add_credit(
        self,
        asset: int,
        token_type: int,
        strike: int,
        option_ratio: int = 1,
        risk_partner: int | None = None,
    ) -> PositionIdBuilder:
        """Append a credit: a long zero-width leg."""

        return self.add_leg(
            asset=asset,
            option_ratio=option_ratio,
            is_long=True,
            token_type=token_type,
            strike=strike,
            width=0,
            risk_partner=risk_partner,
        )

    def leg_count(self) -> int:
        """Return the number of legs added so far."""

        return len(self._legs)

    def legs(self) -> tuple[LegSpec, ...]:
        """Return the legs added so far in slot order."""

        return tuple(self._legs)

    def reset(self) -> PositionIdBuilder:
        """Drop all added legs and keep the pool context."""

        self._legs.clear()
        return self

    def build(self) -> int:
        """Encode the accumulated legs into one identifier.

        Returns:
            int: Position identifier.

        Raises:
            InvalidLegCountError: Raised when no legs were added.
            PositionIdEncodeError: Raised when cross-leg validation fails.
        """

        if not self._legs:
            raise InvalidLegCountError("cannot build a position without legs")
        return codec_encode_position_id(self._pool_id, self._legs)
