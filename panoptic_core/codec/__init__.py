"""Codec package for position identifier and balance word bit layouts."""

from .balance import codec_decode_position_balance, codec_encode_position_balance
from .builder import PositionIdBuilder
from .constants import CODEC_LAYOUT_VERSION, MAX_LEGS
from .errors import (
	BalanceDataDecodeError,
	InvalidLegCountError,
	InvalidLegParameterError,
	InvalidStrikeError,
	InvalidWidthError,
	PositionIdDecodeError,
	PositionIdEncodeError,
	PositionIdError,
)
from .interfaces import DecodedPositionId, LegSpec, PoolContext, PositionBalance, PositionLeg
from .position_id import (
	codec_count_legs,
	codec_decode_pool_id,
	codec_decode_position_id,
	codec_encode_pool_id,
	codec_encode_position_id,
	codec_encode_v4_pool_id,
	codec_format_position_id,
	codec_has_long_leg,
	codec_is_credit_leg,
	codec_is_loan_leg,
	codec_is_short_only,
	codec_is_spread_leg,
	codec_parse_position_id,
)

__all__ = [
	"BalanceDataDecodeError",
	"CODEC_LAYOUT_VERSION",
	"DecodedPositionId",
	"InvalidLegCountError",
	"InvalidLegParameterError",
	"InvalidStrikeError",
	"InvalidWidthError",
	"LegSpec",
	"MAX_LEGS",
	"PoolContext",
	"PositionBalance",
	"PositionIdBuilder",
	"PositionIdDecodeError",
	"PositionIdEncodeError",
	"PositionIdError",
	"PositionLeg",
	"codec_count_legs",
	"codec_decode_pool_id",
	"codec_decode_position_balance",
	"codec_decode_position_id",
	"codec_encode_pool_id",
	"codec_encode_position_balance",
	"codec_encode_position_id",
	"codec_encode_v4_pool_id",
	"codec_format_position_id",
	"codec_has_long_leg",
	"codec_is_credit_leg",
	"codec_is_loan_leg",
	"codec_is_short_only",
	"codec_is_spread_leg",
	"codec_parse_position_id",
]
