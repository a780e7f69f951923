"""Typed exceptions for position identifier encode and decode failures."""

from __future__ import annotations


class PositionIdError(ValueError):
    """Base exception for position identifier codec failures.

    Attributes:
        error_code: Stable machine-readable failure code.
    """

    default_error_code = "position_id_error"

    def __init__(self, message: str, error_code: str | None = None):
        super().__init__(message)
        self.error_code = error_code or self.default_error_code


class PositionIdEncodeError(PositionIdError):
    """Encode-phase contract failure; no identifier is produced."""

    default_error_code = "position_id_encode_error"


class InvalidLegCountError(PositionIdEncodeError):
    """Leg list is empty or holds more legs than the identifier has slots."""

    default_error_code = "invalid_leg_count"


class InvalidStrikeError(PositionIdEncodeError):
    """Strike is outside int24 or not aligned to the pool tick spacing."""

    default_error_code = "invalid_strike"


class InvalidWidthError(PositionIdEncodeError):
    """Width is out of range or odd where a spread needs a symmetric range."""

    default_error_code = "invalid_width"


class InvalidLegParameterError(PositionIdEncodeError):
    """Asset, token type, ratio, or risk partner value is not encodable."""

    default_error_code = "invalid_leg_parameter"


class PositionIdDecodeError(PositionIdError):
    """Identifier bit pattern is malformed or internally inconsistent."""

    default_error_code = "position_id_decode_error"


class BalanceDataDecodeError(PositionIdError):
    """Packed position balance word is outside the 256-bit range."""

    default_error_code = "balance_data_decode_error"
