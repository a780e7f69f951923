"""Bit-layout constants for position identifiers and position balance words."""

CODEC_LAYOUT_VERSION = 1

MAX_LEGS = 4

POOL_ID_BITS = 64
POOL_ADDRESS_FRAGMENT_BITS = 40
POOL_ADDRESS_FRAGMENT_MASK = (1 << POOL_ADDRESS_FRAGMENT_BITS) - 1
VEGOID_SHIFT = 40
VEGOID_MASK = 0xFF
TICK_SPACING_SHIFT = 48
TICK_SPACING_MASK = 0xFFFF
POOL_ID_MASK = (1 << POOL_ID_BITS) - 1
DEFAULT_VEGOID = 4

LEG_BITS = 48
LEG_MASK = (1 << LEG_BITS) - 1
LEG_ASSET_SHIFT = 0
LEG_ASSET_MASK = 0x1
LEG_RATIO_SHIFT = 1
LEG_RATIO_MASK = 0x7F
LEG_IS_LONG_SHIFT = 8
LEG_IS_LONG_MASK = 0x1
LEG_TOKEN_TYPE_SHIFT = 9
LEG_TOKEN_TYPE_MASK = 0x1
LEG_RISK_PARTNER_SHIFT = 10
LEG_RISK_PARTNER_MASK = 0x3
LEG_STRIKE_SHIFT = 12
LEG_STRIKE_MASK = 0xFFFFFF
LEG_WIDTH_SHIFT = 36
LEG_WIDTH_MASK = 0xFFF

MAX_OPTION_RATIO = 127
MAX_WIDTH = 4095
MIN_STRIKE = -(1 << 23)
MAX_STRIKE = (1 << 23) - 1

POSITION_ID_BITS = POOL_ID_BITS + LEG_BITS * MAX_LEGS
MAX_POSITION_ID = (1 << POSITION_ID_BITS) - 1

BALANCE_POSITION_SIZE_MASK = (1 << 128) - 1
BALANCE_UTILIZATION0_SHIFT = 128
BALANCE_UTILIZATION1_SHIFT = 144
BALANCE_UTILIZATION_MASK = 0xFFFF
BALANCE_TICK_AT_MINT_SHIFT = 160
BALANCE_TICK_AT_MINT_MASK = 0xFFFFFF
BALANCE_TIMESTAMP_AT_MINT_SHIFT = 184
BALANCE_TIMESTAMP_AT_MINT_MASK = 0xFFFFFFFF
BALANCE_BLOCK_AT_MINT_SHIFT = 216
BALANCE_BLOCK_AT_MINT_MASK = (1 << 39) - 1
BALANCE_SWAP_AT_MINT_SHIFT = 255


def leg_slot_shift(leg_index: int) -> int:
    """Return the bit offset of one leg slot inside a position identifier."""

    return POOL_ID_BITS + LEG_BITS * leg_index
