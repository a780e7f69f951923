"""Event signatures and keccak-256 topic hashes for position logs."""

from __future__ import annotations

import re

from Crypto.Hash import keccak

OPTION_MINTED_SIGNATURE = "OptionMinted(address,uint256,uint256)"
OPTION_BURNT_SIGNATURE = "OptionBurnt(address,uint256,uint256,int256[4])"
PREMIUM_SETTLED_SIGNATURE = "PremiumSettled(address,uint256,uint256,int256)"

_ADDRESS_PATTERN = re.compile(r"^0x[0-9a-fA-F]{40}$")


def mapping_event_topic(signature: str) -> str:
    """Return the topic0 hash of an event signature.

    Args:
        signature: Canonical event signature, for example `Transfer(address,address,uint256)`.

    Returns:
        str: 0x-prefixed lowercase keccak-256 hex digest.

    Raises:
        ValueError: Raised when the signature is blank.
    """

    if not signature.strip():
        raise ValueError("signature must not be blank")
    digest = keccak.new(digest_bits=256)
    digest.update(signature.encode("ascii"))
    return "0x" + digest.hexdigest()


def mapping_account_topic(account: str) -> str:
    """Left-pad an address into a 32-byte indexed topic.

    Args:
        account: 0x-prefixed 20-byte address.

    Returns:
        str: 0x-prefixed 32-byte lowercase topic.

    Raises:
        ValueError: Raised when the address is malformed.
    """

    if not _ADDRESS_PATTERN.match(account or ""):
        raise ValueError("account must be a 0x-prefixed 20-byte hex address")
    return "0x" + account[2:].lower().rjust(64, "0")


OPTION_MINTED_TOPIC = mapping_event_topic(OPTION_MINTED_SIGNATURE)
OPTION_BURNT_TOPIC = mapping_event_topic(OPTION_BURNT_SIGNATURE)
PREMIUM_SETTLED_TOPIC = mapping_event_topic(PREMIUM_SETTLED_SIGNATURE)

POSITION_EVENT_TOPICS: tuple[str, ...] = (OPTION_MINTED_TOPIC, OPTION_BURNT_TOPIC, PREMIUM_SETTLED_TOPIC)
