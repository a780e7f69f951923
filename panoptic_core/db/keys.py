"""State key namespace builder."""

from __future__ import annotations

from .interfaces import StateEntityKind

STATE_SCHEMA_VERSION = 1
POOL_SCOPE_ID = "pool"


def db_build_state_key(
    chain_id: int,
    pool_address: str,
    entity_kind: StateEntityKind,
    scope_id: str,
    schema_version: int = STATE_SCHEMA_VERSION,
) -> str:
    """Build a `{schemaVersion}:{chainId}:{poolAddress}:{entityKind}:{scopeId}` key.

    Args:
        chain_id: Ledger chain identifier.
        pool_address: Pool contract address.
        entity_kind: Stored entity kind.
        scope_id: Entity scope, usually an account address.
        schema_version: Payload schema version.

    Returns:
        str: Namespaced key.

    Raises:
        ValueError: Raised when a component is blank or contains the separator.
    """

    if schema_version < 1:
        raise ValueError("schema_version must be >= 1")
    if chain_id < 1:
        raise ValueError("chain_id must be >= 1")
    normalized_pool_address = pool_address.strip().lower()
    normalized_scope_id = scope_id.strip().lower()
    for component_name, component in (("pool_address", normalized_pool_address), ("scope_id", normalized_scope_id)):
        if not component:
            raise ValueError(f"{component_name} must not be blank")
        if ":" in component:
            raise ValueError(f"{component_name} must not contain ':'")
    return f"{schema_version}:{chain_id}:{normalized_pool_address}:{StateEntityKind(entity_kind).value}:{normalized_scope_id}"
