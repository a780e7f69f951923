"""Versioned JSON envelope codec for state-store payloads."""

from __future__ import annotations

import json
from typing import Any

from .interfaces import SchemaVersionMismatchError, StateEntityKind, StorePayloadCorruptedError
from .keys import STATE_SCHEMA_VERSION


def db_encode_payload(
    entity_kind: StateEntityKind,
    payload: dict[str, Any],
    schema_version: int = STATE_SCHEMA_VERSION,
) -> bytes:
    """Serialize a payload into a versioned envelope.

    Args:
        entity_kind: Stored entity kind.
        payload: JSON-compatible payload. Large integers must already be strings.
        schema_version: Envelope schema version.

    Returns:
        bytes: UTF-8 JSON envelope.

    Raises:
        ValueError: Raised when the payload is not a mapping.
        TypeError: Raised when the payload is not JSON-serializable.
    """

    if not isinstance(payload, dict):
        raise ValueError("payload must be a dict")
    envelope = {
        "schema_version": schema_version,
        "entity_kind": StateEntityKind(entity_kind).value,
        "payload": payload,
    }
    return json.dumps(envelope, sort_keys=True, separators=(",", ":")).encode("utf-8")


def db_decode_payload(
    raw_value: bytes,
    entity_kind: StateEntityKind,
    schema_version: int = STATE_SCHEMA_VERSION,
) -> dict[str, Any]:
    """Parse a versioned envelope and return its payload.

    Args:
        raw_value: Stored bytes.
        entity_kind: Expected entity kind.
        schema_version: Expected schema version.

    Returns:
        dict[str, Any]: Payload mapping.

    Raises:
        SchemaVersionMismatchError: Raised when the envelope version differs.
        StorePayloadCorruptedError: Raised for unparsable bytes or a wrong envelope shape.
    """

    try:
        envelope = json.loads(raw_value.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as error:
        raise StorePayloadCorruptedError(f"stored {entity_kind.value} payload is not valid JSON") from error

    if not isinstance(envelope, dict) or "schema_version" not in envelope or "payload" not in envelope:
        raise StorePayloadCorruptedError(f"stored {entity_kind.value} payload is missing its envelope")

    stored_version = envelope["schema_version"]
    if stored_version != schema_version:
        raise SchemaVersionMismatchError(
            f"stored {entity_kind.value} payload has schema_version={stored_version}, expected {schema_version}"
        )
    if envelope.get("entity_kind") != StateEntityKind(entity_kind).value:
        raise StorePayloadCorruptedError(
            f"stored payload entity_kind={envelope.get('entity_kind')} does not match {entity_kind.value}"
        )
    payload = envelope["payload"]
    if not isinstance(payload, dict):
        raise StorePayloadCorruptedError(f"stored {entity_kind.value} payload must be an object")
    return payload
