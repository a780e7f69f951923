"""Database and state-store package exports."""

from .interfaces import (
	BlockReference,
	ChunkKey,
	ChunkRecord,
	ClosedPositionEntry,
	ClosureReason,
	PendingPosition,
	PendingPositionAction,
	PendingPositionStatus,
	ReducerState,
	SchemaVersionMismatchError,
	StateEntityKind,
	StateStoreError,
	StateStorePort,
	StorePayloadCorruptedError,
	SyncCheckpoint,
	SyncScope,
	TrackedPositionEntry,
)
from .keys import POOL_SCOPE_ID, STATE_SCHEMA_VERSION, db_build_state_key
from .memory_store import InMemoryStateStore
from .payload_codec import db_decode_payload, db_encode_payload
from .schema import STATE_STORE_TABLE_NAME, db_create_state_store_schema, state_store_table
from .session import db_create_engine
from .sqlalchemy_store import SQLAlchemyStateStore
from .sync_state import SyncStateRepository

__all__ = [
	"BlockReference",
	"ChunkKey",
	"ChunkRecord",
	"ClosedPositionEntry",
	"ClosureReason",
	"InMemoryStateStore",
	"POOL_SCOPE_ID",
	"PendingPosition",
	"PendingPositionAction",
	"PendingPositionStatus",
	"ReducerState",
	"SQLAlchemyStateStore",
	"STATE_SCHEMA_VERSION",
	"STATE_STORE_TABLE_NAME",
	"SchemaVersionMismatchError",
	"StateEntityKind",
	"StateStoreError",
	"StateStorePort",
	"StorePayloadCorruptedError",
	"SyncCheckpoint",
	"SyncScope",
	"SyncStateRepository",
	"TrackedPositionEntry",
	"db_build_state_key",
	"db_create_engine",
	"db_create_state_store_schema",
	"db_decode_payload",
	"db_encode_payload",
	"state_store_table",
]
