"""Mapping layer package for raw log to position event transformations."""

from .event_topics import (
	OPTION_BURNT_SIGNATURE,
	OPTION_BURNT_TOPIC,
	OPTION_MINTED_SIGNATURE,
	OPTION_MINTED_TOPIC,
	POSITION_EVENT_TOPICS,
	PREMIUM_SETTLED_SIGNATURE,
	PREMIUM_SETTLED_TOPIC,
	mapping_account_topic,
	mapping_event_topic,
)
from .interfaces import MappingContractViolationError, PositionEvent, PositionEventKind
from .log_decoder import mapping_decode_position_log, mapping_decode_position_logs, mapping_sort_events

__all__ = [
	"MappingContractViolationError",
	"OPTION_BURNT_SIGNATURE",
	"OPTION_BURNT_TOPIC",
	"OPTION_MINTED_SIGNATURE",
	"OPTION_MINTED_TOPIC",
	"POSITION_EVENT_TOPICS",
	"PREMIUM_SETTLED_SIGNATURE",
	"PREMIUM_SETTLED_TOPIC",
	"PositionEvent",
	"PositionEventKind",
	"mapping_account_topic",
	"mapping_decode_position_log",
	"mapping_decode_position_logs",
	"mapping_event_topic",
	"mapping_sort_events",
]
