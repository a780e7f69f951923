"""Adapter layer package for ledger client boundaries."""

from .interfaces import LedgerBlock, LedgerClientPort, LedgerLog
from .json_rpc_client import JsonRpcLedgerClient
from .ledger_errors import (
	LedgerAdapterError,
	LedgerBlockNotFoundError,
	LedgerConnectionError,
	LedgerResponseError,
	LedgerTimeoutError,
)

__all__ = [
	"JsonRpcLedgerClient",
	"LedgerAdapterError",
	"LedgerBlock",
	"LedgerBlockNotFoundError",
	"LedgerClientPort",
	"LedgerConnectionError",
	"LedgerLog",
	"LedgerResponseError",
	"LedgerTimeoutError",
]
