"""Project-native typed exceptions for ledger client failures."""

from __future__ import annotations


class LedgerAdapterError(Exception):
    """Base exception for ledger adapter failures.

    Attributes:
        error_code: Optional upstream JSON-RPC or HTTP error code.
    """

    def __init__(self, message: str, error_code: str | None = None):
        super().__init__(message)
        self.error_code = error_code


class LedgerConnectionError(LedgerAdapterError, ConnectionError):
    """Transport-level connectivity failure while reaching the ledger node."""


class LedgerTimeoutError(LedgerAdapterError, TimeoutError):
    """Ledger request exceeded its timeout."""


class LedgerResponseError(LedgerAdapterError, RuntimeError):
    """Ledger node returned an HTTP error, a JSON-RPC error, or a malformed result."""


class LedgerBlockNotFoundError(LedgerAdapterError, LookupError):
    """Requested block does not exist on the canonical chain."""
