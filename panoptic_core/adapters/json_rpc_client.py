"""JSON-RPC ledger client adapter built on httpx."""

from __future__ import annotations

import itertools
import logging
from typing import Any, Sequence

import httpx

from .interfaces import LedgerBlock, LedgerClientPort, LedgerLog
from .ledger_errors import (
    LedgerBlockNotFoundError,
    LedgerConnectionError,
    LedgerResponseError,
    LedgerTimeoutError,
)

logger = logging.getLogger(__name__)


class JsonRpcLedgerClient(LedgerClientPort):
    """Ledger client speaking Ethereum-style JSON-RPC over HTTP.

    The client performs exactly one HTTP request per call. Transport failures
    surface as typed adapter errors; retry policy belongs to the caller.
    """

    def __init__(
        self,
        rpc_url: str,
        request_timeout_seconds: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the JSON-RPC client.

        Args:
            rpc_url: HTTP endpoint of the ledger node.
            request_timeout_seconds: Per-request timeout.
            transport: Optional httpx transport, used by tests to stub the node.

        Returns:
            None: Initializer does not return a value.

        Raises:
            ValueError: Raised when the URL is blank or the timeout is not positive.
        """

        if not rpc_url.strip():
            raise ValueError("rpc_url must not be blank")
        if request_timeout_seconds <= 0:
            raise ValueError("request_timeout_seconds must be > 0")

        self._rpc_url = rpc_url.strip()
        self._request_ids = itertools.count(1)
        self._client = httpx.AsyncClient(timeout=request_timeout_seconds, transport=transport)

    async def __aenter__(self) -> JsonRpcLedgerClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.adapter_close()

    def adapter_source_name(self) -> str:
        """Return the configured endpoint for diagnostics."""

        return self._rpc_url

    async def adapter_close(self) -> None:
        """Close the underlying HTTP connection pool."""

        await self._client.aclose()

    async def ledger_get_logs(
        self,
        address: str,
        topics: Sequence[str | Sequence[str] | None],
        from_block: int,
        to_block: int,
    ) -> list[LedgerLog]:
        """Fetch logs with `eth_getLogs` for one inclusive block range.

        Args:
            address: Contract address.
            topics: Topic filter; nested sequences are OR-sets, `None` is a wildcard.
            from_block: First block, inclusive.
            to_block: Last block, inclusive.

        Returns:
            list[LedgerLog]: Parsed logs.

        Raises:
            ValueError: Raised when the block range is invalid.
            LedgerConnectionError: Raised on transport failure.
            LedgerTimeoutError: Raised on timeout.
            LedgerResponseError: Raised on HTTP, JSON-RPC, or payload shape errors.
        """

        if from_block < 0 or to_block < from_block:
            raise ValueError("block range must satisfy 0 <= from_block <= to_block")

        filter_topics = [list(topic) if isinstance(topic, (list, tuple)) else topic for topic in topics]
        result = await self._adapter_call(
            "eth_getLogs",
            [
                {
                    "address": address,
                    "topics": filter_topics,
                    "fromBlock": hex(from_block),
                    "toBlock": hex(to_block),
                }
            ],
        )
        if not isinstance(result, list):
            raise LedgerResponseError("eth_getLogs result must be a list")
        return [self._adapter_parse_log(raw_log) for raw_log in result]

    async def ledger_get_block(self, number: int) -> LedgerBlock:
        """Fetch one block header with `eth_getBlockByNumber`.

        Args:
            number: Block number.

        Returns:
            LedgerBlock: Header subset.

        Raises:
            ValueError: Raised when the number is negative.
            LedgerBlockNotFoundError: Raised when the node returns no block.
            LedgerConnectionError: Raised on transport failure.
            LedgerTimeoutError: Raised on timeout.
            LedgerResponseError: Raised on HTTP, JSON-RPC, or payload shape errors.
        """

        if number < 0:
            raise ValueError("number must be >= 0")

        result = await self._adapter_call("eth_getBlockByNumber", [hex(number), False])
        if result is None:
            raise LedgerBlockNotFoundError(f"block {number} not found")
        if not isinstance(result, dict):
            raise LedgerResponseError("eth_getBlockByNumber result must be an object")
        try:
            return LedgerBlock(
                number=_adapter_parse_quantity(result["number"]),
                hash=str(result["hash"]).lower(),
                parent_hash=str(result["parentHash"]).lower(),
                timestamp=_adapter_parse_quantity(result["timestamp"]),
            )
        except (KeyError, TypeError, ValueError) as error:
            raise LedgerResponseError(f"malformed block payload for block {number}") from error

    async def ledger_get_block_number(self) -> int:
        """Return the head block number via `eth_blockNumber`.

        Returns:
            int: Head block number.

        Raises:
            LedgerConnectionError: Raised on transport failure.
            LedgerTimeoutError: Raised on timeout.
            LedgerResponseError: Raised on HTTP, JSON-RPC, or payload shape errors.
        """

        result = await self._adapter_call("eth_blockNumber", [])
        try:
            return _adapter_parse_quantity(result)
        except (TypeError, ValueError) as error:
            raise LedgerResponseError("malformed eth_blockNumber result") from error

    async def _adapter_call(self, method: str, params: list[Any]) -> Any:
        request_id = next(self._request_ids)
        payload = {"jsonrpc": "2.0", "id": request_id, "method": method, "params": params}
        logger.debug("ledger request id=%s method=%s", request_id, method)

        try:
            response = await self._client.post(self._rpc_url, json=payload)
        except httpx.TimeoutException as error:
            raise LedgerTimeoutError(f"ledger request {method} timed out") from error
        except httpx.TransportError as error:
            raise LedgerConnectionError(f"ledger request {method} failed: {error}") from error

        if response.status_code >= 400:
            raise LedgerResponseError(
                f"ledger node returned HTTP {response.status_code} for {method}",
                error_code=str(response.status_code),
            )

        try:
            body = response.json()
        except ValueError as error:
            raise LedgerResponseError(f"ledger node returned non-JSON body for {method}") from error
        if not isinstance(body, dict):
            raise LedgerResponseError(f"ledger node returned non-object body for {method}")

        rpc_error = body.get("error")
        if rpc_error is not None:
            error_code = rpc_error.get("code") if isinstance(rpc_error, dict) else None
            error_message = rpc_error.get("message") if isinstance(rpc_error, dict) else str(rpc_error)
            raise LedgerResponseError(
                f"ledger request {method} rejected: code={error_code}, message={error_message}",
                error_code=None if error_code is None else str(error_code),
            )
        if "result" not in body:
            raise LedgerResponseError(f"ledger response for {method} is missing result")
        return body["result"]

    @staticmethod
    def _adapter_parse_log(raw_log: Any) -> LedgerLog:
        if not isinstance(raw_log, dict):
            raise LedgerResponseError("log entry must be an object")
        try:
            return LedgerLog(
                address=str(raw_log["address"]).lower(),
                topics=tuple(str(topic).lower() for topic in raw_log["topics"]),
                data=str(raw_log.get("data") or "0x"),
                block_number=_adapter_parse_quantity(raw_log["blockNumber"]),
                block_hash=str(raw_log["blockHash"]).lower(),
                transaction_hash=str(raw_log["transactionHash"]).lower(),
                transaction_index=_adapter_parse_quantity(raw_log["transactionIndex"]),
                log_index=_adapter_parse_quantity(raw_log["logIndex"]),
                removed=bool(raw_log.get("removed", False)),
            )
        except (KeyError, TypeError, ValueError) as error:
            raise LedgerResponseError("malformed log entry") from error


def _adapter_parse_quantity(value: Any) -> int:
    """Parse a JSON-RPC hex quantity such as `0x1a`."""

    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if not isinstance(value, str) or not value.lower().startswith("0x"):
        raise ValueError(f"invalid hex quantity: {value!r}")
    return int(value, 16)
