"""In-process state store for tests and ephemeral sessions."""

from __future__ import annotations

from .interfaces import StateStorePort


class InMemoryStateStore(StateStorePort):
    """Dict-backed byte store; each operation is atomic within the event loop."""

    def __init__(self) -> None:
        self._entries: dict[str, bytes] = {}

    async def store_get(self, key: str) -> bytes | None:
        """Return stored bytes or `None`."""

        return self._entries.get(key)

    async def store_set(self, key: str, value: bytes) -> None:
        """Store a copy of the bytes under the key."""

        if not isinstance(value, (bytes, bytearray)):
            raise ValueError("value must be bytes")
        self._entries[key] = bytes(value)

    async def store_delete(self, key: str) -> None:
        """Remove the key if present."""

        self._entries.pop(key, None)

    def store_keys(self) -> tuple[str, ...]:
        """Return stored keys in sorted order."""

        return tuple(sorted(self._entries))
