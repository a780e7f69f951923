"""SQLAlchemy-backed state store with single-row atomic writes."""

from __future__ import annotations

import asyncio
import time

from sqlalchemy import Engine, text
from sqlalchemy.exc import SQLAlchemyError

from .interfaces import StateStoreError, StateStorePort
from .schema import STATE_STORE_TABLE_NAME


class SQLAlchemyStateStore(StateStorePort):
    """State store persisting one row per key.

    Blocking engine calls run in a worker thread so the event loop keeps
    serving other scopes. Each write is its own transaction.
    """

    def __init__(self, engine: Engine):
        """Initialize state store service.

        Args:
            engine: SQLAlchemy engine used for all persistence operations.

        Returns:
            None: This initializer does not return a value.

        Raises:
            ValueError: Raised when engine is None.
        """

        if engine is None:
            raise ValueError("engine must not be None")
        self._engine = engine

    async def store_get(self, key: str) -> bytes | None:
        """Read one value.

        Args:
            key: Namespaced state key.

        Returns:
            bytes | None: Stored bytes or `None`.

        Raises:
            ValueError: Raised when the key is blank.
            StateStoreError: Raised when the query fails.
        """

        normalized_key = self._validate_key(key)
        return await asyncio.to_thread(self._db_select_value, normalized_key)

    async def store_set(self, key: str, value: bytes) -> None:
        """Insert or replace one value.

        Args:
            key: Namespaced state key.
            value: Bytes to store.

        Returns:
            None: This method does not return a value.

        Raises:
            ValueError: Raised when the key is blank or value is not bytes.
            StateStoreError: Raised when the upsert fails.
        """

        normalized_key = self._validate_key(key)
        if not isinstance(value, (bytes, bytearray)):
            raise ValueError("value must be bytes")
        await asyncio.to_thread(self._db_upsert_value, normalized_key, bytes(value))

    async def store_delete(self, key: str) -> None:
        """Delete one value.

        Args:
            key: Namespaced state key.

        Returns:
            None: This method does not return a value.

        Raises:
            ValueError: Raised when the key is blank.
            StateStoreError: Raised when the delete fails.
        """

        normalized_key = self._validate_key(key)
        await asyncio.to_thread(self._db_delete_value, normalized_key)

    def _db_select_value(self, key: str) -> bytes | None:
        try:
            with self._engine.begin() as connection:
                row = connection.execute(
                    text(f"SELECT entry_value FROM {STATE_STORE_TABLE_NAME} WHERE entry_key = :entry_key"),
                    {"entry_key": key},
                ).mappings().first()
        except SQLAlchemyError as error:
            raise StateStoreError(f"failed to read state entry {key}") from error
        if row is None:
            return None
        return bytes(row["entry_value"])

    def _db_upsert_value(self, key: str, value: bytes) -> None:
        try:
            with self._engine.begin() as connection:
                connection.execute(
                    text(
                        f"INSERT INTO {STATE_STORE_TABLE_NAME} (entry_key, entry_value, updated_at_ms) "
                        "VALUES (:entry_key, :entry_value, :updated_at_ms) "
                        "ON CONFLICT (entry_key) DO UPDATE SET "
                        "entry_value = excluded.entry_value, updated_at_ms = excluded.updated_at_ms"
                    ),
                    {"entry_key": key, "entry_value": value, "updated_at_ms": int(time.time() * 1000)},
                )
        except SQLAlchemyError as error:
            raise StateStoreError(f"failed to write state entry {key}") from error

    def _db_delete_value(self, key: str) -> None:
        try:
            with self._engine.begin() as connection:
                connection.execute(
                    text(f"DELETE FROM {STATE_STORE_TABLE_NAME} WHERE entry_key = :entry_key"),
                    {"entry_key": key},
                )
        except SQLAlchemyError as error:
            raise StateStoreError(f"failed to delete state entry {key}") from error

    @staticmethod
    def _validate_key(key: str) -> str:
        normalized_key = key.strip()
        if not normalized_key:
            raise ValueError("key must not be blank")
        return normalized_key
