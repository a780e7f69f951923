"""Capped per-pool chunk tracking and spread statistics."""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable

from panoptic_core.codec import DecodedPositionId, PositionIdError, codec_decode_position_id
from panoptic_core.db import ChunkKey, ChunkRecord, SyncScope, SyncStateRepository

from .interfaces import ChunkLimitError, ChunkSpread, ChunkTouch

logger = logging.getLogger(__name__)

MAX_TRACKED_CHUNKS = 1000
WAD = 10**18


def chunk_calculate_spread_wad(net_liquidity: int, removed_liquidity: int, vegoid: int) -> int:
    """Return the spread multiplier `WAD + WAD * removed / (vegoid * net)`.

    Args:
        net_liquidity: Net liquidity in the chunk.
        removed_liquidity: Liquidity removed by long legs.
        vegoid: Pool vegoid parameter.

    Returns:
        int: Spread in WAD units; exactly `WAD` when the chunk has no net liquidity.

    Raises:
        ValueError: Raised when liquidity is negative or vegoid is not positive.
    """

    if net_liquidity < 0 or removed_liquidity < 0:
        raise ValueError("liquidity values must be >= 0")
    if vegoid <= 0:
        raise ValueError("vegoid must be > 0")
    if net_liquidity == 0:
        return WAD
    return WAD + (WAD * removed_liquidity) // (vegoid * net_liquidity)


def chunk_keys_for_position(decoded: DecodedPositionId) -> tuple[ChunkKey, ...]:
    """Return the distinct chunks a position's ranged legs touch, in leg order.

    Zero-width legs are single-tick loans or credits and own no chunk.
    """

    keys: list[ChunkKey] = []
    for leg in decoded.legs:
        if leg.width == 0:
            continue
        key = ChunkKey(token_type=leg.token_type, tick_lower=leg.tick_lower, tick_upper=leg.tick_upper)
        if key not in keys:
            keys.append(key)
    return tuple(keys)


def chunk_compute_spreads(records: Iterable[ChunkRecord], vegoid: int) -> tuple[ChunkSpread, ...]:
    """Compute spread statistics for tracked chunks, ordered by key."""

    return tuple(
        ChunkSpread(
            key=record.key,
            net_liquidity=record.net_liquidity,
            removed_liquidity=record.removed_liquidity,
            spread_wad=chunk_calculate_spread_wad(record.net_liquidity, record.removed_liquidity, vegoid),
        )
        for record in sorted(records, key=lambda item: item.key)
    )


class ChunkTrackingService:
    """Persisted chunk set per pool with a hard cap and no eviction."""

    def __init__(self, repository: SyncStateRepository, max_tracked_chunks: int = MAX_TRACKED_CHUNKS):
        """Initialize chunk tracking service.

        Args:
            repository: Sync state repository.
            max_tracked_chunks: Cap on tracked chunks per pool.

        Returns:
            None: Initializer does not return a value.

        Raises:
            ValueError: Raised when repository is None or the cap is not positive.
        """

        if repository is None:
            raise ValueError("repository must not be None")
        if max_tracked_chunks <= 0:
            raise ValueError("max_tracked_chunks must be > 0")

        self._repository = repository
        self._max_tracked_chunks = max_tracked_chunks
        self._locks: dict[str, asyncio.Lock] = {}

    async def chunk_list_tracked(self, scope: SyncScope) -> tuple[ChunkRecord, ...]:
        """Return tracked chunks for the scope's pool, ordered by key."""

        return tuple(sorted(await self._repository.db_chunks_load(scope), key=lambda item: item.key))

    async def chunk_add_tracked(self, scope: SyncScope, keys: Iterable[ChunkKey]) -> tuple[ChunkRecord, ...]:
        """Start tracking chunks; already tracked keys are left untouched.

        Args:
            scope: Scope whose pool owns the chunks.
            keys: Chunks to track.

        Returns:
            tuple[ChunkRecord, ...]: Newly tracked records.

        Raises:
            ChunkLimitError: Raised before writing when the cap would be exceeded.
        """

        async with self._chunk_lock(scope):
            records = {record.key: record for record in await self._repository.db_chunks_load(scope)}
            new_keys: list[ChunkKey] = []
            for key in keys:
                if key not in records and key not in new_keys:
                    new_keys.append(key)
            if not new_keys:
                return ()
            self._chunk_check_limit(scope, current_count=len(records), requested_count=len(new_keys))

            added = tuple(ChunkRecord(key=key) for key in new_keys)
            for record in added:
                records[record.key] = record
            await self._repository.db_chunks_save(scope, tuple(records.values()))
        logger.info("tracking %s new chunks pool=%s total=%s", len(added), scope.pool_address, len(records))
        return added

    async def chunk_record_touches(
        self,
        scope: SyncScope,
        touches: Iterable[ChunkTouch],
    ) -> tuple[ChunkRecord, ...]:
        """Aggregate liquidity touches, tracking any chunk seen for the first time.

        Args:
            scope: Scope whose pool owns the chunks.
            touches: Liquidity observations.

        Returns:
            tuple[ChunkRecord, ...]: Updated records of the touched chunks, ordered by key.

        Raises:
            ChunkLimitError: Raised before writing when new chunks would exceed the cap.
        """

        touch_list = list(touches)
        if not touch_list:
            return ()

        async with self._chunk_lock(scope):
            records = {record.key: record for record in await self._repository.db_chunks_load(scope)}
            new_key_count = len({touch.key for touch in touch_list if touch.key not in records})
            if new_key_count:
                self._chunk_check_limit(scope, current_count=len(records), requested_count=new_key_count)

            touched_keys: set[ChunkKey] = set()
            for touch in touch_list:
                current = records.get(touch.key, ChunkRecord(key=touch.key))
                records[touch.key] = ChunkRecord(
                    key=touch.key,
                    touch_count=current.touch_count + 1,
                    net_liquidity=current.net_liquidity + touch.net_liquidity_delta,
                    removed_liquidity=current.removed_liquidity + touch.removed_liquidity_delta,
                )
                touched_keys.add(touch.key)
            await self._repository.db_chunks_save(scope, tuple(records.values()))
        return tuple(records[key] for key in sorted(touched_keys))

    async def chunk_track_positions(self, scope: SyncScope, position_ids: Iterable[int]) -> tuple[ChunkRecord, ...]:
        """Track every chunk touched by the given positions.

        Identifiers that do not decode under the current layout are logged and skipped.

        Raises:
            ChunkLimitError: Raised before writing when the cap would be exceeded.
        """

        keys: list[ChunkKey] = []
        for position_id in position_ids:
            try:
                decoded = codec_decode_position_id(position_id)
            except PositionIdError as error:
                logger.warning("skipping chunk tracking for undecodable position %s: %s", hex(position_id), error)
                continue
            keys.extend(chunk_keys_for_position(decoded))
        return await self.chunk_add_tracked(scope, keys)

    async def chunk_remove_tracked(self, scope: SyncScope, keys: Iterable[ChunkKey]) -> int:
        """Stop tracking chunks and return how many were removed."""

        removal = set(keys)
        async with self._chunk_lock(scope):
            records = await self._repository.db_chunks_load(scope)
            remaining = tuple(record for record in records if record.key not in removal)
            removed_count = len(records) - len(remaining)
            if removed_count:
                await self._repository.db_chunks_save(scope, remaining)
        return removed_count

    async def chunk_clear_tracked(self, scope: SyncScope) -> None:
        """Stop tracking every chunk of the scope's pool."""

        async with self._chunk_lock(scope):
            await self._repository.db_chunks_delete(scope)
        logger.info("cleared tracked chunks pool=%s", scope.pool_address)

    def _chunk_check_limit(self, scope: SyncScope, current_count: int, requested_count: int) -> None:
        if current_count + requested_count <= self._max_tracked_chunks:
            return
        logger.error(
            "chunk cap exceeded pool=%s current=%s requested=%s limit=%s",
            scope.pool_address,
            current_count,
            requested_count,
            self._max_tracked_chunks,
        )
        raise ChunkLimitError(
            f"tracking {requested_count} more chunks would exceed the limit of {self._max_tracked_chunks} "
            f"(currently {current_count}); remove chunks before tracking new ones",
            current_count=current_count,
            requested_count=requested_count,
            limit=self._max_tracked_chunks,
        )

    def _chunk_lock(self, scope: SyncScope) -> asyncio.Lock:
        pool_label = f"{scope.chain_id}:{scope.pool_address}"
        lock = self._locks.get(pool_label)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[pool_label] = lock
        return lock
