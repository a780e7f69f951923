"""Optimistic pending-position records and their confirmation rules."""

from __future__ import annotations

import asyncio
from dataclasses import replace
import logging
import time
from typing import Callable, Iterable

from panoptic_core.db import (
    PendingPosition,
    PendingPositionAction,
    PendingPositionStatus,
    SyncScope,
    SyncStateRepository,
)
from panoptic_core.mapping import PositionEvent, PositionEventKind

logger = logging.getLogger(__name__)

DEFAULT_PENDING_STALE_AFTER_SECONDS = 1200.0

_CONFIRMING_EVENT_KIND = {
    PendingPositionAction.OPEN: PositionEventKind.MINT,
    PendingPositionAction.CLOSE: PositionEventKind.BURN,
}


def pending_register(
    records: tuple[PendingPosition, ...],
    record: PendingPosition,
) -> tuple[PendingPosition, ...]:
    """Append one pending record.

    Args:
        records: Current records.
        record: Record to add.

    Returns:
        tuple[PendingPosition, ...]: Records including the new one.

    Raises:
        ValueError: Raised when the transaction reference is already pending.
    """

    if any(existing.tx_ref == record.tx_ref for existing in records):
        raise ValueError(f"tx_ref is already pending: {record.tx_ref}")
    return (*records, record)


def pending_fail(
    records: tuple[PendingPosition, ...],
    tx_ref: str,
) -> tuple[tuple[PendingPosition, ...], PendingPosition | None]:
    """Remove the record for `tx_ref` and return it marked failed."""

    normalized_tx_ref = tx_ref.strip().lower()
    remaining = tuple(record for record in records if record.tx_ref != normalized_tx_ref)
    failed = next((record for record in records if record.tx_ref == normalized_tx_ref), None)
    if failed is None:
        return records, None
    return remaining, replace(failed, status=PendingPositionStatus.FAILED)


def pending_sweep_stale(
    records: tuple[PendingPosition, ...],
    now: float,
    stale_after_seconds: float,
) -> tuple[tuple[PendingPosition, ...], tuple[PendingPosition, ...]]:
    """Split records into kept and stale.

    A record is stale when strictly more than `stale_after_seconds` have passed
    since it was registered.

    Args:
        records: Current records.
        now: Current Unix seconds.
        stale_after_seconds: Staleness threshold.

    Returns:
        tuple[tuple[PendingPosition, ...], tuple[PendingPosition, ...]]: Kept
        records and removed stale records.

    Raises:
        ValueError: Raised when the threshold is not positive.
    """

    if stale_after_seconds <= 0:
        raise ValueError("stale_after_seconds must be > 0")
    kept = tuple(record for record in records if now - record.created_at <= stale_after_seconds)
    stale = tuple(record for record in records if now - record.created_at > stale_after_seconds)
    return kept, stale


def pending_match_confirmations(
    records: tuple[PendingPosition, ...],
    events: Iterable[PositionEvent],
) -> tuple[tuple[PendingPosition, ...], tuple[PendingPosition, ...]]:
    """Confirm records that an observed event settles.

    A mint confirms a pending open of the same position id and a burn confirms
    a pending close. Each event confirms at most one record.

    Args:
        records: Current records.
        events: Observed events in apply order.

    Returns:
        tuple[tuple[PendingPosition, ...], tuple[PendingPosition, ...]]:
        Remaining records and confirmed records marked confirmed.
    """

    remaining = list(records)
    confirmed: list[PendingPosition] = []
    for event in events:
        match = next(
            (
                record
                for record in remaining
                if record.position_id == event.position_id
                and _CONFIRMING_EVENT_KIND[record.action] == event.kind
            ),
            None,
        )
        if match is None:
            continue
        remaining.remove(match)
        confirmed.append(replace(match, status=PendingPositionStatus.CONFIRMED))
    return tuple(remaining), tuple(confirmed)


def pending_apply_to_tracked_ids(
    open_ids: Iterable[int],
    records: Iterable[PendingPosition],
) -> frozenset[int]:
    """Return confirmed open ids plus pending opens minus pending closes."""

    tracked_ids = set(open_ids)
    pending_records = list(records)
    tracked_ids.update(
        record.position_id for record in pending_records if record.action == PendingPositionAction.OPEN
    )
    tracked_ids.difference_update(
        record.position_id for record in pending_records if record.action == PendingPositionAction.CLOSE
    )
    return frozenset(tracked_ids)


class PendingPositionService:
    """Persisted pending records with one mutation at a time per scope."""

    def __init__(
        self,
        repository: SyncStateRepository,
        stale_after_seconds: float = DEFAULT_PENDING_STALE_AFTER_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize pending-position service.

        Args:
            repository: Sync state repository.
            stale_after_seconds: Default staleness threshold for sweeps.
            clock: Unix-seconds clock.

        Returns:
            None: Initializer does not return a value.

        Raises:
            ValueError: Raised when repository is None or the threshold is not positive.
        """

        if repository is None:
            raise ValueError("repository must not be None")
        if stale_after_seconds <= 0:
            raise ValueError("stale_after_seconds must be > 0")

        self._repository = repository
        self._stale_after_seconds = stale_after_seconds
        self._clock = clock
        self._locks: dict[str, asyncio.Lock] = {}

    async def pending_register(
        self,
        scope: SyncScope,
        tx_ref: str,
        position_id: int,
        action: PendingPositionAction,
        position_size: int | None = None,
    ) -> PendingPosition:
        """Register a submitted but unconfirmed open or close.

        Args:
            scope: Owning scope.
            tx_ref: Submitted transaction reference.
            position_id: Position identifier.
            action: Open or close.
            position_size: Optional expected size.

        Returns:
            PendingPosition: Stored record.

        Raises:
            ValueError: Raised when tx_ref is blank, position_id is negative, or tx_ref is already pending.
        """

        normalized_tx_ref = tx_ref.strip().lower()
        if not normalized_tx_ref:
            raise ValueError("tx_ref must not be blank")
        if position_id < 0:
            raise ValueError("position_id must be >= 0")

        record = PendingPosition(
            tx_ref=normalized_tx_ref,
            position_id=position_id,
            action=PendingPositionAction(action),
            status=PendingPositionStatus.PENDING,
            created_at=self._clock(),
            position_size=position_size,
        )
        async with self._pending_lock(scope):
            records = await self._repository.db_pending_load(scope)
            await self._repository.db_pending_save(scope, pending_register(records, record))
        logger.info("pending %s registered scope=%s tx_ref=%s", record.action.value, scope.label, record.tx_ref)
        return record

    async def pending_list(self, scope: SyncScope) -> tuple[PendingPosition, ...]:
        """Return pending records for a scope in registration order."""

        return await self._repository.db_pending_load(scope)

    async def pending_fail(self, scope: SyncScope, tx_ref: str) -> PendingPosition | None:
        """Discard a pending record whose transaction failed.

        Returns:
            PendingPosition | None: Removed record marked failed, or `None` when unknown.
        """

        async with self._pending_lock(scope):
            records = await self._repository.db_pending_load(scope)
            remaining, failed = pending_fail(records, tx_ref)
            if failed is None:
                return None
            await self._repository.db_pending_save(scope, remaining)
        logger.info("pending record failed scope=%s tx_ref=%s", scope.label, failed.tx_ref)
        return failed

    async def pending_sweep_stale(
        self,
        scope: SyncScope,
        now: float | None = None,
        stale_after_seconds: float | None = None,
    ) -> tuple[PendingPosition, ...]:
        """Remove records older than the staleness threshold.

        Args:
            scope: Owning scope.
            now: Optional Unix seconds; defaults to the service clock.
            stale_after_seconds: Optional per-call threshold override.

        Returns:
            tuple[PendingPosition, ...]: Removed records.

        Raises:
            ValueError: Raised when the threshold is not positive.
        """

        threshold = self._stale_after_seconds if stale_after_seconds is None else stale_after_seconds
        sweep_time = self._clock() if now is None else now
        async with self._pending_lock(scope):
            records = await self._repository.db_pending_load(scope)
            kept, stale = pending_sweep_stale(records, sweep_time, threshold)
            if stale:
                await self._repository.db_pending_save(scope, kept)
        if stale:
            logger.info("swept %s stale pending records scope=%s", len(stale), scope.label)
        return stale

    async def pending_confirm_events(
        self,
        scope: SyncScope,
        events: Iterable[PositionEvent],
    ) -> tuple[PendingPosition, ...]:
        """Remove records confirmed by observed events and return them."""

        observed_events = list(events)
        if not observed_events:
            return ()
        async with self._pending_lock(scope):
            records = await self._repository.db_pending_load(scope)
            remaining, confirmed = pending_match_confirmations(records, observed_events)
            if confirmed:
                await self._repository.db_pending_save(scope, remaining)
        for record in confirmed:
            logger.info("pending %s confirmed scope=%s tx_ref=%s", record.action.value, scope.label, record.tx_ref)
        return confirmed

    async def pending_clear(self, scope: SyncScope) -> None:
        """Drop every pending record of a scope."""

        async with self._pending_lock(scope):
            await self._repository.db_pending_save(scope, ())

    def _pending_lock(self, scope: SyncScope) -> asyncio.Lock:
        lock = self._locks.get(scope.label)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[scope.label] = lock
        return lock
