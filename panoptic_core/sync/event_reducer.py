"""Pure event folding for tracked positions with a reversible journal.

The reducer keeps two layers: finalized base entries and a journal of applied
events above the finality horizon. The open-position view is always the base
folded with the journal, so rolling back to any block above the horizon is a
matter of dropping journal events. Closed positions follow the same split.
"""

from __future__ import annotations

from typing import Iterable

from panoptic_core.db import ClosedPositionEntry, ClosureReason, ReducerState, TrackedPositionEntry
from panoptic_core.mapping import PositionEvent, PositionEventKind, mapping_sort_events


def reducer_empty_state() -> ReducerState:
    """Return the state of a scope that has never been synced."""

    return ReducerState()


def reducer_apply_events(state: ReducerState, events: Iterable[PositionEvent]) -> ReducerState:
    """Journal new events onto a reducer state.

    Events already journaled (same transaction hash and log index) and events
    at or below the finality horizon are skipped, so re-delivering a window
    leaves the state unchanged.

    Args:
        state: Current reducer state.
        events: Decoded events in any order.

    Returns:
        ReducerState: State with the new events journaled.
    """

    seen_keys = {event.event_key for event in state.journal}
    accepted: list[PositionEvent] = []
    for event in events:
        if event.block_number <= state.finalized_through_block:
            continue
        if event.event_key in seen_keys:
            continue
        seen_keys.add(event.event_key)
        accepted.append(event)

    if not accepted:
        return state
    return ReducerState(
        base_entries=state.base_entries,
        finalized_through_block=state.finalized_through_block,
        journal=tuple(mapping_sort_events([*state.journal, *accepted])),
        base_closed=state.base_closed,
    )


def reducer_open_positions(state: ReducerState) -> tuple[TrackedPositionEntry, ...]:
    """Fold base entries with the journal and return open positions by id."""

    entries, _ = _reducer_fold(state.base_entries, state.journal)
    return tuple(entries[position_id] for position_id in sorted(entries))


def reducer_open_position_ids(state: ReducerState) -> frozenset[int]:
    """Return the ids of open positions."""

    return frozenset(entry.position_id for entry in reducer_open_positions(state))


def reducer_closed_positions(state: ReducerState) -> tuple[ClosedPositionEntry, ...]:
    """Return closed positions, most recent close first.

    Args:
        state: Current reducer state.

    Returns:
        tuple[ClosedPositionEntry, ...]: Finalized closes followed by journaled
        closes, reversed so the latest close comes first.
    """

    _, journal_closed = _reducer_fold(state.base_entries, state.journal)
    return tuple(reversed((*state.base_closed, *journal_closed)))


def reducer_rollback(state: ReducerState, from_block: int) -> ReducerState | None:
    """Drop every journaled event at or above `from_block`.

    Args:
        state: Current reducer state.
        from_block: First block whose events must be discarded.

    Returns:
        ReducerState | None: Rolled-back state, or `None` when `from_block` is at
        or below the finality horizon and the journal cannot reach it.
    """

    if from_block <= state.finalized_through_block:
        return None
    return ReducerState(
        base_entries=state.base_entries,
        finalized_through_block=state.finalized_through_block,
        journal=tuple(event for event in state.journal if event.block_number < from_block),
        base_closed=state.base_closed,
    )


def reducer_finalize_through(state: ReducerState, block_number: int) -> ReducerState:
    """Fold journaled events at or below `block_number` into the base.

    Args:
        state: Current reducer state.
        block_number: New finality horizon; lower values leave the state as is.

    Returns:
        ReducerState: State with a compacted journal.
    """

    if block_number <= state.finalized_through_block:
        return state

    finalized = [event for event in state.journal if event.block_number <= block_number]
    remaining = tuple(event for event in state.journal if event.block_number > block_number)
    entries, closed = _reducer_fold(state.base_entries, finalized)
    return ReducerState(
        base_entries=tuple(entries[position_id] for position_id in sorted(entries)),
        finalized_through_block=block_number,
        journal=remaining,
        base_closed=(*state.base_closed, *closed),
    )


def _reducer_fold(
    base_entries: Iterable[TrackedPositionEntry],
    events: Iterable[PositionEvent],
) -> tuple[dict[int, TrackedPositionEntry], list[ClosedPositionEntry]]:
    entries = {entry.position_id: entry for entry in base_entries}
    closed: list[ClosedPositionEntry] = []
    for event in events:
        current = entries.get(event.position_id)

        if event.kind == PositionEventKind.MINT:
            balance = event.balance
            previous_size = 0 if current is None else current.position_size
            entries[event.position_id] = TrackedPositionEntry(
                position_id=event.position_id,
                position_size=previous_size + event.position_size,
                tick_at_mint=None if balance is None else balance.tick_at_mint,
                timestamp_at_mint=None if balance is None else balance.timestamp_at_mint,
                block_at_mint=event.block_number if balance is None else balance.block_at_mint,
                last_event_block=event.block_number,
            )
            continue

        if event.kind == PositionEventKind.BURN:
            # Burns for positions opened before tracking began have nothing to close.
            if current is None:
                continue
            remaining_size = current.position_size - event.position_size
            if remaining_size <= 0:
                del entries[event.position_id]
                closed.append(
                    ClosedPositionEntry(
                        position_id=current.position_id,
                        position_size=current.position_size,
                        open_block=current.block_at_mint,
                        close_block=event.block_number,
                        tick_at_open=current.tick_at_mint,
                        timestamp_at_open=current.timestamp_at_mint,
                        premia_by_leg=event.premia_by_leg,
                        transaction_hash=event.transaction_hash,
                        log_index=event.log_index,
                        closure_reason=ClosureReason.CLOSED,
                    )
                )
                continue
            entries[event.position_id] = TrackedPositionEntry(
                position_id=current.position_id,
                position_size=remaining_size,
                tick_at_mint=current.tick_at_mint,
                timestamp_at_mint=current.timestamp_at_mint,
                block_at_mint=current.block_at_mint,
                last_event_block=event.block_number,
            )

    return entries, closed
