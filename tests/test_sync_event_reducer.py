"""Regression tests for event folding, rollback, and finalization."""

from __future__ import annotations

from conftest import FakeLedgerClient, build_short_call_position_id
from panoptic_core.mapping import PositionEvent, mapping_decode_position_logs
from panoptic_core.sync import (
    reducer_apply_events,
    reducer_closed_positions,
    reducer_empty_state,
    reducer_finalize_through,
    reducer_open_position_ids,
    reducer_open_positions,
    reducer_rollback,
)

FIRST_ID = build_short_call_position_id(strike=0)
SECOND_ID = build_short_call_position_id(strike=100)


def _build_history() -> list[PositionEvent]:
    ledger = FakeLedgerClient(head=20)
    ledger.fake_add_mint(FIRST_ID, block_number=2, position_size=10)
    ledger.fake_add_mint(SECOND_ID, block_number=5, position_size=3)
    ledger.fake_add_settlement(SECOND_ID, block_number=6)
    ledger.fake_add_burn(FIRST_ID, block_number=8, position_size=4)
    ledger.fake_add_burn(SECOND_ID, block_number=12, position_size=3)
    return mapping_decode_position_logs(ledger.logs)


def test_reducer_folds_mints_and_burns_into_open_positions() -> None:
    """Open on mint, shrink on partial burn, and close on full burn.

    Returns:
        None: Assertions validate folded positions.

    Raises:
        AssertionError: Raised when folding is incorrect.
    """

    events = _build_history()

    through_block_6 = reducer_apply_events(reducer_empty_state(), [event for event in events if event.block_number <= 6])
    final_state = reducer_apply_events(through_block_6, events)

    assert reducer_open_position_ids(through_block_6) == frozenset({FIRST_ID, SECOND_ID})
    open_positions = reducer_open_positions(final_state)
    assert [entry.position_id for entry in open_positions] == [FIRST_ID]
    assert open_positions[0].position_size == 6
    assert open_positions[0].block_at_mint == 2
    assert open_positions[0].last_event_block == 8


def test_reducer_redelivered_events_leave_state_unchanged() -> None:
    """Ignore events already journaled so windows can be re-applied.

    Returns:
        None: Assertions validate idempotent application.

    Raises:
        AssertionError: Raised when duplicate delivery changes state.
    """

    events = _build_history()
    state = reducer_apply_events(reducer_empty_state(), events)

    assert reducer_apply_events(state, list(reversed(events))) is state
    assert len(state.journal) == len(events)
    assert [event.block_number for event in state.journal] == sorted(event.block_number for event in events)


def test_reducer_burn_for_unknown_position_is_ignored() -> None:
    """Skip burns of positions that were never observed as minted.

    Returns:
        None: Assertions validate unknown-burn handling.

    Raises:
        AssertionError: Raised when an unknown burn creates an entry.
    """

    ledger = FakeLedgerClient(head=5)
    ledger.fake_add_burn(FIRST_ID, block_number=1, position_size=1)

    state = reducer_apply_events(reducer_empty_state(), mapping_decode_position_logs(ledger.logs))

    assert reducer_open_positions(state) == ()


def test_reducer_rollback_matches_replay_of_kept_prefix() -> None:
    """Roll back to the same view a replay of the surviving events produces.

    Returns:
        None: Assertions validate rollback equivalence.

    Raises:
        AssertionError: Raised when rollback diverges from replay.
    """

    events = _build_history()
    state = reducer_apply_events(reducer_empty_state(), events)

    rolled_back = reducer_rollback(state, from_block=8)
    replayed = reducer_apply_events(reducer_empty_state(), [event for event in events if event.block_number < 8])

    assert rolled_back is not None
    assert reducer_open_positions(rolled_back) == reducer_open_positions(replayed)


def test_reducer_finalize_compacts_journal_and_bounds_rollback() -> None:
    """Fold finalized events into the base and refuse rollbacks below the horizon.

    Returns:
        None: Assertions validate finalization.

    Raises:
        AssertionError: Raised when finalization changes the view or allows deep rollback.
    """

    events = _build_history()
    state = reducer_apply_events(reducer_empty_state(), events)

    finalized = reducer_finalize_through(state, block_number=6)

    assert finalized.finalized_through_block == 6
    assert all(event.block_number > 6 for event in finalized.journal)
    assert reducer_open_positions(finalized) == reducer_open_positions(state)
    assert reducer_finalize_through(finalized, block_number=3) is finalized
    assert reducer_rollback(finalized, from_block=6) is None
    assert reducer_rollback(finalized, from_block=7) is not None
    assert reducer_apply_events(finalized, events) is finalized


def test_reducer_closed_positions_survive_finalize_and_follow_rollback() -> None:
    """List full closes newest first across finalized and journaled events.

    Returns:
        None: Assertions validate the closed-position view.

    Raises:
        AssertionError: Raised when closes are lost, duplicated, or kept after rollback.
    """

    events = _build_history()
    ledger = FakeLedgerClient(head=20)
    ledger.fake_add_burn(FIRST_ID, block_number=15, position_size=6, log_index=2, transaction_hash="0x" + "ab" * 32)
    state = reducer_apply_events(reducer_empty_state(), [*events, *mapping_decode_position_logs(ledger.logs)])

    closed = reducer_closed_positions(state)
    finalized = reducer_finalize_through(state, block_number=12)
    rolled_back = reducer_rollback(finalized, from_block=13)

    assert [(entry.position_id, entry.close_block) for entry in closed] == [(FIRST_ID, 15), (SECOND_ID, 12)]
    assert (closed[0].position_size, closed[0].open_block, closed[0].log_index) == (6, 2, 2)
    assert closed[1].premia_by_leg == (5, -5, 0, 0)
    assert [entry.position_id for entry in finalized.base_closed] == [SECOND_ID]
    assert reducer_closed_positions(finalized) == closed
    assert rolled_back is not None
    assert reducer_closed_positions(rolled_back) == (closed[1],)
    assert reducer_open_position_ids(rolled_back) == frozenset({FIRST_ID})
