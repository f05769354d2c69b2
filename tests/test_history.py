"""Tests for the undo/redo history."""

import pytest

from figurelab.core.history import History


class TestHistory:
    def test_round_trip(self):
        history = History(0)
        for value in range(1, 11):
            history.set_state(value)

        for _ in range(10):
            history.undo()
        assert history.present == 0
        assert not history.can_undo

        for _ in range(10):
            history.redo()
        assert history.present == 10
        assert not history.can_redo

    def test_skipped_states_are_not_undoable(self):
        history = History(0)
        history.set_state(1)
        history.set_state(2, skip_history=True)
        history.set_state(3, skip_history=True)
        assert history.undo() == 0
        assert history.redo() == 3

    def test_new_state_clears_future(self):
        history = History(0)
        history.set_state(1)
        history.undo()
        history.set_state(5)
        assert not history.can_redo
        assert history.redo() is None

    def test_depth_bound_drops_oldest(self):
        history = History(0, max_depth=3)
        for value in range(1, 6):
            history.set_state(value)
        assert history.past == (2, 3, 4)

    def test_undo_empty_returns_none(self):
        assert History("x").undo() is None

    def test_invalid_depth(self):
        with pytest.raises(ValueError):
            History(0, max_depth=0)

    def test_reset(self):
        history = History(0)
        history.set_state(1)
        history.reset(7)
        assert history.present == 7
        assert not history.can_undo and not history.can_redo


class TestGestures:
    def test_gesture_is_one_entry(self):
        history = History(0)
        history.begin_gesture()
        for value in range(1, 6):
            history.set_state(value, skip_history=True)
        assert history.end_gesture() is True
        assert history.past == (0,)
        assert history.undo() == 0

    def test_unchanged_gesture_records_nothing(self):
        history = History(0)
        history.begin_gesture()
        assert history.end_gesture() is False
        assert not history.can_undo

    def test_end_without_begin(self):
        assert History(0).end_gesture() is False

    def test_cancel_restores_anchor(self):
        history = History(0)
        history.begin_gesture()
        history.set_state(9, skip_history=True)
        history.cancel_gesture()
        assert history.present == 0
        assert not history.in_gesture
