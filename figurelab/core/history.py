"""
Linear undo/redo history over scene snapshots.

The history system works via snapshots:
- Each committed mutation pushes the previous present onto the past stack
- Undo restores the previous snapshot
- Redo re-applies a snapshot from the future stack

Snapshots are immutable SceneState objects, so they are kept by reference
rather than deep-copied.
"""

import logging
from typing import Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

DEFAULT_MAX_HISTORY = 100

T = TypeVar("T")


class History(Generic[T]):
    """
    Past/present/future stacks with a bounded past.

    Continuous gestures (drags) call `begin_gesture()`, then
    `set_state(..., skip_history=True)` for every intermediate position, then
    `end_gesture()`, which records a single undo step back to the state the
    gesture started from.
    """

    def __init__(self, initial: T, max_depth: int = DEFAULT_MAX_HISTORY):
        if max_depth < 1:
            raise ValueError("max_depth must be at least 1")
        self._past: list[T] = []
        self._present: T = initial
        self._future: list[T] = []  # Next redo target at index 0
        self._max_depth = max_depth
        self._gesture_anchor: Optional[T] = None
        self._in_gesture = False

    # --- Properties ---

    @property
    def present(self) -> T:
        return self._present

    @property
    def past(self) -> tuple[T, ...]:
        return tuple(self._past)

    @property
    def future(self) -> tuple[T, ...]:
        return tuple(self._future)

    @property
    def max_depth(self) -> int:
        return self._max_depth

    @property
    def can_undo(self) -> bool:
        """Check if undo is available."""
        return len(self._past) > 0

    @property
    def can_redo(self) -> bool:
        """Check if redo is available."""
        return len(self._future) > 0

    @property
    def in_gesture(self) -> bool:
        return self._in_gesture

    @property
    def gesture_anchor(self) -> Optional[T]:
        """The state the open gesture started from."""
        return self._gesture_anchor

    # --- Mutation ---

    def _push_past(self, state: T):
        self._past.append(state)
        # Trim history if too long
        if len(self._past) > self._max_depth:
            self._past.pop(0)

    def set_state(self, new_state: T, skip_history: bool = False):
        """
        Make `new_state` the present.

        With `skip_history` only the present is replaced; nothing becomes
        undoable. Otherwise the old present is pushed onto the past and the
        redo stack is cleared.
        """
        if skip_history:
            self._present = new_state
            return

        self._future.clear()
        self._push_past(self._present)
        self._present = new_state

    def undo(self) -> Optional[T]:
        """Step back one snapshot. Returns the new present, or None."""
        if not self._past:
            return None
        self._future.insert(0, self._present)
        self._present = self._past.pop()
        logger.debug("undo: %d past, %d future", len(self._past), len(self._future))
        return self._present

    def redo(self) -> Optional[T]:
        """Step forward one snapshot. Returns the new present, or None."""
        if not self._future:
            return None
        self._push_past(self._present)
        self._present = self._future.pop(0)
        logger.debug("redo: %d past, %d future", len(self._past), len(self._future))
        return self._present

    def reset(self, state: T):
        """Replace the present and drop both stacks (loading a new document)."""
        self._past.clear()
        self._future.clear()
        self._present = state
        self._gesture_anchor = None
        self._in_gesture = False

    def clear(self):
        """Drop both stacks, keeping the present."""
        self._past.clear()
        self._future.clear()

    # --- Gestures ---

    def begin_gesture(self):
        """Remember the present as the undo target of an upcoming gesture."""
        self._gesture_anchor = self._present
        self._in_gesture = True

    def end_gesture(self) -> bool:
        """
        Close a gesture with exactly one history entry.

        Returns False (and records nothing) if no gesture was open or the
        gesture left the present unchanged.
        """
        if not self._in_gesture:
            return False
        anchor = self._gesture_anchor
        self._gesture_anchor = None
        self._in_gesture = False
        if anchor is self._present or anchor == self._present:
            return False

        self._future.clear()
        self._push_past(anchor)
        return True

    def cancel_gesture(self):
        """Abandon a gesture, restoring the state it started from."""
        if not self._in_gesture:
            return
        self._present = self._gesture_anchor
        self._gesture_anchor = None
        self._in_gesture = False
