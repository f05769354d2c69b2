"""
Selection - the set of selected shape ids and marquee hit-testing.
"""

from typing import Iterable

from .geometry import Box, bounding_box, normalize_rect
from .models import ShapeBase


def marquee_hits(shapes: Iterable[ShapeBase], rect: Box) -> list[str]:
    """
    Ids of shapes whose bounding box lies fully inside `rect`.

    Containment, not intersection: a shape that only overlaps the marquee is
    not selected. Results follow z-order.
    """
    return [s.id for s in shapes if rect.contains(bounding_box(s))]


class Selection:
    """A set of selected shape ids. Order is irrelevant."""

    def __init__(self, ids: Iterable[str] = ()):
        self._ids: set[str] = set(ids)

    def __contains__(self, shape_id: str) -> bool:
        return shape_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)

    def __iter__(self):
        return iter(self.ids)

    @property
    def ids(self) -> list[str]:
        """Selected ids, sorted for stable output."""
        return sorted(self._ids)

    def as_set(self) -> set[str]:
        return set(self._ids)

    def set(self, ids: Iterable[str]):
        """Replace the selection."""
        self._ids = set(ids)

    def add(self, shape_id: str):
        self._ids.add(shape_id)

    def toggle(self, shape_id: str):
        """Shift-click behaviour: add if absent, remove if present."""
        if shape_id in self._ids:
            self._ids.discard(shape_id)
        else:
            self._ids.add(shape_id)

    def clear(self):
        self._ids.clear()

    def prune(self, existing_ids: Iterable[str]):
        """Drop ids that no longer exist in the scene."""
        self._ids &= set(existing_ids)

    def select_marquee(
        self,
        shapes: Iterable[ShapeBase],
        start: tuple[float, float],
        end: tuple[float, float],
    ) -> list[str]:
        """Replace the selection with the shapes inside the dragged rectangle."""
        hits = marquee_hits(shapes, normalize_rect(start, end))
        self.set(hits)
        return hits
