"""
Layout algorithms for figure shapes.

Provides the alignment and distribution commands of the editor:
- Align: snap shapes to an edge or the center of the canvas
- Distribute: space shapes evenly between the two outermost ones
- Snap: round positions to the grid

All functions work on bounding boxes, so a circle (positioned by its center)
lines up exactly like a rectangle does. They return a new SceneState.
"""

from enum import Enum
from typing import Iterable, Optional

from . import scene
from .geometry import bounding_box
from .models import DEFAULT_GRID_SIZE, SceneState


DEFAULT_MARGIN = 10
MIN_DISTRIBUTE = 3


class AlignMode(str, Enum):
    """Canvas-relative alignment targets."""
    LEFT = "left"
    RIGHT = "right"
    TOP = "top"
    BOTTOM = "bottom"
    HCENTER = "hcenter"
    VCENTER = "vcenter"

    @classmethod
    def _missing_(cls, value):
        aliases = {
            "center_h": cls.HCENTER,
            "center": cls.HCENTER,
            "center_v": cls.VCENTER,
            "middle": cls.VCENTER,
        }
        return aliases.get(str(value).lower())


class Axis(str, Enum):
    """Distribution axes."""
    HORIZONTAL = "horizontal"
    VERTICAL = "vertical"

    @classmethod
    def _missing_(cls, value):
        aliases = {"h": cls.HORIZONTAL, "x": cls.HORIZONTAL, "v": cls.VERTICAL, "y": cls.VERTICAL}
        return aliases.get(str(value).lower())


def align(
    state: SceneState,
    ids: Iterable[str],
    mode: AlignMode | str,
    canvas_size: tuple[float, float],
    margin: float = DEFAULT_MARGIN,
) -> Optional[SceneState]:
    """
    Align shapes against the canvas, not against each other.

    Args:
        state: Current scene
        ids: IDs of shapes to align
        mode: One of "left", "right", "top", "bottom", "hcenter", "vcenter"
        canvas_size: (width, height) of the canvas
        margin: Distance kept from the canvas edge for edge alignments

    Returns:
        The new state, or None if no listed shape exists
    """
    mode = AlignMode(mode)
    canvas_w, canvas_h = canvas_size
    wanted = set(ids)
    targets = [s for s in state.shapes if s.id in wanted]
    if not targets:
        return None

    deltas: dict[str, tuple[float, float]] = {}
    for shape in targets:
        box = bounding_box(shape)
        dx = dy = 0.0

        if mode is AlignMode.LEFT:
            dx = margin - box.x
        elif mode is AlignMode.RIGHT:
            dx = (canvas_w - box.w - margin) - box.x
        elif mode is AlignMode.TOP:
            dy = margin - box.y
        elif mode is AlignMode.BOTTOM:
            dy = (canvas_h - box.h - margin) - box.y
        elif mode is AlignMode.HCENTER:
            dx = max(0.0, (canvas_w - box.w) / 2) - box.x
        elif mode is AlignMode.VCENTER:
            dy = max(0.0, (canvas_h - box.h) / 2) - box.y

        deltas[shape.id] = (dx, dy)

    return scene.translate(state, deltas)


def distribute(
    state: SceneState,
    ids: Iterable[str],
    axis: Axis | str = Axis.HORIZONTAL,
) -> Optional[SceneState]:
    """
    Evenly distribute shapes along an axis.

    Shapes are ordered by the near edge of their bounding box (stable, so ties
    keep z-order). The outermost two stay put; the ones between are placed so
    that every gap between neighbouring boxes is equal.

    Args:
        state: Current scene
        ids: IDs of shapes to distribute
        axis: "horizontal" or "vertical"

    Returns:
        The new state, or None if fewer than three shapes qualify
    """
    axis = Axis(axis)
    wanted = set(ids)
    targets = [s for s in state.shapes if s.id in wanted]
    if len(targets) < MIN_DISTRIBUTE:
        return None

    horizontal = axis is Axis.HORIZONTAL
    boxes = [(s, bounding_box(s)) for s in targets]
    boxes.sort(key=lambda item: item[1].x if horizontal else item[1].y)

    def start(box):
        return box.x if horizontal else box.y

    def size(box):
        return box.w if horizontal else box.h

    first_box = boxes[0][1]
    last_box = boxes[-1][1]
    interior = boxes[1:-1]

    span = start(last_box) - (start(first_box) + size(first_box))
    gap = (span - sum(size(b) for _, b in interior)) / (len(boxes) - 1)

    deltas: dict[str, tuple[float, float]] = {}
    pos = start(first_box) + size(first_box) + gap
    for shape, box in interior:
        delta = pos - start(box)
        deltas[shape.id] = (delta, 0.0) if horizontal else (0.0, delta)
        pos += size(box) + gap

    return scene.translate(state, deltas)


def snap_value(value: float, grid_size: int = DEFAULT_GRID_SIZE) -> float:
    """Round a coordinate to the nearest grid line."""
    if grid_size <= 0:
        return value
    return round(value / grid_size) * grid_size


def snap_to_grid(
    state: SceneState,
    ids: Iterable[str],
    grid_size: int = DEFAULT_GRID_SIZE,
) -> SceneState:
    """
    Snap shapes to the nearest grid position.

    Args:
        state: Current scene
        ids: Shapes to snap
        grid_size: Grid cell size in pixels

    Returns:
        The new state
    """
    if grid_size <= 0:
        return state

    wanted = set(ids)
    deltas = {
        s.id: (snap_value(s.x, grid_size) - s.x, snap_value(s.y, grid_size) - s.y)
        for s in state.shapes if s.id in wanted
    }
    return scene.translate(state, deltas)
