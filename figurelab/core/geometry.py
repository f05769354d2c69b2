"""
Geometry helpers - bounding boxes, centers and containment per shape kind.
"""

from typing import Iterable, NamedTuple

from .models import (
    ArrowShape,
    CircleShape,
    DEFAULT_IMAGE_HEIGHT,
    DEFAULT_IMAGE_WIDTH,
    GroupShape,
    ImageShape,
    LineShape,
    RectShape,
    ShapeBase,
    TextShape,
)


class Box(NamedTuple):
    """Axis-aligned rectangle (x, y, width, height)."""
    x: float
    y: float
    w: float
    h: float

    @property
    def right(self) -> float:
        return self.x + self.w

    @property
    def bottom(self) -> float:
        return self.y + self.h

    def center(self) -> tuple[float, float]:
        """Get the center point of the box."""
        return (self.x + self.w / 2, self.y + self.h / 2)

    def contains(self, other: "Box") -> bool:
        """True if `other` lies fully inside this box (edges inclusive)."""
        return (
            other.x >= self.x
            and other.y >= self.y
            and other.right <= self.right
            and other.bottom <= self.bottom
        )


def bounding_box(shape: ShapeBase) -> Box:
    """
    Get the bounding box of a shape.

    Rect, image and group use their stored size; a circle is positioned by its
    center. Lines and arrows have no size field and collapse to their anchor.
    """
    match shape:
        case RectShape():
            return Box(shape.x, shape.y, shape.width, shape.height)
        case ImageShape():
            return Box(
                shape.x,
                shape.y,
                shape.width if shape.width is not None else DEFAULT_IMAGE_WIDTH,
                shape.height if shape.height is not None else DEFAULT_IMAGE_HEIGHT,
            )
        case CircleShape():
            r = shape.radius
            return Box(shape.x - r, shape.y - r, 2 * r, 2 * r)
        case GroupShape():
            return Box(shape.x, shape.y, shape.width, shape.height)
        case TextShape():
            return Box(shape.x, shape.y, shape.width or 0, 0)
        case LineShape() | ArrowShape():
            return Box(shape.x, shape.y, 0, 0)
        case _:
            raise TypeError(f"Unknown shape kind: {type(shape).__name__}")


def center(shape: ShapeBase) -> tuple[float, float]:
    """Center of a shape's bounding box."""
    return bounding_box(shape).center()


def union_box(boxes: Iterable[Box]) -> Box | None:
    """Smallest box enclosing all `boxes`, or None when there are none."""
    boxes = list(boxes)
    if not boxes:
        return None
    min_x = min(b.x for b in boxes)
    min_y = min(b.y for b in boxes)
    max_x = max(b.right for b in boxes)
    max_y = max(b.bottom for b in boxes)
    return Box(min_x, min_y, max_x - min_x, max_y - min_y)


def normalize_rect(start: tuple[float, float], end: tuple[float, float]) -> Box:
    """Build a box from two drag points, in any direction."""
    x = min(start[0], end[0])
    y = min(start[1], end[1])
    return Box(x, y, abs(end[0] - start[0]), abs(end[1] - start[1]))
