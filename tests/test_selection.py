"""Tests for bounding boxes, marquee hit-testing and the selection set."""

from figurelab.core.geometry import Box, bounding_box, normalize_rect, union_box
from figurelab.core.models import CircleShape, ImageShape, LineShape, RectShape, TextShape
from figurelab.core.selection import Selection, marquee_hits


class TestBoundingBox:
    def test_circle_is_centered(self):
        assert bounding_box(CircleShape(x=300, y=300, radius=80)) == Box(220, 220, 160, 160)

    def test_image_default_size(self):
        assert bounding_box(ImageShape(x=1, y=2)) == Box(1, 2, 300, 200)

    def test_text_and_line_collapse(self):
        assert bounding_box(TextShape(x=5, y=6)) == Box(5, 6, 0, 0)
        assert bounding_box(LineShape(x=5, y=6, points=(0, 0, 10, 10))) == Box(5, 6, 0, 0)

    def test_union(self):
        assert union_box([Box(0, 0, 10, 10), Box(20, 5, 10, 10)]) == Box(0, 0, 30, 15)
        assert union_box([]) is None

    def test_normalize_any_direction(self):
        assert normalize_rect((60, 60), (0, 0)) == Box(0, 0, 60, 60)


class TestMarquee:
    def test_containment_not_intersection(self):
        shapes = [RectShape(id="r", x=0, y=0, width=50, height=50)]
        assert marquee_hits(shapes, normalize_rect((0, 0), (40, 40))) == []
        assert marquee_hits(shapes, normalize_rect((0, 0), (60, 60))) == ["r"]

    def test_edges_inclusive(self):
        shapes = [RectShape(id="r", x=0, y=0, width=50, height=50)]
        assert marquee_hits(shapes, Box(0, 0, 50, 50)) == ["r"]

    def test_circle_uses_bounding_box(self):
        shapes = [CircleShape(id="c", x=100, y=100, radius=20)]
        assert marquee_hits(shapes, Box(85, 85, 30, 30)) == []
        assert marquee_hits(shapes, Box(80, 80, 40, 40)) == ["c"]


class TestSelection:
    def test_toggle(self):
        selection = Selection(["a"])
        selection.toggle("b")
        selection.toggle("a")
        assert selection.ids == ["b"]

    def test_prune(self):
        selection = Selection(["a", "b", "c"])
        selection.prune({"a", "c"})
        assert selection.ids == ["a", "c"]

    def test_select_marquee_replaces(self):
        selection = Selection(["old"])
        shapes = [RectShape(id="r", x=10, y=10, width=10, height=10)]
        assert selection.select_marquee(shapes, (100, 100), (0, 0)) == ["r"]
        assert "old" not in selection
        assert len(selection) == 1
