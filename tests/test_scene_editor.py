"""Tests for the SceneEditor store: commands, history, gestures and persistence."""

import json

import pytest

from figurelab.backend.scene_editor import DocumentLoadError, SceneEditor
from figurelab.core.models import CircleShape, GroupShape, RectShape


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _add_rect(editor, **kwargs):
    props = {"x": 100, "y": 100, "width": 240, "height": 140}
    props.update(kwargs)
    return editor.add_shape("rect", **props)


def _positions(editor):
    return {s.id: (s.x, s.y) for s in editor.shapes}


# ---------------------------------------------------------------------------
# End to end
# ---------------------------------------------------------------------------

class TestEndToEnd:
    def test_connector_follows_moved_shape(self, editor):
        rect = _add_rect(editor)
        circle = editor.add_shape("circle", x=300, y=300, radius=80)
        editor.select([rect.id, circle.id])

        connector = editor.connect_selected()
        assert connector.points[:2] == (220, 170)
        assert connector.points[-2:] == (300, 300)

        editor.update_shape(rect.id, x=150)
        assert editor.connectors[0].points[:2] == (270, 170)
        assert editor.connectors[0].points[-2:] == (300, 300)

        editor.undo()
        assert editor.connectors[0].points[:2] == (220, 170)

    def test_each_command_is_one_undo_step(self, editor):
        rect = _add_rect(editor)
        editor.update_shape(rect.id, fill="#ff0000")
        editor.nudge(2, 0)
        assert len(editor.history.past) == 3

        editor.undo()
        assert editor.get_shape(rect.id).x == 100
        editor.undo()
        assert editor.get_shape(rect.id).fill == "#f8fafc"
        editor.undo()
        assert editor.shapes == ()

        for _ in range(3):
            editor.redo()
        shape = editor.get_shape(rect.id)
        assert (shape.x, shape.fill) == (102, "#ff0000")

    def test_noop_command_records_nothing(self, editor):
        rect = _add_rect(editor)
        editor.update_shape(rect.id, bogus=1)
        editor.align_selected("left")
        editor.align_selected("left")
        assert len(editor.history.past) == 2


# ---------------------------------------------------------------------------
# Shapes
# ---------------------------------------------------------------------------

class TestShapes:
    def test_add_selects_new_shape(self, editor):
        rect = _add_rect(editor)
        assert isinstance(rect, RectShape)
        assert editor.selected_ids == [rect.id]
        assert editor.is_dirty

    def test_add_uses_toolbar_defaults(self, editor):
        rect = editor.add_shape("rect")
        assert (rect.fill, rect.stroke, rect.stroke_width, rect.corner_radius) == (
            "#f8fafc", "#0f172a", 2, 12,
        )
        assert rect.name == "Rectangle"
        arrow = editor.add_shape("arrow", strokeWidth=5, points=[0, 0, 10, 10])
        assert (arrow.stroke, arrow.stroke_width) == ("#0f172a", 5)
        assert editor.add_shape("text").text == "Double-click to edit"

    def test_add_invalid_raises(self, editor):
        with pytest.raises(ValueError):
            editor.add_shape("rect", opacity=4)
        with pytest.raises(ValueError):
            editor.add_shape("hexagon")
        assert editor.shapes == ()

    def test_update_missing(self, editor):
        assert editor.update_shape("missing", x=1) is None

    def test_delete_selected_removes_connectors(self, editor):
        a = _add_rect(editor)
        b = editor.add_shape("circle")
        editor.connect(a.id, b.id)
        editor.select([a.id])
        assert editor.delete_selected() == [a.id]
        assert editor.connectors == ()
        assert editor.selected_ids == []

    def test_duplicate_selects_copies(self, editor):
        rect = _add_rect(editor)
        new_ids = editor.duplicate_selected()
        assert editor.selected_ids == new_ids
        copy = editor.get_shape(new_ids[0])
        assert (copy.x, copy.y) == (120, 120)

    def test_duplicate_nothing_selected(self, editor):
        assert editor.duplicate_selected() == []

    def test_reorder(self, editor):
        a = _add_rect(editor)
        _add_rect(editor)
        editor.select([a.id])
        assert editor.reorder_selected("front") is True
        assert editor.shapes[-1].id == a.id

    def test_undo_prunes_selection(self, editor):
        _add_rect(editor)
        editor.undo()
        assert editor.selected_ids == []


# ---------------------------------------------------------------------------
# Drag gestures
# ---------------------------------------------------------------------------

class TestDrag:
    def test_drag_is_one_entry_and_snaps(self, editor):
        rect = _add_rect(editor)
        before = len(editor.history.past)

        editor.begin_drag()
        for step in range(1, 12):
            editor.drag_to(step * 3, 7)
        assert editor.end_drag() is True

        shape = editor.get_shape(rect.id)
        assert (shape.x, shape.y) == (140, 100)
        assert len(editor.history.past) == before + 1

        editor.undo()
        shape = editor.get_shape(rect.id)
        assert (shape.x, shape.y) == (100, 100)

    def test_drag_without_snap(self, editor):
        rect = _add_rect(editor)
        editor.update_canvas(snap_enabled=False)
        editor.begin_drag([rect.id])
        editor.drag_to(33, 7)
        editor.end_drag()
        shape = editor.get_shape(rect.id)
        assert (shape.x, shape.y) == (133, 107)

    def test_drag_moves_connectors(self, editor):
        a = _add_rect(editor, x=0, y=0, width=20, height=20)
        b = _add_rect(editor, x=400, y=0, width=20, height=20)
        editor.connect(a.id, b.id)
        editor.update_canvas(snap_enabled=False)
        editor.begin_drag([b.id])
        editor.drag_to(0, 100)
        assert editor.connectors[0].points[-2:] == (410, 110)
        editor.end_drag()

    def test_command_during_drag_closes_it(self, editor):
        rect = _add_rect(editor)
        editor.update_canvas(snap_enabled=False)
        before = len(editor.history.past)

        editor.begin_drag([rect.id])
        editor.drag_to(5, 0)
        circle = editor.add_shape("circle", x=500, y=500)
        assert not editor.history.in_gesture
        assert editor.drag_to(10, 0) is False
        assert editor.end_drag() is False

        assert editor.get_shape(circle.id) is not None
        assert editor.get_shape(rect.id).x == 105
        assert len(editor.history.past) == before + 2

        editor.undo()
        assert editor.get_shape(circle.id) is None
        assert editor.get_shape(rect.id).x == 105
        editor.undo()
        assert editor.get_shape(rect.id).x == 100

    def test_cancel_drag(self, editor):
        rect = _add_rect(editor)
        editor.begin_drag()
        editor.drag_to(50, 50)
        editor.cancel_drag()
        assert editor.get_shape(rect.id).x == 100
        assert not editor.history.in_gesture


# ---------------------------------------------------------------------------
# Grouping & layout
# ---------------------------------------------------------------------------

class TestGrouping:
    def test_group_then_ungroup_restores(self, editor):
        a = _add_rect(editor, x=0, y=0)
        b = editor.add_shape("circle", x=500, y=500, radius=40)
        editor.select([a.id, b.id])
        positions = _positions(editor)

        group_id = editor.group_selected()
        assert editor.selected_ids == [group_id]
        assert isinstance(editor.get_shape(group_id), GroupShape)

        members = editor.ungroup_selected()
        assert sorted(members) == sorted([a.id, b.id])
        assert editor.selected_ids == sorted([a.id, b.id])
        assert _positions(editor) == positions
        assert all(s.group_id is None for s in editor.shapes)

    def test_group_needs_two(self, editor):
        _add_rect(editor)
        assert editor.group_selected() is None
        assert editor.ungroup_selected() is None

    def test_moving_group_moves_members(self, editor):
        a = _add_rect(editor, x=0, y=0, width=10, height=10)
        b = _add_rect(editor, x=50, y=50, width=10, height=10)
        editor.select([a.id, b.id])
        group_id = editor.group_selected()

        editor.update_shape(group_id, x=100)
        assert editor.get_shape(a.id).x == 100
        assert editor.get_shape(b.id).x == 150
        assert editor.get_shape(group_id).width == 60

    def test_moving_member_refits_group(self, editor):
        a = _add_rect(editor, x=0, y=0, width=10, height=10)
        b = _add_rect(editor, x=50, y=50, width=10, height=10)
        editor.select([a.id, b.id])
        group_id = editor.group_selected()

        editor.update_shape(b.id, x=90)
        assert editor.get_shape(group_id).width == 100

    def test_delete_group_deletes_members(self, editor):
        a = _add_rect(editor)
        b = _add_rect(editor)
        editor.select([a.id, b.id])
        group_id = editor.group_selected()
        removed = editor.delete_selected()
        assert sorted(removed) == sorted([a.id, b.id, group_id])
        assert editor.shapes == ()

    def test_align_and_distribute(self, editor):
        ids = [_add_rect(editor, x=x, y=y, width=10, height=10).id
               for x, y in ((0, 0), (15, 40), (100, 80))]
        editor.select(ids)
        assert editor.distribute_selected("horizontal") is True
        assert editor.get_shape(ids[1]).x == 50
        assert editor.align_selected("top") is True
        assert {s.y for s in editor.shapes} == {10}

    def test_distribute_needs_three(self, editor):
        editor.select([_add_rect(editor).id, _add_rect(editor).id])
        assert editor.distribute_selected() is False

    def test_connect_selected_needs_two(self, editor):
        _add_rect(editor)
        assert editor.connect_selected() is None


# ---------------------------------------------------------------------------
# Selection
# ---------------------------------------------------------------------------

class TestSelection:
    def test_select_ignores_unknown(self, editor):
        rect = _add_rect(editor)
        assert editor.select([rect.id, "ghost"]) == [rect.id]

    def test_marquee(self, editor):
        inside = _add_rect(editor, x=0, y=0, width=50, height=50)
        _add_rect(editor, x=0, y=0, width=500, height=500)
        assert editor.select_marquee((0, 0), (60, 60)) == [inside.id]

    def test_toggle(self, editor):
        rect = _add_rect(editor)
        editor.toggle_select(rect.id)
        assert editor.selected_ids == []
        editor.toggle_select(rect.id)
        assert editor.selected_ids == [rect.id]


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------

class TestPersistence:
    def test_save_and_open(self, editor, tmp_path):
        rect = _add_rect(editor)
        editor.add_shape("circle", x=10, y=10)
        editor.update_canvas(width=640, background="#eeeeee")
        path = editor.save_document(tmp_path / "figure.json")
        assert not editor.is_dirty

        data = json.loads(path.read_text())
        assert data["version"] == 3
        assert data["canvasSize"] == {"width": 640, "height": 800}
        assert data["shapes"][0]["cornerRadius"] == 0

        other = SceneEditor()
        other.open_document(path)
        assert [s.id for s in other.shapes] == [s.id for s in editor.shapes]
        assert other.get_shape(rect.id) == rect
        assert other.canvas_size.width == 640
        assert other.background == "#eeeeee"
        assert not other.can_undo

    def test_save_without_path(self, editor):
        with pytest.raises(ValueError):
            editor.save_document()

    def test_open_missing(self, editor, tmp_path):
        with pytest.raises(FileNotFoundError):
            editor.open_document(tmp_path / "nope.json")

    def test_open_malformed_json(self, editor, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("{not json")
        with pytest.raises(DocumentLoadError):
            editor.open_document(path)

    @pytest.mark.parametrize("data", [
        [],
        {"shapes": "nope"},
        {"connectors": []},
        {"shapes": [{"type": "rect", "x": "abc"}]},
        {"shapes": [{"type": "hexagon"}]},
        {"shapes": [{"type": "rect", "id": "a"}, {"type": "circle", "id": "a"}]},
    ])
    def test_rejected_load_changes_nothing(self, editor, data):
        rect = _add_rect(editor)
        state = editor.state
        with pytest.raises(DocumentLoadError):
            editor.load_document(data)
        assert editor.state is state
        assert editor.selected_ids == [rect.id]

    def test_load_legacy(self, editor):
        editor.load_document({
            "__version": 2,
            "__bg": "#101010",
            "__size": {"width": 900, "height": 500},
            "__grid": {"showGrid": True, "gridSize": 25, "snapEnabled": False},
            "__shapes": [
                {"type": "rect", "id": "r1", "x": 0, "y": 0, "width": 20, "height": 20},
                {"type": "circle", "id": "c1", "x": 200, "y": 10, "radius": 10},
            ],
            "__connectors": [{"id": "k", "from": "r1", "to": "c1"}],
        })
        assert editor.background == "#101010"
        assert editor.grid.grid_size == 25
        assert isinstance(editor.get_shape("c1"), CircleShape)
        assert editor.connectors[0].from_id == "r1"
        assert not editor.is_dirty

    def test_load_tolerates_dangling_references(self, editor):
        editor.load_document({
            "shapes": [{"type": "rect", "id": "r1", "groupId": "ghost"}],
            "connectors": [{"id": "k", "fromId": "r1", "toId": "gone"}],
        })
        assert len(editor.shapes) == 1
        assert len(editor.validate()) == 2

    def test_new_document_resets(self, editor):
        _add_rect(editor)
        editor.new_document()
        assert editor.shapes == ()
        assert not editor.can_undo
        assert editor.file_path is None


# ---------------------------------------------------------------------------
# Callbacks & queries
# ---------------------------------------------------------------------------

class TestCallbacks:
    def test_on_change(self, editor):
        calls = []
        editor.on_change(lambda: calls.append(1))
        _add_rect(editor)
        editor.undo()
        assert len(calls) == 2

    def test_on_save(self, editor, tmp_path):
        received = []

        def broken(path, info):
            raise RuntimeError("boom")

        editor.on_save(broken)
        editor.on_save(lambda path, info: received.append((path, info)))
        _add_rect(editor)
        path = editor.save_document(tmp_path / "x.json")
        assert received == [(path, {"shape_count": 1, "connector_count": 0})]


class TestQueries:
    def test_canvas_description(self, editor):
        rect = _add_rect(editor, fill="#f8fafc")
        description = editor.canvas_description()
        assert description["canvasWidth"] == 1200
        assert description["canvasHeight"] == 800
        shape = description["shapes"][0]
        assert shape["id"] == rect.id
        assert shape["type"] == "rect"
        assert shape["properties"]["fill"] == "#f8fafc"

    def test_get_state(self, editor):
        _add_rect(editor)
        state = editor.get_state()
        assert state["can_undo"] is True
        assert state["is_dirty"] is True
        assert len(state["document"]["shapes"]) == 1

    def test_export_uses_canvas(self, editor):
        editor.update_canvas(width=300, height=200)
        svg = editor.export_svg()
        assert 'viewBox="0 0 300 200"' in svg

    def test_history_depth(self):
        editor = SceneEditor(max_history=2)
        for _ in range(4):
            _add_rect(editor)
        assert len(editor.history.past) == 2
