"""Tests for grouping, ungrouping, nested groups and member-aware deletion."""

from figurelab.core import scene
from figurelab.core.geometry import Box, bounding_box
from figurelab.core.grouping import fit_groups, group_shapes, remove_with_members, ungroup_shape
from figurelab.core.models import Connector, GroupShape, RectShape


class TestGroup:
    def test_group_box_is_union(self, two_rects):
        state, gid = group_shapes(two_rects, ["a", "b"])
        group = scene.get_shape(state, gid)
        assert isinstance(group, GroupShape)
        assert bounding_box(group) == Box(0, 0, 250, 150)
        assert group.children == ("a", "b")
        assert group.name == "Group of 2"

    def test_group_is_front_most(self, two_rects):
        state, gid = group_shapes(two_rects, ["a", "b"])
        assert state.shapes[-1].id == gid

    def test_members_point_at_group(self, two_rects):
        state, gid = group_shapes(two_rects, ["a", "b"])
        assert scene.get_shape(state, "a").group_id == gid
        assert scene.get_shape(state, "b").group_id == gid

    def test_needs_two_shapes(self, two_rects):
        assert group_shapes(two_rects, ["a"]) is None
        assert group_shapes(two_rects, ["a", "missing"]) is None

    def test_member_selected_with_its_group_is_not_regrouped(self, grouped_scene):
        assert group_shapes(grouped_scene, ["g", "a"]) is None
        state, gid = group_shapes(grouped_scene, ["g", "a", "c"])
        assert scene.get_shape(state, gid).children == ("c", "g")
        assert scene.get_shape(state, "a").group_id == "g"


class TestUngroup:
    def test_round_trip_restores_members(self, two_rects):
        state, gid = group_shapes(two_rects, ["a", "b"])
        state, members = ungroup_shape(state, gid)
        assert members == ["a", "b"]
        assert state == two_rects

    def test_not_a_group(self, two_rects):
        assert ungroup_shape(two_rects, "a") is None
        assert ungroup_shape(two_rects, "missing") is None


class TestNested:
    def test_group_of_groups(self, grouped_scene):
        state, outer = group_shapes(grouped_scene, ["g", "c"])
        assert scene.get_shape(state, "g").group_id == outer
        assert bounding_box(scene.get_shape(state, outer)) == Box(0, 0, 520, 520)

    def test_regroup_inside_parent(self, grouped_scene):
        extra = RectShape(id="d", x=0, y=300, width=10, height=10, group_id="g")
        g = scene.get_shape(grouped_scene, "g").model_copy(update={"children": ("a", "b", "d")})
        state = scene.replace_shapes(scene.insert_shape(grouped_scene, extra), {"g": g})

        state, inner = group_shapes(state, ["a", "b"])
        assert scene.get_shape(state, inner).group_id == "g"
        assert scene.get_shape(state, "g").children == (inner, "d")

    def test_ungroup_hands_members_to_parent(self, grouped_scene):
        state, outer = group_shapes(grouped_scene, ["g", "c"])
        state, members = ungroup_shape(state, "g")
        assert sorted(members) == ["a", "b"]
        assert scene.get_shape(state, "a").group_id == outer
        assert scene.get_shape(state, outer).children == ("c", "a", "b")

    def test_mixed_parents_round_trip(self, grouped_scene):
        before = {s.id: s.group_id for s in grouped_scene.shapes}
        state, gid = group_shapes(grouped_scene, ["a", "c"])
        group = scene.get_shape(state, gid)
        assert group.group_id is None
        assert group.member_parents == (("a", "g"),)
        assert scene.get_shape(state, "g").children == ("b",)

        state, members = ungroup_shape(state, gid)
        assert members == ["a", "c"]
        assert {s.id: s.group_id for s in state.shapes} == before
        assert scene.get_shape(state, "g").children == ("a", "b")

    def test_former_parent_gone_falls_back(self, grouped_scene):
        state, gid = group_shapes(grouped_scene, ["a", "c"])
        state, removed = remove_with_members(state, ["b"])
        assert removed == {"b", "g"}
        state, _ = ungroup_shape(state, gid)
        assert scene.get_shape(state, "a").group_id is None

    def test_fit_groups_is_recursive(self, grouped_scene):
        state, outer = group_shapes(grouped_scene, ["g", "c"])
        state = fit_groups(scene.translate(state, {"a": (-50, -50)}))
        assert bounding_box(scene.get_shape(state, "g")) == Box(-50, -50, 300, 200)
        assert bounding_box(scene.get_shape(state, outer)) == Box(-50, -50, 570, 570)


class TestRemoveWithMembers:
    def test_deleting_group_deletes_subtree(self, grouped_scene):
        state = scene.add_connector(grouped_scene, Connector(id="k", from_id="a", to_id="c"))
        state, removed = remove_with_members(state, ["g"])
        assert removed == {"g", "a", "b"}
        assert [s.id for s in state.shapes] == ["c"]
        assert state.connectors == ()

    def test_deleting_member_scrubs_parent(self, grouped_scene):
        state, removed = remove_with_members(grouped_scene, ["a"])
        assert removed == {"a"}
        assert scene.get_shape(state, "g").children == ("b",)

    def test_emptied_group_cascades(self, grouped_scene):
        state, removed = remove_with_members(grouped_scene, ["a", "b"])
        assert removed == {"a", "b", "g"}

    def test_unknown_ids(self, grouped_scene):
        state, removed = remove_with_members(grouped_scene, ["zzz"])
        assert state is grouped_scene
        assert removed == set()
