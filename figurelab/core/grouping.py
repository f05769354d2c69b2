"""
Grouping - fold a selection into one compound shape, reversibly.

Nesting policy:
- group/ungroup work one level at a time
- a new group joins the members' common parent group, if they share one
- ungrouping hands the members to the ungrouped group's parent, except
  members that were pulled out of another group, which go back to it
- group geometry is derived from the members (`fit_groups`), recursively,
  so a nested group's box is itself the union of its own members
"""

import logging
from typing import Iterable, Optional

from . import scene
from .geometry import Box, bounding_box, union_box
from .models import GroupShape, SceneState, ShapeBase, generate_shape_id

logger = logging.getLogger(__name__)

MIN_GROUP_SIZE = 2


def _ancestors(by_id: dict[str, ShapeBase], shape: ShapeBase) -> set[str]:
    """Ids of the groups above a shape, following group_id links."""
    result: set[str] = set()
    parent_id = shape.group_id
    while parent_id and parent_id not in result:
        result.add(parent_id)
        parent = by_id.get(parent_id)
        parent_id = parent.group_id if parent is not None else None
    return result


def group_shapes(
    state: SceneState,
    ids: Iterable[str],
    group_id: Optional[str] = None,
) -> Optional[tuple[SceneState, str]]:
    """
    Fold shapes into a new group placed front-most.

    The group box is the union of the member boxes. Members selected together
    with one of their ancestor groups come along with that group and are not
    regrouped on their own.

    Returns:
        (new state, group id), or None when fewer than two shapes qualify
    """
    wanted = set(ids)
    by_id = {s.id: s for s in state.shapes}
    members = [s for s in state.shapes if s.id in wanted]
    members = [m for m in members if not (_ancestors(by_id, m) & wanted)]
    if len(members) < MIN_GROUP_SIZE:
        return None

    group_id = group_id or generate_shape_id()
    box = union_box(bounding_box(m) for m in members)
    member_ids = tuple(m.id for m in members)

    parents = {m.group_id for m in members}
    common_parent = parents.pop() if len(parents) == 1 else None
    if not isinstance(by_id.get(common_parent), GroupShape):
        common_parent = None

    group = GroupShape(
        id=group_id,
        x=box.x,
        y=box.y,
        width=box.w,
        height=box.h,
        children=member_ids,
        name=f"Group of {len(members)}",
        group_id=common_parent,
        member_parents=tuple(
            (m.id, m.group_id) for m in members
            if m.group_id and m.group_id != common_parent
        ),
    )

    replacements: dict[str, ShapeBase] = {
        m.id: m.model_copy(update={"group_id": group_id}) for m in members
    }
    for parent_id in {m.group_id for m in members if m.group_id}:
        parent = by_id.get(parent_id)
        if not isinstance(parent, GroupShape):
            continue
        children: list[str] = []
        for child_id in parent.children:
            if child_id in member_ids:
                if parent_id == common_parent and group_id not in children:
                    children.append(group_id)
                continue
            children.append(child_id)
        replacements[parent_id] = parent.model_copy(update={"children": tuple(children)})

    new_state = scene.replace_shapes(state, replacements)
    new_state = scene.insert_shape(new_state, group)
    logger.debug("grouped %d shapes into %s", len(members), group_id)
    return new_state, group_id


def ungroup_shape(state: SceneState, group_id: str) -> Optional[tuple[SceneState, list[str]]]:
    """
    Remove a group shape, keeping its members.

    Members move to the group's parent (or to the top level) and keep their
    positions. A member that was pulled out of another group when this one
    was formed goes back to that group, if it still exists.

    Returns:
        (new state, member ids), or None if `group_id` is not a group
    """
    group = scene.get_shape(state, group_id)
    if not isinstance(group, GroupShape):
        return None

    by_id = {s.id: s for s in state.shapes}
    member_ids = [c for c in group.children if c in by_id]
    former = dict(group.member_parents)
    z_index = {s.id: i for i, s in enumerate(state.shapes)}

    def destination(member_id: str) -> Optional[str]:
        parent_id = former.get(member_id)
        if (isinstance(by_id.get(parent_id), GroupShape) and parent_id != group_id
                and parent_id not in scene.descendants(state, member_id)):
            return parent_id
        return group.group_id

    targets = {c: destination(c) for c in member_ids}
    replacements: dict[str, ShapeBase] = {
        c: by_id[c].model_copy(update={"group_id": targets[c]}) for c in member_ids
    }
    for parent_id in {p for p in targets.values() if p}:
        parent = by_id.get(parent_id)
        if not isinstance(parent, GroupShape):
            continue
        returning = [c for c in member_ids if targets[c] == parent_id]
        children: list[str] = []
        for child_id in parent.children:
            if child_id == group_id:
                children.extend(returning)
            elif child_id not in returning:
                children.append(child_id)
        if group_id not in parent.children:
            children.extend(returning)
            children.sort(key=lambda c: z_index.get(c, len(z_index)))
        replacements[parent.id] = parent.model_copy(update={"children": tuple(children)})

    new_state = scene.replace_shapes(state, replacements)
    new_state = scene.remove(new_state, [group_id])
    logger.debug("ungrouped %s into %d members", group_id, len(member_ids))
    return new_state, member_ids


def fit_groups(state: SceneState) -> SceneState:
    """
    Recompute every group's box from its live members, innermost first.

    A group whose members are all gone keeps its last box.
    """
    by_id = {s.id: s for s in state.shapes}
    boxes: dict[str, Optional[Box]] = {}

    def box_of(shape_id: str, visiting: frozenset) -> Optional[Box]:
        if shape_id in boxes:
            return boxes[shape_id]
        shape = by_id[shape_id]
        if not isinstance(shape, GroupShape):
            return bounding_box(shape)
        visiting = visiting | {shape_id}
        member_boxes = [
            box_of(c, visiting) for c in shape.children
            if c in by_id and c not in visiting
        ]
        box = union_box(b for b in member_boxes if b is not None)
        boxes[shape_id] = box
        return box

    replacements: dict[str, ShapeBase] = {}
    for shape in state.shapes:
        if not isinstance(shape, GroupShape):
            continue
        box = box_of(shape.id, frozenset())
        if box is None or box == bounding_box(shape):
            continue
        replacements[shape.id] = shape.model_copy(
            update={"x": box.x, "y": box.y, "width": box.w, "height": box.h}
        )
    return scene.replace_shapes(state, replacements)


def remove_with_members(state: SceneState, ids: Iterable[str]) -> tuple[SceneState, set[str]]:
    """
    Delete shapes, cleaning up every group relation they took part in.

    Deleting a group deletes its subtree. Deleted shapes are dropped from
    their parents' member lists, and groups left without members are deleted
    too. Connectors touching any deleted shape go with it.

    Returns:
        (new state, ids actually removed)
    """
    doomed = {i for i in ids if scene.get_shape(state, i) is not None}
    for shape_id in list(doomed):
        doomed.update(scene.descendants(state, shape_id))

    # Cascade: a group whose every member is doomed goes too
    changed = True
    while changed:
        changed = False
        for shape in state.shapes:
            if (isinstance(shape, GroupShape) and shape.id not in doomed
                    and shape.children and set(shape.children) <= doomed):
                doomed.add(shape.id)
                changed = True

    if not doomed:
        return state, set()

    replacements: dict[str, ShapeBase] = {}
    for shape in state.shapes:
        if shape.id in doomed:
            continue
        update = {}
        if shape.group_id in doomed:
            update["group_id"] = None
        if isinstance(shape, GroupShape) and any(c in doomed for c in shape.children):
            update["children"] = tuple(c for c in shape.children if c not in doomed)
        if update:
            replacements[shape.id] = shape.model_copy(update=update)

    new_state = scene.replace_shapes(state, replacements)
    return scene.remove(new_state, doomed), doomed
