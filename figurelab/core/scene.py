"""
Scene store - pure operations over an immutable SceneState.

Every function takes a SceneState and returns a new one. Records are replaced,
never mutated, so a SceneState kept on the undo stack stays valid forever.
"""

from dataclasses import replace
from enum import Enum
from typing import Iterable, Optional

from .models import (
    Connector,
    GroupShape,
    SceneState,
    ShapeBase,
    field_names,
    generate_shape_id,
)


DUPLICATE_OFFSET = 20


class ZOrder(str, Enum):
    """Directions for reordering shapes."""
    FORWARD = "forward"
    BACKWARD = "backward"
    FRONT = "front"
    BACK = "back"


# --- Queries ---

def get_shape(state: SceneState, shape_id: str) -> Optional[ShapeBase]:
    """Get a shape by ID."""
    for shape in state.shapes:
        if shape.id == shape_id:
            return shape
    return None


def get_connector(state: SceneState, connector_id: str) -> Optional[Connector]:
    """Get a connector by ID."""
    for connector in state.connectors:
        if connector.id == connector_id:
            return connector
    return None


def descendants(state: SceneState, group_id: str) -> list[str]:
    """
    All ids below a group, depth first.

    Missing members are skipped and a member listed twice (or a cycle) is only
    visited once.
    """
    by_id = {s.id: s for s in state.shapes}
    result: list[str] = []
    seen = {group_id}
    stack = [group_id]
    while stack:
        node = by_id.get(stack.pop())
        if not isinstance(node, GroupShape):
            continue
        for child_id in node.children:
            if child_id in seen or child_id not in by_id:
                continue
            seen.add(child_id)
            result.append(child_id)
            stack.append(child_id)
    return result


# --- Shapes ---

def insert_shape(state: SceneState, shape: ShapeBase) -> SceneState:
    """Append a shape at the front of the z-order."""
    if get_shape(state, shape.id) is not None:
        raise ValueError(f"Duplicate shape id: {shape.id}")
    return replace(state, shapes=state.shapes + (shape,))


def replace_shapes(state: SceneState, replacements: dict[str, ShapeBase]) -> SceneState:
    """Swap in new records for the given ids, keeping their positions."""
    if not replacements:
        return state
    shapes = tuple(replacements.get(s.id, s) for s in state.shapes)
    return replace(state, shapes=shapes)


def update_shape(state: SceneState, shape_id: str, partial: dict) -> SceneState:
    """
    Replace a shape with a copy carrying the `partial` changes.

    The merged record is revalidated. `id` and `type` cannot be changed this
    way; unknown ids leave the state untouched. Raises pydantic's
    ValidationError if the merged record is invalid.
    """
    shape = get_shape(state, shape_id)
    if shape is None:
        return state

    model_cls = type(shape)
    changes = field_names(model_cls, partial)
    changes.pop("id", None)
    changes.pop("type", None)
    if not changes:
        return state

    updated = model_cls.model_validate({**shape.model_dump(), **changes})
    return replace_shapes(state, {shape_id: updated})


def remove(state: SceneState, ids: Iterable[str]) -> SceneState:
    """Remove shapes by id, along with every connector touching them."""
    doomed = set(ids)
    if not doomed:
        return state
    shapes = tuple(s for s in state.shapes if s.id not in doomed)
    connectors = tuple(
        c for c in state.connectors
        if c.from_id not in doomed and c.to_id not in doomed
    )
    return SceneState(shapes=shapes, connectors=connectors)


def reorder(state: SceneState, ids: Iterable[str], direction: ZOrder | str) -> SceneState:
    """
    Move shapes through the z-order.

    `forward`/`backward` move each targeted shape one step, `front`/`back` to
    the extreme. Untouched shapes keep their relative order, and so do the
    targeted ones (a shape never hops over another targeted shape).
    """
    direction = ZOrder(direction)
    targets = set(ids)
    shapes = list(state.shapes)
    if not targets:
        return state

    if direction is ZOrder.FRONT:
        shapes = [s for s in shapes if s.id not in targets] + [s for s in shapes if s.id in targets]
    elif direction is ZOrder.BACK:
        shapes = [s for s in shapes if s.id in targets] + [s for s in shapes if s.id not in targets]
    elif direction is ZOrder.FORWARD:
        for i in range(len(shapes) - 2, -1, -1):
            if shapes[i].id in targets and shapes[i + 1].id not in targets:
                shapes[i], shapes[i + 1] = shapes[i + 1], shapes[i]
    else:
        for i in range(1, len(shapes)):
            if shapes[i].id in targets and shapes[i - 1].id not in targets:
                shapes[i], shapes[i - 1] = shapes[i - 1], shapes[i]

    return replace(state, shapes=tuple(shapes))


def translate(state: SceneState, deltas: dict[str, tuple[float, float]]) -> SceneState:
    """
    Move shapes by per-id (dx, dy) deltas.

    A group carries its descendants along. A shape that has its own delta uses
    it even when an ancestor group is moved too.
    """
    effective: dict[str, tuple[float, float]] = {}
    for shape_id, delta in deltas.items():
        shape = get_shape(state, shape_id)
        if isinstance(shape, GroupShape):
            for child_id in descendants(state, shape_id):
                effective.setdefault(child_id, delta)
    effective.update(deltas)

    replacements = {}
    for shape in state.shapes:
        delta = effective.get(shape.id)
        if delta is None or delta == (0, 0):
            continue
        dx, dy = delta
        replacements[shape.id] = shape.model_copy(update={"x": shape.x + dx, "y": shape.y + dy})
    return replace_shapes(state, replacements)


def duplicate(
    state: SceneState,
    ids: Iterable[str],
    offset: float = DUPLICATE_OFFSET,
) -> tuple[SceneState, list[str]]:
    """
    Copy shapes (groups with their whole subtree), offset by (+offset, +offset).

    Copies get fresh ids and are appended front-most in z-order. A copy only
    keeps a group relation when its group was copied too.

    Returns:
        (new state, ids of the copies of the requested shapes)
    """
    requested = [i for i in dict.fromkeys(ids) if get_shape(state, i) is not None]
    to_copy = set(requested)
    for shape_id in requested:
        to_copy.update(descendants(state, shape_id))

    id_map = {old: generate_shape_id() for old in to_copy}
    copies = []
    for shape in state.shapes:
        if shape.id not in to_copy:
            continue
        update = {
            "id": id_map[shape.id],
            "x": shape.x + offset,
            "y": shape.y + offset,
            "group_id": id_map.get(shape.group_id) if shape.group_id else None,
        }
        if isinstance(shape, GroupShape):
            update["children"] = tuple(id_map[c] for c in shape.children if c in id_map)
            update["member_parents"] = tuple(
                (id_map[m], p) for m, p in shape.member_parents if m in id_map
            )
        copies.append(shape.model_copy(update=update))

    new_state = replace(state, shapes=state.shapes + tuple(copies))
    return new_state, [id_map[i] for i in requested]


# --- Connectors ---

def add_connector(state: SceneState, connector: Connector) -> SceneState:
    """Append a connector."""
    if get_connector(state, connector.id) is not None:
        raise ValueError(f"Duplicate connector id: {connector.id}")
    return replace(state, connectors=state.connectors + (connector,))


def update_connector(state: SceneState, connector_id: str, partial: dict) -> SceneState:
    """Replace a connector with a revalidated copy carrying `partial`."""
    connector = get_connector(state, connector_id)
    if connector is None:
        return state
    changes = field_names(Connector, partial)
    changes.pop("id", None)
    changes.pop("type", None)
    if not changes:
        return state
    updated = Connector.model_validate({**connector.model_dump(), **changes})
    connectors = tuple(updated if c.id == connector_id else c for c in state.connectors)
    return replace(state, connectors=connectors)


def remove_connectors(state: SceneState, ids: Iterable[str]) -> SceneState:
    """Remove connectors by id."""
    doomed = set(ids)
    return replace(state, connectors=tuple(c for c in state.connectors if c.id not in doomed))
