"""
Connector routing - orthogonal elbow links between shape centers.
"""

from dataclasses import replace
from typing import Optional

from . import scene
from .geometry import center
from .models import Connector, SceneState, ShapeBase


def route(a: ShapeBase, b: ShapeBase) -> tuple[float, ...]:
    """
    Elbow polyline from the center of `a` to the center of `b`.

    Runs horizontally first when the centers are further apart in x than in y,
    vertically first otherwise, so route(a, b) and route(b, a) bend the same
    way.

    Returns:
        Flat (start_x, start_y, bend_x, bend_y, end_x, end_y)
    """
    sx, sy = center(a)
    ex, ey = center(b)
    horizontal_first = abs(sx - ex) > abs(sy - ey)
    bx, by = (ex, sy) if horizontal_first else (sx, ey)
    return (sx, sy, bx, by, ex, ey)


def refresh_connectors(state: SceneState) -> SceneState:
    """
    Re-route every connector from current shape positions.

    A connector with a missing endpoint keeps its last known points.
    """
    by_id = {s.id: s for s in state.shapes}
    connectors = []
    changed = False
    for connector in state.connectors:
        source = by_id.get(connector.from_id)
        target = by_id.get(connector.to_id)
        if source is None or target is None:
            connectors.append(connector)
            continue
        points = route(source, target)
        if points != connector.points:
            connector = connector.model_copy(update={"points": points})
            changed = True
        connectors.append(connector)

    if not changed:
        return state
    return replace(state, connectors=tuple(connectors))


def connect(
    state: SceneState,
    from_id: str,
    to_id: str,
    **style,
) -> Optional[tuple[SceneState, Connector]]:
    """
    Create a routed connector between two existing shapes.

    Returns:
        (new state, connector), or None if either endpoint is missing
    """
    source = scene.get_shape(state, from_id)
    target = scene.get_shape(state, to_id)
    if source is None or target is None:
        return None
    connector = Connector(from_id=from_id, to_id=to_id, points=route(source, target), **style)
    return scene.add_connector(state, connector), connector
