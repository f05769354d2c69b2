"""Shared fixtures for the FigureLab test suite."""

import pytest

from figurelab.backend.scene_editor import SceneEditor
from figurelab.core.models import CircleShape, GroupShape, RectShape, SceneState


@pytest.fixture()
def editor():
    """A fresh editor with an empty figure."""
    return SceneEditor()


@pytest.fixture()
def two_rects():
    """Two rects side by side: a at (0,0) 100x50, b at (200,100) 50x50."""
    a = RectShape(id="a", x=0, y=0, width=100, height=50)
    b = RectShape(id="b", x=200, y=100, width=50, height=50)
    return SceneState(shapes=(a, b))


@pytest.fixture()
def grouped_scene():
    """Group g holding rects a and b, plus a loose circle c."""
    g = GroupShape(id="g", x=0, y=0, width=250, height=150, children=("a", "b"))
    a = RectShape(id="a", x=0, y=0, width=100, height=50, group_id="g")
    b = RectShape(id="b", x=200, y=100, width=50, height=50, group_id="g")
    c = CircleShape(id="c", x=500, y=500, radius=20)
    return SceneState(shapes=(a, b, c, g))
