"""
FigureLab Core - Shape models, scene operations, history, layout and export.

This module provides the editing logic shared by the backend API, the CLI
and the MCP tools. Everything here is synchronous and free of I/O.
"""

from .models import (
    # Enums
    ShapeKind,
    TextAlign,
    # Shape models
    ShapeBase,
    RectShape,
    CircleShape,
    LineShape,
    ArrowShape,
    TextShape,
    ImageShape,
    GroupShape,
    Shape,
    shape_from_dict,
    # Scene and persistence
    Connector,
    SceneState,
    CanvasSize,
    GridConfig,
    Document,
)

from .history import History
from .selection import Selection, marquee_hits
from .geometry import Box, bounding_box, center
from .scene import ZOrder
from .grouping import group_shapes, ungroup_shape, fit_groups, remove_with_members
from .layout import AlignMode, Axis, align, distribute, snap_to_grid
from .routing import route, connect, refresh_connectors
from .export import export_svg, escape_xml, sanitize_url
from .validation import validate_scene, validation_summary, ValidationIssue, IssueSeverity
from .actions import EditAction, EditActionType, ActionReport, apply_actions

__all__ = [
    # Enums
    "ShapeKind",
    "TextAlign",
    # Models
    "ShapeBase",
    "RectShape",
    "CircleShape",
    "LineShape",
    "ArrowShape",
    "TextShape",
    "ImageShape",
    "GroupShape",
    "Shape",
    "shape_from_dict",
    "Connector",
    "SceneState",
    "CanvasSize",
    "GridConfig",
    "Document",
    # History & selection
    "History",
    "Selection",
    "marquee_hits",
    # Geometry
    "Box",
    "bounding_box",
    "center",
    # Scene
    "ZOrder",
    # Grouping
    "group_shapes",
    "ungroup_shape",
    "fit_groups",
    "remove_with_members",
    # Layout
    "AlignMode",
    "Axis",
    "align",
    "distribute",
    "snap_to_grid",
    # Routing
    "route",
    "connect",
    "refresh_connectors",
    # Export
    "export_svg",
    "escape_xml",
    "sanitize_url",
    # Validation
    "validate_scene",
    "validation_summary",
    "ValidationIssue",
    "IssueSeverity",
    # Edit actions
    "EditAction",
    "EditActionType",
    "ActionReport",
    "apply_actions",
]
