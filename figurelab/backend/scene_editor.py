"""
Scene Editor - the store object behind every editing surface.

This module implements:
- Single document state management (one figure open at a time)
- Linear undo/redo history over immutable scene snapshots
- Selection, drag gestures and the editing commands of the toolbar
- JSON file persistence, including documents written by older versions

Every command goes through `_commit`, which refits group boxes and re-routes
connectors before the new scene becomes the present, so the history never
holds a scene with stale derived geometry.
"""

import json
import logging
from pathlib import Path
from typing import Any, Callable, Iterable, Optional

from pydantic import ValidationError

from ..core import actions as edit_actions
from ..core import export, grouping, layout, routing, scene
from ..core.history import DEFAULT_MAX_HISTORY, History
from ..core.models import (
    CanvasSize,
    Connector,
    DEFAULT_BACKGROUND,
    Document,
    GridConfig,
    GroupShape,
    SceneState,
    ShapeBase,
    field_names,
    shape_from_dict,
    with_creation_defaults,
)
from ..core.selection import Selection
from ..core.validation import ValidationIssue, validate_scene

logger = logging.getLogger(__name__)

NUDGE_STEP = 2


class DocumentLoadError(ValueError):
    """A document could not be loaded; the editor was left untouched."""


class SceneEditor:
    """
    Manages a single figure's state, history, selection and persistence.

    Canvas settings (size, background, grid) are document properties but not
    part of the undo history.
    """

    def __init__(self, max_history: int = DEFAULT_MAX_HISTORY):
        self._history: History[SceneState] = History(SceneState(), max_depth=max_history)
        self._selection = Selection()
        self._canvas_size = CanvasSize()
        self._background = DEFAULT_BACKGROUND
        self._grid = GridConfig()
        self._file_path: Optional[Path] = None
        self._dirty = False  # True if unsaved changes exist
        self._drag_ids: Optional[list[str]] = None
        self._on_change_callbacks: list[Callable] = []
        self._on_save_callbacks: list[Callable] = []  # Called after successful save

    # --- Properties ---

    @property
    def state(self) -> SceneState:
        """The current scene snapshot."""
        return self._history.present

    @property
    def shapes(self) -> tuple[ShapeBase, ...]:
        return self.state.shapes

    @property
    def connectors(self) -> tuple[Connector, ...]:
        return self.state.connectors

    @property
    def selection(self) -> Selection:
        return self._selection

    @property
    def selected_ids(self) -> list[str]:
        return self._selection.ids

    @property
    def history(self) -> History[SceneState]:
        return self._history

    @property
    def canvas_size(self) -> CanvasSize:
        return self._canvas_size

    @property
    def background(self) -> str:
        return self._background

    @property
    def grid(self) -> GridConfig:
        return self._grid

    @property
    def file_path(self) -> Optional[Path]:
        """Get the current file path."""
        return self._file_path

    @property
    def is_dirty(self) -> bool:
        """Check if there are unsaved changes."""
        return self._dirty

    @property
    def can_undo(self) -> bool:
        return self._history.can_undo

    @property
    def can_redo(self) -> bool:
        return self._history.can_redo

    def get_shape(self, shape_id: str) -> Optional[ShapeBase]:
        return scene.get_shape(self.state, shape_id)

    # --- Change Callbacks ---

    def on_change(self, callback: Callable):
        """Register a callback for scene changes."""
        self._on_change_callbacks.append(callback)

    def _notify_change(self):
        """Notify all registered callbacks of a change."""
        for callback in self._on_change_callbacks:
            callback()

    # --- Save Callbacks ---

    def on_save(self, callback: Callable):
        """Register a callback for document saves.

        Callback receives (path: Path, info: dict) where info contains:
        - shape_count: number of shapes
        - connector_count: number of connectors
        """
        self._on_save_callbacks.append(callback)

    def _notify_save(self, path: Path):
        """Notify all registered callbacks of a successful save."""
        info = {
            "shape_count": len(self.shapes),
            "connector_count": len(self.connectors),
        }
        for callback in self._on_save_callbacks:
            try:
                callback(path, info)
            except Exception:
                # A failing integration must not fail the save itself
                logger.exception("Save callback failed for %s", path)

    # --- Committing ---

    def _commit(self, new_state: SceneState, skip_history: bool = False) -> bool:
        """
        Make `new_state` the present after deriving group boxes and routes.

        Returns False (and records nothing) when the scene did not change.
        """
        new_state = routing.refresh_connectors(grouping.fit_groups(new_state))
        if new_state is self.state or new_state == self.state:
            return False

        if not skip_history and self._history.in_gesture:
            # A command landing mid-drag closes the drag where it is
            self._drag_ids = None
            self._history.end_gesture()

        self._history.set_state(new_state, skip_history=skip_history)
        self._selection.prune(new_state.shape_ids())
        self._dirty = True
        self._notify_change()
        return True

    def _targets(self, ids: Optional[Iterable[str]]) -> list[str]:
        return list(ids) if ids is not None else self._selection.ids

    # --- Document lifecycle ---

    def _install(self, document: Document, file_path: Optional[Path] = None):
        self._history.reset(document.scene())
        self._canvas_size = document.canvas_size
        self._background = document.background
        self._grid = document.grid_config
        self._selection.clear()
        self._drag_ids = None
        self._file_path = file_path
        self._dirty = False
        self._notify_change()

    def new_document(self) -> Document:
        """Start an empty figure with default canvas settings."""
        document = Document()
        self._install(document)
        logger.info("Started a new document")
        return document

    def load_document(self, data: Any, file_path: Optional[Path] = None) -> Document:
        """
        Replace the open figure with a parsed JSON document.

        Accepts the current format and the double-underscore keys of older
        exports. Nothing is changed if the document is rejected.

        Raises:
            DocumentLoadError: `shapes` is missing or not a list, a record is
                invalid, or two shapes share an id
        """
        if not isinstance(data, dict):
            raise DocumentLoadError("Document must be a JSON object")
        shapes = data.get("shapes", data.get("__shapes"))
        if not isinstance(shapes, list):
            raise DocumentLoadError("This JSON isn't a saved figure (no shape list)")

        try:
            document = Document.model_validate(data)
        except ValidationError as e:
            first = e.errors()[0]
            location = ".".join(str(part) for part in first["loc"])
            raise DocumentLoadError(
                f"Invalid document: {e.error_count()} error(s), first at {location}: {first['msg']}"
            ) from e

        ids = [s.id for s in document.shapes]
        if len(ids) != len(set(ids)):
            raise DocumentLoadError("Invalid document: duplicate shape ids")

        self._install(document, file_path)
        logger.info("Loaded document with %d shapes, %d connectors",
                    len(document.shapes), len(document.connectors))
        return document

    def open_document(self, file_path: str | Path) -> Document:
        """Open a figure from a JSON file."""
        path = Path(file_path)
        if not path.exists():
            raise FileNotFoundError(f"Document file not found: {path}")

        with open(path, "r", encoding="utf-8") as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as e:
                raise DocumentLoadError(f"Not valid JSON: {e}") from e

        document = self.load_document(data, file_path=path)
        logger.info("Opened %s", path)
        return document

    def to_document(self) -> Document:
        """The open figure in persistence form."""
        return Document.model_construct(
            canvas_size=self._canvas_size,
            background=self._background,
            grid_config=self._grid,
            shapes=list(self.shapes),
            connectors=list(self.connectors),
        )

    def save_document(self, file_path: Optional[str | Path] = None) -> Path:
        """
        Save the figure to a JSON file.

        If file_path is provided, save to that path (Save As).
        Otherwise, save to the current file_path.
        """
        if file_path:
            path = Path(file_path)
        elif self._file_path:
            path = self._file_path
        else:
            raise ValueError("No file path specified and no current file path")

        # Ensure parent directory exists
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.to_document().to_json_dict(), f, indent=2)

        self._file_path = path
        self._dirty = False
        logger.info("Saved %d shapes to %s", len(self.shapes), path)

        self._notify_save(path)
        return path

    # --- Undo/Redo ---

    def _after_time_travel(self, restored: Optional[SceneState]) -> Optional[SceneState]:
        if restored is None:
            return None
        self._selection.prune(restored.shape_ids())
        self._dirty = True
        self._notify_change()
        return restored

    def undo(self) -> Optional[SceneState]:
        """Undo the last command. Returns the restored scene, or None."""
        if self._history.in_gesture:
            self.end_drag()
        return self._after_time_travel(self._history.undo())

    def redo(self) -> Optional[SceneState]:
        """Redo the last undone command. Returns the restored scene, or None."""
        return self._after_time_travel(self._history.redo())

    # --- Selection ---

    def select(self, ids: Iterable[str]) -> list[str]:
        """Replace the selection; unknown ids are ignored."""
        existing = self.state.shape_ids()
        self._selection.set(i for i in ids if i in existing)
        self._notify_change()
        return self._selection.ids

    def toggle_select(self, shape_id: str) -> list[str]:
        if shape_id in self.state.shape_ids() or shape_id in self._selection:
            self._selection.toggle(shape_id)
            self._notify_change()
        return self._selection.ids

    def clear_selection(self):
        self._selection.clear()
        self._notify_change()

    def select_marquee(self, start: tuple[float, float], end: tuple[float, float]) -> list[str]:
        """Select the shapes lying fully inside the dragged rectangle."""
        hits = self._selection.select_marquee(self.shapes, start, end)
        self._notify_change()
        return hits

    # --- Shape commands ---

    def add_shape(self, shape_type: str, /, select: bool = True, **props) -> ShapeBase:
        """
        Add a new shape front-most.

        Raises:
            ValueError: Unknown type, invalid properties, or a taken id
        """
        shape = shape_from_dict({**with_creation_defaults(shape_type, props), "type": shape_type})
        self._commit(scene.insert_shape(self.state, shape))
        if select:
            self._selection.set([shape.id])
        logger.debug("Added %s %s", shape.type, shape.id)
        return shape

    def update_shape(self, shape_id: str, /, **changes) -> Optional[ShapeBase]:
        """
        Patch a shape's properties.

        Moving a group moves its members with it; its size is derived and
        cannot be set directly.

        Returns:
            The updated shape, or None if no shape has that id
        """
        shape = self.get_shape(shape_id)
        if shape is None:
            return None

        new_state = scene.update_shape(self.state, shape_id, field_names(type(shape), changes))
        if isinstance(shape, GroupShape):
            moved = scene.get_shape(new_state, shape_id)
            delta = (moved.x - shape.x, moved.y - shape.y)
            if delta != (0, 0):
                members = scene.descendants(new_state, shape_id)
                new_state = scene.translate(new_state, {m: delta for m in members})

        self._commit(new_state)
        return self.get_shape(shape_id)

    def delete_shapes(self, ids: Iterable[str]) -> list[str]:
        """Delete shapes (groups with their members). Returns the removed ids."""
        new_state, removed = grouping.remove_with_members(self.state, ids)
        if not removed:
            return []
        self._commit(new_state)
        logger.debug("Deleted %d shapes", len(removed))
        return sorted(removed)

    def delete_selected(self) -> list[str]:
        return self.delete_shapes(self._selection.ids)

    def reorder_selected(self, direction: scene.ZOrder | str) -> bool:
        """Move the selection forward, backward, to the front or to the back."""
        return self._commit(scene.reorder(self.state, self._selection.ids, direction))

    def duplicate_selected(self, offset: float = scene.DUPLICATE_OFFSET) -> list[str]:
        """Copy the selection; the copies become the new selection."""
        if not self._selection:
            return []
        new_state, new_ids = scene.duplicate(self.state, self._selection.ids, offset)
        self._commit(new_state)
        self._selection.set(new_ids)
        return new_ids

    def nudge(self, dx: float, dy: float, ids: Optional[Iterable[str]] = None) -> bool:
        """Move shapes (the selection by default) by a small offset."""
        targets = self._targets(ids)
        return self._commit(scene.translate(self.state, {i: (dx, dy) for i in targets}))

    # --- Drag gestures ---

    def begin_drag(self, ids: Optional[Iterable[str]] = None):
        """Start dragging shapes (the selection by default)."""
        if self._history.in_gesture:
            self.end_drag()
        self._drag_ids = self._targets(ids)
        self._history.begin_gesture()

    def drag_to(self, dx: float, dy: float) -> bool:
        """
        Move the dragged shapes to (dx, dy) from where the drag started.

        Intermediate positions replace the present without a history entry.
        """
        if not self._history.in_gesture or not self._drag_ids:
            return False
        origin = self._history.gesture_anchor
        moved = scene.translate(origin, {i: (dx, dy) for i in self._drag_ids})
        return self._commit(moved, skip_history=True)

    def end_drag(self) -> bool:
        """
        Finish the drag with one undoable entry, snapping to the grid if on.

        Returns True if the drag changed the scene.
        """
        if not self._history.in_gesture:
            return False
        ids, self._drag_ids = self._drag_ids or [], None
        if self._grid.snap_enabled and ids:
            self._commit(layout.snap_to_grid(self.state, ids, self._grid.grid_size), skip_history=True)
        changed = self._history.end_gesture()
        if changed:
            self._dirty = True
            self._notify_change()
        return changed

    def cancel_drag(self):
        """Abandon a drag, putting the shapes back."""
        if not self._history.in_gesture:
            return
        self._drag_ids = None
        self._history.cancel_gesture()
        self._notify_change()

    # --- Grouping ---

    def group_selected(self) -> Optional[str]:
        """Group the selection. Returns the new group id, or None."""
        result = grouping.group_shapes(self.state, self._selection.ids)
        if result is None:
            return None
        new_state, group_id = result
        self._commit(new_state)
        self._selection.set([group_id])
        return group_id

    def ungroup_selected(self) -> Optional[list[str]]:
        """
        Dissolve the one selected group; its members become the selection.

        Returns the member ids, or None if the selection is not a single group.
        """
        if len(self._selection) != 1:
            return None
        result = grouping.ungroup_shape(self.state, self._selection.ids[0])
        if result is None:
            return None
        new_state, member_ids = result
        self._commit(new_state)
        self._selection.set(member_ids)
        return member_ids

    # --- Layout ---

    def align_selected(self, mode: layout.AlignMode | str) -> bool:
        """Align the selection against the canvas."""
        new_state = layout.align(
            self.state,
            self._selection.ids,
            mode,
            (self._canvas_size.width, self._canvas_size.height),
        )
        if new_state is None:
            return False
        self._commit(new_state)
        return True

    def distribute_selected(self, axis: layout.Axis | str = layout.Axis.HORIZONTAL) -> bool:
        """Space three or more selected shapes evenly."""
        new_state = layout.distribute(self.state, self._selection.ids, axis)
        if new_state is None:
            return False
        self._commit(new_state)
        return True

    def snap_selected(self) -> bool:
        """Snap the selection to the grid."""
        return self._commit(
            layout.snap_to_grid(self.state, self._selection.ids, self._grid.grid_size)
        )

    # --- Connectors ---

    def connect(self, from_id: str, to_id: str, **style) -> Optional[Connector]:
        """Link two shapes with a routed connector. Returns None if either is missing."""
        result = routing.connect(self.state, from_id, to_id, **style)
        if result is None:
            return None
        new_state, connector = result
        self._commit(new_state)
        return connector

    def connect_selected(self, **style) -> Optional[Connector]:
        """
        Connect exactly two selected shapes.

        The shape further back in z-order is the source.
        """
        if len(self._selection) != 2:
            return None
        selected = self._selection.as_set()
        ordered = [s.id for s in self.shapes if s.id in selected]
        if len(ordered) != 2:
            return None
        return self.connect(ordered[0], ordered[1], **style)

    def update_connector(self, connector_id: str, **changes) -> Optional[Connector]:
        """Restyle a connector. Returns None if no connector has that id."""
        if scene.get_connector(self.state, connector_id) is None:
            return None
        self._commit(scene.update_connector(self.state, connector_id, changes))
        return scene.get_connector(self.state, connector_id)

    def delete_connector(self, connector_id: str) -> bool:
        if scene.get_connector(self.state, connector_id) is None:
            return False
        return self._commit(scene.remove_connectors(self.state, [connector_id]))

    # --- Canvas ---

    def update_canvas(
        self,
        width: Optional[float] = None,
        height: Optional[float] = None,
        background: Optional[str] = None,
        show_grid: Optional[bool] = None,
        grid_size: Optional[int] = None,
        snap_enabled: Optional[bool] = None,
    ):
        """Update canvas settings. These are not undoable."""
        size_update = {k: v for k, v in (("width", width), ("height", height)) if v is not None}
        if size_update:
            self._canvas_size = CanvasSize.model_validate(
                {**self._canvas_size.model_dump(), **size_update}
            )
        if background is not None:
            self._background = background
        grid_update = {
            k: v for k, v in (("show_grid", show_grid), ("grid_size", grid_size),
                              ("snap_enabled", snap_enabled))
            if v is not None
        }
        if grid_update:
            self._grid = GridConfig.model_validate({**self._grid.model_dump(), **grid_update})

        self._dirty = True
        self._notify_change()

    # --- AI collaboration ---

    def apply_actions(self, actions: Iterable[Any]) -> edit_actions.ActionReport:
        """Replay collaborator edit actions, one history entry each."""
        return edit_actions.apply_actions(self, actions)

    def canvas_description(self) -> dict:
        """The canvas as the collaborator sees it."""
        shapes = []
        for shape in self.shapes:
            properties = shape.to_json_dict()
            shapes.append({
                "id": properties.pop("id"),
                "type": properties.pop("type"),
                "properties": properties,
            })
        return {
            "shapes": shapes,
            "connectors": [c.to_json_dict() for c in self.connectors],
            "selectedIds": self._selection.ids,
            "canvasWidth": self._canvas_size.width,
            "canvasHeight": self._canvas_size.height,
        }

    # --- Queries ---

    def export_svg(self, include_metadata: bool = False, optimize: bool = True) -> str:
        return export.export_svg(
            self.state,
            self._canvas_size.width,
            self._canvas_size.height,
            background=self._background,
            include_metadata=include_metadata,
            optimize=optimize,
        )

    def validate(self) -> list[ValidationIssue]:
        return validate_scene(self.state)

    def get_state(self) -> dict:
        """Get the full current state for API responses."""
        return {
            "document": self.to_document().to_json_dict(),
            "selection": self._selection.ids,
            "file_path": str(self._file_path) if self._file_path else None,
            "is_dirty": self._dirty,
            "can_undo": self.can_undo,
            "can_redo": self.can_redo,
        }
