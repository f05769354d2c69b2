"""
Edit actions - the structured command language of the AI collaborator.

A collaborator answers a natural-language request with a list of EditActions.
They are replayed in order through the editor's public commands, so every
applied action is one undoable history entry. A malformed entry is skipped
and logged; the rest of the batch still runs.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Iterable, Optional

from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.alias_generators import to_camel

from .layout import Axis, MIN_DISTRIBUTE
from .grouping import MIN_GROUP_SIZE

if TYPE_CHECKING:
    from ..backend.scene_editor import SceneEditor

logger = logging.getLogger(__name__)


class EditActionType(str, Enum):
    """Kinds of edit the collaborator may request."""
    CREATE = "create"
    MODIFY = "modify"
    DELETE = "delete"
    MOVE = "move"
    RESIZE = "resize"
    RECOLOR = "recolor"
    GROUP = "group"
    UNGROUP = "ungroup"
    ALIGN = "align"
    DISTRIBUTE = "distribute"


# Property edits differ only in intent; they all patch one shape
PROPERTY_EDITS = {
    EditActionType.MODIFY,
    EditActionType.MOVE,
    EditActionType.RESIZE,
    EditActionType.RECOLOR,
}


class EditAction(BaseModel):
    """One structured edit, as sent by the collaborator (camelCase on the wire)."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    type: EditActionType
    shape_id: Optional[str] = None
    shape_type: Optional[str] = None
    properties: Optional[dict[str, Any]] = None
    target_ids: Optional[list[str]] = None

    def to_json_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


@dataclass
class ActionResult:
    """Outcome of one entry of a batch."""
    index: int
    type: Optional[str]
    applied: bool
    message: str

    def to_dict(self) -> dict:
        return {
            "index": self.index,
            "type": self.type,
            "applied": self.applied,
            "message": self.message,
        }


@dataclass
class ActionReport:
    """Outcome of a whole batch."""
    results: list[ActionResult] = field(default_factory=list)

    @property
    def applied(self) -> int:
        return sum(1 for r in self.results if r.applied)

    @property
    def skipped(self) -> int:
        return sum(1 for r in self.results if not r.applied)

    def to_dict(self) -> dict:
        return {
            "applied": self.applied,
            "skipped": self.skipped,
            "results": [r.to_dict() for r in self.results],
        }


class ActionSkipped(Exception):
    """Raised inside the replay loop when an action cannot be applied."""


def _require(condition: bool, message: str):
    if not condition:
        raise ActionSkipped(message)


def apply_action(editor: "SceneEditor", action: EditAction) -> str:
    """
    Apply a single action through the editor.

    Returns:
        A short description of what was done

    Raises:
        ActionSkipped: Required fields are missing or the target is absent
        ValueError: The resulting record failed validation
    """
    props = action.properties

    match action.type:
        case EditActionType.CREATE:
            _require(bool(action.shape_type) and props is not None,
                     "create needs shapeType and properties")
            shape = editor.add_shape(action.shape_type, **props)
            return f"created {shape.type} {shape.id}"

        case t if t in PROPERTY_EDITS:
            _require(bool(action.shape_id) and props is not None,
                     f"{t.value} needs shapeId and properties")
            shape = editor.update_shape(action.shape_id, **props)
            _require(shape is not None, f"shape not found: {action.shape_id}")
            return f"updated {shape.id}"

        case EditActionType.DELETE:
            _require(bool(action.shape_id), "delete needs shapeId")
            removed = editor.delete_shapes([action.shape_id])
            _require(bool(removed), f"shape not found: {action.shape_id}")
            return f"deleted {len(removed)} shape(s)"

        case EditActionType.GROUP:
            _require(len(action.target_ids or []) >= MIN_GROUP_SIZE,
                     "group needs at least two targetIds")
            editor.select(action.target_ids)
            group_id = editor.group_selected()
            _require(group_id is not None, "fewer than two groupable shapes")
            return f"grouped into {group_id}"

        case EditActionType.UNGROUP:
            _require(bool(action.shape_id), "ungroup needs shapeId")
            editor.select([action.shape_id])
            members = editor.ungroup_selected()
            _require(members is not None, f"not a group: {action.shape_id}")
            return f"ungrouped {len(members)} shape(s)"

        case EditActionType.ALIGN:
            direction = (props or {}).get("direction")
            _require(bool(action.target_ids) and bool(direction),
                     "align needs targetIds and properties.direction")
            editor.select(action.target_ids)
            _require(editor.align_selected(direction), "no shapes to align")
            return f"aligned {direction}"

        case EditActionType.DISTRIBUTE:
            _require(len(action.target_ids or []) >= MIN_DISTRIBUTE,
                     "distribute needs at least three targetIds")
            axis = (props or {}).get("axis", Axis.HORIZONTAL.value)
            editor.select(action.target_ids)
            _require(editor.distribute_selected(axis), "fewer than three shapes to distribute")
            return f"distributed {axis}"

        case _:
            raise ActionSkipped(f"unsupported action: {action.type}")


def apply_actions(editor: "SceneEditor", actions: Iterable[Any]) -> ActionReport:
    """
    Replay a batch of actions in order.

    Entries may be EditAction instances or raw dicts. Each entry is applied
    completely before the next one starts.
    """
    report = ActionReport()

    for index, raw in enumerate(actions):
        raw_type = raw.get("type") if isinstance(raw, dict) else getattr(raw, "type", None)
        type_name = raw_type.value if isinstance(raw_type, Enum) else raw_type

        try:
            action = raw if isinstance(raw, EditAction) else EditAction.model_validate(raw)
            message = apply_action(editor, action)
        except ActionSkipped as e:
            logger.warning("Skipping edit action %d (%s): %s", index, type_name, e)
            report.results.append(ActionResult(index, type_name, False, str(e)))
            continue
        except ValidationError as e:
            message = f"invalid action: {e.error_count()} validation error(s)"
            logger.warning("Skipping edit action %d (%s): %s", index, type_name, message)
            report.results.append(ActionResult(index, type_name, False, message))
            continue
        except ValueError as e:
            logger.warning("Skipping edit action %d (%s): %s", index, type_name, e)
            report.results.append(ActionResult(index, type_name, False, str(e)))
            continue

        logger.debug("Applied edit action %d: %s", index, message)
        report.results.append(ActionResult(index, type_name, True, message))

    return report
