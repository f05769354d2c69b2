"""
Core data models for figures.

These models define the canonical schema for a figure:
- Shapes, one pydantic model per kind, discriminated on `type`
- Connectors linking two shapes by id
- SceneState, the immutable shapes + connectors unit kept by the history
- Document, the versioned persistence format

Field Naming Convention:
- Python attributes are snake_case (`group_id`, `stroke_width`)
- JSON serialization uses camelCase aliases (`groupId`, `strokeWidth`),
  which is what the frontend and the AI collaborator speak
- Both spellings are accepted on input

Records are frozen. An edit produces a new record at the same position, so a
snapshot can share unchanged records with its predecessor.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union
import uuid

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, model_validator
from pydantic.alias_generators import to_camel


DOCUMENT_VERSION = 3

DEFAULT_CANVAS_WIDTH = 1200
DEFAULT_CANVAS_HEIGHT = 800
DEFAULT_BACKGROUND = "#ffffff"
DEFAULT_GRID_SIZE = 20

# Rendered size of an image that has no explicit dimensions
DEFAULT_IMAGE_WIDTH = 300
DEFAULT_IMAGE_HEIGHT = 200


class ShapeKind(str, Enum):
    """Drawable shape kinds (the `type` discriminator)."""
    RECT = "rect"
    CIRCLE = "circle"
    LINE = "line"
    ARROW = "arrow"
    TEXT = "text"
    IMAGE = "image"
    GROUP = "group"


class TextAlign(str, Enum):
    """Horizontal alignment for text shapes."""
    LEFT = "left"
    CENTER = "center"
    RIGHT = "right"


def generate_shape_id() -> str:
    """Generate a unique shape ID."""
    return f"s{uuid.uuid4().hex[:8]}"


def generate_connector_id() -> str:
    """Generate a unique connector ID."""
    return f"c{uuid.uuid4().hex[:8]}"


class Record(BaseModel):
    """Base for every persisted record: frozen, camelCase on the wire."""
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_json_dict(self) -> dict:
        """Convert to JSON-serializable dict with camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)


# --- Shapes ---

class ShapeBase(Record):
    """Fields shared by every shape kind."""
    id: str = Field(default_factory=generate_shape_id)
    x: float = 0
    y: float = 0
    rotation: float = 0.0  # Degrees
    fill: Optional[str] = None
    stroke: Optional[str] = None
    stroke_width: float = 1.0
    opacity: float = Field(default=1.0, ge=0.0, le=1.0)
    name: Optional[str] = None
    # Back-reference to the owning group (relation only, not ownership)
    group_id: Optional[str] = None


class RectShape(ShapeBase):
    type: Literal["rect"] = "rect"
    width: float = 240
    height: float = 140
    corner_radius: float = 0


class CircleShape(ShapeBase):
    """A circle positioned by its center."""
    type: Literal["circle"] = "circle"
    radius: float = 80


class LineShape(ShapeBase):
    type: Literal["line"] = "line"
    points: tuple[float, ...] = ()  # Flat x0, y0, x1, y1, ...
    tension: float = 0
    closed: bool = False


class ArrowShape(ShapeBase):
    type: Literal["arrow"] = "arrow"
    points: tuple[float, ...] = ()
    pointer_length: float = 14
    pointer_width: float = 14


class TextShape(ShapeBase):
    type: Literal["text"] = "text"
    text: str = ""
    font_size: float = 24
    width: Optional[float] = None
    align: Optional[TextAlign] = None


class ImageShape(ShapeBase):
    type: Literal["image"] = "image"
    src: str = ""
    width: Optional[float] = None
    height: Optional[float] = None


class GroupShape(ShapeBase):
    """A compound shape; `children` lists member ids in z-order."""
    type: Literal["group"] = "group"
    children: tuple[str, ...] = ()
    width: float = 0
    height: float = 0
    # (member id, former parent id) for members pulled out of another group
    member_parents: tuple[tuple[str, str], ...] = ()


Shape = Annotated[
    Union[RectShape, CircleShape, LineShape, ArrowShape, TextShape, ImageShape, GroupShape],
    Field(discriminator="type"),
]

SHAPE_CLASSES: dict[str, type[ShapeBase]] = {
    ShapeKind.RECT.value: RectShape,
    ShapeKind.CIRCLE.value: CircleShape,
    ShapeKind.LINE.value: LineShape,
    ShapeKind.ARROW.value: ArrowShape,
    ShapeKind.TEXT.value: TextShape,
    ShapeKind.IMAGE.value: ImageShape,
    ShapeKind.GROUP.value: GroupShape,
}

_shape_adapter = TypeAdapter(Shape)


def shape_from_dict(data: dict) -> ShapeBase:
    """Validate a dict (camelCase or snake_case) into the matching shape model."""
    return _shape_adapter.validate_python(data)


def field_names(model_cls: type[BaseModel], data: dict) -> dict:
    """
    Map camelCase or snake_case keys onto field names.

    Keys that are not fields of `model_cls` are dropped.
    """
    by_alias = {f.alias: name for name, f in model_cls.model_fields.items() if f.alias}
    result = {}
    for key, value in data.items():
        if key in model_cls.model_fields:
            result[key] = value
        elif key in by_alias:
            result[by_alias[key]] = value
    return result


# Toolbar look of a freshly created shape
CREATION_DEFAULTS: dict[str, dict[str, Any]] = {
    ShapeKind.RECT.value: {
        "fill": "#f8fafc", "stroke": "#0f172a", "stroke_width": 2,
        "corner_radius": 12, "name": "Rectangle",
    },
    ShapeKind.CIRCLE.value: {"fill": "#eef2ff", "stroke": "#0f172a", "stroke_width": 2, "name": "Circle"},
    ShapeKind.TEXT.value: {"text": "Double-click to edit", "fill": "#0f172a", "name": "Text"},
    ShapeKind.LINE.value: {"stroke": "#0f172a", "stroke_width": 3, "name": "Line"},
    ShapeKind.ARROW.value: {"stroke": "#0f172a", "stroke_width": 3, "name": "Arrow"},
    ShapeKind.IMAGE.value: {"name": "Image"},
}


def with_creation_defaults(shape_type: str, props: dict) -> dict:
    """`props` plus the creation defaults of `shape_type` it does not set."""
    model_cls = SHAPE_CLASSES.get(shape_type)
    defaults = CREATION_DEFAULTS.get(shape_type, {})
    if model_cls is None or not defaults:
        return dict(props)
    given = field_names(model_cls, props)
    return {**{k: v for k, v in defaults.items() if k not in given}, **props}


# --- Connectors ---

class Connector(Record):
    """
    An orthogonal link between two shapes.

    `from_id`/`to_id` are weak references into the shape table. `points` is
    derived by the router and never authoritative.
    Accepts `from`/`to` and `source`/`target` on input.
    """
    id: str = Field(default_factory=generate_connector_id)
    type: Literal["connector"] = "connector"
    from_id: str
    to_id: str
    points: tuple[float, ...] = ()
    stroke: Optional[str] = "#0f172a"
    stroke_width: float = 2.0

    @model_validator(mode="before")
    @classmethod
    def convert_legacy_fields(cls, data: Any) -> Any:
        """Convert legacy 'from'/'to' and 'source'/'target' fields."""
        if isinstance(data, dict):
            data = dict(data)
            for legacy, key in (("from", "fromId"), ("source", "fromId"),
                                ("to", "toId"), ("target", "toId")):
                if legacy in data and key not in data:
                    data[key] = data.pop(legacy)
        return data


# --- Scene state ---

@dataclass(frozen=True)
class SceneState:
    """
    The shapes and connectors of a figure, as one atomic unit.

    Z-order is tuple position: the tail is front-most.
    """
    shapes: tuple[ShapeBase, ...] = ()
    connectors: tuple[Connector, ...] = ()

    def shape_ids(self) -> set[str]:
        return {s.id for s in self.shapes}


# --- Document (persistence) ---

class CanvasSize(Record):
    width: float = DEFAULT_CANVAS_WIDTH
    height: float = DEFAULT_CANVAS_HEIGHT


class GridConfig(Record):
    show_grid: bool = True
    grid_size: int = DEFAULT_GRID_SIZE
    snap_enabled: bool = True


class Document(Record):
    """
    The complete persisted figure.
    This is what gets saved to/loaded from JSON files.
    """
    version: int = DOCUMENT_VERSION
    background: str = DEFAULT_BACKGROUND
    canvas_size: CanvasSize = Field(default_factory=CanvasSize)
    grid_config: GridConfig = Field(default_factory=GridConfig)
    shapes: list[Shape] = Field(default_factory=list)
    connectors: list[Connector] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def convert_legacy_fields(cls, data: Any) -> Any:
        """Convert the double-underscore keys written by version 1-3 exports."""
        if isinstance(data, dict):
            data = dict(data)
            for legacy, key in (("__version", "version"), ("__bg", "background"),
                                ("__size", "canvasSize"), ("__grid", "gridConfig"),
                                ("__shapes", "shapes"), ("__connectors", "connectors")):
                if legacy in data and key not in data:
                    data[key] = data.pop(legacy)
        return data

    def scene(self) -> SceneState:
        """The shapes and connectors as a SceneState."""
        return SceneState(shapes=tuple(self.shapes), connectors=tuple(self.connectors))
