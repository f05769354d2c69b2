"""
SVG export with XSS protection.

Serializes a scene into standalone SVG markup:
- every text value is XML-escaped
- URL attributes with a dangerous scheme are dropped
- numbers are rounded to a fixed precision for compact, deterministic output
- group members are skipped in the flat pass; the group emits its placeholder
"""

import logging
import re
from datetime import datetime, timezone
from typing import Optional

from .models import (
    ArrowShape,
    CircleShape,
    DEFAULT_IMAGE_HEIGHT,
    DEFAULT_IMAGE_WIDTH,
    GroupShape,
    ImageShape,
    LineShape,
    RectShape,
    SceneState,
    ShapeBase,
    TextAlign,
    TextShape,
)

logger = logging.getLogger(__name__)

DEFAULT_PRECISION = 2
BLOCKED_URL_PREFIXES = ("javascript:", "data:text/html", "vbscript:")

_TEXT_ANCHORS = {
    TextAlign.LEFT: "start",
    TextAlign.CENTER: "middle",
    TextAlign.RIGHT: "end",
}

_XML_ESCAPES = (
    ("&", "&amp;"),
    ("<", "&lt;"),
    (">", "&gt;"),
    ('"', "&quot;"),
    ("'", "&apos;"),
)


def escape_xml(value: Optional[str]) -> str:
    """Escape XML special characters (& < > " ')."""
    if not value:
        return ""
    for char, entity in _XML_ESCAPES:
        value = value.replace(char, entity)
    return value


def sanitize_url(url: Optional[str]) -> Optional[str]:
    """
    Escape a URL for use in an attribute.

    Returns None for `javascript:`, `data:text/html` and `vbscript:` URLs
    (the caller then emits no attribute at all) and for empty input.
    """
    if not url:
        return None
    lowered = url.strip().lower()
    if lowered.startswith(BLOCKED_URL_PREFIXES):
        logger.warning("Blocked potentially malicious URL: %.60s", url)
        return None
    return escape_xml(url)


def format_number(value: float, decimals: int = DEFAULT_PRECISION) -> str:
    """Round to `decimals` places and drop a trailing `.0`."""
    rounded = round(float(value), decimals)
    if rounded == 0:
        rounded = 0.0  # no "-0"
    if rounded.is_integer():
        return str(int(rounded))
    return repr(rounded)


def normalize_color(color: Optional[str]) -> str:
    """Convert a color to hex where possible; missing colors become `none`."""
    if not color:
        return "none"
    if color.startswith("#"):
        return escape_xml(color)
    if color.startswith("rgb"):
        channels = re.findall(r"\d+", color)
        if len(channels) >= 3:
            r, g, b = (min(255, int(c)) for c in channels[:3])
            return f"#{r:02x}{g:02x}{b:02x}"
    return escape_xml(color)


def _attrs(**attrs) -> str:
    """Render attributes, skipping None values. `_` in names becomes `-`."""
    parts = []
    for name, value in attrs.items():
        if value is None:
            continue
        parts.append(f' {name.replace("_", "-")}="{value}"')
    return "".join(parts)


def _common_attrs(shape: ShapeBase, default_fill: Optional[str] = "none") -> dict:
    attrs = {
        "fill": normalize_color(shape.fill) if shape.fill else default_fill,
        "stroke": normalize_color(shape.stroke) if shape.stroke else None,
        "stroke_width": format_number(shape.stroke_width) if shape.stroke else None,
        "opacity": format_number(shape.opacity) if shape.opacity < 1 else None,
    }
    if shape.rotation:
        attrs["transform"] = (
            f"rotate({format_number(shape.rotation)} "
            f"{format_number(shape.x)} {format_number(shape.y)})"
        )
    return attrs


def _points(shape: ShapeBase, points: tuple[float, ...]) -> str:
    """Polyline points in canvas coordinates (shape points are relative)."""
    pairs = []
    for i in range(0, len(points) - 1, 2):
        pairs.append(f"{format_number(points[i] + shape.x)},{format_number(points[i + 1] + shape.y)}")
    return " ".join(pairs)


def shape_to_svg(shape: ShapeBase) -> Optional[str]:
    """Render one shape as an SVG element string."""
    n = format_number
    common = _common_attrs(shape)

    match shape:
        case RectShape():
            return "<rect" + _attrs(
                x=n(shape.x), y=n(shape.y), width=n(shape.width), height=n(shape.height),
                rx=n(shape.corner_radius), **common,
            ) + "/>"
        case CircleShape():
            return "<circle" + _attrs(
                cx=n(shape.x), cy=n(shape.y), r=n(shape.radius), **common,
            ) + "/>"
        case TextShape():
            common["fill"] = normalize_color(shape.fill or "#0f172a")
            anchor = _TEXT_ANCHORS.get(shape.align) if shape.align else None
            return "<text" + _attrs(
                x=n(shape.x), y=n(shape.y + shape.font_size), font_size=n(shape.font_size),
                text_anchor=anchor, **common,
            ) + f">{escape_xml(shape.text)}</text>"
        case LineShape():
            common["fill"] = "none"
            common["stroke"] = normalize_color(shape.stroke or "#000")
            common["stroke_width"] = n(shape.stroke_width)
            return "<polyline" + _attrs(points=_points(shape, shape.points), **common) + "/>"
        case ArrowShape():
            common["fill"] = "none"
            common["stroke"] = normalize_color(shape.stroke or "#000")
            common["stroke_width"] = n(shape.stroke_width)
            return "<polyline" + _attrs(
                points=_points(shape, shape.points), marker_end="url(#arrowhead)", **common,
            ) + "/>"
        case ImageShape():
            width = shape.width if shape.width is not None else DEFAULT_IMAGE_WIDTH
            height = shape.height if shape.height is not None else DEFAULT_IMAGE_HEIGHT
            return "<image" + _attrs(
                href=sanitize_url(shape.src), x=n(shape.x), y=n(shape.y),
                width=n(width), height=n(height),
                opacity=common["opacity"], transform=common.get("transform"),
            ) + "/>"
        case GroupShape():
            return "<rect" + _attrs(
                x=n(shape.x), y=n(shape.y), width=n(shape.width), height=n(shape.height),
                fill="rgba(59, 130, 246, 0.05)", stroke="#94a3b8", stroke_width="1",
                stroke_dasharray="8,4", opacity=common["opacity"],
                transform=common.get("transform"),
            ) + "/>"
        case _:
            raise TypeError(f"Unknown shape kind: {type(shape).__name__}")


def export_svg(
    state: SceneState,
    width: float,
    height: float,
    background: Optional[str] = None,
    include_metadata: bool = False,
    optimize: bool = True,
) -> str:
    """
    Serialize a scene as a standalone SVG document.

    Args:
        state: Scene to export (read only)
        width: Canvas width
        height: Canvas height
        background: Background color; `transparent`/`none` emit no background
        include_metadata: Add <title> and a timestamped <desc>
        optimize: Collapse whitespace instead of pretty-printing

    Returns:
        The SVG markup
    """
    n = format_number
    indent = "" if optimize else "  "

    lines = [
        '<?xml version="1.0" encoding="UTF-8"?>',
        f'<svg xmlns="http://www.w3.org/2000/svg" xmlns:xlink="http://www.w3.org/1999/xlink" '
        f'width="{n(width)}" height="{n(height)}" viewBox="0 0 {n(width)} {n(height)}" version="1.1">',
    ]
    if include_metadata:
        stamp = datetime.now(timezone.utc).isoformat()
        lines.append(f"{indent}<title>FigureLab Export</title>")
        lines.append(f"{indent}<desc>Created with FigureLab - {escape_xml(stamp)}</desc>")

    lines.append(f"{indent}<defs>")
    lines.append(
        f'{indent * 2}<marker id="arrowhead" markerWidth="10" markerHeight="10" refX="9" refY="3" '
        f'orient="auto" markerUnits="strokeWidth">'
    )
    lines.append(f'{indent * 3}<path d="M0,0 L0,6 L9,3 z" fill="context-stroke"/>')
    lines.append(f"{indent * 2}</marker>")
    lines.append(f"{indent}</defs>")

    if background and background not in ("transparent", "none"):
        lines.append(
            f'{indent}<rect x="0" y="0" width="{n(width)}" height="{n(height)}" '
            f'fill="{normalize_color(background)}"/>'
        )

    for shape in state.shapes:
        # Members are represented by their group's placeholder
        if shape.group_id:
            continue
        element = shape_to_svg(shape)
        if element:
            lines.append(indent + element)

    for connector in state.connectors:
        points = " ".join(
            f"{n(connector.points[i])},{n(connector.points[i + 1])}"
            for i in range(0, len(connector.points) - 1, 2)
        )
        lines.append(indent + "<polyline" + _attrs(
            points=points, fill="none",
            stroke=normalize_color(connector.stroke or "#0f172a"),
            stroke_width=n(connector.stroke_width),
            marker_end="url(#arrowhead)",
        ) + "/>")

    lines.append("</svg>")
    svg = "\n".join(lines)
    return optimize_svg(svg) if optimize else svg


def optimize_svg(svg: str) -> str:
    """Collapse whitespace between and inside tags."""
    svg = re.sub(r"\s+", " ", svg)
    svg = re.sub(r"\s*/>", "/>", svg)
    svg = re.sub(r">\s+<", "><", svg)
    return svg.strip()
