#!/usr/bin/env python3
"""
FigureLab MCP Server

Provides MCP tools for AI agents to edit the open figure.
All changes are immediately reflected in the frontend via WebSocket updates.
"""

import json
from typing import Any, Optional

import httpx
from mcp.server.fastmcp import FastMCP

from . import config

# Create MCP server
mcp = FastMCP("figurelab")


class ApiError(RuntimeError):
    """The backend answered with an error status."""


# --- HTTP Client Helper ---

def api_request(method: str, endpoint: str, **kwargs) -> dict:
    """Make a request to the FigureLab backend."""
    url = f"{config.API_BASE}{endpoint}"
    with httpx.Client(timeout=30.0) as client:
        if method == "GET":
            response = client.get(url, params=kwargs.get("params"))
        elif method == "POST":
            response = client.post(url, json=kwargs.get("json"), params=kwargs.get("params"))
        elif method == "PATCH":
            response = client.patch(url, json=kwargs.get("json"))
        elif method == "DELETE":
            response = client.delete(url)
        else:
            raise ValueError(f"Unknown method: {method}")

        if response.status_code >= 400:
            try:
                error = response.json().get("detail", "Unknown error")
            except ValueError:
                error = response.text
            raise ApiError(f"API error: {error}")

        if response.headers.get("content-type", "").startswith("image/svg"):
            return {"svg": response.text}
        return response.json()


def _dump(result: Any) -> str:
    return json.dumps(result, indent=2)


# ============================================================================
# DOCUMENT TOOLS
# ============================================================================

@mcp.tool()
def figure_get_current() -> str:
    """
    Get the full current figure state.

    Returns the document (canvas settings, shapes, connectors), the selected
    shape ids, the current file path and undo/redo availability. Use this to
    understand what is on the canvas before making changes.
    """
    return _dump(api_request("GET", "/canvas"))


@mcp.tool()
def figure_new() -> str:
    """Start a new empty figure with default canvas settings."""
    return _dump(api_request("POST", "/document/new"))


@mcp.tool()
def figure_open(file_path: str) -> str:
    """
    Load a figure from a JSON file as the active figure.

    Args:
        file_path: Full path to the figure JSON file
    """
    return _dump(api_request("POST", "/document/open", json={"file_path": file_path}))


@mcp.tool()
def figure_save(file_path: Optional[str] = None) -> str:
    """
    Save the current figure to a file.

    Args:
        file_path: Path to save to (uses current path if not specified)
    """
    return _dump(api_request("POST", "/document/save", json={"file_path": file_path}))


@mcp.tool()
def figure_set_canvas(
    width: Optional[float] = None,
    height: Optional[float] = None,
    background: Optional[str] = None,
    grid_size: Optional[int] = None,
    snap_enabled: Optional[bool] = None,
) -> str:
    """Change the canvas size, background color or grid settings."""
    data = {
        "width": width,
        "height": height,
        "background": background,
        "grid_size": grid_size,
        "snap_enabled": snap_enabled,
    }
    return _dump(api_request("PATCH", "/canvas", json={k: v for k, v in data.items() if v is not None}))


# ============================================================================
# SHAPE TOOLS
# ============================================================================

@mcp.tool()
def figure_add_shape(shape_type: str, properties: Optional[dict] = None) -> str:
    """
    Add a shape to the figure.

    Args:
        shape_type: One of rect, circle, line, arrow, text, image
        properties: Shape fields in camelCase, e.g. {"x": 100, "y": 100,
            "width": 240, "height": 140, "fill": "#f8fafc"}. Circles are
            positioned by their center and take "radius"; lines and arrows
            take "points" as a flat [x0, y0, x1, y1] list.
    """
    return _dump(api_request("POST", "/shapes", json={"type": shape_type, "properties": properties or {}}))


@mcp.tool()
def figure_update_shape(shape_id: str, properties: dict) -> str:
    """
    Change properties of an existing shape (move, resize, recolor, retext).

    Moving a group moves its members along.
    """
    return _dump(api_request("PATCH", f"/shapes/{shape_id}", json=properties))


@mcp.tool()
def figure_delete_shape(shape_id: str) -> str:
    """Delete a shape. Deleting a group deletes its members; connectors go too."""
    return _dump(api_request("DELETE", f"/shapes/{shape_id}"))


@mcp.tool()
def figure_select(shape_ids: list[str]) -> str:
    """Replace the selection. Grouping, layout and reorder tools act on it."""
    return _dump(api_request("POST", "/selection", json={"ids": shape_ids}))


@mcp.tool()
def figure_reorder(direction: str) -> str:
    """Move the selection in z-order: forward, backward, front or back."""
    return _dump(api_request("POST", "/selection/reorder", json={"direction": direction}))


@mcp.tool()
def figure_duplicate() -> str:
    """Duplicate the selection, offset by 20px; the copies become selected."""
    return _dump(api_request("POST", "/selection/duplicate", json={}))


# ============================================================================
# GROUPING & LAYOUT TOOLS
# ============================================================================

@mcp.tool()
def figure_group(shape_ids: list[str]) -> str:
    """Group two or more shapes into one group shape."""
    api_request("POST", "/selection", json={"ids": shape_ids})
    return _dump(api_request("POST", "/group"))


@mcp.tool()
def figure_ungroup(group_id: str) -> str:
    """Dissolve a group, keeping its members where they are."""
    api_request("POST", "/selection", json={"ids": [group_id]})
    return _dump(api_request("POST", "/ungroup"))


@mcp.tool()
def figure_align(shape_ids: list[str], mode: str = "left") -> str:
    """
    Align shapes against the canvas.

    Args:
        shape_ids: Shapes to align
        mode: left, right, top, bottom, hcenter or vcenter
    """
    return _dump(api_request("POST", "/layout/align", json={"ids": shape_ids, "mode": mode}))


@mcp.tool()
def figure_distribute(shape_ids: list[str], axis: str = "horizontal") -> str:
    """
    Space three or more shapes evenly; the outermost two stay in place.

    Args:
        shape_ids: Shapes to distribute
        axis: horizontal or vertical
    """
    return _dump(api_request("POST", "/layout/distribute", json={"ids": shape_ids, "axis": axis}))


# ============================================================================
# CONNECTOR TOOLS
# ============================================================================

@mcp.tool()
def figure_connect(from_id: str, to_id: str, stroke: Optional[str] = None) -> str:
    """Link two shapes with an orthogonal connector that follows them when moved."""
    data = {"from_id": from_id, "to_id": to_id, "stroke": stroke}
    return _dump(api_request("POST", "/connectors", json=data))


@mcp.tool()
def figure_delete_connector(connector_id: str) -> str:
    """Delete a connector."""
    return _dump(api_request("DELETE", f"/connectors/{connector_id}"))


# ============================================================================
# HISTORY, EXPORT & ANALYSIS TOOLS
# ============================================================================

@mcp.tool()
def figure_undo() -> str:
    """Undo the last edit."""
    return _dump(api_request("POST", "/undo"))


@mcp.tool()
def figure_redo() -> str:
    """Redo the last undone edit."""
    return _dump(api_request("POST", "/redo"))


@mcp.tool()
def figure_export_svg(include_metadata: bool = False) -> str:
    """Export the figure as SVG markup."""
    params = {"include_metadata": str(include_metadata).lower()}
    return api_request("GET", "/export/svg", params=params)["svg"]


@mcp.tool()
def figure_validate() -> str:
    """
    Check the figure for structural issues.

    Reports duplicate ids, connectors pointing at missing shapes and broken
    group relations, with a summary by severity.
    """
    return _dump(api_request("GET", "/validate"))


@mcp.tool()
def figure_apply_actions(actions: list[dict]) -> str:
    """
    Apply a batch of edit actions in order, each as one undoable step.

    Each action is {"type": create|modify|delete|move|resize|recolor|group|
    ungroup|align|distribute, "shapeId"?, "shapeType"?, "properties"?,
    "targetIds"?}. Malformed actions are skipped and reported.
    """
    return _dump(api_request("POST", "/ai/apply", json={"actions": actions}))


# ============================================================================
# MAIN
# ============================================================================

def main():
    mcp.run()


if __name__ == "__main__":
    main()
