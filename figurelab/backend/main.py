"""
FigureLab Backend - FastAPI Application

This is the main entry point for the FigureLab backend.
It provides:
- REST API for scene editing (shapes, selection, grouping, layout, undo/redo)
- Document file operations and SVG export
- The AI command round trip and edit-action replay
- WebSocket endpoint for real-time updates
- CORS configuration for local frontend development
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from pydantic import BaseModel, Field

from .. import config
from ..core.validation import validation_summary
from .ai_client import AIClient, run_command
from .scene_editor import DocumentLoadError, NUDGE_STEP, SceneEditor
from .websocket_manager import WebSocketManager

logger = logging.getLogger(__name__)


# --- Request models ---

class CanvasRequest(BaseModel):
    width: Optional[float] = Field(default=None, gt=0)
    height: Optional[float] = Field(default=None, gt=0)
    background: Optional[str] = None
    show_grid: Optional[bool] = None
    grid_size: Optional[int] = Field(default=None, gt=0)
    snap_enabled: Optional[bool] = None


class OpenDocumentRequest(BaseModel):
    file_path: str


class SaveDocumentRequest(BaseModel):
    file_path: Optional[str] = None


class CreateShapeRequest(BaseModel):
    type: str
    properties: dict[str, Any] = Field(default_factory=dict)
    select: bool = True


class SelectRequest(BaseModel):
    ids: list[str]


class MarqueeRequest(BaseModel):
    start: tuple[float, float]
    end: tuple[float, float]


class ReorderRequest(BaseModel):
    direction: str  # forward, backward, front, back


class DuplicateRequest(BaseModel):
    offset: Optional[float] = None


class NudgeRequest(BaseModel):
    dx: float = 0
    dy: float = 0
    ids: Optional[list[str]] = None


class DragRequest(BaseModel):
    ids: Optional[list[str]] = None
    dx: float
    dy: float


class AlignRequest(BaseModel):
    mode: str = "left"  # left, right, top, bottom, hcenter, vcenter
    ids: Optional[list[str]] = None


class DistributeRequest(BaseModel):
    axis: str = "horizontal"  # horizontal, vertical
    ids: Optional[list[str]] = None


class ConnectRequest(BaseModel):
    from_id: Optional[str] = None
    to_id: Optional[str] = None
    stroke: Optional[str] = None
    stroke_width: Optional[float] = None


class AICommandRequest(BaseModel):
    command: str = Field(min_length=1)


class ApplyActionsRequest(BaseModel):
    actions: list[Any]


# --- Dependencies ---

def get_editor(request: Request) -> SceneEditor:
    return request.app.state.editor


def get_ai_client(request: Request) -> AIClient:
    return request.app.state.ai_client


def get_ws_manager(request: Request) -> WebSocketManager:
    return request.app.state.ws_manager


# --- Async change notification ---
# Bridge between sync SceneEditor callbacks and async WebSocket broadcasts

async def change_broadcaster(editor: SceneEditor, ws_manager: WebSocketManager, event: asyncio.Event):
    """Background task that broadcasts changes to WebSocket clients."""
    while True:
        await event.wait()
        event.clear()
        await ws_manager.publish_scene(editor)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan handler for startup/shutdown tasks."""
    change_event = asyncio.Event()
    editor: SceneEditor = app.state.editor
    editor.on_change(change_event.set)

    broadcaster_task = asyncio.create_task(
        change_broadcaster(editor, app.state.ws_manager, change_event)
    )
    logger.info("FigureLab backend started")

    yield

    broadcaster_task.cancel()
    try:
        await broadcaster_task
    except asyncio.CancelledError:
        pass


def create_app(editor: Optional[SceneEditor] = None, ai_client: Optional[AIClient] = None) -> FastAPI:
    """
    Build the API around one editor.

    Args:
        editor: The scene editor to serve (a fresh one if omitted)
        ai_client: Collaborator client (defaults to FIGURELAB_AI_URL)
    """
    app = FastAPI(
        title="FigureLab API",
        description="Backend API for the FigureLab figure editor",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.editor = editor if editor is not None else SceneEditor(max_history=config.MAX_HISTORY)
    app.state.ai_client = ai_client if ai_client is not None else AIClient(config.AI_BASE_URL)
    app.state.ws_manager = WebSocketManager()

    # CORS for local development
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _register_routes(app)
    return app


def _register_routes(app: FastAPI):

    # --- Health Check ---

    @app.get("/api/health")
    async def health_check(ws_manager: WebSocketManager = Depends(get_ws_manager)):
        """Health check endpoint."""
        return {"status": "ok", "connections": ws_manager.connection_count}

    # --- Canvas State ---

    @app.get("/api/canvas")
    async def get_canvas(editor: SceneEditor = Depends(get_editor)):
        """Get the full editor state."""
        return editor.get_state()

    @app.patch("/api/canvas")
    async def update_canvas(request: CanvasRequest, editor: SceneEditor = Depends(get_editor)):
        """Update canvas size, background and grid settings."""
        editor.update_canvas(**request.model_dump())
        return {"success": True, "document": editor.to_document().to_json_dict()}

    # --- Document Operations ---

    @app.post("/api/document/new")
    async def new_document(editor: SceneEditor = Depends(get_editor)):
        """Start an empty figure."""
        document = editor.new_document()
        return {"success": True, "document": document.to_json_dict()}

    @app.post("/api/document/open")
    async def open_document(request: OpenDocumentRequest, editor: SceneEditor = Depends(get_editor)):
        """Open a figure from a JSON file."""
        try:
            editor.open_document(request.file_path)
        except FileNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))
        except DocumentLoadError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return {
            "success": True,
            "document": editor.to_document().to_json_dict(),
            "file_path": str(editor.file_path),
        }

    @app.post("/api/document/load")
    async def load_document(data: dict[str, Any], editor: SceneEditor = Depends(get_editor)):
        """Load a figure from a posted JSON document."""
        try:
            editor.load_document(data)
        except DocumentLoadError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return {"success": True, "document": editor.to_document().to_json_dict()}

    @app.get("/api/document")
    async def get_document(editor: SceneEditor = Depends(get_editor)):
        """The figure in its persistence format."""
        return editor.to_document().to_json_dict()

    @app.post("/api/document/save")
    async def save_document(request: SaveDocumentRequest, editor: SceneEditor = Depends(get_editor)):
        """Save the figure to a JSON file."""
        try:
            path = editor.save_document(request.file_path)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        except OSError as e:
            raise HTTPException(status_code=500, detail=f"Failed to save: {e}")
        return {"success": True, "file_path": str(path)}

    # --- Undo/Redo ---

    @app.post("/api/undo")
    async def undo(editor: SceneEditor = Depends(get_editor)):
        """Undo the last command."""
        if editor.undo() is not None:
            return {"success": True, **editor.get_state()}
        return {"success": False, "message": "Nothing to undo"}

    @app.post("/api/redo")
    async def redo(editor: SceneEditor = Depends(get_editor)):
        """Redo the last undone command."""
        if editor.redo() is not None:
            return {"success": True, **editor.get_state()}
        return {"success": False, "message": "Nothing to redo"}

    # --- Shape Operations ---

    @app.post("/api/shapes")
    async def create_shape(request: CreateShapeRequest, editor: SceneEditor = Depends(get_editor)):
        """Create a new shape."""
        try:
            shape = editor.add_shape(request.type, select=request.select, **request.properties)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return {"success": True, "shape": shape.to_json_dict()}

    @app.get("/api/shapes/{shape_id}")
    async def get_shape(shape_id: str, editor: SceneEditor = Depends(get_editor)):
        """Get a specific shape."""
        shape = editor.get_shape(shape_id)
        if shape:
            return {"success": True, "shape": shape.to_json_dict()}
        raise HTTPException(status_code=404, detail="Shape not found")

    @app.patch("/api/shapes/{shape_id}")
    async def update_shape(shape_id: str, properties: dict[str, Any], editor: SceneEditor = Depends(get_editor)):
        """Update a shape's properties (camelCase or snake_case keys)."""
        try:
            shape = editor.update_shape(shape_id, **properties)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        if shape:
            return {"success": True, "shape": shape.to_json_dict()}
        raise HTTPException(status_code=404, detail="Shape not found")

    @app.delete("/api/shapes/{shape_id}")
    async def delete_shape(shape_id: str, editor: SceneEditor = Depends(get_editor)):
        """Delete a shape, its group members and its connectors."""
        removed = editor.delete_shapes([shape_id])
        if removed:
            return {"success": True, "removed": removed}
        raise HTTPException(status_code=404, detail="Shape not found")

    # --- Selection ---

    @app.post("/api/selection")
    async def set_selection(request: SelectRequest, editor: SceneEditor = Depends(get_editor)):
        """Replace the selection."""
        return {"success": True, "selection": editor.select(request.ids)}

    @app.post("/api/selection/marquee")
    async def marquee_select(request: MarqueeRequest, editor: SceneEditor = Depends(get_editor)):
        """Select the shapes fully inside a dragged rectangle."""
        return {"success": True, "selection": editor.select_marquee(request.start, request.end)}

    @app.post("/api/selection/delete")
    async def delete_selection(editor: SceneEditor = Depends(get_editor)):
        """Delete the selected shapes."""
        return {"success": True, "removed": editor.delete_selected()}

    @app.post("/api/selection/reorder")
    async def reorder_selection(request: ReorderRequest, editor: SceneEditor = Depends(get_editor)):
        """Move the selection through the z-order."""
        try:
            changed = editor.reorder_selected(request.direction)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return {"success": True, "changed": changed}

    @app.post("/api/selection/duplicate")
    async def duplicate_selection(request: DuplicateRequest, editor: SceneEditor = Depends(get_editor)):
        """Duplicate the selection; the copies become selected."""
        if request.offset is None:
            new_ids = editor.duplicate_selected()
        else:
            new_ids = editor.duplicate_selected(request.offset)
        return {"success": bool(new_ids), "ids": new_ids}

    @app.post("/api/selection/nudge")
    async def nudge_selection(request: NudgeRequest, editor: SceneEditor = Depends(get_editor)):
        """Move shapes by a small offset (default step: 2 px)."""
        dx, dy = request.dx, request.dy
        if dx == 0 and dy == 0:
            dx = NUDGE_STEP
        return {"success": True, "changed": editor.nudge(dx, dy, request.ids)}

    @app.post("/api/drag")
    async def drag(request: DragRequest, editor: SceneEditor = Depends(get_editor)):
        """Drag shapes by (dx, dy) as one undoable gesture, snapping if enabled."""
        editor.begin_drag(request.ids)
        editor.drag_to(request.dx, request.dy)
        return {"success": True, "changed": editor.end_drag()}

    # --- Grouping ---

    @app.post("/api/group")
    async def group_selection(editor: SceneEditor = Depends(get_editor)):
        """Group the selected shapes."""
        group_id = editor.group_selected()
        if group_id is None:
            return {"success": False, "message": "Select at least two shapes to group"}
        return {"success": True, "group_id": group_id}

    @app.post("/api/ungroup")
    async def ungroup_selection(editor: SceneEditor = Depends(get_editor)):
        """Dissolve the selected group."""
        members = editor.ungroup_selected()
        if members is None:
            return {"success": False, "message": "Select a single group to ungroup"}
        return {"success": True, "ids": members}

    # --- Layout ---

    @app.post("/api/layout/align")
    async def align(request: AlignRequest, editor: SceneEditor = Depends(get_editor)):
        """Align shapes (the selection by default) against the canvas."""
        if request.ids is not None:
            editor.select(request.ids)
        try:
            success = editor.align_selected(request.mode)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        if success:
            return {"success": True}
        raise HTTPException(status_code=400, detail="No shapes to align")

    @app.post("/api/layout/distribute")
    async def distribute(request: DistributeRequest, editor: SceneEditor = Depends(get_editor)):
        """Distribute shapes evenly along an axis."""
        if request.ids is not None:
            editor.select(request.ids)
        try:
            success = editor.distribute_selected(request.axis)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        if success:
            return {"success": True}
        raise HTTPException(status_code=400, detail="Need at least 3 shapes to distribute")

    # --- Connectors ---

    @app.post("/api/connectors")
    async def create_connector(request: ConnectRequest, editor: SceneEditor = Depends(get_editor)):
        """Connect two shapes, or the two selected shapes if no ids are given."""
        style = request.model_dump(include={"stroke", "stroke_width"}, exclude_none=True)
        if request.from_id and request.to_id:
            connector = editor.connect(request.from_id, request.to_id, **style)
        else:
            connector = editor.connect_selected(**style)
        if connector is None:
            raise HTTPException(status_code=400, detail="Connect needs two existing shapes")
        return {"success": True, "connector": connector.to_json_dict()}

    @app.delete("/api/connectors/{connector_id}")
    async def delete_connector(connector_id: str, editor: SceneEditor = Depends(get_editor)):
        """Delete a connector."""
        if editor.delete_connector(connector_id):
            return {"success": True}
        raise HTTPException(status_code=404, detail="Connector not found")

    # --- Export & Validation ---

    @app.get("/api/export/svg")
    async def export_svg(
        include_metadata: bool = Query(default=False),
        optimize: bool = Query(default=True),
        editor: SceneEditor = Depends(get_editor),
    ):
        """Export the figure as SVG."""
        svg = editor.export_svg(include_metadata=include_metadata, optimize=optimize)
        return Response(content=svg, media_type="image/svg+xml")

    @app.get("/api/validate")
    async def validate(editor: SceneEditor = Depends(get_editor)):
        """
        Validate the scene for structural issues.

        Returns a list of issues (errors, warnings, info) and a summary.
        """
        issues = editor.validate()
        return {
            "success": True,
            "issues": [issue.to_dict() for issue in issues],
            "summary": validation_summary(issues),
        }

    # --- AI Collaboration ---

    @app.post("/api/ai/command")
    async def ai_command(
        request: AICommandRequest,
        editor: SceneEditor = Depends(get_editor),
        ai_client: AIClient = Depends(get_ai_client),
    ):
        """Send a natural-language command to the collaborator and apply its actions."""
        response, report = await run_command(editor, ai_client, request.command)
        return {
            "success": response.success,
            "message": response.message,
            "error": response.error,
            "report": report.to_dict() if report else None,
        }

    @app.post("/api/ai/apply")
    async def apply_actions(request: ApplyActionsRequest, editor: SceneEditor = Depends(get_editor)):
        """Replay a list of edit actions."""
        report = editor.apply_actions(request.actions)
        return {"success": True, "report": report.to_dict()}

    @app.get("/api/ai/health")
    async def ai_health(ai_client: AIClient = Depends(get_ai_client)):
        """Whether the collaborator service is reachable."""
        return {"available": await ai_client.check_health()}

    # --- WebSocket ---

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        """
        WebSocket endpoint for real-time updates.

        Clients connect here to receive scene_updated events.
        """
        ws_manager: WebSocketManager = websocket.app.state.ws_manager
        await ws_manager.connect(websocket)

        try:
            while True:
                data = await websocket.receive_text()
                if data == "ping":
                    await websocket.send_text('{"type": "pong"}')
        except WebSocketDisconnect:
            await ws_manager.disconnect(websocket)
        except Exception:
            logger.exception("WebSocket error")
            await ws_manager.disconnect(websocket)


app = create_app()


# --- Run with uvicorn ---

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=config.HOST, port=config.PORT)
