"""
Scene update fan-out over WebSockets.

Every committed change is pushed to the connected clients (the canvas
frontend and agent tooling) as a small `scene_updated` summary carrying a
revision number; clients re-fetch GET /api/canvas when the revision moves.
"""
import asyncio
import json
import logging
from typing import TYPE_CHECKING

from fastapi import WebSocket

if TYPE_CHECKING:
    from .scene_editor import SceneEditor

logger = logging.getLogger(__name__)


def scene_summary(editor: "SceneEditor") -> dict:
    """What a client needs to decide whether to re-fetch the scene."""
    return {
        "shapes": len(editor.shapes),
        "connectors": len(editor.connectors),
        "selection": editor.selected_ids,
        "is_dirty": editor.is_dirty,
        "can_undo": editor.can_undo,
        "can_redo": editor.can_redo,
    }


class WebSocketManager:
    """Connected clients plus the revision of the last update sent to them."""

    def __init__(self):
        self._clients: set[WebSocket] = set()
        self._lock = asyncio.Lock()
        self._revision = 0

    @property
    def connection_count(self) -> int:
        return len(self._clients)

    @property
    def revision(self) -> int:
        return self._revision

    async def connect(self, websocket: WebSocket):
        await websocket.accept()
        async with self._lock:
            self._clients.add(websocket)
        logger.info("Client connected (%d open)", len(self._clients))

    async def disconnect(self, websocket: WebSocket):
        async with self._lock:
            self._clients.discard(websocket)
        logger.info("Client disconnected (%d open)", len(self._clients))

    async def publish_scene(self, editor: "SceneEditor"):
        """Send the next revision of the scene summary to every client."""
        self._revision += 1
        message = json.dumps({
            "type": "scene_updated",
            "revision": self._revision,
            **scene_summary(editor),
        })

        async with self._lock:
            stale = set()
            for websocket in self._clients:
                try:
                    await websocket.send_text(message)
                except Exception:
                    stale.add(websocket)
            self._clients -= stale

        if stale:
            logger.debug("Dropped %d unreachable client(s)", len(stale))
