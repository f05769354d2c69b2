"""
AI client - round trip to the natural-language collaborator service.

The collaborator receives a command plus a description of the canvas and
answers with a list of edit actions. Every failure (network, HTTP status,
unparseable body) is folded into an unsuccessful AIEditResponse; nothing is
raised and nothing is retried.
"""

import logging
from typing import Any, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .. import config
from ..core.actions import ActionReport

logger = logging.getLogger(__name__)

PROCESS_PATH = "/api/ai/process"
HEALTH_PATH = "/api/health"


class AIEditResponse(BaseModel):
    """The collaborator's answer. `actions` stay raw until replayed."""
    model_config = ConfigDict(extra="ignore")

    success: bool
    actions: list[Any] = Field(default_factory=list)
    message: Optional[str] = None
    error: Optional[str] = None


class AIClient:
    """
    Async HTTP client for the collaborator service.

    Requests run without a timeout; a slow collaborator keeps the caller
    waiting rather than being cut off.
    """

    def __init__(self, base_url: str = config.AI_BASE_URL, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = base_url.rstrip("/")
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self.base_url, timeout=None, transport=self._transport)

    async def process_command(self, command: str, canvas_state: dict) -> AIEditResponse:
        """Send a command with the canvas description; return the proposed actions."""
        try:
            async with self._client() as client:
                response = await client.post(
                    PROCESS_PATH,
                    json={"command": command, "canvasState": canvas_state},
                )
        except httpx.HTTPError as e:
            logger.warning("AI service unreachable at %s: %s", self.base_url, e)
            return AIEditResponse(
                success=False,
                error=f"Failed to connect to AI service at {self.base_url}: {e}",
            )

        try:
            body = response.json()
        except ValueError:
            body = None

        if response.is_error:
            detail = body.get("message") if isinstance(body, dict) else None
            error = detail or f"API request failed: {response.status_code} {response.reason_phrase}"
            logger.warning("AI service returned %d: %s", response.status_code, error)
            return AIEditResponse(success=False, error=error)

        try:
            result = AIEditResponse.model_validate(body)
        except ValidationError:
            logger.warning("AI service returned an unreadable body")
            return AIEditResponse(success=False, error="AI service returned an unreadable response")

        logger.debug("AI service proposed %d actions", len(result.actions))
        return result

    async def check_health(self) -> bool:
        """True if the collaborator service answers its health check."""
        try:
            async with self._client() as client:
                response = await client.get(HEALTH_PATH)
        except httpx.HTTPError:
            return False
        return response.is_success


async def run_command(editor, client: AIClient, command: str) -> tuple[AIEditResponse, Optional[ActionReport]]:
    """
    Ask the collaborator and replay its answer through the editor.

    Returns:
        (response, report); report is None when the collaborator failed and
        nothing was applied
    """
    response = await client.process_command(command, editor.canvas_description())
    if not response.success:
        return response, None
    report = editor.apply_actions(response.actions)
    logger.info("AI command applied %d action(s), skipped %d", report.applied, report.skipped)
    return response, report
