"""Tests for the collaborator client, using httpx's mock transport."""

import asyncio
import json

import httpx

from figurelab.backend.ai_client import AIClient, run_command


def _client(handler):
    return AIClient("http://ai.test", transport=httpx.MockTransport(handler))


class TestProcessCommand:
    def test_success(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={
                "success": True,
                "message": "Added a box",
                "actions": [{"type": "create", "shapeType": "rect", "properties": {}}],
            })

        response = asyncio.run(_client(handler).process_command("add a box", {"shapes": []}))
        assert response.success is True
        assert response.message == "Added a box"
        assert len(response.actions) == 1
        assert seen["path"] == "/api/ai/process"
        assert seen["body"] == {"command": "add a box", "canvasState": {"shapes": []}}

    def test_http_error_uses_message(self):
        def handler(request):
            return httpx.Response(500, json={"success": False, "message": "model overloaded"})

        response = asyncio.run(_client(handler).process_command("x", {}))
        assert response.success is False
        assert response.error == "model overloaded"
        assert response.actions == []

    def test_http_error_without_body(self):
        def handler(request):
            return httpx.Response(503, text="unavailable")

        response = asyncio.run(_client(handler).process_command("x", {}))
        assert response.success is False
        assert "503" in response.error

    def test_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        response = asyncio.run(_client(handler).process_command("x", {}))
        assert response.success is False
        assert "Failed to connect" in response.error

    def test_unparseable_body(self):
        def handler(request):
            return httpx.Response(200, text="<html>oops</html>")

        response = asyncio.run(_client(handler).process_command("x", {}))
        assert response.success is False


class TestHealth:
    def test_healthy(self):
        client = _client(lambda request: httpx.Response(200, json={"status": "healthy"}))
        assert asyncio.run(client.check_health()) is True

    def test_unreachable(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        assert asyncio.run(_client(handler).check_health()) is False


class TestRunCommand:
    def test_failure_applies_nothing(self, editor):
        editor.add_shape("rect", id="r1")
        state = editor.state

        def handler(request):
            return httpx.Response(500, json={"message": "nope"})

        response, report = asyncio.run(run_command(editor, _client(handler), "delete everything"))
        assert response.success is False
        assert report is None
        assert editor.state is state

    def test_success_replays_actions(self, editor):
        def handler(request):
            canvas = json.loads(request.content)["canvasState"]
            assert canvas["canvasWidth"] == 1200
            return httpx.Response(200, json={"success": True, "actions": [
                {"type": "create", "shapeType": "circle", "properties": {"id": "c1", "radius": 10}},
                {"type": "bogus"},
            ]})

        response, report = asyncio.run(run_command(editor, _client(handler), "add a dot"))
        assert response.success is True
        assert (report.applied, report.skipped) == (1, 1)
        assert editor.get_shape("c1").radius == 10
