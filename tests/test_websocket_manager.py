"""Tests for the scene update fan-out."""

import asyncio
import json

from figurelab.backend.websocket_manager import WebSocketManager, scene_summary


class FakeSocket:
    def __init__(self, fail=False):
        self.accepted = False
        self.sent = []
        self.fail = fail

    async def accept(self):
        self.accepted = True

    async def send_text(self, text):
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(json.loads(text))


class TestPublish:
    def test_revision_and_summary(self, editor):
        manager = WebSocketManager()
        client = FakeSocket()

        async def scenario():
            await manager.connect(client)
            editor.add_shape("rect", id="r1")
            await manager.publish_scene(editor)
            editor.undo()
            await manager.publish_scene(editor)

        asyncio.run(scenario())
        assert client.accepted
        assert [m["revision"] for m in client.sent] == [1, 2]
        assert client.sent[0]["type"] == "scene_updated"
        assert client.sent[0]["selection"] == ["r1"]
        assert client.sent[1]["shapes"] == 0
        assert client.sent[1]["can_redo"] is True

    def test_unreachable_clients_are_dropped(self, editor):
        manager = WebSocketManager()
        good, bad = FakeSocket(), FakeSocket(fail=True)

        async def scenario():
            await manager.connect(good)
            await manager.connect(bad)
            await manager.publish_scene(editor)

        asyncio.run(scenario())
        assert manager.connection_count == 1
        assert len(good.sent) == 1

    def test_summary(self, editor):
        assert scene_summary(editor) == {
            "shapes": 0,
            "connectors": 0,
            "selection": [],
            "is_dirty": False,
            "can_undo": False,
            "can_redo": False,
        }
