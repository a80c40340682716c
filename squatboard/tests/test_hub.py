"""Tests for the board broadcast hub."""

import pytest

from squatboard.core.metrics import ws_active_connections, ws_messages_sent_total
from squatboard.realtime.hub import BoardHub


class MockWS:
    def __init__(self):
        self.messages = []

    async def send_json(self, data):
        self.messages.append(data)


class DeadWS:
    async def send_json(self, data):
        raise RuntimeError("socket closed")


@pytest.fixture
def board_hub():
    return BoardHub()


class TestBoardHub:
    @pytest.mark.asyncio
    async def test_register_and_unregister(self, board_hub):
        ws = MockWS()
        assert await board_hub.register(ws) is True
        assert await board_hub.connection_count() == 1
        assert ws_active_connections.value() == 1

        await board_hub.unregister(ws)
        assert await board_hub.connection_count() == 0
        assert ws_active_connections.value() == 0

    @pytest.mark.asyncio
    async def test_broadcast_reaches_everyone(self, board_hub):
        sockets = [MockWS() for _ in range(3)]
        for ws in sockets:
            await board_hub.register(ws)

        delivered = await board_hub.broadcast({"type": "update", "users": []})
        assert delivered == 3
        assert all(ws.messages == [{"type": "update", "users": []}] for ws in sockets)
        assert ws_messages_sent_total.value({"event_type": "update"}) == 3

    @pytest.mark.asyncio
    async def test_broadcast_without_sockets(self, board_hub):
        assert await board_hub.broadcast({"type": "update"}) == 0

    @pytest.mark.asyncio
    async def test_dead_sockets_are_pruned(self, board_hub):
        alive, dead = MockWS(), DeadWS()
        await board_hub.register(alive)
        await board_hub.register(dead)

        assert await board_hub.broadcast({"type": "userRemoved", "userId": "u1"}) == 1
        assert await board_hub.connection_count() == 1

    @pytest.mark.asyncio
    async def test_connection_cap(self, board_hub):
        board_hub.configure(1)
        assert await board_hub.register(MockWS()) is True
        assert await board_hub.register(MockWS()) is False
        assert await board_hub.connection_count() == 1
