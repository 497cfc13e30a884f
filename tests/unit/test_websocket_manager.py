"""
Unit tests for WebSocketManager fan-out.
"""
import pytest

from signademy.infrastructure.notifications import WebSocketManager


class TestWebSocketManager:
    """Tests for WebSocketManager"""

    @pytest.mark.asyncio
    async def test_publish_reaches_every_connection(self):
        manager = WebSocketManager()
        first = manager.add_connection()
        second = manager.add_connection()

        delivered = manager.publish({"type": "cleared"})

        assert delivered == 2
        assert first.get_nowait() == {"type": "cleared"}
        assert second.get_nowait() == {"type": "cleared"}

    @pytest.mark.asyncio
    async def test_full_queue_drops_oldest(self):
        manager = WebSocketManager(max_queue_size=2)
        queue = manager.add_connection()

        for i in range(3):
            manager.publish({"n": i})

        assert queue.get_nowait() == {"n": 1}
        assert queue.get_nowait() == {"n": 2}

    @pytest.mark.asyncio
    async def test_removed_connection_gets_nothing(self):
        manager = WebSocketManager()
        queue = manager.add_connection()
        manager.remove_connection(queue)
        manager.remove_connection(queue)

        assert manager.publish({"type": "cleared"}) == 0
        assert queue.empty()
        assert manager.get_total_connections() == 0
