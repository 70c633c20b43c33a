"""Tests for dashboard WebSocket broadcasting."""

import asyncio
from unittest.mock import AsyncMock

import orjson
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.api.websocket import ConnectionManager, result_to_dict, websocket_endpoint
from core.models.connection import ConnectionState, ConnectionStatus
from core.models.tick import Tick
from core.simulator import TradeSimulator


def _socket(fail: bool = False) -> AsyncMock:
    ws = AsyncMock()
    if fail:
        ws.send_text.side_effect = RuntimeError("closed")
    return ws


class TestConnectionManager:
    """Tests for broadcast fan-out."""

    @pytest.mark.asyncio
    async def test_connect_and_disconnect(self):
        manager = ConnectionManager()
        ws = _socket()

        await manager.connect(ws)
        ws.accept.assert_awaited_once()
        assert manager.connection_count == 1

        await manager.disconnect(ws)
        assert manager.connection_count == 0

    @pytest.mark.asyncio
    async def test_price_message(self):
        manager = ConnectionManager()
        ws = _socket()
        await manager.connect(ws)

        await manager.send_price(Tick(price=42.5, volume=3, sequence_index=7))

        message = orjson.loads(ws.send_text.call_args.args[0])
        assert message["type"] == "price"
        assert message["data"] == {"price": 42.5, "volume": 3.0, "sequence_index": 7}
        assert "timestamp" in message

    @pytest.mark.asyncio
    async def test_status_message(self):
        manager = ConnectionManager()
        ws = _socket()
        await manager.connect(ws)

        await manager.send_status(ConnectionState(status=ConnectionStatus.ERROR, retry_count=3))

        message = orjson.loads(ws.send_text.call_args.args[0])
        assert message["type"] == "status"
        assert message["data"] == {"status": "error", "retry_count": 3}

    @pytest.mark.asyncio
    async def test_simulation_message(self):
        manager = ConnectionManager()
        ws = _socket()
        await manager.connect(ws)
        result = TradeSimulator().run_prices([100.0 + i for i in range(30)], [1.0] * 30)

        await manager.send_simulation(result)

        message = orjson.loads(ws.send_text.call_args.args[0])
        assert message["type"] == "simulation"
        assert message["data"] == orjson.loads(orjson.dumps(result_to_dict(result)))
        assert message["data"]["sample_count"] == 30

    @pytest.mark.asyncio
    async def test_failed_socket_dropped(self):
        manager = ConnectionManager()
        good, bad = _socket(), _socket(fail=True)
        await manager.connect(good)
        await manager.connect(bad)

        await manager.send_price(Tick(price=1.0))

        assert manager.connection_count == 1
        good.send_text.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_no_connections(self):
        await ConnectionManager().send_price(Tick(price=1.0))

    @pytest.mark.asyncio
    async def test_stale_prices_coalesced(self):
        manager = ConnectionManager()
        ws = _socket()
        sent = []
        gate = asyncio.Event()

        async def send_text(text):
            sent.append(orjson.loads(text)["data"]["price"])
            if len(sent) == 1:
                await gate.wait()

        ws.send_text.side_effect = send_text
        await manager.connect(ws)

        first = asyncio.create_task(manager.send_price(Tick(price=1.0)))
        while not sent:
            await asyncio.sleep(0)

        # Slow client: later ticks return at once instead of queueing
        for price in range(2, 50):
            await manager.send_price(Tick(price=float(price)))

        gate.set()
        await first

        assert sent == [1.0, 49.0]
        assert manager.connection_count == 1

    @pytest.mark.asyncio
    async def test_stalled_socket_dropped(self):
        manager = ConnectionManager(send_timeout=0.01)
        stalled, good = _socket(), _socket()
        never = asyncio.Event()

        async def send_text(text):
            await never.wait()

        stalled.send_text.side_effect = send_text
        await manager.connect(stalled)
        await manager.connect(good)

        await manager.send_status(ConnectionState(status=ConnectionStatus.CONNECTED))

        assert manager.connection_count == 1
        good.send_text.assert_awaited_once()


class TestEndpoint:
    """Tests for the /ws endpoint."""

    def test_connected_and_ping(self):
        app = FastAPI()
        app.websocket("/ws")(websocket_endpoint)

        with TestClient(app).websocket_connect("/ws") as ws:
            assert ws.receive_json()["type"] == "connected"

            ws.send_text('{"type": "ping"}')
            assert ws.receive_json()["type"] == "pong"

            ws.send_text("not json")
            assert ws.receive_json()["data"]["message"] == "Invalid JSON"

            ws.send_text('{"type": "subscribe"}')
            assert ws.receive_json()["type"] == "error"
