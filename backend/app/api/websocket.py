"""WebSocket endpoint for real-time updates."""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any

import orjson
from fastapi import WebSocket, WebSocketDisconnect
from pydantic import BaseModel

from core.models.connection import ConnectionState
from core.models.tick import Tick
from core.simulator import SimulationResult

logger = logging.getLogger(__name__)


def _orjson_dumps(obj: Any) -> str:
    """Serialize object to JSON string using orjson."""
    return orjson.dumps(obj, default=str).decode("utf-8")


def _now() -> datetime:
    return datetime.now(timezone.utc)


class WebSocketMessage(BaseModel):
    """WebSocket message format."""

    type: str  # "status", "price", "simulation"
    data: dict[str, Any]
    timestamp: datetime

    def to_json(self) -> str:
        """Serialize to JSON string using orjson for performance."""
        return _orjson_dumps(self.model_dump(mode="json"))


def result_to_dict(result: SimulationResult) -> dict[str, Any]:
    """Serializable view of a simulation pass."""
    return {
        "sample_count": result.sample_count,
        "events": [e.model_dump(mode="json") for e in result.events],
        "cumulative_profit": result.cumulative_profit,
        "total_profit": result.total_profit,
        "position": result.position.model_dump(mode="json"),
    }


class ConnectionManager:
    """Manage WebSocket connections and broadcasts."""

    def __init__(self, send_timeout: float = 5.0):
        self._connections: list[WebSocket] = []
        self._lock = asyncio.Lock()
        self._send_timeout = send_timeout

        # Latest tick waiting behind an in-flight price broadcast
        self._pending_price: Tick | None = None
        self._price_sending = False

    async def connect(self, websocket: WebSocket) -> None:
        """Accept a new WebSocket connection."""
        await websocket.accept()
        async with self._lock:
            self._connections.append(websocket)
        logger.info(f"WebSocket connected. Total connections: {len(self._connections)}")

    async def disconnect(self, websocket: WebSocket) -> None:
        """Remove a disconnected WebSocket."""
        async with self._lock:
            if websocket in self._connections:
                self._connections.remove(websocket)
        logger.info(f"WebSocket disconnected. Total connections: {len(self._connections)}")

    async def broadcast(self, message: WebSocketMessage) -> None:
        """Broadcast message to all connected clients."""
        if not self._connections:
            return

        message_text = message.to_json()
        disconnected = []

        async with self._lock:
            for websocket in self._connections:
                try:
                    await asyncio.wait_for(
                        websocket.send_text(message_text),
                        timeout=self._send_timeout,
                    )
                except asyncio.TimeoutError:
                    logger.warning(f"Send timed out after {self._send_timeout}s, dropping client")
                    disconnected.append(websocket)
                except Exception as e:
                    logger.warning(f"Failed to send message: {e}")
                    disconnected.append(websocket)

            # Remove disconnected websockets
            for ws in disconnected:
                self._connections.remove(ws)

    async def send_status(self, state: ConnectionState) -> None:
        """Broadcast a connection status change."""
        await self.broadcast(WebSocketMessage(
            type="status",
            data=state.model_dump(mode="json"),
            timestamp=_now(),
        ))

    async def send_price(self, tick: Tick) -> None:
        """
        Broadcast the last received price.

        Only the newest tick matters to clients: while a price broadcast is
        in flight, later ticks replace each other and the latest one is sent
        once the current send completes.
        """
        self._pending_price = tick
        if self._price_sending:
            return

        self._price_sending = True
        try:
            while self._pending_price is not None:
                latest, self._pending_price = self._pending_price, None
                await self.broadcast(WebSocketMessage(
                    type="price",
                    data={
                        "price": latest.price,
                        "volume": latest.volume,
                        "sequence_index": latest.sequence_index,
                    },
                    timestamp=_now(),
                ))
        finally:
            self._price_sending = False

    async def send_simulation(self, result: SimulationResult) -> None:
        """Broadcast the rebuilt event log of a simulation pass."""
        await self.broadcast(WebSocketMessage(
            type="simulation",
            data=result_to_dict(result),
            timestamp=_now(),
        ))

    @property
    def connection_count(self) -> int:
        """Get number of active connections."""
        return len(self._connections)


# Global connection manager
manager = ConnectionManager()


async def websocket_endpoint(websocket: WebSocket):
    """
    WebSocket endpoint for real-time updates.

    Messages sent to clients:
    - status: Connection state of the trade stream
    - price: Last received tick
    - simulation: Event log and cumulative profit after each pass

    Message format:
    {
        "type": "simulation",
        "data": {...},
        "timestamp": "2024-01-01T00:00:00+00:00"
    }
    """
    await manager.connect(websocket)

    try:
        await websocket.send_text(_orjson_dumps({
            "type": "connected",
            "data": {"message": "Connected to trade simulator"},
            "timestamp": _now().isoformat(),
        }))

        # Keep connection alive and handle incoming messages
        while True:
            try:
                data = await asyncio.wait_for(
                    websocket.receive_text(),
                    timeout=60.0,
                )

                try:
                    message = orjson.loads(data)
                    await handle_client_message(websocket, message)
                except orjson.JSONDecodeError:
                    await websocket.send_text(_orjson_dumps({
                        "type": "error",
                        "data": {"message": "Invalid JSON"},
                        "timestamp": _now().isoformat(),
                    }))

            except asyncio.TimeoutError:
                # Send ping to keep connection alive
                await websocket.send_text(_orjson_dumps({
                    "type": "ping",
                    "data": {},
                    "timestamp": _now().isoformat(),
                }))

    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.error(f"WebSocket error: {e}")
    finally:
        await manager.disconnect(websocket)


async def handle_client_message(websocket: WebSocket, message: dict) -> None:
    """Handle incoming message from client."""
    msg_type = message.get("type", "") if isinstance(message, dict) else ""

    if msg_type == "ping":
        await websocket.send_text(_orjson_dumps({
            "type": "pong",
            "data": {},
            "timestamp": _now().isoformat(),
        }))
    else:
        await websocket.send_text(_orjson_dumps({
            "type": "error",
            "data": {"message": f"Unknown message type: {msg_type}"},
            "timestamp": _now().isoformat(),
        }))
