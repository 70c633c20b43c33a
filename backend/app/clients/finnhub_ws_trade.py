"""Finnhub WebSocket client for real-time trade ticks using picows."""

import asyncio
import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

import orjson
from picows import ws_connect, WSFrame, WSTransport, WSListener, WSMsgType, WSCloseCode

from core.models.connection import ConnectionState, ConnectionStatus, backoff_delay

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class TradeMessage:
    """One trade parsed from the stream."""

    symbol: str
    price: float
    volume: float | None
    timestamp: datetime | None


# Type aliases for callbacks
TradeCallback = Callable[[TradeMessage], None]
StatusCallback = Callable[[ConnectionState], None]
SleepFunc = Callable[[float], Awaitable[None]]
Connector = Callable[[Callable[[], WSListener], str], Awaitable[tuple[Any, Any]]]


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def parse_trade_message(payload: str | bytes) -> TradeMessage | None:
    """
    Parse a Finnhub frame into a trade.

    Only ``{"type": "trade", "data": [...]}`` frames with a positive price
    produce a trade; the first entry of the batch is used. Everything else
    (pings, errors, malformed JSON) returns None.
    """
    try:
        data = orjson.loads(payload)
    except orjson.JSONDecodeError:
        logger.debug(f"Ignoring non-JSON frame: {payload!r:.80}")
        return None

    if not isinstance(data, dict) or data.get("type") != "trade":
        return None

    trades = data.get("data")
    if not isinstance(trades, list) or not trades or not isinstance(trades[0], dict):
        return None
    first = trades[0]

    price = first.get("p")
    if not _is_number(price) or not math.isfinite(price) or price <= 0:
        return None

    volume = first.get("v")
    timestamp = None
    ts = first.get("t")
    if _is_number(ts):
        try:
            timestamp = datetime.fromtimestamp(ts / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            timestamp = None

    return TradeMessage(
        symbol=str(first.get("s", "")),
        price=float(price),
        volume=float(volume) if _is_number(volume) else None,
        timestamp=timestamp,
    )


class FinnhubTradeListener(WSListener):
    """picows listener for one Finnhub trade stream session."""

    def __init__(
        self,
        symbol: str,
        on_trade: TradeCallback,
        on_connected: Callable[[], None],
        on_disconnected: Callable[[], None],
    ):
        self._symbol = symbol
        self._on_trade = on_trade
        self._on_connected = on_connected
        self._on_disconnected = on_disconnected
        self._transport: WSTransport | None = None

    def on_ws_connected(self, transport: WSTransport):
        """Called when WebSocket connection is established."""
        self._transport = transport
        logger.info(f"picows: Finnhub WebSocket connected ({self._symbol})")

        self._on_connected()
        self._send({"type": "subscribe", "symbol": self._symbol})

    def on_ws_disconnected(self, transport: WSTransport):
        """Called when WebSocket is disconnected."""
        logger.info(f"picows: Finnhub WebSocket disconnected ({self._symbol})")
        self._transport = None
        self._on_disconnected()

    def on_ws_frame(self, transport: WSTransport, frame: WSFrame):
        """Called when a new frame is received."""
        if frame.msg_type == WSMsgType.TEXT:
            self.handle_message(frame.get_payload_as_utf8_text())
        elif frame.msg_type == WSMsgType.PING:
            transport.send_pong(frame.get_payload_as_bytes())

    def _send(self, message: dict) -> None:
        if not self._transport:
            return
        self._transport.send(WSMsgType.TEXT, orjson.dumps(message))

    def handle_message(self, payload: str) -> None:
        """Handle an incoming text frame; anything that is not a trade is ignored."""
        trade = parse_trade_message(payload)
        if trade is None:
            return

        if trade.symbol and trade.symbol != self._symbol:
            logger.debug(f"Ignoring trade for {trade.symbol} (subscribed {self._symbol})")
            return

        try:
            self._on_trade(trade)
        except Exception as e:
            logger.error(f"Trade callback error: {e}")

    def disconnect(self) -> None:
        """Unsubscribe and close the WebSocket."""
        if self._transport:
            self._send({"type": "unsubscribe", "symbol": self._symbol})
            self._transport.send_close(WSCloseCode.OK)
            self._transport.disconnect()


async def _picows_connector(
    listener_factory: Callable[[], WSListener],
    url: str,
) -> tuple[Any, Any]:
    return await ws_connect(
        listener_factory,
        url,
        enable_auto_ping=True,
        auto_ping_idle_timeout=30,
        auto_ping_reply_timeout=10,
    )


class FinnhubTradeWebSocket:
    """Trade stream for one symbol with an explicit connection state machine.

    IDLE -> CONNECTING -> CONNECTED -> {ERROR | CLOSED} -> (backoff) -> CONNECTING

    The reconnect wait runs inside the client task, so ``stop()`` cancels it
    together with the session. Every session gets a token; callbacks from a
    session that has been torn down are dropped.
    """

    WS_URL = "wss://ws.finnhub.io"

    def __init__(
        self,
        api_key: str,
        symbol: str,
        on_trade: TradeCallback,
        on_status: StatusCallback | None = None,
        url: str | None = None,
        connector: Connector | None = None,
        sleep: SleepFunc = asyncio.sleep,
    ):
        self.api_key = api_key
        self.symbol = symbol.upper()
        self.url = url or self.WS_URL
        self._on_trade = on_trade
        self._on_status = on_status
        self._connector = connector or _picows_connector
        self._sleep = sleep

        self._state = ConnectionState()
        self._session = 0
        self._running = False
        self._task: asyncio.Task | None = None
        self._listener: FinnhubTradeListener | None = None

    @property
    def state(self) -> ConnectionState:
        """Copy of the current connection state."""
        return self._state.model_copy()

    @property
    def status(self) -> ConnectionStatus:
        return self._state.status

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the connection loop (no-op without an API key)."""
        if self._running:
            return

        if not self.api_key.strip():
            logger.info("No Finnhub API key configured, trade stream stays idle")
            self._set_status(ConnectionStatus.IDLE)
            return

        self._running = True
        self._session += 1
        self._task = asyncio.create_task(self._run(self._session))

    async def stop(self) -> None:
        """Tear down: cancel any pending reconnect and close the connection."""
        self._running = False
        self._session += 1

        listener, self._listener = self._listener, None
        if listener:
            try:
                listener.disconnect()
            except Exception as e:
                logger.warning(f"Error closing Finnhub WS: {e}")

        task, self._task = self._task, None
        if task:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        self._state.retry_count = 0
        self._set_status(ConnectionStatus.IDLE)

    def _is_current(self, session: int) -> bool:
        return self._running and session == self._session

    def _set_status(self, status: ConnectionStatus) -> None:
        changed = status != self._state.status
        self._state.status = status
        if changed:
            logger.info(
                f"Finnhub WS {self.symbol}: {status.value} "
                f"(retry_count={self._state.retry_count})"
            )
        if self._on_status:
            try:
                self._on_status(self.state)
            except Exception as e:
                logger.error(f"Status callback error: {e}")

    async def _run(self, session: int) -> None:
        """Main WebSocket loop with reconnection."""
        while self._is_current(session):
            self._set_status(ConnectionStatus.CONNECTING)
            try:
                await self._connect_and_process(session)
                lost_status = ConnectionStatus.CLOSED
            except Exception as e:
                logger.error(f"Finnhub WS error: {e}")
                lost_status = ConnectionStatus.ERROR

            if not self._is_current(session):
                break

            self._set_status(lost_status)
            delay = backoff_delay(self._state.retry_count)
            self._state.retry_count += 1
            logger.info(
                f"Reconnecting Finnhub WS in {delay:g} seconds "
                f"(attempt {self._state.retry_count})..."
            )
            await self._sleep(delay)

    async def _connect_and_process(self, session: int) -> None:
        """Connect, subscribe and wait until the session is disconnected."""
        disconnected = asyncio.Event()

        def on_connected() -> None:
            if not self._is_current(session):
                return
            self._state.retry_count = 0
            self._set_status(ConnectionStatus.CONNECTED)

        def on_trade(trade: TradeMessage) -> None:
            if self._is_current(session):
                self._on_trade(trade)

        def listener_factory() -> FinnhubTradeListener:
            self._listener = FinnhubTradeListener(
                symbol=self.symbol,
                on_trade=on_trade,
                on_connected=on_connected,
                on_disconnected=disconnected.set,
            )
            return self._listener

        logger.info(f"Connecting Finnhub WS to {self.url} for {self.symbol}")
        await self._connector(listener_factory, f"{self.url}?token={self.api_key}")

        # Wait until disconnected
        await disconnected.wait()
