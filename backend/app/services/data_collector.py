"""Data collection service for live trade ticks.

Owns the sample buffer and the trade stream client for the configured
instrument. It is the only writer of the buffer; simulation passes read a
snapshot copy.

Reconfiguration flow (symbol or API key change):
1. Stop the current client (pending reconnect cancelled, socket closed)
2. Clear the buffer if the symbol changed
3. Start a client for the new configuration
"""

import asyncio
import inspect
import logging
from datetime import datetime
from typing import Any, Callable

from app.clients import FinnhubTradeWebSocket, TradeMessage
from app.config import Settings, get_settings, normalize_symbol
from core.models.config import DEFAULT_STRATEGY, StrategyConfig
from core.models.connection import ConnectionState, ConnectionStatus
from core.models.tick import SampleBuffer, Tick

logger = logging.getLogger(__name__)

# Callbacks may be plain functions or coroutine functions
TickCallback = Callable[[Tick], Any]
StatusCallback = Callable[[ConnectionState], Any]
ClientFactory = Callable[..., FinnhubTradeWebSocket]


class DataCollector:
    """Ingestion loop: trade stream -> bounded sample buffer."""

    def __init__(
        self,
        settings: Settings | None = None,
        config: StrategyConfig = DEFAULT_STRATEGY,
        client_factory: ClientFactory | None = None,
    ):
        self.settings = settings or get_settings()
        self._api_key = self.settings.finnhub_api_key
        self._symbol = self.settings.symbol
        self._buffer = SampleBuffer(symbol=self._symbol, max_size=config.buffer_size)
        self._client_factory = client_factory or self._create_client
        self._client: FinnhubTradeWebSocket | None = None
        self._state = ConnectionState()

        # Callbacks for new data
        self._tick_callbacks: list[TickCallback] = []
        self._status_callbacks: list[StatusCallback] = []
        self._pending: set[asyncio.Task] = set()

        # Serializes start/stop/configure so sessions never overlap
        self._lock = asyncio.Lock()

    def on_tick(self, callback: TickCallback) -> None:
        """Register callback for new ticks."""
        if callback not in self._tick_callbacks:
            self._tick_callbacks.append(callback)

    def on_status(self, callback: StatusCallback) -> None:
        """Register callback for connection state changes."""
        if callback not in self._status_callbacks:
            self._status_callbacks.append(callback)

    @property
    def symbol(self) -> str:
        return self._symbol

    @property
    def has_api_key(self) -> bool:
        return bool(self._api_key.strip())

    @property
    def state(self) -> ConnectionState:
        return self._state.model_copy()

    @property
    def status(self) -> ConnectionStatus:
        return self._state.status

    @property
    def last_price(self) -> float | None:
        return self._buffer.last_price

    @property
    def sample_count(self) -> int:
        return len(self._buffer)

    def snapshot(self) -> tuple[Tick, ...]:
        """Stable copy of the buffer for a simulation pass."""
        return self._buffer.snapshot()

    async def start(self) -> None:
        """Start streaming for the configured symbol."""
        async with self._lock:
            await self._start_client()

    async def stop(self) -> None:
        """Stop streaming; state returns to IDLE."""
        async with self._lock:
            await self._stop_client()

    async def configure(
        self,
        symbol: str | None = None,
        api_key: str | None = None,
    ) -> bool:
        """
        Switch instrument and/or API key.

        The running session is torn down before the new one starts, so a
        reconnect scheduled for the old instrument can never fire afterwards.

        Returns:
            True if the configuration changed

        Raises:
            ValueError: If ``symbol`` is blank (nothing is torn down)
        """
        async with self._lock:
            new_symbol = normalize_symbol(symbol) if symbol is not None else self._symbol
            new_key = api_key if api_key is not None else self._api_key

            if new_symbol == self._symbol and new_key == self._api_key:
                return False

            await self._stop_client()

            if new_symbol != self._symbol:
                logger.info(f"Switching instrument {self._symbol} -> {new_symbol}, clearing buffer")
                self._buffer.clear()
                self._buffer.symbol = new_symbol

            self._symbol = new_symbol
            self._api_key = new_key
            await self._start_client()
            return True

    def add_tick(
        self,
        price: float,
        volume: float | None = None,
        timestamp: datetime | None = None,
    ) -> Tick:
        """Append a tick to the buffer and notify listeners."""
        tick = self._buffer.add(price, volume, timestamp)
        for callback in self._tick_callbacks:
            self._dispatch(callback, tick)
        return tick

    def _create_client(self, **kwargs) -> FinnhubTradeWebSocket:
        return FinnhubTradeWebSocket(url=self.settings.finnhub_ws_url, **kwargs)

    async def _start_client(self) -> None:
        if self._client is not None:
            return

        self._client = self._client_factory(
            api_key=self._api_key,
            symbol=self._symbol,
            on_trade=self._handle_trade,
            on_status=self._handle_status,
        )
        await self._client.start()
        logger.info(f"Data collection started for {self._symbol}")

    async def _stop_client(self) -> None:
        client, self._client = self._client, None
        if client is None:
            return

        await client.stop()
        # Client may already have reported IDLE; make sure listeners see it
        if self._state.status != ConnectionStatus.IDLE:
            self._handle_status(ConnectionState())
        logger.info(f"Data collection stopped for {self._symbol}")

    def _handle_trade(self, trade: TradeMessage) -> None:
        """Append a parsed trade from the stream."""
        try:
            self.add_tick(trade.price, trade.volume, trade.timestamp)
        except ValueError as e:
            # Pydantic validation (e.g. non-finite price); not fatal
            logger.debug(f"Dropping invalid trade {trade}: {e}")

    def _handle_status(self, state: ConnectionState) -> None:
        self._state = state
        for callback in self._status_callbacks:
            self._dispatch(callback, state.model_copy())

    def _dispatch(self, callback: Callable, *args) -> None:
        """Call a listener; coroutine results are scheduled on the loop."""
        try:
            result = callback(*args)
        except Exception as e:
            logger.error(f"Collector callback error: {e}")
            return

        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._pending.add(task)
            task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Collector callback error: {task.exception()}")
