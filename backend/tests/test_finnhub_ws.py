"""Tests for the Finnhub trade stream client."""

import asyncio
from datetime import datetime, timezone
from unittest.mock import MagicMock

import orjson
import pytest
from picows import WSCloseCode, WSMsgType

from app.clients import FinnhubTradeListener, FinnhubTradeWebSocket, parse_trade_message
from core.models.connection import ConnectionStatus, backoff_delay


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _trade_frame(symbol="TQQQ", price=50.25, volume=100, ts=1700000000000) -> bytes:
    return orjson.dumps({
        "type": "trade",
        "data": [{"p": price, "v": volume, "s": symbol, "t": ts}],
    })


class FakeConnector:
    """Stands in for picows.ws_connect.

    ``fail=True`` raises on every call; otherwise the listener is connected
    to a MagicMock transport.
    """

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.urls: list[str] = []
        self.listeners: list[FinnhubTradeListener] = []
        self.transports: list[MagicMock] = []

    async def __call__(self, listener_factory, url):
        self.urls.append(url)
        if self.fail:
            raise ConnectionRefusedError("refused")
        listener = listener_factory()
        transport = MagicMock()
        self.listeners.append(listener)
        self.transports.append(transport)
        listener.on_ws_connected(transport)
        return transport, listener


class RecordingSleep:
    """Fake sleep that records delays.

    With ``block=True`` it never returns (a pending reconnect).
    """

    def __init__(self, block: bool = False):
        self.delays: list[float] = []
        self.block = block

    async def __call__(self, delay):
        self.delays.append(delay)
        if self.block:
            await asyncio.Event().wait()
        await asyncio.sleep(0)


async def _wait_for(predicate, attempts: int = 200) -> None:
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition not reached")


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

class TestParseTradeMessage:
    """Tests for inbound frame parsing."""

    def test_trade(self):
        trade = parse_trade_message(_trade_frame())

        assert trade.symbol == "TQQQ"
        assert trade.price == 50.25
        assert trade.volume == 100.0
        assert trade.timestamp == datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc)

    def test_first_trade_of_batch(self):
        payload = orjson.dumps({
            "type": "trade",
            "data": [{"p": 1.5, "s": "TQQQ"}, {"p": 2.5, "s": "TQQQ"}],
        })
        assert parse_trade_message(payload).price == 1.5

    def test_missing_volume(self):
        payload = orjson.dumps({"type": "trade", "data": [{"p": 10, "s": "TQQQ"}]})
        trade = parse_trade_message(payload)
        assert trade.volume is None
        assert trade.timestamp is None

    @pytest.mark.parametrize("payload", [
        b'{"type":"ping"}',
        b'{"type":"error","msg":"Invalid token"}',
        b'{"type":"trade","data":[]}',
        b'{"type":"trade"}',
        b'{"type":"trade","data":[{"p":0,"s":"TQQQ"}]}',
        b'{"type":"trade","data":[{"p":"12","s":"TQQQ"}]}',
        b'not json',
        b'[1,2,3]',
    ])
    def test_ignored(self, payload):
        assert parse_trade_message(payload) is None


class TestListener:
    """Tests for the picows listener."""

    def test_subscribe_after_connected(self):
        order = []
        transport = MagicMock()
        transport.send.side_effect = lambda *args: order.append(("send", args))
        listener = FinnhubTradeListener(
            symbol="TQQQ",
            on_trade=MagicMock(),
            on_connected=lambda: order.append(("connected",)),
            on_disconnected=MagicMock(),
        )

        listener.on_ws_connected(transport)

        assert order[0] == ("connected",)
        assert order[1] == (
            "send",
            (WSMsgType.TEXT, orjson.dumps({"type": "subscribe", "symbol": "TQQQ"})),
        )

    def test_other_symbol_ignored(self):
        on_trade = MagicMock()
        listener = FinnhubTradeListener("TQQQ", on_trade, MagicMock(), MagicMock())

        listener.handle_message(_trade_frame(symbol="AAPL"))
        on_trade.assert_not_called()

        listener.handle_message(_trade_frame(symbol="TQQQ"))
        on_trade.assert_called_once()

    def test_callback_error_does_not_raise(self):
        listener = FinnhubTradeListener(
            "TQQQ", MagicMock(side_effect=RuntimeError("boom")), MagicMock(), MagicMock()
        )
        listener.handle_message(_trade_frame())

    def test_disconnect_unsubscribes_and_closes(self):
        transport = MagicMock()
        listener = FinnhubTradeListener("TQQQ", MagicMock(), MagicMock(), MagicMock())
        listener.on_ws_connected(transport)

        listener.disconnect()

        transport.send.assert_called_with(
            WSMsgType.TEXT, orjson.dumps({"type": "unsubscribe", "symbol": "TQQQ"})
        )
        transport.send_close.assert_called_once_with(WSCloseCode.OK)
        transport.disconnect.assert_called_once()


# ---------------------------------------------------------------------------
# Connection state machine
# ---------------------------------------------------------------------------

class TestBackoff:
    """Tests for the reconnect delay policy."""

    def test_delay_sequence(self):
        assert [backoff_delay(n) for n in range(7)] == [1, 2, 4, 8, 16, 30, 30]

    def test_huge_retry_count_is_capped(self):
        assert backoff_delay(10_000) == 30

    @pytest.mark.asyncio
    async def test_client_sleeps_with_backoff(self):
        connector = FakeConnector(fail=True)
        sleep = RecordingSleep()
        client = FinnhubTradeWebSocket(
            "key", "TQQQ", on_trade=MagicMock(), connector=connector, sleep=sleep
        )

        await client.start()
        await _wait_for(lambda: len(sleep.delays) >= 6)
        await client.stop()

        assert sleep.delays[:6] == [1, 2, 4, 8, 16, 30]
        assert client.status == ConnectionStatus.IDLE
        assert client.state.retry_count == 0

    @pytest.mark.asyncio
    async def test_successful_connect_resets_retry(self):
        connector = FakeConnector(fail=True)
        sleep = RecordingSleep()
        client = FinnhubTradeWebSocket(
            "key", "TQQQ", on_trade=MagicMock(), connector=connector, sleep=sleep
        )

        await client.start()
        await _wait_for(lambda: len(sleep.delays) >= 3)
        connector.fail = False
        await _wait_for(lambda: client.status == ConnectionStatus.CONNECTED)

        assert client.state.retry_count == 0

        # Server closes the session: next delay starts from 1s again
        sleep.delays.clear()
        connector.listeners[-1].on_ws_disconnected(connector.transports[-1])
        await _wait_for(lambda: len(sleep.delays) >= 1)
        assert sleep.delays[0] == 1

        await client.stop()


class TestClientLifecycle:
    """Tests for start/stop and session isolation."""

    @pytest.mark.asyncio
    async def test_no_api_key_stays_idle(self):
        connector = FakeConnector()
        statuses = []
        client = FinnhubTradeWebSocket(
            "  ", "TQQQ", on_trade=MagicMock(),
            on_status=lambda s: statuses.append(s.status), connector=connector,
        )

        await client.start()

        assert not client.is_running
        assert connector.urls == []
        assert statuses == [ConnectionStatus.IDLE]

    @pytest.mark.asyncio
    async def test_connects_with_token_url(self):
        connector = FakeConnector()
        statuses = []
        client = FinnhubTradeWebSocket(
            "secret", "tqqq", on_trade=MagicMock(),
            on_status=lambda s: statuses.append(s.status), connector=connector,
        )

        await client.start()
        await _wait_for(lambda: client.status == ConnectionStatus.CONNECTED)

        assert connector.urls == ["wss://ws.finnhub.io?token=secret"]
        assert statuses[:2] == [ConnectionStatus.CONNECTING, ConnectionStatus.CONNECTED]
        connector.transports[0].send.assert_called_with(
            WSMsgType.TEXT, orjson.dumps({"type": "subscribe", "symbol": "TQQQ"})
        )

        await client.stop()
        connector.transports[0].send_close.assert_called_once_with(WSCloseCode.OK)
        assert statuses[-1] == ConnectionStatus.IDLE

    @pytest.mark.asyncio
    async def test_trades_forwarded(self):
        connector = FakeConnector()
        on_trade = MagicMock()
        client = FinnhubTradeWebSocket("key", "TQQQ", on_trade=on_trade, connector=connector)

        await client.start()
        await _wait_for(lambda: client.status == ConnectionStatus.CONNECTED)
        connector.listeners[0].handle_message(_trade_frame(price=12.0))

        on_trade.assert_called_once()
        assert on_trade.call_args.args[0].price == 12.0
        await client.stop()

    @pytest.mark.asyncio
    async def test_stop_cancels_pending_reconnect(self):
        connector = FakeConnector(fail=True)
        sleep = RecordingSleep(block=True)
        client = FinnhubTradeWebSocket(
            "key", "TQQQ", on_trade=MagicMock(), connector=connector, sleep=sleep
        )

        await client.start()
        await _wait_for(lambda: len(sleep.delays) == 1)
        await client.stop()

        for _ in range(20):
            await asyncio.sleep(0)
        assert len(connector.urls) == 1
        assert client.status == ConnectionStatus.IDLE

    @pytest.mark.asyncio
    async def test_stale_session_trades_dropped(self):
        connector = FakeConnector()
        on_trade = MagicMock()
        client = FinnhubTradeWebSocket("key", "TQQQ", on_trade=on_trade, connector=connector)

        await client.start()
        await _wait_for(lambda: client.status == ConnectionStatus.CONNECTED)
        old_listener = connector.listeners[0]
        await client.stop()

        old_listener.handle_message(_trade_frame())
        on_trade.assert_not_called()
