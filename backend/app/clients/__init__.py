"""Market data clients."""

from app.clients.finnhub_ws_trade import (
    FinnhubTradeListener,
    FinnhubTradeWebSocket,
    TradeMessage,
    parse_trade_message,
)

__all__ = [
    "FinnhubTradeListener",
    "FinnhubTradeWebSocket",
    "TradeMessage",
    "parse_trade_message",
]
