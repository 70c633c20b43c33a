"""Trade event and position models."""

from enum import Enum

from pydantic import BaseModel, ConfigDict


class TradeKind(str, Enum):
    """Simulated trade side."""

    BUY = "BUY"
    SELL = "SELL"


class ExitReason(str, Enum):
    """Why a position was closed."""

    TAKE_PROFIT = "take_profit"
    STOP_LOSS = "stop_loss"
    MAX_HOLD = "max_hold"


class PositionState(str, Enum):
    """Position lifecycle."""

    FLAT = "flat"
    HOLDING = "holding"


class TradeEvent(BaseModel):
    """One entry of the simulated event log.

    BUY events carry the joined entry reasons, SELL events carry the
    realized net profit in percent.
    """

    model_config = ConfigDict(frozen=True)

    time_index: int
    kind: TradeKind
    price: float
    reason: str | None = None
    profit_pct: float | None = None
    exit_reason: ExitReason | None = None
    sequence_index: int | None = None

    @property
    def is_buy(self) -> bool:
        return self.kind == TradeKind.BUY

    @property
    def is_sell(self) -> bool:
        return self.kind == TradeKind.SELL


class Position(BaseModel):
    """The single position of a simulation run."""

    state: PositionState = PositionState.FLAT
    entry_price: float | None = None
    entry_index: int | None = None

    @property
    def is_holding(self) -> bool:
        return self.state == PositionState.HOLDING

    def open(self, price: float, index: int) -> None:
        """Enter the position."""
        self.state = PositionState.HOLDING
        self.entry_price = price
        self.entry_index = index

    def close(self) -> None:
        """Return to flat."""
        self.state = PositionState.FLAT
        self.entry_price = None
        self.entry_index = None
