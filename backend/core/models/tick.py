"""Tick and sample buffer models."""

import math
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Tick(BaseModel):
    """One observed trade (price, volume) in the stream."""

    model_config = ConfigDict(frozen=True)

    price: float = Field(gt=0)
    volume: float = 1.0
    sequence_index: int = Field(default=0, ge=0)
    timestamp: datetime | None = None

    @field_validator("price")
    @classmethod
    def _price_must_be_finite(cls, value: float) -> float:
        if not math.isfinite(value):
            raise ValueError("price must be finite")
        return value

    @field_validator("volume", mode="before")
    @classmethod
    def _coerce_volume(cls, value):
        """Missing, zero or negative volume counts as a single unit."""
        if value is None:
            return 1.0
        value = float(value)
        if not math.isfinite(value) or value <= 0:
            return 1.0
        return value


class SampleBuffer(BaseModel):
    """Capacity-bounded buffer of the most recent ticks for one instrument.

    Append-only; once full the oldest tick is evicted. Prices and volumes
    are read from the same tick list so they always share index ``i``.
    """

    symbol: str = ""
    ticks: list[Tick] = Field(default_factory=list)
    max_size: int = 100
    next_sequence: int = 0

    def add(
        self,
        price: float,
        volume: float | None = None,
        timestamp: datetime | None = None,
    ) -> Tick:
        """Append a tick, evicting the oldest one on overflow."""
        tick = Tick(
            price=price,
            volume=volume,
            sequence_index=self.next_sequence,
            timestamp=timestamp,
        )
        self.next_sequence += 1

        self.ticks.append(tick)
        if len(self.ticks) > self.max_size:
            self.ticks = self.ticks[-self.max_size :]
        return tick

    def clear(self) -> None:
        """Drop all samples and restart the sequence counter."""
        self.ticks = []
        self.next_sequence = 0

    def snapshot(self) -> tuple[Tick, ...]:
        """Stable copy of the current contents for a simulation pass."""
        return tuple(self.ticks)

    def get_prices(self) -> list[float]:
        """Get list of prices."""
        return [t.price for t in self.ticks]

    def get_volumes(self) -> list[float]:
        """Get list of volumes."""
        return [t.volume for t in self.ticks]

    @property
    def last_price(self) -> float | None:
        return self.ticks[-1].price if self.ticks else None

    def __len__(self) -> int:
        return len(self.ticks)
