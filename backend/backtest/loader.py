"""Input loading for the replay CLI.

Sequences come either from comma-separated command line values or from a
CSV file with a ``price`` column and an optional ``volume`` column.
"""

from __future__ import annotations

import csv
import math
from dataclasses import dataclass, field
from pathlib import Path


@dataclass
class ReplayInput:
    """Price sequence with aligned volumes."""

    prices: list[float]
    volumes: list[float] = field(default_factory=list)
    source: str = "manual"

    def __post_init__(self) -> None:
        if not self.prices:
            raise ValueError("Price sequence is empty")
        for p in self.prices:
            if not math.isfinite(p) or p <= 0:
                raise ValueError(f"Invalid price: {p}")
        if len(self.volumes) > len(self.prices):
            raise ValueError(
                f"More volumes ({len(self.volumes)}) than prices ({len(self.prices)})"
            )
        # Missing or non-positive volumes count as one share
        padded = [v if math.isfinite(v) and v > 0 else 1.0 for v in self.volumes]
        padded.extend([1.0] * (len(self.prices) - len(padded)))
        self.volumes = padded


def parse_sequence(text: str) -> list[float]:
    """Parse ``"100, 101.5,99"`` into floats. Blank entries are skipped."""
    values = []
    for part in text.split(","):
        part = part.strip()
        if not part:
            continue
        try:
            values.append(float(part))
        except ValueError:
            raise ValueError(f"Not a number: {part!r}")
    return values


def load_csv(path: str | Path) -> ReplayInput:
    """
    Load prices (and optional volumes) from a CSV file.

    A header row naming ``price`` and ``volume`` is used when present;
    otherwise the first column is price and the second, if any, is volume.
    """
    path = Path(path)
    prices: list[float] = []
    volumes: list[float] = []

    with path.open(newline="") as f:
        rows = [row for row in csv.reader(f) if row and any(c.strip() for c in row)]

    if not rows:
        raise ValueError(f"{path} has no rows")

    header = [c.strip().lower() for c in rows[0]]
    if "price" in header:
        price_col = header.index("price")
        volume_col = header.index("volume") if "volume" in header else None
        rows = rows[1:]
    else:
        price_col = 0
        volume_col = 1 if len(rows[0]) > 1 else None

    for line_no, row in enumerate(rows, start=1):
        try:
            prices.append(float(row[price_col]))
            if volume_col is not None and volume_col < len(row) and row[volume_col].strip():
                volumes.append(float(row[volume_col]))
            elif volume_col is not None:
                volumes.append(1.0)
        except (ValueError, IndexError):
            raise ValueError(f"{path}: bad row {line_no}: {row}")

    return ReplayInput(prices=prices, volumes=volumes, source=str(path))
