"""Connection state of the tick source."""

from enum import Enum

from pydantic import BaseModel

# Reconnect backoff: 1s, 2s, 4s, ... capped at 30s
RECONNECT_BASE_DELAY = 1.0
RECONNECT_MAX_DELAY = 30.0

# Exponent clamp so huge retry counts never overflow float conversion
_MAX_BACKOFF_EXPONENT = 30


class ConnectionStatus(str, Enum):
    """Lifecycle of the streaming connection."""

    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"
    CLOSED = "closed"


class ConnectionState(BaseModel):
    """Status label plus the number of consecutive failed sessions."""

    status: ConnectionStatus = ConnectionStatus.IDLE
    retry_count: int = 0


def backoff_delay(
    retry_count: int,
    base: float = RECONNECT_BASE_DELAY,
    cap: float = RECONNECT_MAX_DELAY,
) -> float:
    """Delay before the next reconnect: ``min(cap, base * 2**retry_count)``."""
    exponent = min(max(retry_count, 0), _MAX_BACKOFF_EXPONENT)
    return min(cap, base * (2 ** exponent))
