"""REST API routes."""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, field_validator

from app.config import coerce_interval, normalize_symbol
from app.services import DataCollector, SimulationRunner
from core.models.trade import TradeEvent

logger = logging.getLogger(__name__)

router = APIRouter()


# Response models
class SystemStatus(BaseModel):
    """System status response."""

    connection: str
    retry_count: int
    symbol: str
    api_key_configured: bool
    last_price: Optional[float] = None
    samples: int
    simulation_interval: int
    simulation_passes: int


class ProfitResponse(BaseModel):
    """Cumulative profit series over SELL events."""

    cumulative_profit: list[float]
    total_profit: float


class SimulationResponse(BaseModel):
    """Summary of one simulation pass."""

    sample_count: int
    events: list[TradeEvent]
    cumulative_profit: list[float]
    total_profit: float
    holding: bool


class ConfigRequest(BaseModel):
    """Runtime configuration update. Omitted fields stay unchanged."""

    symbol: Optional[str] = None
    api_key: Optional[str] = None
    simulation_interval: Optional[int] = None

    @field_validator("symbol")
    @classmethod
    def _normalize_symbol(cls, value: Optional[str]) -> Optional[str]:
        return normalize_symbol(value) if value is not None else None


# Dependencies via app.state (set in lifespan)
def get_collector(request: Request) -> DataCollector:
    return request.app.state.collector


def get_runner(request: Request) -> SimulationRunner:
    return request.app.state.runner


def _status(collector: DataCollector, runner: SimulationRunner) -> SystemStatus:
    state = collector.state
    return SystemStatus(
        connection=state.status.value,
        retry_count=state.retry_count,
        symbol=collector.symbol,
        api_key_configured=collector.has_api_key,
        last_price=collector.last_price,
        samples=collector.sample_count,
        simulation_interval=runner.interval,
        simulation_passes=runner.pass_count,
    )


@router.get("/status", response_model=SystemStatus)
async def get_status(request: Request):
    """Get connection and buffer status."""
    return _status(get_collector(request), get_runner(request))


@router.get("/trades", response_model=list[TradeEvent])
async def get_trades(request: Request):
    """Get the event log of the latest simulation pass."""
    result = get_runner(request).latest_result
    return list(result.events) if result else []


@router.get("/profit", response_model=ProfitResponse)
async def get_profit(request: Request):
    """Get the cumulative profit series of the latest simulation pass."""
    result = get_runner(request).latest_result
    if result is None:
        return ProfitResponse(cumulative_profit=[], total_profit=0.0)
    return ProfitResponse(
        cumulative_profit=result.cumulative_profit,
        total_profit=result.total_profit,
    )


@router.post("/simulate", response_model=SimulationResponse)
async def simulate(request: Request):
    """Run a simulation pass now over the current buffer."""
    runner = get_runner(request)
    collector = get_collector(request)

    if collector.sample_count == 0:
        raise HTTPException(status_code=409, detail="No samples received yet")

    result = await runner.run_once(force=True)
    if result is None:
        raise HTTPException(status_code=409, detail="Simulation pass already running")

    return SimulationResponse(
        sample_count=result.sample_count,
        events=result.events,
        cumulative_profit=result.cumulative_profit,
        total_profit=result.total_profit,
        holding=result.position.is_holding,
    )


@router.put("/config", response_model=SystemStatus)
async def update_config(body: ConfigRequest, request: Request):
    """Change instrument, API key, or simulation interval."""
    collector = get_collector(request)
    runner = get_runner(request)

    if body.simulation_interval is not None:
        runner.set_interval(coerce_interval(body.simulation_interval))

    if body.symbol is not None or body.api_key is not None:
        changed = await collector.configure(symbol=body.symbol, api_key=body.api_key)
        if changed:
            logger.info(f"Configuration updated: symbol={collector.symbol}")

    return _status(collector, runner)
