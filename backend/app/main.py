"""Main application entry point."""

import logging
from contextlib import asynccontextmanager

from app.config import get_settings

# Configure logging FIRST, before any other imports
logging.basicConfig(
    level=getattr(logging, get_settings().log_level.upper(), logging.INFO),
    format="%(asctime)s - %(levelname)s - %(message)s",
)

# Reduce noise from third-party libraries (must be set before importing them)
logging.getLogger("asyncio").setLevel(logging.WARNING)
logging.getLogger("picows").setLevel(logging.WARNING)
logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api import router, manager, websocket_endpoint
from app.services import DataCollector, SimulationRunner

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    settings = get_settings()
    logger.info(f"Starting trade simulator for {settings.symbol}...")

    collector = DataCollector(settings)
    runner = SimulationRunner(collector, interval=settings.simulation_interval)

    # Push live updates to dashboard clients
    collector.on_status(manager.send_status)
    collector.on_tick(manager.send_price)
    runner.on_result(manager.send_simulation)

    # Expose services to API routes via app.state
    app.state.collector = collector
    app.state.runner = runner

    if not collector.has_api_key:
        logger.warning("FINNHUB_API_KEY not set - trade stream stays idle until configured")

    try:
        await collector.start()
        await runner.start()
    except Exception as e:
        logger.error(f"Startup failed: {e}")
        await runner.stop()
        await collector.stop()
        raise

    yield

    # Shutdown
    logger.info("Shutting down...")
    await runner.stop()
    await collector.stop()
    logger.info("Shutdown complete")


# Create FastAPI app
app = FastAPI(
    title="Tick Trade Simulator",
    description="Live tick stream with periodic strategy replay",
    version="0.1.0",
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, restrict this
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include REST routes
app.include_router(router, prefix="/api")

# WebSocket endpoint
app.websocket("/ws")(websocket_endpoint)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "Tick Trade Simulator",
        "version": "0.1.0",
        "docs": "/docs",
    }


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}


def main():
    """Run the application."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    main()
