"""Business services."""

from app.services.data_collector import DataCollector
from app.services.simulation_runner import SimulationRunner

__all__ = [
    "DataCollector",
    "SimulationRunner",
]
