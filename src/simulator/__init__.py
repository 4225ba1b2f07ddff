"""
Simulation driver: tick clock, speed throttle, agent-facing order API,
terminal conditions and metrics.
"""

from simulator.agents import ScheduledOrderAgent, load_order_schedule
from simulator.clock import SpeedController
from simulator.driver import SimulationDriver
from simulator.metrics import Metrics
from simulator.runner import SimulationResult, run_simulation

__all__ = [
    "load_order_schedule",
    "Metrics",
    "run_simulation",
    "ScheduledOrderAgent",
    "SimulationDriver",
    "SimulationResult",
    "SpeedController",
]
