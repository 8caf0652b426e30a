"""Model layer: surgery cases, resource pools, event queue and engine."""

from pacusim.model.case import SurgeryCase
from pacusim.model.engine import SimulationEngine, run_simulation
from pacusim.model.event_queue import Event, EventOrderError, PriorityEventQueue

__all__ = [
    "SurgeryCase",
    "SimulationEngine",
    "run_simulation",
    "Event",
    "EventOrderError",
    "PriorityEventQueue",
]
