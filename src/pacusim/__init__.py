"""
pacusim - Post-anaesthesia care unit flow simulation.

A discrete-event simulation of surgical patients moving through the
operating rooms, two PACU recovery phases and the ward, used for
capacity planning.
"""

__version__ = "0.1.0"

from pacusim.core.scenario import SimulationParams
from pacusim.model.engine import run_simulation
from pacusim.results.summary import SimulationResults

__all__ = ["SimulationParams", "SimulationResults", "run_simulation", "__version__"]
