"""Results and metrics layer: occupancy tracking, cost modelling, summaries.

``SimulationResults`` lives in ``pacusim.results.summary``; it is not
re-exported here because the scenario layer imports the cost table from
this package.
"""

from pacusim.results.collector import OccupancyTracker, ResultsCollector, percentile_95
from pacusim.results.costs import (
    CostAccumulator,
    CostBreakdown,
    CostConfig,
    format_currency,
)

__all__ = [
    "OccupancyTracker",
    "ResultsCollector",
    "percentile_95",
    "CostAccumulator",
    "CostBreakdown",
    "CostConfig",
    "format_currency",
]
