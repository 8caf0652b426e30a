"""Random variate generators.

All samplers take an explicit ``np.random.Generator`` so that every run
owns its random streams and results are reproducible for a fixed seed.
"""

import math
from dataclasses import dataclass
from typing import Hashable, Mapping, Optional, TypeVar

import numpy as np

from pacusim.core.entities import MINUTES_PER_DAY

K = TypeVar("K", bound=Hashable)

# Start hours (inclusive) of the faster morning and slower late-afternoon windows
MORNING_HOURS = (7, 10)
AFTERNOON_HOURS = (15, 19)


def normal_random(rng: np.random.Generator, mean: float, stddev: float) -> float:
    """Sample a normal variate with the Box-Muller transform.

    Negative draws are clamped to zero, not resampled, so high-variance
    inputs are slightly biased upwards.

    Args:
        rng: NumPy random generator.
        mean: Distribution mean.
        stddev: Distribution standard deviation.

    Returns:
        ``max(0, mean + stddev * z)``.
    """
    if stddev <= 0:
        return max(0.0, float(mean))
    u1 = 1.0 - rng.random()  # (0, 1], keeps log() finite
    u2 = rng.random()
    z = math.sqrt(-2.0 * math.log(u1)) * math.cos(2.0 * math.pi * u2)
    return max(0.0, mean + stddev * z)


def exponential_random(rng: np.random.Generator, rate: float) -> float:
    """Sample an exponential variate by inverse-CDF.

    Args:
        rng: NumPy random generator.
        rate: Events per unit time.

    Returns:
        Inter-event time, or ``inf`` when ``rate <= 0`` (no further events).
    """
    if rate <= 0:
        return math.inf
    return -math.log(1.0 - rng.random()) / rate


def weighted_random_selection(
    rng: np.random.Generator, distribution: Mapping[K, float]
) -> Optional[K]:
    """Draw a key with probability proportional to its weight.

    Args:
        rng: NumPy random generator.
        distribution: Mapping of category to non-negative weight.

    Returns:
        The selected category, or None if the mapping is empty or all
        weights are zero.
    """
    weights = [(key, max(0.0, float(w))) for key, w in distribution.items()]
    total = sum(w for _, w in weights)
    if total <= 0:
        return None

    threshold = rng.random() * total
    cumulative = 0.0
    last_positive = None
    for key, weight in weights:
        if weight <= 0:
            continue
        cumulative += weight
        last_positive = key
        if threshold < cumulative:
            return key
    # Float rounding can leave threshold a hair above the final sum
    return last_positive


def adjust_for_time_of_day(
    rng: np.random.Generator,
    duration: float,
    start_time: float,
    variability: float,
) -> float:
    """Scale a duration by the hour of day it starts in.

    Starts between 07:00 and 10:59 run up to ``variability / 2`` faster,
    starts between 15:00 and 19:59 up to ``variability`` slower. The result
    is never below half of ``duration``.

    Args:
        rng: NumPy random generator.
        duration: Base duration in minutes.
        start_time: Simulation time (minutes) at which the activity starts.
        variability: Patient class time-of-day variability factor.

    Returns:
        Adjusted duration in minutes.
    """
    if variability <= 0 or duration <= 0:
        return duration

    hour = int((start_time % MINUTES_PER_DAY) // 60)
    if MORNING_HOURS[0] <= hour <= MORNING_HOURS[1]:
        factor = 1.0 - (variability / 2.0) * rng.random()
    elif AFTERNOON_HOURS[0] <= hour <= AFTERNOON_HOURS[1]:
        factor = 1.0 + variability * rng.random()
    else:
        return duration

    return max(duration * 0.5, duration * factor)


@dataclass
class RandomStreams:
    """Independent RNG streams, one per stochastic concern.

    Created fresh for every run from the scenario seed so that repeated
    calls with the same parameters give identical results.
    """

    schedule: np.random.Generator
    durations: np.random.Generator
    cancellation: np.random.Generator
    emergencies: np.random.Generator
    time_of_day: np.random.Generator
    transfers: np.random.Generator

    @classmethod
    def from_seed(cls, seed: int) -> "RandomStreams":
        """Build the stream set for a master seed."""
        return cls(
            schedule=np.random.default_rng(seed),
            durations=np.random.default_rng(seed + 1),
            cancellation=np.random.default_rng(seed + 2),
            emergencies=np.random.default_rng(seed + 3),
            time_of_day=np.random.default_rng(seed + 4),
            transfers=np.random.default_rng(seed + 5),
        )
