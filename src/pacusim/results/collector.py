"""Run-time statistics: occupancy step functions and wait samples."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from pacusim.core.entities import RecoveryPhase, ResourceKind


def percentile_95(values: Sequence[float]) -> float:
    """95th percentile by full sort then index.

    Uses ``sorted[min(int(0.95 * n), n - 1)]`` with no interpolation.
    Returns 0.0 for an empty sequence.
    """
    if len(values) == 0:
        return 0.0
    ordered = np.sort(np.asarray(values, dtype=float))
    idx = min(int(0.95 * len(ordered)), len(ordered) - 1)
    return float(ordered[idx])


def mean_or_zero(values: Sequence[float]) -> float:
    if len(values) == 0:
        return 0.0
    return float(np.mean(values))


@dataclass
class OccupancyTracker:
    """Compacted step function of a busy count over time.

    A sample is appended only when the value changes. Several changes at
    the same instant collapse into the last one; ``peak`` still sees
    every value recorded.

    Attributes:
        name: Series name (resource kind value or derived metric).
        capacity: Nominal capacity used for utilisation.
        samples: List of (time, value) tuples, starting at (0.0, 0).
        peak: Largest value ever recorded.
    """

    name: str
    capacity: float = 0.0
    samples: List[Tuple[float, float]] = field(default_factory=list)
    peak: float = 0.0

    def __post_init__(self) -> None:
        if not self.samples:
            self.samples = [(0.0, 0)]

    @property
    def current(self) -> float:
        return self.samples[-1][1]

    def record(self, time: float, value: float) -> None:
        """Record the value observed at ``time``."""
        if value > self.peak:
            self.peak = value
        last_time, last_value = self.samples[-1]
        if value == last_value:
            return
        if time == last_time:
            self.samples[-1] = (time, value)
            if len(self.samples) > 1 and self.samples[-2][1] == value:
                self.samples.pop()
            return
        self.samples.append((time, value))

    def integral(self, until: float) -> float:
        """Area under the step function on [0, until]."""
        if until <= 0:
            return 0.0
        log = self.samples
        total = 0.0
        for i, (t_start, value) in enumerate(log):
            if t_start >= until:
                break
            t_end = log[i + 1][0] if i + 1 < len(log) else until
            total += value * (min(t_end, until) - t_start)
        return total

    def time_weighted_mean(self, until: float) -> float:
        """Mean value over [0, until]."""
        if until <= 0:
            return 0.0
        return self.integral(until) / until

    def utilisation(self, until: float) -> float:
        """Time-weighted mean as a fraction of capacity."""
        if self.capacity <= 0:
            return 0.0
        return self.time_weighted_mean(until) / self.capacity

    def peak_utilisation(self) -> float:
        if self.capacity <= 0:
            return 0.0
        return self.peak / self.capacity


@dataclass
class ResultsCollector:
    """Collect statistics while the engine runs.

    Resource pools feed the occupancy trackers directly; the engine
    records waits, delays and PACU blocking.

    Attributes:
        occupancy: Busy-count tracker per resource kind.
        nurses_on_shift: On-shift headcount tracker (nurse capacity).
        pacu_blocked: PACU beds held by patients waiting for a ward bed.
        or_queue_length: Length of the OR waiting queue.
        or_waits, pacu1_waits, pacu2_waits, ward_transfer_delays: Samples
            in minutes, one per patient that reached the stage.
        arrivals, emergency_arrivals: Arrival event counts.
        arrivals_by_class: Arrival count per patient class id.
        pacu_waits_for_bed, pacu_waits_for_nurse: PACU admissions delayed
            by a missing bed / a missing nurse, per phase.
        pacu_waits_for_equipment: Phase I admissions delayed by missing
            special equipment.
        equipment_by_type: Busy-unit tracker per special equipment type.
        ward_handover_delays: Drawn handover delays, one per delayed transfer.
        censored_waits: Patients still waiting at the horizon, per metric;
            their wait so far is included in the samples.
        or_busy_by_room: OR minutes per OR slot id.
        consistency_warnings: Count of stale queue entries detected.
    """

    occupancy: Dict[ResourceKind, OccupancyTracker] = field(default_factory=dict)
    nurses_on_shift: Optional[OccupancyTracker] = None
    pacu_blocked: Optional[OccupancyTracker] = None
    or_queue_length: Optional[OccupancyTracker] = None

    or_waits: List[float] = field(default_factory=list)
    pacu1_waits: List[float] = field(default_factory=list)
    pacu2_waits: List[float] = field(default_factory=list)
    ward_transfer_delays: List[float] = field(default_factory=list)
    ward_handover_delays: List[float] = field(default_factory=list)

    arrivals: int = 0
    emergency_arrivals: int = 0
    arrivals_by_class: Dict[str, int] = field(default_factory=dict)
    pacu_waits_for_bed: Dict[RecoveryPhase, int] = field(default_factory=dict)
    pacu_waits_for_nurse: Dict[RecoveryPhase, int] = field(default_factory=dict)
    pacu_waits_for_equipment: int = 0
    equipment_by_type: Dict[str, OccupancyTracker] = field(default_factory=dict)
    censored_waits: Dict[str, int] = field(default_factory=dict)
    or_busy_by_room: Dict[str, float] = field(default_factory=dict)
    consistency_warnings: int = 0

    def __post_init__(self) -> None:
        for kind in ResourceKind:
            self.occupancy.setdefault(kind, OccupancyTracker(kind.value))
        if self.nurses_on_shift is None:
            self.nurses_on_shift = OccupancyTracker("nurses_on_shift")
        if self.pacu_blocked is None:
            self.pacu_blocked = OccupancyTracker("pacu_blocked")
        if self.or_queue_length is None:
            self.or_queue_length = OccupancyTracker("or_queue_length")
        for phase in RecoveryPhase:
            self.pacu_waits_for_bed.setdefault(phase, 0)
            self.pacu_waits_for_nurse.setdefault(phase, 0)

    def set_capacity(self, kind: ResourceKind, capacity: float) -> None:
        self.occupancy[kind].capacity = capacity

    def record_arrival(self, class_id: str, is_emergency: bool = False) -> None:
        """Record a processed arrival event."""
        self.arrivals += 1
        if is_emergency:
            self.emergency_arrivals += 1
        self.arrivals_by_class[class_id] = self.arrivals_by_class.get(class_id, 0) + 1

    def record_or_wait(self, wait: float) -> None:
        self.or_waits.append(wait)

    def record_pacu_wait(self, phase: RecoveryPhase, wait: float) -> None:
        if phase == RecoveryPhase.PHASE_1:
            self.pacu1_waits.append(wait)
        else:
            self.pacu2_waits.append(wait)

    def record_pacu_blocked_reason(
        self,
        phase: RecoveryPhase,
        missing_bed: bool,
        missing_nurse: bool,
        missing_equipment: bool = False,
    ) -> None:
        """Count why a PACU admission had to wait."""
        if missing_bed:
            self.pacu_waits_for_bed[phase] += 1
        if missing_nurse:
            self.pacu_waits_for_nurse[phase] += 1
        if missing_equipment:
            self.pacu_waits_for_equipment += 1

    def record_ward_transfer_delay(self, delay: float) -> None:
        self.ward_transfer_delays.append(delay)

    def record_ward_handover_delay(self, delay: float) -> None:
        self.ward_handover_delays.append(delay)

    def record_censored_wait(self, metric: str) -> None:
        """Count a wait cut short by the end of the run."""
        self.censored_waits[metric] = self.censored_waits.get(metric, 0) + 1

    def equipment_tracker(self, equipment_id: str) -> OccupancyTracker:
        return self.equipment_by_type.setdefault(
            equipment_id, OccupancyTracker(f"equipment:{equipment_id}")
        )

    def record_or_minutes(self, or_id: str, minutes: float) -> None:
        self.or_busy_by_room[or_id] = self.or_busy_by_room.get(or_id, 0.0) + minutes

    def record_consistency_warning(self) -> None:
        self.consistency_warnings += 1

    def pacu_blocked_time_ratio(self, horizon: float, total_pacu_beds: int) -> float:
        """Time-integrated share of PACU beds held by ward-blocked patients."""
        if total_pacu_beds <= 0 or horizon <= 0:
            return 0.0
        return self.pacu_blocked.integral(horizon) / (total_pacu_beds * horizon)

    def nurse_utilisation(self, horizon: float) -> Tuple[float, float]:
        """Mean and peak nurse utilisation against on-shift headcount.

        Returns:
            Tuple of (time-weighted mean, peak sampled ratio).
        """
        busy = self.occupancy[ResourceKind.NURSE]
        on_shift_area = self.nurses_on_shift.integral(horizon)
        mean = busy.integral(horizon) / on_shift_area if on_shift_area > 0 else 0.0

        peak = 0.0
        for time, value in busy.samples:
            capacity = self._value_at(self.nurses_on_shift.samples, time)
            if capacity > 0:
                peak = max(peak, value / capacity)
        return mean, peak

    @staticmethod
    def _value_at(samples: List[Tuple[float, float]], time: float) -> float:
        value = 0.0
        for t, v in samples:
            if t > time:
                break
            value = v
        return value
