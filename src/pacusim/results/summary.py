"""Simulation results bundle returned by ``run_simulation``."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from pacusim.core.entities import MINUTES_PER_DAY, PatientState, RecoveryPhase, ResourceKind
from pacusim.model.case import SurgeryCase
from pacusim.results.collector import ResultsCollector, mean_or_zero, percentile_95
from pacusim.results.costs import CostBreakdown


@dataclass
class WaitSummary:
    """Distribution of one wait or delay metric (minutes)."""

    samples: List[float] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.samples)

    @property
    def mean(self) -> float:
        return mean_or_zero(self.samples)

    @property
    def p95(self) -> float:
        return percentile_95(self.samples)

    @property
    def max(self) -> float:
        return float(np.max(self.samples)) if self.samples else 0.0

    @property
    def p_delay(self) -> float:
        """Share of patients who waited at all."""
        if not self.samples:
            return 0.0
        return float(np.mean(np.asarray(self.samples) > 0))


@dataclass
class UtilisationSummary:
    """Occupancy of one resource category.

    Attributes:
        capacity: Number of slots (nurse headcount for nurses).
        mean_occupancy: Time-weighted mean busy count.
        peak_occupancy: Highest busy count observed.
        mean_utilisation: Time-weighted mean busy fraction.
        peak_utilisation: Highest busy fraction observed.
    """

    capacity: float
    mean_occupancy: float
    peak_occupancy: float
    mean_utilisation: float
    peak_utilisation: float


@dataclass
class NurseSummary:
    """Nurse workload, overtime and shift coverage."""

    model: str
    mean_utilisation: float
    peak_utilisation: float
    overtime_minutes: float
    shift_coverage: Dict[str, Dict[str, float]] = field(default_factory=dict)


@dataclass
class SimulationResults:
    """Outcome of one simulation run.

    Attributes:
        horizon: Simulated minutes.
        completed_surgeries: Non-cancelled cases that arrived, in arrival
            order. Cases still on the pathway at the horizon are included
            with their last state.
        cancelled_surgeries: Cases cancelled on arrival.
        arrivals: Arrival events processed (scheduled + emergency).
        emergency_arrivals: Emergency arrivals among them.
        waits: Wait/delay distributions keyed by metric name. Patients
            still waiting at the horizon contribute their wait so far and
            are counted in ``censored_waits``.
        utilisation: Occupancy summary per resource kind.
        nurses: Nurse workload summary.
        occupancy: Compacted (time, value) series per resource kind plus
            "nurses_on_shift", "pacu_blocked", "or_queue_length" and one
            "equipment:<id>" series per special equipment type.
        costs: Cost breakdown by category.
        pacu_blocked_time_ratio: Time-integrated share of PACU beds held by
            patients waiting for a ward bed.
        equipment_utilisation: Occupancy summary per special equipment type.
    """

    horizon: float
    completed_surgeries: List[SurgeryCase]
    cancelled_surgeries: List[SurgeryCase]
    arrivals: int
    emergency_arrivals: int
    waits: Dict[str, WaitSummary]
    utilisation: Dict[ResourceKind, UtilisationSummary]
    nurses: NurseSummary
    occupancy: Dict[str, List[Tuple[float, float]]]
    costs: CostBreakdown
    pacu_blocked_time_ratio: float
    arrivals_by_class: Dict[str, int] = field(default_factory=dict)
    or_busy_by_room: Dict[str, float] = field(default_factory=dict)
    or_overtime_minutes: float = 0.0
    pacu_waits_for_bed: Dict[RecoveryPhase, int] = field(default_factory=dict)
    pacu_waits_for_nurse: Dict[RecoveryPhase, int] = field(default_factory=dict)
    pacu_waits_for_equipment: int = 0
    equipment_utilisation: Dict[str, UtilisationSummary] = field(default_factory=dict)
    censored_waits: Dict[str, int] = field(default_factory=dict)
    consistency_warnings: int = 0

    @classmethod
    def from_run(
        cls,
        horizon: float,
        cases: Sequence[SurgeryCase],
        collector: ResultsCollector,
        costs: CostBreakdown,
        nurse_model: str,
        nurse_overtime_minutes: float,
        shift_coverage: Dict[str, Dict[str, float]],
        or_close_time: int,
        or_open_time: int = 0,
    ) -> "SimulationResults":
        """Summarise the collector and case list at the end of a run.

        Args:
            horizon: Simulated minutes.
            cases: Every case that arrived, in arrival order.
            collector: Run-time statistics.
            costs: Final cost breakdown.
            nurse_model: "legacy" or "skill_shift".
            nurse_overtime_minutes: Total overtime across nurses.
            shift_coverage: Per-shift coverage from the nurse pool.
            or_close_time: Minutes after midnight the ORs close, for overtime.
            or_open_time: Minutes after midnight the ORs open, for overtime.
        """
        completed = [c for c in cases if c.state != PatientState.CANCELLED]
        cancelled = [c for c in cases if c.state == PatientState.CANCELLED]

        utilisation = {}
        for kind, tracker in collector.occupancy.items():
            if kind == ResourceKind.NURSE:
                continue
            utilisation[kind] = UtilisationSummary(
                capacity=tracker.capacity,
                mean_occupancy=tracker.time_weighted_mean(horizon),
                peak_occupancy=tracker.peak,
                mean_utilisation=tracker.utilisation(horizon),
                peak_utilisation=tracker.peak_utilisation(),
            )

        nurse_tracker = collector.occupancy[ResourceKind.NURSE]
        nurse_mean, nurse_peak = collector.nurse_utilisation(horizon)
        utilisation[ResourceKind.NURSE] = UtilisationSummary(
            capacity=nurse_tracker.capacity,
            mean_occupancy=nurse_tracker.time_weighted_mean(horizon),
            peak_occupancy=nurse_tracker.peak,
            mean_utilisation=nurse_mean,
            peak_utilisation=nurse_peak,
        )

        occupancy = {kind.value: list(t.samples) for kind, t in collector.occupancy.items()}
        occupancy["nurses_on_shift"] = list(collector.nurses_on_shift.samples)
        occupancy["pacu_blocked"] = list(collector.pacu_blocked.samples)
        occupancy["or_queue_length"] = list(collector.or_queue_length.samples)
        equipment_utilisation = {}
        for equipment_id, tracker in collector.equipment_by_type.items():
            occupancy[tracker.name] = list(tracker.samples)
            equipment_utilisation[equipment_id] = UtilisationSummary(
                capacity=tracker.capacity,
                mean_occupancy=tracker.time_weighted_mean(horizon),
                peak_occupancy=tracker.peak,
                mean_utilisation=tracker.utilisation(horizon),
                peak_utilisation=tracker.peak_utilisation(),
            )

        total_pacu_beds = int(
            utilisation[ResourceKind.PACU_PHASE1_BED].capacity
            + utilisation[ResourceKind.PACU_PHASE2_BED].capacity
        )

        return cls(
            horizon=horizon,
            completed_surgeries=completed,
            cancelled_surgeries=cancelled,
            arrivals=collector.arrivals,
            emergency_arrivals=collector.emergency_arrivals,
            waits={
                "or_waiting_time": WaitSummary(list(collector.or_waits)),
                "pacu_phase1_waiting_time": WaitSummary(list(collector.pacu1_waits)),
                "pacu_phase2_waiting_time": WaitSummary(list(collector.pacu2_waits)),
                "ward_transfer_delay": WaitSummary(list(collector.ward_transfer_delays)),
                "ward_handover_delay": WaitSummary(list(collector.ward_handover_delays)),
            },
            utilisation=utilisation,
            nurses=NurseSummary(
                model=nurse_model,
                mean_utilisation=nurse_mean,
                peak_utilisation=nurse_peak,
                overtime_minutes=nurse_overtime_minutes,
                shift_coverage=shift_coverage,
            ),
            occupancy=occupancy,
            costs=costs,
            pacu_blocked_time_ratio=collector.pacu_blocked_time_ratio(horizon, total_pacu_beds),
            arrivals_by_class=dict(collector.arrivals_by_class),
            or_busy_by_room=dict(collector.or_busy_by_room),
            or_overtime_minutes=_or_overtime(completed, or_open_time, or_close_time),
            pacu_waits_for_bed=dict(collector.pacu_waits_for_bed),
            pacu_waits_for_nurse=dict(collector.pacu_waits_for_nurse),
            pacu_waits_for_equipment=collector.pacu_waits_for_equipment,
            equipment_utilisation=equipment_utilisation,
            censored_waits=dict(collector.censored_waits),
            consistency_warnings=collector.consistency_warnings,
        )

    # ---- derived metrics ----

    @property
    def total_cost(self) -> float:
        return self.costs.total_cost

    @property
    def discharged_count(self) -> int:
        return sum(1 for c in self.completed_surgeries if c.is_discharged)

    @property
    def in_progress_count(self) -> int:
        """Cases still on the pathway at the horizon."""
        return len(self.completed_surgeries) - self.discharged_count

    @property
    def mean_pacu_time(self) -> float:
        return mean_or_zero([c.pacu_time for c in self.completed_surgeries if c.pacu_time > 0])

    @property
    def mean_phase1_duration(self) -> float:
        return mean_or_zero([
            c.pacu_phase1.duration for c in self.completed_surgeries
            if c.pacu_phase1 is not None and c.pacu_phase1.end is not None
        ])

    @property
    def mean_phase2_duration(self) -> float:
        return mean_or_zero([
            c.pacu_phase2.duration for c in self.completed_surgeries
            if c.pacu_phase2 is not None and c.pacu_phase2.end is not None
        ])

    @property
    def mean_wait_for_phase2(self) -> float:
        return self.waits["pacu_phase2_waiting_time"].mean

    def to_dict(self) -> Dict[str, Any]:
        """Flat scalar metrics, e.g. for scoring or comparison tables."""
        metrics: Dict[str, Any] = {
            "horizon": self.horizon,
            "arrivals": self.arrivals,
            "emergency_arrivals": self.emergency_arrivals,
            "completed": len(self.completed_surgeries),
            "discharged": self.discharged_count,
            "in_progress": self.in_progress_count,
            "cancelled": len(self.cancelled_surgeries),
        }
        for name, summary in self.waits.items():
            metrics[f"mean_{name}"] = summary.mean
            metrics[f"p95_{name}"] = summary.p95
            metrics[f"max_{name}"] = summary.max
        for kind, util in self.utilisation.items():
            metrics[f"mean_{kind.value}_occupancy"] = util.mean_occupancy
            metrics[f"peak_{kind.value}_occupancy"] = util.peak_occupancy
            metrics[f"util_{kind.value}"] = util.mean_utilisation
            metrics[f"peak_util_{kind.value}"] = util.peak_utilisation
        metrics["nurse_overtime_minutes"] = self.nurses.overtime_minutes
        metrics["pacu_blocked_time_ratio"] = self.pacu_blocked_time_ratio
        metrics["mean_pacu_time"] = self.mean_pacu_time
        metrics["mean_phase1_duration"] = self.mean_phase1_duration
        metrics["mean_phase2_duration"] = self.mean_phase2_duration
        metrics["or_overtime_minutes"] = self.or_overtime_minutes
        metrics["pacu_waits_for_equipment"] = self.pacu_waits_for_equipment
        for equipment_id, util in self.equipment_utilisation.items():
            metrics[f"util_equipment_{equipment_id}"] = util.mean_utilisation
        for name, count in self.censored_waits.items():
            metrics[f"censored_{name}"] = count
        for key, value in self.costs.to_dict().items():
            if key != "currency":
                metrics[key] = value
        return metrics

    def cases_dataframe(self) -> pd.DataFrame:
        """One row per arrived case with its timeline."""
        rows = []
        for case in self.completed_surgeries + self.cancelled_surgeries:
            row = {
                "case_id": case.id,
                "class_id": case.class_id,
                "process_type": case.process_type.value,
                "priority": case.priority,
                "is_emergency": case.is_emergency,
                "state": case.state.value,
                "scheduled_or": case.scheduled_or,
                "or_id": case.surgery.or_id if case.surgery else None,
                "scheduled_arrival": case.scheduled_arrival,
                "or_waiting_time": case.or_waiting_time,
                "ward_transfer_delay": case.ward_transfer_delay,
                "cancelled_time": case.cancelled_time,
            }
            row.update(case.timeline())
            rows.append(row)
        return pd.DataFrame(rows)

    def occupancy_dataframe(self, series: str) -> pd.DataFrame:
        """Step-function samples for one occupancy series.

        Args:
            series: A ``ResourceKind`` value or one of "nurses_on_shift",
                "pacu_blocked", "or_queue_length", or "equipment:<id>".
        """
        return pd.DataFrame(self.occupancy[series], columns=["time", "value"])


def _or_overtime(
    cases: Sequence[SurgeryCase], or_open_time: int, or_close_time: int
) -> float:
    """Surgery minutes outside OR opening hours.

    Opening hours are ``[or_open_time, or_close_time]`` on the day each
    surgery started, so a surgery starting at 23:00 and one starting at
    01:00 both count in full.
    """
    total = 0.0
    for case in cases:
        if case.surgery is None or case.surgery.end is None:
            continue
        start, end = case.surgery.start, case.surgery.end
        midnight = int(start // MINUTES_PER_DAY) * MINUTES_PER_DAY
        opens = midnight + or_open_time
        closes = midnight + or_close_time
        inside = max(0.0, min(end, closes) - max(start, opens))
        total += (end - start) - inside
    return total
