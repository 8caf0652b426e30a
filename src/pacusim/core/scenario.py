"""Scenario configuration dataclasses."""

import dataclasses
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from pacusim.core.entities import (
    MINUTES_PER_DAY, ProcessType, RecoveryPhase, ScheduleMode,
)
from pacusim.results.costs import CostConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PatientClass:
    """Category of surgical case (immutable reference data).

    Attributes:
        id: Class identifier used by distributions, blocks and case lists.
        name: Display name.
        priority: Scheduling priority, lower = more urgent (1 and above).
        surgery_duration_mean, surgery_duration_stddev: Minutes in the OR.
        pacu_phase1_mean, pacu_phase1_stddev: Minutes in PACU Phase I.
        pacu_phase2_mean, pacu_phase2_stddev: Minutes in PACU Phase II.
            A mean of 0 skips Phase II.
        ward_stay_mean, ward_stay_stddev: Minutes on the ward.
        process_type: Pathway shortcut (standard/outpatient/directTransfer).
        cancellation_risk: Probability the case is cancelled on arrival.
        time_of_day_variability: Strength of the time-of-day duration effect.
        transfer_delay_probability: Chance the ward handover is delayed once
            a ward bed is needed.
        transfer_delay_minutes: Mean length of a delayed handover
            (exponentially distributed).
    """

    id: str
    name: str = ""
    priority: int = 3
    surgery_duration_mean: float = 90.0
    surgery_duration_stddev: float = 20.0
    pacu_phase1_mean: float = 60.0
    pacu_phase1_stddev: float = 15.0
    pacu_phase2_mean: float = 60.0
    pacu_phase2_stddev: float = 15.0
    ward_stay_mean: float = 1440.0
    ward_stay_stddev: float = 360.0
    process_type: ProcessType = ProcessType.STANDARD
    cancellation_risk: float = 0.0
    time_of_day_variability: float = 0.0
    transfer_delay_probability: float = 0.0
    transfer_delay_minutes: float = 0.0

    def __post_init__(self) -> None:
        if not isinstance(self.process_type, ProcessType):
            object.__setattr__(self, "process_type", ProcessType(self.process_type))
        if self.priority < 1:
            raise ValueError(f"Patient class {self.id}: priority must be >= 1")
        if not 0.0 <= self.cancellation_risk <= 1.0:
            raise ValueError(
                f"Patient class {self.id}: cancellation_risk must be in [0, 1]"
            )
        if not 0.0 <= self.transfer_delay_probability <= 1.0:
            raise ValueError(
                f"Patient class {self.id}: transfer_delay_probability must be in [0, 1]"
            )
        for name in (
            "surgery_duration_mean", "surgery_duration_stddev",
            "pacu_phase1_mean", "pacu_phase1_stddev",
            "pacu_phase2_mean", "pacu_phase2_stddev",
            "ward_stay_mean", "ward_stay_stddev",
            "time_of_day_variability",
            "transfer_delay_minutes",
        ):
            if getattr(self, name) < 0:
                raise ValueError(f"Patient class {self.id}: {name} must be >= 0")

    @property
    def skips_pacu(self) -> bool:
        return self.process_type == ProcessType.DIRECT_TRANSFER

    @property
    def skips_phase2(self) -> bool:
        return self.pacu_phase2_mean <= 0

    @property
    def skips_ward(self) -> bool:
        return self.process_type == ProcessType.OUTPATIENT


@dataclass(frozen=True)
class NurseSkill:
    """Nurse skill level.

    The efficiency multiplier only orders nurse selection; it does not
    change care durations.
    """

    id: str
    name: str = ""
    can_handle_phase1: bool = True
    can_handle_phase2: bool = True
    efficiency_multiplier: float = 1.0

    def can_handle(self, phase: RecoveryPhase) -> bool:
        if phase == RecoveryPhase.PHASE_1:
            return self.can_handle_phase1
        return self.can_handle_phase2


@dataclass
class NurseShift:
    """Recurring daily nurse shift.

    Attributes:
        id: Shift identifier.
        name: Display name.
        start_minute: Minutes after midnight the shift begins.
        duration_minutes: Shift length; may run past midnight.
        nurses_per_day: Headcount for each day of week (Monday first).
        skill_distribution: Skill id -> share of the headcount.
    """

    id: str
    name: str = ""
    start_minute: int = 420
    duration_minutes: int = 720
    nurses_per_day: List[int] = field(default_factory=lambda: [4] * 7)
    skill_distribution: Dict[str, float] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not 0 <= self.start_minute < MINUTES_PER_DAY:
            raise ValueError(f"Shift {self.id}: start_minute must be in [0, 1440)")
        if not 0 < self.duration_minutes <= MINUTES_PER_DAY:
            raise ValueError(f"Shift {self.id}: duration_minutes must be in (0, 1440]")
        if len(self.nurses_per_day) != 7:
            raise ValueError(f"Shift {self.id}: nurses_per_day must have 7 values")
        if any(n < 0 for n in self.nurses_per_day):
            raise ValueError(f"Shift {self.id}: headcounts must be non-negative")

    def headcount(self, day: int) -> int:
        """Nurses rostered on simulation day ``day``."""
        return self.nurses_per_day[day % 7]

    @property
    def max_headcount(self) -> int:
        return max(self.nurses_per_day)


@dataclass
class ORBlock:
    """Time window on one OR and day of week reserved for some classes.

    Attributes:
        id: Block identifier.
        or_id: Operating room the block belongs to.
        day: Day of week (0 = Monday); applies to every matching sim day.
        start, end: Minutes after midnight.
        allowed_classes: Patient class ids that may be booked in the block.
        label: Display label.
    """

    id: str
    or_id: str
    day: int
    start: int
    end: int
    allowed_classes: List[str] = field(default_factory=list)
    label: str = ""

    def __post_init__(self) -> None:
        if not 0 <= self.day <= 6:
            raise ValueError(f"Block {self.id}: day must be a day of week 0-6")
        if not 0 <= self.start < self.end <= MINUTES_PER_DAY:
            raise ValueError(
                f"Block {self.id}: need 0 <= start < end <= 1440, "
                f"got {self.start}-{self.end}"
            )

    def applies_to(self, sim_day: int) -> bool:
        return sim_day % 7 == self.day

    @property
    def duration(self) -> int:
        return self.end - self.start


@dataclass
class SurgeryCaseInput:
    """One booked surgery, as produced by the schedule generator or
    supplied verbatim as a custom list.

    Times are simulation minutes from the start of day 0.
    """

    id: str
    class_id: str
    or_room: str
    scheduled_start: float
    duration: float

    @property
    def scheduled_end(self) -> float:
        return self.scheduled_start + self.duration

    @property
    def day(self) -> int:
        return int(self.scheduled_start // MINUTES_PER_DAY)


@dataclass
class ScheduleTemplate:
    """Template schedule generation settings.

    Attributes:
        average_daily_surgeries: Mean daily volume, randomised +/-15%.
        or_start_time: Minutes after midnight the first case starts.
        or_end_time: Minutes after midnight the ORs close.
        turnover_minutes: Gap between consecutive cases in one OR.
        overrun_probability: Chance a case's duration is inflated 10-50%.
        min_daily_cases: Below this many cases per simulated day the
            schedule is regenerated from the template at this volume.
    """

    average_daily_surgeries: float = 8.0
    or_start_time: int = 480
    or_end_time: int = 960
    turnover_minutes: float = 15.0
    overrun_probability: float = 0.0
    min_daily_cases: int = 1

    def __post_init__(self) -> None:
        if not 0 <= self.or_start_time < self.or_end_time <= MINUTES_PER_DAY:
            raise ValueError("Template OR hours must satisfy 0 <= start < end <= 1440")
        if self.turnover_minutes < 0:
            raise ValueError("turnover_minutes must be non-negative")
        if not 0.0 <= self.overrun_probability <= 1.0:
            raise ValueError("overrun_probability must be in [0, 1]")
        if self.average_daily_surgeries < 0 or self.min_daily_cases < 0:
            raise ValueError("Daily surgery volumes must be non-negative")


@dataclass
class StaffConfig:
    """Nurse staffing.

    Two capacity models, selected by ``use_enhanced_nurse_model``:

    - Legacy: ``total_nurses`` interchangeable nurses; a Phase I patient
      takes ``1 / phase1_nurse_ratio`` of a nurse, a Phase II patient
      ``1 / phase2_nurse_ratio``.
    - Enhanced: discrete nurses created from ``nurse_shifts`` with skills
      from ``nurse_skills``; only on-shift nurses with the right skill
      can be assigned.
    """

    total_nurses: int = 6
    phase1_nurse_ratio: float = 1.0
    phase2_nurse_ratio: float = 2.0
    use_enhanced_nurse_model: bool = False
    nurse_skills: List[NurseSkill] = field(default_factory=list)
    nurse_shifts: List[NurseShift] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.total_nurses < 0:
            raise ValueError("total_nurses must be non-negative")
        if self.phase1_nurse_ratio <= 0 or self.phase2_nurse_ratio <= 0:
            raise ValueError("Nurse-patient ratios must be positive")
        if self.use_enhanced_nurse_model and not self.nurse_shifts:
            logger.warning("Enhanced nurse model enabled without shifts: no nurses")

    def ratio_for(self, phase: RecoveryPhase) -> float:
        if phase == RecoveryPhase.PHASE_1:
            return self.phase1_nurse_ratio
        return self.phase2_nurse_ratio


@dataclass
class EmergencyConfig:
    """Unscheduled emergency arrivals (Poisson process).

    An empty ``patient_class_distribution`` falls back to the elective
    class distribution.
    """

    enabled: bool = False
    arrival_rate_mean_per_day: float = 0.0
    patient_class_distribution: Dict[str, float] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.arrival_rate_mean_per_day < 0:
            raise ValueError("arrival_rate_mean_per_day must be non-negative")

    @property
    def active(self) -> bool:
        return self.enabled and self.arrival_rate_mean_per_day > 0


@dataclass
class SpecialEquipment:
    """Pooled PACU equipment some classes need for Phase I recovery.

    A patient of a class in ``required_by_classes`` is admitted to Phase I
    only when one unit of every equipment type its class needs is free.
    Each unit is then held for ``use_time_minutes``.

    Attributes:
        id: Equipment type identifier.
        name: Display name.
        count: Units of this type.
        required_by_classes: Patient class ids that need the equipment.
        use_time_minutes: How long one patient uses a unit.
    """

    id: str
    name: str = ""
    count: int = 1
    required_by_classes: List[str] = field(default_factory=list)
    use_time_minutes: float = 60.0

    def __post_init__(self) -> None:
        if self.count < 0:
            raise ValueError(f"Equipment {self.id}: count must be non-negative")
        if self.use_time_minutes <= 0:
            raise ValueError(f"Equipment {self.id}: use_time_minutes must be positive")


@dataclass
class DischargeWindow:
    """Hours of the day patients can leave the hospital.

    When enabled, a ward discharge or an outpatient's discharge home that
    falls outside ``[start_minute, end_minute]`` waits for the next
    opening, and the patient keeps their bed until then.
    """

    enabled: bool = False
    start_minute: int = 480
    end_minute: int = 1200

    def __post_init__(self) -> None:
        if not 0 <= self.start_minute <= self.end_minute < MINUTES_PER_DAY:
            raise ValueError("Discharge window must satisfy 0 <= start <= end < 1440")

    def is_open(self, time: float) -> bool:
        if not self.enabled:
            return True
        clock = time % MINUTES_PER_DAY
        return self.start_minute <= clock <= self.end_minute

    def next_opening(self, time: float) -> float:
        """Earliest discharge time at or after ``time``."""
        if self.is_open(time):
            return time
        day = int(time // MINUTES_PER_DAY)
        if time % MINUTES_PER_DAY < self.start_minute:
            return float(day * MINUTES_PER_DAY + self.start_minute)
        return float((day + 1) * MINUTES_PER_DAY + self.start_minute)


@dataclass
class SimulationParams:
    """Configuration for one simulation run.

    Contains everything ``run_simulation`` needs: horizon, OR count,
    patient classes and mix, schedule generation inputs, bed counts,
    staffing, emergencies, cost rates and the random seed.

    Attributes:
        simulation_days: Horizon in days.
        number_of_ors: Operating rooms in the pool.
        patient_classes: Class definitions (defaults from presets).
        patient_class_distribution: Class id -> weight for elective cases.
        schedule_mode: Template, block or custom case list.
        schedule_template: Template settings (also used by block mode for
            turnover, overrun and the minimum-volume fallback).
        or_blocks: Block schedule for ``ScheduleMode.BLOCK``.
        custom_cases: Verbatim case list for ``ScheduleMode.CUSTOM``.
        pacu_phase1_beds, pacu_phase2_beds, ward_beds: Bed counts.
        staff: Nurse staffing.
        emergency: Emergency arrival stream.
        special_equipment: Equipment types gating Phase I admission.
        discharge_window: Hours in which patients may leave.
        costs: Cost rate table.
        random_seed: Master seed for reproducibility.
    """

    simulation_days: int = 5
    number_of_ors: int = 3
    patient_classes: List[PatientClass] = field(default_factory=list)
    patient_class_distribution: Dict[str, float] = field(default_factory=dict)

    schedule_mode: ScheduleMode = ScheduleMode.TEMPLATE
    schedule_template: ScheduleTemplate = field(default_factory=ScheduleTemplate)
    or_blocks: List[ORBlock] = field(default_factory=list)
    custom_cases: List[SurgeryCaseInput] = field(default_factory=list)

    pacu_phase1_beds: int = 4
    pacu_phase2_beds: int = 4
    ward_beds: int = 20

    staff: StaffConfig = field(default_factory=StaffConfig)
    emergency: EmergencyConfig = field(default_factory=EmergencyConfig)
    special_equipment: List[SpecialEquipment] = field(default_factory=list)
    discharge_window: DischargeWindow = field(default_factory=DischargeWindow)
    costs: CostConfig = field(default_factory=CostConfig)

    random_seed: int = 42

    def __post_init__(self) -> None:
        """Fill defaults and validate."""
        if not isinstance(self.schedule_mode, ScheduleMode):
            self.schedule_mode = ScheduleMode(self.schedule_mode)

        if not self.patient_classes:
            from pacusim.core import presets
            self.patient_classes = presets.default_patient_classes()
        if not self.patient_class_distribution:
            self.patient_class_distribution = {
                pc.id: 1.0 for pc in self.patient_classes
            }

        if self.simulation_days <= 0:
            raise ValueError("simulation_days must be positive")
        if self.number_of_ors < 0:
            raise ValueError("number_of_ors must be non-negative")
        for name in ("pacu_phase1_beds", "pacu_phase2_beds", "ward_beds"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be non-negative")

        ids = [pc.id for pc in self.patient_classes]
        if len(ids) != len(set(ids)):
            raise ValueError("Patient class ids must be unique")
        equipment_ids = [eq.id for eq in self.special_equipment]
        if len(equipment_ids) != len(set(equipment_ids)):
            raise ValueError("Special equipment ids must be unique")

        self._warn_unknown_classes()

    def _warn_unknown_classes(self) -> None:
        """Log configuration gaps; offending entries are skipped at run time."""
        known = set(self.class_lookup)
        for class_id in self.patient_class_distribution:
            if class_id not in known:
                logger.warning(f"Distribution names unknown patient class {class_id!r}")
        for class_id in self.emergency.patient_class_distribution:
            if class_id not in known:
                logger.warning(
                    f"Emergency distribution names unknown patient class {class_id!r}"
                )
        for block in self.or_blocks:
            missing = [c for c in block.allowed_classes if c not in known]
            if missing:
                logger.warning(f"Block {block.id} allows unknown classes {missing}")
        for equipment in self.special_equipment:
            missing = [c for c in equipment.required_by_classes if c not in known]
            if missing:
                logger.warning(f"Equipment {equipment.id} names unknown classes {missing}")

    @property
    def horizon(self) -> float:
        """Simulation horizon in minutes."""
        return float(self.simulation_days * MINUTES_PER_DAY)

    @property
    def class_lookup(self) -> Dict[str, PatientClass]:
        return {pc.id: pc for pc in self.patient_classes}

    @property
    def or_ids(self) -> List[str]:
        """Names of the pooled operating rooms."""
        return [f"OR-{i + 1}" for i in range(self.number_of_ors)]

    @property
    def total_pacu_beds(self) -> int:
        return self.pacu_phase1_beds + self.pacu_phase2_beds

    def get_class(self, class_id: str) -> Optional[PatientClass]:
        return self.class_lookup.get(class_id)

    def clone_with_seed(self, new_seed: int) -> "SimulationParams":
        """Create a copy of this scenario with a different seed.

        Args:
            new_seed: The new random seed to use.

        Returns:
            A new SimulationParams instance sharing all other settings.
        """
        return dataclasses.replace(self, random_seed=new_seed)
