"""Surgery case entity tracking one patient's pathway."""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, List, Optional, Tuple

from pacusim.core.entities import (
    ALLOWED_TRANSITIONS, TERMINAL_STATES, PathwayError, PatientState,
    ProcessType, RecoveryPhase, ResourceKind,
)

if TYPE_CHECKING:
    from pacusim.core.scenario import PatientClass


@dataclass
class SurgeryRecord:
    """Time in the operating room."""
    or_id: str
    start: float
    end: Optional[float] = None


@dataclass
class PacuPhaseRecord:
    """One PACU recovery phase.

    ``ready_time`` is when the patient first needed the phase; the gap to
    ``start`` is the wait for a bed, a nurse and any special equipment.
    """
    phase: RecoveryPhase
    ready_time: float
    start: Optional[float] = None
    end: Optional[float] = None
    bed_id: Optional[str] = None
    nurse_id: Optional[str] = None
    waited_for_bed: bool = False
    waited_for_nurse: bool = False
    waited_for_equipment: bool = False
    equipment_ids: List[str] = field(default_factory=list)

    @property
    def wait(self) -> float:
        if self.start is None:
            return 0.0
        return self.start - self.ready_time

    @property
    def duration(self) -> float:
        if self.start is not None and self.end is not None:
            return self.end - self.start
        return 0.0


@dataclass
class WardRecord:
    """Ward transfer and stay.

    ``transfer_delay`` runs from ``ready_time`` to ``start`` and includes
    any ``handover_delay`` drawn for the class.
    """
    ready_time: float
    handover_delay: float = 0.0
    start: Optional[float] = None
    end: Optional[float] = None
    bed_id: Optional[str] = None

    @property
    def transfer_delay(self) -> float:
        if self.start is None:
            return 0.0
        return self.start - self.ready_time


@dataclass
class SurgeryCase:
    """Patient instance moving through OR, PACU and ward.

    The core record is fixed at creation. Stage records are filled as the
    engine moves the case along; which ones may exist depends on the
    class's process type (no PACU records for directTransfer, no ward
    record for outpatient).

    Attributes:
        id: Case identifier.
        patient_class: Reference data for the case's class.
        scheduled_or: OR room from the schedule (informational).
        scheduled_arrival: Booked start time.
        surgery_duration: Planned surgery minutes before time-of-day scaling.
        priority: Queue priority, lower = more urgent.
        is_emergency: True for synthesised emergency arrivals.
        state: Current pathway state.
    """

    id: str
    patient_class: "PatientClass"
    scheduled_or: Optional[str]
    scheduled_arrival: float
    surgery_duration: float
    priority: int
    is_emergency: bool = False
    state: PatientState = PatientState.SCHEDULED

    arrival_time: Optional[float] = None
    cancelled_time: Optional[float] = None
    surgery: Optional[SurgeryRecord] = None
    pacu_phase1: Optional[PacuPhaseRecord] = None
    pacu_phase2: Optional[PacuPhaseRecord] = None
    ready_for_ward_time: Optional[float] = None
    ward: Optional[WardRecord] = None
    discharge_time: Optional[float] = None

    # Currently held resources: slot ids, cleared on release
    assigned_or: Optional[str] = None
    assigned_bed: Optional[str] = None
    assigned_bed_kind: Optional[ResourceKind] = None
    assigned_nurse: Optional[str] = None

    state_history: List[Tuple[float, PatientState]] = field(default_factory=list)

    @property
    def class_id(self) -> str:
        return self.patient_class.id

    @property
    def process_type(self) -> ProcessType:
        return self.patient_class.process_type

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    @property
    def is_discharged(self) -> bool:
        return self.state == PatientState.DISCHARGED

    def transition_to(self, new_state: PatientState, time: float) -> None:
        """Move the case to ``new_state``.

        Raises:
            PathwayError: If the pathway does not allow the move.
        """
        if new_state not in ALLOWED_TRANSITIONS[self.state]:
            raise PathwayError(
                f"Case {self.id}: illegal transition "
                f"{self.state.value} -> {new_state.value} at t={time:.1f}"
            )
        self.state = new_state
        self.state_history.append((time, new_state))

    # ---- stage records ----

    def open_pacu_phase(self, phase: RecoveryPhase, ready_time: float) -> PacuPhaseRecord:
        if self.patient_class.skips_pacu:
            raise PathwayError(f"Case {self.id}: directTransfer cases have no PACU stay")
        record = PacuPhaseRecord(phase=phase, ready_time=ready_time)
        if phase == RecoveryPhase.PHASE_1:
            self.pacu_phase1 = record
        else:
            self.pacu_phase2 = record
        return record

    def pacu_record(self, phase: RecoveryPhase) -> Optional[PacuPhaseRecord]:
        if phase == RecoveryPhase.PHASE_1:
            return self.pacu_phase1
        return self.pacu_phase2

    def open_ward_stay(self, ready_time: float) -> WardRecord:
        if self.patient_class.skips_ward:
            raise PathwayError(f"Case {self.id}: outpatient cases have no ward stay")
        self.ward = WardRecord(ready_time=ready_time)
        return self.ward

    # ---- timeline ----

    @property
    def or_start_time(self) -> Optional[float]:
        return self.surgery.start if self.surgery else None

    @property
    def or_end_time(self) -> Optional[float]:
        return self.surgery.end if self.surgery else None

    @property
    def or_waiting_time(self) -> float:
        """Arrival to OR start."""
        if self.surgery is None or self.arrival_time is None:
            return 0.0
        return self.surgery.start - self.arrival_time

    @property
    def pacu_phase1_start_time(self) -> Optional[float]:
        return self.pacu_phase1.start if self.pacu_phase1 else None

    @property
    def pacu_phase1_end_time(self) -> Optional[float]:
        return self.pacu_phase1.end if self.pacu_phase1 else None

    @property
    def pacu_phase2_start_time(self) -> Optional[float]:
        return self.pacu_phase2.start if self.pacu_phase2 else None

    @property
    def pacu_phase2_end_time(self) -> Optional[float]:
        return self.pacu_phase2.end if self.pacu_phase2 else None

    @property
    def ward_arrival_time(self) -> Optional[float]:
        return self.ward.start if self.ward else None

    @property
    def ward_transfer_delay(self) -> float:
        return self.ward.transfer_delay if self.ward else 0.0

    @property
    def pacu_time(self) -> float:
        """Time from first PACU bed to leaving the PACU, including blocking."""
        if self.pacu_phase1 is None or self.pacu_phase1.start is None:
            return 0.0
        if self.ward is not None and self.ward.start is not None:
            left = self.ward.start
        elif self.discharge_time is not None and self.ward is None:
            left = self.discharge_time
        else:
            return 0.0
        return left - self.pacu_phase1.start

    def timeline(self) -> Dict[str, Optional[float]]:
        """Pathway timestamps in pathway order."""
        return {
            "arrival_time": self.arrival_time,
            "or_start_time": self.or_start_time,
            "or_end_time": self.or_end_time,
            "pacu_phase1_start_time": self.pacu_phase1_start_time,
            "pacu_phase1_end_time": self.pacu_phase1_end_time,
            "pacu_phase2_start_time": self.pacu_phase2_start_time,
            "pacu_phase2_end_time": self.pacu_phase2_end_time,
            "ready_for_ward_time": self.ready_for_ward_time,
            "ward_arrival_time": self.ward_arrival_time,
            "discharge_time": self.discharge_time,
        }
