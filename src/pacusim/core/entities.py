"""Core entity definitions for the simulation.

This module contains enums and basic types that are used across
the codebase, placed here to avoid circular imports.
"""

from enum import Enum, IntEnum
from typing import Dict, FrozenSet


# Priority given to emergency arrivals. Patient classes use 1 and above,
# so emergencies always sort ahead of elective cases.
EMERGENCY_PRIORITY = 0

MINUTES_PER_DAY = 1440


class ProcessType(Enum):
    """Care pathway followed by a patient class."""
    STANDARD = "standard"                # OR -> PACU I -> PACU II -> ward
    OUTPATIENT = "outpatient"            # Discharged home after PACU, no ward
    DIRECT_TRANSFER = "directTransfer"   # OR -> ward, no PACU


class ScheduleMode(Enum):
    """Case list generation policy."""
    TEMPLATE = "template"
    BLOCK = "block"
    CUSTOM = "custom"


class RecoveryPhase(IntEnum):
    """PACU recovery phases."""
    PHASE_1 = 1   # Intensive recovery
    PHASE_2 = 2   # Step-down recovery


class ResourceKind(Enum):
    """Resource category, fixed when a pool is created.

    Decides which cost bucket and occupancy series a slot feeds.
    """
    OPERATING_ROOM = "or"
    PACU_PHASE1_BED = "pacu_phase1"
    PACU_PHASE2_BED = "pacu_phase2"
    WARD_BED = "ward"
    NURSE = "nurse"
    EQUIPMENT = "equipment"


class EventType(Enum):
    """Engine event types."""
    PATIENT_ARRIVAL = "patient_arrival"
    SURGERY_END = "surgery_end"
    OR_AVAILABLE = "or_available"
    PACU1_END = "pacu1_end"
    PACU2_END = "pacu2_end"
    PACU_BED_AVAILABLE = "pacu_bed_available"
    DISCHARGE_CRITERIA_MET = "discharge_criteria_met"
    WARD_TRANSFER = "ward_transfer"
    WARD_DISCHARGE = "ward_discharge"
    HOME_DISCHARGE = "home_discharge"
    EQUIPMENT_RELEASE = "equipment_release"
    WARD_BED_AVAILABLE = "ward_bed_available"
    EMERGENCY_ARRIVAL = "emergency_arrival"
    NURSE_SHIFT_START = "nurse_shift_start"
    NURSE_SHIFT_END = "nurse_shift_end"
    SIMULATION_END_CHECK = "simulation_end_check"


class PatientState(Enum):
    """Position of a surgery case on its care pathway."""
    SCHEDULED = "scheduled"
    ARRIVED = "arrived"
    WAITING_OR = "waiting_or"
    IN_OR = "in_or"
    SURGERY_END = "surgery_end"
    WAITING_PACU1 = "waiting_pacu1"
    IN_PACU1 = "in_pacu1"
    WAITING_PACU2 = "waiting_pacu2"
    IN_PACU2 = "in_pacu2"
    DISCHARGE_CRITERIA_MET = "discharge_criteria_met"
    WAITING_WARD = "waiting_ward"
    IN_WARD = "in_ward"
    DISCHARGED = "discharged"
    CANCELLED = "cancelled"


_S = PatientState

ALLOWED_TRANSITIONS: Dict[PatientState, FrozenSet[PatientState]] = {
    _S.SCHEDULED: frozenset({_S.ARRIVED}),
    _S.ARRIVED: frozenset({_S.WAITING_OR, _S.IN_OR, _S.CANCELLED}),
    _S.WAITING_OR: frozenset({_S.IN_OR}),
    _S.IN_OR: frozenset({_S.SURGERY_END}),
    # DISCHARGE_CRITERIA_MET directly after surgery is the directTransfer shortcut
    _S.SURGERY_END: frozenset({_S.WAITING_PACU1, _S.IN_PACU1, _S.DISCHARGE_CRITERIA_MET}),
    _S.WAITING_PACU1: frozenset({_S.IN_PACU1}),
    _S.IN_PACU1: frozenset({_S.WAITING_PACU2, _S.IN_PACU2, _S.DISCHARGE_CRITERIA_MET}),
    _S.WAITING_PACU2: frozenset({_S.IN_PACU2}),
    _S.IN_PACU2: frozenset({_S.DISCHARGE_CRITERIA_MET}),
    _S.DISCHARGE_CRITERIA_MET: frozenset({_S.WAITING_WARD, _S.IN_WARD, _S.DISCHARGED}),
    _S.WAITING_WARD: frozenset({_S.IN_WARD}),
    _S.IN_WARD: frozenset({_S.DISCHARGED}),
    _S.DISCHARGED: frozenset(),
    _S.CANCELLED: frozenset(),
}

TERMINAL_STATES = frozenset({_S.DISCHARGED, _S.CANCELLED})


class PathwayError(RuntimeError):
    """Raised when a case is moved to a state its pathway does not allow."""
