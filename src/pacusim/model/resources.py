"""
Resource pools for operating rooms, beds, nurses and special equipment.

A pool is a fixed set of slots created when the engine is built; pools
never resize during a run. Releasing a slot adds its busy minutes to the
slot's running total and to the cost bucket of the pool's resource kind.

Special equipment is pooled per type in ``EquipmentPool``; a unit is held
for the type's use time from Phase I admission.

Nurses come in two capacity models behind one ``NursePool`` contract:

- ``LegacyNursePool``: a fractional headcount; each patient consumes
  ``1 / ratio`` of a nurse and no skills or shifts are modelled.
- ``SkillShiftNursePool``: discrete nurses with skills, rostered by
  shift; only on-shift nurses whose skill covers the phase are assigned.
"""

import itertools
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Optional

from pacusim.core.entities import RecoveryPhase, ResourceKind
from pacusim.core.scenario import NurseShift, NurseSkill, SpecialEquipment, StaffConfig
from pacusim.results.collector import OccupancyTracker
from pacusim.results.costs import CostAccumulator

logger = logging.getLogger(__name__)

# Tolerance for fractional nurse capacity checks
_EPS = 1e-9

GENERAL_SKILL = NurseSkill(id="general", name="General recovery nurse")


@dataclass
class ResourceSlot:
    """Busy/free state of one resource.

    Attributes:
        id: Slot identifier, e.g. "OR-1" or "PACU1-3".
        kind: Resource category, fixed at creation.
        busy: Whether the slot is occupied.
        busy_since: Time the current occupancy began.
        total_busy_time: Cumulative occupied minutes.
        case_id: Case currently holding the slot.
    """

    id: str
    kind: ResourceKind
    busy: bool = False
    busy_since: Optional[float] = None
    total_busy_time: float = 0.0
    case_id: Optional[str] = None


@dataclass
class NurseSlot(ResourceSlot):
    """A discrete nurse under the skill/shift model."""

    skill: NurseSkill = GENERAL_SKILL
    shift_id: Optional[str] = None
    on_shift: bool = False
    shift_start: Optional[float] = None
    shift_end: Optional[float] = None
    overtime_minutes: float = 0.0
    on_shift_minutes: float = 0.0


class ResourcePool:
    """Fixed collection of interchangeable slots of one kind.

    Args:
        kind: Resource category for every slot.
        slot_ids: Identifiers of the slots to create.
        costs: Accumulator charged on every release.
        tracker: Occupancy tracker updated on every acquire/release.
    """

    def __init__(
        self,
        kind: ResourceKind,
        slot_ids: List[str],
        costs: Optional[CostAccumulator] = None,
        tracker: Optional[OccupancyTracker] = None,
    ) -> None:
        self.kind = kind
        self.slots: Dict[str, ResourceSlot] = {
            slot_id: ResourceSlot(id=slot_id, kind=kind) for slot_id in slot_ids
        }
        self.costs = costs
        self.tracker = tracker
        if tracker is not None:
            tracker.capacity = len(self.slots)

    @classmethod
    def numbered(
        cls,
        kind: ResourceKind,
        prefix: str,
        count: int,
        costs: Optional[CostAccumulator] = None,
        tracker: Optional[OccupancyTracker] = None,
    ) -> "ResourcePool":
        """Create a pool with slots ``{prefix}-1 .. {prefix}-{count}``."""
        return cls(kind, [f"{prefix}-{i + 1}" for i in range(count)], costs, tracker)

    @property
    def capacity(self) -> int:
        return len(self.slots)

    @property
    def busy_count(self) -> int:
        return sum(1 for slot in self.slots.values() if slot.busy)

    def find_available(self) -> Optional[ResourceSlot]:
        """Return any free slot, or None."""
        for slot in self.slots.values():
            if not slot.busy:
                return slot
        return None

    def acquire(self, slot: ResourceSlot, case_id: str, time: float) -> None:
        """Mark ``slot`` busy for ``case_id`` from ``time``."""
        if slot.busy:
            raise RuntimeError(f"{slot.id} is already held by case {slot.case_id}")
        slot.busy = True
        slot.busy_since = time
        slot.case_id = case_id
        self._record(time)

    def release(self, slot_id: str, time: float) -> float:
        """Free a slot and charge its busy minutes.

        Returns:
            Minutes the slot was busy for this occupancy.
        """
        slot = self.slots[slot_id]
        if not slot.busy:
            raise RuntimeError(f"{slot.id} released while free")
        duration = time - slot.busy_since
        slot.total_busy_time += duration
        slot.busy = False
        slot.busy_since = None
        slot.case_id = None
        if self.costs is not None:
            self.costs.add_busy_minutes(self.kind, duration)
        self._record(time)
        return duration

    def release_all(self, time: float) -> Dict[str, str]:
        """Release every busy slot (end of run).

        Returns:
            Mapping of released slot id to the case that held it.
        """
        released = {}
        for slot in self.slots.values():
            if slot.busy:
                released[slot.id] = slot.case_id
                self.release(slot.id, time)
        return released

    @property
    def total_busy_time(self) -> float:
        return sum(slot.total_busy_time for slot in self.slots.values())

    def _record(self, time: float) -> None:
        if self.tracker is not None:
            self.tracker.record(time, self.busy_count)


class NursePool(ABC):
    """Common contract for the two nurse capacity models."""

    kind = ResourceKind.NURSE

    def __init__(
        self,
        costs: Optional[CostAccumulator] = None,
        tracker: Optional[OccupancyTracker] = None,
        on_shift_tracker: Optional[OccupancyTracker] = None,
    ) -> None:
        self.costs = costs
        self.tracker = tracker
        self.on_shift_tracker = on_shift_tracker

    @abstractmethod
    def can_admit(self, phase: RecoveryPhase) -> bool:
        """Whether a nurse is available for a patient in ``phase``."""

    @abstractmethod
    def acquire(self, phase: RecoveryPhase, case_id: str, time: float) -> Optional[str]:
        """Assign a nurse; returns its id, or None if none is available."""

    @abstractmethod
    def release(self, nurse_id: str, time: float) -> float:
        """Free a nurse; returns the nurse-equivalent minutes charged."""

    @abstractmethod
    def release_all(self, time: float) -> Dict[str, str]:
        """Release every assignment at the end of the run."""

    @property
    @abstractmethod
    def busy_count(self) -> float:
        """Nurses (or nurse-equivalents) currently assigned."""

    @property
    @abstractmethod
    def on_shift_count(self) -> float:
        """Nurses currently available to work."""

    @property
    def overtime_minutes(self) -> float:
        return 0.0

    def shift_coverage(self) -> Dict[str, Dict[str, float]]:
        """Per-shift rostered, busy and overtime minutes."""
        return {}

    def _record(self, time: float) -> None:
        if self.tracker is not None:
            self.tracker.record(time, self.busy_count)
        if self.on_shift_tracker is not None:
            self.on_shift_tracker.record(time, self.on_shift_count)


@dataclass
class NurseAllocation:
    """A fractional nurse assignment under the ratio model."""
    id: str
    phase: RecoveryPhase
    share: float
    case_id: str
    start: float


class LegacyNursePool(NursePool):
    """Ratio-based nurse capacity.

    A patient in ``phase`` takes ``1 / ratio`` of a nurse, and is admitted
    only if ``assigned + 1 / ratio <= total_nurses``. All nurses are always
    on duty.
    """

    def __init__(
        self,
        staff: StaffConfig,
        costs: Optional[CostAccumulator] = None,
        tracker: Optional[OccupancyTracker] = None,
        on_shift_tracker: Optional[OccupancyTracker] = None,
    ) -> None:
        super().__init__(costs, tracker, on_shift_tracker)
        self.total_nurses = float(staff.total_nurses)
        self.staff = staff
        self.assigned = 0.0
        self.total_busy_time = 0.0
        self.allocations: Dict[str, NurseAllocation] = {}
        self._ids = itertools.count(1)
        if tracker is not None:
            tracker.capacity = self.total_nurses
        if on_shift_tracker is not None:
            on_shift_tracker.capacity = self.total_nurses
            on_shift_tracker.record(0.0, self.total_nurses)

    def _share(self, phase: RecoveryPhase) -> float:
        return 1.0 / self.staff.ratio_for(phase)

    def can_admit(self, phase: RecoveryPhase) -> bool:
        return self.assigned + self._share(phase) <= self.total_nurses + _EPS

    def acquire(self, phase: RecoveryPhase, case_id: str, time: float) -> Optional[str]:
        if not self.can_admit(phase):
            return None
        allocation = NurseAllocation(
            id=f"NURSE-ALLOC-{next(self._ids)}",
            phase=phase,
            share=self._share(phase),
            case_id=case_id,
            start=time,
        )
        self.allocations[allocation.id] = allocation
        self.assigned += allocation.share
        self._record(time)
        return allocation.id

    def release(self, nurse_id: str, time: float) -> float:
        allocation = self.allocations.pop(nurse_id)
        self.assigned = max(0.0, self.assigned - allocation.share)
        minutes = (time - allocation.start) * allocation.share
        self.total_busy_time += minutes
        if self.costs is not None:
            self.costs.add_busy_minutes(ResourceKind.NURSE, minutes)
        self._record(time)
        return minutes

    def release_all(self, time: float) -> Dict[str, str]:
        released = {a.id: a.case_id for a in self.allocations.values()}
        for allocation_id in list(self.allocations):
            self.release(allocation_id, time)
        return released

    @property
    def busy_count(self) -> float:
        return self.assigned

    @property
    def on_shift_count(self) -> float:
        return self.total_nurses


class SkillShiftNursePool(NursePool):
    """Discrete nurses with skills and shifts.

    Nurses are created once per shift at that shift's largest daily
    headcount; on each day only the rostered number go on shift. Among
    free, on-shift nurses able to handle the phase, the highest
    efficiency multiplier is chosen. A nurse still busy when the shift
    ends keeps working and accrues overtime until released.
    """

    def __init__(
        self,
        staff: StaffConfig,
        costs: Optional[CostAccumulator] = None,
        tracker: Optional[OccupancyTracker] = None,
        on_shift_tracker: Optional[OccupancyTracker] = None,
    ) -> None:
        super().__init__(costs, tracker, on_shift_tracker)
        self.shifts: Dict[str, NurseShift] = {s.id: s for s in staff.nurse_shifts}
        skills = {skill.id: skill for skill in staff.nurse_skills}
        self.nurses: Dict[str, NurseSlot] = {}
        self.nurses_by_shift: Dict[str, List[NurseSlot]] = {}

        for shift in staff.nurse_shifts:
            roster = []
            for index, skill in enumerate(self._skill_mix(shift, skills)):
                nurse = NurseSlot(
                    id=f"N-{shift.id}-{index + 1}",
                    kind=ResourceKind.NURSE,
                    skill=skill,
                    shift_id=shift.id,
                )
                roster.append(nurse)
                self.nurses[nurse.id] = nurse
            self.nurses_by_shift[shift.id] = roster

        if tracker is not None:
            tracker.capacity = len(self.nurses)
        if on_shift_tracker is not None:
            on_shift_tracker.capacity = len(self.nurses)

    @staticmethod
    def _skill_mix(shift: NurseShift, skills: Dict[str, NurseSkill]) -> List[NurseSkill]:
        """Split the shift's headcount across skills by largest remainder."""
        headcount = shift.max_headcount
        weights = {}
        for skill_id, share in shift.skill_distribution.items():
            if skill_id not in skills:
                logger.warning(f"Shift {shift.id} references unknown skill {skill_id!r}")
                continue
            if share > 0:
                weights[skill_id] = share
        total = sum(weights.values())
        if total <= 0:
            default = next(iter(skills.values()), GENERAL_SKILL)
            return [default] * headcount

        exact = {sid: headcount * w / total for sid, w in weights.items()}
        counts = {sid: int(v) for sid, v in exact.items()}
        remaining = headcount - sum(counts.values())
        by_remainder = sorted(exact, key=lambda sid: exact[sid] - counts[sid], reverse=True)
        for sid in by_remainder[:remaining]:
            counts[sid] += 1

        mix: List[NurseSkill] = []
        for sid in weights:
            mix.extend([skills[sid]] * counts[sid])
        return mix

    # ---- shifts ----

    def start_shift(
        self, shift_id: str, sim_day: int, time: float, shift_end: Optional[float] = None
    ) -> int:
        """Put the day's rostered nurses of a shift on duty.

        ``shift_end`` defaults to ``time`` plus the shift length; pass it
        when the shift started before ``time``.

        Returns:
            Number of nurses now on shift for this shift.
        """
        shift = self.shifts[shift_id]
        roster = self.nurses_by_shift[shift_id]
        headcount = min(shift.headcount(sim_day), len(roster))
        for nurse in roster[:headcount]:
            if nurse.busy and nurse.shift_end is not None and nurse.shift_end < time:
                # Overtime from the previous shift up to the new start
                self._accrue_overtime(nurse, time)
            nurse.on_shift = True
            nurse.shift_start = time
            nurse.shift_end = shift_end if shift_end is not None else time + shift.duration_minutes
        self._record(time)
        return headcount

    def end_shift(self, shift_id: str, time: float) -> int:
        """Take a shift's nurses off duty; busy nurses keep working.

        Returns:
            Number of nurses left working overtime.
        """
        working_on = 0
        for nurse in self.nurses_by_shift[shift_id]:
            if not nurse.on_shift:
                continue
            nurse.on_shift_minutes += time - nurse.shift_start
            nurse.on_shift = False
            if nurse.busy:
                working_on += 1
        self._record(time)
        return working_on

    # ---- assignment ----

    def _candidates(self, phase: RecoveryPhase) -> List[NurseSlot]:
        return [
            nurse for nurse in self.nurses.values()
            if nurse.on_shift and not nurse.busy and nurse.skill.can_handle(phase)
        ]

    def can_admit(self, phase: RecoveryPhase) -> bool:
        return bool(self._candidates(phase))

    def acquire(self, phase: RecoveryPhase, case_id: str, time: float) -> Optional[str]:
        candidates = self._candidates(phase)
        if not candidates:
            return None
        nurse = max(candidates, key=lambda n: n.skill.efficiency_multiplier)
        nurse.busy = True
        nurse.busy_since = time
        nurse.case_id = case_id
        self._record(time)
        return nurse.id

    def release(self, nurse_id: str, time: float) -> float:
        nurse = self.nurses[nurse_id]
        if not nurse.busy:
            raise RuntimeError(f"Nurse {nurse_id} released while free")
        minutes = time - nurse.busy_since
        nurse.total_busy_time += minutes
        if not nurse.on_shift:
            self._accrue_overtime(nurse, time)
        nurse.busy = False
        nurse.busy_since = None
        nurse.case_id = None
        if self.costs is not None:
            self.costs.add_busy_minutes(ResourceKind.NURSE, minutes)
        self._record(time)
        return minutes

    def _accrue_overtime(self, nurse: NurseSlot, time: float) -> None:
        if nurse.shift_end is None:
            return
        overtime = time - max(nurse.shift_end, nurse.busy_since)
        if overtime <= 0:
            return
        nurse.overtime_minutes += overtime
        if self.costs is not None:
            self.costs.add_overtime(overtime)

    def release_all(self, time: float) -> Dict[str, str]:
        released = {}
        for nurse in self.nurses.values():
            if nurse.busy:
                released[nurse.id] = nurse.case_id
                self.release(nurse.id, time)
        # Close open shift windows at the horizon
        for nurse in self.nurses.values():
            if nurse.on_shift:
                nurse.on_shift_minutes += time - nurse.shift_start
                nurse.shift_start = time
        return released

    @property
    def busy_count(self) -> float:
        return sum(1 for nurse in self.nurses.values() if nurse.busy)

    @property
    def on_shift_count(self) -> float:
        return sum(1 for nurse in self.nurses.values() if nurse.on_shift)

    @property
    def overtime_minutes(self) -> float:
        return sum(nurse.overtime_minutes for nurse in self.nurses.values())

    @property
    def total_busy_time(self) -> float:
        return sum(nurse.total_busy_time for nurse in self.nurses.values())

    def shift_coverage(self) -> Dict[str, Dict[str, float]]:
        coverage = {}
        for shift_id, roster in self.nurses_by_shift.items():
            coverage[shift_id] = {
                "nurses": float(len(roster)),
                "on_shift_minutes": sum(n.on_shift_minutes for n in roster),
                "busy_minutes": sum(n.total_busy_time for n in roster),
                "overtime_minutes": sum(n.overtime_minutes for n in roster),
            }
        return coverage


class EquipmentPool:
    """Special equipment, one ``ResourcePool`` per equipment type.

    A patient class may need several types; admission needs a free unit
    of each. Types with no units are ignored with a warning rather than
    blocking their classes forever.

    Args:
        equipment: Equipment types to model.
        costs: Accumulator charged on every release.
        tracker: Aggregate busy-unit tracker across all types.
        type_trackers: Busy-unit tracker per equipment id.
    """

    kind = ResourceKind.EQUIPMENT

    def __init__(
        self,
        equipment: List[SpecialEquipment],
        costs: Optional[CostAccumulator] = None,
        tracker: Optional[OccupancyTracker] = None,
        type_trackers: Optional[Dict[str, OccupancyTracker]] = None,
    ) -> None:
        type_trackers = type_trackers or {}
        self.types: Dict[str, SpecialEquipment] = {}
        self.pools: Dict[str, ResourcePool] = {}
        self._type_of_slot: Dict[str, str] = {}
        for eq in equipment:
            if eq.count == 0:
                logger.warning(f"Equipment {eq.id} has no units and is not modelled")
                continue
            pool = ResourcePool.numbered(
                ResourceKind.EQUIPMENT, eq.id, eq.count, costs, type_trackers.get(eq.id)
            )
            self.types[eq.id] = eq
            self.pools[eq.id] = pool
            for slot_id in pool.slots:
                self._type_of_slot[slot_id] = eq.id
        self.tracker = tracker
        if tracker is not None:
            tracker.capacity = self.capacity

    @property
    def capacity(self) -> int:
        return sum(pool.capacity for pool in self.pools.values())

    @property
    def busy_count(self) -> int:
        return sum(pool.busy_count for pool in self.pools.values())

    def required_for(self, class_id: str) -> List[SpecialEquipment]:
        """Equipment types a patient class needs, in configuration order."""
        return [eq for eq in self.types.values() if class_id in eq.required_by_classes]

    def can_supply(self, class_id: str) -> bool:
        return all(
            self.pools[eq.id].find_available() is not None
            for eq in self.required_for(class_id)
        )

    def acquire(self, class_id: str, case_id: str, time: float) -> List[str]:
        """Take one unit of every type the class needs.

        Returns:
            Acquired slot ids; empty when the class needs no equipment.

        Raises:
            RuntimeError: If a needed type has no free unit.
        """
        if not self.can_supply(class_id):
            raise RuntimeError(f"Case {case_id}: equipment for {class_id} not available")
        acquired = []
        for eq in self.required_for(class_id):
            pool = self.pools[eq.id]
            slot = pool.find_available()
            pool.acquire(slot, case_id, time)
            acquired.append(slot.id)
        if acquired:
            self._record(time)
        return acquired

    def use_time(self, slot_id: str) -> float:
        return self.types[self._type_of_slot[slot_id]].use_time_minutes

    def release(self, slot_id: str, time: float) -> float:
        minutes = self.pools[self._type_of_slot[slot_id]].release(slot_id, time)
        self._record(time)
        return minutes

    def release_all(self, time: float) -> Dict[str, str]:
        released = {}
        for pool in self.pools.values():
            released.update(pool.release_all(time))
        self._record(time)
        return released

    def _record(self, time: float) -> None:
        if self.tracker is not None:
            self.tracker.record(time, self.busy_count)


def build_nurse_pool(
    staff: StaffConfig,
    costs: Optional[CostAccumulator] = None,
    tracker: Optional[OccupancyTracker] = None,
    on_shift_tracker: Optional[OccupancyTracker] = None,
) -> NursePool:
    """Select the nurse capacity model from the staffing flag."""
    if staff.use_enhanced_nurse_model:
        return SkillShiftNursePool(staff, costs, tracker, on_shift_tracker)
    return LegacyNursePool(staff, costs, tracker, on_shift_tracker)
