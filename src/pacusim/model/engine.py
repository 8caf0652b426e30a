"""PACU patient-flow simulation engine.

Explicit discrete-event loop over a single priority event queue:

    Arrival -> OR (priority queue) -> PACU Phase I -> PACU Phase II
            -> discharge criteria met -> ward bed (or home) -> discharge

A Phase I bed is freed when Phase I ends. The last PACU bed a patient
uses is held until the ward bed (or the discharge home) is secured, so a
full ward blocks PACU beds and, behind them, the ORs.
Every run builds fresh state and fresh random streams from the seed.
"""

import itertools
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from pacusim.core.distributions import (
    RandomStreams, adjust_for_time_of_day, exponential_random, normal_random,
    weighted_random_selection,
)
from pacusim.core.entities import (
    EMERGENCY_PRIORITY, MINUTES_PER_DAY, EventType, PatientState, RecoveryPhase,
    ResourceKind,
)
from pacusim.core.scenario import SimulationParams, SurgeryCaseInput
from pacusim.core.schedule import draw_surgery_duration, generate_schedule
from pacusim.model.case import SurgeryCase, SurgeryRecord
from pacusim.model.event_queue import Event, EventOrderError, PriorityEventQueue
from pacusim.model.resources import (
    EquipmentPool, NursePool, ResourcePool, ResourceSlot, build_nurse_pool,
)
from pacusim.results.collector import ResultsCollector
from pacusim.results.costs import CostAccumulator
from pacusim.results.summary import SimulationResults

logger = logging.getLogger(__name__)

_WAITING_STATE = {
    RecoveryPhase.PHASE_1: PatientState.WAITING_PACU1,
    RecoveryPhase.PHASE_2: PatientState.WAITING_PACU2,
}
_IN_STATE = {
    RecoveryPhase.PHASE_1: PatientState.IN_PACU1,
    RecoveryPhase.PHASE_2: PatientState.IN_PACU2,
}
_END_EVENT = {
    RecoveryPhase.PHASE_1: EventType.PACU1_END,
    RecoveryPhase.PHASE_2: EventType.PACU2_END,
}
_BED_KIND = {
    RecoveryPhase.PHASE_1: ResourceKind.PACU_PHASE1_BED,
    RecoveryPhase.PHASE_2: ResourceKind.PACU_PHASE2_BED,
}
_PHASE_OF_BED = {kind: phase for phase, kind in _BED_KIND.items()}


@dataclass
class EngineState:
    """Mutable state of one run.

    Attributes:
        now: Current simulation time in minutes.
        events: Pending events keyed by time.
        cases: Every case created so far, by id.
        arrived: Ids of cases whose arrival has been processed, in order.
        or_pool, pacu_pools, ward_pool, nurses, equipment: Resource pools.
        or_queue, pacu_queues, ward_queue: Waiting lines of case ids,
            keyed by case priority.
        blocked_beds: PACU beds currently held by patients waiting for a
            ward bed.
    """

    now: float
    events: PriorityEventQueue[Event]
    cases: Dict[str, SurgeryCase]
    arrived: List[str]
    or_pool: ResourcePool
    pacu_pools: Dict[RecoveryPhase, ResourcePool]
    ward_pool: ResourcePool
    nurses: NursePool
    equipment: EquipmentPool
    or_queue: PriorityEventQueue[str] = field(default_factory=PriorityEventQueue)
    pacu_queues: Dict[RecoveryPhase, PriorityEventQueue[str]] = field(
        default_factory=lambda: {phase: PriorityEventQueue() for phase in RecoveryPhase}
    )
    ward_queue: PriorityEventQueue[str] = field(default_factory=PriorityEventQueue)
    blocked_beds: int = 0
    events_processed: int = 0


class SimulationEngine:
    """Runs one scenario through the event loop.

    Args:
        params: Scenario parameters. Not modified.
    """

    def __init__(self, params: SimulationParams) -> None:
        self.params = params
        self.lookup = params.class_lookup
        self.streams = RandomStreams.from_seed(params.random_seed)
        self.collector = ResultsCollector()
        self.costs = CostAccumulator(params.costs)
        self._emergency_ids = itertools.count(1)

        occupancy = self.collector.occupancy
        self.state = EngineState(
            now=0.0,
            events=PriorityEventQueue(),
            cases={},
            arrived=[],
            or_pool=ResourcePool(
                ResourceKind.OPERATING_ROOM, params.or_ids, self.costs,
                occupancy[ResourceKind.OPERATING_ROOM],
            ),
            pacu_pools={
                RecoveryPhase.PHASE_1: ResourcePool.numbered(
                    ResourceKind.PACU_PHASE1_BED, "PACU1", params.pacu_phase1_beds,
                    self.costs, occupancy[ResourceKind.PACU_PHASE1_BED],
                ),
                RecoveryPhase.PHASE_2: ResourcePool.numbered(
                    ResourceKind.PACU_PHASE2_BED, "PACU2", params.pacu_phase2_beds,
                    self.costs, occupancy[ResourceKind.PACU_PHASE2_BED],
                ),
            },
            ward_pool=ResourcePool.numbered(
                ResourceKind.WARD_BED, "WARD", params.ward_beds,
                self.costs, occupancy[ResourceKind.WARD_BED],
            ),
            nurses=build_nurse_pool(
                params.staff, self.costs, occupancy[ResourceKind.NURSE],
                self.collector.nurses_on_shift,
            ),
            equipment=EquipmentPool(
                params.special_equipment, self.costs, occupancy[ResourceKind.EQUIPMENT],
                {
                    eq.id: self.collector.equipment_tracker(eq.id)
                    for eq in params.special_equipment if eq.count > 0
                },
            ),
        )
        self.collector.pacu_blocked.capacity = params.total_pacu_beds

        self._handlers: Dict[EventType, Callable[[Event], None]] = {
            EventType.PATIENT_ARRIVAL: self._on_patient_arrival,
            EventType.SURGERY_END: self._on_surgery_end,
            EventType.OR_AVAILABLE: self._on_or_available,
            EventType.PACU1_END: self._on_pacu_end,
            EventType.PACU2_END: self._on_pacu_end,
            EventType.PACU_BED_AVAILABLE: self._on_pacu_bed_available,
            EventType.DISCHARGE_CRITERIA_MET: self._on_discharge_criteria_met,
            EventType.WARD_TRANSFER: self._on_ward_transfer,
            EventType.WARD_DISCHARGE: self._on_ward_discharge,
            EventType.HOME_DISCHARGE: self._on_home_discharge,
            EventType.WARD_BED_AVAILABLE: self._on_ward_bed_available,
            EventType.EMERGENCY_ARRIVAL: self._on_emergency_arrival,
            EventType.NURSE_SHIFT_START: self._on_shift_start,
            EventType.NURSE_SHIFT_END: self._on_shift_end,
            EventType.EQUIPMENT_RELEASE: self._on_equipment_release,
            EventType.SIMULATION_END_CHECK: self._on_end_check,
        }

    @property
    def now(self) -> float:
        return self.state.now

    # ---- main loop ----

    def run(self) -> SimulationResults:
        """Seed the event queue and process events up to the horizon."""
        params = self.params
        horizon = params.horizon
        logger.info(
            f"Starting run: {params.simulation_days} days, {params.number_of_ors} ORs, "
            f"{params.pacu_phase1_beds}+{params.pacu_phase2_beds} PACU beds, "
            f"{params.ward_beds} ward beds, seed={params.random_seed}"
        )

        self._seed_shifts()
        self._seed_arrivals(generate_schedule(params, self.streams.schedule))
        self._seed_emergencies()
        self.schedule(horizon, EventType.SIMULATION_END_CHECK)

        events = self.state.events
        while not events.is_empty():
            event = events.dequeue()
            self.state.now = event.time
            self.state.events_processed += 1
            self._handlers[event.event_type](event)
            if event.event_type == EventType.SIMULATION_END_CHECK:
                break

        results = SimulationResults.from_run(
            horizon=horizon,
            cases=[self.state.cases[case_id] for case_id in self.state.arrived],
            collector=self.collector,
            costs=self.costs.breakdown(),
            nurse_model="skill_shift" if params.staff.use_enhanced_nurse_model else "legacy",
            nurse_overtime_minutes=self.state.nurses.overtime_minutes,
            shift_coverage=self.state.nurses.shift_coverage(),
            or_open_time=params.schedule_template.or_start_time,
            or_close_time=params.schedule_template.or_end_time,
        )
        logger.info(
            f"Run complete: {self.state.events_processed} events, "
            f"{results.arrivals} arrivals, {results.discharged_count} discharged, "
            f"{len(results.cancelled_surgeries)} cancelled, "
            f"total cost {results.total_cost:,.0f} {results.costs.currency}"
        )
        return results

    def schedule(
        self,
        time: float,
        event_type: EventType,
        case_id: Optional[str] = None,
        **payload,
    ) -> None:
        """Add an event to the queue.

        Raises:
            EventOrderError: If ``time`` is before the current time.
        """
        if time < self.state.now:
            raise EventOrderError(
                f"{event_type.value} scheduled at t={time:.2f} before now={self.state.now:.2f}"
            )
        self.state.events.enqueue(Event(time, event_type, case_id, dict(payload)), time)

    # ---- seeding ----

    def _seed_shifts(self) -> None:
        """Pre-schedule shift starts and ends (enhanced nurse model only)."""
        staff = self.params.staff
        if not staff.use_enhanced_nurse_model:
            return
        horizon = self.params.horizon
        # Day -1 covers night shifts running past midnight into day 0
        for day in range(-1, self.params.simulation_days):
            for shift in staff.nurse_shifts:
                start = day * MINUTES_PER_DAY + shift.start_minute
                end = start + shift.duration_minutes
                if end <= 0 or start >= horizon:
                    continue
                self.schedule(
                    max(start, 0.0), EventType.NURSE_SHIFT_START,
                    shift_id=shift.id, day=day, end=float(end),
                )
                if end < horizon:
                    self.schedule(end, EventType.NURSE_SHIFT_END, shift_id=shift.id)

    def _seed_arrivals(self, case_inputs: List[SurgeryCaseInput]) -> None:
        horizon = self.params.horizon
        seeded = 0
        for case_input in case_inputs:
            patient_class = self.lookup.get(case_input.class_id)
            if patient_class is None:
                logger.warning(
                    f"Case {case_input.id}: unknown patient class "
                    f"{case_input.class_id!r}, skipped"
                )
                continue
            if case_input.id in self.state.cases:
                logger.warning(f"Duplicate case id {case_input.id}, skipped")
                continue
            if not 0 <= case_input.scheduled_start < horizon:
                logger.debug(f"Case {case_input.id} starts outside the horizon, skipped")
                continue
            case = SurgeryCase(
                id=case_input.id,
                patient_class=patient_class,
                scheduled_or=case_input.or_room,
                scheduled_arrival=case_input.scheduled_start,
                surgery_duration=case_input.duration,
                priority=patient_class.priority,
            )
            self.state.cases[case.id] = case
            self.schedule(case.scheduled_arrival, EventType.PATIENT_ARRIVAL, case.id)
            seeded += 1
        logger.debug(f"Seeded {seeded} scheduled arrivals")

    def _seed_emergencies(self) -> None:
        if not self.params.emergency.active:
            return
        self._schedule_next_emergency()

    def _schedule_next_emergency(self) -> None:
        rate = self.params.emergency.arrival_rate_mean_per_day / MINUTES_PER_DAY
        next_time = self.now + exponential_random(self.streams.emergencies, rate)
        if next_time < self.params.horizon:
            self.schedule(next_time, EventType.EMERGENCY_ARRIVAL)

    # ---- arrival and OR ----

    def _on_patient_arrival(self, event: Event) -> None:
        self._arrive(self.state.cases[event.case_id])

    def _arrive(self, case: SurgeryCase) -> None:
        case.arrival_time = self.now
        case.transition_to(PatientState.ARRIVED, self.now)
        self.state.arrived.append(case.id)
        self.collector.record_arrival(case.class_id, case.is_emergency)

        # One draw per arrival keeps the stream aligned across classes
        if self.streams.cancellation.random() < case.patient_class.cancellation_risk:
            case.cancelled_time = self.now
            case.transition_to(PatientState.CANCELLED, self.now)
            self.costs.add_cancellation()
            logger.debug(f"t={self.now:.1f} case {case.id} cancelled on arrival")
            return

        slot = self.state.or_pool.find_available()
        if slot is not None and self.state.or_queue.is_empty():
            self._start_surgery(case, slot)
            return

        case.transition_to(PatientState.WAITING_OR, self.now)
        self.state.or_queue.enqueue(case.id, case.priority)
        self._record_or_queue()
        self._promote_or()

    def _start_surgery(self, case: SurgeryCase, slot: ResourceSlot) -> None:
        self.state.or_pool.acquire(slot, case.id, self.now)
        case.assigned_or = slot.id
        case.transition_to(PatientState.IN_OR, self.now)
        case.surgery = SurgeryRecord(or_id=slot.id, start=self.now)
        self.collector.record_or_wait(case.or_waiting_time)

        duration = adjust_for_time_of_day(
            self.streams.time_of_day, case.surgery_duration, self.now,
            case.patient_class.time_of_day_variability,
        )
        self.schedule(self.now + duration, EventType.SURGERY_END, case.id)
        logger.debug(
            f"t={self.now:.1f} case {case.id} into {slot.id} for {duration:.0f} min"
        )

    def _promote_or(self) -> None:
        """Move waiting patients into free ORs, highest priority first."""
        queue = self.state.or_queue
        while not queue.is_empty():
            slot = self.state.or_pool.find_available()
            if slot is None:
                break
            case = self.state.cases[queue.dequeue()]
            self._record_or_queue()
            if case.state != PatientState.WAITING_OR:
                self._stale_entry(case, "OR", EventType.OR_AVAILABLE)
                return
            self._start_surgery(case, slot)

    def _on_or_available(self, event: Event) -> None:
        self._promote_or()

    def _on_surgery_end(self, event: Event) -> None:
        case = self.state.cases[event.case_id]
        case.surgery.end = self.now
        or_id = case.assigned_or
        minutes = self.state.or_pool.release(or_id, self.now)
        self.collector.record_or_minutes(or_id, minutes)
        case.assigned_or = None
        case.transition_to(PatientState.SURGERY_END, self.now)
        self._promote_or()

        if case.patient_class.skips_pacu:
            self.schedule(self.now, EventType.DISCHARGE_CRITERIA_MET, case.id)
        else:
            self._request_pacu(case, RecoveryPhase.PHASE_1)

    # ---- PACU ----

    def _equipment_ready(self, case: SurgeryCase, phase: RecoveryPhase) -> bool:
        if phase != RecoveryPhase.PHASE_1:
            return True
        return self.state.equipment.can_supply(case.class_id)

    def _pacu_ready(self, phase: RecoveryPhase, case: SurgeryCase) -> bool:
        return (
            self.state.pacu_pools[phase].find_available() is not None
            and self.state.nurses.can_admit(phase)
            and self._equipment_ready(case, phase)
        )

    def _request_pacu(self, case: SurgeryCase, phase: RecoveryPhase) -> None:
        """Admit to a PACU phase now, or queue for a bed, a nurse and equipment."""
        record = case.open_pacu_phase(phase, self.now)
        queue = self.state.pacu_queues[phase]
        if queue.is_empty() and self._pacu_ready(phase, case):
            self._admit_pacu(case, phase)
            return

        record.waited_for_bed = self.state.pacu_pools[phase].find_available() is None
        record.waited_for_nurse = not self.state.nurses.can_admit(phase)
        record.waited_for_equipment = not self._equipment_ready(case, phase)
        self.collector.record_pacu_blocked_reason(
            phase, record.waited_for_bed, record.waited_for_nurse,
            record.waited_for_equipment,
        )
        case.transition_to(_WAITING_STATE[phase], self.now)
        queue.enqueue(case.id, case.priority)
        logger.debug(
            f"t={self.now:.1f} case {case.id} waiting for PACU phase {int(phase)} "
            f"(bed={'no' if record.waited_for_bed else 'yes'}, "
            f"nurse={'no' if record.waited_for_nurse else 'yes'}, "
            f"equipment={'no' if record.waited_for_equipment else 'yes'})"
        )
        self._promote_pacu(phase)

    def _admit_pacu(self, case: SurgeryCase, phase: RecoveryPhase) -> None:
        pool = self.state.pacu_pools[phase]
        bed = pool.find_available()
        nurse_id = self.state.nurses.acquire(phase, case.id, self.now)
        if bed is None or nurse_id is None:
            raise RuntimeError(f"Case {case.id}: PACU phase {int(phase)} admitted without capacity")
        pool.acquire(bed, case.id, self.now)

        record = case.pacu_record(phase)
        if phase == RecoveryPhase.PHASE_1:
            equipment = self.state.equipment
            record.equipment_ids = equipment.acquire(case.class_id, case.id, self.now)
            for slot_id in record.equipment_ids:
                self.schedule(
                    self.now + equipment.use_time(slot_id), EventType.EQUIPMENT_RELEASE,
                    case.id, slot_id=slot_id,
                )

        case.assigned_bed = bed.id
        case.assigned_bed_kind = pool.kind
        case.assigned_nurse = nurse_id

        record.start = self.now
        record.bed_id = bed.id
        record.nurse_id = nurse_id
        case.transition_to(_IN_STATE[phase], self.now)
        self.collector.record_pacu_wait(phase, record.wait)

        pc = case.patient_class
        if phase == RecoveryPhase.PHASE_1:
            mean, stddev = pc.pacu_phase1_mean, pc.pacu_phase1_stddev
        else:
            mean, stddev = pc.pacu_phase2_mean, pc.pacu_phase2_stddev
        duration = adjust_for_time_of_day(
            self.streams.time_of_day,
            normal_random(self.streams.durations, mean, stddev),
            self.now, pc.time_of_day_variability,
        )
        self.schedule(self.now + duration, _END_EVENT[phase], case.id, phase=phase)
        logger.debug(
            f"t={self.now:.1f} case {case.id} into {bed.id} with {nurse_id} "
            f"for {duration:.0f} min"
        )

    def _promote_pacu(self, phase: RecoveryPhase) -> None:
        """Admit waiting patients, head of the queue first, while it can be served.

        A head patient still missing equipment holds up the queue behind it.
        """
        queue = self.state.pacu_queues[phase]
        while not queue.is_empty():
            case = self.state.cases[queue.peek()]
            stale = case.state != _WAITING_STATE[phase]
            if not stale and not self._pacu_ready(phase, case):
                break
            queue.dequeue()
            if stale:
                self._stale_entry(
                    case, f"PACU phase {int(phase)}", EventType.PACU_BED_AVAILABLE,
                    phase=phase,
                )
                return
            self._admit_pacu(case, phase)

    def _promote_all_pacu(self) -> None:
        for phase in RecoveryPhase:
            self._promote_pacu(phase)

    def _on_pacu_bed_available(self, event: Event) -> None:
        self._promote_pacu(RecoveryPhase(event.payload["phase"]))

    def _on_pacu_end(self, event: Event) -> None:
        case = self.state.cases[event.case_id]
        phase = RecoveryPhase(event.payload["phase"])
        case.pacu_record(phase).end = self.now

        self.state.nurses.release(case.assigned_nurse, self.now)
        case.assigned_nurse = None

        if phase == RecoveryPhase.PHASE_1 and not case.patient_class.skips_phase2:
            # Phase I bed goes back to the Phase I queue before Phase II is requested
            self._release_bed(case)
            self._promote_all_pacu()
            self._request_pacu(case, RecoveryPhase.PHASE_2)
        else:
            # Last PACU bed stays held until the ward bed or the discharge home
            self._promote_all_pacu()
            self.schedule(self.now, EventType.DISCHARGE_CRITERIA_MET, case.id)

    def _on_equipment_release(self, event: Event) -> None:
        slot_id = event.payload["slot_id"]
        self.state.equipment.release(slot_id, self.now)
        logger.debug(f"t={self.now:.1f} case {event.case_id} done with {slot_id}")
        self._promote_pacu(RecoveryPhase.PHASE_1)

    def _release_bed(self, case: SurgeryCase) -> None:
        """Free whatever bed the case holds and refill it from the queues."""
        if case.assigned_bed is None:
            return
        kind = case.assigned_bed_kind
        if kind == ResourceKind.WARD_BED:
            self.state.ward_pool.release(case.assigned_bed, self.now)
        else:
            self.state.pacu_pools[_PHASE_OF_BED[kind]].release(case.assigned_bed, self.now)
        case.assigned_bed = None
        case.assigned_bed_kind = None

        if kind == ResourceKind.WARD_BED:
            self._promote_ward()
        else:
            self._promote_pacu(_PHASE_OF_BED[kind])

    # ---- discharge and ward ----

    def _on_discharge_criteria_met(self, event: Event) -> None:
        case = self.state.cases[event.case_id]
        case.transition_to(PatientState.DISCHARGE_CRITERIA_MET, self.now)
        case.ready_for_ward_time = self.now

        if case.patient_class.skips_ward:
            leave = self.params.discharge_window.next_opening(self.now)
            if leave > self.now:
                logger.debug(
                    f"t={self.now:.1f} case {case.id} waits until t={leave:.1f} to go home"
                )
                self.schedule(leave, EventType.HOME_DISCHARGE, case.id)
            else:
                self._discharge_home(case)
            return

        ward = case.open_ward_stay(self.now)
        pc = case.patient_class
        if (
            pc.transfer_delay_probability > 0
            and pc.transfer_delay_minutes > 0
            and self.streams.transfers.random() < pc.transfer_delay_probability
        ):
            ward.handover_delay = exponential_random(
                self.streams.transfers, 1.0 / pc.transfer_delay_minutes
            )
            self.collector.record_ward_handover_delay(ward.handover_delay)
            logger.debug(
                f"t={self.now:.1f} case {case.id} ward handover delayed "
                f"{ward.handover_delay:.0f} min"
            )
            self.schedule(self.now + ward.handover_delay, EventType.WARD_TRANSFER, case.id)
            return
        self._request_ward(case)

    def _on_ward_transfer(self, event: Event) -> None:
        self._request_ward(self.state.cases[event.case_id])

    def _request_ward(self, case: SurgeryCase) -> None:
        """Take a free ward bed now, or queue for one."""
        slot = self.state.ward_pool.find_available()
        if slot is not None and self.state.ward_queue.is_empty():
            self._admit_ward(case, slot)
            return

        case.transition_to(PatientState.WAITING_WARD, self.now)
        self.state.ward_queue.enqueue(case.id, case.priority)
        if case.assigned_bed is not None:
            self._set_blocked(self.state.blocked_beds + 1)
        logger.debug(f"t={self.now:.1f} case {case.id} waiting for a ward bed")
        self._promote_ward()

    def _admit_ward(self, case: SurgeryCase, slot: ResourceSlot) -> None:
        was_blocking = case.state == PatientState.WAITING_WARD and case.assigned_bed is not None
        self.state.ward_pool.acquire(slot, case.id, self.now)
        case.transition_to(PatientState.IN_WARD, self.now)
        if was_blocking:
            self._set_blocked(self.state.blocked_beds - 1)

        self._release_bed(case)
        case.assigned_bed = slot.id
        case.assigned_bed_kind = ResourceKind.WARD_BED
        case.ward.start = self.now
        case.ward.bed_id = slot.id
        self.collector.record_ward_transfer_delay(case.ward.transfer_delay)

        pc = case.patient_class
        stay = adjust_for_time_of_day(
            self.streams.time_of_day,
            normal_random(self.streams.durations, pc.ward_stay_mean, pc.ward_stay_stddev),
            self.now, pc.time_of_day_variability,
        )
        leave = self.params.discharge_window.next_opening(self.now + stay)
        self.schedule(leave, EventType.WARD_DISCHARGE, case.id)
        logger.debug(
            f"t={self.now:.1f} case {case.id} into {slot.id} for {stay:.0f} min, "
            f"discharge at t={leave:.1f}"
        )

    def _promote_ward(self) -> None:
        queue = self.state.ward_queue
        while not queue.is_empty():
            slot = self.state.ward_pool.find_available()
            if slot is None:
                break
            case = self.state.cases[queue.dequeue()]
            if case.state != PatientState.WAITING_WARD:
                self._stale_entry(case, "ward", EventType.WARD_BED_AVAILABLE)
                return
            self._admit_ward(case, slot)

    def _on_ward_bed_available(self, event: Event) -> None:
        self._promote_ward()

    def _on_ward_discharge(self, event: Event) -> None:
        case = self.state.cases[event.case_id]
        case.ward.end = self.now
        case.discharge_time = self.now
        case.transition_to(PatientState.DISCHARGED, self.now)
        self._release_bed(case)
        logger.debug(f"t={self.now:.1f} case {case.id} discharged from ward")

    def _on_home_discharge(self, event: Event) -> None:
        self._discharge_home(self.state.cases[event.case_id])

    def _discharge_home(self, case: SurgeryCase) -> None:
        case.discharge_time = self.now
        case.transition_to(PatientState.DISCHARGED, self.now)
        self._release_bed(case)
        logger.debug(f"t={self.now:.1f} case {case.id} discharged home")

    # ---- emergencies ----

    def _on_emergency_arrival(self, event: Event) -> None:
        rng = self.streams.emergencies
        distribution = (
            self.params.emergency.patient_class_distribution
            or self.params.patient_class_distribution
        )
        known = {k: w for k, w in distribution.items() if k in self.lookup}
        class_id = weighted_random_selection(rng, known)
        if class_id is None:
            logger.warning("Emergency arrival with no usable class distribution, skipped")
        else:
            patient_class = self.lookup[class_id]
            case = SurgeryCase(
                id=f"emergency-{next(self._emergency_ids)}",
                patient_class=patient_class,
                scheduled_or=None,
                scheduled_arrival=self.now,
                surgery_duration=draw_surgery_duration(rng, patient_class, 0.0),
                priority=EMERGENCY_PRIORITY,
                is_emergency=True,
            )
            self.state.cases[case.id] = case
            logger.debug(f"t={self.now:.1f} emergency {case.id} ({class_id})")
            self._arrive(case)
        self._schedule_next_emergency()

    # ---- nurse shifts ----

    def _on_shift_start(self, event: Event) -> None:
        shift_id = event.payload["shift_id"]
        on_duty = self.state.nurses.start_shift(
            shift_id, event.payload["day"], self.now, event.payload["end"]
        )
        logger.debug(f"t={self.now:.1f} shift {shift_id} starts with {on_duty} nurses")
        self._promote_all_pacu()

    def _on_shift_end(self, event: Event) -> None:
        shift_id = event.payload["shift_id"]
        working_on = self.state.nurses.end_shift(shift_id, self.now)
        if working_on:
            logger.debug(
                f"t={self.now:.1f} shift {shift_id} ends, {working_on} nurses on overtime"
            )

    # ---- end of run ----

    def _on_end_check(self, event: Event) -> None:
        """Record open waits, then release everything still held so its
        minutes are costed."""
        state = self.state
        self._record_censored_waits()
        for slot in state.or_pool.slots.values():
            if slot.busy:
                case_id = slot.case_id
                minutes = state.or_pool.release(slot.id, self.now)
                self.collector.record_or_minutes(slot.id, minutes)
                state.cases[case_id].assigned_or = None
        for pool in list(state.pacu_pools.values()) + [state.ward_pool]:
            for case_id in pool.release_all(self.now).values():
                state.cases[case_id].assigned_bed = None
                state.cases[case_id].assigned_bed_kind = None
        for case_id in state.nurses.release_all(self.now).values():
            state.cases[case_id].assigned_nurse = None
        state.equipment.release_all(self.now)
        self._set_blocked(0)

        in_progress = sum(
            1 for case_id in state.arrived if not state.cases[case_id].is_terminal
        )
        if in_progress:
            logger.info(f"{in_progress} cases still on the pathway at the horizon")

    def _record_censored_waits(self) -> None:
        """Add the wait so far of every patient still queued at the horizon."""
        collector = self.collector
        for case_id in self.state.arrived:
            case = self.state.cases[case_id]
            if case.state == PatientState.WAITING_OR:
                collector.record_or_wait(self.now - case.arrival_time)
                collector.record_censored_wait("or_waiting_time")
            elif case.state in (PatientState.WAITING_PACU1, PatientState.WAITING_PACU2):
                phase = (
                    RecoveryPhase.PHASE_1 if case.state == PatientState.WAITING_PACU1
                    else RecoveryPhase.PHASE_2
                )
                record = case.pacu_record(phase)
                collector.record_pacu_wait(phase, self.now - record.ready_time)
                collector.record_censored_wait(f"pacu_phase{int(phase)}_waiting_time")
            elif case.ward is not None and case.ward.start is None:
                # Waiting for a ward bed or still in handover
                collector.record_ward_transfer_delay(self.now - case.ward.ready_time)
                collector.record_censored_wait("ward_transfer_delay")

    # ---- bookkeeping ----

    def _stale_entry(
        self, case: SurgeryCase, where: str, retry: EventType, **payload
    ) -> None:
        """Log a queue entry whose case has moved on and retry the promotion."""
        logger.warning(
            f"t={self.now:.1f} stale {where} queue entry for case {case.id} "
            f"in state {case.state.value}; retrying"
        )
        self.collector.record_consistency_warning()
        self.schedule(self.now, retry, **payload)

    def _set_blocked(self, count: int) -> None:
        self.state.blocked_beds = count
        self.collector.pacu_blocked.record(self.now, count)

    def _record_or_queue(self) -> None:
        self.collector.or_queue_length.record(self.now, len(self.state.or_queue))


def run_simulation(params: SimulationParams) -> SimulationResults:
    """Execute one simulation run.

    Builds fresh engine state and random streams from ``params``, so two
    calls with identical parameters return identical results.

    Args:
        params: Scenario configuration.

    Returns:
        SimulationResults with per-case timelines, summaries and costs.
    """
    return SimulationEngine(params).run()
