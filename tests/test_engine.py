"""Tests for the simulation engine event handlers."""

import dataclasses
import logging

import pytest

from pacusim.core.entities import (
    EventType, PatientState, ProcessType, RecoveryPhase,
)
from pacusim.core.scenario import (
    DischargeWindow, EmergencyConfig, NurseShift, ScheduleTemplate, SpecialEquipment,
    StaffConfig, SurgeryCaseInput,
)
from pacusim.model.engine import SimulationEngine, run_simulation
from pacusim.model.event_queue import EventOrderError
from pacusim.results.costs import CostConfig


def _case(case_id, start, duration=20.0, class_id="standard", room="OR-1"):
    return SurgeryCaseInput(case_id, class_id, room, start, duration)


def _by_id(results):
    return {c.id: c for c in results.completed_surgeries + results.cancelled_surgeries}


class TestEventScheduling:
    """Test the event loop contract."""

    def test_event_in_past_raises(self, two_case_params):
        engine = SimulationEngine(two_case_params)
        engine.state.now = 100.0
        with pytest.raises(EventOrderError):
            engine.schedule(50.0, EventType.OR_AVAILABLE)

    def test_fresh_state_per_run(self, two_case_params):
        """Each run starts from empty pools and queues."""
        first = run_simulation(two_case_params)
        second = run_simulation(two_case_params)
        assert first.arrivals == second.arrivals == 2
        assert [c.id for c in first.completed_surgeries] == ["case-1", "case-2"]

    def test_params_not_modified(self, two_case_params):
        before = dataclasses.replace(two_case_params)
        run_simulation(two_case_params)
        assert two_case_params == before


class TestOperatingRoom:
    """Test OR admission and the OR waiting queue."""

    def test_priority_order_in_queue(self, make_params, standard_class):
        """The most urgent waiting case gets the next free OR."""
        low = dataclasses.replace(standard_class, id="low", priority=5)
        high = dataclasses.replace(standard_class, id="high", priority=1)
        params = make_params(
            [
                _case("first", 0.0, 60.0),
                _case("routine", 10.0, class_id="low"),
                _case("urgent", 20.0, class_id="high"),
            ],
            patient_classes=[standard_class, low, high],
            pacu_phase1_beds=5, pacu_phase2_beds=5, ward_beds=5,
            staff=StaffConfig(total_nurses=5),
        )
        cases = _by_id(run_simulation(params))
        assert cases["urgent"].or_start_time == 60.0
        assert cases["routine"].or_start_time == 80.0
        assert cases["routine"].or_waiting_time == 70.0

    def test_or_queue_length_series(self, two_case_params):
        results = run_simulation(two_case_params)
        assert results.occupancy["or_queue_length"][:3] == [(0.0, 0), (10.0, 1), (20.0, 0)]

    def test_scheduled_room_is_informational(self, make_params):
        """ORs are pooled; a case booked into a busy room uses a free one."""
        params = make_params(
            [_case("a", 0.0), _case("b", 0.0)],
            number_of_ors=2, pacu_phase1_beds=2, pacu_phase2_beds=2, ward_beds=2,
            staff=StaffConfig(total_nurses=4),
        )
        cases = _by_id(run_simulation(params))
        assert {cases["a"].surgery.or_id, cases["b"].surgery.or_id} == {"OR-1", "OR-2"}
        assert cases["b"].or_waiting_time == 0.0

    def test_unknown_class_skipped(self, make_params, caplog):
        params = make_params([_case("ok", 0.0), _case("bad", 5.0, class_id="ghost")])
        with caplog.at_level(logging.WARNING, logger="pacusim.model.engine"):
            results = run_simulation(params)
        assert results.arrivals == 1
        assert "ghost" in caplog.text

    def test_or_overtime(self, make_params):
        """Surgery minutes after the template close time count as OR overtime."""
        params = make_params(
            [_case("late", 900.0, 120.0)],
            schedule_template=ScheduleTemplate(or_end_time=960),
        )
        results = run_simulation(params)
        assert results.or_overtime_minutes == pytest.approx(60.0)

    def test_or_overtime_either_side_of_midnight(self, make_params):
        """Surgery at 23:00 and at 01:00 both lie wholly outside opening hours."""
        params = make_params(
            [_case("late", 1380.0, 60.0, room="OR-1"), _case("night", 1500.0, 60.0, room="OR-2")],
            simulation_days=2, number_of_ors=2, pacu_phase1_beds=2, pacu_phase2_beds=2,
            ward_beds=2, staff=StaffConfig(total_nurses=4),
        )
        results = run_simulation(params)
        assert results.or_overtime_minutes == pytest.approx(120.0)

    def test_time_of_day_morning_speedup(self, make_params, standard_class):
        fast = dataclasses.replace(standard_class, time_of_day_variability=0.4)
        params = make_params([_case("a", 480.0, 100.0)], patient_classes=[fast])
        case = run_simulation(params).completed_surgeries[0]
        duration = case.or_end_time - case.or_start_time
        assert 80.0 <= duration <= 100.0


class TestPacu:
    """Test PACU admission, blocking and nurse limits."""

    def test_phase1_waits_for_bed(self, make_params):
        """A held Phase I bed delays the next patient until the holder moves on."""
        params = make_params(
            [_case("a", 0.0, room="OR-1"), _case("b", 0.0, room="OR-2")],
            number_of_ors=2, ward_beds=5, staff=StaffConfig(total_nurses=3),
        )
        results = run_simulation(params)
        cases = _by_id(results)
        assert cases["a"].pacu_phase1.start == 20.0
        assert cases["b"].pacu_phase1.start == 50.0
        assert cases["b"].pacu_phase1.wait == 30.0
        assert cases["b"].pacu_phase1.waited_for_bed
        assert results.pacu_waits_for_bed[RecoveryPhase.PHASE_1] == 1

    def test_phase2_bed_released_on_ward_transfer(self, make_params):
        params = make_params(
            [_case("a", 0.0, room="OR-1"), _case("b", 0.0, room="OR-2")],
            number_of_ors=2, ward_beds=5, staff=StaffConfig(total_nurses=3),
        )
        cases = _by_id(run_simulation(params))
        assert cases["a"].ward_arrival_time == 80.0
        assert cases["b"].pacu_phase2.start == 80.0
        assert cases["b"].pacu_phase2.waited_for_bed

    def test_phase1_bed_freed_while_waiting_for_phase2(self, make_params, standard_class):
        """A patient queued for Phase II gives the Phase I bed to the next case."""
        long_phase2 = dataclasses.replace(standard_class, pacu_phase2_mean=100.0)
        params = make_params(
            [
                _case("c1", 0.0, room="OR-1"),
                _case("c2", 0.0, room="OR-2"),
                _case("c3", 40.0, room="OR-3"),
            ],
            patient_classes=[long_phase2],
            number_of_ors=3, ward_beds=5, staff=StaffConfig(total_nurses=5),
        )
        results = run_simulation(params)
        cases = _by_id(results)
        # c2 leaves Phase I at 80 but c1 holds the only Phase II bed until 150
        assert cases["c2"].pacu_phase2.waited_for_bed
        assert cases["c2"].pacu_phase2.start == 150.0
        assert cases["c3"].pacu_phase1_start_time == 80.0
        assert cases["c3"].pacu_phase1.wait == pytest.approx(20.0)
        assert results.pacu_blocked_time_ratio == 0.0

    def test_waits_for_nurse(self, make_params):
        """One ratio-1 nurse serves one Phase I patient at a time."""
        params = make_params(
            [_case("a", 0.0, room="OR-1"), _case("b", 0.0, room="OR-2")],
            number_of_ors=2, pacu_phase1_beds=2, ward_beds=5,
            staff=StaffConfig(total_nurses=1),
        )
        results = run_simulation(params)
        cases = _by_id(results)
        assert cases["b"].pacu_phase1.start == 50.0
        assert cases["b"].pacu_phase1.waited_for_nurse
        assert not cases["b"].pacu_phase1.waited_for_bed
        assert cases["a"].pacu_phase2.start == 80.0
        assert results.pacu_waits_for_nurse[RecoveryPhase.PHASE_1] == 1

    def test_ward_full_blocks_pacu(self, make_params):
        """With no ward bed the patient keeps the Phase II bed to the horizon."""
        params = make_params([_case("a", 0.0)], ward_beds=0)
        results = run_simulation(params)
        case = results.completed_surgeries[0]
        assert case.state == PatientState.WAITING_WARD
        assert results.in_progress_count == 1
        assert results.pacu_blocked_time_ratio == pytest.approx((1440.0 - 80.0) / (2 * 1440.0))
        assert results.costs.pacu_phase2_cost == pytest.approx((1440.0 - 50.0) * 2.0)

    def test_ward_transfer_delay(self, make_params):
        params = make_params(
            [_case("a", 0.0, room="OR-1"), _case("b", 0.0, room="OR-2")],
            number_of_ors=2, pacu_phase1_beds=2, pacu_phase2_beds=2, ward_beds=1,
            staff=StaffConfig(total_nurses=4),
        )
        results = run_simulation(params)
        cases = _by_id(results)
        # Both ready at 80; the second waits for the first's 60-minute stay
        assert cases["b"].ward_transfer_delay == pytest.approx(60.0)
        assert results.waits["ward_transfer_delay"].max == pytest.approx(60.0)

    def test_handover_delay_postpones_ward_transfer(self, make_params, standard_class):
        """A drawn handover delay keeps the patient in PACU before the ward."""
        delayed = dataclasses.replace(
            standard_class, transfer_delay_probability=1.0, transfer_delay_minutes=30.0
        )
        params = make_params([_case("a", 0.0)], patient_classes=[delayed], ward_beds=2)
        results = run_simulation(params)
        case = results.completed_surgeries[0]
        handover = case.ward.handover_delay
        assert handover > 0
        assert case.ready_for_ward_time == 80.0
        assert case.ward_arrival_time == pytest.approx(80.0 + handover)
        assert case.ward_transfer_delay == pytest.approx(handover)
        assert results.waits["ward_handover_delay"].samples == [handover]
        # The Phase II bed is held through the handover
        assert case.pacu_time == pytest.approx(30.0 + 30.0 + handover)

    def test_no_handover_delay_by_default(self, two_case_params):
        results = run_simulation(two_case_params)
        assert results.waits["ward_handover_delay"].count == 0
        for case in results.completed_surgeries:
            assert case.ward.handover_delay == 0.0


class TestPathways:
    """Test process-type shortcuts."""

    def test_direct_transfer_skips_pacu(self, make_params, standard_class):
        direct = dataclasses.replace(
            standard_class, id="direct", process_type=ProcessType.DIRECT_TRANSFER
        )
        params = make_params([_case("a", 0.0, class_id="direct")], patient_classes=[direct])
        results = run_simulation(params)
        case = results.completed_surgeries[0]
        assert case.pacu_phase1 is None and case.pacu_phase2 is None
        assert case.ward_arrival_time == 20.0
        assert case.state == PatientState.DISCHARGED
        assert results.costs.pacu_cost == 0.0

    def test_outpatient_goes_home(self, make_params, standard_class):
        day_case = dataclasses.replace(
            standard_class, id="day", process_type=ProcessType.OUTPATIENT,
            pacu_phase2_mean=0.0,
        )
        params = make_params([_case("a", 0.0, class_id="day")], patient_classes=[day_case])
        results = run_simulation(params)
        case = results.completed_surgeries[0]
        assert case.pacu_phase2 is None
        assert case.ward is None
        assert case.discharge_time == 50.0
        assert results.costs.ward_cost == 0.0


class TestHorizon:
    """Test end-of-run handling."""

    def test_in_flight_case_costed_to_horizon(self, make_params):
        params = make_params([_case("late", 1430.0, 60.0)])
        results = run_simulation(params)
        case = results.completed_surgeries[0]
        assert case.state == PatientState.IN_OR
        assert results.or_busy_by_room["OR-1"] == pytest.approx(10.0)
        assert results.costs.or_cost == pytest.approx(100.0)

    def test_cases_beyond_horizon_ignored(self, make_params):
        params = make_params([_case("a", 0.0), _case("next-day", 1500.0)])
        assert run_simulation(params).arrivals == 1

    def test_or_waits_still_open_are_counted(self, make_params):
        """With no OR every patient waits to the horizon and still gets a sample."""
        params = make_params(
            [_case(f"c{i}", 100.0 * i) for i in range(5)], number_of_ors=0
        )
        results = run_simulation(params)
        waits = results.waits["or_waiting_time"]
        assert waits.count == 5
        assert waits.max == pytest.approx(1440.0)
        assert waits.mean == pytest.approx(1240.0)
        assert waits.p_delay == 1.0
        assert results.censored_waits == {"or_waiting_time": 5}
        assert results.to_dict()["censored_or_waiting_time"] == 5

    def test_ward_wait_still_open_is_counted(self, make_params):
        params = make_params([_case("a", 0.0)], ward_beds=0)
        results = run_simulation(params)
        assert results.waits["ward_transfer_delay"].samples == [pytest.approx(1440.0 - 80.0)]
        assert results.censored_waits == {"ward_transfer_delay": 1}

    def test_pacu_wait_still_open_is_counted(self, make_params):
        params = make_params([_case("a", 0.0)], pacu_phase1_beds=0)
        results = run_simulation(params)
        assert results.completed_surgeries[0].state == PatientState.WAITING_PACU1
        assert results.waits["pacu_phase1_waiting_time"].samples == [
            pytest.approx(1440.0 - 20.0)
        ]
        assert results.censored_waits == {"pacu_phase1_waiting_time": 1}


class TestSpecialEquipment:
    """Test equipment gating of Phase I admission."""

    def _params(self, make_params, **overrides):
        warmer = SpecialEquipment(
            id="warmer", name="Patient warmer", count=1,
            required_by_classes=["standard"], use_time_minutes=45.0,
        )
        settings = dict(
            number_of_ors=2, pacu_phase1_beds=2, pacu_phase2_beds=2, ward_beds=2,
            staff=StaffConfig(total_nurses=4), special_equipment=[warmer],
        )
        settings.update(overrides)
        return make_params(
            [_case("a", 0.0, room="OR-1"), _case("b", 0.0, room="OR-2")], **settings
        )

    def test_waits_for_equipment(self, make_params):
        """The second patient waits for the only warmer despite a free bed."""
        results = run_simulation(self._params(make_params))
        cases = _by_id(results)
        assert cases["a"].pacu_phase1.equipment_ids == ["warmer-1"]
        assert cases["b"].pacu_phase1.start == 65.0
        assert cases["b"].pacu_phase1.waited_for_equipment
        assert not cases["b"].pacu_phase1.waited_for_bed
        assert not cases["b"].pacu_phase1.waited_for_nurse
        assert results.pacu_waits_for_equipment == 1

    def test_equipment_utilisation_and_cost(self, make_params):
        params = self._params(make_params, costs=CostConfig(equipment_cost_per_minute=1.0))
        results = run_simulation(params)
        warmer = results.equipment_utilisation["warmer"]
        assert warmer.capacity == 1
        assert warmer.peak_occupancy == 1
        assert warmer.mean_occupancy == pytest.approx(90.0 / 1440.0)
        assert results.occupancy["equipment:warmer"][:3] == [(0.0, 0), (20.0, 1), (110.0, 0)]
        assert results.costs.equipment_cost == pytest.approx(90.0)

    def test_other_classes_not_gated(self, make_params, standard_class):
        other = dataclasses.replace(standard_class, id="other")
        params = self._params(
            make_params,
            patient_classes=[standard_class, other],
            custom_cases=[_case("a", 0.0, room="OR-1"), _case("b", 0.0, class_id="other", room="OR-2")],
        )
        cases = _by_id(run_simulation(params))
        assert cases["b"].pacu_phase1.start == 20.0
        assert cases["b"].pacu_phase1.equipment_ids == []


class TestDischargeWindow:
    """Test the daytime discharge window."""

    def test_outpatient_waits_for_morning(self, make_params, standard_class):
        """A patient ready at 00:50 goes home at 08:00 and keeps the bed till then."""
        day_case = dataclasses.replace(
            standard_class, id="day", process_type=ProcessType.OUTPATIENT,
            pacu_phase2_mean=0.0,
        )
        params = make_params(
            [_case("a", 0.0, class_id="day")], patient_classes=[day_case],
            discharge_window=DischargeWindow(enabled=True),
        )
        results = run_simulation(params)
        case = results.completed_surgeries[0]
        assert case.ready_for_ward_time == 50.0
        assert case.discharge_time == 480.0
        assert case.state == PatientState.DISCHARGED
        assert results.costs.pacu_phase1_cost == pytest.approx((480.0 - 20.0) * 3.0)

    def test_ward_discharge_deferred(self, make_params):
        params = make_params([_case("a", 0.0)], discharge_window=DischargeWindow(enabled=True))
        case = run_simulation(params).completed_surgeries[0]
        assert case.ward_arrival_time == 80.0
        assert case.ward.end == 480.0
        assert case.discharge_time == 480.0

    def test_disabled_window_discharges_at_once(self, make_params):
        case = run_simulation(make_params([_case("a", 0.0)])).completed_surgeries[0]
        assert case.discharge_time == 140.0


class TestEmergencies:
    """Test the emergency arrival stream."""

    def test_emergency_cases(self, make_params, default_seed):
        params = make_params(
            [],
            simulation_days=3,
            pacu_phase1_beds=4, pacu_phase2_beds=4, ward_beds=10,
            staff=StaffConfig(total_nurses=4),
            emergency=EmergencyConfig(enabled=True, arrival_rate_mean_per_day=4.0),
            random_seed=default_seed,
        )
        results = run_simulation(params)
        assert results.emergency_arrivals > 0
        assert results.emergency_arrivals == results.arrivals
        for case in results.completed_surgeries:
            assert case.is_emergency
            assert case.priority == 0
            assert case.id.startswith("emergency-")

    def test_disabled_means_none(self, two_case_params):
        assert run_simulation(two_case_params).emergency_arrivals == 0


class TestEnhancedNurses:
    """Test shift-based nurse availability in the engine."""

    def _staff(self, start_minute, duration):
        return StaffConfig(
            use_enhanced_nurse_model=True,
            nurse_shifts=[NurseShift(
                id="s", start_minute=start_minute, duration_minutes=duration,
                nurses_per_day=[1] * 7,
            )],
        )

    def test_waits_for_shift_start(self, make_params):
        """A patient out of surgery at night waits for the day shift."""
        params = make_params([_case("a", 0.0)], staff=self._staff(480, 480))
        results = run_simulation(params)
        phase1 = results.completed_surgeries[0].pacu_phase1
        assert phase1.start == 480.0
        assert phase1.waited_for_nurse
        assert results.nurses.model == "skill_shift"

    def test_night_shift_from_previous_day(self, make_params):
        """A shift that started yesterday evening covers the early hours."""
        params = make_params([_case("a", 0.0)], staff=self._staff(22 * 60, 9 * 60))
        results = run_simulation(params)
        assert results.completed_surgeries[0].pacu_phase1.start == 20.0

    def test_overtime_reported(self, make_params):
        """Care running past the shift end is overtime."""
        params = make_params([_case("a", 450.0)], staff=self._staff(0, 480))
        results = run_simulation(params)
        # Phase I 470-500 runs 20 minutes past the 480 shift end
        assert results.nurses.overtime_minutes == pytest.approx(20.0)
        assert results.costs.nurse_overtime_cost > 0
