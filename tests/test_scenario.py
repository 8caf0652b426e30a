"""Tests for scenario configuration."""

import logging

import pytest

from pacusim.core.entities import ProcessType, RecoveryPhase, ScheduleMode
from pacusim.core.presets import default_patient_classes, realistic_params
from pacusim.core.scenario import (
    DischargeWindow,
    EmergencyConfig,
    NurseShift,
    ORBlock,
    PatientClass,
    ScheduleTemplate,
    SimulationParams,
    SpecialEquipment,
    StaffConfig,
)


class TestPatientClass:
    """Test patient class validation and pathway flags."""

    def test_process_type_from_string(self):
        pc = PatientClass(id="X", process_type="directTransfer")
        assert pc.process_type == ProcessType.DIRECT_TRANSFER
        assert pc.skips_pacu
        assert not pc.skips_ward

    def test_outpatient_skips_ward(self):
        pc = PatientClass(id="X", process_type=ProcessType.OUTPATIENT)
        assert pc.skips_ward
        assert not pc.skips_pacu

    def test_zero_phase2_mean_skips_phase2(self):
        assert PatientClass(id="X", pacu_phase2_mean=0.0).skips_phase2
        assert not PatientClass(id="X").skips_phase2

    def test_priority_must_be_positive(self):
        """Priority 0 is reserved for emergencies."""
        with pytest.raises(ValueError, match="priority"):
            PatientClass(id="X", priority=0)

    def test_cancellation_risk_range(self):
        with pytest.raises(ValueError, match="cancellation_risk"):
            PatientClass(id="X", cancellation_risk=1.5)

    def test_negative_duration_rejected(self):
        with pytest.raises(ValueError, match="surgery_duration_mean"):
            PatientClass(id="X", surgery_duration_mean=-1.0)

    def test_transfer_delay_probability_range(self):
        with pytest.raises(ValueError, match="transfer_delay_probability"):
            PatientClass(id="X", transfer_delay_probability=1.2)
        with pytest.raises(ValueError, match="transfer_delay_minutes"):
            PatientClass(id="X", transfer_delay_minutes=-5.0)

    def test_unknown_process_type_rejected(self):
        with pytest.raises(ValueError):
            PatientClass(id="X", process_type="teleport")


class TestStaffing:
    """Test nurse staffing configuration."""

    def test_ratio_per_phase(self):
        staff = StaffConfig(phase1_nurse_ratio=1.0, phase2_nurse_ratio=3.0)
        assert staff.ratio_for(RecoveryPhase.PHASE_1) == 1.0
        assert staff.ratio_for(RecoveryPhase.PHASE_2) == 3.0

    def test_ratio_must_be_positive(self):
        with pytest.raises(ValueError):
            StaffConfig(phase2_nurse_ratio=0.0)

    def test_shift_needs_seven_days(self):
        with pytest.raises(ValueError, match="7 values"):
            NurseShift(id="s", nurses_per_day=[1, 2, 3])

    def test_shift_headcount_wraps_week(self):
        shift = NurseShift(id="s", nurses_per_day=[1, 2, 3, 4, 5, 6, 7])
        assert shift.headcount(0) == 1
        assert shift.headcount(8) == 2
        assert shift.headcount(-1) == 7
        assert shift.max_headcount == 7


class TestBlocksAndTemplate:
    """Test OR block and template validation."""

    def test_block_window_validated(self):
        with pytest.raises(ValueError, match="start < end"):
            ORBlock(id="b", or_id="OR-1", day=0, start=600, end=600)

    def test_block_day_of_week(self):
        with pytest.raises(ValueError):
            ORBlock(id="b", or_id="OR-1", day=7, start=0, end=60)
        block = ORBlock(id="b", or_id="OR-1", day=2, start=0, end=60)
        assert block.applies_to(2)
        assert block.applies_to(9)
        assert not block.applies_to(3)

    def test_template_hours_validated(self):
        with pytest.raises(ValueError):
            ScheduleTemplate(or_start_time=960, or_end_time=480)


class TestSimulationParams:
    """Test top-level parameters."""

    def test_default_classes_filled(self):
        params = SimulationParams()
        assert [pc.id for pc in params.patient_classes] == ["HERKO", "OSASTO", "PAIKI", "PKL"]
        assert set(params.patient_class_distribution) == {"HERKO", "OSASTO", "PAIKI", "PKL"}

    def test_horizon_and_or_ids(self):
        params = SimulationParams(simulation_days=2, number_of_ors=3)
        assert params.horizon == 2880.0
        assert params.or_ids == ["OR-1", "OR-2", "OR-3"]

    def test_schedule_mode_from_string(self):
        assert SimulationParams(schedule_mode="block").schedule_mode == ScheduleMode.BLOCK

    def test_invalid_values_rejected(self):
        with pytest.raises(ValueError, match="simulation_days"):
            SimulationParams(simulation_days=0)
        with pytest.raises(ValueError, match="ward_beds"):
            SimulationParams(ward_beds=-1)

    def test_duplicate_class_ids_rejected(self):
        with pytest.raises(ValueError, match="unique"):
            SimulationParams(patient_classes=[PatientClass(id="A"), PatientClass(id="A")])

    def test_unknown_distribution_class_warns(self, caplog):
        with caplog.at_level(logging.WARNING, logger="pacusim.core.scenario"):
            SimulationParams(
                patient_classes=[PatientClass(id="A")],
                patient_class_distribution={"A": 1.0, "ghost": 1.0},
            )
        assert "ghost" in caplog.text

    def test_clone_with_seed(self, default_seed):
        params = SimulationParams(random_seed=default_seed, ward_beds=7)
        clone = params.clone_with_seed(99)
        assert clone.random_seed == 99
        assert clone.ward_beds == 7
        assert params.random_seed == default_seed

    def test_emergency_active(self):
        assert not EmergencyConfig(enabled=True, arrival_rate_mean_per_day=0.0).active
        assert not EmergencyConfig(enabled=False, arrival_rate_mean_per_day=2.0).active
        assert EmergencyConfig(enabled=True, arrival_rate_mean_per_day=2.0).active


class TestSpecialEquipment:
    """Test equipment configuration."""

    def test_use_time_positive(self):
        with pytest.raises(ValueError, match="use_time_minutes"):
            SpecialEquipment(id="warmer", use_time_minutes=0.0)

    def test_duplicate_ids_rejected(self):
        with pytest.raises(ValueError, match="equipment ids"):
            SimulationParams(special_equipment=[
                SpecialEquipment(id="warmer"), SpecialEquipment(id="warmer"),
            ])

    def test_unknown_class_warns(self, caplog):
        with caplog.at_level(logging.WARNING, logger="pacusim.core.scenario"):
            SimulationParams(
                patient_classes=[PatientClass(id="A")],
                special_equipment=[SpecialEquipment(id="vent", required_by_classes=["Z"])],
            )
        assert "vent" in caplog.text


class TestDischargeWindow:
    """Test the daytime discharge window."""

    def test_disabled_always_open(self):
        window = DischargeWindow()
        assert window.is_open(60.0)
        assert window.next_opening(60.0) == 60.0

    def test_open_hours_inclusive(self):
        window = DischargeWindow(enabled=True)
        assert window.is_open(480.0)
        assert window.is_open(1200.0)
        assert not window.is_open(1201.0)
        assert window.is_open(1440.0 + 600.0)

    def test_next_opening(self):
        window = DischargeWindow(enabled=True)
        # Before opening: same morning; after closing: next morning
        assert window.next_opening(60.0) == 480.0
        assert window.next_opening(1300.0) == 1440.0 + 480.0
        assert window.next_opening(700.0) == 700.0
        assert window.next_opening(2 * 1440.0 + 100.0) == 2 * 1440.0 + 480.0

    def test_bounds_validated(self):
        with pytest.raises(ValueError):
            DischargeWindow(start_minute=900, end_minute=800)
        with pytest.raises(ValueError):
            DischargeWindow(end_minute=1440)


class TestPresets:
    """Test ready-made reference data."""

    def test_default_class_pathways(self):
        classes = {pc.id: pc for pc in default_patient_classes()}
        assert classes["OSASTO"].process_type == ProcessType.STANDARD
        assert classes["PAIKI"].skips_ward
        assert classes["PKL"].skips_phase2

    def test_realistic_params(self):
        params = realistic_params()
        assert params.schedule_mode == ScheduleMode.BLOCK
        assert params.pacu_phase1_beds == 6
        assert params.pacu_phase2_beds == 8
        assert params.ward_beds == 24
        assert params.staff.use_enhanced_nurse_model
        assert params.emergency.arrival_rate_mean_per_day == 1.5
        assert {b.or_id for b in params.or_blocks} == {"OR-1", "OR-2", "OR-3"}
        assert {b.day for b in params.or_blocks} == {0, 1, 2, 3, 4}
        assert {eq.id for eq in params.special_equipment} == {"monitoring", "ventilator", "warmer"}
        assert params.discharge_window.enabled
