"""Default reference data and a ready-made realistic scenario.

Class ids follow the Finnish hospital categories:

- HERKO: same-day admission ("heräämö kotiin"), ward stay after PACU
- OSASTO: inpatient, ward stay after PACU
- PAIKI: day surgery, home after PACU
- PKL: outpatient clinic procedure, short Phase I only, home after PACU
"""

from typing import List

from pacusim.core.entities import MINUTES_PER_DAY, ProcessType, ScheduleMode
from pacusim.core.scenario import (
    DischargeWindow, EmergencyConfig, NurseShift, NurseSkill, ORBlock, PatientClass,
    ScheduleTemplate, SimulationParams, SpecialEquipment, StaffConfig,
)
from pacusim.results.costs import CostConfig


def default_patient_classes() -> List[PatientClass]:
    return [
        PatientClass(
            id="HERKO",
            name="Same-day admission",
            priority=2,
            surgery_duration_mean=90.0,
            surgery_duration_stddev=25.0,
            pacu_phase1_mean=60.0,
            pacu_phase1_stddev=15.0,
            pacu_phase2_mean=45.0,
            pacu_phase2_stddev=15.0,
            ward_stay_mean=2 * MINUTES_PER_DAY,
            ward_stay_stddev=480.0,
            process_type=ProcessType.STANDARD,
            cancellation_risk=0.03,
            time_of_day_variability=0.2,
            transfer_delay_probability=0.1,
            transfer_delay_minutes=30.0,
        ),
        PatientClass(
            id="OSASTO",
            name="Inpatient",
            priority=1,
            surgery_duration_mean=150.0,
            surgery_duration_stddev=40.0,
            pacu_phase1_mean=90.0,
            pacu_phase1_stddev=20.0,
            pacu_phase2_mean=60.0,
            pacu_phase2_stddev=20.0,
            ward_stay_mean=4 * MINUTES_PER_DAY,
            ward_stay_stddev=MINUTES_PER_DAY,
            process_type=ProcessType.STANDARD,
            cancellation_risk=0.05,
            time_of_day_variability=0.2,
            transfer_delay_probability=0.15,
            transfer_delay_minutes=45.0,
        ),
        PatientClass(
            id="PAIKI",
            name="Day surgery",
            priority=3,
            surgery_duration_mean=60.0,
            surgery_duration_stddev=15.0,
            pacu_phase1_mean=45.0,
            pacu_phase1_stddev=10.0,
            pacu_phase2_mean=60.0,
            pacu_phase2_stddev=20.0,
            ward_stay_mean=0.0,
            ward_stay_stddev=0.0,
            process_type=ProcessType.OUTPATIENT,
            cancellation_risk=0.04,
            time_of_day_variability=0.15,
        ),
        PatientClass(
            id="PKL",
            name="Outpatient clinic",
            priority=4,
            surgery_duration_mean=30.0,
            surgery_duration_stddev=10.0,
            pacu_phase1_mean=30.0,
            pacu_phase1_stddev=10.0,
            pacu_phase2_mean=0.0,
            pacu_phase2_stddev=0.0,
            ward_stay_mean=0.0,
            ward_stay_stddev=0.0,
            process_type=ProcessType.OUTPATIENT,
            cancellation_risk=0.02,
            time_of_day_variability=0.1,
        ),
    ]


def default_nurse_skills() -> List[NurseSkill]:
    return [
        NurseSkill(
            id="senior",
            name="Senior recovery nurse",
            can_handle_phase1=True,
            can_handle_phase2=True,
            efficiency_multiplier=1.2,
        ),
        NurseSkill(
            id="standard",
            name="Recovery nurse",
            can_handle_phase1=True,
            can_handle_phase2=True,
            efficiency_multiplier=1.0,
        ),
        NurseSkill(
            id="step_down",
            name="Step-down nurse",
            can_handle_phase1=False,
            can_handle_phase2=True,
            efficiency_multiplier=0.9,
        ),
    ]


def default_nurse_shifts() -> List[NurseShift]:
    """Three overlapping shifts; weekends run a skeleton crew."""
    return [
        NurseShift(
            id="morning",
            name="Morning",
            start_minute=7 * 60,
            duration_minutes=8 * 60,
            nurses_per_day=[6, 6, 6, 6, 6, 2, 2],
            skill_distribution={"senior": 0.3, "standard": 0.5, "step_down": 0.2},
        ),
        NurseShift(
            id="evening",
            name="Evening",
            start_minute=14 * 60,
            duration_minutes=8 * 60,
            nurses_per_day=[4, 4, 4, 4, 4, 2, 2],
            skill_distribution={"senior": 0.25, "standard": 0.5, "step_down": 0.25},
        ),
        NurseShift(
            id="night",
            name="Night",
            start_minute=22 * 60,
            duration_minutes=9 * 60,
            nurses_per_day=[2, 2, 2, 2, 2, 2, 2],
            skill_distribution={"senior": 0.5, "standard": 0.5},
        ),
    ]


def default_special_equipment() -> List[SpecialEquipment]:
    return [
        SpecialEquipment(
            id="monitoring",
            name="Advanced monitoring",
            count=5,
            required_by_classes=["OSASTO"],
            use_time_minutes=60.0,
        ),
        SpecialEquipment(
            id="ventilator",
            name="Ventilator",
            count=3,
            required_by_classes=["OSASTO"],
            use_time_minutes=120.0,
        ),
        SpecialEquipment(
            id="warmer",
            name="Patient warmer",
            count=6,
            required_by_classes=["HERKO", "OSASTO", "PAIKI"],
            use_time_minutes=45.0,
        ),
    ]


def default_cost_config() -> CostConfig:
    return CostConfig()


def _block(or_id: str, day: int, start: int, end: int, classes: List[str], label: str) -> ORBlock:
    return ORBlock(
        id=f"block-{or_id}-{day}-{start}",
        or_id=or_id,
        day=day,
        start=start,
        end=end,
        allowed_classes=classes,
        label=label,
    )


def realistic_or_blocks() -> List[ORBlock]:
    """Monday to Friday block week for three ORs (Friday closes at 15:00)."""
    return [
        # Monday
        _block("OR-1", 0, 480, 720, ["HERKO", "PAIKI"], "Morning HERKO/PAIKI"),
        _block("OR-1", 0, 720, 960, ["PAIKI"], "Afternoon PAIKI"),
        _block("OR-2", 0, 480, 960, ["OSASTO"], "All day OSASTO"),
        _block("OR-3", 0, 480, 720, ["PKL"], "Morning PKL"),
        _block("OR-3", 0, 720, 960, ["HERKO"], "Afternoon HERKO"),
        # Tuesday
        _block("OR-1", 1, 480, 960, ["PAIKI"], "All day PAIKI"),
        _block("OR-2", 1, 480, 720, ["HERKO"], "Morning HERKO"),
        _block("OR-2", 1, 720, 960, ["OSASTO"], "Afternoon OSASTO"),
        _block("OR-3", 1, 480, 960, ["PKL", "HERKO"], "All day PKL/HERKO"),
        # Wednesday
        _block("OR-1", 2, 480, 720, ["OSASTO"], "Morning OSASTO"),
        _block("OR-1", 2, 720, 960, ["HERKO"], "Afternoon HERKO"),
        _block("OR-2", 2, 480, 960, ["PAIKI"], "All day PAIKI"),
        _block("OR-3", 2, 480, 960, ["PKL"], "All day PKL"),
        # Thursday
        _block("OR-1", 3, 480, 960, ["HERKO", "PAIKI"], "All day HERKO/PAIKI"),
        _block("OR-2", 3, 480, 960, ["OSASTO"], "All day OSASTO"),
        _block("OR-3", 3, 480, 720, ["PKL"], "Morning PKL"),
        _block("OR-3", 3, 720, 960, ["PAIKI"], "Afternoon PAIKI"),
        # Friday
        _block("OR-1", 4, 480, 720, ["PAIKI"], "Morning PAIKI"),
        _block("OR-1", 4, 720, 900, ["HERKO"], "Afternoon HERKO"),
        _block("OR-2", 4, 480, 900, ["OSASTO"], "All day OSASTO"),
        _block("OR-3", 4, 480, 900, ["PKL", "PAIKI"], "All day PKL/PAIKI"),
    ]


def realistic_params(random_seed: int = 42) -> SimulationParams:
    """A one-week block-scheduled scenario with the enhanced nurse model,
    special equipment and daytime discharges."""
    return SimulationParams(
        simulation_days=5,
        number_of_ors=3,
        patient_classes=default_patient_classes(),
        patient_class_distribution={
            "HERKO": 0.30,
            "OSASTO": 0.25,
            "PAIKI": 0.35,
            "PKL": 0.10,
        },
        schedule_mode=ScheduleMode.BLOCK,
        schedule_template=ScheduleTemplate(average_daily_surgeries=8),
        or_blocks=realistic_or_blocks(),
        pacu_phase1_beds=6,
        pacu_phase2_beds=8,
        ward_beds=24,
        staff=StaffConfig(
            total_nurses=12,
            phase1_nurse_ratio=1.0,
            phase2_nurse_ratio=2.0,
            use_enhanced_nurse_model=True,
            nurse_skills=default_nurse_skills(),
            nurse_shifts=default_nurse_shifts(),
        ),
        emergency=EmergencyConfig(
            enabled=True,
            arrival_rate_mean_per_day=1.5,
            patient_class_distribution={"HERKO": 0.4, "OSASTO": 0.6},
        ),
        special_equipment=default_special_equipment(),
        discharge_window=DischargeWindow(enabled=True, start_minute=480, end_minute=1200),
        costs=CostConfig(or_cost_per_minute=12.0, cost_per_cancellation=600.0),
        random_seed=random_seed,
    )
