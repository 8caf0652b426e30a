"""Pytest fixtures for pacusim tests."""

from typing import Callable, List

import pytest

from pacusim.core.entities import ProcessType, ScheduleMode
from pacusim.core.scenario import (
    EmergencyConfig, PatientClass, SimulationParams, StaffConfig, SurgeryCaseInput,
)


@pytest.fixture
def default_seed() -> int:
    """Default random seed for reproducible tests."""
    return 42


@pytest.fixture
def standard_class() -> PatientClass:
    """Fixed-duration standard class: 20 min OR, 30+30 min PACU, 60 min ward."""
    return PatientClass(
        id="standard",
        name="Standard",
        priority=3,
        surgery_duration_mean=20.0,
        surgery_duration_stddev=0.0,
        pacu_phase1_mean=30.0,
        pacu_phase1_stddev=0.0,
        pacu_phase2_mean=30.0,
        pacu_phase2_stddev=0.0,
        ward_stay_mean=60.0,
        ward_stay_stddev=0.0,
        process_type=ProcessType.STANDARD,
        cancellation_risk=0.0,
        time_of_day_variability=0.0,
    )


@pytest.fixture
def make_params(standard_class) -> Callable[..., SimulationParams]:
    """Factory for deterministic custom-list parameters.

    Emergencies disabled, no cancellation, overrun or time-of-day noise.
    Keyword arguments override any SimulationParams field.
    """

    def _make(cases: List[SurgeryCaseInput], **overrides) -> SimulationParams:
        settings = dict(
            simulation_days=1,
            number_of_ors=1,
            patient_classes=[standard_class],
            patient_class_distribution={standard_class.id: 1.0},
            schedule_mode=ScheduleMode.CUSTOM,
            custom_cases=cases,
            pacu_phase1_beds=1,
            pacu_phase2_beds=1,
            ward_beds=1,
            staff=StaffConfig(total_nurses=1),
            emergency=EmergencyConfig(enabled=False),
        )
        settings.update(overrides)
        return SimulationParams(**settings)

    return _make


@pytest.fixture
def two_case_params(make_params) -> SimulationParams:
    """1 OR, one bed each, 1 nurse, cases at t=0 and t=10 of 20 minutes."""
    return make_params([
        SurgeryCaseInput(id="case-1", class_id="standard", or_room="OR-1",
                         scheduled_start=0.0, duration=20.0),
        SurgeryCaseInput(id="case-2", class_id="standard", or_room="OR-1",
                         scheduled_start=10.0, duration=20.0),
    ])
