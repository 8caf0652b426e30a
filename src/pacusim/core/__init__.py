"""Core foundation layer: scenario configuration, distributions, schedules."""

from pacusim.core.scenario import (
    DischargeWindow,
    EmergencyConfig,
    NurseShift,
    NurseSkill,
    ORBlock,
    PatientClass,
    ScheduleTemplate,
    SimulationParams,
    SpecialEquipment,
    StaffConfig,
    SurgeryCaseInput,
)
from pacusim.core.distributions import RandomStreams

__all__ = [
    "DischargeWindow",
    "EmergencyConfig",
    "NurseShift",
    "NurseSkill",
    "ORBlock",
    "PatientClass",
    "ScheduleTemplate",
    "SimulationParams",
    "SpecialEquipment",
    "StaffConfig",
    "SurgeryCaseInput",
    "RandomStreams",
]
