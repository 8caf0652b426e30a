"""Load and save scenario parameters.

Parameters round-trip through plain dictionaries, so a scenario can be
kept in a YAML or JSON file next to the analysis that uses it.

Example usage:
    from pathlib import Path
    from pacusim.core.config import load_params
    from pacusim import run_simulation

    params = load_params(Path("config/scenarios/week_blocks.yaml"))
    results = run_simulation(params.clone_with_seed(7))
"""

import dataclasses
import json
import logging
import os
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from pacusim.core.scenario import (
    DischargeWindow, EmergencyConfig, NurseShift, NurseSkill, ORBlock, PatientClass,
    ScheduleTemplate, SimulationParams, SpecialEquipment, StaffConfig,
    SurgeryCaseInput,
)
from pacusim.results.costs import CostConfig

logger = logging.getLogger(__name__)

YAML_SUFFIXES = (".yaml", ".yml")


def _plain(value: Any) -> Any:
    """Convert enums and tuples so the result is YAML/JSON safe."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {_plain(k): _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value


def params_to_dict(params: SimulationParams) -> Dict[str, Any]:
    """Serialise parameters to nested builtin types."""
    return _plain(dataclasses.asdict(params))


def _build(cls, data: Dict[str, Any], where: str):
    """Instantiate a config dataclass, rejecting unknown keys."""
    known = {f.name for f in dataclasses.fields(cls)}
    unknown = set(data) - known
    if unknown:
        raise ValueError(f"Unknown keys in {where}: {sorted(unknown)}")
    return cls(**data)


def _build_list(cls, items: Optional[List[Dict[str, Any]]], where: str) -> list:
    return [_build(cls, item, f"{where}[{i}]") for i, item in enumerate(items or [])]


def params_from_dict(data: Dict[str, Any]) -> SimulationParams:
    """Build validated parameters from a nested dictionary.

    Missing keys take their dataclass defaults.

    Raises:
        ValueError: On unknown keys or invalid values.
    """
    data = dict(data)

    if "patient_classes" in data:
        data["patient_classes"] = _build_list(
            PatientClass, data["patient_classes"], "patient_classes"
        )
    if "schedule_template" in data:
        data["schedule_template"] = _build(
            ScheduleTemplate, data["schedule_template"] or {}, "schedule_template"
        )
    if "or_blocks" in data:
        data["or_blocks"] = _build_list(ORBlock, data["or_blocks"], "or_blocks")
    if "custom_cases" in data:
        data["custom_cases"] = _build_list(
            SurgeryCaseInput, data["custom_cases"], "custom_cases"
        )
    if "staff" in data:
        staff = dict(data["staff"] or {})
        staff["nurse_skills"] = _build_list(
            NurseSkill, staff.get("nurse_skills"), "staff.nurse_skills"
        )
        staff["nurse_shifts"] = _build_list(
            NurseShift, staff.get("nurse_shifts"), "staff.nurse_shifts"
        )
        data["staff"] = _build(StaffConfig, staff, "staff")
    if "emergency" in data:
        data["emergency"] = _build(EmergencyConfig, data["emergency"] or {}, "emergency")
    if "special_equipment" in data:
        data["special_equipment"] = _build_list(
            SpecialEquipment, data["special_equipment"], "special_equipment"
        )
    if "discharge_window" in data:
        data["discharge_window"] = _build(
            DischargeWindow, data["discharge_window"] or {}, "discharge_window"
        )
    if "costs" in data:
        data["costs"] = _build(CostConfig, data["costs"] or {}, "costs")

    return _build(SimulationParams, data, "params")


def load_params(config_path: Path) -> SimulationParams:
    """Load parameters from a YAML or JSON file.

    Args:
        config_path: Path to configuration file (.yaml, .yml, or .json)

    Returns:
        SimulationParams instance

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If file format is not supported
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        if config_path.suffix in YAML_SUFFIXES:
            try:
                import yaml

                data = yaml.safe_load(f)
            except ImportError:
                raise ImportError(
                    "PyYAML is required to load YAML config files. "
                    "Install with: pip install pyyaml"
                )
        elif config_path.suffix == ".json":
            data = json.load(f)
        else:
            raise ValueError(
                f"Unsupported config format: {config_path.suffix}. "
                "Use .yaml, .yml, or .json"
            )

    logger.info(f"Loaded parameters from {config_path}")
    return params_from_dict(data or {})


def save_params(params: SimulationParams, config_path: Path) -> None:
    """Save parameters to a YAML or JSON file.

    Args:
        params: Parameters to save
        config_path: Path to save to (.yaml, .yml, or .json)

    Raises:
        ValueError: If file format is not supported
    """
    config_path = Path(config_path)
    if config_path.suffix not in YAML_SUFFIXES + (".json",):
        raise ValueError(
            f"Unsupported config format: {config_path.suffix}. "
            "Use .yaml, .yml, or .json"
        )
    data = params_to_dict(params)

    config_path.parent.mkdir(parents=True, exist_ok=True)

    with open(config_path, "w") as f:
        if config_path.suffix in YAML_SUFFIXES:
            try:
                import yaml

                yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
            except ImportError:
                raise ImportError(
                    "PyYAML is required to save YAML config files. "
                    "Install with: pip install pyyaml"
                )
        else:
            json.dump(data, f, indent=2)


def get_default_config_dir() -> Path:
    """Get default configuration directory.

    Checks in order:
    1. PACUSIM_CONFIG_DIR environment variable
    2. ./config/scenarios directory
    3. Package data directory (fallback)
    """
    if env_dir := os.environ.get("PACUSIM_CONFIG_DIR"):
        return Path(env_dir)

    cwd_config = Path.cwd() / "config" / "scenarios"
    if cwd_config.exists():
        return cwd_config

    return Path(__file__).parent / "default_config"


def list_available_configs(config_dir: Optional[Path] = None) -> List[Path]:
    """List scenario files in a directory (default directory if None)."""
    if config_dir is None:
        config_dir = get_default_config_dir()

    if not config_dir.exists():
        return []

    configs = []
    for suffix in YAML_SUFFIXES + (".json",):
        configs.extend(config_dir.glob(f"*{suffix}"))
    return sorted(configs)
