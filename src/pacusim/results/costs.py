"""Cost modelling from resource occupancy.

Costs are accrued while the engine runs: every time a resource slot is
released its busy minutes are charged at the per-minute rate of its
resource kind. Cancellations are charged a flat fee per case, nurse
overtime an extra premium on top of the base nurse rate.
"""

from dataclasses import dataclass, field
from typing import Any, Dict

from pacusim.core.entities import ResourceKind


# Currency symbols for display
CURRENCY_SYMBOLS = {
    "GBP": "£",
    "USD": "$",
    "EUR": "€",
}


@dataclass
class CostConfig:
    """Cost rate table.

    All resource rates are per minute of occupancy.
    """

    currency: str = "EUR"

    # === PER-MINUTE RATES ===

    or_cost_per_minute: float = 10.0
    # Theatre team, anaesthesia, consumables

    pacu_phase1_bed_cost_per_minute: float = 3.0
    # Intensive recovery, close monitoring

    pacu_phase2_bed_cost_per_minute: float = 2.0
    # Step-down recovery

    ward_bed_cost_per_minute: float = 0.5
    # General ward bed

    nurse_cost_per_minute: float = 0.8
    # Per nurse, or per nurse-equivalent under the ratio model

    equipment_cost_per_minute: float = 0.0
    # Per unit of special equipment in use

    # === OVERTIME AND CANCELLATION ===

    overtime_multiplier: float = 1.5
    # Overtime minutes cost nurse_cost_per_minute * overtime_multiplier

    cost_per_cancellation: float = 500.0
    # Wasted preparation, rebooking

    def __post_init__(self) -> None:
        if self.overtime_multiplier < 1.0:
            raise ValueError("overtime_multiplier must be >= 1.0")
        for name in (
            "or_cost_per_minute", "pacu_phase1_bed_cost_per_minute",
            "pacu_phase2_bed_cost_per_minute", "ward_bed_cost_per_minute",
            "nurse_cost_per_minute", "equipment_cost_per_minute",
            "cost_per_cancellation",
        ):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be non-negative")

    def rate_for(self, kind: ResourceKind) -> float:
        """Per-minute rate for a resource kind."""
        return {
            ResourceKind.OPERATING_ROOM: self.or_cost_per_minute,
            ResourceKind.PACU_PHASE1_BED: self.pacu_phase1_bed_cost_per_minute,
            ResourceKind.PACU_PHASE2_BED: self.pacu_phase2_bed_cost_per_minute,
            ResourceKind.WARD_BED: self.ward_bed_cost_per_minute,
            ResourceKind.NURSE: self.nurse_cost_per_minute,
            ResourceKind.EQUIPMENT: self.equipment_cost_per_minute,
        }[kind]

    @property
    def overtime_premium_per_minute(self) -> float:
        """Extra cost of an overtime minute over a regular nurse minute."""
        return self.nurse_cost_per_minute * (self.overtime_multiplier - 1.0)

    def get_currency_symbol(self) -> str:
        """Get the currency symbol for display."""
        return CURRENCY_SYMBOLS.get(self.currency, self.currency)


@dataclass
class CostBreakdown:
    """Cost totals by category.

    ``nurse_cost`` already includes ``nurse_overtime_cost``; the latter is
    reported separately for display only.
    """

    currency: str = "EUR"
    or_cost: float = 0.0
    pacu_phase1_cost: float = 0.0
    pacu_phase2_cost: float = 0.0
    nurse_cost: float = 0.0
    nurse_overtime_cost: float = 0.0
    ward_cost: float = 0.0
    equipment_cost: float = 0.0
    cancellation_cost: float = 0.0

    @property
    def pacu_cost(self) -> float:
        """Total PACU bed costs (Phase I + Phase II)."""
        return self.pacu_phase1_cost + self.pacu_phase2_cost

    @property
    def total_cost(self) -> float:
        """Grand total of all categories."""
        return (
            self.or_cost
            + self.pacu_phase1_cost
            + self.pacu_phase2_cost
            + self.nurse_cost
            + self.ward_cost
            + self.equipment_cost
            + self.cancellation_cost
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "currency": self.currency,
            "or_cost": self.or_cost,
            "pacu_phase1_cost": self.pacu_phase1_cost,
            "pacu_phase2_cost": self.pacu_phase2_cost,
            "nurse_cost": self.nurse_cost,
            "nurse_overtime_cost": self.nurse_overtime_cost,
            "ward_cost": self.ward_cost,
            "equipment_cost": self.equipment_cost,
            "cancellation_cost": self.cancellation_cost,
            "total_cost": self.total_cost,
        }


@dataclass
class CostAccumulator:
    """Running cost totals fed by resource releases during a run."""

    config: CostConfig = field(default_factory=CostConfig)
    busy_minutes: Dict[ResourceKind, float] = field(
        default_factory=lambda: {kind: 0.0 for kind in ResourceKind}
    )
    overtime_minutes: float = 0.0
    cancellations: int = 0

    def add_busy_minutes(self, kind: ResourceKind, minutes: float) -> None:
        """Charge occupancy minutes to a resource category.

        Args:
            kind: Resource category of the released slot.
            minutes: Busy minutes; fractional nurse shares are passed as
                nurse-equivalent minutes.
        """
        self.busy_minutes[kind] += minutes

    def add_overtime(self, minutes: float) -> None:
        self.overtime_minutes += minutes

    def add_cancellation(self) -> None:
        self.cancellations += 1

    def breakdown(self) -> CostBreakdown:
        """Price the accumulated minutes and cancellations."""
        cfg = self.config
        overtime_cost = self.overtime_minutes * cfg.overtime_premium_per_minute
        return CostBreakdown(
            currency=cfg.currency,
            or_cost=self.busy_minutes[ResourceKind.OPERATING_ROOM] * cfg.or_cost_per_minute,
            pacu_phase1_cost=(
                self.busy_minutes[ResourceKind.PACU_PHASE1_BED]
                * cfg.pacu_phase1_bed_cost_per_minute
            ),
            pacu_phase2_cost=(
                self.busy_minutes[ResourceKind.PACU_PHASE2_BED]
                * cfg.pacu_phase2_bed_cost_per_minute
            ),
            nurse_cost=(
                self.busy_minutes[ResourceKind.NURSE] * cfg.nurse_cost_per_minute
                + overtime_cost
            ),
            nurse_overtime_cost=overtime_cost,
            ward_cost=self.busy_minutes[ResourceKind.WARD_BED] * cfg.ward_bed_cost_per_minute,
            equipment_cost=(
                self.busy_minutes[ResourceKind.EQUIPMENT] * cfg.equipment_cost_per_minute
            ),
            cancellation_cost=self.cancellations * cfg.cost_per_cancellation,
        )


def format_currency(amount: float, currency: str = "EUR") -> str:
    """Format an amount with its currency symbol, e.g. ``€1,234``."""
    symbol = CURRENCY_SYMBOLS.get(currency, currency)
    return f"{symbol}{amount:,.0f}"
