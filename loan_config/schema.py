"""
EngineConfig schema.

Frozen dataclasses describing the tunable rules of the loan engines. The
loader parses YAML into these types; ``loan_services.engines_from_config``
turns them into engine constructor arguments. Engines never read
configuration themselves.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from loan_engines.ledger_balance import LedgerConvention
from loan_engines.week_calendar import MonthWeekAssignment

# ---------------------------------------------------------------------------
# Rule groups
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DelinquencyRules:
    """Week-scoped delinquency classification rules."""

    sign_week_grace: bool = False
    exit_payment_threshold: int = 2


@dataclass(frozen=True)
class LedgerRules:
    convention: LedgerConvention = LedgerConvention.LEGACY


@dataclass(frozen=True)
class AttributionRules:
    """Labels used when no route or locality can be resolved."""

    default_route_id: str = "unassigned"
    default_route_name: str = "Sin ruta"
    default_locality_id: str = "unassigned"
    default_locality_name: str = "Sin localidad"


@dataclass(frozen=True)
class CalendarRules:
    month_week_assignment: MonthWeekAssignment = MonthWeekAssignment.INTERSECT


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EngineConfig:
    """Complete, validated engine configuration."""

    currency: str = "MXN"
    timezone: str | None = None
    delinquency: DelinquencyRules = field(default_factory=DelinquencyRules)
    ledger: LedgerRules = field(default_factory=LedgerRules)
    attribution: AttributionRules = field(default_factory=AttributionRules)
    calendar: CalendarRules = field(default_factory=CalendarRules)
    checksum: str = ""
    source: str = ""
