"""
Module: loan_engines.attribution
Responsibility:
    Resolve which route and which locality a loan is reported under.

    Route precedence:   snapshot captured at origination
                        -> the lead's live route assignment
                        -> default label ("Sin ruta")
    Locality precedence: the lead's registered locality
                        -> default label ("Sin localidad")

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Each precedence step is a separate strategy object evaluated in order,
    so the chain can be tested and reordered step by step.

Invariants enforced:
    - Every loan resolves to exactly one route and one locality; the
      default step always answers.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Protocol

from loan_kernel.domain.records import Lead, Loan
from loan_kernel.logging_config import get_logger

logger = get_logger("engines.attribution")


@dataclass(frozen=True)
class Attribution:
    """Resolved partition key for a loan."""

    key: str
    name: str
    source: str


class AttributionStep(Protocol):
    """One link in a resolution chain. Returns None to defer to the next."""

    name: str

    def resolve(self, loan: Loan, lead: Lead | None) -> Attribution | None:
        ...


# ---------------------------------------------------------------------------
# Route steps
# ---------------------------------------------------------------------------


class SnapshotRouteStep:
    """Route stored on the loan when it was originated."""

    name = "snapshot"

    def resolve(self, loan: Loan, lead: Lead | None) -> Attribution | None:
        if loan.snapshot_route_id:
            return Attribution(
                key=loan.snapshot_route_id,
                name=loan.snapshot_route_name or loan.snapshot_route_id,
                source=self.name,
            )
        return None


class LeadRouteStep:
    """Route the lead is currently assigned to."""

    name = "lead_route"

    def resolve(self, loan: Loan, lead: Lead | None) -> Attribution | None:
        if lead is not None and lead.route_id:
            return Attribution(
                key=lead.route_id,
                name=lead.route_name or lead.route_id,
                source=self.name,
            )
        return None


class LeadLocalityStep:
    """Locality of the lead's registered address."""

    name = "lead_locality"

    def resolve(self, loan: Loan, lead: Lead | None) -> Attribution | None:
        if lead is not None and lead.locality_id:
            return Attribution(
                key=lead.locality_id,
                name=lead.locality_name or lead.locality_id,
                source=self.name,
            )
        return None


class DefaultStep:
    """Terminal step: always answers with a fixed label."""

    name = "default"

    def __init__(self, key: str, label: str):
        self._attribution = Attribution(key=key, name=label, source=self.name)

    def resolve(self, loan: Loan, lead: Lead | None) -> Attribution | None:
        return self._attribution


# ---------------------------------------------------------------------------
# Chain
# ---------------------------------------------------------------------------


class AttributionChain:
    """
    Ordered list of resolution steps; the first non-None answer wins.

    Contract:
        The last step must always answer (a DefaultStep).
    """

    def __init__(self, steps: Sequence[AttributionStep]):
        if not steps:
            raise ValueError("Attribution chain needs at least one step")
        self._steps = tuple(steps)

    @property
    def steps(self) -> tuple[AttributionStep, ...]:
        return self._steps

    def resolve(self, loan: Loan, leads: Mapping[str, Lead] | None = None) -> Attribution:
        lead = leads.get(loan.lead_id) if (leads and loan.lead_id) else None
        for step in self._steps:
            found = step.resolve(loan, lead)
            if found is not None:
                if found.source == DefaultStep.name:
                    logger.debug("attribution_defaulted", extra={
                        "loan_id": loan.id,
                        "lead_id": loan.lead_id,
                        "label": found.name,
                    })
                return found
        raise ValueError(f"No attribution step resolved loan {loan.id}")


def route_chain(default_id: str = "unassigned", default_name: str = "Sin ruta") -> AttributionChain:
    """Snapshot route -> lead's live route -> default label."""
    return AttributionChain(
        [SnapshotRouteStep(), LeadRouteStep(), DefaultStep(default_id, default_name)]
    )


def locality_chain(
    default_id: str = "unassigned", default_name: str = "Sin localidad"
) -> AttributionChain:
    """Lead's locality -> default label."""
    return AttributionChain([LeadLocalityStep(), DefaultStep(default_id, default_name)])
