"""
loan_services -- Package init and public API.

Responsibility:
    Orchestration over the pure calculation engines (loan_engines/): loan
    state transitions and engine wiring from configuration. This is the
    only layer that reads wall-clock time, through an injected Clock.

Architecture position:
    Services -- orchestration over engines + kernel.

    Dependency direction:
        loan_services/ -> loan_engines/  (allowed)
        loan_services/ -> loan_kernel/   (allowed)
        loan_services/ -> loan_config/   (allowed)
        loan_engines/  -> loan_services/ (FORBIDDEN)
        loan_kernel/   -> loan_services/ (FORBIDDEN)
"""

from loan_services.engine_set import EngineSet, engines_from_config
from loan_services.lifecycle import (
    LoanLifecycleService,
    LoanRequest,
    PaymentResult,
    RenewalResult,
)

__all__ = [
    "EngineSet",
    "LoanLifecycleService",
    "LoanRequest",
    "PaymentResult",
    "RenewalResult",
    "engines_from_config",
]
