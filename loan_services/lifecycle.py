"""
LoanLifecycleService -- Origination, renewal, payments and write-off marks.

Responsibility:
    Orchestrates the pure engines at mutation time and returns the new
    records a storage layer persists: LoanMetricsCalculator on origination,
    ProfitInheritanceCalculator on renewal, PaymentAllocator on every
    payment and cancellation.

Architecture position:
    Services -- orchestration over engines and kernel records. The only
    layer that reads the clock (through an injected Clock).

Invariants enforced:
    - A renewed predecessor gets ``renewed_date`` and status RENOVATED; its
      ``finished_date`` stays null.
    - A predecessor is renewed at most once.
    - A loan becomes FINISHED, with ``finished_date``, exactly when its
      pending amount reaches zero; cancelling the finishing payment reopens
      it.
    - A loan with nothing owed is FINISHED from its sign date.
    - ``originate_batch`` is all-or-nothing.

Failure modes:
    - PredecessorAlreadyRenewedError when renewing an already renewed loan.
    - LoanStateError for operations not allowed in the loan's status.
    - ValidationError subclasses propagated from the engines.

Audit relevance:
    Every state change logs an event (``loan_originated``, ``loan_renewed``,
    ``payment_applied``, ``payment_cancelled``, ``loan_marked_bad_debt``)
    with the loan id bound in LogContext.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, replace
from datetime import datetime, tzinfo
from decimal import Decimal

from loan_engines.loan_metrics import LoanMetrics, LoanMetricsCalculator
from loan_engines.payment_allocation import BalanceUpdate, PaymentAllocation, PaymentAllocator
from loan_engines.profit_inheritance import InheritedProfit, ProfitInheritanceCalculator
from loan_kernel.domain.clock import Clock
from loan_kernel.domain.records import Loan, LoanStatus, Payment
from loan_kernel.domain.values import Money
from loan_kernel.exceptions import LoanStateError, ValidationError
from loan_kernel.logging_config import LogContext, get_logger

logger = get_logger("services.lifecycle")

_CLOSED_STATUSES = frozenset({LoanStatus.CANCELLED, LoanStatus.RENOVATED})


@dataclass(frozen=True)
class LoanRequest:
    """Terms of a loan to originate or renew into."""

    loan_id: str
    requested_amount: Money
    rate: Decimal
    term_weeks: int
    sign_date: datetime | None = None
    lead_id: str | None = None
    snapshot_route_id: str | None = None
    snapshot_route_name: str | None = None


@dataclass(frozen=True)
class RenewalResult:
    successor: Loan
    predecessor: Loan
    inherited: InheritedProfit


@dataclass(frozen=True)
class PaymentResult:
    loan: Loan
    payment: Payment
    allocation: PaymentAllocation
    balance: BalanceUpdate


class LoanLifecycleService:
    """
    Loan state transitions over immutable records.

    Contract:
        Every method returns new records; inputs are never mutated. Nothing
        is persisted here.
    """

    def __init__(
        self,
        clock: Clock,
        metrics: LoanMetricsCalculator | None = None,
        inheritance: ProfitInheritanceCalculator | None = None,
        allocator: PaymentAllocator | None = None,
        tz: tzinfo | None = None,
    ):
        self._clock = clock
        self._metrics = metrics or LoanMetricsCalculator()
        self._inheritance = inheritance or ProfitInheritanceCalculator()
        self._allocator = allocator or PaymentAllocator()
        self._tz = tz

    def _now(self) -> datetime:
        return self._clock.now_in(self._tz)

    def _build_loan(
        self,
        request: LoanRequest,
        metrics: LoanMetrics,
        amount_gived: Money,
        previous_loan_id: str | None = None,
    ) -> Loan:
        sign_date = request.sign_date or self._now()
        # Nothing owed: the loan is born FINISHED.
        settled = metrics.total_debt.is_zero
        return Loan(
            id=request.loan_id,
            requested_amount=request.requested_amount,
            amount_gived=amount_gived,
            rate=metrics.rate,
            term_weeks=metrics.term_weeks,
            profit_amount=metrics.profit,
            total_debt_acquired=metrics.total_debt,
            expected_weekly_payment=metrics.weekly_payment,
            total_paid=Money.zero(request.requested_amount.currency),
            pending_amount_stored=metrics.total_debt,
            sign_date=sign_date,
            status=LoanStatus.FINISHED if settled else LoanStatus.ACTIVE,
            finished_date=sign_date if settled else None,
            previous_loan_id=previous_loan_id,
            lead_id=request.lead_id,
            snapshot_route_id=request.snapshot_route_id,
            snapshot_route_name=request.snapshot_route_name,
        )

    # ------------------------------------------------------------------
    # Origination
    # ------------------------------------------------------------------

    def originate(self, request: LoanRequest) -> Loan:
        """New ACTIVE loan with pending equal to its total debt (FINISHED if zero)."""
        metrics = self._metrics.compute(
            request.requested_amount, request.rate, request.term_weeks
        )
        loan = self._build_loan(request, metrics, amount_gived=request.requested_amount)
        with LogContext.bind(loan_id=loan.id):
            logger.info("loan_originated", extra={
                "requested_amount": str(loan.requested_amount.amount),
                "total_debt": str(loan.total_debt_acquired.amount),
                "term_weeks": loan.term_weeks,
            })
        return loan

    def originate_batch(self, requests: Sequence[LoanRequest]) -> list[Loan]:
        """
        Originate several loans atomically.

        Every request is validated before any loan is built; the first
        error propagates and no loan is returned.
        """
        seen: set[str] = set()
        for request in requests:
            if request.loan_id in seen:
                raise ValidationError(f"Duplicate loan id in batch: {request.loan_id}")
            seen.add(request.loan_id)

        computed = [
            (request, self._metrics.compute(request.requested_amount, request.rate, request.term_weeks))
            for request in requests
        ]
        loans = [
            self._build_loan(request, metrics, amount_gived=request.requested_amount)
            for request, metrics in computed
        ]
        logger.info("loan_batch_originated", extra={"loan_count": len(loans)})
        return loans

    # ------------------------------------------------------------------
    # Renewal
    # ------------------------------------------------------------------

    def renew(
        self,
        predecessor: Loan,
        request: LoanRequest,
        successor_exists: bool = False,
    ) -> RenewalResult:
        """
        Renew ``predecessor`` into a new loan carrying its unearned profit.

        Raises:
            PredecessorAlreadyRenewedError: the predecessor already has a
                successor.
            LoanStateError: the predecessor is not ACTIVE.
        """
        inherited = self._inheritance.inherit(predecessor, successor_exists=successor_exists)
        if predecessor.status != LoanStatus.ACTIVE:
            raise LoanStateError(predecessor.id, predecessor.status.value, "renew")

        base = self._metrics.compute(request.requested_amount, request.rate, request.term_weeks)
        metrics = self._inheritance.apply(base, inherited)
        amount_gived = self._metrics.amount_to_give(
            request.requested_amount, predecessor.pending_amount_stored
        )
        successor = self._build_loan(
            request, metrics, amount_gived=amount_gived, previous_loan_id=predecessor.id
        )
        renewed = replace(
            predecessor,
            status=LoanStatus.RENOVATED,
            renewed_date=self._now(),
        )

        with LogContext.bind(loan_id=successor.id):
            logger.info("loan_renewed", extra={
                "predecessor_id": predecessor.id,
                "inherited_profit": str(inherited.inherited_profit.amount),
                "amount_gived": str(amount_gived.amount),
                "total_debt": str(successor.total_debt_acquired.amount),
            })
        return RenewalResult(successor=successor, predecessor=renewed, inherited=inherited)

    # ------------------------------------------------------------------
    # Payments
    # ------------------------------------------------------------------

    def _require_open(self, loan: Loan, operation: str) -> None:
        if loan.status in _CLOSED_STATUSES:
            raise LoanStateError(loan.id, loan.status.value, operation)

    @staticmethod
    def _require_own_payment(loan: Loan, payment: Payment) -> None:
        if payment.loan_id != loan.id:
            raise ValidationError(
                f"Payment {payment.id} belongs to loan {payment.loan_id}, not {loan.id}"
            )

    def apply_payment(self, loan: Loan, payment: Payment) -> PaymentResult:
        """
        Allocate ``payment`` and advance the loan's totals.

        Raises:
            LoanStateError: the loan is CANCELLED or RENOVATED.
        """
        self._require_open(loan, "apply payment to")
        self._require_own_payment(loan, payment)

        allocation = self._allocator.allocate(
            payment.amount,
            loan.profit_amount,
            loan.total_debt_acquired,
            is_bad_debt=loan.is_bad_debt,
        )
        balance = self._allocator.apply_to_balance(
            loan.pending_amount_stored, loan.total_paid, payment.amount
        )
        updated = replace(loan, total_paid=balance.total_paid, pending_amount_stored=balance.pending)
        if balance.fully_paid and loan.status == LoanStatus.ACTIVE:
            updated = replace(updated, status=LoanStatus.FINISHED, finished_date=self._now())

        with LogContext.bind(loan_id=loan.id):
            logger.info("payment_applied", extra={
                "payment_id": payment.id,
                "amount": str(payment.amount.amount),
                "pending": str(balance.pending.amount),
                "fully_paid": balance.fully_paid,
                "informational": allocation.informational,
            })
            if balance.overpayment.is_positive:
                logger.warning("payment_exceeds_pending", extra={
                    "payment_id": payment.id,
                    "overpayment": str(balance.overpayment.amount),
                })
        return PaymentResult(loan=updated, payment=payment, allocation=allocation, balance=balance)

    def cancel_payment(self, loan: Loan, payment: Payment) -> PaymentResult:
        """
        Compensating reversal of a previously applied payment.

        A loan finished by the payment is reopened. The returned allocation
        is the split to reverse.
        """
        self._require_open(loan, "cancel payment on")
        self._require_own_payment(loan, payment)

        allocation = self._allocator.allocate(
            payment.amount,
            loan.profit_amount,
            loan.total_debt_acquired,
            is_bad_debt=loan.is_bad_debt,
        )
        balance = self._allocator.reverse_on_balance(
            loan.total_paid, payment.amount, loan.total_debt_acquired
        )
        updated = replace(loan, total_paid=balance.total_paid, pending_amount_stored=balance.pending)
        if loan.status == LoanStatus.FINISHED and not balance.fully_paid:
            updated = replace(updated, status=LoanStatus.ACTIVE, finished_date=None)

        with LogContext.bind(loan_id=loan.id):
            logger.info("payment_cancelled", extra={
                "payment_id": payment.id,
                "amount": str(payment.amount.amount),
                "pending": str(balance.pending.amount),
                "reopened": updated.status != loan.status,
            })
        return PaymentResult(loan=updated, payment=payment, allocation=allocation, balance=balance)

    # ------------------------------------------------------------------
    # Write-off marks
    # ------------------------------------------------------------------

    def mark_bad_debt(self, loan: Loan, when: datetime | None = None) -> Loan:
        """Flag ``loan`` as written off; it leaves delinquency counts."""
        if loan.status != LoanStatus.ACTIVE:
            raise LoanStateError(loan.id, loan.status.value, "mark bad debt on")
        marked = replace(loan, bad_debt_date=when or self._now())
        with LogContext.bind(loan_id=loan.id):
            logger.info("loan_marked_bad_debt", extra={
                "bad_debt_date": marked.bad_debt_date,
                "pending": str(loan.pending_amount_stored.amount),
            })
        return marked

    def unmark_bad_debt(self, loan: Loan) -> Loan:
        with LogContext.bind(loan_id=loan.id):
            logger.info("loan_unmarked_bad_debt")
        return replace(loan, bad_debt_date=None)
