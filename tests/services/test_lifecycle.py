"""
Tests for LoanLifecycleService.

Covers:
- Origination (single and batch)
- Renewal with profit inheritance and the no-fork rule
- Payment application, finishing and cancellation
- Bad-debt marks
"""

from dataclasses import replace
from datetime import datetime
from decimal import Decimal

import pytest

from loan_kernel.domain.records import LoanStatus, Payment
from loan_kernel.domain.values import Money
from loan_kernel.exceptions import (
    InvalidTermError,
    LoanStateError,
    PredecessorAlreadyRenewedError,
    ValidationError,
)
from loan_services.lifecycle import LoanLifecycleService, LoanRequest


def mxn(amount) -> Money:
    return Money.of(amount, "MXN")


def _request(loan_id="L1", amount="1000", rate="0.40", term=10, **kwargs) -> LoanRequest:
    return LoanRequest(
        loan_id=loan_id,
        requested_amount=mxn(amount),
        rate=Decimal(rate),
        term_weeks=term,
        **kwargs,
    )


def _payment(loan_id: str, amount: str, received_at=datetime(2024, 1, 17, 10, 0), pid="P1"):
    return Payment(id=pid, loan_id=loan_id, amount=mxn(amount), received_at=received_at)


@pytest.fixture
def service(clock):
    return LoanLifecycleService(clock=clock)


class TestOrigination:
    def test_originate(self, service, clock):
        loan = service.originate(_request(snapshot_route_id="r1", lead_id="lead-1"))

        assert loan.status == LoanStatus.ACTIVE
        assert loan.total_debt_acquired == mxn("1400")
        assert loan.pending_amount_stored == loan.total_debt_acquired
        assert loan.expected_weekly_payment == mxn("140.00")
        assert loan.total_paid.is_zero
        assert loan.sign_date == clock.now_in(None)
        assert loan.snapshot_route_id == "r1"
        assert loan.previous_loan_id is None

    def test_explicit_sign_date(self, service):
        loan = service.originate(_request(sign_date=datetime(2024, 1, 3, 9, 0)))
        assert loan.sign_date == datetime(2024, 1, 3, 9, 0)

    def test_batch_all_or_nothing(self, service):
        with pytest.raises(InvalidTermError):
            service.originate_batch([_request("A"), _request("B", term=0)])

    def test_batch_duplicate_ids(self, service):
        with pytest.raises(ValidationError, match="Duplicate"):
            service.originate_batch([_request("A"), _request("A")])

    def test_batch(self, service):
        loans = service.originate_batch([_request("A"), _request("B", amount="2000")])
        assert [loan.id for loan in loans] == ["A", "B"]
        assert loans[1].total_debt_acquired == mxn("2800")


class TestRenewal:
    def test_renew_inherits_profit(self, service, clock):
        predecessor = replace(
            service.originate(_request("OLD")),
            pending_amount_stored=mxn("600"),
            total_paid=mxn("800"),
        )

        result = service.renew(predecessor, _request("NEW", amount="2000"))

        assert result.inherited.inherited_profit.amount == Decimal("171.43")
        assert result.successor.previous_loan_id == "OLD"
        assert result.successor.profit_amount.amount == Decimal("971.43")
        assert result.successor.total_debt_acquired.amount == Decimal("2971.43")
        assert result.successor.amount_gived == mxn("1400")
        assert result.successor.requested_amount == mxn("2000")

        assert result.predecessor.status == LoanStatus.RENOVATED
        assert result.predecessor.renewed_date == clock.now_in(None)
        assert result.predecessor.finished_date is None
        assert result.predecessor.pending_amount_stored == mxn("600")

    def test_renewal_cannot_fork(self, service):
        predecessor = service.originate(_request("OLD"))
        renewed = service.renew(predecessor, _request("NEW")).predecessor

        with pytest.raises(PredecessorAlreadyRenewedError):
            service.renew(renewed, _request("NEW-2"))

    def test_successor_reported_by_storage(self, service):
        predecessor = service.originate(_request("OLD"))
        with pytest.raises(PredecessorAlreadyRenewedError):
            service.renew(predecessor, _request("NEW"), successor_exists=True)

    def test_finished_loan_cannot_be_renewed(self, service):
        finished = replace(
            service.originate(_request("OLD")),
            status=LoanStatus.FINISHED,
            finished_date=datetime(2024, 1, 10),
            pending_amount_stored=mxn("0"),
        )
        with pytest.raises(LoanStateError) as exc_info:
            service.renew(finished, _request("NEW"))
        assert exc_info.value.operation == "renew"


class TestPayments:
    def test_apply_payment(self, service):
        loan = service.originate(_request())
        result = service.apply_payment(loan, _payment("L1", "140"))

        assert result.loan.pending_amount_stored == mxn("1260")
        assert result.loan.total_paid == mxn("140")
        assert result.allocation.profit_recognized == mxn("40")
        assert result.loan.status == LoanStatus.ACTIVE
        assert loan.total_paid.is_zero

    def test_final_payment_finishes_loan(self, service, clock):
        loan = replace(service.originate(_request()), pending_amount_stored=mxn("140"))
        result = service.apply_payment(loan, _payment("L1", "140"))

        assert result.loan.status == LoanStatus.FINISHED
        assert result.loan.finished_date == clock.now_in(None)
        assert result.balance.fully_paid

    def test_overpayment_clamped(self, service):
        loan = replace(service.originate(_request()), pending_amount_stored=mxn("100"))
        result = service.apply_payment(loan, _payment("L1", "150"))

        assert result.loan.pending_amount_stored.is_zero
        assert result.balance.overpayment == mxn("50")

    def test_bad_debt_payment_informational(self, service):
        loan = service.mark_bad_debt(service.originate(_request()))
        result = service.apply_payment(loan, _payment("L1", "140"))

        assert result.allocation.informational
        assert result.loan.is_bad_debt

    def test_payment_for_other_loan_rejected(self, service):
        loan = service.originate(_request())
        with pytest.raises(ValidationError, match="belongs to loan"):
            service.apply_payment(loan, _payment("L2", "140"))

    @pytest.mark.parametrize("status", [LoanStatus.CANCELLED, LoanStatus.RENOVATED])
    def test_closed_loans_reject_payments(self, service, status):
        loan = replace(service.originate(_request()), status=status)
        with pytest.raises(LoanStateError) as exc_info:
            service.apply_payment(loan, _payment("L1", "140"))
        assert exc_info.value.code == "LOAN_STATE_INVALID"

    def test_cancel_reopens_finished_loan(self, service):
        loan = replace(service.originate(_request()), pending_amount_stored=mxn("140"))
        finished = service.apply_payment(loan, _payment("L1", "140")).loan
        finished = replace(finished, total_paid=mxn("1400"))

        reopened = service.cancel_payment(finished, _payment("L1", "140")).loan

        assert reopened.status == LoanStatus.ACTIVE
        assert reopened.finished_date is None
        assert reopened.pending_amount_stored == mxn("140")
        assert reopened.total_paid == mxn("1260")


class TestBadDebtMarks:
    def test_mark_and_unmark(self, service):
        loan = service.originate(_request())
        marked = service.mark_bad_debt(loan, when=datetime(2024, 3, 1))

        assert marked.bad_debt_date == datetime(2024, 3, 1)
        assert not service.unmark_bad_debt(marked).is_bad_debt

    def test_only_active_loans_marked(self, service):
        loan = replace(service.originate(_request()), status=LoanStatus.CANCELLED)
        with pytest.raises(LoanStateError):
            service.mark_bad_debt(loan)


class TestZeroDebtLoans:
    def test_zero_principal_is_born_finished(self, service):
        loan = service.originate(_request("Z", amount="0", sign_date=datetime(2024, 1, 3, 9, 0)))

        assert loan.pending_amount_stored.is_zero
        assert loan.status == LoanStatus.FINISHED
        assert loan.finished_date == datetime(2024, 1, 3, 9, 0)

    def test_zero_principal_in_batch(self, service):
        loans = service.originate_batch([_request("A"), _request("Z", amount="0")])
        assert [loan.status for loan in loans] == [LoanStatus.ACTIVE, LoanStatus.FINISHED]

    def test_renewal_into_zero_debt(self, service):
        predecessor = service.originate(_request("OLD", rate="0"))
        successor = service.renew(predecessor, _request("NEW", amount="0")).successor

        assert successor.total_debt_acquired.is_zero
        assert successor.status == LoanStatus.FINISHED
        assert successor.finished_date == successor.sign_date
