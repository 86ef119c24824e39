"""
Module: loan_engines.ledger_balance
Responsibility:
    Recompute a cash account's balance by replaying the transaction ledger.
    The cached ``Account.amount`` is only ever overwritten with the value
    produced here, inside the same storage transaction as the write that
    changed the ledger.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - A transaction credits an account at most once, even when the account
      is named on both sides.
    - LEGACY convention: credit when ``destination_account_id`` is the
      account, or when the row is INCOME and ``source_account_id`` is the
      account; debit when ``source_account_id`` is the account and the row
      is EXPENSE or TRANSFER.
    - STRICT convention: credits only via ``destination_account_id``.
    - Replays are idempotent and independent of transaction order.
    - Balances may be negative; nothing is clamped.

Failure modes:
    - ValueError (from Money) when a transaction's currency differs from
      the requested balance currency.

Audit relevance:
    Every recalculation logs its credit/debit breakdown
    (``balance_recalculated``). ``verify`` logs a WARNING when the cached
    balance has drifted from the ledger.

Usage:
    from loan_engines.ledger_balance import LedgerBalanceRecalculator

    balance = LedgerBalanceRecalculator().recalculate("acct-1", transactions, "MXN")
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, replace
from enum import Enum

from loan_engines.tracer import traced_engine
from loan_kernel.domain.records import Account, Transaction, TransactionType
from loan_kernel.domain.values import Currency, Money
from loan_kernel.logging_config import LogContext, get_logger

logger = get_logger("engines.ledger_balance")

_DEBIT_TYPES = frozenset({TransactionType.EXPENSE, TransactionType.TRANSFER})


class LedgerConvention(str, Enum):
    """How INCOME transactions name the credited account."""

    LEGACY = "legacy"  # INCOME credits source_account_id
    STRICT = "strict"  # credits only via destination_account_id


@dataclass(frozen=True)
class BalanceBreakdown:
    """
    Credit and debit totals behind an account balance.

    Guarantees:
        - ``balance == credits - debits``.
    """

    account_id: str
    credits: Money
    debits: Money
    balance: Money
    credit_count: int
    debit_count: int
    count_by_type: tuple[tuple[str, int], ...] = ()


@dataclass(frozen=True)
class BalanceCheck:
    """Stored versus recalculated balance of one account."""

    account_id: str
    stored: Money
    recalculated: Money

    @property
    def drift(self) -> Money:
        return self.stored - self.recalculated

    @property
    def is_consistent(self) -> bool:
        return self.drift.is_zero


def normalize_legacy_transaction(tx: Transaction) -> Transaction:
    """
    Rewrite a legacy INCOME row so the credited account is its destination.

    Rows that already name a destination, and non-INCOME rows, are returned
    unchanged.
    """
    if (
        tx.type == TransactionType.INCOME
        and tx.destination_account_id is None
        and tx.source_account_id is not None
    ):
        return replace(
            tx,
            destination_account_id=tx.source_account_id,
            source_account_id=None,
        )
    return tx


def affected_accounts(transactions: Iterable[Transaction]) -> frozenset[str]:
    """Every account id named on either side of the transactions."""
    ids: set[str] = set()
    for tx in transactions:
        if tx.source_account_id is not None:
            ids.add(tx.source_account_id)
        if tx.destination_account_id is not None:
            ids.add(tx.destination_account_id)
    return frozenset(ids)


class LedgerBalanceRecalculator:
    """
    Replays transactions into account balances.

    Contract:
        Pure functions -- the ledger is passed in, nothing is persisted.
    """

    def __init__(self, convention: LedgerConvention = LedgerConvention.LEGACY):
        self._convention = convention

    @property
    def convention(self) -> LedgerConvention:
        return self._convention

    def is_credit(self, account_id: str, tx: Transaction) -> bool:
        if tx.destination_account_id == account_id:
            return True
        return (
            self._convention == LedgerConvention.LEGACY
            and tx.type == TransactionType.INCOME
            and tx.source_account_id == account_id
        )

    @staticmethod
    def is_debit(account_id: str, tx: Transaction) -> bool:
        return tx.source_account_id == account_id and tx.type in _DEBIT_TYPES

    def breakdown(
        self,
        account_id: str,
        transactions: Iterable[Transaction],
        currency: str | Currency,
    ) -> BalanceBreakdown:
        """Credits, debits and per-type counts for ``account_id``."""
        credits = Money.zero(currency)
        debits = Money.zero(currency)
        credit_count = debit_count = 0
        by_type: Counter[str] = Counter()

        for tx in transactions:
            touched = False
            if self.is_credit(account_id, tx):
                credits = credits + tx.amount
                credit_count += 1
                touched = True
            if self.is_debit(account_id, tx):
                debits = debits + tx.amount
                debit_count += 1
                touched = True
            if touched:
                by_type[tx.type.value] += 1

        return BalanceBreakdown(
            account_id=account_id,
            credits=credits,
            debits=debits,
            balance=credits - debits,
            credit_count=credit_count,
            debit_count=debit_count,
            count_by_type=tuple(sorted(by_type.items())),
        )

    @traced_engine("ledger_balance", "1.0", fingerprint_fields=("account_id", "currency"))
    def recalculate(
        self,
        account_id: str,
        transactions: Iterable[Transaction],
        currency: str | Currency,
    ) -> Money:
        """
        Balance of ``account_id`` from the full ledger.

        Postconditions:
            - Returns ``sum(credits) - sum(debits)``; may be negative.
        """
        result = self.breakdown(account_id, transactions, currency)
        logger.info("balance_recalculated", extra={
            "account_id": account_id,
            "convention": self._convention.value,
            "credits": str(result.credits.amount),
            "debits": str(result.debits.amount),
            "credit_count": result.credit_count,
            "debit_count": result.debit_count,
            "count_by_type": dict(result.count_by_type),
            "balance": str(result.balance.amount),
        })
        return result.balance

    def recalculate_many(
        self,
        account_ids: Iterable[str],
        transactions: Sequence[Transaction],
        currency: str | Currency,
    ) -> dict[str, Money]:
        """
        Balances for several accounts from one ledger snapshot.

        Either every balance is returned or the first error propagates;
        callers persist the whole mapping in one storage transaction.
        """
        ledger = tuple(transactions)
        return {
            account_id: self.recalculate(account_id, ledger, currency)
            for account_id in sorted(set(account_ids))
        }

    def verify(self, account: Account, transactions: Iterable[Transaction]) -> BalanceCheck:
        """Compare the cached ``account.amount`` with the replayed ledger."""
        recalculated = self.recalculate(account.id, transactions, account.amount.currency)
        check = BalanceCheck(
            account_id=account.id,
            stored=account.amount,
            recalculated=recalculated,
        )
        if not check.is_consistent:
            with LogContext.bind(account_id=account.id):
                logger.warning("balance_drift_detected", extra={
                    "stored": str(check.stored.amount),
                    "recalculated": str(check.recalculated.amount),
                    "drift": str(check.drift.amount),
                })
        return check
