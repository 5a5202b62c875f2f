"""Data models for system transactions and bank statement records."""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, tzinfo
from decimal import Decimal
from enum import Enum
from typing import Iterator, Optional
import threading

from ..utils.exceptions import ReconciliationError, ValidationError


class TransactionType(Enum):
    """Transaction type as recorded in the internal ledger."""

    CREDIT = "CREDIT"
    DEBIT = "DEBIT"

    @classmethod
    def from_value(cls, value: str) -> "TransactionType":
        """Look up a type from a CSV cell, ignoring case and padding."""
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            raise ValueError(f"unknown transaction type: {value!r}") from None


@dataclass
class Transaction:
    """
    Internal system transaction.

    Only the ``matched`` flag changes after loading, and only through
    ``TransactionIndex.claim``.
    """

    id: str
    amount: Decimal
    type: TransactionType
    timestamp: datetime
    matched: bool = False

    @property
    def signed_amount(self) -> Decimal:
        """Amount in the bank's sign convention (credits are negated)."""
        if self.type == TransactionType.CREDIT:
            return -self.amount
        return self.amount


@dataclass(frozen=True)
class BankStatementRecord:
    """A single row of a bank statement, tagged with its source bank."""

    id: str
    amount: Decimal
    date: date
    bank_name: str


@dataclass(frozen=True)
class ReconciliationWindow:
    """
    Half-open interval [start, end) of local time considered by a run.

    ``end`` is midnight of the day after the last reconciled date.
    """

    start: datetime
    end: datetime

    @classmethod
    def from_dates(
        cls, start_date: date, end_date: date, tz: tzinfo
    ) -> "ReconciliationWindow":
        """
        Build a window from inclusive calendar dates.

        Raises:
            ValidationError: If end_date is before start_date
        """
        if end_date < start_date:
            raise ValidationError(
                f"End date {end_date.isoformat()} is before start date {start_date.isoformat()}"
            )
        return cls(
            start=datetime.combine(start_date, time.min, tzinfo=tz),
            end=datetime.combine(end_date + timedelta(days=1), time.min, tzinfo=tz),
        )

    @property
    def tzinfo(self) -> Optional[tzinfo]:
        return self.start.tzinfo

    @property
    def start_date(self) -> date:
        return self.start.date()

    @property
    def end_date(self) -> date:
        """Last calendar date inside the window."""
        return (self.end - timedelta(days=1)).date()

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment < self.end

    def contains_date(self, day: date) -> bool:
        return self.contains(datetime.combine(day, time.min, tzinfo=self.tzinfo))


class TransactionIndex:
    """
    Mapping of transaction id to Transaction for a single run.

    The key set is written only while loading; ``freeze`` closes it before
    matching workers start, after which only ``matched`` flags change.
    """

    def __init__(self) -> None:
        self._transactions: dict[str, Transaction] = {}
        self._claim_lock = threading.Lock()
        self._frozen = False

    def add(self, transaction: Transaction) -> bool:
        """
        Insert a transaction, replacing any earlier entry with the same id.

        Returns:
            True if an earlier entry was overwritten
        """
        if self._frozen:
            raise ReconciliationError("Transaction index is frozen")
        replaced = transaction.id in self._transactions
        self._transactions[transaction.id] = transaction
        return replaced

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def get(self, transaction_id: str) -> Optional[Transaction]:
        return self._transactions.get(transaction_id)

    def claim(self, transaction_id: str) -> Optional[Transaction]:
        """
        Mark the transaction with this id as matched.

        Returns:
            The transaction, or None if the id is unknown or already matched
        """
        transaction = self._transactions.get(transaction_id)
        if transaction is None:
            return None

        with self._claim_lock:
            if transaction.matched:
                return None
            transaction.matched = True
        return transaction

    def unmatched_in_window(self, window: ReconciliationWindow) -> list[Transaction]:
        """In-window transactions never claimed, ordered by timestamp then id."""
        unmatched = [
            t
            for t in self._transactions.values()
            if not t.matched and window.contains(t.timestamp)
        ]
        return sorted(unmatched, key=lambda t: (t.timestamp, t.id))

    def __contains__(self, transaction_id: object) -> bool:
        return transaction_id in self._transactions

    def __len__(self) -> int:
        return len(self._transactions)

    def __iter__(self) -> Iterator[Transaction]:
        return iter(self._transactions.values())
