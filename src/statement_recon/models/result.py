"""Thread-safe accumulation of reconciliation results and the final report."""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Iterable
import threading

from .transaction import BankStatementRecord, ReconciliationWindow, Transaction
from ..utils.exceptions import ReconciliationError


class ReconciliationResult:
    """
    Counters and unmatched collections shared by every matching worker.

    Each mutation takes exactly one lock for the duration of that mutation.
    Bank buckets must be registered before any record is filed under them.
    """

    def __init__(self) -> None:
        self._processed_count = 0
        self._matched_count = 0
        self._unmatched_total = 0
        self._total_discrepancy = Decimal("0")

        self._counter_lock = threading.Lock()
        self._discrepancy_lock = threading.Lock()
        self._registry_lock = threading.Lock()

        self._missing_transactions: dict[str, list[BankStatementRecord]] = {}
        self._bank_locks: dict[str, threading.Lock] = {}
        self._missing_bank_statements: list[Transaction] = []

    # Counters

    def increment_processed(self, count: int = 1) -> None:
        with self._counter_lock:
            self._processed_count += count

    def increment_matched(self) -> None:
        with self._counter_lock:
            self._matched_count += 1

    def add_discrepancy(self, amount: Decimal) -> None:
        with self._discrepancy_lock:
            self._total_discrepancy += amount

    @property
    def processed_count(self) -> int:
        with self._counter_lock:
            return self._processed_count

    @property
    def matched_count(self) -> int:
        with self._counter_lock:
            return self._matched_count

    @property
    def unmatched_total(self) -> int:
        with self._counter_lock:
            return self._unmatched_total

    @property
    def total_discrepancy(self) -> Decimal:
        with self._discrepancy_lock:
            return self._total_discrepancy

    # Unmatched collections

    def register_bank(self, bank_name: str) -> None:
        """Create the bucket and lock for a bank. Registering twice is a no-op."""
        with self._registry_lock:
            if bank_name not in self._bank_locks:
                self._bank_locks[bank_name] = threading.Lock()
                self._missing_transactions[bank_name] = []

    @property
    def banks(self) -> list[str]:
        with self._registry_lock:
            return sorted(self._bank_locks)

    def add_missing_transaction(self, statement: BankStatementRecord) -> None:
        """
        File a statement that has no system transaction under its bank.

        Raises:
            ReconciliationError: If the statement's bank was never registered
        """
        with self._registry_lock:
            bank_lock = self._bank_locks.get(statement.bank_name)
        if bank_lock is None:
            raise ReconciliationError(
                f"Bank {statement.bank_name!r} was not registered before matching"
            )

        with bank_lock:
            self._missing_transactions[statement.bank_name].append(statement)
        with self._counter_lock:
            self._unmatched_total += 1

    def add_missing_bank_statements(self, transactions: Iterable[Transaction]) -> None:
        """Record transactions that no bank statement matched."""
        transactions = list(transactions)
        with self._registry_lock:
            self._missing_bank_statements.extend(transactions)
        with self._counter_lock:
            self._unmatched_total += len(transactions)

    def missing_transactions(self) -> dict[str, list[BankStatementRecord]]:
        """Copy of the statement-side unmatched records, keyed by bank."""
        snapshot: dict[str, list[BankStatementRecord]] = {}
        for bank_name in self.banks:
            with self._bank_locks[bank_name]:
                snapshot[bank_name] = list(self._missing_transactions[bank_name])
        return snapshot

    def missing_bank_statements(self) -> list[Transaction]:
        with self._registry_lock:
            return list(self._missing_bank_statements)


@dataclass(frozen=True)
class ReconciliationReport:
    """Immutable snapshot of a finished reconciliation run."""

    window: ReconciliationWindow
    transaction_file: str
    statement_files: list[str]
    processed_count: int
    matched_count: int
    unmatched_count: int
    total_discrepancy: Decimal
    missing_bank_statements: list[Transaction]
    missing_transactions: dict[str, list[BankStatementRecord]]
    processing_time_seconds: float = 0.0
    generated_at: datetime = field(default_factory=datetime.now)

    @property
    def missing_transaction_count(self) -> int:
        """Number of bank records without a system transaction."""
        return sum(len(records) for records in self.missing_transactions.values())

    @property
    def match_rate(self) -> float:
        """Percentage of processed statement-side records that matched."""
        statement_total = self.matched_count + self.missing_transaction_count
        if statement_total == 0:
            return 0.0
        return (self.matched_count / statement_total) * 100

    @classmethod
    def from_result(
        cls,
        result: ReconciliationResult,
        window: ReconciliationWindow,
        transaction_file: str,
        statement_files: list[str],
        processing_time: float = 0.0,
    ) -> "ReconciliationReport":
        missing_transactions = {
            bank: sorted(records, key=lambda r: (r.date, r.id))
            for bank, records in result.missing_transactions().items()
        }
        return cls(
            window=window,
            transaction_file=transaction_file,
            statement_files=statement_files,
            processed_count=result.processed_count,
            matched_count=result.matched_count,
            unmatched_count=result.unmatched_total,
            total_discrepancy=result.total_discrepancy,
            missing_bank_statements=result.missing_bank_statements(),
            missing_transactions=missing_transactions,
            processing_time_seconds=processing_time,
        )
