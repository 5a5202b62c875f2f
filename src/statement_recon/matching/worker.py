"""
Matching workers that drain the shared statement queue.
Each record is classified against the transaction index exactly once.
"""

from decimal import Decimal
from enum import Enum
from typing import Optional
import logging
import queue

from ..models.transaction import (
    BankStatementRecord,
    ReconciliationWindow,
    Transaction,
    TransactionIndex,
)
from ..models.result import ReconciliationResult

logger = logging.getLogger(__name__)

# Put once per worker after every producer has finished
QUEUE_CLOSED = object()


class MatchOutcome(Enum):
    """Classification of a single statement record."""

    MATCHED = "matched"
    MISSING_TRANSACTION = "missing_transaction"
    OUT_OF_WINDOW = "out_of_window"


def compute_discrepancy(transaction: Transaction, statement: BankStatementRecord) -> Decimal:
    """Absolute difference between the sign-adjusted ledger amount and the bank amount."""
    return abs(transaction.signed_amount - statement.amount)


class MatchingWorker:
    """
    Consumer of bank statement records.

    Runs until it takes ``QUEUE_CLOSED`` off the queue. A failure while
    classifying a record does not stop the worker from draining the queue,
    so producers can never block on a queue nobody reads; the first failure
    is re-raised once the queue is closed.
    """

    def __init__(
        self,
        index: TransactionIndex,
        result: ReconciliationResult,
        window: ReconciliationWindow,
        name: str = "worker",
    ):
        self.index = index
        self.result = result
        self.window = window
        self.name = name
        self.handled = 0

    def run(self, in_queue: queue.Queue) -> int:
        """
        Drain ``in_queue`` until it is closed.

        Returns:
            Number of records taken off the queue
        """
        error: Optional[BaseException] = None

        while True:
            item = in_queue.get()
            if item is QUEUE_CLOSED:
                break

            self.handled += 1
            if error is not None:
                continue
            try:
                self.process(item)
            except Exception as e:
                logger.error(f"{self.name} failed on statement {item.id}: {e}")
                error = e

        logger.debug(f"{self.name} finished after {self.handled} records")
        if error is not None:
            raise error
        return self.handled

    def process(self, statement: BankStatementRecord) -> MatchOutcome:
        """Classify one statement record and update the shared result."""
        if not self.window.contains_date(statement.date):
            logger.debug(f"Statement {statement.id} ({statement.date}) outside window")
            return MatchOutcome.OUT_OF_WINDOW

        self.result.increment_processed()

        transaction = self.index.claim(statement.id)
        if transaction is not None:
            self.result.increment_matched()
            self.result.add_discrepancy(compute_discrepancy(transaction, statement))
            logger.debug(f"Matched {statement.id} from {statement.bank_name}")
            return MatchOutcome.MATCHED

        if statement.id in self.index:
            logger.warning(
                f"Statement {statement.id} from {statement.bank_name} refers to a "
                "transaction that is already matched"
            )
        self.result.add_missing_transaction(statement)
        return MatchOutcome.MISSING_TRANSACTION
