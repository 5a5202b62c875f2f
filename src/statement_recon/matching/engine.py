"""
Concurrent reconciliation engine.
Loads the transaction index, runs statement producers and matching workers
against a bounded queue, then sweeps for transactions no bank reported.
"""

from concurrent.futures import Future, ThreadPoolExecutor, wait
from datetime import date, datetime
from enum import Enum
from pathlib import Path
from typing import Optional, Sequence, Union
import logging
import queue

from ..config import ReconConfig
from ..models.transaction import ReconciliationWindow, Transaction, TransactionIndex
from ..models.result import ReconciliationReport, ReconciliationResult
from ..parsers.transaction_loader import TransactionLoader
from ..parsers.statement_parser import StatementIngestor
from ..utils.exceptions import ReconciliationError, ValidationError
from ..utils.validation import parse_date_boundary, validate_csv_source
from .worker import QUEUE_CLOSED, MatchingWorker

logger = logging.getLogger(__name__)


class ReconciliationState(Enum):
    """Lifecycle of a reconciliation run. Steps run strictly in this order."""

    CREATED = "created"
    TRANSACTIONS_LOADED = "transactions_loaded"
    RECONCILING = "reconciling"
    UNMATCHED_SWEPT = "unmatched_swept"
    REPORTED = "reported"


class Reconciliation:
    """
    A single reconciliation run over one transaction file and any number of
    bank statement files.

    Every piece of mutable state (index, queue, counters and locks) belongs
    to the instance, so independent runs can execute side by side.
    """

    def __init__(
        self,
        transaction_file: Union[str, Path],
        statement_files: Sequence[Union[str, Path]],
        start_date: Union[str, date],
        end_date: Union[str, date],
        config: Optional[ReconConfig] = None,
    ):
        """
        Validate the sources and the date window.

        Args:
            transaction_file: System transaction CSV
            statement_files: Bank statement CSVs, one bank per file
            start_date: First reconciled day (YYYY-MM-DD or date)
            end_date: Last reconciled day, inclusive
            config: Application configuration (defaults if omitted)

        Raises:
            ValidationError: On a bad source reference or date boundary
        """
        self.config = config or ReconConfig()

        if not statement_files:
            raise ValidationError("At least one bank statement file is required")

        self.transaction_file = validate_csv_source(transaction_file)
        self.statement_files = [validate_csv_source(path) for path in statement_files]
        self.window = ReconciliationWindow.from_dates(
            parse_date_boundary(start_date),
            parse_date_boundary(end_date),
            self.config.reconciliation.tzinfo,
        )

        self.result = ReconciliationResult()
        self.index: Optional[TransactionIndex] = None
        self.state = ReconciliationState.CREATED
        self._queue: queue.Queue = queue.Queue(maxsize=self.config.reconciliation.queue_size)
        self._started_at: Optional[datetime] = None

    def process(self) -> ReconciliationReport:
        """
        Run every step of the reconciliation.

        Returns:
            The final report

        Raises:
            ReconciliationError: If any fatal error occurs; no report is built
        """
        self._started_at = datetime.now()
        logger.info(
            f"Reconciling {self.transaction_file.name} against "
            f"{len(self.statement_files)} statement file(s) for "
            f"{self.window.start_date} to {self.window.end_date}"
        )

        self.load_transactions()
        self.reconcile()
        self.collect_unmatched_transactions()
        return self.build_report()

    def load_transactions(self) -> int:
        """Load and freeze the transaction index. Returns accepted row count."""
        self._require_state(ReconciliationState.CREATED)

        loader = TransactionLoader(self.config, self.window, self.result)
        self.index, accepted = loader.load(self.transaction_file)

        self.state = ReconciliationState.TRANSACTIONS_LOADED
        return accepted

    def reconcile(self) -> None:
        """
        Run statement producers and matching workers to completion.

        Workers start first and consume while producers are still reading.
        The queue is closed only after every producer has finished, and the
        first producer or worker failure is re-raised after all threads end.
        """
        self._require_state(ReconciliationState.TRANSACTIONS_LOADED)
        self.state = ReconciliationState.RECONCILING

        settings = self.config.reconciliation
        ingestor = StatementIngestor(self.config, self.result)
        workers = [
            MatchingWorker(self.index, self.result, self.window, name=f"worker-{i + 1}")
            for i in range(settings.workers)
        ]

        with ThreadPoolExecutor(
            max_workers=settings.workers, thread_name_prefix="recon-worker"
        ) as worker_pool, ThreadPoolExecutor(
            max_workers=len(self.statement_files), thread_name_prefix="recon-ingest"
        ) as producer_pool:
            worker_futures = [worker_pool.submit(w.run, self._queue) for w in workers]
            producer_futures = [
                producer_pool.submit(ingestor.ingest, path, self._queue)
                for path in self.statement_files
            ]

            wait(producer_futures)
            for _ in workers:
                self._queue.put(QUEUE_CLOSED)
            wait(worker_futures)

        error = _first_error(producer_futures) or _first_error(worker_futures)
        if error is not None:
            logger.error(f"Reconciliation aborted: {error}")
            raise error

        queued = sum(f.result() for f in producer_futures)
        logger.info(
            f"Matched {self.result.matched_count} of {queued} queued statement records"
        )

    def collect_unmatched_transactions(self) -> list[Transaction]:
        """Record in-window transactions that no statement matched."""
        self._require_state(ReconciliationState.RECONCILING)

        unmatched = self.index.unmatched_in_window(self.window)
        self.result.add_missing_bank_statements(unmatched)
        logger.info(f"{len(unmatched)} transactions have no bank statement")

        self.state = ReconciliationState.UNMATCHED_SWEPT
        return unmatched

    def build_report(self) -> ReconciliationReport:
        """Snapshot the result into an immutable report."""
        self._require_state(ReconciliationState.UNMATCHED_SWEPT)

        elapsed = 0.0
        if self._started_at is not None:
            elapsed = (datetime.now() - self._started_at).total_seconds()

        report = ReconciliationReport.from_result(
            self.result,
            window=self.window,
            transaction_file=self.transaction_file.name,
            statement_files=[path.name for path in self.statement_files],
            processing_time=elapsed,
        )
        self.state = ReconciliationState.REPORTED
        logger.info(
            f"Reconciliation complete: {report.processed_count} processed, "
            f"{report.matched_count} matched, {report.unmatched_count} unmatched"
        )
        return report

    def _require_state(self, expected: ReconciliationState) -> None:
        if self.state != expected:
            raise ReconciliationError(
                f"Reconciliation is {self.state.value}, expected {expected.value}"
            )


def _first_error(futures: list[Future]) -> Optional[BaseException]:
    for future in futures:
        error = future.exception()
        if error is not None:
            return error
    return None
