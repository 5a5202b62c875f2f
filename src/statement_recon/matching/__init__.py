"""Concurrent matching engine and workers."""

from .engine import Reconciliation, ReconciliationState
from .worker import MatchingWorker, MatchOutcome, QUEUE_CLOSED, compute_discrepancy

__all__ = [
    "Reconciliation",
    "ReconciliationState",
    "MatchingWorker",
    "MatchOutcome",
    "QUEUE_CLOSED",
    "compute_discrepancy",
]
