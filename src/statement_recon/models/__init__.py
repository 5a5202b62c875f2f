"""Data models for reconciliation."""

from .transaction import (
    Transaction,
    TransactionType,
    BankStatementRecord,
    ReconciliationWindow,
    TransactionIndex,
)
from .result import ReconciliationResult, ReconciliationReport

__all__ = [
    "Transaction",
    "TransactionType",
    "BankStatementRecord",
    "ReconciliationWindow",
    "TransactionIndex",
    "ReconciliationResult",
    "ReconciliationReport",
]
