"""Concurrent reconciliation of system transactions against bank statements."""

from .matching.engine import Reconciliation, ReconciliationState
from .models.result import ReconciliationReport

__version__ = "0.1.0"

__all__ = ["Reconciliation", "ReconciliationState", "ReconciliationReport", "__version__"]
