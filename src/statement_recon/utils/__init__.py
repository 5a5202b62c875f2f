"""Utility modules."""

from .exceptions import (
    ReconciliationError,
    ValidationError,
    ConfigurationError,
    RowParseError,
    TransactionParseError,
    StatementParseError,
    ReportGenerationError,
)
from .logging_config import setup_logging
from .validation import parse_date_boundary, validate_csv_source

__all__ = [
    "ReconciliationError",
    "ValidationError",
    "ConfigurationError",
    "RowParseError",
    "TransactionParseError",
    "StatementParseError",
    "ReportGenerationError",
    "setup_logging",
    "parse_date_boundary",
    "validate_csv_source",
]
