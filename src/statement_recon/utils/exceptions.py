"""Custom exceptions for the reconciliation application."""

from typing import Optional


class ReconciliationError(Exception):
    """Base exception for reconciliation errors."""

    pass


class ValidationError(ReconciliationError):
    """Invalid input source or date boundary."""

    pass


class ConfigurationError(ReconciliationError):
    """Error in configuration."""

    pass


class RowParseError(ReconciliationError):
    """A single CSV row could not be parsed."""

    def __init__(self, message: str, row_number: Optional[int] = None):
        super().__init__(message)
        self.row_number = row_number


class TransactionParseError(RowParseError):
    """Error parsing a system transaction row."""

    pass


class StatementParseError(RowParseError):
    """Error parsing a bank statement row."""

    pass


class ReportGenerationError(ReconciliationError):
    """Error generating a report."""

    pass
