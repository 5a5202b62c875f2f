"""Parsers for system transaction and bank statement files."""

from .transaction_loader import TransactionLoader
from .statement_parser import StatementIngestor, bank_name_from_path

__all__ = ["TransactionLoader", "StatementIngestor", "bank_name_from_path"]
