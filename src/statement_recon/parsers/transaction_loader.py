"""
System transaction CSV loader.
Builds the in-memory transaction index for a reconciliation window.
"""

from datetime import datetime, tzinfo
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Optional
import logging
import re

import pandas as pd

from ..config import ReconConfig
from ..models.transaction import (
    Transaction,
    TransactionIndex,
    TransactionType,
    ReconciliationWindow,
)
from ..models.result import ReconciliationResult
from ..utils.exceptions import TransactionParseError

logger = logging.getLogger(__name__)

# Column positions: trxID, amount, type, transactionTime
ID_COLUMN = 0
AMOUNT_COLUMN = 1
TYPE_COLUMN = 2
TIME_COLUMN = 3

# Inserted by the "replace" decoding error handler
REPLACEMENT_CHAR = "\ufffd"

# Seconds fraction of any length, e.g. Go's nanosecond RFC 3339 output
FRACTION_PATTERN = re.compile(r"^(.*\d{2}:\d{2}:\d{2})\.(\d+)(.*)$")


def cell_text(row: tuple, position: int) -> str:
    """Return a stripped cell value, or "" for missing cells."""
    if position >= len(row):
        return ""
    value = row[position]
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return ""
    return str(value).strip()


def check_decoded(row: tuple) -> None:
    """Reject a row holding bytes the configured encoding could not decode."""
    for value in row:
        if isinstance(value, str) and REPLACEMENT_CHAR in value:
            raise ValueError(f"undecodable bytes in {value!r}")


def parse_amount(value: str) -> Decimal:
    """Parse a decimal amount, rejecting blanks, NaN and infinities."""
    try:
        amount = Decimal(value)
    except InvalidOperation:
        raise ValueError(f"invalid amount: {value!r}") from None
    if not amount.is_finite():
        raise ValueError(f"invalid amount: {value!r}")
    return amount


def parse_timestamp(value: str, default_tz: tzinfo) -> datetime:
    """Parse an ISO-8601 timestamp; naive values are taken as local time."""
    if not value:
        raise ValueError("missing timestamp")
    if value.endswith(("Z", "z")):
        value = value[:-1] + "+00:00"

    # fromisoformat before 3.11 only takes 3 or 6 fraction digits
    match = FRACTION_PATTERN.match(value)
    if match:
        head, fraction, tail = match.groups()
        value = f"{head}.{fraction[:6].ljust(6, '0')}{tail}"

    try:
        moment = datetime.fromisoformat(value)
    except ValueError:
        raise ValueError(f"invalid timestamp: {value!r}") from None
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=default_tz)
    return moment


class BadLineLogger:
    """
    ``on_bad_lines`` handler for the python CSV engine.

    Logs and counts rows with more fields than the header, then drops them.
    """

    def __init__(self, source: str):
        self.source = source
        self.skipped = 0

    def __call__(self, bad_line: list[str]) -> Optional[list[str]]:
        self.skipped += 1
        logger.warning(
            f"Skipping {self.source} row with {len(bad_line)} fields: {bad_line}"
        )
        return None


class TransactionLoader:
    """
    Loader for the internal system transaction CSV.

    Malformed rows are logged and skipped; only rows inside the
    reconciliation window make it into the index.
    """

    def __init__(
        self,
        config: ReconConfig,
        window: ReconciliationWindow,
        result: ReconciliationResult,
    ):
        """
        Initialize the loader.

        Args:
            config: Application configuration object
            window: Reconciliation window to filter on
            result: Shared result whose processed counter is incremented
        """
        self.config = config
        self.window = window
        self.result = result
        self.tz = config.reconciliation.tzinfo

    def load(self, file_path: Path) -> tuple[TransactionIndex, int]:
        """
        Read the transaction file into a frozen TransactionIndex.

        Args:
            file_path: Path to the CSV file

        Returns:
            Tuple of (index, number of accepted rows)

        Raises:
            TransactionParseError: If the file itself cannot be read
        """
        logger.info(f"Loading system transactions: {file_path}")

        bad_lines = BadLineLogger("transaction")
        df = self._read_csv(file_path, bad_lines)
        index = TransactionIndex()
        accepted = 0
        skipped = bad_lines.skipped

        for position, row in enumerate(df.itertuples(index=False, name=None)):
            # Header is line 1
            line_number = position + 2
            try:
                transaction = self.parse_row(row, line_number)
            except TransactionParseError as e:
                logger.warning(f"Skipping transaction row {line_number}: {e}")
                skipped += 1
                continue

            if not self.window.contains(transaction.timestamp):
                continue

            if index.add(transaction):
                logger.warning(
                    f"Duplicate transaction id {transaction.id} at row {line_number}; "
                    "keeping the later row"
                )
            self.result.increment_processed()
            accepted += 1

        index.freeze()
        logger.info(
            f"Loaded {len(index)} transactions in window "
            f"({accepted} rows accepted, {skipped} rows skipped)"
        )
        return index, accepted

    def parse_row(self, row: tuple, line_number: int) -> Transaction:
        """
        Convert one CSV row to a Transaction.

        Raises:
            TransactionParseError: If any field is missing or malformed
        """
        transaction_id = cell_text(row, ID_COLUMN)
        if not transaction_id:
            raise TransactionParseError("missing transaction id", line_number)

        try:
            check_decoded(row)
            amount = parse_amount(cell_text(row, AMOUNT_COLUMN))
            txn_type = TransactionType.from_value(cell_text(row, TYPE_COLUMN))
            timestamp = parse_timestamp(cell_text(row, TIME_COLUMN), self.tz)
        except ValueError as e:
            raise TransactionParseError(str(e), line_number) from e

        return Transaction(
            id=transaction_id,
            amount=amount,
            type=txn_type,
            timestamp=timestamp,
        )

    def _read_csv(self, file_path: Path, bad_lines: BadLineLogger) -> pd.DataFrame:
        input_config = self.config.input.transactions
        try:
            return pd.read_csv(
                file_path,
                encoding=input_config.encoding,
                encoding_errors=input_config.encoding_errors,
                sep=input_config.delimiter,
                dtype=str,
                keep_default_na=False,
                skipinitialspace=True,
                on_bad_lines=bad_lines,
                engine="python",
            )
        except pd.errors.EmptyDataError:
            logger.warning(f"Transaction file is empty: {file_path}")
            return pd.DataFrame()
        except (OSError, UnicodeDecodeError, pd.errors.ParserError) as e:
            logger.error(f"Failed to read transaction file: {e}")
            raise TransactionParseError(f"Failed to read {file_path}: {e}") from e
