"""
Bank statement CSV ingestion.
Streams statement rows onto the shared matching queue, tagged with the bank.
"""

from datetime import date, datetime
from pathlib import Path
from typing import Union
import logging
import queue

import pandas as pd

from ..config import ReconConfig
from ..models.transaction import BankStatementRecord
from ..models.result import ReconciliationResult
from ..utils.exceptions import StatementParseError
from .transaction_loader import BadLineLogger, cell_text, check_decoded, parse_amount

logger = logging.getLogger(__name__)

# Column positions: unique_identifier, amount, date
ID_COLUMN = 0
AMOUNT_COLUMN = 1
DATE_COLUMN = 2


def bank_name_from_path(file_path: Union[str, Path], default: str = "General") -> str:
    """
    Derive the bank name from a statement file name.

    ``bca.csv`` gives ``bca``; a name with nothing before its first dot,
    such as ``.csv``, falls back to ``default``.
    """
    base_name = Path(file_path).name
    bank_name = base_name.split(".", 1)[0]
    return bank_name or default


class StatementIngestor:
    """
    Producer for one or more bank statement files.

    Each call to ``ingest`` registers the bank with the shared result before
    the first record for it is queued.
    """

    def __init__(self, config: ReconConfig, result: ReconciliationResult):
        self.config = config
        self.result = result
        self.input_config = config.input.statements
        self.default_bank_name = config.reconciliation.default_bank_name
        self.strict = config.reconciliation.statement_row_policy == "fail"
        # Undecodable bytes are fatal under the "fail" row policy
        self.encoding_errors = (
            "strict" if self.strict else self.input_config.encoding_errors
        )

    def ingest(self, file_path: Path, out_queue: queue.Queue) -> int:
        """
        Parse a statement file and put every record onto ``out_queue``.

        Blocks whenever the queue is full.

        Args:
            file_path: Path to the statement CSV
            out_queue: Bounded queue shared with the matching workers

        Returns:
            Number of records queued

        Raises:
            StatementParseError: If the file cannot be read, or a row is
                malformed and the row policy is "fail"
        """
        bank_name = bank_name_from_path(file_path, self.default_bank_name)
        self.result.register_bank(bank_name)
        logger.info(f"Ingesting statement {file_path} for bank {bank_name}")

        emitted = 0
        skipped = 0
        line_number = 1
        bad_lines = BadLineLogger(f"{bank_name} statement")

        try:
            with pd.read_csv(
                file_path,
                encoding=self.input_config.encoding,
                encoding_errors=self.encoding_errors,
                sep=self.input_config.delimiter,
                dtype=str,
                keep_default_na=False,
                skipinitialspace=True,
                on_bad_lines="error" if self.strict else bad_lines,
                engine="python",
                chunksize=self.input_config.chunk_size,
            ) as reader:
                for chunk in reader:
                    for row in chunk.itertuples(index=False, name=None):
                        line_number += 1
                        try:
                            record = self.parse_row(row, bank_name, line_number)
                        except StatementParseError as e:
                            if self.strict:
                                raise
                            logger.warning(
                                f"Skipping {bank_name} statement row {line_number}: {e}"
                            )
                            skipped += 1
                            continue

                        out_queue.put(record)
                        emitted += 1
        except pd.errors.EmptyDataError:
            logger.warning(f"Statement file is empty: {file_path}")
        except (OSError, UnicodeDecodeError, pd.errors.ParserError) as e:
            logger.error(f"Failed to read statement file {file_path}: {e}")
            raise StatementParseError(f"Failed to read {file_path}: {e}") from e

        skipped += bad_lines.skipped
        logger.info(
            f"Finished {file_path}: {emitted} records queued, {skipped} rows skipped"
        )
        return emitted

    def parse_row(
        self, row: tuple, bank_name: str, line_number: int
    ) -> BankStatementRecord:
        """
        Convert one CSV row to a BankStatementRecord.

        Raises:
            StatementParseError: If any field is missing or malformed
        """
        record_id = cell_text(row, ID_COLUMN)
        if not record_id:
            raise StatementParseError("missing statement id", line_number)

        try:
            check_decoded(row)
            amount = parse_amount(cell_text(row, AMOUNT_COLUMN))
            statement_date = self._parse_date(cell_text(row, DATE_COLUMN))
        except ValueError as e:
            raise StatementParseError(str(e), line_number) from e

        return BankStatementRecord(
            id=record_id,
            amount=amount,
            date=statement_date,
            bank_name=bank_name,
        )

    def _parse_date(self, value: str) -> date:
        if not value:
            raise ValueError("missing date")
        try:
            return datetime.strptime(value, self.input_config.date_format).date()
        except ValueError:
            raise ValueError(f"invalid date: {value!r}") from None
