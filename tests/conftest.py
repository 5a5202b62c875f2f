import logging
from pathlib import Path

import pytest

from statement_recon.config import ReconConfig, ReconciliationSettings
from statement_recon.utils.logging_config import LOGGER_NAME


def write_csv(path: Path, header: str, rows: list[str]) -> Path:
    path.write_text("\n".join([header, *rows]) + "\n")
    return path


@pytest.fixture(autouse=True)
def reset_app_logger():
    yield
    logger = logging.getLogger(LOGGER_NAME)
    logger.handlers = []
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def config():
    return ReconConfig()


@pytest.fixture
def strict_config():
    return ReconConfig(reconciliation=ReconciliationSettings(statement_row_policy="fail"))


@pytest.fixture
def transaction_csv(tmp_path):
    return write_csv(
        tmp_path / "transactions.csv",
        "trxID,amount,type,transactionTime",
        [
            "T1,100.00,DEBIT,2024-01-05T10:00:00+07:00",
            "T2,100.00,CREDIT,2024-01-06T11:00:00+07:00",
            "T3,50.50,DEBIT,2024-01-10T09:30:00+07:00",
            "T4,20.00,DEBIT,2024-02-15T08:00:00+07:00",
            "T5,abc,DEBIT,2024-01-11T08:00:00+07:00",
            "T6,75.25,DEBIT,2024-01-31T23:59:59+07:00",
            "T7,10.00,DEBIT,2023-12-31T23:59:59+07:00",
            "T8,300,CREDIT,2024-01-01T00:00:00+07:00",
        ],
    )


@pytest.fixture
def bca_csv(tmp_path):
    return write_csv(
        tmp_path / "bca.csv",
        "unique_identifier,amount,date",
        [
            "T1,100.00,2024-01-05",
            "T2,95.00,2024-01-06",
            "B9,42.00,2024-01-07",
            "T4,20.00,2024-02-15",
        ],
    )


@pytest.fixture
def mandiri_csv(tmp_path):
    return write_csv(
        tmp_path / "mandiri.csv",
        "unique_identifier,amount,date",
        [
            "T6,75.00,2024-01-31",
            "M1,10.00,2024-01-20",
            "T8,-300,2024-01-01",
        ],
    )
