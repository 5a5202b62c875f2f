import logging
import queue
from datetime import date, datetime
from decimal import Decimal
from zoneinfo import ZoneInfo

import pytest

from conftest import write_csv
from statement_recon.models import ReconciliationResult, ReconciliationWindow, TransactionType
from statement_recon.parsers import StatementIngestor, TransactionLoader, bank_name_from_path
from statement_recon.utils.exceptions import StatementParseError

JAKARTA = ZoneInfo("Asia/Jakarta")


@pytest.fixture
def window():
    return ReconciliationWindow.from_dates(date(2024, 1, 1), date(2024, 1, 31), JAKARTA)


def drain(q: queue.Queue) -> list:
    items = []
    while not q.empty():
        items.append(q.get_nowait())
    return items


class TestTransactionLoader:
    def test_loads_only_valid_in_window_rows(self, config, window, transaction_csv, caplog):
        result = ReconciliationResult()
        loader = TransactionLoader(config, window, result)

        with caplog.at_level(logging.WARNING):
            index, accepted = loader.load(transaction_csv)

        assert sorted(t.id for t in index) == ["T1", "T2", "T3", "T6", "T8"]
        assert accepted == 5
        assert result.processed_count == 5
        assert index.frozen
        assert "T4" not in index and "T7" not in index
        assert any("row 6" in message for message in caplog.messages)

    def test_parses_amount_type_and_timestamp(self, config, window, transaction_csv):
        index, _ = TransactionLoader(config, window, ReconciliationResult()).load(transaction_csv)

        t2 = index.get("T2")
        assert t2.amount == Decimal("100.00")
        assert t2.type == TransactionType.CREDIT
        assert t2.timestamp == datetime(2024, 1, 6, 11, 0, tzinfo=JAKARTA)
        assert not t2.matched

    def test_timestamp_offsets_and_naive_values(self, config, window, tmp_path):
        path = write_csv(
            tmp_path / "trx.csv",
            "trxID,amount,type,transactionTime",
            [
                "N1,1.00,debit,2024-01-02T00:00:00",
                "Z1,2.00,CREDIT,2024-01-01T16:59:59Z",
                "Z2,3.00,CREDIT,2023-12-31T16:59:59Z",
            ],
        )
        index, accepted = TransactionLoader(config, window, ReconciliationResult()).load(path)

        assert accepted == 2
        assert index.get("N1").timestamp == datetime(2024, 1, 2, tzinfo=JAKARTA)
        assert "Z1" in index
        assert "Z2" not in index

    def test_duplicate_ids_keep_last_row(self, config, window, tmp_path, caplog):
        path = write_csv(
            tmp_path / "trx.csv",
            "trxID,amount,type,transactionTime",
            [
                "D1,1.00,DEBIT,2024-01-02T00:00:00+07:00",
                "D1,9.00,DEBIT,2024-01-03T00:00:00+07:00",
            ],
        )
        result = ReconciliationResult()

        with caplog.at_level(logging.WARNING):
            index, accepted = TransactionLoader(config, window, result).load(path)

        assert len(index) == 1
        assert index.get("D1").amount == Decimal("9.00")
        assert accepted == 2
        assert any("Duplicate transaction id D1" in m for m in caplog.messages)

    def test_skips_incomplete_and_unknown_type_rows(self, config, window, tmp_path):
        path = write_csv(
            tmp_path / "trx.csv",
            "trxID,amount,type,transactionTime",
            [
                "S1,5",
                "S2,5.00,REFUND,2024-01-02T00:00:00+07:00",
                ",5.00,DEBIT,2024-01-02T00:00:00+07:00",
                "S3,NaN,DEBIT,2024-01-02T00:00:00+07:00",
                "S4,5.00,DEBIT,not-a-time",
                "OK,5.00,DEBIT,2024-01-02T00:00:00+07:00",
            ],
        )
        index, accepted = TransactionLoader(config, window, ReconciliationResult()).load(path)

        assert [t.id for t in index] == ["OK"]
        assert accepted == 1

    def test_header_only_file_gives_empty_index(self, config, window, tmp_path):
        path = write_csv(tmp_path / "trx.csv", "trxID,amount,type,transactionTime", [])
        index, accepted = TransactionLoader(config, window, ReconciliationResult()).load(path)

        assert len(index) == 0
        assert accepted == 0

    def test_fractional_seconds_of_any_precision(self, config, window, tmp_path):
        path = write_csv(
            tmp_path / "trx.csv",
            "trxID,amount,type,transactionTime",
            [
                "F1,1.00,DEBIT,2024-01-02T10:00:00.123456789+07:00",
                "F2,2.00,DEBIT,2024-01-02T03:00:00.5Z",
                "F3,3.00,DEBIT,2024-01-02T10:00:00.1234",
            ],
        )
        index, accepted = TransactionLoader(config, window, ReconciliationResult()).load(path)

        assert accepted == 3
        assert index.get("F1").timestamp == datetime(2024, 1, 2, 10, 0, 0, 123456, tzinfo=JAKARTA)
        assert index.get("F2").timestamp == datetime(2024, 1, 2, 10, 0, 0, 500000, tzinfo=JAKARTA)
        assert index.get("F3").timestamp.microsecond == 123400

    def test_undecodable_bytes_skip_only_that_row(self, config, window, tmp_path, caplog):
        path = tmp_path / "trx.csv"
        path.write_bytes(
            b"trxID,amount,type,transactionTime\n"
            b"T\xe9,1.00,DEBIT,2024-01-02T00:00:00+07:00\n"
            b"OK,2.00,DEBIT,2024-01-02T00:00:00+07:00\n"
        )

        with caplog.at_level(logging.WARNING):
            index, accepted = TransactionLoader(config, window, ReconciliationResult()).load(path)

        assert [t.id for t in index] == ["OK"]
        assert accepted == 1
        assert any("undecodable bytes" in m for m in caplog.messages)

    def test_rows_with_extra_fields_are_logged(self, config, window, tmp_path, caplog):
        path = write_csv(
            tmp_path / "trx.csv",
            "trxID,amount,type,transactionTime",
            [
                "X1,1.00,DEBIT,2024-01-02T00:00:00+07:00,extra",
                "OK,2.00,DEBIT,2024-01-02T00:00:00+07:00",
            ],
        )

        with caplog.at_level(logging.WARNING):
            index, _ = TransactionLoader(config, window, ReconciliationResult()).load(path)

        assert [t.id for t in index] == ["OK"]
        assert any("Skipping transaction row with 5 fields" in m for m in caplog.messages)


class TestBankName:
    @pytest.mark.parametrize(
        "path, expected",
        [
            ("bca.csv", "bca"),
            ("/data/statements/mandiri.csv", "mandiri"),
            ("bni.2024-01.csv", "bni"),
            (".csv", "General"),
        ],
    )
    def test_bank_name_from_path(self, path, expected):
        assert bank_name_from_path(path) == expected

    def test_custom_fallback(self):
        assert bank_name_from_path("dir/.csv", default="Unknown") == "Unknown"


class TestStatementIngestor:
    def test_ingest_tags_records_with_bank(self, config, bca_csv):
        result = ReconciliationResult()
        q: queue.Queue = queue.Queue()

        emitted = StatementIngestor(config, result).ingest(bca_csv, q)
        records = drain(q)

        assert emitted == 4
        assert [r.id for r in records] == ["T1", "T2", "B9", "T4"]
        assert {r.bank_name for r in records} == {"bca"}
        assert records[1].amount == Decimal("95.00")
        assert records[3].date == date(2024, 2, 15)
        assert result.banks == ["bca"]

    def test_bank_is_registered_before_first_record(self, config, bca_csv):
        result = ReconciliationResult()
        seen_banks = []

        class RecordingQueue(queue.Queue):
            def put(self, item, block=True, timeout=None):
                seen_banks.append(result.banks)
                super().put(item, block, timeout)

        StatementIngestor(config, result).ingest(bca_csv, RecordingQueue())

        assert seen_banks[0] == ["bca"]

    def test_malformed_rows_are_skipped_by_default(self, config, tmp_path, caplog):
        path = write_csv(
            tmp_path / "bri.csv",
            "unique_identifier,amount,date",
            ["R1,10.00,2024-01-02", "R2,ten,2024-01-02", "R3,10.00,02/01/2024", "R4,1,2024-01-03"],
        )
        q: queue.Queue = queue.Queue()

        with caplog.at_level(logging.WARNING):
            emitted = StatementIngestor(config, ReconciliationResult()).ingest(path, q)

        assert emitted == 2
        assert [r.id for r in drain(q)] == ["R1", "R4"]
        assert sum("Skipping bri statement row" in m for m in caplog.messages) == 2

    def test_malformed_row_is_fatal_with_fail_policy(self, strict_config, tmp_path):
        path = write_csv(
            tmp_path / "bri.csv",
            "unique_identifier,amount,date",
            ["R1,10.00,2024-01-02", "R2,ten,2024-01-02"],
        )

        with pytest.raises(StatementParseError) as excinfo:
            StatementIngestor(strict_config, ReconciliationResult()).ingest(path, queue.Queue())
        assert excinfo.value.row_number == 3

    def test_streams_across_chunks(self, config, tmp_path):
        config.input.statements.chunk_size = 2
        rows = [f"C{i},{i}.00,2024-01-0{1 + i % 9}" for i in range(7)]
        path = write_csv(tmp_path / "permata.csv", "unique_identifier,amount,date", rows)
        q: queue.Queue = queue.Queue()

        emitted = StatementIngestor(config, ReconciliationResult()).ingest(path, q)

        assert emitted == 7
        assert [r.id for r in drain(q)] == [f"C{i}" for i in range(7)]

    def test_rows_with_extra_fields_are_logged_and_skipped(self, config, tmp_path, caplog):
        path = write_csv(
            tmp_path / "bri.csv",
            "unique_identifier,amount,date",
            ["R1,10.00,2024-01-02", "X1,5.00,2024-01-06,extra", "R2,1,2024-01-03"],
        )
        q: queue.Queue = queue.Queue()

        with caplog.at_level(logging.WARNING):
            emitted = StatementIngestor(config, ReconciliationResult()).ingest(path, q)

        assert emitted == 2
        assert [r.id for r in drain(q)] == ["R1", "R2"]
        assert any("Skipping bri statement row with 4 fields" in m for m in caplog.messages)
        assert any("1 rows skipped" in m for m in caplog.messages)

    def test_row_with_extra_fields_is_fatal_with_fail_policy(self, strict_config, tmp_path):
        path = write_csv(
            tmp_path / "bri.csv",
            "unique_identifier,amount,date",
            ["R1,10.00,2024-01-02", "X1,5.00,2024-01-06,extra"],
        )

        with pytest.raises(StatementParseError):
            StatementIngestor(strict_config, ReconciliationResult()).ingest(path, queue.Queue())

    def test_undecodable_row_is_skipped_by_default(self, config, tmp_path, caplog):
        path = tmp_path / "bri.csv"
        path.write_bytes(
            b"unique_identifier,amount,date\n"
            b"X\xe9,5.00,2024-01-06\n"
            b"R1,10.00,2024-01-02\n"
        )
        q: queue.Queue = queue.Queue()

        with caplog.at_level(logging.WARNING):
            emitted = StatementIngestor(config, ReconciliationResult()).ingest(path, q)

        assert emitted == 1
        assert [r.id for r in drain(q)] == ["R1"]
        assert any(
            "Skipping bri statement row 2" in m and "undecodable bytes" in m
            for m in caplog.messages
        )

    def test_undecodable_bytes_are_fatal_with_fail_policy(self, strict_config, tmp_path):
        path = tmp_path / "bri.csv"
        path.write_bytes(
            b"unique_identifier,amount,date\n"
            b"R1,10.00,2024-01-02\n"
            b"X\xe9,5.00,2024-01-06\n"
        )

        with pytest.raises(StatementParseError):
            StatementIngestor(strict_config, ReconciliationResult()).ingest(path, queue.Queue())
