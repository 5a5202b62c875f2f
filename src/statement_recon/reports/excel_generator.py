"""
Excel report generator for reconciliation results.
Creates a summary sheet plus one sheet of unmatched records per side.
"""

from pathlib import Path
import logging
import re

from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill, Border, Side
from openpyxl.worksheet.worksheet import Worksheet

from ..models.result import ReconciliationReport
from ..models.transaction import BankStatementRecord
from ..config import ReconConfig
from ..utils.exceptions import ReportGenerationError

logger = logging.getLogger(__name__)

# Style definitions
HEADER_FILL = PatternFill(start_color="4472C4", end_color="4472C4", fill_type="solid")
HEADER_FONT = Font(color="FFFFFF", bold=True)
UNMATCHED_FILL = PatternFill(start_color="FFC7CE", end_color="FFC7CE", fill_type="solid")
THIN_BORDER = Border(
    left=Side(style="thin"),
    right=Side(style="thin"),
    top=Side(style="thin"),
    bottom=Side(style="thin"),
)

SUMMARY_SHEET = "Summary"
TRANSACTIONS_SHEET = "Unmatched Transactions"
MAX_SHEET_TITLE = 31
INVALID_TITLE_CHARS = re.compile(r"[\[\]:*?/\\]")


def bank_sheet_title(bank_name: str) -> str:
    """Excel-safe sheet title for a bank's unmatched statements."""
    title = INVALID_TITLE_CHARS.sub("_", f"Unmatched {bank_name}")
    return title[:MAX_SHEET_TITLE]


class ExcelReportGenerator:
    """Generates Excel reconciliation reports with multiple sheets."""

    def __init__(self, config: ReconConfig):
        self.config = config

    def generate_report(self, report: ReconciliationReport, output_path: Path) -> Path:
        """
        Write the reconciliation report as a workbook.

        Args:
            report: Finished reconciliation report
            output_path: Path for output file

        Returns:
            Path to generated report

        Raises:
            ReportGenerationError: If the workbook cannot be written
        """
        logger.info(f"Generating Excel report: {output_path}")

        wb = Workbook()

        # Remove default sheet
        if wb.active:
            wb.remove(wb.active)

        self._create_summary_sheet(wb, report)
        self._create_transactions_sheet(wb, report)
        used_titles = {SUMMARY_SHEET, TRANSACTIONS_SHEET}
        for bank_name in sorted(report.missing_transactions):
            title = bank_sheet_title(bank_name)
            suffix = 2
            while title in used_titles:
                tag = f" ({suffix})"
                title = bank_sheet_title(bank_name)[: MAX_SHEET_TITLE - len(tag)] + tag
                suffix += 1
            used_titles.add(title)
            self._create_bank_sheet(wb, title, report.missing_transactions[bank_name])

        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            wb.save(output_path)
        except OSError as e:
            raise ReportGenerationError(f"Failed to write {output_path}: {e}") from e

        logger.info(f"Report saved: {output_path}")
        return output_path

    def _create_summary_sheet(self, wb: Workbook, report: ReconciliationReport) -> None:
        """Create the summary sheet with key metrics."""
        ws = wb.create_sheet(SUMMARY_SHEET)

        ws["A1"] = "Bank Statement Reconciliation Summary"
        ws["A1"].font = Font(size=16, bold=True)
        ws.merge_cells("A1:D1")

        ws["A3"] = "File Information"
        ws["A3"].font = Font(bold=True)

        file_info = [
            ("Transaction File:", report.transaction_file),
            ("Statement Files:", ", ".join(report.statement_files)),
            ("Generated At:", report.generated_at.strftime("%Y-%m-%d %H:%M:%S")),
            (
                "Reconciliation Window:",
                f"{report.window.start_date} to {report.window.end_date}",
            ),
        ]
        for i, (label, value) in enumerate(file_info, start=4):
            ws[f"A{i}"] = label
            ws[f"B{i}"] = str(value)

        ws["A9"] = "Results"
        ws["A9"].font = Font(bold=True)

        result_data = [
            ("Processed Records:", report.processed_count),
            ("Matched Transactions:", report.matched_count),
            ("Unmatched Records:", report.unmatched_count),
            ("Missing Bank Statements:", len(report.missing_bank_statements)),
            ("Missing System Transactions:", report.missing_transaction_count),
            ("Match Rate:", f"{report.match_rate:.1f}%"),
            ("Total Discrepancies:", f"{report.total_discrepancy:,.2f}"),
            ("Processing Time:", f"{report.processing_time_seconds:.2f}s"),
        ]
        for i, (label, value) in enumerate(result_data, start=10):
            ws[f"A{i}"] = label
            ws[f"B{i}"] = value

        ws.column_dimensions["A"].width = 30
        ws.column_dimensions["B"].width = 40

    def _create_transactions_sheet(
        self, wb: Workbook, report: ReconciliationReport
    ) -> None:
        """Create the sheet of system transactions with no bank statement."""
        ws = wb.create_sheet(TRANSACTIONS_SHEET)
        self._write_headers(ws, ["Transaction ID", "Amount", "Type", "Time"])

        tz = report.window.tzinfo
        rows = [
            [
                txn.id,
                txn.amount,
                txn.type.value,
                txn.timestamp.astimezone(tz).strftime("%Y-%m-%d %H:%M:%S"),
            ]
            for txn in report.missing_bank_statements
        ]
        self._write_unmatched_rows(ws, rows)

    def _create_bank_sheet(
        self, wb: Workbook, title: str, statements: list[BankStatementRecord]
    ) -> None:
        """Create the sheet of one bank's statements with no system transaction."""
        ws = wb.create_sheet(title)
        self._write_headers(ws, ["Statement ID", "Amount", "Date"])

        rows = [[s.id, s.amount, s.date] for s in statements]
        self._write_unmatched_rows(ws, rows)

    def _write_headers(self, ws: Worksheet, headers: list[str]) -> None:
        for col, header in enumerate(headers, start=1):
            cell = ws.cell(row=1, column=col, value=header)
            cell.fill = HEADER_FILL
            cell.font = HEADER_FONT
            cell.border = THIN_BORDER

    def _write_unmatched_rows(self, ws: Worksheet, rows: list[list]) -> None:
        for row_num, row_data in enumerate(rows, start=2):
            for col, value in enumerate(row_data, start=1):
                cell = ws.cell(row=row_num, column=col, value=value)
                cell.border = THIN_BORDER
                cell.fill = UNMATCHED_FILL

        self._auto_fit_columns(ws)

    def _auto_fit_columns(self, ws: Worksheet) -> None:
        """Auto-fit column widths based on content."""
        for column_cells in ws.columns:
            max_length = max(
                (len(str(cell.value)) for cell in column_cells if cell.value is not None),
                default=0,
            )
            column = column_cells[0].column_letter
            ws.column_dimensions[column].width = min(max_length + 2, 50)


def default_report_path(config: ReconConfig, report: ReconciliationReport) -> Path:
    """Output path built from the configured filename template."""
    template = config.output.excel.filename_template
    return Path(
        template.format(
            date=report.generated_at.strftime("%Y%m%d"),
            time=report.generated_at.strftime("%H%M%S"),
        )
    )
