"""
Command-line interface for the bank statement reconciliation tool.
"""

from pathlib import Path
from typing import Optional
import logging
import sys

import click
from pydantic import ValidationError as PydanticValidationError
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .config import load_config, generate_default_config, ReconConfig, ReconciliationSettings
from .matching.engine import Reconciliation
from .models.result import ReconciliationReport
from .reports.excel_generator import ExcelReportGenerator, default_report_path
from .reports.text_report import format_report
from .utils.exceptions import ConfigurationError
from .utils.logging_config import level_from_name, setup_logging

console = Console()


@click.group()
@click.version_option(version="0.1.0")
def main():
    """Bank Statement Reconciliation Tool."""
    pass


@main.command()
@click.argument("transaction_file", type=click.Path(path_type=Path))
@click.argument("statement_files", nargs=-1, required=True)
@click.option(
    "-s",
    "--start-date",
    prompt="Enter reconciliation start date (YYYY-MM-DD)",
    help="First day of the reconciliation window (YYYY-MM-DD)",
)
@click.option(
    "-e",
    "--end-date",
    prompt="Enter reconciliation end date (YYYY-MM-DD)",
    help="Last day of the reconciliation window, inclusive (YYYY-MM-DD)",
)
@click.option(
    "-c",
    "--config",
    type=click.Path(exists=True, path_type=Path),
    help="Path to configuration file (YAML)",
)
@click.option("--workers", type=int, default=None, help="Override matching worker count")
@click.option("--queue-size", type=int, default=None, help="Override statement queue capacity")
@click.option("--timezone", default=None, help="Override the local time zone, e.g. Asia/Jakarta")
@click.option(
    "--strict", is_flag=True, help="Abort on a malformed bank statement row instead of skipping it"
)
@click.option("-o", "--output", type=click.Path(path_type=Path), help="Write an Excel report")
@click.option("--excel", is_flag=True, help="Write an Excel report to the configured filename")
@click.option("--table", is_flag=True, help="Show the summary as a table")
@click.option("--log-file", type=click.Path(path_type=Path), help="Also log to this file")
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
def reconcile(
    transaction_file: Path,
    statement_files: tuple[str, ...],
    start_date: str,
    end_date: str,
    config: Optional[Path],
    workers: Optional[int],
    queue_size: Optional[int],
    timezone: Optional[str],
    strict: bool,
    output: Optional[Path],
    excel: bool,
    table: bool,
    log_file: Optional[Path],
    verbose: bool,
):
    """
    Reconcile system transactions against bank statements.

    TRANSACTION_FILE: Path to the system transaction CSV
    STATEMENT_FILES: One or more bank statement CSVs (comma-separated lists allowed)
    """
    try:
        recon_config = load_config(config)
        _apply_overrides(recon_config, workers, queue_size, timezone, strict)

        log_level = logging.DEBUG if verbose else level_from_name(recon_config.logging.level)
        setup_logging(log_level, log_file=log_file, log_format=recon_config.logging.format)

        reconciliation = Reconciliation(
            transaction_file,
            _split_statement_files(statement_files),
            start_date,
            end_date,
            config=recon_config,
        )
        report = reconciliation.process()

        if table:
            _display_summary(report)
        else:
            click.echo(format_report(report))

        if output is not None or excel:
            report_path = output or default_report_path(recon_config, report)
            generator = ExcelReportGenerator(recon_config)
            generator.generate_report(report, report_path)
            console.print(f"\n[green]Report generated: {report_path}[/green]", soft_wrap=True)

    except Exception as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]", soft_wrap=True)
        if verbose:
            console.print_exception()
        sys.exit(1)


@main.command("init-config")
@click.option(
    "-o", "--output", type=click.Path(path_type=Path), default=Path("config.yaml")
)
def init_config(output: Path):
    """Generate a sample configuration file."""
    generate_default_config(output)
    console.print(f"[green]Configuration file generated: {output}[/green]")


def _split_statement_files(values: tuple[str, ...]) -> list[str]:
    """Flatten arguments such as ``bca.csv,mandiri.csv`` into single paths."""
    paths: list[str] = []
    for value in values:
        paths.extend(part.strip() for part in value.split(",") if part.strip())
    return paths


def _apply_overrides(
    config: ReconConfig,
    workers: Optional[int],
    queue_size: Optional[int],
    timezone: Optional[str],
    strict: bool,
) -> None:
    """Apply command-line overrides to the reconciliation settings."""
    overrides: dict = {}
    if workers is not None:
        overrides["workers"] = workers
    if queue_size is not None:
        overrides["queue_size"] = queue_size
    if timezone is not None:
        overrides["timezone"] = timezone
    if strict:
        overrides["statement_row_policy"] = "fail"

    if not overrides:
        return

    try:
        config.reconciliation = ReconciliationSettings(
            **{**config.reconciliation.model_dump(), **overrides}
        )
    except PydanticValidationError as e:
        raise ConfigurationError(f"Invalid option: {e}") from e


def _display_summary(report: ReconciliationReport) -> None:
    """Display reconciliation summary in console."""
    table = Table(title="Reconciliation Summary")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")

    table.add_row("Window", f"{report.window.start_date} to {report.window.end_date}")
    table.add_row("Processed", str(report.processed_count))
    table.add_row("Matched", str(report.matched_count))
    table.add_row("Unmatched", str(report.unmatched_count))
    table.add_row("Missing Bank Statements", str(len(report.missing_bank_statements)))
    for bank_name in sorted(report.missing_transactions):
        table.add_row(
            f"Missing Transactions ({bank_name})",
            str(len(report.missing_transactions[bank_name])),
        )
    table.add_row("Match Rate", f"{report.match_rate:.1f}%")
    table.add_row("Total Discrepancies", f"{report.total_discrepancy:,.2f}")
    table.add_row("Processing Time", f"{report.processing_time_seconds:.2f}s")

    console.print(table)


if __name__ == "__main__":
    main()
