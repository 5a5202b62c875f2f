"""Plain-text rendering of a reconciliation report."""

from ..models.result import ReconciliationReport

TIME_FORMAT = "%Y-%m-%d %H:%M:%S"
DATE_FORMAT = "%Y-%m-%d"


def format_report(report: ReconciliationReport) -> str:
    """
    Render the human-readable reconciliation summary.

    The matched count is the number of matched transaction/statement pairs.
    Banks are listed alphabetically and timestamps are shown in the
    reconciliation window's time zone.
    """
    tz = report.window.tzinfo
    lines = [
        f"Total number of transactions processed : {report.processed_count}",
        f"Total number of matched transactions   : {report.matched_count}",
        f"Total number of unmatched transactions : {report.unmatched_count}",
        "    Details of unmatched transactions  :",
        "        System transaction details (missing bank transactions):",
    ]

    for txn in report.missing_bank_statements:
        lines.extend(
            [
                f"          - TrxID : {txn.id}",
                f"            Amount: {txn.amount:.2f}",
                f"            Type  : {txn.type.value}",
                f"            Time  : {txn.timestamp.astimezone(tz).strftime(TIME_FORMAT)}",
            ]
        )

    lines.append("        Bank statement details (missing system transactions):")
    for bank_name in sorted(report.missing_transactions):
        lines.append(f"            BANK {bank_name}:")
        for statement in report.missing_transactions[bank_name]:
            lines.extend(
                [
                    f"              - ID    : {statement.id}",
                    f"                Amount: {statement.amount:.2f}",
                    f"                Date  : {statement.date.strftime(DATE_FORMAT)}",
                ]
            )

    lines.append(f"Total discrepancies: {report.total_discrepancy:.2f}")
    return "\n".join(lines)
