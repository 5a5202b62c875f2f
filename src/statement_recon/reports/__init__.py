"""Report renderers."""

from .text_report import format_report
from .excel_generator import ExcelReportGenerator, default_report_path

__all__ = ["format_report", "ExcelReportGenerator", "default_report_path"]
