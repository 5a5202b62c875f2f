"""Validation of input sources and date boundaries."""

from datetime import date, datetime
from pathlib import Path
from typing import Union

from .exceptions import ValidationError

DATE_BOUNDARY_FORMAT = "%Y-%m-%d"


def validate_csv_source(path: Union[str, Path]) -> Path:
    """
    Check that a source reference names an existing CSV file.

    Args:
        path: Path to the source file

    Returns:
        The path as a Path object

    Raises:
        ValidationError: If the path is not a .csv file or does not exist
    """
    source = Path(path)

    if source.suffix.lower() != ".csv":
        raise ValidationError(f"{path} is not a csv")

    if not source.is_file():
        raise ValidationError(f"{path} does not exist")

    return source


def parse_date_boundary(value: Union[str, date]) -> date:
    """Parse a YYYY-MM-DD reconciliation boundary."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    try:
        return datetime.strptime(value.strip(), DATE_BOUNDARY_FORMAT).date()
    except (AttributeError, ValueError) as e:
        raise ValidationError(
            f"Invalid date {value!r}: expected ISO-8601 date format YYYY-MM-DD"
        ) from e
