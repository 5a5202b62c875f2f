"""Configuration loader and validation for reconciliation settings."""

from pathlib import Path
from typing import Any, Literal, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
import logging

import yaml
from pydantic import BaseModel, Field, ValidationError as PydanticValidationError, field_validator

from .utils.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class TransactionInputConfig(BaseModel):
    """Configuration for the system transaction CSV."""

    encoding: str = "utf-8"
    encoding_errors: Literal["replace", "strict"] = "replace"
    delimiter: str = ","


class StatementInputConfig(BaseModel):
    """Configuration for bank statement CSVs."""

    encoding: str = "utf-8"
    encoding_errors: Literal["replace", "strict"] = "replace"
    delimiter: str = ","
    date_format: str = "%Y-%m-%d"
    chunk_size: int = Field(default=500, ge=1)


class InputConfig(BaseModel):
    """Configuration for input file parsing."""

    transactions: TransactionInputConfig = Field(default_factory=TransactionInputConfig)
    statements: StatementInputConfig = Field(default_factory=StatementInputConfig)


class ReconciliationSettings(BaseModel):
    """Settings for the concurrent matching pipeline."""

    workers: int = Field(default=5, ge=1)
    queue_size: int = Field(default=10, ge=1)
    timezone: str = "Asia/Jakarta"
    default_bank_name: str = "General"
    statement_row_policy: Literal["skip", "fail"] = "skip"

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"unknown time zone: {value}") from e
        return value

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


class ExcelOutputConfig(BaseModel):
    """Configuration for Excel output."""

    filename_template: str = "reconciliation_report_{date}_{time}.xlsx"


class OutputConfig(BaseModel):
    """Configuration for output."""

    excel: ExcelOutputConfig = Field(default_factory=ExcelOutputConfig)


class LoggingConfig(BaseModel):
    """Configuration for logging."""

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class ReconConfig(BaseModel):
    """Main configuration model for reconciliation."""

    input: InputConfig = Field(default_factory=InputConfig)
    reconciliation: ReconciliationSettings = Field(default_factory=ReconciliationSettings)
    output: OutputConfig = Field(default_factory=OutputConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    config_file_path: Optional[str] = None


def get_default_config() -> dict[str, Any]:
    """Return the default configuration as a dictionary."""
    return {
        "input": {
            "transactions": {
                "encoding": "utf-8",
                "encoding_errors": "replace",
                "delimiter": ",",
            },
            "statements": {
                "encoding": "utf-8",
                "encoding_errors": "replace",
                "delimiter": ",",
                "date_format": "%Y-%m-%d",
                "chunk_size": 500,
            },
        },
        "reconciliation": {
            "workers": 5,
            "queue_size": 10,
            "timezone": "Asia/Jakarta",
            "default_bank_name": "General",
            "statement_row_policy": "skip",
        },
        "output": {
            "excel": {
                "filename_template": "reconciliation_report_{date}_{time}.xlsx",
            },
        },
        "logging": {
            "level": "INFO",
            "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        },
    }


def load_config(config_path: Optional[Path] = None) -> ReconConfig:
    """
    Load configuration from a YAML file or use defaults.

    Args:
        config_path: Path to YAML configuration file (optional)

    Returns:
        ReconConfig object with loaded or default settings

    Raises:
        ConfigurationError: If the file cannot be read or holds invalid values
    """
    config_dict = get_default_config()

    if config_path and config_path.exists():
        logger.info(f"Loading configuration from: {config_path}")
        try:
            with open(config_path, "r") as f:
                user_config = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Failed to read configuration {config_path}: {e}") from e

        if not isinstance(user_config, dict):
            raise ConfigurationError(f"Configuration {config_path} must be a mapping")

        # Deep merge user config into defaults
        config_dict = _deep_merge(config_dict, user_config)
        config_dict["config_file_path"] = str(config_path)
    else:
        logger.info("Using default configuration")

    try:
        return ReconConfig(**config_dict)
    except PydanticValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e


def _deep_merge(base: dict, override: dict) -> dict:
    """
    Deep merge two dictionaries.

    Args:
        base: Base dictionary
        override: Dictionary to merge on top

    Returns:
        Merged dictionary
    """
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def generate_default_config(output_path: Path) -> None:
    """
    Generate a default configuration file.

    Args:
        output_path: Path to write the configuration file
    """
    config_dict = get_default_config()

    yaml_content = """# Bank Statement Reconciliation Configuration
# Generated configuration file - customize as needed

"""
    yaml_content += yaml.dump(config_dict, default_flow_style=False, sort_keys=False)

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w") as f:
        f.write(yaml_content)

    logger.info(f"Generated configuration file: {output_path}")
