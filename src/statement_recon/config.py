"""Configuration loader and validation for reconciliation settings."""

from pathlib import Path
from typing import Any, Optional
import logging

import yaml
from pydantic import BaseModel, Field, ValidationError

from .utils.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class InputConfig(BaseModel):
    """Configuration for statement file reading."""

    csv: dict[str, Any] = Field(
        default_factory=lambda: {
            "encoding": "utf-8",
            "delimiter": ",",
        }
    )
    excel: dict[str, Any] = Field(default_factory=lambda: {"sheet": 0})


class ColumnSynonyms(BaseModel):
    """Header synonyms per logical field, checked in order."""

    date: list[str] = Field(
        default_factory=lambda: ["date", "transaction_date", "txn_date", "transactiondate"]
    )
    description: list[str] = Field(
        default_factory=lambda: ["description", "narration", "details", "particulars", "desc"]
    )
    amount: list[str] = Field(default_factory=lambda: ["amount", "value", "amt"])
    type: list[str] = Field(
        default_factory=lambda: ["type", "transaction_type", "credit_debit", "dr_cr"]
    )
    balance: list[str] = Field(default_factory=lambda: ["balance", "closing_balance", "bal"])
    reference: list[str] = Field(
        default_factory=lambda: ["reference", "ref", "cheque_no", "transaction_id"]
    )


class ScoreWeights(BaseModel):
    """Weight of each scoring term; the defaults sum to 1.0."""

    amount: float = 0.4
    date: float = 0.3
    type: float = 0.1
    description: float = 0.2


class MatchingSettings(BaseModel):
    """Scoring tolerances and the candidate gate."""

    amount_tolerance: float = 2.0
    date_tolerance_days: int = 2
    description_similarity_threshold: float = 0.6
    min_match_score: float = 0.5
    min_word_length: int = 3
    weights: ScoreWeights = Field(default_factory=ScoreWeights)


class DatabaseConfig(BaseModel):
    """Configuration for the reconciliation database."""

    url: str = "sqlite:///reconciliation.db"
    echo: bool = False


class StorageConfig(BaseModel):
    """Configuration for uploaded statement storage."""

    directory: str = "statements"
    folder: str = "bank-statements"


class LoggingConfig(BaseModel):
    """Configuration for logging."""

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file: Optional[str] = None


class ReconConfig(BaseModel):
    """Main configuration model for reconciliation."""

    input: InputConfig = Field(default_factory=InputConfig)
    columns: ColumnSynonyms = Field(default_factory=ColumnSynonyms)
    matching: MatchingSettings = Field(default_factory=MatchingSettings)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    config_file_path: Optional[str] = None


def get_default_config() -> dict[str, Any]:
    """Return the default configuration as a dictionary."""
    return ReconConfig().model_dump(exclude={"config_file_path"})


def load_config(config_path: Optional[Path] = None) -> ReconConfig:
    """
    Load configuration from a YAML file or use defaults.

    Args:
        config_path: Path to YAML configuration file (optional)

    Returns:
        ReconConfig object with loaded or default settings

    Raises:
        ConfigurationError: If the file is not valid YAML or fails validation
    """
    config_dict = get_default_config()

    if config_path and config_path.exists():
        logger.info(f"Loading configuration from: {config_path}")
        try:
            with open(config_path, "r") as f:
                user_config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e

        if not isinstance(user_config, dict):
            raise ConfigurationError(f"Configuration root must be a mapping: {config_path}")

        config_dict = _deep_merge(config_dict, user_config)
        config_dict["config_file_path"] = str(config_path)
    else:
        logger.info("Using default configuration")

    try:
        return ReconConfig(**config_dict)
    except ValidationError as e:
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
