"""
Configuration loading and management for the firm core.

This module handles loading firm configurations from YAML files and
validation of configuration parameters.
"""

from pathlib import Path
from typing import Any, Optional

import yaml

from firm_core.logging.decision_log import LOG_LEVELS
from firm_core.models import FirmConfig


class ConfigurationError(Exception):
    """Raised when configuration is invalid or cannot be loaded."""
    pass


def load_firm_config(config_path: str | Path) -> FirmConfig:
    """
    Load firm configuration from a YAML file.

    Args:
        config_path: Path to the YAML configuration file

    Returns:
        FirmConfig object with validated settings

    Raises:
        ConfigurationError: If the file cannot be loaded or is invalid
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise ConfigurationError(f"Configuration file not found: {config_path}")

    try:
        with open(config_path, "r") as f:
            raw_config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in configuration file: {e}")

    if raw_config is None:
        raw_config = {}
    if not isinstance(raw_config, dict):
        raise ConfigurationError("Configuration file must contain a mapping")

    return _parse_firm_config(raw_config)


def _parse_firm_config(raw: dict[str, Any]) -> FirmConfig:
    """
    Parse and validate raw configuration dictionary into FirmConfig.

    Args:
        raw: Dictionary loaded from YAML

    Returns:
        Validated FirmConfig

    Raises:
        ConfigurationError: If fields are invalid or conflicting
    """
    database_path = _parse_optional_str(raw.get("database_path"), "database_path")
    snapshot_dir = _parse_optional_str(raw.get("snapshot_dir"), "snapshot_dir")
    if database_path is not None and snapshot_dir is not None:
        raise ConfigurationError(
            "Only one of database_path and snapshot_dir may be set"
        )

    decision_log_path = _parse_optional_str(
        raw.get("decision_log_path", "output/decision_log.jsonl"),
        "decision_log_path",
    )
    if decision_log_path is None:
        raise ConfigurationError("decision_log_path cannot be empty")

    divergence_tolerance = _parse_int(
        raw.get("divergence_tolerance", 5),
        "divergence_tolerance",
        min_val=0,
    )

    cluster_seed = raw.get("cluster_seed")
    if cluster_seed is not None:
        cluster_seed = _parse_int(cluster_seed, "cluster_seed", min_val=0)

    log_level = str(raw.get("log_level", "INFO")).upper()
    if log_level not in LOG_LEVELS:
        raise ConfigurationError(
            f"Invalid log_level: {log_level}. Expected one of {', '.join(LOG_LEVELS)}"
        )

    return FirmConfig(
        database_path=database_path,
        snapshot_dir=snapshot_dir,
        decision_log_path=decision_log_path,
        divergence_tolerance=divergence_tolerance,
        cluster_seed=cluster_seed,
        log_level=log_level,
    )


def _parse_optional_str(value: Any, field_name: str) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, (str, Path)):
        raise ConfigurationError(f"Invalid value for {field_name}: {value}")
    value = str(value).strip()
    return value or None


def _parse_int(
    value: Any,
    field_name: str,
    min_val: int | None = None,
    max_val: int | None = None,
) -> int:
    """
    Parse an integer value with optional range validation.

    Args:
        value: The value to parse
        field_name: Name of the field for error messages
        min_val: Minimum allowed value (inclusive)
        max_val: Maximum allowed value (inclusive)

    Returns:
        Parsed int

    Raises:
        ConfigurationError: If the value is invalid or out of range
    """
    if isinstance(value, bool):
        raise ConfigurationError(f"Invalid integer value for {field_name}: {value}")
    try:
        int_value = int(str(value).strip())
    except ValueError:
        raise ConfigurationError(f"Invalid integer value for {field_name}: {value}")

    if min_val is not None and int_value < min_val:
        raise ConfigurationError(
            f"{field_name} must be >= {min_val}, got {int_value}"
        )

    if max_val is not None and int_value > max_val:
        raise ConfigurationError(
            f"{field_name} must be <= {max_val}, got {int_value}"
        )

    return int_value


def write_config(config: FirmConfig, output_path: str | Path) -> None:
    """
    Write a FirmConfig to a YAML file.

    Args:
        config: The configuration to write
        output_path: Path to write the YAML file
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    config_dict = {
        "database_path": config.database_path,
        "snapshot_dir": config.snapshot_dir,
        "decision_log_path": config.decision_log_path,
        "divergence_tolerance": config.divergence_tolerance,
        "cluster_seed": config.cluster_seed,
        "log_level": config.log_level,
    }

    with open(output_path, "w") as f:
        yaml.dump(config_dict, f, default_flow_style=False, sort_keys=False)
