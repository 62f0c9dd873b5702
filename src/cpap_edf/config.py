"""Configuration management for cpap-edf."""

import logging
import os
import tomllib

from pathlib import Path
from typing import Any

import tomli_w

from cpap_edf.constants import (
    CONFIG_ENV_VAR,
    DEFAULT_BATCH_WORKERS,
    DEFAULT_CONFIG_FILE,
    DEFAULT_DAY_END_HOUR,
    DEFAULT_DAY_START_HOUR,
    SUMMARY_FIELD_ALIASES,
)

logger = logging.getLogger(__name__)


def get_config_path() -> Path:
    """
    Get the path to the configuration file.

    Returns:
        Path from $CPAP_EDF_CONFIG, or ~/.cpap-edf/config.toml
    """
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        return Path(override)
    return DEFAULT_CONFIG_FILE


def load_config() -> dict[str, Any]:
    """
    Load configuration from TOML file.

    Returns:
        Configuration dictionary. Returns empty dict if file doesn't exist
        or is corrupted.
    """
    config_path = get_config_path()

    if not config_path.exists():
        return {}

    try:
        with open(config_path, "rb") as f:
            return tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        logger.warning(f"Failed to load config from {config_path}: {e}")
        logger.warning("Treating config as empty. Fix or delete the file to resolve.")
        return {}


def save_config(config: dict[str, Any]) -> None:
    """
    Save configuration to TOML file using atomic write.

    Creates the parent directory if it doesn't exist.
    Uses temp file + rename for atomic operation.

    Args:
        config: Configuration dictionary to save

    Raises:
        PermissionError: If directory cannot be created or file cannot be written
    """
    config_path = get_config_path()

    config_dir = config_path.parent
    try:
        os.makedirs(config_dir, exist_ok=True)
    except PermissionError as e:
        raise PermissionError(
            f"Cannot create config directory {config_dir}: {e}"
        ) from e

    temp_path = config_path.with_suffix(".toml.tmp")

    try:
        with open(temp_path, "wb") as f:
            tomli_w.dump(config, f)

        os.replace(temp_path, config_path)

    except Exception:
        if temp_path.exists():
            temp_path.unlink()
        raise


def _validate_hour(value: Any, default: int, key: str) -> int:
    if isinstance(value, int) and not isinstance(value, bool) and 0 <= value <= 23:
        return value
    logger.warning(f"Ignoring invalid {key}={value!r} in config, using {default}")
    return default


def get_day_boundary() -> tuple[int, int]:
    """
    Get the sleep-night day boundary hours from config.

    Returns:
        Tuple of (day_start_hour, day_end_hour), defaulting to noon/noon
    """
    section = load_config().get("sleep_night", {})
    if not isinstance(section, dict):
        return DEFAULT_DAY_START_HOUR, DEFAULT_DAY_END_HOUR

    start = section.get("day_start_hour", DEFAULT_DAY_START_HOUR)
    end = section.get("day_end_hour", DEFAULT_DAY_END_HOUR)
    return (
        _validate_hour(start, DEFAULT_DAY_START_HOUR, "day_start_hour"),
        _validate_hour(end, DEFAULT_DAY_END_HOUR, "day_end_hour"),
    )


def set_day_boundary(start_hour: int, end_hour: int | None = None) -> None:
    """
    Persist the sleep-night day boundary hours.

    Args:
        start_hour: Hour (0-23) at which a sleep night starts
        end_hour: Hour (0-23) at which it ends; defaults to start_hour

    Raises:
        ValueError: If either hour is outside 0-23
    """
    if end_hour is None:
        end_hour = start_hour
    for name, hour in (("start_hour", start_hour), ("end_hour", end_hour)):
        if not 0 <= hour <= 23:
            raise ValueError(f"{name} must be between 0 and 23, got {hour}")

    config = load_config()
    config.setdefault("sleep_night", {})
    config["sleep_night"]["day_start_hour"] = start_hour
    config["sleep_night"]["day_end_hour"] = end_hour
    save_config(config)


def get_field_aliases() -> dict[str, list[str]]:
    """
    Get summary field aliases, with config overrides applied.

    Entries in the [aliases] table replace the built-in label list for that
    field; fields not mentioned keep their defaults.

    Returns:
        Mapping of normalized field name to ordered candidate labels
    """
    aliases = {field: list(labels) for field, labels in SUMMARY_FIELD_ALIASES.items()}

    overrides = load_config().get("aliases", {})
    if not isinstance(overrides, dict):
        return aliases

    for field, labels in overrides.items():
        if isinstance(labels, str):
            labels = [labels]
        if isinstance(labels, list) and all(isinstance(x, str) for x in labels):
            aliases[field] = labels
        else:
            logger.warning(f"Ignoring invalid alias list for '{field}': {labels!r}")

    return aliases


def get_batch_workers() -> int:
    """Get the worker count for batch decoding."""
    section = load_config().get("batch", {})
    value = (
        section.get("max_workers", DEFAULT_BATCH_WORKERS)
        if isinstance(section, dict)
        else DEFAULT_BATCH_WORKERS
    )
    if isinstance(value, int) and not isinstance(value, bool) and value > 0:
        return value
    return DEFAULT_BATCH_WORKERS
