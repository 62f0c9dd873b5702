"""
Logging setup for cpap-edf.

Library modules only create module-level loggers. The CLI calls
setup_logging() once, which attaches a stderr console handler and, unless
disabled, a rotating file handler.

File logging is controlled by the [logging] config table:

    [logging]
    enabled = true
    level = "DEBUG"
    dir = "~/.cpap-edf/logs"     # $CPAP_EDF_LOG_DIR takes precedence
    max_size_mb = 10
    backup_count = 5
"""

import logging
import logging.config
import os
import sys

from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from cpap_edf.config import load_config
from cpap_edf.constants import (
    CONSOLE_LOG_FORMAT,
    DEFAULT_LOG_BACKUP_COUNT,
    DEFAULT_LOG_DIR,
    DEFAULT_LOG_FILE,
    DEFAULT_LOG_LEVEL,
    DEFAULT_LOG_MAX_BYTES,
    FILE_LOG_FORMAT,
    LOG_DIR_ENV_VAR,
)

logger = logging.getLogger(__name__)

_logging_configured = False

_BYTES_PER_MB = 1024 * 1024


class LogSettings(BaseModel):
    """Validated [logging] settings."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = Field(default=True, description="Write the rotating log file")
    level: str = Field(default=DEFAULT_LOG_LEVEL, description="File handler level")
    max_bytes: int = Field(default=DEFAULT_LOG_MAX_BYTES, gt=0)
    backup_count: int = Field(default=DEFAULT_LOG_BACKUP_COUNT, ge=0)


def _logging_section() -> dict[str, Any]:
    section = load_config().get("logging", {})
    return section if isinstance(section, dict) else {}


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _validate_max_bytes(value: Any) -> int:
    if value is None:
        return DEFAULT_LOG_MAX_BYTES
    if _is_number(value) and value > 0:
        return max(int(value * _BYTES_PER_MB), 1)
    logger.warning(f"Ignoring invalid max_size_mb={value!r} in config")
    return DEFAULT_LOG_MAX_BYTES


def _validate_backup_count(value: Any) -> int:
    if value is None:
        return DEFAULT_LOG_BACKUP_COUNT
    if isinstance(value, int) and not isinstance(value, bool) and value >= 0:
        return value
    logger.warning(f"Ignoring invalid backup_count={value!r} in config")
    return DEFAULT_LOG_BACKUP_COUNT


def _validate_level(value: Any) -> str:
    if value is None:
        return DEFAULT_LOG_LEVEL
    level = str(value).upper()
    if level in logging.getLevelNamesMapping():
        return level
    logger.warning(f"Ignoring invalid log level={value!r} in config")
    return DEFAULT_LOG_LEVEL


def get_log_settings() -> LogSettings:
    """
    Read the [logging] table, replacing invalid values with defaults.

    Returns:
        LogSettings for the file handler
    """
    section = _logging_section()

    enabled = section.get("enabled", True)
    if not isinstance(enabled, bool):
        logger.warning(f"Ignoring invalid enabled={enabled!r} in config")
        enabled = True

    return LogSettings(
        enabled=enabled,
        level=_validate_level(section.get("level")),
        max_bytes=_validate_max_bytes(section.get("max_size_mb")),
        backup_count=_validate_backup_count(section.get("backup_count")),
    )


def get_log_dir() -> Path:
    """
    Get the log directory, creating it if needed.

    Returns:
        $CPAP_EDF_LOG_DIR, else [logging] dir, else ~/.cpap-edf/logs
    """
    override = os.environ.get(LOG_DIR_ENV_VAR)
    configured = _logging_section().get("dir")

    if override:
        log_dir = Path(override)
    elif isinstance(configured, str) and configured:
        log_dir = Path(configured).expanduser()
    else:
        log_dir = DEFAULT_LOG_DIR

    os.makedirs(log_dir, mode=0o700, exist_ok=True)
    return log_dir


def get_log_path() -> Path:
    """Path to the active log file."""
    return get_log_dir() / DEFAULT_LOG_FILE


def _build_logging_config(
    verbose: bool = False, settings: LogSettings | None = None
) -> dict[str, Any]:
    """
    Build the dictConfig configuration dictionary.

    Args:
        verbose: If True, set console to DEBUG level
        settings: File handler settings (read from config if None)
    """
    settings = settings or get_log_settings()

    config: dict[str, Any] = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "console": {"format": CONSOLE_LOG_FORMAT},
            "file": {"format": FILE_LOG_FORMAT},
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": "DEBUG" if verbose else "INFO",
                "formatter": "console",
                "stream": "ext://sys.stderr",
            },
        },
        "root": {"level": "DEBUG", "handlers": ["console"]},
    }

    if settings.enabled:
        config["handlers"]["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "level": settings.level,
            "formatter": "file",
            "filename": str(get_log_path()),
            "maxBytes": settings.max_bytes,
            "backupCount": settings.backup_count,
            "encoding": "utf-8",
        }
        config["root"]["handlers"].append("file")

    return config


def setup_logging(*, verbose: bool = False) -> None:
    """
    Configure logging once per process.

    If the log file cannot be opened, logging continues on the console only.

    Args:
        verbose: If True, set console to DEBUG level
    """
    global _logging_configured

    if _logging_configured:
        return

    settings = get_log_settings()
    try:
        logging.config.dictConfig(_build_logging_config(verbose, settings))
    except (OSError, ValueError) as e:
        sys.stderr.write(f"WARNING: File logging disabled: {e}\n")
        console_only = settings.model_copy(update={"enabled": False})
        logging.config.dictConfig(_build_logging_config(verbose, console_only))

    _logging_configured = True
