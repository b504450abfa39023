"""
Global Configuration and Dashboard Defaults.

This module centralizes the timing, geometry and filtering defaults used by
the dashboard. The constants are the defaults of the `Settings` model, which
can be overridden per project from `.planscope/config.yaml` and from
`PLANSCOPE_*` environment variables.
"""

import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .core.errors import ConfigError

# --- Refresh & Polling ---
# Dashboard and detail progress re-poll interval while anything is in flight
PROGRESS_REFRESH_INTERVAL = 5.0

# Operation log poll interval for the live log tab
LOG_POLL_INTERVAL = 3.0

# Transient log fetch failures are retried this many times before giving up
LOG_RETRY_LIMIT = 3
LOG_RETRY_DELAY = 2.0

# Streamed lines are flushed to the UI on this interval or at this size
LOG_BATCH_INTERVAL = 0.1
LOG_BATCH_SIZE = 200

# --- Filtering ---
# Resources whose id, key or name contains one of these are platform helpers
HIDDEN_SUBSTRINGS: Tuple[str, ...] = (
    "cloudaccountconfig",
    "cloud-account-config",
    "internal-observ",
)

# --- Card Geometry ---
CARD_MIN_INNER_WIDTH = 22
CARD_MAX_INNER_WIDTH = 36
CARD_HEIGHT = 5
CARD_HEIGHT_WITH_PROGRESS = 6
LEVEL_GAP = 6
LEVEL_GAP_COMPACT = 4
COMPACT_LEVEL_THRESHOLD = 4
ROW_GAP = 2
CANVAS_PAD_X = 2
CANVAS_PAD_Y = 1

# --- Colours (256-colour palette indices) ---
COLOR_SELECTED = "color(205)"
COLOR_BORDER = "color(240)"
COLOR_CONNECTOR = "color(172)"
COLOR_DOTS = "color(236)"
COLOR_SUCCESS = "color(82)"
COLOR_FAILURE = "color(203)"
COLOR_RUNNING = "color(220)"

SPINNER_FRAMES: Tuple[str, ...] = ("⠋", "⠙", "⠹", "⠸", "⠼", "⠴", "⠦", "⠧", "⠇", "⠏")

CONFIG_DIR = ".planscope"
CONFIG_FILE = "config.yaml"
DEFAULT_LOG_FILE = f"{CONFIG_DIR}/planscope.log"

ENV_PREFIX = "PLANSCOPE_"


class Settings(BaseModel):
    """Runtime tunables, defaulting to the module constants."""
    model_config = ConfigDict(extra="forbid")

    refresh_interval: float = Field(default=PROGRESS_REFRESH_INTERVAL, gt=0)
    log_poll_interval: float = Field(default=LOG_POLL_INTERVAL, gt=0)
    log_retry_limit: int = Field(default=LOG_RETRY_LIMIT, ge=0)
    log_retry_delay: float = Field(default=LOG_RETRY_DELAY, ge=0)
    log_batch_interval: float = Field(default=LOG_BATCH_INTERVAL, gt=0)
    log_batch_size: int = Field(default=LOG_BATCH_SIZE, gt=0)
    hidden_substrings: List[str] = Field(default_factory=lambda: list(HIDDEN_SUBSTRINGS))
    log_file: str = DEFAULT_LOG_FILE


# Environment variable suffix -> settings field
_ENV_FIELDS: Dict[str, str] = {
    "REFRESH_INTERVAL": "refresh_interval",
    "LOG_POLL_INTERVAL": "log_poll_interval",
    "LOG_FILE": "log_file",
}


def load_settings(path: Optional[Path] = None) -> Settings:
    """
    Load settings from a YAML file and the environment.

    Args:
        path: Explicit config file. When omitted, `.planscope/config.yaml`
            in the current directory is used if it exists.

    Returns:
        Settings: The validated settings.

    Raises:
        ConfigError: If the file cannot be parsed or a value is invalid.
    """
    config_path = path or Path.cwd() / CONFIG_DIR / CONFIG_FILE
    data: Dict[str, Any] = {}

    if config_path.exists():
        try:
            loaded = yaml.safe_load(config_path.read_text()) or {}
        except yaml.YAMLError as e:
            raise ConfigError(str(config_path), f"invalid YAML: {e}") from e
        if not isinstance(loaded, dict):
            raise ConfigError(str(config_path), "expected a mapping at the top level")
        data.update(loaded)
    elif path is not None:
        raise ConfigError(str(config_path), "file not found")

    for suffix, field_name in _ENV_FIELDS.items():
        value = os.getenv(ENV_PREFIX + suffix)
        if value:
            data[field_name] = value

    try:
        return Settings.model_validate(data)
    except ValidationError as e:
        raise ConfigError(str(config_path), str(e)) from e
