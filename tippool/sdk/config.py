"""Configuration management for Tip Pool.

Configuration is split into two files:

1. settings.json - Machine-specific settings
   - data_dir: where team documents are stored (optional)
   - team: default team id used by the CLI (optional)

2. pool.yaml - Default pool settings for newly created teams (optional)
   - defaults: period_duration, auto_close_periods, align_with_calendar,
     closing_time, rounding_step

Config directory resolution:
1. TIP_POOL_CONFIG_PATH environment variable (if set)
2. ~/.config/tip-pool/ (XDG_CONFIG_HOME fallback)

Data directory resolution:
1. settings.json "data_dir" key (if set via CLI)
2. XDG_DATA_HOME/tip-pool/ or ~/.local/share/tip-pool/

Team pool settings themselves live in each team's document (see store.py)
and are always passed explicitly to the scheduler and rounding functions.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import ValidationError as SchemaValidationError

from .errors import ConfigurationError, ValidationError
from .schemas import PoolSettings

logger = logging.getLogger(__name__)

APP_NAME = "tip-pool"
SETTINGS_FILENAME = "settings.json"
POOL_DEFAULTS_FILENAME = "pool.yaml"
DEFAULT_TEAM_ID = "default"


def get_config_dir() -> Path:
    """Get the configuration directory path.

    Resolution order:
    1. TIP_POOL_CONFIG_PATH environment variable
    2. ~/.config/tip-pool/ (XDG_CONFIG_HOME)

    Returns:
        Path to the configuration directory
    """
    env_path = os.environ.get("TIP_POOL_CONFIG_PATH")
    if env_path:
        return Path(env_path)

    xdg_config_home = os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config")
    return Path(xdg_config_home) / APP_NAME


def get_settings_path() -> Path:
    """Get the path to settings.json (may not exist yet)."""
    return get_config_dir() / SETTINGS_FILENAME


def load_settings() -> dict:
    """Load machine-specific settings from settings.json.

    Returns:
        Settings dictionary (empty dict if file doesn't exist)
    """
    settings_file = get_settings_path()

    if not settings_file.exists():
        return {}

    with open(settings_file, "r") as f:
        return json.load(f)


def save_settings(settings: dict) -> Path:
    """Save machine-specific settings to settings.json.

    Args:
        settings: Settings dictionary to save

    Returns:
        Path to the saved settings file
    """
    config_dir = get_config_dir()
    config_dir.mkdir(parents=True, exist_ok=True)

    settings_file = config_dir / SETTINGS_FILENAME

    with open(settings_file, "w") as f:
        json.dump(settings, f, indent=2)

    return settings_file


def get_setting(key: str, default: Any = None) -> Any:
    """Get a setting value from settings.json."""
    settings = load_settings()
    return settings.get(key, default)


def set_setting(key: str, value: Any) -> Path:
    """Set a setting value in settings.json.

    Returns:
        Path to the saved settings file
    """
    settings = load_settings()
    settings[key] = value
    return save_settings(settings)


def get_data_path() -> Path:
    """Get the data directory path.

    Uses settings.json "data_dir" when set, else XDG_DATA_HOME/tip-pool/.

    Returns:
        Path to the data directory (created if doesn't exist)
    """
    custom = get_setting("data_dir")
    if custom:
        data_path = Path(custom).expanduser()
    else:
        xdg_data_home = os.environ.get("XDG_DATA_HOME", Path.home() / ".local" / "share")
        data_path = Path(xdg_data_home) / APP_NAME
    data_path.mkdir(parents=True, exist_ok=True)
    return data_path


def get_default_team() -> str:
    """Team id used when none is given on the command line."""
    return get_setting("team") or DEFAULT_TEAM_ID


def get_pool_defaults_path() -> Path:
    """Get the path to pool.yaml (may not exist)."""
    return get_config_dir() / POOL_DEFAULTS_FILENAME


def parse_pool_settings(raw: Any) -> PoolSettings:
    """Parse stored pool settings strictly.

    Raises:
        ConfigurationError: If the settings are not a mapping or fail validation.
    """
    if raw is None:
        return PoolSettings()
    if not isinstance(raw, dict):
        raise ConfigurationError(f"Pool settings must be a mapping, got: {type(raw).__name__}")
    try:
        return PoolSettings.model_validate(raw)
    except SchemaValidationError as e:
        raise ConfigurationError(f"Invalid pool settings: {e}")


def load_pool_settings(raw: Any, source: str = "stored settings") -> PoolSettings:
    """Parse stored pool settings, falling back to defaults when malformed.

    Args:
        raw: Settings mapping as read from storage.
        source: Where the settings came from, for the log message.

    Returns:
        Validated settings, or PoolSettings() defaults.
    """
    try:
        return parse_pool_settings(raw)
    except ConfigurationError as e:
        logger.warning(f"{source}: {e}. Falling back to default pool settings.")
        return PoolSettings()


def load_pool_defaults() -> PoolSettings:
    """Load default pool settings for new teams from pool.yaml.

    Returns:
        Settings from the 'defaults' key, or built-in defaults when the file
        is missing or malformed.
    """
    path = get_pool_defaults_path()
    if not path.exists():
        return PoolSettings()

    try:
        with open(path, "r") as f:
            document = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f"{path}: could not read pool defaults ({e}). Using built-in defaults.")
        return PoolSettings()

    if not isinstance(document, dict):
        logger.warning(f"{path}: expected a mapping. Using built-in defaults.")
        return PoolSettings()

    return load_pool_settings(document.get("defaults"), source=str(path))


def save_pool_defaults(settings: PoolSettings, path: Optional[Path] = None) -> Path:
    """Write default pool settings to pool.yaml.

    Returns:
        Path to the saved file
    """
    if path is None:
        path = get_pool_defaults_path()

    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "w") as f:
        yaml.dump({"defaults": settings.to_dict()}, f, default_flow_style=False, sort_keys=False)

    return path


def update_pool_settings(current: PoolSettings, **changes: Any) -> PoolSettings:
    """Apply user-supplied changes to pool settings.

    Unknown keys and invalid values are rejected rather than defaulted.

    Raises:
        ValidationError: If any change is invalid.
    """
    data = current.to_dict()
    data.update({k: v for k, v in changes.items() if v is not None})
    try:
        return PoolSettings.model_validate(data)
    except SchemaValidationError as e:
        raise ValidationError([
            f"{'.'.join(str(p) for p in err['loc']) or 'settings'}: {err['msg']}"
            for err in e.errors()
        ])
