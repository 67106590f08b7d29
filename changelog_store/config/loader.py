"""
Settings loader for the changelog store.

Loads a YAML settings file, validates it with StoreSettings and applies
environment overrides, so deployments can point the same file at a
different database without editing it.

Functions:
    load_settings: Main entrypoint to load and validate store settings
"""

import os
from pathlib import Path

import yaml
from pydantic import ValidationError

from changelog_store.exceptions import ConfigFileNotFoundError, ConfigValidationError

from .schema import StoreSettings

# Overrides StoreSettings.connection when set
CONNECTION_ENV_VAR = "CHANGELOG_STORE_CONNECTION"


def load_settings(config_path: str | Path) -> StoreSettings:
    """
    Load store settings from YAML.

    The file may hold the settings at the top level or under a "store" key.
    A relative migrations_dir is resolved against the file's directory.

    Args:
        config_path: Path to the YAML file

    Returns:
        StoreSettings: Validated settings

    Raises:
        ConfigFileNotFoundError: If the file doesn't exist
        ConfigValidationError: If the YAML is invalid or validation fails

    Example:
        >>> settings = load_settings("config/store.yaml")
        >>> settings.connection
        'file:data/changelogs.db'
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise ConfigFileNotFoundError(f"Configuration file not found: {config_path}")

    try:
        with config_path.open(encoding="utf-8") as f:
            raw_config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigValidationError(f"Invalid YAML syntax in {config_path}: {e}") from e
    except OSError as e:
        raise ConfigValidationError(
            f"Failed to read configuration file {config_path}: {e}"
        ) from e

    if raw_config is None:
        raise ConfigValidationError(f"Configuration file is empty: {config_path}")
    if not isinstance(raw_config, dict):
        raise ConfigValidationError(
            f"Configuration file must contain a mapping: {config_path}"
        )

    if isinstance(raw_config.get("store"), dict):
        raw_config = raw_config["store"]
    else:
        raw_config = dict(raw_config)

    env_connection = os.environ.get(CONNECTION_ENV_VAR)
    if env_connection:
        raw_config["connection"] = env_connection

    try:
        settings = StoreSettings.model_validate(raw_config)
    except ValidationError as e:
        error_messages = []
        for error in e.errors():
            loc = ".".join(str(x) for x in error["loc"])
            msg = error["msg"]
            error_messages.append(f"  - {loc}: {msg}")

        raise ConfigValidationError(
            f"Configuration validation failed in {config_path}:\n"
            + "\n".join(error_messages)
        ) from e

    if settings.migrations_dir is not None and not settings.migrations_dir.is_absolute():
        settings.migrations_dir = config_path.parent / settings.migrations_dir

    return settings
