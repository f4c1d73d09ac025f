# settings/config_loader.py
# -*- coding: utf-8 -*-
"""
Configuration loader for the bootstrap tools.

Handles loading settings from Pydantic model defaults, YAML files,
environment variables, and command-line arguments, applying a specific
order of precedence:
1. Pydantic Model Defaults
2. Environment Variables (via Pydantic's BaseSettings)
3. YAML Configuration File
4. Command-Line Arguments
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import ValidationError as PydanticValidationError

from common.exceptions import ValidationError

from .config_models import AppSettings

module_logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "hostboot.yaml"


def _deep_update(
    source: Dict[str, Any], overrides: Dict[str, Any]
) -> Dict[str, Any]:
    """
    Recursively updates a dictionary `source` with values from another dictionary
    `overrides`. Nested dictionaries are merged key by key; `None` values in
    `overrides` never replace an existing value.

    Parameters:
        source: Dict[str, Any]
            The dictionary to be updated. This dictionary gets modified in place.
        overrides: Dict[str, Any]
            The dictionary containing values to update or add to the `source`.

    Returns:
        Dict[str, Any]:
            The updated dictionary after applying all `overrides` to the input `source`.
    """
    for key, value in overrides.items():
        if (
            isinstance(value, dict)
            and key in source
            and isinstance(source[key], dict)
        ):
            source[key] = _deep_update(source[key], value)
        elif value is not None:
            source[key] = value
    return source


def _format_pydantic_error(error: PydanticValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(p) for p in item.get("loc", ()))
        parts.append(f"{location}: {item.get('msg')}")
    return "; ".join(parts)


def load_yaml_config(
    config_file_path: Path,
    current_logger: Optional[logging.Logger] = None,
) -> Dict[str, Any]:
    """
    Read a YAML configuration file into a dictionary.

    A missing file yields an empty dictionary. A file that cannot be parsed or
    does not hold a mapping is reported as a ValidationError, since the
    operator explicitly pointed us at it or left it in the working directory.
    """
    logger_to_use = current_logger if current_logger else module_logger

    if not config_file_path.is_file():
        logger_to_use.debug(
            f"Configuration file '{config_file_path}' not found. Using defaults, environment variables, and CLI args."
        )
        return {}

    try:
        with open(config_file_path, "r", encoding="utf-8") as f:
            yaml_data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValidationError(
            f"Could not parse YAML config file '{config_file_path}': {e}"
        ) from e
    except IOError as e:
        raise ValidationError(
            f"Could not read config file '{config_file_path}': {e}"
        ) from e

    if yaml_data is None:
        return {}
    if not isinstance(yaml_data, dict):
        raise ValidationError(
            f"Config file '{config_file_path}' does not contain a YAML dictionary."
        )
    logger_to_use.info(f"Loaded configuration from {config_file_path}")
    return yaml_data


def load_app_settings(
    cli_overrides: Optional[Dict[str, Any]] = None,
    config_file_path: Optional[str] = None,
    current_logger: Optional[logging.Logger] = None,
) -> AppSettings:
    """
    Loads application settings with the following precedence:
    1. Pydantic Model Defaults.
    2. Environment Variables, read by Pydantic BaseSettings.
    3. Values from the YAML configuration file (overrides defaults and environment).
    4. Command-Line Arguments (highest precedence, overrides all else).

    Args:
        cli_overrides: Nested dictionary of values taken from the command line,
            shaped like AppSettings (e.g. {"ddns": {"domain": "myfarm"}}).
            Keys whose value is None are ignored.
        config_file_path: Path to the YAML configuration file. Defaults to
            hostboot.yaml in the working directory when present.
        current_logger: Optional logger to use instead of the module logger.

    Returns:
        An instance of AppSettings with the fully resolved configuration.

    Raises:
        ValidationError: If any source provides an invalid value.
    """
    logger_to_use = current_logger if current_logger else module_logger

    try:
        current_values_dict = AppSettings().model_dump()

        yaml_path = Path(config_file_path or DEFAULT_CONFIG_FILE).expanduser()
        yaml_data = load_yaml_config(yaml_path, logger_to_use)
        current_values_dict = _deep_update(current_values_dict, yaml_data)

        if cli_overrides:
            current_values_dict = _deep_update(
                current_values_dict, cli_overrides
            )

        return AppSettings(**current_values_dict)
    except PydanticValidationError as e:
        raise ValidationError(
            f"Invalid configuration: {_format_pydantic_error(e)}"
        ) from e
