# ipxe_setup/config_loader.py
# -*- coding: utf-8 -*-
"""
Configuration loader for the installer.

Handles loading settings from Pydantic model defaults, environment
variables, a YAML file and command-line arguments, applying this order of
precedence (later wins):
1. Pydantic Model Defaults
2. Environment Variables (IPXE_*, nested with "__", e.g. IPXE_DHCP__DOMAIN_NAME)
3. YAML Configuration File
4. Command-Line Arguments
"""

import argparse
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import ValidationError

from . import config as static_config
from .config_models import AppSettings

module_logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "config.yaml"


def _deep_update(
    source: Dict[str, Any], overrides: Dict[str, Any]
) -> Dict[str, Any]:
    """
    Recursively updates `source` with values from `overrides`.

    Nested dictionaries are merged key by key; any other value replaces the
    one in `source`. None values in `overrides` never replace an existing
    value.
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
        elif key not in source:
            source[key] = value
    return source


def _resolve_config_path(config_file_path: str) -> Path:
    """Relative paths are tried in the working directory, then the project root."""
    candidate = Path(config_file_path)
    if candidate.is_absolute() or candidate.exists():
        return candidate
    return static_config.PROJECT_ROOT / candidate


def _load_yaml_file(
    yaml_config_path: Path, logger_to_use: logging.Logger
) -> Dict[str, Any]:
    if not yaml_config_path.is_file():
        logger_to_use.info(
            f"Configuration file '{yaml_config_path}' not found. Using defaults, environment variables, and CLI args."
        )
        return {}
    try:
        with open(yaml_config_path, "r", encoding="utf-8") as f:
            yaml_data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        logger_to_use.error(f"Could not parse YAML config file '{yaml_config_path}': {e}")
        raise SystemExit(f"Configuration error: {e}") from e
    except IOError as e:
        logger_to_use.error(f"Could not read config file '{yaml_config_path}': {e}")
        raise SystemExit(f"Configuration error: {e}") from e

    if yaml_data is None:
        return {}
    if not isinstance(yaml_data, dict):
        logger_to_use.warning(
            f"Config file '{yaml_config_path}' does not contain a valid YAML dictionary. Ignoring."
        )
        return {}
    logger_to_use.info(f"Loaded main configuration from {yaml_config_path}")
    return yaml_data


def cli_overrides(cli_args: argparse.Namespace) -> Dict[str, Any]:
    """Maps parsed command-line arguments onto the AppSettings structure."""
    cli_arg_dict = vars(cli_args)
    overrides: Dict[str, Any] = {}
    network: Dict[str, Any] = {}

    for cli_key, cli_value in cli_arg_dict.items():
        if cli_value is None:
            continue
        if cli_key == "interface":
            network["interface"] = cli_value
        elif cli_key == "server_ip":
            network["server_ip"] = cli_value
        elif cli_key == "subnet":
            network["subnet_prefix"] = cli_value
        elif cli_key == "log_prefix":
            overrides["log_prefix"] = cli_value
        elif cli_key == "skip_hirens" and cli_value:
            overrides["assets"] = {"fetch_hirens": False}

    if network:
        overrides["network"] = network
    return overrides


def load_app_settings(
    cli_args: Optional[argparse.Namespace] = None,
    config_file_path: str = DEFAULT_CONFIG_FILE,
    current_logger: Optional[logging.Logger] = None,
) -> AppSettings:
    """
    Loads application settings.

    Args:
        cli_args: Parsed command-line arguments (from argparse).
        config_file_path: Path to the YAML configuration file.
        current_logger: Optional logger to use instead of the module logger.

    Returns:
        An instance of AppSettings with the fully resolved configuration.

    Raises:
        SystemExit: If the YAML file is unreadable or the merged settings
            fail validation.
    """
    logger_to_use = current_logger if current_logger else module_logger

    try:
        settings_after_env_and_defaults = AppSettings()
    except ValidationError as e:
        logger_to_use.error(f"Environment configuration is invalid: {e}")
        raise SystemExit(f"Configuration error: {e}") from e
    current_values_dict = settings_after_env_and_defaults.model_dump(
        exclude_defaults=False
    )

    yaml_data = _load_yaml_file(
        _resolve_config_path(config_file_path), logger_to_use
    )
    current_values_dict = _deep_update(current_values_dict, yaml_data)

    if cli_args:
        current_values_dict = _deep_update(
            current_values_dict, cli_overrides(cli_args)
        )

    try:
        final_settings = AppSettings(**current_values_dict)
    except ValidationError as e:
        logger_to_use.error(f"Configuration validation failed: {e}")
        raise SystemExit(f"Configuration error: {e}") from e

    logger_to_use.debug("Successfully loaded and validated application settings")
    return final_settings
