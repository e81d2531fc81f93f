# ipxe_setup/state_manager.py
# -*- coding: utf-8 -*-
"""
Manages the state file for tracking installation progress.

The state file holds a header with the installer version followed by one
completed step tag per line. A header written by a different version of the
installer invalidates the recorded steps.
"""

import datetime
import logging
import os
import re
import tempfile
from typing import List, Optional

from common.command_utils import get_symbols, log_map_server
from ipxe_setup import config as static_config
from ipxe_setup.config_models import AppSettings

module_logger = logging.getLogger(__name__)

VERSION_HEADER_PATTERN = re.compile(r"^# SCRIPT_VERSION:\s*(\S+)", re.MULTILINE)


def _read_state_text() -> Optional[str]:
    state_path = static_config.STATE_FILE_PATH
    if not state_path.is_file():
        return None
    return state_path.read_text(encoding="utf-8")


def _write_state_text(content: str) -> None:
    state_path = static_config.STATE_FILE_PATH
    state_path.parent.mkdir(mode=0o750, parents=True, exist_ok=True)
    temp_file_path = ""
    try:
        with tempfile.NamedTemporaryFile(
            mode="w",
            delete=False,
            dir=state_path.parent,
            prefix="ipxestate_",
            suffix=".txt",
            encoding="utf-8",
        ) as temp_f:
            temp_f.write(content)
            temp_file_path = temp_f.name
        os.chmod(temp_file_path, 0o640)
        os.replace(temp_file_path, state_path)
    finally:
        if temp_file_path and os.path.exists(temp_file_path):
            os.unlink(temp_file_path)


def _state_header() -> str:
    return (
        f"# SCRIPT_VERSION: {static_config.SCRIPT_VERSION}\n"
        f"# State cleared/re-initialized on {datetime.datetime.now().isoformat()}\n"
    )


def initialize_state_system(
    app_settings: AppSettings,
    current_logger: Optional[logging.Logger] = None,
) -> None:
    """
    Ensures the state file exists and belongs to this installer version.
    A file written by another version is cleared.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)
    existing = _read_state_text()

    if existing is None:
        log_map_server(
            f"{symbols.get('info', 'ℹ️')} State file {static_config.STATE_FILE_PATH} does not exist. Initializing.",
            "info",
            logger_to_use,
            app_settings,
        )
        _write_state_text(_state_header())
        return

    match = VERSION_HEADER_PATTERN.search(existing)
    stored_version = match.group(1) if match else None
    if stored_version != static_config.SCRIPT_VERSION:
        log_map_server(
            f"{symbols.get('warning', '!')} State file version mismatch. Stored: {stored_version}, "
            f"Current: {static_config.SCRIPT_VERSION}. Recorded steps are discarded.",
            "warning",
            logger_to_use,
            app_settings,
        )
        clear_state_file(app_settings, current_logger=logger_to_use)


def clear_state_file(
    app_settings: AppSettings,
    current_logger: Optional[logging.Logger] = None,
) -> None:
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)
    log_map_server(
        f"{symbols.get('info', 'ℹ️')} Clearing state file: {static_config.STATE_FILE_PATH}",
        "info",
        logger_to_use,
        app_settings,
    )
    _write_state_text(_state_header())
    log_map_server(
        f"{symbols.get('success', '✅')} State file re-initialized for version {static_config.SCRIPT_VERSION}.",
        "success",
        logger_to_use,
        app_settings,
    )


def view_completed_steps(
    app_settings: AppSettings,
    current_logger: Optional[logging.Logger] = None,
) -> List[str]:
    """Returns the recorded step tags in completion order."""
    existing = _read_state_text()
    if not existing:
        return []
    return [
        line.strip()
        for line in existing.splitlines()
        if line.strip() and not line.startswith("#")
    ]


def is_step_completed(
    step_tag: str,
    app_settings: AppSettings,
    current_logger: Optional[logging.Logger] = None,
) -> bool:
    return step_tag in view_completed_steps(app_settings, current_logger)


def mark_step_completed(
    step_tag: str,
    app_settings: AppSettings,
    current_logger: Optional[logging.Logger] = None,
) -> None:
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)
    if is_step_completed(step_tag, app_settings, logger_to_use):
        log_map_server(
            f"{symbols.get('info', 'ℹ️')} Step '{step_tag}' was already marked as completed.",
            "debug",
            logger_to_use,
            app_settings,
        )
        return

    existing = _read_state_text() or _state_header()
    if not existing.endswith("\n"):
        existing += "\n"
    _write_state_text(f"{existing}{step_tag}\n")
    log_map_server(
        f"{symbols.get('info', 'ℹ️')} Marked step '{step_tag}' as completed.",
        "debug",
        logger_to_use,
        app_settings,
    )
