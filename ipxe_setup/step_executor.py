# ipxe_setup/step_executor.py
# -*- coding: utf-8 -*-
"""
Provides functionality to execute individual provisioning steps.

A step is run, reported as succeeded or failed, and recorded in the state
file on success. With resume enabled, steps already recorded are skipped.
"""

import logging
from typing import Any, Callable, Optional

from common.command_utils import get_symbols, log_map_server
from ipxe_setup.config_models import AppSettings
from ipxe_setup.state_manager import is_step_completed, mark_step_completed

module_logger = logging.getLogger(__name__)


def execute_step(
    step_tag: str,
    step_description: str,
    step_function: Callable[[AppSettings, Optional[logging.Logger]], Any],
    app_settings: AppSettings,
    current_logger_instance: Optional[logging.Logger],
    resume: bool = False,
    record_state: bool = True,
) -> bool:
    """
    Execute a single provisioning step.

    Args:
        step_tag: A unique string identifier for the step.
        step_description: A human-readable description of the step.
        step_function: The function to call to execute the step, with the
            signature (app_settings, logger). Returning False or raising
            marks the step as failed; any other outcome is success.
        app_settings: The application settings object.
        current_logger_instance: The logger instance to use.
        resume: Skip the step if the state file records it as completed.
        record_state: Record the step in the state file on success.

    Returns:
        True if the step succeeded or was skipped, False if it failed.
    """
    logger_to_use = (
        current_logger_instance if current_logger_instance else module_logger
    )
    symbols = get_symbols(app_settings)

    if resume and record_state and is_step_completed(
        step_tag, app_settings=app_settings, current_logger=logger_to_use
    ):
        log_map_server(
            f"{symbols.get('info', 'ℹ️')} Step '{step_description}' ({step_tag}) is already completed. Skipping.",
            "info",
            logger_to_use,
            app_settings,
        )
        return True

    log_map_server(
        f"--- {symbols.get('step', '➡️')} Executing: {step_description} ({step_tag}) ---",
        "info",
        logger_to_use,
        app_settings,
    )
    try:
        step_result = step_function(app_settings, logger_to_use)
    except Exception as e:
        log_map_server(
            f"{symbols.get('error', '❌')} FAILED: {step_description} ({step_tag})",
            "error",
            logger_to_use,
            app_settings,
        )
        log_map_server(
            f"   Error details: {str(e)}",
            "error",
            logger_to_use,
            app_settings,
            exc_info=logger_to_use.isEnabledFor(logging.DEBUG),
        )
        return False

    if step_result is False:
        log_map_server(
            f"{symbols.get('error', '❌')} FAILED: {step_description} ({step_tag})",
            "error",
            logger_to_use,
            app_settings,
        )
        return False

    if record_state:
        mark_step_completed(
            step_tag, app_settings=app_settings, current_logger=logger_to_use
        )
    log_map_server(
        f"--- {symbols.get('success', '✅')} Successfully completed: {step_description} ({step_tag}) ---",
        "success",
        logger_to_use,
        app_settings,
    )
    return True
