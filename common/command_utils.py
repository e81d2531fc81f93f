# common/command_utils.py
# -*- coding: utf-8 -*-
"""
Utilities for executing system commands and logging their output.
"""

import logging
import os
import shutil
import subprocess
from typing import Dict, List, Optional

from ipxe_setup.config_models import SYMBOLS_DEFAULT, AppSettings
from ipxe_setup.errors import PrivilegeError

module_logger = logging.getLogger(__name__)


def log_map_server(
    message: str,
    level: str = "info",
    current_logger: Optional[logging.Logger] = None,
    app_settings: Optional[AppSettings] = None,
    exc_info: bool = False,
) -> None:
    """
    Logs a message at the named level.

    Args:
        message: The log message.
        level: One of "debug", "info", "success", "warning", "error" or
            "critical". "success" and unknown levels are logged as info.
        current_logger: Logger to use instead of the module logger.
        app_settings: Application settings; accepted so every call site can
            pass the same arguments.
        exc_info: Whether to attach the current exception to the record.
    """
    effective_logger = current_logger if current_logger else module_logger

    if level == "warning":
        effective_logger.warning(message, exc_info=exc_info)
    elif level == "error":
        effective_logger.error(message, exc_info=exc_info)
    elif level == "critical":
        effective_logger.critical(message, exc_info=exc_info)
    elif level == "debug":
        effective_logger.debug(message, exc_info=exc_info)
    else:
        effective_logger.info(message, exc_info=exc_info)


def get_symbols(app_settings: Optional[AppSettings]) -> Dict[str, str]:
    """Returns the log symbols of app_settings, or the defaults."""
    if app_settings and getattr(app_settings, "symbols", None):
        return app_settings.symbols
    return SYMBOLS_DEFAULT


def is_running_as_root() -> bool:
    return os.geteuid() == 0


def ensure_root_privileges(
    app_settings: Optional[AppSettings],
    current_logger: Optional[logging.Logger] = None,
) -> None:
    """
    Raises PrivilegeError unless the process runs with an effective UID of 0.

    The installer rewrites files under /etc and restarts system services, so
    it refuses to start anything without root.
    """
    if is_running_as_root():
        return
    symbols = get_symbols(app_settings)
    log_map_server(
        f"{symbols.get('error', '❌')} This installer must be run as root. Use 'sudo ipxe-server-setup'.",
        "error",
        current_logger,
        app_settings,
    )
    raise PrivilegeError("This installer must be run as root.")


def _get_elevated_command_prefix() -> List[str]:
    """Returns ["sudo"] unless the process already runs as root."""
    return [] if is_running_as_root() else ["sudo"]


def run_command(
    command: List[str],
    app_settings: Optional[AppSettings],
    check: bool = True,
    capture_output: bool = False,
    text: bool = True,
    current_logger: Optional[logging.Logger] = None,
    env: Optional[Dict[str, str]] = None,
) -> subprocess.CompletedProcess:
    """
    Executes a system command, logging the command line and its output.

    Args:
        command: The command as an argument list. It never runs through a shell.
        app_settings: Application settings providing the log symbols.
        check: Raise CalledProcessError on a non-zero exit code.
        capture_output: Capture stdout and stderr and log them.
        text: Decode the output streams as text.
        current_logger: Logger to use instead of the module logger.
        env: Environment for the command; inherits the current one if None.

    Returns:
        The completed process.

    Raises:
        subprocess.CalledProcessError: If check is True and the command fails.
        FileNotFoundError: If the executable does not exist.
    """
    effective_logger = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)

    log_map_server(
        f"{symbols.get('gear', '⚙️')} Executing: {subprocess.list2cmdline(command)}",
        "debug",
        effective_logger,
        app_settings,
    )
    try:
        result = subprocess.run(
            command,
            check=check,
            capture_output=capture_output,
            text=text,
            env=env,
        )
        if capture_output:
            if result.stdout and result.stdout.strip():
                log_map_server(
                    f"   stdout: {result.stdout.strip()}",
                    "debug",
                    effective_logger,
                    app_settings,
                )
            if result.stderr and result.stderr.strip():
                log_map_server(
                    f"   stderr: {result.stderr.strip()}",
                    "debug",
                    effective_logger,
                    app_settings,
                )
        return result
    except subprocess.CalledProcessError as e:
        cmd_executed_str = (
            subprocess.list2cmdline(e.cmd) if isinstance(e.cmd, list) else str(e.cmd)
        )
        log_map_server(
            f"{symbols.get('error', '❌')} Command `{cmd_executed_str}` failed (rc {e.returncode}).",
            "error",
            effective_logger,
            app_settings,
        )
        for stream_name, stream in (("stdout", e.stdout), ("stderr", e.stderr)):
            if stream and hasattr(stream, "strip") and stream.strip():
                log_map_server(
                    f"   {stream_name}: {stream.strip()}",
                    "error",
                    effective_logger,
                    app_settings,
                )
        raise
    except FileNotFoundError as e:
        log_map_server(
            f"{symbols.get('error', '❌')} Command not found: {e.filename}. Ensure it's installed and in PATH.",
            "error",
            effective_logger,
            app_settings,
        )
        raise


def run_elevated_command(
    command: List[str],
    app_settings: Optional[AppSettings],
    check: bool = True,
    capture_output: bool = False,
    current_logger: Optional[logging.Logger] = None,
    env: Optional[Dict[str, str]] = None,
) -> subprocess.CompletedProcess:
    """
    Executes a command with root privileges, prefixing it with sudo when the
    process does not already run as root. See run_command() for arguments.
    """
    elevated_command_list = _get_elevated_command_prefix() + list(command)
    return run_command(
        elevated_command_list,
        app_settings,
        check=check,
        capture_output=capture_output,
        text=True,
        current_logger=current_logger,
        env=env,
    )


def command_exists(command_name: str) -> bool:
    """Checks whether command_name is an executable on PATH."""
    return shutil.which(command_name) is not None
