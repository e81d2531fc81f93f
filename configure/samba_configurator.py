# configure/samba_configurator.py
# -*- coding: utf-8 -*-
"""
Handles configuration of the read-only Samba share that exposes the
installation sources below the ipxe web directory.
"""

import logging
import re
from typing import Optional

from common.command_utils import (
    get_symbols,
    log_map_server,
    run_elevated_command,
)
from common.file_utils import ConfigFileWriter
from ipxe_setup.config_models import AppSettings, ServerConfig
from ipxe_setup.errors import ConfigWriteError

module_logger = logging.getLogger(__name__)


def render_samba_share(
    server_config: ServerConfig, app_settings: AppSettings
) -> str:
    samba = app_settings.samba
    format_vars = {
        "share_name": samba.share_name,
        "comment": samba.comment,
        "path": server_config.ipxe_web_dir,
    }
    try:
        return samba.template.format(**format_vars)
    except (KeyError, IndexError) as e:
        raise ConfigWriteError(
            f"Unknown placeholder {e} in samba.template. Check config.yaml."
        ) from e


def has_share_section(document: str, share_name: str) -> bool:
    """Whether smb.conf already defines a [share_name] section (case-insensitive)."""
    pattern = re.compile(
        rf"^\s*\[{re.escape(share_name)}\]\s*$", re.IGNORECASE | re.MULTILINE
    )
    return bool(pattern.search(document))


def validate_samba_config(
    app_settings: AppSettings, current_logger: Optional[logging.Logger] = None
) -> None:
    """Runs `testparm -s`; raises ConfigWriteError if smb.conf is rejected."""
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)
    log_map_server(
        f"{symbols.get('info', 'ℹ️')} Checking the Samba configuration syntax...",
        "info",
        logger_to_use,
        app_settings,
    )
    try:
        result = run_elevated_command(
            ["testparm", "-s"],
            app_settings,
            check=False,
            capture_output=True,
            current_logger=logger_to_use,
        )
    except FileNotFoundError as e:
        raise ConfigWriteError("testparm not found. Is samba installed?") from e
    if result.returncode != 0:
        details = (result.stderr or result.stdout or "").strip()
        raise ConfigWriteError(
            f"Samba configuration is invalid. Check {app_settings.samba.config_path}: {details}"
        )


def configure_samba_share(
    server_config: ServerConfig,
    app_settings: AppSettings,
    writer: ConfigFileWriter,
    current_logger: Optional[logging.Logger] = None,
) -> None:
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)
    samba = app_settings.samba

    log_map_server(
        f"{symbols.get('step', '➡️')} Configuring the Samba share [{samba.share_name}]...",
        "info",
        logger_to_use,
        app_settings,
    )
    writer.backup_once(samba.config_path)
    existing = writer.read(samba.config_path)

    if has_share_section(existing, samba.share_name):
        log_map_server(
            f"{symbols.get('info', 'ℹ️')} Share [{samba.share_name}] already exists in {samba.config_path}. Leaving it unchanged.",
            "info",
            logger_to_use,
            app_settings,
        )
    else:
        block = render_samba_share(server_config, app_settings)
        if existing and not existing.endswith("\n"):
            block = "\n" + block
        writer.append(samba.config_path, block)

    if writer.is_live:
        validate_samba_config(app_settings, logger_to_use)

    log_map_server(
        f"{symbols.get('success', '✅')} Samba share [{samba.share_name}] configured for {server_config.ipxe_web_dir}.",
        "success",
        logger_to_use,
        app_settings,
    )
