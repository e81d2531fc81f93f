# configure/tftp_configurator.py
# -*- coding: utf-8 -*-
"""
Handles configuration of tftpd-hpa and deployment of the iPXE chain-loaders.
"""

import logging
import os
from typing import Optional

from common.command_utils import get_symbols, log_map_server
from common.file_utils import ConfigFileWriter, set_shell_variable
from ipxe_setup.config_models import AppSettings, ServerConfig

module_logger = logging.getLogger(__name__)


def render_tftpd_defaults(
    existing: str, server_config: ServerConfig, app_settings: AppSettings
) -> str:
    """Points tftpd-hpa at the TFTP root and sets its daemon options."""
    document = set_shell_variable(
        existing, "TFTP_DIRECTORY", server_config.tftp_root
    )
    return set_shell_variable(
        document, "TFTP_OPTIONS", app_settings.tftp.options
    )


def configure_tftp_server(
    server_config: ServerConfig,
    app_settings: AppSettings,
    writer: ConfigFileWriter,
    current_logger: Optional[logging.Logger] = None,
) -> None:
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)
    tftp = app_settings.tftp

    log_map_server(
        f"{symbols.get('step', '➡️')} Configuring the TFTP server ({tftp.defaults_path})...",
        "info",
        logger_to_use,
        app_settings,
    )
    writer.backup_once(tftp.defaults_path)
    writer.write(
        tftp.defaults_path,
        render_tftpd_defaults(
            writer.read(tftp.defaults_path), server_config, app_settings
        ),
    )
    writer.ensure_directory(server_config.tftp_root)
    deploy_chainloaders(server_config, app_settings, writer, logger_to_use)
    log_map_server(
        f"{symbols.get('success', '✅')} TFTP server configured to serve {server_config.tftp_root}.",
        "success",
        logger_to_use,
        app_settings,
    )


def deploy_chainloaders(
    server_config: ServerConfig,
    app_settings: AppSettings,
    writer: ConfigFileWriter,
    current_logger: Optional[logging.Logger] = None,
) -> None:
    """
    Copies the chain-loaders shipped by the ipxe package into the TFTP root.

    Rendering into a staging directory does not require the ipxe package,
    so the copy is skipped there.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)
    if not writer.is_live:
        log_map_server(
            f"{symbols.get('info', 'ℹ️')} Not copying chain-loaders while rendering to {writer.root}.",
            "info",
            logger_to_use,
            app_settings,
        )
        return

    for name in app_settings.tftp.chainloaders:
        source = os.path.join(app_settings.tftp.chainloader_source_dir, name)
        destination = os.path.join(server_config.tftp_root, name)
        writer.copy_from_host(source, destination)
        log_map_server(
            f"{symbols.get('success', '✅')} Copied {source} to {destination}",
            "success",
            logger_to_use,
            app_settings,
        )
