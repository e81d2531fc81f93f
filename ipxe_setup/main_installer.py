# ipxe_setup/main_installer.py
# -*- coding: utf-8 -*-
"""
Main entry point and orchestrator for the iPXE server setup.

Handles argument parsing, logging setup and privilege checks, resolves the
server configuration, asks for a single confirmation and then runs the
provisioning steps in order, stopping at the first failure.
"""

import argparse
import logging
import sys
from typing import Any, Callable, List, Optional, Tuple

from common.command_utils import ensure_root_privileges, log_map_server
from common.debian.apt_manager import AptManager
from common.file_utils import ConfigFileWriter, StagingFileWriter
from common.logging_config import setup_logging
from configure.dhcp_configurator import configure_dhcp_server
from configure.ipxe_menu_configurator import create_web_directories, write_ipxe_menu
from configure.samba_configurator import configure_samba_share
from configure.tftp_configurator import configure_tftp_server
from ipxe_setup import config
from ipxe_setup.asset_fetcher import fetch_hirens, fetch_memtest, fetch_wimboot
from ipxe_setup.cli_handler import (
    cli_confirm,
    display_followup_instructions,
    display_server_summary,
    view_configuration,
)
from ipxe_setup.config_loader import DEFAULT_CONFIG_FILE, load_app_settings
from ipxe_setup.config_models import LOG_PREFIX_DEFAULT, AppSettings, ServerConfig
from ipxe_setup.errors import PackageInstallError, ProvisioningError
from ipxe_setup.network_discovery import resolve_server_config
from ipxe_setup.service_controller import restart_and_enable_services
from ipxe_setup.state_manager import clear_state_file, initialize_state_system
from ipxe_setup.step_executor import execute_step

logger = logging.getLogger("ipxe_setup")

StepFunction = Callable[[AppSettings, Optional[logging.Logger]], Any]
# (tag, description, function, renders configuration only)
ProvisioningStep = Tuple[str, str, StepFunction, bool]


def install_packages(
    app_settings: AppSettings, current_logger: Optional[logging.Logger] = None
) -> None:
    try:
        apt = AptManager(logger=current_logger)
    except FileNotFoundError as e:
        raise PackageInstallError(str(e)) from e
    if not apt.install(app_settings.packages, app_settings):
        raise PackageInstallError(
            f"Failed to install packages: {' '.join(app_settings.packages)}"
        )


def build_provisioning_steps(
    server_config: ServerConfig, writer: ConfigFileWriter
) -> List[ProvisioningStep]:
    """The provisioning steps in execution order."""

    def with_config(func: Callable[..., Any]) -> StepFunction:
        def step(app_settings: AppSettings, current_logger: Optional[logging.Logger] = None) -> Any:
            return func(server_config, app_settings, writer, current_logger)

        return step

    return [
        ("INSTALL_PACKAGES", "Install iPXE server packages", install_packages, False),
        ("CONFIG_DHCP", "Configure ISC DHCP server", with_config(configure_dhcp_server), True),
        ("CONFIG_TFTP", "Configure tftpd-hpa and chain-loaders", with_config(configure_tftp_server), True),
        ("CREATE_WEB_DIRS", "Create web asset directories", with_config(create_web_directories), True),
        ("FETCH_WIMBOOT", "Download wimboot", with_config(fetch_wimboot), False),
        ("FETCH_MEMTEST", "Download and extract Memtest86+", with_config(fetch_memtest), False),
        ("FETCH_HIRENS", "Download and extract Hiren's BootCD PE", with_config(fetch_hirens), False),
        ("CONFIG_SAMBA", "Configure Samba installation share", with_config(configure_samba_share), True),
        ("CONFIG_IPXE_MENU", "Create iPXE boot menu", with_config(write_ipxe_menu), True),
        ("SERVICES_RESTART_ENABLE", "Restart, enable and check services", restart_and_enable_services, False),
    ]


def build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ipxe-server-setup",
        description="Provision a PXE/iPXE network boot server (DHCP, TFTP, HTTP, Samba) on Debian/Ubuntu.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log commands and their output (DEBUG).")
    parser.add_argument("-y", "--yes", action="store_true", help="Do not ask for confirmation.")
    parser.add_argument("--config", default=DEFAULT_CONFIG_FILE, help="Path to the YAML configuration file.")
    parser.add_argument("--log-file", default=None, help="Also write JSON log records to this file.")
    parser.add_argument("--view-config", action="store_true", help="View current configuration settings and exit.")
    parser.add_argument("--clear-state", action="store_true", help="Clear all progress state from state file and exit.")
    parser.add_argument("--resume", action="store_true", help="Skip steps recorded as completed by a previous run.")
    parser.add_argument(
        "--output-dir",
        default=None,
        help="Render configuration files below this directory instead of the live system. "
        "Packages, downloads and services are skipped.",
    )

    config_group = parser.add_argument_group("Configuration Overrides")
    config_group.add_argument("--interface", default=None, help="Network interface DHCP listens on.")
    config_group.add_argument("--server-ip", default=None, help="IPv4 address of this server.")
    config_group.add_argument("--subnet", default=None, help="Subnet prefix served by DHCP, e.g. 192.168.1.")
    config_group.add_argument("--skip-hirens", action="store_true", default=None,
                              help="Do not download Hiren's BootCD PE.")
    config_group.add_argument("-l", "--log-prefix", default=None, help="Prefix for log messages.")
    return parser


def run_provisioning_steps(
    steps: List[ProvisioningStep],
    app_settings: AppSettings,
    current_logger: logging.Logger,
    resume: bool = False,
    render_only: bool = False,
) -> bool:
    """Runs the steps in order and stops at the first failure."""
    for tag, description, step_function, renders_config in steps:
        if render_only and not renders_config:
            continue
        if not execute_step(
            tag,
            description,
            step_function,
            app_settings,
            current_logger,
            resume=resume,
            record_state=not render_only,
        ):
            log_map_server(
                f"{app_settings.symbols.get('critical', '🔥')} Step '{description}' failed. Stopping.",
                "critical",
                current_logger,
                app_settings,
            )
            return False
    return True


def _configure_logging(parsed_args: argparse.Namespace, log_prefix: str) -> bool:
    """Set up console and file logging. An unwritable log file is reported, not raised."""
    try:
        setup_logging(
            "ipxe_setup",
            log_prefix,
            verbose=parsed_args.verbose,
            log_file_path=parsed_args.log_file,
        )
    except OSError as e:
        log_map_server(
            f"{config.SYMBOLS['error']} Cannot open log file {parsed_args.log_file}: {e}",
            "error",
            logger,
        )
        return False
    return True


def main(args: Optional[List[str]] = None) -> int:
    parser = build_argument_parser()
    try:
        parsed_args = parser.parse_args(args)
    except SystemExit as e:
        return e.code if isinstance(e.code, int) else 1

    if not _configure_logging(parsed_args, parsed_args.log_prefix or LOG_PREFIX_DEFAULT):
        return 1
    try:
        app_settings = load_app_settings(parsed_args, parsed_args.config, current_logger=logger)
    except SystemExit as e:
        log_map_server(f"{config.SYMBOLS['error']} {e}", "error", logger)
        return 1
    if app_settings.log_prefix != (parsed_args.log_prefix or LOG_PREFIX_DEFAULT):
        if not _configure_logging(parsed_args, app_settings.log_prefix):
            return 1
    symbols = app_settings.symbols

    log_map_server(
        f"{symbols.get('sparkles', '✨')} Starting iPXE Server Setup (Script Version: {config.SCRIPT_VERSION})...",
        "info",
        logger,
        app_settings,
    )

    if parsed_args.view_config:
        view_configuration(app_settings, current_logger=logger)
        return 0

    render_only = parsed_args.output_dir is not None
    try:
        if not render_only:
            ensure_root_privileges(app_settings, current_logger=logger)

        if parsed_args.clear_state:
            clear_state_file(app_settings, current_logger=logger)
            return 0

        server_config = resolve_server_config(app_settings, current_logger=logger)
    except (ProvisioningError, OSError) as e:
        log_map_server(f"{symbols.get('error', '❌')} {e}", "error", logger, app_settings)
        return 1

    display_server_summary(server_config, app_settings, current_logger=logger)
    if render_only:
        log_map_server(
            f"{symbols.get('info', 'ℹ️')} Rendering configuration files below {parsed_args.output_dir}. "
            "The live system is not modified.",
            "info",
            logger,
            app_settings,
        )
    if not parsed_args.yes and not cli_confirm(
        "Proceed with the installation?", app_settings, logger
    ):
        log_map_server(f"{symbols.get('info', 'ℹ️')} Installation cancelled.", "info", logger, app_settings)
        return 0

    try:
        if render_only:
            writer: ConfigFileWriter = StagingFileWriter(
                parsed_args.output_dir, app_settings=app_settings, logger=logger
            )
        else:
            writer = ConfigFileWriter(app_settings=app_settings, logger=logger)
            initialize_state_system(app_settings, current_logger=logger)
            if not parsed_args.resume:
                clear_state_file(app_settings, current_logger=logger)
    except (ProvisioningError, OSError) as e:
        log_map_server(f"{symbols.get('error', '❌')} {e}", "error", logger, app_settings)
        return 1

    steps = build_provisioning_steps(server_config, writer)
    if not run_provisioning_steps(
        steps,
        app_settings,
        logger,
        resume=parsed_args.resume,
        render_only=render_only,
    ):
        log_map_server(f"{symbols.get('critical', '🔥')} One or more steps failed.", "critical", logger, app_settings)
        return 1

    if render_only:
        log_map_server(
            f"{symbols.get('success', '✅')} Configuration rendered below {writer.root}.",
            "success",
            logger,
            app_settings,
        )
        return 0

    log_map_server(
        f"{symbols.get('success', '✅')} iPXE server installation completed!",
        "success",
        logger,
        app_settings,
    )
    display_followup_instructions(server_config, app_settings, current_logger=logger)
    return 0


if __name__ == "__main__":
    sys.exit(main())
