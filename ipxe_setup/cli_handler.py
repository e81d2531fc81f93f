# ipxe_setup/cli_handler.py
# -*- coding: utf-8 -*-
"""
Handles Command Line Interface (CLI) interactions for the iPXE server setup:
the confirmation prompt, the configuration summary and the instructions
printed after a successful run.
"""

import logging
from typing import Callable, List, Optional

from common.command_utils import get_symbols, log_map_server
from ipxe_setup import config as static_config
from ipxe_setup.config_models import AppSettings, ServerConfig

module_logger = logging.getLogger(__name__)


def cli_confirm(
    prompt_message: str,
    app_settings: AppSettings,
    current_logger_instance: Optional[logging.Logger] = None,
    input_func: Callable[[str], str] = input,
) -> bool:
    """
    Asks a (y/N) question. Only "y" or "Y" confirms; end-of-file counts as
    "No".
    """
    logger_to_use = (
        current_logger_instance if current_logger_instance else module_logger
    )
    symbols = get_symbols(app_settings)
    try:
        user_input = (
            input_func(f"   {symbols.get('info', 'ℹ️')} {prompt_message} (y/N): ")
            .strip()
            .lower()
        )
        return user_input == "y"
    except EOFError:
        log_map_server(
            f"{symbols.get('warning', '!')} No user input (EOF), defaulting to 'N' for prompt: '{prompt_message}'",
            "warning",
            logger_to_use,
            app_settings,
        )
        return False


def format_server_summary(server_config: ServerConfig) -> str:
    return (
        f"  Server IP:      {server_config.server_ip}\n"
        f"  Interface:      {server_config.interface}\n"
        f"  DHCP subnet:    {server_config.dhcp_subnet} netmask {server_config.dhcp_netmask}\n"
        f"  DHCP range:     {server_config.dhcp_range_start} - {server_config.dhcp_range_end}\n"
        f"  Router:         {server_config.dhcp_router}\n"
        f"  TFTP root:      {server_config.tftp_root}\n"
        f"  Boot menu:      {server_config.ipxe_url('menu.ipxe')}"
    )


def display_server_summary(
    server_config: ServerConfig,
    app_settings: AppSettings,
    current_logger: Optional[logging.Logger] = None,
) -> None:
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)
    log_map_server(
        f"{symbols.get('info', 'ℹ️')} The iPXE server will be configured with:\n"
        f"{format_server_summary(server_config)}",
        "info",
        logger_to_use,
        app_settings,
    )


def view_configuration(
    app_config: AppSettings, current_logger: Optional[logging.Logger] = None
) -> None:
    """
    Displays the effective configuration (CLI > YAML > ENV > Defaults)
    without touching the host.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_config)
    network = app_config.network

    config_text = f"{symbols.get('info', 'ℹ️')} Current effective configuration values (CLI > YAML > ENV > Defaults):\n\n"
    config_text += "  Network (network.*):\n"
    config_text += f"    Interface:                   {network.interface or '[detect]'}\n"
    config_text += f"    Server IP:                   {network.server_ip or '[detect]'}\n"
    config_text += f"    Subnet prefix:               {network.subnet_prefix or '[detect]'}\n"
    config_text += f"    On detection failure:        {network.on_detection_failure}\n\n"

    config_text += "  DHCP (dhcp.*):\n"
    config_text += f"    Domain name:                 {app_config.dhcp.domain_name}\n"
    config_text += f"    DNS servers:                 {', '.join(app_config.dhcp.dns_servers)}\n"
    config_text += (
        f"    Range hosts:                 .{app_config.dhcp.range_start_host} - "
        f".{app_config.dhcp.range_end_host} (router .{app_config.dhcp.router_host})\n"
    )
    config_text += f"    Config file:                 {app_config.dhcp.config_path}\n\n"

    config_text += f"  TFTP root:                     {app_config.tftp.root_dir}\n"
    config_text += f"  Web ipxe directory:            {app_config.web.ipxe_dir}\n"
    config_text += f"  Samba share:                   [{app_config.samba.share_name}] in {app_config.samba.config_path}\n"
    config_text += f"  Fetch Hiren's BootCD PE:       {app_config.assets.fetch_hirens}\n"
    config_text += f"  Download timeout:              {app_config.assets.download_timeout}s\n"
    config_text += (
        f"  Boot menu:                     {len(app_config.ipxe.entries)} entries, "
        f"default '{app_config.ipxe.default_entry}', timeout {app_config.ipxe.timeout_ms} ms\n"
    )
    config_text += f"  Services:                      {', '.join(app_config.services.units)} (on failure: {app_config.services.on_failure})\n"
    config_text += f"  Packages:                      {' '.join(app_config.packages)}\n\n"
    config_text += f"  State File Path (static):      {static_config.STATE_FILE_PATH}\n"
    config_text += f"  Script Version (static):       {static_config.SCRIPT_VERSION}\n"

    log_map_server(
        "Displaying current configuration:", "info", logger_to_use, app_config
    )
    log_map_server(f"\n{config_text}", "info", logger_to_use, app_config)


def build_followup_instructions(
    server_config: ServerConfig, app_settings: AppSettings
) -> List[str]:
    """Lines telling the operator which ISO contents to copy where."""
    lines = [
        "[ACTION REQUIRED] For the remaining boot options to work, copy the contents of their ISOs:",
        "",
    ]
    for entry in app_settings.ipxe.entries:
        if not entry.manual_copy or not entry.directory:
            continue
        target_dir = server_config.asset_dirs[entry.directory]
        iso_name = entry.iso_hint or f"{entry.directory}.iso"
        lines += [
            f"For {entry.label.upper()}:",
            f"1. Mount the ISO: sudo mount -o loop /path/to/{iso_name} /mnt",
            f"2. Copy the files: sudo cp -r /mnt/* {target_dir}/",
            "3. Unmount the ISO: sudo umount /mnt",
            "",
        ]
    if any(entry.id == "aomei" and entry.manual_copy for entry in app_settings.ipxe.entries):
        lines += [
            "NOTE ON AOMEI: the AOMEI Backupper boot ISO has to be created with the AOMEI",
            "software on a Windows machine before its files can be copied.",
            "",
        ]
    lines += [
        "GENERAL NOTE: the file layout inside tool ISOs varies. The menu assumes the",
        "standard layout (boot/bcd, boot/boot.sdi, sources/boot.wim). If a tool does not",
        f"boot, check the paths inside its ISO and adjust {server_config.ipxe_web_dir}/{app_settings.ipxe.menu_filename}.",
    ]
    return lines


def display_followup_instructions(
    server_config: ServerConfig,
    app_settings: AppSettings,
    current_logger: Optional[logging.Logger] = None,
) -> None:
    logger_to_use = current_logger if current_logger else module_logger
    separator = "-" * 69
    log_map_server(
        "\n".join(
            [separator]
            + build_followup_instructions(server_config, app_settings)
            + [separator]
        ),
        "info",
        logger_to_use,
        app_settings,
    )
