# configure/dhcp_configurator.py
# -*- coding: utf-8 -*-
"""
Handles configuration of the ISC DHCP server.

dhcpd.conf hands out addresses from the server's /24 and points PXE clients
at the iPXE chain-loader on TFTP; clients already running iPXE receive the
URL of the boot menu instead.
"""

import logging
from typing import Optional

from common.command_utils import get_symbols, log_map_server
from common.file_utils import ConfigFileWriter, set_shell_variable
from ipxe_setup.config_models import AppSettings, ServerConfig
from ipxe_setup.errors import ConfigWriteError

module_logger = logging.getLogger(__name__)


def render_dhcpd_conf(
    server_config: ServerConfig, app_settings: AppSettings
) -> str:
    """Renders dhcpd.conf from the dhcp.template setting."""
    dhcp = app_settings.dhcp
    format_vars = {
        "domain_name": dhcp.domain_name,
        "dns_servers": ", ".join(server_config.dns_servers),
        "default_lease_time": dhcp.default_lease_time,
        "max_lease_time": dhcp.max_lease_time,
        "dhcp_subnet": server_config.dhcp_subnet,
        "dhcp_netmask": server_config.dhcp_netmask,
        "dhcp_range_start": server_config.dhcp_range_start,
        "dhcp_range_end": server_config.dhcp_range_end,
        "broadcast_address": server_config.broadcast_address,
        "dhcp_router": server_config.dhcp_router,
        "server_ip": server_config.server_ip,
        "interface": server_config.interface,
        "menu_url": server_config.ipxe_url(app_settings.ipxe.menu_filename),
        "bios_boot_filename": app_settings.tftp.bios_boot_filename,
    }
    try:
        return dhcp.template.format(**format_vars)
    except (KeyError, IndexError) as e:
        raise ConfigWriteError(
            f"Unknown placeholder {e} in dhcp.template. Check config.yaml."
        ) from e


def render_isc_dhcp_defaults(existing: str, server_config: ServerConfig) -> str:
    """Restricts isc-dhcp-server to the server's interface."""
    return set_shell_variable(existing, "INTERFACESv4", server_config.interface)


def configure_dhcp_server(
    server_config: ServerConfig,
    app_settings: AppSettings,
    writer: ConfigFileWriter,
    current_logger: Optional[logging.Logger] = None,
) -> None:
    """Backs up and rewrites dhcpd.conf and the isc-dhcp-server defaults."""
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)
    dhcp = app_settings.dhcp

    log_map_server(
        f"{symbols.get('step', '➡️')} Configuring the DHCP server ({dhcp.config_path})...",
        "info",
        logger_to_use,
        app_settings,
    )
    writer.backup_once(dhcp.config_path)
    writer.write(dhcp.config_path, render_dhcpd_conf(server_config, app_settings))

    defaults = writer.read(dhcp.defaults_path)
    writer.write(
        dhcp.defaults_path, render_isc_dhcp_defaults(defaults, server_config)
    )
    log_map_server(
        f"{symbols.get('success', '✅')} DHCP server configured for {server_config.dhcp_subnet}/24 "
        f"on {server_config.interface}.",
        "success",
        logger_to_use,
        app_settings,
    )
