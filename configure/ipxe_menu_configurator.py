# configure/ipxe_menu_configurator.py
# -*- coding: utf-8 -*-
"""
Generates the iPXE boot menu and the web directory layout it refers to.

The menu is a static document: every item points at files below
http://<server_ip>/<ipxe_subdir>/, one directory per catalog entry.
"""

import logging
from typing import Dict, List, Optional

from common.command_utils import get_symbols, log_map_server
from common.file_utils import ConfigFileWriter
from ipxe_setup.config_models import (
    AppSettings,
    BootMenuEntry,
    IpxeMenuSettings,
    ServerConfig,
)

module_logger = logging.getLogger(__name__)

SECTION_ORDER = ("os", "tools", "options")
SECTION_TITLES: Dict[str, str] = {
    "os": "Operating System Installers",
    "tools": "Maintenance Tools",
    "options": "Options",
}
ITEM_ID_WIDTH = 18
BOOTABLE_KINDS = ("wimboot", "casper", "memtest")


def _gap_line(title: str) -> str:
    return f"item --gap --             {f' {title} ':-^60}"


def _entry_block(entry: BootMenuEntry, server_config: ServerConfig) -> List[str]:
    lines = [f":{entry.id}"]
    if entry.kind in BOOTABLE_KINDS:
        lines.append(f"echo Loading {entry.label}...")
    if entry.kind == "wimboot":
        base = server_config.ipxe_url(entry.directory)
        lines += [
            f"kernel {server_config.ipxe_url('wimboot')}",
            f"initrd {base}/boot/bcd         BCD",
            f"initrd {base}/boot/boot.sdi    boot.sdi",
            f"initrd {base}/sources/boot.wim boot.wim",
            "boot || goto failed",
        ]
    elif entry.kind == "casper":
        base = server_config.ipxe_url(entry.directory, "casper")
        lines += [
            f"kernel {base}/vmlinuz boot=casper ip=dhcp "
            f"fetch={base}/filesystem.squashfs quiet splash --",
            f"initrd {base}/initrd",
            "boot || goto failed",
        ]
    elif entry.kind == "memtest":
        lines += [
            f"kernel {server_config.ipxe_url(entry.directory, 'memtest.bin')}",
            "boot || goto failed",
        ]
    elif entry.kind == "shell":
        lines += ["shell", "goto reboot"]
    elif entry.kind == "reboot":
        lines.append("reboot")
    elif entry.kind == "exit":
        lines.append("exit")
    return lines


def ordered_entries(menu_settings: IpxeMenuSettings) -> List[BootMenuEntry]:
    """Catalog entries grouped by section, keeping catalog order within each."""
    return [
        entry
        for section in SECTION_ORDER
        for entry in menu_settings.entries
        if entry.section == section
    ]


def render_ipxe_menu(
    server_config: ServerConfig, menu_settings: IpxeMenuSettings
) -> str:
    """
    Renders menu.ipxe.

    The document holds one item line and one label block per catalog entry,
    a gap separator before each non-empty section and a trailing :failed
    block that every boot command falls back to.
    """
    entries = ordered_entries(menu_settings)
    lines = [
        "#!ipxe",
        "",
        f"menu {menu_settings.menu_title} (Server: {server_config.server_ip})",
    ]
    current_section = None
    for entry in entries:
        if entry.section != current_section:
            current_section = entry.section
            lines.append(_gap_line(SECTION_TITLES[current_section]))
        lines.append(f"item {entry.id:<{ITEM_ID_WIDTH}} {entry.label}")
    lines.append(
        f"choose --default {menu_settings.default_entry} "
        f"--timeout {menu_settings.timeout_ms} target && goto ${{target}}"
    )

    for entry in entries:
        lines.append("")
        lines.extend(_entry_block(entry, server_config))

    lines += [
        "",
        ":failed",
        "echo Boot failed. Press any key or wait to reboot.",
        "sleep 5",
        "reboot",
    ]
    return "\n".join(lines) + "\n"


def create_web_directories(
    server_config: ServerConfig,
    app_settings: AppSettings,
    writer: ConfigFileWriter,
    current_logger: Optional[logging.Logger] = None,
) -> None:
    """Creates the ipxe web directory and one directory per catalog entry."""
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)
    writer.ensure_directory(server_config.ipxe_web_dir)
    for name, path in sorted(server_config.asset_dirs.items()):
        writer.ensure_directory(path)
        log_map_server(
            f"{symbols.get('info', 'ℹ️')} Asset directory for '{name}': {path}",
            "debug",
            logger_to_use,
            app_settings,
        )
    log_map_server(
        f"{symbols.get('success', '✅')} Created {len(server_config.asset_dirs)} asset directories below {server_config.ipxe_web_dir}.",
        "success",
        logger_to_use,
        app_settings,
    )


def write_ipxe_menu(
    server_config: ServerConfig,
    app_settings: AppSettings,
    writer: ConfigFileWriter,
    current_logger: Optional[logging.Logger] = None,
) -> str:
    """Writes menu.ipxe into the ipxe web directory and returns its host path."""
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)
    menu_path = f"{server_config.ipxe_web_dir}/{app_settings.ipxe.menu_filename}"
    writer.write(menu_path, render_ipxe_menu(server_config, app_settings.ipxe))
    log_map_server(
        f"{symbols.get('success', '✅')} iPXE menu created at {menu_path} "
        f"({len(app_settings.ipxe.entries)} entries).",
        "success",
        logger_to_use,
        app_settings,
    )
    return menu_path
