# ipxe_setup/config.py
"""
Static constants and default values for the iPXE server setup.

This module defines the script version, state file location, the apt
package list and the logging symbols. Values that an operator may want to
change live in config_models.AppSettings instead.
"""

from pathlib import Path

# --- State File Configuration ---
STATE_FILE_DIR: str = "/var/lib/ipxe-server-setup"
STATE_FILE_PATH: Path = Path(STATE_FILE_DIR) / "progress_state.txt"
# Represents the version of the setup script logic.
SCRIPT_VERSION: str = "2.0.0"

# Root directory of the project, used to locate config.yaml.
PROJECT_ROOT: Path = Path(__file__).resolve().parent.parent


# --- Package Lists (for apt installation) ---
IPXE_SERVER_PACKAGES: list[str] = [
    "isc-dhcp-server",
    "tftpd-hpa",
    "nginx",
    "ipxe",
    "wget",
    "samba",
    "p7zip-full",
    "unzip",
]


# --- Symbols for Logging ---
SYMBOLS: dict[str, str] = {
    "success": "✅",
    "error": "❌",
    "warning": "⚠️",
    "info": "ℹ️",
    "step": "➡️",
    "gear": "⚙️",
    "package": "📦",
    "rocket": "🚀",
    "sparkles": "✨",
    "critical": "🔥",
    "debug": "🐛",
}
