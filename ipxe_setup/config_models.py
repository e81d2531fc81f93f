# ipxe_setup/config_models.py
# -*- coding: utf-8 -*-
"""
Pydantic models for application configuration.

This module defines the structured settings for the iPXE server installer,
including defaults, type annotations, and descriptions, plus the immutable
ServerConfig that every configuration template is rendered from.
It utilizes Pydantic for data validation and settings management.
"""

import ipaddress
import re
from typing import Dict, List, Literal, Optional, Tuple

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidationInfo,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from ipxe_setup import config as static_config
from ipxe_setup.errors import ServerConfigError

# --- Default Static Values (can be overridden by config file/env/cli) ---
LOG_PREFIX_DEFAULT: str = "[IPXE-SETUP]"
DHCP_NETMASK_DEFAULT: str = "255.255.255.0"
WIMBOOT_URL_DEFAULT: str = (
    "https://github.com/ipxe/wimboot/releases/latest/download/wimboot"
)
MEMTEST_ZIP_URL_DEFAULT: str = (
    "https://www.memtest.org/download/v7.00/mt86plus_7.00.zip"
)
HIRENS_ISO_URL_DEFAULT: str = (
    "https://www.hirensbootcd.org/files/HBCD_PE_x64.iso"
)

SYMBOLS_DEFAULT: Dict[str, str] = dict(static_config.SYMBOLS)

INTERFACE_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_.:@-]{1,15}$")
SUBNET_PREFIX_PATTERN = re.compile(r"^\d{1,3}\.\d{1,3}\.\d{1,3}$")
DOMAIN_NAME_PATTERN = re.compile(
    r"^(?=.{1,253}$)[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?"
    r"(?:\.[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?)*$"
)
ENTRY_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")
DIRECTORY_NAME_PATTERN = re.compile(r"^(?!\.{1,2}$)[A-Za-z0-9._-]+$")
CONTROL_CHARS_PATTERN = re.compile(r"[\x00-\x1f\x7f]")
SHELL_UNSAFE_PATTERN = re.compile(r"[\"'\\$`]")

DHCPD_CONF_TEMPLATE_DEFAULT: str = """\
option domain-name "{domain_name}";
option domain-name-servers {dns_servers};
default-lease-time {default_lease_time};
max-lease-time {max_lease_time};
authoritative;
log-facility local7;
subnet {dhcp_subnet} netmask {dhcp_netmask} {{
  range {dhcp_range_start} {dhcp_range_end};
  option broadcast-address {broadcast_address};
  option routers {dhcp_router};
  next-server {server_ip};
  if exists user-class and option user-class = "iPXE" {{
    filename "{menu_url}";
  }} else {{
    filename "{bios_boot_filename}";
  }}
}}
"""

SAMBA_SHARE_TEMPLATE_DEFAULT: str = """
[{share_name}]
    comment = {comment}
    path = {path}
    browseable = yes
    read only = yes
    guest ok = yes
"""


def _check_ipv4(value: str, field_name: str) -> str:
    """Returns the normalised dotted-quad form of value or raises ValueError."""
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{field_name} is empty")
    try:
        return str(ipaddress.IPv4Address(value.strip()))
    except ipaddress.AddressValueError as e:
        raise ValueError(f"{field_name} '{value}' is not a valid IPv4 address: {e}") from e


def _check_subnet_prefix(value: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError("subnet prefix is empty")
    value = value.strip()
    if not SUBNET_PREFIX_PATTERN.fullmatch(value):
        raise ValueError(
            f"subnet prefix '{value}' must be exactly three dotted octets (e.g. 192.168.1)"
        )
    for octet in value.split("."):
        if not 0 <= int(octet) <= 255:
            raise ValueError(f"subnet prefix octet '{octet}' is out of range (0-255)")
    return value


def _check_interface(value: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError("interface name is empty")
    value = value.strip()
    if not INTERFACE_NAME_PATTERN.fullmatch(value):
        raise ValueError(f"interface name '{value}' contains invalid characters")
    return value


def _check_absolute_path(value: str, field_name: str) -> str:
    if not value or not value.startswith("/"):
        raise ValueError(f"{field_name} '{value}' must be an absolute path")
    if CONTROL_CHARS_PATTERN.search(value) or '"' in value:
        raise ValueError(f"{field_name} '{value}' contains forbidden characters")
    return value.rstrip("/") or "/"


class NetworkSettings(BaseModel):
    """Operator overrides for the detected network facts."""

    interface: Optional[str] = Field(
        default=None, description="Network interface DHCP listens on. Detected if unset."
    )
    server_ip: Optional[str] = Field(
        default=None, description="IPv4 address of this server. Detected if unset."
    )
    subnet_prefix: Optional[str] = Field(
        default=None,
        description="First three octets of the /24 served by DHCP (e.g. 192.168.1). Detected if unset.",
    )
    on_detection_failure: Literal["fail", "prompt"] = Field(
        default="fail",
        description="What to do when a fact cannot be detected: abort, or ask the operator.",
    )


class DhcpSettings(BaseModel):
    """ISC DHCP server settings."""

    domain_name: str = Field(default="local.lan", description="DHCP option domain-name.")
    dns_servers: List[str] = Field(
        default_factory=lambda: ["8.8.8.8", "8.8.4.4"],
        description="DNS servers handed out to clients.",
    )
    default_lease_time: int = Field(default=600, gt=0)
    max_lease_time: int = Field(default=7200, gt=0)
    netmask: str = Field(default=DHCP_NETMASK_DEFAULT)
    range_start_host: int = Field(default=150, ge=1, le=254)
    range_end_host: int = Field(default=200, ge=1, le=254)
    router_host: int = Field(default=1, ge=1, le=254)
    config_path: str = Field(default="/etc/dhcp/dhcpd.conf")
    defaults_path: str = Field(default="/etc/default/isc-dhcp-server")
    template: str = Field(
        default=DHCPD_CONF_TEMPLATE_DEFAULT,
        description="Template for dhcpd.conf. Supports placeholders like {server_ip}, {dhcp_subnet}, {menu_url}.",
    )

    @field_validator("domain_name")
    @classmethod
    def _validate_domain_name(cls, value: str) -> str:
        if not DOMAIN_NAME_PATTERN.fullmatch(value):
            raise ValueError(f"domain name '{value}' is not a valid DNS name")
        return value

    @field_validator("dns_servers")
    @classmethod
    def _validate_dns_servers(cls, value: List[str]) -> List[str]:
        if not value:
            raise ValueError("at least one DNS server is required")
        return [_check_ipv4(server, "DNS server") for server in value]

    @model_validator(mode="after")
    def _validate_range(self) -> "DhcpSettings":
        if self.range_start_host > self.range_end_host:
            raise ValueError(
                f"DHCP range start host {self.range_start_host} is after end host {self.range_end_host}"
            )
        return self


class TftpSettings(BaseModel):
    """tftpd-hpa settings."""

    root_dir: str = Field(default="/srv/tftp")
    options: str = Field(default="--secure --create")
    defaults_path: str = Field(default="/etc/default/tftpd-hpa")
    chainloader_source_dir: str = Field(
        default="/usr/lib/ipxe", description="Where the ipxe package installs its binaries."
    )
    chainloaders: List[str] = Field(
        default_factory=lambda: ["undionly.kpxe", "ipxe.efi"]
    )
    bios_boot_filename: str = Field(
        default="undionly.kpxe",
        description="File handed to PXE clients that are not yet running iPXE.",
    )

    @field_validator("bios_boot_filename")
    @classmethod
    def _validate_boot_filename(cls, value: str) -> str:
        if not DIRECTORY_NAME_PATTERN.fullmatch(value):
            raise ValueError(f"boot filename '{value}' must be a single path component")
        return value

    @field_validator("chainloaders")
    @classmethod
    def _validate_chainloaders(cls, value: List[str]) -> List[str]:
        for name in value:
            if not DIRECTORY_NAME_PATTERN.fullmatch(name):
                raise ValueError(f"chain-loader '{name}' must be a single path component")
        return value

    @field_validator("options")
    @classmethod
    def _validate_options(cls, value: str) -> str:
        if CONTROL_CHARS_PATTERN.search(value) or SHELL_UNSAFE_PATTERN.search(value):
            raise ValueError(f"tftpd options {value!r} contain quotes, '$', '`' or control characters")
        return value

    @field_validator("chainloader_source_dir")
    @classmethod
    def _validate_source_dir(cls, value: str) -> str:
        return _check_absolute_path(value, "chainloader_source_dir")


class WebSettings(BaseModel):
    """nginx web root layout."""

    root_dir: str = Field(default="/var/www/html")
    ipxe_subdir: str = Field(default="ipxe")

    @field_validator("ipxe_subdir")
    @classmethod
    def _validate_ipxe_subdir(cls, value: str) -> str:
        if not DIRECTORY_NAME_PATTERN.fullmatch(value):
            raise ValueError(f"ipxe_subdir '{value}' must be a single path component")
        return value

    @property
    def ipxe_dir(self) -> str:
        return f"{self.root_dir.rstrip('/')}/{self.ipxe_subdir}"


class SambaSettings(BaseModel):
    """Samba share exposing the installation sources."""

    config_path: str = Field(default="/etc/samba/smb.conf")
    share_name: str = Field(default="install")
    comment: str = Field(default="OS installation sources and maintenance tools")
    template: str = Field(default=SAMBA_SHARE_TEMPLATE_DEFAULT)

    @field_validator("share_name")
    @classmethod
    def _validate_share_name(cls, value: str) -> str:
        if not ENTRY_ID_PATTERN.fullmatch(value):
            raise ValueError(f"share name '{value}' contains invalid characters")
        return value

    @field_validator("comment")
    @classmethod
    def _validate_comment(cls, value: str) -> str:
        if CONTROL_CHARS_PATTERN.search(value):
            raise ValueError("share comment must be a single line")
        return value


class AssetSettings(BaseModel):
    """Third-party boot assets downloaded during installation."""

    wimboot_url: str = Field(default=WIMBOOT_URL_DEFAULT)
    memtest_zip_url: str = Field(default=MEMTEST_ZIP_URL_DEFAULT)
    hirens_iso_url: str = Field(default=HIRENS_ISO_URL_DEFAULT)
    fetch_hirens: bool = Field(
        default=True, description="Download and extract Hiren's BootCD PE (several GB)."
    )
    download_timeout: int = Field(default=300, gt=0, description="HTTP timeout in seconds.")
    download_dir: str = Field(default="/tmp")
    memtest_dir: str = Field(
        default="memtest", description="Catalog directory receiving memtest.bin."
    )
    hirens_dir: str = Field(
        default="hirens", description="Catalog directory receiving the extracted Hiren's ISO."
    )

    @field_validator("memtest_dir", "hirens_dir")
    @classmethod
    def _validate_asset_dir(cls, value: str) -> str:
        if not DIRECTORY_NAME_PATTERN.fullmatch(value):
            raise ValueError(f"asset directory '{value}' must be a single path component")
        return value


BootEntryKind = Literal["wimboot", "casper", "memtest", "shell", "reboot", "exit"]
KINDS_WITH_DIRECTORY = ("wimboot", "casper", "memtest")


class BootMenuEntry(BaseModel):
    """One selectable item of the iPXE boot menu."""

    model_config = ConfigDict(frozen=True)

    id: str
    label: str
    kind: BootEntryKind
    section: Literal["os", "tools", "options"] = "options"
    directory: Optional[str] = Field(
        default=None, description="Subdirectory of the web ipxe directory holding the entry's files."
    )
    manual_copy: bool = Field(
        default=False, description="Whether the operator has to copy the files from an ISO."
    )
    iso_hint: Optional[str] = Field(
        default=None, description="ISO file name shown in the operator instructions."
    )

    @field_validator("id")
    @classmethod
    def _validate_id(cls, value: str) -> str:
        if not ENTRY_ID_PATTERN.fullmatch(value):
            raise ValueError(f"menu entry id '{value}' may only contain letters, digits, '_' and '-'")
        return value

    @field_validator("label")
    @classmethod
    def _validate_label(cls, value: str) -> str:
        if not value.strip() or CONTROL_CHARS_PATTERN.search(value):
            raise ValueError(f"menu entry label {value!r} must be a non-empty single line")
        return value

    @field_validator("directory")
    @classmethod
    def _validate_directory(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not DIRECTORY_NAME_PATTERN.fullmatch(value):
            raise ValueError(f"menu entry directory '{value}' must be a single path component")
        return value

    @model_validator(mode="after")
    def _validate_directory_for_kind(self) -> "BootMenuEntry":
        if self.kind in KINDS_WITH_DIRECTORY and not self.directory:
            raise ValueError(f"menu entry '{self.id}' of kind '{self.kind}' needs a directory")
        return self


DEFAULT_BOOT_ENTRIES: List[Dict[str, object]] = [
    {"id": "win11install", "label": "Install Windows 11", "kind": "wimboot",
     "section": "os", "directory": "win11", "manual_copy": True, "iso_hint": "windows11.iso"},
    {"id": "win10install", "label": "Install Windows 10", "kind": "wimboot",
     "section": "os", "directory": "win10", "manual_copy": True, "iso_hint": "windows10.iso"},
    {"id": "ubuntulive", "label": "Boot Ubuntu Live", "kind": "casper",
     "section": "os", "directory": "ubuntu-live", "manual_copy": True, "iso_hint": "ubuntu-live.iso"},
    {"id": "hirens", "label": "Boot Hiren's BootCD PE", "kind": "wimboot",
     "section": "tools", "directory": "hirens"},
    {"id": "minitool", "label": "Boot MiniTool Partition Wizard", "kind": "wimboot",
     "section": "tools", "directory": "minitool", "manual_copy": True, "iso_hint": "MiniTool.iso"},
    {"id": "activeboot", "label": "Boot Active@ Boot Disk", "kind": "wimboot",
     "section": "tools", "directory": "activeboot", "manual_copy": True, "iso_hint": "ActiveBoot.iso"},
    {"id": "aomei", "label": "Boot AOMEI Backupper", "kind": "wimboot",
     "section": "tools", "directory": "aomei", "manual_copy": True, "iso_hint": "Aomei.iso"},
    {"id": "memtest", "label": "Run Memtest86+", "kind": "memtest",
     "section": "tools", "directory": "memtest"},
    {"id": "shell", "label": "Enter the iPXE shell", "kind": "shell", "section": "options"},
    {"id": "reboot", "label": "Reboot the computer", "kind": "reboot", "section": "options"},
    {"id": "exit", "label": "Exit iPXE and boot from local disk", "kind": "exit", "section": "options"},
]


class IpxeMenuSettings(BaseModel):
    """iPXE boot menu settings, including the asset catalog."""

    menu_title: str = Field(default="iPXE Boot Menu")
    menu_filename: str = Field(default="menu.ipxe")
    default_entry: str = Field(default="win11install")
    timeout_ms: int = Field(default=10000, ge=0)
    entries: List[BootMenuEntry] = Field(
        default_factory=lambda: [BootMenuEntry(**e) for e in DEFAULT_BOOT_ENTRIES]
    )

    @field_validator("menu_title")
    @classmethod
    def _validate_title(cls, value: str) -> str:
        if CONTROL_CHARS_PATTERN.search(value):
            raise ValueError("menu title must be a single line")
        return value

    @field_validator("menu_filename")
    @classmethod
    def _validate_filename(cls, value: str) -> str:
        if not DIRECTORY_NAME_PATTERN.fullmatch(value):
            raise ValueError(f"menu filename '{value}' must be a single path component")
        return value

    @model_validator(mode="after")
    def _validate_catalog(self) -> "IpxeMenuSettings":
        ids = [entry.id for entry in self.entries]
        duplicates = sorted({i for i in ids if ids.count(i) > 1})
        if duplicates:
            raise ValueError(f"duplicate menu entry id(s): {', '.join(duplicates)}")
        if self.default_entry not in ids:
            raise ValueError(f"default menu entry '{self.default_entry}' is not in the catalog")
        return self


class ServiceSettings(BaseModel):
    """systemd units managed after configuration."""

    units: List[str] = Field(
        default_factory=lambda: ["isc-dhcp-server", "tftpd-hpa", "nginx", "smbd", "nmbd"]
    )
    check_units: List[str] = Field(
        default_factory=lambda: ["isc-dhcp-server", "tftpd-hpa", "nginx", "smbd"],
        description="Units whose liveness is verified after the restart.",
    )
    on_failure: Literal["abort", "report"] = Field(
        default="report",
        description="abort: stop at the first failing unit. report: check every unit and report failures.",
    )
    settle_seconds: float = Field(default=2.0, ge=0)


class AppSettings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_prefix="IPXE_", env_nested_delimiter="__", extra="ignore"
    )

    log_prefix: str = Field(
        default=LOG_PREFIX_DEFAULT, description="Prefix for log messages from the installer."
    )
    packages: List[str] = Field(
        default_factory=lambda: list(static_config.IPXE_SERVER_PACKAGES)
    )

    network: NetworkSettings = Field(default_factory=NetworkSettings)
    dhcp: DhcpSettings = Field(default_factory=DhcpSettings)
    tftp: TftpSettings = Field(default_factory=TftpSettings)
    web: WebSettings = Field(default_factory=WebSettings)
    samba: SambaSettings = Field(default_factory=SambaSettings)
    assets: AssetSettings = Field(default_factory=AssetSettings)
    ipxe: IpxeMenuSettings = Field(default_factory=IpxeMenuSettings)
    services: ServiceSettings = Field(default_factory=ServiceSettings)

    # Static symbols, could also be loaded from a separate static config if preferred
    symbols: Dict[str, str] = Field(default_factory=lambda: dict(SYMBOLS_DEFAULT))


class ServerConfig(BaseModel):
    """
    The network facts and paths every configuration file is rendered from.

    Built once per run by ServerConfig.from_facts() and never modified
    afterwards. Every field is validated, so a template can never be rendered
    with an empty or malformed value.
    """

    model_config = ConfigDict(frozen=True)

    interface: str
    server_ip: str
    subnet_prefix: str
    dhcp_subnet: str
    dhcp_netmask: str
    dhcp_range_start: str
    dhcp_range_end: str
    dhcp_router: str
    broadcast_address: str
    dns_servers: Tuple[str, ...]
    tftp_root: str
    web_root: str
    ipxe_web_dir: str
    asset_dirs: Dict[str, str] = Field(default_factory=dict)

    @field_validator("interface")
    @classmethod
    def _validate_interface(cls, value: str) -> str:
        return _check_interface(value)

    @field_validator("subnet_prefix")
    @classmethod
    def _validate_prefix(cls, value: str) -> str:
        return _check_subnet_prefix(value)

    @field_validator(
        "server_ip",
        "dhcp_subnet",
        "dhcp_netmask",
        "dhcp_range_start",
        "dhcp_range_end",
        "dhcp_router",
        "broadcast_address",
    )
    @classmethod
    def _validate_addresses(cls, value: str, info: ValidationInfo) -> str:
        return _check_ipv4(value, info.field_name)

    @field_validator("dns_servers")
    @classmethod
    def _validate_dns(cls, value: Tuple[str, ...]) -> Tuple[str, ...]:
        return tuple(_check_ipv4(server, "dns_servers") for server in value)

    @field_validator("tftp_root", "web_root", "ipxe_web_dir")
    @classmethod
    def _validate_paths(cls, value: str, info: ValidationInfo) -> str:
        return _check_absolute_path(value, info.field_name)

    @field_validator("asset_dirs")
    @classmethod
    def _validate_asset_dirs(cls, value: Dict[str, str]) -> Dict[str, str]:
        return {
            name: _check_absolute_path(path, f"asset directory '{name}'")
            for name, path in value.items()
        }

    @property
    def ipxe_url_path(self) -> str:
        """URL path of the ipxe web directory relative to the web root."""
        return self.ipxe_web_dir[len(self.web_root):].strip("/")

    def ipxe_url(self, *parts: str) -> str:
        """Returns the HTTP URL of a file below the ipxe web directory."""
        path = "/".join(p for p in (self.ipxe_url_path, *parts) if p)
        return f"http://{self.server_ip}/{path}"

    @classmethod
    def from_facts(
        cls,
        interface: Optional[str],
        server_ip: Optional[str],
        subnet_prefix: Optional[str],
        app_settings: AppSettings,
    ) -> "ServerConfig":
        """
        Derives the full server configuration from the three network facts.

        For a subnet prefix P the DHCP subnet is P.0, the range runs from
        P.<range_start_host> to P.<range_end_host>, the router is
        P.<router_host> and the broadcast address is P.255.

        Raises:
            ServerConfigError: If any fact or derived value fails validation.
        """
        prefix = (subnet_prefix or "").strip()
        dhcp = app_settings.dhcp
        web_root = app_settings.web.root_dir.rstrip("/") or "/"
        ipxe_web_dir = app_settings.web.ipxe_dir
        asset_dirs = {
            entry.directory: f"{ipxe_web_dir}/{entry.directory}"
            for entry in app_settings.ipxe.entries
            if entry.directory
        }
        try:
            return cls(
                interface=interface or "",
                server_ip=server_ip or "",
                subnet_prefix=prefix,
                dhcp_subnet=f"{prefix}.0",
                dhcp_netmask=dhcp.netmask,
                dhcp_range_start=f"{prefix}.{dhcp.range_start_host}",
                dhcp_range_end=f"{prefix}.{dhcp.range_end_host}",
                dhcp_router=f"{prefix}.{dhcp.router_host}",
                broadcast_address=f"{prefix}.255",
                dns_servers=tuple(dhcp.dns_servers),
                tftp_root=app_settings.tftp.root_dir,
                web_root=web_root,
                ipxe_web_dir=ipxe_web_dir,
                asset_dirs=asset_dirs,
            )
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'value'}: {err['msg']}"
                for err in e.errors()
            )
            raise ServerConfigError(f"Invalid server configuration: {problems}") from e
