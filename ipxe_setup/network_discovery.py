# ipxe_setup/network_discovery.py
# -*- coding: utf-8 -*-
"""
Discovers the host's network facts and builds the ServerConfig.

Detection is best effort and takes the first matching record: the outbound
interface of the default route, the first IPv4 address reported by
`hostname -I`, and the /24 prefix of the first globally scoped IPv4
address. Values supplied by the operator always win over detected ones.
"""

import ipaddress
import logging
from typing import Callable, List, NamedTuple, Optional

from common.command_utils import get_symbols, log_map_server, run_command
from ipxe_setup.config_models import AppSettings, ServerConfig
from ipxe_setup.errors import NetworkDetectionError

module_logger = logging.getLogger(__name__)

FACT_DESCRIPTIONS = {
    "interface": "network interface (e.g. eth0)",
    "server_ip": "server IPv4 address (e.g. 192.168.1.50)",
    "subnet_prefix": "subnet prefix (e.g. 192.168.1)",
}


class NetworkFacts(NamedTuple):
    interface: Optional[str]
    server_ip: Optional[str]
    subnet_prefix: Optional[str]

    def missing(self) -> List[str]:
        return [name for name, value in self._asdict().items() if not value]


def parse_default_route_interface(ip_route_output: str) -> Optional[str]:
    """Returns the 'dev' of the first default route in `ip route` output."""
    for line in ip_route_output.splitlines():
        tokens = line.split()
        if not tokens or tokens[0] != "default":
            continue
        if "dev" in tokens:
            index = tokens.index("dev")
            if index + 1 < len(tokens):
                return tokens[index + 1]
    return None


def parse_first_host_ip(hostname_output: str) -> Optional[str]:
    """Returns the first non-loopback IPv4 address of `hostname -I` output."""
    for token in hostname_output.split():
        try:
            address = ipaddress.ip_address(token)
        except ValueError:
            continue
        if address.version == 4 and not address.is_loopback:
            return str(address)
    return None


def parse_subnet_prefix(ip_addr_output: str) -> Optional[str]:
    """
    Returns the first three octets of the first globally scoped address in
    `ip -o -f inet addr show` output, e.g. "192.168.1" for 192.168.1.50/24.
    """
    for line in ip_addr_output.splitlines():
        if "scope global" not in line:
            continue
        tokens = line.split()
        if "inet" not in tokens:
            continue
        index = tokens.index("inet")
        if index + 1 >= len(tokens):
            continue
        address = tokens[index + 1].split("/")[0]
        octets = address.split(".")
        if len(octets) == 4:
            return ".".join(octets[:3])
    return None


def _command_stdout(
    command: List[str],
    app_settings: AppSettings,
    logger: logging.Logger,
) -> str:
    try:
        result = run_command(
            command,
            app_settings,
            check=False,
            capture_output=True,
            current_logger=logger,
        )
    except FileNotFoundError:
        return ""
    if result.returncode != 0:
        return ""
    return result.stdout or ""


def detect_network_facts(
    app_settings: AppSettings,
    current_logger: Optional[logging.Logger] = None,
) -> NetworkFacts:
    """Reads the routing and address tables of the host."""
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)
    log_map_server(
        f"{symbols.get('gear', '⚙️')} Detecting network interface, address and subnet...",
        "info",
        logger_to_use,
        app_settings,
    )
    facts = NetworkFacts(
        interface=parse_default_route_interface(
            _command_stdout(["ip", "route", "show", "default"], app_settings, logger_to_use)
        ),
        server_ip=parse_first_host_ip(
            _command_stdout(["hostname", "-I"], app_settings, logger_to_use)
        ),
        subnet_prefix=parse_subnet_prefix(
            _command_stdout(["ip", "-o", "-f", "inet", "addr", "show"], app_settings, logger_to_use)
        ),
    )
    for name in facts.missing():
        log_map_server(
            f"{symbols.get('warning', '!')} Could not detect the {FACT_DESCRIPTIONS[name]}.",
            "warning",
            logger_to_use,
            app_settings,
        )
    return facts


def _prompt_for_fact(
    name: str,
    prompt_func: Callable[[str], str],
) -> Optional[str]:
    try:
        answer = prompt_func(f"   Enter the {FACT_DESCRIPTIONS[name]}: ").strip()
    except EOFError:
        return None
    return answer or None


def resolve_server_config(
    app_settings: AppSettings,
    current_logger: Optional[logging.Logger] = None,
    prompt_func: Callable[[str], str] = input,
    detector: Callable[..., NetworkFacts] = detect_network_facts,
) -> ServerConfig:
    """
    Builds the ServerConfig for this run.

    Operator-supplied network settings take precedence; only the facts that
    were not supplied are detected. Facts that are still missing are handled
    according to network.on_detection_failure: "fail" raises immediately,
    "prompt" asks the operator and raises if an answer is empty.

    Raises:
        NetworkDetectionError: If a fact is still missing.
        ServerConfigError: If a fact fails validation.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)
    supplied = NetworkFacts(
        interface=app_settings.network.interface,
        server_ip=app_settings.network.server_ip,
        subnet_prefix=app_settings.network.subnet_prefix,
    )

    facts = supplied
    if supplied.missing():
        detected = detector(app_settings, logger_to_use)
        facts = NetworkFacts(
            interface=supplied.interface or detected.interface,
            server_ip=supplied.server_ip or detected.server_ip,
            subnet_prefix=supplied.subnet_prefix or detected.subnet_prefix,
        )

    missing = facts.missing()
    if missing and app_settings.network.on_detection_failure == "prompt":
        answers = facts._asdict()
        for name in missing:
            answers[name] = _prompt_for_fact(name, prompt_func)
        facts = NetworkFacts(**answers)
        missing = facts.missing()

    if missing:
        raise NetworkDetectionError(missing)

    server_config = ServerConfig.from_facts(
        facts.interface, facts.server_ip, facts.subnet_prefix, app_settings
    )
    if not server_config.server_ip.startswith(f"{server_config.subnet_prefix}."):
        log_map_server(
            f"{symbols.get('warning', '!')} Server IP {server_config.server_ip} is outside the DHCP subnet "
            f"{server_config.dhcp_subnet}/24. Clients may not reach the TFTP and HTTP services.",
            "warning",
            logger_to_use,
            app_settings,
        )
    return server_config
