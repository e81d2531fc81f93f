from unittest.mock import MagicMock

import pytest

from ipxe_setup.cli_handler import (
    build_followup_instructions,
    cli_confirm,
    format_server_summary,
    view_configuration,
)
from ipxe_setup.config_models import AppSettings, ServerConfig


@pytest.mark.parametrize(
    "answer, expected",
    [("y", True), ("Y", True), (" y ", True), ("yes", False), ("n", False), ("", False)],
)
def test_cli_confirm(app_settings, mock_logger, answer, expected):
    assert cli_confirm("Proceed?", app_settings, mock_logger, input_func=lambda _: answer) is expected


def test_cli_confirm_eof(app_settings, mock_logger):
    input_func = MagicMock(side_effect=EOFError)

    assert cli_confirm("Proceed?", app_settings, mock_logger, input_func=input_func) is False
    mock_logger.warning.assert_called_once()


def test_format_server_summary(server_config):
    summary = format_server_summary(server_config)

    assert "Server IP:      192.168.1.50" in summary
    assert "Interface:      eth0" in summary
    assert "DHCP range:     192.168.1.150 - 192.168.1.200" in summary
    assert "http://192.168.1.50/ipxe/menu.ipxe" in summary


def test_followup_instructions(server_config, app_settings):
    lines = build_followup_instructions(server_config, app_settings)

    assert "For INSTALL WINDOWS 11:" in lines
    assert "1. Mount the ISO: sudo mount -o loop /path/to/windows11.iso /mnt" in lines
    assert "2. Copy the files: sudo cp -r /mnt/* /var/www/html/ipxe/win11/" in lines
    assert "2. Copy the files: sudo cp -r /mnt/* /var/www/html/ipxe/ubuntu-live/" in lines
    assert lines.count("3. Unmount the ISO: sudo umount /mnt") == 6
    assert not any("HIREN" in line for line in lines)
    assert not any("MEMTEST" in line for line in lines)
    assert any(line.startswith("NOTE ON AOMEI") for line in lines)
    assert any(line.startswith("GENERAL NOTE") for line in lines)


def test_followup_instructions_without_aomei():
    settings = AppSettings(
        ipxe={
            "default_entry": "win",
            "entries": [
                {"id": "win", "label": "Windows", "kind": "wimboot", "directory": "win", "manual_copy": True},
            ],
        }
    )
    server_config = ServerConfig.from_facts("eth0", "10.0.0.2", "10.0.0", settings)

    lines = build_followup_instructions(server_config, settings)

    assert "1. Mount the ISO: sudo mount -o loop /path/to/win.iso /mnt" in lines
    assert not any(line.startswith("NOTE ON AOMEI") for line in lines)


def test_view_configuration(app_settings, mock_logger):
    view_configuration(app_settings, mock_logger)

    text = mock_logger.info.call_args_list[-1].args[0]
    assert "Interface:                   [detect]" in text
    assert "local.lan" in text
    assert "isc-dhcp-server" in text
