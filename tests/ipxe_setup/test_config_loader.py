import argparse

import pytest

from ipxe_setup.config_loader import _deep_update, cli_overrides, load_app_settings


def _namespace(**overrides):
    values = {
        "interface": None,
        "server_ip": None,
        "subnet": None,
        "log_prefix": None,
        "skip_hirens": None,
        "verbose": False,
        "yes": False,
    }
    values.update(overrides)
    return argparse.Namespace(**values)


def test_deep_update_merges_nested_dicts():
    source = {"a": 1, "nested": {"x": 1, "y": 2}}
    result = _deep_update(source, {"nested": {"y": 3, "z": 4}, "b": 2})

    assert result == {"a": 1, "b": 2, "nested": {"x": 1, "y": 3, "z": 4}}


def test_deep_update_ignores_none_for_existing_keys():
    assert _deep_update({"a": 1}, {"a": None, "b": None}) == {"a": 1, "b": None}


def test_cli_overrides():
    overrides = cli_overrides(
        _namespace(interface="eth1", server_ip="10.0.0.2", subnet="10.0.0", skip_hirens=True, log_prefix="[X]")
    )

    assert overrides == {
        "network": {"interface": "eth1", "server_ip": "10.0.0.2", "subnet_prefix": "10.0.0"},
        "assets": {"fetch_hirens": False},
        "log_prefix": "[X]",
    }


def test_cli_overrides_empty():
    assert cli_overrides(_namespace()) == {}


def test_missing_yaml_uses_defaults(tmp_path, mock_logger):
    settings = load_app_settings(None, str(tmp_path / "missing.yaml"), current_logger=mock_logger)

    assert settings.dhcp.domain_name == "local.lan"
    assert settings.network.interface is None


def test_yaml_is_applied(tmp_path, mock_logger):
    config_file = tmp_path / "config.yaml"
    config_file.write_text(
        "dhcp:\n"
        "  domain_name: lab.example\n"
        "network:\n"
        "  interface: enp2s0\n"
        "  on_detection_failure: prompt\n"
        "ipxe:\n"
        "  timeout_ms: 5000\n"
    )

    settings = load_app_settings(None, str(config_file), current_logger=mock_logger)

    assert settings.dhcp.domain_name == "lab.example"
    assert settings.dhcp.dns_servers == ["8.8.8.8", "8.8.4.4"]
    assert settings.network.interface == "enp2s0"
    assert settings.network.on_detection_failure == "prompt"
    assert settings.ipxe.timeout_ms == 5000
    assert len(settings.ipxe.entries) == 11


def test_precedence_env_yaml_cli(tmp_path, mock_logger, monkeypatch):
    monkeypatch.setenv("IPXE_NETWORK__INTERFACE", "from-env")
    monkeypatch.setenv("IPXE_NETWORK__SERVER_IP", "10.9.9.9")
    monkeypatch.setenv("IPXE_DHCP__DOMAIN_NAME", "env.example")
    config_file = tmp_path / "config.yaml"
    config_file.write_text("network:\n  interface: from-yaml\n  subnet_prefix: 10.1.1\n")

    settings = load_app_settings(
        _namespace(subnet="10.2.2"), str(config_file), current_logger=mock_logger
    )

    assert settings.network.interface == "from-yaml"
    assert settings.network.server_ip == "10.9.9.9"
    assert settings.network.subnet_prefix == "10.2.2"
    assert settings.dhcp.domain_name == "env.example"


def test_invalid_values_exit(tmp_path, mock_logger):
    config_file = tmp_path / "config.yaml"
    config_file.write_text("services:\n  on_failure: sometimes\n")

    with pytest.raises(SystemExit, match="Configuration error"):
        load_app_settings(None, str(config_file), current_logger=mock_logger)
    mock_logger.error.assert_called_once()


def test_malformed_yaml_exits(tmp_path, mock_logger):
    config_file = tmp_path / "config.yaml"
    config_file.write_text("dhcp: [unclosed\n")

    with pytest.raises(SystemExit):
        load_app_settings(None, str(config_file), current_logger=mock_logger)


def test_non_mapping_yaml_is_ignored(tmp_path, mock_logger):
    config_file = tmp_path / "config.yaml"
    config_file.write_text("- just\n- a list\n")

    settings = load_app_settings(None, str(config_file), current_logger=mock_logger)

    assert settings.dhcp.domain_name == "local.lan"
    mock_logger.warning.assert_called_once()
