from unittest.mock import MagicMock

import pytest
from pytest_mock import MockerFixture

from ipxe_setup import main_installer
from ipxe_setup.errors import NetworkDetectionError, PackageInstallError
from ipxe_setup.main_installer import (
    build_provisioning_steps,
    install_packages,
    main,
    run_provisioning_steps,
)


@pytest.fixture(autouse=True)
def mock_setup_logging(mocker: MockerFixture):
    return mocker.patch("ipxe_setup.main_installer.setup_logging")


@pytest.fixture
def base_args(tmp_path):
    return ["--config", str(tmp_path / "missing.yaml")]


@pytest.fixture
def as_root(mocker: MockerFixture):
    return mocker.patch("common.command_utils.is_running_as_root", return_value=True)


@pytest.fixture
def mock_flow(mocker: MockerFixture, server_config, as_root):
    """Patches everything main() does after argument parsing."""
    return {
        "resolve": mocker.patch("ipxe_setup.main_installer.resolve_server_config", return_value=server_config),
        "confirm": mocker.patch("ipxe_setup.main_installer.cli_confirm", return_value=True),
        "initialize": mocker.patch("ipxe_setup.main_installer.initialize_state_system"),
        "clear": mocker.patch("ipxe_setup.main_installer.clear_state_file"),
        "run": mocker.patch("ipxe_setup.main_installer.run_provisioning_steps", return_value=True),
        "followup": mocker.patch("ipxe_setup.main_installer.display_followup_instructions"),
    }


def test_unknown_argument(mock_setup_logging):
    assert main(["--bogus"]) == 2
    mock_setup_logging.assert_not_called()


def test_view_config(base_args, mocker: MockerFixture):
    mock_view = mocker.patch("ipxe_setup.main_installer.view_configuration")
    mock_root = mocker.patch("common.command_utils.is_running_as_root")

    assert main(base_args + ["--view-config"]) == 0

    mock_view.assert_called_once()
    mock_root.assert_not_called()


def test_requires_root(base_args, mocker: MockerFixture):
    mocker.patch("common.command_utils.is_running_as_root", return_value=False)
    mock_resolve = mocker.patch("ipxe_setup.main_installer.resolve_server_config")

    assert main(base_args + ["-y"]) == 1

    mock_resolve.assert_not_called()


def test_clear_state(base_args, mock_flow):
    assert main(base_args + ["--clear-state"]) == 0

    mock_flow["clear"].assert_called_once()
    mock_flow["resolve"].assert_not_called()


def test_unwritable_log_file(base_args, mock_setup_logging, mocker: MockerFixture):
    mock_setup_logging.side_effect = FileNotFoundError(2, "No such file or directory")
    mock_view = mocker.patch("ipxe_setup.main_installer.view_configuration")

    assert main(base_args + ["--log-file", "/nonexistent-dir/x.log", "--view-config"]) == 1

    mock_view.assert_not_called()


def test_clear_state_permission_denied(base_args, mock_flow):
    mock_flow["clear"].side_effect = PermissionError(13, "Permission denied")

    assert main(base_args + ["--clear-state"]) == 1

    mock_flow["resolve"].assert_not_called()


def test_network_detection_failure(base_args, mock_flow):
    mock_flow["resolve"].side_effect = NetworkDetectionError(["interface"])

    assert main(base_args + ["-y"]) == 1

    mock_flow["run"].assert_not_called()


def test_cancelled_by_operator(base_args, mock_flow):
    mock_flow["confirm"].return_value = False

    assert main(base_args) == 0

    mock_flow["run"].assert_not_called()
    mock_flow["initialize"].assert_not_called()


def test_successful_run(base_args, mock_flow):
    assert main(base_args + ["--yes"]) == 0

    mock_flow["confirm"].assert_not_called()
    mock_flow["initialize"].assert_called_once()
    mock_flow["clear"].assert_called_once()
    steps = mock_flow["run"].call_args[0][0]
    assert len(steps) == 10
    assert mock_flow["run"].call_args.kwargs == {"resume": False, "render_only": False}
    mock_flow["followup"].assert_called_once()


def test_resume_keeps_state(base_args, mock_flow):
    assert main(base_args + ["--yes", "--resume"]) == 0

    mock_flow["clear"].assert_not_called()
    assert mock_flow["run"].call_args.kwargs["resume"] is True


def test_failed_step(base_args, mock_flow):
    mock_flow["run"].return_value = False

    assert main(base_args + ["--yes"]) == 1

    mock_flow["followup"].assert_not_called()


def test_cli_overrides_reach_resolver(base_args, mock_flow):
    main(base_args + ["-y", "--interface", "eth1", "--subnet", "10.0.0", "--skip-hirens"])

    settings = mock_flow["resolve"].call_args[0][0]
    assert settings.network.interface == "eth1"
    assert settings.network.subnet_prefix == "10.0.0"
    assert settings.assets.fetch_hirens is False


def test_render_to_output_dir(tmp_path, base_args, state_file, mocker: MockerFixture):
    mocker.patch("common.command_utils.is_running_as_root", return_value=False)
    mock_initialize = mocker.patch("ipxe_setup.main_installer.initialize_state_system")
    mock_run = mocker.patch("common.command_utils.subprocess.run")
    mock_get = mocker.patch("ipxe_setup.asset_fetcher.requests.get")
    output_dir = tmp_path / "rendered"

    exit_code = main(
        base_args
        + [
            "-y",
            "--output-dir", str(output_dir),
            "--interface", "eth0",
            "--server-ip", "192.168.1.50",
            "--subnet", "192.168.1",
        ]
    )

    assert exit_code == 0
    dhcpd_conf = (output_dir / "etc/dhcp/dhcpd.conf").read_text()
    assert "range 192.168.1.150 192.168.1.200;" in dhcpd_conf
    assert 'INTERFACESv4="eth0"' in (output_dir / "etc/default/isc-dhcp-server").read_text()
    assert 'TFTP_DIRECTORY="/srv/tftp"' in (output_dir / "etc/default/tftpd-hpa").read_text()
    assert (output_dir / "srv/tftp").is_dir()
    assert (output_dir / "var/www/html/ipxe/win11").is_dir()
    assert "[install]" in (output_dir / "etc/samba/smb.conf").read_text()
    assert (output_dir / "var/www/html/ipxe/menu.ipxe").read_text().startswith("#!ipxe\n")
    mock_initialize.assert_not_called()
    mock_run.assert_not_called()
    mock_get.assert_not_called()
    assert not state_file.exists()


def test_build_provisioning_steps(server_config, staging_writer):
    steps = build_provisioning_steps(server_config, staging_writer)

    assert [tag for tag, _, _, _ in steps] == [
        "INSTALL_PACKAGES",
        "CONFIG_DHCP",
        "CONFIG_TFTP",
        "CREATE_WEB_DIRS",
        "FETCH_WIMBOOT",
        "FETCH_MEMTEST",
        "FETCH_HIRENS",
        "CONFIG_SAMBA",
        "CONFIG_IPXE_MENU",
        "SERVICES_RESTART_ENABLE",
    ]
    assert [tag for tag, _, _, renders in steps if renders] == [
        "CONFIG_DHCP",
        "CONFIG_TFTP",
        "CREATE_WEB_DIRS",
        "CONFIG_SAMBA",
        "CONFIG_IPXE_MENU",
    ]


def test_step_closure_passes_server_config(server_config, staging_writer, app_settings, mock_logger, mocker: MockerFixture):
    mock_configure = mocker.patch("ipxe_setup.main_installer.configure_dhcp_server")
    steps = build_provisioning_steps(server_config, staging_writer)

    steps[1][2](app_settings, mock_logger)

    mock_configure.assert_called_once_with(server_config, app_settings, staging_writer, mock_logger)


def test_run_provisioning_steps_stops_at_first_failure(state_file, app_settings, mock_logger):
    first, second, third = MagicMock(), MagicMock(return_value=False), MagicMock()
    steps = [("A", "a", first, True), ("B", "b", second, True), ("C", "c", third, True)]

    assert run_provisioning_steps(steps, app_settings, mock_logger) is False

    first.assert_called_once()
    second.assert_called_once()
    third.assert_not_called()
    mock_logger.critical.assert_called_once()


def test_run_provisioning_steps_render_only(state_file, app_settings, mock_logger):
    install, render = MagicMock(), MagicMock()
    steps = [("INSTALL", "install", install, False), ("RENDER", "render", render, True)]

    assert run_provisioning_steps(steps, app_settings, mock_logger, render_only=True) is True

    install.assert_not_called()
    render.assert_called_once()
    assert not state_file.exists()


def test_install_packages(app_settings, mocker: MockerFixture):
    mock_apt = mocker.patch.object(main_installer, "AptManager")
    mock_apt.return_value.install.return_value = True

    install_packages(app_settings)

    mock_apt.return_value.install.assert_called_once_with(app_settings.packages, app_settings)


def test_install_packages_failure(app_settings, mocker: MockerFixture):
    mock_apt = mocker.patch.object(main_installer, "AptManager")
    mock_apt.return_value.install.return_value = False

    with pytest.raises(PackageInstallError):
        install_packages(app_settings)


def test_install_packages_without_apt(app_settings, mocker: MockerFixture):
    mocker.patch.object(main_installer, "AptManager", side_effect=FileNotFoundError("apt-get"))

    with pytest.raises(PackageInstallError):
        install_packages(app_settings)
