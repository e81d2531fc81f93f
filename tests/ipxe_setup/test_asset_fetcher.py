import subprocess
import zipfile
from pathlib import Path
from unittest.mock import MagicMock

import pytest
import requests
from pytest_mock import MockerFixture

from ipxe_setup.asset_fetcher import (
    download_file,
    extract_first_bin,
    fetch_hirens,
    fetch_memtest,
    fetch_wimboot,
)
from ipxe_setup.config_models import AppSettings
from ipxe_setup.errors import AssetFetchError


@pytest.fixture
def asset_settings(tmp_path):
    return AppSettings(assets={"download_dir": str(tmp_path / "downloads"), "download_timeout": 42})


@pytest.fixture
def mock_get(mocker: MockerFixture):
    response = MagicMock()
    response.status_code = 200
    response.iter_content.return_value = [b"abc", b"", b"def"]
    return mocker.patch("ipxe_setup.asset_fetcher.requests.get", return_value=response)


def _write_zip(path, members):
    with zipfile.ZipFile(path, "w") as zf:
        for name, data in members.items():
            zf.writestr(name, data)
    return path


def test_download_file(tmp_path, asset_settings, mock_logger, mock_get):
    destination = tmp_path / "out" / "wimboot"

    result = download_file("http://example.com/wimboot", destination, asset_settings, mock_logger)

    assert result == destination
    assert destination.read_bytes() == b"abcdef"
    mock_get.assert_called_once_with("http://example.com/wimboot", stream=True, timeout=42)
    mock_get.return_value.close.assert_called_once()


def test_download_file_http_error(tmp_path, asset_settings, mock_get):
    mock_get.return_value.status_code = 404
    mock_get.return_value.raise_for_status.side_effect = requests.exceptions.HTTPError("404 Not Found")
    destination = tmp_path / "wimboot"

    with pytest.raises(AssetFetchError, match="404"):
        download_file("http://example.com/wimboot", destination, asset_settings)

    assert not destination.exists()
    mock_get.return_value.close.assert_called_once()


@pytest.mark.parametrize(
    "error, message",
    [
        (requests.exceptions.Timeout("slow"), "Timed out after 42s"),
        (requests.exceptions.ConnectionError("refused"), "Connection error"),
        (requests.exceptions.TooManyRedirects("loop"), "Error downloading"),
    ],
)
def test_download_file_request_errors(tmp_path, asset_settings, mocker: MockerFixture, error, message):
    mocker.patch("ipxe_setup.asset_fetcher.requests.get", side_effect=error)

    with pytest.raises(AssetFetchError, match=message):
        download_file("http://example.com/file", tmp_path / "file", asset_settings)


def test_download_file_removes_partial_file(tmp_path, asset_settings, mock_get):
    def broken_stream(chunk_size):
        yield b"partial"
        raise requests.exceptions.ConnectionError("reset")

    mock_get.return_value.iter_content.side_effect = broken_stream
    destination = tmp_path / "file"

    with pytest.raises(AssetFetchError):
        download_file("http://example.com/file", destination, asset_settings)

    assert not destination.exists()


def test_download_file_empty_body(tmp_path, asset_settings, mock_get):
    mock_get.return_value.iter_content.return_value = []
    destination = tmp_path / "file"

    with pytest.raises(AssetFetchError, match="empty"):
        download_file("http://example.com/file", destination, asset_settings)

    assert not destination.exists()


def test_fetch_wimboot(server_config, asset_settings, staging_writer, mock_get):
    path = fetch_wimboot(server_config, asset_settings, staging_writer)

    assert path == staging_writer.resolve("/var/www/html/ipxe/wimboot")
    assert path.read_bytes() == b"abcdef"


def test_extract_first_bin(tmp_path):
    archive = _write_zip(
        tmp_path / "memtest.zip",
        {"README.txt": "docs", "mt86plus_7.00.x64.bin": b"first", "other.BIN": b"second"},
    )

    result = extract_first_bin(archive, tmp_path / "memtest" / "memtest.bin")

    assert result.read_bytes() == b"first"


def test_extract_first_bin_without_bin(tmp_path):
    archive = _write_zip(tmp_path / "memtest.zip", {"README.txt": "docs"})

    with pytest.raises(AssetFetchError, match="No .bin"):
        extract_first_bin(archive, tmp_path / "memtest.bin")


def test_extract_first_bin_bad_zip(tmp_path):
    archive = tmp_path / "memtest.zip"
    archive.write_bytes(b"not a zip")

    with pytest.raises(AssetFetchError, match="not a valid zip"):
        extract_first_bin(archive, tmp_path / "memtest.bin")


def test_fetch_memtest(server_config, asset_settings, staging_writer, mocker: MockerFixture):
    def fake_download(url, destination, app_settings, logger):
        return _write_zip(Path(destination), {"memtest64.bin": b"memtest"})

    mock_download = mocker.patch("ipxe_setup.asset_fetcher.download_file", side_effect=fake_download)

    path = fetch_memtest(server_config, asset_settings, staging_writer)

    assert path == staging_writer.resolve("/var/www/html/ipxe/memtest/memtest.bin")
    assert path.read_bytes() == b"memtest"
    assert mock_download.call_args[0][0] == asset_settings.assets.memtest_zip_url
    assert list(Path(asset_settings.assets.download_dir).iterdir()) == []


def test_fetch_hirens_disabled(server_config, staging_writer, mocker: MockerFixture):
    settings = AppSettings(assets={"fetch_hirens": False})
    mock_download = mocker.patch("ipxe_setup.asset_fetcher.download_file")

    assert fetch_hirens(server_config, settings, staging_writer) is None
    mock_download.assert_not_called()


def _fake_iso_download(url, destination, app_settings, logger):
    Path(destination).write_bytes(b"iso")
    return Path(destination)


def test_fetch_hirens(server_config, asset_settings, staging_writer, mocker: MockerFixture):
    mocker.patch("ipxe_setup.asset_fetcher.download_file", side_effect=_fake_iso_download)

    def fake_7z(command, *args, **kwargs):
        target = Path(command[-1][2:])
        (target / "sources").mkdir(parents=True)
        (target / "sources" / "boot.wim").write_bytes(b"wim")
        return subprocess.CompletedProcess(command, 0, "", "")

    mock_run = mocker.patch("ipxe_setup.asset_fetcher.run_elevated_command", side_effect=fake_7z)

    target = fetch_hirens(server_config, asset_settings, staging_writer)

    assert target == staging_writer.resolve("/var/www/html/ipxe/hirens")
    command = mock_run.call_args[0][0]
    assert command[:3] == ["7z", "x", "-y"]
    assert command[3].endswith("hirens.iso")
    assert list(Path(asset_settings.assets.download_dir).iterdir()) == []


def test_fetch_hirens_incomplete_extraction(server_config, asset_settings, staging_writer, mocker: MockerFixture):
    mocker.patch("ipxe_setup.asset_fetcher.download_file", side_effect=_fake_iso_download)
    mocker.patch(
        "ipxe_setup.asset_fetcher.run_elevated_command",
        return_value=subprocess.CompletedProcess([], 0, "", ""),
    )

    with pytest.raises(AssetFetchError, match="boot.wim"):
        fetch_hirens(server_config, asset_settings, staging_writer)


@pytest.mark.parametrize(
    "error",
    [subprocess.CalledProcessError(2, ["7z"], stderr="Data Error"), FileNotFoundError("7z")],
)
def test_fetch_hirens_7z_failure(server_config, asset_settings, staging_writer, mocker: MockerFixture, error):
    mocker.patch("ipxe_setup.asset_fetcher.download_file", side_effect=_fake_iso_download)
    mocker.patch("ipxe_setup.asset_fetcher.run_elevated_command", side_effect=error)

    with pytest.raises(AssetFetchError, match="7z"):
        fetch_hirens(server_config, asset_settings, staging_writer)
