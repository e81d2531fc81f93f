# ipxe_setup/asset_fetcher.py
# -*- coding: utf-8 -*-
"""
Downloads and unpacks the third-party boot assets served over HTTP.

Each fetch either leaves the expected file at its expected path or raises
AssetFetchError. There is no retry, resume or checksum verification.
Temporary downloads live in a scratch directory below assets.download_dir
that is removed once the asset is in place.
"""

import logging
import subprocess
import tempfile
import zipfile
from pathlib import Path
from typing import Optional, Union

import requests

from common.command_utils import get_symbols, log_map_server, run_elevated_command
from common.file_utils import ConfigFileWriter
from ipxe_setup.config_models import AppSettings, ServerConfig
from ipxe_setup.errors import AssetFetchError

module_logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024
PROGRESS_INTERVAL_BYTES = 256 * 1024 * 1024


def download_file(
    url: str,
    destination: Union[str, Path],
    app_settings: AppSettings,
    current_logger: Optional[logging.Logger] = None,
) -> Path:
    """
    Streams url to destination.

    Returns:
        The destination path.

    Raises:
        AssetFetchError: On any HTTP, connection, timeout or I/O error, or
            if the server returned an empty body. A partially written file
            is removed.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)
    download_path = Path(destination)
    timeout = app_settings.assets.download_timeout
    log_map_server(
        f"{symbols.get('info', 'ℹ️')} Downloading {url} ...",
        "info",
        logger_to_use,
        app_settings,
    )
    response: Optional[requests.Response] = None
    written = 0
    try:
        download_path.parent.mkdir(parents=True, exist_ok=True)
        response = requests.get(url, stream=True, timeout=timeout)
        response.raise_for_status()

        next_report = PROGRESS_INTERVAL_BYTES
        with open(download_path, "wb") as f:
            for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                if chunk:
                    f.write(chunk)
                    written += len(chunk)
                    if written >= next_report:
                        log_map_server(
                            f"   {written // (1024 * 1024)} MiB downloaded...",
                            "info",
                            logger_to_use,
                            app_settings,
                        )
                        next_report += PROGRESS_INTERVAL_BYTES
    except requests.exceptions.HTTPError as http_err:
        status_code = response.status_code if response is not None else "Unknown"
        _remove_partial(download_path)
        raise AssetFetchError(
            f"HTTP error downloading {url}: {http_err} (status code: {status_code})"
        ) from http_err
    except requests.exceptions.ConnectionError as conn_err:
        _remove_partial(download_path)
        raise AssetFetchError(f"Connection error downloading {url}: {conn_err}") from conn_err
    except requests.exceptions.Timeout as timeout_err:
        _remove_partial(download_path)
        raise AssetFetchError(
            f"Timed out after {timeout}s downloading {url}: {timeout_err}"
        ) from timeout_err
    except requests.exceptions.RequestException as req_err:
        _remove_partial(download_path)
        raise AssetFetchError(f"Error downloading {url}: {req_err}") from req_err
    except IOError as io_err:
        _remove_partial(download_path)
        raise AssetFetchError(f"Could not save {url} to {download_path}: {io_err}") from io_err
    finally:
        if response is not None:
            response.close()

    if written == 0:
        _remove_partial(download_path)
        raise AssetFetchError(f"Download of {url} returned an empty file")

    log_map_server(
        f"{symbols.get('success', '✅')} Downloaded {url} to {download_path} ({written} bytes)",
        "success",
        logger_to_use,
        app_settings,
    )
    return download_path


def _remove_partial(path: Path) -> None:
    if path.is_file():
        path.unlink()


def _scratch_directory(app_settings: AppSettings) -> tempfile.TemporaryDirectory:
    Path(app_settings.assets.download_dir).mkdir(parents=True, exist_ok=True)
    return tempfile.TemporaryDirectory(
        prefix="ipxe-assets-", dir=app_settings.assets.download_dir
    )


def fetch_wimboot(
    server_config: ServerConfig,
    app_settings: AppSettings,
    writer: ConfigFileWriter,
    current_logger: Optional[logging.Logger] = None,
) -> Path:
    """Downloads the wimboot chain-loader into the ipxe web directory."""
    destination = writer.resolve(f"{server_config.ipxe_web_dir}/wimboot")
    return download_file(
        app_settings.assets.wimboot_url, destination, app_settings, current_logger
    )


def extract_first_bin(zip_path: Union[str, Path], destination: Union[str, Path]) -> Path:
    """
    Copies the first ``*.bin`` member of a zip archive to destination.

    Raises:
        AssetFetchError: If the archive is invalid or holds no .bin file.
    """
    destination = Path(destination)
    try:
        with zipfile.ZipFile(zip_path, "r") as zip_ref:
            member = next(
                (
                    info
                    for info in zip_ref.infolist()
                    if not info.is_dir() and info.filename.lower().endswith(".bin")
                ),
                None,
            )
            if member is None:
                raise AssetFetchError(f"No .bin file found in {zip_path}")
            destination.parent.mkdir(parents=True, exist_ok=True)
            with zip_ref.open(member) as source, open(destination, "wb") as target:
                while True:
                    block = source.read(CHUNK_SIZE)
                    if not block:
                        break
                    target.write(block)
    except zipfile.BadZipFile as e:
        raise AssetFetchError(f"'{zip_path}' is not a valid zip file or is corrupted.") from e
    except IOError as e:
        raise AssetFetchError(f"Could not extract {zip_path}: {e}") from e
    return destination


def fetch_memtest(
    server_config: ServerConfig,
    app_settings: AppSettings,
    writer: ConfigFileWriter,
    current_logger: Optional[logging.Logger] = None,
) -> Path:
    """Downloads the Memtest86+ zip and installs its .bin as memtest/memtest.bin."""
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)
    destination = writer.resolve(
        f"{server_config.ipxe_web_dir}/{app_settings.assets.memtest_dir}/memtest.bin"
    )
    with _scratch_directory(app_settings) as scratch:
        zip_path = download_file(
            app_settings.assets.memtest_zip_url,
            Path(scratch) / "memtest.zip",
            app_settings,
            logger_to_use,
        )
        extract_first_bin(zip_path, destination)
    log_map_server(
        f"{symbols.get('success', '✅')} Memtest86+ installed at {destination}",
        "success",
        logger_to_use,
        app_settings,
    )
    return destination


def fetch_hirens(
    server_config: ServerConfig,
    app_settings: AppSettings,
    writer: ConfigFileWriter,
    current_logger: Optional[logging.Logger] = None,
) -> Optional[Path]:
    """
    Downloads Hiren's BootCD PE and extracts the ISO with 7z.

    Returns:
        The extraction directory, or None when assets.fetch_hirens is off.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)
    if not app_settings.assets.fetch_hirens:
        log_map_server(
            f"{symbols.get('info', 'ℹ️')} Skipping Hiren's BootCD PE (assets.fetch_hirens is off).",
            "info",
            logger_to_use,
            app_settings,
        )
        return None

    target_dir = writer.resolve(
        f"{server_config.ipxe_web_dir}/{app_settings.assets.hirens_dir}"
    )
    log_map_server(
        f"{symbols.get('info', 'ℹ️')} Downloading and extracting Hiren's BootCD PE (this may take a while)...",
        "info",
        logger_to_use,
        app_settings,
    )
    with _scratch_directory(app_settings) as scratch:
        iso_path = download_file(
            app_settings.assets.hirens_iso_url,
            Path(scratch) / "hirens.iso",
            app_settings,
            logger_to_use,
        )
        target_dir.mkdir(parents=True, exist_ok=True)
        try:
            run_elevated_command(
                ["7z", "x", "-y", str(iso_path), f"-o{target_dir}"],
                app_settings,
                capture_output=True,
                current_logger=logger_to_use,
            )
        except (subprocess.CalledProcessError, FileNotFoundError) as e:
            raise AssetFetchError(f"Failed to extract {iso_path} with 7z: {e}") from e

    boot_wim = target_dir / "sources" / "boot.wim"
    if not boot_wim.is_file():
        raise AssetFetchError(
            f"Hiren's BootCD PE extraction is incomplete: {boot_wim} not found"
        )
    log_map_server(
        f"{symbols.get('success', '✅')} Hiren's BootCD PE extracted to {target_dir}",
        "success",
        logger_to_use,
        app_settings,
    )
    return target_dir
