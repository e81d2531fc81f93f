# tests/conftest.py
import logging
import os
from unittest.mock import MagicMock

import pytest

from common.file_utils import StagingFileWriter
from ipxe_setup import config as static_config
from ipxe_setup.config_models import AppSettings, ServerConfig


@pytest.fixture(autouse=True)
def _clean_ipxe_environment(monkeypatch):
    """Keeps IPXE_* variables of the developer's shell out of AppSettings."""
    for name in list(os.environ):
        if name.upper().startswith("IPXE_"):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture
def app_settings():
    return AppSettings()


@pytest.fixture
def mock_logger():
    return MagicMock(spec=logging.Logger)


@pytest.fixture
def server_config(app_settings):
    return ServerConfig.from_facts("eth0", "192.168.1.50", "192.168.1", app_settings)


@pytest.fixture
def staging_writer(tmp_path, app_settings):
    return StagingFileWriter(tmp_path / "root", app_settings=app_settings)


@pytest.fixture
def state_file(tmp_path, mocker):
    """Points the progress state file at a temporary location."""
    path = tmp_path / "state" / "progress_state.txt"
    mocker.patch.object(static_config, "STATE_FILE_PATH", path)
    return path
