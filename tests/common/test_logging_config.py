import json
import logging

import pytest

from common.logging_config import JSONFormatter, setup_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)


def test_json_formatter_includes_extra_fields():
    record = logging.LogRecord("ipxe_setup", logging.INFO, __file__, 10, "hello %s", ("world",), None)
    record.step_tag = "CONFIG_DHCP"

    entry = json.loads(JSONFormatter().format(record))

    assert entry["message"] == "hello world"
    assert entry["level"] == "INFO"
    assert entry["service"] == "ipxe-server-setup"
    assert entry["extra"] == {"step_tag": "CONFIG_DHCP"}


def test_setup_logging_console_format(restore_root_logger):
    logger = setup_logging("ipxe_setup", "[IPXE-SETUP]")

    root = logging.getLogger()
    assert logger.name == "ipxe_setup"
    assert root.level == logging.INFO
    assert len(root.handlers) == 1
    assert "[IPXE-SETUP] - %(levelname)s" in root.handlers[0].formatter._fmt


def test_setup_logging_writes_json_file(tmp_path, restore_root_logger):
    log_file = tmp_path / "install.log"
    logger = setup_logging("ipxe_setup", "[IPXE-SETUP]", verbose=True, log_file_path=str(log_file))

    logger.info("provisioning")
    for handler in logging.getLogger().handlers:
        handler.flush()

    lines = [json.loads(line) for line in log_file.read_text().splitlines()]
    assert any(line["message"] == "provisioning" for line in lines)
    assert logging.getLogger().level == logging.DEBUG
