# -*- coding: utf-8 -*-
"""
Logging configuration for the iPXE server installer.

Console output is human readable and carries the installer's log prefix.
An optional log file receives one JSON object per record, so a provisioning
run can be reviewed or shipped elsewhere afterwards.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Optional

RESERVED_RECORD_ATTRIBUTES = frozenset(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__
) | {"message", "asctime", "taskName"}


class JSONFormatter(logging.Formatter):
    """
    Formats log records as JSON with timestamp, level, logger, message,
    source location and any extra fields passed to the logging call.
    """

    def __init__(self, service_name: str = "ipxe-server-setup"):
        super().__init__()
        self.service_name = service_name
        self.hostname = os.uname().nodename

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc)
            .isoformat()
            .replace("+00:00", "Z"),
            "level": record.levelname,
            "service": self.service_name,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "hostname": self.hostname,
        }

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        extra_fields = {
            key: value
            for key, value in record.__dict__.items()
            if key not in RESERVED_RECORD_ATTRIBUTES
        }
        if extra_fields:
            log_entry["extra"] = extra_fields

        return json.dumps(log_entry, ensure_ascii=False, default=str)


def setup_logging(
    logger_name: str,
    log_prefix: str,
    verbose: bool = False,
    log_file_path: Optional[str] = None,
) -> logging.Logger:
    """
    Configures the root logger and returns the installer's logger.

    Args:
        logger_name: Name of the logger returned to the caller.
        log_prefix: Text shown in every console line, e.g. "[IPXE-SETUP]".
        verbose: Log DEBUG records (commands executed, their output).
        log_file_path: If set, also write JSON records to this file.

    Returns:
        Configured logger instance
    """
    numeric_level = logging.DEBUG if verbose else logging.INFO

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(
        logging.Formatter(
            f"%(asctime)s - {log_prefix} - %(levelname)s - %(message)s"
        )
    )
    root_logger.addHandler(console_handler)

    if log_file_path:
        file_handler = logging.FileHandler(log_file_path, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(JSONFormatter())
        root_logger.addHandler(file_handler)
        # The root logger must let DEBUG through for the file handler.
        root_logger.setLevel(logging.DEBUG)

    # Third-party chatter stays at WARNING unless verbose.
    logging.getLogger("urllib3").setLevel(
        logging.DEBUG if verbose else logging.WARNING
    )

    logger = logging.getLogger(logger_name)
    logger.debug(
        "Logging initialized",
        extra={"verbose": verbose, "log_file": log_file_path},
    )
    return logger
