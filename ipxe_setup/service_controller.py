# ipxe_setup/service_controller.py
# -*- coding: utf-8 -*-
"""
Restarts and enables the systemd units backing the boot server and checks
that they came up.

With services.on_failure = "abort" the first failing action raises
ServiceControlError. With "report" every unit is processed, the failures
are collected into a ServiceReport and logged with journalctl hints, and
ServiceControlError is raised afterwards. Configuration already applied is
never rolled back.
"""

import logging
import subprocess
import time
from typing import Callable, List, Optional

from common.command_utils import get_symbols, log_map_server, run_elevated_command
from ipxe_setup.config_models import AppSettings
from ipxe_setup.errors import ServiceControlError

module_logger = logging.getLogger(__name__)


class ServiceFailure:
    def __init__(self, unit: str, action: str, detail: str = ""):
        self.unit = unit
        self.action = action
        self.detail = detail

    def __str__(self) -> str:
        text = f"{self.unit}: {self.action} failed"
        return f"{text} ({self.detail})" if self.detail else text

    def __repr__(self) -> str:
        return f"ServiceFailure({self.unit!r}, {self.action!r}, {self.detail!r})"


class ServiceReport:
    """Outcome of restarting, enabling and checking the service units."""

    def __init__(self) -> None:
        self.failures: List[ServiceFailure] = []
        self.active_units: List[str] = []

    @property
    def ok(self) -> bool:
        return not self.failures

    @property
    def failed_units(self) -> List[str]:
        units: List[str] = []
        for failure in self.failures:
            if failure.unit not in units:
                units.append(failure.unit)
        return units

    def add_failure(self, failure: ServiceFailure) -> None:
        self.failures.append(failure)

    def journal_hints(self) -> List[str]:
        return [f"journalctl -u {unit} --no-pager -n 50" for unit in self.failed_units]

    def summary(self) -> str:
        return "; ".join(str(f) for f in self.failures)


def _systemctl(
    action: str,
    unit: str,
    app_settings: AppSettings,
    logger: logging.Logger,
) -> Optional[ServiceFailure]:
    try:
        run_elevated_command(
            ["systemctl", action, unit],
            app_settings,
            capture_output=True,
            current_logger=logger,
        )
    except subprocess.CalledProcessError as e:
        detail = (e.stderr or "").strip() if isinstance(e.stderr, str) else ""
        return ServiceFailure(unit, action, detail or f"exit code {e.returncode}")
    except FileNotFoundError as e:
        return ServiceFailure(unit, action, str(e))
    return None


def is_service_active(
    unit: str,
    app_settings: AppSettings,
    current_logger: Optional[logging.Logger] = None,
) -> bool:
    """True if `systemctl is-active --quiet <unit>` succeeds."""
    logger_to_use = current_logger if current_logger else module_logger
    try:
        result = run_elevated_command(
            ["systemctl", "is-active", "--quiet", unit],
            app_settings,
            check=False,
            current_logger=logger_to_use,
        )
    except FileNotFoundError:
        return False
    return result.returncode == 0


def _record(
    report: ServiceReport,
    failure: Optional[ServiceFailure],
    abort: bool,
    app_settings: AppSettings,
    logger: logging.Logger,
) -> None:
    if failure is None:
        return
    symbols = get_symbols(app_settings)
    log_map_server(
        f"{symbols.get('error', '❌')} {failure}",
        "error",
        logger,
        app_settings,
    )
    report.add_failure(failure)
    if abort:
        raise ServiceControlError(
            f"{failure}. Inspect it with: journalctl -u {failure.unit} --no-pager -n 50",
            report=report,
        )


def restart_and_enable_services(
    app_settings: AppSettings,
    current_logger: Optional[logging.Logger] = None,
    sleep_func: Callable[[float], None] = time.sleep,
) -> ServiceReport:
    """
    Restarts and enables every unit of services.units, then checks that each
    unit of services.check_units is active.

    Raises:
        ServiceControlError: In abort mode on the first failure, in report
            mode after all units were processed and at least one failed.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)
    services = app_settings.services
    abort = services.on_failure == "abort"
    report = ServiceReport()

    log_map_server(
        f"{symbols.get('step', '➡️')} Restarting and enabling services: {', '.join(services.units)}",
        "info",
        logger_to_use,
        app_settings,
    )
    for unit in services.units:
        _record(report, _systemctl("restart", unit, app_settings, logger_to_use), abort, app_settings, logger_to_use)
    for unit in services.units:
        _record(report, _systemctl("enable", unit, app_settings, logger_to_use), abort, app_settings, logger_to_use)

    if services.settle_seconds:
        sleep_func(services.settle_seconds)

    for unit in services.check_units:
        if is_service_active(unit, app_settings, logger_to_use):
            report.active_units.append(unit)
            log_map_server(
                f"{symbols.get('success', '✅')} Service {unit} is active.",
                "success",
                logger_to_use,
                app_settings,
            )
        else:
            _record(report, ServiceFailure(unit, "is-active", "unit is not running"), abort, app_settings, logger_to_use)

    if not report.ok:
        log_report(report, app_settings, logger_to_use)
        raise ServiceControlError(
            f"{len(report.failed_units)} service(s) failed: {report.summary()}",
            report=report,
        )
    return report


def log_report(
    report: ServiceReport,
    app_settings: AppSettings,
    current_logger: Optional[logging.Logger] = None,
) -> None:
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)
    log_map_server(
        f"{symbols.get('warning', '!')} Service problems: {', '.join(report.failed_units)}. "
        "Configuration changes were kept. Inspect the units with:",
        "warning",
        logger_to_use,
        app_settings,
    )
    for hint in report.journal_hints():
        log_map_server(f"   {hint}", "warning", logger_to_use, app_settings)
