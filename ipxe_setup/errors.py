# ipxe_setup/errors.py
# -*- coding: utf-8 -*-
"""
Exception types raised by the provisioning steps.

Every step function raises a subclass of ProvisioningError; the step
executor logs it and stops the run.
"""


class ProvisioningError(Exception):
    """Base class for all errors raised while provisioning the iPXE server."""


class PrivilegeError(ProvisioningError):
    """The installer is not running with root privileges."""


class NetworkDetectionError(ProvisioningError):
    """One or more network facts could not be detected or supplied."""

    def __init__(self, missing_facts):
        self.missing_facts = list(missing_facts)
        super().__init__(
            "Could not determine network fact(s): "
            + ", ".join(self.missing_facts)
            + ". Supply them with --interface/--server-ip/--subnet, "
            "the 'network' section of config.yaml or IPXE_NETWORK__* variables."
        )


class ServerConfigError(ProvisioningError):
    """A value substituted into a configuration template failed validation."""


class PackageInstallError(ProvisioningError):
    """apt could not install the required packages."""


class AssetFetchError(ProvisioningError):
    """A boot asset could not be downloaded or extracted."""


class ConfigWriteError(ProvisioningError):
    """A configuration file could not be written or validated."""


class ServiceControlError(ProvisioningError):
    """A systemd unit failed to restart, be enabled or come up."""

    def __init__(self, message, report=None):
        super().__init__(message)
        self.report = report
