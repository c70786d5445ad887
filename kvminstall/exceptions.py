"""Custom exceptions for kvm-install-vm.

Every error carries the process exit status ``cli.main`` reports for it.
"""


class ManagerError(RuntimeError):
    """Raised on unrecoverable configuration or runtime errors."""

    exit_code = 1


class ConfigError(ManagerError):
    """Conflicting, missing or malformed command-line options."""

    exit_code = 2


class UnsupportedDistroError(ConfigError):
    """The requested distribution has no entry in the image table."""


class MissingSshKeyError(ManagerError):
    exit_code = 3


class DownloadError(ManagerError):
    """Fetching a base image failed; nothing on the hypervisor was touched."""


class ProvisionError(ManagerError):
    """Copying or resizing the VM disk failed."""


class SeedBuildError(ManagerError):
    """The cloud-init seed ISO could not be packaged."""


class DomainStartError(ManagerError):
    """The installer could not be launched at all."""


class DomainQueryError(ManagerError):
    """libvirt could not tell whether a domain exists."""


class OverwriteDeclined(ManagerError):
    """The operator refused to replace an existing domain."""


class LeaseTimeoutError(ManagerError):
    pass


class LeaseCancelledError(ManagerError):
    pass
