"""kvm-install-vm package."""

__all__ = [
    "cli",
    "cloudinit",
    "config",
    "constants",
    "disk",
    "exceptions",
    "hypervisor",
    "images",
    "leases",
    "models",
    "orchestrator",
    "utils",
]
