"""Data models for kvm-install-vm."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import NamedTuple, Optional


class Distro(str, Enum):
    CENTOS7 = "centos7"
    CENTOS6 = "centos6"
    DEBIAN8 = "debian8"


class ImageSpec(NamedTuple):
    filename: str
    url: str
    os_variant: str
    login_user: str
    package_manager: str


class ResolvedImage(NamedTuple):
    path: Path
    os_variant: str
    login_user: str
    package_manager: Optional[str]  # None for custom images


class DomainState(Enum):
    EXISTS = "exists"
    ABSENT = "absent"
    QUERY_FAILED = "query-failed"


class DomainStatus(NamedTuple):
    state: DomainState
    reason: str = ""


class StepResult(NamedTuple):
    step: str
    ok: bool
    detail: str = ""


@dataclass(frozen=True)
class RunConfig:
    vm_name: Optional[str]
    vcpus: int
    memory_mb: int
    disk_size_gb: int
    resize_disk: bool
    image_dir: Path
    pubkey_path: Path
    bridge: str
    distro: Distro
    custom_image: Optional[Path]
    delete_target: Optional[str]
    libvirt_uri: str
    lease_dir: Path
    lease_interval: float
    lease_timeout: Optional[float] = None  # None waits forever
    assume_yes: bool = False
    verbose: bool = False

    @property
    def mode(self) -> str:
        return "delete" if self.delete_target else "create"

    @property
    def target(self) -> str:
        """Domain name the run operates on, whichever mode is active."""
        return self.delete_target or self.vm_name  # type: ignore[return-value]


@dataclass(frozen=True)
class VmWorkspace:
    """Per-VM directory under the image directory and the files it owns."""

    root: Path
    vm_name: str

    @classmethod
    def for_vm(cls, image_dir: Path, vm_name: str) -> "VmWorkspace":
        return cls(root=image_dir / vm_name, vm_name=vm_name)

    @property
    def disk(self) -> Path:
        return self.root / f"{self.vm_name}.qcow2"

    @property
    def log_file(self) -> Path:
        return self.root / f"{self.vm_name}.log"

    @property
    def user_data(self) -> Path:
        return self.root / "user-data"

    @property
    def meta_data(self) -> Path:
        return self.root / "meta-data"

    @property
    def seed_iso(self) -> Path:
        return self.root / f"{self.vm_name}-cidata.iso"
