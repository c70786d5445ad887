"""Create/delete sequencing for kvm-install-vm."""

from __future__ import annotations

import shutil
import threading
from typing import Callable, List, NamedTuple, Optional

from kvminstall.cloudinit import build_seed, read_pubkey
from kvminstall.disk import provision_disk
from kvminstall.exceptions import DomainQueryError, OverwriteDeclined
from kvminstall.images import ImageProvider
from kvminstall.leases import LeaseWatcher, extract_mac
from kvminstall.models import DomainState, RunConfig, StepResult, VmWorkspace
from kvminstall.utils import confirm, ensure_directory, log


class CreateResult(NamedTuple):
    vm_name: str
    ip: str
    login_user: str
    log_file: str


class Installer:
    """Run one create or delete against a single hypervisor host."""

    def __init__(
        self,
        cfg: RunConfig,
        hypervisor,
        images: Optional[ImageProvider] = None,
        watcher: Optional[LeaseWatcher] = None,
        confirm_fn: Callable[[str], bool] = confirm,
    ) -> None:
        self.cfg = cfg
        self.hypervisor = hypervisor
        self.images = images or ImageProvider(cfg.image_dir)
        self.watcher = watcher or LeaseWatcher(
            cfg.lease_dir,
            interval=cfg.lease_interval,
            timeout=cfg.lease_timeout,
        )
        self._confirm = confirm_fn
        self.workspace = VmWorkspace.for_vm(cfg.image_dir, cfg.target)

    def delete(self) -> List[StepResult]:
        results = self.hypervisor.teardown(self.cfg.target, self.workspace.root)
        log("SUCCESS", f"Deleted {self.cfg.target}")
        return results

    def _check_existing(self) -> None:
        name = self.workspace.vm_name
        status = self.hypervisor.domain_status(name)
        if status.state is DomainState.QUERY_FAILED:
            raise DomainQueryError(f"Could not check whether domain {name} exists: {status.reason}")
        if status.state is DomainState.ABSENT:
            return
        log("WARN", f"Domain {name} already exists")
        if not self.cfg.assume_yes and not self._confirm(f"Overwrite domain {name}?"):
            raise OverwriteDeclined(f"Not overwriting domain {name}")
        self.hypervisor.teardown(name, self.workspace.root)

    def _prepare_workspace(self) -> None:
        if self.workspace.root.exists():
            shutil.rmtree(self.workspace.root)
        ensure_directory(self.workspace.root)

    def create(self, cancel: Optional[threading.Event] = None) -> CreateResult:
        cfg = self.cfg
        ws = self.workspace
        pubkey = read_pubkey(cfg.pubkey_path)
        image = self.images.resolve(cfg.distro, cfg.custom_image)

        self._check_existing()
        self._prepare_workspace()
        log("INFO", f"Workspace {ws.root} (log: {ws.log_file})")

        provision_disk(image.path, ws.disk, cfg.disk_size_gb, cfg.resize_disk, log_file=ws.log_file)
        seed = build_seed(ws, pubkey, image.package_manager)

        status = self.hypervisor.install(
            ws.vm_name,
            ws.disk,
            seed.iso,
            memory_mb=cfg.memory_mb,
            vcpus=cfg.vcpus,
            bridge=cfg.bridge,
            os_variant=image.os_variant,
            log_file=ws.log_file,
        )
        self.hypervisor.eject_cdrom(ws.vm_name, log_file=ws.log_file)
        if status == 0:
            seed.remove()
        else:
            log("WARN", f"Keeping cloud-init seed files in {ws.root} for inspection")

        mac = extract_mac(self.hypervisor.dump_xml(ws.vm_name))
        ip = self.watcher.wait_for_ip(mac, cfg.bridge, cancel=cancel)
        return CreateResult(vm_name=ws.vm_name, ip=ip, login_user=image.login_user, log_file=str(ws.log_file))
