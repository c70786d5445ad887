"""Domain lifecycle management for kvm-install-vm."""

from __future__ import annotations

import shutil
from pathlib import Path
from typing import Callable, List, Optional
from xml.etree.ElementTree import ParseError, fromstring

try:
    import libvirt  # type: ignore
except ImportError as exc:  # pragma: no cover
    raise SystemExit(f"libvirt python bindings not available: {exc}")

from kvminstall.constants import DEFAULT_LIBVIRT_URI
from kvminstall.exceptions import DomainQueryError, DomainStartError, ManagerError
from kvminstall.models import DomainState, DomainStatus, StepResult
from kvminstall.utils import append_log, log, run

_DOMAIN_STATES = {
    0: "no state",
    1: "running",
    2: "idle",
    3: "paused",
    4: "in shutdown",
    5: "shut off",
    6: "crashed",
    7: "pmsuspended",
}


def cdrom_target(domain_xml: str, default: str = "hda") -> str:
    """Return the target device name of the first CD-ROM in a domain definition."""
    try:
        root = fromstring(domain_xml)
    except ParseError:
        return default
    for disk in root.iter("disk"):
        if disk.get("device") != "cdrom":
            continue
        target = disk.find("target")
        if target is not None and target.get("dev"):
            return target.get("dev")  # type: ignore[return-value]
    return default


class Hypervisor:
    """Thin wrapper around a libvirt connection plus the virt-install/virsh CLIs."""

    def __init__(self, uri: str = DEFAULT_LIBVIRT_URI, conn=None) -> None:
        self.uri = uri
        self.conn: Optional[libvirt.virConnect] = conn

    def connect(self) -> libvirt.virConnect:
        if self.conn is None:
            self.conn = libvirt.open(self.uri)
            if self.conn is None:
                raise ManagerError(f"Failed to open libvirt connection to {self.uri}")
        return self.conn

    def close(self) -> None:
        if self.conn is not None:
            self.conn.close()
            self.conn = None

    def domain_status(self, name: str) -> DomainStatus:
        try:
            self.connect().lookupByName(name)
        except libvirt.libvirtError as exc:
            if exc.get_error_code() == libvirt.VIR_ERR_NO_DOMAIN:
                return DomainStatus(DomainState.ABSENT)
            return DomainStatus(DomainState.QUERY_FAILED, exc.get_error_message() or str(exc))
        except ManagerError as exc:
            return DomainStatus(DomainState.QUERY_FAILED, str(exc))
        return DomainStatus(DomainState.EXISTS)

    def dump_xml(self, name: str) -> str:
        try:
            return self.connect().lookupByName(name).XMLDesc(0)
        except libvirt.libvirtError as exc:
            raise DomainQueryError(f"Cannot read definition of {name}: {exc.get_error_message() or exc}") from exc

    def install(
        self,
        name: str,
        disk: Path,
        seed_iso: Path,
        memory_mb: int,
        vcpus: int,
        bridge: str,
        os_variant: str,
        log_file: Optional[Path] = None,
    ) -> int:
        """Import ``disk`` as a new domain and start it.

        Returns the installer's exit status. A non-zero status is only reported;
        the caller goes on to wait for a lease.
        """
        cmd = [
            "virt-install",
            "--connect",
            self.uri,
            "--import",
            "--name",
            name,
            "--memory",
            str(memory_mb),
            "--vcpus",
            str(vcpus),
            "--disk",
            f"path={disk},format=qcow2,bus=virtio",
            "--disk",
            f"path={seed_iso},device=cdrom",
            "--network",
            f"bridge={bridge},model=virtio",
            "--os-type=linux",
            f"--os-variant={os_variant}",
            "--noautoconsole",
        ]
        log("INFO", f"Installing domain {name} (os-variant {os_variant})")
        try:
            result = run(cmd, check=False, log_file=log_file)
        except FileNotFoundError as exc:
            raise DomainStartError("virt-install not found; install virtinst to define domains") from exc
        if result.returncode != 0:
            log("WARN", f"virt-install exited with status {result.returncode}; see {log_file}")
        append_log(log_file, self.domain_info(name))
        return result.returncode

    def domain_info(self, name: str) -> str:
        """Render a ``virsh dominfo``-style summary for the log."""
        try:
            dom = self.connect().lookupByName(name)
            state, max_mem, mem, vcpus, _cpu_time = dom.info()
            persistent = dom.isPersistent()
            autostart = dom.autostart()
        except (libvirt.libvirtError, ManagerError) as exc:
            return f"dominfo {name}: unavailable ({exc})"
        lines = [
            f"Name:           {name}",
            f"UUID:           {dom.UUIDString()}",
            f"State:          {_DOMAIN_STATES.get(state, state)}",
            f"CPU(s):         {vcpus}",
            f"Max memory:     {max_mem} KiB",
            f"Used memory:    {mem} KiB",
            f"Persistent:     {'yes' if persistent else 'no'}",
            f"Autostart:      {'enable' if autostart else 'disable'}",
        ]
        return "\n".join(lines)

    def eject_cdrom(self, name: str, log_file: Optional[Path] = None) -> bool:
        """Drop the seed media from the persistent definition; the running guest keeps it."""
        try:
            target = cdrom_target(self.dump_xml(name))
        except ManagerError as exc:
            log("WARN", f"Could not read definition of {name} to eject cloud-init media: {exc}")
            return False
        cmd = ["virsh", "-c", self.uri, "change-media", name, target, "--eject", "--config"]
        try:
            result = run(cmd, check=False, log_file=log_file)
        except FileNotFoundError:
            log("WARN", "virsh not found; cloud-init media left attached")
            return False
        if result.returncode != 0:
            log("WARN", f"Could not eject cloud-init media from {name}; see {log_file}")
            return False
        log("DEBUG", f"Ejected {target} from {name}")
        return True

    def _step(self, step: str, action: Callable[[], str]) -> StepResult:
        try:
            detail = action()
        except libvirt.libvirtError as exc:
            result = StepResult(step, False, exc.get_error_message() or str(exc))
        except (ManagerError, OSError) as exc:
            result = StepResult(step, False, str(exc))
        else:
            result = StepResult(step, True, detail)
        log("DEBUG", f"teardown: {step}: {'ok' if result.ok else 'skipped'} {result.detail}".rstrip())
        return result

    def _destroy_domain(self, name: str) -> str:
        dom = self.connect().lookupByName(name)
        if not dom.isActive():
            return "not running"
        dom.destroy()
        return "destroyed"

    def _destroy_pool(self, name: str) -> str:
        pool = self.connect().storagePoolLookupByName(name)
        if not pool.isActive():
            return "not active"
        pool.destroy()
        return "destroyed"

    def _undefine_pool(self, name: str) -> str:
        self.connect().storagePoolLookupByName(name).undefine()
        return "undefined"

    def _undefine_domain(self, name: str) -> str:
        self.connect().lookupByName(name).undefine()
        return "undefined"

    @staticmethod
    def _remove_workspace(workspace_dir: Path) -> str:
        if not workspace_dir.exists():
            return "absent"
        shutil.rmtree(workspace_dir)
        return "removed"

    def teardown(self, name: str, workspace_dir: Path) -> List[StepResult]:
        """Destroy and undefine ``name``, its same-named pool, and its workspace.

        Every step runs regardless of how the previous one went and none of them
        raise, so tearing down something that does not exist is a no-op.
        """
        log("INFO", f"Removing domain {name}")
        results = [
            self._step("destroy domain", lambda: self._destroy_domain(name)),
            self._step("destroy pool", lambda: self._destroy_pool(name)),
            self._step("undefine pool", lambda: self._undefine_pool(name)),
            self._step("undefine domain", lambda: self._undefine_domain(name)),
            self._step("remove workspace", lambda: self._remove_workspace(workspace_dir)),
        ]
        return results
