"""Cloud-init NoCloud seed generation for kvm-install-vm."""

from __future__ import annotations

import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

try:
    import yaml  # type: ignore
except ImportError as exc:  # pragma: no cover
    raise SystemExit("PyYAML is required but not installed") from exc

from kvminstall.constants import CLOUD_INIT_LOG, DNS_DOMAIN, SEED_VOLUME_ID
from kvminstall.exceptions import MissingSshKeyError, SeedBuildError
from kvminstall.models import VmWorkspace
from kvminstall.utils import log, run


def read_pubkey(path: Path) -> str:
    """Return the public key text without its trailing newline."""
    try:
        content = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise MissingSshKeyError(f"SSH public key not found: {path}")
    except OSError as exc:
        raise MissingSshKeyError(f"Cannot read SSH public key {path}: {exc}")
    key = content.rstrip("\r\n")
    if not key.strip():
        raise MissingSshKeyError(f"SSH public key file is empty: {path}")
    return key


def _remove_cloud_init_cmd(package_manager: Optional[str]) -> List[str]:
    if package_manager == "yum":
        return ["yum", "-y", "remove", "cloud-init"]
    if package_manager == "apt-get":
        return ["apt-get", "-y", "purge", "cloud-init"]
    # Custom images: whichever package manager the guest has
    return [
        "sh",
        "-c",
        "command -v yum >/dev/null 2>&1 && yum -y remove cloud-init"
        " || apt-get -y purge cloud-init",
    ]


def render_user_data(vm_name: str, pubkey: str, package_manager: Optional[str] = None) -> str:
    user_cfg: Dict[str, object] = {
        "preserve_hostname": False,
        "hostname": vm_name,
        "fqdn": f"{vm_name}.{DNS_DOMAIN}",
        "output": {"all": f">> {CLOUD_INIT_LOG}"},
        "ssh_deletekeys": True,
        "ssh_genkeytypes": ["ed25519", "rsa"],
        "ssh_authorized_keys": [pubkey],
        "runcmd": [_remove_cloud_init_cmd(package_manager)],
    }
    # width keeps long ssh keys on a single line
    return "#cloud-config\n" + yaml.safe_dump(
        user_cfg, sort_keys=False, default_flow_style=False, width=float("inf")
    )


def render_meta_data(vm_name: str) -> str:
    meta = {"instance-id": vm_name, "local-hostname": vm_name}
    return yaml.safe_dump(meta, sort_keys=False, default_flow_style=False)


@dataclass
class SeedFiles:
    iso: Path
    user_data: Path
    meta_data: Path

    def remove(self) -> None:
        for path in (self.iso, self.user_data, self.meta_data):
            path.unlink(missing_ok=True)


def build_seed(
    workspace: VmWorkspace,
    pubkey: str,
    package_manager: Optional[str] = None,
) -> SeedFiles:
    """Write user-data/meta-data into the workspace and pack them into a cidata ISO."""
    vm_name = workspace.vm_name
    seed = SeedFiles(iso=workspace.seed_iso, user_data=workspace.user_data, meta_data=workspace.meta_data)
    seed.user_data.write_text(render_user_data(vm_name, pubkey, package_manager), encoding="utf-8")
    seed.meta_data.write_text(render_meta_data(vm_name), encoding="utf-8")

    log("INFO", f"Generating cloud-init ISO {seed.iso}")
    cmd = [
        "genisoimage",
        "-output",
        str(seed.iso),
        "-volid",
        SEED_VOLUME_ID,
        "-joliet",
        "-rock",
        str(seed.user_data),
        str(seed.meta_data),
    ]
    try:
        run(cmd, log_file=workspace.log_file)
    except FileNotFoundError as exc:
        raise SeedBuildError("genisoimage not found; install it to build the cloud-init seed") from exc
    except subprocess.CalledProcessError as exc:
        raise SeedBuildError(
            f"genisoimage exited with status {exc.returncode}; see {workspace.log_file}"
        ) from exc
    return seed
