"""Per-VM disk provisioning for kvm-install-vm."""

from __future__ import annotations

import shutil
import subprocess
from pathlib import Path
from typing import Optional

from kvminstall.constants import RESIZE_PARTITION
from kvminstall.exceptions import ProvisionError
from kvminstall.utils import append_log, log, run


def provision_disk(
    source: Path,
    dest: Path,
    size_gb: Optional[int] = None,
    resize: bool = False,
    log_file: Optional[Path] = None,
) -> None:
    """Copy ``source`` to ``dest`` and optionally grow its first partition to ``size_gb``.

    The resize is done offline: a metadata-preallocated qcow2 of the target size
    is created next to the copy, ``virt-resize`` expands the copy into it, and the
    result replaces the copy. A failed resize leaves only the original copy
    behind; the pre-resize state is not kept anywhere else.
    """
    log("INFO", f"Creating working disk {dest}")
    try:
        shutil.copyfile(source, dest)
    except OSError as exc:
        raise ProvisionError(f"Failed to copy {source} to {dest}: {exc}") from exc
    append_log(log_file, f"Copied {source} -> {dest}")

    if not resize:
        return
    if not size_gb:
        raise ProvisionError("A target size is required to resize the disk")

    expanded = dest.with_name(dest.name + ".new")
    log("INFO", f"Resizing disk to {size_gb}G...")
    try:
        run(
            ["qemu-img", "create", "-f", "qcow2", "-o", "preallocation=metadata", str(expanded), f"{size_gb}G"],
            log_file=log_file,
        )
        run(
            ["virt-resize", "--quiet", "--expand", RESIZE_PARTITION, str(dest), str(expanded)],
            log_file=log_file,
        )
        expanded.replace(dest)
    except FileNotFoundError as exc:
        expanded.unlink(missing_ok=True)
        raise ProvisionError(f"Required tool not found: {exc.filename}") from exc
    except subprocess.CalledProcessError as exc:
        expanded.unlink(missing_ok=True)
        raise ProvisionError(
            f"{exc.cmd[0]} exited with status {exc.returncode}; see {log_file}"
        ) from exc
    except OSError as exc:
        expanded.unlink(missing_ok=True)
        raise ProvisionError(f"Failed to replace {dest} with resized image: {exc}") from exc
    log("SUCCESS", f"Disk resized to {size_gb}G")
