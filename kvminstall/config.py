"""Resolution of command-line options into a run configuration for kvm-install-vm."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Mapping, Optional, Tuple

from kvminstall.constants import (
    DEFAULT_BRIDGE,
    DEFAULT_DISK_SIZE_GB,
    DEFAULT_DISTRO,
    DEFAULT_IMAGE_DIR,
    DEFAULT_LEASE_DIR,
    DEFAULT_LEASE_INTERVAL,
    DEFAULT_LIBVIRT_URI,
    DEFAULT_MEMORY_MB,
    DEFAULT_PUBKEY,
    DEFAULT_VCPUS,
)
from kvminstall.exceptions import ConfigError, UnsupportedDistroError
from kvminstall.models import Distro, RunConfig
from kvminstall.utils import get_env, get_env_bool


def parse_int(name: str, raw: Any, default: int, min_val: int = 1) -> int:
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be an integer (got '{raw}')")
    if value < min_val:
        raise ConfigError(f"{name} must be >= {min_val} (got {value})")
    return value


def parse_distro(raw: Any) -> Distro:
    if raw is None or raw == "":
        return DEFAULT_DISTRO
    if isinstance(raw, Distro):
        return raw
    try:
        return Distro(str(raw).strip().lower())
    except ValueError:
        supported = ", ".join(d.value for d in Distro)
        raise UnsupportedDistroError(f"Unsupported distribution '{raw}'. Supported: {supported}")


def resolve_disk_size(raw: Any) -> Tuple[int, bool]:
    """Return ``(disk_size_gb, resize_disk)``.

    Anything up to the default size keeps the cloud image as shipped; only a
    larger request triggers a resize.
    """
    requested = parse_int("disk size", raw, DEFAULT_DISK_SIZE_GB)
    if requested > DEFAULT_DISK_SIZE_GB:
        return requested, True
    return DEFAULT_DISK_SIZE_GB, False


def _optional_name(flag: str, raw: Any) -> Optional[str]:
    if raw is None:
        return None
    name = str(raw).strip()
    if not name:
        return None
    # the name doubles as a directory under the image directory
    if "/" in name or name in (".", "..") or name.startswith("-"):
        raise ConfigError(
            f"Invalid VM name '{name}' for {flag}: it must not contain '/', start with '-' or be . or .."
        )
    return name


def _parse_timeout(raw: Any) -> Optional[float]:
    if raw is None or raw == "":
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError):
        raise ConfigError(f"lease wait timeout must be a number of seconds (got '{raw}')")
    if value < 0:
        raise ConfigError(f"lease wait timeout must be >= 0 (got {value})")
    # 0 keeps the unbounded wait
    return value or None


def resolve_config(
    options: Mapping[str, Any],
    environ: Optional[Mapping[str, str]] = None,
    home: Optional[Path] = None,
) -> RunConfig:
    """Merge defaults with user-supplied options into a single RunConfig.

    ``environ`` and ``home`` default to the process environment and the user's
    home directory; nothing downstream reads either directly.
    """
    if environ is None:
        environ = dict(os.environ)
    if home is None:
        home = Path.home()

    vm_name = _optional_name("-n", options.get("name"))
    delete_target = _optional_name("-r", options.get("delete"))
    if vm_name and delete_target:
        raise ConfigError("Options -n (create) and -r (delete) are mutually exclusive")
    if not vm_name and not delete_target:
        raise ConfigError("A VM name is required: use -n NAME to create or -r NAME to delete")

    vcpus = parse_int("vcpus", options.get("vcpus"), DEFAULT_VCPUS)
    memory_mb = parse_int("memory", options.get("memory"), DEFAULT_MEMORY_MB)
    disk_size_gb, resize_disk = resolve_disk_size(options.get("disk_size"))
    distro = parse_distro(options.get("distro"))

    image_dir_raw = options.get("image_dir")
    image_dir = Path(image_dir_raw).expanduser() if image_dir_raw else home / DEFAULT_IMAGE_DIR
    pubkey_raw = options.get("pubkey")
    pubkey_path = Path(pubkey_raw).expanduser() if pubkey_raw else home / DEFAULT_PUBKEY
    custom_raw = options.get("custom_image")
    custom_image = Path(custom_raw).expanduser() if custom_raw else None
    bridge = (options.get("bridge") or DEFAULT_BRIDGE).strip()

    return RunConfig(
        vm_name=vm_name,
        vcpus=vcpus,
        memory_mb=memory_mb,
        disk_size_gb=disk_size_gb,
        resize_disk=resize_disk,
        image_dir=image_dir,
        pubkey_path=pubkey_path,
        bridge=bridge,
        distro=distro,
        custom_image=custom_image,
        delete_target=delete_target,
        libvirt_uri=get_env("LIBVIRT_URI", DEFAULT_LIBVIRT_URI, environ=environ) or DEFAULT_LIBVIRT_URI,
        lease_dir=DEFAULT_LEASE_DIR,
        lease_timeout=_parse_timeout(options.get("timeout")),
        lease_interval=DEFAULT_LEASE_INTERVAL,
        assume_yes=bool(options.get("assume_yes")),
        verbose=bool(options.get("verbose")) or get_env_bool("LOG_VERBOSE", environ=environ),
    )
