"""DHCP lease polling for kvm-install-vm."""

from __future__ import annotations

import json
import threading
import time
from pathlib import Path
from typing import Callable, Optional
from xml.etree.ElementTree import ParseError, fromstring

from kvminstall.exceptions import LeaseCancelledError, LeaseTimeoutError, ManagerError
from kvminstall.utils import log


def extract_mac(domain_xml: str) -> str:
    """Return the MAC address of the domain's first network interface."""
    try:
        root = fromstring(domain_xml)
    except ParseError as exc:
        raise ManagerError(f"Cannot parse domain XML: {exc}") from exc
    for iface in root.iter("interface"):
        mac = iface.find("mac")
        if mac is not None and mac.get("address"):
            return mac.get("address").lower()  # type: ignore[union-attr]
    raise ManagerError("Domain has no network interface with a MAC address")


def find_lease(status_path: Path, mac: str) -> Optional[str]:
    """Look up ``mac`` in a libvirt dnsmasq ``<bridge>.status`` file.

    A missing, empty or half-written file counts as "no lease yet".
    """
    try:
        raw = status_path.read_text()
    except OSError:
        return None
    if not raw.strip():
        return None
    try:
        entries = json.loads(raw)
    except ValueError:
        return None
    if not isinstance(entries, list):
        return None
    mac = mac.lower()
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        if str(entry.get("mac-address", "")).lower() != mac:
            continue
        ip = str(entry.get("ip-address") or "").strip()
        if ip:
            return ip
    return None


class LeaseWatcher:
    """Poll a bridge's lease status file until a MAC shows up with an address.

    With ``timeout=None`` the wait is unbounded, so a guest that never brings up
    its NIC keeps the caller waiting until it is interrupted.
    """

    def __init__(
        self,
        lease_dir: Path,
        interval: float = 1.0,
        timeout: Optional[float] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.lease_dir = lease_dir
        self.interval = interval
        self.timeout = timeout
        self._sleep = sleep
        self._clock = clock

    def status_file(self, bridge: str) -> Path:
        return self.lease_dir / f"{bridge}.status"

    def wait_for_ip(self, mac: str, bridge: str, cancel: Optional[threading.Event] = None) -> str:
        status_path = self.status_file(bridge)
        deadline = None if self.timeout is None else self._clock() + self.timeout
        log("INFO", f"Waiting for DHCP lease for {mac} on {bridge}...")
        while True:
            if cancel is not None and cancel.is_set():
                raise LeaseCancelledError(f"Stopped waiting for a lease for {mac}")
            ip = find_lease(status_path, mac)
            if ip:
                log("SUCCESS", f"Lease found: {ip}")
                return ip
            if deadline is not None and self._clock() >= deadline:
                raise LeaseTimeoutError(
                    f"No DHCP lease for {mac} on {bridge} after {self.timeout:g}s (checked {status_path})"
                )
            self._sleep(self.interval)
