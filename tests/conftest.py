"""Shared test fixtures."""

from __future__ import annotations

import dataclasses
import json
from pathlib import Path

import pytest

from kvminstall.models import Distro, RunConfig
from kvminstall.utils import set_verbose

PUBKEY = "ssh-ed25519 AAAAC3NzaC1lZDI1NTE5AAAAIGJ0ZXN0a2V5Zm9ydGVzdGluZ29ubHkxMjM0NTY3 tester@workstation"
MAC = "52:54:00:12:34:56"

DOMAIN_XML = f"""
<domain type="kvm">
  <name>foo</name>
  <devices>
    <disk type="file" device="disk">
      <source file="/images/foo/foo.qcow2"/>
      <target dev="vda" bus="virtio"/>
    </disk>
    <disk type="file" device="cdrom">
      <source file="/images/foo/foo-cidata.iso"/>
      <target dev="sda" bus="sata"/>
      <readonly/>
    </disk>
    <interface type="bridge">
      <mac address="{MAC}"/>
      <source bridge="virbr0"/>
      <model type="virtio"/>
    </interface>
  </devices>
</domain>
"""


@pytest.fixture
def pubkey() -> str:
    return PUBKEY


@pytest.fixture
def mac() -> str:
    return MAC


@pytest.fixture
def domain_xml() -> str:
    return DOMAIN_XML


@pytest.fixture(autouse=True)
def quiet_logging():
    set_verbose(False)
    yield
    set_verbose(False)


@pytest.fixture
def pubkey_file(tmp_path) -> Path:
    path = tmp_path / "id_ed25519.pub"
    path.write_text(PUBKEY + "\n")
    return path


@pytest.fixture
def lease_dir(tmp_path) -> Path:
    path = tmp_path / "dnsmasq"
    path.mkdir()
    return path


@pytest.fixture
def write_leases(lease_dir):
    """Write a dnsmasq-style <bridge>.status file into lease_dir."""

    def _write(bridge: str, entries) -> Path:
        path = lease_dir / f"{bridge}.status"
        path.write_text(json.dumps(entries, indent=2))
        return path

    return _write


@pytest.fixture
def make_config(tmp_path, pubkey_file, lease_dir):
    """Build a create-mode RunConfig rooted in tmp_path; keyword overrides win."""

    def _make(**overrides) -> RunConfig:
        cfg = RunConfig(
            vm_name="foo",
            vcpus=1,
            memory_mb=1024,
            disk_size_gb=10,
            resize_disk=False,
            image_dir=tmp_path / "images",
            pubkey_path=pubkey_file,
            bridge="virbr0",
            distro=Distro.CENTOS7,
            custom_image=None,
            delete_target=None,
            libvirt_uri="qemu:///system",
            lease_dir=lease_dir,
            lease_timeout=None,
            lease_interval=0.0,
        )
        return dataclasses.replace(cfg, **overrides)

    return _make
