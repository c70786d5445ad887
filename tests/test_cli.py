"""Tests for kvminstall.cli module."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest

pytest.importorskip("libvirt")

from kvminstall import cli  # noqa: E402
from kvminstall.exceptions import DownloadError, OverwriteDeclined  # noqa: E402
from kvminstall.models import DomainState, DomainStatus  # noqa: E402
from kvminstall.orchestrator import CreateResult  # noqa: E402


@pytest.fixture
def home(tmp_path, monkeypatch, pubkey):
    monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))
    ssh = tmp_path / ".ssh"
    ssh.mkdir()
    (ssh / "id_rsa.pub").write_text(pubkey + "\n")
    monkeypatch.delenv("LIBVIRT_URI", raising=False)
    monkeypatch.delenv("LOG_VERBOSE", raising=False)
    return tmp_path


@pytest.fixture
def hypervisor_cls():
    with patch("kvminstall.cli.Hypervisor") as cls:
        yield cls


@pytest.fixture
def installer_cls():
    with patch("kvminstall.cli.Installer") as cls:
        yield cls


class TestArguments:
    def test_help_exits_one(self, capsys):
        assert cli.main(["-h"]) == 1
        assert "usage: kvm-install-vm" in capsys.readouterr().out

    def test_unknown_flag(self, capsys):
        with pytest.raises(SystemExit) as exc:
            cli.main(["-z"])
        assert exc.value.code == 1
        assert "usage:" in capsys.readouterr().err

    def test_create_and_delete_conflict(self, home, hypervisor_cls):
        assert cli.main(["-n", "foo", "-r", "bar"]) == 2
        hypervisor_cls.assert_not_called()

    def test_name_required(self, home, hypervisor_cls):
        assert cli.main([]) == 2
        hypervisor_cls.assert_not_called()

    def test_unsupported_distro(self, home, hypervisor_cls, capsys):
        assert cli.main(["-t", "fedora", "-n", "foo"]) == 2
        assert "Unsupported distribution 'fedora'" in capsys.readouterr().out


class TestCreate:
    def test_success_prints_access_banner(self, home, hypervisor_cls, installer_cls, capsys):
        installer_cls.return_value.create.return_value = CreateResult(
            vm_name="foo", ip="192.168.122.57", login_user="centos", log_file=str(home / "foo.log")
        )

        assert cli.main(["-n", "foo"]) == 0

        out = capsys.readouterr().out
        assert "ssh centos@192.168.122.57" in out
        assert "IP:   192.168.122.57" in out
        hypervisor_cls.assert_called_once_with("qemu:///system")
        cfg = installer_cls.call_args[0][0]
        assert cfg.vm_name == "foo"
        assert cfg.image_dir == home / "virt" / "images"
        hypervisor_cls.return_value.close.assert_called_once()

    def test_missing_ssh_key(self, home, hypervisor_cls):
        (home / ".ssh" / "id_rsa.pub").unlink()
        assert cli.main(["-n", "foo"]) == 3
        hypervisor_cls.return_value.close.assert_called_once()

    def test_declined_overwrite(self, home, hypervisor_cls):
        hv = hypervisor_cls.return_value
        hv.domain_status.return_value = DomainStatus(DomainState.EXISTS)
        images = home / "virt" / "images"
        images.mkdir(parents=True)
        (images / "CentOS-7-x86_64-GenericCloud.qcow2").write_bytes(b"base")

        with patch("builtins.input", return_value="N"):
            assert cli.main(["-n", "foo"]) == 1

        hv.teardown.assert_not_called()
        hv.install.assert_not_called()

    def test_runtime_failure(self, home, hypervisor_cls, installer_cls, capsys):
        installer_cls.return_value.create.side_effect = DownloadError("HTTP error downloading x: 404 Not Found")
        assert cli.main(["-n", "foo"]) == 1
        assert "404 Not Found" in capsys.readouterr().out

    def test_interrupt(self, home, hypervisor_cls, installer_cls):
        installer_cls.return_value.create.side_effect = KeyboardInterrupt
        assert cli.main(["-n", "foo"]) == 130
        hypervisor_cls.return_value.close.assert_called_once()

    def test_unexpected_error(self, home, hypervisor_cls, installer_cls, capsys):
        installer_cls.return_value.create.side_effect = ValueError("kaboom")
        assert cli.main(["-n", "foo"]) == 1
        captured = capsys.readouterr()
        assert "Unexpected error: kaboom" in captured.out
        assert "Traceback" in captured.err

    def test_flags_reach_config(self, home, hypervisor_cls, installer_cls):
        installer_cls.return_value.create.side_effect = OverwriteDeclined("no")
        cli.main(["-n", "foo", "-c", "2", "-m", "2048", "-d", "30", "-t", "debian8", "-b", "br0", "-w", "60", "-y"])
        cfg = installer_cls.call_args[0][0]
        assert (cfg.vcpus, cfg.memory_mb, cfg.disk_size_gb, cfg.resize_disk) == (2, 2048, 30, True)
        assert cfg.distro.value == "debian8"
        assert cfg.bridge == "br0"
        assert cfg.lease_timeout == 60.0
        assert cfg.assume_yes is True

    def test_libvirt_uri_from_environment(self, home, hypervisor_cls, installer_cls, monkeypatch):
        monkeypatch.setenv("LIBVIRT_URI", "qemu+ssh://kvmhost/system")
        installer_cls.return_value.create.return_value = CreateResult("foo", "10.0.0.2", "centos", "foo.log")
        assert cli.main(["-n", "foo"]) == 0
        hypervisor_cls.assert_called_once_with("qemu+ssh://kvmhost/system")


class TestDelete:
    def test_delete(self, home, hypervisor_cls, installer_cls):
        installer_cls.return_value.delete.return_value = []
        assert cli.main(["-r", "foo"]) == 0
        installer_cls.return_value.delete.assert_called_once()
        installer_cls.return_value.create.assert_not_called()
        assert installer_cls.call_args[0][0].target == "foo"

    def test_delete_with_real_installer(self, home, hypervisor_cls):
        hv = hypervisor_cls.return_value
        hv.teardown.return_value = []
        assert cli.main(["-r", "foo"]) == 0
        hv.teardown.assert_called_once_with("foo", home / "virt" / "images" / "foo")

    @pytest.mark.parametrize("name", ["/", ".."])
    def test_delete_refuses_paths_outside_image_dir(self, home, hypervisor_cls, name):
        assert cli.main(["-r", name]) == 2
        hypervisor_cls.assert_not_called()
        assert home.exists()
