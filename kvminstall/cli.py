"""CLI entry points for kvm-install-vm."""

from __future__ import annotations

import argparse
import sys
import traceback
from typing import List, Optional

from kvminstall.config import resolve_config
from kvminstall.exceptions import ManagerError
from kvminstall.hypervisor import Hypervisor
from kvminstall.models import Distro, RunConfig
from kvminstall.orchestrator import CreateResult, Installer
from kvminstall.utils import log, set_verbose

EPILOG = """\
examples:
  kvm-install-vm -n foo                  create 'foo' with the defaults
  kvm-install-vm -d 20 -t debian8 -n foo create a Debian 8 VM with a 20G disk
  kvm-install-vm -r foo                  destroy 'foo' and remove its files
"""


class UsageParser(argparse.ArgumentParser):
    """Argument parser that reports bad flags with the usage text and status 1."""

    def error(self, message: str) -> None:  # type: ignore[override]
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


def build_parser() -> UsageParser:
    parser = UsageParser(
        prog="kvm-install-vm",
        description="Provision or destroy a libvirt/KVM virtual machine configured by cloud-init.",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        add_help=False,
    )
    distros = ", ".join(d.value for d in Distro)
    parser.add_argument("-n", dest="name", metavar="NAME", help="Create a VM with this name")
    parser.add_argument("-r", dest="delete", metavar="NAME", help="Delete the VM with this name")
    parser.add_argument("-c", dest="vcpus", metavar="VCPUS", help="Number of vCPUs (default: 1)")
    parser.add_argument("-m", dest="memory", metavar="MB", help="Memory in MB (default: 1024)")
    parser.add_argument("-d", dest="disk_size", metavar="GB", help="Disk size in GB (default: 10)")
    parser.add_argument("-t", dest="distro", metavar="DISTRO", help=f"Distribution: {distros} (default: centos7)")
    parser.add_argument("-l", dest="image_dir", metavar="DIR", help="Image directory (default: ~/virt/images)")
    parser.add_argument("-k", dest="pubkey", metavar="FILE", help="SSH public key (default: ~/.ssh/id_rsa.pub)")
    parser.add_argument("-b", dest="bridge", metavar="BRIDGE", help="Bridge to attach the NIC to (default: virbr0)")
    parser.add_argument("-i", dest="custom_image", metavar="IMAGE", help="Use this image instead of a distro image")
    parser.add_argument("-w", dest="timeout", metavar="SECONDS", help="Give up waiting for a lease after SECONDS")
    parser.add_argument("-y", dest="assume_yes", action="store_true", help="Overwrite an existing VM without asking")
    parser.add_argument("-v", dest="verbose", action="store_true", help="Show debug output")
    parser.add_argument("-h", dest="help", action="store_true", help="Show this help and exit")
    return parser


def print_report(cfg: RunConfig, result: CreateResult) -> None:
    """Print a visually distinct access-info banner after the VM has an address."""
    lines = [
        f"  VM:   {result.vm_name} ({cfg.distro.value if cfg.custom_image is None else cfg.custom_image})",
        f"  CPUs: {cfg.vcpus} | Memory: {cfg.memory_mb} MiB | Disk: {cfg.disk_size_gb}G",
        f"  IP:   {result.ip}",
        f"  User: {result.login_user}",
        f"  SSH:  ssh {result.login_user}@{result.ip}",
        f"  Log:  {result.log_file}",
    ]
    max_len = max(len(line) for line in lines)
    border_len = max_len + 2
    banner_colour = "\033[0;36m"
    reset = "\033[0m"
    print(f"{banner_colour}{'=' * border_len}{reset}", flush=True)
    for line in lines:
        print(f"{banner_colour}{line}{reset}", flush=True)
    print(f"{banner_colour}{'=' * border_len}{reset}", flush=True)


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.help:
        parser.print_help()
        return 1

    try:
        cfg = resolve_config(vars(args))
    except ManagerError as exc:
        log("ERROR", str(exc))
        return exc.exit_code
    set_verbose(cfg.verbose)

    hypervisor = Hypervisor(cfg.libvirt_uri)
    installer = Installer(cfg, hypervisor)
    try:
        if cfg.mode == "delete":
            installer.delete()
            return 0
        result = installer.create()
        print_report(cfg, result)
        return 0
    except KeyboardInterrupt:
        log("WARN", "Interrupted; the VM and its workspace may be left partially provisioned")
        return 130
    except ManagerError as exc:
        log("ERROR", str(exc))
        return exc.exit_code
    except Exception as exc:
        log("ERROR", f"Unexpected error: {exc}")
        traceback.print_exc()
        return 1
    finally:
        hypervisor.close()
