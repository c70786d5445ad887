"""Global constants and defaults for kvm-install-vm."""

from __future__ import annotations

from pathlib import Path

from kvminstall.models import Distro, ImageSpec

DEFAULT_VCPUS = 1
DEFAULT_MEMORY_MB = 1024
DEFAULT_DISK_SIZE_GB = 10
DEFAULT_DISTRO = Distro.CENTOS7
DEFAULT_IMAGE_DIR = Path("virt") / "images"  # relative to $HOME
DEFAULT_PUBKEY = Path(".ssh") / "id_rsa.pub"  # relative to $HOME
DEFAULT_BRIDGE = "virbr0"
DEFAULT_LIBVIRT_URI = "qemu:///system"
DEFAULT_LEASE_DIR = Path("/var/lib/libvirt/dnsmasq")
DEFAULT_LEASE_INTERVAL = 1.0

DNS_DOMAIN = "example.local"
CLOUD_INIT_LOG = "/var/log/cloud-init.log"
# cloud-init's NoCloud datasource only recognises this volume label
SEED_VOLUME_ID = "cidata"
CUSTOM_IMAGE_OS_VARIANT = "auto"
CUSTOM_IMAGE_LOGIN_USER = "<login user of the custom image>"

TRUTHY = {"1", "true", "yes", "on"}
AFFIRMATIVE = {"y", "yes"}

IMAGE_SPECS = {
    Distro.CENTOS7: ImageSpec(
        filename="CentOS-7-x86_64-GenericCloud.qcow2",
        url="https://cloud.centos.org/centos/7/images/CentOS-7-x86_64-GenericCloud.qcow2",
        os_variant="centos7.0",
        login_user="centos",
        package_manager="yum",
    ),
    Distro.CENTOS6: ImageSpec(
        filename="CentOS-6-x86_64-GenericCloud.qcow2",
        url="https://cloud.centos.org/centos/6/images/CentOS-6-x86_64-GenericCloud.qcow2",
        os_variant="centos6.9",
        login_user="centos",
        package_manager="yum",
    ),
    Distro.DEBIAN8: ImageSpec(
        filename="debian-8-openstack-amd64.qcow2",
        url="https://cdimage.debian.org/cdimage/openstack/current-8/debian-8-openstack-amd64.qcow2",
        os_variant="debian8",
        login_user="debian",
        package_manager="apt-get",
    ),
}

# Partition grown by virt-resize; the supported cloud images keep / on the first one
RESIZE_PARTITION = "/dev/sda1"
