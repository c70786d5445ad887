"""Base image lookup and download for kvm-install-vm."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from kvminstall.constants import CUSTOM_IMAGE_LOGIN_USER, CUSTOM_IMAGE_OS_VARIANT, IMAGE_SPECS
from kvminstall.exceptions import ConfigError, UnsupportedDistroError
from kvminstall.models import Distro, ImageSpec, ResolvedImage
from kvminstall.utils import download_file, ensure_directory, log


def lookup_image(distro: Distro) -> ImageSpec:
    try:
        return IMAGE_SPECS[Distro(distro)]
    except (KeyError, ValueError):
        supported = ", ".join(d.value for d in IMAGE_SPECS)
        raise UnsupportedDistroError(f"Unsupported distribution '{distro}'. Supported: {supported}")


class ImageProvider:
    """Resolve a base image for a distribution, downloading it once into the image directory."""

    def __init__(self, image_dir: Path, downloader=download_file) -> None:
        self.image_dir = image_dir
        self._download = downloader

    def resolve(self, distro: Distro, custom_image: Optional[Path] = None) -> ResolvedImage:
        if custom_image is not None:
            if not custom_image.is_file():
                raise ConfigError(f"Custom image not found: {custom_image}")
            log("INFO", f"Using custom image {custom_image}")
            return ResolvedImage(
                path=custom_image,
                os_variant=CUSTOM_IMAGE_OS_VARIANT,
                login_user=CUSTOM_IMAGE_LOGIN_USER,
                package_manager=None,
            )

        spec = lookup_image(distro)
        ensure_directory(self.image_dir)
        image_path = self.image_dir / spec.filename
        if image_path.exists():
            # No checksum: a stale or truncated cached image is the operator's to remove
            log("INFO", f"Using cached image: {image_path}")
        else:
            self._download(spec.url, image_path, label="Downloading base image")
        return ResolvedImage(
            path=image_path,
            os_variant=spec.os_variant,
            login_user=spec.login_user,
            package_manager=spec.package_manager,
        )
