"""Boot image resolution for qemuctl."""

from __future__ import annotations

from pathlib import Path
from typing import Tuple

from qemuctl.constants import (
    CLOUD_IMAGE_NAME,
    CLOUD_IMAGE_URL,
    SUITE_VERSIONS,
    UBUNTU_ARCHES,
)
from qemuctl.exceptions import ConfigError
from qemuctl.utils import download_file


def cloud_image_source(suite: str, arch: str) -> Tuple[str, str]:
    """Return the (filename, url) of the Ubuntu cloud image for ``suite``/``arch``."""
    version = SUITE_VERSIONS.get(suite)
    if version is None:
        raise ConfigError(f"No Ubuntu release known for suite '{suite}'")
    ubuntu_arch = UBUNTU_ARCHES.get(arch)
    if ubuntu_arch is None:
        raise ConfigError(f"No Ubuntu cloud image published for arch '{arch}'")
    filename = CLOUD_IMAGE_NAME.format(version=version, arch=ubuntu_arch)
    return filename, CLOUD_IMAGE_URL.format(suite=suite, filename=filename)


def fetch_cloud_image(dest_dir: Path, suite: str, arch: str) -> Path:
    filename, url = cloud_image_source(suite, arch)
    return download_file(url, dest_dir / filename)
