"""Global constants and path configuration for qemuctl."""

from __future__ import annotations

import os
from pathlib import Path

from qemuctl.models import ArchProfile, FirmwarePair

DEFAULT_CONFIG_PATH = Path("qemuctl.yaml")
TRUTHY = {"1", "true", "yes", "on"}

_LOG_VERBOSE = os.environ.get("LOG_VERBOSE", "").lower() in TRUTHY

# Bridges are named <prefix><network>, taps <prefix><network>tap<index>.
BRIDGE_PREFIX = os.environ.get("QEMUCTL_BRIDGE_PREFIX", "qemuctl")
IFNAME_MAX_LEN = 15

NAT_HOST_PORT = 2222
GUEST_SSH_PORT = 22
MAC_PREFIX = (0x52, 0x54, 0x00)  # qemu prefix

# Presence of the loaded kvm module; a hint, not a capability probe.
KVM_MODULE_PATH = Path("/sys/module/kvm")
ACCEL_FALLBACK_WINDOW = 5.0  # seconds
TERMINATE_GRACE = 10.0  # seconds

# Per-VM staged firmware inside the scratch directory.
STAGED_CODE_NAME = "UEFI_CODE.img"
STAGED_VARS_NAME = "UEFI_VARS.img"
# Variable store kept next to a persistent disk image.
FIRMWARE_VARS_SIDECAR = "EFI_VARS.fd"

SEED_IMAGE_NAME = "seed.img"
SEED_TOOL = "cloud-localds"

ARCH_PROFILES = {
    "x86_64": ArchProfile(
        name="x86_64",
        machine="q35",
        cpu="host",
        tcg_cpu="max",
        smp=4,
        firmware=FirmwarePair(
            code=Path("/usr/share/OVMF/OVMF_CODE_4M.secboot.fd"),
            vars=Path("/usr/share/OVMF/OVMF_VARS_4M.ms.fd"),
        ),
    ),
    "aarch64": ArchProfile(
        name="aarch64",
        machine="virt",
        cpu="max",
        tcg_cpu="max",
        smp=4,
        firmware=FirmwarePair(
            code=Path("/usr/share/qemu-efi-aarch64/QEMU_EFI.fd"),
            vars=Path("/usr/share/qemu-efi-aarch64/QEMU_EFI.fd"),
        ),
        fixed_store_mb=64,
    ),
}

FIRMWARE_PACKAGES = {
    "x86_64": "ovmf",
    "aarch64": "qemu-efi-aarch64",
}

ARCH_ALIASES = {
    "amd64": "x86_64",
    "arm64": "aarch64",
}

SUITE_VERSIONS = {
    "bionic": "18.04",
    "focal": "20.04",
    "impish": "21.10",
    "jammy": "22.04",
    "noble": "24.04",
}

UBUNTU_ARCHES = {
    "aarch64": "arm64",
    "x86_64": "amd64",
}

CLOUD_IMAGE_URL = "http://cloud-images.ubuntu.com/releases/{suite}/release/{filename}"
CLOUD_IMAGE_NAME = "ubuntu-{version}-server-cloudimg-{arch}.img"

_SENSITIVE_FIELDS = {"password"}
