"""QEMU command-line assembly for qemuctl."""

from __future__ import annotations

from typing import List, Optional

from qemuctl.constants import ARCH_PROFILES, GUEST_SSH_PORT, NAT_HOST_PORT
from qemuctl.exceptions import UnsupportedArch
from qemuctl.models import ArchProfile, FirmwarePair, LaunchParams


def arch_profile(arch: str) -> ArchProfile:
    profile = ARCH_PROFILES.get(arch)
    if profile is None:
        supported = ", ".join(sorted(ARCH_PROFILES))
        raise UnsupportedArch(f"No default QEMU options for arch '{arch}'. Supported: {supported}")
    return profile


def qemu_binary(arch: str) -> str:
    return f"qemu-system-{arch}"


def default_options(profile: ArchProfile, accel: bool) -> List[str]:
    cpu = profile.cpu if accel else profile.tcg_cpu
    return ["-cpu", cpu, "-machine", profile.machine, "-smp", str(profile.smp)]


def nat_network_args() -> List[str]:
    return [
        "-netdev",
        f"id=net00,type=user,hostfwd=tcp::{NAT_HOST_PORT}-:{GUEST_SSH_PORT}",
        "-device",
        "virtio-net-pci,netdev=net00",
    ]


def tap_network_args(tap_device: str, mac_address: str) -> List[str]:
    return [
        "-netdev",
        f"tap,id=net0,ifname={tap_device},script=no,downscript=no",
        "-device",
        f"e1000,netdev=net0,mac={mac_address}",
    ]


def pflash_args(firmware: FirmwarePair) -> List[str]:
    return [
        "-drive",
        f"if=pflash,format=raw,file={firmware.code},readonly=on",
        "-drive",
        f"if=pflash,format=raw,file={firmware.vars}",
    ]


def build_qemu_args(
    params: LaunchParams,
    firmware: Optional[FirmwarePair] = None,
    accel: bool = False,
    mac_address: Optional[str] = None,
) -> List[str]:
    """Assemble the argument list for ``qemu-system-<arch>``.

    ``firmware`` must be the staged pair whenever ``params.uefi`` is set, and
    ``mac_address`` is required for tap-backed networking.
    """
    profile = arch_profile(params.arch)
    args = default_options(profile, accel)
    args += ["-m", str(params.memory), "-nographic"]

    if not params.no_snapshot:
        args.append("-snapshot")

    if accel:
        args.append("-enable-kvm")

    if params.tap_device:
        if not mac_address:
            raise ValueError("mac_address is required for tap networking")
        args += tap_network_args(params.tap_device, mac_address)
    else:
        args += nat_network_args()

    if params.uefi:
        if firmware is None:
            raise ValueError("firmware must be staged when UEFI is enabled")
        args += pflash_args(firmware)

    args += [
        "-drive",
        f"if=virtio,format=qcow2,file={params.image_path}",
        "-drive",
        f"if=virtio,format=raw,file={params.seed_path},readonly=on",
    ]
    return args
