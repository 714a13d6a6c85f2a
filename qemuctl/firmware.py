"""UEFI firmware staging for qemuctl.

The canonical firmware templates under /usr/share are shared by every VM
and are never handed to QEMU as a writable drive. Each VM gets either a
blank fixed-size variable store (aarch64) or a private copy of the
template (x86_64) inside its scratch directory.
"""

from __future__ import annotations

import shutil
from pathlib import Path
from typing import Optional

from qemuctl.constants import (
    FIRMWARE_PACKAGES,
    FIRMWARE_VARS_SIDECAR,
    STAGED_CODE_NAME,
    STAGED_VARS_NAME,
)
from qemuctl.exceptions import StagingError
from qemuctl.models import ArchProfile, FirmwarePair
from qemuctl.qemu import arch_profile
from qemuctl.utils import copy_into, create_blank_image, log


def sidecar_vars_path(image_path: Path) -> Path:
    """Return where a persistent disk keeps its firmware variables."""
    return image_path.parent / FIRMWARE_VARS_SIDECAR


def _check_templates(profile: ArchProfile, custom_vars: Optional[Path]) -> None:
    package = FIRMWARE_PACKAGES.get(profile.name, "the UEFI firmware package")
    if not profile.firmware.code.exists():
        raise StagingError(
            f"Firmware code not found at {profile.firmware.code} for {profile.name}. Install '{package}'."
        )
    if custom_vars is not None:
        if not custom_vars.is_file():
            raise StagingError(f"Custom firmware vars file not found: {custom_vars}")
    elif not profile.fixed_store and not profile.firmware.vars.exists():
        raise StagingError(
            f"Firmware vars template not found at {profile.firmware.vars} for {profile.name}. Install '{package}'."
        )


def _stage_code(scratch_dir: Path, profile: ArchProfile) -> Path:
    if not profile.fixed_store:
        # Read-only, so the shared template can be attached directly.
        return profile.firmware.code
    staged = create_blank_image(scratch_dir / STAGED_CODE_NAME, profile.fixed_store_mb)
    copy_into(profile.firmware.code, staged)
    return staged


def _stage_vars(scratch_dir: Path, profile: ArchProfile, custom_vars: Optional[Path]) -> Path:
    staged = scratch_dir / STAGED_VARS_NAME
    if profile.fixed_store:
        create_blank_image(staged, profile.fixed_store_mb)
        if custom_vars is not None:
            limit = profile.fixed_store_mb * 1024 * 1024
            if custom_vars.stat().st_size > limit:
                raise StagingError(
                    f"Custom firmware vars {custom_vars} exceeds the {profile.fixed_store_mb} MiB store"
                )
            copy_into(custom_vars, staged)
        return staged
    shutil.copyfile(custom_vars or profile.firmware.vars, staged)
    return staged


def stage_firmware(
    scratch_dir: Path,
    arch: str,
    custom_vars: Optional[Path] = None,
    image_path: Optional[Path] = None,
    persist: bool = False,
) -> FirmwarePair:
    """Prepare the pflash code and vars images for one VM.

    With ``persist`` set (disk snapshot mode off), no ``custom_vars`` and an
    ``image_path``, the variable store lives next to the disk image so boot
    entries survive relaunches: an existing sidecar is reused as-is,
    otherwise the freshly staged store is written there.
    """
    profile = arch_profile(arch)
    _check_templates(profile, custom_vars)
    use_sidecar = persist and custom_vars is None and image_path is not None

    try:
        code_path = _stage_code(scratch_dir, profile)
        if use_sidecar:
            sidecar = sidecar_vars_path(image_path)
            if sidecar.exists():
                log("INFO", f"Reusing firmware variables {sidecar}")
                return FirmwarePair(code_path, sidecar)
            staged_vars = _stage_vars(scratch_dir, profile, None)
            shutil.copyfile(staged_vars, sidecar)
            log("INFO", f"Saved firmware variables to {sidecar}")
            return FirmwarePair(code_path, sidecar)
        return FirmwarePair(code_path, _stage_vars(scratch_dir, profile, custom_vars))
    except OSError as exc:
        raise StagingError(f"Failed to stage {arch} firmware: {exc}") from exc
