"""Per-machine VM launch orchestration for qemuctl."""

from __future__ import annotations

import shutil
import tempfile
import threading
import time
from pathlib import Path
from typing import List, Optional

from qemuctl.constants import ACCEL_FALLBACK_WINDOW, SUITE_VERSIONS, UBUNTU_ARCHES
from qemuctl.exceptions import ConfigError, DownloadError, ManagerError, ProcessError
from qemuctl.firmware import stage_firmware
from qemuctl.images import fetch_cloud_image
from qemuctl.models import FirmwarePair, LaunchParams, MachineSpec
from qemuctl.network import NetworkManager
from qemuctl.qemu import arch_profile, build_qemu_args, qemu_binary
from qemuctl.seed import build_seed
from qemuctl.utils import get_env, get_env_bool, kvm_hint, log, random_mac, run_process

IMAGE_USAGE = (
    "Set 'image' to a local disk image, or set 'suite' "
    f"({', '.join(sorted(SUITE_VERSIONS))}) and 'arch' ({', '.join(sorted(UBUNTU_ARCHES))})."
)


class VMLauncher:
    """Turns one MachineSpec into a running QEMU process.

    Everything the VM needs (downloaded image, seed, staged firmware) lives
    in a private scratch directory that is removed when ``launch`` returns.
    """

    def __init__(
        self,
        name: str,
        spec: MachineSpec,
        network_manager: NetworkManager,
        cancel: Optional[threading.Event] = None,
    ) -> None:
        self.name = name
        self.spec = spec
        self.network_manager = network_manager
        self.cancel = cancel
        self.step = "setup"
        self.scratch_dir: Optional[Path] = None

    def _log(self, level: str, message: str) -> None:
        log(level, f"[{self.name}] {message}")

    def launch(self) -> None:
        parent = get_env("QEMUCTL_TMPDIR") or None
        self.scratch_dir = Path(tempfile.mkdtemp(prefix=f"qemuctl-{self.name}-", dir=parent))
        self._log("DEBUG", f"Scratch directory {self.scratch_dir}")
        try:
            self._launch(self.scratch_dir)
        except ManagerError as exc:
            self._log("ERROR", f"{self.step} failed: {exc}")
            raise
        finally:
            try:
                shutil.rmtree(self.scratch_dir)
            except OSError:
                self._log("WARN", f"Failed to remove {self.scratch_dir}")

    def _launch(self, scratch_dir: Path) -> None:
        spec = self.spec
        self.step = "arch lookup"
        arch_profile(spec.arch)

        self.step = "image resolution"
        image_path = self._resolve_image(scratch_dir)

        self.step = "seed generation"
        seed_path = build_seed(scratch_dir, spec.users, hostname=self.name)

        tap_device = ""
        if spec.network:
            self.step = "tap allocation"
            tap_device = self.network_manager.new_tap_device(spec.network)

        params = LaunchParams(
            image_path=image_path,
            seed_path=seed_path,
            arch=spec.arch,
            memory=spec.memory,
            uefi=spec.uefi,
            no_snapshot=not spec.snapshot,
            custom_vars=Path(spec.uefi_vars) if spec.uefi_vars else None,
            tap_device=tap_device,
        )

        self.step = "acceleration check"
        accel = self._acceleration()

        firmware: Optional[FirmwarePair] = None
        if params.uefi:
            self.step = "firmware staging"
            firmware = stage_firmware(
                scratch_dir,
                params.arch,
                custom_vars=params.custom_vars,
                image_path=params.image_path,
                persist=params.no_snapshot,
            )

        mac_address = random_mac() if tap_device else None

        self.step = "vm execution"
        self._run_vm(params, firmware, accel, mac_address)

    def _resolve_image(self, scratch_dir: Path) -> Path:
        spec = self.spec
        if spec.image:
            image_path = Path(spec.image).expanduser()
            if not image_path.exists():
                raise ConfigError(f"Image not found: {image_path}")
            return image_path
        if not spec.suite or not spec.arch:
            raise ConfigError(f"No image specified and suite/arch incomplete. {IMAGE_USAGE}")
        try:
            return fetch_cloud_image(scratch_dir, spec.suite, spec.arch)
        except (ConfigError, DownloadError) as exc:
            raise ConfigError(f"Failed to obtain image for {spec.suite} {spec.arch}: {exc}. {IMAGE_USAGE}") from exc

    def _acceleration(self) -> bool:
        if kvm_hint(self.spec.arch):
            return True
        if get_env_bool("QEMUCTL_REQUIRE_KVM", False):
            raise ConfigError("QEMUCTL_REQUIRE_KVM=1 is set but KVM is not available for this machine")
        self._log("WARN", f"KVM not available for {self.spec.arch}; running under emulation (TCG)")
        return False

    def command(
        self,
        params: LaunchParams,
        firmware: Optional[FirmwarePair],
        accel: bool,
        mac_address: Optional[str],
    ) -> List[str]:
        return [qemu_binary(params.arch)] + build_qemu_args(params, firmware, accel, mac_address)

    def _run_vm(
        self,
        params: LaunchParams,
        firmware: Optional[FirmwarePair],
        accel: bool,
        mac_address: Optional[str],
    ) -> None:
        cmd = self.command(params, firmware, accel, mac_address)
        self._log("INFO", f"Starting: {' '.join(cmd)}")
        started = time.monotonic()
        returncode = run_process(cmd, self.cancel)
        if returncode == 0:
            self._log("SUCCESS", "VM exited")
            return

        cancelled = self.cancel is not None and self.cancel.is_set()
        if accel and not cancelled and time.monotonic() - started < ACCEL_FALLBACK_WINDOW:
            self._log("WARN", f"{cmd[0]} failed to start with KVM (status {returncode}); retrying under emulation")
            cmd = self.command(params, firmware, False, mac_address)
            self._log("INFO", f"Starting: {' '.join(cmd)}")
            returncode = run_process(cmd, self.cancel)
            if returncode == 0:
                self._log("SUCCESS", "VM exited")
                return

        raise ProcessError(f"{cmd[0]} exited with status {returncode}", returncode)
