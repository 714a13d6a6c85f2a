"""CLI entry points for qemuctl."""

from __future__ import annotations

import argparse
import dataclasses
from pathlib import Path
from typing import List, Optional

from qemuctl.config import load_config, resolve_config_path
from qemuctl.constants import _SENSITIVE_FIELDS, STAGED_CODE_NAME, STAGED_VARS_NAME
from qemuctl.exceptions import ManagerError, UnknownNetwork
from qemuctl.images import cloud_image_source
from qemuctl.models import FirmwarePair, LaunchParams, RunConfig
from qemuctl.network import NetworkManager
from qemuctl.qemu import arch_profile, build_qemu_args, qemu_binary
from qemuctl.supervisor import Supervisor
from qemuctl.utils import kvm_hint, log

SCRATCH_PLACEHOLDER = Path("<scratch>")


def show_config(cfg: RunConfig) -> None:
    """Print the resolved machines and networks."""
    print("networks:")
    for name, net in cfg.networks.items():
        print(f"  {name}: type={net.type}")
    print("machines:")
    for name, spec in cfg.machines.items():
        print(f"  {name}:")
        for field in dataclasses.fields(spec):
            if field.name in ("name", "users"):
                continue
            print(f"    {field.name}: {getattr(spec, field.name)}")
        for username, user in spec.users.items():
            print(f"    user {username}:")
            for sub_field in dataclasses.fields(user):
                value = getattr(user, sub_field.name)
                if sub_field.name in _SENSITIVE_FIELDS and value:
                    value = "********"
                print(f"      {sub_field.name}: {value}")


def preview_command(name: str, cfg: RunConfig, network_manager: NetworkManager) -> List[str]:
    """Build the QEMU command a machine would get, using placeholder paths."""
    spec = cfg.machines[name]
    profile = arch_profile(spec.arch)
    if spec.network and spec.network not in cfg.networks:
        raise UnknownNetwork(f"Undefined network '{spec.network}'")
    if spec.image:
        image_path = Path(spec.image)
    else:
        filename, _ = cloud_image_source(spec.suite or "", spec.arch)
        image_path = SCRATCH_PLACEHOLDER / filename
    tap_device = f"{network_manager.bridge_name(spec.network)}tap<n>" if spec.network else ""
    params = LaunchParams(
        image_path=image_path,
        seed_path=SCRATCH_PLACEHOLDER / "seed.img",
        arch=spec.arch,
        memory=spec.memory,
        uefi=spec.uefi,
        no_snapshot=not spec.snapshot,
        tap_device=tap_device,
    )
    firmware = None
    if spec.uefi:
        code = SCRATCH_PLACEHOLDER / STAGED_CODE_NAME if profile.fixed_store else profile.firmware.code
        firmware = FirmwarePair(code, SCRATCH_PLACEHOLDER / STAGED_VARS_NAME)
    mac = "52:54:00:xx:xx:xx" if tap_device else None
    return [qemu_binary(spec.arch)] + build_qemu_args(params, firmware, kvm_hint(spec.arch), mac)


def dry_run(cfg: RunConfig) -> int:
    """Print each machine's command; return 1 only if no machine could be previewed."""
    network_manager = NetworkManager()
    for name in cfg.networks:
        log("INFO", f"Network {name}: bridge {network_manager.bridge_name(name)}")
    failed = 0
    for name, spec in cfg.machines.items():
        accel = "KVM" if kvm_hint(spec.arch) else "TCG"
        log("INFO", f"Machine {name}: arch={spec.arch} memory={spec.memory} uefi={spec.uefi} accel={accel}")
        try:
            cmd = preview_command(name, cfg, network_manager)
        except ManagerError as exc:
            log("ERROR", f"[{name}] {exc}")
            failed += 1
            continue
        print("  " + " ".join(cmd), flush=True)
    log("INFO", "=== Dry-run complete (no VM started) ===")
    return 1 if cfg.machines and failed == len(cfg.machines) else 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Launch short-lived QEMU virtual machines from a YAML file")
    parser.add_argument("--config", metavar="PATH", help="Path to the machines/networks YAML file")
    parser.add_argument("--show-config", action="store_true", help="Show resolved configuration and exit")
    parser.add_argument("--dry-run", action="store_true", help="Print the QEMU command for each machine, then exit")
    args = parser.parse_args(argv)

    config_path = resolve_config_path(args.config)
    try:
        cfg = load_config(config_path)
    except ManagerError as exc:
        log("ERROR", str(exc))
        return 1

    if args.show_config:
        show_config(cfg)
        return 0

    if args.dry_run:
        return dry_run(cfg)

    if not cfg.machines:
        log("WARN", f"No machines declared in {config_path}")

    try:
        return Supervisor(cfg).run()
    except ManagerError as exc:
        log("ERROR", f"Network setup failed: {exc}")
        return 1
