"""Shared test fixtures."""

from __future__ import annotations

import dataclasses
from types import SimpleNamespace

import pytest
import yaml

from qemuctl.constants import ARCH_PROFILES
from qemuctl.models import FirmwarePair, MachineSpec, UserConfig


@pytest.fixture
def machine_spec(tmp_path) -> MachineSpec:
    """Return a NAT-networked x86_64 machine booting a local image."""
    image = tmp_path / "images" / "disk.qcow2"
    image.parent.mkdir(parents=True, exist_ok=True)
    image.write_bytes(b"qcow2")
    return MachineSpec(
        name="test-vm",
        image=str(image),
        arch="x86_64",
        memory="2048",
        users={"default": UserConfig(password="password")},
    )


@pytest.fixture
def firmware_templates(tmp_path, monkeypatch):
    """Point the arch profiles at small firmware templates under tmp_path."""
    fw_dir = tmp_path / "firmware"
    fw_dir.mkdir()
    x86_code = fw_dir / "OVMF_CODE_4M.secboot.fd"
    x86_code.write_bytes(b"\x01" * 4096)
    x86_vars = fw_dir / "OVMF_VARS_4M.ms.fd"
    x86_vars.write_bytes(b"\x02" * 2048)
    arm_code = fw_dir / "QEMU_EFI.fd"
    arm_code.write_bytes(b"\x03" * 8192)

    monkeypatch.setitem(
        ARCH_PROFILES,
        "x86_64",
        dataclasses.replace(ARCH_PROFILES["x86_64"], firmware=FirmwarePair(x86_code, x86_vars)),
    )
    monkeypatch.setitem(
        ARCH_PROFILES,
        "aarch64",
        dataclasses.replace(ARCH_PROFILES["aarch64"], firmware=FirmwarePair(arm_code, arm_code)),
    )
    return SimpleNamespace(x86_code=x86_code, x86_vars=x86_vars, arm_code=arm_code)


@pytest.fixture
def scratch_root(tmp_path, monkeypatch):
    """Create scratch directories under tmp_path instead of the system temp dir."""
    root = tmp_path / "scratch"
    root.mkdir()
    monkeypatch.setenv("QEMUCTL_TMPDIR", str(root))
    return root


@pytest.fixture
def write_config(tmp_path):
    """Write a mapping to a YAML config file and return its path."""

    def _write(data) -> object:
        path = tmp_path / "qemuctl.yaml"
        path.write_text(yaml.safe_dump(data))
        return path

    return _write


@pytest.fixture
def clean_env(monkeypatch):
    for key in ("QEMUCTL_CONFIG", "QEMUCTL_TMPDIR", "QEMUCTL_REQUIRE_KVM", "LOG_VERBOSE"):
        monkeypatch.delenv(key, raising=False)
