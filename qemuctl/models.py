"""Data models for qemuctl."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, NamedTuple, Optional


class FirmwarePair(NamedTuple):
    code: Path
    vars: Path


@dataclass(frozen=True)
class ArchProfile:
    name: str
    machine: str
    cpu: str  # used with hardware acceleration
    tcg_cpu: str  # used under pure emulation
    smp: int
    firmware: FirmwarePair
    # Size of the blank variable store; None means the template is copied as-is.
    fixed_store_mb: Optional[int] = None

    @property
    def fixed_store(self) -> bool:
        return self.fixed_store_mb is not None


@dataclass
class UserConfig:
    password: str = ""
    ssh_import_id: List[str] = field(default_factory=list)
    ssh_keys: List[str] = field(default_factory=list)


@dataclass
class MachineSpec:
    name: str
    image: Optional[str] = None
    suite: Optional[str] = None
    arch: str = "x86_64"
    memory: str = "2048"
    uefi: bool = False
    snapshot: bool = True
    network: str = ""
    uefi_vars: Optional[str] = None
    users: Dict[str, UserConfig] = field(default_factory=dict)


@dataclass
class NetworkSpec:
    name: str
    type: str = "bridge"


@dataclass
class RunConfig:
    machines: Dict[str, MachineSpec] = field(default_factory=dict)
    networks: Dict[str, NetworkSpec] = field(default_factory=dict)


@dataclass
class LaunchParams:
    image_path: Path
    seed_path: Path
    arch: str
    memory: str
    uefi: bool
    no_snapshot: bool
    custom_vars: Optional[Path] = None
    tap_device: str = ""


@dataclass
class LaunchResult:
    name: str
    ok: bool
    error: Optional[str] = None
