"""Configuration loading for qemuctl."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional

try:
    import yaml  # type: ignore
except ImportError as exc:  # pragma: no cover
    raise SystemExit("PyYAML is required but not installed") from exc

from qemuctl.constants import ARCH_ALIASES, DEFAULT_CONFIG_PATH
from qemuctl.exceptions import ConfigError
from qemuctl.models import MachineSpec, NetworkSpec, RunConfig, UserConfig
from qemuctl.utils import get_env

SUPPORTED_NETWORK_TYPES = {"bridge"}


def resolve_config_path(explicit: Optional[str] = None) -> Path:
    if explicit:
        return Path(explicit)
    env_path = get_env("QEMUCTL_CONFIG")
    if env_path:
        return Path(env_path)
    return DEFAULT_CONFIG_PATH


def normalize_arch(raw: str) -> str:
    """Map arch aliases to their canonical name.

    Unknown names are returned as given; they fail the machine's own launch.
    """
    arch = str(raw).strip().lower()
    return ARCH_ALIASES.get(arch, arch)


def _as_bool(value: Any, label: str, default: bool) -> bool:
    if value is None:
        return default
    if not isinstance(value, bool):
        raise ConfigError(f"{label} must be true or false (got '{value}')")
    return value


def _as_list(value: Any, label: str) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ConfigError(f"{label} must be a string or a list of strings")
    return list(value)


def _parse_users(machine: str, raw: Any) -> Dict[str, UserConfig]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError(f"machines.{machine}.users must be a mapping of username to settings")
    users: Dict[str, UserConfig] = {}
    for username, settings in raw.items():
        settings = settings or {}
        if not isinstance(settings, dict):
            raise ConfigError(f"machines.{machine}.users.{username} must be a mapping")
        label = f"machines.{machine}.users.{username}"
        password = settings.get("password")
        users[str(username)] = UserConfig(
            password="" if password is None else str(password),
            ssh_import_id=_as_list(settings.get("ssh_import_id"), f"{label}.ssh_import_id"),
            ssh_keys=_as_list(settings.get("ssh_keys"), f"{label}.ssh_keys"),
        )
    return users


def parse_network(name: str, raw: Any) -> NetworkSpec:
    raw = raw or {}
    if not isinstance(raw, dict):
        raise ConfigError(f"networks.{name} must be a mapping")
    net_type = str(raw.get("type", "bridge")).strip().lower()
    if net_type not in SUPPORTED_NETWORK_TYPES:
        raise ConfigError(f"Unsupported type '{net_type}' for network '{name}'. Supported: bridge")
    return NetworkSpec(name=name, type=net_type)


def parse_machine(name: str, raw: Any) -> MachineSpec:
    """Build a MachineSpec from its YAML mapping.

    Only shape and types are checked here. Suite, arch and network names are
    resolved when the machine launches, so a bad entry fails that machine alone.
    """
    raw = raw or {}
    if not isinstance(raw, dict):
        raise ConfigError(f"machines.{name} must be a mapping")

    image = (str(raw.get("image") or "")).strip() or None
    suite = (str(raw.get("suite") or "")).strip().lower() or None
    arch = normalize_arch(raw.get("arch") or "x86_64")

    if image is None and (suite is None or not raw.get("arch")):
        raise ConfigError(f"Machine '{name}': set 'image', or both 'suite' and 'arch'")

    memory = raw.get("memory")
    if memory is None:
        memory = "2048"
    if isinstance(memory, bool) or not isinstance(memory, (str, int)):
        raise ConfigError(f"machines.{name}.memory must be a size such as 2048 or 4G (got '{memory}')")
    memory = str(memory).strip()
    if not memory:
        raise ConfigError(f"Machine '{name}': memory must not be empty")

    network = (str(raw.get("network") or "")).strip()

    uefi_vars = (str(raw.get("uefi_vars") or "")).strip() or None

    return MachineSpec(
        name=name,
        image=image,
        suite=suite,
        arch=arch,
        memory=memory,
        uefi=_as_bool(raw.get("uefi"), f"machines.{name}.uefi", False),
        snapshot=_as_bool(raw.get("snapshot"), f"machines.{name}.snapshot", True),
        network=network,
        uefi_vars=uefi_vars,
        users=_parse_users(name, raw.get("users")),
    )


def parse_config(data: Any) -> RunConfig:
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError("Configuration must be a mapping with 'machines' and 'networks' keys")

    raw_networks = data.get("networks", data.get("network")) or {}
    if not isinstance(raw_networks, dict):
        raise ConfigError("'networks' must be a mapping of network name to settings")
    networks = {str(name): parse_network(str(name), raw) for name, raw in raw_networks.items()}

    raw_machines = data.get("machines") or {}
    if not isinstance(raw_machines, dict):
        raise ConfigError("'machines' must be a mapping of machine name to settings")
    machines = {str(name): parse_machine(str(name), raw) for name, raw in raw_machines.items()}

    return RunConfig(machines=machines, networks=networks)


def load_config(config_path: Optional[Path] = None) -> RunConfig:
    if config_path is None:
        config_path = resolve_config_path()
    if not config_path.exists():
        raise ConfigError(f"Configuration file missing: {config_path}")
    try:
        data = yaml.safe_load(config_path.read_text())
    except yaml.YAMLError as exc:
        raise ConfigError(f"{config_path} contains invalid YAML: {exc}") from exc
    except OSError as exc:
        raise ConfigError(f"Cannot read {config_path}: {exc}") from exc
    return parse_config(data)
