"""Bridge and tap device management for qemuctl."""

from __future__ import annotations

import subprocess
import threading
from typing import Dict, List, Optional

from qemuctl.constants import BRIDGE_PREFIX, IFNAME_MAX_LEN
from qemuctl.exceptions import ConfigError, ManagerError, ProcessError, UnknownNetwork
from qemuctl.models import NetworkSpec
from qemuctl.utils import log, run


class NetworkManager:
    """Owns the host bridges and the tap devices allocated on each of them.

    One instance is shared by every launch task. Bridges and taps are never
    removed; they outlive the process and must be reclaimed externally.
    """

    def __init__(self, prefix: Optional[str] = None) -> None:
        self.prefix = BRIDGE_PREFIX if prefix is None else prefix
        self._bridges: Dict[str, List[str]] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._started = False

    def bridge_name(self, network: str) -> str:
        return f"{self.prefix}{network}"

    def tap_name(self, network: str, index: int) -> str:
        return f"{self.bridge_name(network)}tap{index}"

    def _ip(self, *args: str) -> None:
        cmd = ["ip", *args]
        try:
            run(cmd)
        except FileNotFoundError as exc:
            raise ProcessError("'ip' not found. Install iproute2.") from exc
        except subprocess.CalledProcessError as exc:
            raise ProcessError(f"{' '.join(cmd)} failed with status {exc.returncode}", exc.returncode) from exc

    @staticmethod
    def _check_ifname(name: str) -> None:
        if len(name) > IFNAME_MAX_LEN:
            raise ConfigError(f"Interface name '{name}' exceeds {IFNAME_MAX_LEN} characters; use a shorter network name")

    def start_networks(self, networks: Dict[str, NetworkSpec]) -> None:
        """Create one bridge per declared network; the first failure aborts."""
        if self._started:
            raise ManagerError("Networks already started")
        self._started = True
        for name in networks:
            # Taps carry the bridge name plus a tap<index> suffix.
            self._check_ifname(self.tap_name(name, 0))
        for name in networks:
            bridge = self.bridge_name(name)
            log("INFO", f"Creating bridge {bridge} for network '{name}'")
            self._ip("link", "add", bridge, "type", "bridge")
            self._ip("link", "set", "dev", bridge, "up")
            self._bridges[name] = []
            self._locks[name] = threading.Lock()

    def new_tap_device(self, network: str) -> str:
        """Create the next tap device on ``network`` and attach it to its bridge."""
        lock = self._locks.get(network)
        if lock is None:
            raise UnknownNetwork(f"Undefined network '{network}'")
        with lock:
            devices = self._bridges[network]
            name = self.tap_name(network, len(devices))
            self._check_ifname(name)
            self._ip("tuntap", "add", "dev", name, "mode", "tap")
            # The index is consumed once the device exists, even if wiring it fails.
            devices.append(name)
            self._ip("link", "set", "dev", name, "master", self.bridge_name(network))
            self._ip("link", "set", "dev", name, "up")
        log("INFO", f"Allocated tap {name} on bridge {self.bridge_name(network)}")
        return name

    def taps(self, network: str) -> List[str]:
        lock = self._locks.get(network)
        if lock is None:
            raise UnknownNetwork(f"Undefined network '{network}'")
        with lock:
            return list(self._bridges[network])
