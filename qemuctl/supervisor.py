"""Concurrent launch of every declared machine."""

from __future__ import annotations

import signal
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import List, Optional

from qemuctl.exceptions import ManagerError
from qemuctl.launcher import VMLauncher
from qemuctl.models import LaunchResult, MachineSpec, RunConfig
from qemuctl.network import NetworkManager
from qemuctl.utils import log


class Supervisor:
    """Sets up networks once, then runs one launch task per machine.

    Network setup failures propagate to the caller. A failed machine is
    recorded in its LaunchResult and never affects its siblings.
    """

    def __init__(self, config: RunConfig, network_manager: Optional[NetworkManager] = None) -> None:
        self.config = config
        self.network_manager = network_manager or NetworkManager()
        self.cancel = threading.Event()

    def request_stop(self, signum=None, frame=None) -> None:
        if signum is not None:
            log("INFO", f"{signal.Signals(signum).name} received, stopping VMs")
        self.cancel.set()

    def _launch_one(self, name: str, spec: MachineSpec) -> LaunchResult:
        launcher = VMLauncher(name, spec, self.network_manager, self.cancel)
        try:
            launcher.launch()
        except ManagerError as exc:
            return LaunchResult(name=name, ok=False, error=f"{launcher.step}: {exc}")
        except Exception as exc:
            log("ERROR", f"[{name}] Unexpected error during {launcher.step}: {exc!r}")
            return LaunchResult(name=name, ok=False, error=f"{launcher.step}: {exc!r}")
        return LaunchResult(name=name, ok=True)

    def launch_all(self) -> List[LaunchResult]:
        machines = self.config.machines
        if not machines:
            return []
        results: List[LaunchResult] = []
        with ThreadPoolExecutor(max_workers=len(machines), thread_name_prefix="qemuctl") as pool:
            futures = [pool.submit(self._launch_one, name, spec) for name, spec in machines.items()]
            for future in as_completed(futures):
                results.append(future.result())
        return results

    def run(self) -> int:
        """Start networks and machines; return the process exit status."""
        handlers_installed = threading.current_thread() is threading.main_thread()
        if handlers_installed:
            prev_sigterm = signal.signal(signal.SIGTERM, self.request_stop)
            prev_sigint = signal.signal(signal.SIGINT, self.request_stop)
        try:
            self.network_manager.start_networks(self.config.networks)
            log("INFO", f"Launching {len(self.config.machines)} machine(s)")
            results = self.launch_all()
        finally:
            if handlers_installed:
                signal.signal(signal.SIGTERM, prev_sigterm)
                signal.signal(signal.SIGINT, prev_sigint)
        return self.summarize(results)

    @staticmethod
    def summarize(results: List[LaunchResult]) -> int:
        for result in sorted(results, key=lambda r: r.name):
            if result.ok:
                log("SUCCESS", f"{result.name}: completed")
            else:
                log("ERROR", f"{result.name}: {result.error}")
        if results and not any(result.ok for result in results):
            return 1
        return 0
