"""Utility functions for qemuctl."""

from __future__ import annotations

import os
import random
import shutil
import subprocess
import tempfile
import threading
import time
from pathlib import Path
from typing import List, Optional
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

try:
    import bcrypt  # type: ignore
except ImportError as exc:  # pragma: no cover
    raise SystemExit("bcrypt is required but not installed") from exc

from qemuctl.constants import (
    _LOG_VERBOSE,
    KVM_MODULE_PATH,
    MAC_PREFIX,
    TERMINATE_GRACE,
    TRUTHY,
)
from qemuctl.exceptions import DownloadError, ProcessError


def log(level: str, message: str) -> None:
    """Lightweight structured logging compatible with existing colour expectation."""
    if level == "DEBUG" and not _LOG_VERBOSE:
        return
    colours = {
        "INFO": "\033[0;34m",
        "WARN": "\033[1;33m",
        "ERROR": "\033[0;31m",
        "SUCCESS": "\033[0;32m",
        "DEBUG": "\033[0;90m",
    }
    colour = colours.get(level, "")
    reset = "\033[0m" if colour else ""
    print(f"{colour}[{level}]{reset} {message}", flush=True)


def get_env(name: str, default: Optional[str] = None) -> Optional[str]:
    return os.environ.get(name, default)


def get_env_bool(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.lower() in TRUTHY


def run(cmd: List[str], check: bool = True, **kwargs) -> subprocess.CompletedProcess:
    """Run command with logging."""
    log("DEBUG", f"Running: {' '.join(cmd)}")
    result = subprocess.run(cmd, check=check, text=True, **kwargs)
    return result


def run_process(
    cmd: List[str],
    cancel: Optional[threading.Event] = None,
    poll_interval: float = 0.5,
) -> int:
    """Run a long-lived program on the inherited stdio and return its exit status.

    When ``cancel`` is set while the program runs, it is terminated (killed
    after a grace period) and ``ProcessError`` is raised.
    """
    log("DEBUG", f"Running: {' '.join(cmd)}")
    try:
        proc = subprocess.Popen(cmd)
    except OSError as exc:
        raise ProcessError(f"Failed to start {cmd[0]}: {exc}") from exc

    while True:
        try:
            return proc.wait(timeout=poll_interval)
        except subprocess.TimeoutExpired:
            pass
        if cancel is not None and cancel.is_set():
            log("INFO", f"Stopping {cmd[0]} (PID {proc.pid})")
            proc.terminate()
            try:
                proc.wait(timeout=TERMINATE_GRACE)
            except subprocess.TimeoutExpired:
                proc.kill()
                proc.wait()
            raise ProcessError(f"{cmd[0]} was cancelled", returncode=proc.returncode)


def download_file(url: str, destination: Path) -> Path:
    """Download ``url`` to ``destination`` through a temporary file in the same directory."""
    log("INFO", f"Downloading {url}")
    req = Request(url, headers={"User-Agent": "qemuctl/0.1"})
    try:
        response = urlopen(req, timeout=60)
    except HTTPError as exc:
        raise DownloadError(f"HTTP error downloading {url}: {exc.code} {exc.reason}") from exc
    except URLError as exc:
        raise DownloadError(f"Failed to download {url}: {exc.reason}") from exc

    downloaded = 0
    start_time = time.time()
    with response, tempfile.NamedTemporaryFile(delete=False, dir=destination.parent) as tmp:
        tmp_path = Path(tmp.name)
        try:
            chunk_size = 1024 * 256  # 256 KiB
            while True:
                chunk = response.read(chunk_size)
                if not chunk:
                    break
                tmp.write(chunk)
                downloaded += len(chunk)
        except OSError as exc:
            tmp_path.unlink(missing_ok=True)
            raise DownloadError(f"Failed to download {url}: {exc}") from exc
    tmp_path.replace(destination)
    elapsed = time.time() - start_time
    log("SUCCESS", f"Downloaded {downloaded / (1024 * 1024):.1f} MiB in {elapsed:.1f}s")
    return destination


def host_arch() -> str:
    return os.uname().machine


def kvm_hint(vm_arch: str) -> bool:
    """Return True if the VM could run accelerated on this host.

    Only checks that the host architecture matches and that the kvm module
    appears loaded; it does not open /dev/kvm.
    """
    if host_arch() != vm_arch:
        return False
    return KVM_MODULE_PATH.exists()


def random_mac(seed: Optional[int] = None) -> str:
    """Generate a locally-administered MAC address with the qemu prefix."""
    rng = random.Random(time.time_ns() if seed is None else seed)
    octets = list(MAC_PREFIX)
    octets += [rng.randint(0x00, 0xFF) for _ in range(3)]
    return ":".join(f"{octet:02x}" for octet in octets)


def hash_password(password: str) -> str:
    """Generate a bcrypt hash for cloud-init."""
    hashed = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt())
    return hashed.decode("utf-8")


def create_blank_image(path: Path, size_mb: int) -> Path:
    """Create a zero-filled image of exactly ``size_mb`` MiB."""
    with open(path, "wb") as f:
        f.truncate(size_mb * 1024 * 1024)
    return path


def copy_into(src: Path, dst: Path) -> None:
    """Copy ``src`` over the start of ``dst`` without truncating it."""
    with open(src, "rb") as fin, open(dst, "r+b") as fout:
        shutil.copyfileobj(fin, fout)
