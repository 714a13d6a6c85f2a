"""Custom exceptions for qemuctl."""

from __future__ import annotations

from typing import Optional


class ManagerError(RuntimeError):
    """Raised on unrecoverable configuration or runtime errors."""


class ConfigError(ManagerError):
    """Machine or network specification is missing or inconsistent."""


class UnknownNetwork(ManagerError):
    """A tap device was requested on a network that was never started."""


class UnsupportedArch(ManagerError):
    """No default option set exists for the requested architecture."""


class StagingError(ManagerError):
    """A file or image could not be staged into the scratch directory."""


class DownloadError(ManagerError):
    """A remote image could not be fetched."""


class SeedToolError(ManagerError):
    """The seed-image tool failed to build the cloud-init medium."""


class ProcessError(ManagerError):
    """An external program could not be started or exited non-zero."""

    def __init__(self, message: str, returncode: Optional[int] = None) -> None:
        super().__init__(message)
        self.returncode = returncode
