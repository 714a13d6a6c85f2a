"""qemuctl package."""

__all__ = [
    "cli",
    "config",
    "constants",
    "exceptions",
    "firmware",
    "images",
    "launcher",
    "models",
    "network",
    "qemu",
    "seed",
    "supervisor",
    "utils",
]
