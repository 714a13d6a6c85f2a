"""cloud-init seed image generation for qemuctl."""

from __future__ import annotations

import subprocess
import textwrap
from pathlib import Path
from typing import Dict, List

try:
    import yaml  # type: ignore
except ImportError as exc:  # pragma: no cover
    raise SystemExit("PyYAML is required but not installed") from exc

from qemuctl.constants import SEED_IMAGE_NAME, SEED_TOOL
from qemuctl.exceptions import SeedToolError, StagingError
from qemuctl.models import UserConfig
from qemuctl.utils import hash_password, run

DEFAULT_USER = "default"


def _merged(values: List[List[str]]) -> List[str]:
    merged: List[str] = []
    for items in values:
        for item in items:
            if item not in merged:
                merged.append(item)
    return merged


def _primary_password(users: Dict[str, UserConfig]) -> str:
    """Password for the image's default account.

    Without a ``default`` user, the first named user's password is used, so that
    account and the default login share it.
    """
    default = users.get(DEFAULT_USER)
    if default is not None and default.password:
        return default.password
    for user in users.values():
        if user.password:
            return user.password
    return ""


def build_user_data(users: Dict[str, UserConfig]) -> Dict[str, object]:
    """Build the #cloud-config document for a machine's declared users.

    Top-level directives configure the image's default login account. Users
    other than ``default`` are additionally created as named accounts.
    """
    doc: Dict[str, object] = {}

    password = _primary_password(users)
    if password:
        doc["password"] = password
        doc["chpasswd"] = {"expire": False}
        doc["ssh_pwauth"] = True

    import_ids = _merged([user.ssh_import_id for user in users.values()])
    if import_ids:
        doc["ssh_import_id"] = import_ids

    keys = _merged([user.ssh_keys for user in users.values()])
    if keys:
        doc["ssh_authorized_keys"] = keys

    accounts: List[object] = []
    for name, user in users.items():
        if name == DEFAULT_USER:
            continue
        account: Dict[str, object] = {
            "name": name,
            "shell": "/bin/bash",
            "sudo": "ALL=(ALL) NOPASSWD:ALL",
        }
        if user.password:
            account["lock_passwd"] = False
            account["passwd"] = hash_password(user.password)
        if user.ssh_import_id:
            account["ssh_import_id"] = list(user.ssh_import_id)
        if user.ssh_keys:
            account["ssh_authorized_keys"] = list(user.ssh_keys)
        accounts.append(account)
    if accounts:
        doc["users"] = [DEFAULT_USER] + accounts

    return doc


def render_user_data(doc: Dict[str, object]) -> str:
    if not doc:
        return "#cloud-config\n"
    return "#cloud-config\n" + yaml.safe_dump(doc, sort_keys=False, default_flow_style=False)


def render_meta_data(hostname: str) -> str:
    return (
        textwrap.dedent(
            f"""
            instance-id: iid-{hostname}
            local-hostname: {hostname}
            """
        ).strip()
        + "\n"
    )


def build_seed(scratch_dir: Path, users: Dict[str, UserConfig], hostname: str) -> Path:
    """Write user-data/meta-data and pack them into a NoCloud seed image."""
    user_data = scratch_dir / "user-data.yaml"
    meta_data = scratch_dir / "meta-data.yaml"
    seed_path = scratch_dir / SEED_IMAGE_NAME
    try:
        user_data.write_text(render_user_data(build_user_data(users)), encoding="utf-8")
        meta_data.write_text(render_meta_data(hostname), encoding="utf-8")
    except OSError as exc:
        raise StagingError(f"Failed to write cloud-init data: {exc}") from exc

    cmd = [SEED_TOOL, str(seed_path), str(user_data), str(meta_data)]
    try:
        run(cmd)
    except FileNotFoundError as exc:
        raise SeedToolError(f"{SEED_TOOL} not found. Install cloud-image-utils.") from exc
    except subprocess.CalledProcessError as exc:
        raise SeedToolError(f"{SEED_TOOL} failed with status {exc.returncode}") from exc
    return seed_path
