"""Tests for qemuctl.config module."""

from __future__ import annotations

from pathlib import Path

import pytest

from qemuctl.config import load_config, normalize_arch, parse_config, resolve_config_path
from qemuctl.exceptions import ConfigError


@pytest.fixture
def full_config():
    return {
        "networks": {"lan": {"type": "bridge"}},
        "machines": {
            "web": {
                "image": "/images/web.qcow2",
                "memory": 4096,
                "uefi": True,
                "snapshot": False,
                "network": "lan",
                "users": {
                    "default": {
                        "password": "secret",
                        "ssh_import_id": ["gh:alice"],
                        "ssh_keys": "ssh-ed25519 AAAA alice",
                    }
                },
            },
            "cloud": {"suite": "jammy", "arch": "arm64"},
        },
    }


class TestLoadConfig:
    def test_full_config(self, write_config, full_config):
        cfg = load_config(write_config(full_config))
        assert list(cfg.networks) == ["lan"]
        web = cfg.machines["web"]
        assert web.name == "web"
        assert web.image == "/images/web.qcow2"
        assert web.memory == "4096"
        assert web.uefi is True
        assert web.snapshot is False
        assert web.network == "lan"
        assert web.users["default"].password == "secret"
        assert web.users["default"].ssh_import_id == ["gh:alice"]
        assert web.users["default"].ssh_keys == ["ssh-ed25519 AAAA alice"]
        cloud = cfg.machines["cloud"]
        assert cloud.image is None
        assert cloud.suite == "jammy"
        assert cloud.arch == "aarch64"
        assert cloud.snapshot is True
        assert cloud.network == ""

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="Configuration file missing"):
            load_config(tmp_path / "missing.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("machines: [unclosed")
        with pytest.raises(ConfigError, match="invalid YAML"):
            load_config(path)

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        cfg = load_config(path)
        assert cfg.machines == {}
        assert cfg.networks == {}


class TestParseConfig:
    def test_singular_network_key(self):
        cfg = parse_config({"network": {"lan": None}, "machines": {}})
        assert cfg.networks["lan"].type == "bridge"

    def test_unsupported_network_type(self):
        with pytest.raises(ConfigError, match="Unsupported type 'vxlan'"):
            parse_config({"networks": {"lan": {"type": "vxlan"}}})

    def test_undeclared_network_does_not_fail_load(self):
        cfg = parse_config({"machines": {"web": {"image": "/x.qcow2", "network": "wan"}}})
        assert cfg.machines["web"].network == "wan"

    def test_image_or_suite_and_arch_required(self):
        with pytest.raises(ConfigError, match="set 'image', or both 'suite' and 'arch'"):
            parse_config({"machines": {"web": {"suite": "jammy"}}})

    def test_unknown_suite_does_not_fail_siblings(self):
        cfg = parse_config(
            {
                "machines": {
                    "good": {"image": "/x.qcow2"},
                    "bad": {"suite": "warty", "arch": "x86_64"},
                }
            }
        )
        assert sorted(cfg.machines) == ["bad", "good"]
        assert cfg.machines["bad"].suite == "warty"

    def test_memory_null_uses_default(self):
        cfg = parse_config({"machines": {"web": {"image": "/x.qcow2", "memory": None}}})
        assert cfg.machines["web"].memory == "2048"

    def test_memory_must_be_scalar(self):
        with pytest.raises(ConfigError, match="machines.web.memory must be a size"):
            parse_config({"machines": {"web": {"image": "/x.qcow2", "memory": [1, 2]}}})

    def test_non_bool_flag(self):
        with pytest.raises(ConfigError, match="machines.web.uefi must be true or false"):
            parse_config({"machines": {"web": {"image": "/x.qcow2", "uefi": "yes"}}})

    def test_bad_key_list(self):
        with pytest.raises(ConfigError, match="ssh_keys must be a string or a list"):
            parse_config({"machines": {"web": {"image": "/x.qcow2", "users": {"bob": {"ssh_keys": 5}}}}})

    def test_top_level_must_be_mapping(self):
        with pytest.raises(ConfigError, match="must be a mapping"):
            parse_config(["machines"])

    def test_user_without_settings(self):
        cfg = parse_config({"machines": {"web": {"image": "/x.qcow2", "users": {"bob": None}}}})
        assert cfg.machines["web"].users["bob"].password == ""


class TestArch:
    @pytest.mark.parametrize("raw,expected", [("amd64", "x86_64"), ("ARM64", "aarch64"), ("x86_64", "x86_64")])
    def test_aliases(self, raw, expected):
        assert normalize_arch(raw) == expected

    def test_unknown_arch_passed_through(self):
        assert normalize_arch("MIPS64") == "mips64"

    def test_unknown_arch_does_not_fail_load(self):
        cfg = parse_config({"machines": {"web": {"image": "/x.qcow2", "arch": "mips64"}}})
        assert cfg.machines["web"].arch == "mips64"


@pytest.mark.usefixtures("clean_env")
class TestResolveConfigPath:
    def test_explicit_wins(self, monkeypatch):
        monkeypatch.setenv("QEMUCTL_CONFIG", "/etc/qemuctl.yaml")
        assert resolve_config_path("/tmp/x.yaml") == Path("/tmp/x.yaml")

    def test_env(self, monkeypatch):
        monkeypatch.setenv("QEMUCTL_CONFIG", "/etc/qemuctl.yaml")
        assert resolve_config_path() == Path("/etc/qemuctl.yaml")

    def test_default(self):
        assert resolve_config_path() == Path("qemuctl.yaml")
