"""Tests for qemuctl.images module."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from qemuctl.exceptions import ConfigError
from qemuctl.images import cloud_image_source, fetch_cloud_image


class TestCloudImageSource:
    @pytest.mark.parametrize(
        "suite,arch,filename",
        [
            ("focal", "x86_64", "ubuntu-20.04-server-cloudimg-amd64.img"),
            ("jammy", "aarch64", "ubuntu-22.04-server-cloudimg-arm64.img"),
        ],
    )
    def test_known_pairs(self, suite, arch, filename):
        name, url = cloud_image_source(suite, arch)
        assert name == filename
        assert url == f"http://cloud-images.ubuntu.com/releases/{suite}/release/{filename}"

    def test_unknown_suite(self):
        with pytest.raises(ConfigError, match="suite 'hoary'"):
            cloud_image_source("hoary", "x86_64")

    def test_unknown_arch(self):
        with pytest.raises(ConfigError, match="arch 'riscv64'"):
            cloud_image_source("jammy", "riscv64")


def test_fetch_cloud_image(tmp_path):
    with patch("qemuctl.images.download_file", side_effect=lambda url, dest: dest) as mock_download:
        path = fetch_cloud_image(tmp_path, "focal", "x86_64")
    assert path == tmp_path / "ubuntu-20.04-server-cloudimg-amd64.img"
    mock_download.assert_called_once()
