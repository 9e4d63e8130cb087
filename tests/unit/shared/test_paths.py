"""Unit tests for kindup.shared.paths module."""

from pathlib import Path

import pytest


@pytest.mark.cli_unit
class TestPaths:
    """Tests for path constants and functions."""

    def test_kindup_dir_is_in_home(self):
        """Test KINDUP_DIR is in user's home directory."""
        from kindup.shared.paths import KINDUP_DIR

        assert KINDUP_DIR == Path.home() / ".kindup"

    def test_config_file_location(self):
        from kindup.shared.paths import CONFIG_FILE, KINDUP_DIR

        assert CONFIG_FILE == KINDUP_DIR / "config.yaml"

    def test_transient_files_in_tmp(self):
        """Test the daemon log and kind descriptor live under /tmp."""
        from kindup.shared.paths import DOCKERD_LOG, KIND_CONFIG_FILE

        assert DOCKERD_LOG == Path("/tmp/dockerd-codespace.log")
        assert KIND_CONFIG_FILE == Path("/tmp/kind-config.yaml")

    def test_download_path(self):
        from kindup.shared.paths import download_path

        assert download_path("kubectl") == Path("/tmp/kubectl")
