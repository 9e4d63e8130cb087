"""Path management for kindup.

Transient files live under /tmp and are regenerated on every run. The
user-level config file lives under ~/.kindup/.
"""

from pathlib import Path

# Base directory for user configuration
KINDUP_DIR = Path.home() / ".kindup"

# Optional persistent configuration
CONFIG_FILE = KINDUP_DIR / "config.yaml"

# Output of a dockerd started in the background
DOCKERD_LOG = Path("/tmp/dockerd-codespace.log")

# Rendered kind cluster descriptor
KIND_CONFIG_FILE = Path("/tmp/kind-config.yaml")

# Scratch directory for downloaded release binaries
DOWNLOAD_DIR = Path("/tmp")

# Install locations on the host
BIN_DIR = Path("/usr/local/bin")
APT_KEYRINGS_DIR = Path("/etc/apt/keyrings")
DOCKER_KEYRING = APT_KEYRINGS_DIR / "docker.gpg"
DOCKER_SOURCES_LIST = Path("/etc/apt/sources.list.d/docker.list")


def download_path(name: str) -> Path:
    """Get the scratch path for a downloaded binary.

    Args:
        name: Binary name (e.g., "kubectl", "kind")

    Returns:
        Path under the download directory
    """
    return DOWNLOAD_DIR / name
