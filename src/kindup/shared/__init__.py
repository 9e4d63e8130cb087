"""Shared modules for kindup.

This module provides functionality used across the CLI and the
provisioning package:
- Logging configuration
- Well-known host paths
"""

from .logging import configure_logging, get_logger
from .paths import (
    CONFIG_FILE,
    DOCKERD_LOG,
    KIND_CONFIG_FILE,
    KINDUP_DIR,
    download_path,
)

__all__ = [
    # Paths
    "KINDUP_DIR",
    "CONFIG_FILE",
    "DOCKERD_LOG",
    "KIND_CONFIG_FILE",
    "download_path",
    # Logging
    "configure_logging",
    "get_logger",
]
