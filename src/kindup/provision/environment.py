"""Environment detection for provisioning runs.

This module reads the OS identity from os-release, maps the machine
architecture to Debian naming and records versions of tools that are
already installed.
"""

from __future__ import annotations

import platform
import shlex
import shutil
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path

from ..errors import MissingDependency, UnsupportedEnvironment
from .shell import CommandExecutor

OS_RELEASE = Path("/etc/os-release")

SUPPORTED_OS_IDS = frozenset({"debian", "ubuntu"})
SUPPORTED_FAMILY = "debian"

# platform.machine() -> dpkg architecture
ARCHITECTURES = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "aarch64": "arm64",
    "arm64": "arm64",
}

# Tool -> command printing its version
VERSION_COMMANDS: dict[str, list[str]] = {
    "docker": ["docker", "--version"],
    "kubectl": ["kubectl", "version", "--client"],
    "kind": ["kind", "--version"],
}


@dataclass(frozen=True)
class EnvironmentInfo:
    """Host environment detected at the start of a run."""

    os_id: str
    os_family: str
    os_like: tuple[str, ...] = ()
    version_codename: str | None = None
    architecture: str = "amd64"
    tools: Mapping[str, str | None] = field(default_factory=dict)

    def tool_installed(self, name: str) -> bool:
        return self.tools.get(name) is not None


def parse_os_release(text: str) -> dict[str, str]:
    """Parse os-release KEY=value lines, honoring shell quoting.

    Args:
        text: Contents of an os-release file.

    Returns:
        Mapping of keys to unquoted values.
    """
    values: dict[str, str] = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, raw = line.split("=", 1)
        try:
            parts = shlex.split(raw)
        except ValueError:
            parts = [raw.strip("\"'")]
        values[key.strip()] = parts[0] if parts else ""
    return values


class EnvironmentProbe:
    """Detect OS identity and installed tools."""

    def __init__(
        self,
        os_release_path: Path = OS_RELEASE,
        executor: CommandExecutor | None = None,
        machine: Callable[[], str] = platform.machine,
    ):
        """Initialize probe.

        Args:
            os_release_path: Path to the os-release file.
            executor: Executor used for version queries.
            machine: Returns the raw machine architecture.
        """
        self.os_release_path = os_release_path
        self.executor = executor or CommandExecutor()
        self.machine = machine

    def detect(self) -> EnvironmentInfo:
        """Detect the host environment.

        Returns:
            EnvironmentInfo for this host.

        Raises:
            UnsupportedEnvironment: If os-release is missing or the OS is not
                Debian/Ubuntu-derived.
        """
        if not self.os_release_path.exists():
            raise UnsupportedEnvironment(
                message=f"{self.os_release_path} not found; unsupported OS.",
                data={"path": str(self.os_release_path)},
            )

        release = parse_os_release(self.os_release_path.read_text())
        os_id = release.get("ID", "").lower()
        os_like = tuple(release.get("ID_LIKE", "").lower().split())

        if os_id not in SUPPORTED_OS_IDS and SUPPORTED_FAMILY not in os_like:
            raise UnsupportedEnvironment(
                message=(
                    "This tool is written for Debian/Ubuntu based images. "
                    f"Detected: {os_id or 'unknown'}."
                ),
                data={"os_id": os_id, "os_like": list(os_like)},
            )

        codename = release.get("VERSION_CODENAME") or release.get("UBUNTU_CODENAME") or None
        machine = self.machine().lower()

        return EnvironmentInfo(
            os_id=os_id,
            os_family=SUPPORTED_FAMILY,
            os_like=os_like,
            version_codename=codename,
            architecture=ARCHITECTURES.get(machine, machine),
            tools={name: self.tool_version(name) for name in VERSION_COMMANDS},
        )

    def has_command(self, name: str) -> bool:
        """Check whether a command is on PATH."""
        return shutil.which(name) is not None

    def tool_version(self, name: str) -> str | None:
        """Get the first line of a tool's version output.

        Args:
            name: Tool name (docker, kubectl, kind).

        Returns:
            Version string, or None if the tool is not installed.
        """
        if not self.has_command(name):
            return None
        command = VERSION_COMMANDS.get(name, [name, "--version"])
        try:
            result = self.executor.run(command, timeout=10)
        except MissingDependency:
            return None
        if not result.ok:
            return "unknown"
        lines = result.stdout.strip().splitlines()
        return lines[0] if lines else "unknown"
