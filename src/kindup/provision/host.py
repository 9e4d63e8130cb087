"""Host-level installers and checks.

This module provides the actions and idempotency checks for everything
installed on the host itself: apt prerequisites, the Docker engine from
Docker's apt repository, docker group membership, a background dockerd,
and the kubectl/kind release binaries.
"""

from __future__ import annotations

import getpass
import grp
import os
import shutil
from pathlib import Path

from ..errors import InstallFailed
from ..shared.logging import get_logger
from ..shared.paths import (
    APT_KEYRINGS_DIR,
    BIN_DIR,
    DOCKER_KEYRING,
    DOCKER_SOURCES_LIST,
    DOCKERD_LOG,
    download_path,
)
from .environment import EnvironmentInfo
from .releases import DOCKER_APT_REPO, DOCKER_GPG_URL, ReleaseResolver
from .shell import CommandExecutor, CommandResult, sudo_prefix

logger = get_logger(__name__)

PREREQUISITE_PACKAGES = (
    "ca-certificates",
    "curl",
    "gnupg",
    "lsb-release",
    "apt-transport-https",
    "software-properties-common",
)
DOCKER_PACKAGES = ("docker-ce", "docker-ce-cli", "containerd.io")
DOCKER_GROUP = "docker"

# Lines of the daemon log shown when it fails to come up
LOG_TAIL_LINES = 60


class HostTools:
    """Install and query tools on the local host."""

    def __init__(
        self,
        executor: CommandExecutor | None = None,
        releases: ReleaseResolver | None = None,
        daemon_log: Path = DOCKERD_LOG,
        bin_dir: Path = BIN_DIR,
    ):
        """Initialize host tools.

        Args:
            executor: Command executor.
            releases: Release resolver for downloads.
            daemon_log: Log file for a background dockerd.
            bin_dir: Install directory for release binaries.
        """
        self.executor = executor or CommandExecutor()
        self.releases = releases or ReleaseResolver()
        self.daemon_log = daemon_log
        self.bin_dir = bin_dir

    # ── Packages ──

    def packages_installed(self, packages: tuple[str, ...] = PREREQUISITE_PACKAGES) -> bool:
        """Check dpkg state for every package."""
        for package in packages:
            result = self.executor.run(["dpkg-query", "-W", "-f=${Status}", package])
            if not result.ok or "install ok installed" not in result.stdout:
                return False
        return True

    def install_packages(self, packages: tuple[str, ...] = PREREQUISITE_PACKAGES) -> CommandResult:
        """apt-get update, then install packages."""
        self.executor.check(sudo_prefix() + ["apt-get", "update", "-y"])
        return self.executor.check(sudo_prefix() + ["apt-get", "install", "-y", *packages])

    def has_command(self, name: str) -> bool:
        return shutil.which(name) is not None

    # ── Docker engine ──

    def install_docker_engine(self, env: EnvironmentInfo) -> CommandResult:
        """Install Docker Engine from Docker's apt repository."""
        sudo = sudo_prefix()
        self.executor.check(sudo + ["mkdir", "-p", str(APT_KEYRINGS_DIR)])

        key = self.releases.fetch_text(DOCKER_GPG_URL.format(os_id=env.os_id))
        self.executor.check(
            sudo + ["gpg", "--dearmor", "--yes", "-o", str(DOCKER_KEYRING)],
            input=key,
        )

        codename = env.version_codename
        if not codename:
            codename = self.executor.check(["lsb_release", "-cs"]).stdout.strip()
        if not codename:
            raise InstallFailed(message="Could not determine the distribution codename")

        repo = DOCKER_APT_REPO.format(os_id=env.os_id)
        source = (
            f"deb [arch={env.architecture} signed-by={DOCKER_KEYRING}] {repo} {codename} stable\n"
        )
        self.executor.check(sudo + ["tee", str(DOCKER_SOURCES_LIST)], input=source)

        logger.info("docker.repository_configured", repo=repo, codename=codename)
        return self.install_packages(DOCKER_PACKAGES)

    # ── docker group ──

    def current_user(self) -> str:
        return os.environ.get("USER") or getpass.getuser()

    def user_in_group(self, group: str = DOCKER_GROUP) -> bool:
        """Membership per the group database, so it holds before re-login."""
        try:
            entry = grp.getgrnam(group)
        except KeyError:
            return False
        return self.current_user() in entry.gr_mem or entry.gr_gid in os.getgroups()

    def add_user_to_group(self, group: str = DOCKER_GROUP) -> CommandResult:
        """Add the current user to a group; takes effect on next login."""
        return self.executor.run(sudo_prefix() + ["usermod", "-aG", group, self.current_user()])

    # ── Docker daemon ──

    def docker_responding(self) -> bool:
        return self.executor.succeeds(["docker", "info"], timeout=10)

    def start_docker_daemon(self) -> CommandResult:
        """Start dockerd in the background (non-systemd mode)."""
        args = sudo_prefix() + ["dockerd"]
        process = self.executor.spawn(args, self.daemon_log)
        logger.info("docker.daemon_spawned", pid=process.pid, log=str(self.daemon_log))
        return CommandResult(
            args=args,
            returncode=0,
            stdout=f"dockerd started in background (pid {process.pid}), log: {self.daemon_log}",
        )

    def docker_log_tail(self, lines: int = LOG_TAIL_LINES) -> str:
        """Last lines of the background daemon log, or '' if unreadable."""
        try:
            text = self.daemon_log.read_text(errors="replace")
        except OSError:
            return ""
        return "\n".join(text.splitlines()[-lines:])

    # ── Release binaries ──

    def install_binary(self, name: str, url: str) -> CommandResult:
        """Download a binary and install it root-owned with mode 0755."""
        dest = download_path(name)
        self.releases.download(url, dest)
        try:
            return self.executor.check(
                sudo_prefix()
                + [
                    "install",
                    "-o",
                    "root",
                    "-g",
                    "root",
                    "-m",
                    "0755",
                    str(dest),
                    str(self.bin_dir / name),
                ]
            )
        finally:
            dest.unlink(missing_ok=True)

    def install_kubectl(self, env: EnvironmentInfo) -> CommandResult:
        version = self.releases.latest_kubectl()
        return self.install_binary("kubectl", self.releases.kubectl_url(version, env.architecture))

    def install_kind(self, env: EnvironmentInfo) -> CommandResult:
        tag = self.releases.latest_kind()
        return self.install_binary("kind", self.releases.kind_url(tag, env.architecture))

    # ── Verification ──

    def tool_versions(self) -> list[str]:
        """Version lines for docker, kubectl and kind; best-effort."""
        queries = [
            [
                "docker",
                "version",
                "--format",
                "Client: {{.Client.Version}}, Server: {{.Server.Version}}",
            ],
            ["kubectl", "version", "--client"],
            ["kind", "--version"],
        ]
        lines = []
        for args in queries:
            if not self.has_command(args[0]):
                lines.append(f"{args[0]}: not installed")
                continue
            result = self.executor.run(args, timeout=15)
            first = result.stdout.strip().splitlines()[:1]
            lines.append(f"{args[0]}: {first[0] if first else result.excerpt(1) or 'unknown'}")
        return lines
