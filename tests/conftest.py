"""Shared test fixtures for kindup tests.

This module provides in-memory doubles for the provisioning flow:
- FakeClock: Deterministic monotonic clock whose sleep advances time
- FakeHost: Simulates HostTools (packages, docker, release binaries)
- FakeCluster: Simulates KindCluster against shared cluster state
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from kindup.config import ENV_VARS
from kindup.provision import (
    EnvironmentInfo,
    EnvironmentProbe,
    Orchestrator,
    ReadinessWaiter,
)
from kindup.provision.shell import CommandResult

UBUNTU_OS_RELEASE = """\
PRETTY_NAME="Ubuntu 22.04.4 LTS"
NAME="Ubuntu"
VERSION_ID="22.04"
VERSION_CODENAME=jammy
ID=ubuntu
ID_LIKE=debian
UBUNTU_CODENAME=jammy
"""

ALPINE_OS_RELEASE = """\
NAME="Alpine Linux"
ID=alpine
VERSION_ID=3.19.1
"""


def ok(*args: str, stdout: str = "") -> CommandResult:
    """Build a successful CommandResult."""
    return CommandResult(args=list(args) or ["true"], returncode=0, stdout=stdout)


def failed(*args: str, returncode: int = 1, stderr: str = "") -> CommandResult:
    """Build a failed CommandResult."""
    return CommandResult(args=list(args) or ["false"], returncode=returncode, stderr=stderr)


# =============================================================================
# Clock
# =============================================================================


class FakeClock:
    """Monotonic clock that only moves when sleep() is called."""

    def __init__(self, start: float = 1000.0):
        self.start = start
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> bool:
        self.sleeps.append(seconds)
        self.now += seconds
        return False

    @property
    def elapsed(self) -> float:
        return self.now - self.start


# =============================================================================
# Host and cluster doubles
# =============================================================================


@dataclass
class FakeHost:
    """In-memory stand-in for HostTools."""

    commands: set[str] = field(default_factory=lambda: {"apt-get", "tee"})
    packages: bool = False
    in_group: bool = False
    daemon_running: bool = False
    daemon_starts: bool = True
    fail_install: set[str] = field(default_factory=set)
    calls: list[str] = field(default_factory=list)
    log_tail: str = "level=info msg=\"Starting up\""

    def packages_installed(self, packages: tuple[str, ...] = ()) -> bool:
        return self.packages

    def install_packages(self, packages: tuple[str, ...] = ()) -> CommandResult:
        self.calls.append("install_packages")
        self.packages = True
        self.commands.add("gpg")
        return ok("apt-get", "install", "-y")

    def has_command(self, name: str) -> bool:
        return name in self.commands

    def install_docker_engine(self, env: EnvironmentInfo) -> CommandResult:
        self.calls.append("install_docker_engine")
        if "docker" in self.fail_install:
            return failed("apt-get", "install", "-y", "docker-ce", returncode=100)
        self.commands.update({"docker", "dockerd"})
        return ok("apt-get", "install", "-y", "docker-ce")

    def user_in_group(self, group: str = "docker") -> bool:
        return self.in_group

    def add_user_to_group(self, group: str = "docker") -> CommandResult:
        self.calls.append("add_user_to_group")
        self.in_group = True
        return ok("usermod", "-aG", group, "vscode")

    def docker_responding(self) -> bool:
        return self.daemon_running

    def start_docker_daemon(self) -> CommandResult:
        self.calls.append("start_docker_daemon")
        if self.daemon_starts:
            self.daemon_running = True
        return ok("dockerd", stdout="dockerd started in background")

    def docker_log_tail(self, lines: int = 60) -> str:
        return self.log_tail

    def install_kubectl(self, env: EnvironmentInfo) -> CommandResult:
        self.calls.append("install_kubectl")
        self.commands.add("kubectl")
        return ok("install", "kubectl")

    def install_kind(self, env: EnvironmentInfo) -> CommandResult:
        self.calls.append("install_kind")
        self.commands.add("kind")
        return ok("install", "kind")

    def tool_versions(self) -> list[str]:
        return [
            "docker: Client: 27.3.1, Server: 27.3.1",
            "kubectl: Client Version: v1.31.2",
            "kind: kind version 0.24.0",
        ]


@dataclass
class ClusterState:
    """State shared by every FakeCluster handle, like a real docker host."""

    clusters: set[str] = field(default_factory=set)
    ready: set[str] = field(default_factory=set)
    addons: set[str] = field(default_factory=set)
    create_calls: list[str] = field(default_factory=list)
    nodes_become_ready: bool = True


class FakeCluster:
    """In-memory stand-in for KindCluster."""

    def __init__(self, name: str, state: ClusterState):
        self.name = name
        self.state = state

    def exists(self) -> bool:
        return self.name in self.state.clusters

    def create(self) -> CommandResult:
        self.state.create_calls.append(self.name)
        self.state.clusters.add(self.name)
        if self.state.nodes_become_ready:
            self.state.ready.add(self.name)
        return ok("kind", "create", "cluster", "--name", self.name)

    def nodes_ready(self) -> bool:
        return self.name in self.state.ready

    def node_summary(self) -> list[str]:
        return [
            f"{self.name}-control-plane   Ready   control-plane   1m   v1.31.0",
            f"{self.name}-worker          Ready   <none>          1m   v1.31.0",
        ]

    def addon_installed(self, addon) -> bool:
        return addon.name in self.state.addons

    def install_addon(self, addon) -> CommandResult:
        self.state.addons.add(addon.name)
        return ok("kubectl", "apply", "-f", addon.manifest_url)

    def addon_serving(self, addon) -> bool:
        return True


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep the developer's environment out of config loading."""
    for env_var in ENV_VARS.values():
        monkeypatch.delenv(env_var, raising=False)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def waiter(clock) -> ReadinessWaiter:
    return ReadinessWaiter(clock=clock, sleep=clock.sleep)


@pytest.fixture
def ubuntu_env() -> EnvironmentInfo:
    return EnvironmentInfo(
        os_id="ubuntu",
        os_family="debian",
        os_like=("debian",),
        version_codename="jammy",
        architecture="amd64",
        tools={"docker": None, "kubectl": None, "kind": None},
    )


@pytest.fixture
def os_release(tmp_path) -> Path:
    path = tmp_path / "os-release"
    path.write_text(UBUNTU_OS_RELEASE)
    return path


@pytest.fixture
def fake_host() -> FakeHost:
    return FakeHost()


@pytest.fixture
def cluster_state() -> ClusterState:
    return ClusterState()


@pytest.fixture
def probe(ubuntu_env):
    probe = MagicMock(spec=EnvironmentProbe)
    probe.detect.return_value = ubuntu_env
    return probe


@pytest.fixture
def orchestrator(probe, fake_host, cluster_state, waiter) -> Orchestrator:
    """Orchestrator wired to in-memory host and cluster doubles."""
    return Orchestrator(
        probe=probe,
        host=fake_host,
        cluster_factory=lambda name: FakeCluster(name, cluster_state),
        waiter=waiter,
    )
