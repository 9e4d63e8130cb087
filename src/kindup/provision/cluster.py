"""kind cluster lifecycle and kubectl operations.

This module renders the kind cluster descriptor, creates the cluster,
checks node readiness and applies add-on manifests through kubectl.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml

from ..errors import MissingDependency
from ..shared.logging import get_logger
from ..shared.paths import KIND_CONFIG_FILE
from .addons import Addon
from .shell import CommandExecutor, CommandResult

logger = get_logger(__name__)

DEFAULT_CLUSTER_NAME = "codespace-kind"


def render_cluster_config(workers: int = 1) -> dict[str, Any]:
    """Build a kind descriptor with one control-plane and N worker nodes."""
    return {
        "kind": "Cluster",
        "apiVersion": "kind.x-k8s.io/v1alpha4",
        "nodes": [{"role": "control-plane"}] + [{"role": "worker"} for _ in range(workers)],
    }


class Kubectl:
    """Run kubectl against a fixed context."""

    def __init__(self, executor: CommandExecutor | None = None, context: str | None = None):
        """Initialize kubectl wrapper.

        Args:
            executor: Command executor.
            context: kubeconfig context; current context when omitted.
        """
        self.executor = executor or CommandExecutor()
        self.context = context

    def _kubectl_cmd(self) -> list[str]:
        """Build base kubectl command."""
        cmd = ["kubectl"]
        if self.context:
            cmd.extend(["--context", self.context])
        return cmd

    def run(self, *args: str, timeout: float | None = None) -> CommandResult:
        return self.executor.run(self._kubectl_cmd() + list(args), timeout=timeout)

    def check(self, *args: str, timeout: float | None = None) -> CommandResult:
        return self.executor.check(self._kubectl_cmd() + list(args), timeout=timeout)

    def succeeds(self, *args: str, timeout: float | None = 30) -> bool:
        return self.executor.succeeds(self._kubectl_cmd() + list(args), timeout=timeout)

    def cluster_info(self) -> CommandResult:
        return self.check("cluster-info")

    def apply_url(self, url: str) -> CommandResult:
        return self.check("apply", "-f", url)

    def patch_json(
        self, namespace: str, deployment: str, patch: list[dict[str, Any]]
    ) -> CommandResult:
        return self.check(
            "-n",
            namespace,
            "patch",
            "deployment",
            deployment,
            "--type=json",
            "-p",
            json.dumps(patch),
        )

    def wait_available(
        self, namespace: str, deployment: str, timeout_seconds: int
    ) -> CommandResult:
        return self.check(
            "-n",
            namespace,
            "wait",
            "--for=condition=available",
            "deployment",
            deployment,
            f"--timeout={timeout_seconds}s",
            timeout=timeout_seconds + 15,
        )

    def deployment_exists(self, namespace: str, deployment: str) -> bool:
        return self.succeeds("-n", namespace, "get", "deployment", deployment)

    def container_args(self, namespace: str, deployment: str) -> list[str]:
        """Args of the deployment's first container; [] if unavailable."""
        try:
            result = self.run(
                "-n",
                namespace,
                "get",
                "deployment",
                deployment,
                "-o",
                "jsonpath={.spec.template.spec.containers[0].args}",
            )
        except MissingDependency:
            return []
        if not result.ok or not result.stdout.strip():
            return []
        try:
            args = json.loads(result.stdout)
        except json.JSONDecodeError:
            return []
        return [str(a) for a in args] if isinstance(args, list) else []

    def nodes_ready(self) -> bool:
        """True if the cluster has nodes and every node reports Ready."""
        try:
            result = self.run("get", "nodes", "-o", "json", timeout=30)
        except MissingDependency:
            return False
        if not result.ok:
            return False
        try:
            items = json.loads(result.stdout).get("items", [])
        except (json.JSONDecodeError, AttributeError):
            return False
        if not items:
            return False
        for node in items:
            conditions = node.get("status", {}).get("conditions", [])
            if not any(
                c.get("type") == "Ready" and c.get("status") == "True" for c in conditions
            ):
                return False
        return True

    def node_summary(self) -> list[str]:
        """One line per node from `kubectl get nodes --no-headers`."""
        try:
            result = self.run("get", "nodes", "--no-headers", timeout=30)
        except MissingDependency:
            return []
        if not result.ok:
            return []
        return [line for line in result.stdout.splitlines() if line.strip()]


class KindCluster:
    """A named kind cluster."""

    def __init__(
        self,
        name: str = DEFAULT_CLUSTER_NAME,
        executor: CommandExecutor | None = None,
        config_path: Path = KIND_CONFIG_FILE,
        workers: int = 1,
    ):
        """Initialize cluster handle.

        Args:
            name: Cluster name.
            executor: Command executor.
            config_path: Where the descriptor is rendered before creation.
            workers: Number of worker nodes.
        """
        self.name = name
        self.executor = executor or CommandExecutor()
        self.config_path = config_path
        self.workers = workers
        self.kubectl = Kubectl(self.executor, self.context)

    @property
    def context(self) -> str:
        return f"kind-{self.name}"

    def exists(self) -> bool:
        """Check `kind get clusters` for an exact name match."""
        try:
            result = self.executor.run(["kind", "get", "clusters"], timeout=30)
        except MissingDependency:
            return False
        if not result.ok:
            return False
        return any(line.strip() == self.name for line in result.stdout.splitlines())

    def write_config(self) -> Path:
        """Render the cluster descriptor to config_path."""
        with open(self.config_path, "w") as f:
            yaml.safe_dump(
                render_cluster_config(self.workers), f, default_flow_style=False, sort_keys=False
            )
        return self.config_path

    def create(self) -> CommandResult:
        """Create the cluster from the rendered descriptor and print cluster info."""
        config_path = self.write_config()
        logger.info("cluster.create", name=self.name, config=str(config_path))
        created = self.executor.check(
            ["kind", "create", "cluster", "--name", self.name, "--config", str(config_path)]
        )
        info = self.kubectl.cluster_info()
        return CommandResult(
            args=created.args,
            returncode=0,
            stdout="\n".join(part for part in (created.stdout, info.stdout) if part),
            stderr=created.stderr,
            elapsed_seconds=created.elapsed_seconds + info.elapsed_seconds,
        )

    def nodes_ready(self) -> bool:
        return self.kubectl.nodes_ready()

    def node_summary(self) -> list[str]:
        return self.kubectl.node_summary()

    # ── Add-ons ──

    def addon_installed(self, addon: Addon) -> bool:
        """Deployment present and already carrying the add-on's extra args."""
        if not self.kubectl.deployment_exists(addon.namespace, addon.deployment):
            return False
        if not addon.extra_args:
            return True
        current = self.kubectl.container_args(addon.namespace, addon.deployment)
        return all(arg in current for arg in addon.extra_args)

    def install_addon(self, addon: Addon) -> CommandResult:
        """Apply, patch and wait for an add-on."""
        logger.info("addon.install", addon=addon.name, manifest=addon.manifest_url)
        result = self.kubectl.apply_url(addon.manifest_url)
        if addon.extra_args:
            result = self.kubectl.patch_json(addon.namespace, addon.deployment, addon.patch())
        if addon.wait_timeout:
            result = self.kubectl.wait_available(
                addon.namespace, addon.deployment, addon.wait_timeout
            )
        return result

    def addon_serving(self, addon: Addon) -> bool:
        if not addon.serving_check:
            return True
        return self.kubectl.succeeds(*addon.serving_check)
