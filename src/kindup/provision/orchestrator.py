"""Top-level provisioning driver.

The Orchestrator detects the environment, builds the provisioning graph
for the requested configuration, executes it and returns a RunReport.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from datetime import datetime
from typing import TYPE_CHECKING

from ..errors import ProvisionError, UnsupportedEnvironment
from ..shared.logging import get_logger
from .addons import resolve_addons
from .cluster import KindCluster
from .environment import EnvironmentInfo, EnvironmentProbe
from .graph import ProvisioningGraph, build_provisioning_graph
from .host import HostTools
from .models import RunReport, Step, StepResult
from .readiness import ReadinessWaiter
from .runner import StepRunner, WaitCallback
from .shell import CommandExecutor

if TYPE_CHECKING:
    from ..config import ProvisionConfig

logger = get_logger(__name__)


class Orchestrator:
    """Run the provisioning graph once and report on every step."""

    def __init__(
        self,
        probe: EnvironmentProbe | None = None,
        host: HostTools | None = None,
        cluster_factory: Callable[[str], KindCluster] | None = None,
        waiter: ReadinessWaiter | None = None,
        on_step_start: Callable[[Step], None] | None = None,
        on_step_result: Callable[[Step, StepResult], None] | None = None,
        on_step_wait: WaitCallback | None = None,
    ):
        """Initialize orchestrator.

        Args:
            probe: Environment probe.
            host: Host installers and checks.
            cluster_factory: Builds the cluster handle for a cluster name.
            waiter: Readiness waiter; its cancel event cancels the run.
            on_step_start: Progress callback before a step runs.
            on_step_result: Progress callback after each step.
            on_step_wait: Progress callback after each failed readiness poll.
        """
        executor = CommandExecutor()
        self.probe = probe or EnvironmentProbe(executor=executor)
        self.host = host or HostTools(executor=executor)
        self.cluster_factory = cluster_factory or (lambda name: KindCluster(name, executor))
        self.waiter = waiter or ReadinessWaiter()
        self.on_step_start = on_step_start
        self.on_step_result = on_step_result
        self.on_step_wait = on_step_wait
        self.graph: ProvisioningGraph | None = None
        self.env: EnvironmentInfo | None = None

    @property
    def cancel_event(self) -> threading.Event:
        return self.waiter.cancel_event

    def cancel(self) -> None:
        """Abort the current wait and every step not yet started."""
        logger.warning("run.cancel_requested")
        self.waiter.cancel()

    def build_graph(self, config: ProvisionConfig) -> ProvisioningGraph:
        return build_provisioning_graph(
            host=self.host,
            cluster=self.cluster_factory(config.cluster_name),
            docker_timeout=config.docker_timeout,
            cluster_timeout=config.cluster_timeout,
            addons=resolve_addons(config.addons),
        )

    def run(self, config: ProvisionConfig) -> RunReport:
        """Provision the host for config.

        A cancel requested during an earlier run does not carry over.

        Args:
            config: Provisioning configuration.

        Returns:
            RunReport; exit_code is 0 iff every required step
            succeeded or was skipped.
        """
        self.cancel_event.clear()
        report = RunReport(cluster_name=config.cluster_name)
        log = logger.bind(cluster=config.cluster_name)
        log.info("run.started", addons=list(config.addons))

        try:
            self.env = self.probe.detect()
        except UnsupportedEnvironment as e:
            log.error("run.unsupported_environment", error=e.message)
            report.error = e
            report.finished_at = datetime.now()
            return report

        log.info(
            "run.environment",
            os_id=self.env.os_id,
            architecture=self.env.architecture,
            tools={k: v for k, v in self.env.tools.items() if v},
        )

        self.graph = self.build_graph(config)
        runner = StepRunner(
            waiter=self.waiter,
            has_command=self.host.has_command,
            on_wait=self.on_step_wait,
        )
        for result in self.graph.execute(
            runner,
            self.env,
            cancel_event=self.cancel_event,
            on_step_start=self.on_step_start,
            on_step_result=self.on_step_result,
        ):
            report.add(result)

        if report.succeeded:
            report.verification = self.verify(config)

        report.finished_at = datetime.now()
        failure = report.failure
        log.info(
            "run.finished",
            exit_code=report.exit_code,
            counts=report.counts(),
            failed_step=failure.step if failure else None,
        )
        return report

    def verify(self, config: ProvisionConfig) -> list[str]:
        """Best-effort version and node listing for the final summary."""
        lines: list[str] = []
        try:
            lines.extend(self.host.tool_versions())
            cluster = self.cluster_factory(config.cluster_name)
            lines.extend(f"node: {line}" for line in cluster.node_summary())
        except ProvisionError as e:
            logger.warning("run.verification_failed", error=str(e))
        return lines
