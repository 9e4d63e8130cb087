"""Dependency-ordered provisioning graph.

This module declares the fixed set of provisioning steps and executes them
in order, aborting every step whose dependencies did not complete.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable

from ..errors import AbortedDueToDependency, ProvisionError, RunCancelled
from ..shared.logging import get_logger
from .addons import Addon
from .cluster import KindCluster
from .environment import EnvironmentInfo
from .host import DOCKER_GROUP, HostTools
from .models import Step, StepResult, StepStatus
from .runner import StepRunner

logger = get_logger(__name__)

# Step names
PREREQUISITES = "prerequisites"
DOCKER_ENGINE = "docker-engine"
DOCKER_GROUP_STEP = "docker-group"
DOCKER_DAEMON = "docker-daemon"
KUBECTL = "kubectl"
KIND = "kind"
CLUSTER = "cluster"
CLUSTER_READY = "cluster-ready"
ADDON_PREFIX = "addon:"


class ProvisioningGraph:
    """Ordered steps with explicit dependencies.

    Declaration order must already be a valid execution order: every
    dependency names a step declared earlier.
    """

    def __init__(self, steps: Iterable[Step]):
        self._steps: list[Step] = []
        seen: set[str] = set()
        for step in steps:
            if step.name in seen:
                raise ValueError(f"Duplicate step name: {step.name}")
            unknown = [d for d in step.depends_on if d not in seen]
            if unknown:
                raise ValueError(
                    f"Step '{step.name}' depends on undeclared or later step(s): "
                    f"{', '.join(unknown)}"
                )
            seen.add(step.name)
            self._steps.append(step)
        self.statuses: dict[str, StepStatus] = {s.name: StepStatus.PENDING for s in self._steps}

    @property
    def steps(self) -> list[Step]:
        return list(self._steps)

    @property
    def names(self) -> list[str]:
        return [s.name for s in self._steps]

    def execute(
        self,
        runner: StepRunner,
        env: EnvironmentInfo,
        cancel_event: threading.Event | None = None,
        on_step_start: Callable[[Step], None] | None = None,
        on_step_result: Callable[[Step, StepResult], None] | None = None,
    ) -> list[StepResult]:
        """Run every step in order.

        A step runs only if all its dependencies are SUCCEEDED or SKIPPED;
        otherwise it is ABORTED without touching the host.

        Args:
            runner: Runs individual steps.
            env: Environment detected for this run.
            cancel_event: When set, all remaining steps are aborted.
            on_step_start: Called before a step's runner invocation.
            on_step_result: Called with each step's result.

        Returns:
            One StepResult per step, in declaration order.
        """
        results: list[StepResult] = []
        for step in self._steps:
            blocked = [d for d in step.depends_on if not self.statuses[d].completed]

            if cancel_event is not None and cancel_event.is_set():
                result = self._aborted(step, RunCancelled(message="run cancelled before this step"))
            elif blocked:
                error = AbortedDueToDependency(
                    message=f"not attempted; dependency did not complete: {', '.join(blocked)}",
                    data={"blocked_by": blocked},
                )
                result = self._aborted(step, error)
            else:
                self.statuses[step.name] = StepStatus.RUNNING
                if on_step_start:
                    on_step_start(step)
                result = runner.run(step, env)

            self.statuses[step.name] = result.status
            results.append(result)
            if on_step_result:
                on_step_result(step, result)
        return results

    def _aborted(self, step: Step, error: ProvisionError) -> StepResult:
        error.step = step.name
        logger.info("step.aborted", step=step.name, kind=error.kind)
        return StepResult(
            name=step.name,
            status=StepStatus.ABORTED,
            error=error,
            optional=step.optional,
            message=error.message,
        )


def build_provisioning_graph(
    host: HostTools,
    cluster: KindCluster,
    docker_timeout: float = 60,
    cluster_timeout: float = 120,
    addons: Iterable[Addon] = (),
    poll_interval: float = 1.0,
) -> ProvisioningGraph:
    """Declare the provisioning graph for a Docker + kind development host.

    Args:
        host: Host installers and checks.
        cluster: Target kind cluster.
        docker_timeout: Seconds to wait for the Docker daemon.
        cluster_timeout: Seconds to wait for all nodes to be Ready.
        addons: Optional add-ons applied after the cluster is ready.
        poll_interval: Seconds between readiness polls.

    Returns:
        ProvisioningGraph in execution order.
    """
    steps = [
        Step(
            name=PREREQUISITES,
            description="Updating apt and installing prerequisites...",
            precondition=lambda env: host.packages_installed(),
            skip_message="prerequisite packages already installed",
            action=lambda env: host.install_packages(),
            requires=("apt-get",),
        ),
        Step(
            name=DOCKER_ENGINE,
            description="Installing Docker Engine (repo method)...",
            precondition=lambda env: host.has_command("docker"),
            skip_message="docker CLI already installed",
            tool="docker",
            action=host.install_docker_engine,
            requires=("gpg", "tee"),
            provides=("docker",),
            depends_on=(PREREQUISITES,),
        ),
        Step(
            name=DOCKER_GROUP_STEP,
            description=(
                "Adding current user to docker group "
                "(you may need to re-open session for group to take effect)."
            ),
            precondition=lambda env: host.user_in_group(DOCKER_GROUP),
            skip_message="user is already in docker group",
            action=lambda env: host.add_user_to_group(DOCKER_GROUP),
            depends_on=(DOCKER_ENGINE,),
            optional=True,
        ),
        Step(
            name=DOCKER_DAEMON,
            description="Docker daemon not responding. Starting dockerd in background...",
            precondition=lambda env: host.docker_responding(),
            skip_message="Docker daemon is running and accessible",
            action=lambda env: host.start_docker_daemon(),
            readiness=host.docker_responding,
            timeout=docker_timeout,
            poll_interval=poll_interval,
            requires=("dockerd",),
            depends_on=(DOCKER_ENGINE,),
            diagnostics=host.docker_log_tail,
        ),
        Step(
            name=KUBECTL,
            description="Downloading latest stable kubectl...",
            precondition=lambda env: host.has_command("kubectl"),
            skip_message="kubectl already installed",
            tool="kubectl",
            action=host.install_kubectl,
            provides=("kubectl",),
            depends_on=(DOCKER_DAEMON,),
        ),
        Step(
            name=KIND,
            description="Fetching latest kind release...",
            precondition=lambda env: host.has_command("kind"),
            skip_message="kind already installed",
            tool="kind",
            action=host.install_kind,
            provides=("kind",),
            depends_on=(KUBECTL,),
        ),
        Step(
            name=CLUSTER,
            description=f"Creating kind cluster named '{cluster.name}'...",
            precondition=lambda env: cluster.exists(),
            skip_message=f"kind cluster '{cluster.name}' already exists",
            action=lambda env: cluster.create(),
            postcondition=lambda env: cluster.exists(),
            depends_on=(DOCKER_DAEMON, KIND),
        ),
        Step(
            name=CLUSTER_READY,
            description=f"Waiting for nodes of '{cluster.name}' to become Ready...",
            precondition=lambda env: cluster.nodes_ready(),
            skip_message="all nodes Ready",
            action=None,
            readiness=cluster.nodes_ready,
            timeout=cluster_timeout,
            poll_interval=max(poll_interval, 2.0),
            depends_on=(CLUSTER,),
        ),
    ]

    for addon in addons:
        steps.append(_addon_step(addon, cluster, poll_interval))

    return ProvisioningGraph(steps)


def _addon_step(addon: Addon, cluster: KindCluster, poll_interval: float) -> Step:
    return Step(
        name=f"{ADDON_PREFIX}{addon.name}",
        description=f"Installing {addon.name}...",
        precondition=lambda env: cluster.addon_installed(addon),
        skip_message=f"{addon.name} already installed",
        action=lambda env: cluster.install_addon(addon),
        readiness=(lambda: cluster.addon_serving(addon)) if addon.serving_check else None,
        timeout=addon.serving_timeout,
        poll_interval=max(poll_interval, 2.0),
        advisory_readiness=True,
        depends_on=(CLUSTER_READY,),
        optional=True,
    )
