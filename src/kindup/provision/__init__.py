"""Provisioning package for Docker + kind development hosts.

This package provides the `kindup` provisioning flow which:
1. Detects the OS and installed tools
2. Installs prerequisites, Docker, kubectl and kind
3. Starts the Docker daemon and waits for it
4. Creates a two-node kind cluster and waits for its nodes
5. Optionally applies add-on manifests
"""

from .addons import AVAILABLE_ADDONS, Addon, resolve_addons
from .cluster import KindCluster, Kubectl, render_cluster_config
from .environment import EnvironmentInfo, EnvironmentProbe
from .graph import ProvisioningGraph, build_provisioning_graph
from .host import HostTools
from .models import RunReport, Step, StepResult, StepStatus
from .orchestrator import Orchestrator
from .readiness import ReadinessWaiter, WaitOutcome, WaitResult
from .releases import ReleaseResolver
from .runner import StepRunner
from .shell import CommandExecutor, CommandResult

__all__ = [
    # Environment
    "EnvironmentInfo",
    "EnvironmentProbe",
    # Execution
    "CommandExecutor",
    "CommandResult",
    "StepRunner",
    "ReadinessWaiter",
    "WaitOutcome",
    "WaitResult",
    # Models
    "Step",
    "StepResult",
    "StepStatus",
    "RunReport",
    # Host and cluster
    "HostTools",
    "ReleaseResolver",
    "KindCluster",
    "Kubectl",
    "render_cluster_config",
    # Add-ons
    "Addon",
    "AVAILABLE_ADDONS",
    "resolve_addons",
    # Graph
    "ProvisioningGraph",
    "build_provisioning_graph",
    "Orchestrator",
]
