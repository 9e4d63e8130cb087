"""CLI output formatting helpers.

Human-readable trace in the style of a bootstrap script: `[INFO]` lines on
stdout while steps run, `[ERROR]` lines on stderr, a summary at the end.
"""

import json

import click

from .errors import READINESS_TIMEOUT
from .provision.graph import DOCKER_DAEMON
from .provision.models import RunReport, Step, StepResult, StepStatus

STATUS_SYMBOLS = {
    StepStatus.SUCCEEDED: "✓",
    StepStatus.SKIPPED: "•",
    StepStatus.FAILED: "✗",
    StepStatus.ABORTED: "-",
}

TROUBLESHOOTING = """
Troubleshooting / Notes:
- Codespaces may restrict starting privileged daemons. If starting dockerd fails:
  * Check {daemon_log} for errors.
  * Consider a devcontainer definition with Docker-in-Docker (dind) support
    or a pre-built image that provides Docker.
  * Alternatives:
    - Use a remote Kubernetes cluster and set KUBECONFIG to access it.
    - Use k3s or microk8s in environments that allow systemd.
    - Use kind in CI (e.g. GitHub Actions) rather than in the Codespace.
- You may need to re-open your session for docker group changes to take effect:
  newgrp docker
"""


def log(message: str) -> None:
    click.echo(f"\n[INFO] {message}")


def err(message: str) -> None:
    click.echo(f"\n[ERROR] {message}", err=True)


def print_step_started(step: Step) -> None:
    log(step.description)


def print_step_waiting(step: Step, attempt: int, elapsed: float, error: str | None) -> None:
    click.echo(
        f"  Waiting for {step.name} ({elapsed:.0f}s/{step.timeout:g}s): {error or 'not ready'}",
        nl=False,
    )
    click.echo("\r", nl=False)


def print_step_result(step: Step, result: StepResult) -> None:
    """Print one line for a finished step.

    Args:
        step: Step definition
        result: Step outcome
    """
    if result.status == StepStatus.SKIPPED:
        log(result.message or step.skip_message)
    elif result.status == StepStatus.SUCCEEDED:
        suffix = f" ({result.message})" if result.message else ""
        log(f"{step.name}: done in {result.duration_seconds:.1f}s{suffix}")
    elif result.status == StepStatus.FAILED:
        label = "warning" if result.optional else "failed"
        err(f"{step.name} {label}: {result.message}")
        if result.output:
            for line in result.output.splitlines():
                click.echo(f"  {line}", err=True)
        diagnostics = result.error.data.get("diagnostics") if result.error else None
        if diagnostics:
            click.echo("  Last daemon log lines:", err=True)
            for line in diagnostics.splitlines():
                click.echo(f"    {line}", err=True)


def print_report(report: RunReport) -> None:
    """Print the final summary.

    Args:
        report: Completed run report
    """
    if report.error is not None:
        err(report.error.message)
        return

    click.echo("\nSummary:")
    for result in report.results:
        symbol = STATUS_SYMBOLS.get(result.status, "?")
        optional = " (optional)" if result.optional else ""
        click.echo(f"  {symbol} {result.name:<28} {result.status.value}{optional}")

    if report.verification:
        log("Verification:")
        for line in report.verification:
            click.echo(f"  {line}")

    if report.succeeded:
        log(
            "All done. You have Docker, kubectl and kind available and a cluster "
            f"called '{report.cluster_name}'."
        )
        return

    failure = report.failure
    if failure is not None:
        err(f"Step '{failure.step}' failed ({failure.kind}): {failure.message}")
    else:
        err("Provisioning did not complete.")


def print_troubleshooting(report: RunReport, daemon_log: str) -> None:
    """Print the troubleshooting notes if the Docker daemon never came up."""
    result = report.get(DOCKER_DAEMON)
    if result is not None and result.error is not None and result.error.kind == READINESS_TIMEOUT:
        click.echo(TROUBLESHOOTING.format(daemon_log=daemon_log), err=True)


def print_report_json(report: RunReport) -> None:
    click.echo(json.dumps(report.to_dict(), indent=2))
