"""CLI main entry point."""

import signal
import sys
from typing import Any

import click

from . import __version__
from .config import load_config
from .formatters import (
    print_report,
    print_report_json,
    print_step_result,
    print_step_started,
    print_step_waiting,
    print_troubleshooting,
)
from .provision import AVAILABLE_ADDONS, Orchestrator
from .shared.logging import configure_logging
from .shared.paths import DOCKERD_LOG


@click.command()
@click.option("--cluster-name", default=None, help="kind cluster name [env: KIND_CLUSTER_NAME]")
@click.option(
    "--docker-timeout",
    type=click.IntRange(min=1),
    default=None,
    help="Seconds to wait for the Docker daemon [default: 60]",
)
@click.option(
    "--cluster-timeout",
    type=click.IntRange(min=1),
    default=None,
    help="Seconds to wait for cluster nodes to be Ready [default: 120]",
)
@click.option(
    "--addon",
    "addons",
    type=click.Choice(AVAILABLE_ADDONS),
    multiple=True,
    help="Optional add-on to install (repeatable)",
)
@click.option("--with-addons", is_flag=True, help="Install every available add-on")
@click.option(
    "--log-level",
    type=click.Choice(["debug", "info", "warning", "error"]),
    default=None,
    help="Structured log level",
)
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False),
    default=None,
    help="Write JSON structured logs to this file instead of stderr [env: KINDUP_LOG_FILE]",
)
@click.option("--json", "json_output", is_flag=True, help="Print the run report as JSON")
@click.version_option(__version__, prog_name="kindup")
def main(
    cluster_name: str | None,
    docker_timeout: int | None,
    cluster_timeout: int | None,
    addons: tuple[str, ...],
    with_addons: bool,
    log_level: str | None,
    log_file: str | None,
    json_output: bool,
) -> None:
    """Install Docker, kubectl and kind and create a kind cluster.

    Every step is skipped when its goal state already holds, so re-running
    kindup is safe and is the way to recover from a failed run.

    Examples:

        # Default cluster "codespace-kind"
        kindup

        # Named cluster with metrics-server
        KIND_CLUSTER_NAME=demo kindup --addon metrics-server

        # Everything, machine-readable report
        kindup --with-addons --json
    """
    try:
        config = load_config()
        config = config.with_overrides(
            cluster_name=cluster_name,
            docker_timeout=docker_timeout,
            cluster_timeout=cluster_timeout,
            addons=AVAILABLE_ADDONS if with_addons else (addons or None),
            log_level=log_level,
            log_file=log_file,
        )
    except ValueError as e:
        raise click.BadParameter(str(e)) from e

    try:
        configure_logging(
            config.log_level,
            log_file=config.log_file,
            json_output=config.log_file is not None,
        )
    except OSError as e:
        raise click.BadParameter(f"cannot open log file: {e}", param_hint="--log-file") from e

    if json_output:
        orchestrator = Orchestrator()
    else:
        orchestrator = Orchestrator(
            on_step_start=print_step_started,
            on_step_result=print_step_result,
            on_step_wait=print_step_waiting,
        )

    def handle_signal(signum: int, frame: Any) -> None:
        orchestrator.cancel()

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)

    report = orchestrator.run(config)

    if json_output:
        print_report_json(report)
    else:
        print_report(report)
        print_troubleshooting(report, str(DOCKERD_LOG))

    sys.exit(report.exit_code)


if __name__ == "__main__":
    main()
