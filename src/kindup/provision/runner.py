"""Execution of a single provisioning step."""

from __future__ import annotations

import shutil
import subprocess
from collections.abc import Callable

from ..errors import (
    InstallFailed,
    MissingDependency,
    ProvisionError,
    ReadinessTimeout,
    RunCancelled,
    missing_command,
)
from ..shared.logging import get_logger
from .environment import EnvironmentInfo
from .models import Step, StepResult, StepStatus
from .readiness import ReadinessWaiter, WaitOutcome
from .shell import CommandResult

logger = get_logger(__name__)

# (step, attempt, elapsed seconds, last poll error)
WaitCallback = Callable[[Step, int, float, str | None], None]


class StepRunner:
    """Run one step: precondition, action, readiness, postconditions.

    The runner never retries. Idempotency lives in the step definitions:
    a satisfied precondition short-circuits to SKIPPED before the action is
    touched, and `provides`/`postcondition` checks are authoritative over the
    action's exit code.
    """

    def __init__(
        self,
        waiter: ReadinessWaiter | None = None,
        has_command: Callable[[str], bool] | None = None,
        clock: Callable[[], float] | None = None,
        on_wait: WaitCallback | None = None,
    ):
        """Initialize runner.

        Args:
            waiter: Readiness waiter used for steps with a readiness check.
            has_command: PATH lookup; defaults to shutil.which.
            clock: Clock used for step durations; defaults to the waiter's.
            on_wait: Progress callback after each failed readiness poll.
        """
        self.waiter = waiter or ReadinessWaiter()
        self.has_command = has_command or (lambda name: shutil.which(name) is not None)
        self.clock = clock or self.waiter.clock
        self.on_wait = on_wait

    def run(self, step: Step, env: EnvironmentInfo) -> StepResult:
        """Run a step against the detected environment.

        Host errors (OSError, subprocess errors) raised by a check or the
        action are reported as install_failed on this step.

        Args:
            step: Step definition.
            env: Environment detected for this run.

        Returns:
            StepResult with SKIPPED, SUCCEEDED or FAILED status.
        """
        started = self.clock()
        log = logger.bind(step=step.name)
        outcome: CommandResult | None = None
        message = ""
        try:
            if step.precondition is not None and step.precondition(env):
                message = self._skip_message(step, env)
                log.info("step.skipped", reason=message)
                return StepResult(
                    name=step.name,
                    status=StepStatus.SKIPPED,
                    duration_seconds=self.clock() - started,
                    optional=step.optional,
                    message=message,
                )

            log.info("step.started", description=step.description)
            for command in step.requires:
                if not self.has_command(command):
                    raise missing_command(command)

            if step.action is not None:
                outcome = step.action(env)
            if outcome is not None and not outcome.ok:
                raise InstallFailed(
                    message=f"'{outcome.command_line}' exited with {outcome.returncode}",
                    data={"returncode": outcome.returncode},
                )

            if step.readiness is not None:
                message = self._wait(step)

            for command in step.provides:
                if not self.has_command(command):
                    raise MissingDependency(
                        message=(
                            f"command '{command}' still not found "
                            "after install reported success."
                        ),
                        data={"command": command},
                    )

            if step.postcondition is not None and not step.postcondition(env):
                raise InstallFailed(
                    message="install reported success but its postcondition does not hold"
                )
        except ProvisionError as e:
            return self._failed(step, e, outcome, started)
        except (OSError, subprocess.SubprocessError) as e:
            error = InstallFailed(message=str(e), data={"exception": type(e).__name__})
            return self._failed(step, error, outcome, started)

        log.info("step.succeeded")
        return StepResult(
            name=step.name,
            status=StepStatus.SUCCEEDED,
            duration_seconds=self.clock() - started,
            output=outcome.excerpt() if outcome is not None else "",
            optional=step.optional,
            message=message,
        )

    def _skip_message(self, step: Step, env: EnvironmentInfo) -> str:
        if step.tool and env.tool_installed(step.tool):
            return f"{step.skip_message}: {env.tools[step.tool]}"
        return step.skip_message

    def _failed(
        self,
        step: Step,
        error: ProvisionError,
        outcome: CommandResult | None,
        started: float,
    ) -> StepResult:
        error.step = step.name
        if step.diagnostics is not None:
            error.data.setdefault("diagnostics", step.diagnostics())
        logger.error("step.failed", step=step.name, kind=error.kind, error=error.message)
        return StepResult(
            name=step.name,
            status=StepStatus.FAILED,
            duration_seconds=self.clock() - started,
            output=outcome.excerpt() if outcome is not None else error.data.get("output", ""),
            error=error,
            optional=step.optional,
            message=error.message,
        )

    def _wait(self, step: Step) -> str:
        """Wait for a step's readiness check; returns an advisory message or ''."""

        def on_attempt(attempt: int, elapsed: float, error: str | None) -> None:
            logger.debug("step.waiting", step=step.name, attempt=attempt, error=error)
            if self.on_wait:
                self.on_wait(step, attempt, elapsed, error)

        result = self.waiter.wait_for(
            step.readiness, step.timeout, step.poll_interval, on_attempt=on_attempt
        )
        if result.outcome == WaitOutcome.READY:
            return ""
        if result.outcome == WaitOutcome.CANCELLED:
            raise RunCancelled(message="run cancelled while waiting for readiness")

        detail = f"not ready after {step.timeout:g}s"
        if result.error:
            detail += f" (last error: {result.error})"
        if step.advisory_readiness:
            logger.warning("step.readiness_advisory", step=step.name, detail=detail)
            return f"readiness check did not pass: {detail}"
        raise ReadinessTimeout(
            message=f"Timed out waiting for {step.name}: {detail}",
            data={"timeout_seconds": step.timeout, "attempts": result.attempts},
        )
