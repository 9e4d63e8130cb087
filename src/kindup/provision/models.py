"""Step, result and report types for provisioning runs."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from ..errors import ProvisionError
from .environment import EnvironmentInfo
from .shell import CommandResult


class StepStatus(Enum):
    """Lifecycle of a step within one run."""

    PENDING = "pending"
    SKIPPED = "skipped"  # Precondition already held
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    ABORTED = "aborted_due_to_dependency"

    @property
    def completed(self) -> bool:
        """True for statuses that unblock dependents."""
        return self in (StepStatus.SUCCEEDED, StepStatus.SKIPPED)


Check = Callable[[EnvironmentInfo], bool]
Action = Callable[[EnvironmentInfo], CommandResult | None]


@dataclass(frozen=True)
class Step:
    """Immutable definition of one idempotent provisioning step.

    The precondition returns True when the goal state already holds; the
    action then never runs. `requires` names commands that must exist before
    the action, `provides` names commands that must exist after it. `tool`
    names the detected tool whose version is appended to the skip message.
    """

    name: str
    description: str
    action: Action | None
    precondition: Check | None = None
    skip_message: str = "already satisfied"
    tool: str | None = None
    readiness: Callable[[], bool] | None = None
    timeout: float = 0.0
    poll_interval: float = 1.0
    advisory_readiness: bool = False
    requires: tuple[str, ...] = ()
    provides: tuple[str, ...] = ()
    postcondition: Check | None = None
    depends_on: tuple[str, ...] = ()
    optional: bool = False
    diagnostics: Callable[[], str] | None = None


@dataclass
class StepResult:
    """Outcome of one step."""

    name: str
    status: StepStatus
    duration_seconds: float = 0.0
    output: str = ""
    error: ProvisionError | None = None
    optional: bool = False
    message: str = ""

    @property
    def acceptable(self) -> bool:
        """True if this result does not fail the run."""
        return self.optional or self.status.completed

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "name": self.name,
            "status": self.status.value,
            "duration_seconds": round(self.duration_seconds, 3),
            "optional": self.optional,
        }
        if self.message:
            data["message"] = self.message
        if self.output:
            data["output"] = self.output
        if self.error is not None:
            data["error"] = self.error.to_dict()
        return data


@dataclass
class RunReport:
    """Ordered record of a provisioning run."""

    cluster_name: str
    results: list[StepResult] = field(default_factory=list)
    error: ProvisionError | None = None
    verification: list[str] = field(default_factory=list)
    started_at: datetime = field(default_factory=datetime.now)
    finished_at: datetime | None = None

    def add(self, result: StepResult) -> None:
        self.results.append(result)

    def get(self, name: str) -> StepResult | None:
        for result in self.results:
            if result.name == name:
                return result
        return None

    @property
    def succeeded(self) -> bool:
        return self.error is None and all(r.acceptable for r in self.results)

    @property
    def exit_code(self) -> int:
        return 0 if self.succeeded else 1

    @property
    def failure(self) -> ProvisionError | None:
        """The error that ended the run: top-level, else first failed step."""
        if self.error is not None:
            return self.error
        for result in self.results:
            if result.status == StepStatus.FAILED and not result.optional:
                return result.error
        return None

    @property
    def elapsed_seconds(self) -> float:
        end = self.finished_at or datetime.now()
        return (end - self.started_at).total_seconds()

    def counts(self) -> dict[str, int]:
        totals: dict[str, int] = {}
        for result in self.results:
            totals[result.status.value] = totals.get(result.status.value, 0) + 1
        return totals

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "cluster_name": self.cluster_name,
            "exit_code": self.exit_code,
            "elapsed_seconds": round(self.elapsed_seconds, 3),
            "steps": [r.to_dict() for r in self.results],
        }
        if self.error is not None:
            data["error"] = self.error.to_dict()
        if self.verification:
            data["verification"] = self.verification
        return data
