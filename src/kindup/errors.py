"""Error taxonomy for provisioning runs.

Every failure a step can end with is a ProvisionError subclass carrying a
stable `kind` string, so reports and tests can assert on the category
instead of matching log text.
"""

from dataclasses import dataclass, field
from typing import Any

# Error kinds
UNSUPPORTED_ENVIRONMENT = "unsupported_environment"
MISSING_DEPENDENCY = "missing_dependency"
INSTALL_FAILED = "install_failed"
RELEASE_RESOLUTION_FAILED = "release_resolution_failed"
READINESS_TIMEOUT = "readiness_timeout"
ABORTED_DUE_TO_DEPENDENCY = "aborted_due_to_dependency"
RUN_CANCELLED = "run_cancelled"


@dataclass(eq=False)
class ProvisionError(Exception):
    """Base error class for provisioning errors."""

    kind: str
    message: str
    step: str | None = None
    data: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        if self.step:
            return f"[{self.step}] {self.message}"
        return self.message

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dict."""
        error: dict[str, Any] = {"kind": self.kind, "message": self.message}
        if self.step:
            error["step"] = self.step
        if self.data:
            error["data"] = self.data
        return error


@dataclass(eq=False)
class UnsupportedEnvironment(ProvisionError):
    """The host OS is not Debian/Ubuntu-derived."""

    kind: str = UNSUPPORTED_ENVIRONMENT
    message: str = "Unsupported environment"


@dataclass(eq=False)
class MissingDependency(ProvisionError):
    """A required external command is not on PATH."""

    kind: str = MISSING_DEPENDENCY
    message: str = "Required command not found"


@dataclass(eq=False)
class InstallFailed(ProvisionError):
    """An external install command exited non-zero."""

    kind: str = INSTALL_FAILED
    message: str = "Install command failed"


@dataclass(eq=False)
class ReleaseResolutionError(InstallFailed):
    """Latest release metadata for a tool could not be resolved."""

    kind: str = RELEASE_RESOLUTION_FAILED
    message: str = "Could not resolve latest release"


@dataclass(eq=False)
class ReadinessTimeout(ProvisionError):
    """A daemon or deployment did not become ready in time."""

    kind: str = READINESS_TIMEOUT
    message: str = "Timed out waiting for readiness"


@dataclass(eq=False)
class AbortedDueToDependency(ProvisionError):
    """An upstream step did not complete."""

    kind: str = ABORTED_DUE_TO_DEPENDENCY
    message: str = "Upstream step did not complete"


@dataclass(eq=False)
class RunCancelled(ProvisionError):
    """The run was cancelled before the step could finish."""

    kind: str = RUN_CANCELLED
    message: str = "Run cancelled"


def missing_command(command: str) -> MissingDependency:
    """Build the error for an absent external command.

    Args:
        command: Command name that was looked up on PATH

    Returns:
        MissingDependency naming the command
    """
    return MissingDependency(
        message=f"command '{command}' not found; aborting.",
        data={"command": command},
    )
