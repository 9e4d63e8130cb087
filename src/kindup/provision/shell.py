"""Subprocess execution for provisioning steps.

All external commands go through CommandExecutor so that steps get a
uniform CommandResult (exit code, output, elapsed time) and tests can patch
a single seam.
"""

from __future__ import annotations

import os
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path

from ..errors import InstallFailed, MissingDependency, missing_command
from ..shared.logging import get_logger

logger = get_logger(__name__)

# Lines of output kept in failure messages and reports
EXCERPT_LINES = 20


@dataclass
class CommandResult:
    """Result of one external command."""

    args: list[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""
    elapsed_seconds: float = 0.0

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def command_line(self) -> str:
        return " ".join(self.args)

    def excerpt(self, lines: int = EXCERPT_LINES) -> str:
        """Last lines of combined output, stderr last."""
        combined = "\n".join(part for part in (self.stdout.strip(), self.stderr.strip()) if part)
        return "\n".join(combined.splitlines()[-lines:])


def sudo_prefix() -> list[str]:
    """Prefix for privileged commands; empty when already root."""
    return [] if os.geteuid() == 0 else ["sudo"]


class CommandExecutor:
    """Run external commands and capture their output."""

    def __init__(self, default_timeout: float | None = None):
        """Initialize executor.

        Args:
            default_timeout: Timeout in seconds applied when a call gives none.
        """
        self.default_timeout = default_timeout

    def run(
        self,
        args: list[str],
        *,
        input: str | None = None,
        timeout: float | None = None,
    ) -> CommandResult:
        """Run a command and return its result without raising on failure.

        Args:
            args: Command and arguments.
            input: Optional text fed to stdin.
            timeout: Seconds before the command is killed.

        Returns:
            CommandResult with exit code and captured output.

        Raises:
            MissingDependency: If the executable does not exist.
        """
        started = time.monotonic()
        logger.debug("command.run", args=args)
        try:
            completed = subprocess.run(
                args,
                input=input,
                capture_output=True,
                text=True,
                timeout=timeout or self.default_timeout,
            )
        except FileNotFoundError as e:
            raise missing_command(args[0]) from e
        except subprocess.TimeoutExpired as e:
            return CommandResult(
                args=list(args),
                returncode=124,
                stdout=_decode(e.stdout),
                stderr=f"timed out after {e.timeout}s",
                elapsed_seconds=time.monotonic() - started,
            )

        result = CommandResult(
            args=list(args),
            returncode=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
            elapsed_seconds=time.monotonic() - started,
        )
        if not result.ok:
            logger.debug("command.failed", args=args, returncode=result.returncode)
        return result

    def check(
        self,
        args: list[str],
        *,
        input: str | None = None,
        timeout: float | None = None,
    ) -> CommandResult:
        """Run a command and raise InstallFailed on a non-zero exit."""
        result = self.run(args, input=input, timeout=timeout)
        if not result.ok:
            raise InstallFailed(
                message=f"'{result.command_line}' exited with {result.returncode}",
                data={"returncode": result.returncode, "output": result.excerpt()},
            )
        return result

    def succeeds(self, args: list[str], timeout: float | None = 30) -> bool:
        """Run a query command; True if it exits zero."""
        try:
            return self.run(args, timeout=timeout).ok
        except (MissingDependency, OSError) as e:
            logger.debug("command.query_failed", args=args, error=str(e))
            return False

    def spawn(self, args: list[str], log_path: Path) -> subprocess.Popen:
        """Start a detached background process writing to a log file.

        Args:
            args: Command and arguments.
            log_path: File receiving stdout and stderr.

        Returns:
            The started process.
        """
        try:
            with open(log_path, "w") as log_fd:
                return subprocess.Popen(
                    args,
                    stdout=log_fd,
                    stderr=subprocess.STDOUT,
                    stdin=subprocess.DEVNULL,
                    start_new_session=True,
                )
        except FileNotFoundError as e:
            raise missing_command(args[0]) from e


def _decode(output: bytes | str | None) -> str:
    if output is None:
        return ""
    if isinstance(output, bytes):
        return output.decode(errors="replace")
    return output
