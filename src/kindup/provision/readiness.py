"""Readiness polling for asynchronous external processes.

This module provides bounded polling of a boolean predicate, used to wait
for the Docker daemon, cluster nodes and add-on APIs to come up.
"""

from __future__ import annotations

import subprocess
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from ..shared.logging import get_logger

logger = get_logger(__name__)


class WaitOutcome(Enum):
    """How a readiness wait ended."""

    READY = "ready"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"


@dataclass
class WaitResult:
    """Result of a readiness wait."""

    outcome: WaitOutcome
    attempts: int = 0
    elapsed_seconds: float = 0.0
    error: str | None = None

    @property
    def ready(self) -> bool:
        return self.outcome == WaitOutcome.READY


class ReadinessWaiter:
    """Poll a predicate until it holds, the timeout elapses or the run is cancelled."""

    def __init__(
        self,
        cancel_event: threading.Event | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], object] | None = None,
    ):
        """Initialize waiter.

        Args:
            cancel_event: Set to abort any wait in progress.
            clock: Monotonic clock in seconds.
            sleep: Blocks for the given seconds; a truthy return means the
                   wait was interrupted by cancellation. Defaults to
                   waiting on the cancel event.
        """
        self.cancel_event = cancel_event or threading.Event()
        self.clock = clock
        self._sleep = sleep or self.cancel_event.wait

    def cancel(self) -> None:
        self.cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def wait_for(
        self,
        predicate: Callable[[], bool],
        timeout: float,
        poll_interval: float = 1.0,
        on_attempt: Callable[[int, float, str | None], None] | None = None,
    ) -> WaitResult:
        """Poll until predicate() is True or timeout seconds have elapsed.

        The last sleep is clamped to the deadline, so a wait that never
        becomes ready ends at the deadline rather than a full interval past it.

        Args:
            predicate: Readiness check, called once per poll.
            timeout: Maximum seconds to wait.
            poll_interval: Seconds between polls.
            on_attempt: Optional callback called with (attempt, elapsed, error)
                        after each failed poll.

        Returns:
            WaitResult with outcome READY, TIMED_OUT or CANCELLED.
        """
        start = self.clock()
        deadline = start + max(timeout, 0.0)
        attempts = 0
        last_error: str | None = None

        while True:
            if self.cancelled:
                return self._finish(WaitOutcome.CANCELLED, attempts, start, last_error)

            attempts += 1
            try:
                if predicate():
                    return self._finish(WaitOutcome.READY, attempts, start, None)
                last_error = None
            except (OSError, subprocess.SubprocessError) as e:
                last_error = str(e)

            now = self.clock()
            if on_attempt:
                on_attempt(attempts, now - start, last_error)

            if now >= deadline:
                return self._finish(WaitOutcome.TIMED_OUT, attempts, start, last_error)

            if self._sleep(min(poll_interval, deadline - now)):
                return self._finish(WaitOutcome.CANCELLED, attempts, start, last_error)

    def _finish(
        self,
        outcome: WaitOutcome,
        attempts: int,
        start: float,
        error: str | None,
    ) -> WaitResult:
        elapsed = self.clock() - start
        logger.debug(
            "readiness.finished",
            outcome=outcome.value,
            attempts=attempts,
            elapsed_seconds=round(elapsed, 3),
        )
        return WaitResult(outcome=outcome, attempts=attempts, elapsed_seconds=elapsed, error=error)
