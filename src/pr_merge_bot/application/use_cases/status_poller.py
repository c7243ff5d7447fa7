from __future__ import annotations
"""Bounded exponential-backoff wait for a build to resolve."""

from dataclasses import dataclass
import logging
import time
from typing import Callable, Iterator

from pr_merge_bot.domain.entities import BuildState


LOGGER = logging.getLogger(__name__)

DEFAULT_MAX_WAIT_SECONDS = 30 * 60.0
DEFAULT_MAX_INTERVAL_SECONDS = 64.0


@dataclass(slots=True)
class PollResult:
    """Terminal outcome of one `StatusPoller.wait_for_resolution` call.

    Attributes:
        state: Last observed build state (`pending` when timed out).
        timed_out: Whether the wait ceiling was reached before resolution.
        polls: Number of status evaluations performed.
    """

    state: BuildState
    timed_out: bool
    polls: int


class StatusPoller:
    """Re-evaluate a build state until it leaves `pending` or time runs out.

    Intervals start at `initial_interval_seconds` and double after every
    pending poll, never exceeding `max_interval_seconds`. Polling only starts
    a new evaluation while the elapsed time is below `max_wait_seconds`.
    """

    def __init__(
        self,
        *,
        max_wait_seconds: float = DEFAULT_MAX_WAIT_SECONDS,
        initial_interval_seconds: float = 1.0,
        max_interval_seconds: float = DEFAULT_MAX_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if initial_interval_seconds <= 0:
            raise ValueError("initial_interval_seconds must be greater than 0")
        if max_interval_seconds < initial_interval_seconds:
            raise ValueError("max_interval_seconds must be >= initial_interval_seconds")

        self._max_wait_seconds = max_wait_seconds
        self._initial_interval_seconds = initial_interval_seconds
        self._max_interval_seconds = max_interval_seconds
        self._clock = clock
        self._sleep = sleep

    @property
    def max_wait_seconds(self) -> float:
        return self._max_wait_seconds

    def now(self) -> float:
        """Current reading of the poller's clock, for use as `started_at`."""
        return self._clock()

    def backoff_intervals(self) -> Iterator[float]:
        """Yield 1, 2, 4, ... capped at the maximum interval, forever."""
        interval = self._initial_interval_seconds
        while True:
            yield interval
            interval = min(interval * 2, self._max_interval_seconds)

    def wait_for_resolution(
        self,
        fetch_state: Callable[[], BuildState],
        *,
        started_at: float | None = None,
    ) -> PollResult:
        """Poll `fetch_state` until success/failure/error or the ceiling.

        The ceiling is measured from `started_at` (a `now()` reading) when
        given, so time spent queued before polling counts against it.
        Exceptions raised by `fetch_state` propagate to the caller.
        """
        started = self._clock() if started_at is None else started_at
        intervals = self.backoff_intervals()
        polls = 0

        while self._clock() - started < self._max_wait_seconds:
            state = fetch_state()
            polls += 1
            if state is not BuildState.PENDING:
                LOGGER.info(
                    "build resolved",
                    extra={"event": "poller.resolved", "state": state.value, "polls": polls},
                )
                return PollResult(state=state, timed_out=False, polls=polls)

            interval = next(intervals)
            LOGGER.debug(
                "build still pending",
                extra={"event": "poller.pending", "polls": polls, "sleep_seconds": interval},
            )
            self._sleep(interval)

        LOGGER.warning(
            "gave up waiting for build",
            extra={"event": "poller.timeout", "polls": polls, "max_wait_seconds": self._max_wait_seconds},
        )
        return PollResult(state=BuildState.PENDING, timed_out=True, polls=polls)
