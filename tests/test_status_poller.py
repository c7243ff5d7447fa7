"""Unit tests for the bounded exponential-backoff status poller."""

from __future__ import annotations

import itertools

import pytest

from pr_merge_bot.application.use_cases.status_poller import StatusPoller
from pr_merge_bot.domain.entities import BuildState


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def _poller(clock: FakeClock, **kwargs) -> StatusPoller:
    return StatusPoller(clock=clock, sleep=clock.sleep, **kwargs)


def test_backoff_doubles_and_never_exceeds_cap():
    poller = StatusPoller(max_interval_seconds=64.0)

    intervals = list(itertools.islice(poller.backoff_intervals(), 12))

    assert intervals == [1, 2, 4, 8, 16, 32, 64, 64, 64, 64, 64, 64]
    assert max(intervals) <= 64


def test_resolves_on_success_after_pending_polls():
    clock = FakeClock()
    states = iter([BuildState.PENDING, BuildState.PENDING, BuildState.SUCCESS])

    result = _poller(clock).wait_for_resolution(lambda: next(states))

    assert result.state is BuildState.SUCCESS
    assert not result.timed_out
    assert result.polls == 3
    assert clock.sleeps == [1.0, 2.0]


def test_failure_is_terminal():
    clock = FakeClock()

    result = _poller(clock).wait_for_resolution(lambda: BuildState.ERROR)

    assert result.state is BuildState.ERROR
    assert result.polls == 1
    assert clock.sleeps == []


def test_times_out_when_build_stays_pending():
    clock = FakeClock()

    result = _poller(clock, max_wait_seconds=100.0, max_interval_seconds=16.0).wait_for_resolution(
        lambda: BuildState.PENDING
    )

    assert result.timed_out
    assert result.state is BuildState.PENDING
    # 1 + 2 + 4 + 8 + 16 + 16 + 16 + 16 + 16 = 95, then one more sleep crosses 100
    assert clock.sleeps == [1, 2, 4, 8, 16, 16, 16, 16, 16, 16]
    assert result.polls == len(clock.sleeps)


def test_fetch_errors_propagate():
    def broken() -> BuildState:
        raise RuntimeError("api down")

    with pytest.raises(RuntimeError, match="api down"):
        _poller(FakeClock()).wait_for_resolution(broken)


def test_rejects_inconsistent_intervals():
    with pytest.raises(ValueError):
        StatusPoller(initial_interval_seconds=10.0, max_interval_seconds=5.0)


def test_ceiling_is_measured_from_started_at():
    clock = FakeClock()
    poller = _poller(clock, max_wait_seconds=10.0)
    accepted_at = poller.now()
    clock.now = 8.0

    result = poller.wait_for_resolution(lambda: BuildState.PENDING, started_at=accepted_at)

    assert result.timed_out
    assert clock.sleeps == [1.0, 2.0]
    assert result.polls == 2
