from __future__ import annotations
"""Aggregation of named CI checks into a single build state."""

from typing import Iterable

from .entities import BuildState, StatusCheck


_FAILING_STATES = {BuildState.FAILURE, BuildState.ERROR}


def parse_state(value: str) -> BuildState:
    """Map a raw state string onto `BuildState`.

    Unknown values are treated as pending so they can never unlock a merge.
    """
    try:
        return BuildState(value.strip().lower())
    except ValueError:
        return BuildState.PENDING


def aggregate_status(checks: Iterable[StatusCheck]) -> BuildState:
    """Combine checks with priority failure/error > pending > success.

    The first failing check decides between `failure` and `error`. An empty
    list of checks is reported as `success`.
    """
    pending = False
    for check in checks:
        state = parse_state(check.state)
        if state in _FAILING_STATES:
            return state
        if state is BuildState.PENDING:
            pending = True
    return BuildState.PENDING if pending else BuildState.SUCCESS
