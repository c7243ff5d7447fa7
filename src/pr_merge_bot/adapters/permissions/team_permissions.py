from __future__ import annotations
"""Permission resolution from a static allow-list plus team membership."""

import logging
import threading
import time
from typing import Callable, Iterable

from pr_merge_bot.domain.entities import Repository
from pr_merge_bot.domain.errors import CodeHostError
from pr_merge_bot.domain.ports import CodeHostPort, PermissionPort


LOGGER = logging.getLogger(__name__)


class TeamPermissionResolver(PermissionPort):
    """Allow always-allowed logins and members of the configured teams.

    Teams are given as `org/slug`, or as a bare `slug` that is looked up in the
    organization owning the repository. Memberships are cached for
    `cache_ttl_seconds`; a failed lookup counts as "not a member".
    """

    def __init__(
        self,
        code_host: CodeHostPort,
        *,
        always_allowed: Iterable[str] = (),
        allowed_teams: Iterable[str] = (),
        cache_ttl_seconds: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._code_host = code_host
        self._always_allowed = {login.lower() for login in always_allowed}
        self._allowed_teams = tuple(allowed_teams)
        self._cache_ttl_seconds = cache_ttl_seconds
        self._clock = clock
        self._cache: dict[tuple[str, str], tuple[float, frozenset[str]]] = {}
        self._cache_lock = threading.Lock()

    def is_allowed(self, repository: Repository, login: str) -> bool:
        if login.lower() in self._always_allowed:
            return True

        for team in self._allowed_teams:
            organization, _, slug = team.rpartition("/")
            if login.lower() in self._members(organization or repository.owner, slug):
                return True
        return False

    def _members(self, organization: str, slug: str) -> frozenset[str]:
        key = (organization, slug)
        now = self._clock()
        with self._cache_lock:
            cached = self._cache.get(key)
            if cached is not None and now - cached[0] < self._cache_ttl_seconds:
                return cached[1]

        try:
            members = frozenset(login.lower() for login in self._code_host.list_team_members(organization, slug))
        except CodeHostError:
            LOGGER.exception(
                "team membership lookup failed",
                extra={"event": "permissions.team.lookup_failed", "organization": organization, "team": slug},
            )
            return frozenset()

        with self._cache_lock:
            self._cache[key] = (now, members)
        LOGGER.info(
            "team membership refreshed",
            extra={
                "event": "permissions.team.refreshed",
                "organization": organization,
                "team": slug,
                "count": len(members),
            },
        )
        return members
