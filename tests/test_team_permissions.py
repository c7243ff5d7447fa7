from __future__ import annotations

from conftest import REPOSITORY
from pr_merge_bot.adapters.permissions.team_permissions import TeamPermissionResolver
from pr_merge_bot.domain.errors import CodeHostError


class CountingClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def test_always_allowed_is_case_insensitive(code_host):
    resolver = TeamPermissionResolver(code_host, always_allowed=["Alice"])

    assert resolver.is_allowed(REPOSITORY, "alice")
    assert not resolver.is_allowed(REPOSITORY, "mallory")


def test_bare_team_slug_uses_repository_owner(code_host):
    code_host.teams[("acme", "core")] = ["Bob"]
    resolver = TeamPermissionResolver(code_host, allowed_teams=["core"])

    assert resolver.is_allowed(REPOSITORY, "bob")


def test_qualified_team_uses_given_organization(code_host):
    code_host.teams[("platform", "release")] = ["carol"]
    resolver = TeamPermissionResolver(code_host, allowed_teams=["platform/release"])

    assert resolver.is_allowed(REPOSITORY, "carol")
    assert not resolver.is_allowed(REPOSITORY, "bob")


def test_membership_is_cached_until_ttl_expires(code_host, monkeypatch):
    code_host.teams[("acme", "core")] = ["bob"]
    calls = []
    original = code_host.list_team_members

    def counting(organization, slug):
        calls.append((organization, slug))
        return original(organization, slug)

    monkeypatch.setattr(code_host, "list_team_members", counting)
    clock = CountingClock()
    resolver = TeamPermissionResolver(code_host, allowed_teams=["core"], cache_ttl_seconds=60, clock=clock)

    resolver.is_allowed(REPOSITORY, "bob")
    code_host.teams[("acme", "core")] = []
    assert resolver.is_allowed(REPOSITORY, "bob")
    assert len(calls) == 1

    clock.now = 61
    assert not resolver.is_allowed(REPOSITORY, "bob")
    assert len(calls) == 2


def test_lookup_failure_denies_without_caching(code_host, monkeypatch):
    def broken(organization, slug):
        raise CodeHostError("GitHub API request failed with HTTP 403")

    monkeypatch.setattr(code_host, "list_team_members", broken)
    resolver = TeamPermissionResolver(code_host, allowed_teams=["core"])

    assert not resolver.is_allowed(REPOSITORY, "bob")

    monkeypatch.undo()
    code_host.teams[("acme", "core")] = ["bob"]
    assert resolver.is_allowed(REPOSITORY, "bob")
