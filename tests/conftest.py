"""Shared pytest configuration and in-memory fakes for the ports."""

from __future__ import annotations

import subprocess
from pathlib import Path

import pytest

from pr_merge_bot.domain.entities import BuildState, PullRequest, Repository, StatusCheck, User
from pr_merge_bot.domain.errors import CloneError
from pr_merge_bot.domain.ports import CodeHostPort, GitClientPort, PermissionPort, WorkspacePort


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "unit: fast isolated unit tests")
    config.addinivalue_line("markers", "integration: filesystem/subprocess integration tests")


REPOSITORY = Repository("acme/widgets")


def make_pull_request(number: int = 7, base_branch: str = "master") -> PullRequest:
    return PullRequest(
        repository=REPOSITORY,
        number=number,
        html_url=f"https://github.com/acme/widgets/pull/{number}",
        head_sha="c0ffee",
        base_branch=base_branch,
    )


class FakeCodeHost(CodeHostPort):
    def __init__(self) -> None:
        self.status_sequence: list[list[StatusCheck]] = [[StatusCheck("ci", "success")]]
        self.users: dict[str, User] = {"alice": User("alice", "Alice Example", "alice@example.com")}
        self.comments: list[tuple[str, int, str]] = []
        self.closed: list[int] = []
        self.statuses_set: list[tuple[int, BuildState, str, str]] = []
        self.teams: dict[tuple[str, str], list[str]] = {}
        self.status_calls = 0

    def get_pull_request(self, repository: Repository, number: int) -> PullRequest:
        return make_pull_request(number)

    def get_statuses(self, pull_request: PullRequest) -> list[StatusCheck]:
        index = min(self.status_calls, len(self.status_sequence) - 1)
        self.status_calls += 1
        checks = {check.context: check for check in self.status_sequence[index]}
        # Statuses the bot posted itself show up like any other check.
        for number, state, context, description in self.statuses_set:
            if number == pull_request.number:
                checks[context] = StatusCheck(context, state.value, description)
        return list(checks.values())

    def get_user(self, login: str) -> User:
        return self.users.get(login, User(login, login, ""))

    def post_comment(self, repository: Repository, issue_number: int, body: str) -> None:
        self.comments.append((repository.full_name, issue_number, body))

    def close_pull_request(self, pull_request: PullRequest) -> None:
        self.closed.append(pull_request.number)

    def set_status(self, pull_request: PullRequest, state: BuildState, context: str, description: str) -> None:
        self.statuses_set.append((pull_request.number, state, context, description))

    def list_team_members(self, organization: str, team_slug: str) -> list[str]:
        return list(self.teams.get((organization, team_slug), []))


class FakeGitClient(GitClientPort):
    def __init__(self) -> None:
        self.squashes: list[tuple[Path, int, str, str]] = []
        self.mirrored: list[int] = []
        self.deleted: list[int] = []
        self.clones: list[str] = []
        self.squash_error: Exception | None = None
        self.sha = "abc123"

    def clone(self, full_name: str, local_path: Path) -> None:
        self.clones.append(full_name)

    def squash(self, local_path: Path, pull_request: PullRequest, committer: User, message_override: str = "") -> str:
        self.squashes.append((local_path, pull_request.number, committer.login, message_override))
        if self.squash_error is not None:
            raise self.squash_error
        return self.sha

    def mirror_pull_request(self, local_path: Path, number: int) -> None:
        self.mirrored.append(number)

    def delete_mirror(self, local_path: Path, number: int) -> None:
        self.deleted.append(number)


class FakeWorkspaces(WorkspacePort):
    def __init__(self, root: Path) -> None:
        self.root = root
        self.ensured: list[str] = []
        self.clone_error: str | None = None

    def ensure(self, repository: Repository) -> Path:
        if self.clone_error is not None:
            raise CloneError(self.clone_error)
        self.ensured.append(repository.full_name)
        return self.root / repository.full_name


class FakePermissions(PermissionPort):
    def __init__(self, allowed: set[str] | None = None) -> None:
        self.allowed = allowed if allowed is not None else {"alice"}

    def is_allowed(self, repository: Repository, login: str) -> bool:
        return login in self.allowed


class RecordingExecutor:
    """Executor stand-in that runs submitted work only when asked to."""

    def __init__(self) -> None:
        self.submitted: list[tuple] = []
        self.shut_down = False

    def submit(self, fn, *args, **kwargs):
        if self.shut_down:
            raise RuntimeError("cannot schedule new futures after shutdown")
        self.submitted.append((fn, args, kwargs))

    def run_all(self) -> None:
        while self.submitted:
            fn, args, kwargs = self.submitted.pop(0)
            fn(*args, **kwargs)

    def shutdown(self, wait: bool = True) -> None:
        self.shut_down = True


class ScriptedRunner:
    """`subprocess.run` stand-in answering commands from a script.

    `responses` maps a command prefix (tuple of argv items) to
    `(returncode, stdout, stderr)`; unmatched commands succeed silently.
    """

    def __init__(self, responses: dict[tuple[str, ...], tuple[int, str, str]] | None = None) -> None:
        self.responses = responses or {}
        self.calls: list[dict] = []

    def __call__(self, command, **kwargs) -> subprocess.CompletedProcess[str]:
        self.calls.append({"argv": list(command), **kwargs})
        returncode, stdout, stderr = 0, "", ""
        best = -1
        for prefix, response in self.responses.items():
            if tuple(command[: len(prefix)]) == prefix and len(prefix) > best:
                best = len(prefix)
                returncode, stdout, stderr = response
        return subprocess.CompletedProcess(command, returncode, stdout, stderr)

    def argvs(self) -> list[list[str]]:
        return [call["argv"] for call in self.calls]


@pytest.fixture
def code_host() -> FakeCodeHost:
    return FakeCodeHost()


@pytest.fixture
def git_client() -> FakeGitClient:
    return FakeGitClient()


@pytest.fixture
def workspaces(tmp_path: Path) -> FakeWorkspaces:
    return FakeWorkspaces(tmp_path)


@pytest.fixture
def permissions() -> FakePermissions:
    return FakePermissions()


@pytest.fixture
def executor() -> RecordingExecutor:
    return RecordingExecutor()
