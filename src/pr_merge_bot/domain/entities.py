from __future__ import annotations
"""Core domain entities shared by use cases and adapters.

These data models are intentionally transport-agnostic: the webhook receiver,
the GitHub REST adapter and the tests all build the same objects.
"""

from dataclasses import dataclass
from enum import Enum


DEFAULT_BASE_BRANCH = "master"


class BuildState(str, Enum):
    """Aggregate or per-check CI state as reported by the code host."""

    SUCCESS = "success"
    PENDING = "pending"
    FAILURE = "failure"
    ERROR = "error"


class CommandKind(str, Enum):
    """Comment commands understood by the bot."""

    MERGE = "merge"
    STOP = "stop"


@dataclass(frozen=True, slots=True)
class Repository:
    """Repository identified by its full `owner/name`."""

    full_name: str

    @property
    def owner(self) -> str:
        return self.full_name.split("/", 1)[0]

    @property
    def name(self) -> str:
        return self.full_name.split("/", 1)[-1]


@dataclass(frozen=True, slots=True)
class PullRequest:
    """Pull request snapshot, fetched fresh for every merge attempt.

    Attributes:
        repository: Repository the pull request belongs to.
        number: Pull request (and issue) number.
        html_url: Canonical web URL, used in the commit trailer.
        head_sha: Head commit the CI statuses are attached to.
        base_branch: Target branch the squash commit lands on.
    """

    repository: Repository
    number: int
    html_url: str
    head_sha: str
    base_branch: str = DEFAULT_BASE_BRANCH


@dataclass(frozen=True, slots=True)
class User:
    """Identity used as committer for the squash commit."""

    login: str
    name: str
    email: str


@dataclass(frozen=True, slots=True)
class StatusCheck:
    """One named CI status (`context`) reported for a commit."""

    context: str
    state: str
    description: str = ""


@dataclass(frozen=True, slots=True)
class Comment:
    """Comment left on a pull request conversation."""

    repository: Repository
    issue_number: int
    sender_login: str
    body: str


@dataclass(frozen=True, slots=True)
class PullRequestEvent:
    """Pull request lifecycle notification (`opened`, `closed`, ...)."""

    action: str
    pull_request: PullRequest


@dataclass(frozen=True, slots=True)
class MergeCommand:
    """Parsed comment command.

    `subject` and `description` carry an optional commit message override and
    are only meaningful for `CommandKind.MERGE`.
    """

    kind: CommandKind
    subject: str = ""
    description: str = ""


@dataclass(frozen=True, slots=True)
class PendingKey:
    """Identity of a pull request with a deferred merge in flight."""

    repository: str
    number: int
