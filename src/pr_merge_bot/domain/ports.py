from __future__ import annotations
"""Hexagonal architecture port interfaces.

The merge orchestrator depends only on these abstractions. Adapters provide
concrete implementations for the GitHub API, shell git, local workspaces and
permission lookups.
"""

from abc import ABC, abstractmethod
from pathlib import Path

from .entities import BuildState, PullRequest, Repository, StatusCheck, User


class CodeHostPort(ABC):
    """Code hosting API used for statuses, comments and identities."""

    @abstractmethod
    def get_pull_request(self, repository: Repository, number: int) -> PullRequest:
        """Fetch the current state of a pull request."""
        raise NotImplementedError

    @abstractmethod
    def get_statuses(self, pull_request: PullRequest) -> list[StatusCheck]:
        """Return the latest status per context for the pull request head."""
        raise NotImplementedError

    @abstractmethod
    def get_user(self, login: str) -> User:
        """Resolve display name and email for a login."""
        raise NotImplementedError

    @abstractmethod
    def post_comment(self, repository: Repository, issue_number: int, body: str) -> None:
        """Post a comment on the pull request conversation."""
        raise NotImplementedError

    @abstractmethod
    def close_pull_request(self, pull_request: PullRequest) -> None:
        """Close the pull request after it was merged out of band."""
        raise NotImplementedError

    @abstractmethod
    def set_status(self, pull_request: PullRequest, state: BuildState, context: str, description: str) -> None:
        """Publish a commit status on the pull request head."""
        raise NotImplementedError

    @abstractmethod
    def list_team_members(self, organization: str, team_slug: str) -> list[str]:
        """Return the logins of all members of a team."""
        raise NotImplementedError


class GitClientPort(ABC):
    """Version control operations performed inside a local workspace."""

    @abstractmethod
    def clone(self, full_name: str, local_path: Path) -> None:
        """Clone the remote repository into `local_path`."""
        raise NotImplementedError

    @abstractmethod
    def squash(self, local_path: Path, pull_request: PullRequest, committer: User, message_override: str = "") -> str:
        """Squash-merge the pull request into its base branch and push it.

        Returns:
            The hash of the resulting commit.
        """
        raise NotImplementedError

    @abstractmethod
    def mirror_pull_request(self, local_path: Path, number: int) -> None:
        """Publish the pull request head as a branch on the remote."""
        raise NotImplementedError

    @abstractmethod
    def delete_mirror(self, local_path: Path, number: int) -> None:
        """Remove the mirror branch created by `mirror_pull_request`."""
        raise NotImplementedError


class WorkspacePort(ABC):
    """Local checkouts, one per repository."""

    @abstractmethod
    def ensure(self, repository: Repository) -> Path:
        """Return the workspace path, cloning it first when missing."""
        raise NotImplementedError


class PermissionPort(ABC):
    """Decides who may drive the bot on a repository."""

    @abstractmethod
    def is_allowed(self, repository: Repository, login: str) -> bool:
        """Return whether `login` may issue commands on `repository`."""
        raise NotImplementedError
