from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import Callable

from pr_merge_bot.adapters.git_client.command_pipeline import CommandPipeline
from pr_merge_bot.domain.commit_message import build_commit_message
from pr_merge_bot.domain.entities import PullRequest, User
from pr_merge_bot.domain.errors import CloneError, CommandPipelineError, NothingToMergeError, SquashMergeError
from pr_merge_bot.domain.ports import GitClientPort


NOTHING_TO_MERGE = "Nothing to merge, as far as I can tell."


def pull_request_branch(number: int) -> str:
    """Local (and mirrored) branch name for a pull request head."""
    return f"pr-{number}"


def shadow_reference(branch: str) -> str:
    """Alternate name the target branch is fetched into."""
    return f"orig/{branch}"


class ShellGitClientAdapter(GitClientPort):
    def __init__(
        self,
        *,
        git_executable: str = "git",
        remote: str = "origin",
        clone_url_template: str = "git@github.com:{full_name}.git",
        timeout_seconds: float = 300.0,
        runner: Callable[..., subprocess.CompletedProcess[str]] = subprocess.run,
    ) -> None:
        self._git_executable = git_executable
        self._remote = remote
        self._clone_url_template = clone_url_template
        self._timeout_seconds = timeout_seconds
        self._runner = runner
        self._logger = logging.getLogger(__name__)

    def clone(self, full_name: str, local_path: Path) -> None:
        clone_url = self._clone_url_template.format(full_name=full_name)
        local_path.parent.mkdir(parents=True, exist_ok=True)
        self._logger.info(
            "cloning repository",
            extra={"event": "git.clone.start", "clone_url": clone_url, "local_path": str(local_path)},
        )
        pipeline = self._pipeline(local_path.parent)
        self._git(pipeline, "clone", clone_url, str(local_path))
        pipeline.raise_for_error(CloneError)
        self._logger.info(
            "clone completed",
            extra={"event": "git.clone.success", "local_path": str(local_path)},
        )

    def squash(self, local_path: Path, pull_request: PullRequest, committer: User, message_override: str = "") -> str:
        """Rewrite the pull request into one commit on its base branch and push it.

        The workspace is forced into a clean copy of the freshly fetched base
        branch first, so a dirty checkout left behind by an earlier failure does
        not matter. Authorship is taken from the oldest commit of the pull
        request; the triggering user becomes the committer.

        Raises:
            NothingToMergeError: The branch has no commits beyond the merge base.
            SquashMergeError: Any git step failed; the message holds the full transcript.
        """
        source_branch = pull_request_branch(pull_request.number)
        target_branch = pull_request.base_branch
        pipeline = self._pipeline(local_path)

        self._git(pipeline, "fetch", "-f", self._remote, f"refs/pull/{pull_request.number}/head:{source_branch}")
        self._git(pipeline, "fetch", "-f", self._remote, f"{target_branch}:{shadow_reference(target_branch)}")

        self._git(pipeline, "reset", "--hard")
        self._git(pipeline, "checkout", target_branch)
        self._git(pipeline, "reset", "--hard", shadow_reference(target_branch))
        self._git(pipeline, "clean", "-fxd")

        merge_base = self._git(pipeline, "merge-base", source_branch, target_branch)
        revisions = self._git(pipeline, "rev-list", f"{merge_base}..{source_branch}").split()
        pipeline.raise_for_error(SquashMergeError)
        if not revisions:
            raise NothingToMergeError(NOTHING_TO_MERGE)

        # rev-list is newest first
        first_commit = revisions[-1]
        identity = {
            "GIT_AUTHOR_NAME": self._git(pipeline, "log", "-n1", "--pretty=format:%an", first_commit),
            "GIT_AUTHOR_EMAIL": self._git(pipeline, "log", "-n1", "--pretty=format:%ae", first_commit),
            "GIT_COMMITTER_NAME": committer.name,
            "GIT_COMMITTER_EMAIL": committer.email,
        }

        body = message_override or self._git(pipeline, "log", "-n1", "--pretty=format:%B", first_commit)
        message = build_commit_message(body, pull_request.html_url)

        self._git(pipeline, "merge", "--squash", "--no-commit", source_branch, env=identity)
        self._git(pipeline, "commit", "-F", "-", input_text=message, env=identity)
        sha = self._git(pipeline, "rev-parse", "HEAD")
        self._git(pipeline, "push", self._remote, target_branch)

        pipeline.raise_for_error(SquashMergeError)
        self._logger.info(
            "squash merge pushed",
            extra={
                "event": "git.squash.success",
                "local_path": str(local_path),
                "pull_request": pull_request.number,
                "target_branch": target_branch,
                "sha": sha,
                "commits": len(revisions),
            },
        )
        return sha

    def mirror_pull_request(self, local_path: Path, number: int) -> None:
        branch = pull_request_branch(number)
        pipeline = self._pipeline(local_path)
        self._git(pipeline, "fetch", "-f", self._remote, f"refs/pull/{number}/head:{branch}")
        self._git(pipeline, "push", "-f", self._remote, branch)
        pipeline.raise_for_error(CommandPipelineError)

    def delete_mirror(self, local_path: Path, number: int) -> None:
        pipeline = self._pipeline(local_path)
        self._git(pipeline, "push", self._remote, f":{pull_request_branch(number)}")
        pipeline.raise_for_error(CommandPipelineError)

    def _pipeline(self, cwd: Path) -> CommandPipeline:
        return CommandPipeline(cwd, timeout_seconds=self._timeout_seconds, runner=self._runner)

    def _git(self, pipeline: CommandPipeline, *args: str, **kwargs) -> str:
        return pipeline.run(self._git_executable, *args, **kwargs)
