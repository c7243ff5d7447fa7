from __future__ import annotations
"""Application use case handling merge/stop commands and pull request events."""

from concurrent.futures import Executor
import logging
import threading

from pr_merge_bot.application.use_cases.status_poller import StatusPoller
from pr_merge_bot.domain import responses
from pr_merge_bot.domain.build_status import aggregate_status
from pr_merge_bot.domain.commit_message import override_message
from pr_merge_bot.domain.entities import (
    BuildState,
    Comment,
    MergeCommand,
    PendingKey,
    PullRequest,
    PullRequestEvent,
    Repository,
)
from pr_merge_bot.domain.errors import CloneError, CodeHostError, CommandPipelineError
from pr_merge_bot.domain.ports import CodeHostPort, GitClientPort, PermissionPort, WorkspacePort


LOGGER = logging.getLogger(__name__)

DEFAULT_REVIEW_CONTEXT = "merge-bot/review"
MIRROR_ACTIONS = {"opened", "reopened", "synchronize"}


class MergeOrchestrator:
    """Per-command state machine driving squash merges.

    Responsibilities:
    - reject commands from actors without permission
    - reject merge commands for pull requests already waiting on CI
    - merge immediately on green builds, defer to `StatusPoller` on pending ones
    - keep the pull request mirror branch and review status in sync

    All workspace mutations of one repository run under that repository's lock;
    different repositories proceed concurrently. Deferred merges poll without
    holding the lock and take it again only to merge and to leave the pending
    set.
    """

    def __init__(
        self,
        *,
        code_host: CodeHostPort,
        git_client: GitClientPort,
        workspaces: WorkspacePort,
        permissions: PermissionPort,
        poller: StatusPoller,
        executor: Executor,
        review_context: str = DEFAULT_REVIEW_CONTEXT,
    ) -> None:
        self._code_host = code_host
        self._git_client = git_client
        self._workspaces = workspaces
        self._permissions = permissions
        self._poller = poller
        self._executor = executor
        self._review_context = review_context
        self._registry_lock = threading.Lock()
        self._repository_locks: dict[str, threading.Lock] = {}
        self._pending: set[PendingKey] = set()

    def pending_keys(self) -> frozenset[PendingKey]:
        """Snapshot of pull requests with a deferred merge in flight."""
        with self._registry_lock:
            return frozenset(self._pending)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def handle_merge(self, comment: Comment, command: MergeCommand) -> None:
        repository = comment.repository
        with self._repository_lock(repository):
            if not self._check_access(comment):
                return

            key = PendingKey(repository.full_name, comment.issue_number)
            if self._is_pending(key):
                self._reply(comment, responses.already_pending(comment.sender_login))
                LOGGER.info(
                    "rejecting merge for already pending pull request",
                    extra={"event": "merge.rejected.pending", **_comment_fields(comment)},
                )
                return

            try:
                pull_request = self._code_host.get_pull_request(repository, comment.issue_number)
                state = self._build_state(pull_request)
            except CodeHostError as error:
                LOGGER.exception("pull request lookup failed", extra={"event": "merge.lookup_failed", **_comment_fields(comment)})
                self._reply(comment, responses.error(comment.sender_login, str(error)))
                return

            LOGGER.info(
                "merge requested",
                extra={"event": "merge.requested", "state": state.value, **_comment_fields(comment)},
            )

            if state is BuildState.SUCCESS:
                self._perform_merge(comment, command, pull_request)
            elif state is BuildState.PENDING:
                self._reply(comment, responses.waiting(comment.sender_login))
                accepted_at = self._poller.now()
                self._add_pending(key)
                try:
                    self._executor.submit(self._deferred_merge, comment, command, pull_request, key, accepted_at)
                except RuntimeError:
                    self._discard_pending(key)
                    raise
            else:
                self._reply(comment, responses.bad_build(comment.sender_login, state))

    def handle_stop(self, comment: Comment) -> None:
        with self._repository_lock(comment.repository):
            if not self._check_access(comment):
                return

            try:
                pull_request = self._code_host.get_pull_request(comment.repository, comment.issue_number)
                self._code_host.set_status(
                    pull_request,
                    BuildState.FAILURE,
                    self._review_context,
                    "Not to be merged as is.",
                )
            except CodeHostError as error:
                LOGGER.exception("stop request failed", extra={"event": "stop.failed", **_comment_fields(comment)})
                self._reply(comment, responses.error(comment.sender_login, str(error)))
                return

            self._reply(comment, responses.not_merging(comment.sender_login))
            LOGGER.info("merge vetoed", extra={"event": "stop.completed", **_comment_fields(comment)})

    def handle_pull_request(self, event: PullRequestEvent) -> None:
        pull_request = event.pull_request
        if event.action not in MIRROR_ACTIONS and event.action != "closed":
            LOGGER.debug(
                "pull request action ignored",
                extra={"event": "pull_request.ignored", "action": event.action, **_pull_request_fields(pull_request)},
            )
            return

        with self._repository_lock(pull_request.repository):
            try:
                workspace = self._workspaces.ensure(pull_request.repository)
            except (CloneError, OSError, ValueError):
                LOGGER.exception(
                    "workspace unavailable; pull request event dropped",
                    extra={"event": "pull_request.clone_failed", **_pull_request_fields(pull_request)},
                )
                return

            if event.action in MIRROR_ACTIONS:
                self._sync_mirror(self._git_client.mirror_pull_request, workspace, pull_request)
                description = "At your service."
            else:
                self._sync_mirror(self._git_client.delete_mirror, workspace, pull_request)
                description = "Closed."

            try:
                self._code_host.set_status(pull_request, BuildState.SUCCESS, self._review_context, description)
            except CodeHostError:
                LOGGER.exception(
                    "review status update failed",
                    extra={"event": "pull_request.status_failed", **_pull_request_fields(pull_request)},
                )
                return

            LOGGER.info(
                "pull request synchronized",
                extra={"event": "pull_request.synced", "action": event.action, **_pull_request_fields(pull_request)},
            )

    def _deferred_merge(
        self,
        comment: Comment,
        command: MergeCommand,
        pull_request: PullRequest,
        key: PendingKey,
        accepted_at: float,
    ) -> None:
        try:
            result = self._poller.wait_for_resolution(
                lambda: self._build_state(pull_request),
                started_at=accepted_at,
            )
            if result.timed_out:
                self._reply(comment, responses.timeout(comment.sender_login, self._poller.max_wait_seconds))
            elif result.state is BuildState.SUCCESS:
                with self._repository_lock(comment.repository):
                    self._perform_merge(comment, command, pull_request)
            else:
                self._reply(comment, responses.bad_build(comment.sender_login, result.state))
        except Exception as error:  # noqa: BLE001
            LOGGER.exception("deferred merge failed", extra={"event": "merge.deferred.failed", **_comment_fields(comment)})
            self._reply(comment, responses.error(comment.sender_login, str(error)))
        finally:
            with self._repository_lock(comment.repository):
                self._discard_pending(key)

    def _perform_merge(self, comment: Comment, command: MergeCommand, pull_request: PullRequest) -> None:
        """Squash-merge `pull_request`; the caller holds the repository lock."""
        LOGGER.info("attempting merge", extra={"event": "merge.start", **_comment_fields(comment)})

        try:
            workspace = self._workspaces.ensure(comment.repository)
        except (CloneError, OSError, ValueError) as error:
            LOGGER.exception("clone failed", extra={"event": "merge.clone_failed", **_comment_fields(comment)})
            self._reply(comment, responses.clone_failed(comment.sender_login, str(error)))
            return

        try:
            committer = self._code_host.get_user(comment.sender_login)
        except CodeHostError:
            LOGGER.exception("user lookup failed", extra={"event": "merge.user_lookup_failed", **_comment_fields(comment)})
            committer = None
        if committer is None or not committer.email:
            self._reply(comment, responses.no_user(comment.sender_login))
            LOGGER.warning("no committer identity", extra={"event": "merge.no_user", **_comment_fields(comment)})
            return

        try:
            sha = self._git_client.squash(
                workspace,
                pull_request,
                committer,
                override_message(command.subject, command.description),
            )
        except CommandPipelineError as error:
            self._reply(comment, responses.error(comment.sender_login, str(error)))
            LOGGER.error(
                "merge failed",
                extra={"event": "merge.failed", "details": str(error), **_comment_fields(comment)},
            )
            return

        self._reply(comment, responses.thanks(comment.sender_login, sha))
        try:
            self._code_host.close_pull_request(pull_request)
        except CodeHostError:
            LOGGER.exception("closing pull request failed", extra={"event": "merge.close_failed", **_comment_fields(comment)})
        LOGGER.info("merge completed", extra={"event": "merge.completed", "sha": sha, **_comment_fields(comment)})

    def _check_access(self, comment: Comment) -> bool:
        if self._permissions.is_allowed(comment.repository, comment.sender_login):
            return True
        self._reply(comment, responses.no_access(comment.sender_login))
        LOGGER.info("rejecting request by unknown user", extra={"event": "access.denied", **_comment_fields(comment)})
        return False

    def _build_state(self, pull_request: PullRequest) -> BuildState:
        return aggregate_status(self._code_host.get_statuses(pull_request))

    def _sync_mirror(self, operation, workspace, pull_request: PullRequest) -> None:
        try:
            operation(workspace, pull_request.number)
        except CommandPipelineError:
            LOGGER.exception(
                "mirror branch update failed",
                extra={"event": "pull_request.mirror_failed", **_pull_request_fields(pull_request)},
            )

    def _reply(self, comment: Comment, body: str) -> None:
        try:
            self._code_host.post_comment(comment.repository, comment.issue_number, body)
        except CodeHostError:
            LOGGER.exception("posting comment failed", extra={"event": "comment.post_failed", **_comment_fields(comment)})

    def _repository_lock(self, repository: Repository) -> threading.Lock:
        with self._registry_lock:
            return self._repository_locks.setdefault(repository.full_name, threading.Lock())

    def _is_pending(self, key: PendingKey) -> bool:
        with self._registry_lock:
            return key in self._pending

    def _add_pending(self, key: PendingKey) -> None:
        with self._registry_lock:
            self._pending.add(key)

    def _discard_pending(self, key: PendingKey) -> None:
        with self._registry_lock:
            self._pending.discard(key)


def _comment_fields(comment: Comment) -> dict[str, object]:
    return {
        "repository": comment.repository.full_name,
        "pull_request": comment.issue_number,
        "sender": comment.sender_login,
    }


def _pull_request_fields(pull_request: PullRequest) -> dict[str, object]:
    return {"repository": pull_request.repository.full_name, "pull_request": pull_request.number}
