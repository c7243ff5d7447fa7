from __future__ import annotations

import logging
from typing import Any

from pr_merge_bot.adapters.webhook.github_events import parse_comment, parse_pull_request_event
from pr_merge_bot.application.use_cases.merge_orchestrator import MergeOrchestrator
from pr_merge_bot.domain.commands import parse_command
from pr_merge_bot.domain.entities import CommandKind


LOGGER = logging.getLogger(__name__)


class WebhookDispatcher:
    """Route webhook deliveries to the merge orchestrator.

    `dispatch` returns a short label describing what was done with the
    delivery (`merge`, `stop`, `pull_request`, `pong` or `ignored`).
    """

    def __init__(self, orchestrator: MergeOrchestrator, *, bot_login: str) -> None:
        self._orchestrator = orchestrator
        self._bot_login = bot_login

    def dispatch(self, event_name: str, payload: dict[str, Any]) -> str:
        if event_name == "ping":
            return "pong"

        if event_name == "issue_comment":
            if payload.get("action") != "created":
                return "ignored"
            comment = parse_comment(payload)
            if comment is None:
                return "ignored"
            command = parse_command(comment.body, self._bot_login)
            if command is None:
                return "ignored"
            if command.kind is CommandKind.STOP:
                self._orchestrator.handle_stop(comment)
                return "stop"
            self._orchestrator.handle_merge(comment, command)
            return "merge"

        if event_name == "pull_request":
            event = parse_pull_request_event(payload)
            if event is None:
                return "ignored"
            self._orchestrator.handle_pull_request(event)
            return "pull_request"

        return "ignored"

    def dispatch_safely(self, event_name: str, payload: dict[str, Any]) -> str:
        """`dispatch` for background execution: failures are logged, not raised."""
        try:
            outcome = self.dispatch(event_name, payload)
        except Exception:  # noqa: BLE001
            LOGGER.exception("webhook handling failed", extra={"event": "webhook.failed", "github_event": event_name})
            return "failed"
        LOGGER.info("webhook handled", extra={"event": "webhook.handled", "github_event": event_name, "outcome": outcome})
        return outcome
