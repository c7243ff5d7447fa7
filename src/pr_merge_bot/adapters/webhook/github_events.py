from __future__ import annotations
"""Parsing and authentication of GitHub webhook deliveries."""

import hashlib
import hmac
from typing import Any

from pr_merge_bot.adapters.code_hosts.github_api import map_pull_request
from pr_merge_bot.domain.entities import Comment, PullRequestEvent, Repository


SIGNATURE_PREFIX = "sha256="


def verify_signature(secret: str | None, body: bytes, signature_header: str | None) -> bool:
    """Check an `X-Hub-Signature-256` header against the raw request body.

    Without a configured secret every delivery is accepted.
    """
    if not secret:
        return True
    if not signature_header or not signature_header.startswith(SIGNATURE_PREFIX):
        return False
    expected = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature_header[len(SIGNATURE_PREFIX):])


def parse_comment(payload: dict[str, Any]) -> Comment | None:
    """Return the comment of an `issue_comment` delivery on a pull request.

    Comments on plain issues, and payloads missing required fields, yield `None`.
    """
    issue = payload.get("issue")
    comment = payload.get("comment")
    sender = payload.get("sender")
    repository = _repository(payload)
    if not isinstance(issue, dict) or not isinstance(comment, dict) or not isinstance(sender, dict) or repository is None:
        return None
    if not isinstance(issue.get("pull_request"), dict):
        return None

    number = issue.get("number")
    login = sender.get("login")
    body = comment.get("body")
    if not isinstance(number, int) or not isinstance(login, str) or not isinstance(body, str):
        return None

    return Comment(repository=repository, issue_number=number, sender_login=login, body=body)


def parse_pull_request_event(payload: dict[str, Any]) -> PullRequestEvent | None:
    """Return the lifecycle event carried by a `pull_request` delivery."""
    action = payload.get("action")
    pull_request = payload.get("pull_request")
    repository = _repository(payload)
    if not isinstance(action, str) or not isinstance(pull_request, dict) or repository is None:
        return None
    if not isinstance(pull_request.get("number"), int):
        return None
    return PullRequestEvent(action=action, pull_request=map_pull_request(repository, pull_request))


def _repository(payload: dict[str, Any]) -> Repository | None:
    repository = payload.get("repository")
    if not isinstance(repository, dict):
        return None
    full_name = repository.get("full_name")
    if not isinstance(full_name, str) or "/" not in full_name:
        return None
    return Repository(full_name=full_name)
