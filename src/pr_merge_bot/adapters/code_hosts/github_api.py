from __future__ import annotations

import base64
import json
import logging
import re
from typing import Any, Callable
from urllib.error import HTTPError, URLError
from urllib.parse import quote
from urllib.request import Request, urlopen

from pr_merge_bot.domain.entities import DEFAULT_BASE_BRANCH, BuildState, PullRequest, Repository, StatusCheck, User
from pr_merge_bot.domain.errors import CodeHostError
from pr_merge_bot.domain.ports import CodeHostPort


_NEXT_LINK_PATTERN = re.compile(r'<([^>]+)>\s*;\s*rel="next"')


class GitHubCodeHostAdapter(CodeHostPort):
    def __init__(
        self,
        *,
        api_base_url: str = "https://api.github.com",
        token: str | None = None,
        username: str | None = None,
        timeout_seconds: float = 30.0,
        urlopen_fn: Callable[..., Any] = urlopen,
    ) -> None:
        self._api_base_url = api_base_url.rstrip("/")
        self._token = token
        self._username = username
        self._timeout_seconds = timeout_seconds
        self._urlopen_fn = urlopen_fn
        self._logger = logging.getLogger(__name__)

    def get_pull_request(self, repository: Repository, number: int) -> PullRequest:
        payload, _ = self._request_json("GET", f"{self._repo_url(repository)}/pulls/{number}")
        if not isinstance(payload, dict):
            raise CodeHostError("Unexpected GitHub API payload: pull request must be a JSON object")
        return map_pull_request(repository, payload)

    def get_statuses(self, pull_request: PullRequest) -> list[StatusCheck]:
        url = f"{self._repo_url(pull_request.repository)}/commits/{quote(pull_request.head_sha, safe='')}/statuses"
        latest: dict[str, StatusCheck] = {}
        # GitHub lists statuses newest first; keep the first entry per context.
        for item in self._request_list(url):
            context = item.get("context")
            state = item.get("state")
            if not isinstance(context, str) or not isinstance(state, str) or context in latest:
                continue
            description = item.get("description")
            latest[context] = StatusCheck(
                context=context,
                state=state,
                description=description if isinstance(description, str) else "",
            )
        return list(latest.values())

    def get_user(self, login: str) -> User:
        payload, _ = self._request_json("GET", f"{self._api_base_url}/users/{quote(login, safe='')}")
        if not isinstance(payload, dict):
            raise CodeHostError("Unexpected GitHub API payload: user must be a JSON object")
        name = payload.get("name")
        email = payload.get("email")
        return User(
            login=login,
            name=name.strip() if isinstance(name, str) and name.strip() else login,
            email=email.strip() if isinstance(email, str) else "",
        )

    def post_comment(self, repository: Repository, issue_number: int, body: str) -> None:
        self._request_json("POST", f"{self._repo_url(repository)}/issues/{issue_number}/comments", {"body": body})

    def close_pull_request(self, pull_request: PullRequest) -> None:
        self._request_json(
            "PATCH",
            f"{self._repo_url(pull_request.repository)}/issues/{pull_request.number}",
            {"state": "closed"},
        )

    def set_status(self, pull_request: PullRequest, state: BuildState, context: str, description: str) -> None:
        self._request_json(
            "POST",
            f"{self._repo_url(pull_request.repository)}/statuses/{quote(pull_request.head_sha, safe='')}",
            {"state": state.value, "context": context, "description": description},
        )

    def list_team_members(self, organization: str, team_slug: str) -> list[str]:
        url = f"{self._api_base_url}/orgs/{quote(organization, safe='')}/teams/{quote(team_slug, safe='')}/members"
        members: list[str] = []
        for item in self._request_list(url):
            login = item.get("login")
            if isinstance(login, str) and login:
                members.append(login)
        return members

    def _repo_url(self, repository: Repository) -> str:
        return f"{self._api_base_url}/repos/{quote(repository.owner, safe='')}/{quote(repository.name, safe='')}"

    def _request_list(self, url: str) -> list[dict[str, Any]]:
        items: list[dict[str, Any]] = []
        next_url: str | None = f"{url}?per_page=100"
        while next_url:
            payload, next_url = self._request_json("GET", next_url)
            if not isinstance(payload, list):
                raise CodeHostError(f"Unexpected GitHub API payload for URL {url}: expected a JSON list")
            items.extend(item for item in payload if isinstance(item, dict))
        return items

    def _request_json(self, method: str, url: str, body: dict[str, Any] | None = None) -> tuple[Any, str | None]:
        data = json.dumps(body).encode("utf-8") if body is not None else None
        headers = self._build_headers()
        if data is not None:
            headers["Content-Type"] = "application/json"
        request = Request(url, data=data, headers=headers, method=method)

        try:
            with self._urlopen_fn(request, timeout=self._timeout_seconds) as response:
                content = response.read()
                link_header = response.headers.get("Link")
        except HTTPError as error:
            self._logger.error(
                "github api request failed",
                extra={"event": "github.request.failed", "method": method, "url": url, "status": error.code},
            )
            raise CodeHostError(f"GitHub API request failed with HTTP {error.code}: {method} {url}") from error
        except URLError as error:
            raise CodeHostError(f"GitHub API request failed: {method} {url}: {error.reason}") from error

        next_url = None
        if link_header:
            match = _NEXT_LINK_PATTERN.search(link_header)
            next_url = match.group(1) if match else None

        if not content:
            return None, next_url
        try:
            return json.loads(content), next_url
        except json.JSONDecodeError as error:
            raise CodeHostError(f"Invalid JSON received from GitHub API: {method} {url}") from error

    def _build_headers(self) -> dict[str, str]:
        headers: dict[str, str] = {
            "Accept": "application/vnd.github+json",
            "User-Agent": self._username or "pr-merge-bot",
        }

        if self._token and self._username:
            credentials = f"{self._username}:{self._token}".encode("utf-8")
            headers["Authorization"] = f"Basic {base64.b64encode(credentials).decode('ascii')}"
        elif self._token:
            headers["Authorization"] = f"Bearer {self._token}"

        return headers


def map_pull_request(repository: Repository, payload: dict[str, Any]) -> PullRequest:
    """Build a `PullRequest` from a GitHub pull request object."""
    number = payload.get("number")
    if not isinstance(number, int):
        raise CodeHostError("Unexpected GitHub API payload: pull request has no number")

    html_url = payload.get("html_url")
    head = payload.get("head") if isinstance(payload.get("head"), dict) else {}
    base = payload.get("base") if isinstance(payload.get("base"), dict) else {}
    head_sha = head.get("sha")
    base_ref = base.get("ref")

    return PullRequest(
        repository=repository,
        number=number,
        html_url=html_url if isinstance(html_url, str) else "",
        head_sha=head_sha if isinstance(head_sha, str) else "",
        base_branch=base_ref if isinstance(base_ref, str) and base_ref else DEFAULT_BASE_BRANCH,
    )
