from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from pr_merge_bot.application.use_cases.merge_orchestrator import DEFAULT_REVIEW_CONTEXT


DEFAULT_LISTEN_ADDRESS = "127.0.0.1:8080"
DEFAULT_API_BASE_URL = "https://api.github.com"
DEFAULT_CLONE_URL_TEMPLATE = "git@github.com:{full_name}.git"


@dataclass(slots=True)
class AppConfig:
    username: str
    token: str
    base_dir: Path
    listen_host: str
    listen_port: int
    allowed_users: tuple[str, ...]
    allowed_teams: tuple[str, ...]
    webhook_secret: str | None
    github_api_base_url: str
    github_timeout_seconds: float
    clone_url_template: str
    max_wait_seconds: float
    max_poll_interval_seconds: float
    review_context: str
    poll_workers: int


def load_config(args, env: Mapping[str, str]) -> AppConfig:
    username = _normalize_empty(args.username) or _normalize_empty(env.get("GITHUB_USERNAME"))
    token = _normalize_empty(env.get("GITHUB_TOKEN"))
    base_dir_raw = _normalize_empty(args.base_dir) or _normalize_empty(env.get("BASE_DIR"))
    listen = _normalize_empty(args.listen) or _normalize_empty(env.get("LISTEN_ADDRESS")) or DEFAULT_LISTEN_ADDRESS

    if not username:
        raise ValueError("Missing bot username. Use --username or set GITHUB_USERNAME")

    if not token:
        raise ValueError("Missing API token. Set GITHUB_TOKEN")

    if not base_dir_raw:
        raise ValueError("Missing base directory. Use --base-dir or set BASE_DIR")

    listen_host, listen_port = _parse_listen_address(listen)

    allowed_users = tuple(args.allow or ()) or _parse_csv(env.get("ALLOWED_USERS"))
    allowed_teams = tuple(args.allow_team or ()) or _parse_csv(env.get("ALLOWED_TEAMS"))

    clone_url_template = _normalize_empty(env.get("GIT_CLONE_URL_TEMPLATE")) or DEFAULT_CLONE_URL_TEMPLATE
    if "{full_name}" not in clone_url_template:
        raise ValueError("GIT_CLONE_URL_TEMPLATE must contain the {full_name} placeholder")

    max_wait_seconds = _parse_float(env.get("MERGE_MAX_WAIT_SECONDS"), "MERGE_MAX_WAIT_SECONDS", default=1800.0, minimum=1.0)
    max_poll_interval_seconds = _parse_float(
        env.get("MERGE_MAX_POLL_INTERVAL_SECONDS"),
        "MERGE_MAX_POLL_INTERVAL_SECONDS",
        default=64.0,
        minimum=1.0,
    )

    raw_workers = _normalize_empty(env.get("MERGE_POLL_WORKERS"))
    try:
        poll_workers = int(raw_workers) if raw_workers else 4
    except ValueError as error:
        raise ValueError("MERGE_POLL_WORKERS must be an integer") from error
    if poll_workers <= 0:
        raise ValueError("MERGE_POLL_WORKERS must be greater than 0")

    return AppConfig(
        username=username,
        token=token,
        base_dir=Path(base_dir_raw).expanduser(),
        listen_host=listen_host,
        listen_port=listen_port,
        allowed_users=allowed_users,
        allowed_teams=allowed_teams,
        webhook_secret=_normalize_empty(env.get("WEBHOOK_SECRET")),
        github_api_base_url=_normalize_empty(env.get("GITHUB_API_BASE_URL")) or DEFAULT_API_BASE_URL,
        github_timeout_seconds=_parse_float(
            env.get("GITHUB_TIMEOUT_SECONDS"),
            "GITHUB_TIMEOUT_SECONDS",
            default=30.0,
            minimum=0.1,
        ),
        clone_url_template=clone_url_template,
        max_wait_seconds=max_wait_seconds,
        max_poll_interval_seconds=max_poll_interval_seconds,
        review_context=_normalize_empty(env.get("REVIEW_STATUS_CONTEXT")) or DEFAULT_REVIEW_CONTEXT,
        poll_workers=poll_workers,
    )


def _parse_listen_address(value: str) -> tuple[str, int]:
    host, separator, raw_port = value.rpartition(":")
    if not separator:
        raise ValueError("LISTEN_ADDRESS/--listen must look like host:port")
    try:
        port = int(raw_port)
    except ValueError as error:
        raise ValueError("LISTEN_ADDRESS/--listen port must be an integer") from error
    if not 0 <= port <= 65535:
        raise ValueError("LISTEN_ADDRESS/--listen port must be between 0 and 65535")
    return host or "0.0.0.0", port


def _parse_csv(value: str | None) -> tuple[str, ...]:
    if not value:
        return ()
    return tuple(item.strip() for item in value.split(",") if item.strip())


def _parse_float(value: str | None, name: str, *, default: float, minimum: float) -> float:
    raw = _normalize_empty(value)
    if raw is None:
        return default
    try:
        parsed = float(raw)
    except ValueError as error:
        raise ValueError(f"{name} must be a number") from error
    if parsed < minimum:
        raise ValueError(f"{name} must be >= {minimum}")
    return parsed


def _normalize_empty(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = value.strip()
    return stripped if stripped else None
