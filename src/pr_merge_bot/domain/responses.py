from __future__ import annotations
"""User-visible comment texts, one per terminal outcome."""

from .entities import BuildState


def no_access(login: str) -> str:
    return f"@{login}: Sorry, you don't have permission to ask me to do that."


def already_pending(login: str) -> str:
    return f"@{login}: This pull request is already waiting to be merged. Hang on."


def waiting(login: str) -> str:
    return f"@{login}: The build is still running. I'll merge once it has passed."


def bad_build(login: str, state: BuildState) -> str:
    return f"@{login}: The build status is `{state.value}`, so I'm not merging this."


def timeout(login: str, max_wait_seconds: float) -> str:
    return (
        f"@{login}: I gave up waiting for the build after {format_duration(max_wait_seconds)}. "
        "It may still be running; ask me again once it has finished."
    )


def clone_failed(login: str, detail: str) -> str:
    return f"@{login}: I could not clone the repository:\n\n{_verbatim(detail)}"


def no_user(login: str) -> str:
    return (
        f"@{login}: I could not look up your name and email address, which I need "
        "for the commit. Please make your email public and try again."
    )


def error(login: str, detail: str) -> str:
    return f"@{login}: Merging failed:\n\n{_verbatim(detail)}"


def thanks(login: str, sha: str) -> str:
    return f"@{login}: Thanks, merged as {sha}."


def not_merging(login: str) -> str:
    return f"@{login}: Understood, this will not be merged as is."


def format_duration(seconds: float) -> str:
    """Render a duration as `30 minutes`, `1 hour 5 minutes` or `45 seconds`."""
    total = int(seconds)
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)
    parts: list[str] = []
    if hours:
        parts.append(f"{hours} hour{'s' if hours != 1 else ''}")
    if minutes:
        parts.append(f"{minutes} minute{'s' if minutes != 1 else ''}")
    if secs or not parts:
        parts.append(f"{secs} second{'s' if secs != 1 else ''}")
    return " ".join(parts)


def _verbatim(text: str) -> str:
    return f"```\n{text.strip()}\n```"
