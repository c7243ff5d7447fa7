from __future__ import annotations
"""Parsing of `@bot merge` / `@bot stop` comment commands."""

import re

from .entities import CommandKind, MergeCommand


_COMMAND_PATTERN = re.compile(r"^@(?P<login>[\w.-]+)\s+(?P<verb>merge|stop)\b", re.IGNORECASE)


def parse_command(body: str, bot_login: str) -> MergeCommand | None:
    """Parse a comment body addressed to `bot_login`.

    The first non-blank line carries the command. For `merge`, the next
    non-blank line becomes the commit subject and everything after it the
    description; both are empty when the comment has nothing more to say.

    Returns:
        The parsed command, or `None` when the comment is not a command for us.
    """
    lines = body.replace("\r\n", "\n").split("\n")
    while lines and not lines[0].strip():
        lines.pop(0)
    if not lines:
        return None

    match = _COMMAND_PATTERN.match(lines[0].strip())
    if match is None or match.group("login").lower() != bot_login.lower():
        return None

    kind = CommandKind(match.group("verb").lower())
    if kind is CommandKind.STOP:
        return MergeCommand(kind=kind)

    rest = lines[1:]
    while rest and not rest[0].strip():
        rest.pop(0)
    if not rest:
        return MergeCommand(kind=kind)

    return MergeCommand(
        kind=kind,
        subject=rest[0].strip(),
        description="\n".join(rest[1:]).strip(),
    )
