from __future__ import annotations
"""Squash commit message construction."""

import re
import textwrap


REFLOW_WIDTH = 76
PULL_REQUEST_TRAILER = "GitHub-Pull-Request"

_PARAGRAPH_BREAK = re.compile(r"\n[ \t]*\n")


def reflow(text: str, width: int = REFLOW_WIDTH) -> str:
    """Word-wrap each blank-line separated paragraph to `width` columns."""
    paragraphs = [" ".join(chunk.split()) for chunk in _PARAGRAPH_BREAK.split(text.strip())]
    return "\n\n".join(
        textwrap.fill(paragraph, width=width, break_long_words=False, break_on_hyphens=False)
        for paragraph in paragraphs
        if paragraph
    )


def override_message(subject: str, description: str) -> str:
    """Return the commit message requested in a merge command, or "" for none."""
    if not subject.strip():
        return ""
    return f"{subject.strip()}\n\n{reflow(description)}".strip()


def build_commit_message(body: str, pull_request_url: str) -> str:
    """Append the pull request trailer to a commit message body."""
    return f"{body.strip()}\n\n{PULL_REQUEST_TRAILER}: {pull_request_url}\n"
