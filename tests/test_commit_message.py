"""Unit tests for commit message construction and comment command parsing."""

from __future__ import annotations

from pr_merge_bot.domain.commands import parse_command
from pr_merge_bot.domain.commit_message import build_commit_message, override_message, reflow
from pr_merge_bot.domain.entities import CommandKind


PR_URL = "https://github.com/acme/widgets/pull/7"


def test_reflow_wraps_at_76_columns_and_keeps_paragraphs():
    text = " ".join(["word"] * 40) + "\n\nsecond\nparagraph"

    result = reflow(text)

    first, second = result.split("\n\n")
    assert all(len(line) <= 76 for line in first.splitlines())
    assert len(first.splitlines()) > 1
    assert second == "second paragraph"


def test_override_message_puts_subject_first():
    description = "line one line two " * 10

    message = override_message("Fix bug", description)

    assert message.startswith("Fix bug\n\n" + reflow(description))
    assert override_message("", description) == ""


def test_build_commit_message_appends_trailer():
    message = build_commit_message(override_message("Fix bug", "line one line two"), PR_URL)

    assert message == f"Fix bug\n\nline one line two\n\nGitHub-Pull-Request: {PR_URL}\n"


def test_build_commit_message_trims_original_body():
    message = build_commit_message("lib: Add widget\n\nDetails here.\n\n\n", PR_URL)

    assert message.startswith("lib: Add widget\n\nDetails here.\n\nGitHub-Pull-Request:")
    assert message.splitlines()[-1] == f"GitHub-Pull-Request: {PR_URL}"


def test_parse_merge_without_override():
    command = parse_command("@mergebot merge", "mergebot")

    assert command is not None
    assert command.kind is CommandKind.MERGE
    assert command.subject == ""


def test_parse_merge_with_subject_and_description():
    body = "\n@MergeBot merge please\r\n\r\nlib: Fix bug\r\nThe long\r\ndescription.\r\n"

    command = parse_command(body, "mergebot")

    assert command is not None
    assert command.subject == "lib: Fix bug"
    assert command.description == "The long\ndescription."


def test_parse_stop_and_foreign_comments():
    assert parse_command("@mergebot stop", "mergebot").kind is CommandKind.STOP
    assert parse_command("@someone-else merge", "mergebot") is None
    assert parse_command("LGTM, @mergebot merge", "mergebot") is None
    assert parse_command("@mergebot merged already?", "mergebot") is None
    assert parse_command("   ", "mergebot") is None
