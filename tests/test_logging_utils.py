from __future__ import annotations

import json
import logging
import sys

from pr_merge_bot.logging_utils import JsonLogFormatter


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord("pr_merge_bot.test", logging.INFO, __file__, 1, "merge %s", ("done",), None)
    record.__dict__.update(extra)
    return record


def test_formatter_emits_extra_fields():
    line = JsonLogFormatter().format(_record(event="merge.completed", pull_request=7))

    payload = json.loads(line)
    assert payload["message"] == "merge done"
    assert payload["level"] == "INFO"
    assert payload["logger"] == "pr_merge_bot.test"
    assert payload["event"] == "merge.completed"
    assert payload["pull_request"] == 7
    assert "args" not in payload


def test_formatter_includes_exception():
    try:
        raise RuntimeError("boom")
    except RuntimeError:
        record = _record()
        record.exc_info = sys.exc_info()

    payload = json.loads(JsonLogFormatter().format(record))
    assert "RuntimeError: boom" in payload["exception"]
