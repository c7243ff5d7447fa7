from __future__ import annotations
"""Fail-fast sequential execution of external commands.

A pipeline runs commands one by one in a fixed working directory. The first
failure puts it into an error state: later commands are not spawned and
return "". The combined output of every executed command is accumulated so
the whole transcript can be reported, since the root cause of a failing git
command is often visible in an earlier step.
"""

import logging
import os
import subprocess
from collections.abc import Mapping
from pathlib import Path
from typing import Callable

from pr_merge_bot.domain.errors import CommandFailedError, CommandPipelineError


LOGGER = logging.getLogger(__name__)


class CommandPipeline:
    def __init__(
        self,
        cwd: Path,
        *,
        env: Mapping[str, str] | None = None,
        timeout_seconds: float = 300.0,
        runner: Callable[..., subprocess.CompletedProcess[str]] = subprocess.run,
    ) -> None:
        """Create an empty pipeline bound to a working directory.

        Args:
            cwd: Directory every command runs in.
            env: Variables overlaid on the process environment for every command.
            timeout_seconds: Per-command timeout.
            runner: `subprocess.run` compatible callable, replaceable in tests.
        """
        self._cwd = cwd
        self._env = dict(env or {})
        self._timeout_seconds = timeout_seconds
        self._runner = runner
        self._chunks: list[str] = []
        self._error: Exception | None = None

    @property
    def failed(self) -> bool:
        return self._error is not None

    @property
    def error(self) -> Exception | None:
        """The error that stopped the pipeline, if any."""
        return self._error

    @property
    def output(self) -> str:
        """Accumulated stdout/stderr of every executed command."""
        return "".join(self._chunks)

    def run(self, *argv: str, input_text: str | None = None, env: Mapping[str, str] | None = None) -> str:
        """Run one command unless an earlier command already failed.

        Args:
            argv: Program and arguments.
            input_text: Optional text piped to standard input.
            env: Extra variables for this command only.

        Returns:
            The command's stripped standard output, or "" when skipped.
        """
        if self._error is not None:
            LOGGER.debug(
                "command skipped after earlier failure",
                extra={"event": "command.skipped", "command": " ".join(argv), "cwd": str(self._cwd)},
            )
            return ""

        command = list(argv)
        self._chunks.append(f"$ {' '.join(command)}\n")
        try:
            completed = self._runner(
                command,
                cwd=str(self._cwd),
                env=self._command_env(env),
                input=input_text,
                check=False,
                text=True,
                capture_output=True,
                timeout=self._timeout_seconds,
            )
        except FileNotFoundError as error:
            if error.filename == str(self._cwd) or not Path(self._cwd).is_dir():
                message = f"Working directory '{self._cwd}' does not exist"
            else:
                message = f"Executable '{command[0]}' was not found in PATH"
            self._fail(RuntimeError(message), command, cause=error)
            return ""
        except subprocess.TimeoutExpired as error:
            self._fail(
                RuntimeError(f"Command timed out after {self._timeout_seconds}s: {' '.join(command)}"),
                command,
                cause=error,
            )
            return ""

        stdout = completed.stdout or ""
        self._append(stdout)
        self._append(completed.stderr or "")

        if completed.returncode != 0:
            self._fail(CommandFailedError(command, completed.returncode), command)
        return stdout.strip()

    def raise_for_error(self, error_cls: type[CommandPipelineError] = CommandPipelineError) -> None:
        """Raise `error_cls` carrying the whole transcript if any command failed."""
        if self._error is None:
            return
        raise error_cls(self.output.strip()) from self._error

    def _command_env(self, extra: Mapping[str, str] | None) -> dict[str, str]:
        merged = dict(os.environ)
        merged.update(self._env)
        if extra:
            merged.update(extra)
        return merged

    def _append(self, text: str) -> None:
        if not text:
            return
        self._chunks.append(text if text.endswith("\n") else f"{text}\n")

    def _fail(self, error: Exception, command: list[str], *, cause: BaseException | None = None) -> None:
        if cause is not None:
            error.__cause__ = cause
            self._append(str(error))
        self._error = error
        LOGGER.error(
            "command failed",
            extra={
                "event": "command.failed",
                "command": " ".join(command),
                "cwd": str(self._cwd),
                "error": str(error),
            },
        )
