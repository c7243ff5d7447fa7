from __future__ import annotations
"""Error taxonomy for infrastructure failures.

Everything derives from `RuntimeError`, matching how adapters surface
subprocess and HTTP problems to the use cases.
"""

from typing import Sequence


class CommandFailedError(RuntimeError):
    """A single external command exited with a non-zero status."""

    def __init__(self, argv: Sequence[str], return_code: int) -> None:
        self.argv = tuple(argv)
        self.return_code = return_code
        super().__init__(f"Command failed ({return_code}): {' '.join(self.argv)}")


class CommandPipelineError(RuntimeError):
    """A command pipeline stopped early; the message is the accumulated output."""


class SquashMergeError(CommandPipelineError):
    """The squash-merge transaction could not be completed."""


class NothingToMergeError(SquashMergeError):
    """The pull request branch has no commits that are not on the target."""


class CloneError(CommandPipelineError):
    """A repository workspace could not be cloned."""


class CodeHostError(RuntimeError):
    """The code hosting API rejected or failed a request."""
