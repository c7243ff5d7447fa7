from __future__ import annotations

import logging
import re
from pathlib import Path

from pr_merge_bot.domain.entities import Repository
from pr_merge_bot.domain.ports import GitClientPort, WorkspacePort


_FULL_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+/[A-Za-z0-9_.-]+$")


class LocalWorkspaceManager(WorkspacePort):
    def __init__(self, base_dir: Path, git_client: GitClientPort) -> None:
        self._base_dir = base_dir
        self._git_client = git_client
        self._logger = logging.getLogger(__name__)

    def path_for(self, repository: Repository) -> Path:
        full_name = repository.full_name
        if not _FULL_NAME_PATTERN.match(full_name) or any(part in {".", ".."} for part in full_name.split("/")):
            raise ValueError(f"Invalid repository name: {full_name!r}")
        return self._base_dir / repository.owner / repository.name

    def ensure(self, repository: Repository) -> Path:
        local_path = self.path_for(repository)
        if (local_path / ".git").exists():
            return local_path

        self._logger.info(
            "workspace missing; cloning",
            extra={"event": "workspace.clone", "repository": repository.full_name, "local_path": str(local_path)},
        )
        self._git_client.clone(repository.full_name, local_path)
        return local_path
