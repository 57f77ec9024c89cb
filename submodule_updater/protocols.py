"""Protocols for the engine's collaborators (dependency injection seams)."""

from __future__ import annotations

from pathlib import Path
from typing import Protocol

from submodule_updater.models import (
    PushResult,
    RemoteRepository,
    RepositoryHandle,
    SubmoduleRecord,
)


class VersionControlDriver(Protocol):
    """Protocol for git operations against one working tree"""

    def recorded_commit(self, path: str) -> str: ...
    def fetch_and_checkout(self, path: str, target_commit: str) -> None: ...
    def stage_and_commit(self, path: str, from_commit: str, to_commit: str) -> None: ...
    def ensure_identity(self) -> None: ...
    def diverges_from_remote(self, branch: str) -> bool: ...
    def synchronize_with_remote(self, branch: str) -> bool: ...
    def push(self, branch: str, force: bool = False) -> PushResult: ...
    def current_branch(self) -> str: ...
    def has_uncommitted_changes(self) -> bool: ...
    def close(self) -> None: ...


class ManifestReader(Protocol):
    """Protocol for reading declared submodules"""

    def parse(self, repo_root: Path) -> list[SubmoduleRecord]: ...


class RemoteCommitResolver(Protocol):
    """Protocol for the hosting API"""

    def repository_for(self, url: str) -> tuple[str, str] | None: ...
    def latest_commit(self, owner: str, repo: str, branch: str) -> str: ...
    def default_branch(self, owner: str, repo: str) -> str: ...


class RepositoryProvisioner(Protocol):
    """Protocol for materializing and removing working trees"""

    def provision(self, remote: RemoteRepository, target_path: Path | None = None) -> RepositoryHandle: ...
    def teardown(self, handle: RepositoryHandle) -> None: ...


class OutputHandler(Protocol):
    """Protocol for handling output"""

    def info(self, message: str, indent: int = 0) -> None: ...
    def success(self, message: str, indent: int = 0) -> None: ...
    def warning(self, message: str, indent: int = 0) -> None: ...
    def error(self, message: str, indent: int = 0) -> None: ...
    def section(self, title: str) -> None: ...
    def debug(self, message: str) -> None: ...
