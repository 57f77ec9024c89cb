"""Domain models: enums, dataclasses, and configuration."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum, auto
from pathlib import Path
from typing import Any

UNKNOWN_COMMIT = "unknown"


class GitErrorKind(Enum):
    """Classification of a failed git command"""
    REMOTE_AHEAD = auto()
    PERMISSION_DENIED = auto()
    REPOSITORY_NOT_FOUND = auto()
    PROTECTED_BRANCH = auto()
    SUBMODULE_CONFLICT = auto()
    TIMEOUT = auto()
    UNKNOWN = auto()


class RunPhase(Enum):
    """Phases of one reconciliation run, in order"""
    UNINITIALIZED = auto()
    REPOSITORY_READY = auto()
    MANIFEST_LOADED = auto()
    COMMITS_RESOLVED = auto()
    UPDATES_APPLIED = auto()
    SYNCHRONIZED = auto()
    PUSHED = auto()
    DONE = auto()
    FAILED = auto()


@dataclass(frozen=True)
class SubmoduleRecord:
    """One declared submodule and what we know about it during a run"""
    path: str
    url: str
    branch: str | None = None
    recorded_commit: str = UNKNOWN_COMMIT
    upstream_commit: str | None = None
    update_required: bool = False

    def with_updates(self, **kwargs) -> SubmoduleRecord:
        """Return a new snapshot with the given fields replaced."""
        return replace(self, **kwargs)

    @property
    def needs_update(self) -> bool:
        """True when an update is required and the commits really differ."""
        return (
            self.update_required and
            self.upstream_commit is not None and
            self.recorded_commit != self.upstream_commit
        )


@dataclass(frozen=True)
class UpdateOutcome:
    """Result of one attempted submodule update"""
    path: str
    applied: bool
    from_commit: str
    to_commit: str
    failure_reason: str | None = None

    def __str__(self) -> str:
        if self.applied:
            return f"{self.path}: {self.from_commit[:7]} -> {self.to_commit[:7]}"
        return f"{self.path}: {self.failure_reason}"


@dataclass(frozen=True)
class RepositoryHandle:
    """Working tree a run operates against"""
    path: Path
    scratch: bool = False


@dataclass(frozen=True)
class RemoteRepository:
    """Parent repository coordinates used for cloning"""
    owner: str
    repo: str
    branch: str = 'main'
    token: str | None = field(default=None, repr=False)
    host: str = 'github.com'
    clone_url: str | None = None

    @property
    def url(self) -> str:
        """Clone URL; an explicit clone_url wins over the hosted one."""
        if self.clone_url:
            return self.clone_url
        if self.token:
            return f"https://x-access-token:{self.token}@{self.host}/{self.owner}/{self.repo}.git"
        return f"https://{self.host}/{self.owner}/{self.repo}.git"

    @property
    def display_name(self) -> str:
        """Name safe to print (never contains the token)."""
        if self.clone_url:
            return self.clone_url
        return f"{self.owner}/{self.repo}@{self.branch}"


@dataclass(frozen=True)
class GitIdentity:
    """Commit author identity"""
    name: str | None = None
    email: str | None = None

    @property
    def is_complete(self) -> bool:
        return bool(self.name and self.email)

    def __str__(self) -> str:
        return f"{self.name} <{self.email}>"


DEFAULT_IDENTITY = GitIdentity('Submodule Updater', 'submodule-updater@system.local')


@dataclass(frozen=True)
class PushResult:
    """How a push landed"""
    retried: bool = False
    reset_to_remote: bool = False
    forced: bool = False


@dataclass
class RunReport:
    """Mutable result accumulator for one run"""
    records: list[SubmoduleRecord] = field(default_factory=list)
    outcomes: list[UpdateOutcome] = field(default_factory=list)
    phase: RunPhase = RunPhase.UNINITIALIZED
    pushed: bool = False
    push_result: PushResult | None = None
    dry_run: bool = False
    repository: str = ""
    reset_to_remote: bool = False

    def add_outcome(self, outcome: UpdateOutcome) -> None:
        """Record the outcome of one attempted update."""
        self.outcomes.append(outcome)

    @property
    def applied(self) -> list[UpdateOutcome]:
        return [o for o in self.outcomes if o.applied]

    @property
    def failed(self) -> list[UpdateOutcome]:
        return [o for o in self.outcomes if not o.applied]

    @property
    def pending(self) -> list[SubmoduleRecord]:
        """Records that need an update (what a dry run would apply)."""
        return [r for r in self.records if r.needs_update]

    def has_failures(self) -> bool:
        """Return True if any attempted update failed."""
        return any(not o.applied for o in self.outcomes)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a plain dict for JSON output."""
        return {
            'repository': self.repository,
            'phase': self.phase.name,
            'submodules_total': len(self.records),
            'updated': len(self.applied),
            'pushed': self.pushed,
            'reset_to_remote': self.reset_to_remote,
            'dry_run': self.dry_run,
            'pending': [
                {'path': r.path, 'from': r.recorded_commit, 'to': r.upstream_commit}
                for r in self.pending
            ] if self.dry_run else [],
            'outcomes': [
                {
                    'path': o.path,
                    'applied': o.applied,
                    'from': o.from_commit,
                    'to': o.to_commit,
                    'error': o.failure_reason,
                }
                for o in self.outcomes
            ],
            'has_failures': self.has_failures(),
        }


@dataclass(frozen=True)
class UpdaterConfig:
    """Configuration for one updater process"""
    owner: str = ''
    repo: str = ''
    branch: str = 'main'
    token: str | None = field(default=None, repr=False)
    repo_path: Path | None = None
    clone_url: str | None = None
    remote_name: str = 'origin'
    github_host: str = 'github.com'
    api_url: str = 'https://api.github.com'
    git_user_name: str | None = None
    git_user_email: str | None = None
    skip_sync: bool = False
    skip_push: bool = False
    force_push: bool = False
    dry_run: bool = False
    interval_minutes: int = 15
    run_once: bool = False
    clone_depth: int = 1
    git_timeout: float | None = 300
    api_timeout: float = 30
    verbose: bool = False
    json_output: bool = False

    @property
    def identity(self) -> GitIdentity:
        """Explicit/environment identity; may be incomplete."""
        return GitIdentity(self.git_user_name, self.git_user_email)

    @property
    def remote(self) -> RemoteRepository:
        """Coordinates of the parent repository."""
        return RemoteRepository(
            owner=self.owner,
            repo=self.repo,
            branch=self.branch,
            token=self.token,
            host=self.github_host,
            clone_url=self.clone_url,
        )

    def with_updates(self, **kwargs) -> UpdaterConfig:
        """Return a new UpdaterConfig with the given fields replaced."""
        current = {f.name: getattr(self, f.name) for f in self.__dataclass_fields__.values()}
        current.update(kwargs)
        return UpdaterConfig(**current)
