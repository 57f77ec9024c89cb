"""Exception hierarchy for the updater."""

from __future__ import annotations

from submodule_updater.models import GitErrorKind

PUSH_GUIDANCE = {
    GitErrorKind.PERMISSION_DENIED: (
        "Permission denied pushing to repository. "
        "Check your credentials (GITHUB_TOKEN) and access rights."
    ),
    GitErrorKind.REPOSITORY_NOT_FOUND: (
        "Repository not found. Check the remote URL and repository name."
    ),
    GitErrorKind.PROTECTED_BRANCH: (
        "The target branch is protected and cannot be pushed to directly. "
        "Use a pull request or ask the repository administrators."
    ),
    GitErrorKind.REMOTE_AHEAD: (
        "The remote branch moved again while merging. "
        "The next run will pick the updates up again."
    ),
    GitErrorKind.TIMEOUT: (
        "The push timed out. Check network access to the remote "
        "or raise --git-timeout."
    ),
}


class UpdaterError(Exception):
    """Base class for all updater failures"""


class RepositoryNotFound(UpdaterError):
    """Requested working tree path does not exist"""


class ManifestUnreadable(UpdaterError):
    """The .gitmodules file is missing or malformed"""


class ProvisionFailed(UpdaterError):
    """Cloning the parent repository failed"""


class CommitReadFailed(UpdaterError):
    """The commit recorded for a submodule could not be read"""


class SubmoduleNotFound(CommitReadFailed):
    """The parent tree has no submodule binding at the given path"""


class RemoteLookupFailed(UpdaterError):
    """The hosting API could not resolve a branch tip"""


class UpdateFailed(UpdaterError):
    """Fetching or checking out a submodule commit failed"""


class CommitFailed(UpdaterError):
    """Staging or committing a submodule binding failed"""


class SyncFailed(UpdaterError):
    """Pulling the remote branch before pushing failed"""


class RunCancelled(UpdaterError):
    """The run was cancelled at a phase boundary"""


class RunInProgress(UpdaterError):
    """Another run is already active on this engine"""


class PushFailed(UpdaterError):
    """Pushing the parent repository failed"""

    def __init__(self, message: str, kind: GitErrorKind = GitErrorKind.UNKNOWN):
        super().__init__(message)
        self.kind = kind

    @property
    def guidance(self) -> str | None:
        """User-actionable advice for this failure kind, if any."""
        return PUSH_GUIDANCE.get(self.kind)
