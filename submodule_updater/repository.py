"""Concrete GitPython-based version control driver."""

from __future__ import annotations

import contextlib
import logging
from pathlib import Path

from git import GitCommandError, InvalidGitRepositoryError, NoSuchPathError, Repo

from submodule_updater.errors import (
    CommitFailed,
    CommitReadFailed,
    PushFailed,
    SubmoduleNotFound,
    SyncFailed,
    UpdateFailed,
)
from submodule_updater.models import (
    DEFAULT_IDENTITY,
    GitErrorKind,
    GitIdentity,
    PushResult,
    UpdaterConfig,
)

DEFAULT_BRANCH = 'main'
GITLINK_MODE = '160000'

# Checked in order: a protected-branch rejection also says "rejected".
_ERROR_MARKERS: list[tuple[GitErrorKind, tuple[str, ...]]] = [
    (GitErrorKind.TIMEOUT, ('did not complete in',)),
    (GitErrorKind.PROTECTED_BRANCH, ('protected branch', 'gh006')),
    (GitErrorKind.PERMISSION_DENIED, (
        'permission denied', 'access denied', 'authentication failed',
        'could not read username', 'returned error: 403',
    )),
    (GitErrorKind.REPOSITORY_NOT_FOUND, (
        'repository not found', 'does not appear to be a git repository',
    )),
    (GitErrorKind.SUBMODULE_CONFLICT, ('conflict (submodule)', 'failed to merge submodule')),
    (GitErrorKind.REMOTE_AHEAD, ('non-fast-forward', 'fetch first', 'rejected')),
]


def classify_git_error(error: GitCommandError) -> GitErrorKind:
    """Map a failed git command onto a GitErrorKind."""
    text = f"{error.stderr or ''}\n{error.stdout or ''}".lower()
    for kind, markers in _ERROR_MARKERS:
        if any(marker in text for marker in markers):
            return kind
    return GitErrorKind.UNKNOWN


def build_commit_message(path: str, from_commit: str, to_commit: str) -> str:
    """Commit message for a submodule binding update."""
    return (
        f"Update submodule {path} to {to_commit[:7]}\n"
        "\n"
        f"Update submodule {path}\n"
        f"- From: {from_commit}\n"
        f"- To: {to_commit}"
    )


class GitPythonDriver:
    """Version control driver using GitPython"""

    def __init__(self, repo_path: Path, config: UpdaterConfig | None = None):
        """Open the working tree at repo_path."""
        self._path = Path(repo_path)
        self._repo = Repo(self._path)
        self._config = config or UpdaterConfig()
        self._remote = self._config.remote_name
        self._timeout = self._config.git_timeout
        self._logger = logging.getLogger(__name__)

    def close(self) -> None:
        """Release underlying git resources."""
        self._repo.close()

    @property
    def path(self) -> Path:
        """Absolute path to the working tree root."""
        return self._path

    def recorded_commit(self, path: str) -> str:
        """Commit the parent tree binds `path` to (not the submodule's checkout)."""
        path = path.strip('/')
        try:
            listing = self._repo.git.ls_tree('HEAD', '--', path)
        except GitCommandError as e:
            raise CommitReadFailed(f"Could not read recorded commit for {path}: {e}") from e

        # <mode> SP <type> SP <sha> TAB <path>
        for line in listing.splitlines():
            meta, _, entry_path = line.partition('\t')
            parts = meta.split()
            if entry_path == path and len(parts) == 3 and parts[1] == 'commit':
                return parts[2]
        raise SubmoduleNotFound(f"No submodule recorded at {path}")

    def fetch_and_checkout(self, path: str, target_commit: str) -> None:
        """Fetch all remotes of a submodule and check out target_commit exactly.

        Either HEAD lands on target_commit or the submodule is put back where
        it was and UpdateFailed is raised.
        """
        try:
            self._ensure_submodule_checkout(path)
            submodule = Repo(self._path / path)
        except (GitCommandError, InvalidGitRepositoryError, NoSuchPathError) as e:
            raise UpdateFailed(f"Submodule {path} is not available: {e}") from e

        try:
            previous = self._head_commit(submodule)
            try:
                submodule.git.fetch('--all', '--prune', kill_after_timeout=self._timeout)
                submodule.git.checkout('--quiet', '--detach', target_commit)
            except GitCommandError as e:
                self._restore_head(submodule, previous)
                raise UpdateFailed(
                    f"Failed to update submodule {path} to {target_commit}: {e}"
                ) from e

            landed = self._head_commit(submodule)
            if landed != target_commit:
                self._restore_head(submodule, previous)
                raise UpdateFailed(
                    f"Submodule {path} landed on {landed} instead of {target_commit}"
                )
        finally:
            submodule.close()

        self._logger.debug("Checked out %s in %s", target_commit, path)

    def stage_and_commit(self, path: str, from_commit: str, to_commit: str) -> None:
        """Stage the new binding of `path` and commit it on its own."""
        try:
            self.ensure_identity()
            self._repo.git.add('--', path)
            self._repo.git.commit('-m', build_commit_message(path, from_commit, to_commit), '--', path)
        except GitCommandError as e:
            raise CommitFailed(f"Failed to commit submodule update for {path}: {e}") from e

    def resolve_identity(self) -> GitIdentity:
        """Explicit/environment identity, then last commit author, then the fixed default."""
        explicit = self._config.identity
        name, email = explicit.name, explicit.email
        if not explicit.is_complete:
            author = self._latest_author()
            if author is not None:
                name = name or author.name
                email = email or author.email
        return GitIdentity(name or DEFAULT_IDENTITY.name, email or DEFAULT_IDENTITY.email)

    def ensure_identity(self) -> GitIdentity:
        """Write the resolved identity into the repository's own git config."""
        identity = self.resolve_identity()
        try:
            with self._repo.config_writer() as writer:
                writer.set_value('user', 'name', identity.name)
                writer.set_value('user', 'email', identity.email)
        except OSError as e:
            self._logger.warning("Failed to configure git identity: %s", e)
        else:
            self._logger.debug("Configured git identity: %s", identity)
        return identity

    def diverges_from_remote(self, branch: str) -> bool:
        """Fetch and compare `branch` with its remote counterpart. False when unknown."""
        try:
            self._repo.git.fetch(self._remote, kill_after_timeout=self._timeout)
            local = self._repo.git.rev_parse('--verify', branch)
            remote = self._repo.git.rev_parse('--verify', f'{self._remote}/{branch}')
        except GitCommandError as e:
            self._logger.warning(
                "Could not compare %s with %s/%s: %s", branch, self._remote, branch, e
            )
            return False
        return local != remote

    def synchronize_with_remote(self, branch: str) -> bool:
        """Merge the remote branch in when it diverged. True if a submodule conflict reset it to the remote."""
        if not self.diverges_from_remote(branch):
            return False
        try:
            return self._pull_merge(branch)
        except GitCommandError as e:
            raise SyncFailed(f"Failed to synchronize {branch} with {self._remote}: {e}") from e

    def push(self, branch: str, force: bool = False) -> PushResult:
        """Push `branch`, merging once and retrying once if the remote moved ahead."""
        if force:
            self._logger.warning("Force pushing %s to %s", branch, self._remote)
            try:
                self._repo.git.push('--force', self._remote, branch, kill_after_timeout=self._timeout)
            except GitCommandError as e:
                raise PushFailed(f"Force push of {branch} failed: {e}", classify_git_error(e)) from e
            return PushResult(forced=True)

        error = self._attempt_push(branch)
        if error is None:
            return PushResult()

        kind = classify_git_error(error)
        if kind is not GitErrorKind.REMOTE_AHEAD:
            raise PushFailed(f"Failed to push {branch}: {error}", kind) from error

        self._logger.info("Remote %s/%s is ahead, merging before retry", self._remote, branch)
        reset = self._recover_remote_ahead(branch)

        retry_error = self._attempt_push(branch)
        if retry_error is not None:
            raise PushFailed(
                f"Push of {branch} failed after merging remote changes: {retry_error}",
                classify_git_error(retry_error),
            ) from retry_error
        return PushResult(retried=True, reset_to_remote=reset)

    def current_branch(self) -> str:
        """Name of the checked-out branch, or 'main' if it cannot be read."""
        try:
            if self._repo.head.is_detached:
                return DEFAULT_BRANCH
            return self._repo.active_branch.name
        except Exception:
            return DEFAULT_BRANCH

    def has_uncommitted_changes(self) -> bool:
        """Return True if the working tree is dirty. False if status cannot be read."""
        try:
            return self._repo.is_dirty(untracked_files=True)
        except Exception:
            return False

    def _attempt_push(self, branch: str) -> GitCommandError | None:
        """Push once; return the error instead of raising it."""
        try:
            self._repo.git.push(self._remote, branch, kill_after_timeout=self._timeout)
        except GitCommandError as e:
            self._logger.debug("Push of %s rejected: %s", branch, e)
            return e
        return None

    def _recover_remote_ahead(self, branch: str) -> bool:
        """Fetch, check out `branch` and merge the remote into it. True if reset to remote."""
        try:
            self._repo.git.fetch(self._remote, kill_after_timeout=self._timeout)
            if self.current_branch() != branch:
                self._repo.git.checkout(branch)
            return self._pull_merge(branch)
        except GitCommandError as e:
            raise PushFailed(
                f"Remote {branch} is ahead and merging it failed: {e}",
                classify_git_error(e),
            ) from e

    def _pull_merge(self, branch: str) -> bool:
        """Merge-pull `branch`. Returns True when a submodule conflict forced a hard reset."""
        self.ensure_identity()
        try:
            self._repo.git.pull(
                '--no-rebase', '--no-edit', self._remote, branch,
                kill_after_timeout=self._timeout,
            )
            return False
        except GitCommandError as e:
            if not self._has_submodule_conflict(e):
                with contextlib.suppress(GitCommandError):
                    self._repo.git.merge('--abort')
                raise

        self._logger.warning(
            "Submodule conflict merging %s/%s, resetting %s to the remote state",
            self._remote, branch, branch,
        )
        self._repo.git.reset('--hard', f'{self._remote}/{branch}')
        return True

    def _has_submodule_conflict(self, error: GitCommandError) -> bool:
        """True if the failed merge left a conflicted gitlink in the index."""
        if classify_git_error(error) is GitErrorKind.SUBMODULE_CONFLICT:
            return True
        try:
            unmerged = self._repo.git.ls_files('--unmerged')
        except GitCommandError:
            return False
        return any(line.startswith(GITLINK_MODE) for line in unmerged.splitlines())

    def _ensure_submodule_checkout(self, path: str) -> None:
        """Initialize the submodule if its working tree was never checked out."""
        if (self._path / path / '.git').exists():
            return
        self._logger.info("Initializing submodule %s", path)
        self._repo.git.submodule('update', '--init', '--', path, kill_after_timeout=self._timeout)

    def _latest_author(self) -> GitIdentity | None:
        """Author of the parent repository's most recent commit."""
        try:
            author = self._repo.head.commit.author
        except (ValueError, GitCommandError):
            return None
        return GitIdentity(author.name or None, author.email or None)

    @staticmethod
    def _head_commit(repo: Repo) -> str | None:
        try:
            return repo.head.commit.hexsha
        except ValueError:
            return None

    @staticmethod
    def _restore_head(repo: Repo, commit: str | None) -> None:
        if commit is None:
            return
        with contextlib.suppress(GitCommandError):
            repo.git.checkout('--quiet', '--detach', commit)
