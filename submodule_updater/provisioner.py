"""Repository provisioner: clones the parent repository and cleans up scratch clones."""

from __future__ import annotations

import logging
import shutil
import tempfile
from pathlib import Path

from git import Git, GitCommandError, InvalidGitRepositoryError, NoSuchPathError, Repo

from submodule_updater.errors import ProvisionFailed
from submodule_updater.models import RemoteRepository, RepositoryHandle

SCRATCH_PREFIX = 'submodule-updater-'


def is_git_repository(path: Path) -> bool:
    """Return True if `path` itself is the root of a git working tree."""
    try:
        repo = Repo(path)
    except (InvalidGitRepositoryError, NoSuchPathError):
        return False
    try:
        return Path(repo.working_tree_dir or '').resolve() == Path(path).resolve()
    finally:
        repo.close()


class GitProvisioner:
    """Clones repositories (with submodules) into scratch or caller-supplied directories"""

    def __init__(self, depth: int = 1, scratch_root: Path | None = None, timeout: float | None = None):
        """depth=0 clones full history. scratch_root defaults to the system temp dir.

        A clone still running after `timeout` seconds is killed.
        """
        self.depth = depth
        self.scratch_root = scratch_root
        self.timeout = timeout
        self._created: set[Path] = set()
        self._logger = logging.getLogger(__name__)

    def provision(self, remote: RemoteRepository, target_path: Path | None = None) -> RepositoryHandle:
        """Clone `remote` into target_path, or into a fresh scratch directory."""
        if not remote.clone_url and not (remote.owner and remote.repo):
            raise ProvisionFailed("No repository configured to clone (owner/repo or clone URL)")

        scratch = target_path is None
        if scratch:
            path = Path(tempfile.mkdtemp(
                prefix=f"{SCRATCH_PREFIX}{remote.repo or 'repo'}-",
                dir=self.scratch_root,
            )).resolve()
            self._created.add(path)
        else:
            path = Path(target_path)

        self._logger.info("Cloning %s into %s", remote.display_name, path)
        options = {'branch': remote.branch, 'recurse_submodules': True}
        if self.depth > 0:
            options['depth'] = self.depth
        try:
            Git().clone(remote.url, str(path), kill_after_timeout=self.timeout, **options)
        except GitCommandError as e:
            if scratch:
                self._remove(path)
            reason = self._redact(str(e), remote)
            self._logger.debug("Clone of %s failed: %s", remote.display_name, reason)
            # The git error embeds the authenticated clone URL, so it is not chained.
            raise ProvisionFailed(f"Failed to clone {remote.display_name}: {reason}") from None

        return RepositoryHandle(path=path, scratch=scratch)

    def teardown(self, handle: RepositoryHandle) -> None:
        """Remove a scratch clone this provisioner created. Anything else is left alone."""
        path = Path(handle.path).resolve()
        if not handle.scratch or path not in self._created:
            return
        if not path.name.startswith(SCRATCH_PREFIX):
            self._logger.warning("Refusing to remove %s: not a scratch directory", path)
            return
        self._remove(path)

    def _remove(self, path: Path) -> None:
        try:
            shutil.rmtree(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            self._logger.warning("Failed to remove scratch directory %s: %s", path, e)
            return
        self._created.discard(path)
        self._logger.debug("Removed scratch directory %s", path)

    @staticmethod
    def _redact(message: str, remote: RemoteRepository) -> str:
        if remote.token:
            return message.replace(remote.token, '***')
        return message
