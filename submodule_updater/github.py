"""GitHub-backed remote commit resolver."""

from __future__ import annotations

import logging
import re

import requests
from github import Auth, Github, GithubException

from submodule_updater.errors import RemoteLookupFailed
from submodule_updater.models import UpdaterConfig

DEFAULT_API_URL = 'https://api.github.com'
FALLBACK_BRANCH = 'main'


def parse_repository_url(url: str, host: str = 'github.com') -> tuple[str, str] | None:
    """Extract (owner, repo) from an https, ssh or scp-style URL on `host`."""
    pattern = (
        r'^(?:(?:https?|ssh|git)://(?:[^@/]+@)?|[^@/\s]+@)'
        + re.escape(host)
        + r'[:/](?P<owner>[^/]+)/(?P<repo>[^/]+?)(?:\.git)?/?$'
    )
    match = re.match(pattern, url.strip())
    if not match:
        return None
    return match.group('owner'), match.group('repo')


class GitHubCommitResolver:
    """Resolves branch tips and default branches through the GitHub API"""

    def __init__(
        self,
        token: str | None = None,
        *,
        api_url: str = DEFAULT_API_URL,
        host: str = 'github.com',
        timeout: float = 30,
        client: Github | None = None,
    ):
        """Create a resolver. Pass `client` to reuse (or fake) a PyGithub client."""
        if client is None:
            auth = Auth.Token(token) if token else None
            client = Github(auth=auth, base_url=api_url, timeout=int(timeout))
        self._client = client
        self.host = host
        self._logger = logging.getLogger(__name__)

    @classmethod
    def from_config(cls, config: UpdaterConfig) -> GitHubCommitResolver:
        return cls(
            config.token,
            api_url=config.api_url,
            host=config.github_host,
            timeout=config.api_timeout,
        )

    def repository_for(self, url: str) -> tuple[str, str] | None:
        """(owner, repo) for a submodule URL on this host, or None."""
        return parse_repository_url(url, self.host)

    def latest_commit(self, owner: str, repo: str, branch: str = FALLBACK_BRANCH) -> str:
        """Tip commit of owner/repo@branch. Falls back from 'main' to 'master'."""
        try:
            return self._branch_tip(owner, repo, branch)
        except (GithubException, requests.RequestException) as e:
            if branch == 'main':
                try:
                    return self._branch_tip(owner, repo, 'master')
                except (GithubException, requests.RequestException):
                    pass
            raise RemoteLookupFailed(
                f"Failed to get latest commit for {owner}/{repo}@{branch}: {e}"
            ) from e

    def default_branch(self, owner: str, repo: str) -> str:
        """Default branch of owner/repo, or 'main' when it cannot be determined."""
        try:
            return self._client.get_repo(f"{owner}/{repo}").default_branch or FALLBACK_BRANCH
        except (GithubException, requests.RequestException) as e:
            self._logger.warning(
                "Could not determine default branch of %s/%s, using '%s': %s",
                owner, repo, FALLBACK_BRANCH, e,
            )
            return FALLBACK_BRANCH

    def _branch_tip(self, owner: str, repo: str, branch: str) -> str:
        repository = self._client.get_repo(f"{owner}/{repo}", lazy=True)
        return repository.get_branch(branch).commit.sha
