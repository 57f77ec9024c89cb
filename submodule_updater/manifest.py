"""Manifest reader: declared submodules from .gitmodules."""

from __future__ import annotations

import configparser
import logging
from pathlib import Path

from git import GitConfigParser

from submodule_updater.errors import ManifestUnreadable
from submodule_updater.models import SubmoduleRecord

MANIFEST_NAME = '.gitmodules'


class GitmodulesReader:
    """Reads submodule path/url/branch triples from a .gitmodules file"""

    def __init__(self, manifest_name: str = MANIFEST_NAME):
        self.manifest_name = manifest_name
        self._logger = logging.getLogger(__name__)

    def parse(self, repo_root: Path) -> list[SubmoduleRecord]:
        """Return declared submodules in file order. Entries without path or url are skipped."""
        manifest = Path(repo_root) / self.manifest_name
        if not manifest.is_file():
            raise ManifestUnreadable(f"No {self.manifest_name} found in {repo_root}")

        parser = GitConfigParser(str(manifest), read_only=True)
        try:
            parser.read()
            return self._records_from(parser)
        except (configparser.Error, OSError, UnicodeDecodeError) as e:
            raise ManifestUnreadable(f"Failed to read {manifest}: {e}") from e
        finally:
            parser.release()

    def _records_from(self, parser: GitConfigParser) -> list[SubmoduleRecord]:
        records: list[SubmoduleRecord] = []
        seen: set[str] = set()
        for section in parser.sections():
            if not section.startswith('submodule'):
                continue
            path = self._option(parser, section, 'path')
            url = self._option(parser, section, 'url')
            if not path or not url:
                self._logger.debug("Skipping incomplete entry [%s]", section)
                continue
            path = path.strip('/')
            if path in seen:
                self._logger.warning("Duplicate submodule path %s in [%s], skipping", path, section)
                continue
            seen.add(path)
            records.append(SubmoduleRecord(
                path=path,
                url=url,
                branch=self._option(parser, section, 'branch'),
            ))
        return records

    @staticmethod
    def _option(parser: GitConfigParser, section: str, option: str) -> str | None:
        if not parser.has_option(section, option):
            return None
        value = str(parser.get(section, option)).strip().strip('"')
        return value or None
