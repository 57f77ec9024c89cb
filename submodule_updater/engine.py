"""ReconciliationEngine: brings declared submodules up to their upstream branch tips."""

from __future__ import annotations

import contextlib
import logging
import threading
from collections.abc import Callable, Iterator
from pathlib import Path

from tqdm import tqdm

from submodule_updater.errors import (
    PushFailed,
    RepositoryNotFound,
    RunCancelled,
    RunInProgress,
    UpdaterError,
)
from submodule_updater.github import GitHubCommitResolver
from submodule_updater.manifest import GitmodulesReader
from submodule_updater.models import (
    UNKNOWN_COMMIT,
    RepositoryHandle,
    RunPhase,
    RunReport,
    SubmoduleRecord,
    UpdateOutcome,
    UpdaterConfig,
)
from submodule_updater.protocols import (
    ManifestReader,
    OutputHandler,
    RemoteCommitResolver,
    RepositoryProvisioner,
    VersionControlDriver,
)
from submodule_updater.provisioner import GitProvisioner, is_git_repository
from submodule_updater.repository import GitPythonDriver

DriverFactory = Callable[[Path, UpdaterConfig], VersionControlDriver]


class ReconciliationEngine:
    """Main orchestrator - runs one update cycle against the parent repository.

    A run moves through the RunPhase states in order. Any exception moves it
    to FAILED; in both DONE and FAILED the working tree is torn down.
    Submodules are processed one at a time, in manifest order.
    """

    def __init__(
        self,
        config: UpdaterConfig,
        output: OutputHandler,
        *,
        manifest_reader: ManifestReader | None = None,
        resolver: RemoteCommitResolver | None = None,
        provisioner: RepositoryProvisioner | None = None,
        driver_factory: DriverFactory = GitPythonDriver,
        cancel_event: threading.Event | None = None,
    ):
        """Create an engine. Collaborators default to the git/GitHub implementations."""
        self.config = config
        self.output = output
        self.manifest_reader = manifest_reader or GitmodulesReader()
        self.resolver = resolver or GitHubCommitResolver.from_config(config)
        self.provisioner = provisioner or GitProvisioner(depth=config.clone_depth, timeout=config.git_timeout)
        self.driver_factory = driver_factory
        self.cancel_event = cancel_event or threading.Event()

        self.phase = RunPhase.UNINITIALIZED
        self.handle: RepositoryHandle | None = None
        self._driver: VersionControlDriver | None = None
        self._run_lock = threading.Lock()
        self._logger = logging.getLogger(__name__)

    def run(self) -> RunReport:
        """Run a full cycle and return the report. Fatal errors propagate."""
        report = RunReport(dry_run=self.config.dry_run)

        with self._exclusive_run():
            driver = self._prepare_repository()
            report.repository = str(self.handle.path)

            records = self._load_manifest()
            if not records:
                self.output.warning("No submodules found")
                return self._finish(report)

            records = self._resolve_commits(driver, records)
            report.records = records

            if self.config.dry_run:
                self._show_pending(report)
                return self._finish(report)

            self._apply_updates(driver, records, report)

            branch = self.config.branch or driver.current_branch()
            self._synchronize(driver, branch, report)
            self._push(driver, branch, report)
            return self._finish(report)

    def check_for_updates(self) -> list[SubmoduleRecord]:
        """Resolve commits and return the submodules that need an update, applying nothing."""
        with self._exclusive_run():
            driver = self._prepare_repository()
            records = self._load_manifest()
            pending = [r for r in self._resolve_commits(driver, records) if r.needs_update]
            self._advance(RunPhase.DONE)
            return pending

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    def _prepare_repository(self) -> VersionControlDriver:
        """Pick the working tree (existing, cloned in place, or scratch) and open a driver."""
        self._checkpoint(RunPhase.REPOSITORY_READY)
        requested = self.config.repo_path
        remote = self.config.remote
        configure_identity = True

        if requested is None:
            self.output.info("No repository path configured, using a scratch clone")
            self.handle = self.provisioner.provision(remote)
        else:
            requested = Path(requested).expanduser()
            if not requested.exists():
                raise RepositoryNotFound(f"Repository path does not exist: {requested}")
            if not requested.is_dir():
                raise RepositoryNotFound(f"Repository path is not a directory: {requested}")

            if is_git_repository(requested):
                self.output.info(f"Using local repository: {requested}")
                self.handle = RepositoryHandle(requested)
                configure_identity = False
            elif not any(requested.iterdir()):
                self.output.info(f"{requested} is empty, cloning into it")
                self.handle = self.provisioner.provision(remote, requested)
            else:
                self.output.warning(
                    f"{requested} is not empty and not a git repository, using a scratch clone instead"
                )
                self.handle = self.provisioner.provision(remote)

        self._driver = self.driver_factory(self.handle.path, self.config)
        if configure_identity:
            self._driver.ensure_identity()

        self.output.debug(f"Working tree: {self.handle.path}")
        self._advance(RunPhase.REPOSITORY_READY)
        return self._driver

    def _load_manifest(self) -> list[SubmoduleRecord]:
        self._checkpoint(RunPhase.MANIFEST_LOADED)
        records = self.manifest_reader.parse(self.handle.path)
        if records:
            self.output.info(f"Found {len(records)} submodules")
        self._advance(RunPhase.MANIFEST_LOADED)
        return records

    def _resolve_commits(
        self,
        driver: VersionControlDriver,
        records: list[SubmoduleRecord]
    ) -> list[SubmoduleRecord]:
        """Fill in recorded and upstream commits. Per-record failures never abort the run."""
        self._checkpoint(RunPhase.COMMITS_RESOLVED)
        self.output.section("Resolving commits")

        current: list[SubmoduleRecord] = []
        for record in records:
            try:
                commit = driver.recorded_commit(record.path)
                self.output.debug(f"Current commit for {record.path}: {commit}")
            except UpdaterError as e:
                self.output.warning(f"⚠ Could not read current commit for {record.path}: {e}")
                commit = UNKNOWN_COMMIT
            current.append(record.with_updates(recorded_commit=commit))

        resolved = [self._resolve_upstream(record) for record in current]
        self._advance(RunPhase.COMMITS_RESOLVED)
        return resolved

    def _resolve_upstream(self, record: SubmoduleRecord) -> SubmoduleRecord:
        location = self.resolver.repository_for(record.url)
        if location is None:
            self.output.warning(f"⚠ Could not extract owner/repo from URL: {record.url}")
            return record

        owner, repo = location
        try:
            branch = record.branch or self.resolver.default_branch(owner, repo)
            latest = self.resolver.latest_commit(owner, repo, branch)
        except Exception as e:
            self.output.warning(f"⚠ Failed to get latest commit for {record.path}: {e}")
            return record.with_updates(upstream_commit=record.recorded_commit, update_required=False)

        updated = record.with_updates(
            upstream_commit=latest,
            update_required=latest != record.recorded_commit,
        )
        state = "needs update" if updated.update_required else "up to date"
        self.output.info(f"{record.path}: {latest[:7]} on {branch} ({state})", indent=1)
        return updated

    def _apply_updates(
        self,
        driver: VersionControlDriver,
        records: list[SubmoduleRecord],
        report: RunReport
    ) -> None:
        """Check out and commit each pending submodule, collecting one outcome per attempt."""
        self._checkpoint(RunPhase.UPDATES_APPLIED)
        pending = [r for r in records if r.needs_update]

        if not pending:
            self.output.success("✓ All submodules are up to date")
        else:
            self.output.section(f"Updating {len(pending)} submodule(s)")
            with tqdm(total=len(pending), desc="Updating", unit="submodule",
                      disable=self.config.json_output) as pbar:
                for record in pending:
                    pbar.set_postfix_str(record.path, refresh=True)
                    report.add_outcome(self._update_single(driver, record))
                    pbar.update(1)

        self._advance(RunPhase.UPDATES_APPLIED)

    def _update_single(self, driver: VersionControlDriver, record: SubmoduleRecord) -> UpdateOutcome:
        self.output.info(f"─ {record.path}")
        try:
            driver.fetch_and_checkout(record.path, record.upstream_commit)
            driver.stage_and_commit(record.path, record.recorded_commit, record.upstream_commit)
        except UpdaterError as e:
            self.output.error(f"✗ {e}", indent=1)
            return self._failed_outcome(record, str(e))
        except Exception as e:
            self.output.error(f"✗ Unexpected error updating {record.path}: {e}", indent=1)
            return self._failed_outcome(record, f"Unexpected error: {e}")

        self.output.success(
            f"✓ {record.recorded_commit[:7]} -> {record.upstream_commit[:7]}", indent=1
        )
        return UpdateOutcome(
            path=record.path,
            applied=True,
            from_commit=record.recorded_commit,
            to_commit=record.upstream_commit,
        )

    def _synchronize(self, driver: VersionControlDriver, branch: str, report: RunReport) -> None:
        self._checkpoint(RunPhase.SYNCHRONIZED)
        if self.config.skip_sync:
            self.output.info("Skipping synchronization with remote")
        elif report.applied:
            self.output.info(f"Synchronizing {branch} with {self.config.remote_name}...")
            if driver.synchronize_with_remote(branch):
                report.reset_to_remote = True
                self._warn_reset()
        self._advance(RunPhase.SYNCHRONIZED)

    def _push(self, driver: VersionControlDriver, branch: str, report: RunReport) -> None:
        """Push once if anything was applied. A push failure fails the run."""
        self._checkpoint(RunPhase.PUSHED)
        if self.config.skip_push:
            self.output.info("Skipping push")
        elif not report.applied:
            self.output.info("Nothing to push")
        elif report.reset_to_remote:
            self.output.info("Nothing to push: the branch already matches the remote")
        else:
            self.output.info(f"Pushing {branch} to {self.config.remote_name}...")
            try:
                result = driver.push(branch, force=self.config.force_push)
            except PushFailed as e:
                self.output.error(f"✗ Push failed: {e}")
                if e.guidance:
                    self.output.error(e.guidance, indent=1)
                raise

            report.pushed = True
            report.push_result = result
            if result.reset_to_remote:
                report.reset_to_remote = True
                self._warn_reset()
            else:
                self.output.success(f"✓ Pushed {len(report.applied)} update(s) to {branch}")
        self._advance(RunPhase.PUSHED)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @contextlib.contextmanager
    def _exclusive_run(self) -> Iterator[None]:
        """Guard against overlapping runs; mark FAILED on error; always tear down."""
        if not self._run_lock.acquire(blocking=False):
            raise RunInProgress("A reconciliation run is already in progress")
        self.phase = RunPhase.UNINITIALIZED
        self.handle = None
        self._driver = None
        try:
            yield
        except BaseException:
            self.phase = RunPhase.FAILED
            raise
        finally:
            self._teardown()
            self._run_lock.release()

    def _teardown(self) -> None:
        if self._driver is not None:
            self._driver.close()
            self._driver = None
        if self.handle is None:
            return
        try:
            self.provisioner.teardown(self.handle)
        except Exception as e:
            self._logger.warning("Teardown of %s failed: %s", self.handle.path, e)

    def _warn_reset(self) -> None:
        self.output.warning(
            "⚠ Remote won a submodule conflict; local updates were discarded "
            "and will be picked up again on the next run"
        )

    def _show_pending(self, report: RunReport) -> None:
        for record in report.pending:
            self.output.info(
                f"[DRY RUN] Would update {record.path}: "
                f"{record.recorded_commit[:7]} -> {record.upstream_commit[:7]}",
                indent=1
            )

    def _finish(self, report: RunReport) -> RunReport:
        self._advance(RunPhase.DONE)
        report.phase = self.phase
        return report

    def _checkpoint(self, upcoming: RunPhase) -> None:
        """Honour cancellation between phases."""
        if self.cancel_event.is_set():
            raise RunCancelled(f"Run cancelled before {upcoming.name}")

    def _advance(self, phase: RunPhase) -> None:
        self.phase = phase
        self._logger.debug("Reconciliation phase: %s", phase.name)

    @staticmethod
    def _failed_outcome(record: SubmoduleRecord, reason: str) -> UpdateOutcome:
        return UpdateOutcome(
            path=record.path,
            applied=False,
            from_commit=record.recorded_commit,
            to_commit=record.upstream_commit or record.recorded_commit,
            failure_reason=reason,
        )
