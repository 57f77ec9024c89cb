"""SummaryReporter: generates and displays the final report."""

from __future__ import annotations

from submodule_updater.errors import PushFailed, UpdaterError
from submodule_updater.models import RunReport, UpdateOutcome
from submodule_updater.output import SECTION_WIDTH
from submodule_updater.protocols import OutputHandler


class SummaryReporter:
    """Generates and displays summary reports"""

    def __init__(self, output: OutputHandler):
        """Create a reporter that writes to the given output handler."""
        self.output = output

    def print_summary(self, report: RunReport):
        """Print the end-of-run summary: counts, failures, push status."""
        self._print_header("SUMMARY REPORT")
        total = len(report.records)
        self.output.info(f"Repository: {report.repository}")
        self.output.info(f"Submodules updated: {len(report.applied)} of {total}")
        self.output.info("")

        if report.dry_run:
            self._print_dry_run(report)
        elif report.reset_to_remote:
            self.output.warning("⚠️  LOCAL UPDATES DISCARDED: the remote won a submodule conflict")
            self._print_outcomes(report.applied)
            self.output.info("\U0001f4a1 The discarded updates are retried on the next run.")
        elif report.has_failures():
            self._print_partial_failure(report)
        elif report.applied:
            self.output.success("✅ SUBMODULES UPDATED")
            self._print_outcomes(report.applied)
        else:
            self.output.success("✅ ALL SUBMODULES ARE UP TO DATE")

        if report.pushed and not report.reset_to_remote:
            self.output.info("⬆️  Changes pushed")

        self.output.info("")
        self.output.info("=" * SECTION_WIDTH)

    def print_failure(self, error: Exception):
        """Explain a run that failed as a whole: nothing was pushed."""
        self._print_header("RUN FAILED")
        self.output.error(f"\U0001f534 {type(error).__name__}: {error}")
        if isinstance(error, PushFailed):
            self.output.info("")
            self.output.info(f"Reason: {error.kind.name.replace('_', ' ').lower()}")
            if error.guidance:
                self.output.info(f"\U0001f4a1 {error.guidance}")
        elif not isinstance(error, UpdaterError):
            self.output.info("This looks like a bug; rerun with --verbose for details.")
        self.output.info("")
        self.output.info("No submodule updates were pushed in this run.")
        self.output.info("=" * SECTION_WIDTH)

    def print_results(self, report: RunReport):
        """One line per attempted update (the compact form used between scheduled runs)."""
        if not report.outcomes:
            self.output.info("No submodules needed updates")
            return
        for outcome in report.outcomes:
            if outcome.applied:
                self.output.success(f"✅ Updated {outcome}")
            else:
                self.output.error(f"❌ Failed to update {outcome}")

    def _print_partial_failure(self, report: RunReport):
        self.output.warning("⚠️  SOME SUBMODULES FAILED TO UPDATE")
        self.output.info("")
        if report.applied:
            self.output.info(f"Updated ({len(report.applied)}):")
            self._print_outcomes(report.applied)
        self.output.info(f"\U0001f534 Failed ({len(report.failed)}):")
        self.output.info("-" * SECTION_WIDTH)
        for outcome in report.failed:
            self.output.info(f"  \U0001f4c1 {outcome.path}")
            self.output.info(f"     ↳ {outcome.failure_reason}")
        self.output.info("")
        self.output.info("\U0001f4a1 Failed submodules are retried on the next run.")

    def _print_dry_run(self, report: RunReport):
        pending = report.pending
        if pending:
            self.output.info(f"Would update {len(pending)} submodule(s):")
            for record in pending:
                self.output.info(
                    f"  \U0001f4c1 {record.path}: {record.recorded_commit[:7]} -> {record.upstream_commit[:7]}"
                )
        else:
            self.output.success("✅ ALL SUBMODULES ARE UP TO DATE")
        self.output.info("")
        self.output.info("\U0001f50d This was a DRY RUN - nothing was committed or pushed")

    def _print_outcomes(self, outcomes: list[UpdateOutcome]):
        for outcome in outcomes:
            self.output.info(f"  \U0001f4c1 {outcome}")

    def _print_header(self, title: str):
        self.output.section("╔" + "=" * SECTION_WIDTH + "╗")
        self.output.info("║" + title.center(SECTION_WIDTH) + "║")
        self.output.info("╚" + "=" * SECTION_WIDTH + "╝")
        self.output.info("")
