"""UpdateScheduler: runs the engine immediately and then at a fixed interval."""

from __future__ import annotations

import logging
import threading

from submodule_updater.engine import ReconciliationEngine
from submodule_updater.errors import RunInProgress, UpdaterError
from submodule_updater.models import RunReport
from submodule_updater.protocols import OutputHandler
from submodule_updater.reporter import SummaryReporter


class UpdateScheduler:
    """Periodic driver around a ReconciliationEngine"""

    def __init__(
        self,
        engine: ReconciliationEngine,
        output: OutputHandler,
        interval_minutes: int = 15,
        stop_event: threading.Event | None = None,
    ):
        """The stop event doubles as the engine's cancel event."""
        if interval_minutes <= 0:
            raise ValueError("interval_minutes must be positive")
        self.engine = engine
        self.output = output
        self.interval_minutes = interval_minutes
        self.stop_event = stop_event or engine.cancel_event
        self.runs = 0
        self._logger = logging.getLogger(__name__)

    def start(self) -> None:
        """Run now, then every interval, until stop() is called."""
        self.output.info(f"⏰ Running every {self.interval_minutes} minute(s). Press Ctrl+C to stop.")
        while not self.stop_event.is_set():
            self.run_update()
            if self.stop_event.wait(self.interval_minutes * 60):
                break
        self.output.info("Scheduler stopped")

    def stop(self) -> None:
        """Stop after the current run. The run is cancelled at its next phase boundary."""
        self.stop_event.set()

    def run_update(self) -> RunReport | None:
        """Run the engine once. Errors are reported, never raised, so the loop survives."""
        self.runs += 1
        self.output.info(f"Starting submodule update (run #{self.runs})...")
        reporter = SummaryReporter(self.output)
        try:
            report = self.engine.run()
        except RunInProgress:
            self.output.warning("⚠ Previous run still in progress, skipping this one")
            return None
        except UpdaterError as e:
            self._logger.error("Submodule update failed: %s", e)
            reporter.print_failure(e)
            return None
        except Exception as e:
            self._logger.exception("Unexpected error during scheduled update")
            reporter.print_failure(e)
            return None

        reporter.print_results(report)
        return report
