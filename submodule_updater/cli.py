"""CLI entry point: main() function."""

from __future__ import annotations

import json
import logging
import os
import signal
import sys
import threading
from pathlib import Path

from colorama import Fore, Style

from submodule_updater.config import (
    build_config,
    create_argument_parser,
    explicit_options,
    load_config_file,
    validate_config,
)
from submodule_updater.engine import ReconciliationEngine
from submodule_updater.errors import UpdaterError
from submodule_updater.models import UpdaterConfig
from submodule_updater.output import ConsoleOutputHandler, NullOutputHandler
from submodule_updater.protocols import OutputHandler
from submodule_updater.reporter import SummaryReporter
from submodule_updater.scheduler import UpdateScheduler

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_PARTIAL = 2
EXIT_INTERRUPTED = 130


def main(argv: list[str] | None = None):
    """Main entry point"""
    argv = sys.argv[1:] if argv is None else argv
    parser = create_argument_parser()
    args = parser.parse_args(argv)

    file_config = load_config_file(Path.cwd(), args.config)
    try:
        config = build_config(args, file_config, os.environ, explicit_options(parser, argv))
    except ValueError as e:
        print(f"{Fore.RED}Error: {e}{Style.RESET_ALL}")
        sys.exit(EXIT_FAILED)

    problems = validate_config(config)
    if problems:
        for problem in problems:
            print(f"{Fore.RED}Error: {problem}{Style.RESET_ALL}")
        sys.exit(EXIT_FAILED)

    logging.basicConfig(
        level=logging.DEBUG if config.verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    if config.json_output:
        output = NullOutputHandler()
    else:
        output = ConsoleOutputHandler(verbose=config.verbose, timestamps=not config.run_once)

    if not config.token:
        output.warning("GITHUB_TOKEN is not set: API calls are rate limited "
                       "and private repositories cannot be resolved")

    stop_event = threading.Event()
    engine = ReconciliationEngine(config, output, cancel_event=stop_event)

    if config.run_once or config.dry_run:
        sys.exit(run_once(engine, config, output))

    scheduler = UpdateScheduler(engine, output, config.interval_minutes, stop_event)
    signal.signal(signal.SIGTERM, lambda signum, frame: scheduler.stop())
    try:
        scheduler.start()
    except KeyboardInterrupt:
        output.warning("\n\nInterrupted by user")
        scheduler.stop()
        sys.exit(EXIT_INTERRUPTED)
    sys.exit(EXIT_OK)


def run_once(engine: ReconciliationEngine, config: UpdaterConfig, output: OutputHandler) -> int:
    """Run a single cycle, print the report, and return the process exit code."""
    reporter = SummaryReporter(output)
    try:
        report = engine.run()
    except KeyboardInterrupt:
        if not config.json_output:
            output.warning("\n\nInterrupted by user")
        return EXIT_INTERRUPTED
    except Exception as e:
        if config.json_output:
            print(json.dumps({
                'error': str(e),
                'type': type(e).__name__,
                'phase': engine.phase.name,
            }, indent=2))
        else:
            reporter.print_failure(e)
            if config.verbose and not isinstance(e, UpdaterError):
                import traceback
                traceback.print_exc()
        return EXIT_FAILED

    if config.json_output:
        print(json.dumps(report.to_dict(), indent=2))
    else:
        reporter.print_summary(report)

    # Updates discarded by a reset never reached the remote
    if report.has_failures() or report.reset_to_remote:
        return EXIT_PARTIAL
    return EXIT_OK
