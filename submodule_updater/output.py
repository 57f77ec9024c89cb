"""Output handler implementations: console and null."""

from __future__ import annotations

from datetime import datetime

from colorama import Fore, Style
from tqdm import tqdm

SECTION_WIDTH = 50


class ConsoleOutputHandler:
    """Console output with colors.

    Messages go through tqdm.write so they do not tear the progress bar.
    With timestamps=True every line is prefixed with the wall-clock time,
    which is what the long-running scheduler mode wants.
    """

    def __init__(self, verbose: bool = False, timestamps: bool = False):
        """Create a console handler. Set verbose=True to enable debug output."""
        self.verbose = verbose
        self.timestamps = timestamps

    def info(self, message: str, indent: int = 0) -> None:
        """Print an informational message."""
        self._write(message, indent)

    def success(self, message: str, indent: int = 0) -> None:
        """Print a green success message."""
        self._write(message, indent, Fore.GREEN)

    def warning(self, message: str, indent: int = 0) -> None:
        """Print a yellow warning message."""
        self._write(message, indent, Fore.YELLOW)

    def error(self, message: str, indent: int = 0) -> None:
        """Print a red error message."""
        self._write(message, indent, Fore.RED)

    def section(self, title: str) -> None:
        """Print a section header with a divider line."""
        tqdm.write("")
        self._write(title)
        tqdm.write("-" * SECTION_WIDTH)

    def debug(self, message: str) -> None:
        """Print a cyan debug message (only when verbose is enabled)."""
        if self.verbose:
            self._write(f"[DEBUG] {message}", color=Fore.CYAN)

    def _write(self, message: str, indent: int = 0, color: str = "") -> None:
        prefix = f"[{datetime.now():%Y-%m-%d %H:%M:%S}] " if self.timestamps else ""
        text = "  " * indent + message
        if color:
            text = f"{color}{text}{Style.RESET_ALL}"
        tqdm.write(prefix + text)


class NullOutputHandler:
    """Silent output handler for testing and JSON mode."""

    def info(self, message: str, indent: int = 0) -> None:
        pass

    def success(self, message: str, indent: int = 0) -> None:
        pass

    def warning(self, message: str, indent: int = 0) -> None:
        pass

    def error(self, message: str, indent: int = 0) -> None:
        pass

    def section(self, title: str) -> None:
        pass

    def debug(self, message: str) -> None:
        pass
