"""Console output formatting utilities for assetflow."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Iterable, Optional

from ..model import BuildResult


class Console:
    """Centralized console output formatting."""

    def __init__(self, debug: bool = False):
        """
        Initialize console formatter.

        Args:
            debug: If True, show detailed output including stack traces
        """
        self.debug = debug

    def print_header(self, title: str) -> None:
        """Print a section header."""
        print(f"\n{title}")
        print("-" * len(title))

    def print_run_started(self, target: str, app_root: Path, dist_root: Path) -> None:
        """Print run start information."""
        print("\nBUILD STARTED")
        print(f"Target: {target}")
        print(f"Sources: {app_root}")
        print(f"Output: {dist_root}")
        print()

    def print_results(self, result: BuildResult) -> None:
        """Print the result tree of one run."""
        print("\n" + "=" * 40)
        print("RESULTS")
        print("=" * 40)
        self._print_result(result, depth=1)
        status = "SUCCESS" if result.ok else "FAILED"
        print(f"\n{result.name}: {status} ({result.duration:.2f}s)")
        if not result.ok:
            print(f"Failed: {', '.join(result.failed)}")
            if result.origin and result.origin not in result.failed:
                print(f"Origin: {result.origin}")

    def _print_result(self, result: BuildResult, depth: int) -> None:
        if result.ok:
            status = "UP TO DATE" if result.skipped else "SUCCESS"
        else:
            status = "FAILED"
        print(f"{'  ' * depth}{result.name}: {status}")
        if not result.ok and result.error and not result.children:
            first = result.error.split("\n")[0]
            print(f"{'  ' * (depth + 1)}{result.error if self.debug else first}")
        for child in result.children:
            self._print_result(child, depth + 1)

    def print_failure(self, result: BuildResult, hint: Optional[str] = None) -> None:
        """Print a one-line failure summary naming every failed task."""
        print(f"BUILD FAILED: {result.name}", file=sys.stderr)
        print(f"Failed tasks: {', '.join(result.failed)}", file=sys.stderr)
        if hint:
            print(f"Hint: {hint}", file=sys.stderr)

    def print_error(
        self,
        title: str,
        message: str,
        details: Optional[list[str]] = None,
        suggestion: Optional[str] = None,
    ) -> None:
        """
        Print structured error message.

        Args:
            title: Error title
            message: Main error message
            details: Optional list of detail lines
            suggestion: Optional suggestion for user
        """
        print(f"\nERROR: {title}", file=sys.stderr)
        print(f"{message}", file=sys.stderr)
        if details:
            for detail in details:
                print(f"  {detail}", file=sys.stderr)
        if suggestion:
            print(f"\n{suggestion}", file=sys.stderr)

    def print_exception(self, exc: BaseException) -> None:
        """Print exception, with full traceback only in debug mode."""
        if self.debug:
            import traceback
            traceback.print_exception(type(exc), exc, exc.__traceback__)
        else:
            print(f"Error: {exc}", file=sys.stderr)

    def print_server_started(self, url: str, root: Path, bindings: Iterable) -> None:
        """Print dev server information."""
        print("\nSERVING")
        print(f"Root: {root}")
        print(f"Local: {url}")
        for b in bindings:
            print(f"Watching: {b.source_dir} -> {b.group}")
        print("Press Ctrl+C to stop")
        print()

    def print_listing(self, title: str, rows: Iterable[tuple[str, str]]) -> None:
        self.print_header(title)
        rows = list(rows)
        width = max((len(name) for name, _ in rows), default=0)
        for name, text in rows:
            print(f"  {name.ljust(width)}  {text}")

    def print_info(self, message: str) -> None:
        """Print informational message."""
        print(message)


# Global console instance (will be initialized by CLI)
_console: Optional[Console] = None


def get_console() -> Console:
    """Get the global console instance."""
    global _console
    if _console is None:
        _console = Console()
    return _console


def set_console(console: Console) -> None:
    """Set the global console instance."""
    global _console
    _console = console
