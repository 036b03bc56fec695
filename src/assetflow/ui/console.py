"""Console output formatting utilities for assetflow."""

from __future__ import annotations

import sys
from typing import Optional


class Console:
    """Centralized console output formatting."""

    def __init__(self, debug: bool = False):
        """
        Initialize console formatter.

        Args:
            debug: If True, show detailed output including stack traces
        """
        self.debug = debug

    def print_run_started(
        self,
        project: str,
        pipeline: str,
        task_count: int,
    ) -> None:
        """Print run start information."""
        print("\nBUILD STARTED")
        print(f"Project: {project}")
        print(f"Pipeline: {pipeline}")
        print(f"Tasks: {task_count}")
        print()

    def print_task_start(self, name: str) -> None:
        """Print task start message."""
        print(f"TASK STARTED: {name}")

    def print_success(self, name: str, message: str = "") -> None:
        """Print success message."""
        suffix = f" ({message})" if message else ""
        print(f"OK: {name}{suffix}")

    def print_failure(
        self,
        name: str,
        reason: str,
        origin: Optional[str] = None,
    ) -> None:
        """
        Print failure message.

        Args:
            name: Task name
            reason: Failure reason/error message
            origin: Task whose action failed, when it is not `name`
        """
        print(f"TASK FAILED: {name}")
        if origin and origin != name:
            print(f"Caused by: {origin}")
        if self.debug:
            print(f"Error details: {reason}")
        else:
            # Show first line of error for non-debug mode
            error_line = reason.split('\n')[0] if reason else "Unknown error"
            print(f"Error: {error_line}")

    def print_reload(self, path: str, clients: int) -> None:
        """Print live-reload announcement."""
        print(f"RELOAD: {path} ({clients} client(s))")

    def print_watch_started(self, patterns: list[str], url: str | None) -> None:
        """Print watch loop start information."""
        print("\nWATCHING")
        for p in patterns:
            print(f"  {p}")
        if url:
            print(f"Live reload: {url}")
        print()

    def print_results(self, results: dict[str, str]) -> None:
        """Print final results summary."""
        print("\n" + "=" * 40)
        print("RESULTS")
        print("=" * 40)
        for task, status in results.items():
            print(f"  {task}: {status.upper()}")

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

    def print_exception(self, exc: Exception) -> None:
        """Print exception, with full traceback only in debug mode."""
        if self.debug:
            import traceback
            traceback.print_exc()
        else:
            print(f"Error: {exc}", file=sys.stderr)

    def print_info(self, message: str) -> None:
        """Print informational message."""
        print(message)

    def print_debug(self, message: str) -> None:
        """Print debug message (only if debug mode enabled)."""
        if self.debug:
            print(f"[DEBUG] {message}", file=sys.stderr)


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
