"""Console output formatting and logging for pipeline-analyzer."""

from __future__ import annotations

import sys
import traceback
from datetime import datetime
from pathlib import Path
from typing import IO, Optional, Sequence, Tuple


class Console:
    """
    Centralized console output and log handle.

    One instance is built by the CLI and handed to everything that reports
    progress. Use it as a context manager so the optional log file is flushed
    and closed on every exit path.
    """

    def __init__(
        self,
        debug: bool = False,
        log_file: Optional[str | Path] = None,
        quiet: bool = False,
    ):
        """
        Initialize console formatter.

        Args:
            debug: If True, show debug messages and stack traces
            log_file: Optional path; every message is also appended there
            quiet: If True, nothing is written to stdout/stderr (log file still receives messages)
        """
        self.debug = debug
        self.quiet = quiet
        self.log_path = Path(log_file) if log_file else None
        self._log: Optional[IO[str]] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def open(self) -> "Console":
        if self.log_path is not None and self._log is None:
            self.log_path.parent.mkdir(parents=True, exist_ok=True)
            self._log = self.log_path.open("a", encoding="utf-8")
        return self

    def close(self) -> None:
        if self._log is not None:
            self._log.flush()
            self._log.close()
            self._log = None

    def __enter__(self) -> "Console":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc is not None and not isinstance(exc, SystemExit):
            self._write_log("ERROR", f"unhandled {type(exc).__name__}: {exc}")
        self.close()

    def _write_log(self, level: str, message: str) -> None:
        if self._log is None:
            return
        stamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        for line in message.splitlines() or [""]:
            self._log.write(f"{stamp} [{level}] {line}\n")

    def _out(self, message: str, level: str = "INFO", stream: Optional[IO[str]] = None) -> None:
        self._write_log(level, message)
        if not self.quiet:
            print(message, file=stream or sys.stdout)

    # ------------------------------------------------------------------
    # Generic messages
    # ------------------------------------------------------------------

    def print_header(self, title: str) -> None:
        """Print a section header."""
        self._out(f"\n{title}")
        self._out("-" * len(title))

    def print_info(self, message: str) -> None:
        """Print informational message."""
        self._out(message)

    def print_warning(self, message: str) -> None:
        self._out(f"WARNING: {message}", level="WARNING", stream=sys.stderr)

    def print_debug(self, message: str) -> None:
        """Print debug message (only if debug mode enabled)."""
        if self.debug:
            self._out(f"[DEBUG] {message}", level="DEBUG", stream=sys.stderr)
        else:
            self._write_log("DEBUG", message)

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
        self._out(f"\nERROR: {title}", level="ERROR", stream=sys.stderr)
        self._out(message, level="ERROR", stream=sys.stderr)
        for detail in details or []:
            self._out(f"  {detail}", level="ERROR", stream=sys.stderr)
        if suggestion:
            self._out(f"\n{suggestion}", level="ERROR", stream=sys.stderr)

    def print_exception(self, exc: BaseException) -> None:
        """Print exception, with full traceback only in debug mode."""
        if self.debug:
            text = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
            self._out(text.rstrip(), level="ERROR", stream=sys.stderr)
        else:
            self._out(f"Error: {exc}", level="ERROR", stream=sys.stderr)

    # ------------------------------------------------------------------
    # Analysis run messages
    # ------------------------------------------------------------------

    def print_run_started(self, repository: str, tool_count: int) -> None:
        """Print run start information."""
        self._out("\nANALYSIS STARTED")
        self._out(f"Repository: {repository}")
        self._out(f"Tools: {tool_count}")
        self._out("")

    def print_tool_discovered(self, display_name: str, config_path: str) -> None:
        self._out(f"  {display_name} ({config_path})")

    def print_tool_start(self, display_name: str) -> None:
        self._out(f"\nTOOL: {display_name}")

    def print_parse_error(self, path: str, error: str) -> None:
        """Log a decoder failure for one file."""
        reason = error.split("\n")[0] if error else "Unknown error"
        self._out(f"PARSE FAILED: {path}", level="ERROR", stream=sys.stderr)
        if self.debug:
            self._out(f"Error details: {error}", level="ERROR", stream=sys.stderr)
        else:
            self._out(f"Error: {reason}", level="ERROR", stream=sys.stderr)

    def print_recovery(self, path: str, strategy: str, success: bool) -> None:
        """Log a recovery attempt after strict parsing failed."""
        outcome = "succeeded" if success else "failed"
        self.print_warning(f"{path}: recovery via {strategy} {outcome}")

    def print_written(self, path: str) -> None:
        self.print_debug(f"wrote {path}")

    def print_results(self, results: Sequence[Tuple[str, bool, str]]) -> None:
        """
        Print final results summary: every tool, with a one-line reason for failures.

        Args:
            results: (display name, succeeded, reason) per analyzed tool
        """
        self._out("\n" + "=" * 40)
        self._out("RESULTS")
        self._out("=" * 40)
        for name, ok, reason in results:
            if ok:
                self._out(f"  {name}: SUCCESS")
            else:
                self._out(f"  {name}: FAILED ({reason})")
        failed = sum(1 for _, ok, _ in results if not ok)
        self._out(f"\n{len(results) - failed} succeeded, {failed} failed")
