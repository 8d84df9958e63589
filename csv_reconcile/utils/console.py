"""
Console Display
---------------
Progress and summary output for the command line front ends.

One ConsoleSink is shared by every worker of a run. Writes are serialized
with a lock so rows from concurrent pairs never interleave.
"""

import sys
import threading
from typing import List, Optional, TextIO

from tabulate import tabulate

from csv_reconcile.models.data_models import ReconciliationResult

BANNER_WIDTH = 80
PROCESSING_HEADERS = ["Worker", "File Name", "Status", "Details"]
COLUMN_WIDTHS = [10, 30, 12, 40]


def truncate(text: str, max_length: int) -> str:
    """Shorten text to max_length, marking the cut with '...'."""
    text = "" if text is None else str(text)
    if len(text) <= max_length:
        return text
    if max_length <= 3:
        return text[:max_length]
    return text[:max_length - 3] + "..."


def _format_row(cells: List[str]) -> str:
    return "  " + "  ".join(cell.ljust(width) for cell, width in zip(cells, COLUMN_WIDTHS))


class ConsoleSink:
    """
    Thread-safe console writer.

    Args:
        stream: Where to write (defaults to stdout)
        quiet: Discard everything; used by the API and tests
    """

    def __init__(self, stream: Optional[TextIO] = None, quiet: bool = False):
        self.stream = stream
        self.quiet = quiet
        self._lock = threading.Lock()
        self._header_shown = False

    def write(self, text: str = "") -> None:
        if self.quiet:
            return
        with self._lock:
            stream = self.stream or sys.stdout
            stream.write(text + "\n")
            stream.flush()

    def banner(self, title: str) -> None:
        line = "=" * BANNER_WIDTH
        self.write()
        self.write(line)
        self.write(title.center(BANNER_WIDTH))
        self.write(line)
        self.write()

    def info(self, message: str) -> None:
        self.write(f"  {message}")

    def success(self, message: str) -> None:
        self.write(f"  [OK] {message}")

    def warning(self, message: str) -> None:
        self.write(f"  [WARN] {message}")

    def error(self, message: str) -> None:
        self.write(f"  [ERROR] {message}")

    def processing_event(self, worker: str, file_name: str, status: str, details: str = "") -> None:
        """
        Print one row of the live processing table.

        The header is printed before the first row of a run.
        """
        row = [
            truncate(worker, COLUMN_WIDTHS[0]),
            truncate(file_name, COLUMN_WIDTHS[1]),
            truncate(status, COLUMN_WIDTHS[2]),
            truncate(details, COLUMN_WIDTHS[3]),
        ]
        if self.quiet:
            return

        with self._lock:
            stream = self.stream or sys.stdout
            if not self._header_shown:
                stream.write(_format_row(PROCESSING_HEADERS) + "\n")
                stream.write(_format_row(["-" * w for w in COLUMN_WIDTHS]) + "\n")
                self._header_shown = True
            stream.write(_format_row(row) + "\n")
            stream.flush()

    def summary(self, result: ReconciliationResult) -> None:
        """Print the final run totals, missing files and failures."""
        self._header_shown = False
        self.banner("RECONCILIATION SUMMARY")

        rows = [
            ["Total Files Processed", len(result.pair_results)],
            ["Successful", result.successful_count],
            ["Failed", result.failed_count],
            ["Total Records in Left", f"{result.total_left:,}"],
            ["Total Records in Right", f"{result.total_right:,}"],
            ["Matched", f"{result.total_matched:,}"],
            ["Only in Left", f"{result.total_only_left:,}"],
            ["Only in Right", f"{result.total_only_right:,}"],
            ["Total Processing Time", f"{result.total_duration:.2f}s"],
        ]
        self.write(tabulate(rows, headers=["Metric", "Value"], tablefmt="grid"))

        self._missing_files("Missing in Left", result.missing_in_left)
        self._missing_files("Missing in Right", result.missing_in_right)

        if result.failed_count:
            self.write()
            self.warning("Some files had errors. Check the log file for details.")

    def pair_table(self, result: ReconciliationResult) -> None:
        """Print one row per pair with its counts."""
        rows = [
            [
                truncate(r.label, COLUMN_WIDTHS[1]),
                r.total_left,
                r.total_right,
                r.matched_count,
                r.only_left_count,
                r.only_right_count,
                "OK" if r.success else f"{len(r.errors)} error(s)",
            ]
            for r in result.pair_results
        ]
        self.write(tabulate(
            rows,
            headers=["File", "Left", "Right", "Matched", "Only Left", "Only Right", "Status"],
            tablefmt="simple",
        ))

    def _missing_files(self, title: str, labels: List[str]) -> None:
        if not labels:
            return
        self.write()
        self.warning(f"{title}:")
        for label in labels:
            self.write(f"    - {label}")
