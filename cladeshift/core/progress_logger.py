#!/usr/bin/env python3
"""
Progress logging utility for cladeshift.

Console progress lines are overwritten in place with a carriage return so a
long resampling run reports one line per stage instead of one per block.
"""

import logging
import sys
from pathlib import Path
from typing import List, Optional, TextIO

logger = logging.getLogger(__name__)


class ProgressLogger:
    """
    Handles dynamic progress logging with overwriting capabilities.

    When verbose, progress lines are suppressed and completion messages are
    routed through the logging module instead.
    """

    def __init__(self, show_progress: bool = True, verbose: bool = False,
                 stream: Optional[TextIO] = None):
        """
        Initialize progress logger.

        Args:
            show_progress: Whether to show dynamic progress updates
            verbose: Whether to show detailed logging (disables progress overwriting)
            stream: Output stream, stdout by default
        """
        self.show_progress = show_progress and not verbose
        self.verbose = verbose
        self.stream = stream if stream is not None else sys.stdout
        self.current_line = ""
        self.completed_tasks: List[str] = []

    def _clear_line(self) -> None:
        if self.current_line:
            self.stream.write('\r' + ' ' * len(self.current_line) + '\r')
        self.current_line = ""

    def _print(self, message: str) -> None:
        self.stream.write(message + '\n')
        self.stream.flush()

    def progress(self, message: str, current: Optional[int] = None,
                 total: Optional[int] = None, overwrite: bool = True):
        """
        Show progress message with optional counter.

        Args:
            message: Progress message to display
            current: Current item number (1-based)
            total: Total number of items
            overwrite: Whether to overwrite the previous line
        """
        if not self.show_progress:
            return

        if current is not None and total is not None:
            progress_msg = f"{message} [{current}/{total}]"
        else:
            progress_msg = message

        if overwrite:
            self._clear_line()

        self.stream.write(progress_msg)
        self.stream.flush()
        self.current_line = progress_msg if overwrite else ""

    def block_callback(self, message: str):
        """Return a callable(completed, total) suitable for ResamplingPool."""
        def callback(completed: int, total: int) -> None:
            self.progress(message, completed, total)
        return callback

    def complete(self, final_message: str, count: Optional[int] = None,
                 item_type: Optional[str] = None):
        """
        Complete current progress with final message.

        Args:
            final_message: Final completion message
            count: Number of items processed
            item_type: Name of the processed items
        """
        if not self.show_progress:
            if self.verbose:
                logger.info(final_message)
            return

        self._clear_line()
        if count is not None:
            completion_msg = f"✓ {final_message} ({count} {item_type or 'items'})"
        else:
            completion_msg = f"✓ {final_message}"

        self._print(completion_msg)
        self.completed_tasks.append(completion_msg)

    def info(self, message: str):
        """Show informational message without progress formatting."""
        self._clear_line()
        self._print(message)

    def warning(self, message: str):
        """Show warning message."""
        self._clear_line()
        self._print(f"⚠️  {message}")

    def error(self, message: str):
        """Show error message."""
        self._clear_line()
        self._print(f"❌ {message}")

    def section_header(self, title: str):
        """Display a section header."""
        self._clear_line()
        self._print(f"\n{title}")
        self._print("-" * len(title))

    def file_summary(self, files: List[Path]):
        """
        Display the list of files written by the run.

        Args:
            files: Paths of the created files
        """
        self._clear_line()
        if not files:
            return
        self._print(f"\n📁 Output files written:")
        for path in files:
            self._print(f"    - {path}")
