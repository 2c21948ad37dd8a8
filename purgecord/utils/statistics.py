"""
Statistics and reporting utilities.
"""

import dataclasses
import time
from collections import deque
from typing import Callable, Deque, Optional

from config import settings
from purgecord.deletion.models import RunState, RunStats
from purgecord.utils.logging import get_logger

logger = get_logger(__name__)


def format_duration(ms: float) -> str:
    """
    Format a duration in milliseconds as "Xh Ym Zs".

    Args:
        ms: Duration in milliseconds

    Returns:
        Human readable duration ("0s" for negative or zero input)
    """
    if ms is None or ms <= 0:
        return "0s"

    total_seconds = int(ms // 1000)
    hours, remainder = divmod(total_seconds, 3600)
    minutes, seconds = divmod(remainder, 60)

    if hours:
        return f"{hours}h {minutes}m {seconds}s"
    if minutes:
        return f"{minutes}m {seconds}s"
    return f"{seconds}s"


class ProgressTracker:
    """Maintains run statistics: latency average, throttling totals, and ETA."""

    def __init__(self, clock: Optional[Callable[[], float]] = None, history_size: Optional[int] = None):
        """
        Initialize ProgressTracker.

        Args:
            clock: Returns the current time in seconds (defaults to time.time)
            history_size: Number of latency samples in the rolling average
        """
        self.clock = clock or time.time
        if history_size is None:
            history_size = settings.PING_HISTORY_SIZE
        if history_size < 1:
            raise ValueError("history_size must be at least 1")
        self.history_size = history_size
        self.stats = RunStats()
        self.ping_history: Deque[float] = deque(maxlen=self.history_size)

    def now_ms(self) -> float:
        return self.clock() * 1000

    def start(self) -> None:
        """Reset all statistics and stamp the start time."""
        self.stats = RunStats(start_time=self.now_ms())
        self.ping_history.clear()

    def finish(self) -> None:
        self.stats.end_time = self.now_ms()

    def record_ping(self, ping_ms: float) -> None:
        """
        Record the latency of one request.

        Args:
            ping_ms: Request duration in milliseconds
        """
        self.ping_history.append(ping_ms)
        self.stats.last_ping = ping_ms
        self.stats.average_ping = round(sum(self.ping_history) / len(self.ping_history))

    def record_throttle(self, wait_ms: float) -> None:
        self.stats.throttled_count += 1
        self.stats.throttled_time += wait_ms

    def update_eta(self, state: RunState) -> float:
        """
        Recompute the estimated time remaining from the run's pace so far.

        Args:
            state: Current run state

        Returns:
            Estimated milliseconds remaining, or -1 when unknown
        """
        processed = state.deleted_count + state.failed_count
        if (
            self.stats.start_time is None
            or state.initial_total_found == 0
            or state.deleted_count == 0
            or processed == 0
        ):
            self.stats.estimated_time_remaining = -1
            return -1

        elapsed = self.now_ms() - self.stats.start_time
        remaining = max(0, state.initial_total_found - processed)
        self.stats.estimated_time_remaining = round(elapsed / processed * remaining)
        return self.stats.estimated_time_remaining

    def snapshot(self) -> RunStats:
        return dataclasses.replace(self.stats)


class StatisticsReporter:
    """Generates summary reports for deletion runs."""

    def __init__(self, clock: Optional[Callable[[], float]] = None):
        self.clock = clock or time.time

    def print_summary(self, state: RunState, stats: RunStats) -> None:
        """Log final summary statistics."""
        for line in self.generate_report(state, stats).splitlines():
            logger.info(line)

    def generate_report(self, state: RunState, stats: RunStats) -> str:
        """
        Generate text report.

        Args:
            state: Final run state
            stats: Final run statistics

        Returns:
            Formatted report string
        """
        end_time = stats.end_time if stats.end_time is not None else self.clock() * 1000
        elapsed_ms = max(0, end_time - stats.start_time) if stats.start_time is not None else 0
        hours = elapsed_ms / 3_600_000

        report_lines = [
            "=" * 60,
            "PURGE SUMMARY",
            "=" * 60,
            f"Total Found: {state.initial_total_found}",
            f"Deleted: {state.deleted_count}",
            f"Failed: {state.failed_count}",
            f"Skipped: {state.skipped_count}",
            f"Filtered: {state.filtered_count}",
            f"Throttled: {stats.throttled_count} times ({format_duration(stats.throttled_time)})",
            f"Average Ping: {stats.average_ping:.0f}ms",
            f"Time Elapsed: {format_duration(elapsed_ms)}",
            f"Average Rate: {state.deleted_count / max(hours, 0.01):.1f} messages/hour",
            "=" * 60,
        ]
        return "\n".join(report_lines)
