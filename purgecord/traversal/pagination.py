"""
Pagination strategies that turn repeated searches into batches of messages.

The search index is rebuilt asynchronously while messages are deleted, so a
page fetched from the top can repeat messages that are already gone, lag
behind the real remaining count, or consist only of messages that can never
be deleted. Both strategies therefore search from offset 0 and reconcile each
page against the run's attempted and permanently failed id sets.
"""
from datetime import datetime, timedelta, timezone
from typing import Callable, Generator, List, Optional, Tuple

from config import settings
from purgecord.deletion.models import Message, RunContext
from purgecord.traversal.searcher import SearchRunner
from purgecord.traversal.snowflake import DISCORD_EPOCH, date_to_snowflake, snowflake_to_date
from purgecord.utils.logging import get_logger
from purgecord.utils.run_control import RunControl

logger = get_logger(__name__)

Batch = List[Message]
StatusCallback = Callable[[Optional[str]], None]


def oldest_message(messages: List[Message]) -> Message:
    return min(messages, key=lambda message: message.numeric_id)


def empty_page_backoff(search_delay: float, empty_retries: int) -> float:
    """Delay in milliseconds after the given number of consecutive empty pages."""
    return round(
        search_delay * settings.EMPTY_PAGE_BACKOFF_MULTIPLIER ** (empty_retries - 1)
    )


class NewestFirstScanner:
    """Scans from the newest message down, letting the index advance as messages vanish."""

    def __init__(
        self,
        searcher: SearchRunner,
        context: RunContext,
        control: RunControl,
        max_empty_retries: Optional[int] = None,
    ):
        self.searcher = searcher
        self.context = context
        self.control = control
        if max_empty_retries is None:
            max_empty_retries = settings.MAX_EMPTY_PAGE_RETRIES
        self.max_empty_retries = max_empty_retries

    def batches(self) -> Generator[Batch, None, None]:
        """
        Generator that yields batches of not yet attempted messages.

        Yields:
            Messages newest first, none of them in the attempted set
        """
        context = self.context
        search_delay = context.config.search_delay
        empty_retries = 0
        skip_max_id: Optional[str] = None

        while self.control.checkpoint():
            messages = self.searcher.search(max_id=skip_max_id)
            fresh = context.unattempted(messages)

            if fresh:
                empty_retries = 0
                skip_max_id = None
                yield fresh
                self.control.wait(search_delay)
                continue

            if context.all_permanently_failed(messages):
                skip_max_id = self._skip_past(messages)
                if skip_max_id is None:
                    logger.info("Only undeletable messages remain, scan complete")
                    return
                empty_retries = 0
                self.control.wait(search_delay)
                continue

            empty_retries += 1
            logger.debug(f"Empty page {empty_retries}/{self.max_empty_retries}")

            if empty_retries >= self.max_empty_retries:
                if context.state.total_found > 0 and messages:
                    if any(m.id not in context.permanently_failed for m in messages):
                        # Stale index still returning attempted messages
                        empty_retries = self.max_empty_retries // 2
                        logger.debug("Search index looks stale, continuing")
                    else:
                        skip_max_id = self._skip_past(messages)
                        if skip_max_id is None:
                            logger.info("Only undeletable messages remain, scan complete")
                            return
                        empty_retries = 0
                else:
                    logger.info("No more messages found, scan complete")
                    return

            self.control.wait(empty_page_backoff(search_delay, empty_retries))

    def _skip_past(self, messages: List[Message]) -> Optional[str]:
        """
        Upper bound that skips a page of undeletable messages.

        Returns:
            Id of the oldest message in the page, or None if nothing untried remains
        """
        untried = self.context.untried_count()
        if untried <= 0:
            return None

        bound = oldest_message(messages).id
        logger.info(
            f"Skipping past {len(messages)} undeletable messages "
            f"({untried} untried remain, max_id={bound})"
        )
        return bound


class OldestFirstScanner:
    """Walks fixed-size time windows from the oldest matching message to now."""

    def __init__(
        self,
        searcher: SearchRunner,
        context: RunContext,
        control: RunControl,
        on_status: Optional[StatusCallback] = None,
        window: Optional[timedelta] = None,
        max_steps: Optional[int] = None,
        max_empty_retries: Optional[int] = None,
        now: Optional[Callable[[], datetime]] = None,
    ):
        self.searcher = searcher
        self.context = context
        self.control = control
        self.on_status = on_status or (lambda status: None)
        if window is None:
            window = timedelta(days=settings.TIME_WINDOW_DAYS)
        if window <= timedelta(0):
            raise ValueError("window must be positive")
        if max_steps is None:
            max_steps = settings.OLDEST_SEARCH_MAX_STEPS
        if max_empty_retries is None:
            max_empty_retries = settings.MAX_EMPTY_PAGE_RETRIES
        self.window = window
        self.max_steps = max_steps
        self.max_empty_retries = max_empty_retries
        self.now = now or (lambda: datetime.now(timezone.utc))

    def batches(self) -> Generator[Batch, None, None]:
        """
        Generator that yields batches window by window, oldest first.

        Yields:
            Not yet attempted messages sorted by ascending id
        """
        oldest = self.find_oldest_date()
        if oldest is None:
            logger.info("No messages found")
            return

        # Window bounds are exclusive
        windows = self.generate_windows(oldest - timedelta(milliseconds=1), self.now())
        logger.info(f"Processing {len(windows)} time windows starting {oldest.date()}")

        for index, (window_min, window_max) in enumerate(windows, 1):
            if self.control.stop_requested:
                return
            logger.debug(f"Window {index}/{len(windows)}: {window_min} - {window_max}")
            yield from self.window_batches(window_min, window_max)

    def find_oldest_date(self) -> Optional[datetime]:
        """
        Binary search the date axis for the oldest matching message.

        Returns:
            Date of the oldest message found, or None if nothing matches at all
        """
        self._set_status("Finding oldest message...")
        try:
            newest = self.searcher.search()
            if not newest:
                return None

            newest_date = snowflake_to_date(newest[0].id)
            low, high = DISCORD_EPOCH, newest_date
            oldest_found: Optional[datetime] = None
            steps = 0

            while steps < self.max_steps and high - low > self.window:
                if not self.control.checkpoint():
                    break
                steps += 1
                self._set_status(f"Finding oldest message... (step {steps}/{self.max_steps})")

                middle = low + (high - low) / 2
                results = self.searcher.search(
                    max_id=date_to_snowflake(middle), track_total=False
                )
                self.control.wait(self.context.config.search_delay)

                if results:
                    page_oldest = snowflake_to_date(oldest_message(results).id)
                    oldest_found = min(oldest_found or page_oldest, page_oldest)
                    high = middle
                else:
                    low = middle

            if oldest_found is None:
                oldest_found = newest_date
            if high - low <= self.window:
                # Pages are capped, so older hits may be hidden; nothing matches before low
                oldest_found = min(oldest_found, low)

            logger.info(f"Oldest message located around {oldest_found.isoformat()}")
            return oldest_found
        finally:
            self._set_status(None)

    def generate_windows(self, oldest: datetime, newest: datetime) -> List[Tuple[str, str]]:
        """
        Split [oldest, newest] into consecutive windows.

        Returns:
            List of (min_id, max_id) snowflake pairs, oldest window first
        """
        windows = []
        window_start = oldest
        end = newest + timedelta(milliseconds=1)

        while window_start < newest:
            window_end = min(window_start + self.window, end)
            windows.append((date_to_snowflake(window_start), date_to_snowflake(window_end)))
            window_start = window_end

        return windows

    def window_batches(self, window_min: str, window_max: str) -> Generator[Batch, None, None]:
        """Yield batches from one window until it is exhausted."""
        context = self.context
        search_delay = context.config.search_delay
        empty_retries = 0

        while self.control.checkpoint():
            messages = self.searcher.search(
                min_id=window_min, max_id=window_max, track_total=False
            )
            fresh = context.unattempted(messages)

            if fresh:
                empty_retries = 0
                yield sorted(fresh, key=lambda message: message.numeric_id)
                self.control.wait(search_delay)
                continue

            if context.all_permanently_failed(messages):
                return

            empty_retries += 1
            if empty_retries >= self.max_empty_retries:
                if not any(m.id not in context.permanently_failed for m in messages):
                    return
                empty_retries = self.max_empty_retries // 2

            self.control.wait(empty_page_backoff(search_delay, empty_retries))

    def _set_status(self, status: Optional[str]) -> None:
        self.context.state.status = status
        self.on_status(status)
