"""
Search requests with rate-limit retries and total tracking.
"""
import time
from typing import Any, Dict, List, Optional

from config import settings
from purgecord.deletion.models import Message, RunContext
from purgecord.safety.error_detector import ErrorDetector, Outcome
from purgecord.traversal.snowflake import earlier_id, later_id
from purgecord.utils.logging import get_logger
from purgecord.utils.run_control import RunControl
from purgecord.utils.statistics import ProgressTracker

logger = get_logger(__name__)


class SearchFailedError(RuntimeError):
    """Raised when a search keeps being rate limited past the retry limit."""


def build_search_params(
    context: RunContext, min_id: Optional[str] = None, max_id: Optional[str] = None
) -> Dict[str, Any]:
    """
    Build search parameters from the run configuration.

    Extra bounds are intersected with the configured ones: the later min_id
    and the earlier max_id win.

    Args:
        context: Current run context
        min_id: Optional lower bound (exclusive) to apply on top of the config
        max_id: Optional upper bound (exclusive) to apply on top of the config

    Returns:
        Parameter dictionary for the client's search_messages()
    """
    config = context.config
    params: Dict[str, Any] = {
        "channel_id": config.channel_id,
        "author_id": config.author_id,
        "offset": 0,
    }

    optional = {
        "guild_id": config.guild_id,
        "content": config.content,
        "has_link": config.has_link,
        "has_file": config.has_file,
        "min_id": later_id(min_id, config.min_id),
        "max_id": earlier_id(max_id, config.max_id),
    }
    params.update({key: value for key, value in optional.items() if value is not None})
    params["include_pinned"] = config.include_pinned

    return params


def extract_messages(response: Dict[str, Any]) -> List[Message]:
    """
    Flatten a search response into hit messages.

    Each inner list is a context group whose first entry is the hit.
    """
    messages = []
    for group in response.get("messages") or []:
        if group:
            messages.append(Message.from_api(group[0]))
    return messages


class SearchRunner:
    """Runs searches for a deletion run, retrying on rate limits."""

    def __init__(
        self,
        api_client: Any,
        context: RunContext,
        tracker: ProgressTracker,
        control: RunControl,
        error_detector: Optional[ErrorDetector] = None,
    ):
        self.api_client = api_client
        self.context = context
        self.tracker = tracker
        self.control = control
        self.error_detector = error_detector or ErrorDetector()

    def search(
        self,
        min_id: Optional[str] = None,
        max_id: Optional[str] = None,
        track_total: bool = True,
    ) -> List[Message]:
        """
        Search once, retrying on rate limits up to the configured maximum.

        Args:
            min_id: Extra lower bound
            max_id: Extra upper bound
            track_total: Update total_found / initial_total_found from the response

        Returns:
            Hit messages from the response, newest first

        Raises:
            SearchFailedError: If every attempt was rate limited
            Exception: Any non rate-limit error from the client, unchanged
        """
        max_retries = self.context.config.max_retries
        params = build_search_params(self.context, min_id=min_id, max_id=max_id)

        for attempt in range(1, max_retries + 1):
            started = time.perf_counter()
            try:
                response = self.api_client.search_messages(params)
            except Exception as e:
                if self.error_detector.classify_exception(e) is not Outcome.RATE_LIMITED:
                    raise

                wait_ms = self.error_detector.retry_after_seconds(
                    e, settings.SEARCH_RETRY_AFTER_DEFAULT
                ) * 1000
                self.tracker.record_throttle(wait_ms)
                logger.warning(
                    f"Search rate limited, waiting {wait_ms / 1000:.1f}s "
                    f"(attempt {attempt}/{max_retries})"
                )
                self.control.wait(wait_ms)
                continue

            self.tracker.record_ping((time.perf_counter() - started) * 1000)

            if track_total:
                self._update_totals(response.get("total_results") or 0)

            messages = extract_messages(response)
            logger.debug(
                f"Search returned {len(messages)} messages "
                f"(total_results={response.get('total_results')}, max_id={params.get('max_id')})"
            )
            return messages

        raise SearchFailedError(f"Search failed after {max_retries} retries")

    def _update_totals(self, total_results: int) -> None:
        state = self.context.state
        state.total_found = total_results
        if state.initial_total_found == 0:
            state.initial_total_found = total_results
