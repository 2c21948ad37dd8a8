"""
Batch processor that filters candidate messages and deletes them with retries.
"""

import time
from typing import Any, Callable, List, Optional

from config import settings
from purgecord.deletion.filter_compiler import is_deletable
from purgecord.deletion.models import Message, Observers, RunContext
from purgecord.safety.error_detector import ErrorDetector, Outcome
from purgecord.safety.throttle import ThrottleController
from purgecord.utils.logging import get_logger
from purgecord.utils.run_control import RunControl
from purgecord.utils.statistics import ProgressTracker

logger = get_logger(__name__)


class BatchProcessor:
    """Deletes one page of messages at a time for a running engine."""

    def __init__(
        self,
        api_client: Any,
        context: RunContext,
        tracker: ProgressTracker,
        throttle: ThrottleController,
        control: RunControl,
        observers: Observers,
        emit_progress: Callable[[Message], None],
        save_checkpoint: Callable[[], None],
        error_detector: Optional[ErrorDetector] = None,
    ):
        """
        Initialize BatchProcessor.

        Args:
            api_client: Client exposing delete_message(channel_id, message_id)
            context: Run context shared with the pagination strategy
            tracker: Statistics tracker for pings, throttling and ETA
            throttle: Adaptive delay controller
            control: Pause gate and stop flag
            observers: Callbacks (only on_error is used directly)
            emit_progress: Called after every delete attempt
            save_checkpoint: Called every settings.CHECKPOINT_EVERY successful deletes
            error_detector: Optional ErrorDetector instance
        """
        self.api_client = api_client
        self.context = context
        self.tracker = tracker
        self.throttle = throttle
        self.control = control
        self.observers = observers
        self.emit_progress = emit_progress
        self.save_checkpoint = save_checkpoint
        self.error_detector = error_detector or ErrorDetector()

    def filter_messages(self, messages: List[Message]) -> List[Message]:
        """
        Keep the messages this run may delete.

        Rejected messages are recorded as attempted and permanently failed so
        that the search index cannot keep handing them back. Messages in a
        sub-container count as skipped; other rejections count as filtered.

        Args:
            messages: Candidate messages, none of them attempted yet

        Returns:
            Deletable messages in their original order
        """
        context = self.context
        deletable = []

        for message in messages:
            allowed, reason = is_deletable(message, context.config)
            if allowed:
                deletable.append(message)
                continue

            logger.debug(f"Skipping message {message.id}: {reason}")
            context.attempted.add(message.id)
            context.permanently_failed.add(message.id)
            if reason == "sub_container":
                context.state.skipped_count += 1
            else:
                context.state.filtered_count += 1

        return deletable

    def process(self, messages: List[Message]) -> None:
        """
        Filter and delete a batch of messages in order.

        Args:
            messages: Batch from a pagination strategy
        """
        deletable = self.filter_messages(messages)
        if not deletable:
            return

        logger.info(f"Deleting {len(deletable)} messages...")
        state = self.context.state

        for message in deletable:
            if not self.control.checkpoint():
                break

            # Recorded before the attempt so a stale page can never repeat it
            self.context.attempted.add(message.id)

            if self.delete_with_retry(message):
                state.deleted_count += 1
                self.context.last_processed_id = message.id
                if state.deleted_count % settings.CHECKPOINT_EVERY == 0:
                    self.save_checkpoint()
            else:
                state.failed_count += 1
                self.context.permanently_failed.add(message.id)
                state.skipped_count += 1

            self.emit_progress(message)
            self.tracker.update_eta(state)
            self.control.wait(self.throttle.delay)

    def delete_with_retry(self, message: Message) -> bool:
        """
        Delete one message, retrying only on rate limits.

        Args:
            message: Message to delete

        Returns:
            True if the message is gone (deleted or already missing), False otherwise
        """
        max_retries = self.context.config.max_retries

        for attempt in range(1, max_retries + 1):
            source: Any
            started = time.perf_counter()
            try:
                source = self.api_client.delete_message(message.channel_id, message.id)
                outcome = self.error_detector.classify_result(source)
            except Exception as e:
                source = e
                outcome = self.error_detector.classify_exception(e)
            self.tracker.record_ping((time.perf_counter() - started) * 1000)

            if outcome is Outcome.SUCCESS:
                self.throttle.record_success()
                logger.debug(f"Deleted message {message.id}")
                return True

            if outcome is Outcome.NOT_FOUND:
                logger.debug(f"Message {message.id} already deleted")
                return True

            if outcome is Outcome.FORBIDDEN:
                logger.warning(f"Permission denied deleting message {message.id}")
                return False

            if outcome is Outcome.RATE_LIMITED:
                wait_ms = self.error_detector.retry_after_seconds(
                    source, settings.DELETE_RETRY_AFTER_DEFAULT
                ) * 1000
                self.throttle.record_rate_limit(wait_ms)
                self.tracker.record_throttle(wait_ms)
                logger.debug(
                    f"Delete of {message.id} rate limited, retry {attempt}/{max_retries} "
                    f"in {wait_ms / 1000:.1f}s"
                )
                self.control.wait(wait_ms)
                continue

            error = (
                source
                if isinstance(source, BaseException)
                else self.error_detector.to_exception(source)
            )
            logger.error(f"Failed to delete message {message.id}: {error}")
            if self.observers.on_error:
                self.observers.on_error(error)
            return False

        logger.warning(f"Giving up on message {message.id} after {max_retries} rate limits")
        return False
