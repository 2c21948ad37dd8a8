"""
Deletion engine for orchestrating search, filtering, deletion and checkpoints.
"""

import dataclasses
import math
import threading
from typing import Any, Callable, Dict, Optional

from config import settings
from purgecord.deletion.batch_processor import BatchProcessor
from purgecord.deletion.filter_compiler import (
    ConfigurationError,
    compile_config,
    is_deletable,
    validate_required,
)
from purgecord.deletion.models import (
    CHECKPOINT_FILTER_FIELDS,
    Checkpoint,
    Message,
    Observers,
    RateLimitSignal,
    RunConfig,
    RunContext,
    RunPhase,
    RunState,
    RunStats,
)
from purgecord.safety.error_detector import ErrorDetector
from purgecord.safety.throttle import ThrottleController
from purgecord.traversal.pagination import NewestFirstScanner, OldestFirstScanner
from purgecord.traversal.searcher import SearchRunner, build_search_params, extract_messages
from purgecord.utils.logging import get_logger
from purgecord.utils.run_control import RunControl
from purgecord.utils.statistics import ProgressTracker

logger = get_logger(__name__)


class DeletionEngine:
    """
    Orchestrates bulk deletion of one author's messages.

    A run executes on the thread that calls start(). pause(), resume(), stop(),
    get_state() and get_stats() may be called from any other thread or from
    inside an observer; the run honors them at its suspension points (before
    each search, before each delete and while waiting).
    """

    def __init__(
        self,
        api_client: Any,
        checkpoint_store: Optional[Any] = None,
        sleep: Optional[Callable[[float], None]] = None,
        clock: Optional[Callable[[], float]] = None,
        error_detector: Optional[ErrorDetector] = None,
    ):
        """
        Initialize DeletionEngine.

        Args:
            api_client: Client exposing search_messages(), delete_message() and
                        optionally get_rate_limit_info()
            checkpoint_store: Optional store exposing load(), save() and clear()
            sleep: Blocking wait in seconds (defaults to time.sleep)
            clock: Current time in seconds (defaults to time.time)
            error_detector: Optional ErrorDetector instance
        """
        self.api_client = api_client
        self.checkpoint_store = checkpoint_store
        self.error_detector = error_detector or ErrorDetector()

        self.config: Optional[RunConfig] = None
        self.observers = Observers()
        self.control = RunControl(sleep=sleep)
        self.tracker = ProgressTracker(clock=clock)
        self.throttle = ThrottleController(
            settings.DEFAULT_DELETE_DELAY_MS, on_change=self._on_rate_limit_change
        )
        self.context = RunContext(config=RunConfig())
        self.phase = RunPhase.UNCONFIGURED

        self._resume_from: Optional[Checkpoint] = None
        self._phase_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def configure(self, **options: Any) -> RunConfig:
        """
        Merge options into the run configuration.

        Args:
            **options: RunConfig fields (auth_token, author_id, channel_id, pattern, ...)

        Returns:
            The new configuration

        Raises:
            ConfigurationError: If running or an option is invalid
        """
        if self.context.state.running:
            raise ConfigurationError("Cannot configure while running")

        self.config = compile_config(self.config, **options)
        if self.phase is RunPhase.UNCONFIGURED:
            self.phase = RunPhase.CONFIGURED
        return self.config

    def set_observers(self, observers: Optional[Observers] = None, **callbacks: Any) -> None:
        """
        Replace the event callbacks.

        Accepts an Observers instance or keyword callbacks such as
        on_progress=..., on_error=...
        """
        self.observers = observers or Observers(**callbacks)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """
        Run the deletion to completion, stop, or error.

        Raises:
            ConfigurationError: If unconfigured, missing required options, or already running
            Exception: Any error that aborted the run (also passed to on_error)
        """
        if self.context.state.running:
            raise ConfigurationError("Engine is already running")

        config = validate_required(self.config)

        self._reset(config)
        state = self.context.state
        state.running = True
        self.phase = RunPhase.RUNNING

        logger.info(
            f"Starting deletion: author={config.author_id}, channel={config.channel_id}, "
            f"guild={config.guild_id or '-'}, order={config.deletion_order}"
        )
        if self.observers.on_start:
            self.observers.on_start(self.get_state(), self.get_stats())

        final_phase = RunPhase.ERRORED
        try:
            self._run()
            if self.control.stop_requested:
                final_phase = RunPhase.STOPPED
                if self.context.last_processed_id:
                    self.save_checkpoint()
                logger.info("Deletion stopped by user, checkpoint kept for resume")
            else:
                final_phase = RunPhase.COMPLETED
                logger.info("Deletion complete")
                self.clear_saved_session()
        except Exception as e:
            self.phase = RunPhase.ERRORED
            logger.error(f"Deletion aborted: {e}")
            if self.observers.on_error:
                self.observers.on_error(e)
            raise
        finally:
            with self._phase_lock:
                state.running = False
                state.paused = False
                self.control.resume()
                self.phase = final_phase
            self.tracker.finish()
            if self.observers.on_stop:
                self.observers.on_stop(self.get_state(), self.get_stats())

    def pause(self) -> None:
        """Pause at the next suspension point. No-op unless running and not paused."""
        state = self.context.state
        with self._phase_lock:
            if not state.running or state.paused or self.control.stop_requested:
                return

            self.control.pause()
            state.paused = True
            self.phase = RunPhase.PAUSED
        logger.info("Pausing deletion")

    def resume(self) -> None:
        """Release a paused run. No-op if not paused."""
        state = self.context.state
        with self._phase_lock:
            if not state.paused:
                return

            state.paused = False
            if state.running:
                self.phase = RunPhase.RUNNING
            self.control.resume()
        logger.info("Resuming deletion")

    def stop(self) -> None:
        """Ask the run to exit at its next suspension point."""
        self.control.request_stop()
        logger.info("Stop requested")
        if self.context.state.paused:
            self.resume()

    def get_state(self) -> RunState:
        """Return a copy of the current state."""
        return dataclasses.replace(self.context.state)

    def get_stats(self) -> RunStats:
        """Return a copy of the current statistics."""
        return self.tracker.snapshot()

    def get_rate_limit_info(self) -> Optional[Any]:
        """Last rate limit headers seen by the client, if it tracks them."""
        getter = getattr(self.api_client, "get_rate_limit_info", None)
        return getter() if getter else None

    def preview(self) -> Dict[str, Any]:
        """
        Search once without deleting anything.

        Returns:
            Dictionary with total_count, sample_messages (up to 10 deletable
            messages) and estimated_time_ms

        Raises:
            ConfigurationError: If running, unconfigured or missing required options
        """
        if self.context.state.running:
            raise ConfigurationError("Cannot preview while running")

        config = validate_required(self.config)
        response = self.api_client.search_messages(
            build_search_params(RunContext(config=config))
        )

        total_count = response.get("total_results") or 0
        samples = [
            message
            for message in extract_messages(response)
            if is_deletable(message, config)[0]
        ]
        pages_needed = math.ceil(total_count / settings.MESSAGES_PER_PAGE)
        estimated_time_ms = total_count * config.delete_delay + pages_needed * config.search_delay

        logger.info(f"Preview: {total_count} messages, ~{estimated_time_ms / 1000:.0f}s")
        return {
            "total_count": total_count,
            "sample_messages": samples[: settings.PREVIEW_SAMPLE_SIZE],
            "estimated_time_ms": estimated_time_ms,
        }

    # ------------------------------------------------------------------
    # Saved sessions
    # ------------------------------------------------------------------

    def has_saved_session(self) -> bool:
        return self.load_saved_session() is not None

    def load_saved_session(self) -> Optional[Checkpoint]:
        """Load the stored checkpoint, if any. Storage errors are logged, not raised."""
        if self.checkpoint_store is None:
            return None
        try:
            return self.checkpoint_store.load()
        except Exception as e:
            logger.warning(f"Failed to load saved session: {e}")
            return None

    def resume_from_saved(self, checkpoint: Checkpoint) -> None:
        """
        Configure the engine to continue a previous session.

        The scope and filters are restored, max_id is moved to the last deleted
        message, and the saved counters carry into the next start().

        Raises:
            ConfigurationError: If running
        """
        if self.context.state.running:
            raise ConfigurationError("Cannot resume while running")

        options: Dict[str, Any] = {
            "author_id": checkpoint.author_id,
            "max_id": checkpoint.last_max_id,
        }
        if checkpoint.guild_id:
            options["guild_id"] = checkpoint.guild_id
        if checkpoint.channel_id:
            options["channel_id"] = checkpoint.channel_id
        for name in CHECKPOINT_FILTER_FIELDS:
            if checkpoint.filters and name in checkpoint.filters:
                options[name] = checkpoint.filters[name]

        self.configure(**options)

        self._resume_from = checkpoint
        self._apply_saved_counts(self.context.state, checkpoint)
        logger.info(
            f"Resuming saved session: {checkpoint.deleted_count} already deleted, "
            f"continuing before message {checkpoint.last_max_id}"
        )

    def clear_saved_session(self) -> None:
        if self.checkpoint_store is None:
            return
        try:
            self.checkpoint_store.clear()
        except Exception as e:
            logger.warning(f"Failed to clear saved session: {e}")

    def save_checkpoint(self) -> None:
        """Persist the current progress. Storage errors never abort the run."""
        if self.checkpoint_store is None or self.config is None:
            return

        config = self.config
        state = self.context.state
        filters = {
            name: getattr(config, name)
            for name in CHECKPOINT_FILTER_FIELDS
            if getattr(config, name) is not None
        }
        checkpoint = Checkpoint(
            author_id=config.author_id or "",
            guild_id=config.guild_id,
            channel_id=config.channel_id,
            last_max_id=self.context.last_processed_id or config.max_id or "",
            deleted_count=state.deleted_count,
            total_found=state.total_found,
            initial_total_found=state.initial_total_found,
            timestamp=self.tracker.now_ms(),
            filters=filters or None,
        )

        try:
            self.checkpoint_store.save(checkpoint)
        except Exception as e:
            logger.warning(f"Failed to save checkpoint: {e}")

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _reset(self, config: RunConfig) -> None:
        self.context = RunContext(config=config)
        self.control.reset()
        self.tracker.start()
        self.throttle.reset(baseline_delay=config.delete_delay)

        if self._resume_from is not None:
            self._apply_saved_counts(self.context.state, self._resume_from)
            self._resume_from = None

    def _run(self) -> None:
        context = self.context
        searcher = SearchRunner(
            self.api_client, context, self.tracker, self.control, self.error_detector
        )
        processor = BatchProcessor(
            self.api_client,
            context,
            self.tracker,
            self.throttle,
            self.control,
            self.observers,
            emit_progress=self._emit_progress,
            save_checkpoint=self.save_checkpoint,
            error_detector=self.error_detector,
        )

        scanner: Any
        if context.config.deletion_order == "oldest":
            scanner = OldestFirstScanner(searcher, context, self.control, on_status=self._on_status)
        else:
            scanner = NewestFirstScanner(searcher, context, self.control)

        for batch in scanner.batches():
            processor.process(batch)

    def _emit_progress(self, message: Message) -> None:
        if self.observers.on_progress:
            self.observers.on_progress(self.get_state(), self.get_stats(), message)

    def _on_status(self, status: Optional[str]) -> None:
        if self.observers.on_status:
            self.observers.on_status(status)

    def _on_rate_limit_change(self, signal: RateLimitSignal) -> None:
        if self.observers.on_rate_limit_change:
            self.observers.on_rate_limit_change(signal)

    @staticmethod
    def _apply_saved_counts(state: RunState, checkpoint: Checkpoint) -> None:
        state.deleted_count = checkpoint.deleted_count
        state.total_found = checkpoint.total_found
        state.initial_total_found = (
            checkpoint.initial_total_found
            if checkpoint.initial_total_found is not None
            else checkpoint.total_found
        )
