"""
Cooperative pause/stop signalling between a running engine and its callers.
"""
import threading
import time
from typing import Callable, Optional

from purgecord.utils.logging import get_logger

logger = get_logger(__name__)


class RunControl:
    """Pause gate, stop flag and waits shared by every suspension point of a run."""

    def __init__(self, sleep: Optional[Callable[[float], None]] = None):
        """
        Initialize RunControl.

        Args:
            sleep: Blocking wait in seconds (defaults to time.sleep)
        """
        self._sleep = sleep or time.sleep
        self._gate = threading.Event()
        self._gate.set()
        self._stop_requested = False

    @property
    def stop_requested(self) -> bool:
        return self._stop_requested

    @property
    def paused(self) -> bool:
        return not self._gate.is_set()

    def reset(self) -> None:
        self._stop_requested = False
        self._gate.set()

    def pause(self) -> bool:
        """Close the gate. Returns False if already paused."""
        if self.paused:
            return False
        self._gate.clear()
        return True

    def resume(self) -> bool:
        """Open the gate. Returns False if not paused."""
        if not self.paused:
            return False
        self._gate.set()
        return True

    def request_stop(self) -> None:
        self._stop_requested = True

    def checkpoint(self) -> bool:
        """
        Suspension point: block while paused, then report whether to continue.

        Returns:
            False once a stop has been requested
        """
        if self._stop_requested:
            return False
        if self.paused:
            logger.debug("Run paused, waiting for resume")
            self._gate.wait()
        return not self._stop_requested

    def wait(self, delay_ms: float) -> None:
        """Sleep for delay_ms milliseconds."""
        if delay_ms > 0:
            self._sleep(delay_ms / 1000)
