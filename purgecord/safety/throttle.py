"""
Adaptive delete pacing driven by rate-limit responses.
"""
from typing import Callable, Optional

from config import settings
from purgecord.deletion.models import RateLimitSignal
from purgecord.utils.logging import get_logger

logger = get_logger(__name__)


class ThrottleController:
    """Keeps the inter-delete delay just above what the server tolerates."""

    def __init__(
        self,
        baseline_delay: float,
        on_change: Optional[Callable[[RateLimitSignal], None]] = None,
        increase_percentage: Optional[float] = None,
        recovery_threshold: Optional[int] = None,
        recovery_percentage: Optional[float] = None,
    ):
        """
        Initialize ThrottleController.

        Args:
            baseline_delay: Configured delay between deletes in milliseconds
            on_change: Called with the new RateLimitSignal whenever the delay moves
            increase_percentage: Share of the gap toward retry_after added on a 429
            recovery_threshold: Consecutive successes needed before easing off
            recovery_percentage: Share of the gap to baseline removed on recovery
        """
        self.baseline_delay = max(0.0, float(baseline_delay))
        self.on_change = on_change
        if increase_percentage is None:
            increase_percentage = settings.THROTTLE_INCREASE_PERCENTAGE
        if recovery_threshold is None:
            recovery_threshold = settings.THROTTLE_RECOVERY_THRESHOLD
        if recovery_percentage is None:
            recovery_percentage = settings.THROTTLE_RECOVERY_PERCENTAGE
        self.increase_percentage = increase_percentage
        self.recovery_threshold = recovery_threshold
        self.recovery_percentage = recovery_percentage

        self.current_delay = self.baseline_delay
        self.is_throttled = False
        self.consecutive_successes = 0

    def record_rate_limit(self, retry_after_ms: float) -> RateLimitSignal:
        """
        React to a rate-limit response by moving the delay toward retry_after.

        Args:
            retry_after_ms: Server requested wait in milliseconds

        Returns:
            The new rate limit signal
        """
        self.is_throttled = True
        self.consecutive_successes = 0

        gap = retry_after_ms - self.current_delay
        if gap > 0:
            self.current_delay += gap * self.increase_percentage

        logger.warning(
            f"Rate limited (retry_after={retry_after_ms:.0f}ms), "
            f"delete delay now {self.current_delay:.0f}ms"
        )
        return self._notify()

    def record_success(self) -> Optional[RateLimitSignal]:
        """
        Count a successful delete and ease the delay back toward baseline.

        Returns:
            The new signal if the delay changed, otherwise None
        """
        if not self.is_throttled:
            return None

        self.consecutive_successes += 1
        if self.consecutive_successes < self.recovery_threshold:
            return None

        gap = self.current_delay - self.baseline_delay
        self.current_delay = max(
            self.baseline_delay, self.current_delay - gap * self.recovery_percentage
        )
        self.consecutive_successes = 0

        if self.current_delay <= self.baseline_delay:
            self.current_delay = self.baseline_delay
            self.is_throttled = False
            logger.info("Rate limit recovered, delete delay back to baseline")
        else:
            logger.debug(f"Easing delete delay to {self.current_delay:.0f}ms")

        return self._notify()

    @property
    def delay(self) -> float:
        """Delay to wait before the next delete, in milliseconds."""
        return self.current_delay if self.is_throttled else self.baseline_delay

    def signal(self) -> RateLimitSignal:
        return RateLimitSignal(is_throttled=self.is_throttled, current_delay=self.current_delay)

    def reset(self, baseline_delay: Optional[float] = None) -> None:
        """Return to the unthrottled state, optionally with a new baseline."""
        if baseline_delay is not None:
            self.baseline_delay = max(0.0, float(baseline_delay))
        self.current_delay = self.baseline_delay
        self.is_throttled = False
        self.consecutive_successes = 0

    def _notify(self) -> RateLimitSignal:
        signal = self.signal()
        if self.on_change:
            self.on_change(signal)
        return signal
