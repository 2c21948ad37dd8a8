"""
Safety modules: adaptive throttling and error classification.
"""
from purgecord.safety.error_detector import ErrorDetector, Outcome
from purgecord.safety.throttle import ThrottleController

__all__ = ["ErrorDetector", "Outcome", "ThrottleController"]
