"""
Utility modules: logging, checkpoints, statistics, run control.
"""
from purgecord.utils.logging import get_logger, setup_logging

__all__ = ["setup_logging", "get_logger"]
