"""
Purgecord - bulk deletion of your own Discord messages.
"""
from purgecord.api.discord_client import DiscordClient
from purgecord.api.errors import ApiError, RateLimitError
from purgecord.deletion.deletion_engine import DeletionEngine
from purgecord.deletion.filter_compiler import ConfigurationError
from purgecord.deletion.models import (
    Checkpoint,
    DeleteResult,
    Message,
    Observers,
    RateLimitSignal,
    RunConfig,
    RunPhase,
    RunState,
    RunStats,
)
from purgecord.traversal.searcher import SearchFailedError
from purgecord.utils.state_manager import CheckpointStore

__version__ = "0.1.0"

__all__ = [
    "ApiError",
    "Checkpoint",
    "CheckpointStore",
    "ConfigurationError",
    "DeleteResult",
    "DeletionEngine",
    "DiscordClient",
    "Message",
    "Observers",
    "RateLimitError",
    "RateLimitSignal",
    "RunConfig",
    "RunPhase",
    "RunState",
    "RunStats",
    "SearchFailedError",
]
