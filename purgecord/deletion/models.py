"""
Data model shared by the deletion engine and its collaborators.
"""
import re
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Set

from config import settings


class RunPhase(Enum):
    """Lifecycle phases of a deletion engine."""

    UNCONFIGURED = "unconfigured"
    CONFIGURED = "configured"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    STOPPED = "stopped"
    ERRORED = "errored"


@dataclass(frozen=True)
class Message:
    """A Discord message as returned by the search endpoint."""

    id: str
    channel_id: str
    author_id: str = ""
    content: str = ""
    timestamp: str = ""
    pinned: bool = False
    type: int = 0

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Message":
        """
        Build a Message from a raw API dictionary.

        Args:
            data: Message JSON object

        Returns:
            Message instance
        """
        author = data.get("author") or {}
        return cls(
            id=str(data["id"]),
            channel_id=str(data.get("channel_id", "")),
            author_id=str(author.get("id", "")),
            content=data.get("content") or "",
            timestamp=data.get("timestamp") or "",
            pinned=bool(data.get("pinned", False)),
            type=int(data.get("type", 0)),
        )

    @property
    def numeric_id(self) -> int:
        return int(self.id)


@dataclass
class DeleteResult:
    """Outcome of a single delete request."""

    success: bool
    error: Optional[str] = None
    retry_after: Optional[float] = None
    status_code: Optional[int] = None


@dataclass(frozen=True)
class RunConfig:
    """Immutable settings for one deletion run."""

    auth_token: Optional[str] = None
    author_id: Optional[str] = None
    guild_id: Optional[str] = None
    channel_id: Optional[str] = None
    min_id: Optional[str] = None
    max_id: Optional[str] = None
    content: Optional[str] = None
    has_link: Optional[bool] = None
    has_file: Optional[bool] = None
    include_pinned: bool = False
    pattern: Optional[str] = None
    search_delay: float = settings.DEFAULT_SEARCH_DELAY_MS
    delete_delay: float = settings.DEFAULT_DELETE_DELAY_MS
    max_retries: int = settings.DEFAULT_MAX_RETRIES
    deletion_order: str = "newest"
    compiled_pattern: Optional["re.Pattern[str]"] = field(
        default=None, compare=False, repr=False
    )


@dataclass
class RunState:
    """Mutable progress of the current run."""

    running: bool = False
    paused: bool = False
    deleted_count: int = 0
    failed_count: int = 0
    skipped_count: int = 0
    filtered_count: int = 0
    total_found: int = 0
    initial_total_found: int = 0
    current_offset: int = 0
    status: Optional[str] = None


@dataclass
class RunStats:
    """Timing and throttling statistics of the current run (milliseconds)."""

    start_time: Optional[float] = None
    end_time: Optional[float] = None
    throttled_count: int = 0
    throttled_time: float = 0
    last_ping: float = 0
    average_ping: float = 0
    estimated_time_remaining: float = -1


@dataclass(frozen=True)
class RateLimitSignal:
    is_throttled: bool
    current_delay: float


@dataclass
class Checkpoint:
    """Resumable progress record written periodically during a run."""

    author_id: str
    last_max_id: str
    deleted_count: int
    total_found: int
    timestamp: float
    guild_id: Optional[str] = None
    channel_id: Optional[str] = None
    initial_total_found: Optional[int] = None
    filters: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {key: value for key, value in asdict(self).items() if value is not None}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Checkpoint":
        return cls(
            author_id=data["author_id"],
            last_max_id=data["last_max_id"],
            deleted_count=int(data["deleted_count"]),
            total_found=int(data["total_found"]),
            timestamp=data["timestamp"],
            guild_id=data.get("guild_id"),
            channel_id=data.get("channel_id"),
            initial_total_found=data.get("initial_total_found"),
            filters=data.get("filters"),
        )


# Option names restored from Checkpoint.filters
CHECKPOINT_FILTER_FIELDS = ("content", "has_link", "has_file", "include_pinned", "pattern", "min_id")


@dataclass
class Observers:
    """Optional callbacks fired synchronously from the run."""

    on_start: Optional[Callable[[RunState, RunStats], None]] = None
    on_progress: Optional[Callable[[RunState, RunStats, Message], None]] = None
    on_stop: Optional[Callable[[RunState, RunStats], None]] = None
    on_error: Optional[Callable[[BaseException], None]] = None
    on_rate_limit_change: Optional[Callable[[RateLimitSignal], None]] = None
    on_status: Optional[Callable[[Optional[str]], None]] = None


@dataclass
class RunContext:
    """Everything a single run mutates. Owned by the thread executing start()."""

    config: RunConfig
    state: RunState = field(default_factory=RunState)
    attempted: Set[str] = field(default_factory=set)
    permanently_failed: Set[str] = field(default_factory=set)
    last_processed_id: Optional[str] = None

    def unattempted(self, messages: List[Message]) -> List[Message]:
        return [message for message in messages if message.id not in self.attempted]

    def all_permanently_failed(self, messages: List[Message]) -> bool:
        return bool(messages) and all(m.id in self.permanently_failed for m in messages)

    def untried_count(self) -> int:
        return self.state.total_found - len(self.permanently_failed)
