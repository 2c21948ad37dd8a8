"""
Checkpoint store for saving and loading resumable deletion progress.
"""
import json
import math
import shutil
import time
from pathlib import Path
from typing import Any, Dict, Optional

from config import settings
from purgecord.deletion.models import Checkpoint
from purgecord.traversal.snowflake import is_valid_snowflake
from purgecord.utils.logging import get_logger

logger = get_logger(__name__)


class CheckpointStore:
    """Persists the latest Checkpoint of a run as a JSON file."""

    def __init__(self, progress_path: Optional[Path] = None, expiry_hours: Optional[float] = None):
        """
        Initialize CheckpointStore.

        Args:
            progress_path: Path to progress JSON file (defaults to settings.PROGRESS_PATH)
            expiry_hours: Age after which a checkpoint is discarded
        """
        self.progress_path = Path(progress_path or settings.PROGRESS_PATH)
        self.expiry_hours = settings.CHECKPOINT_EXPIRY_HOURS if expiry_hours is None else expiry_hours

        # Ensure directory exists
        self.progress_path.parent.mkdir(parents=True, exist_ok=True)

        logger.debug(f"CheckpointStore initialized with path: {self.progress_path}")

    def save(self, checkpoint: Checkpoint) -> None:
        """
        Save a checkpoint to the JSON file.

        Args:
            checkpoint: Checkpoint to persist
        """
        try:
            # Create backup if file exists
            if self.progress_path.exists():
                backup_path = self.progress_path.with_suffix(".json.bak")
                shutil.copy2(self.progress_path, backup_path)
                logger.debug(f"Created backup: {backup_path}")

            # Write to temp file first (atomic write)
            temp_path = self.progress_path.with_suffix(".json.tmp")

            with open(temp_path, "w", encoding="utf-8") as f:
                json.dump(checkpoint.to_dict(), f, indent=2, ensure_ascii=False)

            temp_path.replace(self.progress_path)

            logger.debug(
                f"Checkpoint saved to {self.progress_path} "
                f"({checkpoint.deleted_count} deleted, last id {checkpoint.last_max_id})"
            )

        except Exception as e:
            logger.error(f"Failed to save checkpoint: {e}")
            # Don't raise - a failed save only costs resumability

    def load(self) -> Optional[Checkpoint]:
        """
        Load the saved checkpoint.

        Returns:
            Checkpoint, or None if the file is missing, corrupted, invalid or expired
        """
        if not self.progress_path.exists():
            logger.debug("Progress file does not exist")
            return None

        try:
            with open(self.progress_path, encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            logger.error(f"Corrupted JSON in progress file: {e}")
            self.clear()
            return None
        except Exception as e:
            logger.error(f"Failed to load checkpoint: {e}")
            return None

        if not self._validate(data):
            logger.warning("Invalid checkpoint structure, discarding")
            self.clear()
            return None

        age_ms = time.time() * 1000 - data["timestamp"]
        if age_ms > self.expiry_hours * 3_600_000:
            logger.info(f"Checkpoint expired ({age_ms / 3_600_000:.1f} hours old), discarding")
            self.clear()
            return None

        logger.info(f"Checkpoint loaded from {self.progress_path}")
        return Checkpoint.from_dict(data)

    def clear(self) -> None:
        """Clear saved checkpoint (delete file)."""
        try:
            if self.progress_path.exists():
                self.progress_path.unlink()
                logger.info("Saved checkpoint cleared")

        except Exception as e:
            logger.error(f"Failed to clear checkpoint: {e}")

    def has_session(self) -> bool:
        return self.load() is not None

    def _validate(self, data: Dict[str, Any]) -> bool:
        """
        Validate checkpoint structure.

        Args:
            data: Parsed JSON object

        Returns:
            True if valid, False otherwise
        """
        if not isinstance(data, dict):
            return False

        if not is_valid_snowflake(data.get("author_id")):
            return False
        if not is_valid_snowflake(data.get("last_max_id")):
            return False

        for name in ("timestamp", "deleted_count", "total_found"):
            if not _is_finite_number(data.get(name)):
                return False

        if "initial_total_found" in data and not _is_finite_number(data["initial_total_found"]):
            return False

        guild_id = data.get("guild_id")
        if guild_id is not None and guild_id != "@me" and not is_valid_snowflake(guild_id):
            return False

        channel_id = data.get("channel_id")
        if channel_id is not None and not is_valid_snowflake(channel_id):
            return False

        filters = data.get("filters")
        if filters is not None:
            if not isinstance(filters, dict):
                return False
            for name in ("content", "pattern"):
                if name in filters and not isinstance(filters[name], str):
                    return False
            for name in ("has_link", "has_file", "include_pinned"):
                if name in filters and not isinstance(filters[name], bool):
                    return False
            if "min_id" in filters and not is_valid_snowflake(filters["min_id"]):
                return False

        return True


def _is_finite_number(value: Any) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )
