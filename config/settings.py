"""
Configuration constants for the purgecord project.
"""
import os
from pathlib import Path

# Base directory (project root)
BASE_DIR = Path(__file__).parent.parent

# Request pacing (milliseconds)
DEFAULT_SEARCH_DELAY_MS = 10000
DEFAULT_DELETE_DELAY_MS = 1000
DEFAULT_MAX_RETRIES = 3

# Default waits when the server omits retry_after (seconds)
SEARCH_RETRY_AFTER_DEFAULT = 5
DELETE_RETRY_AFTER_DEFAULT = 1

# Search paging
MESSAGES_PER_PAGE = 25
MAX_EMPTY_PAGE_RETRIES = 5
EMPTY_PAGE_BACKOFF_MULTIPLIER = 1.3
PREVIEW_SAMPLE_SIZE = 10

# Oldest-first scanning
TIME_WINDOW_DAYS = 7
OLDEST_SEARCH_MAX_STEPS = 20

# Adaptive throttling
THROTTLE_INCREASE_PERCENTAGE = 0.5
THROTTLE_RECOVERY_THRESHOLD = 5
THROTTLE_RECOVERY_PERCENTAGE = 0.1

# Statistics
PING_HISTORY_SIZE = 20

# Checkpointing
CHECKPOINT_EVERY = 10
CHECKPOINT_EXPIRY_HOURS = 24

# Content pattern safety
MAX_PATTERN_LENGTH = 100
PATTERN_TIMEOUT_MS = 100

# Discord API
API_BASE_URL = "https://discord.com/api/v10"
REQUEST_TIMEOUT_SECONDS = 30.0

# Paths (relative to BASE_DIR)
DATA_DIR = Path(os.getenv("PURGECORD_DATA_DIR", str(BASE_DIR / "data")))
PROGRESS_PATH = Path(os.getenv("PURGECORD_PROGRESS_PATH", str(DATA_DIR / "progress.json")))
LOG_DIR = DATA_DIR / "logs"

# Environment Variables (with defaults)
DISCORD_TOKEN = os.getenv("DISCORD_TOKEN", "")
DISCORD_AUTHOR_ID = os.getenv("DISCORD_AUTHOR_ID", "")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
