"""
Validation and compilation of run configuration and message filters.
"""
import dataclasses
import re
import time
from typing import Any, Optional, Tuple

from config import settings
from purgecord.deletion.models import Message, RunConfig
from purgecord.utils.logging import get_logger

logger = get_logger(__name__)

REQUIRED_FIELDS = ("auth_token", "author_id", "channel_id")

DELETION_ORDERS = ("newest", "oldest")

# 0 = DEFAULT, 6-21 = user-initiated system messages (pins, boosts, replies, threads, ...)
DELETABLE_MESSAGE_TYPES = frozenset(
    {0, 6, 7, 8, 9, 10, 11, 12, 14, 15, 16, 17, 18, 19, 20, 21}
)

# Constructs prone to catastrophic backtracking
DANGEROUS_PATTERNS = [
    re.compile(r"\([^)]*[+*][^)]*\)[+*]"),  # nested quantifiers: (a+)+
    re.compile(r"\(([^|)]+)\|\1\)[+*]"),  # duplicated alternation: (a|a)+
    re.compile(r"\\[1-9][+*]"),  # quantified back-reference
]

REDOS_PROBE = "a" * 25 + "!"

_CONFIG_FIELDS = {f.name for f in dataclasses.fields(RunConfig)} - {"compiled_pattern"}


class ConfigurationError(ValueError):
    """Raised for missing or invalid run configuration."""


def compile_pattern(pattern: Optional[str]) -> Optional["re.Pattern[str]"]:
    """
    Compile a case-insensitive content pattern after safety checks.

    Args:
        pattern: Regular expression text (empty or None disables filtering)

    Returns:
        Compiled pattern, or None when no filtering applies

    Raises:
        ConfigurationError: If the pattern is too long, unsafe, or malformed
    """
    if not pattern or not pattern.strip():
        return None

    if len(pattern) > settings.MAX_PATTERN_LENGTH:
        raise ConfigurationError(
            f"Invalid regex pattern: exceeds maximum length of "
            f"{settings.MAX_PATTERN_LENGTH} characters"
        )

    for dangerous in DANGEROUS_PATTERNS:
        if dangerous.search(pattern):
            raise ConfigurationError(
                "Invalid regex pattern: contains constructs that could cause performance issues"
            )

    try:
        compiled = re.compile(pattern, re.IGNORECASE)
    except re.error as e:
        raise ConfigurationError(f"Invalid regex pattern: {e}") from e

    started = time.perf_counter()
    compiled.search(REDOS_PROBE)
    elapsed_ms = (time.perf_counter() - started) * 1000
    if elapsed_ms > settings.PATTERN_TIMEOUT_MS:
        raise ConfigurationError(
            "Invalid regex pattern: takes too long to execute and may cause performance issues"
        )

    return compiled


def compile_config(current: Optional[RunConfig], **updates: Any) -> RunConfig:
    """
    Merge option updates into a configuration and compile derived fields.

    Args:
        current: Existing configuration (None for a fresh one)
        **updates: RunConfig field values to override

    Returns:
        New immutable RunConfig

    Raises:
        ConfigurationError: On unknown options or invalid values
    """
    unknown = sorted(set(updates) - _CONFIG_FIELDS)
    if unknown:
        raise ConfigurationError(f"Unknown options: {', '.join(unknown)}")

    base = current or RunConfig()

    if "deletion_order" in updates and updates["deletion_order"] not in DELETION_ORDERS:
        raise ConfigurationError(
            f"Invalid deletion_order: {updates['deletion_order']!r} "
            f"(expected one of {', '.join(DELETION_ORDERS)})"
        )

    for name in ("search_delay", "delete_delay"):
        if name in updates and (updates[name] is None or updates[name] < 0):
            raise ConfigurationError(f"{name} must be a non-negative number of milliseconds")

    if "max_retries" in updates and (updates["max_retries"] is None or updates["max_retries"] < 1):
        raise ConfigurationError("max_retries must be at least 1")

    if "pattern" in updates:
        updates["compiled_pattern"] = compile_pattern(updates["pattern"])

    config = dataclasses.replace(base, **updates)
    logger.debug(f"Configuration updated: {sorted(k for k in updates if k != 'auth_token')}")
    return config


def validate_required(config: Optional[RunConfig]) -> RunConfig:
    """
    Ensure the identity and scope fields needed for a search are present.

    Raises:
        ConfigurationError: If the engine is unconfigured or fields are missing
    """
    if config is None:
        raise ConfigurationError("Engine not configured")

    missing = [name for name in REQUIRED_FIELDS if not getattr(config, name)]
    if missing:
        raise ConfigurationError(f"Missing required options: {', '.join(missing)}")

    return config


def is_deletable(message: Message, config: RunConfig) -> Tuple[bool, Optional[str]]:
    """
    Decide whether a message passes the run's client-side filters.

    Returns:
        Tuple of (deletable, reason); reason is None when deletable, otherwise
        one of "type", "sub_container", "pinned", "pattern"
    """
    if message.type not in DELETABLE_MESSAGE_TYPES:
        return False, "type"

    # Channel-scoped searches also return thread messages, which cannot be
    # deleted through the parent channel.
    if config.channel_id and not config.guild_id and message.channel_id != config.channel_id:
        return False, "sub_container"

    if message.pinned and not config.include_pinned:
        return False, "pinned"

    if config.compiled_pattern is not None and not config.compiled_pattern.search(message.content):
        return False, "pattern"

    return True, None
