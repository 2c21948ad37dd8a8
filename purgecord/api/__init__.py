"""
Discord REST client and its errors.
"""
from purgecord.api.discord_client import DiscordClient
from purgecord.api.errors import ApiError, RateLimitError

__all__ = ["ApiError", "DiscordClient", "RateLimitError"]
