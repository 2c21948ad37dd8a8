"""
HTTP client for the Discord message search and delete endpoints.
"""
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests

from config import settings
from purgecord.api.errors import ApiError, RateLimitError
from purgecord.deletion.models import DeleteResult
from purgecord.traversal.snowflake import is_valid_snowflake
from purgecord.utils.logging import get_logger

logger = get_logger(__name__)

TOKEN_PATTERN = re.compile(r"^[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+$")
MIN_TOKEN_LENGTH = 50
MAX_TOKEN_LENGTH = 100

STATUS_ERROR_CODES = {
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
}


@dataclass
class RateLimitInfo:
    """Rate limit headers from the most recent response."""

    remaining: int
    limit: int
    reset_after: float


def is_valid_token_format(token: Optional[str]) -> bool:
    """Check the shape of a user token. Says nothing about whether it is still valid."""
    if not token or not isinstance(token, str):
        return False
    if not MIN_TOKEN_LENGTH <= len(token) <= MAX_TOKEN_LENGTH:
        return False
    return bool(TOKEN_PATTERN.match(token))


class DiscordClient:
    """Minimal Discord REST client used by the deletion engine."""

    def __init__(
        self,
        token: str,
        session: Optional[requests.Session] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        """
        Initialize DiscordClient.

        Args:
            token: User authentication token
            session: Optional requests session (created if omitted)
            base_url: API base URL (defaults to settings.API_BASE_URL)
            timeout: Request timeout in seconds

        Raises:
            ValueError: If the token is missing or malformed
        """
        if not token:
            raise ValueError("Token is required")
        if not is_valid_token_format(token):
            raise ValueError("Token has invalid format")

        self.token = token
        self.session = session or requests.Session()
        self.base_url = (base_url or settings.API_BASE_URL).rstrip("/")
        self.timeout = settings.REQUEST_TIMEOUT_SECONDS if timeout is None else timeout
        self.rate_limit_info: Optional[RateLimitInfo] = None

    def get_rate_limit_info(self) -> Optional[RateLimitInfo]:
        return self.rate_limit_info

    def search_messages(self, params: Dict[str, Any]) -> Dict[str, Any]:
        """
        Search messages in a guild or a channel.

        Args:
            params: Search parameters as built by the engine (guild_id,
                    channel_id, author_id, content, min_id, max_id, has_link,
                    has_file, offset, include_nsfw)

        Returns:
            Response JSON with "messages" and "total_results"

        Raises:
            RateLimitError: On HTTP 429
            ApiError: On any other failure, including 202 (index not ready)
        """
        guild_id = params.get("guild_id")
        channel_id = params.get("channel_id")

        if guild_id:
            if guild_id != "@me" and not is_valid_snowflake(guild_id):
                raise ApiError("Invalid guild ID format")
            endpoint = f"{self.base_url}/guilds/{guild_id}/messages/search"
        elif channel_id:
            if not is_valid_snowflake(channel_id):
                raise ApiError("Invalid channel ID format")
            endpoint = f"{self.base_url}/channels/{channel_id}/messages/search"
        else:
            raise ApiError("Either guild_id or channel_id is required for search")

        response = self._request("GET", endpoint, params=self.build_query(params))

        if response.status_code == 202:
            raise ApiError(
                "Search index is being built, try again later",
                status_code=202,
                code="indexing",
            )
        if not response.ok:
            raise self._error_from_response(response)

        return response.json()

    @staticmethod
    def build_query(params: Dict[str, Any]) -> Dict[str, str]:
        """Translate engine search parameters to query string values."""
        query: Dict[str, str] = {}

        for name in ("author_id", "content", "min_id", "max_id"):
            if params.get(name):
                query[name] = str(params[name])

        # Discord accepts a single "has" value here; file wins over link
        if params.get("has_link"):
            query["has"] = "link"
        if params.get("has_file"):
            query["has"] = "file"

        offset = params.get("offset") or 0
        if offset > 0:
            query["offset"] = str(offset)
        if params.get("include_nsfw"):
            query["include_nsfw"] = "true"

        return query

    def delete_message(self, channel_id: str, message_id: str) -> DeleteResult:
        """
        Delete one message.

        Never raises: transport and API failures are reported in the result.

        Args:
            channel_id: Channel containing the message
            message_id: Message to delete

        Returns:
            DeleteResult with status_code set whenever a response was received
        """
        if not channel_id or not message_id:
            return DeleteResult(success=False, error="channel_id and message_id are required")
        if not is_valid_snowflake(channel_id):
            return DeleteResult(success=False, error="Invalid channel ID format")
        if not is_valid_snowflake(message_id):
            return DeleteResult(success=False, error="Invalid message ID format")

        url = f"{self.base_url}/channels/{channel_id}/messages/{message_id}"

        try:
            response = self._request("DELETE", url)
        except ApiError as e:
            return DeleteResult(success=False, error=e.message, status_code=e.status_code)

        if response.status_code == 204:
            return DeleteResult(success=True, status_code=204)

        if response.status_code == 202:
            return DeleteResult(
                success=False, error="Message indexing in progress", status_code=202
            )

        if response.status_code == 429:
            retry_after = self._json_body(response).get("retry_after")
            if retry_after is None and self.rate_limit_info:
                retry_after = self.rate_limit_info.reset_after
            return DeleteResult(
                success=False,
                error="Rate limited",
                retry_after=retry_after if retry_after is not None else 1,
                status_code=429,
            )

        error = self._error_from_response(response)
        return DeleteResult(success=False, error=error.message, status_code=response.status_code)

    def _request(self, method: str, url: str, params: Optional[Dict[str, str]] = None) -> requests.Response:
        headers = {
            "Authorization": self.token,
            "Content-Type": "application/json",
        }
        try:
            response = self.session.request(
                method, url, headers=headers, params=params, timeout=self.timeout
            )
        except requests.RequestException as e:
            logger.debug(f"{method} {url} failed: {e}")
            raise ApiError(f"Network request failed: {e}", code="network_error") from e

        self._update_rate_limit_info(response.headers)
        logger.debug(f"{method} {url} -> {response.status_code}")
        return response

    def _update_rate_limit_info(self, headers: Any) -> None:
        remaining = headers.get("X-RateLimit-Remaining")
        limit = headers.get("X-RateLimit-Limit")
        reset_after = headers.get("X-RateLimit-Reset-After")

        if remaining is None or limit is None or reset_after is None:
            return

        try:
            self.rate_limit_info = RateLimitInfo(
                remaining=int(remaining),
                limit=int(limit),
                reset_after=float(reset_after),
            )
        except ValueError:
            logger.debug(f"Ignoring malformed rate limit headers: {remaining}/{limit}/{reset_after}")

    @staticmethod
    def _json_body(response: requests.Response) -> Dict[str, Any]:
        try:
            body = response.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}

    def _error_from_response(self, response: requests.Response) -> ApiError:
        body = self._json_body(response)
        message = body.get("message") or response.reason or f"HTTP {response.status_code}"

        if response.status_code == 429:
            return RateLimitError(message, retry_after=body.get("retry_after"))

        return ApiError(
            message,
            status_code=response.status_code,
            code=STATUS_ERROR_CODES.get(response.status_code, "unknown"),
        )
