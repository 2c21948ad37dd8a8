"""
Tests for DiscordClient class.
"""
from unittest.mock import MagicMock

import pytest
import requests

from purgecord.api.discord_client import DiscordClient, RateLimitInfo, is_valid_token_format
from purgecord.api.errors import ApiError, RateLimitError
from tests.unit.fixtures.discord_data import (
    AUTH_TOKEN,
    AUTHOR_ID,
    CHANNEL_ID,
    GUILD_ID,
    make_message_data,
    message_id,
    search_page,
)


def make_response(status_code, body=None, headers=None, reason=""):
    response = MagicMock()
    response.status_code = status_code
    response.ok = 200 <= status_code < 400
    response.headers = headers or {}
    response.reason = reason
    if body is None:
        response.json.side_effect = ValueError("No JSON")
    else:
        response.json.return_value = body
    return response


@pytest.fixture
def session():
    return MagicMock()


@pytest.fixture
def client(session):
    return DiscordClient(AUTH_TOKEN, session=session, base_url="https://discord.test/api")


@pytest.mark.unit
class TestDiscordClientInit:
    """Test DiscordClient.__init__() method."""

    def test_requires_token(self):
        """Test empty token raises ValueError."""
        with pytest.raises(ValueError, match="Token is required"):
            DiscordClient("")

    def test_rejects_malformed_token(self):
        """Test malformed token raises ValueError."""
        with pytest.raises(ValueError, match="invalid format"):
            DiscordClient("short.token.value")

    def test_token_format(self):
        """Test token format validation."""
        assert is_valid_token_format(AUTH_TOKEN) is True
        assert is_valid_token_format("a" * 60) is False
        assert is_valid_token_format(None) is False


@pytest.mark.unit
class TestDiscordClientSearch:
    """Test DiscordClient.search_messages() method."""

    def test_channel_endpoint(self, client, session):
        """Test channel search uses the channel endpoint."""
        body = search_page([make_message_data(1)])
        session.request.return_value = make_response(200, body)

        result = client.search_messages(
            {"channel_id": CHANNEL_ID, "author_id": AUTHOR_ID, "offset": 0, "include_pinned": False}
        )

        assert result == body
        method, url = session.request.call_args.args
        assert method == "GET"
        assert url == f"https://discord.test/api/channels/{CHANNEL_ID}/messages/search"
        assert session.request.call_args.kwargs["params"] == {"author_id": AUTHOR_ID}
        assert session.request.call_args.kwargs["headers"]["Authorization"] == AUTH_TOKEN

    def test_guild_endpoint_preferred(self, client, session):
        """Test guild endpoint is used when a guild id is given."""
        session.request.return_value = make_response(200, search_page([]))

        client.search_messages({"guild_id": GUILD_ID, "channel_id": CHANNEL_ID})

        url = session.request.call_args.args[1]
        assert url == f"https://discord.test/api/guilds/{GUILD_ID}/messages/search"

    def test_dm_guild_allowed(self, client, session):
        """Test @me is accepted as the guild id."""
        session.request.return_value = make_response(200, search_page([]))

        client.search_messages({"guild_id": "@me"})

        assert session.request.call_args.args[1].endswith("/guilds/@me/messages/search")

    def test_requires_scope(self, client):
        """Test search without guild or channel raises ApiError."""
        with pytest.raises(ApiError, match="guild_id or channel_id"):
            client.search_messages({"author_id": AUTHOR_ID})

    def test_rejects_invalid_channel(self, client, session):
        """Test non-numeric channel id raises ApiError."""
        with pytest.raises(ApiError, match="Invalid channel ID"):
            client.search_messages({"channel_id": "abc"})

        session.request.assert_not_called()

    def test_indexing_response(self, client, session):
        """Test 202 response raises an indexing ApiError."""
        session.request.return_value = make_response(202, {"retry_after": 2})

        with pytest.raises(ApiError) as exc_info:
            client.search_messages({"channel_id": CHANNEL_ID})

        assert exc_info.value.code == "indexing"
        assert exc_info.value.status_code == 202

    def test_rate_limited(self, client, session):
        """Test 429 response raises RateLimitError with retry_after."""
        session.request.return_value = make_response(429, {"message": "You are being rate limited.", "retry_after": 7.5})

        with pytest.raises(RateLimitError) as exc_info:
            client.search_messages({"channel_id": CHANNEL_ID})

        assert exc_info.value.status_code == 429
        assert exc_info.value.retry_after == 7.5

    @pytest.mark.parametrize(
        "status_code, code",
        [(401, "unauthorized"), (403, "forbidden"), (404, "not_found"), (500, "unknown")],
    )
    def test_error_statuses(self, client, session, status_code, code):
        """Test error statuses map to error codes."""
        session.request.return_value = make_response(status_code, {"message": "nope"})

        with pytest.raises(ApiError) as exc_info:
            client.search_messages({"channel_id": CHANNEL_ID})

        assert exc_info.value.status_code == status_code
        assert exc_info.value.code == code
        assert exc_info.value.message == "nope"

    def test_network_error(self, client, session):
        """Test network failure raises a network_error ApiError."""
        session.request.side_effect = requests.ConnectionError("offline")

        with pytest.raises(ApiError) as exc_info:
            client.search_messages({"channel_id": CHANNEL_ID})

        assert exc_info.value.code == "network_error"
        assert exc_info.value.status_code is None


@pytest.mark.unit
class TestBuildQuery:
    """Test DiscordClient.build_query() method."""

    def test_full_query(self):
        """Test all filters appear in the query."""
        query = DiscordClient.build_query(
            {
                "author_id": AUTHOR_ID,
                "content": "hello",
                "min_id": message_id(1),
                "max_id": message_id(2),
                "has_link": True,
                "offset": 25,
                "include_nsfw": True,
                "include_pinned": True,
            }
        )

        assert query == {
            "author_id": AUTHOR_ID,
            "content": "hello",
            "min_id": message_id(1),
            "max_id": message_id(2),
            "has": "link",
            "offset": "25",
            "include_nsfw": "true",
        }

    def test_file_overrides_link(self):
        """Test has=file wins over has=link."""
        assert DiscordClient.build_query({"has_link": True, "has_file": True}) == {"has": "file"}

    def test_zero_offset_omitted(self):
        """Test zero offset is left out of the query."""
        assert DiscordClient.build_query({"offset": 0}) == {}


@pytest.mark.unit
class TestDiscordClientDelete:
    """Test DiscordClient.delete_message() method."""

    def test_success(self, client, session):
        """Test 204 response is a successful delete."""
        session.request.return_value = make_response(204)

        result = client.delete_message(CHANNEL_ID, message_id(1))

        assert result.success is True
        assert result.status_code == 204
        method, url = session.request.call_args.args
        assert method == "DELETE"
        assert url == f"https://discord.test/api/channels/{CHANNEL_ID}/messages/{message_id(1)}"

    def test_rate_limited(self, client, session):
        """Test 429 response carries retry_after from the body."""
        session.request.return_value = make_response(429, {"retry_after": 1.25})

        result = client.delete_message(CHANNEL_ID, message_id(1))

        assert result.success is False
        assert result.status_code == 429
        assert result.retry_after == 1.25

    def test_rate_limited_falls_back_to_headers(self, client, session):
        """Test retry_after falls back to the rate limit headers."""
        session.request.return_value = make_response(
            429,
            headers={
                "X-RateLimit-Remaining": "0",
                "X-RateLimit-Limit": "5",
                "X-RateLimit-Reset-After": "3.5",
            },
        )

        result = client.delete_message(CHANNEL_ID, message_id(1))

        assert result.retry_after == 3.5

    def test_rate_limited_default(self, client, session):
        """Test retry_after defaults to one second."""
        session.request.return_value = make_response(429)

        assert client.delete_message(CHANNEL_ID, message_id(1)).retry_after == 1

    def test_not_found(self, client, session):
        """Test 404 response is returned as a failed result."""
        session.request.return_value = make_response(404, {"message": "Unknown Message"})

        result = client.delete_message(CHANNEL_ID, message_id(1))

        assert result.success is False
        assert result.status_code == 404
        assert result.error == "Unknown Message"

    def test_indexing(self, client, session):
        """Test 202 response is returned as a failed result."""
        session.request.return_value = make_response(202)

        result = client.delete_message(CHANNEL_ID, message_id(1))

        assert result.success is False
        assert result.status_code == 202

    def test_network_error_returned(self, client, session):
        """Test network failure is returned, not raised."""
        session.request.side_effect = requests.Timeout("slow")

        result = client.delete_message(CHANNEL_ID, message_id(1))

        assert result.success is False
        assert result.status_code is None
        assert "slow" in result.error

    def test_invalid_ids_not_sent(self, client, session):
        """Test invalid ids fail without a request."""
        assert client.delete_message("", message_id(1)).success is False
        assert client.delete_message("abc", message_id(1)).error == "Invalid channel ID format"
        assert client.delete_message(CHANNEL_ID, "abc").error == "Invalid message ID format"
        session.request.assert_not_called()


@pytest.mark.unit
class TestRateLimitInfo:
    """Test rate limit header tracking."""

    def test_none_before_requests(self, client):
        """Test returns None before any request."""
        assert client.get_rate_limit_info() is None

    def test_captured_from_headers(self, client, session):
        """Test rate limit info is read from response headers."""
        session.request.return_value = make_response(
            204,
            headers={
                "X-RateLimit-Remaining": "4",
                "X-RateLimit-Limit": "5",
                "X-RateLimit-Reset-After": "0.75",
            },
        )

        client.delete_message(CHANNEL_ID, message_id(1))

        assert client.get_rate_limit_info() == RateLimitInfo(remaining=4, limit=5, reset_after=0.75)

    def test_partial_headers_ignored(self, client, session):
        """Test responses without all headers leave info unchanged."""
        session.request.return_value = make_response(204, headers={"X-RateLimit-Remaining": "4"})

        client.delete_message(CHANNEL_ID, message_id(1))

        assert client.get_rate_limit_info() is None
