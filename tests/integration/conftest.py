"""
In-memory Discord search index for end-to-end engine tests.
"""
from typing import Any, Dict, List, Optional, Set

import pytest

from purgecord.deletion.models import DeleteResult
from tests.unit.fixtures.discord_data import make_message_data


class FakeDiscord:
    """
    Holds a channel's messages and answers search and delete like the API.

    Searches return up to 25 remaining messages newest first, honoring the
    exclusive min_id / max_id bounds. Deletes remove messages unless their id
    is listed in forbidden.
    """

    page_size = 25

    def __init__(self, messages: List[Dict[str, Any]], forbidden: Optional[Set[str]] = None):
        self.messages = {message["id"]: message for message in messages}
        self.forbidden = forbidden or set()
        self.search_calls: List[Dict[str, Any]] = []
        self.deleted: List[str] = []

    def search_messages(self, params: Dict[str, Any]) -> Dict[str, Any]:
        self.search_calls.append(dict(params))
        matching = [
            message
            for message in self.messages.values()
            if self._in_bounds(int(message["id"]), params.get("min_id"), params.get("max_id"))
        ]
        matching.sort(key=lambda message: int(message["id"]), reverse=True)
        return {
            "messages": [[message] for message in matching[: self.page_size]],
            "total_results": len(matching),
        }

    def delete_message(self, channel_id: str, message_id: str) -> DeleteResult:
        if message_id in self.forbidden:
            return DeleteResult(success=False, error="Missing Access", status_code=403)
        if self.messages.pop(message_id, None) is None:
            return DeleteResult(success=False, error="Unknown Message", status_code=404)
        self.deleted.append(message_id)
        return DeleteResult(success=True, status_code=204)

    @staticmethod
    def _in_bounds(value: int, min_id: Optional[str], max_id: Optional[str]) -> bool:
        if min_id is not None and value <= int(min_id):
            return False
        if max_id is not None and value >= int(max_id):
            return False
        return True


@pytest.fixture
def make_discord():
    """Factory for a FakeDiscord holding messages 1..count."""

    def factory(count: int, pinned=(), forbidden=(), **message_overrides):
        messages = [
            make_message_data(index, pinned=index in pinned, **message_overrides)
            for index in range(1, count + 1)
        ]
        discord = FakeDiscord(messages)
        discord.forbidden = {messages[index - 1]["id"] for index in forbidden}
        return discord

    return factory
