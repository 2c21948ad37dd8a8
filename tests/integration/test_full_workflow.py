"""
Integration tests for full deletion workflow.
"""
from unittest.mock import MagicMock

import pytest

from purgecord.deletion.deletion_engine import DeletionEngine
from purgecord.deletion.models import RunPhase
from purgecord.utils.state_manager import CheckpointStore
from purgecord.utils.statistics import StatisticsReporter
from tests.unit.fixtures.discord_data import message_id


@pytest.mark.integration
class TestFullWorkflow:
    """Test complete runs against an in-memory search index."""

    def test_newest_first_deletes_everything_deletable(
        self, make_discord, base_options, fake_sleep, temp_progress_file
    ):
        """Test newest-first run deletes all but pinned and forbidden messages."""
        discord = make_discord(30, pinned={7}, forbidden={12})
        store = MagicMock(wraps=CheckpointStore(temp_progress_file))
        engine = DeletionEngine(discord, checkpoint_store=store, sleep=fake_sleep)
        engine.configure(**base_options)

        engine.start()

        state = engine.get_state()
        assert engine.phase is RunPhase.COMPLETED
        assert state.deleted_count == 28
        assert state.failed_count == 1
        assert state.skipped_count == 1
        assert state.filtered_count == 1
        assert state.initial_total_found == 30
        assert set(discord.messages) == {message_id(7), message_id(12)}
        assert store.save.call_count == 2
        assert not temp_progress_file.exists()

    def test_newest_first_order(self, make_discord, base_options, fake_sleep):
        """Test newest-first run deletes from newest to oldest."""
        discord = make_discord(5)
        engine = DeletionEngine(discord, sleep=fake_sleep)
        engine.configure(**base_options)

        engine.start()

        assert discord.deleted == [message_id(index) for index in range(5, 0, -1)]

    def test_oldest_first_order(self, make_discord, base_options, fake_sleep):
        """Test oldest-first run deletes from oldest to newest."""
        discord = make_discord(20)
        engine = DeletionEngine(discord, sleep=fake_sleep)
        engine.configure(**dict(base_options, deletion_order="oldest"))
        statuses = []
        engine.set_observers(on_status=statuses.append)

        engine.start()

        assert discord.deleted == [message_id(index) for index in range(1, 21)]
        assert engine.get_state().deleted_count == 20
        assert statuses[0] == "Finding oldest message..."
        assert statuses[-1] is None

    def test_oldest_first_reaches_messages_beyond_one_page(self, make_discord, base_options, fake_sleep):
        """Test oldest-first run finds messages hidden behind full pages."""
        discord = make_discord(60)
        engine = DeletionEngine(discord, sleep=fake_sleep)
        engine.configure(**dict(base_options, deletion_order="oldest"))

        engine.start()

        assert discord.messages == {}
        assert engine.get_state().deleted_count == 60

    def test_date_bounds_respected(self, make_discord, base_options, fake_sleep):
        """Test only messages inside the id bounds are deleted."""
        discord = make_discord(10)
        engine = DeletionEngine(discord, sleep=fake_sleep)
        engine.configure(**dict(base_options, min_id=message_id(3), max_id=message_id(8)))

        engine.start()

        assert sorted(discord.deleted) == [message_id(index) for index in range(4, 8)]

    def test_pattern_filter(self, make_discord, base_options, fake_sleep):
        """Test content pattern limits which messages are deleted."""
        discord = make_discord(4)
        discord.messages[message_id(2)]["content"] = "delete me please"
        engine = DeletionEngine(discord, sleep=fake_sleep)
        engine.configure(**dict(base_options, pattern="DELETE ME"))

        engine.start()

        assert discord.deleted == [message_id(2)]
        assert engine.get_state().filtered_count == 3
        assert engine.get_state().skipped_count == 0

    def test_pinned_included(self, make_discord, base_options, fake_sleep):
        """Test pinned messages are deleted when include_pinned is set."""
        discord = make_discord(3, pinned={1, 2, 3})
        engine = DeletionEngine(discord, sleep=fake_sleep)
        engine.configure(**dict(base_options, include_pinned=True))

        engine.start()

        assert discord.messages == {}

    def test_summary_report(self, make_discord, base_options, fake_sleep):
        """Test summary report reflects the finished run."""
        discord = make_discord(3)
        engine = DeletionEngine(discord, sleep=fake_sleep)
        engine.configure(**base_options)
        engine.start()

        report = StatisticsReporter().generate_report(engine.get_state(), engine.get_stats())

        assert "Deleted: 3" in report
