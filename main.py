#!/usr/bin/env python3
"""
Purgecord - Main entry point.

Bulk deletion of your own Discord messages in a guild, channel or DM.
"""

import argparse
import signal
import sys
from typing import Any, Dict, Optional

# Load environment variables
from dotenv import load_dotenv  # noqa: E402

load_dotenv()

from config import settings  # noqa: E402
from purgecord.api.discord_client import DiscordClient  # noqa: E402
from purgecord.deletion.deletion_engine import DeletionEngine  # noqa: E402
from purgecord.deletion.filter_compiler import ConfigurationError  # noqa: E402
from purgecord.traversal.snowflake import date_to_snowflake, parse_date_bound  # noqa: E402
from purgecord.utils.logging import get_logger, setup_logging  # noqa: E402
from purgecord.utils.state_manager import CheckpointStore  # noqa: E402
from purgecord.utils.statistics import StatisticsReporter, format_duration  # noqa: E402

# Global engine for cleanup on interrupt
engine: Optional[DeletionEngine] = None


def parse_arguments(argv: Optional[list] = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Returns:
        Parsed arguments namespace
    """
    parser = argparse.ArgumentParser(
        description="Bulk deletion of your own Discord messages.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Delete everything you wrote in a DM channel
  python main.py --channel-id 123456789012345678

  # Delete messages older than two years in a server, oldest first
  python main.py --guild-id 111111111111111111 --channel-id 222222222222222222 \\
      --before "2 years ago" --order oldest

  # Show what would be deleted
  python main.py --channel-id 123456789012345678 --preview

  # Continue an interrupted run
  python main.py --resume
        """,
    )

    parser.add_argument("--guild-id", default=None, help="Server to search ('@me' for DMs)")
    parser.add_argument("--channel-id", default=None, help="Channel or DM to delete from")
    parser.add_argument(
        "--author-id",
        default=settings.DISCORD_AUTHOR_ID or None,
        help="Your user id. Defaults to DISCORD_AUTHOR_ID from the environment.",
    )
    parser.add_argument("--after", default=None, help="Only messages after this date")
    parser.add_argument("--before", default=None, help="Only messages before this date")
    parser.add_argument("--content", default=None, help="Server-side content search text")
    parser.add_argument("--has-link", action="store_true", help="Only messages with links")
    parser.add_argument("--has-file", action="store_true", help="Only messages with files")
    parser.add_argument("--include-pinned", action="store_true", help="Also delete pinned messages")
    parser.add_argument("--pattern", default=None, help="Case-insensitive regex the content must match")
    parser.add_argument("--order", choices=["newest", "oldest"], default="newest", help="Deletion order")
    parser.add_argument(
        "--search-delay",
        type=float,
        default=settings.DEFAULT_SEARCH_DELAY_MS,
        help="Milliseconds between searches",
    )
    parser.add_argument(
        "--delete-delay",
        type=float,
        default=settings.DEFAULT_DELETE_DELAY_MS,
        help="Milliseconds between deletes",
    )
    parser.add_argument(
        "--max-retries",
        type=int,
        default=settings.DEFAULT_MAX_RETRIES,
        help="Attempts per request when rate limited",
    )
    parser.add_argument("--preview", action="store_true", help="Search once and exit without deleting")
    parser.add_argument("--resume", action="store_true", help="Resume the saved session")
    parser.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING or ERROR")

    args = parser.parse_args(argv)

    # Validate and convert dates to snowflake bounds
    args.min_id = None
    args.max_id = None

    if args.after:
        after = parse_date_bound(args.after)
        if after is None:
            parser.error(f"Invalid --after date: {args.after}")
        args.min_id = date_to_snowflake(after)

    if args.before:
        before = parse_date_bound(args.before)
        if before is None:
            parser.error(f"Invalid --before date: {args.before}")
        args.max_id = date_to_snowflake(before)

    if args.min_id and args.max_id and int(args.min_id) >= int(args.max_id):
        parser.error("--after must be before --before")

    if not args.resume and not args.channel_id:
        parser.error("--channel-id is required unless --resume is given")

    return args


def build_options(args: argparse.Namespace) -> Dict[str, Any]:
    """Map CLI arguments to engine options, leaving out unset values."""
    options = {
        "author_id": args.author_id,
        "guild_id": args.guild_id,
        "channel_id": args.channel_id,
        "min_id": args.min_id,
        "max_id": args.max_id,
        "content": args.content,
        "has_link": args.has_link or None,
        "has_file": args.has_file or None,
        "include_pinned": args.include_pinned,
        "pattern": args.pattern,
        "deletion_order": args.order,
        "search_delay": args.search_delay,
        "delete_delay": args.delete_delay,
        "max_retries": args.max_retries,
    }
    return {key: value for key, value in options.items() if value is not None}


def signal_handler(signum, frame):
    """Handle interrupt signals gracefully."""
    logger = get_logger()
    logger.warning("\nInterrupt received, stopping after the current request...")

    if engine:
        engine.stop()


def run_purge(args: argparse.Namespace) -> int:
    """
    Execute the complete deletion process.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success, non-zero for errors)
    """
    global engine

    # Initialize logging
    logger = setup_logging(args.log_level)

    if not settings.DISCORD_TOKEN:
        logger.error("Discord token not configured. Set DISCORD_TOKEN in .env file.")
        return 1

    try:
        client = DiscordClient(settings.DISCORD_TOKEN)
    except ValueError as e:
        logger.error(f"Invalid Discord token: {e}")
        return 1

    engine = DeletionEngine(client, checkpoint_store=CheckpointStore(settings.PROGRESS_PATH))

    # Register signal handlers for graceful shutdown
    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        engine.configure(auth_token=settings.DISCORD_TOKEN)

        if args.resume:
            checkpoint = engine.load_saved_session()
            if checkpoint is None:
                logger.error("No saved session to resume")
                return 1
            engine.resume_from_saved(checkpoint)
        else:
            if not args.author_id:
                logger.error("Author id not configured. Use --author-id or set DISCORD_AUTHOR_ID.")
                return 1
            engine.configure(**build_options(args))

        config = engine.config
        logger.info("=" * 60)
        logger.info("Purgecord - Discord Message Deletion")
        logger.info("=" * 60)
        logger.info(f"Author: {config.author_id}")
        logger.info(f"Guild: {config.guild_id or '-'}")
        logger.info(f"Channel: {config.channel_id}")
        logger.info(f"Order: {config.deletion_order}")
        logger.info(f"Delete Delay: {config.delete_delay:.0f}ms")
        logger.info("=" * 60)

        if args.preview:
            preview = engine.preview()
            logger.info(f"Matching messages: {preview['total_count']}")
            logger.info(f"Estimated time: {format_duration(preview['estimated_time_ms'])}")
            for message in preview["sample_messages"]:
                logger.info(f"  [{message.timestamp}] {message.content[:80]}")
            return 0

        engine.set_observers(
            on_rate_limit_change=lambda signal_: logger.info(
                f"Throttle {'on' if signal_.is_throttled else 'off'}, "
                f"delay {signal_.current_delay:.0f}ms"
            ),
            on_status=lambda status: status and logger.info(status),
        )
        engine.start()

        StatisticsReporter().print_summary(engine.get_state(), engine.get_stats())
        logger.info("Purge process finished")
        return 0

    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return 1

    except Exception as e:
        logger.error("=" * 60)
        logger.error("ERROR: Unexpected error during purge")
        logger.error("=" * 60)
        logger.error(f"Error: {e}", exc_info=True)
        StatisticsReporter().print_summary(engine.get_state(), engine.get_stats())
        logger.info("Progress checkpoint kept. Run again with --resume to continue.")
        return 1


def main():
    """
    Main entry point for the purge script.

    Parses command-line arguments and runs the purge.
    """
    try:
        args = parse_arguments()
        return run_purge(args)
    except KeyboardInterrupt:
        # Handle keyboard interrupt at top level
        logger = get_logger()
        logger.warning("\nInterrupted by user")
        return 0


if __name__ == "__main__":
    sys.exit(main())
