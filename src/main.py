"""
Main entry point for EventCount.
Handles CLI arguments, environment setup, and application lifecycle.
"""

import asyncio
import signal
import sys
import argparse
from pathlib import Path
from typing import Optional

from dateutil import parser as date_parser
from dotenv import load_dotenv

from config.logging_config import setup_logging, get_logger
from config import settings
from config.settings import StoreEvent
from src.core.coordinator import Coordinator
from src.events.models import AVAILABLE_COLORS, AVAILABLE_ICONS, local_naive
from src.events.store import EventStore

# Setup logging first
logger = setup_logging("eventcount")


def parse_arguments(argv=None):
    """
    Parse command line arguments.

    Returns:
        Parsed arguments
    """
    parser = argparse.ArgumentParser(
        description="EventCount - countdowns to the events you care about"
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging"
    )

    parser.add_argument(
        "--add",
        metavar="TITLE",
        help="Add an event with this title (requires --at)"
    )

    parser.add_argument(
        "--at",
        metavar="WHEN",
        help="Event date and time, e.g. '2026-12-24 18:00'"
    )

    parser.add_argument(
        "--color",
        default=settings.DEFAULT_COLOR_NAME,
        choices=[color.name for color in AVAILABLE_COLORS],
        help="Event colour"
    )

    parser.add_argument(
        "--icon",
        default=settings.DEFAULT_ICON_NAME,
        help=f"Event icon (suggested: {', '.join(AVAILABLE_ICONS)})"
    )

    parser.add_argument(
        "--delete",
        metavar="ID",
        help="Delete the event with this id"
    )

    parser.add_argument(
        "--list",
        action="store_true",
        help="List all events with their countdowns (default when not watching)"
    )

    parser.add_argument(
        "--watch",
        action="store_true",
        help="Show a live countdown to the next event until interrupted"
    )

    return parser.parse_args(argv)


def load_environment() -> None:
    """Load environment variables from .env file if present."""
    env_path = Path(__file__).parent.parent / ".env"

    if env_path.exists():
        load_dotenv(env_path)
        logger.info(f"Loaded environment from {env_path}")


def validate_title(title: Optional[str]) -> Optional[str]:
    """
    Check a title entered by the user.

    Args:
        title: Raw title

    Returns:
        The title, or None if it is empty or only whitespace
    """
    if title is None or not title.strip():
        return None
    return title


def list_events(store: EventStore) -> None:
    """Log every event with its countdown."""
    now = store.clock()

    if not store.events:
        logger.info("No events. Add your first event to start counting down")
        return

    for event in store.events:
        logger.info(
            f"{event.id}  {event.title} | {event.formatted_date()} | "
            f"{event.relative_date_string(now)} | {event.time_remaining(now).formatted}"
        )


async def watch(store: EventStore, shutdown_event: asyncio.Event) -> None:
    """Print the countdown to the next event on every tick."""

    def render(now):
        event = store.next_event(now)
        if event is None:
            line = "No upcoming events"
        else:
            line = f"{event.title}: {event.time_remaining(now).detailed_formatted}"
        print(f"\r{line:<72}", end="", flush=True)

    def announce(data):
        print(f"\n{data['title']}: {data['body']}")

    unsubscribe_tick = store.subscribe_tick(render)
    unsubscribe_fired = store.bus.subscribe(StoreEvent.REMINDER_FIRED, announce)

    render(store.current_time)
    try:
        await shutdown_event.wait()
    finally:
        unsubscribe_tick()
        unsubscribe_fired()
        print()


async def main(argv=None):
    """Main application entry point."""
    args = parse_arguments(argv)

    # Enable debug logging if requested
    if args.debug:
        logger.setLevel("DEBUG")
        logger.info("Debug logging enabled")

    load_environment()

    title = None
    when = None
    if args.add is not None:
        title = validate_title(args.add)
        if title is None:
            logger.error("Event title must not be empty")
            return 1
        if not args.at:
            logger.error("--add requires --at")
            return 1
        try:
            # Offsets such as "+02:00" are converted to local time
            when = local_naive(date_parser.parse(args.at))
        except (ValueError, OverflowError) as e:
            logger.error(f"Could not understand date {args.at!r}: {e}")
            return 1

    coordinator = Coordinator()

    # Setup signal handlers for graceful shutdown
    shutdown_event = asyncio.Event()

    def signal_handler(sig, frame):
        """Handle shutdown signals."""
        logger.info(f"Received signal {sig}, shutting down...")
        shutdown_event.set()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        if not await coordinator.initialize():
            logger.error("Failed to initialize application")
            return 1

        store = coordinator.store

        if title is not None:
            event = store.add_event(title, when, args.color, args.icon)
            logger.info(f"Added {event.title} ({event.id})")

        if args.delete:
            event = store.get(args.delete)
            if event is None:
                logger.warning(f"No event with id {args.delete}")
            else:
                store.delete_event(event)
                logger.info(f"Deleted {event.title}")

        if args.list or not args.watch:
            list_events(store)

        if args.watch:
            await watch(store, shutdown_event)

    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        return 1

    finally:
        await coordinator.stop()

    return 0


def run():
    """Console script entry point."""
    try:
        exit_code = asyncio.run(main())
        sys.exit(exit_code)

    except Exception as e:
        logger.error(f"Fatal error in main: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    run()
