"""
Command-line entry point.

Usage:
    Console demo:     python main.py console [--scenario a|b|c]
    Slot overview:    python main.py slots
    Live back office: python main.py watch
"""

import argparse
import asyncio
import logging
import sys
from typing import Optional

from cleanbook.config import settings

logger = logging.getLogger(__name__)


def _run_console_mode(scenario: Optional[str]) -> None:
    """Start the offline console demo (no backend required)."""
    from console_demo import ConsoleSession

    session = ConsoleSession()
    if scenario:
        session.run_scenario(scenario)
    else:
        session.run()


def _run_slots_overview() -> int:
    """Print the booking window as seen through the configured backend."""
    from cleanbook.availability.periods import label_for_period
    from cleanbook.availability.resolver import AvailabilityResolver
    from cleanbook.backend.rest import RestBackend

    if not settings.backend.url:
        logger.error("BACKEND_URL is not set")
        return 1

    with RestBackend() as backend:
        resolver = AvailabilityResolver(backend)
        resolver.refresh()
        for slot in resolver.get_available_slots():
            state = "available" if slot.is_available else "unavailable"
            print(f"{slot.date.isoformat()}  {label_for_period(slot.period):12}  {state}")
    return 0


async def _watch(backend) -> None:
    from cleanbook.admin.notifications import NotificationCenter
    from cleanbook.availability.resolver import AvailabilityResolver
    from cleanbook.backend.realtime import RealtimeListener

    def show(notification) -> None:
        print(f"{notification.timestamp:%H:%M}  {notification.message}  "
              f"[{center.unread_count} non lue(s)]")

    resolver = AvailabilityResolver(backend)
    center = NotificationCenter(backend, on_new=show)
    resolver.start()
    center.start()
    stop_event = asyncio.Event()
    try:
        await asyncio.gather(
            RealtimeListener(backend).run(stop_event),
            resolver.poll(stop_event=stop_event),
        )
    finally:
        center.stop()
        resolver.stop()


def _run_watch_mode() -> int:
    """Follow new reservations live until interrupted."""
    from cleanbook.backend.rest import RestBackend

    if not settings.backend.url:
        logger.error("BACKEND_URL is not set")
        return 1

    with RestBackend() as backend:
        try:
            asyncio.run(_watch(backend))
        except KeyboardInterrupt:
            logger.info("Watch stopped")
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description=f"{settings.business.name} booking tools")
    commands = parser.add_subparsers(dest="command", required=True)

    console = commands.add_parser("console", help="Offline booking walkthrough")
    console.add_argument("--scenario", choices=["a", "b", "c"], default=None)
    commands.add_parser("slots", help="Show slot availability from the backend")
    commands.add_parser("watch", help="Follow new reservations in real time")

    args = parser.parse_args(argv)
    if args.command == "console":
        _run_console_mode(args.scenario)
        return 0
    if args.command == "watch":
        return _run_watch_mode()
    return _run_slots_overview()


if __name__ == "__main__":
    sys.exit(main())
