"""Listen to PostgreSQL NOTIFY channels with backlog recovery.

Rows inserted into ``pending_jobs`` while the listener was down are
replayed before live notifications are handled.

    pip install notilisten

    python examples/listen_postgres.py --dsn postgresql://localhost/app --channels jobs,audit

    # In psql:
    #   select pg_notify('jobs', 'hello');
"""

import argparse
import asyncio
import logging
import signal

from notilisten import HandlerFunc, Listener, ListenerConfig
from notilisten.postgres import connect_postgres


async def print_notification(notification, session, stop):
    print(f"[{notification.topic}] {notification.payload} (pid {notification.sender_id})")


async def replay_pending_jobs(channel, session, stop):
    rows = await session.connection.fetch(
        "select payload from pending_jobs where channel = $1 order by id", channel
    )
    for row in rows:
        print(f"[{channel}] (backlog) {row['payload']}")


async def main(dsn: str, channels: list[str]):
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    listener = Listener(
        connect_postgres(dsn),
        config=ListenerConfig(),
        on_error=lambda exc, stop: print(f"error: {exc}"),
    )
    for channel in channels:
        listener.handle(channel, HandlerFunc(print_notification, backlog=replay_pending_jobs))

    print(f"Listening on {channels}... (Ctrl+C to stop)\n")
    await listener.listen(stop)
    print(f"Stopped after {listener.stats.notifications_dispatched} notification(s)")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="PostgreSQL notification listener")
    parser.add_argument("--dsn", default="postgresql://postgres@localhost/postgres")
    parser.add_argument(
        "--channels",
        default="jobs",
        help="Comma-separated channels (default: jobs)",
    )
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)
    channels = [c.strip() for c in args.channels.split(",")]
    asyncio.run(main(args.dsn, channels))
