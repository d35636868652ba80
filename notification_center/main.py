"""Build a notification center from settings and tail it from the command line."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import signal

import httpx

from notification_center.application.use_cases.notifications import (
    Alert,
    NotificationCenter,
    NotificationSnapshot,
)
from notification_center.config import Settings, get_settings
from notification_center.domain.entities import Notification, badge_label
from notification_center.infrastructure.notifications import redis_transport_factory
from notification_center.infrastructure.repositories import (
    NotificationRepository,
    create_http_client,
)
from notification_center.logging_config import setup_logging
from notification_center.schemas import serialize_notification
from notification_center.utils import format_notification_time

logger = logging.getLogger(__name__)


def create_center(
    member_id: str,
    *,
    settings: Settings | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> NotificationCenter:
    """Create a center for ``member_id`` wired to Redis and the data API."""

    settings = settings or get_settings()
    repository = NotificationRepository(
        http_client or create_http_client(settings), member_id=member_id
    )
    return NotificationCenter(
        transport_factory=redis_transport_factory(settings),
        backlog_source=repository,
        read_mutation=repository,
        topic=settings.channel_topic,
        heartbeat_interval=settings.heartbeat_interval,
        reconnect_delay=settings.reconnect_delay,
        reconnect_backoff_factor=settings.reconnect_backoff_factor,
        reconnect_max_delay=settings.reconnect_max_delay,
        reconnect_max_attempts=settings.reconnect_max_attempts,
        connect_timeout=settings.connect_timeout,
        backlog_limit=settings.backlog_limit,
        cache_size=settings.cache_size,
        strict=settings.strict,
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Follow a member's notifications in real time.",
    )
    parser.add_argument(
        "--member-id",
        required=True,
        help="Identifier of the member whose notifications are followed",
    )
    parser.add_argument(
        "--mark-all-read",
        action="store_true",
        help="Mark every unread notification as read once the backlog is loaded",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (defaults to NOTIFICATIONS_LOG_LEVEL)",
    )
    return parser.parse_args(argv)


async def follow(member_id: str, *, mark_all_read: bool = False) -> None:
    """Run a center until SIGINT/SIGTERM, logging every arriving notification."""

    settings = get_settings()
    async with create_http_client(settings) as http_client:
        center = create_center(member_id, settings=settings, http_client=http_client)
        stop = asyncio.Event()
        loop = asyncio.get_running_loop()
        for signum in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(signum, stop.set)
            except NotImplementedError:  # pragma: no cover - Windows event loops
                pass

        last_state: list[str] = []

        def on_change(snapshot: NotificationSnapshot) -> None:
            state = snapshot.connection_state.value
            if not last_state or last_state[-1] != state:
                last_state.append(state)
                logger.info(
                    "Connection %s, unread %s",
                    state,
                    badge_label(snapshot.unread_count) or "0",
                )

        def on_notification(notification: Notification) -> None:
            payload = serialize_notification(notification)
            payload["display_time"] = format_notification_time(notification.display_time)
            payload["link"] = notification.deep_link()
            print(json.dumps(payload), flush=True)

        def on_alert(alert: Alert) -> None:
            logger.warning("%s: %s", alert.kind, alert.message)
            if not alert.dismissible:
                stop.set()

        center.on_notification(on_notification)
        center.on_alert(on_alert)
        view = center.activate()
        view.on_change(on_change)

        if mark_all_read and await center.refresh():
            failed = await center.mark_all_read()
            logger.info("Marked notifications as read (%d failed)", len(failed))

        try:
            await stop.wait()
        finally:
            center.deactivate()
            await center.wait_closed()


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    setup_logging(args.log_level or get_settings().log_level)
    asyncio.run(follow(args.member_id, mark_all_read=args.mark_all_read))


if __name__ == "__main__":
    main()
