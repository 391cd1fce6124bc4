"""
Service layer for member notifications.

Notifications are the internal, append-only inbox of every member.
They are written by the ``inbox`` subscriber of the event bus; e-mail
and SMS are separate subscribers that hand messages to a
:class:`~roster_api.app.services.notifier.Notifier` in a worker
thread.  ``configure_event_bus`` wires the three channels up at
application start.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional

from roster_api.app.core.config import settings
from roster_api.app.core.db import get_connection
from roster_api.app.core.events import DomainEvent, EventBus, event_bus
from roster_api.app.core.security import Actor
from roster_api.app.services.notifier import Notifier

logger = logging.getLogger(__name__)


class NotificationService:
    """Service class for the notification inbox."""

    @classmethod
    async def record_inbox(cls, event: DomainEvent) -> None:
        """Append the inbox entries of ``event``, tagged with its key."""
        if not event.inbox:
            return
        conn = get_connection()
        try:
            conn.executemany(
                """
                INSERT INTO notifications (user_id, type, title, message, payload, event_key)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                [
                    (
                        entry.user_id,
                        entry.type,
                        entry.title,
                        entry.message,
                        json.dumps(entry.payload) if entry.payload else None,
                        event.key,
                    )
                    for entry in event.inbox
                ],
            )
            conn.commit()
        finally:
            conn.close()
        logger.info("Recorded %d notification(s) for %s", len(event.inbox), event.key)

    @classmethod
    async def list_for_user(cls, actor: Actor, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Return the actor's notifications, newest first.

        At most ``settings.notification_history_limit`` entries are
        returned, whatever ``limit`` asks for.
        """
        cap = settings.notification_history_limit
        limit = min(limit or cap, cap)
        conn = get_connection()
        try:
            rows = conn.execute(
                """
                SELECT id, user_id, type, title, message, payload, created_at
                FROM notifications
                WHERE user_id = ?
                ORDER BY created_at DESC, id DESC
                LIMIT ?
                """,
                (actor.user_id, limit),
            ).fetchall()
        finally:
            conn.close()
        result = []
        for row in rows:
            item = dict(row)
            item["payload"] = json.loads(item["payload"]) if item["payload"] else None
            item["created_at"] = str(item["created_at"])
            result.append(item)
        return result


def _email_subscriber(notifier: Notifier):
    async def deliver(event: DomainEvent) -> None:
        if not settings.notifications_enabled:
            return
        for email in event.emails:
            await asyncio.to_thread(notifier.send_email, email.to, email.subject, email.body)

    return deliver


def _sms_subscriber(notifier: Notifier):
    async def deliver(event: DomainEvent) -> None:
        if not settings.notifications_enabled:
            return
        for sms in event.sms:
            await asyncio.to_thread(notifier.send_sms, sms.to, sms.message)

    return deliver


def configure_event_bus(bus: EventBus = event_bus, notifier: Optional[Notifier] = None) -> EventBus:
    """Subscribe the inbox, e-mail and SMS channels to ``bus``.

    Replaces any earlier subscriptions, so calling it twice is safe.
    """
    notifier = notifier or Notifier()
    bus.clear()
    bus.subscribe("inbox", NotificationService.record_inbox)
    bus.subscribe("email", _email_subscriber(notifier), background=True)
    bus.subscribe("sms", _sms_subscriber(notifier), background=True)
    logger.info("Event bus channels: %s", ", ".join(bus.subscriptions))
    return bus
