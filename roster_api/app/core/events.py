"""
Domain events and the in-process event bus.

State transitions describe their side effects as one
:class:`DomainEvent` and hand it to ``event_bus.emit``.  The bus makes
the call idempotent (an event key is accepted only once, recorded in
the ``domain_events`` table) and fans the event out to independent
subscribers: the internal notification inbox, e-mail and SMS.  New
channels are added by subscribing another handler; the services that
emit events do not change.

Subscribers registered with ``background=True`` run as asyncio tasks
so that slow or failing delivery never blocks or fails the request
that caused it.  ``drain`` waits for those tasks (used on shutdown and
in tests).
"""

import asyncio
import logging
import sqlite3
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

from .db import get_connection

logger = logging.getLogger(__name__)


@dataclass
class InboxEntry:
    """A Notification record to append for one recipient."""

    user_id: int
    type: str
    title: str
    message: str
    payload: Dict[str, Any] = field(default_factory=dict)


@dataclass
class OutboundEmail:
    to: str
    subject: str
    body: str


@dataclass
class OutboundSms:
    to: str
    message: str


@dataclass
class DomainEvent:
    """Everything a single state transition wants to tell the outside world."""

    key: str
    type: str
    inbox: List[InboxEntry] = field(default_factory=list)
    emails: List[OutboundEmail] = field(default_factory=list)
    sms: List[OutboundSms] = field(default_factory=list)


Handler = Callable[[DomainEvent], Awaitable[None]]


@dataclass
class Subscription:
    name: str
    handler: Handler
    background: bool = False


class EventBus:
    """Idempotent fan-out of domain events to subscribers."""

    def __init__(self) -> None:
        self._subscriptions: List[Subscription] = []
        self._pending: Set[asyncio.Task] = set()

    def subscribe(self, name: str, handler: Handler, background: bool = False) -> None:
        self._subscriptions.append(Subscription(name=name, handler=handler, background=background))

    def clear(self) -> None:
        self._subscriptions.clear()

    @property
    def subscriptions(self) -> List[str]:
        return [s.name for s in self._subscriptions]

    async def emit(self, event: DomainEvent) -> bool:
        """Deliver ``event`` to every subscriber once.

        Returns ``False`` when the event key was already emitted, in
        which case nothing is delivered again.  Subscriber failures are
        logged and never propagate.
        """
        if not self._claim(event):
            logger.info("Domain event %s already emitted; skipping", event.key)
            return False
        for subscription in self._subscriptions:
            if subscription.background:
                task = asyncio.create_task(self._run(subscription, event))
                self._pending.add(task)
                task.add_done_callback(self._pending.discard)
            else:
                await self._run(subscription, event)
        return True

    async def drain(self) -> None:
        """Wait until every background delivery has finished."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def _run(self, subscription: Subscription, event: DomainEvent) -> None:
        try:
            await subscription.handler(event)
        except Exception:
            logger.exception(
                "Subscriber %s failed while handling %s (%s)",
                subscription.name,
                event.type,
                event.key,
            )

    @staticmethod
    def _claim(event: DomainEvent) -> bool:
        conn: Optional[sqlite3.Connection] = None
        try:
            conn = get_connection()
            cursor = conn.execute(
                "INSERT OR IGNORE INTO domain_events (key, type) VALUES (?, ?)",
                (event.key, event.type),
            )
            conn.commit()
            return cursor.rowcount == 1
        except sqlite3.Error:
            # The transition is already committed; deliver rather than drop.
            logger.exception("Could not record domain event %s", event.key)
            return True
        finally:
            if conn is not None:
                conn.close()


event_bus = EventBus()
