from unittest.mock import MagicMock

import pytest
import requests

from roster_api.app.core.config import Settings, settings
from roster_api.app.core.events import DomainEvent, EventBus, InboxEntry, OutboundEmail, OutboundSms, event_bus
from roster_api.app.services.notification_service import NotificationService, configure_event_bus
from roster_api.app.services.notifier import Notifier


def _event(alice, key="test:1"):
    return DomainEvent(
        key=key,
        type="test",
        inbox=[InboxEntry(user_id=alice.user_id, type="test", title="Hello", message="Hi there", payload={"n": 1})],
        emails=[OutboundEmail(to="alice@example.org", subject="Hello", body="Hi there")],
        sms=[OutboundSms(to="+15550000001", message="Hi there")],
    )


@pytest.mark.asyncio
async def test_emit_is_idempotent_per_key(notifier, alice):
    assert await event_bus.emit(_event(alice)) is True
    assert await event_bus.emit(_event(alice)) is False
    await event_bus.drain()

    inbox = await NotificationService.list_for_user(alice)
    assert [n["title"] for n in inbox] == ["Hello"]
    assert inbox[0]["payload"] == {"n": 1}
    assert len(notifier.emails) == 1
    assert len(notifier.sms) == 1


@pytest.mark.asyncio
async def test_failing_subscriber_does_not_stop_the_others(alice):
    bus = EventBus()
    seen = []

    async def broken(event):
        raise RuntimeError("channel down")

    async def recorder(event):
        seen.append(event.key)

    bus.subscribe("broken", broken)
    bus.subscribe("broken-background", broken, background=True)
    bus.subscribe("recorder", recorder, background=True)

    assert await bus.emit(_event(alice, key="test:2")) is True
    await bus.drain()

    assert seen == ["test:2"]


@pytest.mark.asyncio
async def test_disabled_delivery_still_records_inbox(notifier, alice, monkeypatch):
    monkeypatch.setattr(settings, "notifications_enabled", False)

    await event_bus.emit(_event(alice, key="test:3"))
    await event_bus.drain()

    assert len(await NotificationService.list_for_user(alice)) == 1
    assert notifier.emails == []
    assert notifier.sms == []


@pytest.mark.asyncio
async def test_notification_history_is_newest_first_and_limited(alice):
    configure_event_bus(event_bus, MagicMock())
    for n in range(5):
        await event_bus.emit(
            DomainEvent(
                key=f"test:history:{n}",
                type="test",
                inbox=[InboxEntry(user_id=alice.user_id, type="test", title=f"#{n}", message="m")],
            )
        )

    await event_bus.drain()

    recent = await NotificationService.list_for_user(alice, limit=3)
    assert [n["title"] for n in recent] == ["#4", "#3", "#2"]


@pytest.mark.asyncio
async def test_notification_history_never_exceeds_configured_limit(alice, monkeypatch):
    monkeypatch.setattr(settings, "notification_history_limit", 3)
    configure_event_bus(event_bus, MagicMock())
    for n in range(5):
        await event_bus.emit(
            DomainEvent(
                key=f"test:cap:{n}",
                type="test",
                inbox=[InboxEntry(user_id=alice.user_id, type="test", title=f"#{n}", message="m")],
            )
        )
    await event_bus.drain()

    assert [n["title"] for n in await NotificationService.list_for_user(alice, limit=500)] == ["#4", "#3", "#2"]
    assert len(await NotificationService.list_for_user(alice)) == 3


def _sms_settings(**overrides):
    values = dict(
        sms_account_sid="AC123",
        sms_auth_token="token",
        sms_from_number="+15559999999",
        sms_api_base="https://sms.example.test/2010-04-01",
        smtp_host="",
    )
    values.update(overrides)
    return Settings(**values)


def test_send_sms_posts_to_gateway():
    session = MagicMock()
    notifier = Notifier(config=_sms_settings(), session=session)

    assert notifier.send_sms("+15550000001", "Hello") is True

    session.post.assert_called_once()
    args, kwargs = session.post.call_args
    assert args[0] == "https://sms.example.test/2010-04-01/Accounts/AC123/Messages.json"
    assert kwargs["data"] == {"To": "+15550000001", "From": "+15559999999", "Body": "Hello"}
    assert kwargs["auth"] == ("AC123", "token")


def test_send_sms_reports_gateway_errors():
    session = MagicMock()
    session.post.return_value.raise_for_status.side_effect = requests.HTTPError("503")
    notifier = Notifier(config=_sms_settings(), session=session)

    assert notifier.send_sms("+15550000001", "Hello") is False


def test_send_sms_without_configuration_is_skipped():
    session = MagicMock()
    notifier = Notifier(config=_sms_settings(sms_account_sid=""), session=session)

    assert notifier.send_sms("+15550000001", "Hello") is False
    session.post.assert_not_called()


def test_send_email_without_smtp_host_fails_softly():
    notifier = Notifier(config=_sms_settings(), session=MagicMock())
    assert notifier.send_email("alice@example.org", "Hi", "Body") is False


def test_send_email_over_smtp(monkeypatch):
    smtp = MagicMock()
    smtp_class = MagicMock()
    smtp_class.return_value.__enter__.return_value = smtp
    monkeypatch.setattr("roster_api.app.services.notifier.smtplib.SMTP", smtp_class)
    config = _sms_settings(smtp_host="mail.example.test", smtp_use_tls=False, smtp_user="")

    assert Notifier(config=config, session=MagicMock()).send_email("alice@example.org", "Hi", "Body") is True

    smtp_class.assert_called_once_with("mail.example.test", config.smtp_port, timeout=10)
    sent = smtp.send_message.call_args[0][0]
    assert sent["To"] == "alice@example.org"
    assert sent["Subject"] == "Hi"
