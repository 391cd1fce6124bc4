import datetime

import pytest
import pytest_asyncio

from roster_api.app.core.config import settings
from roster_api.app.core.db import init_db
from roster_api.app.core.events import event_bus
from roster_api.app.core.security import Actor
from roster_api.app.schemas.assignment import AssignmentCreate
from roster_api.app.schemas.service import ServiceCreate
from roster_api.app.schemas.user import UserCreate
from roster_api.app.services.notification_service import configure_event_bus
from roster_api.app.services.schedule_service import ScheduleService
from roster_api.app.services.user_service import UserService

SERVICE_DATE = datetime.date(2026, 11, 1)


class RecordingNotifier:
    """Stands in for SMTP/SMS delivery and remembers every message."""

    def __init__(self):
        self.emails = []
        self.sms = []

    def send_email(self, to, subject, body):
        self.emails.append({"to": to, "subject": subject, "body": body})
        return True

    def send_sms(self, to, message):
        self.sms.append({"to": to, "message": message})
        return True


@pytest.fixture(autouse=True)
def database(tmp_path, monkeypatch):
    """Every test gets its own SQLite file and an event bus with no channels."""
    monkeypatch.setattr(settings, "database_url", str(tmp_path / "roster.db"))
    init_db()
    event_bus.clear()
    yield tmp_path / "roster.db"
    event_bus.clear()


@pytest_asyncio.fixture
async def notifier():
    recording = RecordingNotifier()
    configure_event_bus(event_bus, recording)
    yield recording
    await event_bus.drain()


@pytest.fixture
def make_user():
    async def _make_user(email, first_name, last_name="Tester", phone=None, role_id=None, actor=None):
        user = await UserService.create_user(
            UserCreate(
                email=email,
                first_name=first_name,
                last_name=last_name,
                phone=phone,
                password="secret123",
                role_id=role_id,
            ),
            actor,
        )
        return Actor(user_id=user.id, email=user.email, role_id=user.role_id)

    return _make_user


@pytest.fixture
def make_service():
    async def _make_service(admin, *assignments, title="Sunday service", date=SERVICE_DATE):
        return await ScheduleService.create_service(
            admin,
            ServiceCreate(
                title=title,
                date=date,
                time="10:00",
                location="Main hall",
                status="PUBLISHED",
                assignments=[AssignmentCreate(user_id=user.user_id, role=role) for user, role in assignments],
            ),
        )

    return _make_service


@pytest_asyncio.fixture
async def admin(make_user):
    # First account, so it becomes the super administrator.
    return await make_user("admin@example.org", "Ada", "Admin")


@pytest_asyncio.fixture
async def alice(admin, make_user):
    return await make_user("alice@example.org", "Alice", "Smith", phone="+15550000001")


@pytest_asyncio.fixture
async def bob(admin, make_user):
    return await make_user("bob@example.org", "Bob", "Jones", phone="+15550000002")


@pytest_asyncio.fixture
async def carol(admin, make_user):
    return await make_user("carol@example.org", "Carol", "White")
