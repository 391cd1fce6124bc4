import asyncio
import datetime

import pytest

from roster_api.app.core.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from roster_api.app.core.events import event_bus
from roster_api.app.schemas.assignment import AssignmentRead
from roster_api.app.schemas.availability import AvailabilityCreate
from roster_api.app.services.assignment_service import AssignmentService
from roster_api.app.services.audit_service import AuditService
from roster_api.app.services.availability_service import AvailabilityService
from roster_api.app.services.notification_service import NotificationService
from roster_api.app.services.schedule_service import ScheduleService

SERVICE_DATE = datetime.date(2026, 11, 1)


def _of_type(notifications, type_):
    return [n for n in notifications if n["type"] == type_]


@pytest.mark.asyncio
async def test_decline_with_reason_records_and_alerts_admins(notifier, admin, alice, make_service):
    service = await make_service(admin, (alice, "Sound"))
    assignment_id = service.assignments[0].id

    result = await AssignmentService.respond(assignment_id, alice, "decline", reason="sick")
    await event_bus.drain()

    assert result.status == "DECLINED"
    assert result.decline_reason == "sick"
    assert result.service_title == "Sunday service"
    assert result.service_date == SERVICE_DATE

    responses = _of_type(await NotificationService.list_for_user(alice), "assignment_response")
    assert len(responses) == 1
    assert responses[0]["payload"]["status"] == "DECLINED"
    assert responses[0]["payload"]["reason"] == "sick"
    assert responses[0]["payload"]["serviceId"] == service.id

    declined_mails = [m for m in notifier.emails if m["subject"].startswith("Service declined")]
    assert [m["to"] for m in declined_mails] == ["admin@example.org"]
    body = declined_mails[0]["body"]
    assert "Alice Smith" in body
    assert "alice@example.org" in body
    assert "2026-11-01" in body
    assert "Reason: sick" in body


@pytest.mark.asyncio
@pytest.mark.parametrize("reason", [None, "", "   "])
async def test_decline_without_reason_leaves_assignment_pending(admin, alice, make_service, reason):
    service = await make_service(admin, (alice, "Sound"))
    assignment_id = service.assignments[0].id

    with pytest.raises(ValidationError, match="Reason is required when declining"):
        await AssignmentService.respond(assignment_id, alice, "decline", reason=reason)

    current = await AssignmentService.get_assignment(assignment_id, alice)
    assert current.status == "PENDING"
    assert current.decline_reason is None


@pytest.mark.asyncio
async def test_unknown_action_is_rejected(admin, alice, make_service):
    service = await make_service(admin, (alice, "Sound"))
    with pytest.raises(ValidationError):
        await AssignmentService.respond(service.assignments[0].id, alice, "maybe")


@pytest.mark.asyncio
async def test_accept_replay_is_a_noop(notifier, admin, alice, make_service):
    service = await make_service(admin, (alice, "Sound"))
    assignment_id = service.assignments[0].id

    first = await AssignmentService.respond(assignment_id, alice, "accept")
    second = await AssignmentService.respond(assignment_id, alice, "ACCEPT")
    await event_bus.drain()

    assert first.status == second.status == "CONFIRMED"
    responses = _of_type(await NotificationService.list_for_user(alice), "assignment_response")
    assert len(responses) == 1
    logs = await AuditService.list_logs(object_type="assignment", action="accept")
    assert len(logs) == 1


@pytest.mark.asyncio
async def test_other_action_on_answered_assignment_conflicts(admin, alice, make_service):
    service = await make_service(admin, (alice, "Sound"))
    assignment_id = service.assignments[0].id
    await AssignmentService.respond(assignment_id, alice, "accept")

    with pytest.raises(ConflictError):
        await AssignmentService.respond(assignment_id, alice, "decline", reason="changed my mind")

    current = await AssignmentService.get_assignment(assignment_id, alice)
    assert current.status == "CONFIRMED"
    assert current.decline_reason is None


@pytest.mark.asyncio
async def test_only_the_assignee_may_respond(admin, alice, bob, make_service):
    service = await make_service(admin, (alice, "Sound"))
    with pytest.raises(AuthorizationError):
        await AssignmentService.respond(service.assignments[0].id, bob, "accept")
    with pytest.raises(AuthorizationError):
        await AssignmentService.respond(service.assignments[0].id, admin, "accept")


@pytest.mark.asyncio
async def test_missing_assignment(alice):
    with pytest.raises(NotFoundError):
        await AssignmentService.respond(999, alice, "accept")


@pytest.mark.asyncio
async def test_cancelled_service_cannot_be_answered(admin, alice, make_service):
    service = await make_service(admin, (alice, "Sound"))
    assignment_id = service.assignments[0].id
    await ScheduleService.update_service_status(service.id, admin, "CANCELLED")

    with pytest.raises(ConflictError):
        await AssignmentService.respond(assignment_id, alice, "accept")
    with pytest.raises(ConflictError):
        await AssignmentService.respond(assignment_id, alice, "decline", reason="sick")

    assert (await AssignmentService.get_assignment(assignment_id, alice)).status == "PENDING"


@pytest.mark.asyncio
async def test_concurrent_answers_exactly_one_wins(admin, alice, make_service):
    service = await make_service(admin, (alice, "Sound"))
    assignment_id = service.assignments[0].id

    results = await asyncio.gather(
        AssignmentService.respond(assignment_id, alice, "accept"),
        AssignmentService.respond(assignment_id, alice, "decline", reason="sick"),
        return_exceptions=True,
    )

    winners = [r for r in results if isinstance(r, AssignmentRead)]
    losers = [r for r in results if isinstance(r, ConflictError)]
    assert len(winners) == 1
    assert len(losers) == 1

    current = await AssignmentService.get_assignment(assignment_id, alice)
    assert current.status == winners[0].status
    if current.status == "CONFIRMED":
        assert current.decline_reason is None
    else:
        assert current.decline_reason == "sick"


@pytest.mark.asyncio
async def test_list_for_user_reports_availability(admin, alice, bob, make_service):
    await make_service(admin, (alice, "Sound"), (bob, "Lights"))
    await AvailabilityService.create(alice, AvailabilityCreate(date=SERVICE_DATE, status="Busy"))

    mine = await AssignmentService.list_for_user(alice)

    assert len(mine) == 1
    assert mine[0].role == "Sound"
    assert mine[0].service_location == "Main hall"
    assert mine[0].availability_status == "busy"
    assert await AssignmentService.list_for_user(alice, status="confirmed") == []


@pytest.mark.asyncio
async def test_other_members_cannot_read_an_assignment(admin, alice, bob, make_service):
    service = await make_service(admin, (alice, "Sound"))
    assignment_id = service.assignments[0].id

    with pytest.raises(AuthorizationError):
        await AssignmentService.get_assignment(assignment_id, bob)
    assert (await AssignmentService.get_assignment(assignment_id, admin)).user_id == alice.user_id
