"""
Message templates for roster notifications.

Each builder turns the facts of one transition into a
:class:`~roster_api.app.core.events.DomainEvent`: the inbox records to
append, the e-mails and (where a phone number is on file) the SMS to
send.  Builders take plain ``dict`` rows as read from the database:
users with ``id``, ``first_name``, ``last_name``, ``email`` and
``phone``; services with ``id``, ``title``, ``date``, ``time`` and
``location``.
"""

from typing import Any, Dict, Iterable, Optional

from roster_api.app.core.events import DomainEvent, InboxEntry, OutboundEmail, OutboundSms

SIGNATURE = "\n\nKind regards,\nThe roster team"


def full_name(user: Dict[str, Any]) -> str:
    return f"{user['first_name']} {user['last_name']}".strip()


def _service_block(service: Dict[str, Any], role: Optional[str] = None) -> str:
    lines = [f"  {service['title']}"]
    if role:
        lines.append(f"  Role: {role}")
    lines.append(f"  Date: {service['date']}")
    lines.append(f"  Time: {service['time']}")
    lines.append(f"  Location: {service['location']}")
    return "\n".join(lines)


def assignment_response(
    assignment: Dict[str, Any],
    service: Dict[str, Any],
    assignee: Dict[str, Any],
    admins: Iterable[Dict[str, Any]],
) -> DomainEvent:
    """Assignee confirmed or declined; declines also alert administrators."""
    status = assignment["status"]
    reason = assignment.get("decline_reason")
    confirmed = status == "CONFIRMED"
    verb = "confirmed" if confirmed else "declined"
    message = f'You {verb} your participation in the service "{service["title"]}"'
    if reason:
        message += f" - Reason: {reason}"
    payload: Dict[str, Any] = {
        "assignmentId": assignment["id"],
        "serviceId": service["id"],
        "serviceTitle": service["title"],
        "date": service["date"],
        "status": status,
    }
    if reason:
        payload["reason"] = reason

    event = DomainEvent(
        key=f"assignment:{assignment['id']}:v{assignment['version']}",
        type="assignment_response",
        inbox=[
            InboxEntry(
                user_id=assignee["id"],
                type="assignment_response",
                title=f"Service {verb}",
                message=message,
                payload=payload,
            )
        ],
    )
    if not confirmed:
        body = (
            "Hello,\n\n"
            f"{full_name(assignee)} <{assignee['email']}> declined the role "
            f"\"{assignment['role']}\" for the following service:\n\n"
            f"{_service_block(service)}\n\n"
            f"Reason: {reason}\n\n"
            "Please find a replacement or update the schedule."
            f"{SIGNATURE}"
        )
        for admin in admins:
            if admin.get("email"):
                event.emails.append(
                    OutboundEmail(
                        to=admin["email"],
                        subject=f"Service declined: {service['title']}",
                        body=body,
                    )
                )
    return event


def swap_requested(
    swap: Dict[str, Any],
    service: Dict[str, Any],
    from_user: Dict[str, Any],
    to_user: Dict[str, Any],
) -> DomainEvent:
    """Tell the target of a swap request that a colleague asked them to take over."""
    sender = full_name(from_user)
    text = f'{sender} asked you to take over the service "{service["title"]}" on {swap["date"]}.'
    if swap.get("message"):
        text += f" Message: {swap['message']}"
    event = DomainEvent(
        key=f"swap:{swap['id']}:pending",
        type="swap_request",
        inbox=[
            InboxEntry(
                user_id=to_user["id"],
                type="swap_request",
                title="Service swap request",
                message=text,
                payload={
                    "swapRequestId": swap["id"],
                    "fromUser": {
                        "id": from_user["id"],
                        "firstName": from_user["first_name"],
                        "lastName": from_user["last_name"],
                        "email": from_user["email"],
                    },
                    "serviceId": service["id"],
                    "serviceTitle": service["title"],
                    "date": swap["date"],
                    "message": swap.get("message"),
                },
            )
        ],
        emails=[
            OutboundEmail(
                to=to_user["email"],
                subject=f"Swap request: {service['title']}",
                body=(
                    f"Hello {full_name(to_user)},\n\n"
                    f"{sender} sent you a swap request for the following service:\n\n"
                    f"{_service_block(service)}\n"
                    + (f"\nMessage: {swap['message']}\n" if swap.get("message") else "")
                    + "\nPlease sign in to accept or decline the request."
                    + SIGNATURE
                ),
            )
        ],
    )
    if to_user.get("phone"):
        event.sms.append(
            OutboundSms(
                to=to_user["phone"],
                message=(
                    f"Roster: {sender} sent you a swap request for \"{service['title']}\" "
                    f"on {swap['date']}. Sign in to respond."
                ),
            )
        )
    return event


def swap_accepted(
    swap: Dict[str, Any],
    service: Dict[str, Any],
    from_user: Dict[str, Any],
    to_user: Dict[str, Any],
    role: str,
) -> DomainEvent:
    payload = {
        "swapRequestId": swap["id"],
        "serviceId": service["id"],
        "serviceTitle": service["title"],
        "date": swap["date"],
        "role": role,
    }
    return DomainEvent(
        key=f"swap:{swap['id']}:accepted",
        type="swap_accepted",
        inbox=[
            InboxEntry(
                user_id=from_user["id"],
                type="swap_accepted",
                title="Swap accepted",
                message=f'{full_name(to_user)} accepted your swap request for "{service["title"]}".',
                payload=payload,
            ),
            InboxEntry(
                user_id=to_user["id"],
                type="swap_assigned",
                title="New service to confirm",
                message=(
                    f'You now hold the role "{role}" for "{service["title"]}" on {swap["date"]}. '
                    "Please confirm your participation."
                ),
                payload=payload,
            ),
        ],
        emails=[
            OutboundEmail(
                to=from_user["email"],
                subject=f"Swap accepted: {service['title']}",
                body=(
                    f"Hello {full_name(from_user)},\n\n"
                    f"{full_name(to_user)} accepted your swap request for the service:\n\n"
                    f"{_service_block(service, role)}\n\n"
                    "The role has been handed over and awaits their confirmation."
                    f"{SIGNATURE}"
                ),
            )
        ],
    )


def swap_declined(
    swap: Dict[str, Any],
    service: Dict[str, Any],
    from_user: Dict[str, Any],
    to_user: Dict[str, Any],
) -> DomainEvent:
    return DomainEvent(
        key=f"swap:{swap['id']}:declined",
        type="swap_rejected",
        inbox=[
            InboxEntry(
                user_id=from_user["id"],
                type="swap_rejected",
                title="Swap declined",
                message=f'{full_name(to_user)} declined your swap request for "{service["title"]}".',
                payload={
                    "swapRequestId": swap["id"],
                    "serviceId": service["id"],
                    "serviceTitle": service["title"],
                    "date": swap["date"],
                },
            )
        ],
        emails=[
            OutboundEmail(
                to=from_user["email"],
                subject=f"Swap declined: {service['title']}",
                body=(
                    f"Hello {full_name(from_user)},\n\n"
                    f"{full_name(to_user)} declined your swap request for the service:\n\n"
                    f"{_service_block(service)}\n\n"
                    "You can ask another member instead."
                    f"{SIGNATURE}"
                ),
            )
        ],
    )


def service_assigned(
    assignment: Dict[str, Any],
    service: Dict[str, Any],
    assignee: Dict[str, Any],
) -> DomainEvent:
    return DomainEvent(
        key=f"assignment:{assignment['id']}:v{assignment['version']}",
        type="service_assigned",
        inbox=[
            InboxEntry(
                user_id=assignee["id"],
                type="service_assigned",
                title="New service assigned",
                message=f'You have been assigned as "{assignment["role"]}" for "{service["title"]}" on {service["date"]}.',
                payload={
                    "assignmentId": assignment["id"],
                    "serviceId": service["id"],
                    "serviceTitle": service["title"],
                    "date": service["date"],
                    "role": assignment["role"],
                },
            )
        ],
        emails=[
            OutboundEmail(
                to=assignee["email"],
                subject=f"New service assigned: {service['title']}",
                body=(
                    f"Hello {full_name(assignee)},\n\n"
                    "You have been assigned to a service:\n\n"
                    f"{_service_block(service, assignment['role'])}\n\n"
                    "Please confirm your participation or decline if you are not available."
                    f"{SIGNATURE}"
                ),
            )
        ],
    )


def service_cancelled(service: Dict[str, Any], assignees: Iterable[Dict[str, Any]]) -> DomainEvent:
    event = DomainEvent(key=f"service:{service['id']}:CANCELLED", type="service_cancelled")
    for user in assignees:
        event.inbox.append(
            InboxEntry(
                user_id=user["id"],
                type="service_cancelled",
                title="Service cancelled",
                message=f'The service "{service["title"]}" on {service["date"]} has been cancelled.',
                payload={"serviceId": service["id"], "serviceTitle": service["title"], "date": service["date"]},
            )
        )
        event.emails.append(
            OutboundEmail(
                to=user["email"],
                subject=f"Service cancelled: {service['title']}",
                body=(
                    f"Hello {full_name(user)},\n\n"
                    "The following service has been cancelled:\n\n"
                    f"{_service_block(service)}"
                    f"{SIGNATURE}"
                ),
            )
        )
    return event
