"""
Business logic for services (scheduled events) and their assignments.

Administrators create services, assign members to roles on them and
move them through ``DRAFT`` → ``PUBLISHED`` → ``CANCELLED``.
``CANCELLED`` is final.  Assigning a member looks up their availability
for the service date and reports it on the returned assignment; it
never refuses the assignment because of it.

Deleting a service removes its assignments and swap requests and
unlinks availability entries (foreign key actions in ``core.db``).
"""

import logging
import sqlite3
from typing import List, Optional

from roster_api.app.core.db import get_connection, transaction
from roster_api.app.core.errors import ConflictError, NotFoundError, ValidationError
from roster_api.app.core.events import event_bus
from roster_api.app.core.security import Actor
from roster_api.app.schemas.assignment import AssignmentCreate, AssignmentRead
from roster_api.app.schemas.service import ServiceCreate, ServiceRead
from roster_api.app.services import notification_templates as templates
from roster_api.app.services.assignment_service import select_assignments
from roster_api.app.services.audit_service import AuditService
from roster_api.app.services.rows import SERVICE_COLUMNS, fetch_assignment, fetch_service, fetch_user

logger = logging.getLogger(__name__)

DRAFT = "DRAFT"
PUBLISHED = "PUBLISHED"
CANCELLED = "CANCELLED"
STATUSES = (DRAFT, PUBLISHED, CANCELLED)


def _normalize_status(value: str) -> str:
    status = (value or "").strip().upper()
    if status not in STATUSES:
        raise ValidationError(f"Invalid service status '{value}'; expected one of {', '.join(STATUSES)}")
    return status


def _load(conn: sqlite3.Connection, rows) -> List[ServiceRead]:
    services = []
    for row in rows:
        assignments = select_assignments(conn, "a.service_id = ?", (row["id"],))
        services.append(ServiceRead(**dict(row), assignments=assignments))
    return services


def _insert_assignment(conn: sqlite3.Connection, service_id: int, item: AssignmentCreate) -> int:
    if fetch_user(conn, item.user_id) is None:
        raise NotFoundError(f"User {item.user_id} not found")
    try:
        cursor = conn.execute(
            "INSERT INTO service_assignments (service_id, user_id, role) VALUES (?, ?, ?)",
            (service_id, item.user_id, item.role.strip()),
        )
    except sqlite3.IntegrityError as e:
        raise ConflictError(f"User {item.user_id} is already assigned to this service") from e
    return cursor.lastrowid


class ScheduleService:
    """Service class for services and their assignments."""

    @classmethod
    async def create_service(cls, actor: Actor, data: ServiceCreate) -> ServiceRead:
        """Create a service, optionally with its first assignments, in one transaction."""
        status = _normalize_status(data.status)
        if status == CANCELLED:
            raise ValidationError("A service cannot be created cancelled")
        with transaction() as conn:
            cursor = conn.execute(
                """
                INSERT INTO services (title, description, date, time, location, status, created_by)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    data.title.strip(),
                    data.description,
                    data.date.isoformat(),
                    data.time,
                    data.location.strip(),
                    status,
                    actor.user_id,
                ),
            )
            service_id = cursor.lastrowid
            assignment_ids = [_insert_assignment(conn, service_id, item) for item in data.assignments]
            service = fetch_service(conn, service_id)
            new_assignments = [fetch_assignment(conn, a_id) for a_id in assignment_ids]
            assignees = {a["user_id"]: fetch_user(conn, a["user_id"]) for a in new_assignments}

        logger.info("Service %s created by user %s with %d assignment(s)",
                    service_id, actor.user_id, len(assignment_ids))
        for assignment in new_assignments:
            await event_bus.emit(templates.service_assigned(assignment, service, assignees[assignment["user_id"]]))
        await AuditService.log(
            user_id=actor.user_id,
            action="create",
            object_type="service",
            object_id=service_id,
            details={"title": service["title"], "date": service["date"], "assignments": len(assignment_ids)},
        )
        return await cls.get_service(service_id)

    @classmethod
    async def list_services(
        cls,
        status: Optional[str] = None,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> List[ServiceRead]:
        """Services ordered by date and time, with their assignments."""
        clauses: List[str] = []
        params: List[str] = []
        if status:
            clauses.append("status = ?")
            params.append(_normalize_status(status))
        if start_date:
            clauses.append("date >= ?")
            params.append(start_date)
        if end_date:
            clauses.append("date <= ?")
            params.append(end_date)
        query = f"SELECT {SERVICE_COLUMNS} FROM services"
        if clauses:
            query += " WHERE " + " AND ".join(clauses)
        query += " ORDER BY date, time, id"
        conn = get_connection()
        try:
            return _load(conn, conn.execute(query, tuple(params)).fetchall())
        finally:
            conn.close()

    @classmethod
    async def get_service(cls, service_id: int) -> ServiceRead:
        conn = get_connection()
        try:
            found = _load(conn, conn.execute(f"SELECT {SERVICE_COLUMNS} FROM services WHERE id = ?", (service_id,)))
        finally:
            conn.close()
        if not found:
            raise NotFoundError("Service not found")
        return found[0]

    @classmethod
    async def update_service_status(cls, service_id: int, actor: Actor, status: str) -> ServiceRead:
        """Move a service to another status.

        Setting the current status again changes nothing.  A cancelled
        service cannot be reopened.  Cancelling notifies every assignee.
        """
        status = _normalize_status(status)
        with transaction() as conn:
            service = fetch_service(conn, service_id)
            if service is None:
                raise NotFoundError("Service not found")
            previous = service["status"]
            if previous == status:
                unchanged = True
            elif previous == CANCELLED:
                raise ConflictError("Service is cancelled")
            else:
                unchanged = False
                conn.execute(
                    "UPDATE services SET status = ?, updated_at = CURRENT_TIMESTAMP WHERE id = ? AND status = ?",
                    (status, service_id, previous),
                )
                service["status"] = status
                assignees = []
                if status == CANCELLED:
                    rows = conn.execute(
                        "SELECT user_id FROM service_assignments WHERE service_id = ?", (service_id,)
                    ).fetchall()
                    assignees = [fetch_user(conn, r["user_id"]) for r in rows]

        if unchanged:
            return await cls.get_service(service_id)
        logger.info("Service %s: %s -> %s by user %s", service_id, previous, status, actor.user_id)
        if status == CANCELLED:
            await event_bus.emit(templates.service_cancelled(service, assignees))
        await AuditService.log(
            user_id=actor.user_id,
            action="status",
            object_type="service",
            object_id=service_id,
            details={"from": previous, "to": status},
        )
        return await cls.get_service(service_id)

    @classmethod
    async def delete_service(cls, service_id: int, actor: Actor) -> None:
        conn = get_connection()
        try:
            cursor = conn.execute("DELETE FROM services WHERE id = ?", (service_id,))
            conn.commit()
        finally:
            conn.close()
        if cursor.rowcount == 0:
            raise NotFoundError("Service not found")
        logger.info("Service %s deleted by user %s", service_id, actor.user_id)
        await AuditService.log(user_id=actor.user_id, action="delete", object_type="service", object_id=service_id)

    @classmethod
    async def add_assignment(cls, service_id: int, actor: Actor, data: AssignmentCreate) -> AssignmentRead:
        """Assign a member to a role; they must then accept or decline."""
        with transaction() as conn:
            service = fetch_service(conn, service_id)
            if service is None:
                raise NotFoundError("Service not found")
            if service["status"] == CANCELLED:
                raise ConflictError("Service is cancelled")
            assignment_id = _insert_assignment(conn, service_id, data)
            assignment = fetch_assignment(conn, assignment_id)
            assignee = fetch_user(conn, data.user_id)
            created = select_assignments(conn, "a.id = ?", (assignment_id,))[0]

        if created.availability_status and created.availability_status != "available":
            logger.info("User %s assigned to service %s while marked %s",
                        data.user_id, service_id, created.availability_status)
        await event_bus.emit(templates.service_assigned(assignment, service, assignee))
        await AuditService.log(
            user_id=actor.user_id,
            action="assign",
            object_type="assignment",
            object_id=assignment_id,
            details={"service_id": service_id, "user_id": data.user_id, "role": assignment["role"]},
        )
        return created

    @classmethod
    async def remove_assignment(cls, service_id: int, assignment_id: int, actor: Actor) -> None:
        conn = get_connection()
        try:
            cursor = conn.execute(
                "DELETE FROM service_assignments WHERE id = ? AND service_id = ?",
                (assignment_id, service_id),
            )
            conn.commit()
        finally:
            conn.close()
        if cursor.rowcount == 0:
            raise NotFoundError("Assignment not found")
        await AuditService.log(
            user_id=actor.user_id,
            action="unassign",
            object_type="assignment",
            object_id=assignment_id,
            details={"service_id": service_id},
        )
