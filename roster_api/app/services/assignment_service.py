"""
Assignment state machine.

An assignment starts ``PENDING`` and the assignee answers it once:
``accept`` makes it ``CONFIRMED``, ``decline`` (with a reason) makes it
``DECLINED``.  Both are terminal for the assignee; only a completed
swap hands the slot to someone else and resets it to ``PENDING``.

The answer is a single conditional ``UPDATE ... WHERE status =
'PENDING'`` so two concurrent answers cannot both win.  Repeating the
answer that produced the current status returns the assignment
unchanged and emits nothing; any other answer on an answered
assignment is a conflict.
"""

import logging
import sqlite3
from typing import List, Optional

from roster_api.app.core.db import get_connection, transaction
from roster_api.app.core.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from roster_api.app.core.events import event_bus
from roster_api.app.core.security import Actor
from roster_api.app.schemas.assignment import AssignmentRead
from roster_api.app.services import notification_templates as templates
from roster_api.app.services.audit_service import AuditService
from roster_api.app.services.rows import fetch_admins, fetch_assignment, fetch_service, fetch_user

logger = logging.getLogger(__name__)

PENDING = "PENDING"
CONFIRMED = "CONFIRMED"
DECLINED = "DECLINED"

ACTIONS = {"accept": CONFIRMED, "decline": DECLINED}

_SELECT_ASSIGNMENTS = """
    SELECT a.id, a.service_id, a.user_id, a.role, a.status, a.decline_reason,
           s.title AS service_title, s.date AS service_date,
           s.time AS service_time, s.location AS service_location,
           av.status AS availability_status
    FROM service_assignments a
    JOIN services s ON s.id = a.service_id
    LEFT JOIN availabilities av ON av.user_id = a.user_id AND av.date = s.date
"""


def select_assignments(conn: sqlite3.Connection, where: str, params: tuple) -> List[AssignmentRead]:
    """Run the denormalized assignment query with an extra WHERE clause."""
    rows = conn.execute(
        f"{_SELECT_ASSIGNMENTS} WHERE {where} ORDER BY s.date, s.time, a.id",
        params,
    ).fetchall()
    return [AssignmentRead(**dict(r)) for r in rows]


class AssignmentService:
    """Service class for answering and reading assignments."""

    @classmethod
    async def respond(
        cls,
        assignment_id: int,
        actor: Actor,
        action: str,
        reason: Optional[str] = None,
    ) -> AssignmentRead:
        """Accept or decline an assignment on behalf of its assignee.

        Raises
        ------
        ValidationError
            Unknown action, or a decline without a reason.
        NotFoundError
            The assignment does not exist.
        AuthorizationError
            The actor is not the assignee.
        ConflictError
            The assignment was already answered differently, or its
            service has been cancelled.
        """
        action = (action or "").strip().lower()
        if action not in ACTIONS:
            raise ValidationError("Invalid action; expected 'accept' or 'decline'")
        reason = (reason or "").strip() or None
        if action == "decline" and not reason:
            raise ValidationError("Reason is required when declining")
        target = ACTIONS[action]

        with transaction() as conn:
            current = fetch_assignment(conn, assignment_id)
            if current is None:
                raise NotFoundError("Assignment not found")
            if current["user_id"] != actor.user_id:
                raise AuthorizationError("Only the assignee may respond to this assignment")
            service = fetch_service(conn, current["service_id"])
            if service["status"] == "CANCELLED":
                raise ConflictError("Service is cancelled")
            cursor = conn.execute(
                """
                UPDATE service_assignments
                SET status = ?, decline_reason = ?, version = version + 1,
                    updated_at = CURRENT_TIMESTAMP
                WHERE id = ? AND user_id = ? AND status = ?
                """,
                (target, reason if target == DECLINED else None, assignment_id, actor.user_id, PENDING),
            )
            if cursor.rowcount == 0:
                if current["status"] == target:
                    replay = True
                else:
                    raise ConflictError(f"Assignment is already {current['status']}")
            else:
                replay = False
                assignment = fetch_assignment(conn, assignment_id)
                assignee = fetch_user(conn, actor.user_id)
                admins = fetch_admins(conn) if target == DECLINED else []

        if replay:
            logger.info("Assignment %s already %s; nothing to do", assignment_id, target)
            return await cls.get_assignment(assignment_id, actor)

        logger.info("Assignment %s %s by user %s", assignment_id, target, actor.user_id)
        await event_bus.emit(templates.assignment_response(assignment, service, assignee, admins))
        await AuditService.log(
            user_id=actor.user_id,
            action=action,
            object_type="assignment",
            object_id=assignment_id,
            details={"service_id": service["id"], "status": target, "reason": reason},
        )
        return await cls.get_assignment(assignment_id, actor)

    @classmethod
    async def get_assignment(cls, assignment_id: int, actor: Actor) -> AssignmentRead:
        """Return one assignment; visible to its assignee and to administrators."""
        conn = get_connection()
        try:
            found = select_assignments(conn, "a.id = ?", (assignment_id,))
        finally:
            conn.close()
        if not found:
            raise NotFoundError("Assignment not found")
        assignment = found[0]
        if assignment.user_id != actor.user_id and not actor.is_admin:
            raise AuthorizationError("Not allowed to view this assignment")
        return assignment

    @classmethod
    async def list_for_user(cls, actor: Actor, status: Optional[str] = None) -> List[AssignmentRead]:
        """Return the actor's assignments ordered by service date."""
        where = "a.user_id = ?"
        params: tuple = (actor.user_id,)
        if status:
            where += " AND a.status = ?"
            params += (status.upper(),)
        conn = get_connection()
        try:
            return select_assignments(conn, where, params)
        finally:
            conn.close()
