"""
Swap negotiation between two members.

A member holding an assignment on a service asks a colleague to take
it over.  The request stays ``pending`` until the colleague answers:

* ``decline`` marks it ``declined``; nothing else changes.
* ``accept`` runs :meth:`SwapService.complete_swap`, which marks the
  request ``accepted`` and hands the requester's assignment (same
  role, back to ``PENDING``) to the colleague inside one transaction.

``accepted`` and ``declined`` are terminal.  Administrators see
accepted swaps only; that is a filter on this one table, not a second
workflow.
"""

import datetime
import logging
import sqlite3
from typing import Any, Dict, List, Optional, Tuple

from roster_api.app.core.db import ROLE_USER, get_connection, transaction
from roster_api.app.core.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from roster_api.app.core.events import event_bus
from roster_api.app.core.security import Actor
from roster_api.app.schemas.swap import SwapRequestRead
from roster_api.app.schemas.user import UserSummary
from roster_api.app.services import notification_templates as templates
from roster_api.app.services.audit_service import AuditService
from roster_api.app.services.rows import fetch_service, fetch_slot, fetch_user

logger = logging.getLogger(__name__)

PENDING = "pending"
ACCEPTED = "accepted"
DECLINED = "declined"

DECISIONS = ("accept", "decline")

_SELECT_SWAPS = """
    SELECT sr.id, sr.service_id, sr.date, sr.status, sr.message,
           sr.created_at, sr.responded_at,
           s.title AS service_title,
           f.id AS from_id, f.first_name AS from_first_name,
           f.last_name AS from_last_name, f.email AS from_email,
           t.id AS to_id, t.first_name AS to_first_name,
           t.last_name AS to_last_name, t.email AS to_email
    FROM swap_requests sr
    JOIN services s ON s.id = sr.service_id
    JOIN users f ON f.id = sr.from_user_id
    JOIN users t ON t.id = sr.to_user_id
"""


def _to_read(row: sqlite3.Row) -> SwapRequestRead:
    return SwapRequestRead(
        id=row["id"],
        from_user=UserSummary(
            id=row["from_id"],
            first_name=row["from_first_name"],
            last_name=row["from_last_name"],
            email=row["from_email"],
        ),
        to_user=UserSummary(
            id=row["to_id"],
            first_name=row["to_first_name"],
            last_name=row["to_last_name"],
            email=row["to_email"],
        ),
        service_id=row["service_id"],
        service_title=row["service_title"],
        date=row["date"],
        status=row["status"],
        message=row["message"],
        created_at=str(row["created_at"]) if row["created_at"] else None,
        responded_at=str(row["responded_at"]) if row["responded_at"] else None,
    )


def _select(where: str, params: tuple) -> List[SwapRequestRead]:
    conn = get_connection()
    try:
        rows = conn.execute(
            f"{_SELECT_SWAPS} WHERE {where} ORDER BY sr.created_at DESC, sr.id DESC",
            params,
        ).fetchall()
    finally:
        conn.close()
    return [_to_read(r) for r in rows]


def _fetch_swap(conn: sqlite3.Connection, swap_id: int) -> Optional[Dict[str, Any]]:
    row = conn.execute(
        """
        SELECT id, from_user_id, to_user_id, service_id, date, status, message
        FROM swap_requests WHERE id = ?
        """,
        (swap_id,),
    ).fetchone()
    return dict(row) if row else None


class SwapService:
    """Service class for swap requests."""

    @classmethod
    async def create_swap_request(
        cls,
        actor: Actor,
        to_user_id: int,
        service_id: int,
        date: Optional[datetime.date] = None,
        message: Optional[str] = None,
    ) -> SwapRequestRead:
        """Ask ``to_user_id`` to take over the actor's assignment on a service.

        The actor must hold an assignment on the service and the target
        must not.  Only one pending request per assignment is allowed.
        ``date`` defaults to the service date.
        """
        if to_user_id == actor.user_id:
            raise ValidationError("Cannot request a swap with yourself")
        message = (message or "").strip() or None

        with transaction() as conn:
            to_user = fetch_user(conn, to_user_id)
            if to_user is None or to_user["disabled"]:
                raise NotFoundError("Target user not found")
            service = fetch_service(conn, service_id)
            if service is None:
                raise NotFoundError("Service not found")
            if service["status"] == "CANCELLED":
                raise ConflictError("Service is cancelled")
            if fetch_slot(conn, service_id, actor.user_id) is None:
                raise AuthorizationError("You are not assigned to this service")
            if fetch_slot(conn, service_id, to_user_id) is not None:
                raise ConflictError("Target user is already assigned to this service")
            open_request = conn.execute(
                "SELECT id FROM swap_requests WHERE service_id = ? AND from_user_id = ? AND status = ?",
                (service_id, actor.user_id, PENDING),
            ).fetchone()
            if open_request:
                raise ConflictError("A swap request for this assignment is already pending")
            swap_date = date.isoformat() if date else service["date"]
            cursor = conn.execute(
                """
                INSERT INTO swap_requests (from_user_id, to_user_id, service_id, date, status, message)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (actor.user_id, to_user_id, service_id, swap_date, PENDING, message),
            )
            swap = _fetch_swap(conn, cursor.lastrowid)
            from_user = fetch_user(conn, actor.user_id)

        logger.info("Swap request %s created: user %s -> user %s on service %s",
                    swap["id"], actor.user_id, to_user_id, service_id)
        await event_bus.emit(templates.swap_requested(swap, service, from_user, to_user))
        await AuditService.log(
            user_id=actor.user_id,
            action="create",
            object_type="swap_request",
            object_id=swap["id"],
            details={"service_id": service_id, "to_user_id": to_user_id, "date": swap_date},
        )
        return await cls.get_swap_request(swap["id"], actor)

    @classmethod
    async def respond_to_swap(cls, swap_id: int, actor: Actor, decision: str) -> SwapRequestRead:
        """Answer a pending swap request as its target."""
        decision = (decision or "").strip().lower()
        if decision not in DECISIONS:
            raise ValidationError("Invalid decision; expected 'accept' or 'decline'")

        conn = get_connection()
        try:
            swap = _fetch_swap(conn, swap_id)
        finally:
            conn.close()
        if swap is None:
            raise NotFoundError("Swap request not found")
        if swap["to_user_id"] != actor.user_id:
            raise AuthorizationError("Only the requested user may respond to this swap")
        if swap["status"] != PENDING:
            raise ConflictError(f"Swap request is already {swap['status']}")

        if decision == "accept":
            await cls.complete_swap(swap_id, actor)
        else:
            await cls._decline(swap_id, actor)
        return await cls.get_swap_request(swap_id, actor)

    @classmethod
    async def complete_swap(cls, swap_id: int, actor: Actor) -> Tuple[Dict[str, Any], Dict[str, Any]]:
        """Accept a swap and hand the assignment over, all or nothing.

        Within one ``BEGIN IMMEDIATE`` transaction the request moves
        from ``pending`` to ``accepted`` and the requester's assignment
        on the service is reassigned to the actor with its role kept,
        its status reset to ``PENDING`` and its decline reason cleared.
        If either write does not apply, or the service was cancelled
        while the request was pending, nothing is committed and
        ``ConflictError`` is raised.

        Returns the swap and the reassigned assignment as dicts.
        """
        with transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE swap_requests
                SET status = ?, responded_at = CURRENT_TIMESTAMP
                WHERE id = ? AND to_user_id = ? AND status = ?
                """,
                (ACCEPTED, swap_id, actor.user_id, PENDING),
            )
            if cursor.rowcount != 1:
                raise ConflictError("Swap request is no longer pending")
            swap = _fetch_swap(conn, swap_id)
            service = fetch_service(conn, swap["service_id"])
            if service["status"] == "CANCELLED":
                raise ConflictError("Service is cancelled")
            try:
                cursor = conn.execute(
                    """
                    UPDATE service_assignments
                    SET user_id = ?, status = 'PENDING', decline_reason = NULL,
                        version = version + 1, updated_at = CURRENT_TIMESTAMP
                    WHERE service_id = ? AND user_id = ?
                    """,
                    (swap["to_user_id"], swap["service_id"], swap["from_user_id"]),
                )
            except sqlite3.IntegrityError as e:
                raise ConflictError("Target user is already assigned to this service") from e
            if cursor.rowcount != 1:
                raise ConflictError("The requester no longer holds an assignment on this service")
            assignment = fetch_slot(conn, swap["service_id"], swap["to_user_id"])
            from_user = fetch_user(conn, swap["from_user_id"])
            to_user = fetch_user(conn, swap["to_user_id"])

        logger.info("Swap %s completed: assignment %s now held by user %s",
                    swap_id, assignment["id"], to_user["id"])
        await event_bus.emit(templates.swap_accepted(swap, service, from_user, to_user, assignment["role"]))
        await AuditService.log(
            user_id=actor.user_id,
            action="swap_complete",
            object_type="swap_request",
            object_id=swap_id,
            details={
                "service_id": swap["service_id"],
                "assignment_id": assignment["id"],
                "from_user_id": swap["from_user_id"],
                "to_user_id": swap["to_user_id"],
                "role": assignment["role"],
            },
        )
        return swap, assignment

    @classmethod
    async def _decline(cls, swap_id: int, actor: Actor) -> None:
        with transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE swap_requests
                SET status = ?, responded_at = CURRENT_TIMESTAMP
                WHERE id = ? AND to_user_id = ? AND status = ?
                """,
                (DECLINED, swap_id, actor.user_id, PENDING),
            )
            if cursor.rowcount != 1:
                raise ConflictError("Swap request is no longer pending")
            swap = _fetch_swap(conn, swap_id)
            service = fetch_service(conn, swap["service_id"])
            from_user = fetch_user(conn, swap["from_user_id"])
            to_user = fetch_user(conn, swap["to_user_id"])

        logger.info("Swap %s declined by user %s", swap_id, actor.user_id)
        await event_bus.emit(templates.swap_declined(swap, service, from_user, to_user))
        await AuditService.log(
            user_id=actor.user_id,
            action="decline",
            object_type="swap_request",
            object_id=swap_id,
            details={"service_id": swap["service_id"]},
        )

    @classmethod
    async def get_swap_request(cls, swap_id: int, actor: Actor) -> SwapRequestRead:
        """Return one swap request; visible to both parties and administrators."""
        found = _select("sr.id = ?", (swap_id,))
        if not found:
            raise NotFoundError("Swap request not found")
        swap = found[0]
        if actor.user_id not in (swap.from_user.id, swap.to_user.id) and not actor.is_admin:
            raise AuthorizationError("Not allowed to view this swap request")
        return swap

    @classmethod
    async def list_for_user(cls, actor: Actor) -> List[SwapRequestRead]:
        """Swap requests the actor sent or received, newest first."""
        return _select("sr.from_user_id = ? OR sr.to_user_id = ?", (actor.user_id, actor.user_id))

    @classmethod
    async def list_admin_visible(cls, service_id: Optional[int] = None) -> List[SwapRequestRead]:
        """Swap requests administrators may see: accepted ones only."""
        if service_id is not None:
            return _select("sr.status = ? AND sr.service_id = ?", (ACCEPTED, service_id))
        return _select("sr.status = ?", (ACCEPTED,))

    @classmethod
    async def find_candidates(
        cls,
        actor: Actor,
        date: datetime.date,
        service_id: Optional[int] = None,
    ) -> List[UserSummary]:
        """Members other than the actor marked available on ``date``.

        With ``service_id``, members already assigned to that service
        are left out since they cannot receive a swap for it.
        """
        query = """
            SELECT u.id, u.first_name, u.last_name, u.email
            FROM users u
            JOIN availabilities av ON av.user_id = u.id
            WHERE av.date = ? AND av.status = 'available'
              AND u.id != ? AND u.role_id = ? AND u.disabled = 0
        """
        params: tuple = (date.isoformat(), actor.user_id, ROLE_USER)
        if service_id is not None:
            query += " AND u.id NOT IN (SELECT user_id FROM service_assignments WHERE service_id = ?)"
            params += (service_id,)
        query += " ORDER BY u.last_name, u.first_name"
        conn = get_connection()
        try:
            rows = conn.execute(query, params).fetchall()
        finally:
            conn.close()
        return [UserSummary(**dict(r)) for r in rows]
