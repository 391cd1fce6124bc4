"""
Availability ledger.

Each member keeps at most one entry per date saying whether they are
``available``, ``unavailable`` or ``busy`` (any letter case is
accepted).  Updates and deletes carry the owner in their ``WHERE``
clause, so a member can never touch another member's entry even if
the ownership check and the write race.
"""

import datetime
import logging
import sqlite3
from typing import Any, Dict, List, Optional

from roster_api.app.core.db import get_connection
from roster_api.app.core.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from roster_api.app.core.security import Actor
from roster_api.app.schemas.availability import AvailabilityCreate, AvailabilityRead, AvailabilityUpdate
from roster_api.app.services.audit_service import AuditService
from roster_api.app.services.rows import fetch_service

logger = logging.getLogger(__name__)

STATUSES = ("available", "unavailable", "busy")
DEFAULT_START = "09:00"
DEFAULT_END = "17:00"

_SELECT_AVAILABILITY = """
    SELECT av.id, av.user_id, av.date, av.start_time, av.end_time, av.status,
           av.notes, av.service_id, s.title AS service_title
    FROM availabilities av
    LEFT JOIN services s ON s.id = av.service_id
"""


def normalize_status(value: str) -> str:
    status = (value or "").strip().lower()
    if status not in STATUSES:
        raise ValidationError(f"Invalid availability status '{value}'; expected one of {', '.join(STATUSES)}")
    return status


def _check_time(value: str, field: str) -> str:
    try:
        parsed = datetime.datetime.strptime(value.strip(), "%H:%M")
    except (AttributeError, TypeError, ValueError) as e:
        raise ValidationError(f"{field} must be HH:MM") from e
    return parsed.strftime("%H:%M")


def _prepare(fields: Dict[str, Any], conn: sqlite3.Connection) -> Dict[str, Any]:
    """Normalize and validate the writable fields in place."""
    if "status" in fields:
        fields["status"] = normalize_status(fields["status"])
    if "date" in fields:
        fields["date"] = fields["date"].isoformat()
    for name in ("start_time", "end_time"):
        if fields.get(name) is not None:
            fields[name] = _check_time(fields[name], name)
    if fields.get("service_id") is not None and fetch_service(conn, fields["service_id"]) is None:
        raise NotFoundError("Service not found")
    return fields


def _select(conn: sqlite3.Connection, where: str, params: tuple) -> List[AvailabilityRead]:
    rows = conn.execute(f"{_SELECT_AVAILABILITY} WHERE {where} ORDER BY av.date, av.user_id", params).fetchall()
    return [AvailabilityRead(**dict(r)) for r in rows]


class AvailabilityService:
    """Service class for member availability."""

    @classmethod
    async def create(cls, actor: Actor, data: AvailabilityCreate) -> AvailabilityRead:
        """Add the actor's entry for a date; a second entry for the same date conflicts."""
        conn = get_connection()
        try:
            fields = _prepare(data.model_dump(), conn)
            start, end = fields["start_time"] or DEFAULT_START, fields["end_time"] or DEFAULT_END
            if end <= start:
                raise ValidationError("end_time must be after start_time")
            try:
                cursor = conn.execute(
                    """
                    INSERT INTO availabilities (user_id, date, start_time, end_time, status, notes, service_id)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (actor.user_id, fields["date"], start, end, fields["status"], fields["notes"], fields["service_id"]),
                )
            except sqlite3.IntegrityError as e:
                raise ConflictError("Availability already exists for this date") from e
            conn.commit()
            availability_id = cursor.lastrowid
        finally:
            conn.close()
        logger.info("User %s marked %s on %s", actor.user_id, fields["status"], fields["date"])
        await AuditService.log(
            user_id=actor.user_id,
            action="create",
            object_type="availability",
            object_id=availability_id,
            details={"date": fields["date"], "status": fields["status"]},
        )
        return await cls.get(availability_id, actor)

    @classmethod
    async def set_for_date(cls, actor: Actor, data: AvailabilityCreate) -> AvailabilityRead:
        """Create or replace the actor's entry for ``data.date``."""
        conn = get_connection()
        try:
            fields = _prepare(data.model_dump(), conn)
            start, end = fields["start_time"] or DEFAULT_START, fields["end_time"] or DEFAULT_END
            if end <= start:
                raise ValidationError("end_time must be after start_time")
            conn.execute(
                """
                INSERT INTO availabilities (user_id, date, start_time, end_time, status, notes, service_id)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(user_id, date) DO UPDATE SET
                    start_time = excluded.start_time,
                    end_time = excluded.end_time,
                    status = excluded.status,
                    notes = excluded.notes,
                    service_id = excluded.service_id,
                    updated_at = CURRENT_TIMESTAMP
                """,
                (actor.user_id, fields["date"], start, end, fields["status"], fields["notes"], fields["service_id"]),
            )
            conn.commit()
            found = _select(conn, "av.user_id = ? AND av.date = ?", (actor.user_id, fields["date"]))
        finally:
            conn.close()
        availability = found[0]
        await AuditService.log(
            user_id=actor.user_id,
            action="set",
            object_type="availability",
            object_id=availability.id,
            details={"date": fields["date"], "status": fields["status"]},
        )
        return availability

    @classmethod
    async def update(cls, availability_id: int, actor: Actor, data: AvailabilityUpdate) -> AvailabilityRead:
        """Change fields of the actor's own entry."""
        conn = get_connection()
        try:
            fields = {
                name: value
                for name, value in data.model_dump(exclude_unset=True).items()
                if value is not None or name in ("notes", "service_id")
            }
            fields = _prepare(fields, conn)
            if fields:
                assignments = ", ".join(f"{name} = ?" for name in fields)
                try:
                    cursor = conn.execute(
                        f"""
                        UPDATE availabilities
                        SET {assignments}, updated_at = CURRENT_TIMESTAMP
                        WHERE id = ? AND user_id = ?
                        """,
                        (*fields.values(), availability_id, actor.user_id),
                    )
                except sqlite3.IntegrityError as e:
                    raise ConflictError("Availability already exists for this date") from e
                if cursor.rowcount == 0:
                    raise cls._ownership_error(conn, availability_id)
                row = conn.execute(
                    "SELECT start_time, end_time FROM availabilities WHERE id = ?", (availability_id,)
                ).fetchone()
                if row["end_time"] <= row["start_time"]:
                    conn.rollback()
                    raise ValidationError("end_time must be after start_time")
                conn.commit()
            found = _select(conn, "av.id = ? AND av.user_id = ?", (availability_id, actor.user_id))
            if not found:
                raise cls._ownership_error(conn, availability_id)
        finally:
            conn.close()
        if fields:
            await AuditService.log(
                user_id=actor.user_id,
                action="update",
                object_type="availability",
                object_id=availability_id,
                details=fields,
            )
        return found[0]

    @classmethod
    async def delete(cls, availability_id: int, actor: Actor) -> None:
        """Remove the actor's own entry."""
        conn = get_connection()
        try:
            cursor = conn.execute(
                "DELETE FROM availabilities WHERE id = ? AND user_id = ?",
                (availability_id, actor.user_id),
            )
            if cursor.rowcount == 0:
                raise cls._ownership_error(conn, availability_id)
            conn.commit()
        finally:
            conn.close()
        await AuditService.log(
            user_id=actor.user_id,
            action="delete",
            object_type="availability",
            object_id=availability_id,
        )

    @classmethod
    async def get(cls, availability_id: int, actor: Actor) -> AvailabilityRead:
        conn = get_connection()
        try:
            found = _select(conn, "av.id = ?", (availability_id,))
        finally:
            conn.close()
        if not found:
            raise NotFoundError("Availability not found")
        if found[0].user_id != actor.user_id and not actor.is_admin:
            raise AuthorizationError("Not allowed to view this availability")
        return found[0]

    @classmethod
    async def list_for_user(
        cls,
        actor: Actor,
        start_date: Optional[datetime.date] = None,
        end_date: Optional[datetime.date] = None,
    ) -> List[AvailabilityRead]:
        """The actor's entries ordered by date, optionally within a range."""
        where = "av.user_id = ?"
        params: tuple = (actor.user_id,)
        if start_date:
            where += " AND av.date >= ?"
            params += (start_date.isoformat(),)
        if end_date:
            where += " AND av.date <= ?"
            params += (end_date.isoformat(),)
        conn = get_connection()
        try:
            return _select(conn, where, params)
        finally:
            conn.close()

    @classmethod
    async def list_all(
        cls,
        user_id: Optional[int] = None,
        date: Optional[datetime.date] = None,
    ) -> List[AvailabilityRead]:
        """Every member's entries, for administrators."""
        clauses = ["1 = 1"]
        params: tuple = ()
        if user_id is not None:
            clauses.append("av.user_id = ?")
            params += (user_id,)
        if date is not None:
            clauses.append("av.date = ?")
            params += (date.isoformat(),)
        conn = get_connection()
        try:
            return _select(conn, " AND ".join(clauses), params)
        finally:
            conn.close()

    @staticmethod
    def _ownership_error(conn: sqlite3.Connection, availability_id: int) -> Exception:
        row = conn.execute("SELECT user_id FROM availabilities WHERE id = ?", (availability_id,)).fetchone()
        if row is None:
            return NotFoundError("Availability not found")
        return AuthorizationError("Availability belongs to another user")
