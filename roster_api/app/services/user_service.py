"""
Business logic for members.

Members register with an e-mail address (unique, also the login) and a
password stored as a PBKDF2 hash.  The first account ever created
becomes the super administrator; later self-registrations are regular
users, and only an administrator may hand out another role.
"""

import logging
import sqlite3
from typing import List, Optional

from roster_api.app.core.db import ROLE_SUPER_ADMIN, ROLE_USER, get_connection
from roster_api.app.core.errors import ConflictError, NotFoundError
from roster_api.app.core.security import Actor, hash_password, verify_password
from roster_api.app.schemas.user import UserCreate, UserRead, UserUpdate
from roster_api.app.services.audit_service import AuditService
from roster_api.app.services.rows import USER_COLUMNS

logger = logging.getLogger(__name__)


def _to_read(row) -> UserRead:
    return UserRead(
        id=row["id"],
        email=row["email"],
        first_name=row["first_name"],
        last_name=row["last_name"],
        phone=row["phone"],
        department=row["department"],
        role_id=row["role_id"],
        disabled=bool(row["disabled"]),
    )


class UserService:
    """Service class for member accounts."""

    @classmethod
    async def create_user(cls, data: UserCreate, actor: Optional[Actor] = None) -> UserRead:
        """Register a member.

        ``data.role_id`` is only honoured when ``actor`` is an
        administrator.  A duplicate e-mail raises ``ConflictError``.
        """
        logger.info("Registering user %s", data.email)
        email = data.email.strip().lower()
        conn = get_connection()
        try:
            cursor = conn.cursor()
            row = cursor.execute("SELECT COUNT(*) AS count FROM users").fetchone()
            if row["count"] == 0:
                role_id = ROLE_SUPER_ADMIN
            elif actor is not None and actor.is_admin and data.role_id:
                role_id = data.role_id
            else:
                role_id = ROLE_USER
            try:
                cursor.execute(
                    """
                    INSERT INTO users (email, first_name, last_name, phone, department, password, role_id)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        email,
                        data.first_name,
                        data.last_name,
                        data.phone,
                        data.department,
                        hash_password(data.password),
                        role_id,
                    ),
                )
            except sqlite3.IntegrityError as e:
                conn.rollback()
                raise ConflictError("Email already registered") from e
            user_id = cursor.lastrowid
            conn.commit()
        finally:
            conn.close()

        await AuditService.log(
            user_id=actor.user_id if actor else None,
            action="create",
            object_type="user",
            object_id=user_id,
            details={"email": email, "role_id": role_id},
        )
        return await cls.get_user(user_id)

    @classmethod
    async def authenticate(cls, email: str, password: str) -> Optional[UserRead]:
        """Return the member if the credentials match and the account is active."""
        conn = get_connection()
        try:
            row = conn.execute(
                f"SELECT {USER_COLUMNS}, password FROM users WHERE email = ?",
                (email.strip().lower(),),
            ).fetchone()
        finally:
            conn.close()
        if not row or row["disabled"]:
            return None
        if not verify_password(password, row["password"]):
            logger.info("Failed login for %s", email)
            return None
        return _to_read(row)

    @classmethod
    async def get_user(cls, user_id: int) -> UserRead:
        conn = get_connection()
        try:
            row = conn.execute(f"SELECT {USER_COLUMNS} FROM users WHERE id = ?", (user_id,)).fetchone()
        finally:
            conn.close()
        if not row:
            raise NotFoundError("User not found")
        return _to_read(row)

    @classmethod
    async def list_users(cls, department: Optional[str] = None) -> List[UserRead]:
        """Return all members ordered by name, optionally for one department."""
        query = f"SELECT {USER_COLUMNS} FROM users"
        params: tuple = ()
        if department:
            query += " WHERE department = ?"
            params = (department,)
        query += " ORDER BY last_name, first_name, id"
        conn = get_connection()
        try:
            rows = conn.execute(query, params).fetchall()
        finally:
            conn.close()
        return [_to_read(r) for r in rows]

    @classmethod
    async def update_profile(cls, actor: Actor, data: UserUpdate) -> UserRead:
        """Change the actor's own profile fields."""
        fields = data.model_dump(exclude_unset=True)
        if fields:
            assignments = ", ".join(f"{name} = ?" for name in fields)
            conn = get_connection()
            try:
                cursor = conn.execute(
                    f"UPDATE users SET {assignments}, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
                    (*fields.values(), actor.user_id),
                )
                conn.commit()
            finally:
                conn.close()
            if cursor.rowcount == 0:
                raise NotFoundError("User not found")
            await AuditService.log(
                user_id=actor.user_id,
                action="update",
                object_type="user",
                object_id=actor.user_id,
                details=fields,
            )
        return await cls.get_user(actor.user_id)
