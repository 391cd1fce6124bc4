"""
Small read helpers shared by the services.

They take an open connection so the caller decides whether the read
belongs to a transaction, and return plain dicts (or ``None``) that
can be handed straight to the notification templates.
"""

import sqlite3
from typing import Any, Dict, List, Optional

from roster_api.app.core.db import ADMIN_ROLES

USER_COLUMNS = "id, email, first_name, last_name, phone, department, role_id, disabled"
SERVICE_COLUMNS = "id, title, description, date, time, location, status"
ASSIGNMENT_COLUMNS = "id, service_id, user_id, role, status, decline_reason, version"


def _one(conn: sqlite3.Connection, sql: str, params: tuple) -> Optional[Dict[str, Any]]:
    row = conn.execute(sql, params).fetchone()
    return dict(row) if row else None


def fetch_user(conn: sqlite3.Connection, user_id: int) -> Optional[Dict[str, Any]]:
    return _one(conn, f"SELECT {USER_COLUMNS} FROM users WHERE id = ?", (user_id,))


def fetch_service(conn: sqlite3.Connection, service_id: int) -> Optional[Dict[str, Any]]:
    return _one(conn, f"SELECT {SERVICE_COLUMNS} FROM services WHERE id = ?", (service_id,))


def fetch_assignment(conn: sqlite3.Connection, assignment_id: int) -> Optional[Dict[str, Any]]:
    return _one(conn, f"SELECT {ASSIGNMENT_COLUMNS} FROM service_assignments WHERE id = ?", (assignment_id,))


def fetch_slot(conn: sqlite3.Connection, service_id: int, user_id: int) -> Optional[Dict[str, Any]]:
    """The assignment a user holds on a service, if any."""
    return _one(
        conn,
        f"SELECT {ASSIGNMENT_COLUMNS} FROM service_assignments WHERE service_id = ? AND user_id = ?",
        (service_id, user_id),
    )


def fetch_admins(conn: sqlite3.Connection) -> List[Dict[str, Any]]:
    placeholders = ", ".join("?" for _ in ADMIN_ROLES)
    rows = conn.execute(
        f"SELECT {USER_COLUMNS} FROM users WHERE role_id IN ({placeholders}) AND disabled = 0",
        ADMIN_ROLES,
    ).fetchall()
    return [dict(r) for r in rows]
