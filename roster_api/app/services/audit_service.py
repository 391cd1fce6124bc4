"""
Audit trail of roster actions.

Every state transition (assignment answered, swap requested or
answered, availability changed, service scheduled) is written to the
``audit_logs`` table with the acting user and a JSON ``details``
column.  Writing happens after the transition has committed, so a
failed audit insert is logged and does not undo the transition.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from typing import Any, Dict, List, Optional

from roster_api.app.core.db import get_connection

logger = logging.getLogger(__name__)


class AuditService:
    """Service class for writing and reading audit records."""

    @classmethod
    async def log(
        cls,
        user_id: Optional[int],
        action: str,
        object_type: str,
        object_id: Optional[int] = None,
        details: Optional[dict] = None,
    ) -> None:
        """Insert an audit record.

        Parameters
        ----------
        user_id : Optional[int]
            Acting user; ``None`` for system actions.
        action : str
            Verb such as ``"accept"``, ``"decline"``, ``"swap_complete"``.
        object_type : str
            ``"assignment"``, ``"swap_request"``, ``"availability"``...
        object_id : Optional[int]
            Primary key of the affected row.
        details : Optional[dict]
            Extra structured data, stored as JSON.
        """
        conn = get_connection()
        try:
            conn.execute(
                """
                INSERT INTO audit_logs (user_id, action, object_type, object_id, details)
                VALUES (?, ?, ?, ?, ?)
                """,
                (user_id, action, object_type, object_id, json.dumps(details) if details else None),
            )
            conn.commit()
        except sqlite3.Error:
            logger.exception("Failed to write audit record %s %s %s", action, object_type, object_id)
        finally:
            conn.close()

    @classmethod
    async def list_logs(
        cls,
        user_id: Optional[int] = None,
        object_type: Optional[str] = None,
        action: Optional[str] = None,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Dict[str, Any]]:
        """Return audit records, newest first, with optional filters.

        Date filters take ISO strings and apply to ``timestamp``.
        """
        where_clauses: List[str] = []
        params: List[Any] = []
        if user_id is not None:
            where_clauses.append("user_id = ?")
            params.append(user_id)
        if object_type:
            where_clauses.append("object_type = ?")
            params.append(object_type)
        if action:
            where_clauses.append("action = ?")
            params.append(action)
        if start_date:
            where_clauses.append("timestamp >= ?")
            params.append(start_date)
        if end_date:
            where_clauses.append("timestamp <= ?")
            params.append(end_date)
        query = "SELECT id, user_id, action, object_type, object_id, timestamp, details FROM audit_logs"
        if where_clauses:
            query += " WHERE " + " AND ".join(where_clauses)
        query += " ORDER BY timestamp DESC, id DESC LIMIT ? OFFSET ?"
        params.extend([limit, offset])

        conn = get_connection()
        try:
            rows = conn.execute(query, tuple(params)).fetchall()
        finally:
            conn.close()
        logs = []
        for row in rows:
            details = None
            if row["details"]:
                try:
                    details = json.loads(row["details"])
                except json.JSONDecodeError:
                    details = row["details"]
            logs.append(
                {
                    "id": row["id"],
                    "user_id": row["user_id"],
                    "action": row["action"],
                    "object_type": row["object_type"],
                    "object_id": row["object_id"],
                    "timestamp": row["timestamp"],
                    "details": details,
                }
            )
        return logs
