"""Pydantic model for a member's notification history."""

from typing import Any, Dict, Optional

from pydantic import BaseModel


class NotificationRead(BaseModel):
    id: int
    user_id: int
    type: str
    title: str
    message: str
    payload: Optional[Dict[str, Any]] = None
    created_at: str
