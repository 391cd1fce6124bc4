"""
Pydantic models for service assignments.

An assignment binds one member to one role on one service.  The read
model carries the service title, date, time and location so that a
client can render a confirmation without a second request.
"""

import datetime
from typing import Optional

from pydantic import BaseModel, Field


class AssignmentCreate(BaseModel):
    user_id: int
    role: str = Field(..., min_length=1, description="Free-text role label, e.g. 'Sound'")


class AssignmentRespond(BaseModel):
    """Body of the assignee's answer.

    ``action`` is ``accept`` or ``decline``; a decline must carry a
    non-empty ``reason``.  Both rules are checked by the service so
    that the error vocabulary stays the same for every caller.
    """

    action: str
    reason: Optional[str] = None


class AssignmentRead(BaseModel):
    id: int
    service_id: int
    user_id: int
    role: str
    status: str
    decline_reason: Optional[str] = None
    service_title: Optional[str] = None
    service_date: Optional[datetime.date] = None
    service_time: Optional[str] = None
    service_location: Optional[str] = None
    # The assignee's own availability entry for the service date, if
    # any.  Informational only; it never blocks scheduling.
    availability_status: Optional[str] = None

    model_config = {
        "from_attributes": True,
    }
