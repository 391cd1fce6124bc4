"""
Pydantic models for swap requests.

A swap request offers the role ``from_user`` holds on a service to
``to_user``.  It is ``pending`` until the target answers and then
``accepted`` or ``declined`` for good.
"""

import datetime
from typing import Optional

from pydantic import BaseModel, Field

from .user import UserSummary


class SwapRequestCreate(BaseModel):
    to_user_id: int
    service_id: int
    # Defaults to the service date when omitted.
    date: Optional[datetime.date] = None
    message: Optional[str] = Field(None, max_length=1000)


class SwapRequestRespond(BaseModel):
    decision: str = Field(..., description="accept or decline")


class SwapRequestRead(BaseModel):
    id: int
    from_user: UserSummary
    to_user: UserSummary
    service_id: int
    service_title: Optional[str] = None
    date: datetime.date
    status: str
    message: Optional[str] = None
    created_at: Optional[str] = None
    responded_at: Optional[str] = None
