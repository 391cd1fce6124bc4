"""
Pydantic models for the availability ledger.

``status`` is accepted in any letter case and normalized by the
service to ``available``, ``unavailable`` or ``busy``.
"""

import datetime
from typing import Optional

from pydantic import BaseModel, Field


class AvailabilityCreate(BaseModel):
    date: datetime.date
    status: str
    start_time: Optional[str] = Field(None, description="HH:MM, defaults to 09:00")
    end_time: Optional[str] = Field(None, description="HH:MM, defaults to 17:00")
    notes: Optional[str] = None
    service_id: Optional[int] = None


class AvailabilityUpdate(BaseModel):
    """All fields optional; only the supplied ones change."""

    date: Optional[datetime.date] = None
    status: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    notes: Optional[str] = None
    service_id: Optional[int] = None


class AvailabilityRead(BaseModel):
    id: int
    user_id: int
    date: datetime.date
    start_time: str
    end_time: str
    status: str
    notes: Optional[str] = None
    service_id: Optional[int] = None
    service_title: Optional[str] = None
