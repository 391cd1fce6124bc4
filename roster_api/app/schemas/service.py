"""
Pydantic models for services (scheduled events).

A service is created as ``DRAFT``, then ``PUBLISHED`` or
``CANCELLED``.  Its assignments are nested in the read model.
"""

import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from .assignment import AssignmentCreate, AssignmentRead


class ServiceBase(BaseModel):
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    date: datetime.date
    time: str = Field(..., description="Start time, HH:MM")
    location: str = Field(..., min_length=1)


class ServiceCreate(ServiceBase):
    status: str = Field("DRAFT", description="DRAFT, PUBLISHED or CANCELLED")
    assignments: List[AssignmentCreate] = Field(default_factory=list)


class ServiceStatusUpdate(BaseModel):
    status: str


class ServiceRead(ServiceBase):
    id: int
    status: str
    assignments: List[AssignmentRead] = Field(default_factory=list)

    model_config = {
        "from_attributes": True,
    }
