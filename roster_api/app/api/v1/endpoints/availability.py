"""
Availability endpoints for API v1.

Members manage their own entries; ``GET /availability/all`` gives
administrators everyone's.
"""

import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status

from roster_api.app.core.security import Actor, get_current_user, require_admin
from roster_api.app.schemas.availability import AvailabilityCreate, AvailabilityRead, AvailabilityUpdate
from roster_api.app.services.availability_service import AvailabilityService

router = APIRouter()


@router.post("/", response_model=AvailabilityRead, status_code=status.HTTP_201_CREATED)
async def create_availability(
    data: AvailabilityCreate,
    actor: Actor = Depends(get_current_user),
) -> AvailabilityRead:
    """Add an entry.  A second entry for the same date answers 409."""
    return await AvailabilityService.create(actor, data)


@router.put("/", response_model=AvailabilityRead)
async def set_availability(
    data: AvailabilityCreate,
    actor: Actor = Depends(get_current_user),
) -> AvailabilityRead:
    """Create or replace the caller's entry for ``data.date``."""
    return await AvailabilityService.set_for_date(actor, data)


@router.get("/", response_model=List[AvailabilityRead])
async def list_my_availability(
    start_date: Optional[datetime.date] = Query(None),
    end_date: Optional[datetime.date] = Query(None),
    actor: Actor = Depends(get_current_user),
) -> List[AvailabilityRead]:
    return await AvailabilityService.list_for_user(actor, start_date=start_date, end_date=end_date)


@router.get("/all", response_model=List[AvailabilityRead])
async def list_all_availability(
    user_id: Optional[int] = Query(None),
    date: Optional[datetime.date] = Query(None),
    actor: Actor = Depends(require_admin),
) -> List[AvailabilityRead]:
    return await AvailabilityService.list_all(user_id=user_id, date=date)


@router.get("/{availability_id}", response_model=AvailabilityRead)
async def get_availability(availability_id: int, actor: Actor = Depends(get_current_user)) -> AvailabilityRead:
    return await AvailabilityService.get(availability_id, actor)


@router.patch("/{availability_id}", response_model=AvailabilityRead)
async def update_availability(
    availability_id: int,
    data: AvailabilityUpdate,
    actor: Actor = Depends(get_current_user),
) -> AvailabilityRead:
    return await AvailabilityService.update(availability_id, actor, data)


@router.delete("/{availability_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_availability(availability_id: int, actor: Actor = Depends(get_current_user)) -> Response:
    await AvailabilityService.delete(availability_id, actor)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
