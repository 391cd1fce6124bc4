"""
Swap request endpoints for API v1.

Members create swap requests for their own assignments and answer the
ones addressed to them.  ``GET /swap-requests/admin`` lists accepted
swaps for administrators.
"""

import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from roster_api.app.core.security import Actor, get_current_user, require_admin
from roster_api.app.schemas.swap import SwapRequestCreate, SwapRequestRead, SwapRequestRespond
from roster_api.app.schemas.user import UserSummary
from roster_api.app.services.swap_service import SwapService

router = APIRouter()


@router.post("/", response_model=SwapRequestRead, status_code=status.HTTP_201_CREATED)
async def create_swap_request(
    data: SwapRequestCreate,
    actor: Actor = Depends(get_current_user),
) -> SwapRequestRead:
    return await SwapService.create_swap_request(
        actor,
        to_user_id=data.to_user_id,
        service_id=data.service_id,
        date=data.date,
        message=data.message,
    )


@router.get("/", response_model=List[SwapRequestRead])
async def list_my_swap_requests(actor: Actor = Depends(get_current_user)) -> List[SwapRequestRead]:
    """Swap requests the caller sent or received, newest first."""
    return await SwapService.list_for_user(actor)


@router.get("/candidates", response_model=List[UserSummary])
async def list_swap_candidates(
    date: datetime.date = Query(..., description="Date the colleague must be available"),
    service_id: Optional[int] = Query(None, description="Leave out members already on this service"),
    actor: Actor = Depends(get_current_user),
) -> List[UserSummary]:
    return await SwapService.find_candidates(actor, date, service_id=service_id)


@router.get("/admin", response_model=List[SwapRequestRead])
async def list_accepted_swaps(
    service_id: Optional[int] = Query(None),
    actor: Actor = Depends(require_admin),
) -> List[SwapRequestRead]:
    return await SwapService.list_admin_visible(service_id=service_id)


@router.get("/{swap_id}", response_model=SwapRequestRead)
async def get_swap_request(swap_id: int, actor: Actor = Depends(get_current_user)) -> SwapRequestRead:
    return await SwapService.get_swap_request(swap_id, actor)


@router.patch("/{swap_id}", response_model=SwapRequestRead)
async def respond_to_swap_request(
    swap_id: int,
    data: SwapRequestRespond,
    actor: Actor = Depends(get_current_user),
) -> SwapRequestRead:
    """Accept or decline a swap addressed to the caller.

    Accepting moves the requester's assignment to the caller, back in
    ``PENDING`` for the caller to confirm.
    """
    return await SwapService.respond_to_swap(swap_id, actor, data.decision)
