"""
Service (scheduled event) endpoints for API v1.

Any member may read the schedule; creating, changing and deleting
services and their assignments is reserved to administrators.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status

from roster_api.app.core.security import Actor, get_current_user, require_admin
from roster_api.app.schemas.assignment import AssignmentCreate, AssignmentRead
from roster_api.app.schemas.service import ServiceCreate, ServiceRead, ServiceStatusUpdate
from roster_api.app.services.schedule_service import ScheduleService

router = APIRouter()


@router.post("/", response_model=ServiceRead, status_code=status.HTTP_201_CREATED)
async def create_service(data: ServiceCreate, actor: Actor = Depends(require_admin)) -> ServiceRead:
    return await ScheduleService.create_service(actor, data)


@router.get("/", response_model=List[ServiceRead])
async def list_services(
    status_filter: Optional[str] = Query(None, alias="status", description="DRAFT, PUBLISHED or CANCELLED"),
    start_date: Optional[str] = Query(None, description="Earliest service date (YYYY-MM-DD)"),
    end_date: Optional[str] = Query(None, description="Latest service date (YYYY-MM-DD)"),
    actor: Actor = Depends(get_current_user),
) -> List[ServiceRead]:
    return await ScheduleService.list_services(status=status_filter, start_date=start_date, end_date=end_date)


@router.get("/{service_id}", response_model=ServiceRead)
async def get_service(service_id: int, actor: Actor = Depends(get_current_user)) -> ServiceRead:
    return await ScheduleService.get_service(service_id)


@router.patch("/{service_id}/status", response_model=ServiceRead)
async def update_service_status(
    service_id: int,
    data: ServiceStatusUpdate,
    actor: Actor = Depends(require_admin),
) -> ServiceRead:
    """Publish or cancel a service.  Cancelling notifies every assignee."""
    return await ScheduleService.update_service_status(service_id, actor, data.status)


@router.delete("/{service_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_service(service_id: int, actor: Actor = Depends(require_admin)) -> Response:
    await ScheduleService.delete_service(service_id, actor)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{service_id}/assignments",
    response_model=AssignmentRead,
    status_code=status.HTTP_201_CREATED,
)
async def add_assignment(
    service_id: int,
    data: AssignmentCreate,
    actor: Actor = Depends(require_admin),
) -> AssignmentRead:
    """Assign a member to a role.

    The response's ``availability_status`` shows what the member
    entered for the service date, if anything.
    """
    return await ScheduleService.add_assignment(service_id, actor, data)


@router.delete("/{service_id}/assignments/{assignment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_assignment(
    service_id: int,
    assignment_id: int,
    actor: Actor = Depends(require_admin),
) -> Response:
    await ScheduleService.remove_assignment(service_id, assignment_id, actor)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
