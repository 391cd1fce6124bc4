"""Assignment endpoints for API v1: a member's own assignments and their answers."""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from roster_api.app.core.security import Actor, get_current_user
from roster_api.app.schemas.assignment import AssignmentRead, AssignmentRespond
from roster_api.app.services.assignment_service import AssignmentService

router = APIRouter()


@router.get("/mine", response_model=List[AssignmentRead])
async def list_my_assignments(
    status: Optional[str] = Query(None, description="PENDING, CONFIRMED or DECLINED"),
    actor: Actor = Depends(get_current_user),
) -> List[AssignmentRead]:
    return await AssignmentService.list_for_user(actor, status=status)


@router.get("/{assignment_id}", response_model=AssignmentRead)
async def get_assignment(assignment_id: int, actor: Actor = Depends(get_current_user)) -> AssignmentRead:
    return await AssignmentService.get_assignment(assignment_id, actor)


@router.patch("/{assignment_id}", response_model=AssignmentRead)
async def respond_to_assignment(
    assignment_id: int,
    data: AssignmentRespond,
    actor: Actor = Depends(get_current_user),
) -> AssignmentRead:
    """Accept or decline an assignment.

    Declining requires a ``reason`` (400 otherwise).  Sending the same
    answer again returns the assignment unchanged; a different answer
    to an already answered assignment is a 409.
    """
    return await AssignmentService.respond(assignment_id, actor, data.action, data.reason)
