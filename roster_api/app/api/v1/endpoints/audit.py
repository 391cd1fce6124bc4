"""
Audit log endpoints for API v1.

Administrators can read the trail of roster actions (assignment
answers, swaps, availability changes, scheduling) filtered by user,
object type, action and date range.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from roster_api.app.core.security import Actor, require_admin
from roster_api.app.services.audit_service import AuditService

router = APIRouter()


@router.get("/logs")
async def list_audit_logs(
    user_id: Optional[int] = Query(None, description="Filter by acting user ID"),
    object_type: Optional[str] = Query(None, description="assignment, swap_request, availability, service, user"),
    action: Optional[str] = Query(None, description="Filter by action (accept, decline, swap_complete...)"),
    start_date: Optional[str] = Query(None, description="Start date (ISO format) for filtering"),
    end_date: Optional[str] = Query(None, description="End date (ISO format) for filtering"),
    limit: int = Query(100, ge=1, le=500, description="Maximum number of logs to return"),
    offset: int = Query(0, ge=0, description="Number of logs to skip"),
    actor: Actor = Depends(require_admin),
) -> List[dict]:
    return await AuditService.list_logs(
        user_id=user_id,
        object_type=object_type,
        action=action,
        start_date=start_date,
        end_date=end_date,
        limit=limit,
        offset=offset,
    )
