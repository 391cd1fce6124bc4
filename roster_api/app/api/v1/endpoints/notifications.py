"""Notification endpoints for API v1: the caller's inbox, newest first."""

from typing import List

from fastapi import APIRouter, Depends, Query

from roster_api.app.core.config import settings
from roster_api.app.core.security import Actor, get_current_user
from roster_api.app.schemas.notification import NotificationRead
from roster_api.app.services.notification_service import NotificationService

router = APIRouter()


@router.get("/", response_model=List[NotificationRead])
async def list_my_notifications(
    limit: int = Query(settings.notification_history_limit, ge=1, le=settings.notification_history_limit),
    actor: Actor = Depends(get_current_user),
) -> List[NotificationRead]:
    return await NotificationService.list_for_user(actor, limit=limit)
