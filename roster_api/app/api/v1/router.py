"""
Top-level router for version 1 of the API.

Aggregates the domain routers under one prefix.  When a new domain is
added, include its router here.
"""

from fastapi import APIRouter

from .endpoints import (
    assignments,
    audit,
    availability,
    notifications,
    services,
    swap_requests,
    users,
)

router = APIRouter()

router.include_router(users.router, prefix="/users", tags=["users"])
router.include_router(services.router, prefix="/services", tags=["services"])
router.include_router(assignments.router, prefix="/assignments", tags=["assignments"])
router.include_router(swap_requests.router, prefix="/swap-requests", tags=["swap-requests"])
router.include_router(availability.router, prefix="/availability", tags=["availability"])
router.include_router(notifications.router, prefix="/notifications", tags=["notifications"])
router.include_router(audit.router, prefix="/audit", tags=["audit"])
