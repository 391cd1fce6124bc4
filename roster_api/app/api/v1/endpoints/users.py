"""
User endpoints for API v1.

Registration and login are public.  Registering while authenticated as
an administrator lets the caller pick the new account's role.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from roster_api.app.core.errors import AuthenticationError
from roster_api.app.core.security import (
    Actor,
    create_access_token,
    get_current_user,
    get_optional_user,
    require_admin,
)
from roster_api.app.schemas.user import UserCreate, UserLogin, UserRead, UserUpdate
from roster_api.app.services.user_service import UserService

router = APIRouter()


@router.post("/", response_model=UserRead, status_code=status.HTTP_201_CREATED)
async def register_user(user: UserCreate, actor: Optional[Actor] = Depends(get_optional_user)) -> UserRead:
    """Register a member.  A duplicate e-mail answers 409."""
    return await UserService.create_user(user, actor)


@router.post("/login")
async def login_user(credentials: UserLogin) -> dict:
    """Exchange e-mail and password for a bearer token."""
    db_user = await UserService.authenticate(credentials.email, credentials.password)
    if not db_user:
        raise AuthenticationError("Invalid credentials")
    token = create_access_token({"sub": db_user.email})
    return {"access_token": token, "token_type": "bearer"}


@router.get("/me", response_model=UserRead)
async def read_me(actor: Actor = Depends(get_current_user)) -> UserRead:
    return await UserService.get_user(actor.user_id)


@router.patch("/me", response_model=UserRead)
async def update_me(data: UserUpdate, actor: Actor = Depends(get_current_user)) -> UserRead:
    return await UserService.update_profile(actor, data)


@router.get("/", response_model=List[UserRead])
async def list_users(
    department: Optional[str] = Query(None, description="Only members of this department"),
    actor: Actor = Depends(require_admin),
) -> List[UserRead]:
    return await UserService.list_users(department=department)


@router.get("/{user_id}", response_model=UserRead)
async def get_user(user_id: int, actor: Actor = Depends(require_admin)) -> UserRead:
    return await UserService.get_user(user_id)
