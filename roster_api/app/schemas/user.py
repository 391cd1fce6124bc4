"""
Pydantic models for members of the organization.

Passwords are accepted on creation and login only and are never
returned.  ``UserSummary`` is the short form embedded in swap requests
and candidate lists.
"""

from typing import Optional

from pydantic import BaseModel, Field


class UserBase(BaseModel):
    email: str = Field(..., description="Unique e-mail address, also the login")
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    phone: Optional[str] = Field(None, description="Mobile number for SMS notifications")
    department: Optional[str] = None


class UserCreate(UserBase):
    """Schema for registering a member.

    ``role_id`` is honoured only when an administrator creates the
    account; self-registration always yields a regular user (the very
    first account becomes the super administrator).
    """

    password: str = Field(..., min_length=6)
    role_id: Optional[int] = Field(None, ge=1, le=3)


class UserLogin(BaseModel):
    email: str
    password: str


class UserUpdate(BaseModel):
    """Profile fields a member may change on their own record."""

    first_name: Optional[str] = Field(None, min_length=1)
    last_name: Optional[str] = Field(None, min_length=1)
    phone: Optional[str] = None
    department: Optional[str] = None


class UserRead(UserBase):
    id: int
    role_id: int
    disabled: bool = False

    model_config = {
        "from_attributes": True,
    }


class UserSummary(BaseModel):
    id: int
    first_name: str
    last_name: str
    email: str
