"""Account views shared with services that consume identity data."""

from __future__ import annotations

from datetime import datetime
from pydantic import BaseModel, EmailStr


class AccountView(BaseModel):
    """Public account summary returned alongside issued tokens."""

    id: str
    name: str
    email: EmailStr
    role: str
    is_verified: bool
    created_at: datetime


class ProfileView(BaseModel):
    id: str
    first_name: str
    last_name: str
    email: EmailStr
    phone: str | None = None
    role: str
    is_active: bool
    is_verified: bool
    created_at: datetime
    updated_at: datetime
