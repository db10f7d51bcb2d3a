from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class Role(str, Enum):
    STUDENT = "STUDENT"
    TEACHER = "TEACHER"
    ADMIN = "ADMIN"
    GUARDIAN = "GUARDIAN"
    CONTENT_CREATOR = "CONTENT_CREATOR"


@dataclass(slots=True)
class Account:
    """Aggregate root for a registered principal.

    ``email`` is stored normalised and never changes after registration;
    ``password_hash`` must not leave the core.
    """

    account_id: str
    email: str
    password_hash: str
    name: str
    role: Role
    created_at: datetime
    updated_at: datetime
    phone: str | None = None
    is_active: bool = True
    is_verified: bool = False
    last_login_at: datetime | None = None


def normalise_email(email: str) -> str:
    """Return the canonical form used for storage and lookups."""
    return email.strip().lower()
