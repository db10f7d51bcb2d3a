"""Domain-level request contracts shared by multiple layers."""

from __future__ import annotations

from dataclasses import dataclass

from .account import Role


@dataclass(slots=True)
class RegistrationInput:
    """Inputs required to register a new account."""

    name: str
    email: str
    password: str
    role: Role | str
    phone: str | None = None


@dataclass(slots=True)
class ProfileUpdateInput:
    """Mutable profile fields. Email is deliberately absent."""

    first_name: str | None = None
    last_name: str | None = None
    phone: str | None = None
