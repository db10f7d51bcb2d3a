"""Account registration and profile management."""

from __future__ import annotations

import logging
import re
import uuid
from datetime import datetime, timezone

from email_validator import EmailNotValidError, validate_email

from .account import Account, Role, normalise_email
from .contracts import ProfileUpdateInput, RegistrationInput
from ..errors import (
    DuplicateEmail,
    DuplicatePhone,
    NotFound,
    UniquenessViolation,
    ValidationError,
)
from ..repository import AccountStore
from ..security.passwords import PasswordHasher

logger = logging.getLogger(__name__)

NAME_LENGTH = (2, 255)
PHONE_LENGTH = (10, 20)
PASSWORD_LENGTH = (8, 128)

_WHITESPACE = re.compile(r"\s+")


def split_name(
    full_name: str | None, first_name: str | None = None, last_name: str | None = None
) -> tuple[str, str]:
    """Split a display name into ``(first, last)``.

    When both ``first_name`` and ``last_name`` are given they are returned
    as-is. Otherwise the stored name is split on its first whitespace run and
    anything after it becomes the last name; a lone part is ignored.
    Multi-word first names cannot be recovered once merged.
    """
    if first_name is not None and last_name is not None:
        return first_name, last_name
    parts = _WHITESPACE.split((full_name or "").strip(), maxsplit=1)
    return parts[0], parts[1] if len(parts) > 1 else ""


def _check_length(errors: dict[str, str], field: str, value: str, bounds: tuple[int, int], label: str) -> None:
    low, high = bounds
    if not low <= len(value) <= high:
        errors[field] = f"{label} must be between {low} and {high} characters"


def _validate_registration(payload: RegistrationInput) -> Role:
    errors: dict[str, str] = {}
    if not payload.name or not payload.name.strip():
        errors["name"] = "Name is required"
    else:
        _check_length(errors, "name", payload.name.strip(), NAME_LENGTH, "Name")

    if not payload.email or not payload.email.strip():
        errors["email"] = "Email is required"
    else:
        try:
            validate_email(payload.email.strip(), check_deliverability=False)
        except EmailNotValidError:
            errors["email"] = "Invalid email format"

    if payload.phone is not None:
        _check_length(errors, "phone", payload.phone, PHONE_LENGTH, "Phone number")

    if not payload.password:
        errors["password"] = "Password is required"
    else:
        _check_length(errors, "password", payload.password, PASSWORD_LENGTH, "Password")

    if payload.role not in {role.value for role in Role}:
        errors["role"] = "Role is required"

    if errors:
        raise ValidationError(errors)
    return Role(payload.role)


class AccountDirectory:
    """Registers accounts and serves profile reads and updates."""

    def __init__(self, store: AccountStore, hasher: PasswordHasher) -> None:
        self._store = store
        self._hasher = hasher

    def register(self, payload: RegistrationInput, now: datetime | None = None) -> Account:
        """Create a new active, unverified account.

        The existence checks give early, friendly failures; the store's
        unique constraints decide races between concurrent registrations.
        """
        role = _validate_registration(payload)
        email = normalise_email(payload.email)
        phone = payload.phone or None

        if self._store.exists_by_email(email):
            logger.info("registration rejected, email already registered")
            raise DuplicateEmail()
        if phone is not None and self._store.exists_by_phone(phone):
            logger.info("registration rejected, phone already registered")
            raise DuplicatePhone()

        moment = now or datetime.now(timezone.utc)
        account = Account(
            account_id=str(uuid.uuid4()),
            email=email,
            password_hash=self._hasher.hash(payload.password),
            name=payload.name.strip(),
            role=role,
            created_at=moment,
            updated_at=moment,
            phone=phone,
            is_active=True,
            is_verified=False,
        )
        account = self._save(account)
        logger.info("registered account %s with role %s", account.account_id, role.value)
        return account

    def get_profile(self, account_id: str) -> Account:
        account = self._store.find_by_id(account_id)
        if account is None:
            raise NotFound()
        return account

    def update_profile(
        self, account_id: str, payload: ProfileUpdateInput, now: datetime | None = None
    ) -> Account:
        """Update name parts and phone. The email is never touched.

        The name is replaced only when both parts are supplied. A phone of
        ``None`` leaves the stored phone alone and an empty string clears it.
        """
        account = self.get_profile(account_id)

        if payload.phone == "":
            account.phone = None
        elif payload.phone is not None:
            errors: dict[str, str] = {}
            _check_length(errors, "phone", payload.phone, PHONE_LENGTH, "Phone number")
            if errors:
                raise ValidationError(errors)
            if payload.phone != account.phone and self._store.exists_by_phone(payload.phone):
                raise DuplicatePhone()
            account.phone = payload.phone

        if payload.first_name is not None and payload.last_name is not None:
            first, last = split_name(account.name, payload.first_name, payload.last_name)
            account.name = first + " " + last
        account.updated_at = now or datetime.now(timezone.utc)

        account = self._save(account)
        logger.info("updated profile for account %s", account.account_id)
        return account

    def _save(self, account: Account) -> Account:
        try:
            return self._store.save(account)
        except UniquenessViolation as exc:
            if exc.field == "phone":
                raise DuplicatePhone() from exc
            raise DuplicateEmail() from exc
