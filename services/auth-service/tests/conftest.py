from __future__ import annotations

import dataclasses
from datetime import datetime, timedelta
from threading import Lock

import pytest
from fastapi.testclient import TestClient

from auth_service.config import Settings
from auth_service.domain.account import Account
from auth_service.domain.directory import AccountDirectory
from auth_service.domain.sessions import SessionIssuer
from auth_service.errors import UniquenessViolation
from auth_service.factory import create_app
from auth_service.security.passwords import PasswordHasher
from auth_service.security.rate_limiter import SlidingWindowRateLimiter
from auth_service.security.tokens import TokenCodec

SECRET = "test-secret-that-is-at-least-32-bytes-long"
ACCESS_TTL = timedelta(minutes=15)
REFRESH_TTL = timedelta(days=7)


class FakeAccountStore:
    """In-memory store enforcing the same unique constraints as Postgres."""

    def __init__(self) -> None:
        self._accounts: dict[str, Account] = {}
        self._lock = Lock()
        self.saves = 0

    def exists_by_email(self, email: str) -> bool:
        with self._lock:
            return any(a.email.lower() == email.lower() for a in self._accounts.values())

    def exists_by_phone(self, phone: str) -> bool:
        with self._lock:
            return any(a.phone == phone for a in self._accounts.values())

    def find_by_email(self, email: str) -> Account | None:
        with self._lock:
            for account in self._accounts.values():
                if account.email.lower() == email.lower():
                    return dataclasses.replace(account)
        return None

    def find_by_email_and_active(self, email: str) -> Account | None:
        account = self.find_by_email(email)
        if account is None or not account.is_active:
            return None
        return account

    def find_by_id(self, account_id: str) -> Account | None:
        with self._lock:
            account = self._accounts.get(account_id)
            return dataclasses.replace(account) if account else None

    def save(self, account: Account) -> Account:
        with self._lock:
            for other in self._accounts.values():
                if other.account_id == account.account_id:
                    continue
                if other.email.lower() == account.email.lower():
                    raise UniquenessViolation("email")
                if account.phone is not None and other.phone == account.phone:
                    raise UniquenessViolation("phone")
            self._accounts[account.account_id] = dataclasses.replace(account)
            self.saves += 1
            return dataclasses.replace(account)

    def record_login(
        self, account_id: str, at: datetime, password_hash: str | None = None
    ) -> None:
        with self._lock:
            account = self._accounts[account_id]
            account.last_login_at = at
            account.updated_at = at
            if password_hash is not None:
                account.password_hash = password_hash

    def set_active(self, account_id: str, active: bool) -> None:
        with self._lock:
            self._accounts[account_id].is_active = active


@pytest.fixture
def store() -> FakeAccountStore:
    return FakeAccountStore()


@pytest.fixture(scope="session")
def hasher() -> PasswordHasher:
    # Minimum bcrypt cost keeps the suite fast.
    return PasswordHasher(rounds=4)


@pytest.fixture
def codec() -> TokenCodec:
    return TokenCodec(SECRET, issuer="edubridge.test", access_ttl=ACCESS_TTL, refresh_ttl=REFRESH_TTL)


@pytest.fixture
def directory(store, hasher) -> AccountDirectory:
    return AccountDirectory(store, hasher)


@pytest.fixture
def sessions(store, directory, hasher, codec) -> SessionIssuer:
    return SessionIssuer(store, directory, hasher, codec)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        jwt_secret=SECRET,
        access_ttl_seconds=int(ACCESS_TTL.total_seconds()),
        refresh_ttl_seconds=int(REFRESH_TTL.total_seconds()),
        jwt_issuer="edubridge.test",
        bcrypt_rounds=4,
    )


@pytest.fixture
def api_client(settings, store):
    """Provide a FastAPI test client with isolated state."""
    app = create_app(
        settings,
        store=store,
        rate_limiter=SlidingWindowRateLimiter(max_requests=100, window_seconds=60),
    )
    with TestClient(app) as client:
        yield client
