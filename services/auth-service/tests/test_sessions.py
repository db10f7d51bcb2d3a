from __future__ import annotations

import os
import time
from datetime import datetime, timedelta, timezone

import pytest

from auth_service.domain.contracts import RegistrationInput
from auth_service.errors import AccountDeactivated, InvalidCredentials, InvalidToken
from auth_service.security.passwords import PasswordHasher

from conftest import ACCESS_TTL, REFRESH_TTL

NOW = datetime(2030, 1, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def eastern_local_time():
    """Run with a non-UTC local zone so naive datetimes cannot pass by accident."""
    previous = os.environ.get("TZ")
    os.environ["TZ"] = "America/New_York"
    time.tzset()
    yield
    if previous is None:
        os.environ.pop("TZ", None)
    else:
        os.environ["TZ"] = previous
    time.tzset()


def _register_jane(sessions, now=NOW):
    return sessions.register(
        RegistrationInput(name="Jane", email="jane@x.com", password="Password123", role="STUDENT"),
        now=now,
    )


def test_register_then_login(sessions, codec):
    registered = _register_jane(sessions)

    assert registered.account.is_verified is False
    assert codec.validate(registered.access_token, "jane@x.com", NOW)
    assert codec.decode(registered.refresh_token).is_refresh

    later = NOW + timedelta(minutes=5)
    logged_in = sessions.login("jane@x.com", "Password123", now=later)

    assert logged_in.access_token != registered.access_token
    assert logged_in.refresh_token != registered.refresh_token
    assert logged_in.account.account_id == registered.account.account_id
    assert codec.decode(logged_in.access_token).role == "STUDENT"


def test_login_records_last_login(sessions, store):
    registered = _register_jane(sessions)
    later = NOW + timedelta(hours=1)

    sessions.login("jane@x.com", "Password123", now=later)

    stored = store.find_by_id(registered.account.account_id)
    assert stored.last_login_at == later
    assert stored.updated_at == later


def test_login_does_not_reactivate_account_disabled_mid_login(sessions, store, hasher, monkeypatch):
    account_id = _register_jane(sessions).account.account_id
    real_verify = hasher.verify

    def verify_then_disable(password, hashed_password):
        store.set_active(account_id, False)
        return real_verify(password, hashed_password)

    monkeypatch.setattr(hasher, "verify", verify_then_disable)
    later = NOW + timedelta(hours=1)

    sessions.login("jane@x.com", "Password123", now=later)

    stored = store.find_by_id(account_id)
    assert stored.is_active is False
    assert stored.last_login_at == later


def test_login_upgrades_hash_made_with_another_cost(sessions, store, hasher):
    account = store.find_by_id(_register_jane(sessions).account.account_id)
    account.password_hash = PasswordHasher(rounds=5).hash("Password123")
    store.save(account)

    sessions.login("jane@x.com", "Password123", now=NOW)

    upgraded = store.find_by_id(account.account_id).password_hash
    assert upgraded != account.password_hash
    assert not hasher.needs_rehash(upgraded)
    assert hasher.verify("Password123", upgraded)


def test_login_keeps_hash_at_current_cost(sessions, store):
    registered = _register_jane(sessions)

    sessions.login("jane@x.com", "Password123", now=NOW)

    stored = store.find_by_id(registered.account.account_id)
    assert stored.password_hash == registered.account.password_hash


def test_login_is_case_insensitive_on_email(sessions):
    _register_jane(sessions)

    assert sessions.login("JANE@X.COM", "Password123", now=NOW).account.email == "jane@x.com"


def test_wrong_password_and_unknown_email_fail_identically(sessions):
    _register_jane(sessions)

    with pytest.raises(InvalidCredentials) as wrong_password:
        sessions.login("jane@x.com", "WrongPass", now=NOW)
    with pytest.raises(InvalidCredentials) as unknown_email:
        sessions.login("nobody@x.com", "Password123", now=NOW)

    assert wrong_password.value.message == unknown_email.value.message
    assert wrong_password.value.code == unknown_email.value.code


def test_deactivated_account_cannot_login_even_with_correct_password(sessions, store):
    registered = _register_jane(sessions)
    store.set_active(registered.account.account_id, False)

    with pytest.raises(AccountDeactivated):
        sessions.login("jane@x.com", "Password123", now=NOW)


def test_failed_login_does_not_touch_last_login(sessions, store):
    registered = _register_jane(sessions)

    with pytest.raises(InvalidCredentials):
        sessions.login("jane@x.com", "WrongPass", now=NOW)

    assert store.find_by_id(registered.account.account_id).last_login_at is None


def test_expires_in_reports_configured_access_ttl(sessions):
    assert _register_jane(sessions).expires_in == int(ACCESS_TTL.total_seconds())


def test_refresh_rotates_and_original_stays_usable(sessions, codec):
    registered = _register_jane(sessions)
    later = NOW + timedelta(hours=2)

    refreshed = sessions.refresh(registered.refresh_token, now=later)

    assert codec.decode(refreshed.access_token).email == "jane@x.com"
    assert refreshed.refresh_token != registered.refresh_token
    # No revocation store: the original refresh token is still accepted.
    again = sessions.refresh(registered.refresh_token, now=later)
    assert again.account.email == "jane@x.com"


def test_refresh_rejects_expired_token(sessions):
    registered = _register_jane(sessions)

    with pytest.raises(InvalidToken):
        sessions.refresh(registered.refresh_token, now=NOW + REFRESH_TTL + timedelta(seconds=1))


def test_refresh_rejects_access_token(sessions):
    registered = _register_jane(sessions)

    with pytest.raises(InvalidToken):
        sessions.refresh(registered.access_token, now=NOW)


def test_refresh_rejects_garbage(sessions):
    with pytest.raises(InvalidToken):
        sessions.refresh("not-a-token", now=NOW)


def test_refresh_rejects_inactive_account(sessions, store):
    registered = _register_jane(sessions)
    store.set_active(registered.account.account_id, False)

    with pytest.raises(InvalidToken):
        sessions.refresh(registered.refresh_token, now=NOW)


def test_authenticate_access_accepts_only_live_access_tokens(sessions):
    registered = _register_jane(sessions)

    claims = sessions.authenticate_access(registered.access_token, now=NOW)
    assert claims.sub == registered.account.account_id

    with pytest.raises(InvalidToken):
        sessions.authenticate_access(registered.refresh_token, now=NOW)
    with pytest.raises(InvalidToken):
        sessions.authenticate_access(registered.access_token, now=NOW + ACCESS_TTL)


@pytest.mark.skipif(not hasattr(time, "tzset"), reason="needs time.tzset")
def test_naive_now_is_read_as_utc_for_issue_and_expiry(sessions, eastern_local_time):
    naive_now = NOW.replace(tzinfo=None)
    registered = _register_jane(sessions, now=naive_now)

    just_before = naive_now + ACCESS_TTL - timedelta(seconds=1)
    assert sessions.authenticate_access(registered.access_token, now=just_before).email == "jane@x.com"
    with pytest.raises(InvalidToken):
        sessions.authenticate_access(registered.access_token, now=naive_now + ACCESS_TTL)

    assert sessions.refresh(registered.refresh_token, now=naive_now + timedelta(days=6)).account
    with pytest.raises(InvalidToken):
        sessions.refresh(registered.refresh_token, now=naive_now + REFRESH_TTL)
