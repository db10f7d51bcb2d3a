"""Login, registration and refresh flows that end in a freshly issued token pair."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from auth_schemas import TokenClaims

from .account import Account, normalise_email
from .contracts import RegistrationInput
from .directory import AccountDirectory
from ..errors import AccountDeactivated, InvalidCredentials, InvalidToken, TokenError
from ..repository import AccountStore
from ..security.passwords import PasswordHasher
from ..security.tokens import TokenCodec, to_epoch

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class AuthResult:
    """Encapsulates the access/refresh token pair returned to API consumers."""

    access_token: str
    refresh_token: str
    expires_in: int
    account: Account
    token_type: str = "Bearer"


class SessionIssuer:
    """Authenticates principals and mints token pairs.

    An attempt moves through credential check, account-state check and token
    issuance; each gate raises a typed error and nothing is issued on failure.
    """

    def __init__(
        self,
        store: AccountStore,
        directory: AccountDirectory,
        hasher: PasswordHasher,
        codec: TokenCodec,
    ) -> None:
        self._store = store
        self._directory = directory
        self._hasher = hasher
        self._codec = codec

    def login(self, email: str, password: str, now: datetime | None = None) -> AuthResult:
        moment = now or datetime.now(timezone.utc)
        account = self._store.find_by_email(normalise_email(email))
        if account is None:
            self._hasher.dummy_verify(password)
            logger.warning("login failed: unknown email")
            raise InvalidCredentials()

        if not account.is_active:
            logger.warning("login refused for deactivated account %s", account.account_id)
            raise AccountDeactivated()

        if not self._hasher.verify(password, account.password_hash):
            logger.warning("login failed: bad password for account %s", account.account_id)
            raise InvalidCredentials()

        new_hash = None
        if self._hasher.needs_rehash(account.password_hash):
            new_hash = self._hasher.hash(password)
            logger.info("upgrading password hash cost for account %s", account.account_id)

        # Touches only the login columns; other fields may have changed since the read.
        self._store.record_login(account.account_id, moment, password_hash=new_hash)
        account.last_login_at = moment
        account.updated_at = moment
        if new_hash is not None:
            account.password_hash = new_hash

        logger.info("account %s logged in", account.account_id)
        return self._issue(account, moment)

    def register(self, payload: RegistrationInput, now: datetime | None = None) -> AuthResult:
        moment = now or datetime.now(timezone.utc)
        account = self._directory.register(payload, now=moment)
        return self._issue(account, moment)

    def refresh(self, refresh_token: str, now: datetime | None = None) -> AuthResult:
        """Exchange a refresh token for a new pair.

        The presented token is not invalidated and stays usable until its own
        expiry; there is no revocation store.
        """
        moment = now or datetime.now(timezone.utc)
        try:
            claims = self._codec.decode(refresh_token)
        except TokenError as exc:
            logger.warning("refresh rejected: %s", exc)
            raise InvalidToken("Invalid or expired refresh token") from exc

        if not claims.is_refresh:
            logger.warning("refresh rejected: not a refresh token")
            raise InvalidToken("Invalid or expired refresh token")
        if claims.exp <= to_epoch(moment):
            logger.info("refresh rejected: token expired")
            raise InvalidToken("Invalid or expired refresh token")

        account = self._store.find_by_email_and_active(claims.email)
        if account is None:
            logger.warning("refresh rejected: account missing or inactive")
            raise InvalidToken("User not found or inactive")

        logger.info("refreshed tokens for account %s", account.account_id)
        return self._issue(account, moment)

    def authenticate_access(self, access_token: str, now: datetime | None = None) -> TokenClaims:
        """Return the claims of a valid, unexpired access token."""
        moment = now or datetime.now(timezone.utc)
        try:
            claims = self._codec.decode(access_token)
        except TokenError as exc:
            raise InvalidToken() from exc
        if claims.is_refresh or claims.role is None:
            raise InvalidToken()
        if claims.exp <= to_epoch(moment):
            raise InvalidToken()
        return claims

    def _issue(self, account: Account, now: datetime) -> AuthResult:
        return AuthResult(
            access_token=self._codec.issue_access(
                account.account_id, account.email, account.role.value, now
            ),
            refresh_token=self._codec.issue_refresh(account.account_id, account.email, now),
            expires_in=self._codec.access_ttl_seconds,
            account=account,
        )
