"""Issuing and validating the service's HS256-signed bearer tokens."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt
from pydantic import ValidationError as PydanticValidationError

from auth_schemas import REFRESH_TOKEN_TYPE, TokenClaims

from ..config import MIN_SECRET_BYTES
from ..errors import BadSignature, ConfigurationError, MalformedToken, TokenError

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
_REQUIRED_CLAIMS = ["iss", "sub", "email", "iat", "exp", "jti"]


def to_epoch(moment: datetime) -> int:
    """Seconds since the epoch, reading a naive ``moment`` as UTC."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return int(moment.timestamp())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenCodec:
    """Encode, sign, decode and verify access and refresh tokens.

    Tokens are stateless: validity depends only on the signature and the
    embedded ``exp``. There is no revocation state, so a leaked token stays
    usable until it expires.

    Parameters
    ----------
    secret:
        Shared HMAC key. Must be at least 32 bytes.
    issuer:
        Value written to and required in the ``iss`` claim.
    access_ttl:
        Lifetime of access tokens.
    refresh_ttl:
        Lifetime of refresh tokens.
    """

    def __init__(
        self,
        secret: str,
        *,
        issuer: str,
        access_ttl: timedelta,
        refresh_ttl: timedelta,
    ) -> None:
        if len(secret.encode("utf-8")) < MIN_SECRET_BYTES:
            raise ConfigurationError(
                f"JWT secret must be at least {MIN_SECRET_BYTES} bytes for {ALGORITHM}"
            )
        self._secret = secret
        self._issuer = issuer
        self._access_ttl = access_ttl
        self._refresh_ttl = refresh_ttl

    def __repr__(self) -> str:
        return f"TokenCodec(issuer={self._issuer!r})"

    @property
    def access_ttl_seconds(self) -> int:
        return int(self._access_ttl.total_seconds())

    def _encode(self, payload: dict[str, Any]) -> str:
        return jwt.encode(payload, self._secret, algorithm=ALGORITHM)

    def _base_claims(self, subject_id: str, email: str, now: datetime, ttl: timedelta) -> dict[str, Any]:
        return {
            "iss": self._issuer,
            "sub": subject_id,
            "email": email,
            "iat": to_epoch(now),
            "exp": to_epoch(now + ttl),
            "jti": str(uuid.uuid4()),
        }

    def issue_access(self, subject_id: str, email: str, role: str, now: datetime | None = None) -> str:
        """Mint an access token carrying the account's role."""
        payload = self._base_claims(subject_id, email, now or utcnow(), self._access_ttl)
        payload["role"] = role
        return self._encode(payload)

    def issue_refresh(self, subject_id: str, email: str, now: datetime | None = None) -> str:
        """Mint a refresh token. It carries no role and cannot authorize resource access."""
        payload = self._base_claims(subject_id, email, now or utcnow(), self._refresh_ttl)
        payload["token_type"] = REFRESH_TOKEN_TYPE
        return self._encode(payload)

    def decode(self, token: str) -> TokenClaims:
        """Verify the signature and return the claims without checking expiry.

        Raises
        ------
        BadSignature
            The token was not signed with this codec's secret.
        MalformedToken
            The token cannot be parsed or lacks required claims.
        """
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[ALGORITHM],
                issuer=self._issuer,
                options={
                    "verify_exp": False,
                    "verify_iat": False,
                    "verify_nbf": False,
                    "require": _REQUIRED_CLAIMS,
                },
            )
        except jwt.InvalidSignatureError as exc:
            raise BadSignature("signature verification failed") from exc
        except jwt.PyJWTError as exc:
            raise MalformedToken(str(exc)) from exc
        try:
            return TokenClaims.model_validate(payload)
        except PydanticValidationError as exc:
            raise MalformedToken("unexpected claim types") from exc

    def is_expired(self, token: str, now: datetime | None = None) -> bool:
        claims = self.decode(token)
        return claims.exp <= to_epoch(now or utcnow())

    def validate(self, token: str, expected_email: str, now: datetime | None = None) -> bool:
        """Return ``True`` iff the token is authentic, unexpired and issued to ``expected_email``."""
        try:
            claims = self.decode(token)
        except TokenError as exc:
            logger.debug("token rejected: %s", exc)
            return False
        if claims.email != expected_email:
            return False
        return claims.exp > to_epoch(now or utcnow())
