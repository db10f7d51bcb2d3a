"""Claim contract for bearer tokens minted by the auth service.

Any service holding the shared signing secret can verify a token and load its
payload into :class:`TokenClaims` without calling back to the auth service.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

REFRESH_TOKEN_TYPE = "refresh"


class TokenClaims(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    iss: str
    sub: str
    email: str
    iat: int
    exp: int
    jti: str
    role: str | None = None
    token_type: str | None = None

    @property
    def is_refresh(self) -> bool:
        return self.token_type == REFRESH_TOKEN_TYPE
