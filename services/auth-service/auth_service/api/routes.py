"""HTTP route definitions for the auth service."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, EmailStr, Field

from auth_schemas import AccountView, ProfileView, TokenClaims

from .. import metrics
from ..domain.account import Account, Role
from ..domain.contracts import ProfileUpdateInput, RegistrationInput
from ..domain.directory import AccountDirectory, split_name
from ..domain.sessions import AuthResult, SessionIssuer
from ..errors import AuthServiceError, InvalidToken, TokenError
from ..security.rate_limiter import RateLimiter, throttle_key
from ..security.tokens import TokenCodec

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1")

bearer_scheme = HTTPBearer(auto_error=False)


class RegisterRequest(BaseModel):
    """Payload accepted when registering an account."""

    name: str = Field(..., min_length=2, max_length=255)
    email: EmailStr
    phone: str | None = Field(default=None, min_length=10, max_length=20)
    password: str = Field(..., min_length=8, max_length=128)
    role: Role


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class RefreshTokenRequest(BaseModel):
    """Request body for exchanging a refresh token for new credentials."""

    refresh_token: str = Field(..., min_length=1)


class UpdateProfileRequest(BaseModel):
    """Profile fields a caller may change. Unknown fields, email included, are dropped.

    An empty ``phone`` clears the stored number; its length is checked by the directory.
    """

    first_name: str | None = Field(default=None, max_length=255)
    last_name: str | None = Field(default=None, max_length=255)
    phone: str | None = Field(default=None, max_length=20)


class AuthResponse(BaseModel):
    """Token issuance response containing the bearer pair and the account view."""

    access_token: str
    refresh_token: str
    token_type: str = "Bearer"
    expires_in: int
    user: AccountView

    @classmethod
    def from_result(cls, result: AuthResult) -> "AuthResponse":
        return cls(
            access_token=result.access_token,
            refresh_token=result.refresh_token,
            token_type=result.token_type,
            expires_in=result.expires_in,
            user=account_view(result.account),
        )


def account_view(account: Account) -> AccountView:
    return AccountView(
        id=account.account_id,
        name=account.name,
        email=account.email,
        role=account.role.value,
        is_verified=account.is_verified,
        created_at=account.created_at,
    )


def profile_view(account: Account) -> ProfileView:
    first, last = split_name(account.name)
    return ProfileView(
        id=account.account_id,
        first_name=first,
        last_name=last,
        email=account.email,
        phone=account.phone,
        role=account.role.value,
        is_active=account.is_active,
        is_verified=account.is_verified,
        created_at=account.created_at,
        updated_at=account.updated_at,
    )


def get_sessions(request: Request) -> SessionIssuer:
    """Resolve the `SessionIssuer` stored on the FastAPI application state."""
    return request.app.state.session_issuer


def get_directory(request: Request) -> AccountDirectory:
    return request.app.state.account_directory


def get_rate_limiter(request: Request) -> RateLimiter:
    return request.app.state.rate_limiter


def get_token_codec(request: Request) -> TokenCodec:
    return request.app.state.token_codec


def _refresh_throttle_key(codec: TokenCodec, refresh_token: str) -> str:
    """Bucket refreshes per account so rotating tokens share one window."""
    try:
        subject = codec.decode(refresh_token).sub
    except TokenError:
        subject = refresh_token
    return throttle_key("refresh", subject)


def _enforce_rate_limit(limiter: RateLimiter, key: str) -> None:
    if not limiter.allow(key):
        logger.warning("rate limit exceeded for %s", key.partition(":")[0])
        raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail="rate limited")


def current_claims(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    sessions: SessionIssuer = Depends(get_sessions),
) -> TokenClaims:
    """Authenticate the bearer access token on protected routes."""
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise InvalidToken("Missing bearer token")
    return sessions.authenticate_access(credentials.credentials)


@router.post("/auth/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register(
    payload: RegisterRequest,
    sessions: SessionIssuer = Depends(get_sessions),
    limiter: RateLimiter = Depends(get_rate_limiter),
) -> AuthResponse:
    """Create an account and return its first token pair."""
    _enforce_rate_limit(limiter, throttle_key("register", payload.email))
    try:
        result = sessions.register(
            RegistrationInput(
                name=payload.name,
                email=payload.email,
                password=payload.password,
                role=payload.role,
                phone=payload.phone,
            )
        )
    except AuthServiceError as exc:
        metrics.REGISTRATIONS.labels(outcome=exc.code.lower()).inc()
        raise
    metrics.REGISTRATIONS.labels(outcome="success").inc()
    return AuthResponse.from_result(result)


@router.post("/auth/login", response_model=AuthResponse)
def login(
    payload: LoginRequest,
    sessions: SessionIssuer = Depends(get_sessions),
    limiter: RateLimiter = Depends(get_rate_limiter),
) -> AuthResponse:
    """Authenticate email and password credentials."""
    _enforce_rate_limit(limiter, throttle_key("login", payload.email))
    try:
        result = sessions.login(payload.email, payload.password)
    except AuthServiceError as exc:
        metrics.LOGINS.labels(outcome=exc.code.lower()).inc()
        raise
    metrics.LOGINS.labels(outcome="success").inc()
    return AuthResponse.from_result(result)


@router.post("/auth/refresh", response_model=AuthResponse)
def refresh(
    payload: RefreshTokenRequest,
    sessions: SessionIssuer = Depends(get_sessions),
    limiter: RateLimiter = Depends(get_rate_limiter),
    codec: TokenCodec = Depends(get_token_codec),
) -> AuthResponse:
    """Exchange a refresh token for a new access/refresh pair."""
    _enforce_rate_limit(limiter, _refresh_throttle_key(codec, payload.refresh_token))
    try:
        result = sessions.refresh(payload.refresh_token)
    except AuthServiceError as exc:
        metrics.TOKEN_REFRESHES.labels(outcome=exc.code.lower()).inc()
        raise
    metrics.TOKEN_REFRESHES.labels(outcome="success").inc()
    return AuthResponse.from_result(result)


@router.get("/profile", response_model=ProfileView)
def get_profile(
    claims: TokenClaims = Depends(current_claims),
    directory: AccountDirectory = Depends(get_directory),
) -> ProfileView:
    """Return the profile of the authenticated account."""
    return profile_view(directory.get_profile(claims.sub))


@router.put("/profile", response_model=ProfileView)
def update_profile(
    payload: UpdateProfileRequest,
    claims: TokenClaims = Depends(current_claims),
    directory: AccountDirectory = Depends(get_directory),
) -> ProfileView:
    """Update name parts and phone of the authenticated account."""
    account = directory.update_profile(
        claims.sub,
        ProfileUpdateInput(
            first_name=payload.first_name,
            last_name=payload.last_name,
            phone=payload.phone,
        ),
    )
    return profile_view(account)
