"""FastAPI application wiring for the auth service."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import timedelta

from fastapi import FastAPI, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from psycopg_pool import ConnectionPool

from .api.routes import router as v1_router
from .config import Settings
from .domain.directory import AccountDirectory
from .domain.sessions import SessionIssuer
from .errors import AuthServiceError, ErrorCategory, ValidationError
from .repository import AccountStore, PostgresAccountStore
from .security.passwords import PasswordHasher
from .security.rate_limiter import RateLimiter, build_rate_limiter
from .security.tokens import TokenCodec

logger = logging.getLogger(__name__)

STATUS_BY_CATEGORY = {
    ErrorCategory.conflict: status.HTTP_409_CONFLICT,
    ErrorCategory.unauthorized: status.HTTP_401_UNAUTHORIZED,
    ErrorCategory.forbidden: status.HTTP_403_FORBIDDEN,
    ErrorCategory.not_found: status.HTTP_404_NOT_FOUND,
    ErrorCategory.validation: status.HTTP_400_BAD_REQUEST,
    ErrorCategory.internal: status.HTTP_500_INTERNAL_SERVER_ERROR,
}

GENERIC_ERROR_MESSAGE = "An unexpected error occurred. Please try again later."


def _wire_services(app: FastAPI, settings: Settings, store: AccountStore) -> None:
    hasher = PasswordHasher(rounds=settings.bcrypt_rounds)
    codec = TokenCodec(
        settings.jwt_secret,
        issuer=settings.jwt_issuer,
        access_ttl=timedelta(seconds=settings.access_ttl_seconds),
        refresh_ttl=timedelta(seconds=settings.refresh_ttl_seconds),
    )
    directory = AccountDirectory(store, hasher)
    app.state.token_codec = codec
    app.state.account_directory = directory
    app.state.session_issuer = SessionIssuer(store, directory, hasher, codec)


async def handle_domain_error(request: Request, exc: AuthServiceError) -> JSONResponse:
    status_code = STATUS_BY_CATEGORY[exc.category]
    if exc.category is ErrorCategory.internal:
        logger.error("internal error on %s %s", request.method, request.url.path, exc_info=exc)
        return JSONResponse(
            status_code=status_code,
            content={"code": exc.code, "detail": GENERIC_ERROR_MESSAGE},
        )
    body: dict = {"code": exc.code, "detail": exc.message}
    if isinstance(exc, ValidationError):
        body["errors"] = exc.errors
    headers = {"WWW-Authenticate": "Bearer"} if exc.category is ErrorCategory.unauthorized else None
    return JSONResponse(status_code=status_code, content=body, headers=headers)


async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors: dict[str, str] = {}
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ()) if part != "body"]
        errors[".".join(location) or "body"] = error.get("msg", "invalid value")
    logger.info("request validation failed on %s: %s", request.url.path, sorted(errors))
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"code": ValidationError.code, "detail": ValidationError.default_message, "errors": errors},
    )


async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"code": "INTERNAL_SERVER_ERROR", "detail": GENERIC_ERROR_MESSAGE},
    )


def create_app(
    settings: Settings,
    *,
    store: AccountStore | None = None,
    rate_limiter: RateLimiter | None = None,
) -> FastAPI:
    """Build the auth service application.

    When ``store`` is omitted a Postgres pool is opened for the app lifetime
    and backs a :class:`PostgresAccountStore`.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Initialise shared resources (Postgres pool, services) for the app lifecycle."""
        pool: ConnectionPool | None = None
        if store is None:
            pool = ConnectionPool(settings.database_url, open=False)
            pool.open()
            _wire_services(app, settings, PostgresAccountStore(pool))
        try:
            yield
        finally:
            if pool is not None:
                pool.close()

    app = FastAPI(title=settings.app_name, version=settings.version, lifespan=lifespan)
    app.state.rate_limiter = rate_limiter or build_rate_limiter(settings)
    if store is not None:
        _wire_services(app, settings, store)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:4200", "http://127.0.0.1:4200"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        max_age=600,
    )

    app.add_exception_handler(AuthServiceError, handle_domain_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation)
    app.add_exception_handler(Exception, handle_unexpected)

    @app.get("/healthz", tags=["health"])
    def healthz() -> dict[str, str]:
        """Return a minimal readiness indicator used by orchestration systems."""
        return {"status": "ok"}

    @app.get("/metrics", include_in_schema=False)
    def metrics() -> Response:
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    app.include_router(v1_router)
    return app
