"""Application factory for the autocall administration API."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

import httpx
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .api import register_auth_routes, register_campaign_routes
from .auth import AuthService, InvalidCredentialsError
from .config import Settings, load_settings
from .database import Database, DuplicateUserError
from .security import AuthGate
from .tokens import TokenService
from .vendor import (
    VendorAPIError,
    VendorClient,
    VendorConfigurationError,
    VendorTimeoutError,
)


logger = logging.getLogger("autocall.service")


def _error(status_code: int, message: str, headers: Optional[Dict[str, str]] = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message}, headers=headers)


def _describe_validation_error(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = str(first.get("msg", "Invalid value"))
    return f"{location}: {message}" if location else message


def register_error_handlers(app: FastAPI) -> None:
    """Render every failure in the ``{"error": ...}`` envelope."""

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(_: Request, exc: StarletteHTTPException):
        return _error(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(_: Request, exc: RequestValidationError):
        return _error(status.HTTP_400_BAD_REQUEST, _describe_validation_error(exc))

    @app.exception_handler(InvalidCredentialsError)
    async def handle_invalid_credentials(_: Request, exc: InvalidCredentialsError):
        return _error(status.HTTP_401_UNAUTHORIZED, str(exc))

    @app.exception_handler(DuplicateUserError)
    async def handle_duplicate_user(_: Request, exc: DuplicateUserError):
        return _error(status.HTTP_409_CONFLICT, str(exc))

    @app.exception_handler(VendorConfigurationError)
    async def handle_vendor_configuration(_: Request, exc: VendorConfigurationError):
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc))

    @app.exception_handler(VendorTimeoutError)
    async def handle_vendor_timeout(_: Request, exc: VendorTimeoutError):
        return _error(status.HTTP_504_GATEWAY_TIMEOUT, str(exc))

    @app.exception_handler(VendorAPIError)
    async def handle_vendor_error(_: Request, exc: VendorAPIError):
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc))

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        logger.exception("Unhandled error while serving %s %s", request.method, request.url.path)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


def create_app(
    *,
    settings: Settings | None = None,
    database: Database | None = None,
    vendor: VendorClient | None = None,
    vendor_transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Instantiate the FastAPI application and its explicitly scoped collaborators."""

    app_settings = settings or load_settings()

    db = database or Database(app_settings.database_path)
    db.initialize()

    tokens = TokenService(app_settings.jwt_secret, ttl=app_settings.token_ttl)
    auth_service = AuthService(db, tokens)
    gate = AuthGate(tokens)
    vendor_client = vendor or VendorClient.from_settings(app_settings, transport=vendor_transport)

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        try:
            yield
        finally:
            await vendor_client.aclose()

    app = FastAPI(
        title="Autocall Administration API",
        version="0.1.0",
        description="Authenticated proxy for managing telephony autocall campaigns.",
        lifespan=lifespan,
    )
    if app_settings.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=list(app_settings.cors_origins),
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.state.settings = app_settings
    app.state.database = db
    app.state.tokens = tokens
    app.state.auth_service = auth_service
    app.state.gate = gate
    app.state.vendor = vendor_client

    @app.get("/health")
    async def healthcheck() -> Dict[str, Any]:
        return {"status": "ok", "vendorConfigured": vendor_client.configured}

    register_auth_routes(app, database=db, auth_service=auth_service, gate=gate)
    register_campaign_routes(app, vendor=vendor_client, gate=gate)
    register_error_handlers(app)

    return app


__all__ = ["create_app", "register_error_handlers"]
