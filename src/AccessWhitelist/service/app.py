"""FastAPI application setup for the whitelist service."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from AccessWhitelist.ledger import format_timestamp
from AccessWhitelist.policy import RemotePolicyError
from AccessWhitelist.resolver import InvalidAddressError

from .runtime import Runtime
from .schemas import (
    AddressResponse,
    DependencyStatus,
    HealthResponse,
    StatusResponse,
    WhitelistRequest,
    WhitelistResponse,
)
from .telemetry import TelemetryMiddleware

logger = logging.getLogger("AccessWhitelist.service.app")


def _peer(request: Request) -> Optional[str]:
    return request.client.host if request.client else None


def create_app(runtime: Runtime, *, manage_daemon: bool = True) -> FastAPI:
    """Build the HTTP surface over ``runtime``.

    With ``manage_daemon`` the expiry daemon is started and stopped with the
    application lifespan.
    """

    service = runtime.service
    resolver = runtime.resolver
    settings = runtime.settings

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        if manage_daemon:
            runtime.daemon.start()
        try:
            yield
        finally:
            if manage_daemon:
                runtime.daemon.stop()

    app = FastAPI(title="Access Whitelist Service", version="0.1.0", lifespan=lifespan)
    app.state.runtime = runtime
    app.add_middleware(TelemetryMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.allowed_origins),
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["Accept", "Authorization", "Content-Type", "X-CSRF-Token"],
        expose_headers=["Link"],
        allow_credentials=True,
        max_age=300,
    )

    @app.exception_handler(RequestValidationError)
    async def invalid_body(_: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": "Invalid request body", "errors": jsonable_errors(exc)},
        )

    def resolve(request: Request) -> str:
        return resolver.resolve(request.headers, _peer(request))

    def reject(exc: InvalidAddressError) -> HTTPException:
        logger.info("Rejected request address", extra={"error": str(exc)})
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))

    @app.get("/ip", response_model=AddressResponse)
    def get_address(request: Request) -> AddressResponse:
        return AddressResponse(ip=resolve(request))

    @app.get("/status", response_model=StatusResponse, response_model_exclude_none=True)
    def get_status(request: Request) -> StatusResponse:
        try:
            result = service.status(resolve(request))
        except InvalidAddressError as exc:
            raise reject(exc) from exc
        return StatusResponse(
            ip=result.address,
            whitelisted=result.whitelisted,
            expires_at=format_timestamp(result.expires_at) if result.expires_at else None,
            time_remaining=result.time_remaining,
        )

    @app.post("/whitelist", response_model=WhitelistResponse)
    def admit(payload: WhitelistRequest, request: Request) -> WhitelistResponse:
        try:
            result = service.admit(resolve(request), payload.duration)
        except InvalidAddressError as exc:
            raise reject(exc) from exc
        except RemotePolicyError as exc:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Failed to update Cloudflare policy: {exc}",
            ) from exc
        return WhitelistResponse(message="Success", ip=result.address)

    @app.delete("/whitelist", response_model=WhitelistResponse)
    def revoke(request: Request) -> WhitelistResponse:
        try:
            address = resolve(request)
            service.revoke(address)
        except InvalidAddressError as exc:
            raise reject(exc) from exc
        except RemotePolicyError as exc:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to remove from Cloudflare policy",
            ) from exc
        return WhitelistResponse(message="IP removed from whitelist", ip=address)

    @app.get("/healthz", response_model=HealthResponse)
    def health() -> HealthResponse:
        dependencies = [
            DependencyStatus(
                name="remote_policy",
                status="ok" if runtime.policy.configured else "disabled",
                details=None if runtime.policy.configured else "credentials not configured",
            ),
            DependencyStatus(
                name="expiry_daemon",
                status="ok" if runtime.daemon.running else "idle",
            ),
        ]
        return HealthResponse(status="ok", ledger_entries=len(runtime.ledger), dependencies=dependencies)

    if settings.static_dir.is_dir():
        app.mount("/", StaticFiles(directory=settings.static_dir, html=True), name="frontend")
    else:
        logger.info("Static frontend directory not found", extra={"static_dir": str(settings.static_dir)})

    return app


def jsonable_errors(exc: RequestValidationError) -> list:
    return [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg", "")}
        for error in exc.errors()
    ]


__all__ = ["create_app"]
