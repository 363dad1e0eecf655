# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_delegation

"""
HTTP surface: the delegation, auth callback and health routes.
"""

import os
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import httpx
import uvicorn
from fastapi import APIRouter, FastAPI, Query, Request, Response
from fastapi.responses import JSONResponse, RedirectResponse
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor

from coreason_delegation import __version__
from coreason_delegation.cache import MemoryDiscoveryCache
from coreason_delegation.callback import CallbackProcessor
from coreason_delegation.config import BridgeConfig
from coreason_delegation.delegation import DelegationHandler, parse_operation
from coreason_delegation.exceptions import DelegationError
from coreason_delegation.identity import select_token_provider
from coreason_delegation.management import ManagementClient
from coreason_delegation.models import DelegationRequest
from coreason_delegation.oauth_client import OAuthClient
from coreason_delegation.oidc_provider import OIDCProvider
from coreason_delegation.provisioning import PortalProvisioner, format_timestamp
from coreason_delegation.utils.logger import logger

router = APIRouter()


async def delegation_error_handler(request: Request, exc: DelegationError) -> JSONResponse:
    content = {"error": exc.public_message}
    if exc.expose_details and str(exc):
        content["details"] = str(exc)
    return JSONResponse(status_code=exc.status_code, content=content)


@router.api_route("/delegation", methods=["GET", "POST"])
async def delegation(
    request: Request,
    operation: str | None = Query(default=None),
    salt: str | None = Query(default=None),
    return_url: str | None = Query(default=None, alias="returnUrl"),
    user_id: str | None = Query(default=None, alias="userId"),
    sig: str | None = Query(default=None),
) -> Response:
    """Validate a signed delegation request from the developer portal and redirect."""
    logger.info(f"Delegation endpoint called for operation {operation!r}")
    handler: DelegationHandler = request.app.state.delegation_handler

    delegation_request = DelegationRequest(
        operation=parse_operation(operation),
        salt=salt,
        return_url=return_url,
        user_id=user_id,
        signature=sig,
    )
    try:
        target = await handler.handle(delegation_request)
    except DelegationError:
        raise
    except Exception as e:
        logger.exception("Delegation function error")
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error", "details": str(e)},
        )
    return RedirectResponse(target, status_code=302)


@router.get("/auth-callback")
async def auth_callback(
    request: Request,
    code: str | None = Query(default=None),
    state: str | None = Query(default=None),
    error: str | None = Query(default=None),
    error_description: str | None = Query(default=None),
) -> Response:
    """Complete the OAuth flow and send the browser back to the developer portal."""
    logger.info("Auth callback endpoint called")
    processor: CallbackProcessor = request.app.state.callback_processor
    target = await processor.process(code, state, error=error, error_description=error_description)
    return RedirectResponse(target, status_code=302)


@router.api_route("/health", methods=["GET", "POST"])
async def health() -> dict[str, str]:
    logger.debug("Health check called")
    return {"status": "healthy", "timestamp": format_timestamp(datetime.now(timezone.utc))}


def create_app(
    config: BridgeConfig | None = None,
    client: httpx.AsyncClient | None = None,
    clock: Callable[[], int] | None = None,
) -> FastAPI:
    """
    Builds the application and wires its components.

    Args:
        config: The configuration. Defaults to `BridgeConfig.from_env()`.
        client: External async client (optional). If not provided, one is created
            with the configured timeout and closed on shutdown.
        clock: Source of the current time in epoch milliseconds (tests).

    Returns:
        FastAPI: The ASGI application.
    """
    config = config or BridgeConfig.from_env()
    owns_client = client is None
    if client is None:
        client = httpx.AsyncClient(timeout=config.http_timeout)
        HTTPXClientInstrumentor().instrument_client(client)
    http_client = client

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info("Delegation bridge starting")
        yield
        if owns_client:
            await http_client.aclose()
        logger.info("Delegation bridge shutting down")

    app = FastAPI(title="coreason-delegation", version=__version__, lifespan=lifespan)
    app.include_router(router)
    app.add_exception_handler(DelegationError, delegation_error_handler)  # type: ignore[arg-type]

    oidc_provider = None
    if config.oidc is not None:
        oidc_provider = OIDCProvider(
            config.oidc,
            http_client,
            MemoryDiscoveryCache(ttl=config.discovery_cache_ttl),
        )

    management = ManagementClient(
        config.gateway,
        http_client,
        select_token_provider(config.gateway, config.managed_identity, http_client),
    )
    clock_kwargs = {"clock": clock} if clock is not None else {}

    app.state.config = config
    app.state.oidc_provider = oidc_provider
    app.state.delegation_handler = DelegationHandler(config.gateway, oidc_provider, **clock_kwargs)
    app.state.callback_processor = CallbackProcessor(
        oidc_provider,
        OAuthClient(http_client),
        PortalProvisioner(management, config.gateway),
        config.gateway,
        pii_salt=config.pii_salt,
        max_age_ms=config.state_max_age_ms,
        **clock_kwargs,
    )
    return app


def main() -> None:
    """Serves the application with uvicorn."""
    uvicorn.run(
        "coreason_delegation.app:create_app",
        factory=True,
        host=os.getenv("DELEGATION_HOST", "0.0.0.0"),
        port=int(os.getenv("DELEGATION_PORT", "8000")),
        log_config=None,
    )


if __name__ == "__main__":
    main()
