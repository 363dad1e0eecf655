# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_delegation

import base64
import hashlib
import hmac
import json
import os
from collections.abc import AsyncGenerator, Callable
from typing import Any
from urllib.parse import parse_qsl

import httpx
import pytest
import pytest_asyncio
from pydantic import SecretStr

from coreason_delegation.config import GatewaySettings, ManagedIdentitySettings, OIDCSettings

ISSUER = "https://idp.example.com"
PORTAL_URL = "https://contoso.developer.azure-api.net"
VALIDATION_KEY = base64.b64encode(b"test-validation-key").decode("ascii")
MANAGEMENT_USERS = (
    "https://management.azure.com/subscriptions/sub-123/resourceGroups/rg-portal"
    "/providers/Microsoft.ApiManagement/service/contoso/users"
)

DISCOVERY_DOC = {
    "issuer": ISSUER,
    "authorization_endpoint": f"{ISSUER}/v1/authorize",
    "token_endpoint": f"{ISSUER}/v1/token",
    "userinfo_endpoint": f"{ISSUER}/v1/userinfo",
    "end_session_endpoint": f"{ISSUER}/v1/logout",
    "jwks_uri": f"{ISSUER}/v1/keys",
}


def sign(text: str, key: str = VALIDATION_KEY) -> str:
    """Signs `text` the way the gateway does."""
    digest = hmac.new(base64.b64decode(key), text.encode("utf-8"), hashlib.sha512).digest()
    return base64.b64encode(digest).decode("ascii")


class FakeClock:
    """Controllable clock; `seconds` for caches, `ms` for state timestamps."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def seconds(self) -> float:
        return self.now

    def ms(self) -> int:
        return int(self.now * 1000)

    def advance(self, seconds: float) -> None:
        self.now += seconds


Responder = Callable[[httpx.Request], httpx.Response]


def _static_responder(status: int, json_body: Any, content: bytes | None) -> Responder:
    def respond(request: httpx.Request) -> httpx.Response:
        if content is not None:
            return httpx.Response(status, content=content)
        return httpx.Response(status, json=json_body)

    return respond


class MockUpstream:
    """
    Routes outbound requests by method and URL (query string ignored) and records them.
    Unknown routes answer 404.
    """

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], Responder] = {}
        self.requests: list[httpx.Request] = []

    def add(
        self,
        method: str,
        url: str,
        status: int = 200,
        json_body: Any = None,
        content: bytes | None = None,
        responder: Responder | None = None,
    ) -> None:
        if responder is None:
            responder = _static_responder(status, json_body, content)
        self.routes[(method.upper(), url)] = responder

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, str(request.url).split("?")[0])
        responder = self.routes.get(key)
        if responder is None:
            return httpx.Response(404, json={"error": "not_found"})
        return responder(request)

    def calls(self, method: str, url: str) -> list[httpx.Request]:
        return [
            r for r in self.requests if r.method == method.upper() and str(r.url).split("?")[0] == url
        ]

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


def form_body(request: httpx.Request) -> dict[str, str]:
    return dict(parse_qsl(request.content.decode("utf-8")))


def json_body(request: httpx.Request) -> Any:
    return json.loads(request.content)


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Removes bridge settings inherited from the host so tests only see what they set."""
    for name in list(os.environ):
        if name.upper().startswith(("OIDC_", "APIM_", "IDENTITY_", "DELEGATION_")):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def oidc_settings() -> OIDCSettings:
    return OIDCSettings(
        issuer=ISSUER,
        client_id="test-client-id",
        client_secret=SecretStr("test-client-secret"),
        redirect_uri="https://bridge.example.com/api/auth-callback",
    )


@pytest.fixture
def gateway_settings() -> GatewaySettings:
    return GatewaySettings(
        validation_key=SecretStr(VALIDATION_KEY),
        portal_url=PORTAL_URL,
        subscription_id="sub-123",
        resource_group="rg-portal",
        service_name="contoso",
        access_token=SecretStr("static-management-token"),
    )


@pytest.fixture
def identity_settings() -> ManagedIdentitySettings:
    return ManagedIdentitySettings()


@pytest.fixture
def upstream() -> MockUpstream:
    return MockUpstream()


@pytest_asyncio.fixture
async def http_client(upstream: MockUpstream) -> AsyncGenerator[httpx.AsyncClient, None]:
    async with upstream.client() as client:
        yield client
