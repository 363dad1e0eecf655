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
Bearer credentials for the gateway management API.
"""

from typing import Protocol

import httpx
from pydantic import SecretStr

from coreason_delegation.config import GatewaySettings, ManagedIdentitySettings
from coreason_delegation.exceptions import ManagedIdentityUnavailableError, OversizedResponseError
from coreason_delegation.transport import safe_json_fetch
from coreason_delegation.utils.logger import logger


class ManagementTokenProvider(Protocol):
    """Protocol for anything that can hand out a management API bearer token."""

    async def get_token(self) -> str: ...


class StaticTokenProvider:
    """
    Returns a statically configured token (cross-tenant or cross-subscription setups).
    """

    def __init__(self, token: SecretStr) -> None:
        self._token = token

    async def get_token(self) -> str:
        return self._token.get_secret_value()


class ManagedIdentityTokenProvider:
    """
    Requests a token from the function host's managed identity endpoint (same-tenant setups).
    """

    def __init__(self, settings: ManagedIdentitySettings, client: httpx.AsyncClient) -> None:
        self.settings = settings
        self.client = client

    async def get_token(self) -> str:
        """
        Raises:
            ManagedIdentityUnavailableError: If the host exposes no identity endpoint
                or the endpoint does not return an access token.
        """
        if not self.settings.endpoint or self.settings.header is None:
            raise ManagedIdentityUnavailableError(
                "Managed Identity not available. Either provide APIM_ACCESS_TOKEN or enable a "
                "system-assigned managed identity on the function app."
            )

        try:
            data = await safe_json_fetch(
                self.client,
                self.settings.endpoint,
                params={"resource": self.settings.resource, "api-version": self.settings.api_version},
                headers={"X-IDENTITY-HEADER": self.settings.header.get_secret_value()},
            )
        except (httpx.HTTPError, OversizedResponseError, ValueError) as e:
            raise ManagedIdentityUnavailableError(f"Failed to get managed identity token: {e}") from e

        token = data.get("access_token") if isinstance(data, dict) else None
        if not token:
            raise ManagedIdentityUnavailableError("Managed identity response contained no access token")
        return str(token)


def select_token_provider(
    gateway: GatewaySettings,
    identity: ManagedIdentitySettings,
    client: httpx.AsyncClient,
) -> ManagementTokenProvider:
    """
    Prefers a static token when one is configured, otherwise the managed identity.
    """
    if gateway.access_token is not None:
        logger.info("Using provided APIM_ACCESS_TOKEN for management API authentication")
        return StaticTokenProvider(gateway.access_token)

    logger.info("Using managed identity for management API authentication")
    return ManagedIdentityTokenProvider(identity, client)
