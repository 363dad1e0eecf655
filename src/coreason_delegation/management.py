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
ManagementClient component for the gateway's user management REST API.
"""

import re
from typing import Any
from urllib.parse import quote

import httpx

from coreason_delegation.config import GatewaySettings
from coreason_delegation.exceptions import OversizedResponseError, ProvisioningError
from coreason_delegation.identity import ManagementTokenProvider
from coreason_delegation.models import PortalUser
from coreason_delegation.transport import safe_json_fetch

_UNSAFE_ID_CHARS = re.compile(r"[^A-Za-z0-9_-]")


def sanitize_user_id(email: str) -> str:
    """
    Derives a gateway-safe user id from an e-mail address.

    ``alice.smith@example.com`` becomes ``alice_smith_example_com``.
    """
    return _UNSAFE_ID_CHARS.sub("_", email.strip())


class ManagementClient:
    """
    Creates users and issues single sign-on URLs through the gateway management API.

    Attributes:
        settings (GatewaySettings): The gateway settings.
        client (httpx.AsyncClient): The async HTTP client.
        token_provider (ManagementTokenProvider): Source of the bearer credential.
    """

    def __init__(
        self,
        settings: GatewaySettings,
        client: httpx.AsyncClient,
        token_provider: ManagementTokenProvider,
    ) -> None:
        self.settings = settings
        self.client = client
        self.token_provider = token_provider

    def _user_url(self, user_id: str) -> str:
        s = self.settings
        if not s.subscription_id or not s.resource_group or not s.service_name:
            raise ProvisioningError(
                "Missing APIM configuration: APIM_SUBSCRIPTION_ID, APIM_RESOURCE_GROUP, APIM_SERVICE_NAME"
            )
        return (
            f"{s.management_url}/subscriptions/{s.subscription_id}"
            f"/resourceGroups/{s.resource_group}"
            f"/providers/Microsoft.ApiManagement/service/{s.service_name}"
            f"/users/{quote(user_id, safe='')}"
        )

    async def _call(self, method: str, url: str, payload: dict[str, Any]) -> Any:
        token = await self.token_provider.get_token()
        try:
            return await safe_json_fetch(
                self.client,
                url,
                method=method,
                params={"api-version": self.settings.api_version},
                json=payload,
                headers={"Authorization": f"Bearer {token}"},
            )
        except httpx.HTTPStatusError as e:
            raise ProvisioningError(
                f"Management API {method} failed with HTTP {e.response.status_code}"
            ) from e
        except (httpx.HTTPError, OversizedResponseError, ValueError) as e:
            raise ProvisioningError(f"Management API {method} failed: {e}") from e

    async def create_or_update_user(self, user_id: str, user: PortalUser) -> Any:
        """
        Creates the user or updates it in place (PUT is idempotent on the user id).

        Raises:
            ProvisioningError: If the gateway is not configured or the call fails.
        """
        payload = {
            "properties": {
                "firstName": user.first_name,
                "lastName": user.last_name,
                "email": user.email,
                "state": "active",
                "note": user.note,
            }
        }
        return await self._call("PUT", self._user_url(user_id), payload)

    async def generate_sso_url(self, user_id: str) -> str:
        """
        Requests a single sign-on URL for the user.

        Returns:
            str: The ``value`` field of the response (a full sign-in URL or a bare token).

        Raises:
            ProvisioningError: If the call fails or the response carries no value.
        """
        data = await self._call("POST", f"{self._user_url(user_id)}/generateSsoUrl", {})
        value = data.get("value") if isinstance(data, dict) else None
        if not value:
            raise ProvisioningError("Management API returned no SSO URL")
        return str(value)
