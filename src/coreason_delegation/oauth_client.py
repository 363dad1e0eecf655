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
OAuthClient component for the authorization code exchange and userinfo retrieval.
"""

import httpx
from pydantic import ValidationError

from coreason_delegation.exceptions import AuthenticationFailedError, OversizedResponseError, TokenExchangeError
from coreason_delegation.models import OIDCConfiguration, TokenResponse, UserInfo
from coreason_delegation.transport import safe_json_fetch
from coreason_delegation.utils.logger import logger


class OAuthClient:
    """
    Talks to the Identity Provider's token and userinfo endpoints.
    """

    def __init__(self, client: httpx.AsyncClient) -> None:
        self.client = client

    async def exchange_code(self, configuration: OIDCConfiguration, code: str) -> TokenResponse:
        """
        Exchanges an authorization code for tokens.

        Args:
            configuration: The resolved OIDC configuration.
            code: The authorization code from the callback.

        Returns:
            TokenResponse: The issued tokens.

        Raises:
            TokenExchangeError: If the provider returns an error or no access token.
        """
        data = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": configuration.redirect_uri,
            "client_id": configuration.client_id,
            "client_secret": configuration.client_secret.get_secret_value(),
        }

        url = configuration.endpoints.token_endpoint
        try:
            # Error responses are 4xx with a JSON body, so read it instead of raising on status
            resp_data = await safe_json_fetch(
                self.client,
                url,
                method="POST",
                raise_for_status=False,
                data=data,
                headers={"Accept": "application/json"},
            )
        except (httpx.HTTPError, OversizedResponseError, ValueError) as e:
            logger.error(f"Token request to {url} failed: {e}")
            raise TokenExchangeError(f"Token exchange failed: {e}") from e

        if not isinstance(resp_data, dict):
            raise TokenExchangeError("Token exchange failed: unexpected response")

        if resp_data.get("error"):
            description = resp_data.get("error_description") or resp_data["error"]
            logger.error(f"Token exchange rejected: {resp_data['error']} ({description})")
            raise TokenExchangeError(f"Token exchange failed: {description}")

        try:
            tokens = TokenResponse(**resp_data)
        except ValidationError as e:
            raise TokenExchangeError("Token exchange failed: no access token in response") from e

        logger.info("Token exchange successful")
        return tokens

    async def fetch_userinfo(self, userinfo_endpoint: str, access_token: str) -> UserInfo:
        """
        Retrieves the user's claims using the access token as a bearer credential.

        Raises:
            AuthenticationFailedError: If the request fails or the claims lack a subject.
        """
        try:
            data = await safe_json_fetch(
                self.client,
                userinfo_endpoint,
                headers={
                    "Authorization": f"Bearer {access_token}",
                    "Accept": "application/json",
                },
            )
            return UserInfo(**data)
        except (httpx.HTTPError, OversizedResponseError, ValueError, TypeError) as e:
            logger.error(f"User info request to {userinfo_endpoint} failed: {e}")
            raise AuthenticationFailedError(f"Failed to fetch user info: {e}") from e
