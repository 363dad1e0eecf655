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
OIDC Provider component for discovering and caching the Identity Provider's endpoints.
"""

import httpx
from authlib.common.urls import add_params_to_uri
from authlib.oauth2.rfc6749.parameters import prepare_grant_uri

from coreason_delegation.cache import DiscoveryCacheProtocol, MemoryDiscoveryCache
from coreason_delegation.config import OIDCSettings
from coreason_delegation.exceptions import DelegationError
from coreason_delegation.models import OIDCConfiguration, OIDCEndpoints
from coreason_delegation.transport import safe_json_fetch
from coreason_delegation.utils.logger import logger

DISCOVERY_PATH = "/.well-known/openid-configuration"


def fallback_endpoints(settings: OIDCSettings) -> OIDCEndpoints:
    """
    Builds the endpoint set from the issuer and the configured (or default) paths.

    Args:
        settings: The OIDC settings.

    Returns:
        OIDCEndpoints: The statically configured endpoint set.
    """
    issuer = settings.issuer
    return OIDCEndpoints(
        authorization_endpoint=f"{issuer}{settings.authorization_endpoint}",
        token_endpoint=f"{issuer}{settings.token_endpoint}",
        userinfo_endpoint=f"{issuer}{settings.userinfo_endpoint}",
        end_session_endpoint=f"{issuer}{settings.end_session_endpoint}" if settings.end_session_endpoint else None,
        issuer=issuer,
    )


def build_authorization_url(
    configuration: OIDCConfiguration,
    state: str,
    scopes: list[str] | None = None,
) -> str:
    """
    Builds the authorization code request URL.

    Args:
        configuration: The resolved OIDC configuration.
        state: The encoded state blob.
        scopes: Scopes to request. Defaults to the configured scopes.

    Returns:
        str: The authorization endpoint with ``client_id``, ``response_type=code``,
        ``scope``, ``redirect_uri`` and ``state`` query parameters.
    """
    return prepare_grant_uri(
        configuration.endpoints.authorization_endpoint,
        client_id=configuration.client_id,
        response_type="code",
        redirect_uri=configuration.redirect_uri,
        scope=scopes if scopes is not None else configuration.scopes,
        state=state,
    )


def build_end_session_url(
    configuration: OIDCConfiguration,
    post_logout_redirect_uri: str,
    state: str,
) -> str | None:
    """
    Builds the RP-initiated logout URL, or None when the provider has no end session endpoint.
    """
    endpoint = configuration.endpoints.end_session_endpoint
    if not endpoint:
        return None

    return add_params_to_uri(
        endpoint,
        [
            ("client_id", configuration.client_id),
            ("post_logout_redirect_uri", post_logout_redirect_uri),
            ("state", state),
        ],
    )


class OIDCProvider:
    """
    Resolves the Identity Provider's OAuth endpoints via the discovery document.

    Discovery failures never propagate: they degrade to the statically configured
    endpoints, which are not cached so that the next call retries discovery.

    Attributes:
        settings (OIDCSettings): The OIDC settings.
        client (httpx.AsyncClient): The async HTTP client used for discovery.
        cache (DiscoveryCacheProtocol): The endpoint cache.
    """

    def __init__(
        self,
        settings: OIDCSettings,
        client: httpx.AsyncClient,
        cache: DiscoveryCacheProtocol | None = None,
    ) -> None:
        """
        Initialize the OIDCProvider.

        Args:
            settings: The OIDC settings.
            client: The async HTTP client to use for requests.
            cache: Cache of discovered endpoints. Defaults to a one hour MemoryDiscoveryCache.
        """
        self.settings = settings
        self.client = client
        self.cache = cache if cache is not None else MemoryDiscoveryCache()

    @property
    def discovery_url(self) -> str:
        return f"{self.settings.issuer}{DISCOVERY_PATH}"

    async def _fetch_discovery_document(self) -> OIDCEndpoints:
        """
        Fetches and validates the discovery document.

        Raises:
            httpx.HTTPError: On network errors or non-2xx responses.
            ValueError: If the body is not JSON or misses required endpoints.
            DelegationError: If the body is oversized.
        """
        data = await safe_json_fetch(self.client, self.discovery_url)
        if not isinstance(data, dict):
            raise ValueError("Discovery document is not a JSON object")

        endpoints = OIDCEndpoints(**data)
        if not endpoints.issuer:
            endpoints = endpoints.model_copy(update={"issuer": self.settings.issuer})
        return endpoints

    async def discover_endpoints(self) -> OIDCEndpoints:
        """
        Returns the endpoint set for the configured issuer, using the cache if valid.

        Returns:
            OIDCEndpoints: Discovered endpoints, or the fallback set if discovery failed.
        """
        issuer = self.settings.issuer
        cached = self.cache.get(issuer)
        if cached is not None:
            logger.debug(f"Using cached OIDC discovery for {issuer}")
            return cached

        try:
            logger.info(f"Discovering OIDC endpoints for {issuer}")
            endpoints = await self._fetch_discovery_document()
        except (httpx.HTTPError, ValueError, DelegationError) as e:
            logger.warning(f"OIDC discovery failed, falling back to manual configuration: {e}")
            return fallback_endpoints(self.settings)

        self.cache.set(issuer, endpoints)
        logger.info(f"OIDC endpoints discovered for {issuer}")
        return endpoints

    async def get_configuration(self) -> OIDCConfiguration:
        """
        Returns the client settings combined with the current endpoint set.
        """
        endpoints = await self.discover_endpoints()
        return OIDCConfiguration(
            client_id=self.settings.client_id,
            client_secret=self.settings.client_secret,
            redirect_uri=self.settings.redirect_uri,
            scopes=self.settings.scopes.split(),
            endpoints=endpoints,
        )

    def clear_cache(self) -> None:
        self.cache.clear()
