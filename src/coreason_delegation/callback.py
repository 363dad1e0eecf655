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
CallbackProcessor component: completes the OAuth flow and sends the browser back to the portal.
"""

import time
from datetime import datetime, timezone
from collections.abc import Callable

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode
from pydantic import SecretStr

from coreason_delegation.config import GatewaySettings
from coreason_delegation.exceptions import (
    AuthenticationFailedError,
    AuthorizationDeniedError,
    ConfigurationError,
    DelegationError,
    MissingParameterError,
)
from coreason_delegation.models import NotProvisioned, OIDCConfiguration, Provisioned, StateBlob
from coreason_delegation.oauth_client import OAuthClient
from coreason_delegation.oidc_provider import OIDCProvider
from coreason_delegation.provisioning import PortalProvisioner, user_attributes
from coreason_delegation.redirects import build_fallback_redirect, safe_return_url
from coreason_delegation.state import decode_state, ensure_fresh
from coreason_delegation.utils.logger import anonymize, logger

tracer = trace.get_tracer(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


class CallbackProcessor:
    """
    Runs the linear callback flow: validate input, decode and check the state,
    exchange the code, fetch user info, provision, redirect.

    Attributes:
        oidc_provider (OIDCProvider | None): The discovery provider; None when OIDC is not configured.
        oauth_client (OAuthClient): Token and userinfo client.
        provisioner (PortalProvisioner): Best-effort gateway provisioning.
        gateway (GatewaySettings): Portal settings for the fallback redirect.
    """

    def __init__(
        self,
        oidc_provider: OIDCProvider | None,
        oauth_client: OAuthClient,
        provisioner: PortalProvisioner,
        gateway: GatewaySettings,
        pii_salt: SecretStr,
        max_age_ms: int = 600_000,
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        self.oidc_provider = oidc_provider
        self.oauth_client = oauth_client
        self.provisioner = provisioner
        self.gateway = gateway
        self.pii_salt = pii_salt
        self.max_age_ms = max_age_ms
        self.clock = clock

    def read_state(self, code: str | None, state: str | None) -> tuple[str, StateBlob]:
        """
        Steps 1-3: input validation, state decoding and freshness.

        Returns:
            tuple[str, StateBlob]: The authorization code and the decoded state.

        Raises:
            MissingParameterError: If `code` or `state` is missing.
            InvalidStateError: If the state cannot be decoded or is dated in the future.
            StateExpiredError: If the state is too old.
        """
        if not code or not state:
            raise MissingParameterError("Missing code or state parameter")

        blob = decode_state(state)
        ensure_fresh(blob, self.clock(), self.max_age_ms)
        return code, blob

    async def _load_configuration(self) -> OIDCConfiguration:
        if self.oidc_provider is None:
            raise ConfigurationError("OIDC is not configured")
        try:
            return await self.oidc_provider.get_configuration()
        except Exception as e:
            logger.error(f"Failed to load OIDC configuration: {e}")
            raise ConfigurationError(f"Failed to load OIDC configuration: {e}") from e

    async def process(
        self,
        code: str | None,
        state: str | None,
        error: str | None = None,
        error_description: str | None = None,
    ) -> str:
        """
        Processes an authorization callback.

        Args:
            code: The authorization code.
            state: The encoded state blob.
            error: OAuth error returned by the Identity Provider instead of a code.
            error_description: Human readable description of `error`.

        Returns:
            str: The URL to redirect the browser to.

        Raises:
            AuthorizationDeniedError: If the Identity Provider returned an error.
            MissingParameterError, InvalidStateError, StateExpiredError: For rejected input.
            ConfigurationError: If the OIDC configuration cannot be loaded.
            AuthenticationFailedError: For any other failure after the state was accepted.
        """
        with tracer.start_as_current_span("auth_callback") as span:
            if error:
                logger.warning(f"Identity Provider returned an error: {error}")
                span.set_status(Status(StatusCode.ERROR, error))
                raise AuthorizationDeniedError(error_description or error)

            try:
                code, blob = self.read_state(code, state)
            except DelegationError as e:
                logger.warning(f"Callback rejected: {e}")
                span.set_status(Status(StatusCode.ERROR, e.public_message))
                raise

            return_url = safe_return_url(blob.return_url, self.gateway.portal_url)

            try:
                configuration = await self._load_configuration()
                tokens = await self.oauth_client.exchange_code(configuration, code)
                user_info = await self.oauth_client.fetch_userinfo(
                    configuration.endpoints.userinfo_endpoint, tokens.access_token
                )
                user_hash = anonymize(user_info.sub, self.pii_salt.get_secret_value())
                span.set_attribute("enduser.id", user_hash)
                logger.info(f"User info retrieved for user {user_hash}")

                result = await self.provisioner.provision(user_info, return_url)
            except DelegationError as e:
                span.record_exception(e)
                span.set_status(Status(StatusCode.ERROR, e.public_message))
                raise
            except Exception as e:
                logger.exception("Auth callback error")
                span.record_exception(e)
                span.set_status(Status(StatusCode.ERROR, str(e)))
                raise AuthenticationFailedError(str(e)) from e

            match result:
                case Provisioned(redirect_url=redirect_url):
                    span.set_attribute("delegation.provisioned", True)
                    logger.info("Redirecting to portal single sign-on")
                case NotProvisioned(reason=reason):
                    span.set_attribute("delegation.provisioned", False)
                    logger.warning(f"Falling back to direct portal redirect: {reason}")
                    registered_at = datetime.fromtimestamp(self.clock() / 1000, tz=timezone.utc)
                    redirect_url = build_fallback_redirect(
                        return_url,
                        user_attributes(user_info, self.provisioner.note, registered_at),
                        blob.salt,
                        self.gateway.portal_url,
                    )

            span.set_status(Status(StatusCode.OK))
            return redirect_url
