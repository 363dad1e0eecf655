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
DelegationHandler component: validates gateway delegation requests and starts the OAuth flow.
"""

import time
from collections.abc import Callable

from coreason_delegation.config import GatewaySettings
from coreason_delegation.exceptions import ConfigurationError, UnsupportedOperationError
from coreason_delegation.models import DelegationOperation, DelegationRequest, StateBlob
from coreason_delegation.oidc_provider import OIDCProvider, build_authorization_url, build_end_session_url
from coreason_delegation.redirects import resolve_return_url
from coreason_delegation.signature import SignatureValidator
from coreason_delegation.state import encode_state
from coreason_delegation.utils.logger import logger


def _now_ms() -> int:
    return int(time.time() * 1000)


def parse_operation(value: str | None) -> DelegationOperation:
    """
    Raises:
        UnsupportedOperationError: If `value` is not a known delegation operation.
    """
    try:
        return DelegationOperation(value or "")
    except ValueError as e:
        raise UnsupportedOperationError(f"Unsupported operation: {value!r}") from e


class DelegationHandler:
    """
    Turns a signed delegation request into a redirect target.

    Attributes:
        gateway (GatewaySettings): Portal and validation key settings.
        oidc_provider (OIDCProvider | None): The discovery provider; None when OIDC is not configured.
    """

    def __init__(
        self,
        gateway: GatewaySettings,
        oidc_provider: OIDCProvider | None,
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        self.gateway = gateway
        self.oidc_provider = oidc_provider
        self.clock = clock
        self.validator = SignatureValidator(gateway.validation_key)

    def _new_state(self, request: DelegationRequest) -> str:
        blob = StateBlob(
            return_url=request.return_url or "",
            salt=request.salt,
            user_id=request.user_id,
            timestamp=self.clock(),
        )
        return encode_state(blob)

    async def handle(self, request: DelegationRequest) -> str:
        """
        Validates the signature and dispatches on the operation.

        Returns:
            str: The URL to redirect the caller to.

        Raises:
            SignatureValidationError: If the signature is missing or wrong.
            UnsupportedOperationError: For operations this bridge does not handle.
            ConfigurationError: If a login is requested without a usable OIDC configuration.
        """
        self.validator.validate(request)
        logger.info(f"Signature validated for {request.operation.value}")

        match request.operation:
            case DelegationOperation.SIGN_IN | DelegationOperation.SIGN_UP:
                return await self._sign_in(request)
            case DelegationOperation.SIGN_OUT:
                return await self._sign_out(request)
            case (
                DelegationOperation.CHANGE_PASSWORD
                | DelegationOperation.CHANGE_PROFILE
                | DelegationOperation.CLOSE_ACCOUNT
            ):
                # Account management lives in the Identity Provider's own UI
                logger.info(f"Unsupported operation: {request.operation.value}")
                raise UnsupportedOperationError(f"Unsupported operation: {request.operation.value}")

    async def _sign_in(self, request: DelegationRequest) -> str:
        if self.oidc_provider is None:
            logger.error("Login requested but OIDC is not configured")
            raise ConfigurationError("OIDC is not configured")

        try:
            configuration = await self.oidc_provider.get_configuration()
        except Exception as e:
            logger.error(f"Failed to load OIDC configuration: {e}")
            raise ConfigurationError(f"Failed to load OIDC configuration: {e}") from e

        auth_url = build_authorization_url(configuration, self._new_state(request))
        logger.info(f"Redirecting to OIDC provider at {configuration.endpoints.authorization_endpoint}")
        return auth_url

    async def _sign_out(self, request: DelegationRequest) -> str:
        portal_target = resolve_return_url(request.return_url, self.gateway.portal_url)
        if self.oidc_provider is None:
            return portal_target

        try:
            configuration = await self.oidc_provider.get_configuration()
            logout_url = build_end_session_url(configuration, portal_target, self._new_state(request))
        except Exception as e:
            # Sign-out must never strand the user
            logger.warning(f"OIDC sign-out unavailable, redirecting to portal: {e}")
            return portal_target

        if logout_url is None:
            logger.info("No end session endpoint known, redirecting to portal")
            return portal_target

        logger.info("Redirecting to OIDC end session endpoint")
        return logout_url
