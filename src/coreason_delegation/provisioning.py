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
PortalProvisioner component: best-effort user provisioning after a successful login.
"""

from datetime import datetime, timezone

from pydantic import ValidationError

from coreason_delegation.config import GatewaySettings
from coreason_delegation.exceptions import ProvisioningError
from coreason_delegation.management import ManagementClient, sanitize_user_id
from coreason_delegation.models import NotProvisioned, PortalUser, Provisioned, ProvisioningResult, UserInfo
from coreason_delegation.redirects import build_sso_redirect
from coreason_delegation.utils.logger import logger

DEFAULT_NOTE = "User authenticated via OIDC"


def format_timestamp(moment: datetime) -> str:
    """ISO 8601 in UTC with millisecond precision and a ``Z`` suffix."""
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def user_attributes(
    user_info: UserInfo,
    note: str = DEFAULT_NOTE,
    registered_at: datetime | None = None,
) -> dict[str, str | None]:
    """
    The user attributes handed to the portal, keyed by their query parameter names.

    Args:
        user_info: The claims from the userinfo endpoint.
        note: Free text stored with the user.
        registered_at: Time of this login. Defaults to now.
    """
    registered_at = registered_at or datetime.now(timezone.utc)
    return {
        "userId": user_info.sub,
        "email": user_info.email,
        "firstName": user_info.first_name,
        "lastName": user_info.last_name,
        "note": note,
        "registrationDate": format_timestamp(registered_at),
    }


def to_portal_user(user_info: UserInfo, note: str = DEFAULT_NOTE) -> PortalUser:
    """
    Builds the gateway user record, keyed by the sanitized e-mail address.

    Raises:
        ProvisioningError: If the claims carry no usable e-mail address.
    """
    if not user_info.email:
        raise ProvisioningError("User info contains no e-mail address")
    try:
        return PortalUser(
            user_id=sanitize_user_id(user_info.email),
            email=user_info.email,
            first_name=user_info.first_name,
            last_name=user_info.last_name,
            note=note,
        )
    except ValidationError as e:
        raise ProvisioningError(f"Invalid user record: {e}") from e


class PortalProvisioner:
    """
    Creates or updates the user in the gateway and obtains a portal sign-on URL.

    Failures are returned as `NotProvisioned` rather than raised: the user has
    already authenticated, and the caller redirects them with a degraded URL.
    """

    def __init__(self, management: ManagementClient, gateway: GatewaySettings, note: str = DEFAULT_NOTE) -> None:
        self.management = management
        self.gateway = gateway
        self.note = note

    async def provision(self, user_info: UserInfo, return_url: str) -> ProvisioningResult:
        """
        Args:
            user_info: The claims from the userinfo endpoint.
            return_url: The portal URL the user originally asked for.

        Returns:
            ProvisioningResult: `Provisioned` with the SSO redirect, or `NotProvisioned` with the reason.
        """
        try:
            user = to_portal_user(user_info, self.note)
            await self.management.create_or_update_user(user.user_id, user)
            logger.info("Portal user created or updated")

            sso_value = await self.management.generate_sso_url(user.user_id)
            redirect_url = build_sso_redirect(sso_value, return_url, self.gateway)
        except Exception as e:
            logger.opt(exception=e).error(f"Portal provisioning failed: {e}")
            return NotProvisioned(reason=str(e))

        return Provisioned(redirect_url=redirect_url)
