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
Configuration for the coreason-delegation package.

All settings are read once at startup and passed explicitly to the handlers.
"""

from pydantic import Field, SecretStr, ValidationError, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from coreason_delegation.utils.logger import logger


class OIDCSettings(BaseSettings):
    """
    Identity Provider settings.

    Attributes:
        issuer (str): The issuer URL (e.g. https://tenant.okta.com/oauth2/default).
        client_id (str): The OAuth client ID registered for the bridge.
        client_secret (SecretStr): The OAuth client secret.
        redirect_uri (str): The public URL of the ``/auth-callback`` route.
        authorization_endpoint (str): Path appended to the issuer when discovery fails.
        token_endpoint (str): Path appended to the issuer when discovery fails.
        userinfo_endpoint (str): Path appended to the issuer when discovery fails.
        end_session_endpoint (str | None): Optional logout path appended to the issuer when discovery fails.
        scopes (str): Space separated scopes requested at login.
    """

    model_config = SettingsConfigDict(
        env_prefix="OIDC_",
        case_sensitive=False,
    )

    unsafe_local_dev: bool = False
    issuer: str
    client_id: str = Field(..., min_length=1)
    client_secret: SecretStr
    redirect_uri: str = Field(..., min_length=1)
    authorization_endpoint: str = "/oauth2/authorize"
    token_endpoint: str = "/oauth2/token"
    userinfo_endpoint: str = "/oauth2/userinfo"
    end_session_endpoint: str | None = None
    scopes: str = "openid profile email"

    @field_validator("issuer")
    @classmethod
    def normalize_issuer(cls, v: str, info: ValidationInfo) -> str:
        """
        Strips whitespace and trailing slashes so paths can be appended directly,
        and rejects plain HTTP unless strictly opted out for local dev.
        """
        v = v.strip().rstrip("/")
        if not v:
            raise ValueError("issuer must not be empty")
        if v.startswith("http://") and not info.data.get("unsafe_local_dev", False):
            raise ValueError("HTTPS is required for production. Set 'unsafe_local_dev=True' only for local testing.")
        return v

    @field_validator("client_secret")
    @classmethod
    def require_secret(cls, v: SecretStr) -> SecretStr:
        if not v.get_secret_value():
            raise ValueError("client_secret must not be empty")
        return v


class GatewaySettings(BaseSettings):
    """
    API gateway (developer portal and management API) settings.

    Attributes:
        validation_key (SecretStr | None): Base64 delegation validation key shared with the gateway.
        portal_url (str | None): Public developer portal base URL.
        subscription_id (str | None): Subscription hosting the gateway service.
        resource_group (str | None): Resource group hosting the gateway service.
        service_name (str | None): Gateway service name.
        access_token (SecretStr | None): Static management API bearer token (cross-subscription setups).
    """

    model_config = SettingsConfigDict(
        env_prefix="APIM_",
        case_sensitive=False,
    )

    validation_key: SecretStr | None = None
    portal_url: str | None = None
    subscription_id: str | None = None
    resource_group: str | None = None
    service_name: str | None = None
    access_token: SecretStr | None = None
    management_url: str = "https://management.azure.com"
    api_version: str = "2021-08-01"
    sso_host_suffix: str = ".portal.azure-api.net"
    public_host_suffix: str = ".developer.azure-api.net"

    @field_validator("portal_url", "management_url")
    @classmethod
    def strip_trailing_slash(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return v.strip().rstrip("/") or None

    @field_validator("validation_key", "access_token")
    @classmethod
    def empty_secret_is_none(cls, v: SecretStr | None) -> SecretStr | None:
        """Treats an empty environment variable as unset."""
        if v is not None and not v.get_secret_value().strip():
            return None
        return v


class ManagedIdentitySettings(BaseSettings):
    """
    Platform managed identity endpoint, injected by the function host.
    """

    model_config = SettingsConfigDict(
        env_prefix="IDENTITY_",
        case_sensitive=False,
    )

    endpoint: str | None = None
    header: SecretStr | None = None
    resource: str = "https://management.azure.com/"
    api_version: str = "2019-08-01"


class BridgeConfig(BaseSettings):
    """
    Top level configuration handed to the application factory.

    Attributes:
        http_timeout (float): Timeout in seconds for every outbound call.
        state_max_age_ms (int): Freshness window of the OAuth state blob.
        discovery_cache_ttl (float): Lifetime in seconds of a discovered endpoint set.
        pii_salt (SecretStr): Salt for anonymizing user identifiers in logs and traces.
        oidc (OIDCSettings | None): Identity Provider settings, None when incomplete.
    """

    model_config = SettingsConfigDict(
        env_prefix="DELEGATION_",
        case_sensitive=False,
    )

    http_timeout: float = Field(default=10.0, gt=0)
    state_max_age_ms: int = Field(default=600_000, gt=0)
    discovery_cache_ttl: float = Field(default=3600.0, gt=0)
    pii_salt: SecretStr = SecretStr("coreason-unsafe-default-salt")
    oidc: OIDCSettings | None = None
    gateway: GatewaySettings = Field(default_factory=GatewaySettings)
    managed_identity: ManagedIdentitySettings = Field(default_factory=ManagedIdentitySettings)

    @classmethod
    def from_env(cls) -> "BridgeConfig":
        """
        Builds the full configuration tree from the environment.

        An incomplete OIDC section does not abort startup: it is logged once and
        login requests then fail with a server configuration error. A missing
        portal URL is only warned about.
        """
        oidc: OIDCSettings | None
        try:
            oidc = OIDCSettings()  # type: ignore[call-arg]
        except ValidationError as e:
            fields = ", ".join(str(err["loc"][0]) for err in e.errors() if err["loc"])
            logger.error(f"OIDC configuration is incomplete or invalid ({fields}); login is disabled")
            oidc = None

        gateway = GatewaySettings()
        if not gateway.portal_url:
            logger.warning("APIM_PORTAL_URL is not set; portal redirects will fall back to '/' on this host")

        return cls(
            oidc=oidc,
            gateway=gateway,
            managed_identity=ManagedIdentitySettings(),
        )


def is_oidc_configured() -> bool:
    """
    Checks at startup whether the four required OIDC settings are present and valid.
    Performs no network access.
    """
    try:
        OIDCSettings()  # type: ignore[call-arg]
    except ValidationError:
        return False
    return True
