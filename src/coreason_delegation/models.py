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
Data models for the coreason-delegation package.
"""

from dataclasses import dataclass
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, EmailStr, Field, SecretStr


class DelegationOperation(StrEnum):
    """Operations the gateway developer portal delegates to us."""

    SIGN_IN = "SignIn"
    SIGN_UP = "SignUp"
    CHANGE_PASSWORD = "ChangePassword"
    CHANGE_PROFILE = "ChangeProfile"
    CLOSE_ACCOUNT = "CloseAccount"
    SIGN_OUT = "SignOut"


class DelegationRequest(BaseModel):
    """
    A delegated authentication request, built from the query string.
    Exists only for the duration of one request.
    """

    model_config = ConfigDict(frozen=True)

    operation: DelegationOperation
    salt: str | None = None
    return_url: str | None = None
    user_id: str | None = None
    signature: str | None = None

    def __repr__(self) -> str:
        return (
            f"DelegationRequest(operation={self.operation.value!r}, "
            f"return_url={self.return_url!r}, "
            f"user_id={'<REDACTED>' if self.user_id else None}, "
            f"signature={'<REDACTED>' if self.signature else None})"
        )

    def __str__(self) -> str:
        return self.__repr__()


class StateBlob(BaseModel):
    """
    Request context round-tripped through the Identity Provider as the OAuth ``state``.

    The JSON keys are part of the wire format and must stay decodable across deployments.
    """

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    return_url: str = Field(..., alias="returnUrl")
    salt: str | None = None
    user_id: str | None = Field(default=None, alias="userId")
    timestamp: int = Field(..., description="Creation time in epoch milliseconds.")


class OIDCEndpoints(BaseModel):
    """
    The endpoint set resolved from the discovery document or from the fallback paths.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    authorization_endpoint: str = Field(..., min_length=1)
    token_endpoint: str = Field(..., min_length=1)
    userinfo_endpoint: str = Field(..., min_length=1)
    end_session_endpoint: str | None = None
    issuer: str | None = None


class OIDCConfiguration(BaseModel):
    """
    Client settings combined with the resolved endpoints; everything needed for the OAuth flow.
    """

    model_config = ConfigDict(frozen=True)

    client_id: str
    client_secret: SecretStr
    redirect_uri: str
    scopes: list[str] = Field(default_factory=lambda: ["openid", "profile", "email"])
    endpoints: OIDCEndpoints


class TokenResponse(BaseModel):
    """
    Response of the authorization code exchange.

    Attributes:
        access_token (str): The access token issued by the authorization server.
        refresh_token (str | None): The refresh token, if issued.
        id_token (str | None): The ID token, if issued.
        token_type (str): The type of the token (e.g. "Bearer").
        expires_in (int | None): The lifetime in seconds of the access token.
    """

    model_config = ConfigDict(extra="ignore")

    access_token: str = Field(..., min_length=1)
    refresh_token: str | None = None
    id_token: str | None = None
    token_type: str = "Bearer"
    expires_in: int | None = None


class UserInfo(BaseModel):
    """Claims returned by the userinfo endpoint."""

    model_config = ConfigDict(extra="ignore")

    sub: str
    email: str | None = None
    name: str | None = None
    given_name: str | None = None
    family_name: str | None = None

    @property
    def first_name(self) -> str:
        if self.given_name:
            return self.given_name
        parts = (self.name or "").split(" ")
        return parts[0]

    @property
    def last_name(self) -> str:
        if self.family_name:
            return self.family_name
        parts = (self.name or "").split(" ")
        return " ".join(parts[1:])


class PortalUser(BaseModel):
    """
    The user record written to the gateway management API.
    Derived from Identity Provider claims; the gateway owns nothing else about it.
    """

    model_config = ConfigDict(frozen=True)

    user_id: str
    email: EmailStr
    first_name: str = ""
    last_name: str = ""
    note: str = "User authenticated via OIDC"

    def __repr__(self) -> str:
        return f"PortalUser(user_id='<REDACTED>', email='<REDACTED>', note={self.note!r})"

    def __str__(self) -> str:
        return self.__repr__()


@dataclass(frozen=True)
class Provisioned:
    """The user was created or updated and a portal single sign-on URL was issued."""

    redirect_url: str


@dataclass(frozen=True)
class NotProvisioned:
    """The user authenticated but could not be provisioned in the gateway."""

    reason: str


ProvisioningResult = Provisioned | NotProvisioned
