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
Custom exceptions for the coreason-delegation package.

Each exception that can reach a client carries the HTTP status and the terse
public message rendered in the JSON body. The exception message itself is
only exposed as ``details`` when ``expose_details`` is set.
"""


class DelegationError(Exception):
    """Base exception for all coreason-delegation errors."""

    status_code: int = 500
    public_message: str = "Internal server error"
    expose_details: bool = False


class SignatureValidationError(DelegationError):
    """Raised when the gateway signature is missing, malformed or does not match."""

    status_code = 401
    public_message = "Invalid signature"


class UnsupportedOperationError(DelegationError):
    """Raised when the delegation operation is unknown or not handled."""

    status_code = 400
    public_message = "Unsupported operation"


class MissingParameterError(DelegationError):
    """Raised when the callback is missing the authorization code or state."""

    status_code = 400
    public_message = "Missing code or state parameter"


class AuthorizationDeniedError(DelegationError):
    """Raised when the Identity Provider redirects back with an OAuth error."""

    status_code = 400
    public_message = "Authorization failed"
    expose_details = True


class InvalidStateError(DelegationError):
    """Raised when the OAuth state parameter cannot be decoded."""

    status_code = 400
    public_message = "Invalid state parameter"


class StateExpiredError(InvalidStateError):
    """Raised when the OAuth state parameter is older than the freshness window."""

    public_message = "State parameter expired"


class ConfigurationError(DelegationError):
    """Raised when the OIDC configuration required for a request is missing."""

    public_message = "Server configuration error"


class AuthenticationFailedError(DelegationError):
    """Raised when the OAuth flow fails after the state was accepted."""

    public_message = "Authentication failed"
    expose_details = True


class TokenExchangeError(AuthenticationFailedError):
    """Raised when the token endpoint rejects the authorization code."""


class ProvisioningError(DelegationError):
    """Raised when the user cannot be provisioned in the gateway management API."""


class ManagedIdentityUnavailableError(ProvisioningError):
    """Raised when no management API credential can be obtained."""


class OversizedResponseError(DelegationError):
    """Raised when an HTTP response is too large."""
