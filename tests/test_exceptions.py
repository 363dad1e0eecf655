# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_delegation

import pytest

from coreason_delegation.exceptions import (
    AuthenticationFailedError,
    AuthorizationDeniedError,
    ConfigurationError,
    DelegationError,
    InvalidStateError,
    ManagedIdentityUnavailableError,
    MissingParameterError,
    OversizedResponseError,
    ProvisioningError,
    SignatureValidationError,
    StateExpiredError,
    TokenExchangeError,
    UnsupportedOperationError,
)


def test_exception_hierarchy() -> None:
    """Test that all custom exceptions inherit from DelegationError."""
    for exc in (
        SignatureValidationError,
        UnsupportedOperationError,
        MissingParameterError,
        AuthorizationDeniedError,
        InvalidStateError,
        ConfigurationError,
        AuthenticationFailedError,
        ProvisioningError,
        OversizedResponseError,
    ):
        assert issubclass(exc, DelegationError)

    assert issubclass(StateExpiredError, InvalidStateError)
    assert issubclass(TokenExchangeError, AuthenticationFailedError)
    assert issubclass(ManagedIdentityUnavailableError, ProvisioningError)


@pytest.mark.parametrize(
    "exc,status,message",
    [
        (SignatureValidationError, 401, "Invalid signature"),
        (UnsupportedOperationError, 400, "Unsupported operation"),
        (MissingParameterError, 400, "Missing code or state parameter"),
        (AuthorizationDeniedError, 400, "Authorization failed"),
        (InvalidStateError, 400, "Invalid state parameter"),
        (StateExpiredError, 400, "State parameter expired"),
        (ConfigurationError, 500, "Server configuration error"),
        (AuthenticationFailedError, 500, "Authentication failed"),
        (TokenExchangeError, 500, "Authentication failed"),
        (ProvisioningError, 500, "Internal server error"),
    ],
)
def test_public_status_and_message(exc: type[DelegationError], status: int, message: str) -> None:
    assert exc.status_code == status
    assert exc.public_message == message


def test_only_flow_failures_expose_details() -> None:
    assert AuthorizationDeniedError.expose_details is True
    assert AuthenticationFailedError.expose_details is True
    assert SignatureValidationError.expose_details is False
    assert InvalidStateError.expose_details is False


def test_exception_instantiation() -> None:
    err = StateExpiredError("State is 660000 ms old")
    assert str(err) == "State is 660000 ms old"
