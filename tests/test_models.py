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
from pydantic import ValidationError

from coreason_delegation.models import (
    DelegationOperation,
    DelegationRequest,
    OIDCEndpoints,
    PortalUser,
    StateBlob,
    TokenResponse,
    UserInfo,
)


def test_operation_values() -> None:
    assert [op.value for op in DelegationOperation] == [
        "SignIn",
        "SignUp",
        "ChangePassword",
        "ChangeProfile",
        "CloseAccount",
        "SignOut",
    ]


def test_delegation_request_repr_redacts_secrets() -> None:
    request = DelegationRequest(
        operation=DelegationOperation.SIGN_OUT,
        salt="s",
        user_id="alice@example.com",
        signature="c2lnbmF0dXJl",
    )
    text = repr(request)
    assert "alice@example.com" not in text
    assert "c2lnbmF0dXJl" not in text
    assert str(request) == text


def test_delegation_request_is_frozen() -> None:
    request = DelegationRequest(operation=DelegationOperation.SIGN_IN)
    with pytest.raises(ValidationError):
        request.salt = "changed"  # type: ignore[misc]


def test_state_blob_accepts_alias_and_field_names() -> None:
    by_alias = StateBlob.model_validate({"returnUrl": "/", "userId": "u", "timestamp": 1})
    by_name = StateBlob(return_url="/", user_id="u", timestamp=1)
    assert by_alias == by_name


def test_endpoints_require_core_urls() -> None:
    with pytest.raises(ValidationError):
        OIDCEndpoints(authorization_endpoint="https://a", token_endpoint="", userinfo_endpoint="https://u")


def test_token_response_defaults() -> None:
    tokens = TokenResponse(access_token="at", scope="openid")  # type: ignore[call-arg]
    assert tokens.token_type == "Bearer"
    assert tokens.refresh_token is None


@pytest.mark.parametrize(
    "claims,first,last",
    [
        ({"given_name": "Ada", "family_name": "Lovelace", "name": "Countess"}, "Ada", "Lovelace"),
        ({"name": "Ada King Lovelace"}, "Ada", "King Lovelace"),
        ({"name": "Ada"}, "Ada", ""),
        ({}, "", ""),
    ],
)
def test_user_info_names(claims: dict[str, str], first: str, last: str) -> None:
    info = UserInfo(sub="s", **claims)
    assert info.first_name == first
    assert info.last_name == last


def test_portal_user_repr_redacts_pii() -> None:
    user = PortalUser(user_id="alice_example_com", email="alice@example.com")
    assert "alice" not in repr(user)
    assert user.note == "User authenticated via OIDC"
