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
Bridges API gateway developer portal delegation with an external OIDC Identity Provider.
"""

__version__ = "0.1.0"

from .config import BridgeConfig, GatewaySettings, ManagedIdentitySettings, OIDCSettings, is_oidc_configured
from .exceptions import DelegationError
from .models import DelegationOperation, StateBlob
from .oidc_provider import OIDCProvider, build_authorization_url
from .signature import SignatureValidator
from .state import decode_state, encode_state

__all__ = [
    "BridgeConfig",
    "DelegationError",
    "DelegationOperation",
    "GatewaySettings",
    "ManagedIdentitySettings",
    "OIDCProvider",
    "OIDCSettings",
    "SignatureValidator",
    "StateBlob",
    "build_authorization_url",
    "decode_state",
    "encode_state",
    "is_oidc_configured",
]
