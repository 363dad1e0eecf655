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
Validation of the HMAC-SHA512 signature the gateway attaches to delegation requests.
"""

import base64
import binascii
import hashlib
import hmac

from pydantic import SecretStr

from coreason_delegation.exceptions import SignatureValidationError
from coreason_delegation.models import DelegationOperation, DelegationRequest
from coreason_delegation.utils.logger import logger


def canonical_string(
    operation: DelegationOperation,
    salt: str | None,
    return_url: str | None,
    user_id: str | None,
) -> str:
    """
    Builds the exact string the gateway signs for the given operation.

    Args:
        operation: The delegation operation.
        salt: The per-request salt.
        return_url: The portal return URL (login operations).
        user_id: The gateway user id (account operations).

    Returns:
        str: ``salt + "\\n" + returnUrl`` or ``salt + "\\n" + userId``.
    """
    match operation:
        case DelegationOperation.SIGN_IN | DelegationOperation.SIGN_UP:
            subject = return_url
        case (
            DelegationOperation.CHANGE_PASSWORD
            | DelegationOperation.CHANGE_PROFILE
            | DelegationOperation.CLOSE_ACCOUNT
            | DelegationOperation.SIGN_OUT
        ):
            subject = user_id
    return f"{salt or ''}\n{subject or ''}"


def compute_signature(validation_key: str, text: str) -> str:
    """
    Computes the base64 HMAC-SHA512 of `text`, keyed by the base64-decoded validation key.

    Raises:
        ValueError: If the validation key is not valid base64.
    """
    key_bytes = base64.b64decode(validation_key, validate=True)
    digest = hmac.new(key_bytes, text.encode("utf-8"), hashlib.sha512).digest()
    return base64.b64encode(digest).decode("ascii")


class SignatureValidator:
    """
    Verifies delegation request signatures against the shared validation key.

    Attributes:
        validation_key (SecretStr | None): The base64 key shared with the gateway.
    """

    def __init__(self, validation_key: SecretStr | None) -> None:
        self.validation_key = validation_key

    def is_valid(self, request: DelegationRequest) -> bool:
        """
        Returns True when the request carries a signature matching the canonical string.
        """
        if self.validation_key is None or not request.signature:
            logger.warning("Signature validation skipped: validation key or signature missing")
            return False

        text = canonical_string(request.operation, request.salt, request.return_url, request.user_id)
        try:
            expected = compute_signature(self.validation_key.get_secret_value(), text)
        except (binascii.Error, ValueError):
            logger.error("Delegation validation key is not valid base64")
            return False

        matches = hmac.compare_digest(expected.encode("ascii"), request.signature.encode("utf-8"))
        logger.debug(f"Signature check for {request.operation.value}: {'match' if matches else 'mismatch'}")
        return matches

    def validate(self, request: DelegationRequest) -> None:
        """
        Raises:
            SignatureValidationError: If the signature is missing or does not match.
        """
        if not self.is_valid(request):
            raise SignatureValidationError(f"Signature validation failed for {request.operation.value}")
