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
Encoding of the OAuth state blob.

Wire format: standard base64 of compact JSON ``{"returnUrl", "salt", "userId", "timestamp"}``,
with ``userId`` omitted when absent.
"""

import base64
import binascii

from pydantic import ValidationError

from coreason_delegation.exceptions import InvalidStateError, StateExpiredError
from coreason_delegation.models import StateBlob

DEFAULT_MAX_AGE_MS = 600_000
MAX_CLOCK_SKEW_MS = 60_000


def encode_state(blob: StateBlob) -> str:
    payload = blob.model_dump_json(by_alias=True, exclude_none=True)
    return base64.b64encode(payload.encode("utf-8")).decode("ascii")


def decode_state(encoded: str) -> StateBlob:
    """
    Decodes a state parameter produced by `encode_state`.

    Raises:
        InvalidStateError: If the value is not base64 encoded JSON of the expected shape.
    """
    try:
        raw = base64.b64decode(encoded.strip(), validate=True)
        return StateBlob.model_validate_json(raw)
    except (binascii.Error, ValueError, ValidationError) as e:
        raise InvalidStateError(f"Failed to decode state: {e}") from e


def ensure_fresh(
    blob: StateBlob,
    now_ms: int,
    max_age_ms: int = DEFAULT_MAX_AGE_MS,
    max_skew_ms: int = MAX_CLOCK_SKEW_MS,
) -> None:
    """
    Raises:
        StateExpiredError: If the blob is older than `max_age_ms`.
        InvalidStateError: If the blob is dated more than `max_skew_ms` in the future.
    """
    age = now_ms - blob.timestamp
    if age < -max_skew_ms:
        raise InvalidStateError(f"State timestamp is {-age} ms in the future (limit {max_skew_ms} ms)")
    if age > max_age_ms:
        raise StateExpiredError(f"State is {age} ms old (limit {max_age_ms} ms)")
