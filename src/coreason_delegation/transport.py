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
Bounded JSON fetching shared by every outbound call.
"""

import json
from typing import Any

import httpx

from coreason_delegation.exceptions import OversizedResponseError

MAX_RESPONSE_BYTES = 1_000_000


async def safe_json_fetch(
    client: httpx.AsyncClient,
    url: str,
    method: str = "GET",
    raise_for_status: bool = True,
    max_bytes: int = MAX_RESPONSE_BYTES,
    **kwargs: Any,
) -> Any:
    """
    Performs a request and parses the JSON body without reading more than `max_bytes`.

    Args:
        client: The async HTTP client to use.
        url: The target URL.
        method: The HTTP method.
        raise_for_status: If True, non-2xx responses raise `httpx.HTTPStatusError`.
            Set to False for OAuth endpoints that describe errors in a 4xx JSON body.
        max_bytes: Maximum accepted body size.
        **kwargs: Passed through to `client.stream` (headers, data, json, params).

    Returns:
        Any: The parsed JSON document. An empty body yields an empty dict.

    Raises:
        OversizedResponseError: If the body exceeds `max_bytes`.
        httpx.HTTPError: On transport errors or (optionally) error statuses.
        ValueError: If the body is not valid JSON.
    """
    async with client.stream(method, url, **kwargs) as response:
        content_length = response.headers.get("Content-Length")
        if content_length:
            try:
                if int(content_length) > max_bytes:
                    raise OversizedResponseError(f"Response from {url} too large")
            except ValueError:
                pass

        content = bytearray()
        async for chunk in response.aiter_bytes():
            content.extend(chunk)
            if len(content) > max_bytes:
                raise OversizedResponseError(f"Response from {url} too large")

        if raise_for_status:
            response.raise_for_status()

    if not content.strip():
        return {}

    return json.loads(content)
