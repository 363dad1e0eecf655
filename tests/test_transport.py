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
Tests for bounded JSON fetching.
"""

from collections.abc import AsyncGenerator

import httpx
import pytest
from conftest import MockUpstream

from coreason_delegation.exceptions import OversizedResponseError
from coreason_delegation.transport import safe_json_fetch

URL = "https://upstream.example.com/data"


class TestSafeJsonFetch:
    @pytest.mark.asyncio
    async def test_parses_json(self, http_client: httpx.AsyncClient, upstream: MockUpstream) -> None:
        upstream.add("GET", URL, json_body={"a": 1})
        assert await safe_json_fetch(http_client, URL) == {"a": 1}

    @pytest.mark.asyncio
    async def test_empty_body_is_empty_dict(self, http_client: httpx.AsyncClient, upstream: MockUpstream) -> None:
        upstream.add("GET", URL, content=b"  ")
        assert await safe_json_fetch(http_client, URL) == {}

    @pytest.mark.asyncio
    async def test_error_status_raises(self, http_client: httpx.AsyncClient, upstream: MockUpstream) -> None:
        upstream.add("GET", URL, status=503, json_body={"error": "down"})
        with pytest.raises(httpx.HTTPStatusError):
            await safe_json_fetch(http_client, URL)

    @pytest.mark.asyncio
    async def test_error_status_body_when_not_raising(
        self, http_client: httpx.AsyncClient, upstream: MockUpstream
    ) -> None:
        upstream.add("POST", URL, status=400, json_body={"error": "invalid_grant"})
        data = await safe_json_fetch(http_client, URL, method="POST", raise_for_status=False, data={"x": "1"})
        assert data == {"error": "invalid_grant"}

    @pytest.mark.asyncio
    async def test_invalid_json_raises_value_error(
        self, http_client: httpx.AsyncClient, upstream: MockUpstream
    ) -> None:
        upstream.add("GET", URL, content=b"{not json")
        with pytest.raises(ValueError):
            await safe_json_fetch(http_client, URL)

    @pytest.mark.asyncio
    async def test_oversized_body(self, http_client: httpx.AsyncClient, upstream: MockUpstream) -> None:
        upstream.add("GET", URL, content=b'{"a": "' + b"x" * 200 + b'"}')
        with pytest.raises(OversizedResponseError):
            await safe_json_fetch(http_client, URL, max_bytes=100)

    @pytest.mark.asyncio
    async def test_oversized_streamed_body_without_content_length(self) -> None:
        async def chunks() -> AsyncGenerator[bytes, None]:
            for _ in range(10):
                yield b"x" * 50

        def respond(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=chunks())

        async with httpx.AsyncClient(transport=httpx.MockTransport(respond)) as client:
            with pytest.raises(OversizedResponseError):
                await safe_json_fetch(client, URL, max_bytes=100)

    @pytest.mark.asyncio
    async def test_invalid_content_length_is_ignored(self) -> None:
        def respond(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, headers={"Content-Length": "bogus"}, content=b'{"ok": true}')

        async with httpx.AsyncClient(transport=httpx.MockTransport(respond)) as client:
            assert await safe_json_fetch(client, URL) == {"ok": True}
