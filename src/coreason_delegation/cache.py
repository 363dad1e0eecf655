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
Time-boxed cache for discovered OIDC endpoints.
"""

import time
from collections.abc import Callable
from typing import Protocol

from coreason_delegation.models import OIDCEndpoints


class DiscoveryCacheProtocol(Protocol):
    """Protocol for a cache of discovered endpoint sets keyed by issuer."""

    def get(self, issuer: str) -> OIDCEndpoints | None:
        """Returns the entry for `issuer` if present and not expired."""
        ...

    def set(self, issuer: str, endpoints: OIDCEndpoints) -> None:
        """Stores (or replaces) the entry for `issuer`."""
        ...

    def clear(self) -> None: ...


class MemoryDiscoveryCache:
    """
    In-memory implementation of DiscoveryCacheProtocol.
    Process memory only: a restart clears it. Concurrent misses may both
    refresh the same issuer; the last writer wins.
    """

    def __init__(self, ttl: float = 3600.0, clock: Callable[[], float] = time.monotonic) -> None:
        """
        Args:
            ttl: Lifetime of an entry in seconds. Defaults to 3600 (1 hour).
            clock: Source of the current time in seconds.
        """
        self.ttl = ttl
        self.clock = clock
        self._entries: dict[str, tuple[OIDCEndpoints, float]] = {}

    def get(self, issuer: str) -> OIDCEndpoints | None:
        entry = self._entries.get(issuer)
        if entry is None:
            return None

        endpoints, expires_at = entry
        if self.clock() >= expires_at:
            self._entries.pop(issuer, None)
            return None
        return endpoints

    def set(self, issuer: str, endpoints: OIDCEndpoints) -> None:
        self._entries[issuer] = (endpoints, self.clock() + self.ttl)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
