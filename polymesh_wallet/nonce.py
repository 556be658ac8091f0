"""Per-account transaction nonce bookkeeping.

The authoritative nonce lives on chain. :class:`NonceTracker` fetches it
once per account and then counts locally, so a burst of submissions from one
process costs a single round trip. Races with other processes are not
resolved here: a stale cache makes the chain reject the next extrinsic, and
that rejection is final.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol

from polymesh_wallet.types import PublicKey

logger = logging.getLogger(__name__)


class NonceSource(Protocol):
    """Anything that can report an account's next nonce from chain state."""

    async def get_nonce(self, account: PublicKey) -> int: ...


class NonceTracker:
    """Caches and advances account nonces for the lifetime of a process.

    An account with nothing cached is *unknown* and is fetched from the
    source on first use. Cached values only ever move forward.

    Concurrent submitters for the same account must hold :meth:`lock` across
    ``current`` → sign → submit → ``advance`` so no two extrinsics share a
    nonce.
    """

    def __init__(self, source: NonceSource) -> None:
        self._source = source
        self._cache: dict[bytes, int] = {}
        self._locks: dict[bytes, asyncio.Lock] = {}

    def lock(self, account: PublicKey) -> asyncio.Lock:
        """The lock serialising nonce use for *account*."""
        key = bytes(account)
        if key not in self._locks:
            self._locks[key] = asyncio.Lock()
        return self._locks[key]

    def cached(self, account: PublicKey) -> int | None:
        """The locally known nonce, or ``None`` if it has not been fetched."""
        return self._cache.get(bytes(account))

    async def current(self, account: PublicKey) -> int:
        """Return the nonce to use for the next extrinsic from *account*."""
        key = bytes(account)
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        nonce = await self._source.get_nonce(PublicKey(account))
        if nonce < 0:
            raise ValueError(f"chain returned a negative nonce: {nonce}")
        logger.debug("fetched nonce %d for 0x%s", nonce, key.hex())
        # Another task may have advanced past the fetched value meanwhile.
        self._cache[key] = max(nonce, self._cache.get(key, nonce))
        return self._cache[key]

    def advance(self, account: PublicKey) -> int:
        """Record one accepted submission; returns the new cached nonce.

        Raises:
            LookupError: If no nonce was ever obtained for *account*.
        """
        key = bytes(account)
        if key not in self._cache:
            raise LookupError(f"no nonce known for 0x{key.hex()}")
        self._cache[key] += 1
        logger.debug("advanced nonce for 0x%s to %d", key.hex(), self._cache[key])
        return self._cache[key]
