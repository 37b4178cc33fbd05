"""
JSON Web Key Set cache.

Fetches the identity provider's signing keys and keeps them for a fixed
time. A token signed with a key we haven't seen triggers one early
refetch, which is how key rotation gets picked up before the TTL runs out.
"""

import asyncio
import logging
import time
from typing import Callable, Optional

import httpx
import jwt

from .exceptions import InvalidTokenError, KeySetUnavailableError

logger = logging.getLogger(__name__)


class JWKSCache:
    """Caches a JWKS document fetched over HTTPS."""

    def __init__(
        self,
        url: str,
        ttl_seconds: float = 3600,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._url = url
        self._ttl = ttl_seconds
        self._timeout = timeout
        self._transport = transport
        self._clock = clock
        self._keys: dict[str, jwt.PyJWK] = {}
        self._default_key: Optional[jwt.PyJWK] = None
        self._fetched_at: Optional[float] = None
        self._lock = asyncio.Lock()

    @property
    def is_fresh(self) -> bool:
        if self._fetched_at is None:
            return False
        return self._clock() - self._fetched_at < self._ttl

    def invalidate(self) -> None:
        """Drop the cached keys; the next lookup refetches."""
        self._fetched_at = None

    async def _fetch(self) -> None:
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.get(self._url)
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Failed to fetch JWKS from {self._url}: {e}")
            raise KeySetUnavailableError() from e

        if not isinstance(data, dict):
            logger.error(f"JWKS from {self._url} is not a JSON object")
            raise KeySetUnavailableError()

        try:
            key_set = jwt.PyJWKSet.from_dict(data)
        except jwt.PyJWKSetError as e:
            logger.error(f"JWKS from {self._url} has no usable keys: {e}")
            raise KeySetUnavailableError() from e

        self._keys = {key.key_id: key for key in key_set.keys if key.key_id}
        self._default_key = key_set.keys[0]
        self._fetched_at = self._clock()
        logger.info(f"Loaded {len(key_set.keys)} signing keys from {self._url}")

    async def _refresh(self, stale_at: Optional[float]) -> None:
        async with self._lock:
            # Another task may have refreshed while we waited
            if self._fetched_at is not None and self._fetched_at != stale_at and self.is_fresh:
                return
            await self._fetch()

    async def get_signing_key(self, kid: Optional[str]) -> jwt.PyJWK:
        """
        Get the key for a token's ``kid`` header.

        Tokens without a ``kid`` use the first key in the set.

        Raises:
            InvalidTokenError: If the kid is still unknown after a refetch
            KeySetUnavailableError: If the key set can't be fetched
        """
        if not self.is_fresh:
            await self._refresh(self._fetched_at)

        key = self._lookup(kid)
        if key is None:
            await self._refresh(self._fetched_at)
            key = self._lookup(kid)
        if key is None:
            raise InvalidTokenError("Token signed with an unknown key")
        return key

    def _lookup(self, kid: Optional[str]) -> Optional[jwt.PyJWK]:
        if kid is None:
            return self._default_key
        return self._keys.get(kid)
