"""
JWKS client for fetching verification keys over HTTP.
"""

from __future__ import annotations

import threading
import time
from typing import Any, Callable, Protocol, runtime_checkable

import httpx
import jwt

from .errors import KeyFetchError


@runtime_checkable
class KeyResolver(Protocol):
    """Anything that can map a ``kid`` from the token header to a key."""

    def get_signing_key(self, kid: str | None) -> Any: ...


class JwksClient:
    """
    Client for a JSON Web Key Set endpoint.

    Keys are cached for ``cache_ttl_s`` seconds. A ``kid`` missing from the
    cached set triggers one refetch before giving up, so rotated keys are
    picked up without waiting for the cache to expire.

    Args:
        jwks_url: URL serving ``{"keys": [...]}``
        timeout_s: Request timeout in seconds. Default: 5.0
        cache_ttl_s: How long a fetched key set is trusted. Default: 300

    Example:
        >>> keys = JwksClient("https://issuer.example.com/.well-known/jwks.json")
        >>> options = GateOptions.create(keys).with_algorithms(["RS256"])
    """

    def __init__(
        self,
        jwks_url: str,
        timeout_s: float = 5.0,
        cache_ttl_s: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.jwks_url = jwks_url
        self.timeout_s = timeout_s
        self.cache_ttl_s = cache_ttl_s
        self._clock = clock
        self._lock = threading.Lock()
        self._keys: dict[str | None, Any] = {}
        self._fetched_at: float | None = None

    def __repr__(self) -> str:
        return f"JwksClient({self.jwks_url!r})"

    def get_signing_key(self, kid: str | None) -> Any:
        """
        Return the key for ``kid``, fetching the key set synchronously if needed.

        Raises:
            KeyFetchError: On network errors, a malformed key set or an unknown kid
        """
        key = self._cached(kid)
        if key is not None:
            return key

        try:
            with httpx.Client(timeout=self.timeout_s) as client:
                response = client.get(self.jwks_url)
        except httpx.HTTPError as e:
            raise KeyFetchError(f"Could not fetch key set: {e}") from e

        return self._store_and_lookup(response, kid)

    async def aget_signing_key(self, kid: str | None) -> Any:
        """Async variant of get_signing_key."""
        key = self._cached(kid)
        if key is not None:
            return key

        try:
            async with httpx.AsyncClient(timeout=self.timeout_s) as client:
                response = await client.get(self.jwks_url)
        except httpx.HTTPError as e:
            raise KeyFetchError(f"Could not fetch key set: {e}") from e

        return self._store_and_lookup(response, kid)

    def _cached(self, kid: str | None) -> Any:
        with self._lock:
            if self._fetched_at is None:
                return None
            if self._clock() - self._fetched_at > self.cache_ttl_s:
                return None
            return self._lookup(kid)

    def _lookup(self, kid: str | None) -> Any:
        if kid is None and len(self._keys) == 1:
            return next(iter(self._keys.values()))
        return self._keys.get(kid)

    def _store_and_lookup(self, response: httpx.Response, kid: str | None) -> Any:
        keys = self._parse_response(response)
        with self._lock:
            self._keys = keys
            self._fetched_at = self._clock()
            key = self._lookup(kid)

        if key is None:
            raise KeyFetchError(f"No key found for kid {kid!r}")
        return key

    def _parse_response(self, response: httpx.Response) -> dict[str | None, Any]:
        """Parse a JWKS response into kid -> key."""
        if response.status_code >= 400:
            raise KeyFetchError(f"Key set endpoint returned {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            raise KeyFetchError("Key set endpoint returned invalid JSON") from e

        entries = data.get("keys") if isinstance(data, dict) else None
        if not isinstance(entries, list):
            raise KeyFetchError("Key set has no 'keys' list")

        keys: dict[str | None, Any] = {}
        for entry in entries:
            if not isinstance(entry, dict) or entry.get("use", "sig") != "sig":
                continue
            try:
                jwk = jwt.PyJWK(entry)
            except jwt.PyJWTError:
                # Keys using algorithms this install cannot handle are skipped
                continue
            keys[entry.get("kid")] = jwk.key
        return keys
