"""
Provider public keys and the fetcher that downloads them.
"""

import logging
import time
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass
from typing import Any

import httpx

from google_signin.cache_control import parse_cache_control
from google_signin.config import CERTS_URL
from google_signin.errors import DecodeError, ProviderConnectionError, ServerRejectedError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PublicKey:
    """One RSA public key from the provider's key set."""

    kid: str
    n: str
    e: str
    kty: str = "RSA"
    alg: str = "RS256"
    use: str = "sig"

    def to_jwk(self) -> dict[str, str]:
        """Return the key as a JWK dictionary usable by the JOSE engine."""
        return {"kty": self.kty, "kid": self.kid, "n": self.n, "e": self.e}

    @classmethod
    def from_jwk(cls, record: Any) -> "PublicKey":
        """
        Build a PublicKey from one entry of a JWKS 'keys' array.

        Raises:
            ValueError: If kid, n or e is missing or not a string
        """
        if not isinstance(record, Mapping):
            raise ValueError("key record is not an object")
        for name in ("kid", "n", "e"):
            if not isinstance(record.get(name), str):
                raise ValueError(f"key record missing '{name}'")
        return cls(
            kid=record["kid"],
            n=record["n"],
            e=record["e"],
            kty=str(record.get("kty", "RSA")),
            alg=str(record.get("alg", "RS256")),
            use=str(record.get("use", "sig")),
        )


class KeySet(Mapping[str, PublicKey]):
    """
    Immutable mapping of key-id to PublicKey.

    Iteration is always in ascending key-id order. Token verification relies
    on this order when a token carries no key-id and every key is tried.
    """

    def __init__(self, keys: Mapping[str, PublicKey] | None = None) -> None:
        self._keys = dict(sorted((keys or {}).items()))

    def __getitem__(self, kid: str) -> PublicKey:
        return self._keys[kid]

    def __iter__(self) -> Iterator[str]:
        return iter(self._keys)

    def __len__(self) -> int:
        return len(self._keys)

    def __repr__(self) -> str:
        return f"KeySet({list(self._keys)!r})"

    @classmethod
    def from_jwks(cls, jwks: Any) -> "KeySet":
        """
        Build a KeySet from a decoded JWKS document.

        Duplicate key-ids overwrite earlier entries (last one wins).

        Raises:
            ValueError: If the document is not a JWKS with a 'keys' array
        """
        if not isinstance(jwks, Mapping) or not isinstance(jwks.get("keys"), list):
            raise ValueError("missing 'keys' array")
        keys: dict[str, PublicKey] = {}
        for record in jwks["keys"]:
            key = PublicKey.from_jwk(record)
            keys[key.kid] = key
        return cls(keys)


class KeySetFetcher:
    """
    Downloads the provider's key set in one HTTP round-trip.

    The expiry returned alongside the keys is an instant on ``clock``
    derived from the response's Cache-Control ``max-age``. When that
    directive is missing or the header does not parse, the expiry is None,
    meaning the keys are already stale and the next use fetches again.

    Example:
        fetcher = KeySetFetcher()
        key_set, expiry = await fetcher.fetch()
    """

    def __init__(
        self,
        url: str = CERTS_URL,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self.url = url
        self._http_client = http_client
        self._timeout = timeout
        self._clock = clock or time.monotonic

    async def _get(self) -> httpx.Response:
        try:
            if self._http_client is not None:
                return await self._http_client.get(self.url)
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                return await client.get(self.url)
        except httpx.HTTPError as e:
            raise ProviderConnectionError(f"HTTP error fetching keys from {self.url}: {e}") from e

    def _expiry(self, response: httpx.Response) -> float | None:
        header = response.headers.get("cache-control")
        if header is None:
            return None
        policy = parse_cache_control(header)
        if policy is None or policy.max_age is None:
            return None
        return self._clock() + policy.max_age.total_seconds()

    async def fetch(self) -> tuple[KeySet, float | None]:
        """
        Fetch the key set.

        Returns:
            Tuple of (KeySet, expiry instant or None)

        Raises:
            ProviderConnectionError: If the provider cannot be reached
            ServerRejectedError: If the provider answers with a non-2xx status
            DecodeError: If the body is not a valid JWKS document
        """
        response = await self._get()

        if not response.is_success:
            raise ServerRejectedError(
                f"Failed to fetch keys: HTTP {response.status_code} from {self.url}",
                status_code=response.status_code,
            )

        try:
            key_set = KeySet.from_jwks(response.json())
        except ValueError as e:
            raise DecodeError(f"Invalid key set response from {self.url}: {e}") from e

        expiry = self._expiry(response)
        logger.debug(f"Fetched {len(key_set)} keys from {self.url}")
        return key_set, expiry
