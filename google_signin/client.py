"""
Client facade: key cache plus token verifier behind one ``verify`` call.
"""

import logging
import time
from collections.abc import Callable

import httpx

from google_signin.cache import KeyCache
from google_signin.claims import IdentityClaims
from google_signin.config import ClientConfig
from google_signin.errors import (
    DecodeError,
    GoogleSigninError,
    InvalidTokenError,
    KeySetError,
    ProviderConnectionError,
)
from google_signin.keys import KeySet, KeySetFetcher
from google_signin.verifier import TokenVerifier, check_claims

logger = logging.getLogger(__name__)


class Client:
    """
    Verifies provider identity tokens.

    Construct one Client per application and share it: it owns the key
    cache, so every verification after the first reuses the downloaded keys
    until their Cache-Control max-age runs out.

    Args:
        config: Allowed audiences / hosted domains and endpoint settings
        http_client: Optional shared httpx.AsyncClient; a short-lived client
            is created per request when omitted
        clock: Monotonic clock used for key expiry (injectable for tests)

    Example:
        client = Client(ClientConfig(allowed_audiences={"my-client-id"}))
        try:
            claims = await client.verify(id_token)
        except TokenRejectedError as e:
            print(f"Rejected: {e.message} ({e.code})")
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        *,
        http_client: httpx.AsyncClient | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self.config = config or ClientConfig()
        clock = clock or time.monotonic
        self._http_client = http_client
        self._fetcher = KeySetFetcher(
            url=self.config.certs_url,
            http_client=http_client,
            timeout=self.config.http_timeout,
            clock=clock,
        )
        self.key_cache = KeyCache(
            self._fetcher,
            clock=clock,
            stale_if_error=self.config.stale_if_error,
        )
        self._verifier = TokenVerifier()

    async def verify(self, id_token: str) -> IdentityClaims:
        """
        Verify a token's signature and its issuer, audience and hosted domain.

        This is the main entry point. It:
        1. Gets the cached key set, refreshing it if expired
        2. Verifies the token signature locally
        3. Applies the claims policy

        Args:
            id_token: Compact-serialized identity token

        Returns:
            Verified IdentityClaims

        Raises:
            KeySetError: If the key set could not be obtained
            TokenRejectedError: If the token is invalid or fails the policy
        """
        try:
            key_set = await self.key_cache.get_or_refresh()
        except KeySetError as e:
            logger.warning(f"Key set unavailable, cannot verify token: {e.message} ({e.code})")
            raise
        return self.verify_with(id_token, key_set)

    def verify_with(self, id_token: str, key_set: KeySet) -> IdentityClaims:
        """
        Verify a token against a caller-managed key set.

        Performs no network I/O, so applications can decide themselves when
        keys are downloaded (see fetch_keys). Prefer verify().
        """
        try:
            claims = self._verifier.verify(id_token, key_set, self.config)
        except GoogleSigninError as e:
            logger.warning(f"Token verification failed: {e.message} ({e.code})")
            raise

        logger.debug(f"Token verified for user {claims.sub}")
        return claims

    async def fetch_keys(self) -> tuple[KeySet, float | None]:
        """Download the key set now, bypassing the cache."""
        return await self._fetcher.fetch()

    async def _get_tokeninfo(self, id_token: str) -> httpx.Response:
        params = {"id_token": id_token}
        try:
            if self._http_client is not None:
                return await self._http_client.get(self.config.tokeninfo_url, params=params)
            async with httpx.AsyncClient(timeout=self.config.http_timeout) as client:
                return await client.get(self.config.tokeninfo_url, params=params)
        except httpx.HTTPError as e:
            raise ProviderConnectionError(f"HTTP error calling tokeninfo: {e}") from e

    async def verify_with_tokeninfo(self, id_token: str) -> IdentityClaims:
        """
        Check a token through the provider's introspection endpoint.

        WARNING: this is weaker than verify(). No signature is checked
        locally; the provider's HTTP answer is trusted instead, and each call
        costs a network round-trip. Only the claims policy (issuer, audience,
        hosted domain) is applied here. Kept for compatibility.

        Raises:
            ProviderConnectionError: If the endpoint cannot be reached
            InvalidTokenError: If the endpoint rejects the token
            DecodeError: If the response body is not a claim set
            InvalidIssuerError, InvalidAudienceError, InvalidHostedDomainError:
                If the claims policy rejects the token
        """
        response = await self._get_tokeninfo(id_token)

        if not response.is_success:
            logger.warning(f"Tokeninfo rejected token: HTTP {response.status_code}")
            raise InvalidTokenError(f"Token rejected by tokeninfo: HTTP {response.status_code}")

        try:
            claims = IdentityClaims.from_payload(response.json())
        except ValueError as e:
            raise DecodeError(f"Invalid tokeninfo response: {e}") from e

        try:
            return check_claims(claims, self.config)
        except GoogleSigninError as e:
            logger.warning(f"Tokeninfo claims rejected: {e.message} ({e.code})")
            raise
