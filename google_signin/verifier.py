"""
Token signature verification and claims policy.
"""

import logging
from typing import Any

from jose import ExpiredSignatureError, JWTError, jwt
from jose.exceptions import JWTClaimsError

from google_signin.claims import IdentityClaims
from google_signin.config import ClientConfig
from google_signin.errors import (
    InvalidAudienceError,
    InvalidHostedDomainError,
    InvalidIssuerError,
    InvalidKeyError,
    InvalidTokenError,
)
from google_signin.keys import KeySet, PublicKey

logger = logging.getLogger(__name__)

GOOGLE_ISSUERS = frozenset({"accounts.google.com", "https://accounts.google.com"})

# Audience and issuer are enforced by check_claims, not by the JOSE engine
_DECODE_OPTIONS = {
    "verify_aud": False,
    "verify_iss": False,
}


def check_claims(claims: IdentityClaims, config: ClientConfig) -> IdentityClaims:
    """
    Apply the issuer, audience and hosted-domain policy to decoded claims.

    Checks run in that order and the first failure wins.

    Args:
        claims: Decoded identity claims
        config: Client configuration holding the allowed audiences and domains

    Returns:
        The same claims, if every check passes

    Raises:
        InvalidIssuerError: If the issuer is not the provider
        InvalidAudienceError: If audiences are configured and 'aud' is not one of them
        InvalidHostedDomainError: If hosted domains are configured and 'hd' is
            missing or not one of them
    """
    if claims.iss not in GOOGLE_ISSUERS:
        raise InvalidIssuerError(f"Invalid issuer: {claims.iss}")

    if config.allowed_audiences and claims.aud not in config.allowed_audiences:
        raise InvalidAudienceError(f"Invalid audience: {claims.aud}")

    if config.allowed_hosted_domains and claims.hd not in config.allowed_hosted_domains:
        raise InvalidHostedDomainError(f"Invalid hosted domain: {claims.hd}")

    return claims


class TokenVerifier:
    """
    Verifies identity tokens against a key set.

    If the token header names a key-id, only that key is tried. Otherwise
    every key is tried in ascending key-id order and the first one whose
    signature verifies wins.

    Example:
        verifier = TokenVerifier()
        claims = verifier.verify(token, key_set, config)
    """

    algorithm = "RS256"

    def _candidates(self, token: str, key_set: KeySet) -> list[PublicKey]:
        try:
            header = jwt.get_unverified_header(token)
        except JWTError as e:
            raise InvalidTokenError(f"Invalid token header: {e}") from e

        kid = header.get("kid")
        if kid is None:
            logger.debug(f"No kid in token, trying all {len(key_set)} keys")
            return list(key_set.values())

        if not isinstance(kid, str):
            raise InvalidKeyError(f"Invalid kid in token header: {kid!r}")

        if kid not in key_set:
            raise InvalidKeyError(f"Key not found for kid: {kid}")
        return [key_set[kid]]

    def _decode(self, token: str, candidates: list[PublicKey]) -> dict[str, Any]:
        last_error: JWTError | None = None

        for key in candidates:
            try:
                return jwt.decode(
                    token,
                    key.to_jwk(),
                    algorithms=[self.algorithm],
                    options=_DECODE_OPTIONS,
                )
            except (ExpiredSignatureError, JWTClaimsError) as e:
                # The signature matched this key; the claims themselves are bad
                raise InvalidTokenError(f"Token verification failed: {e}") from e
            except JWTError as e:
                logger.debug(f"Signature did not verify with key {key.kid}: {e}")
                last_error = e

        if last_error is None:
            raise InvalidTokenError("No keys available to verify token")
        raise InvalidTokenError(f"Token verification failed: {last_error}") from last_error

    def verify(self, token: str, key_set: KeySet, config: ClientConfig) -> IdentityClaims:
        """
        Verify a token's signature and claims.

        Args:
            token: Compact-serialized signed token
            key_set: Provider public keys to verify against
            config: Client configuration for the claims policy

        Returns:
            Verified IdentityClaims

        Raises:
            InvalidKeyError: If the token's kid is not in the key set
            InvalidTokenError: If no candidate key verifies the token, or the
                claims are malformed or expired
            InvalidIssuerError, InvalidAudienceError, InvalidHostedDomainError:
                If the claims policy rejects the token
        """
        payload = self._decode(token, self._candidates(token, key_set))

        try:
            claims = IdentityClaims.from_payload(payload)
        except ValueError as e:
            raise InvalidTokenError(f"Token claims invalid: {e}") from e

        return check_claims(claims, config)
