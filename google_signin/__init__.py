"""
google-signin-verify: Verify Google identity tokens in server applications.

This library provides:
- Local RS256 signature verification against the provider's published keys
- A key cache that honours Cache-Control max-age and coalesces concurrent
  refreshes into a single fetch
- Issuer / audience / hosted-domain policy checks
- FastAPI dependency factories

Quick start:
    from google_signin import Client, ClientConfig

    client = Client(ClientConfig(allowed_audiences={"1234.apps.googleusercontent.com"}))
    claims = await client.verify(id_token)
    print(claims.sub, claims.email)
"""

from google_signin.cache import KeyCache
from google_signin.cache_control import Cachability, CachePolicy, parse_cache_control
from google_signin.claims import IdentityClaims
from google_signin.client import Client
from google_signin.config import CERTS_URL, TOKENINFO_URL, ClientConfig
from google_signin.errors import (
    DecodeError,
    GoogleSigninError,
    InvalidAudienceError,
    InvalidHostedDomainError,
    InvalidIssuerError,
    InvalidKeyError,
    InvalidTokenError,
    KeySetError,
    MissingCredentialsError,
    ProviderConnectionError,
    ServerRejectedError,
    TokenRejectedError,
)
from google_signin.fastapi import (
    optional_identity,
    parse_bearer_token,
    require_identity,
    require_verified_email,
)
from google_signin.keys import KeySet, KeySetFetcher, PublicKey
from google_signin.verifier import GOOGLE_ISSUERS, TokenVerifier, check_claims

__version__ = "0.1.0"

__all__ = [
    # Config
    "ClientConfig",
    "CERTS_URL",
    "TOKENINFO_URL",
    # Claims
    "IdentityClaims",
    # Client
    "Client",
    # Keys and cache
    "KeyCache",
    "KeySet",
    "KeySetFetcher",
    "PublicKey",
    "Cachability",
    "CachePolicy",
    "parse_cache_control",
    # FastAPI dependencies
    "parse_bearer_token",
    "require_identity",
    "optional_identity",
    "require_verified_email",
    # Verification
    "TokenVerifier",
    "check_claims",
    "GOOGLE_ISSUERS",
    # Errors
    "GoogleSigninError",
    "KeySetError",
    "ProviderConnectionError",
    "ServerRejectedError",
    "DecodeError",
    "TokenRejectedError",
    "InvalidKeyError",
    "InvalidTokenError",
    "InvalidIssuerError",
    "InvalidAudienceError",
    "InvalidHostedDomainError",
    "MissingCredentialsError",
]
