"""
Shared fixtures: RSA signing keys generated per test session, and helpers
for building identity tokens and key sets.
"""

import base64
import time
from dataclasses import dataclass
from typing import Any

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from jose import jwt

from google_signin import KeySet, PublicKey


def _b64_uint(value: int) -> str:
    raw = value.to_bytes((value.bit_length() + 7) // 8, "big")
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


@dataclass
class SigningKey:
    """A test RSA key pair with its key-id. DO NOT use in production."""

    kid: str
    pem: str
    public: PublicKey

    def sign(self, claims: dict[str, Any], include_kid: bool = True) -> str:
        headers = {"kid": self.kid} if include_kid else None
        return jwt.encode(claims, self.pem, algorithm="RS256", headers=headers)


def _generate(kid: str) -> SigningKey:
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("ascii")
    numbers = private_key.public_key().public_numbers()
    return SigningKey(
        kid=kid,
        pem=pem,
        public=PublicKey(kid=kid, n=_b64_uint(numbers.n), e=_b64_uint(numbers.e)),
    )


@pytest.fixture(scope="session")
def signing_keys() -> dict[str, SigningKey]:
    """Two independent key pairs, 'k1' and 'k2'."""
    return {"k1": _generate("k1"), "k2": _generate("k2")}


@pytest.fixture
def key_set(signing_keys) -> KeySet:
    return KeySet({kid: key.public for kid, key in signing_keys.items()})


@pytest.fixture
def jwks(signing_keys) -> dict[str, Any]:
    """Key set document as served by the provider."""
    return {
        "keys": [
            {**key.public.to_jwk(), "alg": "RS256", "use": "sig"}
            for key in signing_keys.values()
        ]
    }


@pytest.fixture
def make_claims():
    """Factory for a valid claim set, with overrides (None removes a claim)."""

    def factory(**overrides: Any) -> dict[str, Any]:
        now = int(time.time())
        claims: dict[str, Any] = {
            "iss": "https://accounts.google.com",
            "sub": "110169484474386276334",
            "azp": "app-1",
            "aud": "app-1",
            "iat": now,
            "exp": now + 3600,
            "email": "user@example.com",
            "email_verified": True,
        }
        for name, value in overrides.items():
            if value is None:
                claims.pop(name, None)
            else:
                claims[name] = value
        return claims

    return factory
