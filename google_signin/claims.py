"""
Identity claims model.
"""

import math
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class IdentityClaims:
    """
    Decoded claims of a provider identity token.

    The first six fields are present in every identity token. ``hd`` is set
    when the user belongs to a hosted domain. The profile fields are only
    present when the user granted the "profile" and "email" scopes.

    Attributes:
        iss: Issuer
        sub: Subject (stable user ID)
        azp: Authorized party (client ID that requested the token)
        aud: Audience (client ID the token was issued for)
        iat: Issued-at timestamp (Unix epoch)
        exp: Expiration timestamp (Unix epoch)
        hd: Hosted domain, if any
        raw_payload: Full decoded payload for accessing other claims

    Example:
        claims = await client.verify(token)
        if claims.email_verified:
            print(claims.email)
    """

    iss: str
    sub: str
    azp: str
    aud: str
    iat: int
    exp: int
    hd: str | None = None
    email: str | None = None
    email_verified: bool | None = None
    name: str | None = None
    picture: str | None = None
    given_name: str | None = None
    family_name: str | None = None
    locale: str | None = None
    raw_payload: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    def get_claim(self, key: str, default: Any = None) -> Any:
        """Get any claim from the raw payload."""
        return self.raw_payload.get(key, default)

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "IdentityClaims":
        """
        Create IdentityClaims from a decoded token payload.

        Timestamps are accepted as numbers or numeric strings, and
        ``email_verified`` as a boolean or the strings "true"/"false", since
        the introspection endpoint encodes them as strings.

        Args:
            payload: Decoded claims dictionary

        Returns:
            IdentityClaims instance

        Raises:
            ValueError: If required claims are missing or have the wrong type
        """
        if not isinstance(payload, dict):
            raise ValueError("Claims payload must be an object")

        return cls(
            iss=_required_str(payload, "iss"),
            sub=_required_str(payload, "sub"),
            azp=_required_str(payload, "azp"),
            aud=_required_str(payload, "aud"),
            iat=_timestamp(payload, "iat"),
            exp=_timestamp(payload, "exp"),
            hd=_optional_str(payload, "hd"),
            email=_optional_str(payload, "email"),
            email_verified=_optional_bool(payload, "email_verified"),
            name=_optional_str(payload, "name"),
            picture=_optional_str(payload, "picture"),
            given_name=_optional_str(payload, "given_name"),
            family_name=_optional_str(payload, "family_name"),
            locale=_optional_str(payload, "locale"),
            raw_payload=payload,
        )


def _required_str(payload: dict[str, Any], name: str) -> str:
    value = payload.get(name)
    if not isinstance(value, str) or not value:
        raise ValueError(f"Token missing required '{name}' claim")
    return value


def _optional_str(payload: dict[str, Any], name: str) -> str | None:
    value = payload.get(name)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError(f"Claim '{name}' must be a string")
    return value


def _timestamp(payload: dict[str, Any], name: str) -> int:
    value = payload.get(name)
    if value is None:
        raise ValueError(f"Token missing required '{name}' claim")
    # bool is an int subclass
    if isinstance(value, bool):
        raise ValueError(f"Claim '{name}' must be a timestamp")
    if isinstance(value, float) and not math.isfinite(value):
        raise ValueError(f"Claim '{name}' must be a finite timestamp")
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            raise ValueError(f"Claim '{name}' must be a timestamp, got {value!r}") from None
    raise ValueError(f"Claim '{name}' must be a timestamp")


def _optional_bool(payload: dict[str, Any], name: str) -> bool | None:
    value = payload.get(name)
    if value is None or isinstance(value, bool):
        return value
    if value == "true":
        return True
    if value == "false":
        return False
    raise ValueError(f"Claim '{name}' must be a boolean, got {value!r}")
