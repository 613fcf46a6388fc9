"""
Client configuration.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field

CERTS_URL = "https://www.googleapis.com/oauth2/v2/certs"
TOKENINFO_URL = "https://www.googleapis.com/oauth2/v3/tokeninfo"


@dataclass(frozen=True)
class ClientConfig:
    """
    Configuration for identity token verification.

    Attributes:
        allowed_audiences: Accepted 'aud' values (empty: accept any audience)
        allowed_hosted_domains: Accepted 'hd' values (empty: no domain restriction)
        certs_url: URL of the provider's public-key set
        tokeninfo_url: URL of the provider's token introspection endpoint
        http_timeout: Timeout for each request to the provider (default: 10.0 seconds)
        stale_if_error: Serve the last known key set when a refresh fails
            (default: False, the refresh error is raised)

    Example:
        config = ClientConfig(
            allowed_audiences={"1234.apps.googleusercontent.com"},
            allowed_hosted_domains={"example.com"},
        )
    """

    allowed_audiences: frozenset[str] = field(default_factory=frozenset)
    allowed_hosted_domains: frozenset[str] = field(default_factory=frozenset)
    certs_url: str = CERTS_URL
    tokeninfo_url: str = TOKENINFO_URL
    http_timeout: float = 10.0
    stale_if_error: bool = False

    def __post_init__(self) -> None:
        """Normalize collections and validate configuration."""
        object.__setattr__(
            self, "allowed_audiences", _string_set(self.allowed_audiences, "allowed_audiences")
        )
        object.__setattr__(
            self,
            "allowed_hosted_domains",
            _string_set(self.allowed_hosted_domains, "allowed_hosted_domains"),
        )
        if not self.certs_url:
            raise ValueError("certs_url is required")
        if not self.tokeninfo_url:
            raise ValueError("tokeninfo_url is required")
        if self.http_timeout <= 0:
            raise ValueError("http_timeout must be positive")


def _string_set(values: Iterable[str], name: str) -> frozenset[str]:
    # A bare string would silently become a set of characters
    if isinstance(values, str):
        raise ValueError(f"{name} must be a collection of strings, not a string")
    result = frozenset(values)
    if not all(isinstance(v, str) and v for v in result):
        raise ValueError(f"{name} must contain only non-empty strings")
    return result
