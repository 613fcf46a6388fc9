"""
Error taxonomy for identity token verification.

Errors fall into two families so callers can tell an operational problem
(our key set is stale or unreachable) apart from a bad token:

- KeySetError: the provider could not be reached or answered with garbage.
- TokenRejectedError: the token itself failed verification or policy.
"""


class GoogleSigninError(Exception):
    """
    Base class for all verification errors.

    Attributes:
        message: Human-readable error message
        code: Error code for programmatic handling
    """

    code = "verification_failed"

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class KeySetError(GoogleSigninError):
    """The provider's key set could not be obtained."""


class ProviderConnectionError(KeySetError):
    """Transport or I/O failure reaching the provider."""

    code = "connection_error"


class ServerRejectedError(KeySetError):
    """The provider answered with a non-2xx status."""

    code = "server_rejected"

    def __init__(self, message: str, status_code: int) -> None:
        super().__init__(message)
        self.status_code = status_code


class DecodeError(KeySetError):
    """A response body could not be decoded."""

    code = "decode_error"


class TokenRejectedError(GoogleSigninError):
    """The token failed verification or the claims policy."""

    code = "token_rejected"


class InvalidKeyError(TokenRejectedError):
    """The token names a key-id that is not in the current key set."""

    code = "invalid_key"


class InvalidTokenError(TokenRejectedError):
    """Signature verification failed, or the provider rejected the token."""

    code = "invalid_token"


class InvalidIssuerError(TokenRejectedError):
    code = "invalid_issuer"


class InvalidAudienceError(TokenRejectedError):
    code = "invalid_audience"


class InvalidHostedDomainError(TokenRejectedError):
    code = "invalid_hosted_domain"


class MissingCredentialsError(TokenRejectedError):
    """No usable bearer token was supplied."""

    code = "missing_credentials"
