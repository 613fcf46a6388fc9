"""
FastAPI dependency factories for identity token verification.

Usage:
    from google_signin import Client, ClientConfig
    from google_signin.fastapi import require_identity

    client = Client(ClientConfig(allowed_audiences={"my-client-id"}))

    @app.get("/api/profile")
    async def profile(claims: IdentityClaims = Depends(require_identity(client))):
        return {"user_id": claims.sub, "email": claims.email}
"""

import logging
from collections.abc import Callable
from typing import Annotated

from fastapi import Header, HTTPException, status

from google_signin.claims import IdentityClaims
from google_signin.client import Client
from google_signin.errors import KeySetError, MissingCredentialsError, TokenRejectedError

logger = logging.getLogger(__name__)


def parse_bearer_token(authorization: str | None) -> str:
    """
    Parse Bearer token from Authorization header.

    Args:
        authorization: Authorization header value (e.g., "Bearer eyJ...")

    Returns:
        The token string

    Raises:
        MissingCredentialsError: If header is missing or malformed
    """
    if not authorization:
        raise MissingCredentialsError("Missing authorization header")

    parts = authorization.split()

    if len(parts) != 2:
        raise MissingCredentialsError("Invalid authorization header format")

    scheme, token = parts

    if scheme.lower() != "bearer":
        raise MissingCredentialsError(f"Invalid authentication scheme: {scheme}, expected Bearer")

    return token


def _credentials_exception(detail: str = "Could not validate credentials") -> HTTPException:
    """Create a 401 Unauthorized exception."""
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _unavailable_exception() -> HTTPException:
    """Create a 503 exception for when the provider's keys are unavailable."""
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Identity provider keys unavailable",
    )


def require_identity(client: Client) -> Callable[..., IdentityClaims]:
    """
    Create a FastAPI dependency that requires a valid identity token.

    Raises 401 for a missing or rejected token and 503 when the provider's
    key set cannot be obtained, so outages are not mistaken for bad tokens.

    Args:
        client: Shared verification client

    Returns:
        FastAPI dependency function
    """

    async def dependency(
        authorization: Annotated[str | None, Header()] = None,
    ) -> IdentityClaims:
        try:
            return await client.verify(parse_bearer_token(authorization))
        except TokenRejectedError as e:
            logger.warning(f"Authentication failed: {e.message} ({e.code})")
            raise _credentials_exception(e.message)
        except KeySetError as e:
            logger.error(f"Cannot verify tokens, key set unavailable: {e.message} ({e.code})")
            raise _unavailable_exception()

    return dependency


def optional_identity(client: Client) -> Callable[..., IdentityClaims | None]:
    """
    Create a FastAPI dependency that optionally verifies an identity token.

    Returns IdentityClaims if a valid token is provided, None if no token or
    the token is rejected. Key set failures still raise 503.
    """

    async def dependency(
        authorization: Annotated[str | None, Header()] = None,
    ) -> IdentityClaims | None:
        if not authorization:
            return None

        try:
            return await client.verify(parse_bearer_token(authorization))
        except TokenRejectedError:
            return None
        except KeySetError as e:
            logger.error(f"Cannot verify tokens, key set unavailable: {e.message} ({e.code})")
            raise _unavailable_exception()

    return dependency


def require_verified_email(client: Client) -> Callable[..., IdentityClaims]:
    """
    Create a FastAPI dependency that requires a token with a verified email.

    Raises 401 for invalid/missing token, 403 if the email is absent or
    not verified.
    """
    _require_identity = require_identity(client)

    async def dependency(
        authorization: Annotated[str | None, Header()] = None,
    ) -> IdentityClaims:
        claims = await _require_identity(authorization)

        if not claims.email or claims.email_verified is not True:
            logger.warning(f"User {claims.sub} has no verified email")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Verified email required",
            )

        return claims

    return dependency
