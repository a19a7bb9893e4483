"""FastAPI dependency injection functions for authentication."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import Depends, HTTPException, Request

from .authenticator import AuthMethod, AuthResult, CompositeAuthenticator

logger = logging.getLogger(__name__)

# Global authenticator instance (set by the bootstrap during startup)
_authenticator: CompositeAuthenticator | None = None

# Cached result for the no-auth fast path
_DEV_RESULT: AuthResult | None = None


def set_authenticator(
    authenticator: CompositeAuthenticator | None,
    dev_user_id: str | None = None,
) -> None:
    """
    Set the global authenticator instance.

    With no authenticator every caller acts as ``dev_user_id``; with
    neither, every caller is rejected.
    """
    global _authenticator, _DEV_RESULT
    _authenticator = authenticator

    if authenticator is None and dev_user_id:
        _DEV_RESULT = AuthResult.authenticated(principal=dev_user_id, method=AuthMethod.DEV)
    else:
        _DEV_RESULT = None


def get_authenticator() -> CompositeAuthenticator | None:
    """Get the global authenticator instance."""
    return _authenticator


async def authenticate_credential(token: str | None) -> AuthResult:
    """Authenticate a raw bearer credential (HTTP or socket handshake)."""
    if _authenticator is None:
        return _DEV_RESULT or AuthResult.failed("Authentication required")
    return await _authenticator.authenticate_token(token)


async def authenticate_socket(token: str | None) -> str | None:
    """Socket hub callback: the authenticated user id, or None to refuse."""
    result = await authenticate_credential(token)
    if not result.success:
        logger.debug(f"Socket authentication rejected: {result.error}")
        return None
    return result.principal


async def get_auth_result(request: Request) -> AuthResult:
    """
    FastAPI dependency that performs authentication.

    Returns AuthResult (success or failure).
    """
    # Fast path - no authenticator configured
    if _authenticator is None:
        return _DEV_RESULT or AuthResult.failed("Authentication required")

    return await _authenticator.authenticate(request)


async def get_actor_id(
    auth_result: Annotated[AuthResult, Depends(get_auth_result)],
) -> str:
    """
    FastAPI dependency that returns the authenticated user id.

    This is the main dependency to use in endpoints.
    """
    if not auth_result.success or not auth_result.principal:
        raise HTTPException(
            status_code=401,
            detail=auth_result.error or "Authentication required",
            headers=_get_auth_headers(),
        )
    return auth_result.principal


def _get_auth_headers() -> dict[str, str]:
    """Get WWW-Authenticate headers for 401 response."""
    if _authenticator is None:
        return {}

    headers = {}
    challenges = _authenticator.get_challenge_headers()

    if challenges:
        header_values = [v for _, v in challenges]
        headers["WWW-Authenticate"] = ", ".join(header_values)

    return headers

