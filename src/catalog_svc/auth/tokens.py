"""Issue HS256 test tokens accepted by JWTAuthenticator in test mode."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from jose import jwt


def issue_test_token(
    secret: str,
    user_id: str,
    expires_in: int = 3600,
    audience: str | None = None,
) -> str:
    """
    Generate a test JWT for local development and tests.

    Args:
        secret: Shared secret for HS256 signing (must match server's test_secret)
        user_id: User id to embed in the token (sub claim)
        expires_in: Token lifetime in seconds; negative values give an expired token
        audience: Optional audience claim

    Returns:
        Signed JWT token string
    """
    now = datetime.now(timezone.utc)

    claims = {
        "iss": "test",
        "sub": user_id,
        "iat": now,
        "exp": now + timedelta(seconds=expires_in),
    }

    if audience:
        claims["aud"] = audience

    return jwt.encode(claims, secret, algorithm="HS256")
