"""JWT authenticator for bearer tokens."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, TYPE_CHECKING

import httpx
from jose import JWTError, jwt

from ..ids import is_valid_id
from .authenticator import AuthMethod, AuthResult, Authenticator

if TYPE_CHECKING:
    from .config import JWTConfig

logger = logging.getLogger(__name__)


@dataclass
class JWKSCache:
    """Cache for JWKS keys."""
    keys: dict[str, Any] = field(default_factory=dict)
    fetched_at: float = 0.0
    ttl: int = 3600


@dataclass
class JWTAuthenticator(Authenticator):
    """
    JWT authenticator for bearer tokens.

    Validates tokens against the issuer's JWKS endpoint, or against a
    shared HS256 secret in test mode.

    JWT Flow:
    1. Client sends Authorization: Bearer <jwt> (or ?token=<jwt> on sockets)
    2. Server fetches/caches JWKS from the issuer
    3. Validates signature, issuer, audience, expiry
    4. Extracts the user id claim -> Returns AuthResult
    """
    config: JWTConfig
    _jwks_cache: JWKSCache = field(default_factory=JWKSCache)

    def __post_init__(self) -> None:
        """Initialize the authenticator."""
        if not self.config.enabled:
            return

        if not self.config.issuer:
            logger.warning("JWT issuer not configured - JWT authentication disabled")

        # Check for test mode
        if self.config.issuer == "test" and self.config.test_secret:
            logger.warning("JWT test mode enabled - DO NOT USE IN PRODUCTION")

        self._jwks_cache = JWKSCache(ttl=self.config.jwks_cache_ttl)

    @property
    def method(self) -> AuthMethod:
        return AuthMethod.JWT

    async def authenticate_token(self, token: str) -> AuthResult | None:
        """
        Authenticate a raw JWT.

        Returns AuthResult on success or failure.
        """
        try:
            claims = await self._validate_token(token)
            if not claims:
                return AuthResult.failed("JWT validation failed")

            principal = self._extract_user_id(claims)
            if principal is None:
                return AuthResult.failed("JWT carries no valid user id")

            return AuthResult.authenticated(
                principal=principal,
                method=AuthMethod.JWT,
                claims=claims,
            )

        except JWTError as e:
            logger.debug(f"JWT validation error: {e}")
            return AuthResult.failed(f"Invalid JWT: {e}")
        except Exception as e:
            logger.warning(f"JWT authentication error: {e}")
            return AuthResult.failed(str(e))

    def _extract_user_id(self, claims: dict[str, Any]) -> str | None:
        """First claim among user_claim and its fallbacks holding a valid id."""
        for claim in [self.config.user_claim, *self.config.fallback_user_claims]:
            value = claims.get(claim)
            if value is not None and is_valid_id(str(value)):
                return str(value)
        return None

    async def _validate_token(self, token: str) -> dict[str, Any] | None:
        """Validate JWT token and return claims."""
        # Test mode - use symmetric secret (HS256)
        if self.config.issuer == "test" and self.config.test_secret:
            return self._validate_test_token(token)

        # Get unverified header to find key ID
        try:
            unverified_header = jwt.get_unverified_header(token)
        except JWTError:
            return None

        kid = unverified_header.get("kid")
        if not kid:
            logger.debug("JWT missing key ID (kid)")
            return None

        # Get signing key from JWKS
        signing_key = await self._get_signing_key(kid)
        if not signing_key:
            return None

        # Validate and decode the token
        try:
            claims = jwt.decode(
                token,
                signing_key,
                algorithms=["RS256", "RS384", "RS512"],
                audience=self.config.audience,
                issuer=self.config.issuer,
                options={
                    "verify_aud": self.config.audience is not None,
                    "verify_iss": self.config.issuer is not None,
                    "verify_exp": True,
                    "verify_iat": True,
                },
            )
            return claims
        except JWTError as e:
            logger.debug(f"JWT decode failed: {e}")
            raise

    def _validate_test_token(self, token: str) -> dict[str, Any] | None:
        """Validate token using test secret (HS256). For local dev only."""
        try:
            claims = jwt.decode(
                token,
                self.config.test_secret,
                algorithms=["HS256"],
                audience=self.config.audience,
                issuer="test",
                options={
                    "verify_aud": self.config.audience is not None,
                    "verify_iss": True,
                    "verify_exp": True,
                    "verify_iat": True,
                },
            )
            return claims
        except JWTError as e:
            logger.debug(f"Test JWT decode failed: {e}")
            raise

    async def _get_signing_key(self, kid: str) -> dict[str, Any] | None:
        """Get signing key from JWKS, with caching."""
        # Check cache
        now = time.time()
        if kid in self._jwks_cache.keys:
            if now - self._jwks_cache.fetched_at < self._jwks_cache.ttl:
                return self._jwks_cache.keys[kid]

        # Fetch JWKS
        jwks = await self._fetch_jwks()
        if not jwks:
            return None

        # Update cache
        self._jwks_cache.keys = {}
        self._jwks_cache.fetched_at = now

        for key_data in jwks.get("keys", []):
            key_id = key_data.get("kid")
            if key_id:
                self._jwks_cache.keys[key_id] = key_data

        return self._jwks_cache.keys.get(kid)

    async def _fetch_jwks(self) -> dict[str, Any] | None:
        """Fetch JWKS from identity provider's well-known endpoint."""
        if not self.config.issuer:
            return None

        issuer = self.config.issuer.rstrip('/')

        # Standard .well-known endpoint first, then the Okta-style one
        jwks_urls = [
            f"{issuer}/.well-known/jwks.json",
            f"{issuer}/v1/keys",
        ]

        for jwks_url in jwks_urls:
            try:
                async with httpx.AsyncClient(timeout=10.0) as client:
                    response = await client.get(jwks_url)
                    if response.status_code == 200:
                        logger.debug(f"Fetched JWKS from {jwks_url}")
                        return response.json()
            except httpx.HTTPError as e:
                logger.debug(f"Failed to fetch JWKS from {jwks_url}: {e}")
                continue

        logger.error(f"Failed to fetch JWKS from any endpoint for issuer {issuer}")
        return None

    def get_challenge_header(self) -> tuple[str, str] | None:
        """Return WWW-Authenticate: Bearer header."""
        if not self.config.enabled:
            return None

        # Include realm and issuer in challenge
        parts = ["Bearer"]
        if self.config.issuer:
            parts.append(f'realm="{self.config.issuer}"')
        if self.config.audience:
            parts.append(f'scope="{self.config.audience}"')

        return ("WWW-Authenticate", " ".join(parts))
