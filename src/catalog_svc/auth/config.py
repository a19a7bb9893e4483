"""Authentication configuration dataclasses."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class JWTConfig:
    """Bearer JWT authentication configuration."""
    enabled: bool = False
    issuer: str | None = None  # e.g., "https://idp.example.com/oauth2/default"
    audience: str | None = None  # e.g., "api://catalog-svc"
    jwks_cache_ttl: int = 3600  # seconds
    user_claim: str = "sub"
    fallback_user_claims: list[str] = field(default_factory=lambda: ["id"])

    # Test mode: use symmetric secret instead of JWKS (for local dev only!)
    # Set issuer to "test" and provide test_secret to enable
    test_secret: str | None = None  # Shared secret for HS256 signing


@dataclass
class AuthConfig:
    """Main authentication configuration."""
    enabled: bool = False
    method_order: list[str] = field(default_factory=lambda: ["jwt"])

    # Identity used for every caller while auth is disabled (dev only).
    # When unset and auth is disabled, callers are rejected.
    dev_user_id: str | None = None

    jwt: JWTConfig = field(default_factory=JWTConfig)

    @classmethod
    def from_dict(cls, data: dict) -> AuthConfig:
        """Create config from dictionary."""
        jwt_data = data.get("jwt", {})

        return cls(
            enabled=data.get("enabled", False),
            method_order=data.get("method_order", ["jwt"]),
            dev_user_id=data.get("dev_user_id"),
            jwt=JWTConfig(**jwt_data),
        )
