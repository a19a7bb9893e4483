"""Base authenticator classes and composite authenticator."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, TYPE_CHECKING

from starlette.requests import HTTPConnection

if TYPE_CHECKING:
    from .config import AuthConfig

logger = logging.getLogger(__name__)


class AuthMethod(str, Enum):
    """Authentication method used."""
    JWT = "jwt"
    DEV = "dev"


@dataclass(frozen=True, slots=True)
class AuthResult:
    """Result of an authentication attempt."""
    success: bool
    principal: str | None = None
    method: AuthMethod | None = None
    claims: dict[str, Any] = field(default_factory=dict)
    error: str | None = None

    @classmethod
    def authenticated(
        cls,
        principal: str,
        method: AuthMethod,
        claims: dict[str, Any] | None = None,
    ) -> AuthResult:
        """Create a successful authentication result."""
        return cls(
            success=True,
            principal=principal,
            method=method,
            claims=claims or {},
        )

    @classmethod
    def failed(cls, error: str) -> AuthResult:
        """Create a failed authentication result."""
        return cls(success=False, error=error)


def extract_bearer_token(connection: HTTPConnection) -> str | None:
    """
    Pull a bearer credential from a request or WebSocket handshake.

    Checks the Authorization header first, then the ``token`` query
    parameter (browsers cannot set headers on WebSocket upgrades).
    """
    header = connection.headers.get("Authorization", "")
    if header.startswith("Bearer "):
        token = header[7:].strip()
        if token:
            return token

    token = connection.query_params.get("token", "").strip()
    return token or None


class Authenticator(ABC):
    """Base class for authenticators."""

    @property
    @abstractmethod
    def method(self) -> AuthMethod:
        """Return the authentication method this authenticator handles."""
        ...

    @abstractmethod
    async def authenticate_token(self, token: str) -> AuthResult | None:
        """
        Attempt to authenticate a raw credential.

        Returns:
            AuthResult if this authenticator can handle the credential (success or failure),
            None if this authenticator doesn't apply to it.
        """
        ...

    async def authenticate(self, connection: HTTPConnection) -> AuthResult | None:
        """Authenticate an HTTP request or WebSocket handshake."""
        token = extract_bearer_token(connection)
        if token is None:
            return None
        return await self.authenticate_token(token)

    @abstractmethod
    def get_challenge_header(self) -> tuple[str, str] | None:
        """
        Return the WWW-Authenticate challenge header for this method.

        Returns:
            Tuple of (header_name, header_value), or None if no challenge.
        """
        ...


@dataclass
class CompositeAuthenticator:
    """
    Tries multiple authenticators in order.

    First successful authentication wins. If none succeeds the result is
    a failure; catalogs always need a concrete owner identity.
    """
    authenticators: list[Authenticator] = field(default_factory=list)

    async def authenticate(self, connection: HTTPConnection) -> AuthResult:
        token = extract_bearer_token(connection)
        if token is None:
            return AuthResult.failed("Authentication required")
        return await self.authenticate_token(token)

    async def authenticate_token(self, token: str | None) -> AuthResult:
        """
        Authenticate a raw credential using configured authenticators.

        Tries each authenticator in order. The first success wins; errors
        from one authenticator fall through to the next.
        """
        if not token:
            return AuthResult.failed("Authentication required")

        last_error = "Authentication required"
        for authenticator in self.authenticators:
            try:
                result = await authenticator.authenticate_token(token)
                if result is not None:
                    if result.success:
                        logger.debug(
                            f"Authenticated via {authenticator.method.value}: {result.principal}"
                        )
                        return result
                    else:
                        logger.debug(
                            f"Authentication failed via {authenticator.method.value}: {result.error}"
                        )
                        last_error = result.error or last_error
                        # Continue to next authenticator on failure
            except Exception as e:
                logger.warning(f"Authenticator {authenticator.method.value} error: {e}")
                continue

        return AuthResult.failed(last_error)

    def get_challenge_headers(self) -> list[tuple[str, str]]:
        """Get all WWW-Authenticate challenge headers."""
        headers = []
        for authenticator in self.authenticators:
            header = authenticator.get_challenge_header()
            if header:
                headers.append(header)
        return headers


def create_composite_authenticator(config: AuthConfig) -> CompositeAuthenticator:
    """Create a composite authenticator from configuration."""
    from .jwt import JWTAuthenticator

    authenticators: list[Authenticator] = []

    # Add authenticators in configured order
    for method_name in config.method_order:
        if method_name == "jwt" and config.jwt.enabled:
            authenticators.append(JWTAuthenticator(config.jwt))
            logger.info("JWT authentication enabled")
        else:
            logger.warning("Authentication method %r not enabled or unknown", method_name)

    return CompositeAuthenticator(authenticators=authenticators)
