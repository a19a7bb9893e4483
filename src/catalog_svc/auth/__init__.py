"""Authentication module for the catalog service.

Bearer JWT authentication for HTTP requests and socket handshakes.
"""

from .config import AuthConfig, JWTConfig
from .authenticator import (
    AuthMethod,
    AuthResult,
    Authenticator,
    CompositeAuthenticator,
    create_composite_authenticator,
    extract_bearer_token,
)
from .dependencies import (
    authenticate_credential,
    authenticate_socket,
    get_actor_id,
    get_auth_result,
    set_authenticator,
    get_authenticator,
)
from .jwt import JWTAuthenticator
from .tokens import issue_test_token

__all__ = [
    # Config
    "AuthConfig",
    "JWTConfig",
    # Authenticator base
    "AuthMethod",
    "AuthResult",
    "Authenticator",
    "CompositeAuthenticator",
    "create_composite_authenticator",
    "extract_bearer_token",
    # Implementations
    "JWTAuthenticator",
    "issue_test_token",
    # Dependencies
    "authenticate_credential",
    "authenticate_socket",
    "get_actor_id",
    "get_auth_result",
    "set_authenticator",
    "get_authenticator",
]
