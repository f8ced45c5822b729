"""Native-application OAuth 2.0 client for Microsoft account style sign-in."""

from msa_auth.auth import (  # noqa: F401
    AuthClient,
    AuthContext,
    AuthListener,
    LiveStatus,
    OAuthConfig,
    Session,
)

__version__ = "0.1.0"

__all__ = [
    "AuthClient",
    "AuthContext",
    "AuthListener",
    "LiveStatus",
    "OAuthConfig",
    "Session",
]
