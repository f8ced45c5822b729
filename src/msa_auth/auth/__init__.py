"""Authentication core package.

This namespace hosts the **UI-agnostic** building blocks of a native OAuth 2.0
client: the interactive authorization-code flow, the session lifecycle and
the silent (refresh-token) login path.

Sub-modules
-----------
clock
    Test-friendly time abstraction.
config
    Authorization-server endpoints and the ``display`` parameter.
models
    Session entity and the tagged token-response union.
responses
    Redirect-URI classification and token-response parsing.
exchange
    Token-endpoint interface and its ``requests`` implementation.
store
    Durable preference storage (refresh token, cookie names).
dispatch
    Owner-thread / background-worker dispatchers.
flow
    Interactive flow controller and host-surface protocols.
client
    Session manager exposing login / login_silent / logout.
errors
    Exception types used by the auth logic.
log_utils
    Structured logging helpers (thin wrapper around :pymod:`logging`).

All public objects are re-exported here for convenience.
"""

from __future__ import annotations

from .clock import Clock, default_clock  # noqa: F401
from .config import FormFactor, OAuthConfig  # noqa: F401
from .errors import (  # noqa: F401
    AuthError,
    InvalidArgumentError,
    InvalidStateError,
    NetworkError,
    OAuthError,
    ServerError,
    UserCancelledError,
)
from .models import (  # noqa: F401
    ErrorResponse,
    LiveStatus,
    Session,
    SuccessfulResponse,
)
from .responses import classify_redirect, redirect_matches  # noqa: F401
from .exchange import RequestsTokenExchanger, TokenExchanger  # noqa: F401
from .store import (  # noqa: F401
    DiskPreferenceStore,
    MemoryPreferenceStore,
    PreferenceStore,
)
from .dispatch import Dispatcher, InlineDispatcher, QueueDispatcher  # noqa: F401
from .flow import AuthorizationFlowController, CookieJar, LoginSurface  # noqa: F401
from .client import AuthClient, AuthContext, AuthListener, ConnectionState  # noqa: F401
from .log_utils import get_auth_logger, mask_sensitive  # noqa: F401

__all__ = [
    # clock
    "Clock",
    "default_clock",
    # config
    "FormFactor",
    "OAuthConfig",
    # errors
    "AuthError",
    "InvalidArgumentError",
    "InvalidStateError",
    "NetworkError",
    "OAuthError",
    "ServerError",
    "UserCancelledError",
    # models
    "ErrorResponse",
    "LiveStatus",
    "Session",
    "SuccessfulResponse",
    # responses
    "classify_redirect",
    "redirect_matches",
    # exchange
    "RequestsTokenExchanger",
    "TokenExchanger",
    # store
    "DiskPreferenceStore",
    "MemoryPreferenceStore",
    "PreferenceStore",
    # dispatch
    "Dispatcher",
    "InlineDispatcher",
    "QueueDispatcher",
    # flow
    "AuthorizationFlowController",
    "CookieJar",
    "LoginSurface",
    # client
    "AuthClient",
    "AuthContext",
    "AuthListener",
    "ConnectionState",
    # logging helpers
    "get_auth_logger",
    "mask_sensitive",
]
