"""Exception types raised or delivered by the authentication core.

Only lightweight, **data-carrying** exceptions live here.  Errors produced by
a login flow are handed to :meth:`AuthListener.on_auth_error`; argument and
state validation failures are raised synchronously to the caller.
"""

from __future__ import annotations

from typing import Final

SIGNIN_CANCEL: Final[str] = "The user cancelled the login operation."
SERVER_ERROR: Final[str] = (
    "An error occurred while communicating with the server during the "
    "operation. Please try again later."
)
LOGIN_IN_PROGRESS: Final[str] = "Another login operation is already in progress."

INVALID_GRANT: Final[str] = "invalid_grant"


class AuthError(Exception):
    """Base class carrying the OAuth ``error`` triple."""

    default_error: str = "unknown_error"

    def __init__(
        self,
        message: str | None = None,
        *,
        error: str | None = None,
        error_description: str | None = None,
        error_uri: str | None = None,
    ) -> None:
        super().__init__(message or error_description or error or self.default_error)
        self.error: str = error if error is not None else self.default_error
        self.error_description: str | None = error_description
        self.error_uri: str | None = error_uri

    def to_payload(self) -> dict[str, str | None]:
        """Return a JSON-serialisable payload **without secrets**."""
        return {
            "error": self.error,
            "error_description": self.error_description,
            "error_uri": self.error_uri,
            "message": str(self),
        }


class UserCancelledError(AuthError):
    """The user dismissed the login surface."""

    default_error = "user_cancelled"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or SIGNIN_CANCEL)


class ServerError(AuthError):
    """The redirect or token response could not be understood."""

    default_error = "server_error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or SERVER_ERROR)


class OAuthError(AuthError):
    """Error reported by the authorization server (``error=...``)."""

    def __init__(
        self,
        error: str,
        error_description: str | None = None,
        error_uri: str | None = None,
    ) -> None:
        super().__init__(
            error_description or error or None,
            error=error,
            error_description=error_description,
            error_uri=error_uri,
        )

    @property
    def is_invalid_grant(self) -> bool:
        return self.error == INVALID_GRANT


class NetworkError(AuthError):
    """The token endpoint could not be reached."""

    default_error = "network_error"


class InvalidStateError(AuthError, RuntimeError):
    """Raised when a login is requested while another one is pending."""

    default_error = "invalid_state"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or LOGIN_IN_PROGRESS)


class InvalidArgumentError(AuthError, ValueError):
    """Raised eagerly when a required argument is missing or empty."""

    default_error = "invalid_argument"

    def __init__(self, name: str, message: str | None = None) -> None:
        super().__init__(message or f"{name} must not be empty.")
        self.argument: str = name
