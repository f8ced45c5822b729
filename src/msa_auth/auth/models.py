"""Typed records used by the authentication core."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Iterable

from msa_auth.auth.clock import Clock, default_clock
from msa_auth.auth.errors import INVALID_GRANT
from msa_auth.auth.log_utils import mask_sensitive

SCOPE_DELIMITER = " "


class LiveStatus(enum.Enum):
    """Connection status reported to :class:`AuthListener` callbacks."""

    UNKNOWN = "unknown"
    CONNECTED = "connected"
    NOT_CONNECTED = "not_connected"


class TokenType(enum.Enum):
    BEARER = "bearer"


def split_scopes(scope: str | None) -> frozenset[str]:
    """Split a delimiter-joined scope string, dropping empty entries."""
    if not scope:
        return frozenset()
    return frozenset(s for s in scope.split(SCOPE_DELIMITER) if s)


def join_scopes(scopes: Iterable[str]) -> str:
    return SCOPE_DELIMITER.join(scopes)


@dataclass(frozen=True, slots=True)
class SuccessfulResponse:
    """Token set returned by the redirect fragment or the token endpoint."""

    access_token: str
    token_type: TokenType
    scopes: frozenset[str] | None = None
    expires_in: int | None = None
    authentication_token: str | None = None
    refresh_token: str | None = None

    def __repr__(self) -> str:
        return (
            f"SuccessfulResponse(access_token={mask_sensitive(self.access_token)!r}, "
            f"token_type={self.token_type.value!r}, scopes={sorted(self.scopes or ())!r}, "
            f"expires_in={self.expires_in!r}, "
            f"refresh_token={'set' if self.refresh_token else None!r})"
        )


@dataclass(frozen=True, slots=True)
class ErrorResponse:
    """Error returned by the authorization server."""

    code: str
    description: str | None = None
    uri: str | None = None

    @property
    def is_invalid_grant(self) -> bool:
        return self.code == INVALID_GRANT


AuthorizationResponse = SuccessfulResponse | ErrorResponse


@dataclass(eq=False, slots=True)
class Session:
    """Access/refresh token state of one client.

    A session is never replaced, only reset: the owning client hands the same
    instance to every listener callback.
    """

    client_id: str
    access_token: str | None = None
    authentication_token: str | None = None
    refresh_token: str | None = None
    token_type: str | None = None
    scopes: frozenset[str] | None = None
    expires_at: float | None = None
    clock: Clock = field(default=default_clock, repr=False)

    def is_expired(self) -> bool:
        """Return *True* when there is no access token or it is past expiry."""
        if not self.access_token or self.expires_at is None:
            return True
        return self.clock() >= self.expires_at

    def contains(self, scopes: Iterable[str] | None) -> bool:
        """Return *True* iff every scope in *scopes* is held by the session."""
        if scopes is None:
            return True
        required = set(scopes)
        if self.scopes is None:
            return not required
        return required <= self.scopes

    def load_from_response(self, response: SuccessfulResponse) -> None:
        """Copy the token set of a successful response into the session."""
        self.access_token = response.access_token
        self.token_type = response.token_type.value
        if response.authentication_token:
            self.authentication_token = response.authentication_token
        if response.refresh_token:
            self.refresh_token = response.refresh_token
        if response.expires_in is not None:
            self.expires_at = self.clock() + response.expires_in
        if response.scopes is not None:
            self.scopes = frozenset(response.scopes)

    def reset(self) -> None:
        """Clear every token field and the scope set."""
        self.access_token = None
        self.authentication_token = None
        self.refresh_token = None
        self.token_type = None
        self.scopes = None
        self.expires_at = None

    def to_payload(self) -> dict[str, object]:
        """Return a log-safe view with tokens masked."""
        return {
            "client_id": self.client_id,
            "access_token": mask_sensitive(self.access_token),
            "refresh_token": mask_sensitive(self.refresh_token),
            "token_type": self.token_type,
            "scopes": sorted(self.scopes or ()),
            "expires_at": self.expires_at,
            "expired": self.is_expired(),
        }
