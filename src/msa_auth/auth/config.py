"""OAuth endpoint configuration.

An :class:`OAuthConfig` bundles the four URIs a login needs: the authorize
endpoint shown on the login surface, the token endpoint used for code and
refresh exchanges, the redirect URI that terminates the interactive flow, and
the logout URI whose domain owns the cookies harvested during login.

Environment variables
---------------------
MSA_OAUTH_AUTHORIZE_URL, MSA_OAUTH_TOKEN_URL, MSA_OAUTH_REDIRECT_URI,
MSA_OAUTH_LOGOUT_URL
    Override the Microsoft account defaults one by one.
MSA_OAUTH_DISPLAY
    Explicit ``display`` parameter; otherwise derived from the form factor.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace
from typing import Final
from urllib.parse import urlsplit

from msa_auth.utils.environment import env_str

MSA_AUTHORIZE_URL: Final[str] = "https://login.live.com/oauth20_authorize.srf"
MSA_TOKEN_URL: Final[str] = "https://login.live.com/oauth20_token.srf"
MSA_REDIRECT_URI: Final[str] = "https://login.live.com/oauth20_desktop.srf"
MSA_LOGOUT_URL: Final[str] = "https://login.live.com/oauth20_logout.srf"

# Smallest screen width (density independent pixels) treated as a tablet.
_TABLET_MIN_WIDTH_DP: Final[int] = 600


class FormFactor(enum.Enum):
    """Host form factor used to choose the authorize page layout."""

    PHONE = "phone"
    TABLET = "tablet"
    DESKTOP = "desktop"

    @property
    def display(self) -> str:
        return _DISPLAY_BY_FORM_FACTOR[self]

    @classmethod
    def from_smallest_width(cls, width_dp: int) -> "FormFactor":
        """Classify a handheld device by its smallest screen width."""
        return cls.TABLET if width_dp >= _TABLET_MIN_WIDTH_DP else cls.PHONE


_DISPLAY_BY_FORM_FACTOR: Final[dict[FormFactor, str]] = {
    FormFactor.PHONE: "android_phone",
    FormFactor.TABLET: "android_tablet",
    FormFactor.DESKTOP: "popup",
}


@dataclass(frozen=True, slots=True)
class OAuthConfig:
    """Endpoints of one OAuth 2.0 authorization server."""

    authorize_uri: str
    token_uri: str
    redirect_uri: str
    logout_uri: str
    form_factor: FormFactor = FormFactor.DESKTOP
    display_override: str | None = field(default=None)

    @property
    def display(self) -> str:
        """Value of the ``display`` authorize parameter."""
        return self.display_override or self.form_factor.display

    @property
    def logout_host(self) -> str:
        return urlsplit(self.logout_uri).hostname or ""

    def with_form_factor(self, form_factor: FormFactor) -> "OAuthConfig":
        return replace(self, form_factor=form_factor)

    @classmethod
    def microsoft(cls, form_factor: FormFactor = FormFactor.DESKTOP) -> "OAuthConfig":
        """Return the Microsoft account (login.live.com) endpoints."""
        return cls(
            authorize_uri=MSA_AUTHORIZE_URL,
            token_uri=MSA_TOKEN_URL,
            redirect_uri=MSA_REDIRECT_URI,
            logout_uri=MSA_LOGOUT_URL,
            form_factor=form_factor,
        )

    @classmethod
    def from_env(cls, form_factor: FormFactor = FormFactor.DESKTOP) -> "OAuthConfig":
        """Return the Microsoft defaults overridden by ``MSA_OAUTH_*`` variables."""
        return cls(
            authorize_uri=env_str("MSA_OAUTH_AUTHORIZE_URL", MSA_AUTHORIZE_URL),  # type: ignore[arg-type]
            token_uri=env_str("MSA_OAUTH_TOKEN_URL", MSA_TOKEN_URL),  # type: ignore[arg-type]
            redirect_uri=env_str("MSA_OAUTH_REDIRECT_URI", MSA_REDIRECT_URI),  # type: ignore[arg-type]
            logout_uri=env_str("MSA_OAUTH_LOGOUT_URL", MSA_LOGOUT_URL),  # type: ignore[arg-type]
            form_factor=form_factor,
            display_override=env_str("MSA_OAUTH_DISPLAY"),
        )
