"""Token endpoint exchanges.

:class:`TokenExchanger` is the narrow interface the flow controller and the
client depend on.  Both calls are *synchronous* and are only ever invoked from
a background worker; results are marshalled back to the owner thread by the
caller.

:class:`RequestsTokenExchanger` is the default implementation on top of
``requests``.  It maps failures onto the error taxonomy:

* transport exceptions  -> :class:`~msa_auth.auth.errors.NetworkError`
* undecodable / unexpected bodies -> :class:`~msa_auth.auth.errors.ServerError`
* ``{"error": ...}`` bodies -> :class:`~msa_auth.auth.models.ErrorResponse`
  (returned, not raised, so the refresh-token writer can inspect it)
"""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

import requests

from msa_auth.auth.config import OAuthConfig
from msa_auth.auth.errors import NetworkError, ServerError
from msa_auth.auth.models import AuthorizationResponse, SuccessfulResponse
from msa_auth.auth.responses import response_from_json
from msa_auth.utils.environment import http_timeout

_LOG = logging.getLogger("msa-auth.auth.exchange")

GRANT_AUTHORIZATION_CODE = "authorization_code"
GRANT_REFRESH_TOKEN = "refresh_token"


@runtime_checkable
class TokenExchanger(Protocol):
    """Exchange a code or a refresh token for a token set."""

    def exchange_code(self, *, client_id: str, code: str) -> AuthorizationResponse: ...

    def refresh(
        self, *, client_id: str, refresh_token: str, scope: str
    ) -> AuthorizationResponse: ...


class RequestsTokenExchanger(TokenExchanger):
    """Form-encoded POSTs against :attr:`OAuthConfig.token_uri`."""

    def __init__(
        self,
        config: OAuthConfig,
        *,
        session: requests.Session | None = None,
        timeout: tuple[float, float] | None = None,
    ) -> None:
        self.config = config
        self._http = session or requests.Session()
        self.timeout = timeout or http_timeout()

    def exchange_code(self, *, client_id: str, code: str) -> AuthorizationResponse:
        payload = {
            "client_id": client_id,
            "code": code,
            "redirect_uri": self.config.redirect_uri,
            "grant_type": GRANT_AUTHORIZATION_CODE,
        }
        return self._post(payload)

    def refresh(
        self, *, client_id: str, refresh_token: str, scope: str
    ) -> AuthorizationResponse:
        payload = {
            "client_id": client_id,
            "refresh_token": refresh_token,
            "scope": scope,
            "grant_type": GRANT_REFRESH_TOKEN,
        }
        return self._post(payload)

    def _post(self, payload: dict[str, str]) -> AuthorizationResponse:
        grant_type = payload["grant_type"]
        try:
            resp = self._http.post(
                self.config.token_uri,
                data=payload,
                headers={"Accept": "application/json"},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            _LOG.warning("Token request (%s) failed: %s", grant_type, type(exc).__name__)
            raise NetworkError(f"Token request failed: {exc}") from exc

        # OAuth servers report grant errors with 4xx and a JSON body, so the
        # status code alone does not decide the outcome.
        try:
            data = resp.json()
        except ValueError:
            _LOG.warning(
                "Token endpoint returned %s with a non-JSON body (%s)",
                resp.status_code,
                grant_type,
            )
            raise ServerError() from None

        result = response_from_json(data)
        if isinstance(result, SuccessfulResponse):
            _LOG.info(
                "Token exchange succeeded grant_type=%s expires_in=%s",
                grant_type,
                result.expires_in,
            )
        else:
            _LOG.info(
                "Token endpoint returned error=%s grant_type=%s status=%s",
                result.code,
                grant_type,
                resp.status_code,
            )
        return result

    def close(self) -> None:
        self._http.close()
