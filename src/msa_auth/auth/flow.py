"""Interactive authorization-code flow.

:class:`AuthorizationFlowController` supervises one interactive login:

1. :meth:`~AuthorizationFlowController.start` builds the authorize request URI
   and hands it to the host's :class:`LoginSurface`.
2. The surface reports every finished navigation through
   :meth:`~AuthorizationFlowController.on_page_finished`.  Pages on the logout
   domain have their cookie *names* harvested; reaching the redirect URI ends
   the flow.
3. The redirect is classified (:func:`~msa_auth.auth.responses.classify_redirect`)
   and exactly one terminal event is emitted to the subscribers, in
   registration order, on the owner thread.

Terminal events are a :class:`~msa_auth.auth.models.SuccessfulResponse`, an
:class:`~msa_auth.auth.models.ErrorResponse` (token endpoint) or an
:class:`~msa_auth.auth.errors.AuthError` instance.

SECURITY NOTE
-------------
Authorization codes, tokens and cookie values are never logged.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Callable, Final, Protocol, runtime_checkable
from urllib.parse import urlencode, urlsplit

from msa_auth.auth.config import OAuthConfig
from msa_auth.auth.dispatch import Dispatcher
from msa_auth.auth.errors import AuthError, OAuthError, ServerError, UserCancelledError
from msa_auth.auth.exchange import TokenExchanger
from msa_auth.auth.log_utils import get_auth_logger
from msa_auth.auth.models import ErrorResponse, SuccessfulResponse
from msa_auth.auth.responses import (
    CodeGrant,
    InvalidRedirect,
    classify_redirect,
    redirect_matches,
)
from msa_auth.auth.store import PreferenceStore, merge_cookie_keys

_LOG = logging.getLogger("msa-auth.auth.flow")

# Navigation error code reported for custom-scheme redirects; never fatal.
ERROR_UNSUPPORTED_SCHEME: Final[int] = -10

RESPONSE_TYPE_CODE: Final[str] = "code"

TerminalEvent = SuccessfulResponse | ErrorResponse | AuthError
Subscriber = Callable[[TerminalEvent], None]


@runtime_checkable
class LoginSurface(Protocol):
    """Host UI that renders the authorize page (web view, browser, ...)."""

    def show(self, request_uri: str, controller: "AuthorizationFlowController") -> None:
        """Display *request_uri* and report navigations to *controller*."""
        ...

    def dismiss(self) -> None:
        """Close the surface.  Must not report a user cancellation."""
        ...


@runtime_checkable
class CookieJar(Protocol):
    """Platform cookie store of the login surface."""

    def get_cookie(self, url: str) -> str | None:
        """Return the ``Cookie`` header value (``"a=1; b=2"``) for *url*."""
        ...

    def remove_all_cookies(self) -> None: ...


def cookie_names(header: str | None) -> set[str]:
    """Return the cookie *names* of a ``Cookie`` header value."""
    if not header:
        return set()
    names = set()
    for pair in header.split(";"):
        name = pair.partition("=")[0].strip()
        if name:
            names.add(name)
    return names


@dataclass(frozen=True, slots=True)
class _CodeExchangeJob:
    """Everything the background code exchange needs, and nothing more."""

    exchanger: TokenExchanger
    client_id: str
    code: str

    def run(self) -> SuccessfulResponse | ErrorResponse | AuthError:
        try:
            return self.exchanger.exchange_code(client_id=self.client_id, code=self.code)
        except AuthError as exc:
            return exc
        except Exception as exc:  # noqa: BLE001
            _LOG.error("Code exchange failed unexpectedly", exc_info=True)
            error = ServerError()
            error.__cause__ = exc
            return error


class AuthorizationFlowController:
    """Drive one interactive login and emit a single terminal event."""

    def __init__(
        self,
        *,
        client_id: str,
        scope: str,
        config: OAuthConfig,
        surface: LoginSurface,
        cookie_jar: CookieJar,
        store: PreferenceStore,
        exchanger: TokenExchanger,
        dispatcher: Dispatcher,
        login_hint: str | None = None,
    ) -> None:
        if not client_id:
            raise ValueError("client_id must not be empty")
        if not scope:
            raise ValueError("scope must not be empty")

        self.client_id = client_id
        self.scope = scope
        self.config = config
        self.login_hint = login_hint
        self.flow_id = uuid.uuid4().hex[:8]

        self._surface = surface
        self._cookie_jar = cookie_jar
        self._store = store
        self._exchanger = exchanger
        self._dispatcher = dispatcher

        self._subscribers: list[Subscriber] = []
        self._cookie_keys: set[str] = set()
        self._started = False
        self._exchanging = False
        self._finished = False
        self._log = get_auth_logger(
            base_logger_name="msa-auth.auth.flow",
            client_id=client_id,
            flow_id=self.flow_id,
        )

    # ------------------------------------------------------------------ #
    # Subscription                                                       #
    # ------------------------------------------------------------------ #
    def subscribe(self, subscriber: Subscriber) -> None:
        """Register *subscriber*; subscribers run in registration order."""
        self._subscribers.append(subscriber)

    @property
    def finished(self) -> bool:
        return self._finished

    @property
    def exchanging(self) -> bool:
        """*True* while a code exchange is running on the background worker."""
        return self._exchanging

    # ------------------------------------------------------------------ #
    # Lifecycle                                                          #
    # ------------------------------------------------------------------ #
    def build_request_uri(self) -> str:
        """Return the authorize URI presented on the login surface."""
        params: list[tuple[str, str]] = [
            ("client_id", self.client_id),
            ("scope", self.scope),
            ("display", self.config.display),
            ("response_type", RESPONSE_TYPE_CODE),
            ("redirect_uri", self.config.redirect_uri),
        ]
        if self.login_hint is not None:
            params.append(("login_hint", self.login_hint))
            params.append(("user_name", self.login_hint))

        separator = "&" if urlsplit(self.config.authorize_uri).query else "?"
        return f"{self.config.authorize_uri}{separator}{urlencode(params)}"

    def start(self) -> None:
        if self._started:
            raise RuntimeError("flow already started")
        self._started = True
        request_uri = self.build_request_uri()
        self._log.info("Opening login surface display=%s", self.config.display)
        self._surface.show(request_uri, self)

    def cancel(self) -> None:
        """Dismiss the surface and emit :class:`UserCancelledError`.

        A code exchange already running on the worker is not interrupted; its
        result is discarded when it arrives.
        """
        if self._finished:
            return
        self._log.info("Login cancelled exchanging=%s", self._exchanging)
        self._dismiss()
        self._emit(UserCancelledError())

    def on_surface_cancelled(self) -> None:
        """Called by the surface when the user closes it."""
        if self._finished:
            return
        self._log.info("Login surface closed by user")
        self._emit(UserCancelledError())

    # ------------------------------------------------------------------ #
    # Navigation events                                                  #
    # ------------------------------------------------------------------ #
    def on_page_finished(self, url: str) -> None:
        if self._finished or self._exchanging:
            return

        if urlsplit(url).hostname == self.config.logout_host:
            self._cookie_keys |= cookie_names(self._cookie_jar.get_cookie(url))

        if not redirect_matches(url, self.config.redirect_uri):
            return

        self._flush_cookie_keys()
        self._on_end_uri(url)

    def on_received_error(
        self, error_code: int, description: str | None, failing_url: str | None
    ) -> None:
        if error_code == ERROR_UNSUPPORTED_SCHEME:
            return
        if self._finished:
            return
        self._log.warning("Navigation failed error_code=%s", error_code)
        self._dismiss()
        self._emit(OAuthError("", description, failing_url))

    # ------------------------------------------------------------------ #
    # Internals                                                          #
    # ------------------------------------------------------------------ #
    def _flush_cookie_keys(self) -> None:
        merged = merge_cookie_keys(self._store, self._cookie_keys)
        self._log.debug("Persisted %d cookie names", len(merged))
        self._cookie_keys.clear()

    def _on_end_uri(self, url: str) -> None:
        try:
            result = classify_redirect(url)
        except AuthError as exc:
            self._dismiss()
            self._emit(exc)
            return

        self._dismiss()

        if isinstance(result, CodeGrant):
            self._start_code_exchange(result.code)
        elif isinstance(result, SuccessfulResponse):
            self._emit(result)
        elif isinstance(result, ErrorResponse):
            self._emit(OAuthError(result.code, result.description, result.uri))
        elif isinstance(result, InvalidRedirect):
            self._log.warning("Invalid redirect: %s", result.reason)
            self._emit(ServerError())

    def _start_code_exchange(self, code: str) -> None:
        self._exchanging = True
        job = _CodeExchangeJob(self._exchanger, self.client_id, code)
        dispatcher = self._dispatcher
        complete = self._complete_exchange

        def _work() -> None:
            result = job.run()
            dispatcher.call_soon(lambda: complete(result))

        self._log.info("Exchanging authorization code")
        dispatcher.run_in_background(_work)

    def _complete_exchange(self, result: TerminalEvent) -> None:
        self._exchanging = False
        if self._finished:
            self._log.info("Discarding code exchange result of a finished flow")
            return
        self._emit(result)

    def _dismiss(self) -> None:
        try:
            self._surface.dismiss()
        except Exception:  # noqa: BLE001 – surface already torn down by the host
            self._log.debug("Login surface dismissal failed", exc_info=True)

    def _emit(self, event: TerminalEvent) -> None:
        if self._finished:
            return
        self._finished = True
        self._log.info("Login flow finished outcome=%s", type(event).__name__)
        # every subscriber runs even if an earlier one raises
        first_error: BaseException | None = None
        for subscriber in list(self._subscribers):
            try:
                subscriber(event)
            except Exception as exc:  # noqa: BLE001
                self._log.error("Login flow subscriber failed", exc_info=True)
                if first_error is None:
                    first_error = exc
        if first_error is not None:
            raise first_error
