"""Session lifecycle for a native OAuth client.

:class:`AuthClient` owns the one :class:`~msa_auth.auth.models.Session` of an
application and exposes the public login API:

``login``
    Silent first, interactive when needed.  Single-flight: a second call while
    a login is pending raises :class:`~msa_auth.auth.errors.InvalidStateError`.
``login_silent``
    Cached token or refresh token only; returns ``False`` when interactive
    login is required.
``logout``
    Forget everything, locally and in the cookie jar.
``cancel_login``
    Abort the pending login.

All callbacks reach the :class:`AuthListener` on the owner thread through the
context's :class:`~msa_auth.auth.dispatch.Dispatcher`.  Network I/O runs on the
background worker.

Pending logins are tracked through a single-slot *flow handle* rather than a
flag: cancelling a login retires its handle, so a code exchange that finishes
afterwards can no longer touch the session or release someone else's guard.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Protocol, runtime_checkable

from msa_auth.auth.clock import Clock, default_clock
from msa_auth.auth.config import OAuthConfig
from msa_auth.auth.dispatch import Dispatcher
from msa_auth.auth.errors import (
    AuthError,
    InvalidArgumentError,
    InvalidStateError,
    OAuthError,
    ServerError,
    UserCancelledError,
)
from msa_auth.auth.exchange import RequestsTokenExchanger, TokenExchanger
from msa_auth.auth.flow import (
    AuthorizationFlowController,
    CookieJar,
    LoginSurface,
    TerminalEvent,
)
from msa_auth.auth.log_utils import get_auth_logger
from msa_auth.auth.models import (
    ErrorResponse,
    LiveStatus,
    Session,
    SuccessfulResponse,
    join_scopes,
)
from msa_auth.auth.store import (
    PreferenceStore,
    clear_refresh_token,
    default_store,
    load_refresh_token,
    save_refresh_token,
)

_LOG = logging.getLogger("msa-auth.auth.client")


# --------------------------------------------------------------------------- #
# Collaborators                                                               #
# --------------------------------------------------------------------------- #
@runtime_checkable
class AuthListener(Protocol):
    def on_auth_complete(
        self, status: LiveStatus, session: Session | None, user_state: Any
    ) -> None: ...

    def on_auth_error(self, error: AuthError, user_state: Any) -> None: ...


class _NullListener:
    def on_auth_complete(self, status, session, user_state) -> None:  # noqa: ANN001
        pass

    def on_auth_error(self, error, user_state) -> None:  # noqa: ANN001
        pass


NULL_LISTENER: AuthListener = _NullListener()


@dataclass(frozen=True)
class AuthContext:
    """Host services the client depends on.

    ``surface_factory`` is called once per interactive login and must return a
    fresh :class:`~msa_auth.auth.flow.LoginSurface`.  ``dispatcher`` has no
    default: hosts with an event loop pass a
    :class:`~msa_auth.auth.dispatch.QueueDispatcher`, scripts and tests may opt
    into :class:`~msa_auth.auth.dispatch.InlineDispatcher`.
    """

    surface_factory: Callable[[], LoginSurface]
    cookie_jar: CookieJar
    dispatcher: Dispatcher
    store: PreferenceStore | None = None
    exchanger: TokenExchanger | None = None
    clock: Clock = default_clock


class ConnectionState(enum.Enum):
    NOT_CONNECTED = "not_connected"
    PENDING = "pending"
    CONNECTED = "connected"


class _FlowHandle:
    """Identity of one pending login; retired when the login ends."""

    __slots__ = ("listener", "user_state", "scopes", "login_hint", "controller")

    def __init__(
        self,
        listener: AuthListener,
        user_state: Any,
        scopes: frozenset[str],
        login_hint: str | None,
    ) -> None:
        self.listener = listener
        self.user_state = user_state
        self.scopes = scopes
        self.login_hint = login_hint
        self.controller: AuthorizationFlowController | None = None


@dataclass(frozen=True, slots=True)
class _RefreshJob:
    """Everything a background refresh needs, and nothing more."""

    exchanger: TokenExchanger
    client_id: str
    refresh_token: str
    scope: str

    def run(self) -> TerminalEvent:
        try:
            return self.exchanger.refresh(
                client_id=self.client_id,
                refresh_token=self.refresh_token,
                scope=self.scope,
            )
        except AuthError as exc:
            return exc
        except Exception as exc:  # noqa: BLE001
            _LOG.error("Token refresh failed unexpectedly", exc_info=True)
            error = ServerError()
            error.__cause__ = exc
            return error


SilentOutcome = LiveStatus | AuthError


def _is_invalid_grant(event: TerminalEvent) -> bool:
    if isinstance(event, ErrorResponse):
        return event.is_invalid_grant
    return isinstance(event, OAuthError) and event.is_invalid_grant


def _as_auth_error(event: ErrorResponse | AuthError) -> AuthError:
    if isinstance(event, ErrorResponse):
        return OAuthError(event.code, event.description, event.uri)
    return event


# --------------------------------------------------------------------------- #
# Public client                                                               #
# --------------------------------------------------------------------------- #
class AuthClient:
    """Session manager for one OAuth client id."""

    def __init__(
        self,
        context: AuthContext,
        client_id: str,
        scopes: Iterable[str] | None = None,
        config: OAuthConfig | None = None,
    ) -> None:
        if context is None:
            raise InvalidArgumentError("context")
        if not client_id:
            raise InvalidArgumentError("client_id")

        self._context = context
        self._client_id = client_id
        self._config = config or OAuthConfig.microsoft()
        self._base_scopes: frozenset[str] = frozenset(scopes or ())
        self._store: PreferenceStore = context.store or default_store()
        self._dispatcher = context.dispatcher
        self._exchanger: TokenExchanger = context.exchanger or RequestsTokenExchanger(
            self._config
        )
        self._session = Session(client_id=client_id, clock=context.clock)
        self._active_flow: _FlowHandle | None = None
        self._log = get_auth_logger(
            base_logger_name="msa-auth.auth.client", client_id=client_id
        )

        refresh_token = load_refresh_token(self._store)
        if refresh_token:
            self._refresh_on_startup(refresh_token)

    @classmethod
    def create(
        cls,
        context: AuthContext,
        client_id: str,
        scopes: Iterable[str] | None = None,
        config: OAuthConfig | None = None,
    ) -> "AuthClient":
        return cls(context, client_id, scopes, config)

    # ------------------------------------------------------------------ #
    # Accessors                                                          #
    # ------------------------------------------------------------------ #
    @property
    def client_id(self) -> str:
        return self._client_id

    def get_client_id(self) -> str:
        return self._client_id

    @property
    def session(self) -> Session:
        return self._session

    def get_session(self) -> Session:
        return self._session

    @property
    def config(self) -> OAuthConfig:
        return self._config

    @property
    def base_scopes(self) -> frozenset[str]:
        return self._base_scopes

    @property
    def state(self) -> ConnectionState:
        if self._active_flow is not None:
            return ConnectionState.PENDING
        if self._session.is_expired():
            return ConnectionState.NOT_CONNECTED
        return ConnectionState.CONNECTED

    # ------------------------------------------------------------------ #
    # Public API                                                         #
    # ------------------------------------------------------------------ #
    def login(
        self,
        scopes: Iterable[str] | None = None,
        user_state: Any = None,
        login_hint: str | None = None,
        listener: AuthListener | None = None,
    ) -> None:
        """Log the user in, interactively only if a silent login cannot.

        Raises
        ------
        InvalidStateError
            If another login is pending.
        InvalidArgumentError
            If neither *scopes* nor the client's base scopes name a scope.
        """
        listener = listener or NULL_LISTENER
        if self._active_flow is not None:
            raise InvalidStateError()

        active_scopes = self._effective_scopes(scopes)
        if not active_scopes:
            raise InvalidArgumentError("scopes")

        handle = _FlowHandle(listener, user_state, active_scopes, login_hint)
        self._active_flow = handle

        def _on_silent(outcome: SilentOutcome) -> None:
            if self._active_flow is not handle:
                return
            if outcome is LiveStatus.CONNECTED:
                self._log.info("Interactive login not required")
                self._release(handle)
                listener.on_auth_complete(LiveStatus.CONNECTED, self._session, user_state)
            else:
                self._launch_interactive(handle)

        if self._attempt_silent(active_scopes, _on_silent):
            return
        self._launch_interactive(handle)

    def login_silent(
        self,
        scopes: Iterable[str] | None = None,
        user_state: Any = None,
        listener: AuthListener | None = None,
    ) -> bool:
        """Attempt a login without user interaction.

        Returns
        -------
        bool
            ``True`` when the outcome will be delivered to *listener* on the
            owner thread; ``False`` when interactive login is required (no
            callback fires in that case).
        """
        listener = listener or NULL_LISTENER
        if self._active_flow is not None:
            raise InvalidStateError()

        def _deliver(outcome: SilentOutcome) -> None:
            if isinstance(outcome, AuthError):
                listener.on_auth_error(outcome, user_state)
            else:
                listener.on_auth_complete(outcome, self._session, user_state)

        return self._attempt_silent(self._effective_scopes(scopes), _deliver)

    def logout(self, user_state: Any = None, listener: AuthListener | None = None) -> None:
        """Clear the session, the persisted refresh token and all cookies.

        Always reports :attr:`LiveStatus.UNKNOWN` with a ``None`` session.
        """
        listener = listener or NULL_LISTENER
        self._session.reset()
        clear_refresh_token(self._store)
        self._context.cookie_jar.remove_all_cookies()
        self._log.info("Logged out")
        listener.on_auth_complete(LiveStatus.UNKNOWN, None, user_state)

    def cancel_login(self) -> None:
        """Cancel the pending login, if any."""
        handle = self._active_flow
        if handle is None:
            return
        if handle.controller is not None:
            handle.controller.cancel()
            return
        # still in the silent phase: no surface to dismiss
        self._log.info("Login cancelled before the login surface opened")
        self._release(handle)
        handle.listener.on_auth_error(UserCancelledError(), handle.user_state)

    def try_refresh(self, scopes: Iterable[str]) -> bool:
        """Synchronously refresh the session; return *True* on success."""
        refresh_token = self._session.refresh_token
        if not refresh_token:
            self._log.info("No refresh token available")
            return False
        self._log.info("Refresh token found, refreshing access token")
        result = self._refresh_job(refresh_token, scopes).run()
        return self._apply_refresh_result(result)

    # ------------------------------------------------------------------ #
    # Silent policy                                                      #
    # ------------------------------------------------------------------ #
    def _effective_scopes(self, scopes: Iterable[str] | None) -> frozenset[str]:
        if scopes is None:
            return self._base_scopes
        return frozenset(scopes)

    def _refresh_job(self, refresh_token: str, scopes: Iterable[str]) -> _RefreshJob:
        return _RefreshJob(
            exchanger=self._exchanger,
            client_id=self._client_id,
            refresh_token=refresh_token,
            scope=join_scopes(sorted(scopes)),
        )

    def _attempt_silent(
        self, scopes: frozenset[str], on_outcome: Callable[[SilentOutcome], None]
    ) -> bool:
        if not self._session.refresh_token:
            self._session.refresh_token = load_refresh_token(self._store)

        if not self._session.is_expired() and self._session.contains(scopes):
            self._log.info("Access token still valid, using it")
            self._dispatcher.call_soon(lambda: on_outcome(LiveStatus.CONNECTED))
            return True

        refresh_token = self._session.refresh_token
        if not refresh_token:
            self._log.info("No usable tokens, interactive login required")
            return False

        job = self._refresh_job(refresh_token, scopes)
        dispatcher = self._dispatcher
        apply_result = self._apply_refresh_result

        def _complete(result: TerminalEvent) -> None:
            if apply_result(result):
                on_outcome(LiveStatus.CONNECTED)
            elif _is_invalid_grant(result):
                on_outcome(_as_auth_error(result))  # type: ignore[arg-type]
            else:
                on_outcome(LiveStatus.NOT_CONNECTED)

        def _work() -> None:
            result = job.run()
            dispatcher.call_soon(lambda: _complete(result))

        self._log.info("Refreshing access token in the background")
        dispatcher.run_in_background(_work)
        return True

    def _refresh_on_startup(self, refresh_token: str) -> None:
        job = self._refresh_job(refresh_token, self._base_scopes)
        dispatcher = self._dispatcher
        apply_result = self._apply_refresh_result

        def _work() -> None:
            result = job.run()
            dispatcher.call_soon(lambda: apply_result(result))

        self._log.info("Persisted refresh token found, refreshing on startup")
        dispatcher.run_in_background(_work)

    def _apply_refresh_result(self, result: TerminalEvent) -> bool:
        """Load a successful refresh into the session and persist its token."""
        if isinstance(result, SuccessfulResponse):
            self._session.load_from_response(result)
            self._write_refresh_token(result)
            self._log.info("Session refreshed")
            return True
        self._write_refresh_token(result)
        self._log.warning("Refresh failed: %s", _as_auth_error(result).error)
        return False

    # ------------------------------------------------------------------ #
    # Interactive flow                                                   #
    # ------------------------------------------------------------------ #
    def _launch_interactive(self, handle: _FlowHandle) -> None:
        try:
            controller = AuthorizationFlowController(
                client_id=self._client_id,
                scope=join_scopes(sorted(handle.scopes)),
                config=self._config,
                surface=self._context.surface_factory(),
                cookie_jar=self._context.cookie_jar,
                store=self._store,
                exchanger=self._exchanger,
                dispatcher=self._dispatcher,
                login_hint=handle.login_hint,
            )
            handle.controller = controller
            controller.subscribe(lambda event: self._forward(handle, event))
            controller.subscribe(lambda event: self._persist(handle, event))
            controller.subscribe(lambda event: self._release(handle))
            controller.start()
        except Exception:
            self._release(handle)
            raise

    def _forward(self, handle: _FlowHandle, event: TerminalEvent) -> None:
        if self._active_flow is not handle:
            self._log.info("Ignoring result of a retired login flow")
            return
        if isinstance(event, SuccessfulResponse):
            self._session.load_from_response(event)
            handle.listener.on_auth_complete(
                LiveStatus.CONNECTED, self._session, handle.user_state
            )
        else:
            handle.listener.on_auth_error(_as_auth_error(event), handle.user_state)

    def _persist(self, handle: _FlowHandle, event: TerminalEvent) -> None:
        if self._active_flow is not handle:
            return
        self._write_refresh_token(event)

    def _write_refresh_token(self, event: TerminalEvent) -> None:
        """Save a new refresh token, or drop the stored one on ``invalid_grant``."""
        if isinstance(event, SuccessfulResponse):
            if event.refresh_token:
                save_refresh_token(self._store, event.refresh_token)
        elif _is_invalid_grant(event):
            self._log.info("Refresh token rejected (invalid_grant); clearing it")
            clear_refresh_token(self._store)
            self._session.refresh_token = None

    def _release(self, handle: _FlowHandle) -> None:
        if self._active_flow is handle:
            self._active_flow = None
