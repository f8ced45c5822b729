"""Shared fakes for the host collaborators of the auth core."""

from __future__ import annotations

from typing import Any, Callable
from urllib.parse import urlsplit

import pytest

from msa_auth.auth.client import AuthClient, AuthContext
from msa_auth.auth.config import OAuthConfig
from msa_auth.auth.errors import AuthError
from msa_auth.auth.models import AuthorizationResponse, LiveStatus, Session
from msa_auth.auth.store import MemoryPreferenceStore

CLIENT_ID = "000000004C12AE6F"


# --------------------------------------------------------------------------- #
# Fakes                                                                       #
# --------------------------------------------------------------------------- #
class FakeClock:
    """Mutable clock; call to read, assign ``now`` to move time."""

    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class RecordingListener:
    def __init__(self) -> None:
        self.completed: list[tuple[LiveStatus, Session | None, Any]] = []
        self.errors: list[tuple[AuthError, Any]] = []

    def on_auth_complete(self, status: LiveStatus, session: Session | None, user_state: Any) -> None:
        self.completed.append((status, session, user_state))

    def on_auth_error(self, error: AuthError, user_state: Any) -> None:
        self.errors.append((error, user_state))

    @property
    def calls(self) -> int:
        return len(self.completed) + len(self.errors)


class FakeSurface:
    """Records what the controller asks the login surface to do."""

    def __init__(self) -> None:
        self.shown: list[str] = []
        self.controller = None
        self.dismissed = 0

    def show(self, request_uri: str, controller) -> None:  # noqa: ANN001
        self.shown.append(request_uri)
        self.controller = controller

    def dismiss(self) -> None:
        self.dismissed += 1

    def navigate(self, url: str) -> None:
        assert self.controller is not None, "surface was never shown"
        self.controller.on_page_finished(url)


class FakeCookieJar:
    """Cookie headers keyed by host name."""

    def __init__(self, cookies: dict[str, str] | None = None) -> None:
        self.cookies: dict[str, str] = dict(cookies or {})
        self.cleared = 0

    def get_cookie(self, url: str) -> str | None:
        return self.cookies.get(urlsplit(url).hostname or "")

    def remove_all_cookies(self) -> None:
        self.cookies.clear()
        self.cleared += 1


class FakeExchanger:
    """Scripted token endpoint.

    Queue results with ``code_results`` / ``refresh_results``; an exception
    instance in the queue is raised instead of returned.
    """

    def __init__(self) -> None:
        self.code_results: list[AuthorizationResponse | Exception] = []
        self.refresh_results: list[AuthorizationResponse | Exception] = []
        self.code_calls: list[dict[str, str]] = []
        self.refresh_calls: list[dict[str, str]] = []

    def exchange_code(self, *, client_id: str, code: str) -> AuthorizationResponse:
        self.code_calls.append({"client_id": client_id, "code": code})
        return self._next(self.code_results)

    def refresh(self, *, client_id: str, refresh_token: str, scope: str) -> AuthorizationResponse:
        self.refresh_calls.append(
            {"client_id": client_id, "refresh_token": refresh_token, "scope": scope}
        )
        return self._next(self.refresh_results)

    @staticmethod
    def _next(queue: list) -> AuthorizationResponse:
        assert queue, "unexpected token request"
        result = queue.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


class ManualDispatcher:
    """Dispatcher that only runs tasks when the test says so."""

    def __init__(self) -> None:
        self.background: list[Callable[[], None]] = []
        self.owner: list[Callable[[], None]] = []

    def run_in_background(self, task: Callable[[], None]) -> None:
        self.background.append(task)

    def call_soon(self, task: Callable[[], None]) -> None:
        self.owner.append(task)

    def run_background(self) -> int:
        tasks, self.background = self.background, []
        for task in tasks:
            task()
        return len(tasks)

    def run_owner(self) -> int:
        tasks, self.owner = self.owner, []
        for task in tasks:
            task()
        return len(tasks)

    def drain(self) -> None:
        while self.background or self.owner:
            self.run_background()
            self.run_owner()


# --------------------------------------------------------------------------- #
# Fixtures                                                                    #
# --------------------------------------------------------------------------- #
@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def store() -> MemoryPreferenceStore:
    return MemoryPreferenceStore()


@pytest.fixture()
def cookie_jar() -> FakeCookieJar:
    return FakeCookieJar()


@pytest.fixture()
def exchanger() -> FakeExchanger:
    return FakeExchanger()


@pytest.fixture()
def dispatcher() -> ManualDispatcher:
    return ManualDispatcher()


@pytest.fixture()
def surface() -> FakeSurface:
    return FakeSurface()


@pytest.fixture()
def surfaces() -> list[FakeSurface]:
    """Every surface created by the client, in creation order."""
    return []


@pytest.fixture()
def listener() -> RecordingListener:
    return RecordingListener()


@pytest.fixture()
def config() -> OAuthConfig:
    return OAuthConfig.microsoft()


@pytest.fixture()
def context(
    surfaces: list[FakeSurface],
    cookie_jar: FakeCookieJar,
    store: MemoryPreferenceStore,
    dispatcher: ManualDispatcher,
    exchanger: FakeExchanger,
    clock: FakeClock,
) -> AuthContext:
    def _factory() -> FakeSurface:
        surface = FakeSurface()
        surfaces.append(surface)
        return surface

    return AuthContext(
        surface_factory=_factory,
        cookie_jar=cookie_jar,
        store=store,
        dispatcher=dispatcher,
        exchanger=exchanger,
        clock=clock,
    )


@pytest.fixture()
def client(context: AuthContext, config: OAuthConfig) -> AuthClient:
    return AuthClient.create(context, CLIENT_ID, ["wl.signin", "wl.offline_access"], config)


# --------------------------------------------------------------------------- #
# Markers                                                                     #
# --------------------------------------------------------------------------- #
def pytest_addoption(parser):
    parser.addoption(
        "--integration",
        action="store_true",
        default=False,
        help="run integration tests that talk to real endpoints",
    )


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless ``--integration`` is given.

    Tests marked ``ci_safe`` stub every external call and always run.
    """
    if config.getoption("--integration", default=False):
        return
    skip_integration = pytest.mark.skip(reason="Need --integration option to run")
    for item in items:
        if "integration" in item.keywords and "ci_safe" not in item.keywords:
            item.add_marker(skip_integration)
