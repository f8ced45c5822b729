"""Integration test: full login lifecycle on real worker threads.

Drives an :class:`AuthClient` with the ``requests`` token exchanger (HTTP
stubbed at ``requests.Session.post``), a :class:`QueueDispatcher` and a
:class:`DiskPreferenceStore`:

1. interactive login via authorization code
2. refresh token and cookie names land on disk
3. a second client refreshes on startup from the persisted token
4. logout wipes the persisted token
"""

from __future__ import annotations

import json
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import patch

import pytest
from requests import Session

from msa_auth.auth.client import AuthClient, AuthContext, ConnectionState
from msa_auth.auth.config import OAuthConfig
from msa_auth.auth.dispatch import QueueDispatcher
from msa_auth.auth.exchange import RequestsTokenExchanger
from msa_auth.auth.models import LiveStatus
from msa_auth.auth.store import COOKIES_KEY, REFRESH_TOKEN_KEY, DiskPreferenceStore

CLIENT_ID = "000000004C12AE6F"
SCOPES = ["wl.signin", "wl.offline_access"]


def _token_body(access: str, refresh: str) -> dict:
    return {
        "access_token": access,
        "token_type": "bearer",
        "expires_in": 3600,
        "scope": "wl.signin wl.offline_access",
        "refresh_token": refresh,
    }


@pytest.mark.integration
@pytest.mark.ci_safe
def test_code_login_persist_restart_and_logout(tmp_path: Path, surface, cookie_jar, listener) -> None:  # noqa: ANN001
    posted: list[dict] = []
    bodies = [_token_body("access-1", "refresh-1"), _token_body("access-2", "refresh-2")]

    def fake_post(self, url, data=None, headers=None, timeout=None):  # noqa: ANN001
        posted.append(dict(data))
        return SimpleNamespace(status_code=200, json=lambda body=bodies.pop(0): body)

    config = OAuthConfig.microsoft()
    store = DiskPreferenceStore(base_dir=tmp_path)
    dispatcher = QueueDispatcher()

    def _context() -> AuthContext:
        return AuthContext(
            surface_factory=lambda: surface,
            cookie_jar=cookie_jar,
            store=store,
            dispatcher=dispatcher,
            exchanger=RequestsTokenExchanger(config, session=Session()),
        )

    try:
        with patch.object(Session, "post", autospec=True, side_effect=fake_post):
            # ------------------------------------------------------------------ #
            # 1. Interactive login                                               #
            # ------------------------------------------------------------------ #
            client = AuthClient(_context(), CLIENT_ID, SCOPES, config)
            client.login(user_state="first", listener=listener)
            assert surface.shown, "login surface was not opened"

            cookie_jar.cookies["login.live.com"] = "MSPOK=abc; PPAuth=def"
            surface.navigate(f"{config.redirect_uri}?code=M.code-1&lc=1033")
            assert dispatcher.process_pending(block=True, timeout=5) == 1

            assert listener.completed == [(LiveStatus.CONNECTED, client.session, "first")]
            assert client.session.access_token == "access-1"
            assert posted[0]["grant_type"] == "authorization_code"
            assert posted[0]["code"] == "M.code-1"

            # ------------------------------------------------------------------ #
            # 2. Persisted state                                                 #
            # ------------------------------------------------------------------ #
            on_disk = json.loads(store.path.read_text(encoding="utf-8"))
            assert on_disk[REFRESH_TOKEN_KEY] == "refresh-1"
            assert on_disk[COOKIES_KEY] == "MSPOK,PPAuth"
            assert "abc" not in store.path.read_text(encoding="utf-8")

            # ------------------------------------------------------------------ #
            # 3. Restart refreshes from the persisted token                      #
            # ------------------------------------------------------------------ #
            restarted = AuthClient(_context(), CLIENT_ID, SCOPES, config)
            assert dispatcher.process_pending(block=True, timeout=5) == 1

            assert posted[1]["grant_type"] == "refresh_token"
            assert posted[1]["refresh_token"] == "refresh-1"
            assert posted[1]["scope"] == "wl.offline_access wl.signin"
            assert restarted.session.access_token == "access-2"
            assert restarted.state is ConnectionState.CONNECTED
            assert store.get(REFRESH_TOKEN_KEY) == "refresh-2"

        # ---------------------------------------------------------------------- #
        # 4. Logout                                                              #
        # ---------------------------------------------------------------------- #
        restarted.logout(user_state="bye", listener=listener)
        assert listener.completed[-1] == (LiveStatus.UNKNOWN, None, "bye")
        assert store.get(REFRESH_TOKEN_KEY) is None
        assert cookie_jar.cookies == {}
    finally:
        dispatcher.shutdown()
