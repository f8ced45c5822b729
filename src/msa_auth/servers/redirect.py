"""Loopback redirect receiver for system-browser logins.

Desktop hosts without an embedded web view can open the authorize page in the
user's browser and register a loopback redirect URI such as
``http://127.0.0.1:8400/callback``.  The Starlette application built here
receives that redirect and feeds the full request URL to the active
:class:`~msa_auth.auth.flow.AuthorizationFlowController`, exactly as an
embedded surface would report a finished navigation.

Handlers are intentionally thin:

1. Capture the request URL.
2. Post it to the owner thread through the client's dispatcher.
3. Return a tiny HTML page telling the user to go back to the application.

The application can be served by any ASGI server.

SECURITY NOTE
-------------
The request URL carries the authorization code; it is never logged.
"""

from __future__ import annotations

import logging
import webbrowser
from typing import TYPE_CHECKING, Callable

from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import HTMLResponse, Response
from starlette.routing import Route

from msa_auth.auth.dispatch import Dispatcher
from msa_auth.auth.flow import CookieJar, LoginSurface

if TYPE_CHECKING:  # pragma: no cover
    from msa_auth.auth.flow import AuthorizationFlowController

_LOG = logging.getLogger("msa-auth.servers.redirect")


def _html_page(title: str, body: str, status: int = 200) -> HTMLResponse:
    """Return a tiny success / error HTML page."""
    content = (
        "<!doctype html><html lang='en'>"
        "<head><meta charset='utf-8'><title>"
        f"{title}</title></head><body><h1>{title}</h1><p>{body}</p></body></html>"
    )
    return HTMLResponse(content, status_code=status)


class LoopbackRedirectReceiver:
    """Hand loopback redirects to whichever flow controller is attached."""

    def __init__(self, dispatcher: Dispatcher, *, path: str = "/callback") -> None:
        self._dispatcher = dispatcher
        self.path = path
        self._controller: AuthorizationFlowController | None = None
        self.app = Starlette(routes=[Route(path, self._on_redirect, methods=["GET"])])

    @property
    def attached(self) -> bool:
        return self._controller is not None

    def attach(self, controller: "AuthorizationFlowController") -> None:
        self._controller = controller

    def detach(self) -> None:
        self._controller = None

    async def _on_redirect(self, request: Request) -> Response:
        controller = self._controller
        if controller is None:
            _LOG.info("Redirect received with no login in progress")
            return _html_page("No sign-in in progress", "You may close this window.", 409)

        url = str(request.url)
        self._dispatcher.call_soon(lambda: controller.on_page_finished(url))
        _LOG.info("Redirect received for flow=%s", controller.flow_id)

        if request.query_params.get("error"):
            return _html_page(
                "Sign-in failed",
                "Return to the application for details.",
                400,
            )
        return _html_page("Sign-in complete", "You may close this window.")


class BrowserLoginSurface(LoginSurface):
    """:class:`LoginSurface` that opens the system browser."""

    def __init__(
        self,
        receiver: LoopbackRedirectReceiver,
        *,
        opener: Callable[[str], bool] = webbrowser.open,
    ) -> None:
        self._receiver = receiver
        self._opener = opener

    def show(self, request_uri: str, controller: "AuthorizationFlowController") -> None:
        self._receiver.attach(controller)
        if not self._opener(request_uri):
            _LOG.warning("No browser could be opened for the login page")

    def dismiss(self) -> None:
        self._receiver.detach()


class NullCookieJar(CookieJar):
    """Cookie jar for surfaces whose cookies live outside the application."""

    def get_cookie(self, url: str) -> str | None:
        return None

    def remove_all_cookies(self) -> None:
        pass
