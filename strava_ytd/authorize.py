"""Interactive Strava OAuth consent through a short-lived local callback server."""

from __future__ import annotations

import sys
import threading
import webbrowser
from collections.abc import Callable
from urllib.parse import urlencode

from flask import Flask, Response, request
from werkzeug.serving import WSGIRequestHandler, make_server

from .errors import AuthorizationDenied, AuthorizationFailed

STRAVA_AUTHORIZE_URL = "https://www.strava.com/oauth/authorize"
CALLBACK_PATH = "/strava-token"
SCOPES = "read_all,profile:read_all,activity:read_all"
QUIET_PATHS = {"/favicon.ico"}


class AuthorizationOutcome:
    """One-shot result slot: the first code or error wins, later ones are dropped."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._done = threading.Event()
        self.code: str | None = None
        self.error: Exception | None = None

    @property
    def settled(self) -> bool:
        return self._done.is_set()

    def resolve(self, code: str) -> bool:
        return self._settle(code=code)

    def fail(self, error: Exception) -> bool:
        return self._settle(error=error)

    def _settle(self, code: str | None = None, error: Exception | None = None) -> bool:
        with self._lock:
            if self._done.is_set():
                return False
            self.code = code
            self.error = error
            self._done.set()
            return True

    def wait(self, timeout: float | None = None) -> str:
        if not self._done.wait(timeout):
            self.fail(AuthorizationFailed(f"Timed out after {timeout}s waiting for Strava authorization"))
        if self.code is None:
            raise self.error or AuthorizationFailed("Strava authorization did not complete")
        return self.code


def _text(message: str, status: int) -> Response:
    return Response(message, status=status, mimetype="text/plain")


def create_callback_app(outcome: AuthorizationOutcome) -> Flask:
    app = Flask(__name__)

    @app.get(CALLBACK_PATH)
    def strava_token():
        error = request.args.get("error")
        code = request.args.get("code")

        if error == "access_denied":
            settled = outcome.fail(AuthorizationDenied("Strava authorization was denied by the user"))
            reply = _text("Permission denied, click back to try again", 400)
        elif error:
            settled = outcome.fail(AuthorizationFailed(f"Unexpected error from Strava: {error}"))
            reply = _text(f"Unexpected error from Strava: {error}", 500)
        elif not code:
            settled = outcome.fail(AuthorizationFailed("Strava redirect did not include a code"))
            reply = _text("Missing authorization code", 400)
        else:
            settled = outcome.resolve(code)
            reply = _text("Complete, you may now close this window", 200)

        if not settled:
            return _text("Authorization already handled, you may close this window", 410)
        return reply

    @app.route("/", defaults={"path": ""})
    @app.route("/<path:path>")
    def ignored(path: str):
        if f"/{path}" not in QUIET_PATHS:
            print(f"Ignoring request to /{path}", file=sys.stderr)
        return _text("Not found", 404)

    return app


class _QuietRequestHandler(WSGIRequestHandler):
    # Drop connections that never send a request line.
    timeout = 5

    def log_request(self, code: int | str = "-", size: int | str = "-") -> None:
        pass


def _print_prompt(url: str) -> None:
    print("To authorize this script, please visit:", file=sys.stderr)
    print(url, file=sys.stderr)


class AuthorizationFlow:
    def __init__(
        self,
        client_id: str,
        *,
        bind_host: str = "127.0.0.1",
        redirect_host: str = "localhost",
        port: int = 0,
        open_browser: bool = False,
        announce: Callable[[str], None] = _print_prompt,
    ) -> None:
        self.client_id = client_id
        self.bind_host = bind_host
        self.redirect_host = redirect_host
        self.port = port
        self.open_browser = open_browser
        self.announce = announce

    def authorization_url(self, port: int) -> str:
        params = {
            "client_id": self.client_id,
            "response_type": "code",
            "redirect_uri": f"http://{self.redirect_host}:{port}{CALLBACK_PATH}",
            "approval_prompt": "auto",
            "scope": SCOPES,
        }
        return f"{STRAVA_AUTHORIZE_URL}?{urlencode(params, safe=':/,')}"

    def obtain_authorization_code(self, timeout: float | None = None) -> str:
        """Block until the operator finishes the browser consent and return the code.

        The callback server is shut down before this returns or raises. With
        ``timeout=None`` the wait is unbounded.
        """
        outcome = AuthorizationOutcome()
        server = make_server(
            self.bind_host,
            self.port,
            create_callback_app(outcome),
            threaded=True,
            request_handler=_QuietRequestHandler,
        )
        thread = threading.Thread(target=server.serve_forever, name="strava-oauth-callback", daemon=True)
        thread.start()
        try:
            url = self.authorization_url(server.server_port)
            self.announce(url)
            if self.open_browser:
                webbrowser.open(url)
            return outcome.wait(timeout)
        finally:
            server.shutdown()
            server.server_close()
            thread.join()
