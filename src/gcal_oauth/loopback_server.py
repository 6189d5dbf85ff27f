"""
OAuth loopback callback server for the Google Calendar flow.

This module provides a local HTTP server that receives the provider's
redirect during the authorization flow. It listens on a fixed local port,
honors the first request to the callback path, and reports a single outcome.

IMPORTANT: This server is designed for single-user, personal use. It runs
temporarily during the authorization flow and is closed by its owner as soon
as the outcome has been read.
"""

import logging
import os
import socket
import threading
from typing import Optional

from flask import Flask, Response, request
from markupsafe import escape
from werkzeug.serving import BaseWSGIServer, make_server

from .config import GoogleOAuthConfig
from .exceptions import PortUnavailable
from .models import (
    AuthorizedCode,
    Cancelled,
    Denied,
    Malformed,
    RedirectOutcome,
    ServerLifecycle,
)

logger = logging.getLogger(__name__)

_PAGE = """<html>
<head><title>{title}</title></head>
<body style="font-family: Arial, sans-serif; max-width: 600px; margin: 50px auto; padding: 20px;">
    <h1 style="color: {color};">{title}</h1>
    {body}
    <p style="margin-top: 30px; color: #666;">You can close this window and return to the application.</p>
    <script>setTimeout(() => window.close(), {close_after_ms});</script>
</body>
</html>"""


def _render_page(title: str, body: str, success: bool) -> str:
    return _PAGE.format(
        title=title,
        body=body,
        color="#4caf50" if success else "#d32f2f",
        close_after_ms=2000 if success else 3000,
    )


class LoopbackServer:
    """
    Local HTTP server to capture the OAuth redirect.

    The server:
    1. Binds the callback port synchronously in bind()
    2. Serves requests in a background thread
    3. Records the outcome of the first request to the callback path
    4. Answers later callback requests without changing that outcome
    5. Releases the port on close()

    Requests to any other path get Flask's 404 and never produce an outcome.
    """

    def __init__(
        self,
        port: int,
        host: str = "127.0.0.1",
        callback_path: str = "/callback",
    ):
        """
        Initialize callback server.

        Args:
            port: Local TCP port to listen on
            host: Interface to bind (loopback by default)
            callback_path: URL path the provider redirects to
        """
        self.host = host
        self.callback_path = callback_path
        self.app = Flask(__name__)
        self.app.logger.setLevel(logging.WARNING)  # Suppress Flask logs

        self._requested_port = port
        self._lifecycle = ServerLifecycle.NOT_STARTED
        self._outcome: Optional[RedirectOutcome] = None
        self._outcome_ready = threading.Event()
        self._lock = threading.Lock()
        self._httpd: Optional[BaseWSGIServer] = None
        self._thread: Optional[threading.Thread] = None

        self.app.add_url_rule(
            callback_path, "oauth_callback", self._handle_callback, methods=["GET"]
        )

    @classmethod
    def from_config(cls, config: GoogleOAuthConfig) -> "LoopbackServer":
        """Create a server listening where config's redirect URI points."""
        return cls(
            port=config.callback_port,
            host=config.bind_host,
            callback_path=config.callback_path,
        )

    @property
    def lifecycle(self) -> ServerLifecycle:
        return self._lifecycle

    @property
    def port(self) -> int:
        """Port actually bound, or the requested port before bind()."""
        if self._httpd is not None:
            return self._httpd.server_address[1]
        return self._requested_port

    @property
    def outcome(self) -> Optional[RedirectOutcome]:
        return self._outcome

    def _record(self, outcome: RedirectOutcome) -> bool:
        """Store the first outcome. Returns False if one was already recorded."""
        with self._lock:
            if self._outcome is not None:
                return False
            self._outcome = outcome
        self._outcome_ready.set()
        return True

    def _handle_callback(self) -> Response:
        """Handle OAuth redirect from Google."""
        if request.method != "GET":
            # Flask routes HEAD to GET handlers; only a real GET may set the outcome
            logger.debug(f"Ignoring {request.method} {self.callback_path}")
            return Response(status=405, headers={"Allow": "GET"})

        logger.info("Received OAuth callback")

        if self._outcome is not None:
            logger.warning("Ignoring callback: authorization already handled")
            return Response(
                _render_page(
                    "Authorization Already Handled",
                    "<p>This authorization request has already been completed.</p>",
                    success=False,
                ),
                status=409,
                content_type="text/html",
            )

        error = request.args.get("error")
        code = request.args.get("code")

        if error:
            error_desc = request.args.get("error_description")
            outcome: RedirectOutcome = Denied(reason=error, description=error_desc)
            body = f"<p><strong>Error:</strong> {escape(error)}</p>"
            if error_desc:
                body += f"<p><strong>Description:</strong> {escape(error_desc)}</p>"
            status = 400
            page = _render_page("Authorization Failed", body, success=False)
        elif code:
            outcome = AuthorizedCode(code=code)
            status = 200
            page = _render_page(
                "Authorization Successful!",
                "<p>Your application has been authorized to read your calendar and tasks.</p>",
                success=True,
            )
        else:
            outcome = Malformed()
            status = 400
            page = _render_page(
                "Authorization Failed",
                "<p>No authorization code received.</p>",
                success=False,
            )

        if not self._record(outcome):
            # Lost a race with a concurrent callback request
            return Response(
                _render_page(
                    "Authorization Already Handled",
                    "<p>This authorization request has already been completed.</p>",
                    success=False,
                ),
                status=409,
                content_type="text/html",
            )

        if isinstance(outcome, Denied):
            logger.error(f"OAuth error: {outcome.reason} - {outcome.description}")
        elif isinstance(outcome, Malformed):
            logger.error("No authorization code in callback")
        else:
            logger.info("Authorization code received successfully")

        return Response(page, status=status, content_type="text/html")

    def bind(self) -> "LoopbackServer":
        """
        Bind the callback port and start serving in a background thread.

        Returns:
            self, for chaining

        Raises:
            PortUnavailable: If the port cannot be bound (e.g., already in use)
            RuntimeError: If the server was already bound or closed
        """
        with self._lock:
            if self._lifecycle is not ServerLifecycle.NOT_STARTED:
                raise RuntimeError(f"Cannot bind server in state {self._lifecycle.value}")

            # werkzeug exits the process when it fails to bind, so the socket
            # is bound here and handed over by descriptor.
            sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
            try:
                if os.name != "nt":
                    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
                sock.bind((self.host, self._requested_port))
                sock.listen(16)
            except OSError as e:
                sock.close()
                logger.error(f"Could not bind callback port {self._requested_port}: {e}")
                raise PortUnavailable(
                    self._requested_port,
                    f"Callback port {self._requested_port} is unavailable: {e}",
                ) from e

            try:
                self._httpd = make_server(
                    self.host,
                    self._requested_port,
                    self.app,
                    threaded=True,
                    fd=sock.fileno(),
                )
            finally:
                # make_server duplicates the descriptor
                sock.close()

            self._thread = threading.Thread(
                target=self._httpd.serve_forever,
                kwargs={"poll_interval": 0.1},
                name="oauth-loopback-server",
                daemon=True,
            )
            self._thread.start()
            self._lifecycle = ServerLifecycle.BOUND

        logger.info(f"OAuth callback server listening on {self.host}:{self.port}")
        return self

    def await_redirect(self, timeout: Optional[float] = None) -> Optional[RedirectOutcome]:
        """
        Wait for the OAuth redirect.

        Args:
            timeout: Maximum seconds to wait (None waits until a callback or close())

        Returns:
            The recorded outcome, Cancelled if the server was closed first,
            or None if the timeout elapsed
        """
        if timeout is None:
            logger.info("Waiting for OAuth callback")
        else:
            logger.info(f"Waiting for OAuth callback (timeout: {timeout}s)")

        if not self._outcome_ready.wait(timeout=timeout):
            logger.warning(f"Timeout waiting for callback after {timeout}s")
            return None
        return self._outcome

    def close(self) -> None:
        """
        Stop the callback server and release the port.

        Safe to call more than once and from any state. A pending
        await_redirect() is released with Cancelled if no callback arrived.
        """
        with self._lock:
            if self._lifecycle is ServerLifecycle.CLOSED:
                return
            self._lifecycle = ServerLifecycle.CLOSED
            httpd, self._httpd = self._httpd, None
            thread, self._thread = self._thread, None
            if self._outcome is None:
                self._outcome = Cancelled()

        self._outcome_ready.set()

        if httpd is not None:
            logger.info("OAuth callback server shutting down")
            httpd.shutdown()
            httpd.server_close()
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=5)
