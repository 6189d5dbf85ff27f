"""Tests for OAuth loopback callback server module."""

import socket
import threading

import pytest
import requests

from src.gcal_oauth.config import GoogleOAuthConfig
from src.gcal_oauth.exceptions import PortUnavailable
from src.gcal_oauth.loopback_server import LoopbackServer
from src.gcal_oauth.models import (
    AuthorizedCode,
    Cancelled,
    Denied,
    Malformed,
    ServerLifecycle,
)


class TestCallbackHandling:
    """Tests for callback request handling (no socket)."""

    @pytest.fixture
    def server(self):
        return LoopbackServer(port=9080)

    def test_server_initialization(self, server):
        """LoopbackServer starts unbound with no outcome."""
        assert server.lifecycle is ServerLifecycle.NOT_STARTED
        assert server.outcome is None
        assert server.port == 9080

    def test_from_config(self):
        """from_config uses the configured port, host and path."""
        config = GoogleOAuthConfig(callback_port=9123, callback_path="/oauth2/callback")
        server = LoopbackServer.from_config(config)

        assert server.port == 9123
        assert server.host == "127.0.0.1"
        assert server.callback_path == "/oauth2/callback"

    def test_callback_with_code(self, server):
        """A code parameter yields AuthorizedCode and a success page."""
        response = server.app.test_client().get("/callback?code=abc123")

        assert response.status_code == 200
        assert "text/html" in response.content_type
        assert "Authorization Successful" in response.get_data(as_text=True)
        assert server.await_redirect(timeout=0) == AuthorizedCode(code="abc123")

    def test_callback_with_error(self, server):
        """An error parameter yields Denied and a failure page."""
        response = server.app.test_client().get("/callback?error=access_denied")

        assert response.status_code == 400
        assert "text/html" in response.content_type
        assert "Authorization Failed" in response.get_data(as_text=True)
        assert server.await_redirect(timeout=0) == Denied(reason="access_denied")

    def test_callback_with_error_description(self, server):
        """error_description is kept on the Denied outcome."""
        server.app.test_client().get(
            "/callback?error=access_denied&error_description=User%20denied"
        )

        outcome = server.await_redirect(timeout=0)
        assert outcome.reason == "access_denied"
        assert outcome.description == "User denied"

    def test_error_takes_precedence_over_code(self, server):
        """A callback with both parameters counts as denied."""
        server.app.test_client().get("/callback?code=abc123&error=access_denied")

        assert isinstance(server.await_redirect(timeout=0), Denied)

    def test_callback_without_parameters(self, server):
        """A callback with neither parameter yields Malformed."""
        response = server.app.test_client().get("/callback")

        assert response.status_code == 400
        assert "No authorization code received" in response.get_data(as_text=True)
        assert server.await_redirect(timeout=0) == Malformed()

    def test_error_page_escapes_values(self, server):
        """Provider values are HTML-escaped in the failure page."""
        response = server.app.test_client().get(
            "/callback?error=%3Cscript%3Ealert(1)%3C/script%3E"
        )

        body = response.get_data(as_text=True)
        assert "<script>alert(1)</script>" not in body
        assert "&lt;script&gt;" in body

    def test_other_paths_are_ignored(self, server):
        """Requests outside the callback path never produce an outcome."""
        response = server.app.test_client().get("/favicon.ico?code=abc123")

        assert response.status_code == 404
        assert server.outcome is None
        assert server.await_redirect(timeout=0) is None

    def test_second_callback_is_ignored(self, server):
        """Only the first callback determines the outcome."""
        client = server.app.test_client()
        client.get("/callback?code=abc123")
        response = client.get("/callback?error=access_denied")

        assert response.status_code == 409
        assert "already been completed" in response.get_data(as_text=True)
        assert server.await_redirect(timeout=0) == AuthorizedCode(code="abc123")

    def test_head_request_does_not_consume_callback(self, server):
        """A HEAD on the callback path is refused and leaves the latch open."""
        client = server.app.test_client()
        response = client.head("/callback?code=abc123")

        assert response.status_code == 405
        assert response.headers["Allow"] == "GET"
        assert server.outcome is None

        response = client.get("/callback?code=abc123")

        assert response.status_code == 200
        assert server.await_redirect(timeout=0) == AuthorizedCode(code="abc123")

    def test_await_redirect_times_out(self, server):
        """await_redirect returns None when nothing arrives in time."""
        assert server.await_redirect(timeout=0.05) is None

    def test_close_before_bind_cancels_waiter(self, server):
        """close() is safe before bind() and releases waiters."""
        server.close()

        assert server.lifecycle is ServerLifecycle.CLOSED
        assert server.await_redirect(timeout=0) == Cancelled()

    def test_close_keeps_recorded_outcome(self, server):
        """close() does not overwrite an outcome that already arrived."""
        server.app.test_client().get("/callback?code=abc123")
        server.close()

        assert server.await_redirect(timeout=0) == AuthorizedCode(code="abc123")


class TestLoopbackServerSocket:
    """Tests that bind a real local port."""

    @pytest.fixture
    def server(self, free_port):
        server = LoopbackServer(port=free_port)
        yield server
        server.close()

    def test_bind_and_receive_callback(self, server, free_port):
        """A real browser-style request resolves the outcome."""
        server.bind()
        assert server.lifecycle is ServerLifecycle.BOUND
        assert server.port == free_port

        response = requests.get(
            f"http://127.0.0.1:{free_port}/callback", params={"code": "abc123"}, timeout=5
        )

        assert response.status_code == 200
        assert server.await_redirect(timeout=5) == AuthorizedCode(code="abc123")

    def test_bind_twice_raises_error(self, server):
        """A server instance is bound at most once."""
        server.bind()

        with pytest.raises(RuntimeError):
            server.bind()

    def test_bind_port_in_use_raises_port_unavailable(self, free_port):
        """Binding an occupied port fails from bind() itself."""
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as blocker:
            blocker.bind(("127.0.0.1", free_port))
            blocker.listen(1)

            server = LoopbackServer(port=free_port)
            with pytest.raises(PortUnavailable) as exc_info:
                server.bind()

        assert exc_info.value.port == free_port
        assert server.lifecycle is ServerLifecycle.NOT_STARTED

    def test_close_releases_port(self, server, free_port):
        """After close() the same port can be bound again."""
        server.bind()
        server.close()

        again = LoopbackServer(port=free_port)
        try:
            again.bind()
            assert again.lifecycle is ServerLifecycle.BOUND
        finally:
            again.close()

    def test_close_is_idempotent(self, server):
        """close() can be called repeatedly."""
        server.bind()
        server.close()
        server.close()

        assert server.lifecycle is ServerLifecycle.CLOSED

    def test_close_unblocks_pending_wait(self, server):
        """Closing while a waiter is blocked hands it Cancelled."""
        server.bind()
        results = []
        waiter = threading.Thread(target=lambda: results.append(server.await_redirect()))
        waiter.start()

        server.close()
        waiter.join(timeout=5)

        assert not waiter.is_alive()
        assert results == [Cancelled()]
