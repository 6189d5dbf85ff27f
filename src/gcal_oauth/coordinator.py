"""
OAuth coordinator for the loopback authorization flow.

This module provides the main interface for authorizing the application. It
coordinates the callback server, the browser, and the token exchange, and
guarantees that at most one authorization flow is outstanding at a time.
"""

import logging
import threading
import webbrowser
from concurrent.futures import Future
from typing import Callable, Optional
from urllib.parse import urlencode

from .config import GoogleOAuthConfig
from .exceptions import (
    AuthorizationDenied,
    AuthorizationError,
    ExchangeError,
    FlowAlreadyInProgress,
    FlowCancelled,
    FlowTimedOut,
    GoogleOAuthError,
    MalformedCallback,
    PortUnavailable,
)
from .loopback_server import LoopbackServer
from .models import (
    AuthorizedCode,
    Cancelled,
    Denied,
    FlowState,
    Malformed,
    OAuthCredentials,
    RedirectOutcome,
    TokenSet,
)
from .token_exchange import TokenExchangeClient

logger = logging.getLogger(__name__)

BrowserOpener = Callable[[str], object]
ServerFactory = Callable[[GoogleOAuthConfig], LoopbackServer]


class AuthorizationCoordinator:
    """
    High-level coordinator for the OAuth authorization flow.

    The flow runs in a background thread and its result is delivered through
    a Future. Only one flow may be listening or exchanging at a time; a
    second start_flow() call fails immediately with FlowAlreadyInProgress
    without touching the port or the browser.

    The callback server is closed exactly once per flow, before the state
    returns to IDLE and before the Future completes, so the next flow can
    always bind the port again.

    Example:
        coordinator = AuthorizationCoordinator()
        future = coordinator.start_flow(OAuthCredentials.from_env())
        tokens = future.result()
    """

    def __init__(
        self,
        config: Optional[GoogleOAuthConfig] = None,
        exchange_client: Optional[TokenExchangeClient] = None,
        browser_opener: Optional[BrowserOpener] = None,
        server_factory: Optional[ServerFactory] = None,
    ):
        """
        Initialize OAuth coordinator.

        Args:
            config: OAuth configuration (defaults apply if not provided)
            exchange_client: Token endpoint client (created from config if not provided)
            browser_opener: Called with the consent URL (default: webbrowser.open)
            server_factory: Builds the callback server (default: LoopbackServer.from_config)
        """
        self.config = config or GoogleOAuthConfig()
        self.exchange_client = exchange_client or TokenExchangeClient(self.config)
        self.browser_opener = browser_opener or webbrowser.open
        self.server_factory = server_factory or LoopbackServer.from_config

        self._lock = threading.Lock()
        self._state = FlowState.IDLE
        self._server: Optional[LoopbackServer] = None

    @property
    def state(self) -> FlowState:
        return self._state

    @property
    def is_busy(self) -> bool:
        """True while a flow is listening for the callback or exchanging the code."""
        return self._state is not FlowState.IDLE

    def _transition(self, state: FlowState) -> None:
        logger.debug(f"Authorization flow: {self._state.value} -> {state.value}")
        self._state = state

    def build_consent_url(self, credentials: OAuthCredentials) -> str:
        """
        Generate the Google consent URL.

        Returns:
            Complete authorization URL with query parameters
        """
        params = {
            "client_id": credentials.client_id,
            "redirect_uri": self.config.redirect_uri,
            "response_type": "code",
            "scope": " ".join(self.config.scopes),
            "access_type": "offline",
            "prompt": "consent",
        }
        url = f"{self.config.authorization_url}?{urlencode(params)}"
        logger.debug(f"Generated consent URL: {url}")
        return url

    def start_flow(
        self, credentials: OAuthCredentials, timeout: Optional[float] = None
    ) -> "Future[TokenSet]":
        """
        Start the authorization flow.

        The callback port is bound before this method returns. Everything
        else (opening the browser, waiting for the redirect, exchanging the
        code) happens in a background thread.

        Args:
            credentials: Client credentials to authorize with
            timeout: Seconds to wait for the redirect (default: config.redirect_timeout)

        Returns:
            Future resolving to the TokenSet, or failing with one of
            FlowAlreadyInProgress, PortUnavailable, AuthorizationDenied,
            MalformedCallback, FlowTimedOut, FlowCancelled, ExchangeError,
            AuthorizationError
        """
        future: "Future[TokenSet]" = Future()
        future.set_running_or_notify_cancel()

        with self._lock:
            if self._state is not FlowState.IDLE:
                logger.warning(
                    f"Authorization flow already in progress ({self._state.value})"
                )
                future.set_exception(
                    FlowAlreadyInProgress(
                        "An authorization flow is already in progress. "
                        "Complete or cancel it before starting another."
                    )
                )
                return future

            self._transition(FlowState.LISTENING)
            try:
                server = self.server_factory(self.config)
                server.bind()
            except PortUnavailable as e:
                self._transition(FlowState.IDLE)
                future.set_exception(e)
                return future
            except Exception as e:
                self._transition(FlowState.IDLE)
                logger.error(f"Could not start callback server: {e}", exc_info=True)
                error = AuthorizationError(f"Could not start callback server: {e}")
                error.__cause__ = e
                future.set_exception(error)
                return future
            self._server = server

        if timeout is None:
            timeout = self.config.redirect_timeout

        worker = threading.Thread(
            target=self._run_flow,
            args=(server, credentials, timeout, future),
            name="oauth-authorization-flow",
            daemon=True,
        )
        worker.start()
        return future

    def authorize(
        self, credentials: OAuthCredentials, timeout: Optional[float] = None
    ) -> TokenSet:
        """
        Run the complete authorization flow and block until it finishes.

        Raises:
            The flow's error (see start_flow)
        """
        return self.start_flow(credentials, timeout=timeout).result()

    def cancel(self) -> bool:
        """
        Cancel the pending flow, if any.

        The flow fails with FlowCancelled unless a callback already arrived.

        Returns:
            True if a listening server was closed, False if nothing was pending
        """
        with self._lock:
            server = self._server
        if server is None:
            return False
        logger.info("Cancelling authorization flow")
        server.close()
        return True

    def _open_browser(self, url: str) -> None:
        print("\nPlease authorize the application by visiting:")
        print(f"\n  {url}\n")
        try:
            self.browser_opener(url)
        except Exception as e:
            logger.warning(f"Could not open browser automatically: {e}")
            print("Please copy the URL above and paste it in your browser.")

    def _run_flow(
        self,
        server: LoopbackServer,
        credentials: OAuthCredentials,
        timeout: Optional[float],
        future: "Future[TokenSet]",
    ) -> None:
        token_set: Optional[TokenSet] = None
        error: Optional[BaseException] = None

        try:
            try:
                self._open_browser(self.build_consent_url(credentials))
                outcome = server.await_redirect(timeout=timeout)
                if outcome is None:
                    outcome = server.outcome
                self._mark_exchanging(outcome)
            finally:
                server.close()
            if outcome is None and not isinstance(server.outcome, Cancelled):
                # Callback landed between the timeout and close()
                outcome = server.outcome
                self._mark_exchanging(outcome)
            token_set = self._complete(outcome, credentials, timeout)
        except GoogleOAuthError as e:
            error = e
        except Exception as e:
            logger.error(f"Unexpected error during authorization flow: {e}", exc_info=True)
            error = AuthorizationError(f"Unexpected error during authorization flow: {e}")
            error.__cause__ = e

        with self._lock:
            self._server = None
            if error is None:
                self._transition(FlowState.RESOLVED)
                logger.info("Authorization complete")
            else:
                self._transition(FlowState.REJECTED)
                logger.error(f"Authorization failed: {error}")
            self._transition(FlowState.IDLE)

        if error is None:
            future.set_result(token_set)
        else:
            future.set_exception(error)

    def _mark_exchanging(self, outcome: Optional[RedirectOutcome]) -> None:
        if isinstance(outcome, AuthorizedCode):
            with self._lock:
                self._transition(FlowState.AWAITING_EXCHANGE)

    def _complete(
        self,
        outcome: Optional[RedirectOutcome],
        credentials: OAuthCredentials,
        timeout: Optional[float],
    ) -> TokenSet:
        """Turn the redirect outcome into tokens or a typed error."""
        if isinstance(outcome, AuthorizedCode):
            try:
                return self.exchange_client.exchange(outcome.code, credentials)
            except ExchangeError:
                raise
            except Exception as e:
                logger.error(f"Token exchange failed: {e}")
                raise ExchangeError(f"Token exchange failed: {e}", cause=e) from e
        if isinstance(outcome, Denied):
            raise AuthorizationDenied(outcome.reason, outcome.description)
        if isinstance(outcome, Malformed):
            raise MalformedCallback("Callback contained neither a code nor an error")
        if isinstance(outcome, Cancelled):
            raise FlowCancelled("Authorization flow was cancelled")
        if outcome is None:
            raise FlowTimedOut(timeout)
        raise AuthorizationError(f"Unknown redirect outcome: {outcome!r}")
