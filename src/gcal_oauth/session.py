"""
Authenticated HTTP session for Google Calendar and Tasks APIs.

This module provides the API client that calendar and task fetchers use. It
handles:

- Bearer authentication with the current access token
- Silent refresh before expiry and after a 401 response
- Relaying every refreshed token set to a TokenRefreshObserver
"""

import logging
import threading
from typing import Dict, Optional

import requests

from .config import GoogleOAuthConfig
from .exceptions import TokenNotAvailableError
from .models import OAuthCredentials, TokenSet
from .token_exchange import TokenExchangeClient
from .token_refresh import TokenRefreshObserver

logger = logging.getLogger(__name__)


class AuthorizedSession:
    """
    Authenticated client for Google APIs.

    Refreshes happen out of band from the explicit authorization flow. Each
    refresh is reported to the observer exactly once, in the thread that
    performed it.

    Example:
        observer = TokenRefreshObserver()
        observer.on_refresh(storage.refresh_callback(credentials))

        session = AuthorizedSession(credentials, tokens, observer=observer)
        response = session.request(
            "GET", "https://www.googleapis.com/calendar/v3/calendars/primary/events"
        )
    """

    def __init__(
        self,
        credentials: OAuthCredentials,
        token_set: TokenSet,
        config: Optional[GoogleOAuthConfig] = None,
        exchange_client: Optional[TokenExchangeClient] = None,
        observer: Optional[TokenRefreshObserver] = None,
        http: Optional[requests.Session] = None,
    ):
        """
        Initialize the session with an existing token set.

        Args:
            credentials: Client credentials the tokens were issued to
            token_set: Tokens from a completed flow or from storage
            config: OAuth configuration (defaults apply if not provided)
            exchange_client: Token endpoint client (created from config if not provided)
            observer: Receives every refreshed token set
            http: Underlying requests session
        """
        self.config = config or GoogleOAuthConfig()
        self.credentials = credentials
        self.exchange_client = exchange_client or TokenExchangeClient(self.config)
        self.observer = observer or TokenRefreshObserver()
        self.http = http or requests.Session()
        self._token_set = token_set
        self._lock = threading.RLock()

    @property
    def token_set(self) -> TokenSet:
        return self._token_set

    def get_valid_token(self) -> TokenSet:
        """
        Get a valid token set, refreshing if necessary.

        Returns:
            Token set whose access token is not about to expire

        Raises:
            TokenNotAvailableError: If the token has expired and there is no
                                    refresh token to renew it
            TokenRefreshError: If the refresh request fails
        """
        with self._lock:
            token = self._token_set
            if not token.expires_within(self.config.refresh_buffer_seconds):
                return token

            if token.refresh_token:
                logger.info(
                    f"Token expires soon "
                    f"(within {self.config.refresh_buffer_seconds}s), refreshing..."
                )
                return self.refresh()

            if token.is_expired:
                raise TokenNotAvailableError(
                    "Access token expired and no refresh token is available. "
                    "Run authorization flow again."
                )

            logger.warning("Token expires soon but cannot be refreshed (no refresh token)")
            return token

    def refresh(self) -> TokenSet:
        """
        Refresh the access token and notify the observer.

        Returns:
            The new token set

        Raises:
            TokenNotAvailableError: If there is no refresh token
            TokenRefreshError: If the refresh request fails
        """
        with self._lock:
            current = self._token_set
            if not current.refresh_token:
                raise TokenNotAvailableError(
                    "No refresh token available. Run authorization flow first."
                )

            token_set = self.exchange_client.refresh(
                current.refresh_token, self.credentials
            ).with_refresh_token_fallback(current.refresh_token)
            self._token_set = token_set

            self.observer.notify(token_set)
            return token_set

    def authorization_header(self) -> Dict[str, str]:
        """
        Get Authorization header dict for API requests.

        Returns:
            Dict with Authorization header: {"Authorization": "Bearer <token>"}
        """
        token = self.get_valid_token()
        return {"Authorization": f"{token.token_type} {token.access_token}"}

    def request(self, method: str, url: str, **kwargs) -> requests.Response:
        """
        Make an authenticated request.

        A 401 response triggers one refresh and one retry when a refresh
        token is available. Other responses are returned unchanged.

        Args:
            method: HTTP method (GET, POST, etc.)
            url: Full API URL
            **kwargs: Passed through to requests.Session.request

        Returns:
            Response object
        """
        extra_headers = kwargs.pop("headers", None) or {}
        kwargs.setdefault("timeout", self.config.request_timeout)

        headers = {**extra_headers, **self.authorization_header()}
        logger.debug(f"{method} {url}")
        response = self.http.request(method, url, headers=headers, **kwargs)

        if response.status_code == 401 and self._token_set.refresh_token:
            logger.warning("Authentication failed (401), refreshing token and retrying")
            token = self.refresh()
            headers = {**headers, "Authorization": f"{token.token_type} {token.access_token}"}
            response = self.http.request(method, url, headers=headers, **kwargs)

        return response
