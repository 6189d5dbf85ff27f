"""
OAuth configuration for the Google Calendar loopback flow.

This module provides configuration management for the OAuth 2.0
authorization-code flow against Google's endpoints. Configuration can be
loaded from environment variables or provided programmatically.
"""

import os
from dataclasses import dataclass
from typing import Optional, Tuple

from .exceptions import ConfigurationError

DEFAULT_CALLBACK_PORT = 8080

CALENDAR_READONLY_SCOPE = "https://www.googleapis.com/auth/calendar.readonly"
TASKS_READONLY_SCOPE = "https://www.googleapis.com/auth/tasks.readonly"


@dataclass
class GoogleOAuthConfig:
    """
    Configuration for the Google OAuth 2.0 loopback flow.

    The callback port is embedded in the redirect URI registered with Google,
    so the default must stay stable. Changing it requires registering the new
    redirect URI in the Google Cloud console as well.

    Attributes:
        callback_host: Host name used in the redirect URI (default: localhost)
        callback_port: Port for the loopback callback server (default: 8080)
        callback_path: URL path for callback (default: /callback)
        bind_host: Interface the callback server listens on (default: 127.0.0.1)
        authorization_url: Google OAuth consent endpoint
        token_url: Google OAuth token endpoint
        scopes: Scopes requested in the consent URL
        redirect_timeout: Seconds to wait for the browser redirect (None waits forever)
        request_timeout: Seconds before a token endpoint request is abandoned
        refresh_buffer_seconds: Refresh tokens this many seconds before expiry
        token_file: Path used by callers that persist tokens to disk
    """

    # Callback configuration
    callback_host: str = "localhost"
    callback_port: int = DEFAULT_CALLBACK_PORT
    callback_path: str = "/callback"
    bind_host: str = "127.0.0.1"

    # Google OAuth endpoints
    authorization_url: str = "https://accounts.google.com/o/oauth2/v2/auth"
    token_url: str = "https://oauth2.googleapis.com/token"
    scopes: Tuple[str, ...] = (CALENDAR_READONLY_SCOPE, TASKS_READONLY_SCOPE)

    # Timeouts
    redirect_timeout: Optional[float] = None
    request_timeout: float = 30

    # Token refresh settings
    refresh_buffer_seconds: int = 300  # Refresh 5 min before expiry

    # Token storage (caller side)
    token_file: str = "~/.config/gcal-oauth/tokens.json"

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if not isinstance(self.callback_port, int) or not (
            1 <= self.callback_port <= 65535
        ):
            raise ConfigurationError(
                f"callback_port must be between 1 and 65535, got {self.callback_port}"
            )

        if not self.callback_path.startswith("/"):
            raise ConfigurationError(
                f"callback_path must start with '/', got {self.callback_path!r}"
            )

        if not self.scopes:
            raise ConfigurationError("scopes cannot be empty")

        if self.redirect_timeout is not None and self.redirect_timeout <= 0:
            raise ConfigurationError("redirect_timeout must be positive")

        if self.request_timeout <= 0:
            raise ConfigurationError("request_timeout must be positive")

        if self.refresh_buffer_seconds < 0:
            raise ConfigurationError("refresh_buffer_seconds cannot be negative")

        self.token_file = os.path.expanduser(self.token_file)

    @property
    def redirect_uri(self) -> str:
        """
        Full callback URL for the OAuth redirect.

        Returns:
            Loopback callback URL (e.g., http://localhost:8080/callback)
        """
        return f"http://{self.callback_host}:{self.callback_port}{self.callback_path}"

    @classmethod
    def from_env(cls) -> "GoogleOAuthConfig":
        """
        Load configuration from environment variables.

        Optional environment variables:
            GCAL_OAUTH_CALLBACK_PORT: Callback port (default: 8080)
            GCAL_OAUTH_REDIRECT_TIMEOUT: Seconds to wait for the redirect (default: no limit)
            GCAL_OAUTH_TOKEN_FILE: Token file path (default: ~/.config/gcal-oauth/tokens.json)

        Returns:
            GoogleOAuthConfig instance

        Raises:
            ConfigurationError: If a variable holds an invalid value
        """
        port = os.environ.get("GCAL_OAUTH_CALLBACK_PORT", str(DEFAULT_CALLBACK_PORT))
        timeout = os.environ.get("GCAL_OAUTH_REDIRECT_TIMEOUT")

        try:
            callback_port = int(port)
            redirect_timeout = float(timeout) if timeout else None
        except ValueError as e:
            raise ConfigurationError(f"Invalid OAuth environment setting: {e}") from e

        return cls(
            callback_port=callback_port,
            redirect_timeout=redirect_timeout,
            token_file=os.environ.get(
                "GCAL_OAUTH_TOKEN_FILE", "~/.config/gcal-oauth/tokens.json"
            ),
        )
