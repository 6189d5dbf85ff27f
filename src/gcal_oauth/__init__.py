"""
OAuth 2.0 module for Google Calendar and Tasks access.

This module provides the local-loopback OAuth 2.0 Authorization Code flow
and the token lifecycle around it:
- A short-lived callback server on http://localhost:8080/callback
- A single-flight coordinator that drives the browser consent screen
- Token exchange and silent refresh against Google's token endpoint
- Refresh notifications so callers can persist new tokens

Public API:
    GoogleOAuthConfig: OAuth configuration management
    OAuthCredentials: Client ID and secret
    TokenSet: Access/refresh token data
    LoopbackServer: Callback server
    TokenExchangeClient: Token endpoint client
    AuthorizationCoordinator: High-level OAuth interface
    TokenRefreshObserver: Refresh notification hook
    AuthorizedSession: Authenticated API session
    TokenStorage: File-based token persistence for callers

Exceptions:
    GoogleOAuthError: Base exception
    ConfigurationError: Configuration error
    AuthorizationError: Authorization flow error (base of the flow errors)
    FlowAlreadyInProgress, PortUnavailable, AuthorizationDenied,
    MalformedCallback, FlowTimedOut, FlowCancelled: Flow failures
    ExchangeError: Token exchange failed
    TokenRefreshError: Token refresh failed
    TokenNotAvailableError: No valid tokens
    TokenStorageError: Storage operation failed
"""

from .config import GoogleOAuthConfig
from .coordinator import AuthorizationCoordinator
from .exceptions import (
    AuthorizationDenied,
    AuthorizationError,
    ConfigurationError,
    ExchangeError,
    FlowAlreadyInProgress,
    FlowCancelled,
    FlowTimedOut,
    GoogleOAuthError,
    MalformedCallback,
    PortUnavailable,
    TokenNotAvailableError,
    TokenRefreshError,
    TokenStorageError,
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
    ServerLifecycle,
    TokenSet,
)
from .session import AuthorizedSession
from .token_exchange import TokenExchangeClient
from .token_refresh import TokenRefreshObserver
from .token_storage import StoredAuthorization, TokenStorage

__all__ = [
    # Configuration
    "GoogleOAuthConfig",
    # Data model
    "OAuthCredentials",
    "TokenSet",
    "RedirectOutcome",
    "AuthorizedCode",
    "Denied",
    "Malformed",
    "Cancelled",
    "FlowState",
    "ServerLifecycle",
    # Callback server
    "LoopbackServer",
    # Token endpoint
    "TokenExchangeClient",
    # Coordinator
    "AuthorizationCoordinator",
    # Refresh
    "TokenRefreshObserver",
    "AuthorizedSession",
    # Storage
    "StoredAuthorization",
    "TokenStorage",
    # Exceptions
    "GoogleOAuthError",
    "ConfigurationError",
    "AuthorizationError",
    "FlowAlreadyInProgress",
    "PortUnavailable",
    "AuthorizationDenied",
    "MalformedCallback",
    "FlowTimedOut",
    "FlowCancelled",
    "ExchangeError",
    "TokenRefreshError",
    "TokenNotAvailableError",
    "TokenStorageError",
]
