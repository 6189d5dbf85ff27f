"""
OAuth exception classes for the Google Calendar loopback flow.

This module defines the exception hierarchy for all OAuth-related errors.
Every failure of an authorization flow is one of the AuthorizationError
subclasses below, so callers can switch on the error type rather than
parsing messages.
"""

from typing import Optional


class GoogleOAuthError(Exception):
    """Base exception for all Google OAuth errors."""

    pass


class ConfigurationError(GoogleOAuthError):
    """OAuth configuration error (missing or invalid configuration)."""

    pass


class AuthorizationError(GoogleOAuthError):
    """OAuth authorization flow error."""

    pass


class FlowAlreadyInProgress(AuthorizationError):
    """Another authorization flow is still listening or exchanging."""

    pass


class PortUnavailable(AuthorizationError):
    """The loopback callback port could not be bound."""

    def __init__(self, port: int, message: Optional[str] = None):
        self.port = port
        super().__init__(message or f"Could not bind callback port {port}")


class AuthorizationDenied(AuthorizationError):
    """The user (or provider) declined the consent request."""

    def __init__(self, reason: str, description: Optional[str] = None):
        self.reason = reason
        self.description = description
        message = f"Authorization denied: {reason}"
        if description:
            message = f"{message} - {description}"
        super().__init__(message)


class MalformedCallback(AuthorizationError):
    """Callback carried neither an authorization code nor an error."""

    pass


class FlowTimedOut(AuthorizationError):
    """No callback arrived before the flow's timeout elapsed."""

    def __init__(self, timeout: float):
        self.timeout = timeout
        super().__init__(
            f"No callback received within {timeout} seconds. "
            f"Please ensure you completed the authorization in your browser."
        )


class FlowCancelled(AuthorizationError):
    """The callback server was closed before any callback arrived."""

    pass


class ExchangeError(GoogleOAuthError):
    """Failed to exchange authorization code for tokens."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        self.cause = cause
        super().__init__(message)


class TokenRefreshError(GoogleOAuthError):
    """Failed to refresh access token using refresh token."""

    pass


class TokenNotAvailableError(GoogleOAuthError):
    """No valid tokens available (need to authorize first)."""

    pass


class TokenStorageError(GoogleOAuthError):
    """Token storage operation failed (file I/O error)."""

    pass
