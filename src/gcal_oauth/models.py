"""
Data model for the loopback OAuth flow.

Credentials and token sets are immutable values handed between the flow and
its caller. Redirect outcomes are small tagged dataclasses so the coordinator
can dispatch on their type.
"""

import os
from dataclasses import asdict, dataclass, replace
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Optional, Union

from .exceptions import ConfigurationError


@dataclass(frozen=True)
class OAuthCredentials:
    """
    Client credentials from the Google Cloud console.

    Attributes:
        client_id: OAuth client ID
        client_secret: OAuth client secret
    """

    client_id: str
    client_secret: str

    def __post_init__(self) -> None:
        if not self.client_id:
            raise ConfigurationError("client_id cannot be empty")

        if not self.client_secret:
            raise ConfigurationError("client_secret cannot be empty")

    def __repr__(self) -> str:
        return f"OAuthCredentials(client_id={self.client_id!r}, client_secret='***')"

    @classmethod
    def from_env(cls) -> "OAuthCredentials":
        """
        Load client credentials from environment variables.

        Required environment variables:
            GOOGLE_CLIENT_ID: OAuth client ID
            GOOGLE_CLIENT_SECRET: OAuth client secret

        Raises:
            ConfigurationError: If either variable is missing
        """
        client_id = os.environ.get("GOOGLE_CLIENT_ID")
        client_secret = os.environ.get("GOOGLE_CLIENT_SECRET")

        if not client_id or not client_secret:
            raise ConfigurationError(
                "Missing Google OAuth credentials. Set environment variables:\n"
                "  GOOGLE_CLIENT_ID=your_client_id\n"
                "  GOOGLE_CLIENT_SECRET=your_client_secret\n"
                "\n"
                "Create credentials at: https://console.cloud.google.com/apis/credentials"
            )

        return cls(client_id=client_id, client_secret=client_secret)


@dataclass(frozen=True)
class TokenSet:
    """
    OAuth token set returned by the token endpoint.

    Attributes:
        access_token: Short-lived access token for API calls
        refresh_token: Long-lived token for minting new access tokens, absent
                       when Google does not issue a new one
        expiry: When the access token expires (timezone-aware UTC), if known
        token_type: Token type (typically "Bearer")
        scope: Granted OAuth scopes, space separated
    """

    access_token: str
    refresh_token: Optional[str] = None
    expiry: Optional[datetime] = None
    token_type: str = "Bearer"
    scope: str = ""

    @classmethod
    def from_token_response(
        cls,
        data: Dict[str, Any],
        previous_refresh_token: Optional[str] = None,
        issued_at: Optional[datetime] = None,
    ) -> "TokenSet":
        """
        Build a TokenSet from a token endpoint JSON payload.

        Args:
            data: Decoded JSON body of the token response
            previous_refresh_token: Refresh token to keep when the response omits one
            issued_at: Reference time for expires_in (defaults to now)

        Raises:
            KeyError: If access_token is missing
            ValueError: If expires_in is not a number
        """
        access_token = data["access_token"]
        if not access_token:
            raise KeyError("access_token")

        expiry = None
        if data.get("expires_in") is not None:
            issued = issued_at or datetime.now(timezone.utc)
            expiry = issued + timedelta(seconds=int(data["expires_in"]))

        return cls(
            access_token=access_token,
            refresh_token=data.get("refresh_token") or previous_refresh_token,
            expiry=expiry,
            token_type=data.get("token_type", "Bearer"),
            scope=data.get("scope", ""),
        )

    @property
    def is_expired(self) -> bool:
        """True if the access token has expired. Unknown expiry counts as valid."""
        if self.expiry is None:
            return False
        return datetime.now(timezone.utc) >= self.expiry

    def expires_within(self, seconds: int) -> bool:
        """
        Check if token expires within given seconds.

        Useful for proactive token refresh (e.g., refresh if expires within 5 minutes).
        """
        if self.expiry is None:
            return False
        buffer_time = datetime.now(timezone.utc) + timedelta(seconds=seconds)
        return buffer_time >= self.expiry

    def with_refresh_token_fallback(self, refresh_token: Optional[str]) -> "TokenSet":
        """Return a copy carrying refresh_token if this set has none."""
        if self.refresh_token or not refresh_token:
            return self
        return replace(self, refresh_token=refresh_token)

    def to_dict(self) -> dict:
        """
        Convert to dictionary for JSON serialization.

        The expiry is written as an ISO timestamp.
        """
        data = asdict(self)
        data["expiry"] = self.expiry.isoformat() if self.expiry else None
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "TokenSet":
        """
        Create TokenSet from dictionary.

        Raises:
            KeyError: If access_token is missing
            TypeError: If unexpected fields are present
        """
        data = dict(data)
        expiry = data.pop("expiry", None)
        if expiry:
            expiry = datetime.fromisoformat(expiry)
            # Ensure timezone-aware
            if expiry.tzinfo is None:
                expiry = expiry.replace(tzinfo=timezone.utc)
        return cls(expiry=expiry, **data)


@dataclass(frozen=True)
class AuthorizedCode:
    """Callback carried an authorization code."""

    code: str


@dataclass(frozen=True)
class Denied:
    """Callback carried an error, usually access_denied."""

    reason: str
    description: Optional[str] = None


@dataclass(frozen=True)
class Malformed:
    """Callback carried neither a code nor an error."""


@dataclass(frozen=True)
class Cancelled:
    """Server was closed before any callback arrived."""


RedirectOutcome = Union[AuthorizedCode, Denied, Malformed, Cancelled]


class FlowState(Enum):
    """Coordinator flow state."""

    IDLE = "idle"
    LISTENING = "listening"
    AWAITING_EXCHANGE = "awaiting_exchange"
    RESOLVED = "resolved"
    REJECTED = "rejected"


class ServerLifecycle(Enum):
    """Loopback server lifecycle."""

    NOT_STARTED = "not_started"
    BOUND = "bound"
    CLOSED = "closed"
