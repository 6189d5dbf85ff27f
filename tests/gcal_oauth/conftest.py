"""Shared fixtures for OAuth tests."""

import socket
from datetime import datetime, timedelta, timezone

import pytest

from src.gcal_oauth.config import GoogleOAuthConfig
from src.gcal_oauth.models import OAuthCredentials, TokenSet


@pytest.fixture
def free_port():
    """Find a local port that is currently free."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


@pytest.fixture
def credentials():
    """Create test client credentials."""
    return OAuthCredentials(client_id="test_client_id", client_secret="test_client_secret")


@pytest.fixture
def config(tmp_path):
    """Create test OAuth config."""
    return GoogleOAuthConfig(callback_port=9080, token_file=str(tmp_path / "tokens.json"))


@pytest.fixture
def valid_token_set():
    """Create a token set that is not about to expire."""
    return TokenSet(
        access_token="valid_access_token",
        refresh_token="valid_refresh_token",
        expiry=datetime.now(timezone.utc) + timedelta(hours=1),
    )


@pytest.fixture
def expired_token_set():
    """Create a token set that expired 30 minutes ago."""
    return TokenSet(
        access_token="expired_access_token",
        refresh_token="valid_refresh_token",
        expiry=datetime.now(timezone.utc) - timedelta(minutes=30),
    )
