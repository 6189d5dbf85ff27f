"""Tests for OAuth data model."""

import os
from datetime import datetime, timedelta, timezone
from unittest import mock

import pytest

from src.gcal_oauth.exceptions import ConfigurationError
from src.gcal_oauth.models import OAuthCredentials, TokenSet


class TestOAuthCredentials:
    """Tests for OAuthCredentials."""

    def test_empty_client_id_raises_error(self):
        """client_id cannot be empty."""
        with pytest.raises(ConfigurationError, match="client_id"):
            OAuthCredentials(client_id="", client_secret="secret")

    def test_empty_client_secret_raises_error(self):
        """client_secret cannot be empty."""
        with pytest.raises(ConfigurationError, match="client_secret"):
            OAuthCredentials(client_id="id", client_secret="")

    def test_repr_hides_secret(self, credentials):
        """The secret never appears in repr output."""
        assert "test_client_secret" not in repr(credentials)
        assert "test_client_id" in repr(credentials)

    def test_credentials_are_immutable(self, credentials):
        """Credentials cannot be changed during a flow."""
        with pytest.raises(AttributeError):
            credentials.client_id = "other"

    @mock.patch.dict(
        os.environ,
        {"GOOGLE_CLIENT_ID": "env_id", "GOOGLE_CLIENT_SECRET": "env_secret"},
        clear=True,
    )
    def test_from_env(self):
        """from_env reads client credentials."""
        credentials = OAuthCredentials.from_env()

        assert credentials.client_id == "env_id"
        assert credentials.client_secret == "env_secret"

    @mock.patch.dict(os.environ, {"GOOGLE_CLIENT_ID": "env_id"}, clear=True)
    def test_from_env_missing_secret_raises_error(self):
        """from_env requires both variables."""
        with pytest.raises(ConfigurationError, match="GOOGLE_CLIENT_SECRET"):
            OAuthCredentials.from_env()


class TestTokenSet:
    """Tests for TokenSet."""

    def test_from_token_response_full(self):
        """from_token_response reads every field."""
        issued = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
        token_set = TokenSet.from_token_response(
            {
                "access_token": "A",
                "refresh_token": "R",
                "expires_in": 3599,
                "token_type": "Bearer",
                "scope": "calendar.readonly tasks.readonly",
            },
            issued_at=issued,
        )

        assert token_set.access_token == "A"
        assert token_set.refresh_token == "R"
        assert token_set.expiry == issued + timedelta(seconds=3599)
        assert token_set.scope == "calendar.readonly tasks.readonly"

    def test_from_token_response_minimal(self):
        """Only access_token is required."""
        token_set = TokenSet.from_token_response({"access_token": "A"})

        assert token_set.access_token == "A"
        assert token_set.refresh_token is None
        assert token_set.expiry is None
        assert token_set.token_type == "Bearer"

    def test_from_token_response_keeps_previous_refresh_token(self):
        """A response without refresh_token keeps the previous one."""
        token_set = TokenSet.from_token_response(
            {"access_token": "B", "expires_in": 3600}, previous_refresh_token="R"
        )

        assert token_set.refresh_token == "R"

    @pytest.mark.parametrize("payload", [{}, {"access_token": ""}])
    def test_from_token_response_requires_access_token(self, payload):
        """A missing or empty access_token is rejected."""
        with pytest.raises(KeyError):
            TokenSet.from_token_response(payload)

    def test_is_expired(self, valid_token_set, expired_token_set):
        """is_expired compares expiry with now."""
        assert valid_token_set.is_expired is False
        assert expired_token_set.is_expired is True

    def test_unknown_expiry_is_not_expired(self):
        """A token without expiry is treated as valid."""
        token_set = TokenSet(access_token="A")

        assert token_set.is_expired is False
        assert token_set.expires_within(10_000) is False

    def test_expires_within(self):
        """expires_within checks against a buffer."""
        token_set = TokenSet(
            access_token="A",
            expiry=datetime.now(timezone.utc) + timedelta(seconds=120),
        )

        assert token_set.expires_within(300) is True
        assert token_set.expires_within(60) is False

    def test_with_refresh_token_fallback(self):
        """Fallback only fills a missing refresh token."""
        without = TokenSet(access_token="B")
        with_own = TokenSet(access_token="B", refresh_token="R2")

        assert without.with_refresh_token_fallback("R").refresh_token == "R"
        assert with_own.with_refresh_token_fallback("R") is with_own
        assert without.with_refresh_token_fallback(None) is without

    def test_dict_conversion(self, valid_token_set):
        """to_dict writes an ISO expiry and from_dict restores it."""
        data = valid_token_set.to_dict()

        assert data["access_token"] == "valid_access_token"
        assert isinstance(data["expiry"], str)
        assert TokenSet.from_dict(data) == valid_token_set

    def test_from_dict_naive_expiry_is_utc(self):
        """from_dict treats a naive timestamp as UTC."""
        token_set = TokenSet.from_dict(
            {"access_token": "A", "expiry": "2024-01-01T12:00:00"}
        )

        assert token_set.expiry == datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
