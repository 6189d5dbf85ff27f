"""
Token endpoint client for Google OAuth.

This module talks to the provider's token endpoint:
- Authorization code → token set (single attempt, codes are single-use)
- Refresh token → new access token (retried with exponential backoff)
"""

import logging
import time
from typing import Optional

import requests

from .config import GoogleOAuthConfig
from .exceptions import ExchangeError, TokenRefreshError
from .models import OAuthCredentials, TokenSet

logger = logging.getLogger(__name__)


def _describe_error(response: requests.Response) -> str:
    """Extract the provider's error code and description from a failed response."""
    try:
        payload = response.json()
    except ValueError:
        return response.text

    if not isinstance(payload, dict):
        return response.text

    error = payload.get("error", "")
    description = payload.get("error_description", "")
    if error and description:
        return f"{error} - {description}"
    return error or description or response.text


class TokenExchangeClient:
    """
    Client for the OAuth token endpoint.

    Credentials are sent in the form body, as Google expects for installed
    applications. The redirect URI must match the one in the consent URL.
    """

    def __init__(self, config: Optional[GoogleOAuthConfig] = None):
        """
        Initialize token exchange client.

        Args:
            config: OAuth configuration (defaults apply if not provided)
        """
        self.config = config or GoogleOAuthConfig()

    def exchange(self, code: str, credentials: OAuthCredentials) -> TokenSet:
        """
        Exchange authorization code for access and refresh tokens.

        Makes exactly one request. Authorization codes are single-use, so a
        failed exchange is never retried here.

        Args:
            code: Code received from the OAuth callback
            credentials: Client credentials the consent URL was built with

        Returns:
            TokenSet with access token (and refresh token when issued)

        Raises:
            ExchangeError: On network failure, non-2xx response, or a response
                           without an access token
        """
        logger.info("Exchanging authorization code for tokens")

        try:
            response = requests.post(
                self.config.token_url,
                headers={"Content-Type": "application/x-www-form-urlencoded"},
                data={
                    "code": code,
                    "client_id": credentials.client_id,
                    "client_secret": credentials.client_secret,
                    "redirect_uri": self.config.redirect_uri,
                    "grant_type": "authorization_code",
                },
                timeout=self.config.request_timeout,
            )
        except requests.RequestException as e:
            logger.error(f"Network error during token exchange: {e}")
            raise ExchangeError(f"Network error during token exchange: {e}", cause=e) from e

        if not 200 <= response.status_code < 300:
            error_detail = _describe_error(response)
            logger.error(f"Token exchange failed: {response.status_code} - {error_detail}")
            raise ExchangeError(
                f"Token exchange failed with status {response.status_code}: {error_detail}. "
                f"Check that your client_id, client_secret and redirect URI "
                f"({self.config.redirect_uri}) are registered correctly."
            )

        try:
            token_set = TokenSet.from_token_response(response.json())
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"Invalid response from token endpoint: {e}")
            raise ExchangeError(f"Invalid response from token endpoint: {e}", cause=e) from e

        if token_set.refresh_token is None:
            logger.warning("Token response did not include a refresh token")

        logger.info("Successfully obtained tokens")
        return token_set

    def refresh(
        self,
        refresh_token: str,
        credentials: OAuthCredentials,
        retry_count: int = 0,
        max_retries: int = 3,
    ) -> TokenSet:
        """
        Refresh access token using refresh token.

        Implements exponential backoff retry logic for transient network errors.

        Args:
            refresh_token: Stored refresh token
            credentials: Client credentials the token was issued to
            retry_count: Current retry attempt (used internally)
            max_retries: Maximum number of retry attempts

        Returns:
            New TokenSet; keeps refresh_token if the provider did not rotate it

        Raises:
            TokenRefreshError: If refresh fails after all retries
        """
        logger.info(f"Refreshing access token (attempt {retry_count + 1}/{max_retries + 1})")

        try:
            response = requests.post(
                self.config.token_url,
                headers={"Content-Type": "application/x-www-form-urlencoded"},
                data={
                    "client_id": credentials.client_id,
                    "client_secret": credentials.client_secret,
                    "refresh_token": refresh_token,
                    "grant_type": "refresh_token",
                },
                timeout=self.config.request_timeout,
            )
        except requests.RequestException as e:
            logger.warning(f"Network error during token refresh: {e}")

            # Retry on network errors
            if retry_count < max_retries:
                delay = 2 ** retry_count  # Exponential backoff
                logger.warning(f"Retrying after {delay}s due to network error")
                time.sleep(delay)
                return self.refresh(refresh_token, credentials, retry_count + 1, max_retries)

            logger.error(f"Token refresh failed after {max_retries + 1} attempts")
            raise TokenRefreshError(
                f"Network error during token refresh after {max_retries + 1} attempts: {e}"
            ) from e

        if response.status_code != 200:
            error_detail = _describe_error(response)
            logger.error(f"Token refresh failed: {response.status_code} - {error_detail}")

            # Don't retry on 400-level errors (revoked refresh token, etc.)
            if 400 <= response.status_code < 500:
                raise TokenRefreshError(
                    f"Token refresh failed with status {response.status_code}: {error_detail}. "
                    f"Your refresh token may have been revoked. "
                    f"Please run the authorization flow again."
                )

            # Retry on 500-level errors
            if retry_count < max_retries:
                delay = 2 ** retry_count  # Exponential backoff: 1s, 2s, 4s
                logger.warning(f"Retrying after {delay}s due to server error")
                time.sleep(delay)
                return self.refresh(refresh_token, credentials, retry_count + 1, max_retries)

            raise TokenRefreshError(f"Token refresh failed after {max_retries + 1} attempts")

        try:
            token_set = TokenSet.from_token_response(
                response.json(), previous_refresh_token=refresh_token
            )
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"Invalid response from token endpoint: {e}")
            raise TokenRefreshError(f"Invalid response from token endpoint: {e}") from e

        logger.info("Successfully refreshed tokens")
        return token_set
