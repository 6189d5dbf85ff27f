"""
Token storage for callers of the OAuth flow.

The flow itself never writes tokens anywhere; it hands token sets to its
caller. This module is the file-based store the CLI uses, holding the client
credentials together with the latest tokens in plaintext JSON.
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from .exceptions import ConfigurationError, TokenStorageError
from .models import OAuthCredentials, TokenSet

logger = logging.getLogger(__name__)


@dataclass
class StoredAuthorization:
    """
    Persisted authorization state.

    Attributes:
        credentials: Client credentials the tokens were issued to
        token_set: Latest token set
    """

    credentials: OAuthCredentials
    token_set: TokenSet

    def to_dict(self) -> dict:
        return {
            "client_id": self.credentials.client_id,
            "client_secret": self.credentials.client_secret,
            **self.token_set.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "StoredAuthorization":
        data = dict(data)
        credentials = OAuthCredentials(
            client_id=data.pop("client_id"), client_secret=data.pop("client_secret")
        )
        return cls(credentials=credentials, token_set=TokenSet.from_dict(data))


class TokenStorage:
    """
    File-based token storage (plaintext JSON, chmod 600).
    """

    def __init__(self, token_file: str):
        """
        Initialize token storage.

        Args:
            token_file: Path to token storage file
                       (e.g., ~/.config/gcal-oauth/tokens.json, already expanded)
        """
        self.token_file = Path(token_file)

    def _ensure_directory(self) -> None:
        """Create parent directory if needed."""
        self.token_file.parent.mkdir(parents=True, exist_ok=True)

    def _set_secure_permissions(self) -> None:
        """Set file permissions to user-only read/write (600)."""
        try:
            self.token_file.chmod(0o600)
            logger.debug(f"Set secure permissions (600) on {self.token_file}")
        except (OSError, PermissionError) as e:
            logger.warning(f"Could not set secure permissions: {e}")

    def save(self, credentials: OAuthCredentials, token_set: TokenSet) -> None:
        """
        Save credentials and tokens to file.

        Raises:
            TokenStorageError: If save operation fails
        """
        record = StoredAuthorization(credentials=credentials, token_set=token_set)
        try:
            self._ensure_directory()
            with open(self.token_file, "w") as f:
                json.dump(record.to_dict(), f, indent=2)

            # Set secure permissions after writing
            self._set_secure_permissions()

            logger.info(f"Tokens saved to {self.token_file}")
        except OSError as e:
            logger.error(f"Failed to save tokens: {e}")
            raise TokenStorageError(f"Failed to save tokens: {e}") from e

    def load(self) -> Optional[StoredAuthorization]:
        """
        Load credentials and tokens from file.

        Returns:
            StoredAuthorization if file exists and is valid, None otherwise

        Notes:
            - Returns None if file doesn't exist (normal on first run)
            - Returns None if file is corrupted (logs warning)
        """
        if not self.token_file.exists():
            logger.debug(f"No token file found at {self.token_file}")
            return None

        try:
            with open(self.token_file, "r") as f:
                data = json.load(f)

            record = StoredAuthorization.from_dict(data)
            logger.debug(f"Tokens loaded from {self.token_file}")
            return record

        except (json.JSONDecodeError, KeyError, TypeError, ValueError, ConfigurationError) as e:
            logger.warning(
                f"Invalid token file at {self.token_file}, "
                f"will need re-authorization: {e}"
            )
            return None
        except OSError as e:
            logger.warning(f"Could not read token file: {e}")
            return None

    def delete(self) -> bool:
        """
        Delete token file.

        Returns:
            True if file was deleted, False if file didn't exist
        """
        if self.token_file.exists():
            try:
                self.token_file.unlink()
                logger.info(f"Token file deleted: {self.token_file}")
                return True
            except OSError as e:
                logger.error(f"Failed to delete token file: {e}")
                raise TokenStorageError(f"Failed to delete token file: {e}") from e

        logger.debug(f"Token file does not exist: {self.token_file}")
        return False

    def exists(self) -> bool:
        return self.token_file.exists()

    def refresh_callback(self, credentials: OAuthCredentials) -> Callable[[TokenSet], None]:
        """
        Build a callback for TokenRefreshObserver.on_refresh.

        Args:
            credentials: Client credentials to store alongside refreshed tokens

        Returns:
            Callable that saves each refreshed token set
        """

        def persist(token_set: TokenSet) -> None:
            self.save(credentials, token_set)

        return persist
