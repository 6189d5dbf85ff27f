"""
Token refresh notifications.

The API client refreshes access tokens on its own whenever they are about to
expire. TokenRefreshObserver relays each new token set to a single
caller-supplied persistence callback.
"""

import logging
from typing import Callable, Optional

from .models import TokenSet

logger = logging.getLogger(__name__)

RefreshCallback = Callable[[TokenSet], None]


class TokenRefreshObserver:
    """
    Single-subscriber hook for out-of-band token refreshes.

    The callback runs synchronously in the thread that performed the
    refresh. Exceptions raised by the callback are logged and swallowed so a
    failing persistence layer never breaks the API call that triggered the
    refresh.

    Example:
        observer = TokenRefreshObserver()
        observer.on_refresh(lambda tokens: storage.save(credentials, tokens))
        session = AuthorizedSession(credentials, tokens, observer=observer)
    """

    def __init__(self, callback: Optional[RefreshCallback] = None):
        self._callback = callback

    def on_refresh(self, callback: RefreshCallback) -> None:
        """
        Register the persistence callback.

        Only one callback is kept; registering again replaces the previous one.
        """
        if self._callback is not None:
            logger.debug("Replacing existing token refresh callback")
        self._callback = callback

    def clear(self) -> None:
        self._callback = None

    @property
    def has_callback(self) -> bool:
        return self._callback is not None

    def notify(self, token_set: TokenSet) -> None:
        """
        Deliver one refresh event to the registered callback.

        Args:
            token_set: Token set produced by the refresh
        """
        callback = self._callback
        if callback is None:
            logger.debug("Token refreshed but no callback is registered")
            return

        try:
            callback(token_set)
        except Exception as e:
            logger.error(f"Token refresh callback failed: {e}", exc_info=True)
