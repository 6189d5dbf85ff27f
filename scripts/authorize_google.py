#!/usr/bin/env python3
"""
Google Calendar OAuth Authorization Script

This script runs the OAuth authorization flow with Google on the local
machine. It:
- Binds http://localhost:8080/callback (or GCAL_OAUTH_CALLBACK_PORT)
- Opens the Google consent screen in your browser
- Exchanges the returned code for access and refresh tokens

After successful authorization, tokens are saved to:
    ~/.config/gcal-oauth/tokens.json (or GCAL_OAUTH_TOKEN_FILE)

Usage:
    python scripts/authorize_google.py
    python scripts/authorize_google.py --status
    python scripts/authorize_google.py --revoke

Prerequisites:
    - Environment variables must be set:
        export GOOGLE_CLIENT_ID="your_client_id"
        export GOOGLE_CLIENT_SECRET="your_client_secret"
    - http://localhost:8080/callback registered as a redirect URI
"""

import argparse
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.gcal_oauth.config import GoogleOAuthConfig
from src.gcal_oauth.coordinator import AuthorizationCoordinator
from src.gcal_oauth.exceptions import (
    AuthorizationDenied,
    ConfigurationError,
    ExchangeError,
    FlowTimedOut,
    GoogleOAuthError,
    PortUnavailable,
    TokenStorageError,
)
from src.gcal_oauth.models import OAuthCredentials
from src.gcal_oauth.token_storage import TokenStorage

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def show_status(config: GoogleOAuthConfig) -> int:
    """
    Report what is stored in the token file.

    Returns:
        Exit code (0 if authorized, 1 otherwise)
    """
    record = TokenStorage(config.token_file).load()
    if record is None:
        logger.info(f"Not authorized (no tokens at {config.token_file})")
        return 1

    token = record.token_set
    logger.info(f"Authorized for client {record.credentials.client_id}")
    logger.info(f"   Refresh token stored: {'yes' if token.refresh_token else 'no'}")
    if token.expiry is not None:
        expires_in = int((token.expiry - datetime.now(timezone.utc)).total_seconds())
        if expires_in <= 0:
            logger.info("   Access token expired (will be refreshed on next use)")
        else:
            logger.info(f"   Access token expires in {expires_in} seconds")
    return 0


def authorize(
    config: GoogleOAuthConfig, open_browser: bool = True, timeout: Optional[float] = None
) -> int:
    """
    Run the authorization flow.

    Args:
        config: OAuth configuration
        open_browser: Whether to automatically open browser
        timeout: Seconds to wait for the browser redirect

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    try:
        credentials = OAuthCredentials.from_env()
    except ConfigurationError as e:
        logger.error(f"❌ Configuration error: {e}")
        return 1

    coordinator = AuthorizationCoordinator(
        config,
        browser_opener=None if open_browser else (lambda url: None),
    )
    storage = TokenStorage(config.token_file)

    logger.info("Starting OAuth authorization flow...")
    try:
        tokens = coordinator.authorize(credentials, timeout=timeout)
    except PortUnavailable as e:
        logger.error(f"❌ {e}")
        logger.error(f"   Stop whatever is using port {config.callback_port} and try again")
        return 1
    except AuthorizationDenied as e:
        logger.error(f"❌ Authorization denied: {e.reason}")
        return 1
    except FlowTimedOut as e:
        logger.error(f"❌ {e}")
        return 1
    except ExchangeError as e:
        logger.error(f"❌ Token exchange failed: {e}")
        return 1
    except GoogleOAuthError as e:
        logger.error(f"❌ Authorization failed: {e}")
        return 1
    except KeyboardInterrupt:
        coordinator.cancel()
        logger.error("❌ Authorization cancelled")
        return 1

    try:
        storage.save(credentials, tokens)
    except TokenStorageError as e:
        logger.error(f"❌ Authorization succeeded but tokens could not be saved: {e}")
        return 1

    logger.info("✅ Authorization successful!")
    logger.info(f"   Tokens saved to: {config.token_file}")
    if tokens.refresh_token is None:
        logger.warning("⚠️  No refresh token was issued; you will need to re-authorize")
        logger.warning("   when the access token expires.")
    return 0


def revoke(config: GoogleOAuthConfig) -> int:
    """
    Delete locally stored tokens.

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    try:
        if TokenStorage(config.token_file).delete():
            logger.info("✅ Authorization revoked")
            logger.info(f"   Token file deleted: {config.token_file}")
        else:
            logger.info("No authorization found to revoke")
        return 0
    except GoogleOAuthError as e:
        logger.error(f"❌ Error revoking authorization: {e}")
        return 1


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Google Calendar OAuth Authorization",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Prerequisites:
  export GOOGLE_CLIENT_ID='your_client_id'
  export GOOGLE_CLIENT_SECRET='your_client_secret'

Examples:
  # Run authorization flow
  python scripts/authorize_google.py

  # Give up if the browser step is not completed within 2 minutes
  python scripts/authorize_google.py --timeout 120

  # Delete stored tokens
  python scripts/authorize_google.py --revoke
        """,
    )
    parser.add_argument(
        "--revoke",
        action="store_true",
        help="Delete stored tokens",
    )
    parser.add_argument(
        "--status",
        action="store_true",
        help="Show whether tokens are stored and when they expire",
    )
    parser.add_argument(
        "--no-browser",
        action="store_true",
        help="Don't automatically open browser (display URL only)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Seconds to wait for the browser redirect (default: no limit)",
    )

    args = parser.parse_args()

    try:
        config = GoogleOAuthConfig.from_env()
    except ConfigurationError as e:
        logger.error(f"❌ Configuration error: {e}")
        return 1

    if args.revoke:
        return revoke(config)

    if args.status:
        return show_status(config)

    return authorize(config, open_browser=not args.no_browser, timeout=args.timeout)


if __name__ == "__main__":
    sys.exit(main())
