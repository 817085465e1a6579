"""Best-effort launch of the operator's default browser."""

from __future__ import annotations

import logging
import webbrowser

logger = logging.getLogger(__name__)


def open_browser(url: str) -> bool:
    """Try to open ``url``; failure is logged, never raised.

    The authorization URL is always printed as well, so the operator can
    open it manually when no browser is available.
    """
    try:
        opened = webbrowser.open(url)
    except webbrowser.Error as e:
        logger.warning(f"Could not launch browser: {e}")
        return False

    if not opened:
        logger.info("No browser available, open the authorization URL manually")
    return opened
