"""System browser launcher."""

import webbrowser

from checkclaw.utils.logging_config import get_logger

logger = get_logger(__name__)


def open_url(url: str) -> bool:
    """Open url in the user's default browser.

    Returns:
        True if a browser was launched, False if none could be.
    """
    try:
        opened = webbrowser.open(url, new=1)
    except (webbrowser.Error, OSError) as e:
        logger.warning(f"Browser launch failed: {e}")
        return False
    if not opened:
        logger.warning("No runnable browser found")
    return bool(opened)


def no_browser(url: str) -> bool:
    """Opener used with --no-browser; never launches anything."""
    return False
