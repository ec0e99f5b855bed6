"""Open dashboards in the default web browser."""

import webbrowser

from mesh_dashboard.exceptions import BrowserLaunchError
from mesh_dashboard.logging_config import get_logger

logger = get_logger(__name__)


def open_url(url: str) -> None:
    """Open a URL in a new browser tab.

    Raises:
        BrowserLaunchError: If no browser could be launched
    """
    logger.debug(f"Opening {url} in the default browser")
    try:
        opened = webbrowser.open(url, new=2)
    except webbrowser.Error as e:
        raise BrowserLaunchError(f"Failed to open {url} in the default browser: {e}")

    if not opened:
        raise BrowserLaunchError(
            f"Failed to open {url} in the default browser",
            "No runnable browser was found; use --show print-only and open the URL manually",
        )
