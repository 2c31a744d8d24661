"""Channel listing service using yt-dlp."""

import logging
from typing import Dict, Optional

import yt_dlp

logger = logging.getLogger(__name__)

# Configure yt-dlp logging to be silent
logging.getLogger("yt_dlp").setLevel(logging.CRITICAL)
logging.getLogger("yt_dlp.extractor").setLevel(logging.CRITICAL)


def channel_tab_url(channel_url: str, view: str) -> str:
    """Build the URL of one listing tab, e.g. ``https://.../@name/shorts``."""
    return f"{channel_url.rstrip('/')}/{view}"


class YouTubeService:
    """Lists the newest entries of a channel tab with full metadata."""

    def __init__(self, cookies_browser: Optional[str] = None, socket_timeout: int = 30):
        """Initialize the listing service.

        Args:
            cookies_browser: Browser to load cookies from (e.g. 'opera'), or None
            socket_timeout: Network timeout passed to yt-dlp, in seconds
        """
        self.ydl_opts = {
            "quiet": True,
            "no_warnings": True,
            "extract_flat": False,
            # Unavailable members come back as None entries instead of failing the tab
            "ignoreerrors": True,
            "socket_timeout": socket_timeout,
        }
        if cookies_browser:
            self.ydl_opts["cookiesfrombrowser"] = (cookies_browser,)

    def list_view(self, tab_url: str, max_items: int) -> Dict:
        """Extract metadata for the newest ``max_items`` entries of a tab.

        Args:
            tab_url: Channel tab URL
            max_items: Number of entries to inspect, newest first

        Returns:
            yt-dlp info document with an ``entries`` list (possibly empty)

        Raises:
            yt_dlp.utils.DownloadError: If the tab itself cannot be extracted
        """
        logger.debug(f"Listing {max_items} newest entries of {tab_url}")

        opts = dict(self.ydl_opts, playlistend=max_items)
        with yt_dlp.YoutubeDL(opts) as ydl:
            info = ydl.extract_info(tab_url, download=False)
            if not info:
                # ignoreerrors swallows tab-level failures too
                raise yt_dlp.utils.DownloadError(f"No data returned for {tab_url}")
            result = ydl.sanitize_info(info)

        entries = result.get("entries") or []
        logger.debug(f"Listed {len(entries)} entries from {tab_url}")
        return result
