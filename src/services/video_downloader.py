"""Single-format stream download service using yt-dlp."""

import asyncio
import logging
import threading
from pathlib import Path
from typing import AsyncIterator, Dict, Optional

import yt_dlp

from models.job import ProgressEvent

logger = logging.getLogger(__name__)

logging.getLogger("yt_dlp").setLevel(logging.CRITICAL)
logging.getLogger("yt_dlp.downloader").setLevel(logging.CRITICAL)

_DONE = object()


def progress_percent(status: Dict) -> Optional[float]:
    """Extract a percentage from a yt-dlp progress hook dictionary.

    Args:
        status: Dictionary passed to yt-dlp ``progress_hooks``

    Returns:
        Percentage in [0, 100], or None when the total size is unknown
    """
    if status.get("status") == "finished":
        return 100.0
    downloaded = status.get("downloaded_bytes")
    total = status.get("total_bytes") or status.get("total_bytes_estimate")
    if downloaded is None or not total:
        return None
    return min(100.0, max(0.0, downloaded * 100.0 / total))


async def _wait_stopped(task: asyncio.Future) -> None:
    """Wait until a download thread has returned, even while being cancelled.

    A cancellation received while waiting is re-raised once the thread is done.
    """
    interrupted = False
    while not task.done():
        try:
            await asyncio.wait({task})
        except asyncio.CancelledError:
            interrupted = True
    if interrupted:
        raise asyncio.CancelledError()


class VideoDownloader:
    """Downloads one yt-dlp format of a video to an exact path."""

    def __init__(self, cookies_browser: Optional[str] = None, retries: int = 3):
        """Initialize the downloader.

        Args:
            cookies_browser: Browser to load cookies from, or None
            retries: yt-dlp's own per-fragment network retries
        """
        self.base_opts = {
            "quiet": True,
            "no_warnings": True,
            "noprogress": True,
            "retries": retries,
            "overwrites": True,
            "noplaylist": True,
            "writeinfojson": False,
            "writesubtitles": False,
            "writethumbnail": False,
        }
        if cookies_browser:
            self.base_opts["cookiesfrombrowser"] = (cookies_browser,)

    async def fetch(self, url: str, format_id: str, destination: Path) -> AsyncIterator[ProgressEvent]:
        """Download ``format_id`` of ``url`` to ``destination``.

        Yields progress events while the download runs and a final 100 on success.
        Closing the iterator early, or cancelling the consumer, asks the download
        thread to stop and waits until it has, so no file is written afterwards.

        Raises:
            yt_dlp.utils.DownloadError: If yt-dlp reports a failure
            FileNotFoundError: If yt-dlp finished without writing the file
        """
        loop = asyncio.get_running_loop()
        queue: asyncio.Queue = asyncio.Queue()
        cancelled = threading.Event()

        def hook(status: Dict) -> None:
            if cancelled.is_set():
                raise yt_dlp.utils.DownloadCancelled(f"Download of {url} cancelled")
            percent = progress_percent(status)
            if percent is not None:
                loop.call_soon_threadsafe(queue.put_nowait, ProgressEvent(percent))

        opts = dict(
            self.base_opts,
            format=format_id,
            outtmpl=str(destination),
            progress_hooks=[hook],
        )

        def run() -> int:
            with yt_dlp.YoutubeDL(opts) as ydl:
                return ydl.download([url])

        logger.debug(f"Fetching format {format_id} of {url} to {destination}")
        task = asyncio.ensure_future(asyncio.to_thread(run))
        task.add_done_callback(lambda _: queue.put_nowait(_DONE))

        try:
            while True:
                item = await queue.get()
                if item is _DONE:
                    break
                yield item

            retcode = task.result()
            if retcode:
                raise yt_dlp.utils.DownloadError(f"yt-dlp exited with code {retcode} for format {format_id}")
            if not destination.exists():
                raise FileNotFoundError(f"Downloaded file not found: {destination}")
            yield ProgressEvent(100.0)
        finally:
            if not task.done():
                cancelled.set()
                # Files of this download must not appear after the caller stops listening
                await _wait_stopped(task)
            if not task.cancelled():
                task.exception()
