"""Main shortstash class for orchestrating a run over all channels."""

import asyncio
import logging
from datetime import datetime
from typing import Iterable, List, Optional, Tuple

from models.channel import Channel
from models.job import BatchReport
from services.acquisition import AcquisitionOrchestrator, RichProgressReporter
from services.channel_runner import ChannelRunner
from services.discovery import Discovery
from services.file_organizer import FileOrganizer
from services.selection import chooser_for_mode
from services.transcoder import Transcoder
from services.video_downloader import VideoDownloader
from services.youtube_service import YouTubeService
from utils.config import AppConfig, normalize_channel_url
from utils.database import CursorStore

logger = logging.getLogger(__name__)


class BatchDriver:
    """Central orchestrator: reconciles tracked channels and runs each of them."""

    def __init__(self, config: AppConfig, store: CursorStore, runner: Optional[ChannelRunner] = None):
        """Initialize the driver and, unless a runner is given, its services."""
        self.config = config
        self.store = store
        self._owns_runner = runner is None
        self.runner = runner or self._build_runner()

        logger.info("shortstash initialized successfully")

    def _build_runner(self) -> ChannelRunner:
        timeout = self.config.command_timeout_seconds

        discovery = Discovery(
            YouTubeService(cookies_browser=self.config.browser_cookies),
            retries=self.config.listing_retries,
            timeout=timeout,
        )
        orchestrator = AcquisitionOrchestrator(
            fetcher=VideoDownloader(cookies_browser=self.config.browser_cookies),
            transcoder=Transcoder(self.config.video_settings, timeout=timeout),
            file_organizer=FileOrganizer(self.config.output_folder),
            preferred_language=self.config.preferred_language,
            temp_dir=self.config.temp_folder,
            timeout=timeout,
            reporter=RichProgressReporter(),
        )
        return ChannelRunner(self.config, self.store, discovery, orchestrator, chooser=self._build_chooser())

    def _build_chooser(self):
        mode = self.config.normal_video_mode or self.store.get_setting('normal_video_mode')
        return chooser_for_mode(mode)

    def reconcile(self, configured_urls: Iterable[str]) -> Tuple[List[str], List[str]]:
        """Bring the store's channel set in line with the configuration.

        New channels are created, channels no longer configured are deactivated
        (never deleted).

        Returns:
            Tuple of (created or reactivated URLs, deactivated URLs)
        """
        configured = list(dict.fromkeys(normalize_channel_url(url) for url in configured_urls))
        logger.info("Syncing configured channels with the database...")

        created = [url for url in configured if self.store.add_channel(url)]
        for url in created:
            logger.info(f"Tracking channel: {url}")

        deactivated = []
        for channel in self.store.list_channels(active_only=True):
            if channel.url not in configured and self.store.deactivate_channel(channel.url):
                logger.warning(f"Deactivating channel no longer in config: {channel.url}")
                deactivated.append(channel.url)

        return created, deactivated

    async def reconcile_and_run(self, configured_urls: Optional[Iterable[str]] = None) -> BatchReport:
        """Reconcile channels, then run every active one with failure isolation."""
        urls = self.config.channels if configured_urls is None else configured_urls
        report = BatchReport()
        if self._owns_runner:
            # The stored preference may have changed since the last scheduled run
            self.runner.chooser = self._build_chooser()
        report.created, report.deactivated = self.reconcile(urls)

        channels = self.store.list_channels(active_only=True)
        logger.info(f"Found {len(channels)} active channel(s) to check.")

        semaphore = asyncio.Semaphore(max(1, self.config.max_concurrent_channels))

        async def bounded(channel: Channel) -> None:
            async with semaphore:
                await self._run_channel(channel, report)

        await asyncio.gather(*(bounded(channel) for channel in channels))

        report.finished_at = datetime.now()
        logger.info(f"Automation run completed. {report.summary()}")
        for url, count in self.store.channel_statistics().items():
            logger.debug(f"{url}: {count} video(s) acquired in total")
        return report

    async def _run_channel(self, channel: Channel, report: BatchReport) -> None:
        try:
            report.outcomes[channel.url] = await self.runner.run(channel)
        except Exception as e:
            logger.exception(f"Channel {channel.url} failed: {e}")
            report.channel_errors[channel.url] = str(e)
