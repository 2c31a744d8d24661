"""Discovery-to-cursor pipeline for one channel."""

import asyncio
import logging
import sqlite3
from typing import List, Optional

from models.channel import Channel
from models.job import AcquisitionResult, ChannelOutcome
from models.video import VideoCandidate
from services.acquisition import AcquisitionOrchestrator
from services.discovery import Discovery
from services.merger import merge
from services.selection import SkipAllChooser
from utils.config import AppConfig
from utils.database import CursorStore
from utils.errors import ChannelFatalFailure
from utils.formats import TranscodeProfile, get_profile

logger = logging.getLogger(__name__)


class ChannelRunner:
    """Finds a channel's new videos, acquires them and advances its cursor."""

    def __init__(
        self,
        config: AppConfig,
        store: CursorStore,
        discovery: Discovery,
        orchestrator: AcquisitionOrchestrator,
        chooser=None,
    ):
        """Initialize the runner.

        Args:
            config: Immutable run configuration
            store: Cursor and acquisition persistence
            discovery: Candidate discovery service
            orchestrator: Per-candidate acquisition pipeline
            chooser: Picks which normal videos to acquire; None skips them all
        """
        self.config = config
        self.store = store
        self.discovery = discovery
        self.orchestrator = orchestrator
        self.chooser = chooser or SkipAllChooser()
        self.profile: TranscodeProfile = get_profile(config.target_format)

    async def run(self, channel: Channel) -> ChannelOutcome:
        """Process one channel.

        Per-item failures are recorded in the outcome. The cursor is left
        alone when a listing view failed or the chooser broke down, so items
        nobody looked at stay ahead of it. Store failures abort the channel
        with ChannelFatalFailure.
        """
        logger.info(f"--- Starting check for channel: {channel.url} ---")
        outcome = ChannelOutcome(channel_url=channel.url)

        discovered = await self.discovery.discover_views(
            channel.url, self.config.listing_views, self.config.videos_to_inspect
        )
        outcome.failed_views = list(discovered.failed_views)
        merged = merge(discovered.view_results, self.config.download_after_date, channel.cursor)

        if merged.is_empty:
            logger.info(f"No new videos for {channel.url}")
            return outcome

        logger.info(
            f"Found {len(merged.shorts)} new short(s) and {len(merged.normals)} "
            f"new normal video(s) for {channel.url}"
        )

        try:
            shorts = self._drop_acquired(merged.shorts, outcome)
            normals = self._drop_acquired(merged.normals, outcome)
        except sqlite3.Error as e:
            raise ChannelFatalFailure(channel.url, e) from e

        selected_normals = await self._choose(normals, outcome)
        outcome.skipped_normals = len(normals) - len(selected_normals)

        to_acquire = shorts + selected_normals
        if to_acquire:
            logger.info(f"Starting download for {len(to_acquire)} new video(s)...")
            await self._acquire_all(channel, to_acquire, outcome)

        if outcome.cursor_held:
            reason = (
                f"view(s) {', '.join(outcome.failed_views)} could not be listed"
                if outcome.failed_views else f"selection failed ({outcome.selection_error})"
            )
            logger.warning(f"Keeping cursor of {channel.url} at {channel.cursor}: {reason}")
        else:
            self._advance_cursor(channel, merged.newest_id, merged.newest_upload_date, outcome)
        logger.info(
            f"Finished {channel.url}: {len(outcome.acquired)} acquired, {len(outcome.failed)} failed"
        )
        return outcome

    async def _choose(self, normals: List[VideoCandidate], outcome: ChannelOutcome) -> List[VideoCandidate]:
        """Ask the chooser for normals; a broken chooser selects nothing."""
        if not normals:
            return []
        try:
            return await self.chooser.choose(normals)
        except Exception as e:
            logger.error(f"Selecting normal videos failed for {outcome.channel_url}: {e!r}; skipping them this run")
            outcome.selection_error = repr(e)
            return []

    def _drop_acquired(self, candidates: List[VideoCandidate], outcome: ChannelOutcome) -> List[VideoCandidate]:
        """Remove candidates that already have an acquisition record."""
        if not candidates:
            return []
        known = self.store.acquired_ids(c.id for c in candidates)
        if known:
            logger.info(f"Skipping {len(known)} already acquired video(s)")
            outcome.already_acquired.extend(c.id for c in candidates if c.id in known)
        return [c for c in candidates if c.id not in known]

    async def _acquire_all(self, channel: Channel, candidates: List[VideoCandidate], outcome: ChannelOutcome) -> None:
        semaphore = asyncio.Semaphore(max(1, self.config.max_concurrent_downloads))

        async def bounded(candidate: VideoCandidate) -> AcquisitionResult:
            async with semaphore:
                result = await self.orchestrator.acquire(candidate, self.profile)
            if result.ok:
                try:
                    self.store.record_acquisition(result.record)
                except sqlite3.Error as e:
                    raise ChannelFatalFailure(channel.url, e) from e
            return result

        # Results come back in submission order, so outcome lists stay newest first
        results = await asyncio.gather(*(bounded(c) for c in candidates), return_exceptions=True)
        fatal: Optional[BaseException] = None
        for result in results:
            if isinstance(result, BaseException):
                fatal = fatal or result
            elif result.ok:
                outcome.acquired.append(result.record)
            else:
                outcome.failed.append(result.error)
        if fatal is not None:
            raise fatal

    def _advance_cursor(
        self,
        channel: Channel,
        newest_id: Optional[str],
        newest_upload_date: Optional[str],
        outcome: ChannelOutcome,
    ) -> None:
        """Move the cursor to the newest considered candidate, never backwards."""
        if newest_id is None:
            return
        if channel.cursor_date and newest_upload_date and newest_upload_date < channel.cursor_date:
            logger.warning(
                f"Not moving cursor of {channel.url} back from {channel.cursor} "
                f"({channel.cursor_date}) to {newest_id} ({newest_upload_date})"
            )
            return

        try:
            self.store.set_cursor(channel.url, newest_id, newest_upload_date)
        except (sqlite3.Error, KeyError) as e:
            raise ChannelFatalFailure(channel.url, e) from e

        outcome.new_cursor = newest_id
        logger.info(f"Cursor updated for {channel.url}. New latest video ID: {newest_id}")
