"""Candidate discovery across the listing views of a channel."""

import asyncio
import logging
from typing import Iterable, List, Optional, Protocol

from models.job import DiscoveryResult
from models.video import VideoCandidate
from services.youtube_service import channel_tab_url
from utils.errors import TransientListingFailure
from utils.retry import retry_async, with_timeout

logger = logging.getLogger(__name__)

# Earlier views win when the same id is listed twice
VIEW_PRIORITY = ("shorts", "videos")


class Lister(Protocol):
    def list_view(self, tab_url: str, max_items: int) -> dict: ...


def order_views(views: Iterable[str]) -> List[str]:
    """Order the requested views by the fixed dedup priority."""
    requested = {view.lower() for view in views}
    ordered = [view for view in VIEW_PRIORITY if view in requested]
    # Unknown views go last, alphabetically, so the order stays deterministic
    ordered.extend(sorted(requested - set(VIEW_PRIORITY)))
    return ordered


class Discovery:
    """Fetches and normalizes candidates from each listing view in parallel."""

    def __init__(
        self,
        lister: Lister,
        retries: int = 1,
        timeout: Optional[float] = None,
        retry_base_delay: float = 2.0,
    ):
        self.lister = lister
        self.retries = retries
        self.timeout = timeout
        self.retry_base_delay = retry_base_delay

    async def discover_views(
        self, channel_url: str, listing_views: Iterable[str], max_items: int
    ) -> DiscoveryResult:
        """Discover candidates per view, in view-priority order.

        A view whose listing fails contributes an empty list and is named in
        ``failed_views``.
        """
        views = order_views(listing_views)
        results = await asyncio.gather(
            *(self._discover_view(channel_url, view, max_items) for view in views)
        )

        discovered = DiscoveryResult(views=views)
        for view, candidates in zip(views, results):
            if candidates is None:
                discovered.failed_views.append(view)
                candidates = []
            discovered.view_results.append(candidates)

        total = sum(len(result) for result in discovered.view_results)
        logger.info(f"Discovered {total} candidate(s) across {len(views)} view(s) of {channel_url}")
        return discovered

    async def discover(
        self, channel_url: str, listing_views: Iterable[str], max_items: int
    ) -> List[VideoCandidate]:
        """Discover candidates from all views, concatenated in view-priority order."""
        discovered = await self.discover_views(channel_url, listing_views, max_items)
        return [candidate for view_result in discovered.view_results for candidate in view_result]

    async def _discover_view(
        self, channel_url: str, view: str, max_items: int
    ) -> Optional[List[VideoCandidate]]:
        try:
            document = await self._list(channel_url, view, max_items)
        except TransientListingFailure as e:
            logger.warning(f"{e}; treating the view as empty")
            return None

        candidates = []
        discarded = 0
        for entry in (document or {}).get("entries") or []:
            candidate = VideoCandidate.from_entry(entry, channel_url=channel_url, view=view)
            if candidate is None:
                discarded += 1
                continue
            candidates.append(candidate)

        if discarded:
            logger.debug(f"Discarded {discarded} entries without id or upload date from {view} of {channel_url}")
        logger.info(f"Fetched {len(candidates)} candidate(s) from the {view} view of {channel_url}")
        return candidates

    async def _list(self, channel_url: str, view: str, max_items: int) -> dict:
        tab_url = channel_tab_url(channel_url, view)

        async def attempt() -> dict:
            return await with_timeout(
                asyncio.to_thread(self.lister.list_view, tab_url, max_items),
                self.timeout,
                f"listing {tab_url}",
            )

        try:
            return await retry_async(
                attempt,
                max_retries=self.retries,
                base_delay=self.retry_base_delay,
                label=f"listing {tab_url}",
            )
        except Exception as e:
            raise TransientListingFailure(channel_url, view, e) from e
