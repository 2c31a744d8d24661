"""Selection of which normal (non-short) videos to acquire."""

import asyncio
import logging
import sys
from typing import List, Optional

from rich.console import Console
from rich.prompt import Confirm

from models.video import VideoCandidate

logger = logging.getLogger(__name__)

# Older databases store 'prompt' for the interactive mode
MODE_ALIASES = {"prompt": "ask"}


class SkipAllChooser:
    """Never acquires normal videos."""

    async def choose(self, candidates: List[VideoCandidate]) -> List[VideoCandidate]:
        if candidates:
            logger.info(f"Skipping {len(candidates)} normal video(s)")
        return []


class ConsoleChooser:
    """Asks the operator about each normal video."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()
        # Channels may run concurrently; questions must not interleave
        self._lock = asyncio.Lock()

    async def choose(self, candidates: List[VideoCandidate]) -> List[VideoCandidate]:
        selected = []
        async with self._lock:
            for candidate in candidates:
                question = (
                    f"Download normal video \"{candidate.title}\" "
                    f"({candidate.upload_date}, {candidate.duration_seconds or '?'}s)?"
                )
                if await asyncio.to_thread(Confirm.ask, question, console=self.console, default=False):
                    selected.append(candidate)
        logger.info(f"Selected {len(selected)} of {len(candidates)} normal video(s)")
        return selected


def normalize_mode(mode: Optional[str]) -> str:
    mode = (mode or "ask").strip().lower()
    return MODE_ALIASES.get(mode, mode)


def chooser_for_mode(mode: Optional[str], interactive: Optional[bool] = None):
    """Build the chooser for an ``ask``/``skip`` preference.

    ``ask`` without an interactive terminal falls back to ``skip``.
    """
    mode = normalize_mode(mode)
    if interactive is None:
        interactive = sys.stdin is not None and sys.stdin.isatty()

    if mode == "ask":
        if interactive:
            return ConsoleChooser()
        logger.warning("Normal video mode is 'ask' but stdin is not interactive; skipping normal videos")
        return SkipAllChooser()
    if mode != "skip":
        logger.warning(f"Unknown normal video mode '{mode}'; skipping normal videos")
    return SkipAllChooser()
