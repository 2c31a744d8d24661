"""File organization service for output artifacts."""

import logging
import re
from pathlib import Path

from models.video import VideoCandidate
from utils.formats import TranscodeProfile

logger = logging.getLogger(__name__)


def sanitize_title(title: str) -> str:
    """Replace every non-alphanumeric character with an underscore."""
    sanitized = re.sub(r"[^a-zA-Z0-9]", "_", title or "")
    return sanitized or "unnamed"


class FileOrganizer:
    """Places transcoded files in one directory per channel."""

    def __init__(self, base_output_dir: str):
        """Initialize file organizer with base output directory.

        Args:
            base_output_dir: Base directory under which channel directories are created
        """
        self.base_output_dir = Path(base_output_dir)
        self.base_output_dir.mkdir(parents=True, exist_ok=True)

        logger.info(f"Initialized file organizer with base dir: {self.base_output_dir}")

    def channel_directory(self, channel_label: str) -> Path:
        """Return the channel's output directory, creating it if absent."""
        channel_dir = self.base_output_dir / self._sanitize_folder_name(channel_label)
        channel_dir.mkdir(parents=True, exist_ok=True)
        return channel_dir

    def output_path(self, candidate: VideoCandidate, profile: TranscodeProfile) -> Path:
        """Return ``<channelDirectory>/<sanitizedTitle>.<extension>`` for a candidate."""
        channel_dir = self.channel_directory(candidate.origin_channel_label)
        return channel_dir / f"{sanitize_title(candidate.title)}.{profile.extension}"

    def _sanitize_folder_name(self, channel_label: str) -> str:
        """Turn a channel label into a portable directory name."""
        name = re.sub(r'[<>:"/\\|?*\s]+', "_", channel_label or "").strip("._")
        return name[:80] or "Unknown_Channel"
