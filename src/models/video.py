"""Video-related data models."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

SHORT_MAX_DURATION_SECONDS = 181  # exclusive bound


@dataclass(frozen=True)
class FormatDescriptor:
    """One downloadable stream variant of a video as reported by yt-dlp."""

    format_id: str
    has_video: bool
    has_audio: bool
    container: str
    width: Optional[int] = None
    height: Optional[int] = None
    language_tag: Optional[str] = None

    @property
    def is_video_only(self) -> bool:
        return self.has_video and not self.has_audio

    @property
    def is_audio_only(self) -> bool:
        return self.has_audio and not self.has_video

    @property
    def is_portrait(self) -> bool:
        return bool(self.width and self.height and self.width < self.height)

    @classmethod
    def from_dict(cls, data: Dict) -> 'FormatDescriptor':
        """Build a descriptor from a yt-dlp ``formats[]`` entry."""
        return cls(
            format_id=str(data.get('format_id', '')),
            has_video=data.get('vcodec') != 'none',
            has_audio=data.get('acodec') != 'none',
            container=data.get('ext') or '',
            width=data.get('width'),
            height=data.get('height'),
            language_tag=data.get('language'),
        )


@dataclass(frozen=True)
class VideoCandidate:
    """A video discovered during a listing pass."""

    id: str
    title: str
    upload_date: str  # YYYYMMDD, compares lexicographically
    duration_seconds: Optional[int]
    width: Optional[int]
    height: Optional[int]
    source_formats: List[FormatDescriptor] = field(default_factory=list)
    origin_channel_label: str = 'Unknown_Channel'
    webpage_url: str = ''
    channel_url: str = ''
    source_view: str = ''
    timestamp: Optional[int] = None  # upload time, epoch seconds

    @property
    def is_short(self) -> bool:
        return is_short(self)

    @classmethod
    def from_entry(cls, entry: Dict, channel_url: str = '', view: str = '') -> Optional['VideoCandidate']:
        """Normalize a yt-dlp playlist entry.

        Args:
            entry: Entry dictionary from a channel listing
            channel_url: Tracked channel the entry was listed under
            view: Listing view that produced the entry

        Returns:
            VideoCandidate, or None when the entry has no id or upload date
        """
        if not entry:
            return None
        video_id = entry.get('id')
        upload_date = entry.get('upload_date')
        if not video_id or not upload_date:
            return None

        formats = [
            FormatDescriptor.from_dict(fmt)
            for fmt in entry.get('formats') or []
            if fmt and fmt.get('format_id')
        ]
        duration = entry.get('duration')
        timestamp = entry.get('timestamp')

        return cls(
            id=str(video_id),
            title=entry.get('title') or str(video_id),
            upload_date=str(upload_date),
            duration_seconds=int(duration) if duration is not None else None,
            width=entry.get('width'),
            height=entry.get('height'),
            source_formats=formats,
            origin_channel_label=entry.get('channel') or entry.get('uploader') or 'Unknown_Channel',
            webpage_url=entry.get('webpage_url') or f"https://www.youtube.com/watch?v={video_id}",
            channel_url=channel_url,
            source_view=view,
            timestamp=int(timestamp) if timestamp is not None else None,
        )


def is_short(candidate: VideoCandidate) -> bool:
    """A short is under 181 seconds and taller than it is wide.

    Candidates with an unknown duration or shape are never shorts.
    """
    if candidate.duration_seconds is None or candidate.width is None or candidate.height is None:
        return False
    return candidate.duration_seconds < SHORT_MAX_DURATION_SECONDS and candidate.width < candidate.height
