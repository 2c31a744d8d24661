"""Channel and acquisition records persisted by the cursor store."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass
class Channel:
    """A tracked channel and its de-duplication watermark."""

    url: str
    cursor: Optional[str] = None
    active: bool = True
    cursor_date: Optional[str] = None
    id: Optional[int] = None

    @classmethod
    def from_row(cls, row: dict) -> 'Channel':
        """Create a channel from a ``channels`` table row."""
        return cls(
            url=row['url'],
            cursor=row.get('last_video_id'),
            active=bool(row.get('is_active', 1)),
            cursor_date=row.get('last_upload_date'),
            id=row.get('id'),
        )


@dataclass
class AcquisitionRecord:
    """Proof that a candidate was fully downloaded and transcoded."""

    id: str
    title: str
    channel_url: str
    upload_date: str
    acquired_at: datetime
    output_path: Optional[str] = None

    def to_dict(self) -> dict:
        """Convert record to dictionary for database storage."""
        return {
            'id': self.id,
            'title': self.title,
            'channel_url': self.channel_url,
            'upload_date': self.upload_date,
            'downloaded_at': self.acquired_at.isoformat(),
            'output_path': self.output_path,
        }
