"""Run outcome models for shortstash."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from models.channel import AcquisitionRecord
from models.video import VideoCandidate
from utils.errors import AcquisitionError


class ChannelStatus(Enum):
    """Status enumeration for a channel's run."""
    UP_TO_DATE = "up_to_date"
    COMPLETED = "completed"
    PARTIAL = "partial"
    FAILED = "failed"


@dataclass(frozen=True)
class ProgressEvent:
    """Download progress of one stream, as a percentage in [0, 100]."""

    percent: float

    def __post_init__(self):
        object.__setattr__(self, 'percent', min(100.0, max(0.0, float(self.percent))))


@dataclass
class DiscoveryResult:
    """Candidates per listing view, in view-priority order."""

    views: List[str] = field(default_factory=list)
    view_results: List[List[VideoCandidate]] = field(default_factory=list)
    failed_views: List[str] = field(default_factory=list)


@dataclass
class MergeResult:
    """New candidates of one channel, split by classification."""

    shorts: List[VideoCandidate] = field(default_factory=list)
    normals: List[VideoCandidate] = field(default_factory=list)
    newest_id: Optional[str] = None
    newest_upload_date: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return self.newest_id is None


@dataclass
class AcquisitionResult:
    """Either a record (success) or an error (failure) for one candidate."""

    candidate: VideoCandidate
    record: Optional[AcquisitionRecord] = None
    error: Optional[AcquisitionError] = None

    @property
    def ok(self) -> bool:
        return self.record is not None


@dataclass
class ChannelOutcome:
    """Everything that happened to one channel during a run."""

    channel_url: str
    acquired: List[AcquisitionRecord] = field(default_factory=list)
    failed: List[AcquisitionError] = field(default_factory=list)
    new_cursor: Optional[str] = None
    already_acquired: List[str] = field(default_factory=list)
    skipped_normals: int = 0
    failed_views: List[str] = field(default_factory=list)
    selection_error: Optional[str] = None

    @property
    def cursor_held(self) -> bool:
        """Whether the cursor was kept because part of the channel went unseen."""
        return bool(self.failed_views or self.selection_error)

    @property
    def status(self) -> ChannelStatus:
        if not self.acquired and not self.failed:
            return ChannelStatus.UP_TO_DATE
        if self.failed and not self.acquired:
            return ChannelStatus.FAILED
        if self.failed:
            return ChannelStatus.PARTIAL
        return ChannelStatus.COMPLETED


@dataclass
class BatchReport:
    """Results of one reconcile-and-run pass over all channels."""

    started_at: datetime = field(default_factory=datetime.now)
    finished_at: Optional[datetime] = None
    created: List[str] = field(default_factory=list)
    deactivated: List[str] = field(default_factory=list)
    outcomes: Dict[str, ChannelOutcome] = field(default_factory=dict)
    channel_errors: Dict[str, str] = field(default_factory=dict)

    @property
    def total_acquired(self) -> int:
        return sum(len(outcome.acquired) for outcome in self.outcomes.values())

    @property
    def total_failed(self) -> int:
        return sum(len(outcome.failed) for outcome in self.outcomes.values())

    def channel_status(self, url: str) -> ChannelStatus:
        if url in self.channel_errors:
            return ChannelStatus.FAILED
        return self.outcomes[url].status

    def summary(self) -> str:
        channels = len(self.outcomes) + len(self.channel_errors)
        held = sum(1 for outcome in self.outcomes.values() if outcome.cursor_held)
        return (
            f"Checked {channels} channel(s): "
            f"{self.total_acquired} acquired, {self.total_failed} failed, "
            f"{len(self.channel_errors)} channel error(s), {held} cursor(s) held, "
            f"{len(self.created)} added, {len(self.deactivated)} deactivated"
        )
