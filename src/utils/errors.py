"""Error taxonomy for discovery, acquisition and persistence failures."""

from typing import Optional


class ShortstashError(Exception):
    """Base class for all shortstash errors."""
    pass


class TransientListingFailure(ShortstashError):
    """Raised when one listing view of a channel cannot be fetched."""

    def __init__(self, channel_url: str, view: str, cause: Exception):
        self.channel_url = channel_url
        self.view = view
        self.cause = cause
        super().__init__(f"Listing '{view}' failed for {channel_url}: {cause}")


class AcquisitionError(ShortstashError):
    """Raised when a candidate cannot be downloaded or transcoded."""

    reason = "acquisition failed"

    def __init__(self, candidate_id: str, title: str, cause: Optional[Exception] = None):
        self.candidate_id = candidate_id
        self.title = title
        self.cause = cause
        message = f"{self.reason} for {candidate_id} (\"{title}\")"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class NoSuitableFormat(AcquisitionError):
    """Raised when a candidate has no usable video-only/audio-only pair."""

    reason = "no suitable video/audio formats"


class StreamFetchFailure(AcquisitionError):
    """Raised when either the video or the audio stream fails to download."""

    reason = "stream download failed"


class TranscodeFailure(AcquisitionError):
    """Raised when ffmpeg exits with an error or times out."""

    reason = "transcode failed"


class ChannelFatalFailure(ShortstashError):
    """Raised when a channel's run must be aborted."""

    def __init__(self, channel_url: str, cause: Exception):
        self.channel_url = channel_url
        self.cause = cause
        super().__init__(f"Channel {channel_url} aborted: {cause}")


class StoreUnavailable(ShortstashError):
    """Raised when the persisted state cannot be opened at all."""
    pass
