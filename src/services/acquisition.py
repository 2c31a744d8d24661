"""Download-then-transcode pipeline for a single candidate."""

import asyncio
import logging
import tempfile
from datetime import datetime
from pathlib import Path
from typing import AsyncIterator, Optional, Protocol, Tuple

from rich.console import Console
from rich.progress import BarColumn, Progress, TaskID, TextColumn

from models.channel import AcquisitionRecord
from models.job import AcquisitionResult, ProgressEvent
from models.video import FormatDescriptor, VideoCandidate
from services.file_organizer import FileOrganizer
from utils.errors import AcquisitionError, NoSuitableFormat, StreamFetchFailure, TranscodeFailure
from utils.formats import TranscodeProfile
from utils.retry import with_timeout

logger = logging.getLogger(__name__)


class Fetcher(Protocol):
    """Streams one format to a file.

    Once the iterator is closed or its consumer cancelled, nothing may be
    written to ``destination``'s directory any more.
    """

    def fetch(self, url: str, format_id: str, destination: Path) -> AsyncIterator[ProgressEvent]: ...


class Transcoder(Protocol):
    async def transcode(
        self, video_path: Path, audio_path: Path, profile: TranscodeProfile, output_path: Path
    ) -> Path: ...


def _pick(formats, *preferences):
    """Return the first format matching the earliest satisfiable preference."""
    for preference in preferences:
        for fmt in formats:
            if preference(fmt):
                return fmt
    return None


def select_formats(
    candidate: VideoCandidate, preferred_language: Optional[str] = None
) -> Tuple[FormatDescriptor, FormatDescriptor]:
    """Choose one video-only and one audio-only format.

    Video prefers mp4 (and portrait for shorts); audio prefers the preferred
    language, then m4a. Either half falls back to any format of its kind.

    Raises:
        NoSuitableFormat: If either half is missing
    """
    video_formats = [fmt for fmt in candidate.source_formats if fmt.is_video_only]
    audio_formats = [fmt for fmt in candidate.source_formats if fmt.is_audio_only]

    if candidate.is_short:
        video = _pick(
            video_formats,
            lambda f: f.container == "mp4" and f.is_portrait,
            lambda f: f.is_portrait,
            lambda f: f.container == "mp4",
            lambda f: True,
        )
    else:
        video = _pick(video_formats, lambda f: f.container == "mp4", lambda f: True)

    language = (preferred_language or "").lower()
    audio_preferences = []
    if language:
        audio_preferences.extend([
            lambda f: (f.language_tag or "").lower().startswith(language) and f.container == "m4a",
            lambda f: (f.language_tag or "").lower().startswith(language),
        ])
    audio_preferences.extend([lambda f: f.container == "m4a", lambda f: True])
    audio = _pick(audio_formats, *audio_preferences)

    if video is None or audio is None:
        missing = "video" if video is None else "audio"
        raise NoSuitableFormat(
            candidate.id, candidate.title, ValueError(f"no {missing}-only format among {len(candidate.source_formats)}")
        )
    return video, audio


class ProgressReporter:
    """Receives per-stream progress; the base class discards it."""

    def __init__(self):
        self._next_id = 0

    def begin(self, label: str) -> int:
        self._next_id += 1
        return self._next_id

    def update(self, handle: int, percent: float) -> None:
        pass

    def end(self, handle: int) -> None:
        pass


class RichProgressReporter(ProgressReporter):
    """Shows one progress bar per active stream, shared by concurrent acquisitions."""

    def __init__(self, console: Optional[Console] = None):
        super().__init__()
        self._progress = Progress(
            TextColumn("{task.description}"),
            BarColumn(),
            TextColumn("{task.percentage:>5.1f}%"),
            console=console,
            transient=True,
        )
        self._active = 0

    def begin(self, label: str) -> TaskID:
        if self._active == 0:
            self._progress.start()
        self._active += 1
        return self._progress.add_task(label, total=100)

    def update(self, handle: TaskID, percent: float) -> None:
        self._progress.update(handle, completed=percent)

    def end(self, handle: TaskID) -> None:
        self._progress.remove_task(handle)
        self._active -= 1
        if self._active == 0:
            self._progress.stop()


class AcquisitionOrchestrator:
    """Runs the dual-stream fetch and the transcode for one candidate at a time."""

    def __init__(
        self,
        fetcher: Fetcher,
        transcoder: Transcoder,
        file_organizer: FileOrganizer,
        preferred_language: Optional[str] = None,
        temp_dir: Optional[str] = None,
        timeout: Optional[float] = None,
        reporter: Optional[ProgressReporter] = None,
    ):
        """Initialize the orchestrator.

        Args:
            fetcher: Downloads a single format and reports progress
            transcoder: Combines the two streams into the output file
            file_organizer: Resolves output paths
            preferred_language: Preferred audio language tag, or None for any
            temp_dir: Parent directory for scoped temporary files (system default if None)
            timeout: Upper bound per stream fetch, in seconds
            reporter: Progress sink; defaults to discarding progress
        """
        self.fetcher = fetcher
        self.transcoder = transcoder
        self.file_organizer = file_organizer
        self.preferred_language = preferred_language
        self.temp_dir = temp_dir
        if temp_dir:
            Path(temp_dir).mkdir(parents=True, exist_ok=True)
        self.timeout = timeout
        self.reporter = reporter or ProgressReporter()

    async def acquire(self, candidate: VideoCandidate, profile: TranscodeProfile) -> AcquisitionResult:
        """Download both streams of a candidate and transcode them.

        Never raises for per-candidate failures; those come back as the
        result's ``error``. Temporary files are removed on every exit path.
        """
        logger.info(f"Processing: \"{candidate.title}\" ({candidate.id})")
        try:
            output_path = await self._acquire(candidate, profile)
        except AcquisitionError as e:
            logger.error(f"Failed to acquire {candidate.id} (\"{candidate.title}\"): {e}")
            return AcquisitionResult(candidate=candidate, error=e)
        except Exception as e:
            logger.exception(f"Unexpected error acquiring {candidate.id} (\"{candidate.title}\")")
            return AcquisitionResult(candidate=candidate, error=AcquisitionError(candidate.id, candidate.title, e))

        record = AcquisitionRecord(
            id=candidate.id,
            title=candidate.title,
            channel_url=candidate.channel_url,
            upload_date=candidate.upload_date,
            acquired_at=datetime.now(),
            output_path=str(output_path),
        )
        logger.info(f"Success! File saved as {output_path}")
        return AcquisitionResult(candidate=candidate, record=record)

    async def _acquire(self, candidate: VideoCandidate, profile: TranscodeProfile) -> Path:
        video_format, audio_format = select_formats(candidate, self.preferred_language)

        with tempfile.TemporaryDirectory(
            prefix=f"shortstash_{candidate.id}_", dir=self.temp_dir, ignore_cleanup_errors=True
        ) as workdir:
            video_path = Path(workdir) / f"video.{video_format.container or 'mp4'}"
            audio_path = Path(workdir) / f"audio.{audio_format.container or 'm4a'}"

            outcomes = await asyncio.gather(
                self._fetch_stream(candidate, video_format, video_path, "video"),
                self._fetch_stream(candidate, audio_format, audio_path, "audio"),
                return_exceptions=True,
            )
            for outcome in outcomes:
                if isinstance(outcome, asyncio.CancelledError):
                    raise outcome
                if isinstance(outcome, BaseException):
                    raise StreamFetchFailure(candidate.id, candidate.title, outcome) from outcome

            output_path = self.file_organizer.output_path(candidate, profile)
            try:
                await self.transcoder.transcode(video_path, audio_path, profile, output_path)
            except Exception as e:
                raise TranscodeFailure(candidate.id, candidate.title, e) from e

        return output_path

    async def _fetch_stream(
        self, candidate: VideoCandidate, fmt: FormatDescriptor, destination: Path, kind: str
    ) -> Path:
        handle = self.reporter.begin(f"{kind}.{fmt.container or kind} {candidate.id}")
        try:
            await with_timeout(
                self._consume(candidate, fmt, destination, handle),
                self.timeout,
                f"{kind} stream of {candidate.id}",
            )
        finally:
            self.reporter.end(handle)
        return destination

    async def _consume(self, candidate: VideoCandidate, fmt: FormatDescriptor, destination: Path, handle) -> None:
        stream = self.fetcher.fetch(candidate.webpage_url, fmt.format_id, destination)
        try:
            async for event in stream:
                self.reporter.update(handle, event.percent)
        finally:
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                await aclose()
