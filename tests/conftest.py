from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

SRC = Path(__file__).resolve().parents[1] / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from models.job import ProgressEvent  # noqa: E402
from models.video import FormatDescriptor, VideoCandidate  # noqa: E402
from utils.config import AppConfig  # noqa: E402
from utils.database import CursorStore  # noqa: E402

CHANNEL = "https://www.youtube.com/@example"


def portrait_formats() -> List[FormatDescriptor]:
    return [
        FormatDescriptor("18", has_video=True, has_audio=True, container="mp4", width=360, height=640),
        FormatDescriptor("137", has_video=True, has_audio=False, container="mp4", width=1080, height=1920),
        FormatDescriptor("140", has_video=False, has_audio=True, container="m4a", language_tag="en"),
    ]


@pytest.fixture
def make_candidate():
    def _make(
        video_id: str,
        upload_date: str = "20250710",
        duration: Optional[int] = 90,
        width: Optional[int] = 720,
        height: Optional[int] = 1280,
        formats: Optional[List[FormatDescriptor]] = None,
        title: Optional[str] = None,
        view: str = "videos",
        channel_url: str = CHANNEL,
        timestamp: Optional[int] = None,
    ) -> VideoCandidate:
        return VideoCandidate(
            id=video_id,
            title=title or f"Video {video_id}",
            upload_date=upload_date,
            duration_seconds=duration,
            width=width,
            height=height,
            source_formats=portrait_formats() if formats is None else formats,
            origin_channel_label="Example Channel",
            webpage_url=f"https://www.youtube.com/watch?v={video_id}",
            channel_url=channel_url,
            source_view=view,
            timestamp=timestamp,
        )

    return _make


@pytest.fixture
def make_entry():
    """Build a yt-dlp playlist entry as the listing service returns it."""

    def _make(
        video_id: str,
        upload_date: Optional[str] = "20250710",
        duration: int = 90,
        width: int = 720,
        height: int = 1280,
        timestamp: Optional[int] = None,
    ) -> Dict[str, Any]:
        return {
            "id": video_id,
            "title": f"Video {video_id}",
            "upload_date": upload_date,
            "timestamp": timestamp,
            "duration": duration,
            "width": width,
            "height": height,
            "channel": "Example Channel",
            "webpage_url": f"https://www.youtube.com/watch?v={video_id}",
            "formats": [
                {"format_id": "137", "vcodec": "avc1", "acodec": "none", "ext": "mp4", "width": 1080, "height": 1920},
                {"format_id": "140", "vcodec": "none", "acodec": "mp4a", "ext": "m4a", "language": "en"},
            ],
        }

    return _make


class FakeLister:
    """Serves canned documents per tab URL; exceptions are raised."""

    def __init__(self, documents: Dict[str, Any]):
        self.documents = documents
        self.calls: List[tuple] = []

    def list_view(self, tab_url: str, max_items: int) -> dict:
        self.calls.append((tab_url, max_items))
        document = self.documents.get(tab_url, {"entries": []})
        if isinstance(document, Exception):
            raise document
        return document


class FakeFetcher:
    """Writes a small file per stream; listed format ids fail."""

    def __init__(self, fail_formats=()):
        self.fail_formats = set(fail_formats)
        self.calls: List[tuple] = []

    async def fetch(self, url: str, format_id: str, destination: Path):
        self.calls.append((url, format_id, destination))
        yield ProgressEvent(10)
        if format_id in self.fail_formats:
            raise RuntimeError(f"HTTP Error 403 for format {format_id}")
        destination.write_bytes(b"stream-" + format_id.encode())
        yield ProgressEvent(100)


class FakeTranscoder:
    """Records inputs; fails when ``fail`` is set, otherwise writes the output."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls: List[dict] = []

    async def transcode(self, video_path, audio_path, profile, output_path):
        self.calls.append({
            "video_path": Path(video_path),
            "audio_path": Path(audio_path),
            "inputs_existed": Path(video_path).exists() and Path(audio_path).exists(),
            "profile": profile,
            "output_path": Path(output_path),
        })
        if self.fail:
            raise RuntimeError("ffmpeg exited with code 1: Invalid data found")
        Path(output_path).write_bytes(b"output")
        return Path(output_path)


@pytest.fixture
def fake_fetcher() -> FakeFetcher:
    return FakeFetcher()


@pytest.fixture
def fake_transcoder() -> FakeTranscoder:
    return FakeTranscoder()


@pytest.fixture
def store(tmp_path) -> CursorStore:
    return CursorStore(str(tmp_path / "state.sqlite"))


@pytest.fixture
def app_config(tmp_path) -> AppConfig:
    return AppConfig(
        channels=(CHANNEL,),
        download_after_date="20250701",
        videos_to_inspect=5,
        listing_views=("shorts", "videos"),
        target_format="mp4",
        output_folder=str(tmp_path / "output"),
        temp_folder=str(tmp_path / "tmp"),
        max_concurrent_downloads=2,
        command_timeout_seconds=0,
        listing_retries=0,
        database_path=str(tmp_path / "state.sqlite"),
    )
