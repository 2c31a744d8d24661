"""FFmpeg transcode profiles for the supported output containers."""

import logging
from dataclasses import dataclass
from typing import Dict, Tuple

logger = logging.getLogger(__name__)

DEFAULT_PROFILE = "mp4"


@dataclass(frozen=True)
class TranscodeProfile:
    """Named set of ffmpeg arguments producing one container/codec combination."""

    name: str
    extension: str
    ffmpeg_args: Tuple[str, ...]
    passthrough: bool = False  # streams are copied, no filters allowed
    audio_only: bool = False

    @property
    def uses_video_settings(self) -> bool:
        """Whether scale/frame-rate parameters apply to this profile."""
        return not (self.passthrough or self.audio_only)


FORMAT_PRESETS: Dict[str, TranscodeProfile] = {
    # Low resolution players (AGPTEK A65 and similar)
    "amv": TranscodeProfile(
        name="amv",
        extension="amv",
        ffmpeg_args=(
            "-c:v", "amv",
            "-c:a", "adpcm_ima_amv",
            "-ar", "22050",
            "-ac", "1",
            "-block_size", "1050",
        ),
    ),
    "avi_xvid": TranscodeProfile(
        name="avi_xvid",
        extension="avi",
        ffmpeg_args=(
            "-c:v", "libxvid",
            "-q:v", "10",
            "-c:a", "libmp3lame",
            "-q:a", "5",
        ),
    ),
    "mp3": TranscodeProfile(
        name="mp3",
        extension="mp3",
        ffmpeg_args=("-vn", "-c:a", "libmp3lame", "-q:a", "2"),
        audio_only=True,
    ),
    # Constant bitrate is safer for older hardware
    "mp3_cbr": TranscodeProfile(
        name="mp3_cbr",
        extension="mp3",
        ffmpeg_args=("-vn", "-c:a", "libmp3lame", "-b:a", "128k"),
        audio_only=True,
    ),
    "mp4": TranscodeProfile(
        name="mp4",
        extension="mp4",
        ffmpeg_args=("-c:v", "copy", "-c:a", "copy"),
        passthrough=True,
    ),
    "mkv": TranscodeProfile(
        name="mkv",
        extension="mkv",
        ffmpeg_args=("-c:v", "copy", "-c:a", "copy"),
        passthrough=True,
    ),
    "webm": TranscodeProfile(
        name="webm",
        extension="webm",
        ffmpeg_args=(
            "-c:v", "libvpx-vp9",
            "-b:v", "0",
            "-crf", "30",
            "-c:a", "libopus",
            "-b:a", "128k",
        ),
    ),
}


def get_profile(name: str) -> TranscodeProfile:
    """Look up a profile by name, falling back to the default for unknown names."""
    profile = FORMAT_PRESETS.get((name or "").strip().lower())
    if profile is None:
        logger.warning(f"Unknown target format '{name}', falling back to {DEFAULT_PROFILE}")
        return FORMAT_PRESETS[DEFAULT_PROFILE]
    return profile
