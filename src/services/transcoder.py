"""Video/audio muxing and transcoding using ffmpeg."""

import asyncio
import logging
import subprocess
from pathlib import Path
from typing import List, Optional

from utils.config import VideoSettings
from utils.formats import TranscodeProfile

logger = logging.getLogger(__name__)


class Transcoder:
    """Combines a video stream and an audio stream into one output file."""

    def __init__(
        self,
        video_settings: Optional[VideoSettings] = None,
        ffmpeg_path: str = "ffmpeg",
        timeout: Optional[float] = None,
    ):
        self.video_settings = video_settings or VideoSettings()
        self.ffmpeg_path = ffmpeg_path
        self.timeout = timeout if timeout and timeout > 0 else None

    def build_command(
        self,
        video_path: Path,
        audio_path: Path,
        profile: TranscodeProfile,
        output_path: Path,
    ) -> List[str]:
        """Build the ffmpeg argument list for one transcode."""
        cmd = [
            self.ffmpeg_path,
            "-y",
            "-i",
            str(video_path),
            "-i",
            str(audio_path),
        ]

        if profile.uses_video_settings:
            cmd.extend([
                "-vf",
                f"scale={self.video_settings.scale}",
                "-r",
                str(self.video_settings.frame_rate),
            ])

        cmd.extend(profile.ffmpeg_args)
        cmd.append(str(output_path))
        return cmd

    async def transcode(
        self,
        video_path: Path,
        audio_path: Path,
        profile: TranscodeProfile,
        output_path: Path,
    ) -> Path:
        """Run ffmpeg in a worker thread.

        Returns:
            Path of the produced file

        Raises:
            RuntimeError: If ffmpeg fails, times out or cannot be started
        """
        cmd = self.build_command(video_path, audio_path, profile, output_path)
        logger.info(f"Transcoding to {profile.name.upper()}: {output_path.name}")
        await asyncio.to_thread(self._run, cmd)
        return output_path

    def _run(self, cmd: List[str]) -> None:
        try:
            subprocess.run(cmd, capture_output=True, text=True, check=True, timeout=self.timeout)
            logger.debug(f"ffmpeg completed: {cmd[-1]}")

        except subprocess.CalledProcessError as e:
            stderr = (e.stderr or "").strip()
            logger.debug(f"FFmpeg failed: {stderr}")
            # ffmpeg's last lines carry the actual error
            tail = "\n".join(stderr.splitlines()[-5:])
            raise RuntimeError(f"ffmpeg exited with code {e.returncode}: {tail}") from e

        except subprocess.TimeoutExpired as e:
            raise RuntimeError(f"ffmpeg timed out after {e.timeout:g}s") from e

        except FileNotFoundError as e:
            raise RuntimeError(f"ffmpeg not found at '{self.ffmpeg_path}'") from e
