from __future__ import annotations

import subprocess
from pathlib import Path

import pytest

from services.transcoder import Transcoder
from utils.config import VideoSettings
from utils.formats import FORMAT_PRESETS, get_profile

VIDEO = Path("/tmp/work/video.mp4")
AUDIO = Path("/tmp/work/audio.m4a")


def test_amv_command_applies_scale_and_frame_rate():
    transcoder = Transcoder(VideoSettings(scale="160:120", frame_rate="15"))

    cmd = transcoder.build_command(VIDEO, AUDIO, FORMAT_PRESETS["amv"], Path("/out/a.amv"))

    assert cmd[:6] == ["ffmpeg", "-y", "-i", str(VIDEO), "-i", str(AUDIO)]
    assert cmd[6:10] == ["-vf", "scale=160:120", "-r", "15"]
    assert "adpcm_ima_amv" in cmd
    assert cmd[-1] == "/out/a.amv"


def test_passthrough_profile_copies_streams_without_filters():
    cmd = Transcoder().build_command(VIDEO, AUDIO, FORMAT_PRESETS["mp4"], Path("/out/a.mp4"))

    assert "-vf" not in cmd and "-r" not in cmd
    assert cmd[6:10] == ["-c:v", "copy", "-c:a", "copy"]


def test_audio_only_profile_drops_video():
    cmd = Transcoder().build_command(VIDEO, AUDIO, FORMAT_PRESETS["mp3_cbr"], Path("/out/a.mp3"))

    assert "-vn" in cmd
    assert "-vf" not in cmd
    assert "128k" in cmd


def test_unknown_profile_falls_back_to_mp4():
    assert get_profile("flv") is FORMAT_PRESETS["mp4"]
    assert get_profile(" WEBM ") is FORMAT_PRESETS["webm"]


async def test_transcode_runs_ffmpeg(monkeypatch, tmp_path):
    seen = {}

    def fake_run(cmd, **kwargs):
        seen["cmd"] = cmd
        seen["kwargs"] = kwargs
        return subprocess.CompletedProcess(cmd, 0, "", "")

    monkeypatch.setattr(subprocess, "run", fake_run)
    output = tmp_path / "a.webm"

    result = await Transcoder(timeout=60).transcode(VIDEO, AUDIO, FORMAT_PRESETS["webm"], output)

    assert result == output
    assert seen["cmd"][-1] == str(output)
    assert seen["kwargs"]["check"] is True
    assert seen["kwargs"]["timeout"] == 60


async def test_transcode_failure_reports_stderr_tail(monkeypatch, tmp_path):
    def fake_run(cmd, **kwargs):
        raise subprocess.CalledProcessError(1, cmd, stderr="banner\nInvalid data found when processing input")

    monkeypatch.setattr(subprocess, "run", fake_run)

    with pytest.raises(RuntimeError, match="code 1.*Invalid data"):
        await Transcoder().transcode(VIDEO, AUDIO, FORMAT_PRESETS["mp4"], tmp_path / "a.mp4")


async def test_transcode_timeout_is_reported(monkeypatch, tmp_path):
    def fake_run(cmd, **kwargs):
        raise subprocess.TimeoutExpired(cmd, kwargs["timeout"])

    monkeypatch.setattr(subprocess, "run", fake_run)

    with pytest.raises(RuntimeError, match="timed out"):
        await Transcoder(timeout=5).transcode(VIDEO, AUDIO, FORMAT_PRESETS["mp4"], tmp_path / "a.mp4")


async def test_missing_ffmpeg_is_reported(tmp_path):
    transcoder = Transcoder(ffmpeg_path=str(tmp_path / "no-such-ffmpeg"))

    with pytest.raises(RuntimeError, match="not found"):
        await transcoder.transcode(VIDEO, AUDIO, FORMAT_PRESETS["mp4"], tmp_path / "a.mp4")
