from __future__ import annotations

import sqlite3
from datetime import datetime

import pytest

from conftest import CHANNEL
from models.channel import AcquisitionRecord
from utils.database import CursorStore, get_db_connection
from utils.errors import StoreUnavailable


def make_record(video_id, channel_url=CHANNEL, acquired_at=None):
    return AcquisitionRecord(
        id=video_id,
        title=f"Video {video_id}",
        channel_url=channel_url,
        upload_date="20250710",
        acquired_at=acquired_at or datetime(2025, 7, 11, 8, 0, 0),
        output_path=f"/out/{video_id}.mp4",
    )


def test_new_store_has_default_setting(store):
    assert store.get_setting("normal_video_mode") == "ask"
    assert store.get_setting("missing", "fallback") == "fallback"


def test_add_channel_is_idempotent(store):
    assert store.add_channel(CHANNEL)
    assert not store.add_channel(CHANNEL)

    channels = store.list_channels()
    assert len(channels) == 1
    assert channels[0].cursor is None and channels[0].active


def test_set_cursor_persists_across_instances(store):
    store.add_channel(CHANNEL)
    store.set_cursor(CHANNEL, "v9", "20250712")

    reopened = CursorStore(store.db_path)
    channel = reopened.get_channel(CHANNEL)

    assert channel.cursor == "v9"
    assert channel.cursor_date == "20250712"


def test_set_cursor_unknown_channel_raises(store):
    with pytest.raises(KeyError):
        store.set_cursor("https://www.youtube.com/@nobody", "v1")


def test_deactivate_keeps_row(store):
    store.add_channel(CHANNEL)

    assert store.deactivate_channel(CHANNEL)
    assert not store.deactivate_channel(CHANNEL)
    assert store.list_channels(active_only=True) == []
    assert len(store.list_channels()) == 1


def test_record_acquisition_and_lookup(store):
    store.add_channel(CHANNEL)
    store.record_acquisition(make_record("v1"))
    store.record_acquisition(make_record("v1"))

    assert store.has_acquired("v1")
    assert not store.has_acquired("v2")
    assert store.acquired_ids(["v1", "v2"]) == {"v1"}
    assert store.acquired_ids([]) == set()

    with get_db_connection(store.db_path) as conn:
        row = conn.execute(
            "SELECT v.*, c.url AS channel_url FROM videos v JOIN channels c ON c.id = v.channel_id"
        ).fetchone()
    assert row["channel_url"] == CHANNEL
    assert row["output_path"] == "/out/v1.mp4"
    assert row["downloaded_at"] == "2025-07-11T08:00:00"
    assert store.channel_statistics() == {CHANNEL: 1}


def test_settings_round_trip(store):
    store.set_setting("normal_video_mode", "skip")

    assert store.get_setting("normal_video_mode") == "skip"


def test_old_schema_is_migrated(tmp_path):
    db_path = tmp_path / "legacy.sqlite"
    with sqlite3.connect(db_path) as conn:
        conn.execute(
            "CREATE TABLE channels (id INTEGER PRIMARY KEY AUTOINCREMENT, url TEXT NOT NULL UNIQUE, "
            "last_video_id TEXT, is_active INTEGER DEFAULT 1)"
        )
        conn.execute(
            "CREATE TABLE videos (id TEXT PRIMARY KEY, title TEXT NOT NULL, channel_id INTEGER, "
            "upload_date TEXT, downloaded_at DATETIME DEFAULT CURRENT_TIMESTAMP)"
        )
        conn.execute("CREATE TABLE settings (key TEXT PRIMARY KEY, value TEXT)")
        conn.execute("INSERT INTO settings VALUES ('normal_video_mode', 'prompt')")
        conn.execute("INSERT INTO channels (url, last_video_id) VALUES (?, 'old1')", (CHANNEL,))
        conn.execute("INSERT INTO videos (id, title, channel_id, upload_date) VALUES ('old1', 'Old', 1, '20250702')")
    conn.close()

    store = CursorStore(str(db_path))

    channel = store.get_channel(CHANNEL)
    assert channel.cursor == "old1"
    assert channel.cursor_date is None
    assert store.get_setting("normal_video_mode") == "prompt"
    with get_db_connection(store.db_path) as conn:
        row = conn.execute(
            "SELECT v.output_path, c.url AS channel_url FROM videos v JOIN channels c ON c.id = v.channel_id"
        ).fetchone()
    assert row["output_path"] is None
    assert row["channel_url"] == CHANNEL

    with get_db_connection(store.db_path) as conn:
        columns = {row["name"] for row in conn.execute("PRAGMA table_info(channels)")}
    assert "last_upload_date" in columns


def test_unopenable_database_raises_store_unavailable(tmp_path):
    blocker = tmp_path / "not-a-directory"
    blocker.write_text("file")

    with pytest.raises(StoreUnavailable):
        CursorStore(str(blocker / "state.sqlite"))
