"""SQLite-backed persistence of channel cursors and acquisitions."""

import sqlite3
import logging
from contextlib import contextmanager
from typing import Dict, Iterable, List, Optional, Set
from pathlib import Path

from models.channel import AcquisitionRecord, Channel
from utils.errors import StoreUnavailable

logger = logging.getLogger(__name__)

DEFAULT_NORMAL_VIDEO_MODE = 'ask'


def init_database(db_path: str) -> None:
    """Initialize SQLite database with required tables."""
    db_file = Path(db_path)
    db_file.parent.mkdir(parents=True, exist_ok=True)

    with sqlite3.connect(db_path) as conn:
        cursor = conn.cursor()

        cursor.execute('''
            CREATE TABLE IF NOT EXISTS channels (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                url TEXT NOT NULL UNIQUE,
                last_video_id TEXT,
                last_upload_date TEXT,
                is_active INTEGER DEFAULT 1
            )
        ''')

        cursor.execute('''
            CREATE TABLE IF NOT EXISTS videos (
                id TEXT PRIMARY KEY,
                title TEXT NOT NULL,
                channel_id INTEGER,
                upload_date TEXT,
                output_path TEXT,
                downloaded_at DATETIME DEFAULT CURRENT_TIMESTAMP,
                FOREIGN KEY (channel_id) REFERENCES channels (id)
            )
        ''')

        cursor.execute('''
            CREATE TABLE IF NOT EXISTS settings (
                key TEXT PRIMARY KEY,
                value TEXT
            )
        ''')

        # Databases from earlier versions lack these columns
        _add_missing_column(cursor, 'channels', 'last_upload_date', 'TEXT')
        _add_missing_column(cursor, 'videos', 'output_path', 'TEXT')

        cursor.execute(
            'INSERT OR IGNORE INTO settings (key, value) VALUES (?, ?)',
            ('normal_video_mode', DEFAULT_NORMAL_VIDEO_MODE),
        )
        cursor.execute('CREATE INDEX IF NOT EXISTS idx_videos_channel ON videos(channel_id)')

        conn.commit()
        logger.info(f"Database initialized at {db_path}")


def _add_missing_column(cursor: sqlite3.Cursor, table: str, column: str, column_type: str) -> None:
    cursor.execute(f'PRAGMA table_info({table})')
    existing = {row[1] for row in cursor.fetchall()}
    if column not in existing:
        cursor.execute(f'ALTER TABLE {table} ADD COLUMN {column} {column_type}')
        logger.info(f"Migrated table {table}: added column {column}")


@contextmanager
def get_db_connection(db_path: str):
    """Context manager for database connections."""
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row  # Enable dict-like access
    try:
        yield conn
    finally:
        conn.close()


class CursorStore:
    """Per-channel cursors, acquisition records and operator settings."""

    def __init__(self, db_path: str):
        """Open (and create if needed) the store.

        Args:
            db_path: Path to the SQLite database file

        Raises:
            StoreUnavailable: If the database cannot be opened or initialized
        """
        self.db_path = str(db_path)
        try:
            init_database(self.db_path)
        except (sqlite3.Error, OSError) as e:
            raise StoreUnavailable(f"Cannot open database at {self.db_path}: {e}") from e

    # Channels

    def list_channels(self, active_only: bool = False) -> List[Channel]:
        """Return tracked channels in insertion order."""
        query = 'SELECT * FROM channels'
        if active_only:
            query += ' WHERE is_active = 1'
        query += ' ORDER BY id'

        with get_db_connection(self.db_path) as conn:
            rows = conn.execute(query).fetchall()
        return [Channel.from_row(dict(row)) for row in rows]

    def get_channel(self, url: str) -> Optional[Channel]:
        with get_db_connection(self.db_path) as conn:
            row = conn.execute('SELECT * FROM channels WHERE url = ?', (url,)).fetchone()
        return Channel.from_row(dict(row)) if row else None

    def add_channel(self, url: str) -> bool:
        """Track a channel, reactivating it if it was deactivated.

        Returns:
            True if the channel was created or reactivated
        """
        with get_db_connection(self.db_path) as conn:
            cursor = conn.execute('INSERT OR IGNORE INTO channels (url) VALUES (?)', (url,))
            changed = cursor.rowcount > 0
            if not changed:
                cursor = conn.execute(
                    'UPDATE channels SET is_active = 1 WHERE url = ? AND is_active = 0', (url,)
                )
                changed = cursor.rowcount > 0
                if changed:
                    logger.info(f"Reactivated channel: {url}")
            conn.commit()
        return changed

    def deactivate_channel(self, url: str) -> bool:
        """Stop tracking a channel while keeping its cursor and history."""
        with get_db_connection(self.db_path) as conn:
            cursor = conn.execute(
                'UPDATE channels SET is_active = 0 WHERE url = ? AND is_active = 1', (url,)
            )
            conn.commit()
        return cursor.rowcount > 0

    def set_cursor(self, url: str, item_id: str, upload_date: Optional[str] = None) -> None:
        with get_db_connection(self.db_path) as conn:
            cursor = conn.execute(
                'UPDATE channels SET last_video_id = ?, last_upload_date = ? WHERE url = ?',
                (item_id, upload_date, url),
            )
            conn.commit()
        if cursor.rowcount == 0:
            raise KeyError(f"Unknown channel: {url}")
        logger.debug(f"Cursor for {url} set to {item_id} ({upload_date})")

    # Acquisitions

    def record_acquisition(self, record: AcquisitionRecord) -> None:
        data = record.to_dict()
        with get_db_connection(self.db_path) as conn:
            conn.execute('''
                INSERT OR IGNORE INTO videos (id, title, channel_id, upload_date, output_path, downloaded_at)
                VALUES (?, ?, (SELECT id FROM channels WHERE url = ?), ?, ?, ?)
            ''', (
                data['id'],
                data['title'],
                data['channel_url'],
                data['upload_date'],
                data['output_path'],
                data['downloaded_at'],
            ))
            conn.commit()
        logger.debug(f"Recorded acquisition: {record.id}")

    def has_acquired(self, item_id: str) -> bool:
        with get_db_connection(self.db_path) as conn:
            row = conn.execute('SELECT 1 FROM videos WHERE id = ?', (item_id,)).fetchone()
        return row is not None

    def acquired_ids(self, item_ids: Iterable[str]) -> Set[str]:
        """Return the subset of ``item_ids`` that already have a record."""
        ids = list(item_ids)
        if not ids:
            return set()
        placeholders = ','.join('?' * len(ids))
        with get_db_connection(self.db_path) as conn:
            rows = conn.execute(f'SELECT id FROM videos WHERE id IN ({placeholders})', ids).fetchall()
        return {row['id'] for row in rows}

    # Settings

    def get_setting(self, key: str, default: Optional[str] = None) -> Optional[str]:
        with get_db_connection(self.db_path) as conn:
            row = conn.execute('SELECT value FROM settings WHERE key = ?', (key,)).fetchone()
        return row['value'] if row else default

    def set_setting(self, key: str, value: str) -> None:
        with get_db_connection(self.db_path) as conn:
            conn.execute('INSERT OR REPLACE INTO settings (key, value) VALUES (?, ?)', (key, value))
            conn.commit()

    def channel_statistics(self) -> Dict[str, int]:
        """Get acquisition counts per channel URL."""
        with get_db_connection(self.db_path) as conn:
            rows = conn.execute('''
                SELECT c.url AS url, COUNT(v.id) AS count
                FROM channels c
                LEFT JOIN videos v ON v.channel_id = c.id
                GROUP BY c.url
            ''').fetchall()
        return {row['url']: row['count'] for row in rows}
