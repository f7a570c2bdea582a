"""
SQLite state store for ektobot.

Everything the bot knows survives between runs in a single database file:
albums and their tracks (with the per-stage artifacts recorded so far),
the work queue, and the operator-curated exclusion patterns.

Schema:
    album:              One row per source URL (metadata + playlist id)
    track:              Tracks of an album; row id order IS track order
    queue:              Work items, unique per (action, url)
    exclusion_pattern:  Artist/label denylist regexes

Transactions:
    Every public method runs as one self-contained transaction under
    self._lock. No transaction spans a network call or another Store call,
    so a crash loses at most the step that was in flight.

Usage:
    with Store(state_dir / "state.db") as store:
        store.queue_insert("https://ektoplazm.com/free-music/some-album")
        action, url = store.queue_get()
        ...
        store.queue_result(action, url, "OK")
"""

import json
import os
import sqlite3
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Generator

from ektobot.core.blacklist import KINDS, ExclusionFilter, compile_pattern
from ektobot.core.exceptions import ConfigurationError, ConsistencyError, FileSystemError
from ektobot.core.logger import get_logger
from ektobot.core.models import Album, PlaylistId, Track, VideoId

logger = get_logger(__name__)


DATABASE_VERSION = 1

ACTION_URL = "url"
QUEUE_RESULT_OK = "OK"


_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY
);

CREATE TABLE IF NOT EXISTS album (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    url TEXT UNIQUE NOT NULL,
    artist TEXT,
    title TEXT NOT NULL,
    license TEXT,
    year INTEGER,
    labels TEXT,  -- JSON array
    tags TEXT,  -- JSON array
    playlist_id TEXT
);

CREATE TABLE IF NOT EXISTS track (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    album_id INTEGER NOT NULL,
    artist TEXT NOT NULL,
    title TEXT NOT NULL,
    bpm INTEGER,
    audio_file TEXT,
    video_file TEXT,
    video_id TEXT,
    FOREIGN KEY (album_id) REFERENCES album(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS queue (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    action TEXT NOT NULL,
    url TEXT NOT NULL,
    result TEXT,
    result_at TEXT,
    UNIQUE(action, url)
);

CREATE TABLE IF NOT EXISTS exclusion_pattern (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    kind TEXT NOT NULL CHECK (kind IN ('artist', 'label')),
    pattern TEXT NOT NULL,
    UNIQUE(kind, pattern)
);

CREATE INDEX IF NOT EXISTS idx_track_album ON track(album_id);
CREATE INDEX IF NOT EXISTS idx_queue_pending ON queue(result);
"""


@dataclass(frozen=True)
class QueueEntry:
    """
    One row of the work queue.

    Attributes:
        action: Action tag. Only "url" is dispatched by the daemon.
        url: Album URL.
        result: "OK", an error description, or None while pending.
        result_at: ISO-8601 UTC timestamp of the result, or None.
    """
    action: str
    url: str
    result: str | None = None
    result_at: str | None = None

    @property
    def pending(self) -> bool:
        return self.result is None and self.result_at is None


class Store:
    """
    SQLite-backed persistent state.

    Uses a single persistent connection with thread locking for safety.
    All public methods acquire self._lock before executing.
    """

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        self._lock = threading.Lock()
        self._conn: sqlite3.Connection | None = None

        if not db_path.parent.is_dir():
            raise FileSystemError(
                f"Parent directory does not exist: {db_path.parent}",
                details={"path": str(db_path.parent)}
            )
        if db_path.exists() and not os.access(db_path, os.W_OK):
            raise FileSystemError(
                f"Database file is not writable: {db_path}",
                details={"path": str(db_path)}
            )

        try:
            self._init_database()
        except sqlite3.OperationalError as e:
            self.close()
            raise FileSystemError(
                f"Cannot open database {db_path}: {e}",
                details={"path": str(db_path), "original_error": str(e)}
            ) from e
        except sqlite3.Error as e:
            self.close()
            raise ConsistencyError(
                f"Database {db_path} is corrupt: {e}",
                details={"path": str(db_path), "original_error": str(e)}
            ) from e
        except ConsistencyError:
            self.close()
            raise

        logger.debug(f"Opened store {db_path}")

    @contextmanager
    def _get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        """
        Get the persistent database connection as a context manager.

        The connection is created once and reused for all operations.
        """
        if self._conn is None:
            self._conn = sqlite3.connect(
                str(self.db_path),
                timeout=30.0,
                check_same_thread=False  # We handle thread safety with _lock
            )
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA foreign_keys = ON")
        yield self._conn

    @contextmanager
    def _transaction(self) -> Generator[sqlite3.Connection, None, None]:
        """
        Run a block as one locked transaction.

        Commits on success. On any sqlite3 error the transaction is rolled
        back and the error re-raised as ConsistencyError.
        """
        with self._lock:
            with self._get_connection() as conn:
                try:
                    yield conn
                    conn.commit()
                except sqlite3.Error as e:
                    conn.rollback()
                    raise ConsistencyError(
                        f"Database operation failed: {e}",
                        details={"path": str(self.db_path), "original_error": str(e)}
                    ) from e
                except BaseException:
                    conn.rollback()
                    raise

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    def __enter__(self) -> "Store":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def _init_database(self) -> None:
        with self._get_connection() as conn:
            conn.executescript(_SCHEMA_SQL)

            cursor = conn.execute("SELECT version FROM schema_version")
            rows = cursor.fetchall()

            if not rows:
                conn.execute("INSERT INTO schema_version (version) VALUES (?)", (DATABASE_VERSION,))
            elif len(rows) > 1 or rows[0][0] != DATABASE_VERSION:
                raise ConsistencyError(
                    f"Database version mismatch: expected {DATABASE_VERSION}, "
                    f"got {', '.join(str(r[0]) for r in rows)}",
                    details={"expected": DATABASE_VERSION, "actual": [r[0] for r in rows]}
                )
            conn.commit()

    def _now_iso(self) -> str:
        return datetime.now(timezone.utc).isoformat()

    # =========================================================================
    # Album Operations
    # =========================================================================

    def get_album(self, url: str) -> Album | None:
        """
        Load an album and its tracks.

        Args:
            url: Source URL of the album.

        Returns:
            The stored Album with tracks in their saved order, or None.

        Raises:
            ConsistencyError: If more than one album row has this URL.
        """
        with self._transaction() as conn:
            # sqlite3 only opens transactions implicitly for writes
            if not conn.in_transaction:
                conn.execute("BEGIN")
            rows = conn.execute("SELECT * FROM album WHERE url = ?", (url,)).fetchall()
            if not rows:
                return None
            if len(rows) > 1:
                raise ConsistencyError(
                    f"Found {len(rows)} albums for {url}",
                    details={"url": url, "count": len(rows)}
                )
            row = rows[0]

            track_rows = conn.execute(
                "SELECT * FROM track WHERE album_id = ? ORDER BY id", (row["id"],)
            ).fetchall()

            return self._deserialize_album(row, track_rows)

    def save(self, album: Album) -> None:
        """
        Insert or replace an album and its tracks.

        The album row is upserted by URL. Existing track rows are deleted
        and the current track list is inserted in order, so the new row ids
        reflect the album's track order.
        """
        with self._transaction() as conn:
            conn.execute("""
                INSERT INTO album (url, artist, title, license, year, labels, tags, playlist_id)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(url) DO UPDATE SET
                    artist = excluded.artist,
                    title = excluded.title,
                    license = excluded.license,
                    year = excluded.year,
                    labels = excluded.labels,
                    tags = excluded.tags,
                    playlist_id = excluded.playlist_id
            """, (
                album.url, album.artist, album.title, album.license, album.year,
                json.dumps(album.labels), json.dumps(album.tags),
                album.playlist_id.to_db() if album.playlist_id else None
            ))

            album_id = conn.execute(
                "SELECT id FROM album WHERE url = ?", (album.url,)
            ).fetchone()[0]

            conn.execute("DELETE FROM track WHERE album_id = ?", (album_id,))
            conn.executemany("""
                INSERT INTO track (album_id, artist, title, bpm, audio_file, video_file, video_id)
                VALUES (?, ?, ?, ?, ?, ?, ?)
            """, [
                (
                    album_id, t.artist, t.title, t.bpm,
                    str(t.audio_file) if t.audio_file is not None else None,
                    str(t.video_file) if t.video_file is not None else None,
                    t.video_id.to_db() if t.video_id else None,
                )
                for t in album.tracks
            ])

        logger.debug(f"Saved album {album.url} ({len(album.tracks)} tracks)")

    def _deserialize_album(self, row: sqlite3.Row, track_rows: list[sqlite3.Row]) -> Album:
        """Convert album and track rows to an Album with proper types."""
        tracks = [
            Track(
                artist=t["artist"],
                title=t["title"],
                bpm=t["bpm"],
                audio_file=Path(t["audio_file"]) if t["audio_file"] is not None else None,
                video_file=Path(t["video_file"]) if t["video_file"] is not None else None,
                video_id=VideoId.from_db(t["video_id"]),
            )
            for t in track_rows
        ]
        return Album(
            url=row["url"],
            title=row["title"],
            artist=row["artist"],
            license=row["license"],
            year=row["year"],
            labels=self._load_json_list(row["labels"]),
            tags=self._load_json_list(row["tags"]),
            tracks=tracks,
            playlist_id=PlaylistId.from_db(row["playlist_id"]),
        )

    def _load_json_list(self, value: str | None) -> list[str]:
        if value is None:
            return []
        try:
            data = json.loads(value)
        except json.JSONDecodeError as e:
            raise ConsistencyError(
                f"Invalid JSON list in database: {value!r}",
                details={"value": value, "original_error": str(e)}
            ) from e
        if not isinstance(data, list):
            raise ConsistencyError(
                f"Expected a JSON list in database, got: {value!r}",
                details={"value": value}
            )
        return [str(item) for item in data]

    # =========================================================================
    # Work Queue
    # =========================================================================

    def queue_insert(self, url: str, action: str = ACTION_URL) -> None:
        """
        Queue a URL for processing.

        Re-inserting an existing (action, url) pair resets it to pending and
        moves it to the back of the queue. This is how failed or finished
        items are retried by hand.
        """
        with self._transaction() as conn:
            conn.execute("DELETE FROM queue WHERE action = ? AND url = ?", (action, url))
            conn.execute(
                "INSERT INTO queue (action, url, result, result_at) VALUES (?, ?, NULL, NULL)",
                (action, url)
            )
        logger.debug(f"Queued {action} {url}")

    def queue_get(self) -> tuple[str, str] | None:
        """
        Get the oldest pending queue entry.

        Returns:
            (action, url) tuple, or None if nothing is pending.
        """
        with self._transaction() as conn:
            row = conn.execute("""
                SELECT action, url FROM queue
                WHERE result IS NULL AND result_at IS NULL
                ORDER BY id LIMIT 1
            """).fetchone()
            return (row["action"], row["url"]) if row else None

    def queue_result(self, action: str, url: str, result: str) -> None:
        """Record the outcome of a queue entry with the current UTC time."""
        with self._transaction() as conn:
            conn.execute(
                "UPDATE queue SET result = ?, result_at = ? WHERE action = ? AND url = ?",
                (result, self._now_iso(), action, url)
            )

    def queue_status(self, url: str) -> list[QueueEntry]:
        """All queue entries for a URL, oldest first."""
        with self._transaction() as conn:
            rows = conn.execute(
                "SELECT action, url, result, result_at FROM queue WHERE url = ? ORDER BY id",
                (url,)
            ).fetchall()
            return [QueueEntry(**dict(row)) for row in rows]

    def queue_stats(self) -> dict[str, int]:
        """
        Count queue entries by state.

        Returns:
            Dictionary with keys: pending, done, failed, total
        """
        with self._transaction() as conn:
            row = conn.execute("""
                SELECT
                    COUNT(*) AS total,
                    SUM(CASE WHEN result IS NULL THEN 1 ELSE 0 END) AS pending,
                    SUM(CASE WHEN result = ? THEN 1 ELSE 0 END) AS done
                FROM queue
            """, (QUEUE_RESULT_OK,)).fetchone()

            total = row["total"] or 0
            pending = row["pending"] or 0
            done = row["done"] or 0
            return {
                "pending": pending,
                "done": done,
                "failed": total - pending - done,
                "total": total,
            }

    # =========================================================================
    # Exclusion Patterns
    # =========================================================================

    def blacklist(self) -> ExclusionFilter:
        """Load and compile all exclusion patterns."""
        patterns = self.list_exclusions()
        return ExclusionFilter(
            artists=[p for kind, p in patterns if kind == "artist"],
            labels=[p for kind, p in patterns if kind == "label"],
        )

    def add_exclusion(self, kind: str, pattern: str) -> bool:
        """
        Add an exclusion pattern.

        Args:
            kind: "artist" or "label".
            pattern: Regular expression, matched against the whole name.

        Returns:
            True if the pattern was added, False if it already existed.

        Raises:
            ConfigurationError: If kind is unknown or the pattern is invalid.
        """
        self._check_kind(kind)
        compile_pattern(pattern)

        with self._transaction() as conn:
            cursor = conn.execute(
                "INSERT OR IGNORE INTO exclusion_pattern (kind, pattern) VALUES (?, ?)",
                (kind, pattern)
            )
            added = cursor.rowcount > 0

        if added:
            logger.info(f"Added {kind} exclusion {pattern!r}")
        return added

    def remove_exclusion(self, kind: str, pattern: str) -> bool:
        """
        Remove an exclusion pattern.

        Returns:
            True if a pattern was removed, False if it did not exist.
        """
        self._check_kind(kind)

        with self._transaction() as conn:
            cursor = conn.execute(
                "DELETE FROM exclusion_pattern WHERE kind = ? AND pattern = ?",
                (kind, pattern)
            )
            removed = cursor.rowcount > 0

        if removed:
            logger.info(f"Removed {kind} exclusion {pattern!r}")
        return removed

    def list_exclusions(self) -> list[tuple[str, str]]:
        """All (kind, pattern) pairs in insertion order."""
        with self._transaction() as conn:
            rows = conn.execute(
                "SELECT kind, pattern FROM exclusion_pattern ORDER BY id"
            ).fetchall()
            return [(row["kind"], row["pattern"]) for row in rows]

    def _check_kind(self, kind: str) -> None:
        if kind not in KINDS:
            raise ConfigurationError(
                f"Unknown exclusion kind {kind!r}, expected one of: {', '.join(KINDS)}",
                details={"kind": kind}
            )


def open(path: Path) -> Store:
    """Open (creating if needed) the store at path."""
    return Store(path)
