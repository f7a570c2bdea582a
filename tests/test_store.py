"""Tests for the SQLite state store"""

import sqlite3
from pathlib import Path

import pytest

from conftest import ALBUM_URL, make_album
from ektobot.core.exceptions import ConfigurationError, ConsistencyError, FileSystemError
from ektobot.core.models import Album, PlaylistId, Track, VideoId
from ektobot.core.store import QUEUE_RESULT_OK, Store


class TestAlbums:
    """Test album persistence"""

    def test_roundtrip(self, store):
        """A saved album loads back field for field"""
        album = Album(
            url=ALBUM_URL,
            artist="Globular",
            title="Entangled Everything",
            license="https://creativecommons.org/licenses/by-nc-sa/4.0/",
            year=2019,
            labels=[],
            tags=["Downtempo", "Psy Dub"],
            tracks=[
                Track(
                    artist="Globular",
                    title="üç£",
                    bpm=666,
                    audio_file=None,
                    video_file=None,
                    video_id=VideoId("asdf"),
                )
            ],
            playlist_id=PlaylistId("PL0123"),
        )
        store.save(album)
        assert store.get_album(ALBUM_URL) == album

    def test_roundtrip_without_tracks(self, store):
        """Albums with zero tracks survive a roundtrip"""
        album = make_album(track_count=0, artist=None, year=None, license=None)
        store.save(album)
        assert store.get_album(ALBUM_URL) == album

    def test_track_order_preserved(self, store):
        """Tracks come back in saved order, not sorted"""
        album = make_album(track_count=4)
        album.tracks.reverse()
        store.save(album)

        loaded = store.get_album(ALBUM_URL)
        assert [t.title for t in loaded.tracks] == ["Track 4", "Track 3", "Track 2", "Track 1"]
        assert isinstance(loaded.tracks[0].audio_file, Path)

    def test_read_is_one_transaction(self, store, sample_album):
        """Album and track rows are read inside one explicit transaction"""
        store.save(sample_album)
        statements = []
        store._conn.set_trace_callback(statements.append)

        store.get_album(ALBUM_URL)

        selects = [s for s in statements if s.lstrip().upper().startswith("SELECT")]
        assert statements[0] == "BEGIN"
        assert len(selects) == 2
        assert not store._conn.in_transaction

    def test_missing_album(self, store):
        """Unknown URLs return None"""
        assert store.get_album("https://ektoplazm.com/free-music/nothing") is None

    def test_save_replaces(self, store, sample_album):
        """Saving again replaces the album and its track list"""
        store.save(sample_album)

        sample_album.tracks = sample_album.tracks[:1]
        sample_album.tracks[0].video_id = VideoId("abc")
        sample_album.labels = ["Ektoplazm"]
        store.save(sample_album)

        loaded = store.get_album(ALBUM_URL)
        assert len(loaded.tracks) == 1
        assert loaded.tracks[0].video_id == VideoId("abc")
        assert loaded.labels == ["Ektoplazm"]

    def test_albums_are_independent(self, store):
        """Saving one album leaves other albums' tracks alone"""
        first = make_album(url="https://ektoplazm.com/free-music/first", track_count=2)
        second = make_album(url="https://ektoplazm.com/free-music/second", track_count=3)
        store.save(first)
        store.save(second)
        store.save(first)

        assert len(store.get_album(second.url).tracks) == 3
        assert len(store.get_album(first.url).tracks) == 2


class TestQueue:
    """Test the work queue"""

    def test_insert_and_get(self, store):
        """A queued URL is returned until a result is recorded"""
        store.queue_insert(ALBUM_URL)
        assert store.queue_get() == ("url", ALBUM_URL)
        assert store.queue_get() == ("url", ALBUM_URL)

        store.queue_result("url", ALBUM_URL, QUEUE_RESULT_OK)
        assert store.queue_get() is None

    def test_fifo_order(self, store):
        """Oldest pending entry comes first"""
        store.queue_insert("https://ektoplazm.com/free-music/a")
        store.queue_insert("https://ektoplazm.com/free-music/b")
        assert store.queue_get() == ("url", "https://ektoplazm.com/free-music/a")

    def test_reinsert_resets_and_moves_to_back(self, store):
        """Re-inserting a finished entry makes it pending again, behind newer work"""
        store.queue_insert("https://ektoplazm.com/free-music/a")
        store.queue_insert("https://ektoplazm.com/free-music/b")
        store.queue_result("url", "https://ektoplazm.com/free-music/a", "Blacklisted")

        store.queue_insert("https://ektoplazm.com/free-music/a")

        entries = store.queue_status("https://ektoplazm.com/free-music/a")
        assert len(entries) == 1
        assert entries[0].pending
        assert store.queue_get() == ("url", "https://ektoplazm.com/free-music/b")

    def test_result_timestamp(self, store):
        """Results are stamped with an ISO-8601 UTC time"""
        store.queue_insert(ALBUM_URL)
        store.queue_result("url", ALBUM_URL, "No license")

        entry = store.queue_status(ALBUM_URL)[0]
        assert entry.result == "No license"
        assert entry.result_at.endswith("+00:00")
        assert not entry.pending

    def test_stats(self, store):
        """Entries are counted as pending, done or failed"""
        for name in ("a", "b", "c", "d"):
            store.queue_insert(f"https://ektoplazm.com/free-music/{name}")
        store.queue_result("url", "https://ektoplazm.com/free-music/a", QUEUE_RESULT_OK)
        store.queue_result("url", "https://ektoplazm.com/free-music/b", "ffmpeg failed")

        assert store.queue_stats() == {"pending": 2, "done": 1, "failed": 1, "total": 4}

    def test_stats_empty(self, store):
        """An empty queue counts zero everywhere"""
        assert store.queue_stats() == {"pending": 0, "done": 0, "failed": 0, "total": 0}


class TestExclusions:
    """Test exclusion pattern management"""

    def test_add_list_remove(self, store):
        """Patterns can be added, listed and removed"""
        assert store.add_exclusion("label", "sony")
        assert store.add_exclusion("artist", "agh[0o]ri tantrik")
        assert not store.add_exclusion("label", "sony")

        assert store.list_exclusions() == [("label", "sony"), ("artist", "agh[0o]ri tantrik")]

        assert store.remove_exclusion("label", "sony")
        assert not store.remove_exclusion("label", "sony")
        assert store.list_exclusions() == [("artist", "agh[0o]ri tantrik")]

    def test_blacklist(self, store, sample_album):
        """Stored patterns build a working filter"""
        store.add_exclusion("label", "sonic tantra .*")
        blacklist = store.blacklist()

        assert not blacklist.matches(sample_album)
        sample_album.labels = ["Sonic Tantra Records"]
        assert blacklist.matches(sample_album)

    def test_unknown_kind(self, store):
        """Only artist and label patterns exist"""
        with pytest.raises(ConfigurationError):
            store.add_exclusion("genre", "psytrance")

    def test_invalid_pattern_not_stored(self, store):
        """Malformed regexes are rejected before anything is written"""
        with pytest.raises(ConfigurationError):
            store.add_exclusion("artist", "broken[")
        assert store.list_exclusions() == []


class TestStoreFile:
    """Test opening the database file"""

    def test_missing_parent_directory(self, temp_dir):
        """The state directory must exist"""
        with pytest.raises(FileSystemError):
            Store(temp_dir / "missing" / "state.db")

    def test_corrupt_file(self, temp_dir):
        """A file that is not a database is reported as inconsistent"""
        path = temp_dir / "state.db"
        path.write_bytes(b"this is definitely not an sqlite database\n" * 20)
        with pytest.raises(ConsistencyError):
            Store(path)

    def test_version_mismatch(self, temp_dir):
        """Databases from another schema version are refused"""
        path = temp_dir / "state.db"
        Store(path).close()

        conn = sqlite3.connect(path)
        conn.execute("UPDATE schema_version SET version = 99")
        conn.commit()
        conn.close()

        with pytest.raises(ConsistencyError):
            Store(path)

    def test_reopen_keeps_data(self, temp_dir, sample_album):
        """State survives closing and reopening"""
        path = temp_dir / "state.db"
        with Store(path) as store:
            store.save(sample_album)
            store.queue_insert(ALBUM_URL)

        with Store(path) as store:
            assert store.get_album(ALBUM_URL) == sample_album
            assert store.queue_get() == ("url", ALBUM_URL)
