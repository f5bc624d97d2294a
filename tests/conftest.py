"""Shared test fixtures for BGM Scout tests."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from bgm_scout.database.connection import init_database
from bgm_scout.database.models import ChannelCandidate, ChannelRecord, VideoRecord
from bgm_scout.database.repository import Repository

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def no_sleep(_seconds):
    pass


class FakeYouTubeClient:
    """In-memory stand-in for YouTubeClient that records every call."""

    def __init__(self, search_results=None, channels=None, first_videos=None,
                 latest_videos=None, failures=None):
        self.search_results = search_results or {}
        self.channels = channels or {}
        self.first_videos = first_videos or {}
        self.latest_videos = latest_videos or {}
        self.failures = failures or {}
        self.on_attempt = None
        self.search_calls = []
        self.channel_calls = []
        self.playlist_calls = []

    def _attempt(self, kind):
        if self.on_attempt is not None:
            self.on_attempt(kind)

    def search_videos(self, keyword, max_results=50, published_after=None, order=None):
        self._attempt("search")
        self.search_calls.append(keyword)
        result = self.search_results.get(keyword, [])
        if isinstance(result, Exception):
            raise result
        return list(result)

    def get_channel(self, channel_id):
        self._attempt("channels")
        self.channel_calls.append(channel_id)
        if channel_id in self.failures:
            raise self.failures[channel_id]
        return self.channels.get(channel_id)

    def scan_playlist(self, playlist_id, direction="oldest", max_pages=10):
        self.playlist_calls.append((playlist_id, direction))
        self._attempt("playlistItems")
        source = self.first_videos if direction == "oldest" else self.latest_videos
        return source.get(playlist_id)


def make_candidate(channel_id="UC_A", title="Channel A", description="lofi chill beats",
                   subscriber_count=5000, video_count=10, age_days=20, now=NOW, **kwargs):
    return ChannelCandidate(
        channel_id=channel_id,
        title=title,
        description=description,
        subscriber_count=subscriber_count,
        video_count=video_count,
        total_views=kwargs.pop("total_views", subscriber_count * 20),
        published_at=now - timedelta(days=age_days) if age_days is not None else None,
        uploads_playlist_id=kwargs.pop("uploads_playlist_id", f"UU{channel_id[2:]}"),
        **kwargs,
    )


def make_video(channel_id, video_id=None, title="lofi mix"):
    return VideoRecord(
        video_id=video_id or f"v_{channel_id}",
        channel_id=channel_id,
        title=title,
        published_at=NOW - timedelta(days=3),
    )


def make_record(channel_id="UC_A", title="Lofi Cafe", subscriber_count=5000,
                growth_rate=120, status=None, **kwargs):
    return ChannelRecord(
        channel_id=channel_id,
        title=title,
        description=kwargs.pop("description", "lofi chill beats"),
        subscriber_count=subscriber_count,
        video_count=kwargs.pop("video_count", 12),
        total_views=kwargs.pop("total_views", 250000),
        published_at=kwargs.pop("published_at", NOW - timedelta(days=40)),
        uploads_playlist_id=kwargs.pop("uploads_playlist_id", f"UU{channel_id[2:]}"),
        first_video_date=kwargs.pop("first_video_date", NOW - timedelta(days=40)),
        growth_rate=growth_rate,
        keywords=kwargs.pop("keywords", ["lofi"]),
        status=status,
        **kwargs,
    )


@pytest.fixture
def tmp_db(tmp_path):
    """Create a temporary SQLite database with full schema + migrations."""
    db_path = str(tmp_path / "test.db")
    conn = init_database(db_path)
    conn.close()
    return db_path


@pytest.fixture
def repo(tmp_db):
    """Create a Repository backed by the temp database."""
    r = Repository(tmp_db)
    yield r
    r.close()


@pytest.fixture
def seeded_repo(repo):
    """Repository holding three channels: one tracked, one rejected, one untriaged."""
    repo.insert_if_absent(make_record("UC_A", "Lofi Cafe", 5000, growth_rate=300))
    repo.insert_if_absent(make_record("UC_B", "Piano Sleep", 20000, growth_rate=80))
    repo.insert_if_absent(make_record("UC_C", "Jazz Study", 1200, growth_rate=15))
    repo.update_status("UC_A", "tracking")
    repo.update_status("UC_B", "rejected", reason="reupload channel")
    return repo


@pytest.fixture
def flask_app(tmp_db):
    """Create a Flask test app with all routes registered."""
    from bgm_scout.web.app import create_app

    config = {
        "db_path": tmp_db,
        "quota": {"daily_limit": 10000},
    }
    app = create_app(config)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(flask_app):
    """Flask test client."""
    return flask_app.test_client()
