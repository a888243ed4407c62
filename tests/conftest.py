"""Test configuration and fixtures"""

import tempfile
from pathlib import Path
from typing import Any, Mapping

import pytest

from feed_mirror.core.config import Config, FeedConfig, PlaylistConfig, SyncConfig
from feed_mirror.core.exceptions import AppendError, DatabaseError, MembershipLookupError
from feed_mirror.feeds.models import FeedItem
from feed_mirror.youtube.models import AppendResult


def item(video_id: str, published_at: int) -> FeedItem:
    """Shorthand FeedItem for engine tests"""
    return FeedItem(id=video_id, published_at=published_at, url=f"https://www.youtube.com/watch?v={video_id}")


class FakeFeedSource:
    """Feed source serving canned items or raising canned errors"""

    def __init__(self, feeds: dict[str, Any] | None = None):
        self.feeds = dict(feeds or {})
        self.calls: list[str] = []

    async def fetch_feed_items(self, feed_key: str) -> list[FeedItem]:
        self.calls.append(feed_key)
        result = self.feeds.get(feed_key, [])
        if isinstance(result, Exception):
            raise result
        return list(result)


class FakeCollection:
    """In-memory playlist with YouTube's duplicate semantics"""

    def __init__(self, members: set[str] | None = None, failing: set[str] | None = None):
        self.members = set(members or ())
        self.failing = set(failing or ())
        self.membership_error: Exception | None = None
        self.membership_calls = 0
        self.append_calls: list[str] = []

    async def get_collection_members(self, playlist_id: str) -> set[str]:
        self.membership_calls += 1
        if self.membership_error is not None:
            raise self.membership_error
        return set(self.members)

    async def append_item(self, playlist_id: str, video_id: str) -> AppendResult:
        self.append_calls.append(video_id)
        if video_id in self.failing:
            raise AppendError(f"Failed to add video {video_id}: 403", status=403)
        if video_id in self.members:
            return AppendResult(added=False)
        self.members.add(video_id)
        return AppendResult(added=True)

    @property
    def network_calls(self) -> int:
        return self.membership_calls + len(self.append_calls)


class InMemoryStore:
    """State store keeping watermarks and the run summary in dicts"""

    def __init__(self, watermarks: dict[str, int] | None = None):
        self.watermarks = dict(watermarks or {})
        self.summary: dict[str, Any] | None = None
        self.fail_commit = False
        self.commits = 0

    def load_watermarks(self) -> dict[str, int]:
        return dict(self.watermarks)

    def save_run_summary(self, summary: Mapping[str, Any]) -> None:
        self.summary = dict(summary)

    def commit_pass(self, watermarks: Mapping[str, int], summary: Mapping[str, Any]) -> None:
        if self.fail_commit:
            raise DatabaseError("database is locked")
        self.commits += 1
        self.watermarks.update(watermarks)
        self.summary = dict(summary)


class FakeTrigger:
    """Records clear() calls"""

    def __init__(self):
        self.cleared = 0

    def clear(self) -> None:
        self.cleared += 1


def make_config(
    playlist_id: str | None = "PLdestination",
    feeds: tuple[str, ...] = ("UCalpha", "UCbeta"),
    period_minutes: int = 60,
    storage_directory: Path = Path("/tmp/feed-mirror-tests")
) -> Config:
    return Config(
        access_token="token",
        playlist=PlaylistConfig(id=playlist_id, title="Mirror"),
        feeds=tuple(FeedConfig(id=feed_id, name=feed_id) for feed_id in feeds),
        sync=SyncConfig(period_minutes=period_minutes, feed_delay=0, append_delay=0),
        storage_directory=storage_directory,
    )


@pytest.fixture
def temp_dir():
    """Create temporary directory for tests"""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)


@pytest.fixture
def feed_source():
    return FakeFeedSource()


@pytest.fixture
def collection():
    return FakeCollection()


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def trigger():
    return FakeTrigger()


@pytest.fixture
def membership_failure():
    return MembershipLookupError("Could not list playlist PLdestination: API call failed: 500", status=500)


@pytest.fixture
def sample_atom_feed() -> bytes:
    """Channel feed as served by youtube.com/feeds/videos.xml"""
    return b"""<?xml version="1.0" encoding="UTF-8"?>
<feed xmlns:yt="http://www.youtube.com/xml/schemas/2015"
      xmlns:media="http://search.yahoo.com/mrss/"
      xmlns="http://www.w3.org/2005/Atom">
 <link rel="self" href="http://www.youtube.com/feeds/videos.xml?channel_id=UCalpha"/>
 <id>yt:channel:UCalpha</id>
 <yt:channelId>UCalpha</yt:channelId>
 <title>Alpha Channel</title>
 <published>2015-01-01T00:00:00+00:00</published>
 <entry>
  <id>yt:video:AAAAAAAAAA1</id>
  <yt:videoId>AAAAAAAAAA1</yt:videoId>
  <title>Older video</title>
  <link rel="alternate" href="https://www.youtube.com/watch?v=AAAAAAAAAA1"/>
  <published>2024-01-01T10:00:00+00:00</published>
  <updated>2024-01-02T10:00:00+00:00</updated>
 </entry>
 <entry>
  <id>yt:video:BBBBBBBBBB2</id>
  <yt:videoId>BBBBBBBBBB2</yt:videoId>
  <title>Newest video</title>
  <link rel="alternate" href="https://www.youtube.com/watch?v=BBBBBBBBBB2"/>
  <published>2024-01-03T10:00:00+00:00</published>
  <updated>2024-01-03T11:00:00+00:00</updated>
 </entry>
 <entry>
  <id>yt:video:CCCCCCCCCC3</id>
  <yt:videoId>CCCCCCCCCC3</yt:videoId>
  <title>A Short</title>
  <link rel="alternate" href="https://www.youtube.com/shorts/CCCCCCCCCC3"/>
  <published>2024-01-04T10:00:00+00:00</published>
 </entry>
 <entry>
  <id>yt:video:BBBBBBBBBB2</id>
  <yt:videoId>BBBBBBBBBB2</yt:videoId>
  <title>Newest video again</title>
  <link rel="alternate" href="https://www.youtube.com/watch?v=BBBBBBBBBB2"/>
  <published>2024-01-03T10:00:00+00:00</published>
 </entry>
</feed>
"""
