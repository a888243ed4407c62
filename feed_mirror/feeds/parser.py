"""
Feed document parser for feed-mirror.

Turns a raw YouTube channel feed (Atom, with an RSS fallback) into an
ordered list of FeedItem records.

Output Contract:
    - Newest first (sorted by published_at, descending, stable)
    - Unique by video id (first occurrence wins)
    - Only 11-character video ids
    - Shorts (links under /shorts/) removed
    - Entries without a parseable publication time removed

    The sync engine selects the bootstrap item at index 0 and sorts
    again before selection.

Id Extraction Order:
    Atom entry:  <yt:videoId>, then "yt:video:<id>" in <id>
    RSS item:    video id from <link>, then "yt:video:<id>" in <guid>
"""

import calendar
import re
import time
from typing import Any

import feedparser

from feed_mirror.core.exceptions import ParseError
from feed_mirror.core.logger import get_logger
from feed_mirror.feeds.models import VIDEO_ID_LENGTH, FeedItem, newest_first

logger = get_logger(__name__)


YT_VIDEO_PREFIX = "yt:video:"

# Matches watch?v=, /v/, /embed/, /shorts/ and youtu.be links
VIDEO_URL_PATTERN = re.compile(
    r"(?:youtube\.com/(?:[^/]+/.+/|(?:v|e(?:mbed)?|shorts)/|.*[?&]v=)|youtu\.be/)"
    r"([^\"&?/\s]{11})"
)

SHORTS_MARKER = "/shorts/"


def parse_feed(raw: bytes | str) -> list[FeedItem]:
    """
    Parse a feed document into FeedItem records, newest first.

    Args:
        raw: The feed document as returned by the fetcher.

    Returns:
        List of FeedItem. An empty list is a valid result (a channel
        without uploads, or one whose feed only lists Shorts).

    Raises:
        ParseError: If the document is not a recognizable feed.
    """
    parsed = feedparser.parse(raw)

    if not parsed.entries and (parsed.bozo or not parsed.version):
        reason = parsed.get("bozo_exception") or "document is not an Atom or RSS feed"
        raise ParseError(
            f"Invalid feed document: {reason}",
            details={"original_error": str(reason)}
        )

    items: list[FeedItem] = []
    seen: set[str] = set()
    is_atom = parsed.version.startswith("atom") if parsed.version else False

    for entry in parsed.entries:
        video_id = _extract_atom_id(entry) if is_atom else _extract_rss_id(entry)
        if video_id is None:
            logger.debug(f"Feed entry without a video id: {entry.get('id', '?')}")
            continue

        if video_id in seen:
            continue

        link = entry.get("link", "")
        if SHORTS_MARKER in link:
            logger.debug(f"Skipping Short {video_id}")
            continue

        published_at = _extract_published_at(entry)
        if published_at is None:
            logger.debug(f"Feed entry {video_id} has no publication time")
            continue

        seen.add(video_id)
        items.append(FeedItem(
            id=video_id,
            published_at=published_at,
            url=link or f"https://www.youtube.com/watch?v={video_id}",
        ))

    return newest_first(items)


def _is_video_id(value: Any) -> bool:
    return isinstance(value, str) and len(value) == VIDEO_ID_LENGTH


def _id_from_prefixed(value: Any) -> str | None:
    if isinstance(value, str) and YT_VIDEO_PREFIX in value:
        candidate = value.split(":")[-1]
        if _is_video_id(candidate):
            return candidate
    return None


def _extract_atom_id(entry: Any) -> str | None:
    # feedparser exposes <yt:videoId> as yt_videoid
    video_id = entry.get("yt_videoid")
    if _is_video_id(video_id):
        return video_id
    return _id_from_prefixed(entry.get("id"))


def _extract_rss_id(entry: Any) -> str | None:
    link = entry.get("link")
    if link:
        match = VIDEO_URL_PATTERN.search(link)
        if match:
            return match.group(1)
        return None
    return _id_from_prefixed(entry.get("id"))


def _extract_published_at(entry: Any) -> int | None:
    """Publication time in ms since epoch, falling back to the update time."""
    parsed_time: time.struct_time | None = (
        entry.get("published_parsed") or entry.get("updated_parsed")
    )
    if parsed_time is None:
        return None
    # feedparser normalizes to UTC
    return calendar.timegm(parsed_time) * 1000
