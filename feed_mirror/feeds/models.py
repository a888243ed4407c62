"""
Data models for feed entries.

FeedItem is the only record that flows from the feed layer into the sync
engine. It is frozen: the engine never mutates items, it only selects them.
"""

from dataclasses import dataclass


# YouTube video ids are always 11 characters of [A-Za-z0-9_-]
VIDEO_ID_LENGTH = 11


@dataclass(frozen=True)
class FeedItem:
    """
    Immutable representation of one published video.

    Attributes:
        id: 11-character YouTube video id.
            Example: "dQw4w9WgXcQ"

        published_at: Publication time in milliseconds since the epoch (UTC).
                      Compared against the feed's watermark.
                      Example: 1700000000000

        url: Watch URL of the video as found in the feed.
             Example: "https://www.youtube.com/watch?v=dQw4w9WgXcQ"
    """
    id: str
    published_at: int
    url: str = ""


def newest_first(items: list[FeedItem]) -> list[FeedItem]:
    """
    Return items sorted by published_at, newest first.

    The sort is stable, so items with equal timestamps keep the order the
    feed listed them in.
    """
    return sorted(items, key=lambda item: item.published_at, reverse=True)
