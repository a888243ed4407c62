"""
Feed layer for feed-mirror.

This package turns a channel id into the channel's recent uploads:
    - models: FeedItem record and ordering helper
    - fetcher: aiohttp download of the channel's Atom feed, FeedSource
    - parser: feedparser-based extraction of video ids and publish times
"""

from feed_mirror.feeds.fetcher import FeedFetcher, FeedSource, feed_url
from feed_mirror.feeds.models import FeedItem, newest_first
from feed_mirror.feeds.parser import parse_feed

__all__ = [
    "FeedItem",
    "newest_first",
    "FeedFetcher",
    "FeedSource",
    "feed_url",
    "parse_feed",
]
