"""
Feed retrieval for feed-mirror.

Downloads the public Atom feed of a YouTube channel with aiohttp and hands
the bytes to the parser. No authentication is needed for feeds.

Feed URL:
    https://www.youtube.com/feeds/videos.xml?channel_id=<channel id>

Usage:
    async with FeedFetcher(timeout=30) as fetcher:
        source = FeedSource(fetcher)
        items = await source.fetch_feed_items("UCxxxxxxxxxxxxxxxxxxxxxx")
"""

import asyncio

import aiohttp

from feed_mirror.core.exceptions import FetchError
from feed_mirror.core.logger import get_logger
from feed_mirror.feeds.models import FeedItem
from feed_mirror.feeds.parser import parse_feed

logger = get_logger(__name__)


FEED_URL_TEMPLATE = "https://www.youtube.com/feeds/videos.xml?channel_id={channel_id}"

HTTP_OK = 200


def feed_url(channel_id: str) -> str:
    """Return the Atom feed URL of a channel."""
    return FEED_URL_TEMPLATE.format(channel_id=channel_id)


class FeedFetcher:
    """
    Downloads raw feed documents.

    Owns an aiohttp.ClientSession unless one is injected. Use as an async
    context manager, or call close() when done.

    Attributes:
        timeout: Total per-request timeout in seconds.
    """

    def __init__(self, timeout: float = 30.0, session: aiohttp.ClientSession | None = None) -> None:
        self.timeout = timeout
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> "FeedFetcher":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
        return self._session

    async def close(self) -> None:
        if self._session is not None and self._owns_session:
            await self._session.close()
        self._session = None

    async def fetch(self, feed_key: str) -> bytes:
        """
        Download the feed document of a channel.

        Args:
            feed_key: YouTube channel id.

        Returns:
            Raw response body.

        Raises:
            FetchError: On non-200 responses, timeouts and connection errors.
        """
        url = feed_url(feed_key)
        try:
            async with self._get_session().get(url) as response:
                if response.status != HTTP_OK:
                    raise FetchError(
                        f"Feed request failed with status {response.status}",
                        details={"feed_key": feed_key, "url": url, "status": response.status}
                    )
                return await response.read()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise FetchError(
                f"Feed request failed: {str(e) or type(e).__name__}",
                details={"feed_key": feed_key, "url": url, "original_error": repr(e)}
            ) from e


class FeedSource:
    """
    Fetch-and-parse collaborator used by the sync engine.

    fetch_feed_items() returns the feed's items newest first, or raises
    FetchError / ParseError. An empty list is a valid success.
    """

    def __init__(self, fetcher: FeedFetcher) -> None:
        self._fetcher = fetcher

    async def fetch_feed_items(self, feed_key: str) -> list[FeedItem]:
        raw = await self._fetcher.fetch(feed_key)
        items = parse_feed(raw)
        logger.debug(f"Feed {feed_key}: {len(items)} item(s)")
        return items
