"""
feed-mirror: Mirror new YouTube channel uploads into one playlist.

This package watches the public upload feeds of a curated list of
channels and adds their new videos to a single YouTube playlist, either
on demand or on a fixed schedule.

Architecture:
    A sync pass is split into four steps:

    STEP 1 (youtube/): Read the destination playlist
        - One paginated scan collapsed into a set of video ids

    STEP 2 (feeds/): Read every channel feed
        - Download the channel's Atom feed
        - Parse it into (video id, publish time, url), newest first
        - Drop Shorts

    STEP 3 (sync/): Decide and add
        - Latest-only: newest video of each channel
        - Incremental: everything published after the channel's
          watermark, newest video only on first encounter
        - Insert the selected videos one at a time

    STEP 4 (core/): Persist
        - Watermarks and the run summary, in one SQLite transaction

Modules:
    core/       - Configuration, database, logging, progress, exceptions
    feeds/      - Feed download and parsing
    youtube/    - YouTube Data API client
    sync/       - Selection policies, sync engine, scheduler
    utils/      - Channel list import/export
    cli.py      - Command-line interface

Usage:
    Command Line:
        feed-mirror --sync
        feed-mirror --auto
        feed-mirror --watch

    Python API:
        from feed_mirror.core import load_config, Database, setup_logging
        from feed_mirror.feeds import FeedFetcher, FeedSource
        from feed_mirror.sync import SyncEngine
        from feed_mirror.youtube import YouTubeClient

        config = load_config()
        setup_logging(config.storage_directory / "logs")
        database = Database(config.storage_directory / "database.db")

        async with FeedFetcher() as fetcher, YouTubeClient(config.access_token) as client:
            engine = SyncEngine(FeedSource(fetcher), client, database, load_config)
            result = await engine.run_incremental()

Dependencies:
    - aiohttp: Feed and YouTube Data API requests
    - feedparser: Atom/RSS parsing
    - click / rich-click: CLI
    - rich: Progress bar
    - tqdm: Console logging alongside progress output
    - pyyaml: Configuration file parsing
    - python-dotenv: Access token from .env
"""

__version__ = "0.1.0"
__author__ = "feed-mirror"
__license__ = "MIT"

# Convenience imports for common usage
from feed_mirror.core import (
    ApiError,
    Config,
    ConfigError,
    Database,
    DatabaseError,
    FeedError,
    FeedMirrorError,
    get_logger,
    load_config,
    setup_logging,
)
from feed_mirror.feeds import FeedItem
from feed_mirror.sync import RunSummary, SyncEngine, SyncResult

__all__ = [
    # Version
    "__version__",
    # Core
    "Config",
    "load_config",
    "Database",
    "setup_logging",
    "get_logger",
    # Exceptions
    "FeedMirrorError",
    "ConfigError",
    "DatabaseError",
    "FeedError",
    "ApiError",
    # Models
    "FeedItem",
    "RunSummary",
    "SyncEngine",
    "SyncResult",
]
