"""
Core module for feed-mirror.

This module provides the foundational components used throughout the application:
    - exceptions: Custom exception classes for error handling
    - config: Configuration loading and validation
    - database: Thread-safe SQLite store for watermarks and the run summary
    - logger: Logging system with multiple outputs
    - progress: Rich progress bar for the append loop

Usage:
    from feed_mirror.core import (
        Config, load_config,
        Database,
        setup_logging, get_logger,
        FeedMirrorError, ConfigError, DatabaseError
    )
"""

from feed_mirror.core.config import (
    Config,
    FeedConfig,
    PlaylistConfig,
    SyncConfig,
    load_config,
    save_feeds,
    save_playlist,
)
from feed_mirror.core.database import Database
from feed_mirror.core.exceptions import (
    ApiError,
    AppendError,
    AuthError,
    ConfigError,
    DatabaseError,
    FeedError,
    FeedMirrorError,
    FetchError,
    MembershipLookupError,
    ParseError,
)
from feed_mirror.core.logger import (
    get_logger,
    log_append_failure,
    log_feed_failure,
    setup_logging,
    shutdown_logging,
)

__all__ = [
    # Config
    "Config",
    "FeedConfig",
    "PlaylistConfig",
    "SyncConfig",
    "load_config",
    "save_feeds",
    "save_playlist",
    # Database
    "Database",
    # Exceptions
    "FeedMirrorError",
    "ConfigError",
    "DatabaseError",
    "FeedError",
    "FetchError",
    "ParseError",
    "ApiError",
    "AuthError",
    "AppendError",
    "MembershipLookupError",
    # Logger
    "setup_logging",
    "get_logger",
    "log_feed_failure",
    "log_append_failure",
    "shutdown_logging",
]
