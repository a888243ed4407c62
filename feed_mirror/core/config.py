"""
Configuration management for feed-mirror.

This module handles loading, validating, and providing access to the
application configuration stored in config.yaml.

The configuration file contains:
    - YouTube access token (optional, may come from the environment)
    - Destination playlist (the aggregation collection)
    - Curated feed list (YouTube channel ids)
    - Sync period and throttling delays
    - Storage directory for the state database and logs

Configuration File Location:
    The config.yaml file is looked up in the current working directory
    unless an explicit path is given.

Example config.yaml:
    youtube:
      access_token: null  # Optional: falls back to YOUTUBE_ACCESS_TOKEN

    playlist:
      id: "PLxxxxxxxxxxxxxxxx"
      title: "Subscriptions mirror"

    feeds:
      - id: "UCxxxxxxxxxxxxxxxxxxxxxx"
        name: "Some Channel"

    sync:
      period_minutes: 60
      feed_delay: 0.1
      append_delay: 0.05
      request_timeout: 30

    storage:
      directory: "~/.feed-mirror"
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from feed_mirror.core.exceptions import ConfigError


# Default configuration file name (looked up in current working directory)
CONFIG_FILENAME = "config.yaml"

# Environment variable holding the OAuth access token
ACCESS_TOKEN_ENV = "YOUTUBE_ACCESS_TOKEN"

DEFAULT_PERIOD_MINUTES = 60
DEFAULT_FEED_DELAY = 0.1
DEFAULT_APPEND_DELAY = 0.05
DEFAULT_REQUEST_TIMEOUT = 30.0
DEFAULT_STORAGE_DIRECTORY = "~/.feed-mirror"


@dataclass(frozen=True)
class FeedConfig:
    """
    One curated publisher feed.

    Attributes:
        id: YouTube channel id ("UC" followed by 22 characters).
            Used as the feed key for watermarks.
        name: Display name, informational only.
    """
    id: str
    name: str = ""


@dataclass(frozen=True)
class PlaylistConfig:
    """
    Destination playlist configuration.

    Attributes:
        id: Playlist id new uploads are appended to. None when the user
            has not picked a playlist yet.
        title: Display title, informational only.
    """
    id: str | None
    title: str = ""


@dataclass(frozen=True)
class SyncConfig:
    """
    Sync behavior configuration.

    Attributes:
        period_minutes: Minutes between scheduled incremental passes.
                        0 disables scheduled sync. Default: 60.
        feed_delay: Seconds to wait between two feeds. Default: 0.1.
        append_delay: Seconds to wait before each playlist insert. Default: 0.05.
        request_timeout: Total timeout in seconds of a single HTTP request.
    """
    period_minutes: int = DEFAULT_PERIOD_MINUTES
    feed_delay: float = DEFAULT_FEED_DELAY
    append_delay: float = DEFAULT_APPEND_DELAY
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT


@dataclass(frozen=True)
class Config:
    """
    Complete application configuration.

    This is the main configuration object that aggregates all configuration
    sections. It is created by load_config() and should be treated as
    immutable (frozen dataclass).

    Attributes:
        access_token: OAuth bearer token for the YouTube Data API, or None.
        playlist: Destination playlist settings.
        feeds: Curated feed list, in configured order.
        sync: Period and throttling settings.
        storage_directory: Directory holding database.db and logs/.

    Example:
        config = load_config()
        print(f"Mirroring {len(config.feeds)} feeds into {config.playlist.id}")
    """
    access_token: str | None
    playlist: PlaylistConfig
    feeds: tuple[FeedConfig, ...]
    sync: SyncConfig
    storage_directory: Path

    @property
    def feed_keys(self) -> list[str]:
        """Channel ids of the configured feeds, in order."""
        return [feed.id for feed in self.feeds]


def load_config(config_path: Path | None = None) -> Config:
    """
    Load and validate configuration from config.yaml.

    Args:
        config_path: Optional explicit path to config file.
                     If None, looks for config.yaml in current working directory.

    Returns:
        Config: A frozen dataclass containing all configuration values.

    Raises:
        ConfigError: If the config file is not found, has invalid YAML syntax,
                     or contains invalid values.

    Behavior:
        1. Locate config file (explicit path or CWD/config.yaml)
        2. Read and parse YAML content
        3. Parse each section, applying defaults
        4. Resolve the access token (file first, then environment / .env)
        5. Create and return frozen Config object

    Note:
        A missing playlist id or an empty feed list is NOT a load error.
        The sync engine checks those before each pass so that a partially
        configured installation can still run --subscriptions or --playlists.
    """
    if config_path is None:
        config_path = Path.cwd() / CONFIG_FILENAME

    raw_config = _read_yaml(config_path)

    youtube_section = _get_section(raw_config, "youtube")
    access_token = youtube_section.get("access_token")
    if access_token is not None and not isinstance(access_token, str):
        raise ConfigError(
            "'youtube.access_token' must be a string or null",
            details={"field": "youtube.access_token"}
        )
    if not access_token:
        load_dotenv()
        access_token = os.getenv(ACCESS_TOKEN_ENV) or None

    return Config(
        access_token=access_token.strip() if access_token else None,
        playlist=_parse_playlist_config(_get_section(raw_config, "playlist")),
        feeds=_parse_feeds(raw_config.get("feeds")),
        sync=_parse_sync_config(_get_section(raw_config, "sync")),
        storage_directory=_parse_storage_directory(_get_section(raw_config, "storage")),
    )


def _read_yaml(config_path: Path) -> dict[str, Any]:
    """Read config_path and return its top-level mapping."""
    if not config_path.exists():
        raise ConfigError(
            f"Configuration file not found: {config_path}",
            details={"file_path": str(config_path)}
        )

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            content = f.read()
    except IOError as e:
        raise ConfigError(
            f"Failed to read configuration file: {e}",
            details={"file_path": str(config_path), "original_error": str(e)}
        ) from e

    try:
        raw_config = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigError(
            f"Invalid YAML syntax in configuration file: {e}",
            details={"file_path": str(config_path), "original_error": str(e)}
        ) from e

    # An empty file is a valid, fully defaulted configuration
    if raw_config is None:
        return {}

    if not isinstance(raw_config, dict):
        raise ConfigError(
            "Configuration file must contain a YAML dictionary",
            details={"file_path": str(config_path)}
        )

    return raw_config


def _get_section(raw_config: dict[str, Any], name: str) -> dict[str, Any]:
    section = raw_config.get(name)
    if section is None:
        return {}
    if not isinstance(section, dict):
        raise ConfigError(
            f"Section '{name}' must be a dictionary",
            details={"section": name}
        )
    return section


def _parse_playlist_config(playlist_section: dict[str, Any]) -> PlaylistConfig:
    """
    Parse the playlist section.

    Args:
        playlist_section: The 'playlist' section from config.yaml.

    Returns:
        PlaylistConfig with id None when not configured.

    Raises:
        ConfigError: If id is present but not a string.
    """
    playlist_id = playlist_section.get("id")
    if playlist_id is not None and not isinstance(playlist_id, str):
        raise ConfigError(
            "'playlist.id' must be a string or null",
            details={"field": "playlist.id"}
        )

    if playlist_id is not None:
        playlist_id = playlist_id.strip() or None

    title = playlist_section.get("title") or ""
    return PlaylistConfig(id=playlist_id, title=str(title))


def _parse_feeds(raw_feeds: Any) -> tuple[FeedConfig, ...]:
    """
    Parse and de-duplicate the feed list.

    Each entry may be a plain channel id string or a mapping with
    'id' and optional 'name'. Duplicate ids keep their first occurrence.

    Raises:
        ConfigError: If the section is not a list or an entry has no id.
    """
    if raw_feeds is None:
        return ()

    if not isinstance(raw_feeds, list):
        raise ConfigError(
            "'feeds' must be a list",
            details={"field": "feeds"}
        )

    feeds: list[FeedConfig] = []
    seen: set[str] = set()

    for index, entry in enumerate(raw_feeds):
        if isinstance(entry, str):
            feed_id, name = entry, ""
        elif isinstance(entry, dict):
            feed_id, name = entry.get("id"), entry.get("name") or ""
        else:
            feed_id, name = None, ""

        if not isinstance(feed_id, str) or not feed_id.strip():
            raise ConfigError(
                f"Feed entry {index} must have a non-empty 'id'",
                details={"field": f"feeds[{index}]"}
            )

        feed_id = feed_id.strip()
        if feed_id in seen:
            continue
        seen.add(feed_id)
        feeds.append(FeedConfig(id=feed_id, name=str(name)))

    return tuple(feeds)


def _parse_sync_config(sync_section: dict[str, Any]) -> SyncConfig:
    """
    Parse and validate the sync section.

    Applies defaults if fields are not specified.

    Raises:
        ConfigError: If the period is not a non-negative integer, or a
                     delay/timeout is not a non-negative number.
    """
    period = sync_section.get("period_minutes", DEFAULT_PERIOD_MINUTES)
    if period is None:
        period = 0
    if isinstance(period, bool) or not isinstance(period, int) or period < 0:
        raise ConfigError(
            "'sync.period_minutes' must be a non-negative integer",
            details={"field": "sync.period_minutes", "value": period}
        )

    values: dict[str, float] = {}
    for field_name, default in (
        ("feed_delay", DEFAULT_FEED_DELAY),
        ("append_delay", DEFAULT_APPEND_DELAY),
        ("request_timeout", DEFAULT_REQUEST_TIMEOUT),
    ):
        raw_value = sync_section.get(field_name, default)
        if isinstance(raw_value, bool) or not isinstance(raw_value, (int, float)) or raw_value < 0:
            raise ConfigError(
                f"'sync.{field_name}' must be a non-negative number",
                details={"field": f"sync.{field_name}", "value": raw_value}
            )
        values[field_name] = float(raw_value)

    return SyncConfig(period_minutes=period, **values)


def _parse_storage_directory(storage_section: dict[str, Any]) -> Path:
    directory = storage_section.get("directory", DEFAULT_STORAGE_DIRECTORY)

    if not isinstance(directory, str) or not directory.strip():
        raise ConfigError(
            "'storage.directory' must be a non-empty string",
            details={"field": "storage.directory"}
        )

    # Expand ~ and make absolute
    return Path(directory.strip()).expanduser().resolve()


def save_feeds(config_path: Path, feeds: list[FeedConfig]) -> None:
    """
    Replace the feed list in config.yaml, keeping every other section.

    Args:
        config_path: Path of the configuration file. Created if missing.
        feeds: New feed list, written in the given order.

    Raises:
        ConfigError: If the existing file is invalid or cannot be written.
    """
    raw_config = _read_yaml(config_path) if config_path.exists() else {}
    raw_config["feeds"] = [{"id": feed.id, "name": feed.name} for feed in feeds]
    _write_yaml(config_path, raw_config)


def save_playlist(config_path: Path, playlist_id: str, title: str = "") -> None:
    """
    Set the destination playlist in config.yaml, keeping every other section.

    Args:
        config_path: Path of the configuration file. Created if missing.
        playlist_id: Destination playlist id.
        title: Display title.
    """
    raw_config = _read_yaml(config_path) if config_path.exists() else {}
    raw_config["playlist"] = {"id": playlist_id, "title": title}
    _write_yaml(config_path, raw_config)


def _write_yaml(config_path: Path, raw_config: dict[str, Any]) -> None:
    try:
        with open(config_path, "w", encoding="utf-8") as f:
            yaml.safe_dump(raw_config, f, sort_keys=False, allow_unicode=True)
    except IOError as e:
        raise ConfigError(
            f"Failed to write configuration file: {e}",
            details={"file_path": str(config_path), "original_error": str(e)}
        ) from e
