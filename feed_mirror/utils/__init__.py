"""
Utility functions for feed-mirror.

This module provides helpers shared by the CLI:
    - Channel list import/export (JSON, one object per channel)
    - Path helpers

Channel List Format:
    [
      {"channelName": "Some Channel",
       "rssUrl": "https://www.youtube.com/feeds/videos.xml?channel_id=UC..."},
      ...
    ]

    Plain strings containing "channel_id=<id>" are accepted on import too.

Usage:
    from feed_mirror.utils import export_channels, import_channels

    export_channels(channels, Path("youtube_channels_rss.json"))
    channels = import_channels(Path("youtube_channels_rss.json"))
"""

import json
import re
from pathlib import Path
from typing import Any, Iterable

from feed_mirror.core.exceptions import ConfigError
from feed_mirror.core.logger import get_logger
from feed_mirror.feeds.fetcher import feed_url
from feed_mirror.youtube.models import Channel

logger = get_logger(__name__)


CHANNEL_ID_PATTERN = re.compile(r"channel_id=([a-zA-Z0-9_-]+)")

IMPORTED_CHANNEL_NAME = "Unknown (Imported)"


def ensure_directory(path: Path) -> Path:
    """
    Ensure a directory exists, creating it if necessary.

    Args:
        path: Path to the directory.

    Returns:
        The same path (for chaining).

    Raises:
        OSError: If directory cannot be created (permissions, etc.)
    """
    path.mkdir(parents=True, exist_ok=True)
    return path


def export_channels(channels: Iterable[Channel], path: Path) -> int:
    """
    Write a channel list as JSON.

    Args:
        channels: Channels to export, in order.
        path: Destination file (overwritten).

    Returns:
        Number of channels written.

    Raises:
        ConfigError: If the file cannot be written.
    """
    data = [
        {"channelName": channel.name, "rssUrl": feed_url(channel.id)}
        for channel in channels
    ]
    try:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
    except OSError as e:
        raise ConfigError(
            f"Failed to write channel list: {e}",
            details={"file_path": str(path), "original_error": str(e)}
        ) from e

    logger.debug(f"Exported {len(data)} channels to {path}")
    return len(data)


def import_channels(path: Path) -> list[Channel]:
    """
    Read a channel list written by export_channels().

    Args:
        path: JSON file to read.

    Returns:
        Channels in file order, unique by id (first occurrence wins).
        Rows without a recognizable channel id are skipped.

    Raises:
        ConfigError: If the file cannot be read, is not valid JSON,
                     or is not a JSON array.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except OSError as e:
        raise ConfigError(
            f"Failed to read channel list: {e}",
            details={"file_path": str(path), "original_error": str(e)}
        ) from e
    except json.JSONDecodeError as e:
        raise ConfigError(
            f"Invalid JSON in channel list: {e}",
            details={"file_path": str(path), "original_error": str(e)}
        ) from e

    if not isinstance(data, list):
        raise ConfigError(
            "Channel list must be a JSON array",
            details={"file_path": str(path)}
        )

    channels: list[Channel] = []
    seen: set[str] = set()
    for row in data:
        channel = _channel_from_row(row)
        if channel is None:
            logger.debug(f"Skipping channel list row: {row!r}")
            continue
        if channel.id in seen:
            continue
        seen.add(channel.id)
        channels.append(channel)

    return channels


def _channel_from_row(row: Any) -> Channel | None:
    if isinstance(row, str):
        match = CHANNEL_ID_PATTERN.search(row)
        return Channel(id=match.group(1), name=IMPORTED_CHANNEL_NAME) if match else None

    if isinstance(row, dict) and row.get("rssUrl"):
        match = CHANNEL_ID_PATTERN.search(str(row["rssUrl"]))
        if match:
            return Channel(id=match.group(1), name=row.get("channelName") or IMPORTED_CHANNEL_NAME)

    return None
