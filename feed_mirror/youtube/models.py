"""
Data models for YouTube Data API entities.

Design Decisions:
    - All dataclasses are frozen (immutable)
    - from_api() factories accept the raw API resource dicts and tolerate
      missing optional fields
"""

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class Channel:
    """
    A publisher channel, i.e. one feed.

    Attributes:
        id: Channel id, also the feed key.
            Example: "UC_x5XG1OV2P6uZZ5FSM9Ttw"
        name: Channel title.
    """
    id: str
    name: str = ""

    @classmethod
    def from_subscription(cls, resource: dict[str, Any]) -> "Channel | None":
        """
        Create a Channel from a 'subscriptions' resource.

        Returns:
            Channel, or None if the resource has no channel id.
        """
        snippet = resource.get("snippet") or {}
        channel_id = (snippet.get("resourceId") or {}).get("channelId")
        if not channel_id:
            return None
        return cls(id=channel_id, name=snippet.get("title", ""))


@dataclass(frozen=True)
class PlaylistInfo:
    """
    One of the user's playlists, a candidate destination collection.

    Attributes:
        id: Playlist id.
        title: Playlist title.
    """
    id: str
    title: str = ""

    @classmethod
    def from_api(cls, resource: dict[str, Any]) -> "PlaylistInfo":
        snippet = resource.get("snippet") or {}
        return cls(id=resource["id"], title=snippet.get("title", ""))


@dataclass(frozen=True)
class AppendResult:
    """
    Outcome of a playlist insert that did not fail.

    Attributes:
        added: True if the video was inserted, False if the playlist
               already contained it (HTTP 409). A duplicate is not an error.
    """
    added: bool
