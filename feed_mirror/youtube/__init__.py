"""
YouTube Data API layer for feed-mirror.

    - client: YouTubeClient (playlist membership, inserts, subscriptions)
    - models: Channel, PlaylistInfo, AppendResult
"""

from feed_mirror.youtube.client import YouTubeClient
from feed_mirror.youtube.models import AppendResult, Channel, PlaylistInfo

__all__ = [
    "YouTubeClient",
    "AppendResult",
    "Channel",
    "PlaylistInfo",
]
