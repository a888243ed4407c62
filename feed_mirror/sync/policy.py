"""
Selection policies: which items of one feed a pass should add.

Both sync modes share the same engine; they differ only in how a feed's
items and its stored watermark turn into (selected items, new watermark).

    LatestOnlyPolicy   newest item, always; watermarks ignored
    IncrementalPolicy  newest item on first encounter, then everything
                       published after the watermark

Policies are pure: no I/O, no logging. Input items must be newest first
(the engine sorts them before calling select()).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from feed_mirror.feeds.models import FeedItem


NEVER_SYNCED = 0


@dataclass(frozen=True)
class FeedSelection:
    """
    Decision for one feed.

    Attributes:
        selected: Items to add, newest first.
        watermark: Watermark to store for the feed after this pass.
    """
    selected: tuple[FeedItem, ...]
    watermark: int


class SelectionPolicy(ABC):
    """Base class of the two selection rules."""

    # Whether the engine loads and commits watermarks for this policy
    uses_watermarks: bool = False

    @abstractmethod
    def select(self, items: list[FeedItem], last_seen: int) -> FeedSelection:
        """
        Decide which items of a feed to add.

        Args:
            items: The feed's items, newest first.
            last_seen: Stored watermark of the feed (NEVER_SYNCED if none).

        Returns:
            FeedSelection with the chosen items and the watermark to store.
        """


class LatestOnlyPolicy(SelectionPolicy):
    """Newest item of every feed, regardless of history."""

    uses_watermarks = False

    def select(self, items: list[FeedItem], last_seen: int) -> FeedSelection:
        return FeedSelection(selected=tuple(items[:1]), watermark=last_seen)


class IncrementalPolicy(SelectionPolicy):
    """
    Bootstrap-then-threshold rule.

    First encounter (last_seen == 0):
        Only the newest item is selected and the watermark jumps to its
        publish time, so a feed's back catalog is never bulk-imported.
        A feed with no items keeps watermark 0 and bootstraps later.

    Later passes:
        Every item with published_at > last_seen is selected. The new
        watermark is max(last_seen, newest published_at of ALL fetched
        items), so it never moves backward.
    """

    uses_watermarks = True

    def select(self, items: list[FeedItem], last_seen: int) -> FeedSelection:
        if not items:
            return FeedSelection(selected=(), watermark=last_seen)

        if last_seen == NEVER_SYNCED:
            newest = items[0]
            return FeedSelection(selected=(newest,), watermark=newest.published_at)

        selected = tuple(item for item in items if item.published_at > last_seen)
        newest_seen = max(item.published_at for item in items)
        return FeedSelection(selected=selected, watermark=max(last_seen, newest_seen))
