"""
Sync engine: decides which feed items are new and adds them to the playlist.

One engine runs both sync modes. A pass is the same sequence of phases
in either mode, and a SelectionPolicy decides what each feed contributes.

Pass Phases:
    1. Membership:  one paginated scan of the destination playlist
    2. Feeds:       fetch + parse each feed in order, apply the policy,
                    merge the selection into the pending additions
    3. Appends:     insert pending videos one at a time
    4. Commit:      store watermarks (incremental only) and the RunSummary

Modes:
    run_latest_only(feed_keys, collection_id)
        On demand. Newest item per feed, no watermark read or write.
    run_incremental()
        Scheduled. Configuration comes from the config loader; items
        published after each feed's watermark are added and watermarks
        advance. New feeds bootstrap with their newest item only.

Failure Containment:
    - FeedError on one feed:     logged, feed skipped, its watermark untouched
    - ApiError on one append:    logged, not counted, pass continues
    - MembershipLookupError,
      DatabaseError:             pass aborted, RunSummary with the partial
                                 count and the error recorded

Concurrency:
    Feeds and appends are awaited strictly one after the other, with a
    fixed delay in between. Only one pass runs at a time: a pass requested
    while another is running is refused, never queued.

Usage:
    engine = SyncEngine(
        feed_source=FeedSource(fetcher),
        collection=youtube_client,
        store=database,
        config_loader=lambda: load_config(config_path),
        trigger=trigger,
    )
    result = await engine.run_latest_only(config.feed_keys, config.playlist.id)
    print(result.summary)
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Callable, ContextManager, Mapping, Protocol, Sequence

from feed_mirror.core.config import DEFAULT_APPEND_DELAY, DEFAULT_FEED_DELAY, Config
from feed_mirror.core.exceptions import ApiError, ConfigError, DatabaseError, FeedError, FeedMirrorError
from feed_mirror.core.logger import (
    format_added_message,
    format_pass_message,
    get_logger,
    log_append_failure,
    log_feed_failure,
)
from feed_mirror.core.progress import OUTCOME_ADDED, OUTCOME_DUPLICATE, OUTCOME_FAILED, NullProgress
from feed_mirror.feeds.fetcher import feed_url
from feed_mirror.feeds.models import FeedItem, newest_first
from feed_mirror.sync.models import MODE_INCREMENTAL, MODE_LATEST, RunSummary, SyncResult, now_ms
from feed_mirror.sync.policy import NEVER_SYNCED, IncrementalPolicy, LatestOnlyPolicy, SelectionPolicy
from feed_mirror.youtube.models import AppendResult

logger = get_logger(__name__)


PASS_IN_PROGRESS = "A sync pass is already in progress"
NO_PLAYLIST = "No destination playlist configured"


# =============================================================================
# Collaborator interfaces
# =============================================================================

class FeedItemSource(Protocol):
    async def fetch_feed_items(self, feed_key: str) -> list[FeedItem]: ...


class Collection(Protocol):
    async def get_collection_members(self, playlist_id: str) -> set[str]: ...

    async def append_item(self, playlist_id: str, video_id: str) -> AppendResult: ...


class StateStore(Protocol):
    def load_watermarks(self) -> dict[str, int]: ...

    def save_run_summary(self, summary: Mapping[str, Any]) -> None: ...

    def commit_pass(self, watermarks: Mapping[str, int], summary: Mapping[str, Any]) -> None: ...


class Trigger(Protocol):
    def clear(self) -> None: ...


ProgressFactory = Callable[..., ContextManager[Any]]


@dataclass
class _PassState:
    """Counters of the running pass, kept so an abort can report them."""
    items_added: int = 0
    feeds_processed: int = 0
    feeds_failed: int = 0
    appends_failed: int = 0
    duplicates: int = 0

    def to_result(self, error: str | None = None) -> SyncResult:
        return SyncResult(
            success=error is None,
            items_added=self.items_added,
            error=error,
            feeds_processed=self.feeds_processed,
            feeds_failed=self.feeds_failed,
            appends_failed=self.appends_failed,
            duplicates=self.duplicates,
        )


class SyncEngine:
    """
    Orchestrates sync passes over a list of feeds.

    Args:
        feed_source: Provides fetch_feed_items(feed_key).
        collection: Provides get_collection_members() and append_item().
        store: Watermark and run summary persistence. Its methods are
               blocking and run through asyncio.to_thread().
        config_loader: Zero-argument callable returning a fresh Config,
                       called at the start of every incremental pass.
        trigger: Recurring timer, cleared when the period is set to 0.
        progress_factory: Called as progress_factory(total=, description=)
                          around the append loop. Default: NullProgress.
        feed_delay: Seconds between two feeds.
        append_delay: Seconds before each append.
    """

    def __init__(
        self,
        feed_source: FeedItemSource,
        collection: Collection,
        store: StateStore,
        config_loader: Callable[[], Config],
        trigger: Trigger | None = None,
        progress_factory: ProgressFactory = NullProgress,
        feed_delay: float = DEFAULT_FEED_DELAY,
        append_delay: float = DEFAULT_APPEND_DELAY
    ) -> None:
        self._feed_source = feed_source
        self._collection = collection
        self._store = store
        self._config_loader = config_loader
        self._trigger = trigger
        self._progress_factory = progress_factory
        self.feed_delay = feed_delay
        self.append_delay = append_delay

        self._lock = asyncio.Lock()
        self._latest_policy = LatestOnlyPolicy()
        self._incremental_policy = IncrementalPolicy()

    @property
    def is_running(self) -> bool:
        """True while a pass holds the engine."""
        return self._lock.locked()

    # =========================================================================
    # Public operations
    # =========================================================================

    async def run_latest_only(self, feed_keys: Sequence[str], collection_id: str | None) -> SyncResult:
        """
        Add the newest video of each given feed to the playlist.

        Args:
            feed_keys: Channel ids to check, in order.
            collection_id: Destination playlist id.

        Returns:
            SyncResult. success is False when another pass is running,
            when collection_id is missing (no network call is made) or
            when the membership lookup fails (partial count reported).

        Note:
            An empty feed_keys returns success with 0 additions and makes
            no network call. Watermarks are never read or written.
        """
        if self._lock.locked():
            logger.warning(f"{PASS_IN_PROGRESS}; on-demand sync refused")
            return SyncResult(success=False, error=PASS_IN_PROGRESS)

        async with self._lock:
            if not collection_id:
                logger.error(f"{NO_PLAYLIST}. Use --use-playlist or set playlist.id in config.yaml.")
                return SyncResult(success=False, error=NO_PLAYLIST)

            if not feed_keys:
                logger.info("No feeds to check")
                return SyncResult(success=True)

            return await self._run_pass(
                MODE_LATEST, self._latest_policy, list(feed_keys), collection_id, now_ms()
            )

    async def run_incremental(self) -> SyncResult | None:
        """
        Run one scheduled pass driven by the current configuration.

        Returns:
            None when the pass was skipped (another pass running, or the
            sync period is 0, in which case the trigger is cleared),
            otherwise a SyncResult. The outcome is also observable through
            the stored RunSummary.

        Guard Clauses (before any feed is fetched):
            - Config unreadable: failure summary recorded, pass aborted
            - period_minutes <= 0: trigger cleared, nothing else happens
            - No playlist id: error logged, no summary written
            - No feeds: logged, success with 0 additions, no summary written
        """
        if self._lock.locked():
            logger.warning(f"{PASS_IN_PROGRESS}; scheduled sync skipped")
            return None

        async with self._lock:
            started_at = now_ms()

            try:
                config = self._config_loader()
            except ConfigError as e:
                logger.error(f"Cannot load configuration: {e.message}")
                await self._record_summary(RunSummary(
                    mode=MODE_INCREMENTAL,
                    started_at=started_at,
                    items_added=0,
                    error=e.message,
                    finished_at=now_ms(),
                ))
                return SyncResult(success=False, error=e.message)

            if config.sync.period_minutes <= 0:
                logger.info("Scheduled sync is disabled (sync.period_minutes is 0)")
                if self._trigger is not None:
                    self._trigger.clear()
                return None

            if not config.playlist.id:
                logger.error(f"{NO_PLAYLIST}; scheduled sync aborted")
                return SyncResult(success=False, error=NO_PLAYLIST)

            if not config.feeds:
                logger.info("No feeds configured; scheduled sync has nothing to do")
                return SyncResult(success=True)

            return await self._run_pass(
                MODE_INCREMENTAL,
                self._incremental_policy,
                config.feed_keys,
                config.playlist.id,
                started_at
            )

    # =========================================================================
    # Pass
    # =========================================================================

    async def _run_pass(
        self,
        mode: str,
        policy: SelectionPolicy,
        feed_keys: list[str],
        collection_id: str,
        started_at: int
    ) -> SyncResult:
        state = _PassState()
        logger.info(f"Starting {mode} sync of {len(feed_keys)} feed(s)")

        try:
            watermarks: dict[str, int] = {}
            if policy.uses_watermarks:
                watermarks = await asyncio.to_thread(self._store.load_watermarks)

            members = await self._collection.get_collection_members(collection_id)

            pending, new_watermarks = await self._collect_pending(
                feed_keys, policy, watermarks, members, state
            )
            await self._append_pending(collection_id, pending, state)

            summary = RunSummary(
                mode=mode,
                started_at=started_at,
                items_added=state.items_added,
                finished_at=now_ms(),
            )
            if policy.uses_watermarks:
                await asyncio.to_thread(self._store.commit_pass, new_watermarks, summary.to_dict())
            else:
                await asyncio.to_thread(self._store.save_run_summary, summary.to_dict())

        except FeedMirrorError as e:
            logger.error(format_pass_message(mode, state.items_added, e.message))
            if e.details:
                logger.debug(f"Details: {e.details}")
            await self._record_summary(RunSummary(
                mode=mode,
                started_at=started_at,
                items_added=state.items_added,
                error=e.message,
                finished_at=now_ms(),
            ))
            return state.to_result(error=e.message)

        logger.info(format_pass_message(mode, state.items_added))
        return state.to_result()

    async def _collect_pending(
        self,
        feed_keys: list[str],
        policy: SelectionPolicy,
        watermarks: dict[str, int],
        members: set[str],
        state: _PassState
    ) -> tuple[dict[str, FeedItem], dict[str, int]]:
        """
        Fetch every feed and merge the policy's selections.

        Returns:
            Tuple of (pending additions keyed by video id in insertion
            order, new watermarks of the feeds parsed successfully).
        """
        pending: dict[str, FeedItem] = {}
        new_watermarks: dict[str, int] = {}

        for index, feed_key in enumerate(feed_keys):
            if index > 0 and self.feed_delay > 0:
                await asyncio.sleep(self.feed_delay)

            try:
                items = await self._feed_source.fetch_feed_items(feed_key)
            except FeedError as e:
                state.feeds_failed += 1
                log_feed_failure(logger, feed_key, feed_url(feed_key), e.message)
                continue

            state.feeds_processed += 1
            last_seen = watermarks.get(feed_key, NEVER_SYNCED)
            selection = policy.select(newest_first(items), last_seen)

            if policy.uses_watermarks:
                new_watermarks[feed_key] = selection.watermark

            for item in selection.selected:
                if item.id in pending:
                    continue
                if item.id in members:
                    state.duplicates += 1
                    logger.debug(f"Video {item.id} is already in the playlist")
                    continue
                pending[item.id] = item

            logger.debug(
                f"Feed {feed_key}: {len(items)} item(s), "
                f"{len(selection.selected)} selected, watermark {selection.watermark}"
            )

        return pending, new_watermarks

    async def _append_pending(
        self,
        collection_id: str,
        pending: dict[str, FeedItem],
        state: _PassState
    ) -> None:
        if not pending:
            logger.info("No new videos to add")
            return

        logger.info(f"Adding {len(pending)} video(s) to the playlist")

        with self._progress_factory(total=len(pending), description="Adding") as progress:
            for video_id in pending:
                if self.append_delay > 0:
                    await asyncio.sleep(self.append_delay)

                try:
                    result = await self._collection.append_item(collection_id, video_id)
                except ApiError as e:
                    state.appends_failed += 1
                    log_append_failure(logger, video_id, e.message)
                    progress.update(OUTCOME_FAILED)
                    continue

                if result.added:
                    state.items_added += 1
                    logger.info(format_added_message(video_id))
                    progress.update(OUTCOME_ADDED)
                else:
                    state.duplicates += 1
                    logger.debug(f"Video {video_id} was already in the playlist")
                    progress.update(OUTCOME_DUPLICATE)

    async def _record_summary(self, summary: RunSummary) -> None:
        """Store a failure summary; a store that is itself failing is only logged."""
        try:
            await asyncio.to_thread(self._store.save_run_summary, summary.to_dict())
        except DatabaseError as e:
            logger.error(f"Could not record run summary: {e.message}")
