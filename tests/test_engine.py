"""Sync engine tests"""

import asyncio

import pytest

from conftest import FakeCollection, FakeFeedSource, InMemoryStore, item, make_config
from feed_mirror.core.exceptions import ConfigError, FetchError, ParseError
from feed_mirror.sync.engine import NO_PLAYLIST, PASS_IN_PROGRESS, SyncEngine
from feed_mirror.sync.models import MODE_INCREMENTAL, MODE_LATEST


def make_engine(feed_source, collection, store, config=None, trigger=None, config_loader=None):
    config = config or make_config()
    return SyncEngine(
        feed_source=feed_source,
        collection=collection,
        store=store,
        config_loader=config_loader or (lambda: config),
        trigger=trigger,
        feed_delay=0,
        append_delay=0,
    )


class UnreliableMembership(FakeCollection):
    """Membership scan that misses videos already in the playlist"""

    async def get_collection_members(self, playlist_id):
        self.membership_calls += 1
        return set()


class TestLatestOnly:
    """Latest-only (on demand) passes"""

    @pytest.mark.asyncio
    async def test_empty_feed_list_makes_no_network_calls(self, feed_source, collection, store):
        engine = make_engine(feed_source, collection, store)

        result = await engine.run_latest_only([], "PLdestination")

        assert result.success
        assert result.items_added == 0
        assert collection.network_calls == 0
        assert feed_source.calls == []

    @pytest.mark.asyncio
    async def test_missing_playlist_fails_before_any_io(self, feed_source, collection, store):
        engine = make_engine(feed_source, collection, store)

        result = await engine.run_latest_only(["UCalpha"], None)

        assert not result.success
        assert result.error == NO_PLAYLIST
        assert collection.network_calls == 0
        assert feed_source.calls == []
        assert store.summary is None

    @pytest.mark.asyncio
    async def test_adds_newest_item_of_each_feed(self, collection, store):
        feed_source = FakeFeedSource({
            "UCalpha": [item("alpha000002", 200), item("alpha000001", 100)],
            "UCbeta": [item("beta0000003", 300), item("beta0000002", 250)],
        })
        engine = make_engine(feed_source, collection, store)

        result = await engine.run_latest_only(["UCalpha", "UCbeta"], "PLdestination")

        assert result.success
        assert result.items_added == 2
        assert collection.append_calls == ["alpha000002", "beta0000003"]

    @pytest.mark.asyncio
    async def test_never_touches_watermarks(self, collection):
        store = InMemoryStore({"UCalpha": 50})
        feed_source = FakeFeedSource({"UCalpha": [item("alpha000002", 200)]})
        engine = make_engine(feed_source, collection, store)

        await engine.run_latest_only(["UCalpha"], "PLdestination")

        assert store.watermarks == {"UCalpha": 50}
        assert store.commits == 0
        assert store.summary["mode"] == MODE_LATEST
        assert store.summary["items_added"] == 1
        assert store.summary["error"] is None

    @pytest.mark.asyncio
    async def test_items_already_in_playlist_are_not_appended(self, store):
        collection = FakeCollection(members={"alpha000002"})
        feed_source = FakeFeedSource({"UCalpha": [item("alpha000002", 200)]})
        engine = make_engine(feed_source, collection, store)

        result = await engine.run_latest_only(["UCalpha"], "PLdestination")

        assert result.success
        assert result.items_added == 0
        assert result.duplicates == 1
        assert collection.append_calls == []

    @pytest.mark.asyncio
    async def test_item_shared_by_two_feeds_is_appended_once(self, collection, store):
        shared = item("shared00001", 500)
        feed_source = FakeFeedSource({"UCalpha": [shared], "UCbeta": [shared]})
        engine = make_engine(feed_source, collection, store)

        result = await engine.run_latest_only(["UCalpha", "UCbeta"], "PLdestination")

        assert result.items_added == 1
        assert collection.append_calls == ["shared00001"]

    @pytest.mark.asyncio
    async def test_failing_feed_is_skipped(self, collection, store):
        feed_source = FakeFeedSource({
            "UCalpha": FetchError("Feed request failed with status 404"),
            "UCbeta": [item("beta0000003", 300)],
        })
        engine = make_engine(feed_source, collection, store)

        result = await engine.run_latest_only(["UCalpha", "UCbeta"], "PLdestination")

        assert result.success
        assert result.items_added == 1
        assert result.feeds_failed == 1
        assert result.feeds_processed == 1
        assert store.summary["error"] is None

    @pytest.mark.asyncio
    async def test_unsorted_feed_is_sorted_before_selection(self, collection, store):
        feed_source = FakeFeedSource({
            "UCalpha": [item("alpha000001", 100), item("alpha000003", 300), item("alpha000002", 200)],
        })
        engine = make_engine(feed_source, collection, store)

        await engine.run_latest_only(["UCalpha"], "PLdestination")

        assert collection.append_calls == ["alpha000003"]

    @pytest.mark.asyncio
    async def test_membership_failure_aborts_and_records_summary(self, feed_source, collection, store, membership_failure):
        collection.membership_error = membership_failure
        engine = make_engine(feed_source, collection, store)

        result = await engine.run_latest_only(["UCalpha"], "PLdestination")

        assert not result.success
        assert result.items_added == 0
        assert "Could not list playlist" in result.error
        assert feed_source.calls == []
        assert store.summary["error"] == membership_failure.message
        assert store.summary["mode"] == MODE_LATEST

    @pytest.mark.asyncio
    async def test_append_failure_is_not_counted_and_pass_continues(self, store):
        collection = FakeCollection(failing={"alpha000002"})
        feed_source = FakeFeedSource({
            "UCalpha": [item("alpha000002", 200)],
            "UCbeta": [item("beta0000003", 300)],
        })
        engine = make_engine(feed_source, collection, store)

        result = await engine.run_latest_only(["UCalpha", "UCbeta"], "PLdestination")

        assert result.success
        assert result.items_added == 1
        assert result.appends_failed == 1
        assert collection.append_calls == ["alpha000002", "beta0000003"]


class TestIncrementalBootstrap:
    """First encounter of a feed"""

    @pytest.mark.asyncio
    async def test_first_run_selects_only_newest_item(self, collection, store):
        feed_source = FakeFeedSource({
            "UCalpha": [item("AAAAAAAAAAA", 100), item("BBBBBBBBBBB", 90), item("CCCCCCCCCCC", 80)],
        })
        engine = make_engine(feed_source, collection, store, config=make_config(feeds=("UCalpha",)))

        result = await engine.run_incremental()

        assert result.success
        assert result.items_added == 1
        assert collection.append_calls == ["AAAAAAAAAAA"]
        assert store.watermarks == {"UCalpha": 100}

    @pytest.mark.asyncio
    async def test_older_items_are_never_added_later(self, collection, store):
        feed_source = FakeFeedSource({
            "UCalpha": [item("AAAAAAAAAAA", 100), item("BBBBBBBBBBB", 90), item("CCCCCCCCCCC", 80)],
        })
        engine = make_engine(feed_source, collection, store, config=make_config(feeds=("UCalpha",)))

        await engine.run_incremental()
        second = await engine.run_incremental()

        assert second.items_added == 0
        assert collection.append_calls == ["AAAAAAAAAAA"]
        assert store.watermarks == {"UCalpha": 100}

    @pytest.mark.asyncio
    async def test_empty_feed_creates_zero_watermark(self, collection, store):
        feed_source = FakeFeedSource({"UCalpha": []})
        engine = make_engine(feed_source, collection, store, config=make_config(feeds=("UCalpha",)))

        result = await engine.run_incremental()

        assert result.success
        assert store.watermarks == {"UCalpha": 0}

    @pytest.mark.asyncio
    async def test_feed_still_at_zero_bootstraps_on_next_pass(self, collection):
        store = InMemoryStore({"UCalpha": 0})
        feed_source = FakeFeedSource({"UCalpha": [item("AAAAAAAAAAA", 100), item("BBBBBBBBBBB", 90)]})
        engine = make_engine(feed_source, collection, store, config=make_config(feeds=("UCalpha",)))

        await engine.run_incremental()

        assert collection.append_calls == ["AAAAAAAAAAA"]
        assert store.watermarks == {"UCalpha": 100}


class TestIncrementalThreshold:
    """Feeds with an existing watermark"""

    @pytest.mark.asyncio
    async def test_selects_items_newer_than_watermark(self, collection):
        store = InMemoryStore({"UCalpha": 100})
        feed_source = FakeFeedSource({
            "UCalpha": [item("DDDDDDDDDDD", 150), item("EEEEEEEEEEE", 120), item("FFFFFFFFFFF", 90)],
        })
        engine = make_engine(feed_source, collection, store, config=make_config(feeds=("UCalpha",)))

        result = await engine.run_incremental()

        assert result.items_added == 2
        assert collection.append_calls == ["DDDDDDDDDDD", "EEEEEEEEEEE"]
        assert store.watermarks == {"UCalpha": 150}

    @pytest.mark.asyncio
    async def test_item_at_watermark_is_not_selected(self, collection):
        store = InMemoryStore({"UCalpha": 100})
        feed_source = FakeFeedSource({"UCalpha": [item("AAAAAAAAAAA", 100)]})
        engine = make_engine(feed_source, collection, store, config=make_config(feeds=("UCalpha",)))

        result = await engine.run_incremental()

        assert result.items_added == 0
        assert collection.append_calls == []
        assert store.watermarks == {"UCalpha": 100}

    @pytest.mark.asyncio
    async def test_watermark_never_moves_backward(self, collection):
        store = InMemoryStore({"UCalpha": 200})
        # Newer uploads were deleted; the feed now tops out below the watermark
        feed_source = FakeFeedSource({"UCalpha": [item("AAAAAAAAAAA", 150), item("BBBBBBBBBBB", 120)]})
        engine = make_engine(feed_source, collection, store, config=make_config(feeds=("UCalpha",)))

        for _ in range(3):
            await engine.run_incremental()
            assert store.watermarks["UCalpha"] == 200

        assert collection.append_calls == []

    @pytest.mark.asyncio
    async def test_thresholds_are_per_feed(self, collection):
        store = InMemoryStore({"UCalpha": 100, "UCbeta": 300})
        feed_source = FakeFeedSource({
            "UCalpha": [item("alpha000200", 200)],
            "UCbeta": [item("beta0000200", 200)],
        })
        engine = make_engine(feed_source, collection, store)

        result = await engine.run_incremental()

        assert collection.append_calls == ["alpha000200"]
        assert result.items_added == 1
        assert store.watermarks == {"UCalpha": 200, "UCbeta": 300}

    @pytest.mark.asyncio
    async def test_summary_and_watermarks_committed_together(self, collection):
        store = InMemoryStore({"UCalpha": 100})
        feed_source = FakeFeedSource({"UCalpha": [item("DDDDDDDDDDD", 150)]})
        engine = make_engine(feed_source, collection, store, config=make_config(feeds=("UCalpha",)))

        await engine.run_incremental()

        assert store.commits == 1
        assert store.summary["mode"] == MODE_INCREMENTAL
        assert store.summary["items_added"] == 1
        assert store.summary["error"] is None
        assert store.summary["finished_at"] >= store.summary["started_at"]


class TestIncrementalFailures:
    """Failure containment in incremental passes"""

    @pytest.mark.asyncio
    async def test_failing_feed_does_not_affect_other_feeds(self, collection):
        store = InMemoryStore({"UCalpha": 50, "UCbeta": 100})
        feed_source = FakeFeedSource({
            "UCalpha": ParseError("Invalid feed document: not well-formed"),
            "UCbeta": [item("beta0000150", 150)],
        })
        engine = make_engine(feed_source, collection, store)

        result = await engine.run_incremental()

        assert result.success
        assert result.feeds_failed == 1
        assert collection.append_calls == ["beta0000150"]
        assert store.watermarks == {"UCalpha": 50, "UCbeta": 150}

    @pytest.mark.asyncio
    async def test_duplicate_reported_by_append_is_not_counted(self):
        collection = UnreliableMembership(members={"AAAAAAAAAAA"})
        store = InMemoryStore({"UCalpha": 100})
        feed_source = FakeFeedSource({"UCalpha": [item("AAAAAAAAAAA", 150)]})
        engine = make_engine(feed_source, collection, store, config=make_config(feeds=("UCalpha",)))

        result = await engine.run_incremental()

        assert result.success
        assert result.items_added == 0
        assert result.duplicates == 1
        assert collection.append_calls == ["AAAAAAAAAAA"]
        assert store.watermarks == {"UCalpha": 150}

    @pytest.mark.asyncio
    async def test_failed_append_still_advances_watermark(self):
        collection = FakeCollection(failing={"AAAAAAAAAAA"})
        store = InMemoryStore({"UCalpha": 100})
        feed_source = FakeFeedSource({"UCalpha": [item("AAAAAAAAAAA", 150)]})
        engine = make_engine(feed_source, collection, store, config=make_config(feeds=("UCalpha",)))

        result = await engine.run_incremental()

        assert result.success
        assert result.appends_failed == 1
        assert result.items_added == 0
        assert store.watermarks == {"UCalpha": 150}

    @pytest.mark.asyncio
    async def test_membership_failure_keeps_watermarks(self, feed_source, collection, membership_failure):
        collection.membership_error = membership_failure
        store = InMemoryStore({"UCalpha": 100})
        engine = make_engine(feed_source, collection, store)

        result = await engine.run_incremental()

        assert not result.success
        assert store.commits == 0
        assert store.watermarks == {"UCalpha": 100}
        assert store.summary["error"] == membership_failure.message
        assert store.summary["mode"] == MODE_INCREMENTAL

    @pytest.mark.asyncio
    async def test_commit_failure_is_reported(self, collection):
        store = InMemoryStore()
        store.fail_commit = True
        feed_source = FakeFeedSource({"UCalpha": [item("AAAAAAAAAAA", 100)]})
        engine = make_engine(feed_source, collection, store, config=make_config(feeds=("UCalpha",)))

        result = await engine.run_incremental()

        assert not result.success
        assert result.items_added == 1
        assert store.watermarks == {}
        assert store.summary["error"] == "database is locked"
        assert store.summary["items_added"] == 1

    @pytest.mark.asyncio
    async def test_config_error_records_summary(self, feed_source, collection, store):
        def broken_loader():
            raise ConfigError("Configuration file not found: config.yaml")

        engine = make_engine(feed_source, collection, store, config_loader=broken_loader)

        result = await engine.run_incremental()

        assert not result.success
        assert collection.network_calls == 0
        assert store.summary["error"] == "Configuration file not found: config.yaml"


class TestIncrementalGuards:
    """Guard clauses evaluated before any feed is fetched"""

    @pytest.mark.asyncio
    async def test_zero_period_clears_trigger(self, feed_source, collection, store, trigger):
        engine = make_engine(
            feed_source, collection, store, config=make_config(period_minutes=0), trigger=trigger
        )

        result = await engine.run_incremental()

        assert result is None
        assert trigger.cleared == 1
        assert feed_source.calls == []
        assert collection.network_calls == 0
        assert store.summary is None

    @pytest.mark.asyncio
    async def test_missing_playlist_aborts(self, feed_source, collection, store):
        engine = make_engine(feed_source, collection, store, config=make_config(playlist_id=None))

        result = await engine.run_incremental()

        assert not result.success
        assert result.error == NO_PLAYLIST
        assert collection.network_calls == 0
        assert store.summary is None

    @pytest.mark.asyncio
    async def test_no_feeds_does_nothing(self, feed_source, collection, store):
        engine = make_engine(feed_source, collection, store, config=make_config(feeds=()))

        result = await engine.run_incremental()

        assert result.success
        assert result.items_added == 0
        assert collection.network_calls == 0
        assert store.summary is None


class BlockingFeedSource(FakeFeedSource):
    """Feed source that waits until released"""

    def __init__(self, feeds):
        super().__init__(feeds)
        self.entered = asyncio.Event()
        self.release = asyncio.Event()

    async def fetch_feed_items(self, feed_key):
        self.entered.set()
        await self.release.wait()
        return await super().fetch_feed_items(feed_key)


class TestReentrancy:
    """Only one pass at a time"""

    @pytest.mark.asyncio
    async def test_second_pass_is_refused_while_running(self, collection, store):
        feed_source = BlockingFeedSource({"UCalpha": [item("AAAAAAAAAAA", 100)]})
        engine = make_engine(feed_source, collection, store, config=make_config(feeds=("UCalpha",)))

        running = asyncio.create_task(engine.run_incremental())
        await feed_source.entered.wait()

        assert engine.is_running
        on_demand = await engine.run_latest_only(["UCalpha"], "PLdestination")
        scheduled = await engine.run_incremental()

        feed_source.release.set()
        first = await running

        assert not on_demand.success
        assert on_demand.error == PASS_IN_PROGRESS
        assert scheduled is None
        assert first.success
        assert collection.append_calls == ["AAAAAAAAAAA"]
        assert not engine.is_running
