"""Unit tests for DatabaseCacheBin.

Storage-backed tests use a temporary SQLite file and a fake clock; failure
paths use an AsyncMock storage so the fail-open / fail-visible split can be
checked without breaking a real database.
"""

from __future__ import annotations

import pytest

from cachebin.models.cache import CACHE_PERMANENT, CACHE_TEMPORARY, CacheSession
from cachebin.providers.cache.database_cache import DatabaseCacheBin
from cachebin.utils.errors import CacheSerializationError, StorageUnavailableError


# ======================================================================
# Read / write round trips
# ======================================================================


class TestGetSet:
    @pytest.mark.asyncio
    async def test_get_never_written_returns_none(self, page_bin: DatabaseCacheBin) -> None:
        assert await page_bin.get("nonexistent") is None

    @pytest.mark.asyncio
    async def test_string_stored_verbatim(self, page_bin: DatabaseCacheBin) -> None:
        await page_bin.set("front", "<html>ünïcode</html>")

        entry = await page_bin.get("front")

        assert entry is not None
        assert entry.data == "<html>ünïcode</html>"
        assert entry.serialized is False

    @pytest.mark.asyncio
    async def test_string_that_looks_like_json_stays_a_string(self, page_bin: DatabaseCacheBin) -> None:
        await page_bin.set("k", '{"a": 1}')

        entry = await page_bin.get("k")

        assert entry.data == '{"a": 1}'

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "value",
        [
            {"links": ["/home", "/about"], "count": 2},
            [1, 2.5, None, True],
            42,
            None,
        ],
    )
    async def test_structured_values_round_trip(self, page_bin: DatabaseCacheBin, value) -> None:
        await page_bin.set("k", value)

        entry = await page_bin.get("k")

        assert entry is not None
        assert entry.data == value
        assert entry.serialized is True

    @pytest.mark.asyncio
    async def test_set_replaces_existing_entry(self, page_bin: DatabaseCacheBin, clock) -> None:
        await page_bin.set("k", {"v": 1}, CACHE_TEMPORARY)
        clock.advance(5)
        await page_bin.set("k", "v2")

        entry = await page_bin.get("k")

        assert entry.data == "v2"
        assert entry.serialized is False
        assert entry.expire == CACHE_PERMANENT
        assert entry.created == clock.now

    @pytest.mark.asyncio
    async def test_set_records_created_and_expire(self, page_bin: DatabaseCacheBin, clock) -> None:
        await page_bin.set("k", "v", clock.now + 3600)

        entry = await page_bin.get("k")

        assert entry.created == clock.now
        assert entry.expire == clock.now + 3600
        assert not entry.is_permanent

    @pytest.mark.asyncio
    async def test_unserializable_value_raises(self, page_bin: DatabaseCacheBin) -> None:
        with pytest.raises(CacheSerializationError):
            await page_bin.set("k", {"when": object()})

        assert await page_bin.get("k") is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("value", [{1: "a"}, (1, 2), {"t": (1, 2)}, [{2: "b"}]])
    async def test_value_changed_by_json_raises(self, page_bin: DatabaseCacheBin, value) -> None:
        with pytest.raises(CacheSerializationError):
            await page_bin.set("k", value)

        assert await page_bin.get("k") is None

    @pytest.mark.asyncio
    async def test_corrupt_payload_is_a_miss(self, page_bin: DatabaseCacheBin, storage, clock) -> None:
        await storage.upsert("page", "bad", data="{not json", created=clock.now, expire=0, serialized=True)

        assert await page_bin.get("bad") is None


# ======================================================================
# get_multiple
# ======================================================================


class TestGetMultiple:
    @pytest.mark.asyncio
    async def test_splits_hits_and_misses(self, page_bin: DatabaseCacheBin) -> None:
        await page_bin.set("a", "1")
        await page_bin.set("c", {"n": 3})

        result = await page_bin.get_multiple(["a", "b", "c", "d"])

        assert set(result.found) == {"a", "c"}
        assert result.found["c"].data == {"n": 3}
        assert result.missing == ["b", "d"]

    @pytest.mark.asyncio
    async def test_does_not_mutate_input(self, page_bin: DatabaseCacheBin) -> None:
        await page_bin.set("a", "1")
        cids = ["a", "b"]

        await page_bin.get_multiple(cids)

        assert cids == ["a", "b"]

    @pytest.mark.asyncio
    async def test_duplicates_reported_once(self, page_bin: DatabaseCacheBin) -> None:
        result = await page_bin.get_multiple(["x", "x", "y"])

        assert result.missing == ["x", "y"]

    @pytest.mark.asyncio
    async def test_empty_request_skips_storage(self, mock_storage, settings) -> None:
        cache_bin = DatabaseCacheBin("page", mock_storage, settings)

        result = await cache_bin.get_multiple([])

        assert result.found == {}
        assert result.missing == []
        mock_storage.select_by_ids.assert_not_called()


# ======================================================================
# Failure policy
# ======================================================================


class TestStorageFailures:
    @pytest.fixture()
    def failing(self, mock_storage, settings) -> DatabaseCacheBin:
        error = StorageUnavailableError("disk I/O error", provider_name="mock-storage")
        for name in (
            "select_by_ids",
            "upsert",
            "delete_ids",
            "delete_prefix",
            "delete_expired",
            "truncate",
            "exists_any",
            "get_flush_started",
        ):
            getattr(mock_storage, name).side_effect = error
        return DatabaseCacheBin("page", mock_storage, settings)

    @pytest.mark.asyncio
    async def test_read_failure_is_full_miss(self, failing: DatabaseCacheBin) -> None:
        result = await failing.get_multiple(["a", "b"])

        assert result.found == {}
        assert result.missing == ["a", "b"]
        assert await failing.get("a") is None

    @pytest.mark.asyncio
    async def test_select_failure_is_full_miss(self, mock_storage, settings, captured_logs) -> None:
        mock_storage.select_by_ids.side_effect = StorageUnavailableError("locked")
        cache_bin = DatabaseCacheBin("page", mock_storage, settings)

        result = await cache_bin.get_multiple(["a"])

        assert result.missing == ["a"]
        assert any(
            log["event"] == "cache_read_failed" and log["log_level"] == "warning" for log in captured_logs
        )

    @pytest.mark.asyncio
    async def test_write_failure_is_swallowed(self, failing: DatabaseCacheBin) -> None:
        await failing.set("a", {"v": 1})  # must not raise

    @pytest.mark.asyncio
    async def test_serialization_error_still_propagates(self, failing: DatabaseCacheBin) -> None:
        with pytest.raises(CacheSerializationError):
            await failing.set("a", {1, 2, 3})

    @pytest.mark.asyncio
    async def test_expire_failure_is_swallowed(self, failing: DatabaseCacheBin, settings) -> None:
        await failing.expire()
        settings.cache_lifetime = 60
        session = CacheSession()
        await failing.expire(session)
        # The watermark is recorded before storage is touched.
        assert session.cache > 0

    @pytest.mark.asyncio
    async def test_is_empty_failure_reports_empty(self, failing: DatabaseCacheBin) -> None:
        assert await failing.is_empty() is True

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("method", "args"),
        [
            ("delete", ("a",)),
            ("delete_multiple", (["a", "b"],)),
            ("delete_prefix", ("a",)),
            ("flush", ()),
        ],
    )
    async def test_explicit_deletes_propagate(self, failing: DatabaseCacheBin, method, args) -> None:
        with pytest.raises(StorageUnavailableError):
            await getattr(failing, method)(*args)

    @pytest.mark.asyncio
    async def test_garbage_collection_propagates_when_called_directly(self, failing: DatabaseCacheBin) -> None:
        with pytest.raises(StorageUnavailableError):
            await failing.garbage_collection()


# ======================================================================
# Deletes
# ======================================================================


class TestDeletes:
    @pytest.mark.asyncio
    async def test_delete_removes_key(self, page_bin: DatabaseCacheBin) -> None:
        await page_bin.set("a", "1")
        await page_bin.delete("a")
        assert await page_bin.get("a") is None

    @pytest.mark.asyncio
    async def test_delete_nonexistent_is_noop(self, page_bin: DatabaseCacheBin) -> None:
        await page_bin.delete("nonexistent")

    @pytest.mark.asyncio
    async def test_delete_multiple_larger_than_batch(self, page_bin: DatabaseCacheBin, settings) -> None:
        settings.cache_delete_batch_size = 7
        cids = [f"item:{i}" for i in range(30)]
        for cid in cids:
            await page_bin.set(cid, "x")
        await page_bin.set("keep", "x")

        await page_bin.delete_multiple(cids)

        result = await page_bin.get_multiple([*cids, "keep"])
        assert list(result.found) == ["keep"]

    @pytest.mark.asyncio
    async def test_delete_multiple_batches_without_overlap(self, mock_storage, settings_factory) -> None:
        cache_bin = DatabaseCacheBin("page", mock_storage, settings_factory(cache_delete_batch_size=1000))
        cids = [f"id-{i}" for i in range(2500)]

        await cache_bin.delete_multiple(cids + cids[:10])

        batches = [call.args[1] for call in mock_storage.delete_ids.await_args_list]
        assert [len(b) for b in batches] == [1000, 1000, 500]
        flattened = [cid for batch in batches for cid in batch]
        assert flattened == cids

    @pytest.mark.asyncio
    async def test_delete_multiple_empty_is_noop(self, mock_storage, settings) -> None:
        cache_bin = DatabaseCacheBin("page", mock_storage, settings)

        await cache_bin.delete_multiple([])

        mock_storage.delete_ids.assert_not_called()

    @pytest.mark.asyncio
    async def test_delete_prefix_only_matches_prefix(self, page_bin: DatabaseCacheBin) -> None:
        for cid in ("foo", "foo:1", "foobar", "barfoo", "xfoox", "fo"):
            await page_bin.set(cid, "x")

        await page_bin.delete_prefix("foo")

        result = await page_bin.get_multiple(["foo", "foo:1", "foobar", "barfoo", "xfoox", "fo"])
        assert sorted(result.found) == ["barfoo", "fo", "xfoox"]

    @pytest.mark.asyncio
    async def test_flush_removes_permanent_entries(self, page_bin: DatabaseCacheBin, clock) -> None:
        await page_bin.set("p", "x", CACHE_PERMANENT)
        await page_bin.set("t", "x", CACHE_TEMPORARY)
        await page_bin.set("f", "x", clock.now + 3600)

        await page_bin.flush()

        assert await page_bin.is_empty() is True
        result = await page_bin.get_multiple(["p", "t", "f"])
        assert result.found == {}

    @pytest.mark.asyncio
    async def test_flush_leaves_other_bins_alone(self, make_bin) -> None:
        page = await make_bin("page")
        form = await make_bin("form")
        await page.set("k", "page")
        await form.set("k", "form")

        await page.flush()

        assert (await form.get("k")).data == "form"


# ======================================================================
# Expiry without a minimum lifetime
# ======================================================================


class TestExpireWithoutLifetime:
    @pytest.mark.asyncio
    async def test_expire_removes_past_and_temporary(self, page_bin: DatabaseCacheBin, clock) -> None:
        await page_bin.set("past", "x", clock.now - 10)
        await page_bin.set("temp", "x", CACHE_TEMPORARY)
        await page_bin.set("future", "x", clock.now + 10)
        await page_bin.set("perm", "x", CACHE_PERMANENT)

        await page_bin.expire()

        result = await page_bin.get_multiple(["past", "temp", "future", "perm"])
        assert sorted(result.found) == ["future", "perm"]

    @pytest.mark.asyncio
    async def test_expire_leaves_session_untouched(self, page_bin: DatabaseCacheBin) -> None:
        session = CacheSession()

        await page_bin.expire(session)

        assert session.cache == 0


# ======================================================================
# Expiry with a minimum lifetime
# ======================================================================


class TestMinimumLifetime:
    LIFETIME = 300

    @pytest.fixture(autouse=True)
    def _enable_lifetime(self, settings) -> None:
        settings.cache_lifetime = self.LIFETIME

    @pytest.mark.asyncio
    async def test_first_expire_deletes_nothing(self, page_bin: DatabaseCacheBin, storage, clock) -> None:
        await page_bin.set("temp", "x", CACHE_TEMPORARY)
        await page_bin.set("past", "x", clock.now - 100)

        await page_bin.expire()

        result = await page_bin.get_multiple(["temp", "past"])
        assert sorted(result.found) == ["past", "temp"]
        assert await storage.get_flush_started("page") == clock.now

    @pytest.mark.asyncio
    async def test_expire_inside_window_deletes_nothing(self, page_bin: DatabaseCacheBin, storage, clock) -> None:
        await page_bin.set("temp", "x", CACHE_TEMPORARY)
        started = clock.now
        await page_bin.expire()

        clock.advance(self.LIFETIME - 1)
        await page_bin.expire()

        assert await page_bin.get("temp") is not None
        assert await storage.get_flush_started("page") == started

    @pytest.mark.asyncio
    async def test_expire_after_window_purges_and_closes(self, page_bin: DatabaseCacheBin, storage, clock) -> None:
        await page_bin.set("temp", "x", CACHE_TEMPORARY)
        await page_bin.set("perm", "x", CACHE_PERMANENT)
        await page_bin.expire()

        clock.advance(self.LIFETIME)
        await page_bin.set("late_future", "x", clock.now + 10)
        await page_bin.expire()

        result = await page_bin.get_multiple(["temp", "perm", "late_future"])
        assert sorted(result.found) == ["late_future", "perm"]
        assert await storage.get_flush_started("page") == 0

    @pytest.mark.asyncio
    async def test_read_closes_overdue_window(self, page_bin: DatabaseCacheBin, storage, clock) -> None:
        await page_bin.set("temp", "x", CACHE_TEMPORARY)
        await page_bin.expire()

        clock.advance(self.LIFETIME)
        assert await page_bin.get("temp") is None
        assert await storage.get_flush_started("page") == 0

    @pytest.mark.asyncio
    async def test_garbage_collection_only_removes_rows_expired_by_window_start(
        self, page_bin: DatabaseCacheBin, clock
    ) -> None:
        window_start = clock.now
        await page_bin.set("expired_before", "x", window_start - 1)
        await page_bin.set("expires_after", "x", window_start + 10)
        await page_bin.expire()

        clock.advance(self.LIFETIME + 60)
        await page_bin.garbage_collection()

        result = await page_bin.get_multiple(["expired_before", "expires_after"])
        assert list(result.found) == ["expires_after"]

    @pytest.mark.asyncio
    async def test_garbage_collection_without_window_is_noop(self, mock_storage, settings) -> None:
        cache_bin = DatabaseCacheBin("page", mock_storage, settings)

        await cache_bin.garbage_collection()

        mock_storage.delete_expired.assert_not_called()

    @pytest.mark.asyncio
    async def test_lost_window_race_is_ignored(self, mock_storage, settings) -> None:
        mock_storage.start_flush_window.return_value = False
        cache_bin = DatabaseCacheBin("page", mock_storage, settings, clock=lambda: 1000)

        await cache_bin.expire()

        mock_storage.start_flush_window.assert_awaited_once_with("page", 1000)
        mock_storage.delete_expired.assert_not_called()

    @pytest.mark.asyncio
    async def test_expiring_session_stops_seeing_old_temporary_entries(
        self, page_bin: DatabaseCacheBin, clock
    ) -> None:
        await page_bin.set("temp", "old", CACHE_TEMPORARY)
        clock.advance(1)
        expiring = CacheSession()
        bystander = CacheSession()

        await page_bin.expire(expiring)

        assert expiring.cache == clock.now
        assert await page_bin.get("temp", expiring) is None
        assert (await page_bin.get("temp", bystander)).data == "old"
        assert (await page_bin.get("temp")).data == "old"

    @pytest.mark.asyncio
    async def test_permanent_entries_ignore_watermark(self, page_bin: DatabaseCacheBin, clock) -> None:
        await page_bin.set("perm", "x", CACHE_PERMANENT)
        clock.advance(1)
        session = CacheSession()

        await page_bin.expire(session)

        assert await page_bin.get("perm", session) is not None

    @pytest.mark.asyncio
    async def test_entries_written_after_watermark_are_visible(self, page_bin: DatabaseCacheBin, clock) -> None:
        session = CacheSession()
        await page_bin.expire(session)

        await page_bin.set("fresh", "new", CACHE_TEMPORARY)

        assert (await page_bin.get("fresh", session)).data == "new"

    @pytest.mark.asyncio
    async def test_watermark_ignored_once_lifetime_disabled(self, page_bin: DatabaseCacheBin, settings, clock) -> None:
        await page_bin.set("later", "x", clock.now + 3600)
        clock.advance(1)
        session = CacheSession()
        await page_bin.expire(session)

        settings.cache_lifetime = 0

        assert await page_bin.get("later", session) is not None


# ======================================================================
# is_empty
# ======================================================================


class TestIsEmpty:
    @pytest.mark.asyncio
    async def test_new_bin_is_empty(self, page_bin: DatabaseCacheBin) -> None:
        assert await page_bin.is_empty() is True

    @pytest.mark.asyncio
    async def test_bin_with_entry_is_not_empty(self, page_bin: DatabaseCacheBin) -> None:
        await page_bin.set("a", "1")
        assert await page_bin.is_empty() is False

    @pytest.mark.asyncio
    async def test_only_collected_entries_is_empty(self, page_bin: DatabaseCacheBin, settings, clock) -> None:
        settings.cache_lifetime = 60
        await page_bin.set("temp", "x", CACHE_TEMPORARY)
        await page_bin.expire()
        assert await page_bin.is_empty() is False

        clock.advance(60)

        assert await page_bin.is_empty() is True

    @pytest.mark.asyncio
    async def test_is_empty_uses_existence_probe(self, mock_storage, settings) -> None:
        mock_storage.exists_any.return_value = True
        cache_bin = DatabaseCacheBin("page", mock_storage, settings)

        assert await cache_bin.is_empty() is False
        mock_storage.exists_any.assert_awaited_once_with("page")
        mock_storage.select_by_ids.assert_not_called()


def test_provider_name(mock_storage, settings) -> None:
    cache_bin = DatabaseCacheBin("page", mock_storage, settings)
    assert cache_bin.get_provider_name() == "database"
    assert cache_bin.bin_name == "page"
