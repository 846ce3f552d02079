"""
PreferenceStore adapter over the in-memory remote fake.

Covers:
- NotFound -> materialized defaults, nothing inserted, nothing cached
- get/update/create populate the cache
- update with no row behaves as create
- update merges onto the existing record and refreshes updated_at
- delete removes the row and evicts the cache
- remote failures and timeouts raise PreferenceStoreError
- wire shape: accommodation_type sent as plain strings
"""

import pytest

from services.api.preferences.store import PreferenceStore, PreferenceStoreError


# ---------------------------------------------------------------------------
# get
# ---------------------------------------------------------------------------

class TestGet:
    @pytest.mark.asyncio
    async def test_not_found_returns_defaults(self, store, remote, cache):
        prefs = await store.get("u1")
        assert prefs.id == ""
        assert prefs.user_id == "u1"
        assert prefs.preferred_cuisines == []
        assert prefs.pace_preference is None
        assert remote.ops("insert") == 0
        assert cache.get("u1") is None

    @pytest.mark.asyncio
    async def test_found_row_is_normalized_and_cached(self, store, remote, cache):
        remote.seed("u1", budget_type="luxury", accommodation_type=["resort"])
        prefs = await store.get("u1")
        assert prefs.budget_type == "luxury"
        assert prefs.accommodation_styles() == ["resort"]
        assert cache.get("u1") is prefs

    @pytest.mark.asyncio
    async def test_cache_hit_skips_remote(self, store, remote):
        remote.seed("u1", budget_type="luxury")
        await store.get("u1")
        await store.get("u1")
        assert remote.ops("select") == 1

    @pytest.mark.asyncio
    async def test_expired_cache_falls_through(self, store, remote, clock):
        remote.seed("u1", budget_type="luxury")
        await store.get("u1")
        clock.advance(301)
        await store.get("u1")
        assert remote.ops("select") == 2

    @pytest.mark.asyncio
    async def test_remote_failure_raises_store_error(self, store, remote):
        remote.fail = ConnectionError("connection refused")
        with pytest.raises(PreferenceStoreError):
            await store.get("u1")

    @pytest.mark.asyncio
    async def test_timeout_raises_store_error(self, remote, cache):
        store = PreferenceStore(remote, cache, timeout_seconds=0.01)
        remote.hold()
        with pytest.raises(PreferenceStoreError):
            await store.get("u1")
        remote.release()


# ---------------------------------------------------------------------------
# create / update
# ---------------------------------------------------------------------------

class TestCreateAndUpdate:
    @pytest.mark.asyncio
    async def test_create_seeds_defaults_with_partial(self, store, remote, cache):
        prefs = await store.create("u1", {"budgetType": "shoestring"})
        assert prefs.id
        assert prefs.budget_type == "shoestring"
        assert prefs.budget == 200
        assert remote.rows["u1"]["budget_type"] == "shoestring"
        assert cache.get("u1") is prefs

    @pytest.mark.asyncio
    async def test_update_without_row_creates(self, store, remote):
        prefs = await store.update("u1", {"pacePreference": "packed"})
        assert prefs.id
        assert prefs.pace_preference == "packed"
        assert remote.ops("insert") == 1

    @pytest.mark.asyncio
    async def test_update_merges_onto_existing(self, store, remote):
        remote.seed("u1", budget_type="luxury", travel_style=["cultural"], updated_at="2020-01-01T00:00:00+00:00")
        prefs = await store.update("u1", {"pace": "relaxed"})
        assert prefs.budget_type == "luxury"
        assert prefs.travel_style == ["cultural"]
        assert prefs.pace_preference == "relaxed"
        assert prefs.updated_at != "2020-01-01T00:00:00+00:00"

    @pytest.mark.asyncio
    async def test_update_sends_only_touched_columns(self, store, remote):
        remote.seed("u1", budget_type="luxury")
        await store.update("u1", {"accommodationStyle": [{"style": "hotel", "confidence": 0.8}]})
        row = remote.rows["u1"]
        assert row["accommodation_type"] == ["hotel"]
        assert row["budget_type"] == "luxury"

    @pytest.mark.asyncio
    async def test_update_populates_cache(self, store, remote, cache):
        remote.seed("u1", budget_type="luxury")
        await store.get("u1")
        prefs = await store.update("u1", {"budgetType": "shoestring"})
        assert cache.get("u1") is prefs
        assert cache.get("u1").budget_type == "shoestring"

    @pytest.mark.asyncio
    async def test_initialize_creates_once(self, store, remote):
        first = await store.initialize("u1")
        second = await store.initialize("u1")
        assert first.id == second.id
        assert remote.ops("insert") == 1


# ---------------------------------------------------------------------------
# delete
# ---------------------------------------------------------------------------

class TestDelete:
    @pytest.mark.asyncio
    async def test_delete_removes_row_and_evicts(self, store, remote, cache):
        remote.seed("u1", budget_type="luxury")
        await store.get("u1")
        assert await store.delete("u1") is True
        assert "u1" not in remote.rows
        assert cache.get("u1") is None

    @pytest.mark.asyncio
    async def test_delete_failure_reports_and_still_evicts(self, store, remote, cache):
        remote.seed("u1", budget_type="luxury")
        await store.get("u1")
        remote.fail = ConnectionError("down")
        assert await store.delete("u1") is False
        assert cache.get("u1") is None

    @pytest.mark.asyncio
    async def test_clear_cache(self, store, remote, cache):
        remote.seed("u1")
        await store.get("u1")
        store.clear_cache()
        assert len(cache) == 0
