"""SQLPreferenceStore over a mocked AsyncSession."""

from datetime import datetime, timezone

import pytest

from services.api.db.models import UserPreferenceRow
from services.api.preferences.store import PreferenceStoreError, SQLPreferenceStore
from services.api.tests.helpers.mock_sa import MockSASession

CREATED = datetime(2025, 1, 1, tzinfo=timezone.utc)


def _row(**fields) -> UserPreferenceRow:
    base = {
        "id": "row-1",
        "user_id": "u1",
        "budget_type": "luxury",
        "accommodation_type": ["resort"],
        "created_at": CREATED,
        "updated_at": CREATED,
    }
    base.update(fields)
    return UserPreferenceRow(**base)


class TestSelect:
    @pytest.mark.asyncio
    async def test_row_rendered_as_record(self):
        session = MockSASession().returns_one(_row())
        store = SQLPreferenceStore(session.factory)
        record = await store.select("u1")
        assert record["id"] == "row-1"
        assert record["accommodation_type"] == ["resort"]
        assert record["created_at"] == CREATED.isoformat()
        session.mock.execute.assert_called_once()

    @pytest.mark.asyncio
    async def test_missing_row_is_none(self):
        session = MockSASession().returns_none()
        store = SQLPreferenceStore(session.factory)
        assert await store.select("u1") is None


class TestInsert:
    @pytest.mark.asyncio
    async def test_insert_adds_and_commits(self):
        session = MockSASession()
        store = SQLPreferenceStore(session.factory)
        record = await store.insert(
            {
                "id": "",
                "user_id": "u1",
                "budget_type": "shoestring",
                "created_at": CREATED.isoformat(),
                "not_a_column": 1,
            }
        )
        session.mock.add.assert_called_once()
        session.mock.commit.assert_awaited_once()
        added = session.mock.add.call_args[0][0]
        assert isinstance(added, UserPreferenceRow)
        assert added.created_at == CREATED
        assert record["budget_type"] == "shoestring"


class TestUpdate:
    @pytest.mark.asyncio
    async def test_update_sets_columns(self):
        row = _row()
        session = MockSASession().returns_one(row)
        store = SQLPreferenceStore(session.factory)
        record = await store.update(
            "u1",
            {"pace_preference": "relaxed", "user_id": "someone-else", "updated_at": "2025-02-01T00:00:00+00:00"},
        )
        assert row.pace_preference == "relaxed"
        assert row.user_id == "u1"
        assert record["updated_at"] == "2025-02-01T00:00:00+00:00"
        session.mock.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_update_missing_row_raises(self):
        session = MockSASession().returns_none()
        store = SQLPreferenceStore(session.factory)
        with pytest.raises(PreferenceStoreError):
            await store.update("u1", {"budget": 10})


class TestDelete:
    @pytest.mark.asyncio
    async def test_delete_reports_rowcount(self):
        session = MockSASession().returns_rowcount(1).returns_rowcount(0)
        store = SQLPreferenceStore(session.factory)
        assert await store.delete("u1") is True
        assert await store.delete("u1") is False
