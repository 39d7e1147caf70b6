# tests/test_durable_store.py
from datetime import datetime, timedelta, timezone

import pytest

from app.services.durable_store import DurableStore, list_due_alarms


@pytest.mark.asyncio
async def test_put_then_get_returns_same_document():
    store = DurableStore("STORE1")

    await store.put("session", {"title": "Sync", "participants": {}})

    assert await store.get("session") == {"title": "Sync", "participants": {}}


@pytest.mark.asyncio
async def test_put_overwrites_existing_value():
    store = DurableStore("STORE1")

    await store.put("session", {"v": 1})
    await store.put("session", {"v": 2})

    assert await store.get("session") == {"v": 2}


@pytest.mark.asyncio
async def test_get_missing_key_returns_none():
    assert await DurableStore("STORE1").get("session") is None


@pytest.mark.asyncio
async def test_stores_are_isolated_per_actor():
    """
    Two actors writing the same key must never see each other's data.
    """
    a = DurableStore("AAAAAA")
    b = DurableStore("BBBBBB")

    await a.put("session", {"owner": "a"})

    assert await b.get("session") is None
    await b.put("session", {"owner": "b"})
    assert await a.get("session") == {"owner": "a"}


@pytest.mark.asyncio
async def test_delete_reports_whether_something_was_removed():
    store = DurableStore("STORE1")
    await store.put("session", {"v": 1})

    assert await store.delete("session") is True
    assert await store.delete("session") is False
    assert await store.get("session") is None


@pytest.mark.asyncio
async def test_set_alarm_overwrites_pending_alarm():
    store = DurableStore("STORE1")
    first = datetime(2025, 11, 1, 12, 0, tzinfo=timezone.utc)
    second = first + timedelta(days=3)

    await store.set_alarm(first)
    await store.set_alarm(second)

    assert await store.get_alarm() == second


@pytest.mark.asyncio
async def test_delete_alarm_clears_slot():
    store = DurableStore("STORE1")
    await store.set_alarm(datetime(2025, 11, 1, tzinfo=timezone.utc))

    await store.delete_alarm()

    assert await store.get_alarm() is None


@pytest.mark.asyncio
async def test_list_due_alarms_only_returns_alarms_at_or_before_now():
    now = datetime(2025, 11, 1, 12, 0, tzinfo=timezone.utc)
    await DurableStore("EARLY1").set_alarm(now - timedelta(hours=2))
    await DurableStore("EXACT1").set_alarm(now)
    await DurableStore("LATER1").set_alarm(now + timedelta(seconds=1))

    due = await list_due_alarms(now)

    assert due == ["EARLY1", "EXACT1"]


def test_store_requires_actor_name():
    with pytest.raises(ValueError):
        DurableStore("")
