import asyncio

import pytest

from compass.items.debounce import DebounceCoalescer
from compass.items.models import ItemRegistry
from compass.items.mutations import OptimisticMutationEngine
from compass.notifications import Notifier
from compass.providers.mock import MockItemClient


@pytest.mark.asyncio
async def test_rapid_notes_edits_coalesce_into_one_request():
    registry = ItemRegistry()
    registry.load([
        {"id": "i1", "assessment_id": "a1", "status": "partial", "notes": ""},
        {"id": "i2", "assessment_id": "a1", "status": "compliant", "notes": ""},
    ])
    client = MockItemClient()
    engine = OptimisticMutationEngine(registry, client, Notifier(), debounce_seconds=0.05)

    engine.set_notes("i1", "a")
    await asyncio.sleep(0.01)
    engine.set_notes("i1", "ab")
    engine.set_notes("i2", "other item")
    await asyncio.sleep(0.01)
    engine.set_notes("i1", "abc")
    assert client.calls == []

    await asyncio.sleep(0.2)
    await engine.settle()

    by_item = {c["item_id"]: c["changes"] for c in client.calls}
    assert len(client.calls) == 2
    assert by_item["i1"] == {"status": "partial", "notes": "abc"}
    assert by_item["i2"] == {"status": "compliant", "notes": "other item"}
    assert registry.get("i1").notes == "abc"


@pytest.mark.asyncio
async def test_notes_request_carries_status_current_at_fire_time():
    registry = ItemRegistry()
    registry.load([{"id": "i1", "assessment_id": "a1", "status": "partial"}])
    client = MockItemClient()
    engine = OptimisticMutationEngine(registry, client, Notifier(), debounce_seconds=0.02)

    engine.set_notes("i1", "evidence attached")
    engine.set_status("i1", "compliant")
    await engine.settle(flush=True)

    notes_calls = [c["changes"] for c in client.calls if "notes" in c["changes"]]
    assert notes_calls == [{"status": "compliant", "notes": "evidence attached"}]


@pytest.mark.asyncio
async def test_coalescer_keys_are_independent():
    fired = []

    async def callback(key, value):
        fired.append((key, value))

    co = DebounceCoalescer(0.02, callback)
    co.schedule("a", 1)
    co.schedule("b", 1)
    co.schedule("a", 2)
    co.cancel("b")
    assert co.pending("a") and not co.pending("b")

    await asyncio.sleep(0.06)
    await co.drain()
    assert fired == [("a", 2)]
    assert not co.pending("a")


@pytest.mark.asyncio
async def test_flush_fires_now_and_cancel_all_drops_everything():
    fired = []

    async def callback(key, value):
        fired.append((key, value))

    co = DebounceCoalescer(10.0, callback)
    co.schedule("x", "first")
    co.schedule("x", "second")
    co.flush()
    await co.drain()
    assert fired == [("x", "second")]

    co.schedule("y", 1)
    co.schedule("z", 2)
    co.cancel_all()
    await asyncio.sleep(0)
    assert not co.pending("y") and not co.pending("z")
    assert fired == [("x", "second")]
