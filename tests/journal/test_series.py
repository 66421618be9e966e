"""Tests for diarysync.journal.series."""

import asyncio
import random

import pytest

from diarysync.core.docstore import DocumentRef, MemoryDocumentStore
from diarysync.core.exceptions import NotFoundError
from diarysync.journal.series import SeriesStore

SERIES_REF = DocumentRef("users/u1/other/series")


@pytest.fixture
def series(store):
    return SeriesStore(SERIES_REF, store, timeout=5, rng=random.Random(3))


async def _seed(store, records):
    for key, record in records.items():
        await store.set(SERIES_REF.child(key), record)


class TestQueries:
    async def test_find_matching(self, series, store):
        await _seed(
            store,
            {
                "daily": {"topic": "water", "repeat": {"type": "daily"}, "cards": {"c1": True}},
                "monday": {"topic": "gym", "repeat": {"type": "weekly", "info": {"1": True}}, "cards": {"c2": True}},
                "random": {"topic": "poem", "repeat": {"type": "random"}, "cards": {"c3": True}},
            },
        )
        monday = await series.find_matching("2024-05-06")
        assert sorted(t.topic for t in monday) == ["gym", "water"]
        sunday = await series.find_matching("2024-05-05")
        assert [t.series_key for t in sunday] == ["daily"]

    async def test_malformed_series_skipped(self, series, store):
        await _seed(store, {"bad": {"repeat": {"type": "weekly", "info": {"9": True}}}, "ok": {"topic": "x"}})
        assert list(await series.all()) == ["ok"]

    async def test_sample_random(self, series, store):
        await _seed(
            store,
            {f"r{i}": {"topic": f"t{i}", "repeat": {"type": "random"}, "cards": {f"c{i}": True}} for i in range(5)},
        )
        await _seed(store, {"d": {"topic": "daily", "repeat": {"type": "daily"}, "cards": {"c9": True}}})

        picked = await series.sample_random(3)
        keys = [t.series_key for t in picked]
        assert len(keys) == 3
        assert len(set(keys)) == 3
        assert "d" not in keys

        assert len(await series.sample_random(10)) == 5
        assert await series.sample_random(0) == []

    async def test_sample_random_is_reproducible(self, store):
        await _seed(store, {f"r{i}": {"repeat": {"type": "random"}, "cards": {"c": True}} for i in range(6)})
        first = await SeriesStore(SERIES_REF, store, rng=random.Random(11)).sample_random(3)
        second = await SeriesStore(SERIES_REF, store, rng=random.Random(11)).sample_random(3)
        assert first == second


class TestLifecycle:
    async def test_create_then_bind(self, series):
        key = await series.create({"topic": "gym", "repeat": {"type": "daily"}, "time": "07:00"})
        assert await series.bind(key, "c1")
        created = await series.get(key)
        assert created.topic == "gym"
        assert created.cards == {"c1"}

    async def test_bind_missing_series_refused(self, series):
        assert await series.bind("nope", "c1") is False
        assert await series.get("nope") is None

    async def test_unbind_last_card_deletes(self, series, store):
        await _seed(store, {"s1": {"topic": "gym", "cards": {"c": True}}})
        assert await series.unbind("s1", "c") is True
        assert await store.get(SERIES_REF.child("s1")) is None

    async def test_unbind_one_of_two(self, series, store):
        await _seed(store, {"s1": {"topic": "gym", "cards": {"c1": True, "c2": True}}})
        assert await series.unbind("s1", "c1") is False
        assert (await series.get("s1")).cards == {"c2"}
        assert await series.unbind("s1", "c2") is True
        assert await series.get("s1") is None

    async def test_unbind_unknown_card_is_noop(self, series, store):
        await _seed(store, {"s1": {"topic": "gym", "cards": {"c1": True}}})
        assert await series.unbind("s1", "other") is False
        assert (await series.get("s1")).cards == {"c1"}

    async def test_concurrent_unbinds(self):
        store = MemoryDocumentStore(latency=0.001)
        series = SeriesStore(SERIES_REF, store)
        await store.set(SERIES_REF.child("s1"), {"topic": "gym", "cards": {f"c{i}": True for i in range(8)}})

        deleted = await asyncio.gather(*(series.unbind("s1", f"c{i}") for i in range(8)))
        assert deleted.count(True) == 1
        assert await series.get("s1") is None


class TestUpdate:
    async def test_update_propagates_to_bound_cards(self, series, store):
        await _seed(store, {"s1": {"topic": "gym", "cards": {"c1": True, "c2": True}}})
        seen = []

        async def propagate(card_key, fields):
            seen.append((card_key, fields))

        report = await series.update("s1", {"topic": "run"}, propagate)
        assert report.ok
        assert sorted(report.succeeded) == ["c1", "c2"]
        assert sorted(seen) == [("c1", {"topic": "run"}), ("c2", {"topic": "run"})]
        assert (await series.get("s1")).topic == "run"

    async def test_update_reports_failed_cards(self, series, store):
        await _seed(store, {"s1": {"topic": "gym", "cards": {"c1": True, "c2": True}}})

        def propagate(card_key, fields):
            if card_key == "c2":
                raise NotFoundError("gone")

        report = await series.update("s1", {"topic": "run"}, propagate)
        assert report.succeeded == ["c1"]
        assert report.failed == {"c2": "gone"}
        assert (await series.get("s1")).topic == "run"

    async def test_update_missing_series(self, series):
        report = await series.update("nope", {"topic": "run"})
        assert "nope" in report.failed
        assert await series.get("nope") is None

    async def test_unexpected_propagation_errors_raise(self, series, store):
        await _seed(store, {"s1": {"topic": "gym", "cards": {"c1": True}}})

        def propagate(card_key, fields):
            raise RuntimeError("bug")

        with pytest.raises(RuntimeError):
            await series.update("s1", {"topic": "run"}, propagate)
