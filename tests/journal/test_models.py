"""Tests for diarysync.journal.models."""

from datetime import date

import pytest

from diarysync.core.exceptions import PartialCompletionError
from diarysync.journal.models import (
    DEFAULT_ORDER,
    BatchReport,
    Card,
    CountedGroup,
    Geolocation,
    Repeat,
    RepeatType,
    Series,
    UniqueEntry,
    UpsertResult,
    as_set,
)


class TestRepeat:
    def test_from_type_name(self):
        assert Repeat.from_value("daily") == Repeat(type=RepeatType.DAILY)

    def test_empty_values(self):
        assert Repeat.from_value(None) is None
        assert Repeat.from_value("") is None
        assert Repeat.from_value({}) is None

    def test_friendly_weekly(self):
        repeat = Repeat.from_value({"type": "weekly", "days": [1, 3]})
        assert repeat.type == RepeatType.WEEKLY
        assert repeat.days_of_week == frozenset({1, 3})

    def test_persisted_monthly(self):
        repeat = Repeat.from_value({"type": "monthly", "info": {"15": True, "1": True}})
        assert repeat.days_of_month == frozenset({1, 15})

    def test_yearly_dates_normalized(self):
        repeat = Repeat.from_value({"type": "yearly", "days": ["2-29", "12-25"]})
        assert repeat.dates == frozenset({"02-29", "12-25"})

    def test_start_parsed(self):
        repeat = Repeat.from_value({"type": "daily", "start": "2024-03-01"})
        assert repeat.start == date(2024, 3, 1)

    @pytest.mark.parametrize(
        "value",
        [
            {"type": "weekly", "days": [7]},
            {"type": "weekly", "days": ["mon"]},
            {"type": "monthly", "days": [0]},
            {"type": "monthly", "days": [32]},
            {"type": "yearly", "days": ["13-01"]},
            {"type": "yearly", "days": ["02-30"]},
        ],
    )
    def test_invalid_days_rejected(self, value):
        with pytest.raises(ValueError):
            Repeat.from_value(value)

    def test_not_a_mapping(self):
        with pytest.raises(ValueError):
            Repeat.from_value(42)

    def test_unknown_type_kept(self):
        repeat = Repeat.from_value({"type": "fortnightly"})
        assert repeat.type == "fortnightly"
        assert repeat.type_name == "fortnightly"

    def test_to_record(self):
        repeat = Repeat.from_value({"type": "weekly", "days": [5, 0], "notification": "08:00"})
        assert repeat.to_record() == {
            "type": "weekly",
            "info": {"0": True, "5": True},
            "notification": "08:00",
        }
        assert Repeat.from_value(repeat.to_record()) == repeat


class TestCard:
    def test_defaults(self):
        card = Card()
        assert card.order == DEFAULT_ORDER
        assert card.tags == set()
        assert card.repeat is None

    def test_from_record(self):
        card = Card.from_record(
            "c1",
            {
                "topic": "gym",
                "tags": {"health": True, "old": False},
                "geolocation": {"name": "park", "longtitude": "3.1"},
                "images": {"i1": "c1/a.png"},
                "order": 4,
            },
        )
        assert card.key == "c1"
        assert card.tags == {"health"}
        assert card.geolocation == Geolocation(name="park", longitude="3.1")
        assert card.images == {"i1": "c1/a.png"}
        assert card.order == 4
        assert card.series == ""

    def test_to_record_has_no_repeat(self):
        record = Card(topic="gym", tags={"b", "a"}).to_record()
        assert "repeat" not in record
        assert record["tags"] == {"a": True, "b": True}


class TestSeries:
    def test_shared_record(self):
        record = Series.shared_record(
            {
                "topic": "gym",
                "repeat": {"type": "weekly", "days": [1]},
                "numbers": {"weight": 70.5},
                "tags": ["health"],
                "order": "3",
                "content": "ignored",
            }
        )
        assert record == {
            "topic": "gym",
            "repeat": {"type": "weekly", "info": {"1": True}},
            "numbers": {"weight": True},
            "tags": {"health": True},
            "order": 3,
        }

    def test_from_record(self):
        series = Series.from_record(
            "s1",
            {"topic": "gym", "repeat": {"type": "daily"}, "numbers": {"kg": True}, "cards": {"c1": True}},
        )
        assert series.repeat.type == RepeatType.DAILY
        assert series.numbers == {"kg": None}
        assert series.cards == {"c1"}

    def test_changed_fields(self):
        series = Series(key="s1", topic="gym", time="07:00", repeat=Repeat(type=RepeatType.DAILY))
        assert series.changed_fields({"topic": "gym", "repeat": "daily", "time": "07:00"}) == {}
        assert series.changed_fields({"topic": "run", "time": "07:00"}) == {"topic": "run"}
        assert series.changed_fields({"repeat": {"type": "weekly", "days": [2]}}) == {
            "repeat": {"type": "weekly", "days": [2]}
        }

    def test_template(self):
        series = Series(key="s1", topic="gym", numbers={"kg": None}, tags={"health"}, order=2)
        template = series.template()
        assert template.to_value() == {
            "series": "s1",
            "topic": "gym",
            "time": "",
            "tags": ["health"],
            "order": 2,
            "numbers": {"kg": None},
        }


class TestGroupsAndEntries:
    def test_counted_group(self):
        group = CountedGroup.from_record("g1", {"count": 2, "topic": "trip", "tags": {"travel": True}})
        assert group.count == 2
        assert group.topic == "trip"
        assert group.tags == {"travel"}
        assert "count" not in group.payload

    def test_unique_entry(self):
        entry = UniqueEntry.from_record("gym", {"cards": {"c1": True}})
        assert entry.description is None
        assert entry.cards == {"c1"}

    def test_as_set(self):
        assert as_set(None) == set()
        assert as_set("a") == {"a"}
        assert as_set(["a", "b"]) == {"a", "b"}


class TestReports:
    def test_batch_report(self):
        report = BatchReport(succeeded=["a"])
        assert report.ok
        report.raise_for_failures()

        report.failed["b"] = "timeout"
        assert not report.ok
        with pytest.raises(PartialCompletionError) as exc_info:
            report.raise_for_failures("upload")
        assert exc_info.value.failed == {"b": "timeout"}
        assert "1 of 2" in str(exc_info.value)

    def test_upsert_result_complete(self):
        result = UpsertResult(key="c1")
        assert result.complete
        result.fan_out.failed["c2"] = "gone"
        assert not result.complete
