"""Tests for timetable document normalization."""

from ferryboard.core.timetable_normalizer import (
    DIRECT,
    FROM_CITY,
    TO_CITY,
    classify_disembark_shape,
    extract_disembark_only,
    normalize_timetable,
)


def test_direct_line():
    doc = {
        "metadata": {"valid_period": "2025", "day_type": "weekday"},
        "departures": {"Lumabryggan": ["07:00", "07:20"], "Henriksdal": ["07:05"]},
    }
    result = normalize_timetable("sjo-weekday.json", doc)
    assert list(result.departures) == [DIRECT]
    assert result.departures[DIRECT]["Lumabryggan"] == ["07:00", "07:20"]
    assert result.disembark_only == {}
    assert result.metadata.maintenance_mode is False


def test_bidirectional_line_with_periods_is_merged_and_sorted():
    doc = {
        "metadata": {"day_type": "weekday"},
        "to_city": {
            "morning": {"departures": {"Lumabryggan": ["08:10", "07:10"]}},
            "afternoon": {"departures": {"Lumabryggan": ["16:10"], "Saltsjöqvarn": ["16:20"]}},
            "lunch": {"departures": {"Lumabryggan": ["12:10"]}},
        },
        "from_city": {"departures": {"Nybroplan": ["09:00", "17:00"]}},
    }
    result = normalize_timetable("city-weekday.json", doc)
    assert set(result.departures) == {TO_CITY, FROM_CITY}
    assert result.departures[TO_CITY]["Lumabryggan"] == ["07:10", "08:10", "12:10", "16:10"]
    assert result.departures[TO_CITY]["Saltsjöqvarn"] == ["16:20"]
    assert result.departures[FROM_CITY]["Nybroplan"] == ["09:00", "17:00"]


def test_maintenance_metadata():
    doc = {
        "metadata": {"day_type": "sunday", "maintenance_mode": True, "maintenance_message": "No service"},
        "departures": {},
    }
    result = normalize_timetable("m.json", doc)
    assert result.metadata.maintenance_mode is True
    assert result.metadata.maintenance_message == "No service"


def test_disembark_keyed_by_day_type():
    raw = {"saturday": {"Nybroplan": ["10:00"]}, "weekday": {"Nybroplan": ["08:00"]}}
    assert classify_disembark_shape(raw, "saturday", TO_CITY) == "by_day_type"
    assert extract_disembark_only(raw, "saturday", TO_CITY) == {"Nybroplan": ["10:00"]}


def test_disembark_flat():
    raw = {"Nybroplan": ["10:00", "11:00"], "Allmänna gränd": ["10:05"]}
    assert classify_disembark_shape(raw, "weekday", FROM_CITY) == "flat"
    assert extract_disembark_only(raw, "weekday", FROM_CITY) == raw


def test_disembark_by_direction_flat():
    raw = {"to_city": {"Nybroplan": ["08:30"]}, "from_city": {"Lumabryggan": ["17:30"]}}
    assert classify_disembark_shape(raw, "weekday", TO_CITY) == "direction_flat"
    assert extract_disembark_only(raw, "weekday", TO_CITY) == {"Nybroplan": ["08:30"]}
    assert extract_disembark_only(raw, "weekday", FROM_CITY) == {"Lumabryggan": ["17:30"]}


def test_disembark_by_direction_stops():
    raw = {"to_city": {"stops": {"Nybroplan": ["08:30"]}}}
    assert classify_disembark_shape(raw, "weekday", TO_CITY) == "direction_stops"
    assert extract_disembark_only(raw, "weekday", TO_CITY) == {"Nybroplan": ["08:30"]}


def test_disembark_by_direction_and_period():
    raw = {
        "from_city": {
            "morning": {"Lumabryggan": ["09:30"]},
            "afternoon": {"Lumabryggan": ["17:30"], "Henriksdal": ["17:40"]},
        },
    }
    assert classify_disembark_shape(raw, "weekday", FROM_CITY) == "direction_periods"
    assert extract_disembark_only(raw, "weekday", FROM_CITY) == {
        "Lumabryggan": ["09:30", "17:30"],
        "Henriksdal": ["17:40"],
    }


def test_disembark_missing_or_unknown():
    assert extract_disembark_only(None, "weekday", TO_CITY) == {}
    assert extract_disembark_only({}, "weekday", TO_CITY) == {}
    assert extract_disembark_only({"to_city": {"note": "x"}}, "weekday", TO_CITY) == {}
    assert extract_disembark_only({"to_city": {"stops": {}}}, "weekday", FROM_CITY) == {}


def test_normalize_attaches_disembark_per_direction():
    doc = {
        "metadata": {"day_type": "weekday"},
        "to_city": {"departures": {"Lumabryggan": ["08:00"]}},
        "from_city": {"departures": {"Nybroplan": ["09:00"]}},
        "disembark_only": {"from_city": {"stops": {"Lumabryggan": ["09:20"]}}},
    }
    result = normalize_timetable("city.json", doc)
    assert result.disembark_only == {FROM_CITY: {"Lumabryggan": ["09:20"]}}
